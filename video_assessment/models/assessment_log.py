from ..extensions import db


class LogEventType:
    STARTED = "STARTED"
    PROMPT_SENT = "PROMPT_SENT"
    RESPONSE_RECEIVED = "RESPONSE_RECEIVED"
    PARSING_STARTED = "PARSING_STARTED"
    PARSING_COMPLETED = "PARSING_COMPLETED"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"

    # happy-path emission order; ERROR replaces the next expected step
    ORDER = (STARTED, PROMPT_SENT, RESPONSE_RECEIVED, PARSING_STARTED, PARSING_COMPLETED, COMPLETED)
    TERMINAL = (COMPLETED, ERROR)


class VideoAssessmentLog(db.Model):
    """Append-only audit trail entry."""

    __tablename__ = "video_assessment_logs"
    id = db.Column(db.Integer, primary_key=True)
    video_assessment_id = db.Column(db.String(36), db.ForeignKey("video_assessments.id"),
                                    nullable=False, index=True)
    event_type = db.Column(db.String(32), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False)
    duration_ms = db.Column(db.Integer, nullable=True)
    event_metadata = db.Column("metadata", db.JSON, nullable=True)

    def to_dict(self):
        return {
            "eventType": self.event_type,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "durationMs": self.duration_ms,
            "metadata": self.event_metadata,
        }

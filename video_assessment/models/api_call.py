from ..extensions import db


class VideoAssessmentApiCall(db.Model):
    """One row per outbound model call, closed once when the call resolves."""

    __tablename__ = "video_assessment_api_calls"
    id = db.Column(db.Integer, primary_key=True)
    video_assessment_id = db.Column(db.String(36), db.ForeignKey("video_assessments.id"),
                                    nullable=False, index=True)
    request_timestamp = db.Column(db.DateTime, nullable=False)
    response_timestamp = db.Column(db.DateTime, nullable=True)
    duration_ms = db.Column(db.Integer, nullable=True)
    model_version = db.Column(db.String(64), nullable=False)
    prompt_text = db.Column(db.Text, nullable=True)
    response_text = db.Column(db.Text, nullable=True)
    status_code = db.Column(db.Integer, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    stack_trace = db.Column(db.Text, nullable=True)
    prompt_tokens = db.Column(db.Integer, nullable=True)
    response_tokens = db.Column(db.Integer, nullable=True)

    def to_dict(self):
        return {
            "requestTimestamp": self.request_timestamp.isoformat() if self.request_timestamp else None,
            "responseTimestamp": self.response_timestamp.isoformat() if self.response_timestamp else None,
            "durationMs": self.duration_ms,
            "modelVersion": self.model_version,
            "statusCode": self.status_code,
            "errorMessage": self.error_message,
            "promptTokens": self.prompt_tokens,
            "responseTokens": self.response_tokens,
        }

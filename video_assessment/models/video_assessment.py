from ..extensions import db
from .base import TimestampMixin, new_id


class AssessmentStatus:
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    ALL = (PENDING, PROCESSING, COMPLETED, FAILED)


class VideoAssessment(db.Model, TimestampMixin):
    """One evaluation job per assessment; the row is never deleted."""

    __tablename__ = "video_assessments"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    assessment_id = db.Column(db.String(64), nullable=False, unique=True)
    candidate_id = db.Column(db.String(64), nullable=False, index=True)
    video_url = db.Column(db.Text, nullable=False)
    task_description = db.Column(db.Text, nullable=True)
    video_duration_minutes = db.Column(db.Float, nullable=True)
    expected_outcomes = db.Column(db.JSON, nullable=True)
    role_family_slug = db.Column(db.String(64), nullable=True)
    # PENDING -> PROCESSING -> COMPLETED | FAILED
    status = db.Column(db.String(20), nullable=False, default=AssessmentStatus.PENDING, index=True)
    retry_count = db.Column(db.Integer, nullable=False, default=0)
    last_failure_reason = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    scores = db.relationship("DimensionScore", backref="video_assessment", lazy="select",
                             order_by="DimensionScore.dimension")
    summary = db.relationship("VideoAssessmentSummary", backref="video_assessment", uselist=False)
    logs = db.relationship("VideoAssessmentLog", backref="video_assessment", lazy="dynamic",
                           order_by="VideoAssessmentLog.id")
    api_calls = db.relationship("VideoAssessmentApiCall", backref="video_assessment", lazy="dynamic",
                                order_by="VideoAssessmentApiCall.id")

    def __repr__(self) -> str:
        return f"<VideoAssessment id={self.id} assessment_id={self.assessment_id} status={self.status}>"

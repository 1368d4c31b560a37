from ..extensions import db
from .base import TimestampMixin


class VideoAssessmentSummary(db.Model, TimestampMixin):
    __tablename__ = "video_assessment_summaries"
    id = db.Column(db.Integer, primary_key=True)
    video_assessment_id = db.Column(db.String(36), db.ForeignKey("video_assessments.id"),
                                    nullable=False, unique=True)
    overall_summary = db.Column(db.Text, nullable=False, default="")
    # model output kept verbatim; only deserialized when someone asks for it
    raw_ai_response = db.Column(db.JSON, nullable=True)

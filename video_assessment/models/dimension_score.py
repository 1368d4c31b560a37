from ..extensions import db
from .base import TimestampMixin


class DimensionScore(db.Model, TimestampMixin):
    __tablename__ = "dimension_scores"
    __table_args__ = (
        db.UniqueConstraint("video_assessment_id", "dimension", name="uq_dimension_scores_assessment_dimension"),
    )

    id = db.Column(db.Integer, primary_key=True)
    video_assessment_id = db.Column(db.String(36), db.ForeignKey("video_assessments.id"), nullable=False)
    dimension = db.Column(db.String(64), nullable=False)
    # unscored dimensions are never written, so score is always present
    score = db.Column(db.Float, nullable=False)
    confidence = db.Column(db.String(10), nullable=False, default="medium")
    rationale = db.Column(db.Text, nullable=False, default="")
    observable_behaviors = db.Column(db.JSON, nullable=False, default=list)
    timestamps = db.Column(db.JSON, nullable=False, default=list)
    trainable_gap = db.Column(db.Boolean, nullable=False, default=False)
    green_flags = db.Column(db.JSON, nullable=False, default=list)
    red_flags = db.Column(db.JSON, nullable=False, default=list)

    def to_dict(self):
        return {
            "dimension": self.dimension,
            "score": self.score,
            "confidence": self.confidence,
            "rationale": self.rationale,
            "observableBehaviors": self.observable_behaviors or [],
            "timestamps": self.timestamps or [],
            "trainableGap": self.trainable_gap,
            "greenFlags": self.green_flags or [],
            "redFlags": self.red_flags or [],
        }

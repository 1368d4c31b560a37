"""All-or-nothing write of an evaluation result.

``write_evaluation`` only decides what to write and in which order; the store
it is handed performs the upserts. ``persist_evaluation_atomically`` runs it
against the SQLAlchemy session inside one transaction, so the dimension
scores, the summary and the COMPLETED status become visible together or not
at all. The status update is always the last statement of the transaction.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..errors import TransactionError
from ..extensions import db
from ..models import AssessmentStatus, DimensionScore, VideoAssessment, VideoAssessmentSummary
from .response_parser import DimensionResult, EvaluationResult


def write_evaluation(store, video_assessment_id: str, result: EvaluationResult,
                     completed_at: Optional[datetime] = None) -> int:
    """Issue the write set for ``result`` against ``store``.

    ``store`` provides ``upsert_dimension_score``, ``upsert_summary`` and
    ``mark_completed``. Dimensions with a null score are skipped. Returns the
    number of dimension rows written.
    """
    written = 0
    for dim in result.dimension_scores:
        if dim.score is None:
            continue
        store.upsert_dimension_score(video_assessment_id, dim)
        written += 1
    store.upsert_summary(video_assessment_id, result.overall_summary, result.raw)
    store.mark_completed(video_assessment_id, completed_at or datetime.now(timezone.utc))
    return written


def upsert(session, model, values: Dict[str, Any], conflict_cols, update_cols):
    """INSERT .. ON CONFLICT DO UPDATE for sqlite and postgresql."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite_insert(model).values(**values)
    else:
        raise NotImplementedError(f"upsert is not supported on {dialect}")
    stmt = stmt.on_conflict_do_update(index_elements=list(conflict_cols),
                                      set_={c: stmt.excluded[c] for c in update_cols})
    session.execute(stmt)


class SqlAlchemyEvaluationStore:
    """Evaluation write set bound to one SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    def upsert_dimension_score(self, video_assessment_id: str, dim: DimensionResult):
        values = {
            "video_assessment_id": video_assessment_id,
            "dimension": dim.dimension,
            "score": dim.score,
            "confidence": dim.confidence,
            "rationale": dim.rationale,
            "observable_behaviors": dim.observable_behaviors,
            "timestamps": dim.timestamps,
            "trainable_gap": dim.trainable_gap,
            "green_flags": dim.green_flags,
            "red_flags": dim.red_flags,
        }
        upsert(self.session, DimensionScore, values,
               conflict_cols=("video_assessment_id", "dimension"),
               update_cols=[k for k in values if k not in ("video_assessment_id", "dimension")])

    def upsert_summary(self, video_assessment_id: str, overall_summary: str, raw_ai_response: Dict[str, Any]):
        values = {
            "video_assessment_id": video_assessment_id,
            "overall_summary": overall_summary,
            "raw_ai_response": raw_ai_response,
        }
        upsert(self.session, VideoAssessmentSummary, values,
               conflict_cols=("video_assessment_id",),
               update_cols=("overall_summary", "raw_ai_response"))

    def mark_completed(self, video_assessment_id: str, completed_at: datetime):
        res = self.session.execute(
            update(VideoAssessment)
            .where(VideoAssessment.id == video_assessment_id)
            .values(status=AssessmentStatus.COMPLETED, completed_at=completed_at)
        )
        if res.rowcount != 1:
            raise RuntimeError(f"Video assessment {video_assessment_id} disappeared during write")


def persist_evaluation_atomically(video_assessment_id: str, result: EvaluationResult,
                                  session=None, store_factory=SqlAlchemyEvaluationStore) -> int:
    session = session or db.session
    try:
        written = write_evaluation(store_factory(session), video_assessment_id, result)
        session.commit()
    except Exception as e:
        session.rollback()
        raise TransactionError(f"Failed to persist evaluation for {video_assessment_id}: {e}") from e
    return written

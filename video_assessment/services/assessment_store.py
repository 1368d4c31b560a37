"""Job store for video assessments.

The row keyed by ``assessment_id`` is the single serialization point for an
assessment. Creation is an atomic insert-if-absent and every status change
is a compare-and-set UPDATE, so concurrent triggers and retries agree on one
row and on one owner of each transition.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..errors import NotFound
from ..extensions import db
from ..models import (AssessmentStatus, DimensionScore, VideoAssessment, VideoAssessmentApiCall,
                      VideoAssessmentLog, VideoAssessmentSummary)
from ..models.base import new_id


def _iso(dt):
    return dt.isoformat() if dt else None


def create_if_absent(assessment_id: str, candidate_id: str, video_url: str,
                     task_description: Optional[str] = None,
                     video_duration_minutes: Optional[float] = None,
                     expected_outcomes: Optional[List[str]] = None,
                     role_family_slug: Optional[str] = None):
    """Insert a PENDING job unless one exists; return ``(job, created)``."""
    values = dict(id=new_id(), assessment_id=assessment_id, candidate_id=candidate_id,
                  video_url=video_url, task_description=task_description,
                  video_duration_minutes=video_duration_minutes, expected_outcomes=expected_outcomes,
                  role_family_slug=role_family_slug, status=AssessmentStatus.PENDING, retry_count=0)
    dialect = db.session.get_bind().dialect.name
    if dialect == 'postgresql':
        stmt = pg_insert(VideoAssessment).values(**values)
    elif dialect == 'sqlite':
        stmt = sqlite_insert(VideoAssessment).values(**values)
    else:
        raise NotImplementedError(f'insert-if-absent is not supported on {dialect}')
    res = db.session.execute(stmt.on_conflict_do_nothing(index_elements=['assessment_id']))
    created = res.rowcount == 1
    db.session.commit()

    job = db.session.execute(
        select(VideoAssessment).where(VideoAssessment.assessment_id == assessment_id)
    ).scalar_one()
    return job, created


def get_job(video_assessment_id: str) -> VideoAssessment:
    job = db.session.get(VideoAssessment, video_assessment_id, populate_existing=True)
    if job is None:
        raise NotFound(f'Video assessment not found: {video_assessment_id}')
    return job


def transition(video_assessment_id: str, from_status: str, to_status: str, extra_where=(), **values) -> bool:
    """Move the job from ``from_status`` to ``to_status`` if it is still there.

    Returns True when this call performed the transition.
    """
    stmt = (update(VideoAssessment)
            .where(VideoAssessment.id == video_assessment_id, VideoAssessment.status == from_status, *extra_where)
            .values(status=to_status, **values)
            .execution_options(synchronize_session=False))
    res = db.session.execute(stmt)
    db.session.commit()
    return res.rowcount == 1


def record_failure(video_assessment_id: str, reason: str) -> Optional[int]:
    """PROCESSING -> FAILED with the retry count bumped.

    Returns the new count, or None when the job was no longer PROCESSING and
    nothing changed.
    """
    if not transition(video_assessment_id, AssessmentStatus.PROCESSING, AssessmentStatus.FAILED,
                      retry_count=VideoAssessment.retry_count + 1, last_failure_reason=reason):
        return None
    return get_job(video_assessment_id).retry_count


def list_failed(limit: int = 200) -> List[VideoAssessment]:
    return (VideoAssessment.query
            .filter_by(status=AssessmentStatus.FAILED)
            .order_by(VideoAssessment.created_at.desc())
            .limit(limit)
            .all())


def get_evaluation_status(video_assessment_id: str) -> Dict[str, Any]:
    job = get_job(video_assessment_id)
    has_scores = db.session.query(DimensionScore.id).filter_by(video_assessment_id=job.id).first() is not None
    has_summary = db.session.query(VideoAssessmentSummary.id).filter_by(video_assessment_id=job.id).first() is not None
    return {
        'status': job.status,
        'completedAt': _iso(job.completed_at),
        'hasScores': has_scores,
        'hasSummary': has_summary,
        'retryCount': job.retry_count,
        'lastFailureReason': job.last_failure_reason,
    }


def get_status_by_assessment(assessment_id: str) -> Optional[Dict[str, Any]]:
    job = VideoAssessment.query.filter_by(assessment_id=assessment_id).first()
    if job is None:
        return None
    return {'id': job.id, 'status': job.status, 'completedAt': _iso(job.completed_at)}


def get_evaluation_results(video_assessment_id: str) -> Dict[str, Any]:
    job = get_job(video_assessment_id)
    scores = (DimensionScore.query.filter_by(video_assessment_id=job.id)
              .order_by(DimensionScore.dimension).all())
    summary = VideoAssessmentSummary.query.filter_by(video_assessment_id=job.id).first()
    return {
        'assessment': {'id': job.id, 'status': job.status, 'completedAt': _iso(job.completed_at)},
        'scores': [s.to_dict() for s in scores],
        'summary': {
            'overallSummary': summary.overall_summary,
            'rawAiResponse': summary.raw_ai_response,
        } if summary else None,
    }


def get_assessment_audit(video_assessment_id: str) -> Dict[str, Any]:
    job = get_job(video_assessment_id)
    logs = (VideoAssessmentLog.query.filter_by(video_assessment_id=job.id)
            .order_by(VideoAssessmentLog.id).all())
    calls = (VideoAssessmentApiCall.query.filter_by(video_assessment_id=job.id)
             .order_by(VideoAssessmentApiCall.id).all())
    return {
        'videoAssessmentId': job.id,
        'logs': [entry.to_dict() for entry in logs],
        'apiCalls': [c.to_dict() for c in calls],
    }

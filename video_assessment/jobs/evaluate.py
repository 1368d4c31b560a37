import traceback
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context

from ..errors import InvalidState, NotFound, RetryExhausted
from ..extensions import db, rq
from ..models import AssessmentStatus, LogEventType, VideoAssessment
from ..services import assessment_store as store
from ..services.assessment_logger import AssessmentLogger
from ..services.gemini_client import GeminiVideoClient
from ..services.persistence import persist_evaluation_atomically
from ..services.prompt_builder import build_evaluation_prompt
from ..services.response_parser import parse_evaluation_response
from ..services.rubric import load_rubric_with_fallback


def _max_retries() -> int:
    return int(current_app.config.get('MAX_AUTO_RETRIES', 3))


def _enqueue(video_assessment_id: str):
    rq.enqueue(evaluate_video_job, video_assessment_id,
               job_timeout=current_app.config.get('EVALUATION_JOB_TIMEOUT', 900))


def _failure(video_assessment_id, error) -> Dict[str, Any]:
    return {
        'success': False,
        'videoAssessmentId': video_assessment_id,
        'overallScore': None,
        'dimensionScores': {},
        'summary': None,
        'error': error,
    }


def _record_error(video_assessment_id: str, logger: AssessmentLogger, exc: Exception, stack: str):
    message = str(exc) or type(exc).__name__
    try:
        retry_count = store.record_failure(video_assessment_id, message)
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Failed to persist failure state for %s', video_assessment_id)
        return

    try:
        logger.log_event(LogEventType.ERROR, {
            'error_message': message,
            'error_name': type(exc).__name__,
            'stack_trace': stack,
            'retryable': getattr(exc, 'retryable', True),
        })
    except Exception:
        db.session.rollback()
        current_app.logger.exception('Failed to write the ERROR entry for %s', video_assessment_id)

    if retry_count is None:
        current_app.logger.warning('Video assessment %s left PROCESSING before its failure was recorded',
                                   video_assessment_id)
        return

    current_app.logger.error('[ASSESSMENT FAILURE ALERT] Video assessment %s failed (attempt %s/%s). Reason: %s',
                             video_assessment_id, retry_count, _max_retries(), message)
    if retry_count >= _max_retries():
        current_app.logger.error('[ASSESSMENT FAILURE ALERT] Video assessment %s has failed %s times and will '
                                 'not be automatically retried. Admin intervention required.',
                                 video_assessment_id, retry_count)


def evaluate_video(video_assessment_id: str, client=None) -> Dict[str, Any]:
    """Run one evaluation attempt for a PENDING video assessment.

    Claims the job (PENDING -> PROCESSING), builds the rubric prompt, calls the
    model, parses the answer and writes scores, summary and the COMPLETED status
    in one transaction. Any failure on the way marks the job FAILED, bumps its
    retry count and is returned as ``{'success': False, 'error': ...}``.
    """
    job = store.get_job(video_assessment_id)
    if not store.transition(job.id, AssessmentStatus.PENDING, AssessmentStatus.PROCESSING):
        current = store.get_job(video_assessment_id).status
        current_app.logger.warning('Skipping evaluation of %s: status is %s', video_assessment_id, current)
        return _failure(video_assessment_id, f'Video assessment is not pending (status {current})')

    logger = AssessmentLogger(job.id)
    try:
        logger.log_event(LogEventType.STARTED, {'job_id': job.id, 'attempt': job.retry_count + 1})

        rubric = load_rubric_with_fallback(job.role_family_slug)
        prompt = build_evaluation_prompt(rubric,
                                         video_duration_minutes=job.video_duration_minutes,
                                         task_description=job.task_description,
                                         expected_outcomes=job.expected_outcomes)
        if client is None:
            client = GeminiVideoClient.from_config(current_app.config)
        logger.log_event(LogEventType.PROMPT_SENT, {
            'prompt_length': len(prompt),
            'role_family': rubric['roleFamily']['slug'],
        })

        tracker = logger.start_api_call(prompt, client.model)
        response = client.generate(job.video_url, prompt, tracker)
        logger.log_event(LogEventType.RESPONSE_RECEIVED, {
            'response_length': len(response.text or ''),
            'status_code': response.status_code,
        })

        logger.log_event(LogEventType.PARSING_STARTED)
        result = parse_evaluation_response(response.text)
        logger.log_event(LogEventType.PARSING_COMPLETED, {
            'parsed_dimension_count': len(result.scored_dimensions),
        })

        persist_evaluation_atomically(job.id, result)
    except Exception as e:
        stack = traceback.format_exc()
        db.session.rollback()
        current_app.logger.exception('[VideoEvaluation] Evaluation failed for %s', video_assessment_id)
        _record_error(video_assessment_id, logger, e, stack)
        return _failure(video_assessment_id, str(e) or type(e).__name__)

    # scores, summary and COMPLETED status are committed from here on
    try:
        logger.log_event(LogEventType.COMPLETED)
    except Exception:
        db.session.rollback()
        current_app.logger.exception('[VideoEvaluation] Failed to write the COMPLETED entry for %s',
                                     video_assessment_id)

    return {
        'success': True,
        'videoAssessmentId': video_assessment_id,
        'overallScore': result.overall_score,
        'dimensionScores': result.scores,
        'summary': result.overall_summary,
    }


def evaluate_video_job(video_assessment_id: str):
    """RQ entrypoint: runs in the caller's app context or builds one for the worker."""
    if has_app_context():
        return evaluate_video(video_assessment_id)
    from video_assessment import create_app
    app = create_app()
    with app.app_context():
        return evaluate_video(video_assessment_id)


def trigger_evaluation(assessment_id: str, candidate_id: str, video_url: str,
                       task_description: Optional[str] = None,
                       video_duration_minutes: Optional[float] = None,
                       expected_outcomes: Optional[List[str]] = None,
                       role_family_slug: Optional[str] = None) -> Dict[str, Any]:
    """Create-or-fetch the job for ``assessment_id`` and start it when needed.

    A new job is evaluated; a FAILED one is reset to PENDING and evaluated
    again; PENDING, PROCESSING and COMPLETED jobs are returned untouched.
    """
    try:
        job, created = store.create_if_absent(assessment_id, candidate_id, video_url,
                                              task_description=task_description,
                                              video_duration_minutes=video_duration_minutes,
                                              expected_outcomes=expected_outcomes,
                                              role_family_slug=role_family_slug)
        should_run = created
        if job.status == AssessmentStatus.FAILED:
            should_run = store.transition(job.id, AssessmentStatus.FAILED, AssessmentStatus.PENDING)
        job_id = job.id
    except Exception as e:
        db.session.rollback()
        current_app.logger.exception('[VideoEvaluation] Failed to trigger video assessment for %s', assessment_id)
        return {'success': False, 'videoAssessmentId': None, 'error': str(e)}

    if should_run:
        _enqueue(job_id)
    return {'success': True, 'videoAssessmentId': job_id}


def retry_evaluation(video_assessment_id: str) -> Dict[str, Any]:
    """Guarded retry of a FAILED job that has not reached the retry ceiling."""
    job = store.get_job(video_assessment_id)
    if job.status != AssessmentStatus.FAILED:
        raise InvalidState(job.status)
    max_retries = _max_retries()
    if job.retry_count >= max_retries:
        raise RetryExhausted(f'Assessment has already failed {job.retry_count} times; '
                             f'a forced retry is required.')
    if not store.transition(job.id, AssessmentStatus.FAILED, AssessmentStatus.PENDING,
                            extra_where=(VideoAssessment.retry_count < max_retries,)):
        raise InvalidState(store.get_job(video_assessment_id).status)
    _enqueue(job.id)
    return {'success': True, 'videoAssessmentId': job.id}


def force_retry_evaluation(video_assessment_id: str) -> Dict[str, Any]:
    """Operator retry: clears the failure history and ignores the ceiling."""
    job = store.get_job(video_assessment_id)
    if job.status != AssessmentStatus.FAILED:
        raise InvalidState(job.status)
    if not store.transition(job.id, AssessmentStatus.FAILED, AssessmentStatus.PENDING,
                            retry_count=0, last_failure_reason=None):
        raise InvalidState(store.get_job(video_assessment_id).status)
    current_app.logger.info('[VideoEvaluation] Admin force-retry for %s', job.id)
    _enqueue(job.id)
    return {'success': True, 'videoAssessmentId': job.id}


def sweep_failed_evaluations() -> List[str]:
    """Re-queue every FAILED job still below the retry ceiling."""
    requeued = []
    for job in store.list_failed():
        if job.retry_count >= _max_retries():
            continue
        try:
            retry_evaluation(job.id)
        except (InvalidState, RetryExhausted, NotFound) as e:
            current_app.logger.info('Sweep skipped %s: %s', job.id, e)
            continue
        requeued.append(job.id)
    return requeued

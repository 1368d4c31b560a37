"""Per-attempt audit logging for video assessments.

One AssessmentLogger is built for each evaluation attempt. Every event is
written as its own VideoAssessmentLog row and committed straight away, so the
trail survives a rollback of the evaluation's own transaction. Each event is
also mirrored to the Flask application logger.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from flask import current_app

from ..extensions import db
from ..models import LogEventType, VideoAssessmentApiCall, VideoAssessmentLog


def _utcnow():
    return datetime.now(timezone.utc)


def _elapsed_ms(start, end):
    return int((end - start).total_seconds() * 1000)


class ApiCallTracker:
    """Open VideoAssessmentApiCall row; resolved exactly once."""

    def __init__(self, record: VideoAssessmentApiCall, request_timestamp: datetime):
        self.record = record
        self.request_timestamp = request_timestamp
        self.resolved = False

    def _resolve(self, **fields):
        if self.resolved:
            raise RuntimeError(f"API call {self.record.id} already resolved")
        now = _utcnow()
        self.record.response_timestamp = now
        self.record.duration_ms = _elapsed_ms(self.request_timestamp, now)
        for k, v in fields.items():
            setattr(self.record, k, v)
        db.session.add(self.record)
        db.session.commit()
        self.resolved = True

    def complete(self, response_text: Optional[str] = None, status_code: int = 200,
                 prompt_tokens: Optional[int] = None, response_tokens: Optional[int] = None):
        self._resolve(response_text=response_text, status_code=status_code,
                      prompt_tokens=prompt_tokens, response_tokens=response_tokens)

    def fail(self, error: BaseException, stack_trace: Optional[str] = None):
        self._resolve(error_message=str(error),
                      stack_trace=stack_trace,
                      status_code=getattr(error, "status_code", None) or 500)


class AssessmentLogger:
    def __init__(self, video_assessment_id: str):
        self.video_assessment_id = video_assessment_id
        self.last_event_timestamp: Optional[datetime] = None

    def log_event(self, event_type: str, metadata: Optional[Dict[str, Any]] = None) -> datetime:
        now = _utcnow()
        duration_ms = _elapsed_ms(self.last_event_timestamp, now) if self.last_event_timestamp else None
        entry = VideoAssessmentLog(video_assessment_id=self.video_assessment_id,
                                   event_type=event_type,
                                   timestamp=now,
                                   duration_ms=duration_ms,
                                   event_metadata=metadata or None)
        db.session.add(entry)
        db.session.commit()
        self.last_event_timestamp = now

        log = current_app.logger.error if event_type == LogEventType.ERROR else current_app.logger.info
        log('[VideoEvaluation] %s %s duration_ms=%s metadata=%s',
            self.video_assessment_id, event_type, duration_ms,
            {k: v for k, v in (metadata or {}).items() if k != 'stack_trace'})
        return now

    def start_api_call(self, prompt_text: str, model_version: str) -> ApiCallTracker:
        now = _utcnow()
        record = VideoAssessmentApiCall(video_assessment_id=self.video_assessment_id,
                                        request_timestamp=now,
                                        prompt_text=prompt_text,
                                        model_version=model_version)
        db.session.add(record)
        db.session.commit()
        return ApiCallTracker(record, now)

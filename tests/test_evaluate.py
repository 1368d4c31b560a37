import json
import threading

import pytest

from config import TestConfig
from video_assessment import create_app
from video_assessment.errors import InvalidState, ModelInvocationError, NotFound, RetryExhausted
from video_assessment.extensions import db
from video_assessment.jobs import evaluate as evaluate_module
from video_assessment.jobs.evaluate import (evaluate_video, force_retry_evaluation, retry_evaluation,
                                            sweep_failed_evaluations, trigger_evaluation)
from video_assessment.models import (AssessmentStatus, DimensionScore, LogEventType, VideoAssessment,
                                     VideoAssessmentApiCall, VideoAssessmentLog, VideoAssessmentSummary)
from video_assessment.services import assessment_store as store
from video_assessment.services.assessment_logger import AssessmentLogger
from video_assessment.services.gemini_client import GeminiVideoClient

from conftest import FakeModelClient, make_model_payload


@pytest.fixture
def use_model(monkeypatch):
    """Route every evaluation through the given fake model client."""
    def _use(fake):
        monkeypatch.setattr(GeminiVideoClient, "from_config", lambda config: fake)
        return fake
    return _use


def _events(job_id):
    return [e.event_type for e in VideoAssessmentLog.query.filter_by(video_assessment_id=job_id)
            .order_by(VideoAssessmentLog.id)]


def _failed_job(retry_count, assessment_id="A1"):
    job, _ = store.create_if_absent(assessment_id, "C1", "https://x/v.mp4")
    store.transition(job.id, AssessmentStatus.PENDING, AssessmentStatus.FAILED,
                     retry_count=retry_count, last_failure_reason="earlier failure")
    return job.id


def test_end_to_end_evaluation(app, use_model, fake_model):
    use_model(fake_model)
    res = trigger_evaluation("A1", "C1", "https://x/v.mp4", task_description="Fix the flaky test",
                             role_family_slug="engineering")
    assert res["success"] is True
    job_id = res["videoAssessmentId"]

    job = store.get_job(job_id)
    assert job.status == AssessmentStatus.COMPLETED
    assert job.completed_at is not None
    assert job.retry_count == 0
    assert DimensionScore.query.filter_by(video_assessment_id=job_id).count() == 7
    assert VideoAssessmentSummary.query.filter_by(video_assessment_id=job_id).count() == 1
    assert _events(job_id) == list(LogEventType.ORDER)

    assert fake_model.calls[0][0] == "https://x/v.mp4"
    assert "Fix the flaky test" in fake_model.calls[0][1]

    call = VideoAssessmentApiCall.query.filter_by(video_assessment_id=job_id).one()
    assert call.status_code == 200
    assert call.model_version == "fake-model"
    assert call.prompt_tokens == 10 and call.response_tokens == 20
    assert call.response_timestamp is not None


def test_evaluate_video_reports_scores(app, fake_model):
    job, _ = store.create_if_absent("A1", "C1", "https://x/v.mp4")
    res = evaluate_video(job.id, client=fake_model)
    assert res["success"] is True
    assert res["overallScore"] == 4.2
    assert res["dimensionScores"]["ownership"] is None
    assert res["dimensionScores"]["communication"] == 3.0
    assert res["summary"] == "Solid, methodical session."


def test_missing_overall_score_marks_failed(app):
    payload = make_model_payload()
    del payload["overall_score"]
    job, _ = store.create_if_absent("A1", "C1", "https://x/v.mp4")

    res = evaluate_video(job.id, client=FakeModelClient(text=json.dumps(payload)))

    assert res["success"] is False
    assert "overall_score" in res["error"]
    job = store.get_job(job.id)
    assert job.status == AssessmentStatus.FAILED
    assert job.retry_count == 1
    assert "overall_score" in job.last_failure_reason
    assert DimensionScore.query.count() == 0
    events = _events(job.id)
    assert events[-1] == LogEventType.ERROR
    assert LogEventType.COMPLETED not in events
    error = VideoAssessmentLog.query.filter_by(event_type=LogEventType.ERROR).one()
    assert error.event_metadata["error_name"] == "SchemaViolation"
    assert error.event_metadata["retryable"] is True
    assert error.event_metadata["stack_trace"]


def test_model_timeout_marks_failed_and_records_api_call(app):
    job, _ = store.create_if_absent("A1", "C1", "https://x/v.mp4")
    fake = FakeModelClient(error=ModelInvocationError("Model call timed out after 5.0s"))

    res = evaluate_video(job.id, client=fake)

    assert res["success"] is False
    assert "timed out" in res["error"]
    assert store.get_job(job.id).status == AssessmentStatus.FAILED
    call = VideoAssessmentApiCall.query.filter_by(video_assessment_id=job.id).one()
    assert call.status_code == 500
    assert "timed out" in call.error_message
    assert _events(job.id) == [LogEventType.STARTED, LogEventType.PROMPT_SENT, LogEventType.ERROR]
    assert len(fake.calls) == 1


def test_evaluate_video_only_runs_pending_jobs(app, fake_model):
    job, _ = store.create_if_absent("A1", "C1", "https://x/v.mp4")
    store.transition(job.id, AssessmentStatus.PENDING, AssessmentStatus.COMPLETED)

    res = evaluate_video(job.id, client=fake_model)

    assert res["success"] is False
    assert fake_model.calls == []
    assert store.get_job(job.id).status == AssessmentStatus.COMPLETED
    assert _events(job.id) == []


def test_evaluate_video_unknown_job(app, fake_model):
    with pytest.raises(NotFound):
        evaluate_video("nope", client=fake_model)


def test_trigger_is_idempotent(app, use_model, fake_model):
    use_model(fake_model)
    first = trigger_evaluation("A1", "C1", "https://x/v.mp4")
    second = trigger_evaluation("A1", "C1", "https://x/other.mp4")

    assert first["videoAssessmentId"] == second["videoAssessmentId"]
    assert VideoAssessment.query.count() == 1
    assert len(fake_model.calls) == 1
    assert store.get_job(first["videoAssessmentId"]).video_url == "https://x/v.mp4"


def test_trigger_restarts_failed_job(app, use_model, fake_model):
    use_model(fake_model)
    job_id = _failed_job(retry_count=1)

    res = trigger_evaluation("A1", "C1", "https://x/v.mp4")

    assert res["videoAssessmentId"] == job_id
    assert store.get_job(job_id).status == AssessmentStatus.COMPLETED
    assert len(fake_model.calls) == 1


def test_concurrent_triggers_converge_on_one_job(tmp_path, monkeypatch):
    class FileConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'jobs.db'}"

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()

    enqueued = []
    monkeypatch.setattr(evaluate_module, "_enqueue", lambda job_id: enqueued.append(job_id))
    barrier = threading.Barrier(4)
    results = []

    def worker():
        with app.app_context():
            barrier.wait()
            results.append(trigger_evaluation("A1", "C1", "https://x/v.mp4"))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 4
    assert all(r["success"] for r in results)
    assert len({r["videoAssessmentId"] for r in results}) == 1
    assert len(enqueued) == 1
    with app.app_context():
        assert VideoAssessment.query.count() == 1
        db.drop_all()


def test_retry_failed_job(app, use_model, fake_model):
    use_model(fake_model)
    job_id = _failed_job(retry_count=1)

    res = retry_evaluation(job_id)

    assert res == {"success": True, "videoAssessmentId": job_id}
    job = store.get_job(job_id)
    assert job.status == AssessmentStatus.COMPLETED
    assert job.retry_count == 1


def test_retry_exhausted_at_ceiling(app, use_model, fake_model):
    use_model(fake_model)
    job_id = _failed_job(retry_count=3)

    with pytest.raises(RetryExhausted):
        retry_evaluation(job_id)
    assert store.get_job(job_id).status == AssessmentStatus.FAILED
    assert fake_model.calls == []


def test_force_retry_resets_count(app, use_model, fake_model):
    use_model(fake_model)
    job_id = _failed_job(retry_count=3)

    force_retry_evaluation(job_id)

    job = store.get_job(job_id)
    assert job.status == AssessmentStatus.COMPLETED
    assert job.retry_count == 0
    assert job.last_failure_reason is None


def test_retry_rejects_non_failed_job(app, use_model, fake_model):
    use_model(fake_model)
    res = trigger_evaluation("A1", "C1", "https://x/v.mp4")

    with pytest.raises(InvalidState) as exc:
        retry_evaluation(res["videoAssessmentId"])
    assert "COMPLETED" in str(exc.value)
    with pytest.raises(InvalidState):
        force_retry_evaluation(res["videoAssessmentId"])
    with pytest.raises(NotFound):
        retry_evaluation("nope")


def test_sweep_requeues_jobs_below_ceiling(app, use_model, fake_model):
    use_model(fake_model)
    retryable = _failed_job(retry_count=1, assessment_id="A1")
    exhausted = _failed_job(retry_count=3, assessment_id="A2")

    assert sweep_failed_evaluations() == [retryable]
    assert store.get_job(retryable).status == AssessmentStatus.COMPLETED
    assert store.get_job(exhausted).status == AssessmentStatus.FAILED


def test_status_views(app, use_model, fake_model):
    use_model(fake_model)
    job_id = trigger_evaluation("A1", "C1", "https://x/v.mp4")["videoAssessmentId"]

    status = store.get_evaluation_status(job_id)
    assert status["status"] == AssessmentStatus.COMPLETED
    assert status["hasScores"] and status["hasSummary"]
    assert store.get_status_by_assessment("A1")["id"] == job_id
    assert store.get_status_by_assessment("missing") is None

    results = store.get_evaluation_results(job_id)
    assert len(results["scores"]) == 7
    assert results["summary"]["overallSummary"] == "Solid, methodical session."

    audit = store.get_assessment_audit(job_id)
    assert [e["eventType"] for e in audit["logs"]] == list(LogEventType.ORDER)
    assert len(audit["apiCalls"]) == 1


def _failing_event(monkeypatch, failing_type):
    original = AssessmentLogger.log_event

    def log_event(self, event_type, metadata=None):
        if event_type == failing_type:
            raise RuntimeError("audit table unavailable")
        return original(self, event_type, metadata)

    monkeypatch.setattr(AssessmentLogger, "log_event", log_event)


def test_lost_completed_entry_keeps_job_completed(app, monkeypatch, fake_model):
    _failing_event(monkeypatch, LogEventType.COMPLETED)
    job, _ = store.create_if_absent("A1", "C1", "https://x/v.mp4")

    res = evaluate_video(job.id, client=fake_model)

    assert res["success"] is True
    job = store.get_job(job.id)
    assert job.status == AssessmentStatus.COMPLETED
    assert job.retry_count == 0
    assert job.last_failure_reason is None
    assert DimensionScore.query.filter_by(video_assessment_id=job.id).count() == 7
    assert LogEventType.ERROR not in _events(job.id)


def test_lost_error_entry_still_marks_failed(app, monkeypatch):
    _failing_event(monkeypatch, LogEventType.ERROR)
    job, _ = store.create_if_absent("A1", "C1", "https://x/v.mp4")
    fake = FakeModelClient(error=ModelInvocationError("Model call returned HTTP 503", status_code=503))

    res = evaluate_video(job.id, client=fake)

    assert res["success"] is False
    job = store.get_job(job.id)
    assert job.status == AssessmentStatus.FAILED
    assert job.retry_count == 1
    assert "503" in job.last_failure_reason


def test_record_failure_only_moves_processing_jobs(app, fake_model):
    job, _ = store.create_if_absent("A1", "C1", "https://x/v.mp4")
    evaluate_video(job.id, client=fake_model)

    assert store.record_failure(job.id, "late failure") is None
    job = store.get_job(job.id)
    assert job.status == AssessmentStatus.COMPLETED
    assert job.retry_count == 0
    assert job.last_failure_reason is None

    other, _ = store.create_if_absent("A2", "C1", "https://x/v.mp4")
    store.transition(other.id, AssessmentStatus.PENDING, AssessmentStatus.PROCESSING)
    assert store.record_failure(other.id, "boom") == 1
    assert store.get_job(other.id).status == AssessmentStatus.FAILED

from flask import Blueprint, current_app, jsonify, request

from ..jobs.evaluate import force_retry_evaluation, retry_evaluation
from ..models import LogEventType, VideoAssessmentLog
from ..services import assessment_store as store
from ..utils.decorators import admin_required
from . import register_error_handlers

bp = Blueprint("admin", __name__)
register_error_handlers(bp)


@bp.route("/api/admin/video-assessments/retry", methods=["POST"])
@admin_required
def retry():
    """Retry a failed video assessment; ``force`` resets the retry count."""
    body = request.get_json(silent=True) or {}
    video_assessment_id = body.get("videoAssessmentId")
    if not video_assessment_id:
        return jsonify({"error": "videoAssessmentId is required"}), 400

    force = bool(body.get("force"))
    result = force_retry_evaluation(video_assessment_id) if force else retry_evaluation(video_assessment_id)
    result["message"] = ("Video assessment force-retry initiated (retry count reset)" if force
                         else "Video assessment retry initiated")
    return jsonify(result)


@bp.get("/api/admin/video-assessments/failed")
@admin_required
def failed():
    max_retries = int(current_app.config.get("MAX_AUTO_RETRIES", 3))
    out = []
    for job in store.list_failed():
        last_error = (VideoAssessmentLog.query
                      .filter_by(video_assessment_id=job.id, event_type=LogEventType.ERROR)
                      .order_by(VideoAssessmentLog.id.desc())
                      .first())
        out.append({
            "id": job.id,
            "candidateId": job.candidate_id,
            "assessmentId": job.assessment_id,
            "videoUrl": job.video_url,
            "createdAt": job.created_at.isoformat() if job.created_at else None,
            "retryCount": job.retry_count,
            "lastFailureReason": job.last_failure_reason,
            "canAutoRetry": job.retry_count < max_retries,
            "lastError": last_error.event_metadata if last_error else None,
            "lastErrorAt": last_error.timestamp.isoformat() if last_error else None,
        })
    return jsonify({"failedAssessments": out, "count": len(out)})

from flask import Blueprint, jsonify, request

from ..jobs.evaluate import trigger_evaluation
from ..services import assessment_store as store
from ..utils.decorators import admin_required
from . import register_error_handlers

bp = Blueprint("video_assessments", __name__)
register_error_handlers(bp)


@bp.route("/api/video-assessments", methods=["POST"])
def trigger():
    body = request.get_json(silent=True) or {}
    missing = [k for k in ("assessmentId", "candidateId", "videoUrl") if not body.get(k)]
    if missing:
        return jsonify({"success": False, "videoAssessmentId": None,
                        "error": f"Missing required fields: {', '.join(missing)}"}), 400

    result = trigger_evaluation(
        assessment_id=str(body["assessmentId"]),
        candidate_id=str(body["candidateId"]),
        video_url=body["videoUrl"],
        task_description=body.get("taskDescription"),
        video_duration_minutes=body.get("videoDurationMinutes"),
        expected_outcomes=body.get("expectedOutcomes"),
        role_family_slug=body.get("roleFamilySlug"),
    )
    return jsonify(result), (202 if result["success"] else 500)


@bp.get("/api/video-assessments/<video_assessment_id>/status")
def status(video_assessment_id):
    return jsonify(store.get_evaluation_status(video_assessment_id))


@bp.get("/api/video-assessments/by-assessment/<assessment_id>")
def status_by_assessment(assessment_id):
    res = store.get_status_by_assessment(assessment_id)
    if res is None:
        return jsonify({"error": f"No video assessment for assessment {assessment_id}"}), 404
    return jsonify(res)


@bp.get("/api/video-assessments/<video_assessment_id>/results")
def results(video_assessment_id):
    return jsonify(store.get_evaluation_results(video_assessment_id))


@bp.get("/api/video-assessments/<video_assessment_id>/logs")
@admin_required
def logs(video_assessment_id):
    return jsonify(store.get_assessment_audit(video_assessment_id))

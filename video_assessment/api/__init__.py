from flask import jsonify

from ..errors import InvalidState, NotFound, RetryExhausted


def register_error_handlers(bp):
    @bp.errorhandler(NotFound)
    def not_found(e):
        return jsonify({"error": str(e)}), 404

    @bp.errorhandler(InvalidState)
    def invalid_state(e):
        return jsonify({"error": str(e), "status": e.status}), 409

    @bp.errorhandler(RetryExhausted)
    def retry_exhausted(e):
        return jsonify({"error": str(e)}), 409

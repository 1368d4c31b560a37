import hmac
from functools import wraps
from flask import abort, current_app, request


def admin_required(view):
    """Require ``Authorization: Bearer <ADMIN_API_TOKEN>`` on the request."""
    @wraps(view)
    def wrapped(*args, **kwargs):
        expected = current_app.config.get("ADMIN_API_TOKEN")
        if not expected:
            abort(403)
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            abort(401)
        if not hmac.compare_digest(header[len("Bearer "):], expected):
            abort(403)
        return view(*args, **kwargs)
    return wrapped

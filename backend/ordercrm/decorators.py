# Overview: Request decorators establishing the caller context for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import permission_service
from .validation import AuthorizationError


def require_auth(f):
    """
    Require an authenticated caller.

    Sessions are handled by the upstream auth layer, which forwards the
    caller's user id in the X-User-Id header. The role is always read from
    the users table, never trusted from the request.

    Sets:
    - g.actor: permission_service.Actor(user_id, role)

    Returns 401 if the header is missing or malformed, or the user is
    unknown or deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-User-Id", "").strip()
        if not raw.isdigit():
            return jsonify({"success": False, "error": "Unauthorized - Please log in"}), 401

        try:
            g.actor = permission_service.make_actor(user_id=int(raw))
        except AuthorizationError as e:
            return jsonify({"success": False, "error": str(e)}), 401

        return f(*args, **kwargs)

    return decorated_function

# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require an acting user identity resolved upstream.

    Authentication lives in the hosting application; it forwards the
    authenticated identity in the X-Actor-Id header. Sets g.actor.
    Returns 401 when the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not actor:
            return jsonify({"error": "Actor identity required"}), 401
        g.actor = actor
        return f(*args, **kwargs)

    return decorated_function

# Overview: Request decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g


def require_user(f):
    """
    Require an authenticated user and establish ownership context.

    Authentication itself is done upstream by the identity provider, which
    forwards the stable user id in the configured identity header
    (IDENTITY_HEADER, default X-User-Id). The id is trusted as-is.

    Sets g.user_id for the route; services receive it explicitly.

    Returns 401 if the header is missing or blank.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        header = current_app.config.get("IDENTITY_HEADER", "X-User-Id")
        user_id = (request.headers.get(header) or "").strip()

        if not user_id:
            return jsonify({"error": "Authentication required"}), 401
        if len(user_id) > 128:
            return jsonify({"error": "Invalid user identity"}), 401

        g.user_id = user_id
        return f(*args, **kwargs)

    return decorated_function

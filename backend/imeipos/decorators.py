# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import DEFAULT_ROLE_PERMISSIONS
from .services.permission_service import Actor


def with_actor(f):
    """
    Resolve the calling Actor from gateway headers.

    Authentication happens upstream; the gateway forwards:
    - X-User-Id: numeric user id
    - X-User-Role: admin, manager, cashier or viewer

    Sets g.actor, which routes pass to services as actor=. Permission checks
    themselves happen inside the services.

    SECURITY: Returns 401 if the role header is missing or unknown.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        role = (request.headers.get("X-User-Role") or "").strip().lower()
        if not role or role not in DEFAULT_ROLE_PERMISSIONS:
            return jsonify({"error": "Authentication required"}), 401

        raw_user_id = request.headers.get("X-User-Id")
        user_id = None
        if raw_user_id:
            if not raw_user_id.isdigit():
                return jsonify({"error": "Invalid X-User-Id header"}), 401
            user_id = int(raw_user_id)

        g.actor = Actor(user_id=user_id, role=role)
        return f(*args, **kwargs)

    return decorated_function

# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def require_auth(f):
    """
    Resolve the bearer token to the acting user.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.actor: permissions.Actor (user_id + Role) passed to services

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "authentication_required", "message": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        resolved = session_service.resolve_actor(token) if token else None

        if not resolved:
            return jsonify({"error": "authentication_required", "message": "Invalid or expired token"}), 401

        g.current_user, g.actor = resolved
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """
    Coarse role gate for whole endpoints. Must run after require_auth.

    Fine-grained rules (ownership, status) stay in the services.
    """
    allowed = {getattr(r, "value", r) for r in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.actor.role.value not in allowed:
                return jsonify({
                    "error": "authorization_error",
                    "message": f"Requires role: {', '.join(sorted(allowed))}",
                }), 403
            return f(*args, **kwargs)

        return decorated_function

    return decorator

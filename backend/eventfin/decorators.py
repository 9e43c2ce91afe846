# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'principal') and hasattr(g, 'current_user')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require authentication and establish tenant context.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.principal: Principal(user_id, org_id, role) passed into services
    - g.session_token: The bearer token (used by logout)

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account or organization deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.principal = context.principal
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*roles):
    """
    Require the caller's role to be one of `roles`.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            principal = g.principal
            if not principal.has_role(*roles):
                current_app.logger.warning(
                    "Role denied: user %s (org %s, role %s) %s %s",
                    principal.user_id, principal.org_id, principal.role.value,
                    request.method, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": [r.value for r in roles],
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator

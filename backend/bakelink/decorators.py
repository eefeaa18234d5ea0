# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .services import session_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.user_id: Its id; every owner-scoped query filters on it
    - g.token: The plaintext bearer token (for logout)

    Returns 503 when the session store cannot be read.

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Missing bearer token."}), 401

        token = auth_header.split(" ", 1)[1].strip()
        if not token:
            return jsonify({"error": "Missing bearer token."}), 401

        try:
            user = session_service.validate_session(token)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Session lookup failed")
            return jsonify({"error": "Service temporarily unavailable."}), 503
        if not user:
            return jsonify({"error": "Invalid or expired token."}), 401

        g.current_user = user
        g.user_id = user.id
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to have the admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        # Ensure @require_auth was called first
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        if not g.current_user.is_admin:
            return jsonify({"error": "Admin access required."}), 403

        return f(*args, **kwargs)

    return decorated_function

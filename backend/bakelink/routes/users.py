# Overview: Admin-only user listing.

from flask import Blueprint, request, jsonify

from ..services import auth_service
from ..pagination import resolve_pagination
from ..decorators import require_auth, require_admin

users_bp = Blueprint("users", __name__, url_prefix="/users")


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    """
    List all user accounts.

    Query params:
    - page / limit (optional) - pagination; omitted returns every user
    """
    page, limit = resolve_pagination(request.args)
    return jsonify(auth_service.list_users(page=page, limit=limit)), 200

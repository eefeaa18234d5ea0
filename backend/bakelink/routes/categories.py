# Overview: Flask API routes for product categories; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..services import category_service
from ..models import ProductCategory
from ..pagination import resolve_pagination
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name"},
    required_on_create={"name"},
)

categories_bp = Blueprint("categories", __name__, url_prefix="/product-categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    """
    Query params:
    - keyword: str (optional) - case-insensitive name match
    - page / limit (optional)
    """
    page, limit = resolve_pagination(request.args)
    return category_service.list_categories(
        user_id=g.user_id,
        keyword=(request.args.get("keyword") or "").strip() or None,
        page=page,
        limit=limit,
    )


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category_route(category_id: int):
    try:
        return category_service.get_category(user_id=g.user_id, category_id=category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@categories_bp.post("")
@require_auth
def create_category_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = category_service.create_category(user_id=g.user_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created, 201


@categories_bp.put("/<int:category_id>")
@require_auth
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=ProductCategory, payload=payload, policy=CATEGORY_POLICY, partial=False)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = category_service.update_category(user_id=g.user_id, category_id=category_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return updated, 200


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(user_id=g.user_id, category_id=category_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return "", 204

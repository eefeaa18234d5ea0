# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/bakelink/routes/products.py
"""
Product management routes.

All product operations are scoped to the caller (g.user_id, set by
@require_auth). Another user's product behaves exactly like a missing one.
"""
from flask import Blueprint, request, g

from ..services import products_service
from ..models import Product
from ..pagination import resolve_pagination
from ..validation import (
    ModelValidationPolicy,
    coerce_int,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"category_id", "name", "description", "ingredients", "price_cents", "is_active"},
    required_on_create={"category_id", "name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    List products with optional pagination.

    Query params:
    - keyword: str (optional) - matches product or category name
    - category_id: int (optional)
    - page / limit (optional) - omitted returns every product
    """
    page, limit = resolve_pagination(request.args)
    return products_service.list_products(
        user_id=g.user_id,
        keyword=(request.args.get("keyword") or "").strip() or None,
        category_id=request.args.get("category_id", type=lambda v: coerce_int("category_id", v)),
        page=page,
        limit=limit,
    )


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        return products_service.get_product(user_id=g.user_id, product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a new product in the caller's catalog."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
        created = products_service.create_product(user_id=g.user_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    """Partially update a product; schedules keep their price snapshot."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(user_id=g.user_id, product_id=product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return updated, 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(user_id=g.user_id, product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409

    return "", 204

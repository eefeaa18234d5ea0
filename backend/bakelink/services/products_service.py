# backend/bakelink/services/products_service.py
"""
Products Service

All product operations are owner-scoped: every query filters on the
caller's user_id, and category references must point at the caller's own
categories.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, ProductCategory, ScheduleItem, OrderItem
from ..validation import ConflictError, NotFoundError, ValidationError
from ..pagination import paginate_query

PRODUCT_MUTABLE_FIELDS = {"category_id", "name", "description", "ingredients", "price_cents", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _get_owned(user_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, user_id=user_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _require_category(user_id: int, category_id: int) -> None:
    owned = (
        db.session.query(ProductCategory.id)
        .filter_by(id=category_id, user_id=user_id)
        .first()
    )
    if not owned:
        raise ValidationError("Invalid category_id for current user")


def _ensure_name_free(user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter_by(user_id=user_id, name=name)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("Product already exists")


def list_products(
    *,
    user_id: int,
    keyword: str | None = None,
    category_id: int | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    """
    Owner-scoped product listing with optional pagination.

    keyword matches product or category name (case-insensitive).
    """
    query = (
        db.session.query(Product)
        .join(ProductCategory, ProductCategory.id == Product.category_id)
        .filter(Product.user_id == user_id)
    )
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), ProductCategory.name.ilike(pattern)))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    query = query.order_by(Product.id.asc())

    rows, meta = paginate_query(query, page=page, limit=limit)
    return {"data": [p.to_dict() for p in rows], "pagination": meta}


def get_product(*, user_id: int, product_id: int) -> dict:
    return _get_owned(user_id, product_id).to_dict()


def create_product(*, user_id: int, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ValidationError: category does not belong to the caller
        ConflictError: a product with the same name already exists
    """
    _require_category(user_id, patch["category_id"])
    _ensure_name_free(user_id, patch["name"])

    p = Product(user_id=user_id)
    apply_product_patch(p, patch)

    db.session.add(p)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product already exists")
    return p.to_dict()


def update_product(*, user_id: int, product_id: int, patch: dict) -> dict:
    """
    Update a product.

    Existing schedule items keep their name/price snapshot; only schedules
    written after this call see the new values.
    """
    p = _get_owned(user_id, product_id)
    if "category_id" in patch:
        _require_category(user_id, patch["category_id"])
    if "name" in patch:
        _ensure_name_free(user_id, patch["name"], exclude_id=p.id)

    apply_product_patch(p, patch)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Product already exists")
    return p.to_dict()


def delete_product(*, user_id: int, product_id: int) -> None:
    """Delete a product that no schedule or order line references."""
    p = _get_owned(user_id, product_id)

    referenced = (
        db.session.query(ScheduleItem.id).filter_by(product_id=p.id).first()
        or db.session.query(OrderItem.id).filter_by(product_id=p.id).first()
    )
    if referenced:
        raise ConflictError("Product is used by schedules or orders; deactivate it instead")

    db.session.delete(p)
    db.session.commit()

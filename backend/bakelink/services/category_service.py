# Overview: Service-layer operations for product categories; owner-scoped CRUD.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ProductCategory, Product
from ..validation import ConflictError, NotFoundError
from ..pagination import paginate_query


def _get_owned(user_id: int, category_id: int) -> ProductCategory:
    category = (
        db.session.query(ProductCategory)
        .filter_by(id=category_id, user_id=user_id)
        .first()
    )
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_name_free(user_id: int, name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(ProductCategory).filter_by(user_id=user_id, name=name)
    if exclude_id is not None:
        query = query.filter(ProductCategory.id != exclude_id)
    if query.first():
        raise ConflictError("Category name already exists")


def list_categories(
    *,
    user_id: int,
    keyword: str | None = None,
    page: int | None = None,
    limit: int | None = None,
) -> dict:
    query = db.session.query(ProductCategory).filter(ProductCategory.user_id == user_id)
    if keyword:
        query = query.filter(ProductCategory.name.ilike(f"%{keyword}%"))
    query = query.order_by(ProductCategory.name.asc(), ProductCategory.id.asc())

    rows, meta = paginate_query(query, page=page, limit=limit)
    return {"data": [c.to_dict() for c in rows], "pagination": meta}


def get_category(*, user_id: int, category_id: int) -> dict:
    return _get_owned(user_id, category_id).to_dict()


def create_category(*, user_id: int, patch: dict) -> dict:
    _ensure_name_free(user_id, patch["name"])

    category = ProductCategory(user_id=user_id, name=patch["name"])
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Category name already exists")
    return category.to_dict()


def update_category(*, user_id: int, category_id: int, patch: dict) -> dict:
    category = _get_owned(user_id, category_id)
    if "name" in patch:
        _ensure_name_free(user_id, patch["name"], exclude_id=category.id)
        category.name = patch["name"]
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Category name already exists")
    return category.to_dict()


def delete_category(*, user_id: int, category_id: int) -> None:
    category = _get_owned(user_id, category_id)
    in_use = db.session.query(Product.id).filter_by(category_id=category.id).first()
    if in_use:
        raise ConflictError("Category still has products and cannot be deleted")

    db.session.delete(category)
    db.session.commit()

"""
page/limit pagination shared by the list endpoints.

Pagination is opt-in: when neither page nor limit is supplied the whole
result set is returned and the meta reports a single page.
"""
from __future__ import annotations

from typing import Any

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def resolve_pagination(source: dict | None) -> tuple[int | None, int | None]:
    """Pull (page, limit) out of a query-string or JSON body; (None, None) if absent."""
    source = source or {}
    if source.get("page") is None and source.get("limit") is None:
        return None, None
    page = max(_to_int(source.get("page")) or 1, 1)
    limit = min(max(_to_int(source.get("limit")) or DEFAULT_LIMIT, 1), MAX_LIMIT)
    return page, limit


def build_meta(*, page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if total > 0 else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
    }


def paginate_query(query, *, page: int | None, limit: int | None) -> tuple[list, dict]:
    """
    Apply optional pagination to a SQLAlchemy query.

    Returns (rows, meta).
    """
    if page is None and limit is None:
        rows = query.all()
        total = len(rows)
        return rows, build_meta(page=1, limit=total or 1, total=total)

    page = page or 1
    limit = limit or DEFAULT_LIMIT
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, build_meta(page=page, limit=limit, total=total)

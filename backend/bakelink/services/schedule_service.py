# Overview: Service-layer operations for schedules; encapsulates business logic and database work.

"""
Schedule Service - one sales day per owner

A schedule is the sales plan for a calendar date: an order-acceptance
window, a status, and a set of product items each with an optional sales
limit. Item sets are always written whole: supplying "items" replaces every
existing item inside the same transaction.

Items snapshot the product's name and price when written, so later catalog
edits never change what a schedule (or an order placed on it) charged.
"""
from __future__ import annotations

from datetime import tzinfo

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Schedule, ScheduleItem, Product, Order, OrderItem
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    normalize_status,
    SCHEDULE_STATUSES,
)
from ..pagination import paginate_query
from bakelink.time_utils import as_utc_naive, parse_calendar_date, month_bounds
from .concurrency import lock_for_update, begin_write, run_with_retry
from .status_policy import check_schedule_transition

SCHEDULE_SCALAR_FIELDS = ("schedule_date", "status", "order_start_at", "order_end_at", "note")

DUPLICATE_DATE_MESSAGE = "A schedule already exists on this date"


def _replace_items(user_id: int, schedule: Schedule, items: list[dict]) -> None:
    """
    Delete every item of the schedule and insert the given set.

    Order lines that pointed at a replaced item are re-pointed at the new
    item for the same product, so sales already made keep counting against
    the new limit. Lines whose product was dropped keep their snapshot and
    lose the item reference.
    """
    relinks: dict[int, list[int]] = {}
    old_items = list(schedule.items)
    if old_items:
        old_ids = [item.id for item in old_items]
        product_by_item = {item.id: item.product_id for item in old_items}
        for line_id, item_id in (
            db.session.query(OrderItem.id, OrderItem.schedule_item_id)
            .filter(OrderItem.schedule_item_id.in_(old_ids))
            .all()
        ):
            relinks.setdefault(product_by_item[item_id], []).append(line_id)

        db.session.query(OrderItem).filter(OrderItem.schedule_item_id.in_(old_ids)).update(
            {OrderItem.schedule_item_id: None}, synchronize_session=False
        )
        for item in old_items:
            schedule.items.remove(item)
        # Deletes must hit the table before re-inserting the same products
        db.session.flush()

    if not items:
        return

    product_ids = [item["product_id"] for item in items]
    products = (
        db.session.query(Product)
        .filter(
            Product.user_id == user_id,
            Product.id.in_(product_ids),
            Product.is_active.is_(True),
        )
        .all()
    )
    product_map = {p.id: p for p in products}
    missing = [pid for pid in product_ids if pid not in product_map]
    if missing:
        raise ValidationError("Some products are invalid or inactive")

    new_items = []
    for item in items:
        product = product_map[item["product_id"]]
        schedule_item = ScheduleItem(
            user_id=user_id,
            product_id=product.id,
            product_name=product.name,
            unit_price_cents=product.price_cents,
            sales_limit=item["sales_limit"],
        )
        schedule.items.append(schedule_item)
        new_items.append(schedule_item)
    db.session.flush()

    for schedule_item in new_items:
        line_ids = relinks.get(schedule_item.product_id)
        if line_ids:
            db.session.query(OrderItem).filter(OrderItem.id.in_(line_ids)).update(
                {OrderItem.schedule_item_id: schedule_item.id}, synchronize_session=False
            )


def _ensure_date_free(user_id: int, schedule_date, exclude_id: int | None = None) -> None:
    query = db.session.query(Schedule.id).filter(
        Schedule.user_id == user_id,
        Schedule.schedule_date == schedule_date,
    )
    if exclude_id is not None:
        query = query.filter(Schedule.id != exclude_id)
    if query.first():
        raise ConflictError(DUPLICATE_DATE_MESSAGE)


def create_schedule(*, user_id: int, data: dict) -> Schedule:
    """
    Create a schedule and its items in one transaction.

    `data` is the output of validation.normalize_schedule_payload().

    Raises:
        ConflictError: the owner already has a schedule on that date
        ValidationError: an item names a missing, foreign or inactive product
    """
    def _op():
        _ensure_date_free(user_id, data["schedule_date"])

        schedule = Schedule(
            user_id=user_id,
            schedule_date=data["schedule_date"],
            status=data["status"],
            order_start_at=data["order_start_at"],
            order_end_at=data["order_end_at"],
            note=data["note"],
        )
        db.session.add(schedule)
        db.session.flush()

        _replace_items(user_id, schedule, data["items"])

        db.session.commit()
        return schedule

    try:
        schedule = run_with_retry(_op)
    except IntegrityError:
        # Lost a race on uq_schedules_user_date
        raise ConflictError(DUPLICATE_DATE_MESSAGE)

    current_app.logger.info(
        "Schedule %s created for user %s on %s with %d item(s)",
        schedule.id, user_id, schedule.schedule_date, len(data["items"]),
    )
    return schedule


def update_schedule(*, user_id: int, schedule_id: int, data: dict) -> Schedule:
    """
    Partially update a schedule.

    Only keys present in `data` change. The order window is re-checked
    against the merged (new or stored) start and end. "items" present
    replaces the full item set.
    """
    def _op():
        begin_write()
        schedule = lock_for_update(
            db.session.query(Schedule).filter_by(id=schedule_id, user_id=user_id)
        ).first()
        if not schedule:
            raise NotFoundError("Schedule not found")

        if "schedule_date" in data and data["schedule_date"] != schedule.schedule_date:
            _ensure_date_free(user_id, data["schedule_date"], exclude_id=schedule.id)

        start_at = as_utc_naive(data.get("order_start_at", schedule.order_start_at))
        end_at = as_utc_naive(data.get("order_end_at", schedule.order_end_at))
        if start_at >= end_at:
            raise ValidationError("order_start_at must be earlier than order_end_at")

        if "status" in data:
            check_schedule_transition(schedule.status, data["status"])

        for field in SCHEDULE_SCALAR_FIELDS:
            if field in data:
                setattr(schedule, field, data[field])

        if "items" in data:
            _replace_items(user_id, schedule, data["items"])

        db.session.commit()
        return schedule

    try:
        schedule = run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(DUPLICATE_DATE_MESSAGE)

    if "items" in data:
        current_app.logger.info(
            "Schedule %s items replaced (%d item(s))", schedule.id, len(data["items"])
        )
    return schedule


def delete_schedule(*, user_id: int, schedule_id: int) -> None:
    """Delete a schedule and its items; refused once any order exists."""
    def _op():
        begin_write()
        schedule = lock_for_update(
            db.session.query(Schedule).filter_by(id=schedule_id, user_id=user_id)
        ).first()
        if not schedule:
            raise NotFoundError("Schedule not found")

        has_orders = db.session.query(Order.id).filter_by(schedule_id=schedule.id).first()
        if has_orders:
            raise ConflictError("Schedule already has orders and cannot be deleted")

        db.session.delete(schedule)
        db.session.commit()

    try:
        run_with_retry(_op)
    except IntegrityError:
        raise ConflictError("Schedule already has orders and cannot be deleted")


def _count_columns():
    item_count = (
        select(func.count(ScheduleItem.id))
        .where(ScheduleItem.schedule_id == Schedule.id)
        .correlate(Schedule)
        .scalar_subquery()
    )
    order_count = (
        select(func.count(Order.id))
        .where(Order.schedule_id == Schedule.id)
        .correlate(Schedule)
        .scalar_subquery()
    )
    return item_count.label("item_count"), order_count.label("order_count")


def _summary_query(user_id: int):
    item_count, order_count = _count_columns()
    return db.session.query(Schedule, item_count, order_count).filter(Schedule.user_id == user_id)


def _summary_row(row, tz: tzinfo | None) -> dict:
    schedule, item_count, order_count = row
    data = schedule.to_dict(tz)
    data["item_count"] = item_count or 0
    data["order_count"] = order_count or 0
    return data


def _status_filter(raw) -> str | None:
    if not raw:
        return None
    status = normalize_status(raw, SCHEDULE_STATUSES)
    if status is None:
        raise ValidationError(f"status must be one of {', '.join(SCHEDULE_STATUSES)}")
    return status


def _date_filter(field: str, raw):
    if not raw:
        return None
    value = parse_calendar_date(raw)
    if value is None:
        raise ValidationError(f"{field} must be YYYY-MM-DD")
    return value


def list_schedules(
    *,
    user_id: int,
    filters: dict,
    page: int | None = None,
    limit: int | None = None,
    tz: tzinfo | None = None,
) -> dict:
    """
    Filtered schedule listing with per-schedule item/order counts.

    Filters: date (exact, wins over the range filters), month (YYYY-MM),
    date_from / date_to (inclusive), status.
    """
    query = _summary_query(user_id)

    exact = _date_filter("date", filters.get("date"))
    if exact is not None:
        query = query.filter(Schedule.schedule_date == exact)
    else:
        if filters.get("month"):
            bounds = month_bounds(filters["month"])
            if bounds is None:
                raise ValidationError("month must be YYYY-MM")
            query = query.filter(Schedule.schedule_date >= bounds[0], Schedule.schedule_date < bounds[1])
        date_from = _date_filter("date_from", filters.get("date_from"))
        if date_from is not None:
            query = query.filter(Schedule.schedule_date >= date_from)
        date_to = _date_filter("date_to", filters.get("date_to"))
        if date_to is not None:
            query = query.filter(Schedule.schedule_date <= date_to)

    status = _status_filter(filters.get("status"))
    if status:
        query = query.filter(Schedule.status == status)

    query = query.order_by(Schedule.schedule_date.asc())
    rows, meta = paginate_query(query, page=page, limit=limit)
    return {"data": [_summary_row(row, tz) for row in rows], "pagination": meta}


def list_schedules_by_month(
    *,
    user_id: int,
    month: str,
    status: str | None = None,
    tz: tzinfo | None = None,
) -> list[dict]:
    bounds = month_bounds(month)
    if bounds is None:
        raise ValidationError("month must be YYYY-MM")

    query = _summary_query(user_id).filter(
        Schedule.schedule_date >= bounds[0],
        Schedule.schedule_date < bounds[1],
    )
    status = _status_filter(status)
    if status:
        query = query.filter(Schedule.status == status)

    rows = query.order_by(Schedule.schedule_date.asc()).all()
    return [_summary_row(row, tz) for row in rows]


def get_schedule_by_date(*, user_id: int, date_text: str) -> Schedule | None:
    """Return the caller's schedule on a date, or None. Bad format raises."""
    schedule_date = parse_calendar_date(date_text)
    if schedule_date is None:
        raise ValidationError("date must be YYYY-MM-DD format")

    return (
        db.session.query(Schedule)
        .filter_by(user_id=user_id, schedule_date=schedule_date)
        .first()
    )

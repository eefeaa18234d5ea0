# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Placement Service

Orders are placed against an OPEN schedule. Each line claims quantity from a
schedule item; items with a sales_limit may never have more than that many
units claimed by PLACED or COMPLETED orders. Cancelled orders stop counting
the moment they are cancelled, and deleted orders simply disappear from the
sum: capacity is always recomputed live, never stored.

Placement is one transaction. The schedule row and each touched schedule
item are locked before the capacity sum is read, so two placements racing
for the last units serialize: the second one re-reads the sum after the
first commits or rolls back. Any failure rolls back the order and every line
already written for it.
"""
from __future__ import annotations

from datetime import tzinfo

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderItem, Schedule, ScheduleItem
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    MAX_DB_INTEGER,
    coerce_int,
    normalize_status,
    ORDER_STATUSES,
    require_order_status,
)
from ..pagination import paginate_query
from bakelink.time_utils import parse_calendar_date
from .concurrency import lock_for_update, begin_write, run_with_retry
from .status_policy import check_order_transition

# Statuses whose lines count against a sales limit
CAPACITY_STATUSES = ("PLACED", "COMPLETED")


def committed_quantity(schedule_item_id: int) -> int:
    """Units of a schedule item already claimed by non-cancelled orders."""
    total = (
        db.session.query(func.coalesce(func.sum(OrderItem.quantity), 0))
        .join(Order, Order.id == OrderItem.order_id)
        .filter(
            OrderItem.schedule_item_id == schedule_item_id,
            Order.status.in_(CAPACITY_STATUSES),
        )
        .scalar()
    )
    return int(total or 0)


def _lock_schedule_item(schedule_id: int, line: dict) -> ScheduleItem | None:
    query = db.session.query(ScheduleItem).filter(ScheduleItem.schedule_id == schedule_id)
    if line["schedule_item_id"] is not None:
        query = query.filter(ScheduleItem.id == line["schedule_item_id"])
    else:
        query = query.filter(ScheduleItem.product_id == line["product_id"])
    return lock_for_update(query).first()


def _place_order_locked(user_id: int, data: dict) -> Order:
    schedule = lock_for_update(
        db.session.query(Schedule).filter_by(id=data["schedule_id"], user_id=user_id)
    ).first()
    if not schedule:
        raise NotFoundError("Schedule not found")
    if schedule.status != "OPEN":
        raise ConflictError(
            "Orders can only be created when schedule status is OPEN",
            details={"schedule_id": schedule.id, "status": schedule.status},
        )

    order = Order(
        user_id=user_id,
        schedule_id=schedule.id,
        status="PLACED",
        customer_name=data["customer_name"],
        customer_phone=data["customer_phone"],
        pickup_time=data["pickup_time"],
        note=data["note"],
        payment_method=data["payment_method"],
        total_amount_cents=0,
    )
    db.session.add(order)
    db.session.flush()  # order.id for the lines

    total_cents = 0
    for line in data["items"]:
        schedule_item = _lock_schedule_item(schedule.id, line)
        if not schedule_item:
            raise ValidationError("Some order items are not in schedule")

        quantity = line["quantity"]
        if schedule_item.sales_limit is not None:
            # Autoflush makes lines written earlier in this order count too
            sold = committed_quantity(schedule_item.id)
            if sold + quantity > schedule_item.sales_limit:
                raise ConflictError(
                    "Sales limit exceeded for one or more items",
                    details={
                        "schedule_item_id": schedule_item.id,
                        "product_id": schedule_item.product_id,
                        "sales_limit": schedule_item.sales_limit,
                        "already_committed": sold,
                        "requested": quantity,
                        "remaining": max(schedule_item.sales_limit - sold, 0),
                    },
                )

        line_total = schedule_item.unit_price_cents * quantity
        total_cents += line_total
        if total_cents > MAX_DB_INTEGER:
            raise ValidationError("Order total is too large")

        db.session.add(OrderItem(
            order_id=order.id,
            schedule_item_id=schedule_item.id,
            product_id=schedule_item.product_id,
            product_name=schedule_item.product_name,
            unit_price_cents=schedule_item.unit_price_cents,
            quantity=quantity,
            line_total_cents=line_total,
        ))

    order.total_amount_cents = total_cents
    return order


def place_order(*, user_id: int, data: dict) -> Order:
    """
    Place an order against one of the caller's schedules.

    `data` is the output of validation.normalize_order_payload().

    Raises:
        NotFoundError: no such schedule for this owner
        ConflictError: schedule not OPEN, or a sales limit would be exceeded
        ValidationError: a line names no item of this schedule
    """
    def _op():
        begin_write()
        order = _place_order_locked(user_id, data)
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except ConflictError as exc:
        if exc.details.get("schedule_item_id"):
            current_app.logger.warning(
                "Order rejected on schedule %s: %s %s", data["schedule_id"], exc, exc.details
            )
        raise

    current_app.logger.info(
        "Order %s placed on schedule %s: %d line(s), total %d cents",
        order.id, order.schedule_id, len(data["items"]), order.total_amount_cents,
    )
    return order


def _get_owned(user_id: int, order_id: int) -> Order:
    order = db.session.query(Order).filter_by(id=order_id, user_id=user_id).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def get_order(*, user_id: int, order_id: int) -> Order:
    return _get_owned(user_id, order_id)


def update_order_status(*, user_id: int, order_id: int, status) -> Order:
    """
    Set an order's status.

    Any of PLACED / COMPLETED / CANCELLED may follow any other unless the
    status transition policy is switched on.
    """
    new_status = require_order_status(status)

    def _op():
        order = lock_for_update(
            db.session.query(Order).filter_by(id=order_id, user_id=user_id)
        ).first()
        if not order:
            raise NotFoundError("Order not found")

        check_order_transition(order.status, new_status)
        order.status = new_status
        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_order(*, user_id: int, order_id: int) -> None:
    """Hard delete; the order's quantities stop counting immediately."""
    def _op():
        order = _get_owned(user_id, order_id)
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)


def list_orders(
    *,
    user_id: int,
    filters: dict,
    page: int | None = None,
    limit: int | None = None,
    tz: tzinfo | None = None,
) -> dict:
    """
    Owner-scoped order listing, newest first.

    Filters: schedule_id, status, date_from / date_to on the schedule date.
    """
    query = (
        db.session.query(Order)
        .join(Schedule, Schedule.id == Order.schedule_id)
        .filter(Order.user_id == user_id)
    )

    if filters.get("schedule_id") not in (None, ""):
        schedule_id = coerce_int("schedule_id", str(filters["schedule_id"]))
        query = query.filter(Order.schedule_id == schedule_id)

    if filters.get("status"):
        status = normalize_status(filters["status"], ORDER_STATUSES)
        if status is None:
            raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        query = query.filter(Order.status == status)

    for field, op in (("date_from", "ge"), ("date_to", "le")):
        if filters.get(field):
            value = parse_calendar_date(filters[field])
            if value is None:
                raise ValidationError(f"{field} must be YYYY-MM-DD")
            if op == "ge":
                query = query.filter(Schedule.schedule_date >= value)
            else:
                query = query.filter(Schedule.schedule_date <= value)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    rows, meta = paginate_query(query, page=page, limit=limit)
    return {"data": [o.to_dict(tz) for o in rows], "pagination": meta}

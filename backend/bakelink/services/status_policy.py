# Overview: Optional status-transition policy for schedules and orders.

"""
Status transition policy.

Schedule and order statuses are plain enumerations: by default any value may
be set at any time. Setting ENFORCE_STATUS_TRANSITIONS turns on the rules
below; the services call these checks on every status change and the checks
are no-ops while the setting is off.

Schedules move forward only (skipping is allowed):
    DRAFT -> ANNOUNCED -> OPEN -> CLOSED -> FULFILLED
Orders may only leave PLACED:
    PLACED -> COMPLETED | CANCELLED
"""
from __future__ import annotations

from flask import current_app, has_app_context

from ..validation import ConflictError, SCHEDULE_STATUSES

ORDER_TRANSITIONS = {
    "PLACED": {"PLACED", "COMPLETED", "CANCELLED"},
    "COMPLETED": {"COMPLETED"},
    "CANCELLED": {"CANCELLED"},
}


def is_enforced() -> bool:
    if not has_app_context():
        return False
    return bool(current_app.config.get("ENFORCE_STATUS_TRANSITIONS", False))


def schedule_transition_allowed(current: str, new: str) -> bool:
    if current == new:
        return True
    try:
        return SCHEDULE_STATUSES.index(new) > SCHEDULE_STATUSES.index(current)
    except ValueError:
        return False


def order_transition_allowed(current: str, new: str) -> bool:
    return new in ORDER_TRANSITIONS.get(current, set())


def check_schedule_transition(current: str, new: str) -> None:
    if is_enforced() and not schedule_transition_allowed(current, new):
        raise ConflictError(
            f"Schedule status cannot change from {current} to {new}",
            details={"from": current, "to": new},
        )


def check_order_transition(current: str, new: str) -> None:
    if is_enforced() and not order_transition_allowed(current, new):
        raise ConflictError(
            f"Order status cannot change from {current} to {new}",
            details={"from": current, "to": new},
        )

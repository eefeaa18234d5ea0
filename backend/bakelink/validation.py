from __future__ import annotations
from datetime import datetime
from bakelink.time_utils import parse_iso_datetime, parse_calendar_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from .models import Order


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Largest value an INTEGER column can hold (SQLite and BIGINT are 64-bit signed)
MAX_DB_INTEGER = 2**63 - 1

# Per-line order quantity and per-item sales limit
MAX_QUANTITY = 10_000
MAX_SALES_LIMIT = 1_000_000

SCHEDULE_STATUSES = ("DRAFT", "ANNOUNCED", "OPEN", "CLOSED", "FULFILLED")
ORDER_STATUSES = ("PLACED", "COMPLETED", "CANCELLED")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate schedule date)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(LookupError):
    """404-level: no row owned by the caller matches."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(field: str, value: Any) -> int:
    """Strict integer coercion: rejects bools, floats and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return _in_db_range(field, value)
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            number = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
        return _in_db_range(field, number)
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _in_db_range(field: str, number: int) -> int:
    if abs(number) > MAX_DB_INTEGER:
        raise ValidationError(f"{field} is out of range")
    return number


def coerce_positive_int(field: str, value: Any, maximum: int = MAX_DB_INTEGER) -> int:
    number = coerce_int(field, value)
    if number <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    if number > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}")
    return number


def coerce_datetime(field: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return parse_iso_datetime(value.isoformat())
    if isinstance(value, str):
        try:
            dt = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} is invalid datetime")
        if dt is None:
            raise ValidationError(f"{field} is required")
        return dt
    raise ValidationError(f"{field} is invalid datetime")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    # Booleans are strict: the catalog must not flip is_active on "false"
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        return coerce_datetime(col.key, value)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a catalog body against the model's columns and a field allowlist.

    Nullability, column type and String length come from the SQLAlchemy
    mapper; the policy decides which keys a client may send at all and
    which are mandatory on create (partial=False). The returned patch holds
    only coerced, writable values.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")


def normalize_status(value: Any, allowed: tuple[str, ...]) -> str | None:
    status = str(value or "").strip().upper()
    if status not in allowed:
        return None
    return status


def require_schedule_status(value: Any) -> str:
    status = normalize_status(value, SCHEDULE_STATUSES)
    if status is None:
        raise ValidationError(f"status must be one of {', '.join(SCHEDULE_STATUSES)}")
    return status


def require_order_status(value: Any) -> str:
    status = normalize_status(value, ORDER_STATUSES)
    if status is None:
        raise ValidationError(f"status must be one of {', '.join(ORDER_STATUSES)}")
    return status


def _optional_note(value: Any) -> str | None:
    if value is None:
        return None
    return str(value).strip() or None


def _require_text(payload: dict, field: str, max_length: int | None = None) -> str:
    text = str(payload.get(field) or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    if max_length and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def _normalize_schedule_item(item: Any) -> dict:
    if not isinstance(item, dict):
        raise ValidationError("each item must be an object")

    if item.get("product_id") in (None, ""):
        raise ValidationError("item.product_id is required")
    product_id = coerce_positive_int("item.product_id", item["product_id"])

    sales_limit = None
    if item.get("sales_limit") is not None:
        sales_limit = coerce_positive_int("item.sales_limit", item["sales_limit"], MAX_SALES_LIMIT)

    return {"product_id": product_id, "sales_limit": sales_limit}


def normalize_schedule_payload(payload: Any, *, partial: bool = False) -> dict:
    """
    Validate a schedule create/update body.

    partial=False fills defaults (status DRAFT, note None, items []).
    partial=True returns only the keys present in the body; "note": null and
    "items": [] are kept because they are explicit clears.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    result: dict = {}

    if not partial or payload.get("schedule_date") is not None:
        if not payload.get("schedule_date"):
            raise ValidationError("schedule_date is required")
        text = str(payload["schedule_date"]).strip()
        if not text or len(text) != 10:
            raise ValidationError("schedule_date must be YYYY-MM-DD")
        schedule_date = parse_calendar_date(text)
        if schedule_date is None:
            raise ValidationError("schedule_date must be a valid YYYY-MM-DD date")
        result["schedule_date"] = schedule_date

    for field in ("order_start_at", "order_end_at"):
        if not partial or payload.get(field) is not None:
            if not payload.get(field):
                raise ValidationError(f"{field} is required")
            result[field] = coerce_datetime(field, payload[field])

    if "order_start_at" in result and "order_end_at" in result:
        if result["order_start_at"] >= result["order_end_at"]:
            raise ValidationError("order_start_at must be earlier than order_end_at")

    if payload.get("status") is not None:
        result["status"] = require_schedule_status(payload["status"])
    elif not partial:
        result["status"] = "DRAFT"

    if "note" in payload:
        result["note"] = _optional_note(payload["note"])
    elif not partial:
        result["note"] = None

    if payload.get("items") is not None:
        if not isinstance(payload["items"], list):
            raise ValidationError("items must be an array")
        items = []
        seen: set[int] = set()
        for raw in payload["items"]:
            item = _normalize_schedule_item(raw)
            if item["product_id"] in seen:
                raise ValidationError("items cannot contain duplicated product_id")
            seen.add(item["product_id"])
            items.append(item)
        result["items"] = items
    elif not partial:
        result["items"] = []

    return result


def _normalize_order_item(item: Any) -> dict:
    if not isinstance(item, dict):
        raise ValidationError("each item must be an object")

    if item.get("quantity") is None:
        raise ValidationError("item.quantity must be a positive integer")
    quantity = coerce_positive_int("item.quantity", item["quantity"], MAX_QUANTITY)

    schedule_item_id = item.get("schedule_item_id")
    product_id = item.get("product_id")
    if schedule_item_id in (None, "") and product_id in (None, ""):
        raise ValidationError("item.schedule_item_id or item.product_id is required")

    return {
        "schedule_item_id": (
            coerce_positive_int("item.schedule_item_id", schedule_item_id)
            if schedule_item_id not in (None, "")
            else None
        ),
        "product_id": (
            coerce_positive_int("item.product_id", product_id)
            if product_id not in (None, "")
            else None
        ),
        "quantity": quantity,
    }


def normalize_order_payload(payload: Any) -> dict:
    """Validate an order placement body. Nothing from the caller sets totals."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if payload.get("schedule_id") in (None, ""):
        raise ValidationError("schedule_id is required")
    schedule_id = coerce_positive_int("schedule_id", payload["schedule_id"])

    order_columns = _columns_by_key(Order)
    customer_name, customer_phone, payment_method = (
        _require_text(payload, field, order_columns[field].type.length)
        for field in ("customer_name", "customer_phone", "payment_method")
    )

    if not payload.get("pickup_time"):
        raise ValidationError("pickup_time is required")
    pickup_time = coerce_datetime("pickup_time", payload["pickup_time"])

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items is required and must not be empty")

    return {
        "schedule_id": schedule_id,
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "payment_method": payment_method,
        "pickup_time": pickup_time,
        "note": _optional_note(payload.get("note")),
        "items": [_normalize_order_item(item) for item in raw_items],
    }

# Overview: Flask API routes for schedule operations; parses input and returns JSON responses.

# backend/bakelink/routes/schedules.py
"""
Schedule API routes.

Datetimes in responses are rendered in the zone named by the X-Timezone
header (UTC when absent or unknown); schedule_date is always the stored
calendar date.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import schedule_service
from ..pagination import resolve_pagination
from ..validation import (
    normalize_schedule_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth
from bakelink.time_utils import resolve_timezone, TIMEZONE_HEADER


schedules_bp = Blueprint("schedules", __name__, url_prefix="/schedules")

LIST_FILTERS = ("date", "date_from", "date_to", "month", "status")


def _request_tz():
    return resolve_timezone(request.headers.get(TIMEZONE_HEADER))


@schedules_bp.get("/month/<month>")
@require_auth
def list_by_month_route(month: str):
    """
    Schedules within a month (YYYY-MM) with item/order counts.

    Query params:
    - status (optional)
    """
    try:
        data = schedule_service.list_schedules_by_month(
            user_id=g.user_id,
            month=month,
            status=request.args.get("status"),
            tz=_request_tz(),
        )
        return jsonify({"data": data}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list schedules by month")
        return jsonify({"error": "Internal server error"}), 500


@schedules_bp.post("/list")
@require_auth
def list_schedules_route():
    """
    Filtered schedule listing.

    Body: date | month | date_from | date_to | status, plus page / limit.
    """
    source = request.get_json(silent=True) or {}
    if not isinstance(source, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        page, limit = resolve_pagination(source)
        result = schedule_service.list_schedules(
            user_id=g.user_id,
            filters={k: source.get(k) for k in LIST_FILTERS},
            page=page,
            limit=limit,
            tz=_request_tz(),
        )
        return jsonify(result), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list schedules")
        return jsonify({"error": "Internal server error"}), 500


@schedules_bp.get("/<date_text>")
@require_auth
def get_by_date_route(date_text: str):
    """Schedule and items for a date, or JSON null when there is none."""
    try:
        schedule = schedule_service.get_schedule_by_date(user_id=g.user_id, date_text=date_text)
        if schedule is None:
            return jsonify(None), 200
        return jsonify(schedule.to_dict(_request_tz(), include_items=True)), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to fetch schedule")
        return jsonify({"error": "Internal server error"}), 500


@schedules_bp.post("")
@require_auth
def create_schedule_route():
    """
    Create a schedule (one per date) with optional items.

    Body: schedule_date, order_start_at, order_end_at, status?, note?,
    items?: [{product_id, sales_limit?}]
    """
    try:
        data = normalize_schedule_payload(request.get_json(silent=True))
        schedule = schedule_service.create_schedule(user_id=g.user_id, data=data)
        return jsonify(schedule.to_dict(_request_tz(), include_items=True)), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to create schedule")
        return jsonify({"error": "Internal server error"}), 500


@schedules_bp.put("/<int:schedule_id>")
@require_auth
def update_schedule_route(schedule_id: int):
    """Partial update; "items" replaces the whole item set."""
    try:
        data = normalize_schedule_payload(request.get_json(silent=True), partial=True)
        schedule = schedule_service.update_schedule(
            user_id=g.user_id,
            schedule_id=schedule_id,
            data=data,
        )
        return jsonify(schedule.to_dict(_request_tz(), include_items=True)), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to update schedule")
        return jsonify({"error": "Internal server error"}), 500


@schedules_bp.delete("/<int:schedule_id>")
@require_auth
def delete_schedule_route(schedule_id: int):
    try:
        schedule_service.delete_schedule(user_id=g.user_id, schedule_id=schedule_id)
        return "", 204

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete schedule")
        return jsonify({"error": "Internal server error"}), 500

# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/bakelink/routes/orders.py
"""
Order API routes.

POST /orders is the only write path that claims schedule capacity; the
service enforces schedule status and sales limits inside one transaction.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service
from ..pagination import resolve_pagination
from ..validation import (
    normalize_order_payload,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth
from bakelink.time_utils import resolve_timezone, TIMEZONE_HEADER


orders_bp = Blueprint("orders", __name__, url_prefix="/orders")

LIST_FILTERS = ("schedule_id", "status", "date_from", "date_to")


def _request_tz():
    return resolve_timezone(request.headers.get(TIMEZONE_HEADER))


@orders_bp.post("/list")
@require_auth
def list_orders_route():
    """
    Filtered order listing, newest first.

    Body: schedule_id | status | date_from | date_to, plus page / limit.
    """
    source = request.get_json(silent=True) or {}
    if not isinstance(source, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        page, limit = resolve_pagination(source)
        result = order_service.list_orders(
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
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(user_id=g.user_id, order_id=order_id)
        return jsonify(order.to_dict(_request_tz(), include_items=True)), 200

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("")
@require_auth
def create_order_route():
    """
    Place an order.

    Body: schedule_id, customer_name, customer_phone, pickup_time,
    payment_method, note?, items: [{schedule_item_id | product_id, quantity}]
    """
    try:
        data = normalize_order_payload(request.get_json(silent=True))
        order = order_service.place_order(user_id=g.user_id, data=data)
        return jsonify(order.to_dict(_request_tz(), include_items=True)), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
@require_auth
def update_order_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    try:
        order = order_service.update_order_status(
            user_id=g.user_id,
            order_id=order_id,
            status=data.get("status"),
        )
        return jsonify(order.to_dict(_request_tz())), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(user_id=g.user_id, order_id=order_id)
        return "", 204

    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500

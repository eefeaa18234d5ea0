# Overview: Pytest coverage for order placement, capacity limits, status changes and reads.

"""
Order Tests

Covers:
- Placement only on OPEN schedules
- Server-side totals from the schedule item snapshot
- Sales limits counted over PLACED + COMPLETED orders only
- All-or-nothing placement (no partial rows on failure)
- Status changes and hard delete releasing capacity
"""

import pytest

from bakelink.models import Order, OrderItem
from bakelink.services import order_service
from bakelink.validation import MAX_QUANTITY
from conftest import order_payload, schedule_payload


def _line(item, quantity):
    return {"schedule_item_id": item["id"], "quantity": quantity}


class TestPlaceOrder:
    """POST /orders"""

    def test_place_order_computes_total(self, client, headers_a, open_schedule):
        baguette_item, croissant_item = open_schedule["items"]

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(baguette_item, 2), _line(croissant_item, 3)],
            note="  no paper bag  ",
        ))

        assert response.status_code == 201
        body = response.json
        assert body["status"] == "PLACED"
        assert body["schedule_date"] == "2026-02-17"
        assert body["note"] == "no paper bag"
        assert body["total_amount_cents"] == 2 * 350 + 3 * 220
        assert [(i["product_name"], i["quantity"], i["line_total_cents"]) for i in body["items"]] == [
            ("Baguette", 2, 700),
            ("Croissant", 3, 660),
        ]

    def test_client_total_is_ignored(self, client, headers_a, open_schedule):
        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][1], 1)],
            total_amount_cents=1,
        ))

        assert response.status_code == 201
        assert response.json["total_amount_cents"] == 220

    def test_price_comes_from_snapshot_not_catalog(self, client, headers_a, db_session, open_schedule, croissant):
        croissant.price_cents = 999
        db_session.commit()

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][1], 2)],
        ))

        assert response.json["total_amount_cents"] == 440

    def test_line_by_product_id(self, client, headers_a, open_schedule, baguette):
        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [{"product_id": baguette.id, "quantity": 1}],
        ))

        assert response.status_code == 201
        assert response.json["items"][0]["schedule_item_id"] == open_schedule["items"][0]["id"]

    @pytest.mark.parametrize("status", ["DRAFT", "ANNOUNCED", "CLOSED", "FULFILLED"])
    def test_schedule_must_be_open(self, client, headers_a, db_session, open_schedule, status):
        client.put(f"/schedules/{open_schedule['id']}", headers=headers_a, json={"status": status})

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][1], 1)],
        ))

        assert response.status_code == 409
        assert "OPEN" in response.json["error"]
        assert db_session.query(Order).count() == 0

    def test_unknown_schedule_is_404(self, client, headers_a):
        response = client.post('/orders', headers=headers_a, json=order_payload(
            4242, [{"schedule_item_id": 1, "quantity": 1}],
        ))

        assert response.status_code == 404

    def test_item_from_another_schedule_is_400(self, client, headers_a, db_session, open_schedule, baguette):
        other = client.post('/schedules', headers=headers_a, json=schedule_payload(
            schedule_date="2026-02-18", status="OPEN", items=[{"product_id": baguette.id}],
        )).json

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(other["items"][0], 1)],
        ))

        assert response.status_code == 400
        assert db_session.query(Order).count() == 0

    def test_invalid_payloads(self, client, headers_a, open_schedule):
        item = open_schedule["items"][1]
        cases = [
            order_payload(open_schedule["id"], []),
            order_payload(open_schedule["id"], [{"schedule_item_id": item["id"], "quantity": 0}]),
            order_payload(open_schedule["id"], [{"schedule_item_id": item["id"], "quantity": 1.5}]),
            order_payload(open_schedule["id"], [{"quantity": 1}]),
            order_payload(open_schedule["id"], [_line(item, 1)], customer_name="  "),
            order_payload(open_schedule["id"], [_line(item, 1)], customer_phone=None),
            order_payload(open_schedule["id"], [_line(item, 1)], pickup_time="soon"),
            order_payload(open_schedule["id"], [_line(item, 1)], payment_method=""),
        ]
        for payload in cases:
            response = client.post('/orders', headers=headers_a, json=payload)
            assert response.status_code == 400, payload

    @pytest.mark.parametrize("quantity", [MAX_QUANTITY + 1, 2**62, 10**20, str(10**20)])
    def test_oversized_quantity_is_400(self, client, headers_a, db_session, open_schedule, quantity):
        croissant_item = open_schedule["items"][1]

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(croissant_item, quantity)],
        ))

        assert response.status_code == 400
        assert "item.quantity" in response.json["error"]
        assert db_session.query(Order).count() == 0

    def test_max_quantity_is_accepted(self, client, headers_a, open_schedule):
        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][1], MAX_QUANTITY)],
        ))

        assert response.status_code == 201
        assert response.json["total_amount_cents"] == 220 * MAX_QUANTITY

    def test_oversized_ids_are_400(self, client, headers_a, open_schedule):
        item = open_schedule["items"][1]
        cases = [
            order_payload(10**20, [_line(item, 1)]),
            order_payload(open_schedule["id"], [{"schedule_item_id": 10**20, "quantity": 1}]),
            order_payload(open_schedule["id"], [{"product_id": 10**20, "quantity": 1}]),
        ]
        for payload in cases:
            response = client.post('/orders', headers=headers_a, json=payload)
            assert response.status_code == 400, payload

    def test_total_beyond_integer_range_is_400(self, client, headers_a, db_session, monkeypatch, open_schedule):
        monkeypatch.setattr(order_service, "MAX_DB_INTEGER", 1000)

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][1], 5)],
        ))

        assert response.status_code == 400
        assert response.json["error"] == "Order total is too large"
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

    @pytest.mark.parametrize("field,length", [
        ("customer_name", 128),
        ("customer_phone", 32),
        ("payment_method", 32),
    ])
    def test_text_fields_respect_column_length(self, client, headers_a, open_schedule, field, length):
        item = open_schedule["items"][1]

        too_long = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(item, 1)], **{field: "x" * (length + 1)},
        ))
        fits = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(item, 1)], **{field: "x" * length},
        ))

        assert too_long.status_code == 400
        assert too_long.json["error"] == f"{field} exceeds max length {length}"
        assert fits.status_code == 201


class TestSalesLimit:
    """Capacity is the sum over PLACED and COMPLETED orders."""

    def test_sales_day_walkthrough(self, client, headers_a, db_session, open_schedule):
        """Limit 5: A takes 3, B asking 3 is refused, A cancels, C gets 3."""
        baguette_item = open_schedule["items"][0]
        schedule_id = open_schedule["id"]

        order_a = client.post('/orders', headers=headers_a, json=order_payload(
            schedule_id, [_line(baguette_item, 3)], customer_name="A",
        ))
        assert order_a.status_code == 201

        order_b = client.post('/orders', headers=headers_a, json=order_payload(
            schedule_id, [_line(baguette_item, 3)], customer_name="B",
        ))
        assert order_b.status_code == 409
        assert order_b.json["details"]["already_committed"] == 3
        assert order_b.json["details"]["remaining"] == 2
        assert order_b.json["details"]["sales_limit"] == 5

        cancelled = client.put(f"/orders/{order_a.json['id']}/status", headers=headers_a, json={
            "status": "cancelled",
        })
        assert cancelled.status_code == 200
        assert cancelled.json["status"] == "CANCELLED"

        order_c = client.post('/orders', headers=headers_a, json=order_payload(
            schedule_id, [_line(baguette_item, 3)], customer_name="C",
        ))
        assert order_c.status_code == 201
        assert order_service.committed_quantity(baguette_item["id"]) == 3

    def test_exact_limit_is_allowed(self, client, headers_a, open_schedule):
        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][0], 5)],
        ))

        assert response.status_code == 201

    def test_completed_orders_still_count(self, client, headers_a, open_schedule):
        baguette_item = open_schedule["items"][0]
        first = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(baguette_item, 4)],
        )).json
        client.put(f"/orders/{first['id']}/status", headers=headers_a, json={"status": "COMPLETED"})

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(baguette_item, 2)],
        ))

        assert response.status_code == 409

    def test_deleting_order_releases_capacity(self, client, headers_a, open_schedule):
        baguette_item = open_schedule["items"][0]
        first = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(baguette_item, 5)],
        )).json

        assert client.delete(f"/orders/{first['id']}", headers=headers_a).status_code == 204

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(baguette_item, 5)],
        ))
        assert response.status_code == 201

    def test_unlimited_item_never_conflicts(self, client, headers_a, open_schedule):
        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][1], 500)],
        ))

        assert response.status_code == 201

    def test_lines_of_same_order_add_up(self, client, headers_a, open_schedule):
        baguette_item = open_schedule["items"][0]

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(baguette_item, 3), _line(baguette_item, 3)],
        ))

        assert response.status_code == 409

    def test_failed_placement_writes_nothing(self, client, headers_a, db_session, open_schedule):
        """A limit failure on the last line rolls back the order and earlier lines."""
        baguette_item, croissant_item = open_schedule["items"]

        response = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(croissant_item, 2), _line(baguette_item, 6)],
        ))

        assert response.status_code == 409
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0


class TestOrderStatusAndDelete:
    """PUT /orders/<id>/status, DELETE /orders/<id>"""

    @pytest.fixture
    def placed(self, client, headers_a, open_schedule):
        return client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][1], 1)],
        )).json

    def test_any_status_may_follow_any_other(self, client, headers_a, placed):
        for status in ("CANCELLED", "PLACED", "COMPLETED", "PLACED"):
            response = client.put(f"/orders/{placed['id']}/status", headers=headers_a, json={"status": status})
            assert response.status_code == 200
            assert response.json["status"] == status

    def test_bad_status_is_400(self, client, headers_a, placed):
        for body in ({"status": "SHIPPED"}, {}):
            response = client.put(f"/orders/{placed['id']}/status", headers=headers_a, json=body)
            assert response.status_code == 400

    def test_unknown_order_is_404(self, client, headers_a):
        response = client.put('/orders/999/status', headers=headers_a, json={"status": "COMPLETED"})

        assert response.status_code == 404

    def test_delete_removes_lines(self, client, headers_a, db_session, placed):
        assert client.delete(f"/orders/{placed['id']}", headers=headers_a).status_code == 204

        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert client.delete(f"/orders/{placed['id']}", headers=headers_a).status_code == 404


class TestOrderReads:
    """GET /orders/<id>, POST /orders/list"""

    def test_get_includes_lines(self, client, headers_a, open_schedule):
        created = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][0], 1)],
        )).json

        response = client.get(f"/orders/{created['id']}", headers=headers_a)

        assert response.status_code == 200
        assert response.json["items"][0]["product_name"] == "Baguette"

    def test_pickup_time_rendered_in_caller_zone(self, client, headers_a, open_schedule):
        created = client.post('/orders', headers=headers_a, json=order_payload(
            open_schedule["id"], [_line(open_schedule["items"][0], 1)],
        )).json

        response = client.get(f"/orders/{created['id']}", headers=dict(headers_a, **{"X-Timezone": "Asia/Taipei"}))

        assert response.json["pickup_time"] == "2026-02-17T17:30:00+08:00"

    def test_list_filters(self, client, headers_a, open_schedule):
        item = open_schedule["items"][1]
        first = client.post('/orders', headers=headers_a, json=order_payload(open_schedule["id"], [_line(item, 1)])).json
        second = client.post('/orders', headers=headers_a, json=order_payload(open_schedule["id"], [_line(item, 2)])).json
        client.put(f"/orders/{first['id']}/status", headers=headers_a, json={"status": "CANCELLED"})

        everything = client.post('/orders/list', headers=headers_a, json={})
        assert everything.status_code == 200
        assert [o["id"] for o in everything.json["data"]] == [second["id"], first["id"]]

        cancelled = client.post('/orders/list', headers=headers_a, json={"status": "CANCELLED"})
        assert [o["id"] for o in cancelled.json["data"]] == [first["id"]]

        by_schedule = client.post('/orders/list', headers=headers_a, json={
            "schedule_id": open_schedule["id"], "date_from": "2026-02-17", "date_to": "2026-02-17",
        })
        assert len(by_schedule.json["data"]) == 2

        other_day = client.post('/orders/list', headers=headers_a, json={"date_from": "2026-02-18"})
        assert other_day.json["data"] == []

        paged = client.post('/orders/list', headers=headers_a, json={"page": 1, "limit": 1})
        assert len(paged.json["data"]) == 1
        assert paged.json["pagination"]["total"] == 2

    def test_list_rejects_bad_filters(self, client, headers_a):
        for body in ({"status": "LOST"}, {"date_from": "17-02-2026"}, {"schedule_id": "abc"}):
            assert client.post('/orders/list', headers=headers_a, json=body).status_code == 400

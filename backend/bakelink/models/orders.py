from __future__ import annotations

from datetime import tzinfo

from ..extensions import db
from bakelink.time_utils import to_utc_z, to_local_iso, format_date


class Order(db.Model):
    """
    Customer pre-order against an OPEN schedule.

    The owner is the schedule's owner; the customer is free text.
    total_amount_cents is always computed server-side from the lines.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_status_created", "user_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # No ondelete: a schedule with orders must not be deletable
    schedule_id = db.Column(db.Integer, db.ForeignKey("schedules.id"), nullable=False, index=True)

    # PLACED, COMPLETED, CANCELLED
    status = db.Column(db.String(16), nullable=False, default="PLACED", index=True)

    customer_name = db.Column(db.String(128), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    pickup_time = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.Text, nullable=True)
    payment_method = db.Column(db.String(32), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    schedule = db.relationship("Schedule", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, tz: tzinfo | None = None, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "schedule_id": self.schedule_id,
            "schedule_date": format_date(self.schedule.schedule_date) if self.schedule else None,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "pickup_time": to_local_iso(self.pickup_time, tz),
            "note": self.note,
            "payment_method": self.payment_method,
            "total_amount_cents": self.total_amount_cents,
            "created_at": to_local_iso(self.created_at, tz),
            "updated_at": to_local_iso(self.updated_at, tz),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    One immutable order line.

    product_name / unit_price_cents are copied from the ScheduleItem at
    placement time. schedule_item_id is cleared if the schedule's item set is
    later replaced.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    schedule_item_id = db.Column(
        db.Integer, db.ForeignKey("schedule_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "schedule_item_id": self.schedule_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from datetime import tzinfo

from ..extensions import db
from bakelink.time_utils import to_utc_z, to_local_iso, format_date


class Schedule(db.Model):
    """
    One sales day for an owner.

    Status walks DRAFT -> ANNOUNCED -> OPEN -> CLOSED -> FULFILLED by
    convention only; OPEN is the one status that gates order placement.
    """
    __tablename__ = "schedules"
    __table_args__ = (
        db.UniqueConstraint("user_id", "schedule_date", name="uq_schedules_user_date"),
        db.CheckConstraint("order_start_at < order_end_at", name="ck_schedules_order_window"),
        db.Index("ix_schedules_user_status_date", "user_id", "status", "schedule_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    schedule_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="DRAFT", index=True)

    # Order-acceptance window (UTC-naive)
    order_start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    order_end_at = db.Column(db.DateTime(timezone=True), nullable=False)

    note = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "ScheduleItem",
        backref="schedule",
        lazy=True,
        order_by="ScheduleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, tz: tzinfo | None = None, *, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "schedule_date": format_date(self.schedule_date),
            "status": self.status,
            "order_start_at": to_local_iso(self.order_start_at, tz),
            "order_end_at": to_local_iso(self.order_end_at, tz),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ScheduleItem(db.Model):
    """
    A product offered on a schedule.

    product_name / unit_price_cents are a snapshot taken when the item set is
    written. sales_limit NULL means unlimited.
    """
    __tablename__ = "schedule_items"
    __table_args__ = (
        db.UniqueConstraint("schedule_id", "product_id", name="uq_schedule_items_schedule_product"),
        db.CheckConstraint("sales_limit IS NULL OR sales_limit > 0", name="ck_schedule_items_sales_limit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    schedule_id = db.Column(
        db.Integer, db.ForeignKey("schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    sales_limit = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "schedule_id": self.schedule_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit_price_cents": self.unit_price_cents,
            "sales_limit": self.sales_limit,
        }

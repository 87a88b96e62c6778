from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ORDER_STATUS_NEW = "NEW"
ORDER_STATUS_CONFIRMED = "CONFIRMED"
ORDER_STATUS_DISPATCHED = "DISPATCHED"
ORDER_STATUS_DELIVERED = "DELIVERED"
ORDER_STATUS_CANCELLED = "CANCELLED"
ORDER_STATUS_POSTPONED = "POSTPONED"

ORDER_STATUSES = {
    ORDER_STATUS_NEW,
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_DISPATCHED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_POSTPONED,
}

# Orders an agent is still carrying out
ACTIVE_ORDER_STATUSES = (ORDER_STATUS_CONFIRMED, ORDER_STATUS_DISPATCHED)

FULFILLED_FROM_AGENT = "AGENT"
FULFILLED_FROM_WAREHOUSE = "WAREHOUSE"

# Column stamped when an order enters the status
STATUS_TIMESTAMP_FIELDS = {
    ORDER_STATUS_CONFIRMED: "confirmed_at",
    ORDER_STATUS_DISPATCHED: "dispatched_at",
    ORDER_STATUS_DELIVERED: "delivered_at",
    ORDER_STATUS_CANCELLED: "cancelled_at",
}


class Order(db.Model):
    """
    Customer order.

    assigned_to_id is the sales rep picked by the rotation (NULL when no rep
    was eligible). agent_id is the field agent delivering it, if any.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status", "status"),
        db.Index("ix_orders_agent_status", "agent_id", "status"),
        db.Index("ix_orders_assigned_to", "assigned_to_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=True, unique=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=False)
    delivery_address = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_NEW)

    assigned_to_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    agent_id = db.Column(db.Integer, db.ForeignKey("agents.id", ondelete="SET NULL"), nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Last time the order entered each status
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    assigned_to = db.relationship("User")
    agent = db.relationship("Agent")
    items = db.relationship("OrderItem", back_populates="order", lazy=True, cascade="all, delete-orphan")
    notes = db.relationship(
        "OrderNote",
        back_populates="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderNote.id.desc()",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "delivery_address": self.delivery_address,
            "status": self.status,
            "assigned_to_id": self.assigned_to_id,
            "agent_id": self.agent_id,
            "total_amount_cents": self.total_amount_cents,
            "items": [item.to_dict() for item in self.items],
            "notes": [note.to_dict() for note in self.notes],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "dispatched_at": to_utc_z(self.dispatched_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    # Price and cost snapshot at order time
    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)

    # Where a delivered item was drawn from: FULFILLED_FROM_AGENT or FULFILLED_FROM_WAREHOUSE.
    # NULL while the order is not delivered.
    fulfilled_from = db.Column(db.String(16), nullable=True)

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "fulfilled_from": self.fulfilled_from,
        }


class OrderNote(db.Model):
    """
    Sales rep note on an order. A follow-up note carries the date the rep
    should call the customer back.
    """
    __tablename__ = "order_notes"
    __table_args__ = (
        db.Index("ix_order_notes_follow_up", "is_follow_up", "follow_up_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    note = db.Column(db.Text, nullable=False)
    is_follow_up = db.Column(db.Boolean, nullable=False, default=False)
    follow_up_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", back_populates="notes")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "note": self.note,
            "is_follow_up": self.is_follow_up,
            "follow_up_date": to_utc_z(self.follow_up_date),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }

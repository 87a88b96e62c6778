from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Agent(db.Model):
    """
    Field delivery agent holding product inventory outside the warehouse.
    """
    __tablename__ = "agents"
    __table_args__ = (
        db.Index("ix_agents_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    location = db.Column(db.String(128), nullable=False)
    address = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    stock = db.relationship(
        "AgentStock",
        back_populates="agent",
        lazy=True,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Agent id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "location": self.location,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AgentStock(db.Model):
    """
    Per-agent, per-product holding.

    INVARIANTS:
    - One row per (agent_id, product_id), created lazily on first assignment.
    - quantity is the sellable units the agent currently holds; never negative.
    - defective and missing are reconciliation counters set by operators.
      They are informational and are NOT subtracted from quantity.
    """
    __tablename__ = "agent_stock"
    __table_args__ = (
        db.UniqueConstraint("agent_id", "product_id", name="uq_agent_stock_agent_product"),
        db.CheckConstraint("quantity >= 0", name="ck_agent_stock_quantity_non_negative"),
        db.Index("ix_agent_stock_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.Integer, db.ForeignKey("agents.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    defective = db.Column(db.Integer, nullable=False, default=0)
    missing = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    agent = db.relationship("Agent", back_populates="stock")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "defective": self.defective,
            "missing": self.missing,
            "updated_at": to_utc_z(self.updated_at),
        }


class Settlement(db.Model):
    """
    Immutable financial snapshot closing out an agent's position.

    balance_due_cents = stock_value + cash_collected - cash_returned + adjustments,
    computed once at creation. Positive: agent owes the company. Negative:
    company owes the agent. Rows are append-only.
    """
    __tablename__ = "settlements"
    __table_args__ = (
        db.Index("ix_settlements_agent_settled_at", "agent_id", "settled_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    agent_id = db.Column(db.Integer, db.ForeignKey("agents.id", ondelete="SET NULL"), nullable=True)

    stock_value_cents = db.Column(db.Integer, nullable=False)
    cash_collected_cents = db.Column(db.Integer, nullable=False)
    cash_returned_cents = db.Column(db.Integer, nullable=False)
    adjustments_cents = db.Column(db.Integer, nullable=False, default=0)
    balance_due_cents = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.Text, nullable=True)

    settled_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    settled_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    settled_by = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "stock_value_cents": self.stock_value_cents,
            "cash_collected_cents": self.cash_collected_cents,
            "cash_returned_cents": self.cash_returned_cents,
            "adjustments_cents": self.adjustments_cents,
            "balance_due_cents": self.balance_due_cents,
            "notes": self.notes,
            "settled_by_user_id": self.settled_by_user_id,
            "settled_at": to_utc_z(self.settled_at),
        }

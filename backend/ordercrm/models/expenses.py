from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


EXPENSE_TYPE_AD_SPEND = "ad_spend"
EXPENSE_TYPE_DELIVERY = "delivery"
EXPENSE_TYPE_SHIPPING = "shipping"
EXPENSE_TYPE_CLEARING = "clearing"
EXPENSE_TYPE_OTHER = "other"

EXPENSE_TYPES = {
    EXPENSE_TYPE_AD_SPEND,
    EXPENSE_TYPE_DELIVERY,
    EXPENSE_TYPE_SHIPPING,
    EXPENSE_TYPE_CLEARING,
    EXPENSE_TYPE_OTHER,
}


class Expense(db.Model):
    """
    Business expense, optionally attributed to a product (e.g. ad spend).
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)

    type = db.Column(db.String(32), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "date": to_utc_z(self.date),
            "created_at": to_utc_z(self.created_at),
        }

"""
Business expenses (ad spend, delivery, shipping, clearing, other).

Admin-only bookkeeping. Amounts are positive integer cents.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Expense, Product
from ..models.expenses import EXPENSE_TYPES
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError, require_amount_cents
from .concurrency import run_with_retry
from .permission_service import Actor, require_admin


EXPENSE_FIELDS = ("product_id", "type", "amount_cents", "description", "date")


def _clean(changes: dict) -> dict:
    unknown = set(changes) - set(EXPENSE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    clean = dict(changes)
    if "type" in clean and clean["type"] not in EXPENSE_TYPES:
        raise ValidationError(f"Invalid expense type: {clean['type']}")
    if "amount_cents" in clean:
        amount = require_amount_cents("amount_cents", clean["amount_cents"])
        if amount == 0:
            raise ValidationError("amount_cents must be greater than zero")
        clean["amount_cents"] = amount
    if "date" in clean and clean["date"] is None:
        raise ValidationError("date cannot be null")
    if "date" in clean and not isinstance(clean["date"], datetime):
        raise ValidationError("date must be a datetime")
    return clean


def _check_product(product_id: int | None) -> None:
    if product_id is not None and db.session.get(Product, product_id) is None:
        raise NotFoundError("Product not found")


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if expense is None:
        raise NotFoundError("Expense not found")
    return expense


def create_expense(
    actor: Actor | None,
    *,
    type: str,
    amount_cents,
    product_id: int | None = None,
    description: str | None = None,
    date: datetime | None = None,
) -> Expense:
    require_admin(actor)
    clean = _clean({
        "type": type,
        "amount_cents": amount_cents,
        "product_id": product_id,
        "description": description,
        "date": date or utcnow(),
    })

    def _op():
        _check_product(clean["product_id"])
        expense = Expense(**clean)
        db.session.add(expense)
        db.session.commit()
        return expense

    expense = run_with_retry(_op)
    current_app.logger.info(
        "User %s recorded %s expense %s of %d cents", actor.user_id, expense.type, expense.id, expense.amount_cents
    )
    return expense


def update_expense(actor: Actor | None, expense_id: int, **changes) -> Expense:
    require_admin(actor)
    clean = _clean(changes)

    def _op():
        expense = get_expense(expense_id)
        if "product_id" in clean:
            _check_product(clean["product_id"])
        for key, value in clean.items():
            setattr(expense, key, value)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(actor: Actor | None, expense_id: int) -> None:
    require_admin(actor)

    def _op():
        db.session.delete(get_expense(expense_id))
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("User %s deleted expense %s", actor.user_id, expense_id)


def list_expenses(
    actor: Actor | None,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """Expenses newest first, optionally within [start, end], with their total."""
    require_admin(actor)
    query = db.session.query(Expense)
    if start is not None:
        query = query.filter(Expense.date >= start)
    if end is not None:
        query = query.filter(Expense.date <= end)

    total = query.with_entities(func.coalesce(func.sum(Expense.amount_cents), 0)).scalar()
    expenses = query.order_by(Expense.date.desc(), Expense.id.desc()).all()
    return {"expenses": expenses, "total_cents": int(total or 0)}

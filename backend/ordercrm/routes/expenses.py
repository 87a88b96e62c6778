# Overview: Expense bookkeeping API (admin only).

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..services import expense_service
from . import json_body, ok, parse_datetime_field, service_errors


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


def _changes_from(data: dict) -> dict:
    changes = dict(data)
    if "date" in changes:
        changes["date"] = parse_datetime_field("date", changes["date"])
    return changes


@expenses_bp.get("")
@require_auth
@service_errors("Failed to fetch expenses")
def list_expenses():
    result = expense_service.list_expenses(
        g.actor,
        start=parse_datetime_field("start", request.args.get("start")),
        end=parse_datetime_field("end", request.args.get("end")),
    )
    return ok(
        expenses=[e.to_dict() for e in result["expenses"]],
        total_cents=result["total_cents"],
    )


@expenses_bp.post("")
@require_auth
@service_errors("Failed to create expense")
def create_expense():
    """
    Request body:
    {
        "type": "ad_spend" | "delivery" | "shipping" | "clearing" | "other",
        "amount_cents": int,
        "product_id": int (optional),
        "description": str (optional),
        "date": ISO-8601 str (optional, defaults to now)
    }
    """
    data = json_body()
    expense = expense_service.create_expense(
        g.actor,
        type=data["type"],
        amount_cents=data["amount_cents"],
        product_id=data.get("product_id"),
        description=data.get("description"),
        date=parse_datetime_field("date", data.get("date")),
    )
    return ok(201, expense=expense.to_dict())


@expenses_bp.patch("/<int:expense_id>")
@require_auth
@service_errors("Failed to update expense")
def update_expense(expense_id: int):
    expense = expense_service.update_expense(g.actor, expense_id, **_changes_from(json_body()))
    return ok(expense=expense.to_dict())


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@service_errors("Failed to delete expense")
def delete_expense(expense_id: int):
    expense_service.delete_expense(g.actor, expense_id)
    return ok()

"""
Expense bookkeeping tests.

Verifies:
- Expense types are restricted to the known set
- Amounts are positive integer cents
- Optional product attribution
- Date-range listing with totals
- Admin-only access
"""

from datetime import datetime

import pytest

from ordercrm.models import Expense
from ordercrm.models.expenses import EXPENSE_TYPE_AD_SPEND, EXPENSE_TYPE_DELIVERY, EXPENSE_TYPE_SHIPPING
from ordercrm.services import expense_service
from ordercrm.validation import AuthorizationError, NotFoundError, ValidationError


class TestCreateExpense:

    def test_product_attribution(self, db_session, admin_actor, product):
        expense = expense_service.create_expense(
            admin_actor, type=EXPENSE_TYPE_AD_SPEND, amount_cents=12000, product_id=product.id, description="Boosted post"
        )

        data = expense.to_dict()
        assert data["product_name"] == "Blender"
        assert data["amount_cents"] == 12000
        assert data["date"] is not None

    def test_without_product(self, db_session, admin_actor):
        expense = expense_service.create_expense(admin_actor, type=EXPENSE_TYPE_DELIVERY, amount_cents=800)
        assert expense.to_dict()["product_name"] is None

    def test_unknown_type(self, db_session, admin_actor):
        with pytest.raises(ValidationError):
            expense_service.create_expense(admin_actor, type="travel", amount_cents=800)

    @pytest.mark.parametrize("amount", [0, -5, 10.5, "abc"])
    def test_invalid_amount(self, db_session, admin_actor, amount):
        with pytest.raises(ValidationError):
            expense_service.create_expense(admin_actor, type=EXPENSE_TYPE_DELIVERY, amount_cents=amount)

    def test_unknown_product(self, db_session, admin_actor):
        with pytest.raises(NotFoundError):
            expense_service.create_expense(admin_actor, type=EXPENSE_TYPE_AD_SPEND, amount_cents=100, product_id=9999)

    def test_inventory_manager_denied(self, db_session, inventory_actor):
        with pytest.raises(AuthorizationError):
            expense_service.create_expense(inventory_actor, type=EXPENSE_TYPE_DELIVERY, amount_cents=800)


class TestChangeExpense:

    def test_update(self, db_session, admin_actor):
        expense = expense_service.create_expense(admin_actor, type=EXPENSE_TYPE_DELIVERY, amount_cents=800)

        updated = expense_service.update_expense(
            admin_actor, expense.id, type=EXPENSE_TYPE_SHIPPING, description="Courier"
        )
        assert updated.type == EXPENSE_TYPE_SHIPPING
        assert updated.description == "Courier"
        assert updated.amount_cents == 800

    def test_update_rejects_unknown_field(self, db_session, admin_actor):
        expense = expense_service.create_expense(admin_actor, type=EXPENSE_TYPE_DELIVERY, amount_cents=800)
        with pytest.raises(ValidationError):
            expense_service.update_expense(admin_actor, expense.id, created_at=datetime(2020, 1, 1))

    def test_delete(self, db_session, admin_actor):
        expense = expense_service.create_expense(admin_actor, type=EXPENSE_TYPE_DELIVERY, amount_cents=800)
        expense_service.delete_expense(admin_actor, expense.id)

        assert db_session.query(Expense).count() == 0
        with pytest.raises(NotFoundError):
            expense_service.delete_expense(admin_actor, expense.id)


def test_list_expenses_in_range(db_session, admin_actor):
    for day, amount in [(1, 100), (10, 200), (20, 400)]:
        expense_service.create_expense(
            admin_actor, type=EXPENSE_TYPE_DELIVERY, amount_cents=amount, date=datetime(2026, 9, day)
        )

    result = expense_service.list_expenses(admin_actor, start=datetime(2026, 9, 5), end=datetime(2026, 9, 30))
    assert [e.amount_cents for e in result["expenses"]] == [400, 200]
    assert result["total_cents"] == 600

    assert expense_service.list_expenses(admin_actor)["total_cents"] == 700


def test_sales_rep_cannot_list(db_session, rep_actor):
    with pytest.raises(AuthorizationError):
        expense_service.list_expenses(rep_actor)

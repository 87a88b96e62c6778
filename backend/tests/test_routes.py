"""
HTTP API tests.

Verifies:
- Unauthenticated requests return 401
- Sales reps are denied admin and stock operations (403)
- Business errors map to 400 / 404 / 409 with success=false
- Happy paths return success=true
"""

import pytest

from conftest import auth_headers
from ordercrm.models import Order, Product, User


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/round-robin"),
            ("POST", "/api/round-robin/skip"),
            ("POST", "/api/round-robin/reset"),
            ("GET", "/api/agents"),
            ("POST", "/api/agents"),
            ("GET", "/api/agents/1/stock"),
            ("POST", "/api/agents/1/settlements"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/follow-ups"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/expenses"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.json["success"] is False

    def test_malformed_header(self, client, db_session):
        resp = client.get("/api/agents", headers={"X-User-Id": "abc"})
        assert resp.status_code == 401

    def test_deactivated_user(self, client, db_session, admin):
        admin.is_active = False
        db_session.commit()
        resp = client.get("/api/agents", headers=auth_headers(admin))
        assert resp.status_code == 401


# =============================================================================
# SALES REP DENIED PRIVILEGED OPERATIONS - 403
# =============================================================================


class TestSalesRepDenied:

    def test_cannot_reset_rotation(self, client, sales_reps):
        resp = client.post("/api/round-robin/reset", headers=auth_headers(sales_reps[0]))
        assert resp.status_code == 403
        assert resp.json == {"success": False, "error": "Unauthorized - Admin access required"}

    def test_cannot_assign_stock(self, client, sales_reps, agent, product):
        resp = client.post(
            f"/api/agents/{agent.id}/stock",
            json={"product_id": product.id, "quantity": 1},
            headers=auth_headers(sales_reps[0]),
        )
        assert resp.status_code == 403
        assert resp.json["error"] == "Insufficient permissions"

    def test_cannot_settle(self, client, sales_reps, agent):
        resp = client.post(
            f"/api/agents/{agent.id}/settlements",
            json={"stock_value_cents": 0, "cash_collected_cents": 0, "cash_returned_cents": 0},
            headers=auth_headers(sales_reps[0]),
        )
        assert resp.status_code == 403

    def test_cannot_view_settlement_history(self, client, sales_reps, agent):
        resp = client.get(f"/api/agents/{agent.id}/settlements", headers=auth_headers(sales_reps[0]))
        assert resp.status_code == 403
        assert resp.json["success"] is False

    def test_cannot_create_product(self, client, sales_reps):
        resp = client.post(
            "/api/products",
            json={"sku": "X-1", "name": "Kettle"},
            headers=auth_headers(sales_reps[0]),
        )
        assert resp.status_code == 403

    def test_cannot_read_expenses(self, client, sales_reps):
        resp = client.get("/api/expenses", headers=auth_headers(sales_reps[0]))
        assert resp.status_code == 403


# =============================================================================
# ROUND ROBIN
# =============================================================================


class TestRoundRobinApi:

    def test_status_skip_and_reset(self, client, admin, sales_reps):
        headers = auth_headers(admin)

        resp = client.get("/api/round-robin", headers=headers)
        assert resp.status_code == 200
        assert resp.json["next_rep"]["name"] == "Rep A"

        resp = client.post("/api/round-robin/skip", headers=headers)
        assert resp.status_code == 200
        assert resp.json["skipped_rep"]["name"] == "Rep A"
        assert resp.json["next_rep"]["name"] == "Rep B"

        resp = client.post("/api/round-robin/reset", headers=headers)
        assert resp.json == {"success": True, "message": "Round-robin sequence has been reset"}

        resp = client.post("/api/round-robin/next", headers=headers)
        assert resp.json["rep"]["name"] == "Rep A"

    def test_skip_without_reps_is_conflict(self, client, admin):
        resp = client.post("/api/round-robin/skip", headers=auth_headers(admin))
        assert resp.status_code == 409
        assert resp.json["success"] is False

    def test_toggle_rep(self, client, admin, sales_reps):
        resp = client.patch(
            f"/api/round-robin/reps/{sales_reps[1].id}",
            json={"is_active": False},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json["user"]["is_active"] is False
        assert "excluded from" in resp.json["message"]

    def test_toggle_missing_field(self, client, admin, sales_reps):
        resp = client.patch(
            f"/api/round-robin/reps/{sales_reps[1].id}", json={}, headers=auth_headers(admin)
        )
        assert resp.status_code == 400
        assert "is_active" in resp.json["error"]


# =============================================================================
# AGENTS, STOCK AND SETTLEMENTS
# =============================================================================


class TestAgentApi:

    def test_create_agent_validates_payload(self, client, admin):
        resp = client.post("/api/agents", json={"name": "Esi"}, headers=auth_headers(admin))
        assert resp.status_code == 400
        assert "Missing required fields" in resp.json["error"]

        resp = client.post(
            "/api/agents",
            json={"name": "Esi", "phone": "0555", "location": "Kumasi", "version": 3},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Field not allowed: version"

        resp = client.post(
            "/api/agents",
            json={"name": "Esi", "phone": "0555", "location": "Kumasi"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 201
        assert resp.json["agent"]["is_active"] is True

    def test_stock_flow(self, client, inventory_manager, admin, agent, product):
        headers = auth_headers(inventory_manager)

        resp = client.post(
            f"/api/agents/{agent.id}/stock",
            json={"product_id": product.id, "quantity": 10},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json["agent_stock"]["quantity"] == 10

        resp = client.put(
            f"/api/agents/{agent.id}/stock/{product.id}/issues",
            json={"defective": 1},
            headers=headers,
        )
        assert resp.json["agent_stock"]["defective"] == 1

        resp = client.post(
            f"/api/agents/{agent.id}/stock/{product.id}/reconcile",
            json={"returned_quantity": 9, "missing": 2},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Reconciled quantities exceed current stock (11 > 10)"

        resp = client.get(f"/api/agents/{agent.id}/stock-value", headers=headers)
        assert resp.json["stock_value_cents"] == 10000

        resp = client.delete(f"/api/agents/{agent.id}", headers=auth_headers(admin))
        assert resp.status_code == 409

    def test_insufficient_warehouse_stock(self, client, admin, agent, product):
        resp = client.post(
            f"/api/agents/{agent.id}/stock",
            json={"product_id": product.id, "quantity": 500},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400
        assert "Insufficient warehouse stock" in resp.json["error"]

    def test_issues_on_missing_record(self, client, admin, agent, product):
        resp = client.put(
            f"/api/agents/{agent.id}/stock/{product.id}/issues",
            json={"missing": 1},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 404
        assert resp.json["error"] == "Stock record not found"

    def test_settlement(self, client, admin, agent):
        resp = client.post(
            f"/api/agents/{agent.id}/settlements",
            json={
                "stock_value_cents": 50000,
                "cash_collected_cents": 20000,
                "cash_returned_cents": 5000,
                "adjustments_cents": -2000,
            },
            headers=auth_headers(admin),
        )
        assert resp.status_code == 201
        assert resp.json["settlement"]["balance_due_cents"] == 63000

        resp = client.get(f"/api/agents/{agent.id}/settlements", headers=auth_headers(admin))
        assert len(resp.json["settlements"]) == 1

    def test_unknown_agent(self, client, admin):
        resp = client.get("/api/agents/9999", headers=auth_headers(admin))
        assert resp.status_code == 404
        assert resp.json == {"success": False, "error": "Agent not found"}


# =============================================================================
# ORDERS AND HEALTH
# =============================================================================


def _place_order(client, product, quantity=2):
    resp = client.post(
        "/api/orders",
        json={
            "customer_name": "Ama",
            "customer_phone": "0200000000",
            "items": [{"product_id": product.id, "quantity": quantity}],
        },
    )
    assert resp.status_code == 201
    return resp.json["order"]


class TestOrderApi:

    def test_public_intake_assigns_rep(self, client, db_session, sales_reps, product):
        created = _place_order(client, product)
        assert created["assigned_to_id"] == sales_reps[0].id
        assert db_session.query(Order).count() == 1

    def test_status_change(self, client, admin, sales_reps, product):
        created = _place_order(client, product)

        resp = client.patch(
            f"/api/orders/{created['id']}/status",
            json={"status": "DELIVERED"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 200
        assert resp.json["order"]["items"][0]["fulfilled_from"] == "WAREHOUSE"

    def test_rep_cannot_move_another_reps_order(self, client, db_session, sales_reps, product):
        created = _place_order(client, product, quantity=3)
        assert created["assigned_to_id"] == sales_reps[0].id

        resp = client.patch(
            f"/api/orders/{created['id']}/status",
            json={"status": "DELIVERED"},
            headers=auth_headers(sales_reps[2]),
        )
        assert resp.status_code == 403
        assert resp.json["success"] is False
        assert db_session.get(Order, created["id"]).status == "NEW"
        assert db_session.get(Product, product.id).current_stock == 100

    def test_rep_moves_own_order(self, client, sales_reps, product):
        created = _place_order(client, product)

        resp = client.patch(
            f"/api/orders/{created['id']}/status",
            json={"status": "CONFIRMED"},
            headers=auth_headers(sales_reps[0]),
        )
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "CONFIRMED"
        assert resp.json["order"]["confirmed_at"] is not None

    def test_rep_sees_only_own_orders(self, client, sales_reps, product):
        first = _place_order(client, product)
        second = _place_order(client, product)

        resp = client.get("/api/orders", headers=auth_headers(sales_reps[1]))
        assert [o["id"] for o in resp.json["orders"]] == [second["id"]]

        resp = client.get(f"/api/orders/{first['id']}", headers=auth_headers(sales_reps[1]))
        assert resp.status_code == 403

        resp = client.get(f"/api/orders/{second['id']}", headers=auth_headers(sales_reps[1]))
        assert resp.status_code == 200

    def test_notes_and_follow_ups(self, client, sales_reps, product):
        created = _place_order(client, product)
        headers = auth_headers(sales_reps[0])

        resp = client.post(
            f"/api/orders/{created['id']}/notes",
            json={"note": "Call back after payday", "follow_up_date": "2020-01-01T09:00:00Z"},
            headers=headers,
        )
        assert resp.status_code == 201
        assert resp.json["note"]["is_follow_up"] is True
        assert resp.json["note"]["follow_up_date"] == "2020-01-01T09:00:00Z"

        resp = client.get("/api/orders/follow-ups", headers=headers)
        assert [n["order_id"] for n in resp.json["follow_ups"]] == [created["id"]]

        resp = client.get("/api/orders/follow-ups", headers=auth_headers(sales_reps[1]))
        assert resp.json["follow_ups"] == []

    def test_note_validation(self, client, sales_reps, product):
        created = _place_order(client, product)
        headers = auth_headers(sales_reps[0])

        resp = client.post(f"/api/orders/{created['id']}/notes", json={}, headers=headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Missing required field: note"

        resp = client.post(
            f"/api/orders/{created['id']}/notes",
            json={"note": "Later", "follow_up_date": "next week"},
            headers=headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "follow_up_date must be an ISO-8601 datetime"


# =============================================================================
# PRODUCTS AND EXPENSES
# =============================================================================


class TestProductApi:

    def test_create_update_and_receive_stock(self, client, admin, inventory_manager):
        resp = client.post(
            "/api/products",
            json={"sku": "KET-01", "name": "Kettle", "price_cents": 2500, "cost_cents": 1200, "opening_stock": 20},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 201
        product = resp.json["product"]
        assert product["current_stock"] == 20

        resp = client.patch(
            f"/api/products/{product['id']}",
            json={"description": "1.7 litre", "current_stock": 999},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Field not allowed: current_stock"

        resp = client.post(
            f"/api/products/{product['id']}/stock",
            json={"quantity": 5},
            headers=auth_headers(inventory_manager),
        )
        assert resp.status_code == 200
        assert resp.json["product"]["current_stock"] == 25

    def test_duplicate_sku_is_conflict(self, client, admin, product):
        resp = client.post(
            "/api/products",
            json={"sku": product.sku, "name": "Another"},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 409
        assert resp.json["error"] == "SKU already exists."

    def test_active_filter(self, client, db_session, admin, product):
        product.is_active = False
        db_session.commit()

        resp = client.get("/api/products?active=true", headers=auth_headers(admin))
        assert resp.json["products"] == []
        resp = client.get("/api/products", headers=auth_headers(admin))
        assert [p["id"] for p in resp.json["products"]] == [product.id]


class TestExpenseApi:

    def test_expense_lifecycle(self, client, admin, product):
        headers = auth_headers(admin)
        resp = client.post(
            "/api/expenses",
            json={"type": "ad_spend", "amount_cents": 5000, "product_id": product.id, "date": "2026-10-01T00:00:00Z"},
            headers=headers,
        )
        assert resp.status_code == 201
        expense = resp.json["expense"]
        assert expense["product_name"] == "Blender"

        resp = client.patch(f"/api/expenses/{expense['id']}", json={"amount_cents": 6000}, headers=headers)
        assert resp.json["expense"]["amount_cents"] == 6000

        resp = client.get("/api/expenses?start=2026-09-30T00:00:00Z", headers=headers)
        assert resp.json["total_cents"] == 6000

        resp = client.delete(f"/api/expenses/{expense['id']}", headers=headers)
        assert resp.status_code == 200
        resp = client.get("/api/expenses", headers=headers)
        assert resp.json == {"success": True, "expenses": [], "total_cents": 0}

    def test_invalid_type(self, client, admin):
        resp = client.post(
            "/api/expenses",
            json={"type": "bribes", "amount_cents": 100},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Invalid expense type: bribes"


def test_health(client, db_session):
    db_session.add(User(name="Rep", email="rep@test.local"))
    db_session.commit()

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json["success"] is True
    assert resp.json["database"]["details"]["eligible_sales_reps"] == 1

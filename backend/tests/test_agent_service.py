"""
Agent management tests.

Verifies:
- Deletion guards (active orders, stock holdings)
- Successful deletion detaches historical orders
- Listing filters and aggregate statistics
"""

import pytest

from ordercrm.models import Agent, AgentStock, Order
from ordercrm.models.orders import (
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_DISPATCHED,
)
from ordercrm.services import agent_service, agent_stock_service
from ordercrm.validation import AuthorizationError, ConflictError, NotFoundError, ValidationError


def _order(db_session, agent, status):
    order = Order(customer_name="Ama", customer_phone="0200000000", agent_id=agent.id, status=status)
    db_session.add(order)
    db_session.commit()
    return order


class TestDeleteAgent:

    def test_blocked_by_active_orders(self, db_session, agent, admin_actor):
        _order(db_session, agent, ORDER_STATUS_DISPATCHED)
        _order(db_session, agent, ORDER_STATUS_CONFIRMED)

        with pytest.raises(ConflictError) as exc_info:
            agent_service.delete_agent(admin_actor, agent.id)
        assert "2 active order(s)" in str(exc_info.value)
        assert db_session.get(Agent, agent.id) is not None

    def test_blocked_by_stock_holdings(self, db_session, agent, product, admin_actor):
        agent_stock_service.assign_stock_to_agent(admin_actor, agent.id, product.id, 5)

        with pytest.raises(ConflictError) as exc_info:
            agent_service.delete_agent(admin_actor, agent.id)
        assert "stock holdings in 1 product(s)" in str(exc_info.value)

    def test_zero_quantity_rows_do_not_block(self, db_session, agent, product, admin_actor):
        agent_stock_service.assign_stock_to_agent(admin_actor, agent.id, product.id, 5)
        agent_stock_service.reconcile_agent_stock(admin_actor, agent.id, product.id, returned_quantity=5)

        agent_service.delete_agent(admin_actor, agent.id)

        assert db_session.get(Agent, agent.id) is None
        assert db_session.query(AgentStock).count() == 0

    def test_delivered_orders_keep_history(self, db_session, agent, admin_actor):
        order = _order(db_session, agent, ORDER_STATUS_DELIVERED)
        order_id = order.id

        agent_service.delete_agent(admin_actor, agent.id)

        db_session.expire_all()
        assert db_session.get(Order, order_id).agent_id is None

    def test_unknown_agent(self, db_session, admin_actor):
        with pytest.raises(NotFoundError):
            agent_service.delete_agent(admin_actor, 9999)

    def test_requires_admin(self, db_session, agent, inventory_actor):
        with pytest.raises(AuthorizationError):
            agent_service.delete_agent(inventory_actor, agent.id)


class TestAgentCrud:

    def test_create_and_update(self, db_session, admin_actor):
        agent = agent_service.create_agent(admin_actor, name="Esi", phone="0555", location="Kumasi")
        assert agent.is_active is True

        updated = agent_service.update_agent(admin_actor, agent.id, location="Tamale")
        assert updated.location == "Tamale"

    def test_create_requires_fields(self, db_session, admin_actor):
        with pytest.raises(ValidationError):
            agent_service.create_agent(admin_actor, name="Esi", phone="", location="Kumasi")

    def test_update_rejects_unknown_field(self, db_session, agent, admin_actor):
        with pytest.raises(ValidationError):
            agent_service.update_agent(admin_actor, agent.id, id=42)

    def test_toggle_status(self, db_session, agent, admin_actor):
        assert agent_service.toggle_agent_status(admin_actor, agent.id).is_active is False
        assert agent_service.toggle_agent_status(admin_actor, agent.id).is_active is True

    def test_list_filters(self, db_session, agent, admin_actor):
        other = agent_service.create_agent(admin_actor, name="Yaw", phone="0266", location="Kumasi")
        agent_service.toggle_agent_status(admin_actor, other.id)

        assert [a.id for a in agent_service.list_agents(location="accra")] == [agent.id]
        assert [a.id for a in agent_service.list_agents(search="yaw")] == [other.id]
        assert [a.id for a in agent_service.list_agents(active=True)] == [agent.id]


def test_agent_stats(db_session, agent, product, admin_actor):
    agent_stock_service.assign_stock_to_agent(admin_actor, agent.id, product.id, 10)
    agent_stock_service.update_agent_stock_issues(admin_actor, agent.id, product.id, defective=1)
    _order(db_session, agent, ORDER_STATUS_DISPATCHED)

    stats = agent_service.get_agent_stats()
    assert stats == {
        "total_agents": 1,
        "active_agents": 1,
        "total_stock_value_cents": 10000,
        "total_defective_value_cents": 1000,
        "total_missing_value_cents": 0,
        "pending_deliveries": 1,
    }

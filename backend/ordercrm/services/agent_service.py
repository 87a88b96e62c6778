from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import Agent, AgentStock, Order, Product
from ..models.orders import ACTIVE_ORDER_STATUSES
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .permission_service import Actor, require_admin


AGENT_FIELDS = ("name", "phone", "location", "address", "is_active")


def get_agent(agent_id: int) -> Agent:
    agent = db.session.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    return agent


def list_agents(*, search: str | None = None, location: str | None = None, active: bool | None = None) -> list[Agent]:
    query = db.session.query(Agent)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Agent.name.ilike(pattern), Agent.phone.ilike(pattern)))
    if location:
        query = query.filter(Agent.location.ilike(f"%{location}%"))
    if active is not None:
        query = query.filter(Agent.is_active.is_(active))
    return query.order_by(Agent.created_at.desc(), Agent.id.desc()).all()


def create_agent(
    actor: Actor | None,
    *,
    name: str,
    phone: str,
    location: str,
    address: str | None = None,
) -> Agent:
    require_admin(actor)
    if not name or not phone or not location:
        raise ValidationError("name, phone and location are required")

    def _op():
        agent = Agent(name=name, phone=phone, location=location, address=address)
        db.session.add(agent)
        db.session.commit()
        return agent

    agent = run_with_retry(_op)
    current_app.logger.info("User %s created agent %s", actor.user_id, agent.id)
    return agent


def update_agent(actor: Actor | None, agent_id: int, **changes) -> Agent:
    require_admin(actor)
    unknown = set(changes) - set(AGENT_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    def _op():
        agent = lock_for_update(db.session.query(Agent).filter_by(id=agent_id)).first()
        if agent is None:
            raise NotFoundError("Agent not found")
        for key, value in changes.items():
            setattr(agent, key, value)
        db.session.commit()
        return agent

    return run_with_retry(_op)


def toggle_agent_status(actor: Actor | None, agent_id: int) -> Agent:
    require_admin(actor)

    def _op():
        agent = lock_for_update(db.session.query(Agent).filter_by(id=agent_id)).first()
        if agent is None:
            raise NotFoundError("Agent not found")
        agent.is_active = not agent.is_active
        db.session.commit()
        return agent

    return run_with_retry(_op)


def delete_agent(actor: Actor | None, agent_id: int) -> None:
    """
    Delete an agent once nothing is outstanding.

    Guard 1: no CONFIRMED/DISPATCHED orders (reassign them first).
    Guard 2: no stock row with quantity > 0 (reconcile to zero first).
    """
    require_admin(actor)

    def _op():
        agent = lock_for_update(db.session.query(Agent).filter_by(id=agent_id)).first()
        if agent is None:
            raise NotFoundError("Agent not found")

        active_orders = (
            db.session.query(func.count(Order.id))
            .filter(Order.agent_id == agent_id, Order.status.in_(ACTIVE_ORDER_STATUSES))
            .scalar()
        )
        if active_orders:
            raise ConflictError(
                f"Cannot delete agent with {active_orders} active order(s). Please reassign orders first."
            )

        holdings = (
            db.session.query(func.count(AgentStock.id))
            .filter(AgentStock.agent_id == agent_id, AgentStock.quantity > 0)
            .scalar()
        )
        if holdings:
            raise ConflictError(
                f"Agent has stock holdings in {holdings} product(s). Please reconcile stock before deletion."
            )

        # Delivered/cancelled orders keep their history without the agent link.
        db.session.query(Order).filter(Order.agent_id == agent_id).update(
            {Order.agent_id: None}, synchronize_session=False
        )
        db.session.delete(agent)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("User %s deleted agent %s", actor.user_id, agent_id)


def get_agent_stats() -> dict:
    """Totals across all agents; values are at product cost, in cents."""
    total_agents = db.session.query(func.count(Agent.id)).scalar()
    active_agents = db.session.query(func.count(Agent.id)).filter(Agent.is_active.is_(True)).scalar()

    values = (
        db.session.query(
            func.coalesce(func.sum(AgentStock.quantity * Product.cost_cents), 0).label("stock"),
            func.coalesce(func.sum(AgentStock.defective * Product.cost_cents), 0).label("defective"),
            func.coalesce(func.sum(AgentStock.missing * Product.cost_cents), 0).label("missing"),
        )
        .join(Product, Product.id == AgentStock.product_id)
        .one()
    )

    pending_deliveries = (
        db.session.query(func.count(Order.id))
        .filter(Order.status.in_(ACTIVE_ORDER_STATUSES))
        .scalar()
    )

    return {
        "total_agents": int(total_agents or 0),
        "active_agents": int(active_agents or 0),
        "total_stock_value_cents": int(values.stock),
        "total_defective_value_cents": int(values.defective),
        "total_missing_value_cents": int(values.missing),
        "pending_deliveries": int(pending_deliveries or 0),
    }

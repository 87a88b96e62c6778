"""
Agent stock ledger: inventory held by field agents.

LEDGER INVARIANTS (authoritative):
- One AgentStock row per (agent, product), created on first assignment.
- AgentStock.quantity >= 0 at all times (service checks plus a DB CHECK).
- Conservation: assigning q units moves exactly q from Product.current_stock
  to AgentStock.quantity, and returning r units moves exactly r back. The
  sum warehouse + all agent holdings for a product only changes when goods
  leave the system (delivery) or come back (delivery reverted).
- Every paired mutation (agent row + warehouse row) commits in ONE
  transaction. Product carries an optimistic version so concurrent movements
  on one product conflict and retry instead of losing an update.
- defective / missing are absolute counters ("set" semantics), never deltas,
  and are not subtracted from quantity.
- Warehouse stock may not go negative unless ALLOW_NEGATIVE_WAREHOUSE_STOCK.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Agent, AgentStock, Order, Product
from ..models.orders import FULFILLED_FROM_AGENT, FULFILLED_FROM_WAREHOUSE
from ..validation import (
    InsufficientWarehouseStock,
    NotFoundError,
    ReconciledQuantitiesExceedStock,
    StockRecordNotFound,
    ValidationError,
    optional_non_negative_int,
    require_positive_int,
)
from . import notification_service
from .concurrency import lock_for_update, run_with_retry
from .permission_service import Actor, require_stock_operator


# A concurrent first assignment of the same (agent, product) hits the unique constraint.
STOCK_RETRY_ON = (OperationalError, StaleDataError, IntegrityError)


def _get_agent(agent_id: int) -> Agent:
    agent = db.session.get(Agent, agent_id)
    if agent is None:
        raise NotFoundError("Agent not found")
    return agent


def _get_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def _lock_agent_stock(agent_id: int, product_id: int) -> AgentStock | None:
    return lock_for_update(
        db.session.query(AgentStock).filter_by(agent_id=agent_id, product_id=product_id)
    ).first()


def _take_from_warehouse(product: Product, quantity: int) -> None:
    allow_negative = current_app.config.get("ALLOW_NEGATIVE_WAREHOUSE_STOCK", False)
    if not allow_negative and product.current_stock < quantity:
        raise InsufficientWarehouseStock(
            f"Insufficient warehouse stock for {product.name}. "
            f"Available: {product.current_stock}, requested: {quantity}"
        )
    product.current_stock -= quantity


def assign_stock_to_agent(actor: Actor | None, agent_id: int, product_id: int, quantity) -> AgentStock:
    """
    Hand `quantity` units of a product from the warehouse to an agent.

    The agent row is incremented (or created) and the warehouse decremented
    in the same transaction.
    """
    require_stock_operator(actor)
    quantity = require_positive_int("quantity", quantity)

    def _op():
        _get_agent(agent_id)
        product = _get_product(product_id, lock=True)
        _take_from_warehouse(product, quantity)

        stock = _lock_agent_stock(agent_id, product_id)
        if stock is None:
            stock = AgentStock(
                agent_id=agent_id,
                product_id=product_id,
                quantity=quantity,
                defective=0,
                missing=0,
            )
            db.session.add(stock)
        else:
            stock.quantity += quantity

        db.session.commit()
        return stock

    stock = run_with_retry(_op, retry_on=STOCK_RETRY_ON)
    current_app.logger.info(
        "User %s assigned %d of product %s to agent %s (agent now holds %d)",
        actor.user_id, quantity, product_id, agent_id, stock.quantity,
    )
    notification_service.check_low_stock(product_id)
    return stock


def update_agent_stock_issues(
    actor: Actor | None,
    agent_id: int,
    product_id: int,
    defective=None,
    missing=None,
) -> AgentStock:
    """
    SET the defective and/or missing counters to absolute values.

    Omitted counters are left unchanged. No bound against quantity is
    applied here; reconcile_agent_stock is the bounded workflow.
    """
    require_stock_operator(actor)
    defective = optional_non_negative_int("defective", defective)
    missing = optional_non_negative_int("missing", missing)
    if defective is None and missing is None:
        raise ValidationError("Provide defective and/or missing")

    def _op():
        stock = _lock_agent_stock(agent_id, product_id)
        if stock is None:
            raise StockRecordNotFound("Stock record not found")
        if defective is not None:
            stock.defective = defective
        if missing is not None:
            stock.missing = missing
        db.session.commit()
        return stock

    stock = run_with_retry(_op)
    current_app.logger.info(
        "User %s set agent %s product %s counters: defective=%d missing=%d",
        actor.user_id, agent_id, product_id, stock.defective, stock.missing,
    )
    return stock


def reconcile_agent_stock(
    actor: Actor | None,
    agent_id: int,
    product_id: int,
    *,
    returned_quantity=None,
    defective=None,
    missing=None,
    notes: str | None = None,
) -> AgentStock:
    """
    Record returns, defects and losses found when counting an agent's stock.

    - returned units leave the agent and go back to the warehouse
    - defective / missing overwrite the agent's counters when given
    - returned + defective + missing may not exceed what the agent holds
    """
    require_stock_operator(actor)
    returned_quantity = optional_non_negative_int("returned_quantity", returned_quantity)
    defective = optional_non_negative_int("defective", defective)
    missing = optional_non_negative_int("missing", missing)

    def _op():
        stock = _lock_agent_stock(agent_id, product_id)
        if stock is None:
            raise StockRecordNotFound("Stock record not found")

        total = (returned_quantity or 0) + (defective or 0) + (missing or 0)
        if total > stock.quantity:
            raise ReconciledQuantitiesExceedStock(
                f"Reconciled quantities exceed current stock ({total} > {stock.quantity})"
            )

        if returned_quantity:
            stock.quantity -= returned_quantity
            product = _get_product(product_id, lock=True)
            product.current_stock += returned_quantity
        if defective is not None:
            stock.defective = defective
        if missing is not None:
            stock.missing = missing

        db.session.commit()
        return stock

    stock = run_with_retry(_op)
    current_app.logger.info(
        "User %s reconciled agent %s product %s: returned=%d defective=%d missing=%d notes=%r",
        actor.user_id, agent_id, product_id, returned_quantity or 0,
        stock.defective, stock.missing, notes,
    )
    return stock


def apply_delivery(order: Order) -> list[int]:
    """
    Remove a delivered order's items from stock. Flushes; caller commits.

    Items are drawn from the delivering agent's holding when the agent holds
    that product, otherwise from the warehouse. The source is recorded on
    each item so revert_delivery() puts units back where they came from.
    Returns the product ids whose warehouse stock changed.
    """
    touched: list[int] = []
    for item in order.items:
        stock = None
        if order.agent_id is not None:
            stock = _lock_agent_stock(order.agent_id, item.product_id)

        # A row reconciled down to zero means the agent no longer holds the product.
        if stock is not None and stock.quantity > 0:
            if stock.quantity < item.quantity:
                raise ValidationError(
                    f"Agent holds {stock.quantity} of product {item.product_id}; "
                    f"order needs {item.quantity}"
                )
            stock.quantity -= item.quantity
            item.fulfilled_from = FULFILLED_FROM_AGENT
        else:
            product = _get_product(item.product_id, lock=True)
            _take_from_warehouse(product, item.quantity)
            item.fulfilled_from = FULFILLED_FROM_WAREHOUSE
            touched.append(item.product_id)

    db.session.flush()
    return touched


def revert_delivery(order: Order) -> None:
    """Undo apply_delivery() for an order leaving DELIVERED. Flushes; caller commits."""
    for item in order.items:
        if item.fulfilled_from == FULFILLED_FROM_AGENT and order.agent_id is not None:
            stock = _lock_agent_stock(order.agent_id, item.product_id)
            if stock is None:
                stock = AgentStock(agent_id=order.agent_id, product_id=item.product_id, quantity=0)
                db.session.add(stock)
            stock.quantity += item.quantity
        elif item.fulfilled_from is not None:
            product = _get_product(item.product_id, lock=True)
            product.current_stock += item.quantity
        item.fulfilled_from = None

    db.session.flush()


def get_agent_stock(agent_id: int) -> list[AgentStock]:
    _get_agent(agent_id)
    return (
        db.session.query(AgentStock)
        .filter_by(agent_id=agent_id)
        .order_by(AgentStock.product_id.asc())
        .all()
    )


def get_agent_stock_value(agent_id: int) -> dict:
    """
    Value of an agent's holding at product cost, in cents.

    Used to prefill the stock value of a settlement.
    """
    _get_agent(agent_id)
    row = (
        db.session.query(
            func.coalesce(func.sum(AgentStock.quantity * Product.cost_cents), 0).label("stock"),
            func.coalesce(func.sum(AgentStock.defective * Product.cost_cents), 0).label("defective"),
            func.coalesce(func.sum(AgentStock.missing * Product.cost_cents), 0).label("missing"),
            func.coalesce(func.sum(AgentStock.quantity), 0).label("units"),
        )
        .join(Product, Product.id == AgentStock.product_id)
        .filter(AgentStock.agent_id == agent_id)
        .one()
    )
    return {
        "agent_id": agent_id,
        "units": int(row.units),
        "stock_value_cents": int(row.stock),
        "defective_value_cents": int(row.defective),
        "missing_value_cents": int(row.missing),
    }

"""
Orders: the consumer of the rep rotation and of the agent stock ledger.

- create_order() picks the sales rep and stores the order in the SAME
  transaction as the cursor advance, so a failed insert never burns a rep's
  turn and a committed cursor always has its order.
- With no eligible rep the order is stored unassigned.
- Entering DELIVERED removes the items from stock; leaving DELIVERED puts
  them back. Both happen in the status-change transaction.
- Sales reps only read, move and annotate orders assigned to them.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Agent, Order, OrderItem, OrderNote, Product
from ..models.auth import ALL_ROLES, ROLE_SALES_REP
from ..models.orders import (
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_NEW,
    ORDER_STATUSES,
    STATUS_TIMESTAMP_FIELDS,
)
from ..time_utils import utcnow
from ..validation import ConflictError, NotFoundError, ValidationError, require_positive_int
from . import agent_stock_service, notification_service, round_robin_service
from .concurrency import lock_for_update, run_with_retry
from .permission_service import Actor, require_order_access, require_role


_UNSET = object()


def _validate_items(items) -> list[tuple[int, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")
    lines = []
    for raw in items:
        if not isinstance(raw, dict) or "product_id" not in raw:
            raise ValidationError("Each item needs product_id and quantity")
        lines.append((raw["product_id"], require_positive_int("quantity", raw.get("quantity"))))
    return lines


def create_order(
    *,
    customer_name: str,
    customer_phone: str,
    items,
    delivery_address: str | None = None,
) -> Order:
    if not customer_name or not customer_phone:
        raise ValidationError("customer_name and customer_phone are required")
    lines = _validate_items(items)

    def _op():
        order_items = []
        total = 0
        for product_id, quantity in lines:
            product = db.session.get(Product, product_id)
            if product is None:
                raise NotFoundError(f"Product not found: {product_id}")
            if not product.is_active:
                raise ValidationError(f"Product is not available: {product.name}")
            total += product.price_cents * quantity
            order_items.append(OrderItem(
                product_id=product.id,
                quantity=quantity,
                price_cents=product.price_cents,
                cost_cents=product.cost_cents,
            ))

        rep = round_robin_service.advance_rotation()

        order = Order(
            customer_name=customer_name,
            customer_phone=customer_phone,
            delivery_address=delivery_address,
            status=ORDER_STATUS_NEW,
            assigned_to_id=rep.id if rep else None,
            total_amount_cents=total,
            items=order_items,
        )
        db.session.add(order)
        db.session.flush()
        order.order_number = f"ORD-{order.id:06d}"
        db.session.commit()
        return order

    order = run_with_retry(_op, retry_on=round_robin_service.ROTATION_RETRY_ON)
    notification_service.notify_order_assigned(order)
    return order


def update_order_status(actor: Actor | None, order_id: int, status: str, *, agent_id=_UNSET) -> Order:
    """
    Move an order to `status`, optionally (re)attaching the delivering agent.

    agent_id=None detaches the agent; leave it out to keep the current one.
    Sales reps may only move orders assigned to them.
    """
    require_role(actor, *ALL_ROLES)
    if status not in ORDER_STATUSES:
        raise ValidationError(f"Invalid status: {status}")

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError("Order not found")
        require_order_access(actor, order)

        previous = order.status
        if agent_id is not _UNSET and agent_id != order.agent_id:
            if previous == ORDER_STATUS_DELIVERED:
                raise ConflictError("Cannot change the agent of a delivered order")
            if agent_id is not None and db.session.get(Agent, agent_id) is None:
                raise NotFoundError("Agent not found")
            order.agent_id = agent_id

        touched: list[int] = []
        if status == ORDER_STATUS_DELIVERED and previous != ORDER_STATUS_DELIVERED:
            touched = agent_stock_service.apply_delivery(order)
        elif previous == ORDER_STATUS_DELIVERED and status != ORDER_STATUS_DELIVERED:
            agent_stock_service.revert_delivery(order)

        if status != previous and status in STATUS_TIMESTAMP_FIELDS:
            setattr(order, STATUS_TIMESTAMP_FIELDS[status], utcnow())
        order.status = status
        db.session.commit()
        return order, previous, touched

    order, previous, touched = run_with_retry(_op)
    current_app.logger.info(
        "User %s moved order %s from %s to %s", actor.user_id, order.order_number, previous, status
    )
    for product_id in touched:
        notification_service.check_low_stock(product_id)
    return order


def get_order(actor: Actor | None, order_id: int) -> Order:
    require_role(actor, *ALL_ROLES)
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    require_order_access(actor, order)
    return order


def list_orders(
    actor: Actor | None,
    *,
    status: str | None = None,
    assigned_to_id: int | None = None,
    agent_id: int | None = None,
) -> list[Order]:
    """Newest first. A sales rep only ever sees the orders assigned to them."""
    actor = require_role(actor, *ALL_ROLES)
    if actor.role == ROLE_SALES_REP:
        assigned_to_id = actor.user_id

    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if assigned_to_id is not None:
        query = query.filter(Order.assigned_to_id == assigned_to_id)
    if agent_id is not None:
        query = query.filter(Order.agent_id == agent_id)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def add_order_note(
    actor: Actor | None,
    order_id: int,
    note: str,
    *,
    is_follow_up: bool = False,
    follow_up_date: datetime | None = None,
) -> OrderNote:
    """
    Attach a note to an order. A follow-up date makes it a follow-up note.
    """
    require_role(actor, *ALL_ROLES)
    if not isinstance(note, str) or not note.strip():
        raise ValidationError("note is required")
    if not isinstance(is_follow_up, bool):
        raise ValidationError("is_follow_up must be true or false")
    if follow_up_date is not None:
        is_follow_up = True

    def _op():
        order = db.session.get(Order, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        require_order_access(actor, order)

        order_note = OrderNote(
            order_id=order.id,
            note=note.strip(),
            is_follow_up=is_follow_up,
            follow_up_date=follow_up_date,
            created_by_user_id=actor.user_id,
        )
        db.session.add(order_note)
        db.session.commit()
        return order_note

    order_note = run_with_retry(_op)
    current_app.logger.info(
        "User %s added %s to order %s",
        actor.user_id, "follow-up" if order_note.is_follow_up else "note", order_id,
    )
    return order_note


def list_due_follow_ups(actor: Actor | None, *, now: datetime | None = None) -> list[OrderNote]:
    """Follow-up notes whose date has arrived, oldest first; scoped to a rep's own orders."""
    actor = require_role(actor, *ALL_ROLES)
    now = now or utcnow()

    query = (
        db.session.query(OrderNote)
        .join(Order, Order.id == OrderNote.order_id)
        .filter(
            OrderNote.is_follow_up.is_(True),
            OrderNote.follow_up_date.isnot(None),
            OrderNote.follow_up_date <= now,
        )
    )
    if actor.role == ROLE_SALES_REP:
        query = query.filter(Order.assigned_to_id == actor.user_id)
    return query.order_by(OrderNote.follow_up_date.asc(), OrderNote.id.asc()).all()

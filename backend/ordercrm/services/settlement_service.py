"""
Agent settlements.

A settlement is a point-in-time snapshot, not a running balance:
balance_due is computed once when the row is written and never recomputed.
Settlements never modify AgentStock. There is no update or delete.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Agent, Settlement
from ..validation import NotFoundError, require_amount_cents
from .concurrency import run_with_retry
from .permission_service import Actor, require_admin


def compute_balance_due(
    stock_value_cents: int,
    cash_collected_cents: int,
    cash_returned_cents: int,
    adjustments_cents: int,
) -> int:
    """Positive: agent owes the company. Negative: company owes the agent."""
    return stock_value_cents + cash_collected_cents - cash_returned_cents + adjustments_cents


def create_settlement(
    actor: Actor | None,
    agent_id: int,
    *,
    stock_value_cents,
    cash_collected_cents,
    cash_returned_cents,
    adjustments_cents=0,
    notes: str | None = None,
) -> Settlement:
    require_admin(actor)
    stock_value_cents = require_amount_cents("stock_value_cents", stock_value_cents)
    cash_collected_cents = require_amount_cents("cash_collected_cents", cash_collected_cents)
    cash_returned_cents = require_amount_cents("cash_returned_cents", cash_returned_cents)
    adjustments_cents = require_amount_cents("adjustments_cents", adjustments_cents, allow_negative=True)

    balance_due = compute_balance_due(
        stock_value_cents, cash_collected_cents, cash_returned_cents, adjustments_cents
    )

    def _op():
        if db.session.get(Agent, agent_id) is None:
            raise NotFoundError("Agent not found")

        settlement = Settlement(
            agent_id=agent_id,
            stock_value_cents=stock_value_cents,
            cash_collected_cents=cash_collected_cents,
            cash_returned_cents=cash_returned_cents,
            adjustments_cents=adjustments_cents,
            balance_due_cents=balance_due,
            notes=notes,
            settled_by_user_id=actor.user_id,
        )
        db.session.add(settlement)
        db.session.commit()
        return settlement

    settlement = run_with_retry(_op)
    current_app.logger.info(
        "User %s settled agent %s: balance due %d cents", actor.user_id, agent_id, balance_due
    )
    return settlement


def list_settlements(agent_id: int) -> list[Settlement]:
    return (
        db.session.query(Settlement)
        .filter_by(agent_id=agent_id)
        .order_by(Settlement.settled_at.desc(), Settlement.id.desc())
        .all()
    )

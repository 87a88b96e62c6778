# Overview: Agent management, agent stock ledger and settlement API.

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..models import Agent
from ..services import agent_service, agent_stock_service, settlement_service
from ..services.permission_service import require_stock_operator
from ..validation import ModelValidationPolicy, validate_payload
from . import json_body, ok, service_errors


agents_bp = Blueprint("agents", __name__, url_prefix="/api/agents")

AGENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "location", "address", "is_active"},
    required_on_create={"name", "phone", "location"},
)


def _parse_bool(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    return value.strip().lower() in {"1", "true", "yes", "active"}


@agents_bp.get("")
@require_auth
@service_errors("Failed to fetch agents")
def list_agents():
    agents = agent_service.list_agents(
        search=request.args.get("search"),
        location=request.args.get("location"),
        active=_parse_bool(request.args.get("active")),
    )
    return ok(agents=[agent.to_dict() for agent in agents])


@agents_bp.post("")
@require_auth
@service_errors("Failed to create agent")
def create_agent():
    patch = validate_payload(model=Agent, payload=json_body(), policy=AGENT_POLICY, partial=False)
    patch.pop("is_active", None)
    agent = agent_service.create_agent(g.actor, **patch)
    return ok(201, agent=agent.to_dict())


@agents_bp.get("/stats")
@require_auth
@service_errors("Failed to fetch agent statistics")
def agent_stats():
    return ok(stats=agent_service.get_agent_stats())


@agents_bp.get("/<int:agent_id>")
@require_auth
@service_errors("Failed to fetch agent")
def get_agent(agent_id: int):
    agent = agent_service.get_agent(agent_id)
    return ok(agent=agent.to_dict())


@agents_bp.patch("/<int:agent_id>")
@require_auth
@service_errors("Failed to update agent")
def update_agent(agent_id: int):
    patch = validate_payload(model=Agent, payload=json_body(), policy=AGENT_POLICY, partial=True)
    agent = agent_service.update_agent(g.actor, agent_id, **patch)
    return ok(agent=agent.to_dict())


@agents_bp.post("/<int:agent_id>/toggle")
@require_auth
@service_errors("Failed to update agent status")
def toggle_agent(agent_id: int):
    agent = agent_service.toggle_agent_status(g.actor, agent_id)
    return ok(agent=agent.to_dict())


@agents_bp.delete("/<int:agent_id>")
@require_auth
@service_errors("Failed to delete agent")
def delete_agent(agent_id: int):
    agent_service.delete_agent(g.actor, agent_id)
    return ok(message="Agent deleted successfully")


@agents_bp.get("/<int:agent_id>/stock")
@require_auth
@service_errors("Failed to fetch agent stock")
def list_agent_stock(agent_id: int):
    rows = agent_stock_service.get_agent_stock(agent_id)
    return ok(stock=[row.to_dict() for row in rows])


@agents_bp.post("/<int:agent_id>/stock")
@require_auth
@service_errors("Failed to assign stock to agent")
def assign_stock(agent_id: int):
    """
    Request body:
    {
        "product_id": int,
        "quantity": int (> 0)
    }
    """
    data = json_body()
    stock = agent_stock_service.assign_stock_to_agent(
        g.actor, agent_id, data["product_id"], data["quantity"]
    )
    return ok(201, agent_stock=stock.to_dict())


@agents_bp.put("/<int:agent_id>/stock/<int:product_id>/issues")
@require_auth
@service_errors("Failed to update stock issues")
def set_stock_issues(agent_id: int, product_id: int):
    """
    Set (not add to) the defective and/or missing counters.

    Request body:
    {
        "defective": int (optional, absolute value),
        "missing": int (optional, absolute value)
    }
    """
    data = json_body()
    stock = agent_stock_service.update_agent_stock_issues(
        g.actor,
        agent_id,
        product_id,
        defective=data.get("defective"),
        missing=data.get("missing"),
    )
    return ok(agent_stock=stock.to_dict())


@agents_bp.post("/<int:agent_id>/stock/<int:product_id>/reconcile")
@require_auth
@service_errors("Failed to reconcile stock")
def reconcile_stock(agent_id: int, product_id: int):
    """
    Request body:
    {
        "returned_quantity": int (optional),
        "defective": int (optional),
        "missing": int (optional),
        "notes": str (optional)
    }
    """
    data = json_body()
    stock = agent_stock_service.reconcile_agent_stock(
        g.actor,
        agent_id,
        product_id,
        returned_quantity=data.get("returned_quantity"),
        defective=data.get("defective"),
        missing=data.get("missing"),
        notes=data.get("notes"),
    )
    return ok(agent_stock=stock.to_dict(), message="Stock reconciled successfully")


@agents_bp.get("/<int:agent_id>/stock-value")
@require_auth
@service_errors("Failed to compute stock value")
def stock_value(agent_id: int):
    require_stock_operator(g.actor)
    return ok(**agent_stock_service.get_agent_stock_value(agent_id))


@agents_bp.get("/<int:agent_id>/settlements")
@require_auth
@service_errors("Failed to fetch settlements")
def list_settlements(agent_id: int):
    require_stock_operator(g.actor)
    agent_service.get_agent(agent_id)
    settlements = settlement_service.list_settlements(agent_id)
    return ok(settlements=[s.to_dict() for s in settlements])


@agents_bp.post("/<int:agent_id>/settlements")
@require_auth
@service_errors("Failed to create settlement")
def create_settlement(agent_id: int):
    """
    Request body (all amounts in cents):
    {
        "stock_value_cents": int,
        "cash_collected_cents": int,
        "cash_returned_cents": int,
        "adjustments_cents": int (optional, may be negative),
        "notes": str (optional)
    }
    """
    data = json_body()
    settlement = settlement_service.create_settlement(
        g.actor,
        agent_id,
        stock_value_cents=data["stock_value_cents"],
        cash_collected_cents=data["cash_collected_cents"],
        cash_returned_cents=data["cash_returned_cents"],
        adjustments_cents=data.get("adjustments_cents", 0),
        notes=data.get("notes"),
    )
    return ok(201, settlement=settlement.to_dict())

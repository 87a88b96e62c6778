# Overview: Order intake, status, notes and follow-up API.

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..services import order_service
from . import json_body, ok, parse_datetime_field, service_errors


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@service_errors("Failed to create order")
def create_order():
    """
    Public order intake (embedded order form). The order is assigned to the
    next sales rep in the rotation, or left unassigned if none is active.

    Request body:
    {
        "customer_name": str,
        "customer_phone": str,
        "delivery_address": str (optional),
        "items": [{"product_id": int, "quantity": int}, ...]
    }
    """
    data = json_body()
    order = order_service.create_order(
        customer_name=data.get("customer_name"),
        customer_phone=data.get("customer_phone"),
        delivery_address=data.get("delivery_address"),
        items=data.get("items"),
    )
    return ok(201, order=order.to_dict())


@orders_bp.get("")
@require_auth
@service_errors("Failed to fetch orders")
def list_orders():
    orders = order_service.list_orders(
        g.actor,
        status=request.args.get("status"),
        assigned_to_id=request.args.get("assigned_to_id", type=int),
        agent_id=request.args.get("agent_id", type=int),
    )
    return ok(orders=[order.to_dict() for order in orders])


@orders_bp.get("/follow-ups")
@require_auth
@service_errors("Failed to fetch follow-ups")
def due_follow_ups():
    notes = order_service.list_due_follow_ups(g.actor)
    return ok(follow_ups=[note.to_dict() for note in notes])


@orders_bp.get("/<int:order_id>")
@require_auth
@service_errors("Failed to fetch order")
def get_order(order_id: int):
    return ok(order=order_service.get_order(g.actor, order_id).to_dict())


@orders_bp.patch("/<int:order_id>/status")
@require_auth
@service_errors("Failed to update order status")
def update_status(order_id: int):
    """
    Request body:
    {
        "status": str,
        "agent_id": int | null (optional; omit to keep the current agent)
    }
    """
    data = json_body()
    kwargs = {}
    if "agent_id" in data:
        kwargs["agent_id"] = data["agent_id"]
    order = order_service.update_order_status(g.actor, order_id, data["status"], **kwargs)
    return ok(order=order.to_dict())


@orders_bp.post("/<int:order_id>/notes")
@require_auth
@service_errors("Failed to add order note")
def add_note(order_id: int):
    """
    Request body:
    {
        "note": str,
        "is_follow_up": bool (optional),
        "follow_up_date": ISO-8601 str (optional; implies is_follow_up)
    }
    """
    data = json_body()
    note = order_service.add_order_note(
        g.actor,
        order_id,
        data["note"],
        is_follow_up=data.get("is_follow_up", False),
        follow_up_date=parse_datetime_field("follow_up_date", data.get("follow_up_date")),
    )
    return ok(201, note=note.to_dict())

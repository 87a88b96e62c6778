# Overview: Admin API for the sales-rep rotation.

from flask import Blueprint, g

from ..decorators import require_auth
from ..services import round_robin_service
from ..services.permission_service import require_admin
from . import fail, json_body, ok, service_errors


round_robin_bp = Blueprint("round_robin", __name__, url_prefix="/api/round-robin")


@round_robin_bp.get("")
@require_auth
@service_errors("Failed to load round-robin status")
def rotation_status():
    require_admin(g.actor)
    return ok(**round_robin_service.get_rotation_status())


@round_robin_bp.post("/next")
@require_auth
@service_errors("Failed to pick next sales rep")
def next_rep():
    """
    Advance the rotation without creating an order (manual lead hand-out).
    """
    require_admin(g.actor)
    rep = round_robin_service.get_next_sales_rep()
    if rep is None:
        return fail("No active sales reps available", 409)
    return ok(rep=rep.to_dict())


@round_robin_bp.post("/skip")
@require_auth
@service_errors("Failed to skip rep")
def skip_rep():
    result = round_robin_service.skip_current_rep(g.actor)
    return ok(
        skipped_rep=result["skipped_rep"].to_dict(),
        next_rep=result["next_rep"].to_dict(),
        message=result["message"],
    )


@round_robin_bp.post("/reset")
@require_auth
@service_errors("Failed to reset sequence")
def reset_sequence():
    round_robin_service.reset_round_robin_sequence(g.actor)
    return ok(message="Round-robin sequence has been reset")


@round_robin_bp.patch("/reps/<int:rep_id>")
@require_auth
@service_errors("Failed to toggle inclusion")
def toggle_rep(rep_id: int):
    """
    Request body:
    {
        "is_active": bool
    }
    """
    data = json_body()
    rep = round_robin_service.toggle_rep_inclusion(g.actor, rep_id, data["is_active"])
    verb = "included in" if rep.is_active else "excluded from"
    return ok(user=rep.to_dict(), message=f"{rep.name} {verb} round-robin")

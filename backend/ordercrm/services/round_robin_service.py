"""
Round-robin assignment of orders to sales reps.

ROTATION INVARIANTS:
- Eligible reps: role == SALES_REP and is_active, read in ONE canonical
  order (config ROTATION_ORDER_BY, ties broken by id). Assignment, skip and
  preview all use that same order.
- The cursor is the index of the LAST assigned rep, stored in
  system_settings under ROUND_ROBIN_KEY. -1 (or no row) means nothing has
  been assigned since the last reset, so the next pick is index 0.
- next = (cursor + 1) mod N. With a stable set of N reps every rep is picked
  exactly once per N consecutive calls.
- Read-increment-write runs in one transaction with the cursor row locked.
  The cursor lives in the database, never in process memory, so every app
  instance shares one rotation.
- Toggling a rep in or out does not move the cursor; N changes and the
  modulo absorbs it.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_SALES_REP
from ..validation import NoEligibleReps, NotFoundError, ValidationError
from . import settings_service
from .concurrency import run_with_retry
from .permission_service import Actor, require_admin


ROUND_ROBIN_KEY = "last_assigned_sales_rep_index"
UNSET_INDEX = -1

# Two first-time callers can both try to insert the cursor row.
ROTATION_RETRY_ON = (OperationalError, StaleDataError, IntegrityError)


def _ordering():
    order_by = current_app.config.get("ROTATION_ORDER_BY", "created_at")
    if order_by == "created_at":
        return (User.created_at.asc(), User.id.asc())
    if order_by == "name":
        return (User.name.asc(), User.id.asc())
    raise ValueError(f"Unsupported ROTATION_ORDER_BY: {order_by!r}")


def _next_index(current: int, count: int) -> int:
    return (current + 1) % count


def list_eligible_reps() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.role == ROLE_SALES_REP, User.is_active.is_(True))
        .order_by(*_ordering())
        .all()
    )


def get_current_index() -> int:
    """Persisted cursor without advancing it; -1 when unset."""
    return settings_service.get_int_setting(ROUND_ROBIN_KEY, UNSET_INDEX)


def advance_rotation() -> User | None:
    """
    Core rotation step without retry or commit.

    Flushes the new cursor into the caller's transaction. Used directly by
    order creation so the cursor and the order's assigned_to_id commit
    together.
    """
    cursor = settings_service.lock_setting(ROUND_ROBIN_KEY)
    reps = list_eligible_reps()
    if not reps:
        return None

    current = settings_service.parse_int(cursor, UNSET_INDEX)
    index = _next_index(current, len(reps))
    settings_service.set_setting(ROUND_ROBIN_KEY, index, existing=cursor)

    current_app.logger.info(
        "Round-robin advanced %d -> %d of %d; next rep %s", current, index, len(reps), reps[index].id
    )
    return reps[index]


def get_next_sales_rep() -> User | None:
    """
    Pick the next eligible sales rep and persist the advanced cursor.

    Returns None when no rep is eligible; the caller leaves its order
    unassigned in that case.
    """
    def _op():
        rep = advance_rotation()
        db.session.commit()
        return rep

    return run_with_retry(_op, retry_on=ROTATION_RETRY_ON)


def peek_next_sales_rep() -> User | None:
    reps = list_eligible_reps()
    if not reps:
        return None
    return reps[_next_index(get_current_index(), len(reps))]


def get_rotation_status() -> dict:
    reps = list_eligible_reps()
    current = get_current_index()
    next_index = _next_index(current, len(reps)) if reps else None
    return {
        "order_by": current_app.config.get("ROTATION_ORDER_BY", "created_at"),
        "last_assigned_index": current,
        "next_index": next_index,
        "next_rep": reps[next_index].to_dict() if reps else None,
        "reps": [rep.to_dict() for rep in reps],
    }


def skip_current_rep(actor: Actor | None) -> dict:
    """
    Pass over the rep who is next in line without assigning anything.

    The cursor advances one position as if that rep had been assigned.
    Returns the skipped rep and the rep now next in line.
    """
    require_admin(actor)

    def _op():
        cursor = settings_service.lock_setting(ROUND_ROBIN_KEY)
        reps = list_eligible_reps()
        if not reps:
            raise NoEligibleReps("No active sales reps available")

        current = settings_service.parse_int(cursor, UNSET_INDEX)
        skipped_index = _next_index(current, len(reps))
        settings_service.set_setting(ROUND_ROBIN_KEY, skipped_index, existing=cursor)
        db.session.commit()

        skipped = reps[skipped_index]
        next_rep = reps[_next_index(skipped_index, len(reps))]
        current_app.logger.info(
            "User %s skipped rep %s in rotation; next is %s", actor.user_id, skipped.id, next_rep.id
        )
        return {
            "skipped_rep": skipped,
            "next_rep": next_rep,
            "message": f"Skipped {skipped.name}; next in line is {next_rep.name}",
        }

    return run_with_retry(_op, retry_on=ROTATION_RETRY_ON)


def reset_round_robin_sequence(actor: Actor | None) -> None:
    """Restart the rotation so the next assignment goes to the first rep. Idempotent."""
    require_admin(actor)

    def _op():
        settings_service.set_setting(ROUND_ROBIN_KEY, UNSET_INDEX)
        db.session.commit()

    run_with_retry(_op, retry_on=ROTATION_RETRY_ON)
    current_app.logger.info("User %s reset the round-robin sequence", actor.user_id)


def toggle_rep_inclusion(actor: Actor | None, rep_id: int, is_active: bool) -> User:
    require_admin(actor)
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be true or false")

    def _op():
        rep = db.session.get(User, rep_id)
        if rep is None or rep.role != ROLE_SALES_REP:
            raise NotFoundError("Sales rep not found")
        rep.is_active = is_active
        db.session.commit()
        return rep

    rep = run_with_retry(_op)
    current_app.logger.info(
        "Rep %s %s round-robin", rep.id, "included in" if is_active else "excluded from"
    )
    return rep

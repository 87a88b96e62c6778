# Overview: Caller identity and role checks used by every privileged service operation.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import User
from ..models.auth import ALL_ROLES, ROLE_ADMIN, ROLE_INVENTORY_MANAGER, ROLE_SALES_REP
from ..validation import AuthorizationError


# Roles allowed to move stock to and from agents
STOCK_ROLES = (ROLE_ADMIN, ROLE_INVENTORY_MANAGER)


@dataclass(frozen=True)
class Actor:
    """Authenticated caller as handed over by the upstream auth layer."""
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def make_actor(*, user_id: int) -> Actor:
    """
    Resolve the caller's role from the users table.

    Inactive or unknown users never get an actor.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise AuthorizationError("Unauthorized - Please log in")
    return Actor(user_id=user.id, role=user.role)


def require_role(actor: Actor | None, *roles: str) -> Actor:
    if actor is None:
        raise AuthorizationError("Unauthorized - Please log in")
    if actor.role not in roles:
        if roles == (ROLE_ADMIN,):
            raise AuthorizationError("Unauthorized - Admin access required")
        raise AuthorizationError("Insufficient permissions")
    return actor


def require_admin(actor: Actor | None) -> Actor:
    return require_role(actor, ROLE_ADMIN)


def require_stock_operator(actor: Actor | None) -> Actor:
    return require_role(actor, *STOCK_ROLES)


def require_order_access(actor: Actor | None, order) -> Actor:
    """Sales reps only reach orders assigned to them; staff roles reach every order."""
    actor = require_role(actor, *ALL_ROLES)
    if actor.role == ROLE_SALES_REP and order.assigned_to_id != actor.user_id:
        raise AuthorizationError("Unauthorized - Sales reps can only access their own orders")
    return actor

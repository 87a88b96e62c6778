from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ROLE_ADMIN = "ADMIN"
ROLE_SALES_REP = "SALES_REP"
ROLE_INVENTORY_MANAGER = "INVENTORY_MANAGER"
ALL_ROLES = {ROLE_ADMIN, ROLE_SALES_REP, ROLE_INVENTORY_MANAGER}


class User(db.Model):
    """
    Staff accounts: admins, inventory managers and sales reps.

    Sales reps with is_active=True are the participants of the order
    rotation. Credentials live with the upstream auth layer, not here.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(32), nullable=False, default=ROLE_SALES_REP)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Python-side default keeps sub-second precision; rotation order depends on it.
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.name!r} role={self.role}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }

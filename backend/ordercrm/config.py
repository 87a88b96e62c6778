# backend/ordercrm/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ordercrm.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///ordercrm.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Canonical ordering of eligible sales reps for the rotation: "created_at" or "name".
    # Both the assignment path and the admin skip path read reps in this order.
    ROTATION_ORDER_BY = os.environ.get("ROTATION_ORDER_BY", "created_at")

    # When False, assigning more stock to an agent than the warehouse holds is rejected.
    ALLOW_NEGATIVE_WAREHOUSE_STOCK = _env_bool("ALLOW_NEGATIVE_WAREHOUSE_STOCK", False)

    DEFAULT_LOW_STOCK_THRESHOLD = int(os.environ.get("DEFAULT_LOW_STOCK_THRESHOLD", "10"))

    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "3"))

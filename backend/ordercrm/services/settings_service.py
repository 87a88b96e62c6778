"""
System settings key-value store.

Values are persisted as text. Writers flush but do not commit: the caller
owns the transaction so a setting change can commit together with the
domain change that depends on it.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import SystemSetting
from .concurrency import lock_for_update


def get_setting(key: str) -> SystemSetting | None:
    return db.session.query(SystemSetting).filter_by(key=key).first()


def lock_setting(key: str) -> SystemSetting | None:
    """Read a setting row with a write lock held until the transaction ends."""
    return lock_for_update(db.session.query(SystemSetting).filter_by(key=key)).first()


def parse_int(setting: SystemSetting | None, default: int) -> int:
    if setting is None or setting.value is None:
        return default
    try:
        return int(setting.value)
    except ValueError:
        current_app.logger.warning(
            "Setting %s holds non-integer value %r; using %d", setting.key, setting.value, default
        )
        return default


def get_int_setting(key: str, default: int) -> int:
    return parse_int(get_setting(key), default)


def set_setting(key: str, value: str | int | None, *, existing: SystemSetting | None = None) -> SystemSetting:
    """
    Upsert a setting.

    Pass `existing` when the row was already read under lock_setting() so
    the write happens against the locked row.
    """
    if not key:
        raise ValueError("Setting key is required")

    setting = existing if existing is not None else lock_setting(key)
    stored = None if value is None else str(value)
    if setting is None:
        setting = SystemSetting(key=key, value=stored)
        db.session.add(setting)
    else:
        setting.value = stored

    db.session.flush()
    return setting

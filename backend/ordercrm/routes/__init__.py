# Overview: Shared response helpers; every API response carries a "success" discriminator.

from functools import wraps

from flask import current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..time_utils import parse_iso_datetime
from ..validation import AuthorizationError, ConflictError, NotFoundError, ValidationError


def ok(status: int = 200, **payload):
    return jsonify({"success": True, **payload}), status


def fail(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def status_for(exc: ValueError) -> int:
    if isinstance(exc, AuthorizationError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    return 400


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def service_errors(failure_message: str):
    """
    Translate service exceptions into result responses.

    Business errors (ValueError family) roll back and return their own
    message. Store failures roll back, are logged with traceback and return
    a generic message.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except KeyError as e:
                db.session.rollback()
                return fail(f"Missing required field: {e.args[0]}", 400)
            except ValueError as e:
                db.session.rollback()
                return fail(str(e), status_for(e))
            except SQLAlchemyError:
                db.session.rollback()
                current_app.logger.exception(failure_message)
                return fail(failure_message, 500)

        return decorated_function
    return decorator


def parse_datetime_field(name: str, value):
    """ISO-8601 string from a request, as a UTC-naive datetime (or None)."""
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 string")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime") from None

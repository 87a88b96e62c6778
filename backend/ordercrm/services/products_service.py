# backend/ordercrm/services/products_service.py
"""
Product catalog and warehouse inflow.

- Products are created with an opening stock; afterwards current_stock only
  moves through add_stock(), agent assignment, reconciliation returns and
  deliveries.
- SKU is unique across the catalog.
- Products are never hard-deleted: is_active=False hides them from the
  order form while keeping order history intact.
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Product
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    optional_non_negative_int,
    require_amount_cents,
    require_non_negative_int,
    require_positive_int,
)
from .concurrency import lock_for_update, run_with_retry
from .permission_service import Actor, require_admin, require_stock_operator


PRODUCT_MUTABLE_FIELDS = {
    "sku", "name", "description", "price_cents", "cost_cents", "low_stock_threshold", "is_active",
}


def _normalize_patch(patch: dict) -> dict:
    unknown = set(patch) - PRODUCT_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    clean = dict(patch)
    for field in ("price_cents", "cost_cents"):
        if field in clean:
            clean[field] = require_amount_cents(field, clean[field])
    if "low_stock_threshold" in clean:
        clean["low_stock_threshold"] = optional_non_negative_int(
            "low_stock_threshold", clean["low_stock_threshold"]
        )
    for field in ("sku", "name"):
        if field in clean and not (clean[field] or "").strip():
            raise ValidationError(f"{field} cannot be blank")
    return clean


def _require_unique_sku(sku: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists.")


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def list_products(*, active_only: bool = False) -> list[Product]:
    """
    All products newest first, or only active ones by name for the order form.
    """
    query = db.session.query(Product)
    if active_only:
        return query.filter(Product.is_active.is_(True)).order_by(Product.name.asc(), Product.id.asc()).all()
    return query.order_by(Product.created_at.desc(), Product.id.desc()).all()


def create_product(actor: Actor | None, *, patch: dict, opening_stock=0) -> Product:
    require_admin(actor)
    patch = _normalize_patch(patch)
    opening_stock = require_non_negative_int("opening_stock", opening_stock)
    for field in ("sku", "name"):
        if not patch.get(field):
            raise ValidationError(f"{field} is required")

    def _op():
        _require_unique_sku(patch["sku"])
        product = Product(current_stock=opening_stock)
        apply_product_patch(product, patch)
        db.session.add(product)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    current_app.logger.info(
        "User %s created product %s (%s) with opening stock %d",
        actor.user_id, product.id, product.sku, opening_stock,
    )
    return product


def update_product(actor: Actor | None, product_id: int, patch: dict) -> Product:
    """current_stock is not patchable; use add_stock() for inflow."""
    require_admin(actor)
    patch = _normalize_patch(patch)

    def _op():
        product = get_product(product_id)
        if "sku" in patch and patch["sku"] != product.sku:
            _require_unique_sku(patch["sku"], exclude_id=product.id)
        apply_product_patch(product, patch)
        db.session.commit()
        return product

    product = run_with_retry(_op)
    current_app.logger.info(
        "User %s updated product %s: %s", actor.user_id, product.id, ", ".join(sorted(patch))
    )
    return product


def add_stock(actor: Actor | None, product_id: int, quantity) -> Product:
    """Receive `quantity` units into the warehouse."""
    require_stock_operator(actor)
    quantity = require_positive_int("quantity", quantity)

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise NotFoundError("Product not found")
        product.current_stock += quantity
        db.session.commit()
        return product

    product = run_with_retry(_op)
    current_app.logger.info(
        "User %s added %d units of product %s (warehouse now %d)",
        actor.user_id, quantity, product.id, product.current_stock,
    )
    return product

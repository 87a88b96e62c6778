# Overview: Product catalog and warehouse inflow API.

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..models import Product
from ..services import products_service
from ..validation import ModelValidationPolicy, validate_payload
from . import json_body, ok, service_errors


products_bp = Blueprint("products", __name__, url_prefix="/api/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "price_cents", "cost_cents", "low_stock_threshold", "is_active"},
    required_on_create={"sku", "name"},
)


@products_bp.get("")
@require_auth
@service_errors("Failed to fetch products")
def list_products():
    active_only = request.args.get("active", "").strip().lower() in {"1", "true", "yes"}
    products = products_service.list_products(active_only=active_only)
    return ok(products=[p.to_dict() for p in products])


@products_bp.post("")
@require_auth
@service_errors("Failed to create product")
def create_product():
    """
    Request body:
    {
        "sku": str, "name": str, "description": str (optional),
        "price_cents": int, "cost_cents": int,
        "low_stock_threshold": int | null (optional),
        "opening_stock": int (optional, default 0)
    }
    """
    payload = json_body()
    opening_stock = payload.pop("opening_stock", 0)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    product = products_service.create_product(g.actor, patch=patch, opening_stock=opening_stock)
    return ok(201, product=product.to_dict())


@products_bp.get("/<int:product_id>")
@require_auth
@service_errors("Failed to fetch product")
def get_product(product_id: int):
    return ok(product=products_service.get_product(product_id).to_dict())


@products_bp.patch("/<int:product_id>")
@require_auth
@service_errors("Failed to update product")
def update_product(product_id: int):
    patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_POLICY, partial=True)
    product = products_service.update_product(g.actor, product_id, patch)
    return ok(product=product.to_dict())


@products_bp.post("/<int:product_id>/stock")
@require_auth
@service_errors("Failed to add stock")
def add_stock(product_id: int):
    data = json_body()
    product = products_service.add_stock(g.actor, product_id, data["quantity"])
    return ok(product=product.to_dict())

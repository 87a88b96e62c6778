"""
Notification hooks fired after stock and order changes commit.

Delivery transport (web push, service worker) is handled elsewhere; these
hooks decide WHAT should be sent and log it. They are fire-and-forget: a
failing hook is logged and never undoes or fails the caller's operation.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order, Product


def _threshold_for(product: Product) -> int:
    if product.low_stock_threshold is not None:
        return product.low_stock_threshold
    return current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 10)


def check_low_stock(product_id: int) -> dict | None:
    """
    Return the low-stock alert for a product, or None when stock is healthy.
    """
    try:
        product = db.session.get(Product, product_id)
        if product is None:
            return None

        threshold = _threshold_for(product)
        if product.current_stock > threshold:
            return None

        alert = {
            "type": "LOW_STOCK",
            "product_id": product.id,
            "product_name": product.name,
            "current_stock": product.current_stock,
            "threshold": threshold,
        }
        current_app.logger.warning(
            "Low stock: %s (id=%s) at %d, threshold %d",
            product.name, product.id, product.current_stock, threshold,
        )
        return alert
    except SQLAlchemyError:
        current_app.logger.exception("Low stock check failed for product %s", product_id)
        return None


def notify_order_assigned(order: Order) -> dict | None:
    if order.assigned_to_id is None:
        current_app.logger.warning("Order %s stored without a sales rep", order.order_number)
        return None

    message = {
        "type": "ORDER_ASSIGNED",
        "user_id": order.assigned_to_id,
        "title": "New Order Assigned",
        "body": f"Order {order.order_number} from {order.customer_name} has been assigned to you",
        "order_id": order.id,
    }
    current_app.logger.info("Order %s assigned to user %s", order.order_number, order.assigned_to_id)
    return message

"""
Customer orders.
"""

from storefront.orders.service import OrderService, generate_order_id, tracking_view, visible_payment

__all__ = ["OrderService", "generate_order_id", "tracking_view", "visible_payment"]

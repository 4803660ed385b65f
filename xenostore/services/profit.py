"""Profit accounting: spreading a cart-level coupon discount over the order's line items."""
from typing import Sequence

from xenostore.models import Order, OrderItem


def allocate_proportional_discount(items: Sequence[OrderItem], coupon_discount: float) -> Sequence[OrderItem]:
    """
    Sets revenue_after_discount and profit on every item.
    Each item carries the discount in proportion to its share of pre-discount revenue,
    so per-item profit adds up to the discounted order total. A single item is the
    same formula with proportion 1.
    """
    total_revenue = sum(item.original_revenue for item in items)
    coupon_discount = coupon_discount or 0
    final_revenue = max(0, total_revenue - coupon_discount)
    for item in items:
        original = item.original_revenue
        if total_revenue == 0 or coupon_discount <= 0:
            item.revenue_after_discount = original
        else:
            # original / total * final, multiplied first to keep round numbers round
            item.revenue_after_discount = original * final_revenue / total_revenue
        item.profit = item.revenue_after_discount - (item.cost_price or 0) * (item.quantity or 0)
    return items


def apply_order_profit(order: Order, items: Sequence[OrderItem] | None = None) -> Order:
    """Allocates the order's coupon discount over its items and stores the order totals."""
    items = order.items if items is None else items
    allocate_proportional_discount(items, order.coupon_discount or 0)
    total_revenue = sum(item.original_revenue for item in items)
    total_cost = sum((item.cost_price or 0) * (item.quantity or 0) for item in items)
    final_revenue = max(0, total_revenue - (order.coupon_discount or 0))
    order.total_cost = total_cost
    order.total_revenue = final_revenue
    order.total_profit = final_revenue - total_cost
    return order

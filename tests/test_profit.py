"""Proportional allocation of a coupon discount over order items."""
import pytest

from xenostore.models import Order, OrderItem
from xenostore.services.profit import allocate_proportional_discount, apply_order_profit


def _item(product_id, unit_price, quantity=1, cost_price=0):
    return OrderItem(product_id=product_id, unit_price=unit_price, quantity=quantity, cost_price=cost_price)


def test_discount_split_by_revenue_share():
    a = _item("a", 1000, cost_price=600)
    b = _item("b", 250, quantity=2, cost_price=200)
    allocate_proportional_discount([a, b], 150)
    # 1000/1500 and 500/1500 of the 1350 that was actually paid
    assert a.revenue_after_discount == pytest.approx(900)
    assert b.revenue_after_discount == pytest.approx(450)
    assert a.profit == pytest.approx(300)
    assert b.profit == pytest.approx(50)


def test_item_revenues_add_up_to_final_total():
    items = [_item("a", 333), _item("b", 333), _item("c", 334)]
    allocate_proportional_discount(items, 100)
    assert sum(i.revenue_after_discount for i in items) == pytest.approx(900)


def test_single_item_takes_whole_discount():
    item = _item("solo", 500, quantity=3, cost_price=100)
    allocate_proportional_discount([item], 200)
    assert item.revenue_after_discount == pytest.approx(1300)
    assert item.profit == pytest.approx(1000)


def test_no_discount_keeps_original_revenue():
    item = _item("a", 100, quantity=2, cost_price=30)
    allocate_proportional_discount([item], 0)
    assert item.revenue_after_discount == 200
    assert item.profit == 140


def test_zero_revenue_order_does_not_divide_by_zero():
    items = [_item("free", 0, cost_price=10)]
    allocate_proportional_discount(items, 50)
    assert items[0].revenue_after_discount == 0
    assert items[0].profit == -10


def test_apply_order_profit_sets_totals():
    order = Order(user_id="u1", payment_method="esewa", coupon_discount=150)
    items = [_item("a", 1000, cost_price=600), _item("b", 500, cost_price=400)]
    apply_order_profit(order, items)
    assert order.total_revenue == pytest.approx(1350)
    assert order.total_cost == pytest.approx(1000)
    assert order.total_profit == pytest.approx(350)
    assert sum(i.profit for i in items) == pytest.approx(order.total_profit)

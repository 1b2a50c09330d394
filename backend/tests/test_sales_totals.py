"""订单金额、收款、销售指标与提成"""
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from erp.services.sales import (
    to_money, calculate_order_totals, apply_payment, refresh_payment_status,
    calculate_sales_metrics, calculate_commission
)
from erp.services.vendors import calculate_vendor_performance

ITEMS = [{"quantity": 2, "unit_price": 10.5}, {"quantity": 1, "unit_price": 4}]


def test_to_money_rounds_half_up():
    assert to_money(None) == Decimal("0.00")
    assert to_money(2.005) == Decimal("2.01")
    assert to_money("10") == Decimal("10.00")


def test_totals_with_tax():
    totals = calculate_order_totals(ITEMS, tax_rate=8)
    assert totals == {
        "subtotal": Decimal("25.00"),
        "tax_amount": Decimal("2.00"),
        "discount_amount": Decimal("0.00"),
        "total": Decimal("27.00"),
    }


def test_percentage_discount():
    totals = calculate_order_totals(ITEMS, discount_type="percentage", discount_value=10, tax_rate=8)
    assert totals["discount_amount"] == Decimal("2.50")
    assert totals["total"] == Decimal("24.50")


def test_fixed_discount_and_objects():
    items = [SimpleNamespace(quantity=q["quantity"], unit_price=q["unit_price"]) for q in ITEMS]
    totals = calculate_order_totals(items, tax_rate=8, discount_type="fixed", discount_value=5)
    assert totals["total"] == Decimal("22.00")


def test_payment_progression():
    order = SimpleNamespace(total=Decimal("110.00"), amount_paid=Decimal("0"), payment_status="unpaid")
    apply_payment(order, 50, "cash")
    assert order.payment_status == "partial"
    assert order.amount_paid == Decimal("50.00")
    assert order.payment_method == "cash"

    apply_payment(order, 60, payment_reference="CHK-1", payment_date=datetime(2024, 1, 2))
    assert order.payment_status == "paid"
    assert order.amount_paid == Decimal("110.00")
    assert order.payment_reference == "CHK-1"
    assert order.payment_date == datetime(2024, 1, 2)


@pytest.mark.parametrize("total, paid, expected", [
    ("200.00", "100.00", "partial"),
    ("100.00", "100.00", "paid"),
    ("80.00", "100.00", "paid"),
    ("0.00", "0.00", "unpaid"),
])
def test_refresh_payment_status(total, paid, expected):
    order = SimpleNamespace(total=Decimal(total), amount_paid=Decimal(paid), payment_status="paid")
    refresh_payment_status(order)
    assert order.payment_status == expected


@pytest.mark.parametrize("amount", [0, -5])
def test_payment_must_be_positive(amount):
    order = SimpleNamespace(total=Decimal("10"), amount_paid=Decimal("0"), payment_status="unpaid")
    with pytest.raises(HTTPException) as exc:
        apply_payment(order, amount)
    assert exc.value.status_code == 400


def _sale(id, customer_id, total, status="pending", payment_status="unpaid", items=(), commission=0):
    return SimpleNamespace(
        id=id, order_number=f"ORD{id:05d}", order_date=datetime(2024, 1, id),
        customer_id=customer_id, customer_code=None, total=total,
        status=status, payment_status=payment_status, items=list(items),
        commission_amount=commission)


def _item(product_id, quantity, price):
    return SimpleNamespace(
        product_id=product_id, product_name=f"P{product_id}", product_sku=f"SKU{product_id}",
        quantity=quantity, unit_price=price)


def test_sales_metrics():
    sales = [
        _sale(1, 1, 100, status="delivered", payment_status="paid", items=[_item(1, 10, 10)]),
        _sale(2, 2, 300, items=[_item(2, 1, 300)]),
        _sale(3, 1, 50, status="cancelled", items=[_item(1, 5, 10)]),
    ]
    customers = {1: SimpleNamespace(name="Evergreen", code="CUST001")}
    metrics = calculate_sales_metrics(sales, customers)

    assert metrics["total_sales"] == 3
    assert metrics["total_revenue"] == 450
    assert metrics["average_order_value"] == 150
    assert metrics["payment_status_counts"] == {"paid": 1, "partial": 0, "unpaid": 2}
    assert metrics["status_counts"]["cancelled"] == 1
    assert metrics["top_products"]["by_quantity"][0]["id"] == 1
    assert metrics["top_products"]["by_revenue"][0]["id"] == 2
    assert metrics["top_customers"]["by_orders"][0]["name"] == "Evergreen"
    assert metrics["top_customers"]["by_revenue"][0]["name"] == "Unknown Customer"


def test_commission_summary():
    sales = [
        _sale(1, 1, 1000, status="delivered", payment_status="paid", commission=50),
        _sale(2, 1, 200, commission=10),
    ]
    summary = calculate_commission(7, sales)
    assert summary["sales_rep_id"] == 7
    assert summary["total_commission"] == 60
    assert summary["commission_by_status"]["delivered"] == 50
    assert summary["commission_by_payment_status"]["unpaid"] == 10
    assert [s["order_number"] for s in summary["sales"]] == ["ORD00001", "ORD00002"]


def test_vendor_performance():
    po = lambda status, expected, actual, quality=False: SimpleNamespace(
        total=100, status=status, expected_delivery_date=expected, actual_delivery_date=actual,
        has_quality_issues=quality, order_date=datetime(2024, 1, 1))
    pos = [
        po("received", datetime(2024, 1, 10), datetime(2024, 1, 9)),
        po("received", datetime(2024, 1, 10), datetime(2024, 1, 12), quality=True),
        po("submitted", datetime(2024, 1, 20), None),
        po("completed", None, None),
    ]
    log = lambda hour, direction: SimpleNamespace(timestamp=datetime(2024, 1, 1, hour), direction=direction)
    logs = [log(8, "outgoing"), log(9, "incoming"), log(10, "outgoing"), log(13, "incoming"), log(14, "incoming")]

    perf = calculate_vendor_performance(3, pos, logs)
    assert perf["total_orders"] == 4
    assert perf["total_spent"] == 400
    assert perf["on_time_delivery_rate"] == 25.0
    assert perf["order_fulfillment_rate"] == 75.0
    assert perf["quality_issue_rate"] == 25.0
    assert perf["average_response_time_hours"] == 2.0


def test_vendor_performance_without_data():
    perf = calculate_vendor_performance(1, [], [])
    assert perf["on_time_delivery_rate"] == 0.0
    assert perf["average_response_time_hours"] is None
    assert perf["last_order_date"] is None

"""客户指标、分层与信用额度建议"""
from datetime import datetime, timedelta
from types import SimpleNamespace

from erp.services.customers import (
    calculate_customer_metrics, classify_segment, calculate_credit_recommendation,
    round_to_nearest, recency_factor, payment_due_date, is_paid_on_time
)

NOW = datetime(2024, 6, 30, 12, 0)


def make_sale(days_ago, total, paid_after_days=None, due_date=None):
    order_date = NOW - timedelta(days=days_ago)
    paid = paid_after_days is not None
    return SimpleNamespace(
        order_date=order_date,
        total=total,
        due_date=due_date,
        payment_status="paid" if paid else "unpaid",
        payment_date=order_date + timedelta(days=paid_after_days) if paid else None,
    )


def test_metrics_without_orders():
    metrics = calculate_customer_metrics([], NOW)
    assert metrics["order_count"] == 0
    assert metrics["days_since_last_order"] is None
    assert metrics["payment_reliability"] == 0.0
    assert classify_segment(metrics) == "new"
    assert calculate_credit_recommendation(metrics) == 1000


def test_metrics_counts_on_time_payments():
    sales = [
        make_sale(10, 1000, paid_after_days=5),
        make_sale(40, 3000, paid_after_days=45),
        make_sale(50, 2000),
    ]
    metrics = calculate_customer_metrics(sales, NOW)
    assert metrics["total_sales"] == 6000
    assert metrics["average_order_value"] == 2000
    assert metrics["days_since_last_order"] == 10
    assert metrics["payment_reliability"] == 1 / 3


def test_due_date_prefers_order_value():
    due = NOW - timedelta(days=8)
    sale = make_sale(10, 100, paid_after_days=5, due_date=due)
    assert payment_due_date(sale) == due
    assert not is_paid_on_time(sale)
    sale.due_date = None
    assert is_paid_on_time(sale)
    assert payment_due_date(make_sale(0, 100), payment_term_days=15) == NOW + timedelta(days=15)


def test_segments():
    base = {"order_count": 3, "days_since_last_order": 10, "total_sales": 12000, "payment_reliability": 0.9}
    assert classify_segment(base) == "premium"
    assert classify_segment({**base, "payment_reliability": 0.8}) == "standard"
    assert classify_segment({**base, "total_sales": 10000}) == "standard"
    assert classify_segment({**base, "days_since_last_order": 91}) == "inactive"
    assert classify_segment({**base, "days_since_last_order": 90}) == "premium"


def test_recency_factor_bands():
    assert recency_factor(None) == 0.1
    assert recency_factor(29) == 1.0
    assert recency_factor(30) == 0.7
    assert recency_factor(59) == 0.7
    assert recency_factor(60) == 0.4
    assert recency_factor(90) == 0.1


def test_credit_recommendation():
    assert calculate_credit_recommendation({
        "order_count": 5, "payment_reliability": 1.0, "total_sales": 12000, "days_since_last_order": 10,
    }) == 17000
    assert calculate_credit_recommendation({
        "order_count": 2, "payment_reliability": 0.5, "total_sales": 5000, "days_since_last_order": 45,
    }) == 9000


def test_credit_volume_is_capped():
    small = calculate_credit_recommendation({
        "order_count": 1, "payment_reliability": 0, "total_sales": 15000, "days_since_last_order": 200,
    })
    large = calculate_credit_recommendation({
        "order_count": 1, "payment_reliability": 0, "total_sales": 900000, "days_since_last_order": 200,
    })
    # 1000 + (3 + 0.1) * 3000 = 10300
    assert small == large == 10500


def test_round_to_nearest():
    assert round_to_nearest(1250) == 1500
    assert round_to_nearest(1249.99) == 1000
    assert round_to_nearest(0) == 0

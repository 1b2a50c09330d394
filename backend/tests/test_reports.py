"""报表生成与导出"""
import io
from datetime import datetime
from types import SimpleNamespace

import pytest
from openpyxl import load_workbook

from erp.services.reports import (
    ReportError, period_key, group_by_period, get_nested_value, match_filter,
    generate_sales_performance_report, generate_inventory_turnover_report,
    generate_customer_behavior_report, generate_financial_report, generate_custom_report,
    export_report_to_csv, export_report_to_excel, tabulate_report
)


def make_item(product_id, quantity, price, name=None):
    return SimpleNamespace(
        product_id=product_id, product_name=name or f"P{product_id}",
        quantity=quantity, unit_price=price, subtotal=quantity * price)


def make_sale(customer_id, order_date, items, **kwargs):
    fields = dict(
        customer_id=customer_id, order_date=order_date, items=items,
        total=sum(i.subtotal for i in items), amount_paid=0,
        payment_status="unpaid", payment_date=None, due_date=None)
    fields.update(kwargs)
    return SimpleNamespace(**fields)


def make_txn(product_id, occurred_at, change, txn_type, location_id=1):
    return SimpleNamespace(
        product_id=product_id, location_id=location_id, occurred_at=occurred_at,
        quantity_change=change, transaction_type=txn_type)


class TestPeriodKey:
    def test_day_month_quarter_year(self):
        dt = datetime(2024, 5, 10, 15, 30)
        assert period_key(dt, "day") == "2024-05-10"
        assert period_key(dt, "month") == "2024-05"
        assert period_key(dt, "quarter") == "2024-Q2"
        assert period_key(dt, "year") == "2024"

    def test_week_starts_on_sunday(self):
        # 2024-01-03 是周三
        assert period_key(datetime(2024, 1, 3), "week") == "2023-12-31"
        assert period_key(datetime(2024, 1, 7), "week") == "2024-01-07"

    def test_unknown_group_falls_back_to_month(self):
        assert period_key(datetime(2024, 2, 29), "fortnight") == "2024-02"

    def test_group_by_period_sums(self):
        sales = [
            make_sale(1, datetime(2024, 1, 5), [make_item(1, 2, 10)]),
            make_sale(2, datetime(2024, 1, 20), [make_item(1, 1, 10), make_item(2, 3, 5)]),
            make_sale(1, datetime(2024, 2, 1), [make_item(2, 1, 5)]),
        ]
        grouped = group_by_period(sales, "month")
        assert grouped["2024-01"] == {"period": "2024-01", "count": 2, "total": 45.0, "items": 6}
        assert grouped["2024-02"]["count"] == 1


class TestSalesPerformance:
    def test_summary_and_rankings(self):
        sales = [
            make_sale(1, datetime(2024, 1, 5), [make_item(1, 2, 100)]),
            make_sale(2, datetime(2024, 1, 6), [make_item(2, 1, 50)]),
            make_sale(1, datetime(2024, 3, 1), [make_item(2, 10, 50)]),
        ]
        customers = {1: SimpleNamespace(name="Evergreen"), 2: SimpleNamespace(name="High Plains")}
        report = generate_sales_performance_report(
            sales, datetime(2024, 1, 1), datetime(2024, 1, 31), customers=customers)

        assert report["summary"] == {"total_sales": 250.0, "total_orders": 2, "average_order_value": 125.0}
        assert report["top_products"][0]["product_id"] == 1
        assert report["top_customers"][0]["customer_name"] == "Evergreen"

    def test_product_filter_keeps_orders_containing_product(self):
        sales = [
            make_sale(1, datetime(2024, 1, 5), [make_item(1, 1, 10), make_item(2, 1, 20)]),
            make_sale(2, datetime(2024, 1, 6), [make_item(3, 1, 30)]),
        ]
        report = generate_sales_performance_report(sales, product_ids=[2])
        assert report["summary"]["total_orders"] == 1
        assert report["summary"]["total_sales"] == 30.0

    def test_empty_input(self):
        report = generate_sales_performance_report([])
        assert report["summary"]["average_order_value"] == 0.0
        assert report["sales_by_period"] == {}


class TestInventoryTurnover:
    def test_turnover_from_transaction_log(self):
        products = [
            SimpleNamespace(id=1, name="Blue Dream", sku="PROD001", category="flower"),
            SimpleNamespace(id=2, name="Jars", sku="PROD002", category=None),
        ]
        start, end = datetime(2024, 1, 1), datetime(2024, 1, 31)
        txns = [
            make_txn(1, datetime(2023, 12, 1), 100, "received"),
            make_txn(1, datetime(2024, 1, 10), -30, "sold"),
            make_txn(1, datetime(2024, 1, 15), 20, "received"),
            make_txn(1, datetime(2024, 2, 15), -50, "sold"),
        ]
        report = generate_inventory_turnover_report(products, txns, start, end)

        first = report["product_metrics"][0]
        assert first["product_id"] == 1
        assert first["beginning_inventory"] == 100
        assert first["ending_inventory"] == 90
        assert first["sold"] == 30
        assert first["received"] == 20
        assert first["turnover_rate"] == pytest.approx(0.3158, abs=1e-4)
        assert first["annualized_turnover"] == pytest.approx(3.8421, abs=1e-4)
        assert first["days_on_hand"] == pytest.approx(95.0, abs=0.01)

        second = report["product_metrics"][1]
        assert second["turnover_rate"] == 0.0
        assert second["days_on_hand"] == 0.0

        categories = {c["category"]: c for c in report["category_metrics"]}
        assert set(categories) == {"flower", "Uncategorized"}
        assert report["summary"]["total_sold"] == 30

    def test_category_and_location_filters(self):
        products = [
            SimpleNamespace(id=1, name="A", sku="A", category="flower"),
            SimpleNamespace(id=2, name="B", sku="B", category="supplies"),
        ]
        txns = [
            make_txn(1, datetime(2024, 1, 2), 10, "received", location_id=1),
            make_txn(1, datetime(2024, 1, 3), 5, "received", location_id=2),
        ]
        report = generate_inventory_turnover_report(
            products, txns, datetime(2024, 1, 1), datetime(2024, 1, 31),
            location_ids=[2], categories=["flower"])
        assert [m["product_id"] for m in report["product_metrics"]] == [1]
        assert report["product_metrics"][0]["received"] == 5

    def test_empty_summary_is_zero(self):
        report = generate_inventory_turnover_report([], [], datetime(2024, 1, 1), datetime(2024, 1, 1))
        assert report["summary"]["average_turnover_rate"] == 0
        assert report["summary"]["average_days_on_hand"] == 0


class TestCustomerBehavior:
    def test_frequency_categories_and_payments(self):
        customers = [
            SimpleNamespace(id=1, name="Evergreen", code="CUST001", segment="premium"),
            SimpleNamespace(id=2, name="Idle", code="CUST002", segment=None),
        ]
        products = {
            1: SimpleNamespace(category="flower"),
            2: SimpleNamespace(category="supplies"),
        }
        sales = [
            make_sale(1, datetime(2024, 1, 1), [make_item(1, 2, 10), make_item(2, 5, 1)],
                      payment_status="paid", payment_date=datetime(2024, 1, 10)),
            make_sale(1, datetime(2024, 1, 11), [make_item(1, 1, 10)],
                      payment_status="paid", payment_date=datetime(2024, 3, 1)),
            make_sale(1, datetime(2024, 1, 21), [make_item(1, 1, 10)]),
        ]
        report = generate_customer_behavior_report(
            customers, sales, products, now=datetime(2024, 1, 31))

        top = report["customer_metrics"][0]
        assert top["customer_id"] == 1
        assert top["order_count"] == 3
        assert top["purchase_frequency_days"] == 10.0
        assert top["days_since_last_purchase"] == 10
        assert top["product_categories"][0] == {"category": "supplies", "quantity": 5}
        assert top["payment_performance"] == {"on_time_payments": 1, "late_payments": 1, "on_time_rate": 50.0}

        idle = report["customer_metrics"][1]
        assert idle["segment"] == "Uncategorized"
        assert idle["days_since_last_purchase"] is None
        assert report["summary"]["total_customers"] == 2

    def test_segment_filter(self):
        customers = [
            SimpleNamespace(id=1, name="A", code="C1", segment="premium"),
            SimpleNamespace(id=2, name="B", code="C2", segment="standard"),
        ]
        report = generate_customer_behavior_report(customers, [], segments=["standard"])
        assert [c["customer_id"] for c in report["customer_metrics"]] == [2]


class TestFinancial:
    def test_profit_margin_and_outstanding(self):
        sales = [
            make_sale(1, datetime(2024, 1, 5), [make_item(1, 1, 200)], amount_paid=50, payment_status="partial"),
            make_sale(1, datetime(2024, 2, 5), [make_item(1, 1, 100)], amount_paid=100, payment_status="paid"),
        ]
        pos = [
            SimpleNamespace(order_date=datetime(2024, 1, 2), total=150, amount_paid=0,
                            payment_status="unpaid", items=[]),
        ]
        report = generate_financial_report(sales, pos, group_by="month")

        periods = report["financials_by_period"]
        assert [p["period"] for p in periods] == ["2024-01", "2024-02"]
        assert periods[0] == {"period": "2024-01", "revenue": 200.0, "cost": 150.0, "profit": 50.0, "margin": 25.0}
        assert report["summary"]["total_profit"] == 150.0
        assert report["summary"]["overall_margin"] == 50.0
        assert report["summary"]["accounts_receivable"] == 150.0
        assert report["summary"]["accounts_payable"] == 150.0


class TestCustomReport:
    rows = [
        {"type": "sale", "total": 100.0, "status": "delivered", "customer": {"name": "Evergreen"}},
        {"type": "sale", "total": 50.0, "status": "pending", "customer": {"name": "High Plains"}},
        {"type": "sale", "total": 25.0, "status": "delivered", "customer": None},
        {"type": "purchase", "total": 60.0, "status": "received"},
    ]

    def test_requires_metric(self):
        with pytest.raises(ReportError):
            generate_custom_report(self.rows, [])

    def test_totals_without_dimensions(self):
        report = generate_custom_report(self.rows, ["revenue", "orders", "cost", "profit", "margin"])
        metrics = report["data"][0]["metrics"]
        assert metrics == {"revenue": 175.0, "orders": 3, "cost": 60.0, "profit": 115.0, "margin": 65.71}

    def test_dimensions_and_filters(self):
        report = generate_custom_report(
            self.rows, ["revenue"],
            dimensions=["customer.name"],
            filters=[{"field": "type", "operator": "equals", "value": "sale"},
                     {"field": "total", "operator": "greater_than", "value": 20}])
        groups = {r["dimensions"]["customer.name"]: r["metrics"]["revenue"] for r in report["data"]}
        assert groups == {"Evergreen": 100.0, "High Plains": 50.0, "Unknown": 25.0}

    @pytest.mark.parametrize("flt, expected", [
        ({"field": "status", "operator": "not_equals", "value": "delivered"}, 2),
        ({"field": "status", "operator": "contains", "value": "deliv"}, 2),
        ({"field": "status", "operator": "not_contains", "value": "deliv"}, 2),
        ({"field": "status", "operator": "in", "value": ["pending", "received"]}, 2),
        ({"field": "status", "operator": "not_in", "value": ["pending"]}, 3),
        ({"field": "total", "operator": "less_than", "value": 60}, 2),
        # 未知操作符不过滤
        ({"field": "total", "operator": "between", "value": 1}, 4),
    ])
    def test_filter_operators(self, flt, expected):
        assert sum(1 for row in self.rows if match_filter(row, flt)) == expected

    def test_nested_value(self):
        assert get_nested_value(self.rows[0], "customer.name") == "Evergreen"
        assert get_nested_value(self.rows[2], "customer.name") is None


class TestExport:
    report = {
        "financials_by_period": [
            {"period": "2024-01", "revenue": 200.0, "cost": 150.0, "profit": 50.0, "margin": 25.0},
        ],
        "summary": {},
    }

    def test_csv(self):
        text = export_report_to_csv(self.report)
        lines = text.strip().split("\n")
        assert lines[0] == "period,revenue,cost,profit,margin"
        assert lines[1] == "2024-01,200.0,150.0,50.0,25.0"

    def test_custom_report_table(self):
        report = generate_custom_report(
            [{"type": "sale", "total": 10.0, "status": "pending"}], ["revenue"], dimensions=["status"])
        headers, rows = tabulate_report(report)
        assert headers == ["status", "revenue"]
        assert rows == [["pending", 10.0]]

    def test_excel(self):
        content = export_report_to_excel(self.report, title="Financial")
        ws = load_workbook(io.BytesIO(content)).active
        assert ws.title == "Financial"
        assert [c.value for c in ws[1]] == ["period", "revenue", "cost", "profit", "margin"]
        assert ws.cell(row=2, column=2).value == 200.0

    def test_invalid_report(self):
        with pytest.raises(ReportError):
            export_report_to_csv({"summary": {}})
        with pytest.raises(ReportError):
            export_report_to_excel(None)

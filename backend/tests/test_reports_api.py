"""经营概览、分析报表、导出与报表定义（基于演示数据）"""
import io

import pytest
from openpyxl import load_workbook


@pytest.fixture
def seeded(client):
    resp = client.post("/api/seed")
    assert resp.status_code == 200
    assert resp.json()["skipped"] is False
    return resp.json()["created"]


def test_seed_is_idempotent(client, seeded):
    assert seeded["customers"] == 3
    assert seeded["sales"] == 3

    again = client.post("/api/seed").json()
    assert again["skipped"] is True
    assert again["created"]["users"] == 0
    assert client.get("/api/customers/").json()["total"] == 3


def test_overview(client, seeded):
    body = client.get("/api/reports/overview").json()
    assert body["customer_count"] == 3
    assert body["product_count"] == 4
    assert body["low_inventory_count"] == 1
    assert len(body["sales_trend"]) == 7
    assert len(body["recent_sales"]) == 3
    # 最近的订单在前
    assert body["recent_sales"][0]["customer_name"] == "High Plains Retail"
    assert body["accounts_payable"] > 0


def test_sales_performance(client, seeded):
    body = client.post("/api/reports/sales-performance", json={"group_by": "month"}).json()
    assert body["summary"]["total_orders"] == 3
    assert body["summary"]["total_sales"] == 19440
    assert body["top_customers"][0]["customer_name"] == "Evergreen Dispensary"


def test_inventory_turnover(client, seeded):
    body = client.post("/api/reports/inventory-turnover", json={}).json()
    assert body["summary"]["total_products"] == 4
    assert body["summary"]["total_sold"] == 114
    categories = {c["category"] for c in body["category_metrics"]}
    assert categories == {"flower", "supplies"}


def test_customer_behavior(client, seeded):
    body = client.post("/api/reports/customer-behavior", json={"segments": ["premium", "standard"]}).json()
    assert body["summary"]["total_customers"] == 2
    top = body["customer_metrics"][0]
    assert top["customer_code"] == "CUST001"
    assert top["order_count"] == 2
    assert top["payment_performance"]["on_time_payments"] == 1


def test_financial(client, seeded):
    body = client.post("/api/reports/financial", json={"group_by": "year"}).json()
    assert body["summary"]["total_revenue"] == 19440
    assert body["summary"]["accounts_receivable"] == 19440 - 11016
    assert body["summary"]["total_cost"] == 34000


def test_custom_requires_metric(client, seeded):
    resp = client.post("/api/reports/custom", json={"metrics": []})
    assert resp.status_code == 400


def test_custom_by_customer(client, seeded):
    body = client.post("/api/reports/custom", json={
        "metrics": ["revenue", "orders"],
        "dimensions": ["customer.name"],
    }).json()
    groups = {r["dimensions"]["customer.name"]: r["metrics"] for r in body["data"]}
    assert set(groups) == {"Evergreen Dispensary", "High Plains Retail"}
    assert groups["Evergreen Dispensary"]["orders"] == 2

    body = client.post("/api/reports/custom", json={
        "metrics": ["revenue"],
        "filters": [{"field": "customer.segment", "operator": "equals", "value": "standard"}],
    }).json()
    assert body["data"][0]["metrics"]["revenue"] == 3240


def test_export_csv(client, seeded):
    resp = client.post("/api/reports/export/financial", params={"format": "csv"}, json={})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.text.splitlines()[0] == "period,revenue,cost,profit,margin"


def test_export_xlsx(client, seeded):
    resp = client.post("/api/reports/export/sales_performance", params={"format": "xlsx"}, json={})
    assert resp.status_code == 200
    ws = load_workbook(io.BytesIO(resp.content)).active
    assert [c.value for c in ws[1]] == ["period", "count", "total", "items"]


def test_export_rejects_unknown(client):
    assert client.post("/api/reports/export/unknown", json={}).status_code == 400
    assert client.post("/api/reports/export/financial", params={"format": "pdf"}, json={}).status_code == 422


class TestDefinitions:
    def create(self, client, **overrides):
        payload = {
            "name": "Yearly financial",
            "report_type": "financial",
            "default_parameters": {"group_by": "year"},
            "required_parameters": ["start_date"],
        }
        payload.update(overrides)
        resp = client.post("/api/reports/definitions", json=payload)
        assert resp.status_code == 200
        return resp.json()

    def test_invalid_type(self, client):
        resp = client.post("/api/reports/definitions", json={"name": "Bad", "report_type": "astrology"})
        assert resp.status_code == 422

    def test_execute_with_required_parameters(self, client, seeded):
        definition = self.create(client)

        resp = client.post(f"/api/reports/definitions/{definition['id']}/execute", json={})
        assert resp.status_code == 400
        assert "start_date" in resp.json()["detail"]

        resp = client.post(f"/api/reports/definitions/{definition['id']}/execute", json={
            "parameters": {"start_date": "2000-01-01T00:00:00"},
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["execution"]["status"] == "completed"
        assert body["execution"]["parameter_values"]["group_by"] == "year"
        assert body["result"]["summary"]["total_revenue"] == 19440

        executions = client.get(f"/api/reports/definitions/{definition['id']}/executions").json()
        assert len(executions) == 1
        assert executions[0]["row_count"] == body["execution"]["row_count"]

    def test_execute_as_csv(self, client, seeded):
        definition = self.create(client, required_parameters=[])
        resp = client.post(f"/api/reports/definitions/{definition['id']}/execute", json={"format": "csv"})
        assert resp.status_code == 200
        assert resp.text.startswith("period,revenue")

    def test_failed_execution_is_recorded(self, client):
        definition = self.create(client, report_type="custom", required_parameters=[], default_parameters={})
        resp = client.post(f"/api/reports/definitions/{definition['id']}/execute", json={})
        assert resp.status_code == 400

        executions = client.get(f"/api/reports/definitions/{definition['id']}/executions").json()
        assert executions[0]["status"] == "failed"
        assert executions[0]["error_message"]

    def test_inactive_and_crud(self, client):
        definition = self.create(client)
        resp = client.put(f"/api/reports/definitions/{definition['id']}", json={"is_active": False})
        assert resp.json()["is_active"] is False

        resp = client.post(f"/api/reports/definitions/{definition['id']}/execute", json={
            "parameters": {"start_date": "2000-01-01T00:00:00"},
        })
        assert resp.status_code == 400

        assert client.delete(f"/api/reports/definitions/{definition['id']}").status_code == 200
        assert client.get(f"/api/reports/definitions/{definition['id']}").status_code == 404

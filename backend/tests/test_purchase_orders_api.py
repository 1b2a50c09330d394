"""供应商、采购订单与付款计划接口"""
import asyncio
from datetime import datetime, timedelta

import pytest

from erp.services.vendors import mark_overdue_payment_schedules


@pytest.fixture
def product(client, vendor):
    resp = client.post("/api/products/", json={"name": "Sour Diesel", "vendor_id": vendor["id"], "cost_price": 5})
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def purchase_order(client, vendor, product):
    resp = client.post("/api/purchase-orders/", json={
        "vendor_id": vendor["id"],
        "status": "submitted",
        "expected_delivery_date": (datetime.utcnow() + timedelta(days=5)).isoformat(),
        "items": [{"product_id": product["id"], "quantity": 10}],
    })
    assert resp.status_code == 200
    return resp.json()


class TestVendors:
    def test_code_generation_and_duplicates(self, client, vendor):
        assert vendor["code"] == "V0001"
        resp = client.post("/api/vendors/", json={"name": "Mountain Supply"})
        assert resp.json()["code"] == "V0002"

        resp = client.post("/api/vendors/", json={"name": "Copy", "code": "V0001"})
        assert resp.status_code == 409

    def test_search(self, client, vendor):
        client.post("/api/vendors/", json={"name": "Mountain Supply", "email": "sales@mtn.example"})
        resp = client.get("/api/vendors/", params={"search": "mtn"})
        assert [v["name"] for v in resp.json()["data"]] == ["Mountain Supply"]

    def test_delete_vendor_with_orders(self, client, vendor, purchase_order):
        assert client.delete(f"/api/vendors/{vendor['id']}").status_code == 400

    def test_delete_vendor_removes_logs(self, client):
        vendor = client.post("/api/vendors/", json={"name": "Short Lived"}).json()
        client.post(f"/api/vendors/{vendor['id']}/communications", json={"direction": "outgoing", "subject": "Hi"})
        assert client.delete(f"/api/vendors/{vendor['id']}").status_code == 200
        assert client.get(f"/api/vendors/{vendor['id']}/communications").status_code == 404

    def test_invalid_direction(self, client, vendor):
        resp = client.post(f"/api/vendors/{vendor['id']}/communications", json={"direction": "sideways"})
        assert resp.status_code == 422


class TestPurchaseOrders:
    def test_create(self, purchase_order, vendor, product):
        assert purchase_order["po_number"] == "PO00001"
        assert purchase_order["vendor_code"] == vendor["code"]
        assert purchase_order["vendor_name"] == "Green Valley Farms"
        assert purchase_order["payment_terms"] == "Net 30"
        assert purchase_order["total"] == 50
        assert purchase_order["items"][0]["unit_price"] == 5
        assert purchase_order["items"][0]["product_sku"] == product["sku"]

    def test_receive_in_two_steps(self, client, purchase_order, product, location):
        item_id = purchase_order["items"][0]["id"]

        resp = client.post(f"/api/purchase-orders/{purchase_order['id']}/receive", json={
            "items": [{"item_id": item_id, "quantity": 4, "location_id": location["id"], "batch_number": "SD-1"}],
        })
        assert resp.status_code == 200
        assert resp.json()["status"] == "partial"
        assert resp.json()["actual_delivery_date"] is None
        assert client.get(f"/api/products/{product['id']}").json()["quantity"] == 4

        resp = client.post(f"/api/purchase-orders/{purchase_order['id']}/receive", json={
            "items": [{"item_id": item_id, "quantity": 6, "location_id": location["id"]}],
        })
        body = resp.json()
        assert body["status"] == "received"
        assert body["actual_delivery_date"] is not None
        assert body["items"][0]["is_fully_received"] is True
        assert client.get(f"/api/products/{product['id']}").json()["quantity"] == 10

        assert client.delete(f"/api/purchase-orders/{purchase_order['id']}").status_code == 400

    def test_receive_unknown_item(self, client, purchase_order):
        resp = client.post(f"/api/purchase-orders/{purchase_order['id']}/receive", json={
            "items": [{"item_id": 999, "quantity": 1}],
        })
        assert resp.status_code == 400

    def test_cancelled_order(self, client, purchase_order):
        po_id = purchase_order["id"]
        resp = client.put(f"/api/purchase-orders/{po_id}", json={"status": "cancelled"})
        assert resp.json()["status"] == "cancelled"

        resp = client.post(f"/api/purchase-orders/{po_id}/receive", json={
            "items": [{"item_id": purchase_order["items"][0]["id"], "quantity": 1}],
        })
        assert resp.status_code == 400

        assert client.delete(f"/api/purchase-orders/{po_id}").status_code == 200
        assert client.get(f"/api/purchase-orders/{po_id}").status_code == 404

    def test_update_items_and_discount(self, client, purchase_order, product):
        item_id = purchase_order["items"][0]["id"]
        resp = client.put(f"/api/purchase-orders/{purchase_order['id']}", json={
            "items": [{"id": item_id, "product_id": product["id"], "quantity": 20, "unit_price": 4}],
            "discount_type": "percentage", "discount_value": 10,
        })
        body = resp.json()
        assert body["subtotal"] == 80
        assert body["discount_amount"] == 8
        assert body["total"] == 72

    def test_payment(self, client, purchase_order):
        resp = client.post(f"/api/purchase-orders/{purchase_order['id']}/payments", json={"amount": 20})
        assert resp.json()["payment_status"] == "partial"
        resp = client.post(f"/api/purchase-orders/{purchase_order['id']}/payments", json={"amount": 30})
        assert resp.json()["payment_status"] == "paid"

        resp = client.get("/api/purchase-orders/", params={"payment_status": "paid"})
        assert resp.json()["total"] == 1

    def test_payment_status_follows_item_changes(self, client, purchase_order, product):
        po_id = purchase_order["id"]
        client.post(f"/api/purchase-orders/{po_id}/payments", json={"amount": 50})

        resp = client.put(f"/api/purchase-orders/{po_id}", json={
            "items": [{"id": purchase_order["items"][0]["id"], "product_id": product["id"], "quantity": 20}],
        })
        body = resp.json()
        assert body["total"] == 100
        assert body["payment_status"] == "partial"

        report = client.post("/api/reports/financial", json={}).json()
        assert report["summary"]["accounts_payable"] == 50

    def test_receipt_status_follows_item_changes(self, client, vendor, purchase_order, product):
        po_id = purchase_order["id"]
        item_id = purchase_order["items"][0]["id"]
        client.post(f"/api/purchase-orders/{po_id}/receive", json={
            "items": [{"item_id": item_id, "quantity": 10}],
        })

        resp = client.put(f"/api/purchase-orders/{po_id}", json={
            "items": [{"id": item_id, "product_id": product["id"], "quantity": 15}],
        })
        body = resp.json()
        assert body["status"] == "partial"
        assert body["actual_delivery_date"] is None
        assert body["items"][0]["is_fully_received"] is False
        assert client.get(f"/api/vendors/{vendor['id']}/performance").json()["order_fulfillment_rate"] == 0

        resp = client.put(f"/api/purchase-orders/{po_id}", json={
            "items": [{"id": item_id, "product_id": product["id"], "quantity": 10}],
        })
        assert resp.json()["status"] == "received"
        assert resp.json()["actual_delivery_date"] is not None


class TestPerformance:
    def test_performance_and_response_time(self, client, vendor, purchase_order):
        client.post(f"/api/purchase-orders/{purchase_order['id']}/receive", json={
            "items": [{"item_id": purchase_order["items"][0]["id"], "quantity": 10}],
        })
        base = datetime(2024, 3, 1, 9, 0)
        for hours, direction in [(0, "outgoing"), (1, "incoming"), (4, "outgoing"), (7, "incoming")]:
            client.post(f"/api/vendors/{vendor['id']}/communications", json={
                "direction": direction, "timestamp": (base + timedelta(hours=hours)).isoformat(),
            })

        perf = client.get(f"/api/vendors/{vendor['id']}/performance").json()
        assert perf["total_orders"] == 1
        assert perf["order_fulfillment_rate"] == 100
        assert perf["on_time_delivery_rate"] == 100
        assert perf["average_response_time_hours"] == 2.0


class TestPaymentSchedules:
    def test_schedule_lifecycle(self, client, vendor, purchase_order):
        due = datetime.utcnow() + timedelta(days=10)
        resp = client.post(f"/api/vendors/{vendor['id']}/payment-schedules", json={
            "purchase_order_id": purchase_order["id"], "amount": 50, "payment_date": due.isoformat(),
        })
        assert resp.status_code == 200
        schedule = resp.json()
        assert schedule["status"] == "scheduled"

        upcoming = client.get("/api/vendors/payment-schedules/upcoming").json()
        assert [s["id"] for s in upcoming] == [schedule["id"]]

        resp = client.put(f"/api/vendors/payment-schedules/{schedule['id']}", json={"status": "paid"})
        assert resp.json()["status"] == "paid"
        assert client.get("/api/vendors/payment-schedules/upcoming").json() == []

        assert client.delete(f"/api/vendors/payment-schedules/{schedule['id']}").status_code == 200
        assert client.get(f"/api/vendors/{vendor['id']}/payment-schedules").json() == []

    def test_schedule_for_other_vendor_order(self, client, purchase_order):
        other = client.post("/api/vendors/", json={"name": "Other"}).json()
        resp = client.post(f"/api/vendors/{other['id']}/payment-schedules", json={
            "purchase_order_id": purchase_order["id"], "amount": 5,
            "payment_date": datetime.utcnow().isoformat(),
        })
        assert resp.status_code == 400

    def test_overdue_marking(self, client, vendor, session_factory):
        past = datetime.utcnow() - timedelta(days=3)
        future = datetime.utcnow() + timedelta(days=3)
        for when in (past, future):
            client.post(f"/api/vendors/{vendor['id']}/payment-schedules", json={
                "amount": 10, "payment_date": when.isoformat(),
            })

        async def run():
            async with session_factory() as db:
                marked = await mark_overdue_payment_schedules(db)
                await db.commit()
                return marked

        assert asyncio.run(run()) == 1
        statuses = [s["status"] for s in client.get(f"/api/vendors/{vendor['id']}/payment-schedules").json()]
        assert statuses == ["overdue", "scheduled"]

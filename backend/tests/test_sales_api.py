"""销售订单接口（含库存联动）"""
import pytest


@pytest.fixture
def product(client, location):
    resp = client.post("/api/products/", json={
        "name": "OG Kush", "price": 100, "cost_price": 70,
        "initial_quantity": 10, "location_id": location["id"],
    })
    assert resp.status_code == 200
    return resp.json()


def product_quantity(client, product_id):
    return client.get(f"/api/products/{product_id}").json()["quantity"]


def create_order(client, customer, product, location, quantity, **extra):
    payload = {
        "customer_id": customer["id"],
        "items": [{"product_id": product["id"], "location_id": location["id"], "quantity": quantity}],
    }
    payload.update(extra)
    return client.post("/api/sales/", json=payload)


def test_create_order_deducts_stock(client, customer, product, location):
    resp = create_order(client, customer, product, location, 3, tax_rate=10)
    assert resp.status_code == 200
    sale = resp.json()

    assert sale["order_number"] == "ORD00001"
    assert sale["customer_code"] == customer["code"]
    assert sale["customer_name"] == "Evergreen Dispensary"
    assert sale["subtotal"] == 300
    assert sale["tax_amount"] == 30
    assert sale["total"] == 330
    assert sale["balance_due"] == 330
    assert sale["payment_status"] == "unpaid"
    assert sale["items"][0]["product_sku"] == product["sku"]
    assert sale["due_date"] is not None
    assert product_quantity(client, product["id"]) == 7

    second = create_order(client, customer, product, location, 1)
    assert second.json()["order_number"] == "ORD00002"


def test_insufficient_stock_aborts_order(client, customer, product, location):
    resp = create_order(client, customer, product, location, 11)
    assert resp.status_code == 400
    assert client.get("/api/sales/").json()["total"] == 0
    assert product_quantity(client, product["id"]) == 10


def test_unknown_customer_and_invalid_status(client, customer, product, location):
    resp = client.post("/api/sales/", json={
        "customer_id": 999, "items": [{"product_id": product["id"], "quantity": 1}],
    })
    assert resp.status_code == 404

    resp = create_order(client, customer, product, location, 1, status="lost")
    assert resp.status_code == 422

    resp = client.post("/api/sales/", json={"customer_id": customer["id"], "items": []})
    assert resp.status_code == 422


def test_item_without_location_does_not_touch_stock(client, customer, product):
    resp = client.post("/api/sales/", json={
        "customer_id": customer["id"],
        "items": [{"product_id": product["id"], "quantity": 2, "unit_price": 80}],
        "discount_type": "fixed", "discount_value": 10,
    })
    assert resp.status_code == 200
    assert resp.json()["total"] == 150
    assert product_quantity(client, product["id"]) == 10


def test_update_adjusts_stock(client, customer, product, location):
    sale = create_order(client, customer, product, location, 3).json()
    item_id = sale["items"][0]["id"]

    resp = client.put(f"/api/sales/{sale['id']}", json={
        "items": [{"id": item_id, "product_id": product["id"], "location_id": location["id"], "quantity": 5}],
    })
    assert resp.status_code == 200
    assert resp.json()["total"] == 500
    assert product_quantity(client, product["id"]) == 5

    resp = client.put(f"/api/sales/{sale['id']}", json={
        "items": [{"product_id": product["id"], "location_id": location["id"], "quantity": 1}],
        "status": "processing",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["items"]) == 1
    assert body["items"][0]["id"] != item_id
    assert body["status"] == "processing"
    assert product_quantity(client, product["id"]) == 9


def test_update_beyond_stock_is_rejected(client, customer, product, location):
    sale = create_order(client, customer, product, location, 3).json()
    resp = client.put(f"/api/sales/{sale['id']}", json={
        "items": [{"id": sale["items"][0]["id"], "product_id": product["id"],
                   "location_id": location["id"], "quantity": 20}],
    })
    assert resp.status_code == 400
    assert product_quantity(client, product["id"]) == 7
    assert client.get(f"/api/sales/{sale['id']}").json()["items"][0]["quantity"] == 3


def test_payments_accumulate(client, customer, product, location):
    sale = create_order(client, customer, product, location, 1, tax_rate=10).json()
    assert sale["total"] == 110

    resp = client.post(f"/api/sales/{sale['id']}/payments", json={"amount": 50, "payment_method": "cash"})
    assert resp.json()["payment_status"] == "partial"
    assert resp.json()["balance_due"] == 60

    resp = client.post(f"/api/sales/{sale['id']}/payments", json={"amount": 60})
    assert resp.json()["payment_status"] == "paid"
    assert resp.json()["amount_paid"] == 110
    assert resp.json()["payment_date"] is not None

    resp = client.post(f"/api/sales/{sale['id']}/payments", json={"amount": 0})
    assert resp.status_code == 422


def test_payment_status_follows_item_changes(client, customer, product, location):
    sale = create_order(client, customer, product, location, 1).json()
    client.post(f"/api/sales/{sale['id']}/payments", json={"amount": 100})
    item = {"id": sale["items"][0]["id"], "product_id": product["id"], "location_id": location["id"]}

    resp = client.put(f"/api/sales/{sale['id']}", json={"items": [dict(item, quantity=2)]})
    body = resp.json()
    assert body["total"] == 200
    assert body["payment_status"] == "partial"
    assert body["balance_due"] == 100

    report = client.post("/api/reports/financial", json={}).json()
    assert report["summary"]["accounts_receivable"] == 100

    resp = client.put(f"/api/sales/{sale['id']}", json={"items": [dict(item, quantity=1)]})
    assert resp.json()["payment_status"] == "paid"


def test_delete_returns_stock(client, customer, product, location):
    sale = create_order(client, customer, product, location, 4).json()
    assert product_quantity(client, product["id"]) == 6

    assert client.delete(f"/api/sales/{sale['id']}").status_code == 200
    assert client.get(f"/api/sales/{sale['id']}").status_code == 404
    assert product_quantity(client, product["id"]) == 10

    txns = client.get("/api/inventory/transactions", params={"transaction_type": "returned"}).json()
    assert txns["data"][0]["reference"] == sale["order_number"]


def test_list_filters_and_customer_sales(client, customer, product, location):
    create_order(client, customer, product, location, 1, status="delivered")
    create_order(client, customer, product, location, 1)

    resp = client.get("/api/sales/", params={"status": "delivered"})
    assert resp.json()["total"] == 1

    resp = client.get(f"/api/customers/{customer['id']}/sales")
    assert resp.json()["total"] == 2

    assert client.delete(f"/api/customers/{customer['id']}").status_code == 400


def test_metrics_and_commission(client, customer, product, location):
    create_order(client, customer, product, location, 2, sales_rep_id=7, commission_rate=5)
    create_order(client, customer, product, location, 1)

    metrics = client.get("/api/sales/metrics").json()
    assert metrics["total_sales"] == 2
    assert metrics["total_revenue"] == 300
    assert metrics["average_order_value"] == 150
    assert metrics["top_customers"]["by_orders"][0]["code"] == customer["code"]
    assert metrics["top_products"]["by_quantity"][0]["quantity"] == 3

    commission = client.get("/api/sales/commission/7").json()
    assert commission["total_sales"] == 1
    assert commission["total_commission"] == 10


def test_customer_metrics_endpoints(client, customer, product, location):
    create_order(client, customer, product, location, 1)

    metrics = client.get(f"/api/customers/{customer['id']}/metrics").json()
    assert metrics["order_count"] == 1
    assert metrics["total_sales"] == 100
    assert metrics["days_since_last_order"] == 0

    resp = client.get(f"/api/customers/{customer['id']}/credit-recommendation")
    assert resp.status_code == 200
    # 1000 + (0 + 100/5000 + 1.0) × 3000 = 4060
    assert resp.json()["recommended_credit_limit"] == 4000

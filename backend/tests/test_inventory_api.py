"""商品、库位与库存接口"""
import pytest


@pytest.fixture
def product(client, location):
    resp = client.post("/api/products/", json={
        "name": "Blue Dream", "category": "flower", "price": 100, "cost_price": 60,
        "initial_quantity": 10, "location_id": location["id"],
    })
    assert resp.status_code == 200
    return resp.json()


def stock_at(client, product_id):
    resp = client.get(f"/api/inventory/products/{product_id}")
    assert resp.status_code == 200
    return {r["location_id"]: r["quantity"] for r in resp.json()}


class TestProducts:
    def test_sku_generation(self, client, product, vendor):
        assert product["sku"] == "PROD001"
        assert product["quantity"] == 10

        resp = client.post("/api/products/", json={"name": "OG Kush", "vendor_id": vendor["id"]})
        assert resp.status_code == 200
        assert resp.json()["sku"] == f"{vendor['code']}-PROD002"
        assert resp.json()["vendor_code"] == vendor["code"]

    def test_duplicate_sku(self, client, product):
        resp = client.post("/api/products/", json={"name": "Copy", "sku": "PROD001"})
        assert resp.status_code == 409

    def test_unknown_vendor(self, client):
        resp = client.post("/api/products/", json={"name": "Orphan", "vendor_id": 999})
        assert resp.status_code == 404

    def test_list_filters(self, client, product):
        client.post("/api/products/", json={"name": "Glass Jars", "category": "supplies", "price": 2})

        resp = client.get("/api/products/", params={"search": "blue"})
        assert resp.json()["total"] == 1
        resp = client.get("/api/products/", params={"category": "supplies"})
        assert [p["name"] for p in resp.json()["data"]] == ["Glass Jars"]
        resp = client.get("/api/products/", params={"min_price": 50})
        assert [p["name"] for p in resp.json()["data"]] == ["Blue Dream"]

    def test_update_does_not_touch_quantity(self, client, product):
        resp = client.put(f"/api/products/{product['id']}", json={"price": 120, "quantity": 999})
        assert resp.status_code == 200
        assert resp.json()["price"] == 120
        assert resp.json()["quantity"] == 10

    def test_delete_requires_empty_stock(self, client, product, location):
        resp = client.delete(f"/api/products/{product['id']}")
        assert resp.status_code == 400

        client.post("/api/inventory/remove", json={
            "product_id": product["id"], "location_id": location["id"], "quantity": 10,
        })
        resp = client.delete(f"/api/products/{product['id']}")
        assert resp.status_code == 200
        assert client.get(f"/api/products/{product['id']}").status_code == 404

    def test_low_inventory(self, client, product, location):
        client.post("/api/products/", json={
            "name": "Bulk Jars", "initial_quantity": 500, "location_id": location["id"],
        })
        resp = client.get("/api/products/low-inventory")
        assert [p["name"] for p in resp.json()] == []

        resp = client.get("/api/products/low-inventory", params={"threshold": 11})
        assert [p["name"] for p in resp.json()] == ["Blue Dream"]


class TestInventory:
    def test_add_and_remove(self, client, product, location):
        resp = client.post("/api/inventory/add", json={
            "product_id": product["id"], "location_id": location["id"], "quantity": 5, "batch_number": "B-42",
        })
        assert resp.status_code == 200
        assert resp.json()["location_quantity"] == 15
        assert resp.json()["product_quantity"] == 15
        assert resp.json()["batch_number"] == "B-42"

        resp = client.post("/api/inventory/remove", json={
            "product_id": product["id"], "location_id": location["id"], "quantity": 3,
        })
        assert resp.status_code == 200
        assert resp.json()["product_quantity"] == 12

    def test_quantity_must_be_positive(self, client, product, location):
        resp = client.post("/api/inventory/add", json={
            "product_id": product["id"], "location_id": location["id"], "quantity": 0,
        })
        assert resp.status_code == 400

    def test_insufficient_stock(self, client, product, location):
        resp = client.post("/api/inventory/remove", json={
            "product_id": product["id"], "location_id": location["id"], "quantity": 11,
        })
        assert resp.status_code == 400
        assert "库存不足" in resp.json()["detail"]
        assert stock_at(client, product["id"]) == {location["id"]: 10}

    def test_record_removed_at_zero(self, client, product, location):
        resp = client.post("/api/inventory/remove", json={
            "product_id": product["id"], "location_id": location["id"], "quantity": 10,
        })
        assert resp.json()["location_quantity"] == 0
        assert resp.json()["product_quantity"] == 0
        assert stock_at(client, product["id"]) == {}

    def test_transfer(self, client, product, location, second_location):
        resp = client.post("/api/inventory/transfer", json={
            "product_id": product["id"],
            "from_location_id": location["id"],
            "to_location_id": second_location["id"],
            "quantity": 4,
        })
        assert resp.status_code == 200
        assert resp.json()["success"] is True
        assert stock_at(client, product["id"]) == {location["id"]: 6, second_location["id"]: 4}
        assert client.get(f"/api/products/{product['id']}").json()["quantity"] == 10

    def test_transfer_failures_leave_stock_untouched(self, client, product, location, second_location):
        resp = client.post("/api/inventory/transfer", json={
            "product_id": product["id"],
            "from_location_id": location["id"],
            "to_location_id": location["id"],
            "quantity": 1,
        })
        assert resp.status_code == 400

        resp = client.post("/api/inventory/transfer", json={
            "product_id": product["id"],
            "from_location_id": location["id"],
            "to_location_id": second_location["id"],
            "quantity": 50,
        })
        assert resp.status_code == 400
        assert stock_at(client, product["id"]) == {location["id"]: 10}

    def test_location_listing_and_delete(self, client, product, location, second_location):
        resp = client.get(f"/api/inventory/locations/{location['id']}")
        assert [r["product_name"] for r in resp.json()] == ["Blue Dream"]

        assert client.delete(f"/api/locations/{location['id']}").status_code == 400
        assert client.delete(f"/api/locations/{second_location['id']}").status_code == 200
        assert client.get("/api/inventory/locations/999").status_code == 404

    def test_transactions(self, client, product, location, second_location):
        client.post("/api/inventory/transfer", json={
            "product_id": product["id"],
            "from_location_id": location["id"],
            "to_location_id": second_location["id"],
            "quantity": 2,
        })
        resp = client.get("/api/inventory/transactions", params={"product_id": product["id"]})
        body = resp.json()
        assert body["total"] == 3
        types = sorted(t["transaction_type"] for t in body["data"])
        assert types == ["received", "transfer_in", "transfer_out"]

        resp = client.get("/api/inventory/transactions", params={"transaction_type": "transfer_out"})
        txn = resp.json()["data"][0]
        assert txn["quantity_change"] == -2
        assert txn["quantity_before"] == 10
        assert txn["quantity_after"] == 8
        assert txn["type_display"]

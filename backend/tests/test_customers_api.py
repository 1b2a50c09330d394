"""客户接口"""


def test_code_generation_and_duplicates(client, customer):
    assert customer["code"] == "CUST001"
    second = client.post("/api/customers/", json={"name": "High Plains Retail"}).json()
    assert second["code"] == "CUST002"

    resp = client.post("/api/customers/", json={"name": "Copy", "code": "CUST001"})
    assert resp.status_code == 409

    resp = client.put(f"/api/customers/{second['id']}", json={"code": "CUST001"})
    assert resp.status_code == 409


def test_search_and_filters(client, customer):
    client.post("/api/customers/", json={
        "name": "High Plains Retail", "email": "orders@highplains.example", "status": "inactive",
    })

    resp = client.get("/api/customers/", params={"search": "HIGHPLAINS"})
    assert [c["name"] for c in resp.json()["data"]] == ["High Plains Retail"]

    resp = client.get("/api/customers/", params={"status": "active"})
    assert resp.json()["total"] == 1


def test_invalid_status(client):
    resp = client.post("/api/customers/", json={"name": "Bad", "status": "banned"})
    assert resp.status_code == 422


def test_update_and_delete(client, customer):
    resp = client.put(f"/api/customers/{customer['id']}", json={
        "credit_limit": 7500, "address": {"city": "Denver", "state": "CO"},
    })
    assert resp.status_code == 200
    assert resp.json()["credit_limit"] == 7500
    assert resp.json()["address"]["city"] == "Denver"

    assert client.delete(f"/api/customers/{customer['id']}").status_code == 200
    assert client.get(f"/api/customers/{customer['id']}").status_code == 404


def test_segments_without_sales(client, customer):
    body = client.get("/api/customers/segments").json()
    assert [c["code"] for c in body["new"]] == ["CUST001"]
    assert body["premium"] == []


def test_new_customer_credit(client, customer):
    body = client.get(f"/api/customers/{customer['id']}/credit-recommendation").json()
    assert body["current_credit_limit"] == 5000
    assert body["recommended_credit_limit"] == 1000
    assert body["metrics"]["order_count"] == 0

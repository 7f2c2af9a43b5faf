from datetime import datetime

from bson import ObjectId

from conftest import make_bucket, make_item


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "API Listening"}


def test_health_lists_collections(client, database):
    database.accounts.insert_one({"account_id": 1})

    body = client.get("/test").json()
    assert body["connection_status"] == "Connected"
    assert "accounts" in body["collections"]


def test_unknown_path(client):
    response = client.get("/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Invalid path requested"}


def test_account_crud(client):
    payload = {"account_id": 443178, "limit": 10000, "products": ["Commodity", "InvestmentStock"]}
    created = client.post("/accounts", json=payload).json()
    assert created["account_id"] == 443178

    fetched = client.get("/accounts/443178").json()
    assert fetched["products"] == payload["products"]
    assert client.get("/accounts").json()[0]["_id"] == created["_id"]

    response = client.put("/accounts/443178", json={"account_id": 443178, "limit": 5000, "products": []})
    assert response.status_code == 200
    assert response.json()["limit"] == 5000

    response = client.delete(f"/accounts/{created['_id']}")
    assert response.json() == {"message": "Account deleted"}
    assert client.get("/accounts/443178").json() is None


def test_update_missing_account(client):
    response = client.put("/accounts/1", json={"account_id": 1, "limit": 1, "products": []})
    assert response.status_code == 404
    assert response.json() == {"error": "Account not found"}


def test_all_products(client):
    client.post("/accounts", json={"account_id": 1, "products": ["A", "B"]})
    client.post("/accounts", json={"account_id": 2, "products": ["B", "C"]})

    assert client.get("/all-products").json() == ["A", "B", "C"]


def test_customer_crud(client):
    payload = {
        "username": "fmiller",
        "name": "Elizabeth Ray",
        "address": "9286 Bethany Glens",
        "birthday": "1977-03-02T02:20:31",
        "email": "arroyocolton@gmail.com",
        "active": True,
        "accounts": [371138, 324287],
        "tier_and_details": [{"tier": "Bronze", "benefits": ["sports tickets"], "active": True}],
    }
    created = client.post("/customers", json=payload).json()
    customer_id = created["_id"]
    assert created["tier_and_details"] == payload["tier_and_details"]

    assert client.get("/customers/arroyocolton@gmail.com").json()["_id"] == customer_id
    assert [c["name"] for c in client.get("/customers", params={"name": "RAY"}).json()] == ["Elizabeth Ray"]
    assert client.get("/customers", params={"name": "zzz"}).json() == []
    assert len(client.get("/customers").json()) == 1

    response = client.put(f"/customers/{customer_id}", json={**payload, "name": "Liz Ray"})
    assert response.status_code == 200
    assert response.json()["name"] == "Liz Ray"

    assert client.delete(f"/customers/{customer_id}").json() == {"message": "Customer deleted"}
    assert client.delete(f"/customers/{customer_id}").status_code == 404


def test_customer_payload_validation(client):
    response = client.post("/customers", json={"name": "x", "email": "not-an-email"})
    assert response.status_code == 422
    assert response.json()["error"] == "Invalid request"


def test_update_missing_customer(client):
    response = client.put(f"/customers/{ObjectId()}", json={"name": "x"})
    assert response.status_code == 404
    assert response.json() == {"error": "Customer not found"}


def test_customer_accounts_and_transactions(client, database):
    client.post("/accounts", json={"account_id": 1, "limit": 100, "products": []})
    day = datetime(2021, 5, 1)
    database.transactions.insert_many([
        make_bucket(1, 3, [make_item("buy", 1, "10.0", day)]),
        make_bucket(1, 5, [make_item("sell", 2, "20.0", day)]),
    ])
    customer_id = client.post("/customers", json={"name": "Ann", "accounts": [1]}).json()["_id"]

    accounts = client.get(f"/customers/{customer_id}/accounts").json()
    assert [a["account_id"] for a in accounts] == [1]

    body = client.get(f"/customers/{customer_id}/transactions").json()
    assert body["customer"]["_id"] == customer_id
    assert body["transactions"][0]["_id"] == 1
    assert body["transactions"][0]["totalTransactionCount"] == 8
    assert len(body["transactions"][0]["transactions"]) == 2


def test_missing_customer_is_404(client):
    missing = ObjectId()
    for path in (f"/customers/{missing}/accounts", f"/customers/{missing}/transactions"):
        response = client.get(path)
        assert response.status_code == 404
        assert response.json() == {"error": "Customer not found"}


def test_malformed_id_is_internal_error(client):
    response = client.get("/transactions/not-an-id")
    assert response.status_code == 500
    assert "error" in response.json()


def test_transactions(client, database):
    inserted = database.transactions.insert_one(make_bucket(1, 3))

    assert len(client.get("/transactions").json()) == 1
    assert client.get(f"/transactions/{inserted.inserted_id}").json()["account_id"] == 1


def test_customers_with_most_transactions(client, database):
    for i in range(3):
        database.transactions.insert_one(make_bucket(i, (i + 1) * 10))
        client.post("/customers", json={"username": f"user{i}", "accounts": [i]})

    rows = client.get("/customers-with-most-transactions").json()
    assert [r["username"] for r in rows] == ["user2", "user1", "user0"]
    assert [r["totalTransactionCount"] for r in rows] == [30, 20, 10]


def test_all_transaction_amounts_passes_dates(client, monkeypatch):
    calls = []

    def fake(start_date=None, end_date=None):
        calls.append((start_date, end_date))
        return [{"_id": "buy", "totalAmount": 3, "priceTotal": 30.5}]

    monkeypatch.setattr(client.app.state.data_access, "get_all_transaction_amounts", fake)

    response = client.get(
        "/all-transaction-amounts",
        params={"startDate": "2020-01-01T00:00:00", "endDate": "2020-12-31T00:00:00"},
    )
    assert response.json() == [{"_id": "buy", "totalAmount": 3.0, "priceTotal": 30.5}]
    assert calls[0] == (datetime(2020, 1, 1), datetime(2020, 12, 31))

    client.get("/all-transaction-amounts", params={"startDate": "2020-01-01T00:00:00"})
    assert calls[1] == (datetime(2020, 1, 1), None)


def test_non_numeric_total_fails_customer_transactions(client, database):
    database.transactions.insert_one(make_bucket(1, 1, [make_item("buy", 1, "n/a", datetime(2021, 5, 1))]))
    customer_id = client.post("/customers", json={"name": "Ann", "accounts": [1]}).json()["_id"]

    response = client.get(f"/customers/{customer_id}/transactions")
    assert response.status_code == 500
    assert "total" in response.json()["error"]


def test_bucket_items_serialised_in_top_customers(client, database):
    day = datetime(2021, 5, 1)
    database.transactions.insert_one(make_bucket(1, 1, [make_item("buy", 4, "42.5", day)]))
    client.post("/customers", json={"username": "ann", "accounts": [1]})

    bucket = client.get("/customers-with-most-transactions").json()[0]["transactions"][0]
    assert isinstance(bucket["_id"], str)
    assert bucket["transactions"][0]["total"] == "42.5"
    assert bucket["transactions"][0]["date"] == "2021-05-01T00:00:00"


def test_invalid_path_parameter_uses_error_body(client):
    response = client.get("/accounts/abc")
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "Invalid request"
    assert body["details"][0]["loc"] == ["path", "account_id"]

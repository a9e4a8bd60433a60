from conftest import stock_of


def _post(client, headers, **body):
    return client.post("/api/inventory/transactions", json=body, headers=headers)


def test_create_transaction(client, auth_headers, product):
    resp = _post(client, auth_headers, product_id=product.id, transaction_type="purchase", quantity=5)

    assert resp.status_code == 201
    assert resp.json["transaction"]["transaction_type"] == "purchase"
    assert resp.json["product"]["stock_quantity"] == 15


def test_create_transaction_requires_auth(client, product):
    resp = client.post("/api/inventory/transactions", json={
        "product_id": product.id, "transaction_type": "purchase", "quantity": 5,
    })
    assert resp.status_code == 401
    assert stock_of(product.id) == 10


def test_create_transaction_validation(client, auth_headers, db_session):
    resp = _post(client, auth_headers, transaction_type="sale", quantity="1.5")

    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json["errors"]}
    assert fields == {"product_id", "transaction_type", "quantity"}


def test_create_transaction_insufficient_stock(client, auth_headers, make_product):
    p = make_product(stock_quantity=2)

    resp = _post(client, auth_headers, product_id=p.id, transaction_type="damage", quantity=3)

    assert resp.status_code == 400
    assert resp.json["code"] == "INSUFFICIENT_STOCK"
    assert stock_of(p.id) == 2


def test_update_and_delete_transaction(client, auth_headers, make_product):
    p = make_product(stock_quantity=0)
    adjustment_id = _post(
        client, auth_headers, product_id=p.id, transaction_type="adjustment", quantity=15
    ).json["transaction"]["id"]
    purchase_id = _post(
        client, auth_headers, product_id=p.id, transaction_type="purchase", quantity=5
    ).json["transaction"]["id"]

    resp = client.put(
        f"/api/inventory/transactions/{purchase_id}", json={"quantity": 7}, headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json["product"]["stock_quantity"] == 22

    resp = client.delete(f"/api/inventory/transactions/{adjustment_id}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json["product"]["stock_quantity"] == 7


def test_update_rejects_product_change(client, auth_headers, make_product):
    a = make_product()
    b = make_product()
    txn_id = _post(
        client, auth_headers, product_id=a.id, transaction_type="purchase", quantity=1
    ).json["transaction"]["id"]

    resp = client.put(
        f"/api/inventory/transactions/{txn_id}", json={"product_id": b.id}, headers=auth_headers
    )
    assert resp.status_code == 400
    assert resp.json["code"] == "VALIDATION_ERROR"


def test_update_unknown_transaction(client, auth_headers, db_session):
    resp = client.put("/api/inventory/transactions/999999", json={"quantity": 1}, headers=auth_headers)
    assert resp.status_code == 404


def test_list_transactions(client, auth_headers, make_product):
    a = make_product()
    b = make_product()
    _post(client, auth_headers, product_id=a.id, transaction_type="purchase", quantity=1)
    _post(client, auth_headers, product_id=b.id, transaction_type="return", quantity=1)

    resp = client.get(f"/api/inventory/transactions?product_id={a.id}")
    assert resp.status_code == 200
    assert [t["product_id"] for t in resp.json["transactions"]] == [a.id]

    resp = client.get("/api/inventory/transactions?transaction_type=bogus")
    assert resp.status_code == 400


def test_low_stock(client, make_product):
    low = make_product(stock_quantity=1, min_stock_level=2)
    make_product(stock_quantity=4, min_stock_level=2)

    resp = client.get("/api/inventory/low-stock")
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json["products"]] == [low.id]

    resp = client.get("/api/inventory/low-stock?threshold=4")
    assert len(resp.json["products"]) == 2

    assert client.get("/api/inventory/low-stock?threshold=-1").status_code == 400


def test_update_unknown_transaction_with_bad_body_is_not_found(client, auth_headers, db_session):
    resp = client.put(
        "/api/inventory/transactions/999999", json={"quantity": "abc"}, headers=auth_headers
    )
    assert resp.status_code == 404
    assert resp.json["code"] == "NOT_FOUND"


def test_create_transaction_quantity_out_of_range(client, auth_headers, product):
    resp = _post(client, auth_headers, product_id=product.id, transaction_type="adjustment", quantity=10**20)

    assert resp.status_code == 400
    assert resp.json["code"] == "VALIDATION_ERROR"
    assert [e["field"] for e in resp.json["errors"]] == ["quantity"]
    assert stock_of(product.id) == 10


def test_create_transaction_reference_id_out_of_range(client, auth_headers, product):
    resp = _post(
        client, auth_headers,
        product_id=product.id, transaction_type="purchase", quantity=1, reference_id=2**40,
    )
    assert resp.status_code == 400
    assert resp.json["errors"][0]["field"] == "reference_id"


def test_low_stock_threshold_out_of_range(client, db_session):
    resp = client.get(f"/api/inventory/low-stock?threshold={10**20}")
    assert resp.status_code == 400
    assert resp.json["errors"][0]["field"] == "threshold"

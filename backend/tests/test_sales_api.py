"""REST-level tests for /api/sales."""

from conftest import stock_of


def _create(client, headers, product, quantity=3, **extra):
    body = {"items": [{"product_id": product.id, "quantity": quantity, "unit_price": "100.00"}]}
    body.update(extra)
    return client.post("/api/sales", json=body, headers=headers)


def test_create_sale_returns_201_with_items_and_names(client, auth_headers, product):
    resp = _create(client, auth_headers, product)

    assert resp.status_code == 201
    sale = resp.json["sale"]
    assert sale["invoice_number"] == "INV-000001"
    assert sale["subtotal"] == "300.00"
    assert sale["tax_amount"] == "30.00"
    assert sale["total_amount"] == "330.00"
    assert sale["total_amount_cents"] == 33000
    assert sale["payment_status"] == "pending"
    assert sale["created_by_name"] == "Casey Cashier"
    assert sale["items"][0]["product_name"] == "Product P"
    assert stock_of(product.id) == 7


def test_create_sale_requires_auth(client, product):
    resp = client.post("/api/sales", json={"items": []})
    assert resp.status_code == 401


def test_create_sale_validation_lists_every_field(client, auth_headers, db_session):
    resp = client.post("/api/sales", json={
        "items": [{"product_id": "abc", "quantity": 0, "unit_price": "1.234"}],
        "payment_method": "barter",
        "discount_amount": -1,
    }, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json["code"] == "VALIDATION_ERROR"
    fields = {e["field"] for e in resp.json["errors"]}
    assert {
        "items.0.product_id",
        "items.0.quantity",
        "items.0.unit_price",
        "payment_method",
        "discount_amount",
    } <= fields


def test_create_sale_empty_items(client, auth_headers, db_session):
    resp = client.post("/api/sales", json={"items": []}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json["errors"][0]["field"] == "items"


def test_create_sale_insufficient_stock(client, auth_headers, make_product):
    p = make_product(stock_quantity=5)

    resp = _create(client, auth_headers, p, quantity=6)

    assert resp.status_code == 400
    assert resp.json["code"] == "INSUFFICIENT_STOCK"
    assert resp.json["details"] == {"product_id": p.id, "available": 5, "requested": 6}
    assert stock_of(p.id) == 5


def test_create_sale_unknown_product(client, auth_headers, db_session):
    resp = client.post("/api/sales", json={
        "items": [{"product_id": 999999, "quantity": 1, "unit_price": 1}],
    }, headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json["code"] == "NOT_FOUND"


def test_quote_does_not_write(client, product):
    resp = client.post("/api/sales/quote", json={
        "items": [{"product_id": product.id, "quantity": 3, "unit_price": 100}],
        "discount_amount": "10.00",
    })
    assert resp.status_code == 200
    assert resp.json["quote"]["total_amount"] == "320.00"
    assert stock_of(product.id) == 10


def test_get_sale_and_404(client, auth_headers, product):
    sale_id = _create(client, auth_headers, product).json["sale"]["id"]

    resp = client.get(f"/api/sales/{sale_id}")
    assert resp.status_code == 200
    assert len(resp.json["sale"]["items"]) == 1

    assert client.get("/api/sales/999999").status_code == 404


def test_list_sales_pagination(client, auth_headers, product):
    for _ in range(3):
        _create(client, auth_headers, product, quantity=1)

    resp = client.get("/api/sales?page=2&limit=2")
    assert resp.status_code == 200
    assert resp.json["pagination"] == {"page": 2, "limit": 2, "total": 3, "total_pages": 2}
    assert len(resp.json["data"]) == 1
    assert "items" not in resp.json["data"][0]


def test_list_sales_rejects_bad_params(client, db_session):
    resp = client.get("/api/sales?page=0&limit=1000&payment_status=lost&start_date=yesterday")
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json["errors"]}
    assert fields == {"page", "limit", "payment_status", "start_date"}


def test_list_sales_date_only_end_date_covers_whole_day(client, auth_headers, product):
    _create(client, auth_headers, product, quantity=1)
    sale_date = client.get("/api/sales").json["data"][0]["sale_date"][:10]

    resp = client.get(f"/api/sales?start_date={sale_date}&end_date={sale_date}")
    assert resp.json["pagination"]["total"] == 1


def test_update_sale(client, auth_headers, product):
    sale_id = _create(client, auth_headers, product).json["sale"]["id"]

    resp = client.put(f"/api/sales/{sale_id}", json={"discount_amount": "30.00"}, headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json["sale"]["total_amount"] == "300.00"


def test_update_paid_sale_is_invalid_state(client, auth_headers, product):
    sale_id = _create(client, auth_headers, product, payment_method="cash").json["sale"]["id"]

    resp = client.put(f"/api/sales/{sale_id}", json={"notes": "x"}, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json["code"] == "INVALID_STATE"


def test_cancel_sale_and_double_cancel(client, auth_headers, product):
    sale_id = _create(client, auth_headers, product).json["sale"]["id"]
    assert stock_of(product.id) == 7

    resp = client.delete(f"/api/sales/{sale_id}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json["sale"]["payment_status"] == "cancelled"
    assert stock_of(product.id) == 10

    resp = client.delete(f"/api/sales/{sale_id}", headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json["code"] == "INVALID_STATE"
    assert stock_of(product.id) == 10


def test_cancel_unknown_sale(client, auth_headers, db_session):
    assert client.delete("/api/sales/999999", headers=auth_headers).status_code == 404


def test_payments_flow(client, auth_headers, product):
    sale_id = _create(client, auth_headers, product).json["sale"]["id"]

    resp = client.post("/api/sales/payments", json={
        "sale_id": sale_id, "payment_method": "cash", "amount": "200.00",
    }, headers=auth_headers)
    assert resp.status_code == 201
    assert resp.json["summary"]["payment_status"] == "partial"
    assert resp.json["summary"]["remaining"] == "130.00"

    resp = client.post("/api/sales/payments", json={
        "sale_id": sale_id, "payment_method": "card", "amount": 130,
    }, headers=auth_headers)
    assert resp.status_code == 201
    assert resp.json["summary"]["payment_status"] == "paid"

    resp = client.post("/api/sales/payments", json={
        "sale_id": sale_id, "payment_method": "cash", "amount": "0.01",
    }, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json["code"] == "VALIDATION_ERROR"

    resp = client.get(f"/api/sales/{sale_id}/payments")
    assert resp.status_code == 200
    assert [p["amount"] for p in resp.json["payments"]] == ["130.00", "200.00"]


def test_payment_validation(client, auth_headers, db_session):
    resp = client.post("/api/sales/payments", json={"amount": "-5"}, headers=auth_headers)
    assert resp.status_code == 400
    fields = {e["field"] for e in resp.json["errors"]}
    assert {"sale_id", "payment_method", "amount"} <= fields


def test_payments_for_unknown_sale(client, db_session):
    assert client.get("/api/sales/999999/payments").status_code == 404


def test_update_paid_sale_with_bad_body_is_invalid_state(client, auth_headers, product):
    sale_id = _create(client, auth_headers, product, payment_method="cash").json["sale"]["id"]

    resp = client.put(f"/api/sales/{sale_id}", json={"discount_amount": "-1"}, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json["code"] == "INVALID_STATE"


def test_update_unknown_sale_with_bad_body_is_not_found(client, auth_headers, db_session):
    resp = client.put("/api/sales/424242", json={"discount_amount": "-1"}, headers=auth_headers)

    assert resp.status_code == 404
    assert resp.json["code"] == "NOT_FOUND"


def test_create_sale_quantity_out_of_range(client, auth_headers, product):
    resp = _create(client, auth_headers, product, quantity=10**20)

    assert resp.status_code == 400
    assert [e["field"] for e in resp.json["errors"]] == ["items.0.quantity"]
    assert stock_of(product.id) == 10


def test_list_sales_page_out_of_range(client, db_session):
    resp = client.get(f"/api/sales?page={10**20}")
    assert resp.status_code == 400
    assert resp.json["errors"][0]["field"] == "page"


def test_payment_empty_sale_id_reports_one_error(client, auth_headers, db_session):
    resp = client.post("/api/sales/payments", json={
        "sale_id": "", "payment_method": "cash", "amount": "1.00",
    }, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json["errors"] == [{"field": "sale_id", "message": "sale_id is required"}]

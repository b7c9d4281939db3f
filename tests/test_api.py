import random

import pytest


def _post(client, path, payload=None, idem=None):
    headers = {"Idempotency-Key": idem} if idem else {}
    return client.post(path, json=payload or {}, headers=headers)


@pytest.fixture
def stocked(client, product):
    for number, expiry, qty in [("B1", "2025-01-01", 5), ("B2", "2025-03-01", 5), ("B3", None, 5)]:
        r = _post(client, "/stock/batches", {
            "product_id": product.id, "unit_id": product.unit_id,
            "batch_number": number, "quantity": qty, "expiry_date": expiry,
        })
        assert r.status_code == 200, r.text
    return product


@pytest.fixture
def opened(client, register):
    r = _post(client, f"/registers/{register.id}/open", {"opening_balance": 100})
    assert r.status_code == 200, r.text
    return register


def _cart_with(client, product, qty):
    cart = _post(client, "/pos/carts", {"tax_type": "exclusive"}).json()
    r = _post(client, f"/pos/carts/{cart['cart_id']}/lines", {"product_id": product.id, "quantity": qty})
    assert r.status_code == 200, r.text
    return r.json()


# ---------- stock ----------
def test_stock_deduct_and_totals(client, stocked):
    r = _post(client, "/stock/deduct", {"product_id": stocked.id, "unit_id": stocked.unit_id, "quantity": 7})
    assert r.status_code == 200, r.text
    assert [(d["batch_number"], d["quantity"]) for d in r.json()["deductions"]] == [("B1", 5), ("B2", 2)]

    r = client.get("/stock/total", params={"product_id": stocked.id, "unit_id": stocked.unit_id})
    assert r.json()["total"] == 8
    assert r.json()["cached"] == 8


def test_stock_deduct_insufficient(client, stocked):
    r = _post(client, "/stock/deduct", {"product_id": stocked.id, "unit_id": stocked.unit_id, "quantity": 20})
    assert r.status_code == 409
    body = r.json()
    assert body["detail"] == "INSUFFICIENT_STOCK"
    assert body["available"] == 15
    r = client.get("/stock/total", params={"product_id": stocked.id, "unit_id": stocked.unit_id})
    assert r.json()["total"] == 15


def test_batch_update_and_delete(client, stocked):
    batches = client.get("/stock/batches", params={"product_id": stocked.id}).json()["batches"]
    assert [b["batch_number"] for b in batches] == ["B1", "B2", "B3"]
    first = batches[0]["id"]

    r = client.patch(f"/stock/batches/{first}", json={"quantity": 9})
    assert r.status_code == 422
    r = client.patch(f"/stock/batches/{first}", json={"quantity": 1, "notes": "damaged"})
    assert r.status_code == 200
    assert r.json()["notes"] == "damaged"

    r = client.delete(f"/stock/batches/{first}")
    assert r.json()["total"] == 10
    assert client.delete(f"/stock/batches/{first}").status_code == 404


def test_expiring(client, stocked):
    r = client.get("/stock/expiring", params={"days": 0})
    assert r.status_code == 200
    # both dated batches are already past
    assert [b["batch_number"] for b in r.json()["batches"]] == ["B1", "B2"]


# ---------- registers ----------
def test_register_lifecycle(client):
    reg = _post(client, "/registers", {"name": "Till 2"}).json()
    rid = reg["id"]
    assert reg["status"] == "closed"

    assert _post(client, f"/registers/{rid}/cash-in", {"amount": 10, "description": "x"}).status_code == 409
    _post(client, f"/registers/{rid}/open", {"opening_balance": 100})
    assert _post(client, f"/registers/{rid}/open", {"opening_balance": 100}).json()["detail"] == "ALREADY_OPEN"
    _post(client, f"/registers/{rid}/cash-in", {"amount": 50, "description": "change float"})
    r = _post(client, f"/registers/{rid}/cash-out", {"amount": 30, "description": "supplier"})
    assert float(r.json()["register"]["balance"]) == 120
    assert _post(client, f"/registers/{rid}/cash-in", {"amount": 0, "description": "x"}).status_code == 422

    closed = _post(client, f"/registers/{rid}/close", {}).json()
    assert closed["status"] == "closed"
    assert float(closed["closing_balance"]) == 120
    assert _post(client, f"/registers/{rid}/close", {}).json()["detail"] == "NOT_OPEN"

    history = client.get(f"/registers/{rid}/history").json()["movements"]
    assert [m["action"] for m in history] == ["closing", "cash_out", "cash_in", "opening"]


def test_unknown_register(client):
    r = client.get("/registers/999")
    assert r.status_code == 404
    assert r.json()["detail"] == "NOT_FOUND"


# ---------- cart + checkout ----------
def test_cart_flow_and_checkout(client, stocked, opened):
    cart = _cart_with(client, stocked, 7)
    cid = cart["cart_id"]
    assert float(cart["grand_total"]) == 70000

    r = _post(client, f"/pos/carts/{cid}/discount", {"discount_type": "percentage", "value": 10})
    assert float(r.json()["total_discount"]) == 7000

    r = _post(client, "/pos/checkout", {"cart_id": cid, "register_id": opened.id, "tendered": 70000})
    assert r.status_code == 200, r.text
    order = r.json()["order"]
    assert order["payment_status"] == "paid"
    assert float(order["change"]) == 7000
    assert [(b["batch_number"], b["quantity"]) for b in order["lines"][0]["batches"]] == [("B1", 5), ("B2", 2)]

    # cart is gone once the order exists
    assert client.get(f"/pos/carts/{cid}").status_code == 404
    assert client.get(f"/pos/orders/{order['order_id']}").json()["order_no"] == order["order_no"]


def test_checkout_short_stock_keeps_cart(client, stocked, opened):
    cid = _cart_with(client, stocked, 16)["cart_id"]
    r = _post(client, "/pos/checkout", {"cart_id": cid, "register_id": opened.id, "tendered": 0})
    assert r.status_code == 409
    assert client.get(f"/pos/carts/{cid}").status_code == 200
    r = client.get("/stock/total", params={"product_id": stocked.id, "unit_id": stocked.unit_id})
    assert r.json()["total"] == 15


def test_checkout_replays_with_idempotency_key(client, stocked, opened):
    cid = _cart_with(client, stocked, 2)["cart_id"]
    key = f"pytest-pay-{random.randint(1, 1_000_000)}"
    payload = {"cart_id": cid, "register_id": opened.id, "tendered": 20000}

    first = _post(client, "/pos/checkout", payload, idem=key)
    assert first.status_code == 200, first.text
    again = _post(client, "/pos/checkout", payload, idem=key)
    assert again.status_code == 200
    assert again.headers["Idempotent-Replay"] == "true"
    assert again.json()["order_id"] == first.json()["order_id"]
    assert again.json()["replay"] is True

    r = client.get("/stock/total", params={"product_id": stocked.id, "unit_id": stocked.unit_id})
    assert r.json()["total"] == 13


def test_add_payment_endpoint(client, stocked, opened):
    cid = _cart_with(client, stocked, 1)["cart_id"]
    order = _post(client, "/pos/checkout", {"cart_id": cid, "register_id": opened.id, "tendered": 4000}).json()["order"]
    assert order["payment_status"] == "partially_paid"
    r = _post(client, f"/pos/orders/{order['order_id']}/payments", {"amount": 6000})
    assert r.json()["payment_status"] == "paid"


def test_invalid_quantity_is_422(client, product):
    cid = _post(client, "/pos/carts", {}).json()["cart_id"]
    r = _post(client, f"/pos/carts/{cid}/lines", {"product_id": product.id, "quantity": 0})
    assert r.status_code == 422
    assert r.json()["detail"] == "INVALID_QUANTITY"


def test_hold_and_resume(client, product):
    cart = _cart_with(client, product, 3)
    cid = cart["cart_id"]
    held = _post(client, f"/pos/carts/{cid}/hold", {"label": "table 4"}).json()
    assert client.get(f"/pos/carts/{cid}").status_code == 404
    assert [h["label"] for h in client.get("/pos/held").json()["held"]] == ["table 4"]

    resumed = _post(client, f"/pos/held/{held['held_id']}/resume").json()
    assert resumed["grand_total"] == cart["grand_total"]
    assert client.get("/pos/held").json()["held"] == []
    assert _post(client, f"/pos/held/{held['held_id']}/resume").status_code == 404


# ---------- coupons ----------
def test_coupon_validate_and_apply(client, product, make_coupon):
    make_coupon(code="HALF", value="50", max_discount=20)
    r = client.get("/coupons/half", params={"subtotal": 100})
    assert r.status_code == 200
    assert float(r.json()["discount"]) == 20
    assert float(r.json()["new_total"]) == 80

    cid = _cart_with(client, product, 1)["cart_id"]
    assert _post(client, f"/pos/carts/{cid}/coupons", {"code": "HALF"}).status_code == 200
    r = _post(client, f"/pos/carts/{cid}/coupons", {"code": "HALF"})
    assert r.status_code == 409
    assert r.json()["detail"] == "COUPON_ALREADY_APPLIED"


def test_coupon_errors(client, make_coupon):
    make_coupon(code="OFF", active=False)
    make_coupon(code="BIG", minimum_cart_value=500)
    assert client.get("/coupons/NOPE", params={"subtotal": 100}).status_code == 404
    assert client.get("/coupons/OFF", params={"subtotal": 100}).json()["detail"] == "COUPON_INACTIVE"
    assert client.get("/coupons/BIG", params={"subtotal": 100}).json()["detail"] == "MINIMUM_NOT_MET"


# ---------- rewards ----------
def test_rewards_earn_and_redeem(client, customer):
    base = f"/rewards/customers/{customer.id}"
    assert _post(client, f"{base}/earn", {"points": 50}).json()["points"] == 50
    assert _post(client, f"{base}/redeem", {"points": 20}).json()["points"] == 30
    r = _post(client, f"{base}/redeem", {"points": 100})
    assert r.status_code == 409
    assert r.json()["detail"] == "INSUFFICIENT_POINTS"
    assert [t["type"] for t in client.get(base).json()["transactions"]] == ["redeem", "earn"]

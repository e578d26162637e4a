import pytest

from stockdesk.app.db.models.core_types import Role


@pytest.fixture
def setup(make_user, make_stock_item, login):
    make_user("rep", Role.sales_rep)
    make_user("rep2", Role.sales_rep)
    make_user("keeper", Role.store_keeper)
    make_user("boss", Role.manager)
    plywood = make_stock_item("Plywood", 10, selling_price="120.00")
    return {
        "plywood": plywood,
        "rep": login("rep"),
        "rep2": login("rep2"),
        "keeper": login("keeper"),
        "manager": login("boss"),
    }


def _order_payload(stock_item_id, quantity=4, price=100):
    return {
        "customer_name": "ACME",
        "customer_contact": "+251 911 000000",
        "items": [{"stock_item_id": stock_item_id, "quantity": quantity, "selling_price": price}],
    }


def _stock_qty(client, headers, stock_item_id):
    rows = client.get("/v1/stock", headers=headers).json()
    return next(r["quantity"] for r in rows if r["id"] == stock_item_id)


def test_create_then_approve(client, setup):
    resp = client.post("/v1/orders", json=_order_payload(setup["plywood"]), headers=setup["rep"])
    assert resp.status_code == 201, resp.text
    order = resp.json()
    assert order["status"] == "PENDING"
    assert order["total_amount"] == 400
    assert order["items"][0]["stock_item"]["name"] == "Plywood"
    assert order["items"][0]["total_price"] == 400

    resp = client.patch(f"/v1/orders/{order['id']}/approve", headers=setup["keeper"])
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "APPROVED"
    assert _stock_qty(client, setup["keeper"], setup["plywood"]) == 6

    # déjà APPROVED
    resp = client.patch(f"/v1/orders/{order['id']}/approve", headers=setup["keeper"])
    assert resp.status_code == 409
    assert resp.json()["code"] == "invalid_transition"
    assert _stock_qty(client, setup["keeper"], setup["plywood"]) == 6


def test_create_insufficient_stock_is_400(client, setup):
    resp = client.post("/v1/orders", json=_order_payload(setup["plywood"], quantity=11), headers=setup["rep"])
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "insufficient_stock"
    assert "Plywood" in body["detail"]
    assert client.get("/v1/orders", headers=setup["keeper"]).json() == []


@pytest.mark.parametrize(
    "payload, code",
    [
        ({"customer_name": "ACME", "customer_contact": "x"}, "missing_fields"),
        ({"customer_name": "ACME", "customer_contact": "x", "items": []}, "missing_fields"),
        ({"customer_contact": "x", "items": [{"stock_item_id": 1, "quantity": 1}]}, "missing_fields"),
        ({"customer_name": "A", "customer_contact": "x", "items": [{"stock_item_id": 999, "quantity": 1}]}, "stock_not_found"),
    ],
)
def test_create_validation_errors(client, setup, payload, code):
    resp = client.post("/v1/orders", json=payload, headers=setup["rep"])
    assert resp.status_code == 400
    assert resp.json()["code"] == code


def test_reject_flow(client, setup):
    order = client.post("/v1/orders", json=_order_payload(setup["plywood"]), headers=setup["rep"]).json()

    resp = client.patch(f"/v1/orders/{order['id']}/reject", json={}, headers=setup["keeper"])
    assert resp.status_code == 400
    assert resp.json()["code"] == "missing_reason"

    resp = client.patch(
        f"/v1/orders/{order['id']}/reject",
        json={"rejection_reason": "customer cancelled"},
        headers=setup["keeper"],
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "REJECTED"
    assert resp.json()["rejection_reason"] == "customer cancelled"

    resp = client.patch(f"/v1/orders/{order['id']}/approve", headers=setup["keeper"])
    assert resp.status_code == 409
    assert _stock_qty(client, setup["keeper"], setup["plywood"]) == 10


def test_unknown_order_is_404(client, setup):
    assert client.patch("/v1/orders/9999/approve", headers=setup["keeper"]).status_code == 404
    resp = client.patch("/v1/orders/9999/reject", json={"rejection_reason": "x"}, headers=setup["keeper"])
    assert resp.status_code == 404
    assert client.get("/v1/orders/9999", headers=setup["keeper"]).status_code == 404


def test_approve_after_stock_sold_elsewhere(client, setup):
    first = client.post("/v1/orders", json=_order_payload(setup["plywood"], quantity=6), headers=setup["rep"]).json()
    second = client.post("/v1/orders", json=_order_payload(setup["plywood"], quantity=6), headers=setup["rep2"]).json()

    assert client.patch(f"/v1/orders/{first['id']}/approve", headers=setup["keeper"]).status_code == 200
    resp = client.patch(f"/v1/orders/{second['id']}/approve", headers=setup["keeper"])
    assert resp.status_code == 400
    assert resp.json()["code"] == "insufficient_stock"

    detail = client.get(f"/v1/orders/{second['id']}", headers=setup["keeper"]).json()
    assert detail["status"] == "PENDING"
    assert _stock_qty(client, setup["keeper"], setup["plywood"]) == 4


def test_role_gates(client, setup):
    resp = client.post("/v1/orders", json=_order_payload(setup["plywood"]), headers=setup["keeper"])
    assert resp.status_code == 403

    order = client.post("/v1/orders", json=_order_payload(setup["plywood"]), headers=setup["rep"]).json()
    assert client.patch(f"/v1/orders/{order['id']}/approve", headers=setup["rep"]).status_code == 403
    assert client.patch(f"/v1/orders/{order['id']}/approve", headers=setup["manager"]).status_code == 403
    assert client.get("/v1/orders").status_code == 401


def test_listing_is_filtered_for_sales_reps(client, setup):
    mine = client.post("/v1/orders", json=_order_payload(setup["plywood"], 1), headers=setup["rep"]).json()
    theirs = client.post("/v1/orders", json=_order_payload(setup["plywood"], 1), headers=setup["rep2"]).json()

    assert [o["id"] for o in client.get("/v1/orders", headers=setup["rep"]).json()] == [mine["id"]]
    all_orders = client.get("/v1/orders", headers=setup["keeper"]).json()
    assert [o["id"] for o in all_orders] == [theirs["id"], mine["id"]]
    assert all_orders[0]["sales_rep"]["username"] == "rep2"

    assert client.get(f"/v1/orders/{theirs['id']}", headers=setup["rep"]).status_code == 404
    assert client.get(f"/v1/orders/{theirs['id']}", headers=setup["manager"]).status_code == 200


def test_oversized_selling_price_is_400(client, setup):
    resp = client.post(
        "/v1/orders",
        json=_order_payload(setup["plywood"], quantity=1, price=1e30),
        headers=setup["rep"],
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_price"
    assert client.get("/v1/orders", headers=setup["keeper"]).json() == []

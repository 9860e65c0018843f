from datetime import datetime, timedelta

from conftest import login, ok, register


def make_product(api, name="Roma Tomatoes", **extra):
    payload = {"name": name, "a_price": 20, "b_price": 18, "price": 1.5,
               "carry_forward_box": 50, "sales_mode": "both", **extra}
    return ok(api.post("/products/", json=payload))


def make_order(api, store_id, product_id, quantity=2, **extra):
    return ok(api.post("/orders/", json={
        "store_id": store_id,
        "items": [{"product_id": product_id, "quantity": quantity, "pricing_type": "box"}],
        **extra,
    }))


def test_register_and_login(api):
    """
    GIVEN a registered store
    THEN it starts pending approval and can log in with its password
    """
    store = register(api, "green@example.com")
    assert store["approval_status"] == "pending"

    headers = login(api, "green@example.com")
    me = ok(api.get("/auth/me", headers=headers))
    assert me["id"] == store["id"]

    bad = api.post("/auth/login", json={"email": "green@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401
    assert bad.json() == {"success": False, "message": "Invalid email or password", "data": None}


def test_me_requires_token(api):
    response = api.get("/auth/me")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_create_order_prices_and_consumes_stock(api):
    """
    GIVEN a category A store and a product with 50 cases carried forward
    THEN the order uses the A price and stock drops by the quantity
    """
    store = register(api, "a@example.com")
    product = make_product(api)
    assert product["short_code"] == "101"

    order = make_order(api, store["id"], product["id"], quantity=2, shipping_cost=5)
    assert order["items"][0]["unit_price"] == 20.0
    assert order["total"] == 45.0
    assert order["payment_status"] == "pending"
    assert order["order_number"]

    refreshed = ok(api.get(f"/products/{product['id']}"))
    assert refreshed["stock"]["total_remaining"] == 48


def test_order_rejected_when_stock_is_short(api):
    store = register(api, "short@example.com")
    product = make_product(api, carry_forward_box=3)

    response = api.post("/orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": 5, "pricing_type": "box"}],
    })
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Insufficient stock for some items (week-wise check)"
    shortage = body["data"]["insufficient_stock"][0]
    assert shortage["available"] == 3
    assert shortage["requested"] == 5


def test_order_rejects_fractional_cases(api):
    store = register(api, "frac@example.com")
    product = make_product(api, sales_mode="case")

    response = api.post("/orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": 1.5, "pricing_type": "box"}],
    })
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Order validation failed"
    assert body["data"]["errors"][0]["item_index"] == 0


def test_update_order_checks_only_the_increase(api):
    """
    GIVEN an order of 8 out of 10 cases
    THEN raising it to 10 is allowed and raising it to 11 is not
    """
    store = register(api, "upd@example.com")
    product = make_product(api, carry_forward_box=10)
    order = make_order(api, store["id"], product["id"], quantity=8)

    updated = ok(api.put(f"/orders/{order['id']}", json={
        "items": [{"product_id": product["id"], "quantity": 10, "pricing_type": "box"}],
    }))
    assert updated["total"] == 200.0

    response = api.put(f"/orders/{order['id']}", json={
        "items": [{"product_id": product["id"], "quantity": 11, "pricing_type": "box"}],
    })
    assert response.status_code == 400


def test_payment_progression(api):
    store = register(api, "pay@example.com")
    product = make_product(api)
    order = make_order(api, store["id"], product["id"], quantity=5)

    missing_tx = api.put(f"/orders/{order['id']}/payment", json={"method": "creditcard", "amount_paid": 50})
    assert missing_tx.status_code == 400

    partial = ok(api.put(f"/orders/{order['id']}/payment",
                         json={"method": "cheque", "amount_paid": 40}))
    assert partial["payment_status"] == "partial"

    paid = ok(api.put(f"/orders/{order['id']}/payment",
                      json={"method": "cash", "amount_paid": 100, "notes": "Paid at delivery"}))
    assert paid["payment_status"] == "paid"
    assert [h["amount"] for h in paid["payment_history"]] == [40.0, 60.0]


def test_mark_unpaid_requires_reason(api):
    store = register(api, "unpaid@example.com")
    product = make_product(api)
    order = make_order(api, store["id"], product["id"])
    ok(api.put(f"/orders/{order['id']}/payment", json={"method": "cheque", "amount_paid": 40}))

    assert api.post(f"/orders/{order['id']}/mark-unpaid", json={}).status_code == 400
    cleared = ok(api.post(f"/orders/{order['id']}/mark-unpaid", json={"reason": "Cheque bounced"}))
    assert cleared["payment_status"] == "pending"
    assert cleared["payment_amount"] == 0


def test_shipping_per_plate(api):
    """
    GIVEN a shipping cost with a plate count
    THEN the cost is charged per plate
    """
    store = register(api, "ship@example.com")
    product = make_product(api)
    order = make_order(api, store["id"], product["id"], quantity=1, shipping_cost=0)

    updated = ok(api.put(f"/orders/{order['id']}/shipping", json={"shipping_cost": 12.5, "plate_count": 2}))
    assert updated["shipping_cost"] == 25.0
    assert updated["total"] == 45.0


def test_soft_delete_returns_stock(api):
    store = register(api, "del@example.com")
    product = make_product(api, carry_forward_box=10)
    order = make_order(api, store["id"], product["id"], quantity=4)

    assert api.delete(f"/orders/{order['id']}", json={"reason": ""}).status_code == 400
    deleted = ok(api.delete(f"/orders/{order['id']}", json={"reason": "Store closed"}))
    assert deleted["is_delete"] is True
    assert deleted["total"] == 0
    assert deleted["deleted_amount"] == 80.0
    assert deleted["items"][0]["deleted_quantity"] == 4

    refreshed = ok(api.get(f"/products/{product['id']}"))
    assert refreshed["stock"]["total_remaining"] == 10


def test_store_statement_and_dashboard(api):
    store = register(api, "stmt@example.com")
    product = make_product(api)
    first = make_order(api, store["id"], product["id"], quantity=1)
    make_order(api, store["id"], product["id"], quantity=2)
    ok(api.put(f"/orders/{first['id']}/payment", json={"method": "cheque", "amount_paid": 20}))

    statement = ok(api.get(f"/orders/statement/{store['id']}", params={"payment_status": "pending"}))
    assert statement["summary"]["total_orders"] == 1
    assert statement["summary"]["outstanding"] == 40.0

    dashboard = ok(api.get("/orders/dashboard"))
    assert dashboard["total_orders"] == 2
    assert dashboard["total_outstanding"] == 40.0


def test_pre_order_confirmation_creates_order(api):
    """
    GIVEN a PreOrder for next week
    THEN confirming creates a Regular order dated in that week
    """
    store = register(api, "pre@example.com")
    product = make_product(api)
    delivery = datetime.utcnow() + timedelta(days=7)
    pre_order = ok(api.post("/pre-orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": 3, "pricing_type": "box"}],
        "expected_delivery_date": delivery.isoformat(),
    }))
    assert pre_order["status"] == "pending"
    assert pre_order["total_amount"] == 60.0

    result = ok(api.post(f"/pre-orders/{pre_order['id']}/confirm"))
    assert result["pre_order"]["confirmed"] is True
    assert result["order"]["pre_order_id"] == pre_order["id"]
    assert result["order"]["order_type"] == "Regular"
    created = datetime.fromisoformat(result["order"]["created_at"])
    monday = delivery.date() - timedelta(days=delivery.weekday())
    assert monday <= created.date() <= monday + timedelta(days=6)

    again = api.post(f"/pre-orders/{pre_order['id']}/confirm")
    assert again.status_code == 400
    assert again.json()["message"] == "PreOrder already confirmed"


def test_matrix_update_creates_week_order(api):
    """
    GIVEN an empty week
    THEN setting a matrix cell creates an order and the grid shows it
    """
    store = register(api, "matrix@example.com")
    product = make_product(api)

    result = api.post("/orders/matrix/update-item", json={
        "store_id": store["id"], "product_id": product["id"], "quantity": 4,
    })
    body = result.json()
    assert body["message"] == "New order created"
    assert body["data"]["order"]["total"] == 80.0

    updated = ok(api.post("/orders/matrix/update-item", json={
        "store_id": store["id"], "product_id": product["id"], "quantity": 6,
    }))
    assert updated["order"]["id"] == body["data"]["order"]["id"]
    assert updated["order"]["items"][0]["quantity"] == 6

    grid = ok(api.get("/orders/matrix"))
    row = grid["matrix"][0]
    assert row["total_current"] == 6
    assert row["store_orders"][str(store["id"])]["current_qty"] == 6
    assert row["actual_stock"] == 44


def test_confirm_week_pre_orders_builds_work_order(api):
    store = register(api, "week@example.com")
    product = make_product(api)
    ok(api.post("/pre-orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": 2, "pricing_type": "box"}],
    }))

    result = ok(api.post("/orders/matrix/confirm-preorders", json={"week_offset": 0}))
    assert result["confirmed_count"] == 1
    assert result["errors"] == []
    assert result["work_order"]["work_order_number"]
    assert result["work_order"]["has_shortage"] is False


def test_matrix_pre_order_cell_edits(api):
    """
    GIVEN a matrix PreOrder cell set to 3
    THEN it shows in pending review, and setting it to 0 drops the PreOrder
    """
    store = register(api, "cell@example.com")
    product = make_product(api)

    created = api.post("/orders/matrix/update-preorder-item", json={
        "store_id": store["id"], "product_id": product["id"], "quantity": 3,
    }).json()
    assert created["message"] == "New PreOrder created"
    pre_order = created["data"]["pre_order"]
    assert pre_order["total_amount"] == 60.0

    updated = ok(api.post("/orders/matrix/update-preorder-item", json={
        "store_id": store["id"], "product_id": product["id"], "quantity": 5,
    }))
    assert updated["pre_order"]["id"] == pre_order["id"]
    assert updated["pre_order"]["items"][0]["quantity"] == 5

    review = ok(api.get("/orders/matrix/pending-review"))
    assert review["total_pre_orders"] == 1
    assert review["items"][0]["quantity"] == 5
    assert review["stores"][0]["store_id"] == store["id"]
    assert review["stores"][0]["total"] == 100.0

    removed = ok(api.post("/orders/matrix/update-preorder-item", json={
        "store_id": store["id"], "product_id": product["id"], "quantity": 0,
    }))
    assert removed["pre_order"]["items"] == []
    assert removed["pre_order"]["is_delete"] is True
    assert api.get(f"/pre-orders/{pre_order['id']}").status_code == 404
    assert ok(api.get("/orders/matrix/pending-review"))["total_pre_orders"] == 0


def test_matrix_sums_pre_orders_per_cell(api):
    store = register(api, "twice@example.com")
    product = make_product(api)
    for quantity in (2, 3):
        ok(api.post("/pre-orders/", json={
            "store_id": store["id"],
            "items": [{"product_id": product["id"], "quantity": quantity, "pricing_type": "box"}],
        }))

    row = ok(api.get("/orders/matrix"))["matrix"][0]
    cell = row["store_orders"][str(store["id"])]
    assert cell["pre_order_qty"] == 5
    assert cell["pending_req"] == 5
    assert row["pending_req_total"] == 5


def test_matrix_short_filter_applies_before_paging(api):
    """
    GIVEN three products of which only the last by name is short
    THEN the short filter on page 1 of size 1 still finds it
    """
    store = register(api, "short@example.com")
    make_product(api, name="Apples")
    make_product(api, name="Bananas")
    zucchini = make_product(api, name="Zucchini", carry_forward_box=2)
    ok(api.post("/pre-orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": zucchini["id"], "quantity": 3, "pricing_type": "box"}],
    }))

    grid = ok(api.get("/orders/matrix", params={"status_filter": "short", "page": 1, "limit": 1}))
    assert [r["product_name"] for r in grid["matrix"]] == ["Zucchini"]
    assert grid["matrix"][0]["shortage_qty"] == 1
    assert grid["pagination"]["total_products"] == 1

    healthy = ok(api.get("/orders/matrix", params={"status_filter": "ok", "page": 2, "limit": 1}))
    assert [r["product_name"] for r in healthy["matrix"]] == ["Bananas"]
    assert healthy["pagination"]["total_products"] == 2

from conftest import login, ok, register


def store_with_order(api, email="deli@example.com", quantity=2):
    store = register(api, email)
    product = ok(api.post("/products/", json={"name": "Cilantro", "a_price": 20, "carry_forward_box": 20}))
    order = ok(api.post("/orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": quantity, "pricing_type": "box"}],
    }))
    return store, product, order


def credit_balance(api, store_id):
    return ok(api.get(f"/credit-memos/store-credit/{store_id}"))["credit_balance"]


def test_adjustment_needs_exactly_one_party(api):
    store = register(api, "party@example.com")
    vendor = ok(api.post("/vendors/", json={"name": "Coastal Farms"}))

    neither = api.post("/adjustments/", json={"adjustment_type": "credit", "amount": 5, "reason": "Goodwill"})
    assert neither.status_code == 400
    assert neither.json()["message"] == "Either store_id or vendor_id must be provided"

    both = api.post("/adjustments/", json={
        "store_id": store["id"], "vendor_id": vendor["id"],
        "adjustment_type": "credit", "amount": 5, "reason": "Goodwill",
    })
    assert both.status_code == 400
    assert both.json()["message"] == "Cannot set both store_id and vendor_id"


def test_adjustment_without_approval_applies_at_once(api):
    store = register(api, "auto@example.com")
    adjustment = ok(api.post("/adjustments/", json={
        "store_id": store["id"], "adjustment_type": "credit", "amount": 25,
        "reason": "Promo", "reason_category": "promotional_credit", "requires_approval": False,
    }))
    assert adjustment["status"] == "applied"
    assert adjustment["balance_after"] == 25.0
    assert credit_balance(api, store["id"]) == 25.0


def test_adjustment_approval_and_void(api):
    """
    GIVEN a pending 30.00 write-off
    THEN approving takes it off the balance and voiding puts it back
    """
    store = register(api, "writeoff@example.com")
    adjustment = ok(api.post("/adjustments/", json={
        "store_id": store["id"], "adjustment_type": "write_off", "amount": 30, "reason": "Old balance",
    }))
    assert adjustment["status"] == "pending"
    assert adjustment["signed_amount"] == -30.0
    assert credit_balance(api, store["id"]) == 0

    approved = ok(api.put(f"/adjustments/{adjustment['id']}/approve", json={}))
    assert approved["status"] == "applied"
    assert credit_balance(api, store["id"]) == -30.0

    assert api.put(f"/adjustments/{adjustment['id']}/void", json={}).status_code == 400
    voided = ok(api.put(f"/adjustments/{adjustment['id']}/void", json={"void_reason": "Paid after all"}))
    assert voided["status"] == "voided"
    assert credit_balance(api, store["id"]) == 0

    history = ok(api.get(f"/adjustments/store/{store['id']}"))["credit_history"]
    assert [h["amount"] for h in history] == [-30.0, 30.0]


def test_adjustment_rejection(api):
    store = register(api, "reject@example.com")
    adjustment = ok(api.post("/adjustments/", json={
        "store_id": store["id"], "adjustment_type": "refund", "amount": 10, "reason": "Late delivery",
    }))

    assert api.put(f"/adjustments/{adjustment['id']}/reject", json={}).status_code == 400
    rejected = ok(api.put(f"/adjustments/{adjustment['id']}/reject",
                          json={"rejection_reason": "Delivery was on time"}))
    assert rejected["status"] == "rejected"
    assert api.put(f"/adjustments/{adjustment['id']}/approve", json={}).status_code == 400

    summary = ok(api.get("/adjustments/summary"))
    assert summary["total_count"] == 1
    assert summary["pending_count"] == 0


def test_vendor_adjustment_is_recorded_only(api):
    vendor = ok(api.post("/vendors/", json={"name": "Delta Greens"}))
    adjustment = ok(api.post("/adjustments/", json={
        "vendor_id": vendor["id"], "adjustment_type": "debit", "amount": 12,
        "reason": "Pallet fee", "requires_approval": False,
    }))
    assert adjustment["status"] == "applied"
    assert adjustment["vendor_name"] == "Delta Greens"


def test_credit_memo_processing_adds_store_credit(api):
    store, product, order = store_with_order(api)
    memo = ok(api.post("/credit-memos/", json={
        "order_id": order["id"],
        "reason": "Wilted bunches",
        "items": [{"product_id": product["id"], "quantity": 1, "unit_price": 20}],
    }))
    assert memo["status"] == "pending"
    assert memo["total_amount"] == 20.0

    info = ok(api.get(f"/credit-memos/store-credit/{store['id']}"))
    assert [p["id"] for p in info["pending_credits"]] == [memo["id"]]

    processed = ok(api.put(f"/credit-memos/{memo['id']}/process", json={"process_notes": "OK"}))
    assert processed["credit_memo"]["status"] == "processed"
    assert processed["credit_balance_update"] == {"balance_before": 0.0, "balance_after": 20.0}

    assert api.put(f"/credit-memos/{memo['id']}/process", json={}).status_code == 400
    assert api.delete(f"/credit-memos/{memo['id']}").status_code == 400


def test_refund_memo_leaves_balance(api):
    store, product, order = store_with_order(api, "refund@example.com")
    memo = ok(api.post("/credit-memos/", json={
        "order_id": order["id"], "reason": "Cash refund", "refund_method": "refund", "total_amount": 15,
    }))
    processed = ok(api.put(f"/credit-memos/{memo['id']}", json={"status": "processed"}))
    assert processed["status"] == "processed"
    assert credit_balance(api, store["id"]) == 0


def test_apply_store_credit_to_order(api):
    """
    GIVEN a 40.00 order and 25.00 of store credit
    THEN applying 25.00 leaves the order partially paid
    """
    store, product, order = store_with_order(api, "apply@example.com")
    ok(api.post("/adjustments/", json={
        "store_id": store["id"], "adjustment_type": "credit", "amount": 25,
        "reason": "Goodwill", "requires_approval": False,
    }))

    too_much = api.post("/credit-memos/apply-credit", json={
        "store_id": store["id"], "order_id": order["id"], "amount": 30,
    })
    assert too_much.status_code == 400
    assert too_much.json()["message"].startswith("Insufficient credit balance")

    applied = ok(api.post("/credit-memos/apply-credit", json={
        "store_id": store["id"], "order_id": order["id"], "amount": 25,
    }))
    assert applied["new_credit_balance"] == 0
    assert applied["order_payment_status"] == "partial"

    info = ok(api.get(f"/credit-memos/store-credit/{store['id']}"))
    assert info["credit_history"][-1]["order_number"] == order["order_number"]


def test_quality_issue_credit_resolution(api):
    store, product, order = store_with_order(api, "quality@example.com")
    headers = login(api, "quality@example.com")

    unauthenticated = api.post("/quality-issues/", json={
        "order_id": order["id"], "issue_type": "damaged", "description": "Crushed cases",
    })
    assert unauthenticated.status_code == 401

    issue = ok(api.post("/quality-issues/", headers=headers, json={
        "order_id": order["id"], "issue_type": "damaged", "description": "Crushed cases",
        "requested_action": "credit", "requested_amount": 20,
    }))
    assert issue["store_id"] == store["id"]
    assert [i["id"] for i in ok(api.get("/quality-issues/my", headers=headers))] == [issue["id"]]

    resolved = ok(api.post(f"/quality-issues/{issue['id']}/resolve", json={
        "status": "partially_approved", "approved_amount": 12.5, "resolution": "Half the cases credited.",
    }))
    assert resolved["approved_amount"] == 12.5
    assert resolved["resolution"].endswith("Credit of $12.50 added to store balance.")
    assert credit_balance(api, store["id"]) == 12.5


def test_quality_issue_on_another_stores_order(api):
    _, _, order = store_with_order(api, "owner@example.com")
    register(api, "other@example.com")
    headers = login(api, "other@example.com")

    response = api.post("/quality-issues/", headers=headers, json={
        "order_id": order["id"], "issue_type": "quality", "description": "Not ours",
    })
    assert response.status_code == 400


def test_store_inventory_adjust_and_transfer(api):
    first = register(api, "north@example.com")
    second = register(api, "south@example.com")
    product = ok(api.post("/products/", json={"name": "Kale", "a_price": 15}))

    added = ok(api.post("/store-inventory/adjust", json={
        "store_id": first["id"], "product_id": product["id"], "quantity": 12, "type": "add",
    }))
    assert added["quantity"] == 12
    assert added["stock_status"] == "normal"
    assert added["movements"][-1]["type"] == "adjustment"

    short = api.post("/store-inventory/adjust", json={
        "store_id": first["id"], "product_id": product["id"], "quantity": 20, "type": "remove",
    })
    assert short.status_code == 400
    assert short.json()["message"] == "Insufficient inventory"

    moved = ok(api.post("/store-inventory/transfer", json={
        "from_store_id": first["id"], "to_store_id": second["id"], "product_id": product["id"], "quantity": 5,
    }))
    assert moved["source"]["quantity"] == 7
    assert moved["source"]["stock_status"] == "low"
    assert moved["destination"]["quantity"] == 5
    assert moved["destination"]["movements"][-1]["quantity"] == 5

    same = api.post("/store-inventory/transfer", json={
        "from_store_id": first["id"], "to_store_id": first["id"], "product_id": product["id"], "quantity": 1,
    })
    assert same.status_code == 400

    listing = ok(api.get(f"/store-inventory/store/{second['id']}"))
    assert listing["total"] == 1


def test_store_inventory_initialize_adds_missing_rows(api):
    store = register(api, "fresh@example.com")
    kale = ok(api.post("/products/", json={"name": "Kale", "a_price": 15}))
    ok(api.post("/products/", json={"name": "Leeks", "a_price": 11}))
    ok(api.post("/store-inventory/adjust", json={
        "store_id": store["id"], "product_id": kale["id"], "quantity": 4, "type": "add",
    }))

    first = ok(api.post(f"/store-inventory/initialize/{store['id']}"))
    assert first == {"created": 1}
    assert ok(api.post(f"/store-inventory/initialize/{store['id']}")) == {"created": 0}

    rows = ok(api.get(f"/store-inventory/store/{store['id']}"))["items"]
    assert [(r["product_name"], r["quantity"]) for r in rows] == [("Kale", 4), ("Leeks", 0)]
    assert api.post("/store-inventory/initialize/999").status_code == 404


def test_store_analytics_for_one_and_all(api):
    store, product, order = store_with_order(api)
    idle = register(api, "quiet@example.com")

    stats = ok(api.get(f"/stores/{store['id']}/analytics"))
    assert stats["total_orders"] == 1
    assert stats["total_spent"] == 40.0
    assert stats["balance_due"] == 40.0
    assert stats["credit_count"] == 1
    assert stats["days_since_last_order"] == 0
    assert stats["payment_status"] == "good"
    # Open credit on its only order, offset by a rising trend
    assert (stats["store_rating"], stats["rating_score"]) == ("excellent", 85)
    assert api.get("/stores/999/analytics").status_code == 404

    everyone = ok(api.get("/stores/analytics"))
    assert {s["store_id"] for s in everyone["stores"]} == {store["id"], idle["id"]}
    quiet = next(s for s in everyone["stores"] if s["store_id"] == idle["id"])
    assert quiet["days_since_last_order"] == 999
    assert everyone["summary"]["total_stores"] == 2
    assert everyone["summary"]["active_stores"] == 1
    assert everyone["summary"]["total_outstanding"] == 40.0


def test_communication_log(api):
    store = register(api, "calls@example.com")
    assert api.post(f"/stores/{store['id']}/communication", json={"notes": "No type"}).status_code == 400

    first = ok(api.post(f"/stores/{store['id']}/communication", json={
        "type": "call", "subject": "Late delivery", "outcome": "Credit promised",
    }))
    assert first["created_by_name"] == "Admin"
    ok(api.post(f"/stores/{store['id']}/communication", json={"type": "email", "created_by_name": "Dana"}))

    logs = ok(api.get(f"/stores/{store['id']}/communications"))
    assert [entry["type"] for entry in logs["logs"]] == ["email", "call"]
    assert logs["store_name"] == "Calls Market"


def test_payment_record_settles_order(api):
    """
    GIVEN a 40.00 order
    THEN a 15.00 payment makes it partial and another 25.00 pays it
    """
    store, product, order = store_with_order(api)
    assert api.post(f"/stores/{store['id']}/payment", json={"amount": 0}).status_code == 400

    first = ok(api.post(f"/stores/{store['id']}/payment", json={
        "amount": 15, "type": "card", "reference": "T-100", "order_id": order["id"],
    }))
    assert first["order_payment_status"] == "partial"
    second = ok(api.post(f"/stores/{store['id']}/payment", json={"amount": 25, "order_id": order["id"]}))
    assert second["type"] == "cash"
    assert second["order_payment_status"] == "paid"

    paid = ok(api.get(f"/orders/{order['id']}"))
    assert paid["payment_status"] == "paid"
    assert paid["payment_amount"] == 40.0

    other = register(api, "other@example.com")
    foreign = api.post(f"/stores/{other['id']}/payment", json={"amount": 5, "order_id": order["id"]})
    assert foreign.status_code == 404

    records = ok(api.get(f"/stores/{store['id']}/payments"))["payments"]
    assert [r["amount"] for r in records] == [25.0, 15.0]


def test_latest_orders_and_weekly_product_orders(api):
    store, product, order = store_with_order(api)
    second = ok(api.post("/orders/", json={
        "store_id": store["id"],
        "items": [{"product_id": product["id"], "quantity": 3, "pricing_type": "box"}],
    }))

    latest = ok(api.get(f"/orders/latest/{store['id']}", params={"limit": 1}))
    assert [o["id"] for o in latest["orders"]] == [second["id"]]
    assert latest["purchased_product_ids"] == [product["id"]]
    assert latest["total_orders"] == 2

    week = ok(api.get(f"/products/{product['id']}/weekly-orders"))
    assert [line["order_id"] for line in week["orders"]] == [second["id"], order["id"]]
    assert week["total_quantity"] == 5
    assert week["stores"] == [{"store_id": store["id"], "store_name": "Deli Market", "quantity": 5, "total": 100.0}]
    assert ok(api.get(f"/products/{product['id']}/weekly-orders", params={"week_offset": -1}))["orders"] == []

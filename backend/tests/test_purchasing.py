from conftest import ok


def make_vendor(api, name="Valley Farms", **extra):
    return ok(api.post("/vendors/", json={"name": name, **extra}))


def make_product(api, name="Russet Potatoes", **extra):
    return ok(api.post("/products/", json={"name": name, "a_price": 25, **extra}))


def stock_of(api, product_id):
    return ok(api.get(f"/products/{product_id}"))["stock"]["total_remaining"]


def make_purchase_order(api, vendor_id, product_id, quantity=10, unit_price=12, **extra):
    return ok(api.post("/purchase-orders/", json={
        "vendor_id": vendor_id,
        "items": [{"product_id": product_id, "quantity": quantity, "unit_price": unit_price}],
        **extra,
    }))


def test_vendor_due_days_follow_terms(api):
    vendor = make_vendor(api, payment_terms="net45")
    assert vendor["due_days"] == 45

    cod = ok(api.put(f"/vendors/{vendor['id']}", json={"payment_terms": "cod"}))
    assert cod["due_days"] == 0


def test_stock_moves_only_on_quality_approval(api):
    """
    GIVEN a purchase order waiting for quality check
    THEN stock is added on approval and taken back on rejection
    """
    vendor = make_vendor(api)
    product = make_product(api)
    purchase_order = make_purchase_order(api, vendor["id"], product["id"])
    assert purchase_order["total_amount"] == 120.0
    assert purchase_order["status"] == "quality-check"
    assert stock_of(api, product["id"]) == 0

    item_id = purchase_order["items"][0]["id"]
    url = f"/purchase-orders/{purchase_order['id']}/items/{item_id}/quality"
    approved = ok(api.put(url, json={"quality_status": "approved"}))
    assert approved["items"][0]["approved_quantity"] == 10
    assert stock_of(api, product["id"]) == 10

    # Approving again does not add twice
    ok(api.put(url, json={"quality_status": "approved"}))
    assert stock_of(api, product["id"]) == 10

    ok(api.put(url, json={"quality_status": "rejected", "rejection_reason": "spoiled"}))
    assert stock_of(api, product["id"]) == 0


def test_update_moves_stock_by_the_difference(api):
    vendor = make_vendor(api)
    product = make_product(api)
    purchase_order = make_purchase_order(api, vendor["id"], product["id"])
    item_id = purchase_order["items"][0]["id"]
    ok(api.put(f"/purchase-orders/{purchase_order['id']}/items/{item_id}/quality",
               json={"quality_status": "approved"}))

    updated = ok(api.put(f"/purchase-orders/{purchase_order['id']}", json={
        "items": [{"product_id": product["id"], "quantity": 14, "unit_price": 12, "quality_status": "approved"}],
    }))
    assert updated["items"][0]["id"] == item_id
    assert updated["total_amount"] == 168.0
    assert stock_of(api, product["id"]) == 14


def test_delete_reverses_approved_stock(api):
    vendor = make_vendor(api)
    product = make_product(api, carry_forward_box=2)
    purchase_order = ok(api.post("/purchase-orders/", json={
        "vendor_id": vendor["id"],
        "items": [{"product_id": product["id"], "quantity": 6, "unit_price": 5, "quality_status": "approved"}],
    }))
    assert stock_of(api, product["id"]) == 8

    deleted = ok(api.delete(f"/purchase-orders/{purchase_order['id']}"))
    assert deleted["stock_reversed"][0]["old_quantity"] == 6
    assert stock_of(api, product["id"]) == 2
    assert api.get(f"/purchase-orders/{purchase_order['id']}").status_code == 404


def test_vendor_with_purchase_orders_cannot_be_deleted(api):
    vendor = make_vendor(api)
    product = make_product(api)
    make_purchase_order(api, vendor["id"], product["id"])
    assert api.delete(f"/vendors/{vendor['id']}").status_code == 400


def test_purchase_payment_and_credit(api):
    """
    GIVEN a 120.00 purchase order
    THEN an approved 20.00 credit memo and a 100.00 payment settle it
    """
    vendor = make_vendor(api)
    product = make_product(api)
    purchase_order = make_purchase_order(api, vendor["id"], product["id"])

    draft = ok(api.post("/vendor-credit-memos/", json={"vendor_id": vendor["id"], "amount": 20}))
    refused = api.post(f"/purchase-orders/{purchase_order['id']}/apply-credit",
                       json={"amount": 20, "credit_memo_id": draft["id"]})
    assert refused.status_code == 400
    assert refused.json()["message"] == "Credit memo cannot be applied (status: draft)"

    ok(api.post(f"/vendor-credit-memos/{draft['id']}/submit"))
    ok(api.post(f"/vendor-credit-memos/{draft['id']}/approve", json={}))
    applied = ok(api.post(f"/purchase-orders/{purchase_order['id']}/apply-credit",
                          json={"amount": 20, "credit_memo_id": draft["id"]}))
    assert applied["credit_memo_remaining"] == 0
    assert applied["purchase_order"]["outstanding_amount"] == 100.0

    too_much = api.post(f"/purchase-orders/{purchase_order['id']}/apply-credit", json={"amount": 150})
    assert too_much.status_code == 400

    cash = api.put(f"/purchase-orders/{purchase_order['id']}/payment", json={"method": "cash", "amount_paid": 100})
    assert cash.status_code == 400

    paid = ok(api.put(f"/purchase-orders/{purchase_order['id']}/payment",
                      json={"method": "cheque", "amount_paid": 100}))
    assert paid["payment_status"] == "paid"

    summary = ok(api.get(f"/purchase-orders/vendor/{vendor['id']}"))
    assert summary["total_spent"] == 120.0
    assert summary["balance_due"] == 0


def test_incoming_draft_is_set_and_cleared(api):
    product = make_product(api)
    first = ok(api.post("/incoming-stock/", json={"product_id": product["id"], "quantity": 8}))
    again = ok(api.post("/incoming-stock/", json={"product_id": product["id"], "quantity": 12}))
    assert again["id"] == first["id"]
    assert again["quantity"] == 12

    unlinked = ok(api.get("/incoming-stock/unlinked"))
    assert unlinked["unlinked_count"] == 1
    assert unlinked["can_confirm"] is False

    removed = api.post("/incoming-stock/", json={"product_id": product["id"], "quantity": 0})
    assert removed.json()["message"] == "Incoming stock removed"
    assert ok(api.get("/incoming-stock/unlinked"))["unlinked_count"] == 0


def test_bulk_link_splits_and_auto_approves(api):
    """
    GIVEN a draft of 10 cases
    THEN linking 6 creates an approved purchase order and leaves 4 as draft
    """
    vendor = make_vendor(api)
    product = make_product(api)
    draft = ok(api.post("/incoming-stock/", json={"product_id": product["id"], "quantity": 10}))

    result = ok(api.post("/incoming-stock/bulk-link", json={
        "vendor_id": vendor["id"],
        "items": [{"incoming_stock_id": draft["id"], "quantity": 6, "unit_price": 9}],
    }))
    assert result["linked_count"] == 1
    assert result["auto_approved"] is True
    purchase_order = result["purchase_orders"][0]
    assert purchase_order["total_amount"] == 54.0
    assert purchase_order["items"][0]["quality_status"] == "approved"
    assert stock_of(api, product["id"]) == 6

    week = ok(api.get("/incoming-stock/"))
    entries = week["incoming_stock"][0]["items"]
    assert sorted((e["status"], e["quantity"]) for e in entries) == [("draft", 4), ("received", 6)]
    assert week["incoming_stock"][0]["all_linked"] is False


def test_bulk_link_reports_missing_vendor(api):
    product = make_product(api)
    draft = ok(api.post("/incoming-stock/", json={"product_id": product["id"], "quantity": 3}))
    result = ok(api.post("/incoming-stock/bulk-link", json={
        "items": [{"incoming_stock_id": draft["id"]}],
    }))
    assert result["linked_count"] == 0
    assert result["errors"] == [{"id": draft["id"], "error": "vendor_id is required"}]


def test_bulk_link_unknown_vendor_is_a_line_error(api):
    vendor = make_vendor(api)
    product = make_product(api)
    first = ok(api.post("/incoming-stock/", json={"product_id": product["id"], "quantity": 3}))
    onions = make_product(api, name="Yellow Onions")
    second = ok(api.post("/incoming-stock/", json={"product_id": onions["id"], "quantity": 2}))

    result = ok(api.post("/incoming-stock/bulk-link", json={
        "create_purchase_order": False,
        "items": [
            {"incoming_stock_id": first["id"], "vendor_id": 999, "unit_price": 5},
            {"incoming_stock_id": second["id"], "vendor_id": vendor["id"], "unit_price": 5},
        ],
    }))
    assert result["linked_count"] == 1
    assert result["errors"] == [{"id": first["id"], "error": "Vendor not found"}]


def test_link_then_receive(api):
    vendor = make_vendor(api)
    product = make_product(api)
    draft = ok(api.post("/incoming-stock/", json={"product_id": product["id"], "quantity": 5}))

    linked = ok(api.post(f"/incoming-stock/{draft['id']}/link", json={
        "vendor_id": vendor["id"], "unit_price": 4, "create_purchase_order": True,
    }))
    assert linked["status"] == "linked"
    assert linked["total_price"] == 20.0
    assert linked["purchase_order_id"]

    received = ok(api.post(f"/incoming-stock/{draft['id']}/receive", json={"received_quantity": 4}))
    assert received["received_quantity"] == 4
    # Stock waits for quality approval of the purchase order line
    assert stock_of(api, product["id"]) == 0

    assert api.delete(f"/incoming-stock/{draft['id']}").status_code == 400

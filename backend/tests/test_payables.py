from conftest import ok


def make_vendor(api, **extra):
    return ok(api.post("/vendors/", json={"name": "Sunrise Produce", **extra}))


def approved_purchase_order(api, vendor_id, quantity=10, unit_price=12):
    product = ok(api.post("/products/", json={"name": "Lemons", "a_price": 30}))
    purchase_order = ok(api.post("/purchase-orders/", json={
        "vendor_id": vendor_id,
        "items": [{"product_id": product["id"], "quantity": quantity, "unit_price": unit_price,
                   "quality_status": "approved"}],
    }))
    return product, purchase_order


def make_invoice(api, vendor_id, amount=120, **extra):
    return ok(api.post("/invoices/", json={"vendor_id": vendor_id, "total_amount": amount, **extra}))


def test_invoice_totals_and_due_date(api):
    """
    GIVEN invoice lines, tax, shipping and a discount
    THEN the total adds them up and the due date follows the vendor terms
    """
    vendor = make_vendor(api, payment_terms="net15")
    invoice = ok(api.post("/invoices/", json={
        "vendor_id": vendor["id"],
        "line_items": [{"description": "Lemons", "quantity": 10, "unit_price": 12}],
        "tax_amount": 6,
        "shipping_amount": 10,
        "discount_amount": 4,
    }))
    assert invoice["subtotal"] == 120.0
    assert invoice["total_amount"] == 132.0
    assert invoice["amount_remaining"] == 132.0
    assert invoice["status"] == "pending"
    assert invoice["days_until_due"] in (14, 15)


def test_invoice_rejects_other_vendors_purchase_orders(api):
    vendor = make_vendor(api)
    other = ok(api.post("/vendors/", json={"name": "Hillside Growers"}))
    _, purchase_order = approved_purchase_order(api, other["id"])

    response = api.post("/invoices/", json={
        "vendor_id": vendor["id"], "purchase_order_ids": [purchase_order["id"]], "total_amount": 120,
    })
    assert response.status_code == 400


def test_full_three_way_match(api):
    vendor = make_vendor(api)
    product, purchase_order = approved_purchase_order(api, vendor["id"])
    invoice = ok(api.post("/invoices/", json={
        "vendor_id": vendor["id"],
        "purchase_order_ids": [purchase_order["id"]],
        "line_items": [{"product_id": product["id"], "quantity": 10, "unit_price": 12}],
    }))

    result = ok(api.post(f"/invoices/{invoice['id']}/match"))
    assert result["status_text"] == "Full Match"
    assert result["is_full_match"] is True
    assert result["invoice"]["status"] == "matched"

    comparison = ok(api.get(f"/invoices/{invoice['id']}/comparison"))
    assert comparison["totals"]["variance"] == 0
    assert comparison["totals"]["received_total"] == 120.0


def test_match_flags_price_difference(api):
    """
    GIVEN an invoice billing 13.00 for cases ordered at 12.00
    THEN matching reports a price mismatch and the invoice stays pending
    """
    vendor = make_vendor(api)
    product, purchase_order = approved_purchase_order(api, vendor["id"])
    invoice = ok(api.post("/invoices/", json={
        "vendor_id": vendor["id"],
        "purchase_order_ids": [purchase_order["id"]],
        "line_items": [{"product_id": product["id"], "quantity": 10, "unit_price": 13}],
    }))

    result = ok(api.post(f"/invoices/{invoice['id']}/match"))
    assert result["is_full_match"] is False
    assert "Price mismatch" in result["status_text"]
    assert result["invoice"]["status"] == "pending"


def test_match_requires_purchase_orders(api):
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"])
    response = api.post(f"/invoices/{invoice['id']}/match")
    assert response.status_code == 400
    assert response.json()["message"] == "Invoice has no linked purchase orders to match against"


def test_dispute_puts_invoice_on_hold(api):
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"])

    assert api.post(f"/invoices/{invoice['id']}/dispute", json={"dispute_reason": " "}).status_code == 400
    disputed = ok(api.post(f"/invoices/{invoice['id']}/dispute",
                           json={"dispute_reason": "Short delivery", "put_on_hold": True}))
    assert disputed["status"] == "disputed"
    assert disputed["on_hold"] is True

    approved = ok(api.post(f"/invoices/{invoice['id']}/approve", json={}))
    assert approved["status"] == "approved"
    assert approved["on_hold"] is False


def test_payment_updates_invoices_and_credits(api):
    """
    GIVEN a 120.00 approved invoice and an approved 20.00 credit memo
    THEN paying 100.00 with the credit nets 80.00 and leaves 20.00 open
    """
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"])
    ok(api.post(f"/invoices/{invoice['id']}/approve", json={}))
    memo = ok(api.post("/vendor-credit-memos/", json={
        "vendor_id": vendor["id"], "amount": 20, "submit_for_approval": True,
    }))
    ok(api.post(f"/vendor-credit-memos/{memo['id']}/approve", json={}))

    payment = ok(api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "ach",
        "invoice_payments": [{"invoice_id": invoice["id"], "amount": 100}],
        "applied_credits": [{"credit_memo_id": memo["id"], "amount": 20}],
    }))
    assert payment["gross_amount"] == 100.0
    assert payment["credit_applied"] == 20.0
    assert payment["net_amount"] == 80.0

    refreshed = ok(api.get(f"/invoices/{invoice['id']}"))
    assert refreshed["status"] == "partially_paid"
    assert refreshed["amount_remaining"] == 20.0
    assert ok(api.get(f"/vendor-credit-memos/{memo['id']}"))["status"] == "applied"

    # An applied memo can no longer be voided
    response = api.post(f"/vendor-credit-memos/{memo['id']}/void", json={"void_reason": "Entered twice"})
    assert response.status_code == 400


def test_overpayment_is_refused(api):
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"], amount=50)
    response = api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "cash",
        "invoice_payments": [{"invoice_id": invoice["id"], "amount": 60}],
    })
    assert response.status_code == 400
    assert "exceeds remaining balance" in response.json()["message"]


def test_repeated_lines_cannot_overpay(api):
    """
    GIVEN a 100.00 invoice and a 20.00 credit memo
    THEN two 80.00 lines on the invoice, or two 15.00 uses of the memo, are refused
    """
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"], amount=100)
    ok(api.post(f"/invoices/{invoice['id']}/approve", json={}))
    memo = ok(api.post("/vendor-credit-memos/", json={
        "vendor_id": vendor["id"], "amount": 20, "submit_for_approval": True,
    }))
    ok(api.post(f"/vendor-credit-memos/{memo['id']}/approve", json={}))

    twice = api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "ach",
        "invoice_payments": [
            {"invoice_id": invoice["id"], "amount": 80},
            {"invoice_id": invoice["id"], "amount": 80},
        ],
    })
    assert twice.status_code == 400
    assert "exceeds remaining balance" in twice.json()["message"]
    assert ok(api.get(f"/invoices/{invoice['id']}"))["amount_remaining"] == 100.0

    memo_twice = api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "ach",
        "invoice_payments": [{"invoice_id": invoice["id"], "amount": 40}],
        "applied_credits": [
            {"credit_memo_id": memo["id"], "amount": 15},
            {"credit_memo_id": memo["id"], "amount": 15},
        ],
    })
    assert memo_twice.status_code == 400
    assert "exceeds remaining credit" in memo_twice.json()["message"]
    assert ok(api.get(f"/vendor-credit-memos/{memo['id']}"))["status"] == "approved"


def test_bounced_check_reverses_payment(api):
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"])
    ok(api.post(f"/invoices/{invoice['id']}/approve", json={}))
    payment = ok(api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "check",
        "check_number": "1042",
        "invoice_payments": [{"invoice_id": invoice["id"], "amount": 120}],
    }))
    assert payment["check_clearance_status"] == "pending"
    assert ok(api.get(f"/invoices/{invoice['id']}"))["status"] == "paid"

    no_reason = api.put(f"/vendor-payments/{payment['id']}/check-status", json={"status": "bounced"})
    assert no_reason.status_code == 400

    bounced = ok(api.put(f"/vendor-payments/{payment['id']}/check-status",
                         json={"status": "bounced", "reason": "Insufficient funds"}))
    assert bounced["status"] == "failed"
    assert bounced["can_void"] is False

    reopened = ok(api.get(f"/invoices/{invoice['id']}"))
    assert reopened["status"] == "approved"
    assert reopened["amount_remaining"] == 120.0


def test_void_payment_requires_reason(api):
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"])
    ok(api.post(f"/invoices/{invoice['id']}/approve", json={}))
    payment = ok(api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "wire",
        "invoice_payments": [{"invoice_id": invoice["id"], "amount": 40}],
    }))

    assert api.post(f"/vendor-payments/{payment['id']}/void", json={}).status_code == 400
    voided = ok(api.post(f"/vendor-payments/{payment['id']}/void", json={"void_reason": "Wrong invoice"}))
    assert voided["status"] == "voided"
    assert ok(api.get(f"/invoices/{invoice['id']}"))["amount_paid"] == 0


def test_discount_preview(api):
    vendor = make_vendor(api, early_discount_percentage=2, early_discount_within_days=10)
    invoice = make_invoice(api, vendor["id"], amount=500)

    preview = ok(api.post("/vendor-payments/discount-preview", json={
        "vendor_id": vendor["id"], "invoice_ids": [invoice["id"]],
    }))
    assert preview["has_discount"] is True
    assert preview["discount_amount"] == 10.0
    assert preview["qualifying_invoices"] == [invoice["id"]]


def test_memo_lifecycle(api):
    vendor = make_vendor(api)
    memo = ok(api.post("/vendor-credit-memos/", json={
        "vendor_id": vendor["id"], "memo_type": "debit", "amount": 15, "reason_category": "price_correction",
    }))
    assert memo["memo_number"].startswith("VDM")
    assert memo["status"] == "draft"

    # Drafts are approved only after submission
    assert api.post(f"/vendor-credit-memos/{memo['id']}/approve", json={}).status_code == 400

    edited = ok(api.put(f"/vendor-credit-memos/{memo['id']}", json={"amount": 18}))
    assert edited["amount"] == 18.0

    assert api.post(f"/vendor-credit-memos/{memo['id']}/void", json={}).status_code == 400
    voided = ok(api.post(f"/vendor-credit-memos/{memo['id']}/void", json={"void_reason": "Vendor withdrew"}))
    assert voided["status"] == "voided"
    assert api.put(f"/vendor-credit-memos/{memo['id']}", json={"amount": 5}).status_code == 400


def test_available_credits(api):
    vendor = make_vendor(api)
    memo = ok(api.post("/vendor-credit-memos/", json={
        "vendor_id": vendor["id"], "amount": 30, "submit_for_approval": True,
    }))
    assert ok(api.get(f"/vendor-credit-memos/vendor/{vendor['id']}/available"))["credits"] == []

    ok(api.post(f"/vendor-credit-memos/{memo['id']}/approve", json={"approval_notes": "Checked"}))
    available = ok(api.get(f"/vendor-credit-memos/vendor/{vendor['id']}/available"))
    assert available["total_available"] == 30.0


def test_dispute_holds_and_releases_invoices(api):
    """
    GIVEN a dispute that holds its invoice
    THEN resolving it releases the hold
    """
    vendor = make_vendor(api)
    invoice = make_invoice(api, vendor["id"])
    dispute = ok(api.post("/vendor-disputes/", json={
        "vendor_id": vendor["id"],
        "invoice_id": invoice["id"],
        "dispute_type": "quality",
        "description": "Half the lemons were soft",
        "disputed_amount": 60,
        "put_invoices_on_hold": True,
    }))
    assert dispute["status"] == "open"
    assert len(dispute["communications"]) == 1
    assert ok(api.get(f"/invoices/{invoice['id']}"))["on_hold"] is True

    assert api.put(f"/vendor-disputes/{dispute['id']}/resolve",
                   json={"resolution_notes": "Credit agreed"}).status_code == 400
    resolved = ok(api.put(f"/vendor-disputes/{dispute['id']}/resolve", json={
        "resolution_notes": "Credit agreed", "resolution_type": "credit_issued", "resolution_amount": 60,
    }))
    assert resolved["status"] == "resolved"
    assert resolved["resolution_amount"] == 60.0
    assert ok(api.get(f"/invoices/{invoice['id']}"))["on_hold"] is False

    again = api.put(f"/vendor-disputes/{dispute['id']}/resolve", json={
        "resolution_notes": "Again", "resolution_type": "no_action",
    })
    assert again.status_code == 400


def test_dispute_escalation_and_status(api):
    vendor = make_vendor(api)
    dispute = ok(api.post("/vendor-disputes/", json={
        "vendor_id": vendor["id"], "dispute_type": "delivery", "description": "Arrived two days late",
    }))

    invalid = api.put(f"/vendor-disputes/{dispute['id']}/status", json={"status": "resolved"})
    assert invalid.status_code == 400

    ok(api.post(f"/vendor-disputes/{dispute['id']}/communication", json={"message": "Called the vendor"}))
    escalated = ok(api.put(f"/vendor-disputes/{dispute['id']}/escalate", json={
        "escalation_reason": "No reply in a week", "escalated_to": "Purchasing manager",
    }))
    assert escalated["status"] == "escalated"
    assert len(escalated["communications"]) == 3

    summary = ok(api.get(f"/vendor-disputes/vendor/{vendor['id']}/summary"))
    assert summary["open_count"] == 1

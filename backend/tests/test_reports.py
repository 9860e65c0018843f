from datetime import datetime, timedelta

from conftest import ok, register


def make_vendor(api, name="Orchard Direct", **extra):
    return ok(api.post("/vendors/", json={"name": name, **extra}))


def graded_purchase_order(api, vendor_id):
    """10 cases approved and 5 rejected."""
    apples = ok(api.post("/products/", json={"name": "Gala Apples", "a_price": 40}))
    pears = ok(api.post("/products/", json={"name": "Bosc Pears", "a_price": 38}))
    return ok(api.post("/purchase-orders/", json={
        "vendor_id": vendor_id,
        "items": [
            {"product_id": apples["id"], "quantity": 10, "unit_price": 12, "quality_status": "approved"},
            {"product_id": pears["id"], "quantity": 5, "unit_price": 12, "quality_status": "rejected",
             "rejection_reason": "spoiled"},
        ],
    }))


def test_aging_buckets_by_days_past_due(api):
    vendor = make_vendor(api)
    now = datetime.utcnow()
    ok(api.post("/invoices/", json={"vendor_id": vendor["id"], "total_amount": 80,
                                   "due_date": (now + timedelta(days=10)).isoformat()}))
    ok(api.post("/invoices/", json={"vendor_id": vendor["id"], "total_amount": 45,
                                   "due_date": (now - timedelta(days=45)).isoformat()}))

    report = ok(api.get("/vendor-reports/aging"))
    assert report["vendor_count"] == 1
    assert report["totals"]["current"] == 80.0
    assert report["totals"]["31_60"] == 45.0
    assert report["totals"]["total_outstanding"] == 125.0

    row = report["vendors"][0]
    assert row["vendor_name"] == "Orchard Direct"
    overdue = next(i for i in row["invoices"] if i["bucket"] == "31_60")
    assert overdue["days_past_due"] == 45

    filtered = ok(api.get("/vendor-reports/aging", params={"min_amount": 50}))
    assert filtered["totals"]["total_outstanding"] == 80.0


def test_statement_running_balance(api):
    """
    GIVEN a 120.00 invoice and a 50.00 payment
    THEN the statement closes at 70.00
    """
    vendor = make_vendor(api, email="ap@orchard.example")
    invoice = ok(api.post("/invoices/", json={"vendor_id": vendor["id"], "total_amount": 120}))
    ok(api.post(f"/invoices/{invoice['id']}/approve", json={}))
    ok(api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "ach",
        "invoice_payments": [{"invoice_id": invoice["id"], "amount": 50}],
    }))

    statement = ok(api.get(f"/vendor-reports/vendor/{vendor['id']}/statement"))
    assert statement["vendor"]["email"] == "ap@orchard.example"
    assert statement["date_range"] == {"start_date": "All time", "end_date": "Present"}
    assert [(t["type"], t["balance"]) for t in statement["transactions"]] == [("invoice", 120.0), ("payment", 70.0)]
    assert statement["summary"]["current_balance"] == 70.0
    assert statement["summary"]["payment_count"] == 1

    assert api.get("/vendor-reports/vendor/999/statement").status_code == 404


def test_scorecard_flags_threshold_violations(api):
    vendor = make_vendor(api)
    graded_purchase_order(api, vendor["id"])

    scorecard = ok(api.get(f"/vendor-reports/vendor/{vendor['id']}/performance"))
    assert scorecard["details"]["total_ordered"] == 15
    assert scorecard["details"]["total_approved"] == 10
    assert scorecard["details"]["total_rejected"] == 5
    assert scorecard["metrics"]["quality_acceptance_rate"] == 66.67
    assert scorecard["metrics"]["fill_rate"] == 66.67
    assert scorecard["is_below_threshold"] is True
    assert scorecard["threshold_violations"] == {"quality_acceptance": True, "fill_rate": True}


def test_scorecard_without_purchases(api):
    vendor = make_vendor(api)
    scorecard = ok(api.get(f"/vendor-reports/vendor/{vendor['id']}/performance"))
    assert scorecard["metrics"]["quality_acceptance_rate"] == 0
    assert scorecard["is_below_threshold"] is False


def test_dashboard_counts(api):
    vendor = make_vendor(api)
    graded_purchase_order(api, vendor["id"])
    invoice = ok(api.post("/invoices/", json={"vendor_id": vendor["id"], "total_amount": 120}))
    ok(api.post(f"/invoices/{invoice['id']}/approve", json={}))
    ok(api.post("/vendor-payments/", json={
        "vendor_id": vendor["id"],
        "payment_method": "ach",
        "invoice_payments": [{"invoice_id": invoice["id"], "amount": 50}],
    }))
    ok(api.post("/vendor-disputes/", json={
        "vendor_id": vendor["id"], "dispute_type": "pricing", "description": "Billed at last week's price",
    }))

    store = register(api, "dash@example.com")
    ok(api.post("/adjustments/", json={
        "store_id": store["id"], "adjustment_type": "credit", "amount": 15, "reason": "Short case",
    }))

    dashboard = ok(api.get("/vendor-reports/dashboard"))
    assert dashboard["vendors"]["total"] == 1
    assert dashboard["payables"]["invoice_count"] == 1
    assert dashboard["payables"]["total_paid"] == 50.0
    assert dashboard["payables"]["total_outstanding"] == 70.0
    assert dashboard["payables"]["open_disputes"] == 1
    assert dashboard["purchases"]["total_orders"] == 1
    assert dashboard["adjustments"] == {"pending_count": 1, "pending_amount": 15.0}

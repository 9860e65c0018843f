from datetime import date, datetime, timedelta
from types import SimpleNamespace

from produce_app.services.aging import aging_bucket, build_aging_report
from produce_app.services.order_validation import validate_order_item, validate_order_items
from produce_app.services.pallet_calculator import (
    calculate_pallet_capacity, calculate_pallets_needed, format_pallet_estimate
)
from produce_app.services.payables import early_payment_discount
from produce_app.services.pricing import get_product_price_for_store, normalize_price_category
from produce_app.services.statements import build_statement
from produce_app.services.store_analytics import (
    analytics_summary, calculate_store_rating, month_bounds, store_order_analytics
)
from produce_app.services.stock import calculate_actual_stock, date_within_week, get_week_range
from produce_app.services.three_way_matching import get_matching_status_text, perform_three_way_match
from produce_app.services.work_order_allocation import allocate


def test_pallet_capacity_picks_best_orientation():
    """
    GIVEN a 12 x 10 x 10 in case with no weight
    THEN 16 cases fit per layer, 4 layers high, limited by height
    """
    capacity = calculate_pallet_capacity({"length": 12, "width": 10, "height": 10})
    assert capacity["cases_per_layer"] == 16
    assert capacity["layers_per_pallet"] == 4
    assert capacity["total_cases_per_pallet"] == 64
    assert capacity["limited_by"] == "height"
    assert capacity["used_orientation"] == "standard"


def test_pallet_capacity_limited_by_weight():
    """
    GIVEN the same case weighing 50 lb
    THEN only 3 layers fit under the 2500 lb limit
    """
    capacity = calculate_pallet_capacity({"length": 12, "width": 10, "height": 10}, case_weight=50)
    assert capacity["layers_per_pallet"] == 3
    assert capacity["total_cases_per_pallet"] == 48
    assert capacity["limited_by"] == "weight"


def test_pallet_capacity_needs_all_dimensions():
    assert calculate_pallet_capacity({"length": 12, "width": 10}) is None
    assert calculate_pallet_capacity({"length": 12, "width": 10, "height": 0}) is None
    oversized = calculate_pallet_capacity({"length": 60, "width": 50, "height": 10})
    assert oversized["total_cases_per_pallet"] == 0
    assert oversized["error"] == "Case dimensions exceed pallet size"


def test_pallets_needed_and_display():
    """
    GIVEN 100 cases at 64 per pallet
    THEN 1 full pallet plus 36 cases, 2 pallets in total
    """
    needed = calculate_pallets_needed(100, 64)
    assert needed["full_pallets"] == 1
    assert needed["partial_pallet_cases"] == 36
    assert needed["total_pallets"] == 2
    assert needed["utilization_percent"] == 78.1
    assert format_pallet_estimate(needed) == "~2 pallets (1 full + 36 cases) (estimate)"
    assert format_pallet_estimate(None) == "Dimensions required for pallet calculation"


def test_case_only_product_rejects_unit_pricing():
    product = SimpleNamespace(name="Apples", sales_mode="case")
    result = validate_order_item(product, {"quantity": 2, "pricing_type": "unit"})
    assert result["valid"] is False
    assert "only be ordered by case" in result["error"]

    result = validate_order_item(product, {"quantity": 1.5, "pricing_type": "box"})
    assert result["error"] == "Case quantity must be a whole number (1 or more)"


def test_unit_product_accepts_fractional_quantity():
    product = SimpleNamespace(name="Ginger", sales_mode="unit")
    assert validate_order_item(product, {"quantity": 2.25, "pricing_type": "unit"}) == {"valid": True}
    assert validate_order_item(product, {"quantity": 2, "pricing_type": "box"})["valid"] is False


def test_validate_order_items_collects_errors():
    """
    GIVEN one unknown product and one bad quantity
    THEN both are reported with their index
    """
    products = {1: SimpleNamespace(name="Kale", sales_mode="both")}
    result = validate_order_items(
        [{"product_id": 99, "quantity": 1, "pricing_type": "box"},
         {"product_id": 1, "quantity": 0, "pricing_type": "box"}],
        products,
    )
    assert result["valid"] is False
    assert [e["item_index"] for e in result["errors"]] == [0, 1]
    assert result["errors"][0]["error"] == "Product not found"
    assert result["errors"][1]["error"] == "Quantity must be greater than 0"
    assert validate_order_items([], products)["errors"][0]["error"] == "Order must contain at least one item"


def _po(quantity=10, unit_price=10.0, quality_status="approved"):
    return {
        "purchase_order_number": "PO-1",
        "total_amount": quantity * unit_price,
        "items": [{
            "product_id": 1,
            "product_name": "Tomatoes",
            "quantity": quantity,
            "unit_price": unit_price,
            "total_price": quantity * unit_price,
            "quality_status": quality_status,
        }],
    }


def test_three_way_full_match():
    invoice = {"total_amount": 100, "line_items": [{"product_id": 1, "quantity": 10, "unit_price": 10}]}
    result = perform_three_way_match(invoice, [_po()], 2, 0, 5)
    assert result["is_full_match"] is True
    assert result["approval_required"] is False
    assert get_matching_status_text(result["matching_results"]) == "Full Match"


def test_three_way_price_and_receiving_mismatch():
    """
    GIVEN an invoice priced 5% over the PO for goods still pending inspection
    THEN prices and receiving both mismatch, and approval is required
    """
    invoice = {"total_amount": 105.5, "line_items": [{"product_id": 1, "quantity": 10, "unit_price": 10.5}]}
    result = perform_three_way_match(invoice, [_po(quality_status="pending")], 2, 0, 5)
    matching = result["matching_results"]
    assert matching["po_match"] is True
    assert matching["price_match"] is False
    assert matching["receiving_match"] is False
    assert matching["variance_amount"] == 5.5
    assert result["approval_required"] is True
    assert get_matching_status_text(matching) == "Receiving mismatch, Price mismatch"


def test_three_way_reports_extra_invoice_lines():
    invoice = {"total_amount": 100, "line_items": [
        {"product_id": 1, "quantity": 10, "unit_price": 10},
        {"description": "Pallet fee", "quantity": 1, "unit_price": 0},
    ]}
    matching = perform_three_way_match(invoice, [_po()], 2, 0, 5)["matching_results"]
    assert matching["po_match"] is False
    assert matching["details"][0]["type"] == "extra_in_invoice"
    assert matching["details"][0]["item"] == "Pallet fee"


def test_week_range_runs_monday_to_sunday():
    week = get_week_range(0, now=datetime(2026, 1, 7, 10, 0))
    assert week["start"] == datetime(2026, 1, 5)
    assert week["end"].date() == date(2026, 1, 11)
    assert week["label"] == "Jan 5 - Jan 11, 2026"

    next_week = get_week_range(1, now=datetime(2026, 1, 7, 10, 0))
    assert next_week["start"] == datetime(2026, 1, 12)
    assert date_within_week(next_week, now=datetime(2026, 1, 7, 10, 0)) == datetime(2026, 1, 12, 12, 0)


def _entry(entry_type, day, quantity=None, weight=None, trash_type=None):
    return SimpleNamespace(entry_type=entry_type, date=datetime(2026, 1, day), quantity=quantity,
                           weight=weight, trash_type=trash_type)


def test_actual_stock_from_ledger():
    """
    GIVEN 20 purchased, 8 sold and 2 boxes trashed since the base date
    THEN 10 boxes remain on top of the carry forward
    """
    product = SimpleNamespace(
        carry_forward_box=5, carry_forward_unit=0, manually_add_box=0, manually_add_unit=0,
        ledger_entries=[
            _entry("purchase", 5, quantity=20),
            _entry("sale", 6, quantity=8),
            _entry("trash", 6, quantity=2, trash_type="Box"),
            _entry("lb_purchase", 5, weight=400),
            _entry("lb_sell", 6, weight=150),
            _entry("purchase", 3, quantity=100),
        ],
    )
    stock = calculate_actual_stock(product, now=datetime(2026, 1, 7), base_date=date(2026, 1, 5))
    assert stock["total_remaining"] == 15
    assert stock["unit_remaining"] == 250
    assert stock["trash_box"] == 2
    assert stock["is_over_sold"] is False


def test_allocation_shares_short_stock_pro_rata():
    """
    GIVEN two stores ordering 4 and 6 cases of a product with 5 in stock
    THEN the smaller order gets 2 and the larger gets 3
    """
    orders = [
        {"order_id": 1, "store_id": 10, "store_name": "A", "items": [{"product_id": 1, "quantity": 4}]},
        {"order_id": 2, "store_id": 20, "store_name": "B", "items": [{"product_id": 1, "quantity": 6}]},
    ]
    result = allocate(orders, {1: {"product_name": "Lettuce", "current_stock": 5, "incoming_stock": 0}})
    product = result["products"][0]
    assert product["shortage"] == -5
    assert product["status"] == "partial"

    stores = {s["store_id"]: s for s in result["stores"]}
    assert stores[10]["items"][0]["allocated"] == 2
    assert stores[20]["items"][0]["allocated"] == 3
    assert stores[20]["total_shortage"] == 3
    assert stores[20]["allocation_status"] == "partial"


def test_allocation_fills_when_stock_covers_orders():
    orders = [{"order_id": 1, "store_id": 10, "items": [{"product_id": 1, "quantity": 4}]}]
    result = allocate(orders, {1: {"current_stock": 2, "incoming_stock": 3}})
    assert result["products"][0]["status"] == "full"
    assert result["stores"][0]["allocation_status"] == "full"


def test_aging_buckets():
    assert aging_bucket(0) == "current"
    assert aging_bucket(30) == "1_30"
    assert aging_bucket(31) == "31_60"
    assert aging_bucket(90) == "61_90"
    assert aging_bucket(91) == "over_90"


def test_aging_report_groups_by_vendor():
    as_of = datetime(2026, 3, 1)
    invoices = [
        {"id": 1, "vendor_id": 1, "vendor_name": "Farm", "due_date": datetime(2026, 2, 15),
         "total_amount": 100, "amount_remaining": 100},
        {"id": 2, "vendor_id": 1, "vendor_name": "Farm", "due_date": datetime(2026, 3, 10),
         "total_amount": 50, "amount_remaining": 25},
        {"id": 3, "vendor_id": 2, "vendor_name": "Dairy", "due_date": datetime(2025, 11, 1),
         "total_amount": 300, "amount_remaining": 300},
    ]
    report = build_aging_report(invoices, as_of)
    assert report["vendor_count"] == 2
    assert report["vendors"][0]["vendor_name"] == "Dairy"
    assert report["vendors"][0]["buckets"]["over_90"] == 300
    farm = report["vendors"][1]
    assert farm["buckets"]["1_30"] == 100
    assert farm["buckets"]["current"] == 25
    assert farm["invoices"][0]["days_past_due"] == 14
    assert report["totals"]["total_outstanding"] == 425


def test_statement_running_balance():
    """
    GIVEN an invoice, a payment and a credit memo
    THEN the balance rises by the invoice and falls by the rest
    """
    invoices = [SimpleNamespace(invoice_date=datetime(2026, 1, 1), invoice_number="INV-1",
                                total_amount=500, status="partially_paid")]
    payments = [SimpleNamespace(payment_date=datetime(2026, 1, 10), payment_number="VP-1",
                                payment_method="check", net_amount=200, check_clearance_status="pending",
                                status="completed")]
    memos = [SimpleNamespace(created_at=datetime(2026, 1, 5), memo_number="VCM-1", memo_type="credit",
                             amount=50, status="approved")]
    statement = build_statement(invoices, payments, memos)
    assert [t["type"] for t in statement["transactions"]] == ["invoice", "credit_memo", "payment"]
    assert [t["balance"] for t in statement["transactions"]] == [500.0, 450.0, 250.0]
    assert statement["summary"]["current_balance"] == 250.0
    assert statement["summary"]["total_credits"] == 50.0


def test_store_price_falls_back_to_category_a():
    product = SimpleNamespace(price=2.5, a_price=20, b_price=0, c_price=None,
                              restaurant_price=18, price_per_box=15)
    assert float(get_product_price_for_store(product, "b_price")) == 20
    assert float(get_product_price_for_store(product, "restaurantPrice")) == 18
    assert float(get_product_price_for_store(product, "a_price", "unit")) == 2.5
    assert normalize_price_category("bogus") == "a_price"


def test_early_payment_discount_only_within_window():
    """
    GIVEN 2% off within 10 days
    THEN only the invoice paid on day 5 qualifies
    """
    vendor = SimpleNamespace(has_early_discount=True, early_discount_percentage=2, early_discount_within_days=10)
    invoices = [
        SimpleNamespace(id=1, invoice_date=datetime(2026, 1, 1), amount_remaining=500),
        SimpleNamespace(id=2, invoice_date=datetime(2025, 12, 1), amount_remaining=300),
    ]
    discount = early_payment_discount(vendor, invoices, datetime(2026, 1, 6))
    assert discount["qualifying_invoices"] == [1]
    assert discount["discount_amount"] == 10.0
    assert discount["original_amount"] == 500.0


def test_store_rating_deductions_and_clamp():
    assert calculate_store_rating("overdue", 4, 4, 999, "stable") == {"rating": "at_risk", "score": 20}
    assert calculate_store_rating("warning", 1, 3, 40, "stable") == {"rating": "good", "score": 60}
    assert calculate_store_rating("good", 0, 5, 2, "up") == {"rating": "excellent", "score": 100}


def test_store_analytics_from_orders():
    """
    GIVEN a paid order this month and two open orders last month
    THEN the trend is down and the 38 day old partial order makes payment overdue
    """
    now = datetime(2026, 3, 20, 12, 0)
    orders = [
        SimpleNamespace(created_at=datetime(2026, 3, 18), total=50, payment_status="paid", payment_amount=50),
        SimpleNamespace(created_at=datetime(2026, 2, 10, 12, 0), total=40, payment_status="partial",
                        payment_amount=10),
        SimpleNamespace(created_at=datetime(2026, 2, 25), total=30, payment_status="pending", payment_amount=0),
    ]
    stats = store_order_analytics(orders, now)
    assert stats["total_spent"] == 120.0
    assert stats["total_paid"] == 60.0
    assert stats["balance_due"] == 60.0
    assert stats["credit_count"] == 2
    assert (stats["this_month_orders"], stats["last_month_orders"]) == (1, 2)
    assert stats["order_trend"] == "down"
    assert stats["days_since_last_order"] == 2
    assert stats["last_order_date"] == datetime(2026, 3, 18)
    assert stats["order_frequency"] == 3.0
    assert stats["payment_rate"] == 33.33
    assert stats["avg_order_value"] == 40.0
    assert stats["payment_status"] == "overdue"
    assert (stats["store_rating"], stats["rating_score"]) == ("at_risk", 25)

    idle = store_order_analytics([], now)
    assert idle["days_since_last_order"] == 999
    assert idle["payment_rate"] == 100
    assert idle["payment_status"] == "good"
    assert idle["store_rating"] == "excellent"

    summary = analytics_summary([stats, idle])
    assert summary["total_stores"] == 2
    assert summary["active_stores"] == 1
    assert summary["total_revenue"] == 120.0
    assert summary["overdue_stores"] == 1
    assert (summary["at_risk_stores"], summary["excellent_stores"]) == (1, 1)


def test_month_bounds_cross_the_year():
    this_month, last_month = month_bounds(datetime(2026, 1, 5, 9, 30))
    assert this_month == datetime(2026, 1, 1)
    assert last_month == datetime(2025, 12, 1)
    assert this_month - last_month == timedelta(days=31)

"""
Three-way matching of a vendor invoice against its purchase orders and the
quantities actually received (approved at quality check).

Items are matched by product_id, falling back to the product name (the
invoice line `description`) when no product is linked.
"""

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from produce_app.core.config import settings


def _po_key(item: Mapping[str, Any]):
    return item.get("product_id") or item.get("product_name")


def _invoice_key(item: Mapping[str, Any]):
    return item.get("product_id") or item.get("description") or item.get("product_name")


def aggregate_po_data(purchase_orders: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Merge the items of several purchase orders by product."""
    items: Dict[Any, Dict[str, Any]] = {}
    total_amount = 0.0
    total_received_amount = 0.0

    for po in purchase_orders:
        total_amount += float(po.get("total_amount") or 0)
        for item in po.get("items") or []:
            key = _po_key(item)
            quantity = float(item.get("quantity") or 0)
            unit_price = float(item.get("unit_price") or 0)
            approved_qty = quantity if item.get("quality_status") == "approved" else 0
            total_received_amount += approved_qty * unit_price

            existing = items.get(key)
            if existing:
                existing["ordered_quantity"] += quantity
                existing["received_quantity"] += approved_qty
                existing["total_price"] += float(item.get("total_price") or 0)
                existing["po_numbers"].append(po.get("purchase_order_number"))
            else:
                items[key] = {
                    "product_id": item.get("product_id"),
                    "product_name": item.get("product_name"),
                    "ordered_quantity": quantity,
                    "received_quantity": approved_qty,
                    "unit_price": unit_price,
                    "total_price": float(item.get("total_price") or 0),
                    "po_numbers": [po.get("purchase_order_number")],
                }

    return {
        "items": list(items.values()),
        "total_amount": total_amount,
        "total_received_amount": total_received_amount,
    }


def _variance_percent(expected: float, actual: float) -> float:
    if expected > 0:
        return abs((actual - expected) / expected) * 100
    return 100.0 if actual > 0 else 0.0


def compare_quantities(po_items: Sequence[Mapping[str, Any]],
                       invoice_items: Sequence[Mapping[str, Any]],
                       tolerance: float) -> Dict[str, Any]:
    details: List[Dict[str, Any]] = []
    variances: List[Dict[str, Any]] = []
    invoice_map = {_invoice_key(i): i for i in invoice_items}
    po_keys = set()

    for po_item in po_items:
        key = _po_key(po_item)
        po_keys.add(key)
        ordered = po_item["ordered_quantity"]
        invoice_item = invoice_map.get(key)

        if invoice_item is None:
            details.append({
                "field": "quantity",
                "item": po_item["product_name"],
                "expected": ordered,
                "actual": 0,
                "variance": -ordered,
                "type": "missing_in_invoice",
            })
            variances.append({
                "product_name": po_item["product_name"],
                "po_quantity": ordered,
                "invoice_quantity": 0,
                "variance": -ordered,
            })
            continue

        invoiced = float(invoice_item.get("quantity") or 0)
        variance = invoiced - ordered
        if _variance_percent(ordered, invoiced) > tolerance:
            details.append({
                "field": "quantity",
                "item": po_item["product_name"],
                "expected": ordered,
                "actual": invoiced,
                "variance": variance,
                "type": "quantity_mismatch",
            })
            variances.append({
                "product_name": po_item["product_name"],
                "po_quantity": ordered,
                "invoice_quantity": invoiced,
                "variance": variance,
            })

    for invoice_item in invoice_items:
        if _invoice_key(invoice_item) in po_keys:
            continue
        name = invoice_item.get("description") or invoice_item.get("product_name")
        invoiced = float(invoice_item.get("quantity") or 0)
        details.append({
            "field": "quantity",
            "item": name,
            "expected": 0,
            "actual": invoiced,
            "variance": invoiced,
            "type": "extra_in_invoice",
        })
        variances.append({
            "product_name": name,
            "po_quantity": 0,
            "invoice_quantity": invoiced,
            "variance": invoiced,
        })

    return {"match": not details, "details": details, "variances": variances}


def compare_received_quantities(po_items: Sequence[Mapping[str, Any]],
                                invoice_items: Sequence[Mapping[str, Any]],
                                tolerance: float) -> Dict[str, Any]:
    details: List[Dict[str, Any]] = []
    invoice_map = {_invoice_key(i): i for i in invoice_items}

    for po_item in po_items:
        invoice_item = invoice_map.get(_po_key(po_item))
        if invoice_item is None:
            continue
        received = po_item["received_quantity"]
        invoiced = float(invoice_item.get("quantity") or 0)
        if _variance_percent(received, invoiced) > tolerance:
            details.append({
                "field": "received_quantity",
                "item": po_item["product_name"],
                "expected": received,
                "actual": invoiced,
                "variance": invoiced - received,
                "type": "receiving_mismatch",
            })

    return {"match": not details, "details": details}


def compare_prices(po_items: Sequence[Mapping[str, Any]],
                   invoice_items: Sequence[Mapping[str, Any]],
                   tolerance: float) -> Dict[str, Any]:
    details: List[Dict[str, Any]] = []
    variances: List[Dict[str, Any]] = []
    invoice_map = {_invoice_key(i): i for i in invoice_items}

    for po_item in po_items:
        invoice_item = invoice_map.get(_po_key(po_item))
        po_price = po_item["unit_price"]
        if invoice_item is None or po_price <= 0:
            continue
        invoice_price = float(invoice_item.get("unit_price") or 0)
        price_variance = invoice_price - po_price
        variance_percent = abs(price_variance / po_price) * 100
        if variance_percent > tolerance:
            details.append({
                "field": "unit_price",
                "item": po_item["product_name"],
                "expected": po_price,
                "actual": invoice_price,
                "variance": price_variance,
                "variance_percent": variance_percent,
                "type": "price_mismatch",
            })
            variances.append({
                "product_name": po_item["product_name"],
                "po_price": po_price,
                "invoice_price": invoice_price,
                "variance": price_variance,
                "variance_percent": variance_percent,
            })

    return {"match": not details, "details": details, "variances": variances}


def perform_three_way_match(invoice: Mapping[str, Any],
                            purchase_orders: Sequence[Mapping[str, Any]],
                            price_tolerance: Optional[float] = None,
                            quantity_tolerance: Optional[float] = None,
                            approval_threshold: Optional[float] = None) -> Dict[str, Any]:
    """
    Returns:
        {"matching_results": {...}, "approval_required": bool, "is_full_match": bool}
    """
    if price_tolerance is None:
        price_tolerance = settings.PRICE_TOLERANCE_PERCENT
    if quantity_tolerance is None:
        quantity_tolerance = settings.QUANTITY_TOLERANCE_PERCENT
    if approval_threshold is None:
        approval_threshold = settings.APPROVAL_THRESHOLD_PERCENT

    invoice_total = float(invoice.get("total_amount") or 0)
    invoice_items = invoice.get("line_items") or []
    po_data = aggregate_po_data(purchase_orders)

    results: Dict[str, Any] = {
        "po_match": True,
        "receiving_match": True,
        "price_match": True,
        "variance_amount": 0.0,
        "variance_percentage": 0.0,
        "matched_at": datetime.utcnow().isoformat(),
        "details": [],
        "summary": {
            "total_po_amount": po_data["total_amount"],
            "total_received_amount": po_data["total_received_amount"],
            "total_invoice_amount": invoice_total,
            "quantity_variances": [],
            "price_variances": [],
        },
    }

    quantities = compare_quantities(po_data["items"], invoice_items, quantity_tolerance)
    if not quantities["match"]:
        results["po_match"] = False
        results["details"].extend(quantities["details"])
        results["summary"]["quantity_variances"] = quantities["variances"]

    receiving = compare_received_quantities(po_data["items"], invoice_items, quantity_tolerance)
    if not receiving["match"]:
        results["receiving_match"] = False
        results["details"].extend(receiving["details"])

    prices = compare_prices(po_data["items"], invoice_items, price_tolerance)
    if not prices["match"]:
        results["price_match"] = False
        results["details"].extend(prices["details"])
        results["summary"]["price_variances"] = prices["variances"]

    po_total = po_data["total_amount"]
    results["variance_amount"] = round(invoice_total - po_total, 2)
    results["variance_percentage"] = (invoice_total - po_total) / po_total * 100 if po_total > 0 else 0.0

    return {
        "matching_results": results,
        "approval_required": abs(results["variance_percentage"]) > approval_threshold,
        "is_full_match": results["po_match"] and results["receiving_match"] and results["price_match"],
    }


def get_matching_status_text(matching_results: Mapping[str, Any]) -> str:
    if matching_results.get("po_match") and matching_results.get("receiving_match") and matching_results.get("price_match"):
        return "Full Match"

    issues = []
    if not matching_results.get("po_match"):
        issues.append("PO quantity mismatch")
    if not matching_results.get("receiving_match"):
        issues.append("Receiving mismatch")
    if not matching_results.get("price_match"):
        issues.append("Price mismatch")
    return ", ".join(issues)

"""Accounts payable aging."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

BUCKETS = ("current", "1_30", "31_60", "61_90", "over_90")


def days_past_due(due_date: Optional[datetime], as_of: datetime) -> int:
    if not due_date:
        return 0
    return (as_of.date() - due_date.date()).days


def aging_bucket(days: int) -> str:
    if days <= 0:
        return "current"
    if days <= 30:
        return "1_30"
    if days <= 60:
        return "31_60"
    if days <= 90:
        return "61_90"
    return "over_90"


def empty_buckets() -> Dict[str, float]:
    return {bucket: 0.0 for bucket in BUCKETS}


def build_aging_report(invoices: Iterable[Dict[str, Any]], as_of: datetime) -> Dict[str, Any]:
    """
    Group open invoices by vendor and bucket.

    Each invoice: {id, invoice_number, vendor_id, vendor_name, invoice_date,
    due_date, total_amount, amount_remaining}.
    """
    vendors: Dict[int, Dict[str, Any]] = {}
    totals = empty_buckets()

    for invoice in invoices:
        days = days_past_due(invoice.get("due_date"), as_of)
        bucket = aging_bucket(days)
        remaining = float(invoice.get("amount_remaining") or 0)

        vendor = vendors.setdefault(invoice["vendor_id"], {
            "vendor_id": invoice["vendor_id"],
            "vendor_name": invoice.get("vendor_name"),
            "buckets": empty_buckets(),
            "total_outstanding": 0.0,
            "invoice_count": 0,
            "invoices": [],
        })
        vendor["buckets"][bucket] += remaining
        vendor["total_outstanding"] += remaining
        vendor["invoice_count"] += 1
        vendor["invoices"].append({
            "id": invoice.get("id"),
            "invoice_number": invoice.get("invoice_number"),
            "invoice_date": invoice.get("invoice_date"),
            "due_date": invoice.get("due_date"),
            "total_amount": float(invoice.get("total_amount") or 0),
            "amount_remaining": remaining,
            "days_past_due": max(0, days),
            "bucket": bucket,
        })
        totals[bucket] += remaining

    rows: List[Dict[str, Any]] = sorted(vendors.values(), key=lambda v: v["total_outstanding"], reverse=True)
    for row in rows:
        row["buckets"] = {k: round(v, 2) for k, v in row["buckets"].items()}
        row["total_outstanding"] = round(row["total_outstanding"], 2)

    return {
        "as_of_date": as_of,
        "vendors": rows,
        "totals": {
            **{k: round(v, 2) for k, v in totals.items()},
            "total_outstanding": round(sum(totals.values()), 2),
        },
        "vendor_count": len(rows),
    }

"""
Week arithmetic and stock computed from the product ledger.

All datetimes are naive UTC, like the rest of the database.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.config import settings
from produce_app.models.v1.order import Order, OrderItem
from produce_app.models.v1.product import Product, ProductPurchaseLog

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)


def get_week_range(week_offset: int = 0, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Monday 00:00 to Sunday 23:59:59.999 of the current week, shifted by offset weeks."""
    today = (now or datetime.utcnow()).date()
    monday = today - timedelta(days=today.weekday()) + timedelta(weeks=week_offset)
    sunday = monday + timedelta(days=6)
    start = datetime.combine(monday, time.min)
    end = datetime.combine(sunday, END_OF_DAY)
    return {
        "start": start,
        "end": end,
        "label": f"{monday.strftime('%b')} {monday.day} - {sunday.strftime('%b')} {sunday.day}, {sunday.year}",
        "week_offset": week_offset,
    }


def date_within_week(week: Dict[str, Any], now: Optional[datetime] = None) -> datetime:
    """Now when it falls inside the week, else noon of the week's Monday."""
    now = now or datetime.utcnow()
    if week["start"] <= now <= week["end"]:
        return now
    return week["start"] + timedelta(hours=12)


def current_week_sunday_end(now: Optional[datetime] = None) -> datetime:
    today = (now or datetime.utcnow()).date()
    days_until_sunday = 6 - today.weekday()
    return datetime.combine(today + timedelta(days=days_until_sunday), END_OF_DAY)


def _in_window(entries: Iterable, start: datetime, end: datetime):
    return [e for e in entries if e.date is not None and start <= e.date <= end]


def calculate_actual_stock(product, now: Optional[datetime] = None,
                           base_date: Optional[date] = None) -> Dict[str, Any]:
    """
    Stock from the ledger between the stock base date and the end of this
    week's Sunday. Results may be negative (oversold).
    """
    start = datetime.combine(base_date or settings.STOCK_BASE_DATE, time.min)
    end = current_week_sunday_end(now)
    entries = _in_window(product.ledger_entries or [], start, end)

    purchases = sum(e.quantity or 0 for e in entries if e.entry_type == "purchase")
    sales = sum(e.quantity or 0 for e in entries if e.entry_type == "sale")
    unit_purchases = sum(e.weight or 0 for e in entries if e.entry_type == "lb_purchase")
    unit_sales = sum(e.weight or 0 for e in entries if e.entry_type == "lb_sell")
    trash = [e for e in entries if e.entry_type == "trash"]
    trash_box = sum(e.quantity or 0 for e in trash if (e.trash_type or "").lower() == "box")
    trash_unit = sum(e.quantity or 0 for e in trash if (e.trash_type or "").lower() == "unit")

    total_remaining = (
        (product.carry_forward_box or 0) + purchases - sales - trash_box + (product.manually_add_box or 0)
    )
    unit_remaining = (
        (product.carry_forward_unit or 0) + unit_purchases - unit_sales - trash_unit + (product.manually_add_unit or 0)
    )

    return {
        "total_remaining": total_remaining,
        "unit_remaining": unit_remaining,
        "trash_box": trash_box,
        "trash_unit": trash_unit,
        "is_over_sold": total_remaining < 0,
    }


def record_item_sale(product: Product, quantity: float, pricing_type: str, sale_date: datetime) -> None:
    """Write the ledger entries and counters for one sold order line."""
    if not quantity or quantity <= 0:
        return

    if pricing_type == "unit":
        product.add_ledger_entry("lb_sell", sale_date, weight=quantity, lb="unit")
        product.unit_sell = (product.unit_sell or 0) + quantity
        product.unit_remaining = max(0, (product.unit_remaining or 0) - quantity)
    else:
        units_used = product.latest_per_lb * quantity
        product.add_ledger_entry("lb_sell", sale_date, weight=units_used, lb="box")
        product.add_ledger_entry("sale", sale_date, quantity=quantity)
        product.total_sell = (product.total_sell or 0) + quantity
        product.remaining = max(0, (product.remaining or 0) - quantity)
        product.unit_remaining = max(0, (product.unit_remaining or 0) - units_used)


async def rebuild_product_history(db: AsyncSession, product: Product,
                                  date_from: Optional[datetime] = None,
                                  date_to: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Replace a product's sale entries with ones replayed from its live orders.

    Deleted orders are skipped; purchase and trash entries are untouched.
    Pending changes must be flushed first so the replay sees them.
    """
    date_from = date_from or datetime(2025, 1, 1)
    date_to = date_to or datetime(2030, 12, 31, 23, 59, 59)

    product.ledger_entries = [
        e for e in product.ledger_entries if e.entry_type not in ("sale", "lb_sell")
    ]
    product.total_sell = 0
    product.unit_sell = 0
    product.remaining = product.total_purchase or 0
    product.unit_remaining = product.unit_purchase or 0

    result = await db.execute(
        select(OrderItem.quantity, OrderItem.pricing_type, Order.created_at)
        .join(Order, OrderItem.order_id == Order.id)
        .where(
            OrderItem.product_id == product.id,
            Order.is_delete.is_not(True),
            Order.created_at >= date_from,
            Order.created_at <= date_to,
        )
        .order_by(Order.created_at.asc(), OrderItem.id.asc())
    )
    rows = result.all()
    for quantity, pricing_type, created_at in rows:
        record_item_sale(product, quantity, pricing_type, created_at)

    logger.info(f"Rebuilt history for {product.name}: {len(rows)} order lines, "
                f"total_sell={product.total_sell}, remaining={product.remaining}")
    return {"product_id": product.id, "order_lines": len(rows),
            "total_sell": product.total_sell, "remaining": product.remaining}


def sync_purchase_item_stock(product: Product, item, purchase_order, purchase_date: datetime) -> Tuple[float, float]:
    """
    Make the product ledger reflect a purchase order item's quality status.

    An approved item counts its full quantity; pending or rejected counts
    nothing. The item's previous contribution (approved_quantity) is
    replaced, so repeated calls are idempotent. Returns (old, new).
    """
    old_qty = item.approved_quantity or 0
    new_qty = (item.quantity or 0) if item.quality_status == "approved" else 0
    if old_qty == new_qty:
        return old_qty, new_qty

    per_lb = item.lb or 0
    delta = new_qty - old_qty

    if item.id is None:
        raise ValueError("Purchase order item must be flushed before syncing stock")

    product.ledger_entries = [
        e for e in product.ledger_entries if e.purchase_order_item_id != item.id
    ]
    if new_qty > 0:
        product.add_ledger_entry(
            "purchase", purchase_date, quantity=new_qty,
            purchase_order_id=purchase_order.id, purchase_order_item_id=item.id,
        )
        if per_lb:
            product.add_ledger_entry(
                "lb_purchase", purchase_date, weight=new_qty * per_lb, lb="box",
                purchase_order_id=purchase_order.id, purchase_order_item_id=item.id,
            )

    product.total_purchase = (product.total_purchase or 0) + delta
    product.remaining = (product.remaining or 0) + delta
    product.unit_purchase = (product.unit_purchase or 0) + delta * per_lb
    product.unit_remaining = (product.unit_remaining or 0) + delta * per_lb

    if new_qty > 0:
        product.purchase_logs.append(ProductPurchaseLog(
            purchase_order_id=purchase_order.id,
            old_quantity=old_qty,
            new_quantity=new_qty,
            per_lb=per_lb,
            total_lb=new_qty * per_lb,
            difference=delta,
        ))

    item.approved_quantity = new_qty
    logger.info(f"Purchase stock sync {product.name}: {old_qty} -> {new_qty} "
                f"(PO {purchase_order.purchase_order_number})")
    return old_qty, new_qty

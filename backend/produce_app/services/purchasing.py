"""
Purchase order construction and the stock effect of quality approval.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.models.v1.product import Product
from produce_app.models.v1.purchase_order import PurchaseOrder, PurchaseOrderItem
from produce_app.models.v1.vendor import Vendor
from produce_app.services.numbering import generate_purchase_order_number
from produce_app.services.stock import sync_purchase_item_stock

logger = logging.getLogger(__name__)


def purchase_due_date(vendor: Vendor, purchase_date: datetime) -> datetime:
    return purchase_date + timedelta(days=vendor.due_days)


def build_purchase_items(lines: Iterable[Dict[str, Any]], products: Dict[int, Product]) -> List[PurchaseOrderItem]:
    items = []
    for line in lines:
        product = products[line["product_id"]]
        item = PurchaseOrderItem(
            product_id=product.id,
            product_name=line.get("product_name") or product.name,
            quantity=line["quantity"],
            unit_price=line.get("unit_price") or 0,
            quality_status=line.get("quality_status") or "pending",
            quality_notes=line.get("quality_notes"),
            rejection_reason=line.get("rejection_reason"),
            batch_number=line.get("batch_number"),
            expected_weight=line.get("expected_weight"),
            actual_weight=line.get("actual_weight"),
            lb=line.get("lb"),
            approved_quantity=0,
        )
        if item.expected_weight is not None and item.actual_weight is not None:
            item.weight_variance = item.actual_weight - item.expected_weight
        items.append(item)
    return items


async def create_purchase_order_record(db: AsyncSession, vendor: Vendor, lines: List[Dict[str, Any]],
                                       products: Dict[int, Product], *,
                                       purchase_order_number: Optional[str] = None,
                                       purchase_date: Optional[datetime] = None,
                                       delivery_date: Optional[datetime] = None,
                                       status: str = "quality-check",
                                       notes: Optional[str] = None) -> PurchaseOrder:
    """Add a purchase order and apply stock for items that arrive approved.

    The caller commits.
    """
    purchase_date = purchase_date or datetime.utcnow()
    purchase_order = PurchaseOrder(
        vendor=vendor,
        items=build_purchase_items(lines, products),
        purchase_order_number=purchase_order_number or await generate_purchase_order_number(db),
        purchase_date=purchase_date,
        delivery_date=delivery_date,
        due_date=purchase_due_date(vendor, purchase_date),
        status=status,
        payment_status="pending",
        credit_adjustments=[],
        notes=notes,
    )
    purchase_order.recalculate_totals()
    db.add(purchase_order)
    await sync_purchase_order_stock(db, purchase_order, products)
    logger.info(f"Created purchase order {purchase_order.purchase_order_number} "
                f"for {vendor.name}: ${purchase_order.total_amount}")
    return purchase_order


async def load_purchase_products(db: AsyncSession, purchase_order: PurchaseOrder) -> Dict[int, Product]:
    ids = {item.product_id for item in purchase_order.items}
    if not ids:
        return {}
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    return {p.id: p for p in result.scalars().all()}


async def sync_purchase_order_stock(db: AsyncSession, purchase_order: PurchaseOrder,
                                    products: Optional[Dict[int, Product]] = None) -> List[Dict[str, Any]]:
    """Bring product stock in line with every item's quality status."""
    # Items need ids before their ledger entries can reference them
    await db.flush()
    if products is None:
        products = await load_purchase_products(db, purchase_order)

    changes = []
    for item in purchase_order.items:
        old_qty, new_qty = sync_purchase_item_stock(
            products[item.product_id], item, purchase_order, purchase_order.purchase_date
        )
        if old_qty != new_qty:
            changes.append({"product_id": item.product_id, "old_quantity": old_qty, "new_quantity": new_qty})
    return changes


async def release_purchase_order_stock(db: AsyncSession, purchase_order: PurchaseOrder) -> List[Dict[str, Any]]:
    """Take back the stock of approved items, e.g. before deleting the order."""
    for item in purchase_order.items:
        if item.quality_status == "approved":
            item.quality_status = "pending"
    return await sync_purchase_order_stock(db, purchase_order)

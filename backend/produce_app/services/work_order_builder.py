"""
Building the weekly work order from confirmed orders.

The allocation itself is in services.work_order_allocation; this module
loads orders, stock and incoming quantities and writes the result rows.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.deps import Actor, SYSTEM_ACTOR
from produce_app.models.v1.incoming_stock import IncomingStock
from produce_app.models.v1.order import Order
from produce_app.models.v1.product import Product
from produce_app.models.v1.work_order import WorkOrder, WorkOrderProduct, WorkOrderStore, WorkOrderStoreItem
from produce_app.services.numbering import generate_work_order_number
from produce_app.services.stock import calculate_actual_stock, get_week_range
from produce_app.services.work_order_allocation import allocate

logger = logging.getLogger(__name__)


def _merge_ids(existing: Optional[Iterable[int]], new: Iterable[int]) -> List[int]:
    merged = list(existing or [])
    for item_id in new:
        if item_id not in merged:
            merged.append(item_id)
    return merged


async def find_week_work_order(db: AsyncSession, week_start: datetime) -> Optional[WorkOrder]:
    result = await db.execute(
        select(WorkOrder)
        .where(WorkOrder.week_start == week_start, WorkOrder.status != "cancelled")
        .order_by(WorkOrder.id.desc())
    )
    return result.scalars().first()


async def week_incoming(db: AsyncSession, week_start: datetime, product_ids: Iterable[int]) -> Dict[int, float]:
    """Linked or received incoming stock per product for the week."""
    ids = list(product_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(IncomingStock.product_id, func.sum(IncomingStock.quantity))
        .where(
            IncomingStock.week_start == week_start,
            IncomingStock.status.in_(["linked", "received"]),
            IncomingStock.product_id.in_(ids),
        )
        .group_by(IncomingStock.product_id)
    )
    return {product_id: quantity or 0 for product_id, quantity in result.all()}


async def upsert_week_work_order(db: AsyncSession, week_offset: int, order_ids: Iterable[int],
                                 pre_order_ids: Iterable[int], actor: Actor = SYSTEM_ACTOR,
                                 notes: Optional[str] = None) -> WorkOrder:
    """
    Create the week's work order, or merge the ids into the existing one,
    and recompute allocation from every order it covers.

    Sales of the covered orders are already in the ledger, so their box
    quantities are added back to the computed stock before allocating.
    """
    week = get_week_range(week_offset)
    work_order = await find_week_work_order(db, week["start"])

    merged_order_ids = _merge_ids(work_order.confirmed_order_ids if work_order else [], order_ids)
    merged_pre_order_ids = _merge_ids(work_order.confirmed_pre_order_ids if work_order else [], pre_order_ids)

    orders = []
    if merged_order_ids:
        result = await db.execute(
            select(Order)
            .where(Order.id.in_(merged_order_ids), Order.is_delete.is_not(True))
            .order_by(Order.created_at.asc(), Order.id.asc())
        )
        orders = result.scalars().all()

    consumed: Dict[int, float] = defaultdict(float)
    order_rows = []
    for order in orders:
        order_rows.append({
            "order_id": order.id,
            "store_id": order.store_id,
            "store_name": order.store.display_name if order.store else None,
            "store_city": order.store.city if order.store else None,
            "store_state": order.store.state if order.store else None,
            "items": [
                {"product_id": i.product_id, "product_name": i.product_name, "quantity": i.quantity}
                for i in order.items
            ],
        })
        for item in order.items:
            if item.pricing_type == "box":
                consumed[item.product_id] += item.quantity or 0

    product_ids = {i["product_id"] for row in order_rows for i in row["items"]}
    products = {}
    if product_ids:
        result = await db.execute(select(Product).where(Product.id.in_(product_ids)))
        products = {p.id: p for p in result.scalars().all()}
    incoming = await week_incoming(db, week["start"], product_ids)
    stock = {
        pid: {
            "product_name": product.name,
            "current_stock": calculate_actual_stock(product)["total_remaining"] + consumed.get(pid, 0),
            "incoming_stock": incoming.get(pid, 0),
        }
        for pid, product in products.items()
    }
    allocation = allocate(order_rows, stock)

    if work_order is None:
        work_order = WorkOrder(
            products=[],
            store_allocations=[],
            work_order_number=await generate_work_order_number(db),
            week_start=week["start"],
            week_end=week["end"],
            week_label=week["label"],
            status="confirmed",
            confirmed_at=datetime.utcnow(),
            confirmed_by_name=actor.name,
        )
        db.add(work_order)
        logger.info(f"Creating work order {work_order.work_order_number} for {week['label']}")

    picked = {
        (s.store_id, i.product_id): i.picked_at
        for s in work_order.store_allocations for i in s.items if i.picked
    }

    work_order.products = [WorkOrderProduct(**row) for row in allocation["products"]]
    store_allocations = []
    for row in allocation["stores"]:
        items = []
        for item in row["items"]:
            picked_at = picked.get((row["store_id"], item["product_id"]))
            items.append(WorkOrderStoreItem(picked=picked_at is not None, picked_at=picked_at, **item))
        allocation_row = WorkOrderStore(items=items, **{k: v for k, v in row.items() if k != "items"})
        allocation_row.refresh_picking_status()
        store_allocations.append(allocation_row)
    work_order.store_allocations = store_allocations

    work_order.confirmed_order_ids = merged_order_ids
    work_order.confirmed_pre_order_ids = merged_pre_order_ids
    work_order.total_orders = len(orders)
    work_order.total_pre_orders = len(merged_pre_order_ids)
    if notes:
        work_order.notes = notes
    work_order.calculate_totals()

    if work_order.has_shortage:
        logger.warning(f"Work order {work_order.work_order_number}: {work_order.short_product_count} "
                       f"short product(s), {work_order.total_shortage_quantity} units short")
    logger.info(f"Work order {work_order.work_order_number}: {len(orders)} orders, "
                f"{work_order.total_products} products, {work_order.total_stores} stores")
    return work_order

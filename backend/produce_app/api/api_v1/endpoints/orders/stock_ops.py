"""
Order stock logic
- week-wise stock check against the product ledger
- sale ledger writes and history rebuilds
- order creation shared by orders, PreOrder confirmation and the matrix
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.config import settings
from produce_app.models.v1.order import Order, OrderItem
from produce_app.models.v1.product import Product
from produce_app.models.v1.store import Store
from produce_app.services.money import money
from produce_app.services.numbering import generate_order_number
from produce_app.services.order_validation import validate_order_items
from produce_app.services.pricing import get_product_price_for_store
from produce_app.services.stock import calculate_actual_stock, rebuild_product_history, record_item_sale

logger = logging.getLogger(__name__)

INSUFFICIENT_STOCK_MESSAGE = "Insufficient stock for some items (week-wise check)"

StockKey = Tuple[int, str]


async def load_products(db: AsyncSession, product_ids: Iterable[Optional[int]]) -> Dict[int, Product]:
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    return {p.id: p for p in result.scalars().all()}


def requested_quantities(lines: Iterable[Mapping[str, Any]]) -> Dict[StockKey, float]:
    totals: Dict[StockKey, float] = defaultdict(float)
    for line in lines:
        key = (line["product_id"], line.get("pricing_type") or "box")
        totals[key] += float(line.get("quantity") or 0)
    return dict(totals)


def find_insufficient_stock(lines: Iterable[Mapping[str, Any]], products: Mapping[int, Product],
                            existing: Optional[Mapping[StockKey, float]] = None) -> List[Dict[str, Any]]:
    """
    Requested quantity per (product, pricing type) that exceeds computed stock.

    `existing` holds quantities already written to the ledger by the order
    being edited; only the increase over them is checked.
    """
    existing = existing or {}
    stock_base = settings.STOCK_BASE_DATE.isoformat()
    shortages = []
    for (product_id, pricing_type), requested in requested_quantities(lines).items():
        increase = requested - existing.get((product_id, pricing_type), 0)
        product = products.get(product_id)
        if increase <= 0 or product is None:
            continue

        stock = calculate_actual_stock(product)
        available = stock["unit_remaining"] if pricing_type == "unit" else stock["total_remaining"]
        if increase > available:
            shortages.append({
                "product_id": product_id,
                "name": product.name,
                "available": available,
                "requested": increase,
                "type": pricing_type,
                "stock_base": stock_base,
            })
    return shortages


def check_stock(lines, products, existing=None) -> None:
    shortages = find_insufficient_stock(lines, products, existing)
    if shortages:
        logger.warning(f"Stock check failed for {len(shortages)} product(s): "
                       f"{[s['name'] for s in shortages]}")
        raise HTTPException(
            status_code=400,
            detail={"message": INSUFFICIENT_STOCK_MESSAGE, "insufficient_stock": shortages}
        )


def validate_lines(lines, products) -> None:
    validation = validate_order_items(lines, products)
    if not validation["valid"]:
        raise HTTPException(
            status_code=400,
            detail={"message": "Order validation failed", "errors": validation["errors"]}
        )


def apply_sales(items: Iterable[OrderItem], products: Mapping[int, Product], sale_date: datetime) -> None:
    for item in items:
        product = products.get(item.product_id)
        if product is not None:
            record_item_sale(product, item.quantity, item.pricing_type, sale_date)


async def rebuild_products(db: AsyncSession, product_ids: Iterable[int]) -> None:
    """Replay sale history for products touched by an order change."""
    await db.flush()
    products = await load_products(db, product_ids)
    for product in products.values():
        await rebuild_product_history(db, product)


def build_order_items(lines, products: Mapping[int, Product], store: Store) -> List[OrderItem]:
    items = []
    for line in lines:
        product = products[line["product_id"]]
        pricing_type = line.get("pricing_type") or "box"
        unit_price = line.get("unit_price")
        if unit_price is None:
            unit_price = get_product_price_for_store(product, store.price_category, pricing_type)
        items.append(OrderItem(
            product_id=product.id,
            product_name=line.get("product_name") or product.name,
            quantity=line["quantity"],
            pricing_type=pricing_type,
            unit_price=money(unit_price),
        ))
    return items


def store_address(store: Store) -> Dict[str, Any]:
    return {
        "name": store.display_name,
        "phone": store.phone or "",
        "address": store.address or "",
        "city": store.city or "",
        "state": store.state or "",
        "zip_code": store.zip_code or "",
        "country": "USA",
    }


async def create_order_record(
    db: AsyncSession,
    store: Store,
    lines: List[Mapping[str, Any]],
    *,
    status: str = "Processing",
    order_type: str = "Regular",
    order_number: Optional[str] = None,
    shipping_cost=None,
    billing_address: Optional[dict] = None,
    shipping_address: Optional[dict] = None,
    notes: Optional[str] = None,
    created_at: Optional[datetime] = None,
    pre_order_id: Optional[int] = None,
) -> Tuple[Order, Dict[int, Product]]:
    """
    Validate, stock-check and add an order with its sale ledger entries.

    Raises HTTPException before touching the session when any check fails,
    so callers may keep going with other orders in the same session.
    The order is flushed, not committed.
    """
    if not lines:
        raise HTTPException(status_code=400, detail="Order must contain at least one item")

    products = await load_products(db, [line.get("product_id") for line in lines])
    validate_lines(lines, products)
    check_stock(lines, products)

    if order_number:
        exists = (await db.execute(select(Order.id).where(Order.order_number == order_number))).first()
        if exists:
            raise HTTPException(status_code=400, detail=f"Order number {order_number} already exists")

    order = Order(
        store=store,
        items=build_order_items(lines, products, store),
        status=status,
        order_type=order_type,
        pre_order_id=pre_order_id,
        shipping_cost=money(store.shipping_cost if shipping_cost is None else shipping_cost),
        billing_address=billing_address or store_address(store),
        shipping_address=shipping_address or store_address(store),
        payment_status="pending",
        payment_history=[],
        notes=notes,
        created_at=created_at or datetime.utcnow(),
    )
    order.recalculate_total()
    if order.items_total <= 0:
        raise HTTPException(status_code=400, detail="Order total must be greater than 0")

    order.order_number = order_number or await generate_order_number(db)
    db.add(order)
    apply_sales(order.items, products, order.created_at)
    await db.flush()

    if order.total > money(settings.HIGH_VALUE_ORDER_THRESHOLD):
        logger.warning(f"High value order {order.order_number} for {store.display_name}: ${order.total}")
    logger.info(f"Created order {order.order_number} for {store.display_name} "
                f"({len(order.items)} items, ${order.total})")
    return order, products

"""
PreOrder helpers shared by the PreOrder endpoints and the weekly matrix
- response and line building
- confirmation into a regular order
"""

import logging
from typing import List, Mapping, Tuple

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.models.v1.order import Order, PreOrder, PreOrderItem
from produce_app.models.v1.product import Product
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.order import PreOrderResponse
from produce_app.services.money import money
from produce_app.services.pricing import get_product_price_for_store
from produce_app.services.stock import date_within_week, get_week_range

from .stock_ops import create_order_record

logger = logging.getLogger(__name__)


def build_pre_order_response(pre_order: PreOrder) -> PreOrderResponse:
    resp = PreOrderResponse.model_validate(pre_order)
    resp.store_name = pre_order.store.display_name if pre_order.store else ""
    return resp


def build_pre_order_items(lines, products: Mapping[int, Product], store: Store) -> List[PreOrderItem]:
    items = []
    for line in lines:
        product = products[line["product_id"]]
        pricing_type = line.get("pricing_type") or "box"
        unit_price = line.get("unit_price")
        if unit_price is None:
            unit_price = get_product_price_for_store(product, store.price_category, pricing_type)
        items.append(PreOrderItem(
            product_id=product.id,
            product_name=line.get("product_name") or product.name,
            quantity=line["quantity"],
            pricing_type=pricing_type,
            unit_price=money(unit_price),
        ))
    return items


async def get_pre_order_or_404(db: AsyncSession, pre_order_id: int) -> PreOrder:
    pre_order = await db.get(PreOrder, pre_order_id)
    if not pre_order or pre_order.is_delete:
        raise HTTPException(status_code=404, detail="PreOrder not found")
    return pre_order


async def confirm_pre_order(db: AsyncSession, pre_order: PreOrder) -> Tuple[Order, dict]:
    """
    Turn a PreOrder into a Processing Regular order.

    The order goes through the same validation, stock check and ledger
    writes as a directly created order and is dated in the PreOrder's
    delivery week. Nothing is changed when a check fails.
    """
    if pre_order.confirmed:
        raise HTTPException(status_code=400, detail="PreOrder already confirmed")
    if pre_order.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cancelled PreOrders cannot be confirmed")

    lines = [{
        "product_id": item.product_id,
        "product_name": item.product_name,
        "quantity": item.quantity,
        "pricing_type": item.pricing_type,
        "unit_price": item.unit_price,
    } for item in pre_order.items]

    delivery_week = get_week_range(0, now=pre_order.expected_delivery_date or pre_order.created_at)
    order, products = await create_order_record(
        db, pre_order.store, lines,
        status="Processing",
        order_type="Regular",
        notes=pre_order.notes,
        created_at=date_within_week(delivery_week),
        pre_order_id=pre_order.id,
    )
    pre_order.confirmed = True
    pre_order.status = "confirmed"
    pre_order.order_id = order.id
    logger.info(f"PreOrder {pre_order.pre_order_number} confirmed as {order.order_number}")
    return order, products


"""
Order core helpers
- response building
- pallet estimate
- basic lookups
"""

from typing import Any, Dict, Iterable, Mapping, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.models.v1.order import Order, OrderItem
from produce_app.models.v1.product import Product
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.order import OrderResponse
from produce_app.services.money import to_decimal
from produce_app.services.pallet_calculator import ORDER_PALLET_DISCLAIMER, calculate_pallets_needed


def order_pallet_estimate(items: Iterable[OrderItem], products: Mapping[int, Product]) -> Dict[str, Any]:
    """Pallets needed for the box lines of an order, per product and in total."""
    estimate = {
        "total_pallets": 0,
        "breakdown": [],
        "is_estimate": True,
        "disclaimer": ORDER_PALLET_DISCLAIMER,
    }
    for item in items:
        if item.pricing_type != "box" or not item.quantity or item.quantity <= 0:
            continue
        product = products.get(item.product_id)
        if product is None or not product.total_cases_per_pallet:
            continue
        needed = calculate_pallets_needed(item.quantity, product.total_cases_per_pallet)
        if needed:
            estimate["breakdown"].append({
                "product_id": product.id,
                "product_name": product.name,
                "cases": item.quantity,
                "estimated_pallets": needed["total_pallets"],
                "utilization_percent": needed["utilization_percent"],
            })
            estimate["total_pallets"] += needed["total_pallets"]
    return estimate


def build_order_response(order: Order, products: Optional[Mapping[int, Product]] = None) -> OrderResponse:
    resp = OrderResponse.model_validate(order)
    resp.store_name = order.store.display_name if order.store else ""
    if products is not None:
        resp.pallet_estimate = order_pallet_estimate(order.items, products)
    return resp


def base_order_query(include_deleted: bool = False):
    query = select(Order).join(Store, Order.store_id == Store.id)
    if not include_deleted:
        query = query.where(Order.is_delete.is_not(True))
    return query


async def get_order_or_404(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def order_quantities(order: Order) -> Dict[tuple, float]:
    """Quantity per (product, pricing type) currently on the order."""
    totals: Dict[tuple, float] = {}
    for item in order.items:
        key = (item.product_id, item.pricing_type or "box")
        totals[key] = totals.get(key, 0) + (item.quantity or 0)
    return totals


def refresh_payment_status(order: Order) -> None:
    """paid when payments plus applied credit cover the total, partial when anything was paid."""
    covered = to_decimal(order.payment_amount) + to_decimal(order.credit_applied)
    if covered <= 0:
        order.payment_status = "pending"
    elif covered >= to_decimal(order.total):
        order.payment_status = "paid"
    else:
        order.payment_status = "partial"

"""
Order CRUD
- list and store order history
- create
- update
- soft delete
"""

import logging
from typing import Any, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.deps import get_db
from produce_app.models.v1.order import Order
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.order import OrderCreate, OrderUpdate, OrderResponse, OrderDeleteRequest
from produce_app.services.money import money

from .core import build_order_response, base_order_query, get_order_or_404, order_quantities, refresh_payment_status
from .stock_ops import (
    load_products, validate_lines, check_stock, build_order_items,
    rebuild_products, create_order_record
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=ApiResponse[Page[OrderResponse]])
async def list_orders(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None),
    store_id: Optional[int] = Query(None),
    order_type: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    include_deleted: bool = Query(False)
) -> Any:
    query = base_order_query(include_deleted)
    conditions = []

    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Order.order_number.ilike(pattern),
            Store.store_name.ilike(pattern),
            Store.name.ilike(pattern),
        ))
    if status:
        conditions.append(Order.status == status)
    if payment_status:
        conditions.append(Order.payment_status == payment_status)
    if store_id:
        conditions.append(Order.store_id == store_id)
    if order_type:
        conditions.append(Order.order_type == order_type)
    if start_date:
        conditions.append(Order.created_at >= start_date)
    if end_date:
        conditions.append(Order.created_at <= end_date)

    if conditions:
        query = query.where(and_(*conditions))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    orders = result.scalars().all()
    return ApiResponse(data=page_of([build_order_response(o) for o in orders], total, page, limit))


@router.post("/", response_model=ApiResponse[OrderResponse])
async def create_order(*, db: AsyncSession = Depends(get_db), data: OrderCreate) -> Any:
    """Create an order; stock is checked and consumed in the same commit."""
    store = await get_store_or_404(db, data.store_id)

    order, products = await create_order_record(
        db, store, [item.model_dump() for item in data.items],
        status=data.status,
        order_type=data.order_type,
        order_number=data.order_number,
        shipping_cost=data.shipping_cost,
        billing_address=data.billing_address,
        shipping_address=data.shipping_address,
        notes=data.notes,
        created_at=data.created_at,
        pre_order_id=data.pre_order_id,
    )
    await db.commit()
    await db.refresh(order)
    return ApiResponse(message="Order created successfully", data=build_order_response(order, products))


@router.get("/store/{store_id}", response_model=ApiResponse[Page[OrderResponse]])
async def list_store_orders(
    *,
    db: AsyncSession = Depends(get_db),
    store_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100)
) -> Any:
    await get_store_or_404(db, store_id)
    query = base_order_query().where(Order.store_id == store_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    orders = result.scalars().all()
    return ApiResponse(data=page_of([build_order_response(o) for o in orders], total, page, limit))


@router.get("/latest/{store_id}", response_model=ApiResponse)
async def get_latest_store_orders(
    *,
    db: AsyncSession = Depends(get_db),
    store_id: int,
    limit: int = Query(5, ge=1, le=50)
) -> Any:
    """A store's newest orders and the products it bought in them, for quick reordering."""
    await get_store_or_404(db, store_id)
    query = base_order_query().where(Order.store_id == store_id)
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    orders = (await db.execute(
        query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit)
    )).scalars().all()

    purchased = []
    for order in orders:
        for item in order.items:
            if item.product_id not in purchased:
                purchased.append(item.product_id)
    return ApiResponse(data={
        "orders": [build_order_response(o) for o in orders],
        "purchased_product_ids": purchased,
        "total_orders": total,
    })


@router.get("/{order_id}", response_model=ApiResponse[OrderResponse])
async def get_order(*, db: AsyncSession = Depends(get_db), order_id: int) -> Any:
    order = await get_order_or_404(db, order_id)
    products = await load_products(db, [i.product_id for i in order.items])
    return ApiResponse(data=build_order_response(order, products))


@router.put("/{order_id}", response_model=ApiResponse[OrderResponse])
async def update_order(*, db: AsyncSession = Depends(get_db), order_id: int, data: OrderUpdate) -> Any:
    """
    Update an order. New items replace the old lines; only the quantity
    increase of each product/pricing pair is stock-checked.
    """
    order = await get_order_or_404(db, order_id)
    if order.is_delete:
        raise HTTPException(status_code=400, detail="Deleted orders cannot be edited")

    values = data.model_dump(exclude_unset=True)
    values.pop("items", None)
    touched = {item.product_id for item in order.items}

    if data.items is not None:
        lines = [item.model_dump() for item in data.items]
        products = await load_products(db, [line["product_id"] for line in lines])
        validate_lines(lines, products)
        check_stock(lines, products, existing=order_quantities(order))

        # Lines without a price keep the price they had on the order
        old_prices = {(i.product_id, i.pricing_type): i.unit_price for i in order.items}
        for line in lines:
            key = (line["product_id"], line["pricing_type"])
            if line.get("unit_price") is None and key in old_prices:
                line["unit_price"] = old_prices[key]

        order.items = build_order_items(lines, products, order.store)
        touched |= set(products)

    for field, value in values.items():
        if field == "shipping_cost" and value is not None:
            value = money(value)
        setattr(order, field, value)

    order.recalculate_total()
    if data.items is not None and order.items_total <= 0:
        raise HTTPException(status_code=400, detail="Order total must be greater than 0")
    refresh_payment_status(order)

    await rebuild_products(db, touched)
    await db.commit()
    await db.refresh(order)
    logger.info(f"Updated order {order.order_number}")
    return ApiResponse(message="Order updated successfully", data=build_order_response(order))


@router.delete("/{order_id}", response_model=ApiResponse[OrderResponse])
async def delete_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    data: OrderDeleteRequest
) -> Any:
    """Soft delete: the order stays, its amounts move to the deleted_* fields."""
    order = await get_order_or_404(db, order_id)
    if order.is_delete:
        raise HTTPException(status_code=400, detail="Order is already deleted")
    reason = (data.reason or "").strip()
    if not reason:
        raise HTTPException(status_code=400, detail="Delete reason is required")

    order.is_delete = True
    order.deleted_reason = reason
    order.deleted_amount = order.total
    order.total = money(0)
    for item in order.items:
        item.deleted_quantity = item.quantity
        item.deleted_total = item.total
        item.quantity = 0
        item.total = money(0)

    await rebuild_products(db, {item.product_id for item in order.items})
    await db.commit()
    await db.refresh(order)
    logger.info(f"Deleted order {order.order_number}: {reason}")
    return ApiResponse(message="Order deleted successfully", data=build_order_response(order))

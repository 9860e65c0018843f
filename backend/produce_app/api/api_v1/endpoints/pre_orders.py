"""PreOrder management API"""

import logging
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.orders.core import build_order_response
from produce_app.api.api_v1.endpoints.orders.pre_order_ops import (
    build_pre_order_response, build_pre_order_items, get_pre_order_or_404, confirm_pre_order
)
from produce_app.api.api_v1.endpoints.orders.stock_ops import load_products, validate_lines
from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.deps import get_db
from produce_app.models.v1.order import PreOrder
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.order import PreOrderCreate, PreOrderUpdate, PreOrderResponse
from produce_app.services.numbering import generate_pre_order_number

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=ApiResponse[Page[PreOrderResponse]])
async def list_pre_orders(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    store_id: Optional[int] = Query(None),
    confirmed: Optional[bool] = Query(None)
) -> Any:
    conditions = [PreOrder.is_delete.is_not(True)]
    if status:
        conditions.append(PreOrder.status == status)
    if store_id:
        conditions.append(PreOrder.store_id == store_id)
    if confirmed is not None:
        conditions.append(PreOrder.confirmed.is_(confirmed))

    total = (await db.execute(select(func.count(PreOrder.id)).where(and_(*conditions)))).scalar() or 0
    result = await db.execute(
        select(PreOrder).where(and_(*conditions))
        .order_by(PreOrder.created_at.desc(), PreOrder.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    pre_orders = result.scalars().all()
    return ApiResponse(data=page_of([build_pre_order_response(p) for p in pre_orders], total, page, limit))


@router.post("/", response_model=ApiResponse[PreOrderResponse])
async def create_pre_order(*, db: AsyncSession = Depends(get_db), data: PreOrderCreate) -> Any:
    if not data.items:
        raise HTTPException(status_code=400, detail="Items are required")
    store = await get_store_or_404(db, data.store_id)

    lines = [item.model_dump() for item in data.items]
    products = await load_products(db, [line["product_id"] for line in lines])
    validate_lines(lines, products)

    pre_order = PreOrder(
        store=store,
        items=build_pre_order_items(lines, products, store),
        pre_order_number=await generate_pre_order_number(db),
        status="pending",
        expected_delivery_date=data.expected_delivery_date,
        notes=data.notes,
    )
    pre_order.recalculate_total()
    db.add(pre_order)
    await db.commit()
    await db.refresh(pre_order)
    logger.info(f"Created PreOrder {pre_order.pre_order_number} for {store.display_name}")
    return ApiResponse(message="PreOrder created successfully", data=build_pre_order_response(pre_order))


@router.get("/{pre_order_id}", response_model=ApiResponse[PreOrderResponse])
async def get_pre_order(*, db: AsyncSession = Depends(get_db), pre_order_id: int) -> Any:
    pre_order = await get_pre_order_or_404(db, pre_order_id)
    return ApiResponse(data=build_pre_order_response(pre_order))


@router.put("/{pre_order_id}", response_model=ApiResponse[PreOrderResponse])
async def update_pre_order(
    *,
    db: AsyncSession = Depends(get_db),
    pre_order_id: int,
    data: PreOrderUpdate
) -> Any:
    pre_order = await get_pre_order_or_404(db, pre_order_id)
    if pre_order.confirmed:
        raise HTTPException(status_code=400, detail="Confirmed PreOrders cannot be edited")

    values = data.model_dump(exclude_unset=True)
    values.pop("items", None)
    if data.items is not None:
        if not data.items:
            raise HTTPException(status_code=400, detail="Items are required")
        lines = [item.model_dump() for item in data.items]
        products = await load_products(db, [line["product_id"] for line in lines])
        validate_lines(lines, products)
        pre_order.items = build_pre_order_items(lines, products, pre_order.store)

    for field, value in values.items():
        setattr(pre_order, field, value)
    pre_order.recalculate_total()

    await db.commit()
    await db.refresh(pre_order)
    logger.info(f"Updated PreOrder {pre_order.pre_order_number}")
    return ApiResponse(message="PreOrder updated successfully", data=build_pre_order_response(pre_order))


@router.delete("/{pre_order_id}", response_model=ApiResponse)
async def delete_pre_order(*, db: AsyncSession = Depends(get_db), pre_order_id: int) -> Any:
    pre_order = await get_pre_order_or_404(db, pre_order_id)
    if pre_order.confirmed:
        raise HTTPException(status_code=400, detail="Confirmed PreOrders cannot be deleted")
    pre_order.is_delete = True
    pre_order.status = "cancelled"
    await db.commit()
    logger.info(f"Deleted PreOrder {pre_order.pre_order_number}")
    return ApiResponse(message="PreOrder deleted")


@router.post("/{pre_order_id}/confirm", response_model=ApiResponse)
async def confirm(*, db: AsyncSession = Depends(get_db), pre_order_id: int) -> Any:
    pre_order = await get_pre_order_or_404(db, pre_order_id)
    order, products = await confirm_pre_order(db, pre_order)
    await db.commit()
    await db.refresh(order)
    await db.refresh(pre_order)
    return ApiResponse(
        message="PreOrder confirmed and Order created successfully",
        data={
            "pre_order": build_pre_order_response(pre_order),
            "order": build_order_response(order, products),
        }
    )

"""Weekly work order API: allocation, picking and shortages"""

import logging
from typing import Any, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.work_order import WorkOrder, WorkOrderStore
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.work_order import (
    WorkOrderCreate, WorkOrderResponse, PickingUpdate, ResolveShortageRequest, WorkOrderStatusUpdate
)
from produce_app.services.stock import get_week_range
from produce_app.services.work_order_builder import find_week_work_order, upsert_week_work_order

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_work_order_or_404(db: AsyncSession, work_order_id: int) -> WorkOrder:
    work_order = await db.get(WorkOrder, work_order_id)
    if not work_order:
        raise HTTPException(status_code=404, detail="Work order not found")
    return work_order


async def reload_work_order(db: AsyncSession, work_order_id: int) -> WorkOrder:
    """Fresh copy of the work order with its products, stores and store items loaded."""
    result = await db.execute(
        select(WorkOrder)
        .where(WorkOrder.id == work_order_id)
        .options(
            selectinload(WorkOrder.products),
            selectinload(WorkOrder.store_allocations).selectinload(WorkOrderStore.items),
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@router.post("/create", response_model=ApiResponse[WorkOrderResponse])
async def create_work_order(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    data: WorkOrderCreate
) -> Any:
    work_order = await upsert_week_work_order(
        db, data.week_offset, data.order_ids, data.pre_order_ids, actor, data.notes
    )
    await db.commit()
    work_order = await reload_work_order(db, work_order.id)
    return ApiResponse(message="Work order created successfully",
                       data=WorkOrderResponse.model_validate(work_order))


@router.get("/", response_model=ApiResponse[Page[WorkOrderResponse]])
async def list_work_orders(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None),
    has_shortage: Optional[bool] = Query(None)
) -> Any:
    conditions = []
    if status:
        conditions.append(WorkOrder.status == status)
    if has_shortage is not None:
        conditions.append(WorkOrder.has_shortage.is_(has_shortage))

    query = select(WorkOrder)
    count_query = select(func.count(WorkOrder.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(query.order_by(WorkOrder.week_start.desc()).offset((page - 1) * limit).limit(limit))
    work_orders = result.scalars().all()
    return ApiResponse(data=page_of([WorkOrderResponse.model_validate(w) for w in work_orders], total, page, limit))


@router.get("/week", response_model=ApiResponse[WorkOrderResponse])
async def get_week_work_order(*, db: AsyncSession = Depends(get_db), week_offset: int = Query(0)) -> Any:
    week = get_week_range(week_offset)
    work_order = await find_week_work_order(db, week["start"])
    if not work_order:
        return ApiResponse(message="No work order found for this week", data=None)
    return ApiResponse(data=WorkOrderResponse.model_validate(work_order))


@router.get("/shortages", response_model=ApiResponse)
async def get_shortages(*, db: AsyncSession = Depends(get_db), week_offset: int = Query(0)) -> Any:
    week = get_week_range(week_offset)
    work_order = await find_week_work_order(db, week["start"])
    if not work_order:
        return ApiResponse(data={
            "has_shortage": False,
            "short_products": [],
            "affected_stores": [],
            "summary": None,
        })

    short_products = [{
        "product_id": p.product_id,
        "product_name": p.product_name,
        "total_ordered": p.total_ordered,
        "total_available": p.total_available,
        "shortage": abs(p.shortage),
        "status": p.status,
    } for p in work_order.products if (p.shortage or 0) < 0]

    affected_stores = [{
        "store_id": s.store_id,
        "store_name": s.store_name,
        "total_ordered": s.total_ordered,
        "total_allocated": s.total_allocated,
        "total_shortage": s.total_shortage,
        "status": s.allocation_status,
        "short_items": [{
            "product_id": i.product_id,
            "product_name": i.product_name,
            "ordered": i.ordered,
            "allocated": i.allocated,
            "shortage": i.shortage,
        } for i in s.items if (i.shortage or 0) > 0],
    } for s in work_order.store_allocations if (s.total_shortage or 0) > 0]

    return ApiResponse(data={
        "work_order_id": work_order.id,
        "work_order_number": work_order.work_order_number,
        "has_shortage": work_order.has_shortage,
        "short_products": short_products,
        "affected_stores": affected_stores,
        "summary": {
            "total_products": work_order.total_products,
            "short_product_count": work_order.short_product_count,
            "total_shortage_quantity": work_order.total_shortage_quantity,
            "shortage_percentage": work_order.shortage_percentage,
        },
    })


@router.get("/{work_order_id}", response_model=ApiResponse[WorkOrderResponse])
async def get_work_order(*, db: AsyncSession = Depends(get_db), work_order_id: int) -> Any:
    work_order = await get_work_order_or_404(db, work_order_id)
    return ApiResponse(data=WorkOrderResponse.model_validate(work_order))


@router.post("/{work_order_id}/picking", response_model=ApiResponse[WorkOrderResponse])
async def update_picking(
    *,
    db: AsyncSession = Depends(get_db),
    work_order_id: int,
    data: PickingUpdate
) -> Any:
    work_order = await get_work_order_or_404(db, work_order_id)
    allocation = next((s for s in work_order.store_allocations if s.store_id == data.store_id), None)
    if allocation is None:
        raise HTTPException(status_code=404, detail="Store allocation not found")
    item = next((i for i in allocation.items if i.product_id == data.product_id), None)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")

    item.picked = data.picked
    item.picked_at = datetime.utcnow() if data.picked else None
    allocation.refresh_picking_status()
    work_order.refresh_picking_status()

    await db.commit()
    work_order = await reload_work_order(db, work_order.id)
    return ApiResponse(message="Picking status updated", data=WorkOrderResponse.model_validate(work_order))


@router.post("/{work_order_id}/resolve-shortage", response_model=ApiResponse)
async def resolve_shortage(
    *,
    db: AsyncSession = Depends(get_db),
    work_order_id: int,
    data: ResolveShortageRequest
) -> Any:
    work_order = await get_work_order_or_404(db, work_order_id)
    product = work_order.update_product_status(data.product_id, data.additional_quantity, data.notes)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found in work order")

    await db.commit()
    logger.info(f"Shortage update on {work_order.work_order_number} for {product.product_name}: "
                f"+{data.additional_quantity} -> {product.status}")
    return ApiResponse(message="Shortage resolved", data={
        "product_id": product.product_id,
        "product_name": product.product_name,
        "total_available": product.total_available,
        "shortage": product.shortage,
        "status": product.status,
        "has_shortage": work_order.has_shortage,
        "short_product_count": work_order.short_product_count,
        "total_shortage_quantity": work_order.total_shortage_quantity,
    })


@router.put("/{work_order_id}/status", response_model=ApiResponse[WorkOrderResponse])
async def update_status(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    work_order_id: int,
    data: WorkOrderStatusUpdate
) -> Any:
    work_order = await get_work_order_or_404(db, work_order_id)
    if work_order.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cancelled work orders cannot be changed")

    work_order.status = data.status
    if data.status == "confirmed" and not work_order.confirmed_at:
        work_order.confirmed_at = datetime.utcnow()
        work_order.confirmed_by_name = actor.name
    elif data.status == "completed":
        work_order.completed_at = datetime.utcnow()
    if data.notes:
        work_order.notes = data.notes

    await db.commit()
    work_order = await reload_work_order(db, work_order.id)
    logger.info(f"Work order {work_order.work_order_number} status -> {data.status}")
    return ApiResponse(message="Work order status updated", data=WorkOrderResponse.model_validate(work_order))

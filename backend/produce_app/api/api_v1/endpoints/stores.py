"""Store account administration"""

import logging
from typing import Any, List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.deps import get_db
from produce_app.models.v1.order import Order
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.store import RejectRequest, StoreResponse, StoreUpdate
from produce_app.services.money import money

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_store_or_404(db: AsyncSession, store_id: int) -> Store:
    store = await db.get(Store, store_id)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return store


@router.get("/", response_model=ApiResponse[Page[StoreResponse]])
async def list_stores(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    approval_status: Optional[str] = Query(None),
    role: Optional[str] = Query(None)
) -> Any:
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Store.name.ilike(pattern),
            Store.store_name.ilike(pattern),
            Store.email.ilike(pattern),
            Store.city.ilike(pattern),
        ))
    if approval_status:
        conditions.append(Store.approval_status == approval_status)
    if role:
        conditions.append(Store.role == role)

    query = select(Store)
    count_query = select(func.count(Store.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(Store.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    stores = result.scalars().all()
    return ApiResponse(data=page_of([StoreResponse.model_validate(s) for s in stores], total, page, limit))


@router.get("/pending", response_model=ApiResponse[List[StoreResponse]])
async def list_pending_stores(*, db: AsyncSession = Depends(get_db)) -> Any:
    result = await db.execute(
        select(Store)
        .where(Store.role == "store", Store.approval_status == "pending")
        .order_by(Store.created_at.asc())
    )
    return ApiResponse(data=[StoreResponse.model_validate(s) for s in result.scalars().all()])


@router.get("/{store_id}", response_model=ApiResponse[StoreResponse])
async def get_store(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    store = await get_store_or_404(db, store_id)
    return ApiResponse(data=StoreResponse.model_validate(store))


@router.put("/{store_id}", response_model=ApiResponse[StoreResponse])
async def update_store(*, db: AsyncSession = Depends(get_db), store_id: int, data: StoreUpdate) -> Any:
    store = await get_store_or_404(db, store_id)

    for field, value in data.model_dump(exclude_unset=True).items():
        if field in ("shipping_cost", "credit_limit") and value is not None:
            value = money(value)
        setattr(store, field, value)

    await db.commit()
    await db.refresh(store)
    logger.info(f"Updated store {store.id}")
    return ApiResponse(message="Store updated", data=StoreResponse.model_validate(store))


@router.post("/{store_id}/approve", response_model=ApiResponse[StoreResponse])
async def approve_store(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    store = await get_store_or_404(db, store_id)
    if store.approval_status != "pending":
        raise HTTPException(status_code=400, detail=f"Store is already {store.approval_status}")

    store.approval_status = "approved"
    store.approved_at = datetime.utcnow()
    store.rejection_reason = None
    await db.commit()
    await db.refresh(store)
    logger.info(f"Approved store {store.display_name}")
    return ApiResponse(message="Store approved", data=StoreResponse.model_validate(store))


@router.post("/{store_id}/reject", response_model=ApiResponse[StoreResponse])
async def reject_store(*, db: AsyncSession = Depends(get_db), store_id: int, data: RejectRequest) -> Any:
    store = await get_store_or_404(db, store_id)
    if store.approval_status == "rejected":
        raise HTTPException(status_code=400, detail="Store is already rejected")

    store.approval_status = "rejected"
    store.rejected_at = datetime.utcnow()
    store.rejection_reason = data.reason
    await db.commit()
    await db.refresh(store)
    logger.info(f"Rejected store {store.display_name}: {data.reason}")
    return ApiResponse(message="Store rejected", data=StoreResponse.model_validate(store))


@router.delete("/{store_id}", response_model=ApiResponse)
async def delete_store(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    store = await get_store_or_404(db, store_id)

    order_count = (await db.execute(
        select(func.count(Order.id)).where(Order.store_id == store_id)
    )).scalar() or 0
    if order_count:
        raise HTTPException(status_code=400, detail="Store has orders and cannot be deleted")

    await db.delete(store)
    await db.commit()
    logger.info(f"Deleted store {store_id}")
    return ApiResponse(message="Store deleted")

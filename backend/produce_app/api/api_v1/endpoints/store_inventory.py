"""Inventory held at store locations"""

import logging
from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_, case
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.products import get_product_or_404
from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.product import Product
from produce_app.models.v1.store import Store
from produce_app.models.v1.store_inventory import StoreInventory
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.store_inventory import (
    InventoryTransfer, InventoryAdjust, StoreInventoryResponse, build_inventory_response
)
from produce_app.services.money import money_float

logger = logging.getLogger(__name__)

router = APIRouter()

QTY_FIELDS = {"box": "quantity", "unit": "unit_quantity"}


def stock_status_condition(stock_status: str):
    """SQL counterpart of StoreInventory.stock_status."""
    qty = StoreInventory.quantity
    if stock_status == "out-of-stock":
        return qty <= 0
    if stock_status == "low":
        return and_(qty > 0, qty <= StoreInventory.reorder_point)
    if stock_status == "overstocked":
        return and_(qty > StoreInventory.reorder_point, qty >= StoreInventory.max_stock)
    return and_(qty > StoreInventory.reorder_point, qty < StoreInventory.max_stock)


def inventory_stats_columns():
    qty = StoreInventory.quantity
    return (
        func.count(StoreInventory.id).label("total_products"),
        func.coalesce(func.sum(qty), 0).label("total_quantity"),
        func.coalesce(func.sum(qty * Product.price), 0).label("total_value"),
        func.sum(case((and_(qty > 0, qty <= StoreInventory.reorder_point), 1), else_=0)).label("low_stock_count"),
        func.sum(case((qty <= 0, 1), else_=0)).label("out_of_stock_count"),
    )


def stats_row(row) -> dict:
    return {
        "total_products": row.total_products or 0,
        "total_quantity": float(row.total_quantity or 0),
        "total_value": money_float(row.total_value),
        "low_stock_count": row.low_stock_count or 0,
        "out_of_stock_count": row.out_of_stock_count or 0,
    }


async def get_or_create_row(db: AsyncSession, store: Store, product: Product) -> StoreInventory:
    result = await db.execute(
        select(StoreInventory).where(StoreInventory.store_id == store.id, StoreInventory.product_id == product.id)
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = StoreInventory(
            store=store, product=product,
            quantity=0, allocated=0, available=0,
            unit_quantity=0, unit_allocated=0, unit_available=0,
            min_stock=5, max_stock=100, reorder_point=10,
            movements=[],
        )
        db.add(row)
    return row


@router.get("/store/{store_id}", response_model=ApiResponse[Page[StoreInventoryResponse]])
async def list_store_inventory(
    *,
    db: AsyncSession = Depends(get_db),
    store_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    stock_status: Optional[str] = Query(None)
) -> Any:
    await get_store_or_404(db, store_id)
    query = (
        select(StoreInventory)
        .join(Product, StoreInventory.product_id == Product.id)
        .where(StoreInventory.store_id == store_id)
    )
    if search:
        query = query.where(Product.name.ilike(f"%{search}%"))
    if category and category != "all":
        query = query.where(Product.category == category)
    if stock_status and stock_status != "all":
        query = query.where(stock_status_condition(stock_status))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(query.order_by(Product.name.asc()).offset((page - 1) * limit).limit(limit))
    rows = result.scalars().all()
    return ApiResponse(data=page_of([build_inventory_response(r) for r in rows], total, page, limit))


@router.get("/summary/by-store", response_model=ApiResponse)
async def inventory_summary_by_store(*, db: AsyncSession = Depends(get_db)) -> Any:
    result = await db.execute(
        select(Store.id, Store.store_name, Store.owner_name, Store.state, Store.city, *inventory_stats_columns())
        .select_from(StoreInventory)
        .join(Store, StoreInventory.store_id == Store.id)
        .join(Product, StoreInventory.product_id == Product.id)
        .group_by(Store.id)
    )
    summary = [{
        "store_id": row.id,
        "store_name": row.store_name,
        "owner_name": row.owner_name,
        "state": row.state,
        "city": row.city,
        **stats_row(row),
    } for row in result.all()]
    summary.sort(key=lambda s: s["total_quantity"], reverse=True)
    return ApiResponse(data=summary)


@router.get("/summary/by-region", response_model=ApiResponse)
async def inventory_summary_by_region(*, db: AsyncSession = Depends(get_db)) -> Any:
    result = await db.execute(
        select(Store.state, func.count(func.distinct(Store.id)).label("store_count"), *inventory_stats_columns())
        .select_from(StoreInventory)
        .join(Store, StoreInventory.store_id == Store.id)
        .join(Product, StoreInventory.product_id == Product.id)
        .group_by(Store.state)
    )
    regions = [{"state": row.state or "Unknown", "store_count": row.store_count, **stats_row(row)}
               for row in result.all()]
    regions.sort(key=lambda r: r["total_quantity"], reverse=True)
    return ApiResponse(data=regions)


@router.get("/stores", response_model=ApiResponse)
async def stores_with_inventory(
    *,
    db: AsyncSession = Depends(get_db),
    state: Optional[str] = Query(None),
    search: Optional[str] = Query(None)
) -> Any:
    query = select(Store).where(Store.role == "store")
    if state and state != "all":
        query = query.where(Store.state.ilike(f"%{state}%"))
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Store.store_name.ilike(pattern), Store.owner_name.ilike(pattern),
                                Store.city.ilike(pattern)))
    stores = (await db.execute(query.order_by(Store.store_name.asc()))).scalars().all()

    stats = {}
    if stores:
        result = await db.execute(
            select(StoreInventory.store_id, *inventory_stats_columns())
            .join(Product, StoreInventory.product_id == Product.id)
            .where(StoreInventory.store_id.in_([s.id for s in stores]))
            .group_by(StoreInventory.store_id)
        )
        stats = {row.store_id: stats_row(row) for row in result.all()}

    empty = {"total_products": 0, "total_quantity": 0.0, "total_value": 0.0,
             "low_stock_count": 0, "out_of_stock_count": 0}
    return ApiResponse(data=[{
        "store_id": s.id,
        "store_name": s.display_name,
        "owner_name": s.owner_name,
        "email": s.email,
        "state": s.state,
        "city": s.city,
        "address": s.address,
        "inventory": stats.get(s.id, empty),
    } for s in stores])


@router.post("/transfer", response_model=ApiResponse)
async def transfer_inventory(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    data: InventoryTransfer
) -> Any:
    if data.from_store_id == data.to_store_id:
        raise HTTPException(status_code=400, detail="Source and destination stores must differ")
    source_store = await get_store_or_404(db, data.from_store_id)
    dest_store = await get_store_or_404(db, data.to_store_id)
    product = await get_product_or_404(db, data.product_id)

    result = await db.execute(
        select(StoreInventory).where(StoreInventory.store_id == source_store.id,
                                     StoreInventory.product_id == product.id)
    )
    source = result.scalar_one_or_none()
    if source is None:
        raise HTTPException(status_code=404, detail="Source inventory not found")

    field = QTY_FIELDS[data.unit_type]
    if (getattr(source, field) or 0) < data.quantity:
        raise HTTPException(status_code=400, detail="Insufficient inventory at source store")
    dest = await get_or_create_row(db, dest_store, product)

    reason = data.reason or "Inventory transfer"
    setattr(source, field, (getattr(source, field) or 0) - data.quantity)
    setattr(dest, field, (getattr(dest, field) or 0) + data.quantity)
    dest.last_restocked = datetime.utcnow()
    source.recalculate_available()
    dest.recalculate_available()

    box_qty = data.quantity if data.unit_type == "box" else 0
    unit_qty = data.quantity if data.unit_type == "unit" else 0
    source.add_movement("transfer", -box_qty, -unit_qty, reason,
                        f"to {dest_store.display_name}", actor.name)
    dest.add_movement("transfer", box_qty, unit_qty, reason,
                      f"from {source_store.display_name}", actor.name)

    await db.commit()
    await db.refresh(source)
    await db.refresh(dest)
    logger.info(f"Transferred {data.quantity} {data.unit_type} of {product.name} "
                f"from {source_store.display_name} to {dest_store.display_name}")
    return ApiResponse(message="Inventory transferred successfully", data={
        "source": build_inventory_response(source),
        "destination": build_inventory_response(dest),
    })


@router.post("/adjust", response_model=ApiResponse[StoreInventoryResponse])
async def adjust_inventory(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    data: InventoryAdjust
) -> Any:
    store = await get_store_or_404(db, data.store_id)
    product = await get_product_or_404(db, data.product_id)
    row = await get_or_create_row(db, store, product)

    field = QTY_FIELDS[data.unit_type]
    current = getattr(row, field) or 0
    if data.type == "add":
        setattr(row, field, current + data.quantity)
        row.last_restocked = datetime.utcnow()
    else:
        if current < data.quantity:
            raise HTTPException(status_code=400, detail="Insufficient inventory")
        setattr(row, field, current - data.quantity)
        row.last_sold = datetime.utcnow()
    row.recalculate_available()

    sign = 1 if data.type == "add" else -1
    row.add_movement(
        "adjustment",
        sign * data.quantity if data.unit_type == "box" else 0,
        sign * data.quantity if data.unit_type == "unit" else 0,
        data.reason or f"Manual {data.type}", None, actor.name,
    )

    await db.commit()
    await db.refresh(row)
    logger.info(f"Inventory {data.type} {data.quantity} {data.unit_type} of {product.name} at {store.display_name}")
    return ApiResponse(message=f"Inventory {'added' if data.type == 'add' else 'removed'} successfully",
                       data=build_inventory_response(row))


@router.post("/initialize/{store_id}", response_model=ApiResponse)
async def initialize_store_inventory(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    """Zero rows for every product the store does not track yet."""
    store = await get_store_or_404(db, store_id)
    products = (await db.execute(select(Product))).scalars().all()
    existing = set((await db.execute(
        select(StoreInventory.product_id).where(StoreInventory.store_id == store_id)
    )).scalars().all())

    created = 0
    for product in products:
        if product.id in existing:
            continue
        db.add(StoreInventory(
            store=store, product=product,
            quantity=0, allocated=0, available=0,
            unit_quantity=0, unit_allocated=0, unit_available=0,
            min_stock=5, max_stock=100, reorder_point=10,
            movements=[],
        ))
        created += 1

    await db.commit()
    logger.info(f"Initialized {created} inventory rows for {store.display_name}")
    return ApiResponse(message=f"Initialized inventory for {len(products)} products", data={"created": created})

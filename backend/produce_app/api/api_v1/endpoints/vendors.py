"""Vendor management API"""

import logging
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.deps import get_db
from produce_app.models.v1.purchase_order import PurchaseOrder
from produce_app.models.v1.vendor import Vendor
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.vendor import (
    VendorCreate, VendorUpdate, VendorResponse, build_vendor_response
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_vendor_or_404(db: AsyncSession, vendor_id: int) -> Vendor:
    vendor = await db.get(Vendor, vendor_id)
    if not vendor:
        raise HTTPException(status_code=404, detail="Vendor not found")
    return vendor


@router.get("/", response_model=ApiResponse[Page[VendorResponse]])
async def list_vendors(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    vendor_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None)
) -> Any:
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Vendor.name.ilike(pattern),
            Vendor.contact_name.ilike(pattern),
            Vendor.email.ilike(pattern),
        ))
    if vendor_type:
        conditions.append(Vendor.vendor_type == vendor_type)
    if status:
        conditions.append(Vendor.status == status)

    query = select(Vendor)
    count_query = select(func.count(Vendor.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(query.order_by(Vendor.name.asc()).offset((page - 1) * limit).limit(limit))
    vendors = result.scalars().all()
    return ApiResponse(data=page_of([build_vendor_response(v) for v in vendors], total, page, limit))


@router.post("/", response_model=ApiResponse[VendorResponse])
async def create_vendor(*, db: AsyncSession = Depends(get_db), data: VendorCreate) -> Any:
    vendor = Vendor(**data.model_dump())
    db.add(vendor)
    await db.commit()
    await db.refresh(vendor)
    logger.info(f"Created vendor {vendor.name}")
    return ApiResponse(message="Vendor created", data=build_vendor_response(vendor))


@router.get("/{vendor_id}", response_model=ApiResponse[VendorResponse])
async def get_vendor(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    vendor = await get_vendor_or_404(db, vendor_id)
    return ApiResponse(data=build_vendor_response(vendor))


@router.put("/{vendor_id}", response_model=ApiResponse[VendorResponse])
async def update_vendor(*, db: AsyncSession = Depends(get_db), vendor_id: int, data: VendorUpdate) -> Any:
    vendor = await get_vendor_or_404(db, vendor_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(vendor, field, value)
    await db.commit()
    await db.refresh(vendor)
    logger.info(f"Updated vendor {vendor.name}")
    return ApiResponse(message="Vendor updated", data=build_vendor_response(vendor))


@router.delete("/{vendor_id}", response_model=ApiResponse)
async def delete_vendor(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    vendor = await get_vendor_or_404(db, vendor_id)

    po_count = (await db.execute(
        select(func.count(PurchaseOrder.id)).where(PurchaseOrder.vendor_id == vendor_id)
    )).scalar() or 0
    if po_count:
        raise HTTPException(status_code=400, detail="Vendor has purchase orders and cannot be deleted")

    await db.delete(vendor)
    await db.commit()
    logger.info(f"Deleted vendor {vendor_id}")
    return ApiResponse(message="Vendor deleted")

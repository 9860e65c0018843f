"""Balance adjustment API: credits, debits and write-offs with approval"""

import logging
from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_, true
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.adjustment import Adjustment
from produce_app.schemas.v1.adjustment import (
    AdjustmentCreate, AdjustmentUpdate, AdjustmentApprove, AdjustmentReject, AdjustmentVoid,
    AdjustmentResponse, build_adjustment_response
)
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.store import CreditEntryResponse
from produce_app.services.money import money, money_float
from produce_app.services.numbering import generate_adjustment_number
from produce_app.services.store_credit import post_credit

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_adjustment_or_404(db: AsyncSession, adjustment_id: int) -> Adjustment:
    adjustment = await db.get(Adjustment, adjustment_id)
    if not adjustment:
        raise HTTPException(status_code=404, detail="Adjustment not found")
    return adjustment


def apply_adjustment(adjustment: Adjustment, actor: Actor) -> None:
    """Post an approved adjustment to the store credit balance.

    Vendor adjustments are recorded only. The caller commits.
    """
    previous = adjustment.status
    if adjustment.store is not None:
        entry = post_credit(
            adjustment.store, adjustment.signed_amount, "adjustment",
            f"{adjustment.adjustment_type}: {adjustment.reason}",
            reference_id=adjustment.id, reference_model="Adjustment", actor=actor,
        )
        adjustment.balance_before = entry.balance_before
        adjustment.balance_after = entry.balance_after
        note = f"Applied to balance. Before: {entry.balance_before}, After: {entry.balance_after}"
    else:
        note = "Recorded against vendor"
    adjustment.status = "applied"
    adjustment.applied_at = datetime.utcnow()
    adjustment.add_audit("applied", previous, "applied", note, actor.id, actor.name)


def reverse_adjustment(adjustment: Adjustment, actor: Actor, reason: str) -> None:
    if adjustment.store is None:
        return
    post_credit(
        adjustment.store, -adjustment.signed_amount, "adjustment", f"VOID REVERSAL: {reason}",
        reference_id=adjustment.id, reference_model="Adjustment", actor=actor,
    )


def adjustment_conditions(store_id: Optional[int], vendor_id: Optional[int],
                          start_date: Optional[datetime], end_date: Optional[datetime]) -> list:
    conditions = []
    if store_id:
        conditions.append(Adjustment.store_id == store_id)
    if vendor_id:
        conditions.append(Adjustment.vendor_id == vendor_id)
    if start_date:
        conditions.append(Adjustment.created_at >= start_date)
    if end_date:
        conditions.append(Adjustment.created_at <= end_date)
    return conditions


@router.get("/", response_model=ApiResponse[Page[AdjustmentResponse]])
async def list_adjustments(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    store_id: Optional[int] = Query(None),
    vendor_id: Optional[int] = Query(None),
    adjustment_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    reason_category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    conditions = adjustment_conditions(store_id, vendor_id, start_date, end_date)
    if adjustment_type and adjustment_type != "all":
        conditions.append(Adjustment.adjustment_type == adjustment_type)
    if status and status != "all":
        conditions.append(Adjustment.status == status)
    if reason_category:
        conditions.append(Adjustment.reason_category == reason_category)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Adjustment.adjustment_number.ilike(pattern),
            Adjustment.reason.ilike(pattern),
            Adjustment.reference_number.ilike(pattern),
        ))

    query = select(Adjustment)
    count_query = select(func.count(Adjustment.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(Adjustment.created_at.desc(), Adjustment.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    adjustments = result.scalars().all()
    return ApiResponse(data=page_of([build_adjustment_response(a) for a in adjustments], total, page, limit))


@router.post("/", response_model=ApiResponse[AdjustmentResponse])
async def create_adjustment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    data: AdjustmentCreate
) -> Any:
    if not data.store_id and not data.vendor_id:
        raise HTTPException(status_code=400, detail="Either store_id or vendor_id must be provided")
    if data.store_id and data.vendor_id:
        raise HTTPException(status_code=400, detail="Cannot set both store_id and vendor_id")

    store = await get_store_or_404(db, data.store_id) if data.store_id else None
    vendor = await get_vendor_or_404(db, data.vendor_id) if data.vendor_id else None

    initial_status = "pending" if data.requires_approval else "approved"
    adjustment = Adjustment(
        adjustment_number=await generate_adjustment_number(db),
        store=store,
        vendor=vendor,
        adjustment_type=data.adjustment_type,
        amount=money(data.amount),
        reason_category=data.reason_category,
        reason=data.reason,
        notes=data.notes,
        reference_type=data.reference_type,
        reference_id=data.reference_id,
        reference_number=data.reference_number,
        requires_approval=data.requires_approval,
        status=initial_status,
        audit_log=[],
        created_by_name=actor.name,
    )
    adjustment.add_audit("created", None, initial_status, "Adjustment created", actor.id, actor.name)
    if not data.requires_approval:
        adjustment.approved_at = datetime.utcnow()
        adjustment.approved_by_name = actor.name
    db.add(adjustment)
    # Credit entries reference the adjustment id
    await db.flush()
    if not data.requires_approval:
        apply_adjustment(adjustment, actor)

    await db.commit()
    await db.refresh(adjustment)
    logger.info(f"Created adjustment {adjustment.adjustment_number}: {adjustment.adjustment_type} "
                f"${adjustment.amount} ({adjustment.status})")
    return ApiResponse(message="Adjustment created successfully", data=build_adjustment_response(adjustment))


@router.get("/summary", response_model=ApiResponse)
async def adjustment_summary(
    *,
    db: AsyncSession = Depends(get_db),
    store_id: Optional[int] = Query(None),
    vendor_id: Optional[int] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    conditions = adjustment_conditions(store_id, vendor_id, start_date, end_date)
    where = and_(*conditions) if conditions else true()

    by_type = await db.execute(
        select(Adjustment.adjustment_type, func.count(Adjustment.id), func.sum(Adjustment.amount))
        .where(where).group_by(Adjustment.adjustment_type)
    )
    by_status = await db.execute(
        select(Adjustment.status, func.count(Adjustment.id), func.sum(Adjustment.amount))
        .where(where).group_by(Adjustment.status)
    )
    type_rows = [{"key": k, "count": c, "total_amount": money_float(a)} for k, c, a in by_type.all()]
    status_rows = [{"key": k, "count": c, "total_amount": money_float(a)} for k, c, a in by_status.all()]
    pending_count = sum(row["count"] for row in status_rows if row["key"] == "pending")

    return ApiResponse(data={
        "by_type": type_rows,
        "by_status": status_rows,
        "total_count": sum(row["count"] for row in type_rows),
        "total_amount": money_float(sum(row["total_amount"] for row in type_rows)),
        "pending_count": pending_count,
    })


@router.get("/store/{store_id}", response_model=ApiResponse)
async def store_adjustments(
    *,
    db: AsyncSession = Depends(get_db),
    store_id: int,
    status: Optional[str] = Query(None),
    adjustment_type: Optional[str] = Query(None)
) -> Any:
    store = await get_store_or_404(db, store_id)
    query = select(Adjustment).where(Adjustment.store_id == store_id)
    if status:
        query = query.where(Adjustment.status == status)
    if adjustment_type:
        query = query.where(Adjustment.adjustment_type == adjustment_type)
    result = await db.execute(query.order_by(Adjustment.created_at.desc(), Adjustment.id.desc()))

    return ApiResponse(data={
        "adjustments": [build_adjustment_response(a) for a in result.scalars().all()],
        "credit_balance": money_float(store.credit_balance),
        "credit_history": [CreditEntryResponse.model_validate(e) for e in store.credit_history],
    })


@router.get("/{adjustment_id}", response_model=ApiResponse[AdjustmentResponse])
async def get_adjustment(*, db: AsyncSession = Depends(get_db), adjustment_id: int) -> Any:
    adjustment = await get_adjustment_or_404(db, adjustment_id)
    return ApiResponse(data=build_adjustment_response(adjustment))


@router.put("/{adjustment_id}", response_model=ApiResponse[AdjustmentResponse])
async def update_adjustment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    adjustment_id: int,
    data: AdjustmentUpdate
) -> Any:
    adjustment = await get_adjustment_or_404(db, adjustment_id)
    if adjustment.status not in ("draft", "pending"):
        raise HTTPException(status_code=400, detail=f"Cannot edit adjustment with status: {adjustment.status}")

    updates = data.model_dump(exclude_unset=True)
    for field, value in updates.items():
        if field == "amount" and value is not None:
            value = money(value)
        setattr(adjustment, field, value)
    adjustment.add_audit("updated", adjustment.status, adjustment.status,
                         f"Updated: {', '.join(sorted(updates))}", actor.id, actor.name)

    await db.commit()
    await db.refresh(adjustment)
    return ApiResponse(message="Adjustment updated successfully", data=build_adjustment_response(adjustment))


@router.put("/{adjustment_id}/approve", response_model=ApiResponse[AdjustmentResponse])
async def approve_adjustment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    adjustment_id: int,
    data: AdjustmentApprove
) -> Any:
    adjustment = await get_adjustment_or_404(db, adjustment_id)
    if adjustment.status != "pending":
        raise HTTPException(status_code=400, detail=f"Cannot approve adjustment with status: {adjustment.status}")

    adjustment.status = "approved"
    adjustment.approved_at = datetime.utcnow()
    adjustment.approved_by_name = actor.name
    adjustment.add_audit("approved", "pending", "approved", data.notes or "Adjustment approved", actor.id, actor.name)
    apply_adjustment(adjustment, actor)

    await db.commit()
    await db.refresh(adjustment)
    logger.info(f"Approved and applied adjustment {adjustment.adjustment_number} by {actor.name}")
    return ApiResponse(message="Adjustment approved and applied successfully",
                       data=build_adjustment_response(adjustment))


@router.put("/{adjustment_id}/reject", response_model=ApiResponse[AdjustmentResponse])
async def reject_adjustment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    adjustment_id: int,
    data: AdjustmentReject
) -> Any:
    if not data.rejection_reason.strip():
        raise HTTPException(status_code=400, detail="Rejection reason is required")
    adjustment = await get_adjustment_or_404(db, adjustment_id)
    if adjustment.status != "pending":
        raise HTTPException(status_code=400, detail=f"Cannot reject adjustment with status: {adjustment.status}")

    adjustment.status = "rejected"
    adjustment.rejected_at = datetime.utcnow()
    adjustment.rejection_reason = data.rejection_reason
    adjustment.add_audit("rejected", "pending", "rejected", data.rejection_reason, actor.id, actor.name)

    await db.commit()
    await db.refresh(adjustment)
    return ApiResponse(message="Adjustment rejected", data=build_adjustment_response(adjustment))


@router.put("/{adjustment_id}/void", response_model=ApiResponse[AdjustmentResponse])
async def void_adjustment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    adjustment_id: int,
    data: AdjustmentVoid
) -> Any:
    if not data.void_reason.strip():
        raise HTTPException(status_code=400, detail="Void reason is required")
    adjustment = await get_adjustment_or_404(db, adjustment_id)
    if adjustment.status == "voided":
        raise HTTPException(status_code=400, detail="Adjustment is already voided")

    previous = adjustment.status
    if previous == "applied":
        reverse_adjustment(adjustment, actor, data.void_reason)
    adjustment.status = "voided"
    adjustment.voided_at = datetime.utcnow()
    adjustment.void_reason = data.void_reason
    adjustment.add_audit("voided", previous, "voided", data.void_reason, actor.id, actor.name)

    await db.commit()
    await db.refresh(adjustment)
    logger.info(f"Voided adjustment {adjustment.adjustment_number} ({previous}): {data.void_reason}")
    return ApiResponse(message="Adjustment voided successfully", data=build_adjustment_response(adjustment))

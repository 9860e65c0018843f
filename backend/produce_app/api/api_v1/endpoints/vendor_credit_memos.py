"""Vendor credit/debit memo API"""

import logging
from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.invoice import Invoice
from produce_app.models.v1.purchase_order import PurchaseOrder
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.vendor_credit_memo import (
    VendorCreditMemoCreate, VendorCreditMemoUpdate, VendorCreditMemoApprove, VendorCreditMemoVoid,
    VendorCreditMemoResponse, build_vendor_credit_memo_response
)
from produce_app.services.money import money, money_float
from produce_app.services.numbering import generate_memo_number

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_memo_or_404(db: AsyncSession, memo_id: int) -> VendorCreditMemo:
    memo = await db.get(VendorCreditMemo, memo_id)
    if not memo:
        raise HTTPException(status_code=404, detail="Credit memo not found")
    return memo


async def ensure_vendor_documents(db: AsyncSession, vendor_id: int,
                                  purchase_order_id: Optional[int] = None,
                                  invoice_id: Optional[int] = None) -> None:
    """Linked purchase order and invoice must exist and belong to the vendor."""
    if purchase_order_id:
        purchase_order = await db.get(PurchaseOrder, purchase_order_id)
        if not purchase_order or purchase_order.vendor_id != vendor_id:
            raise HTTPException(status_code=400, detail="Purchase order not found or does not belong to this vendor")
    if invoice_id:
        invoice = await db.get(Invoice, invoice_id)
        if not invoice or invoice.vendor_id != vendor_id:
            raise HTTPException(status_code=400, detail="Invoice not found or does not belong to this vendor")


def group_totals(rows) -> list:
    return [{
        "key": key,
        "count": count,
        "total_amount": money_float(amount),
        "applied_amount": money_float(applied),
        "remaining_amount": money_float(money(amount) - money(applied)),
    } for key, count, amount, applied in rows]


@router.get("/", response_model=ApiResponse[Page[VendorCreditMemoResponse]])
async def list_memos(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    vendor_id: Optional[int] = Query(None),
    memo_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    reason_category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    conditions = []
    if vendor_id:
        conditions.append(VendorCreditMemo.vendor_id == vendor_id)
    if memo_type and memo_type != "all":
        conditions.append(VendorCreditMemo.memo_type == memo_type)
    if status and status != "all":
        conditions.append(VendorCreditMemo.status == status)
    if reason_category:
        conditions.append(VendorCreditMemo.reason_category == reason_category)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            VendorCreditMemo.memo_number.ilike(pattern),
            VendorCreditMemo.description.ilike(pattern),
        ))
    if start_date:
        conditions.append(VendorCreditMemo.created_at >= start_date)
    if end_date:
        conditions.append(VendorCreditMemo.created_at <= end_date)

    query = select(VendorCreditMemo)
    count_query = select(func.count(VendorCreditMemo.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(VendorCreditMemo.created_at.desc(), VendorCreditMemo.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    memos = result.scalars().all()
    return ApiResponse(data=page_of([build_vendor_credit_memo_response(m) for m in memos], total, page, limit))


@router.post("/", response_model=ApiResponse[VendorCreditMemoResponse])
async def create_memo(*, db: AsyncSession = Depends(get_db), data: VendorCreditMemoCreate) -> Any:
    vendor = await get_vendor_or_404(db, data.vendor_id)
    await ensure_vendor_documents(db, vendor.id, data.purchase_order_id, data.invoice_id)

    amount = money(data.amount)
    memo = VendorCreditMemo(
        vendor=vendor,
        memo_number=await generate_memo_number(db, data.memo_type),
        memo_type=data.memo_type,
        purchase_order_id=data.purchase_order_id,
        invoice_id=data.invoice_id,
        reason_category=data.reason_category,
        description=data.description,
        line_items=data.line_items,
        subtotal=money(data.subtotal) if data.subtotal is not None else amount,
        amount=amount,
        applied_amount=money(0),
        status="pending_approval" if data.submit_for_approval else "draft",
        applications=[],
        notes=data.notes,
    )
    db.add(memo)
    await db.commit()
    await db.refresh(memo)
    logger.info(f"Created {memo.memo_type} memo {memo.memo_number} for {vendor.name}: ${memo.amount}")
    return ApiResponse(
        message=f"{'Debit' if memo.memo_type == 'debit' else 'Credit'} memo created successfully",
        data=build_vendor_credit_memo_response(memo)
    )


@router.get("/vendor/{vendor_id}/summary", response_model=ApiResponse)
async def vendor_memo_summary(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    await get_vendor_or_404(db, vendor_id)
    by_status = await db.execute(
        select(VendorCreditMemo.status, func.count(VendorCreditMemo.id),
               func.sum(VendorCreditMemo.amount), func.sum(VendorCreditMemo.applied_amount))
        .where(VendorCreditMemo.vendor_id == vendor_id)
        .group_by(VendorCreditMemo.status)
    )
    by_type = await db.execute(
        select(VendorCreditMemo.memo_type, func.count(VendorCreditMemo.id),
               func.sum(VendorCreditMemo.amount), func.sum(VendorCreditMemo.applied_amount))
        .where(VendorCreditMemo.vendor_id == vendor_id, VendorCreditMemo.status != "voided")
        .group_by(VendorCreditMemo.memo_type)
    )
    return ApiResponse(message="Vendor credit memo summary fetched successfully", data={
        "by_status": group_totals(by_status.all()),
        "by_type": group_totals(by_type.all()),
    })


@router.get("/vendor/{vendor_id}/available", response_model=ApiResponse)
async def available_credits(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    """Approved credit memos with an unapplied balance."""
    await get_vendor_or_404(db, vendor_id)
    result = await db.execute(
        select(VendorCreditMemo)
        .where(
            VendorCreditMemo.vendor_id == vendor_id,
            VendorCreditMemo.memo_type == "credit",
            VendorCreditMemo.status.in_(["approved", "partially_applied"]),
        )
        .order_by(VendorCreditMemo.created_at.asc())
    )
    memos = [m for m in result.scalars().all() if m.can_apply]
    return ApiResponse(data={
        "credits": [build_vendor_credit_memo_response(m) for m in memos],
        "total_available": money_float(sum(m.remaining_amount for m in memos)),
    })


@router.get("/{memo_id}", response_model=ApiResponse[VendorCreditMemoResponse])
async def get_memo(*, db: AsyncSession = Depends(get_db), memo_id: int) -> Any:
    memo = await get_memo_or_404(db, memo_id)
    return ApiResponse(data=build_vendor_credit_memo_response(memo))


@router.put("/{memo_id}", response_model=ApiResponse[VendorCreditMemoResponse])
async def update_memo(
    *,
    db: AsyncSession = Depends(get_db),
    memo_id: int,
    data: VendorCreditMemoUpdate
) -> Any:
    memo = await get_memo_or_404(db, memo_id)
    if not memo.can_edit:
        raise HTTPException(status_code=400, detail=f"Cannot edit credit memo with status: {memo.status}")

    for field, value in data.model_dump(exclude_unset=True).items():
        if field in ("amount", "subtotal") and value is not None:
            value = money(value)
        setattr(memo, field, value)

    await db.commit()
    await db.refresh(memo)
    logger.info(f"Updated memo {memo.memo_number}")
    return ApiResponse(message="Credit memo updated successfully", data=build_vendor_credit_memo_response(memo))


@router.delete("/{memo_id}", response_model=ApiResponse)
async def delete_memo(*, db: AsyncSession = Depends(get_db), memo_id: int) -> Any:
    memo = await get_memo_or_404(db, memo_id)
    if money(memo.applied_amount) > 0:
        raise HTTPException(status_code=400, detail="Cannot delete credit memo that has been applied to payments")
    if memo.status not in ("draft", "pending_approval"):
        raise HTTPException(status_code=400, detail=f"Cannot delete credit memo with status: {memo.status}")

    number = memo.memo_number
    await db.delete(memo)
    await db.commit()
    logger.info(f"Deleted memo {number}")
    return ApiResponse(message="Credit memo deleted successfully")


@router.post("/{memo_id}/submit", response_model=ApiResponse[VendorCreditMemoResponse])
async def submit_memo(*, db: AsyncSession = Depends(get_db), memo_id: int) -> Any:
    memo = await get_memo_or_404(db, memo_id)
    if memo.status != "draft":
        raise HTTPException(status_code=400, detail="Only draft memos can be submitted for approval")
    memo.status = "pending_approval"
    await db.commit()
    await db.refresh(memo)
    return ApiResponse(message="Credit memo submitted for approval", data=build_vendor_credit_memo_response(memo))


@router.post("/{memo_id}/approve", response_model=ApiResponse[VendorCreditMemoResponse])
async def approve_memo(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    memo_id: int,
    data: VendorCreditMemoApprove
) -> Any:
    memo = await get_memo_or_404(db, memo_id)
    if not memo.can_approve:
        raise HTTPException(status_code=400, detail=f"Cannot approve credit memo with status: {memo.status}")

    memo.status = "approved"
    memo.approved_at = datetime.utcnow()
    memo.approved_by_name = actor.name
    memo.approval_notes = data.approval_notes
    await db.commit()
    await db.refresh(memo)
    logger.info(f"Approved memo {memo.memo_number} by {actor.name}")
    return ApiResponse(message="Credit memo approved successfully", data=build_vendor_credit_memo_response(memo))


@router.post("/{memo_id}/void", response_model=ApiResponse[VendorCreditMemoResponse])
async def void_memo(*, db: AsyncSession = Depends(get_db), memo_id: int, data: VendorCreditMemoVoid) -> Any:
    if not data.void_reason.strip():
        raise HTTPException(status_code=400, detail="Void reason is required")
    memo = await get_memo_or_404(db, memo_id)
    if not memo.can_void:
        if money(memo.applied_amount) > 0:
            raise HTTPException(status_code=400, detail="Cannot void credit memo that has been applied to payments")
        raise HTTPException(status_code=400, detail=f"Cannot void credit memo with status: {memo.status}")

    memo.status = "voided"
    memo.voided_at = datetime.utcnow()
    memo.void_reason = data.void_reason
    await db.commit()
    await db.refresh(memo)
    logger.info(f"Voided memo {memo.memo_number}: {data.void_reason}")
    return ApiResponse(message="Credit memo voided successfully", data=build_vendor_credit_memo_response(memo))

"""Vendor dispute API"""

import logging
from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.vendor_credit_memos import ensure_vendor_documents
from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.invoice import Invoice
from produce_app.models.v1.vendor import Vendor
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.models.v1.vendor_dispute import VendorDispute, OPEN_STATUSES
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.vendor_dispute import (
    VendorDisputeCreate, DisputeStatusUpdate, DisputeCommunication, DisputeResolve, DisputeEscalate,
    VendorDisputeResponse, build_vendor_dispute_response, SETTABLE_STATUSES
)
from produce_app.services.money import money, money_float
from produce_app.services.numbering import generate_dispute_number

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_dispute_or_404(db: AsyncSession, dispute_id: int) -> VendorDispute:
    dispute = await db.get(VendorDispute, dispute_id)
    if not dispute:
        raise HTTPException(status_code=404, detail="Dispute not found")
    return dispute


def held_invoice_ids(dispute: VendorDispute) -> List[int]:
    """Invoices a dispute holds: the affected list, else the linked invoice."""
    if dispute.affected_invoice_ids:
        return list(dispute.affected_invoice_ids)
    return [dispute.invoice_id] if dispute.invoice_id else []


async def set_invoice_holds(db: AsyncSession, invoice_ids: List[int], hold_reason: Optional[str]) -> int:
    if not invoice_ids:
        return 0
    result = await db.execute(select(Invoice).where(Invoice.id.in_(invoice_ids)))
    invoices = result.scalars().all()
    for invoice in invoices:
        invoice.on_hold = hold_reason is not None
        invoice.hold_reason = hold_reason
    return len(invoices)


def overdue_condition():
    return and_(
        VendorDispute.due_date.is_not(None),
        VendorDispute.due_date < datetime.utcnow(),
        VendorDispute.status.not_in(["resolved", "closed"]),
    )


@router.get("/", response_model=ApiResponse[Page[VendorDisputeResponse]])
async def list_disputes(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    vendor_id: Optional[int] = Query(None),
    dispute_type: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    priority: Optional[str] = Query(None),
    is_overdue: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    query = select(VendorDispute).join(Vendor, VendorDispute.vendor_id == Vendor.id)
    conditions = []
    if vendor_id:
        conditions.append(VendorDispute.vendor_id == vendor_id)
    if dispute_type and dispute_type != "all":
        conditions.append(VendorDispute.dispute_type == dispute_type)
    if status and status != "all":
        conditions.append(VendorDispute.status == status)
    if priority and priority != "all":
        conditions.append(VendorDispute.priority == priority)
    if is_overdue:
        conditions.append(overdue_condition())
    if start_date:
        conditions.append(VendorDispute.created_at >= start_date)
    if end_date:
        conditions.append(VendorDispute.created_at <= end_date)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            VendorDispute.dispute_number.ilike(pattern),
            VendorDispute.description.ilike(pattern),
            Vendor.name.ilike(pattern),
        ))
    if conditions:
        query = query.where(and_(*conditions))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(VendorDispute.created_at.desc(), VendorDispute.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    disputes = result.scalars().all()
    return ApiResponse(data=page_of([build_vendor_dispute_response(d) for d in disputes], total, page, limit))


@router.post("/", response_model=ApiResponse[VendorDisputeResponse])
async def create_dispute(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    data: VendorDisputeCreate
) -> Any:
    vendor = await get_vendor_or_404(db, data.vendor_id)
    await ensure_vendor_documents(db, vendor.id, data.purchase_order_id, data.invoice_id)

    dispute = VendorDispute(
        vendor=vendor,
        dispute_number=await generate_dispute_number(db),
        purchase_order_id=data.purchase_order_id,
        invoice_id=data.invoice_id,
        dispute_type=data.dispute_type,
        priority=data.priority,
        status="open",
        description=data.description,
        disputed_amount=money(data.disputed_amount),
        put_invoices_on_hold=data.put_invoices_on_hold,
        affected_invoice_ids=data.affected_invoice_ids,
        communications=[],
        due_date=data.due_date,
    )
    dispute.add_communication(f"Dispute created: {data.description}", actor.name, actor.id, is_internal=True)
    db.add(dispute)

    held = 0
    if data.put_invoices_on_hold:
        held = await set_invoice_holds(
            db, held_invoice_ids(dispute), f"Dispute {dispute.dispute_number}: {data.description}"
        )

    await db.commit()
    await db.refresh(dispute)
    logger.info(f"Opened dispute {dispute.dispute_number} against {vendor.name}, {held} invoices on hold")
    return ApiResponse(message="Dispute created successfully", data=build_vendor_dispute_response(dispute))


@router.get("/vendor/{vendor_id}/summary", response_model=ApiResponse)
async def vendor_dispute_summary(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    await get_vendor_or_404(db, vendor_id)
    by_status = await db.execute(
        select(VendorDispute.status, func.count(VendorDispute.id), func.sum(VendorDispute.disputed_amount))
        .where(VendorDispute.vendor_id == vendor_id)
        .group_by(VendorDispute.status)
    )
    by_type = await db.execute(
        select(VendorDispute.dispute_type, func.count(VendorDispute.id), func.sum(VendorDispute.disputed_amount))
        .where(VendorDispute.vendor_id == vendor_id)
        .group_by(VendorDispute.dispute_type)
    )
    overdue = (await db.execute(
        select(func.count(VendorDispute.id)).where(VendorDispute.vendor_id == vendor_id, overdue_condition())
    )).scalar() or 0
    open_count = (await db.execute(
        select(func.count(VendorDispute.id))
        .where(VendorDispute.vendor_id == vendor_id, VendorDispute.status.in_(OPEN_STATUSES))
    )).scalar() or 0

    def rows(result):
        return [{"key": key, "count": count, "total_amount": money_float(amount)} for key, count, amount in result.all()]

    return ApiResponse(message="Vendor dispute summary fetched successfully", data={
        "by_status": rows(by_status),
        "by_type": rows(by_type),
        "open_count": open_count,
        "overdue_count": overdue,
    })


@router.get("/{dispute_id}", response_model=ApiResponse[VendorDisputeResponse])
async def get_dispute(*, db: AsyncSession = Depends(get_db), dispute_id: int) -> Any:
    dispute = await get_dispute_or_404(db, dispute_id)
    return ApiResponse(data=build_vendor_dispute_response(dispute))


@router.put("/{dispute_id}/status", response_model=ApiResponse[VendorDisputeResponse])
async def update_dispute_status(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    dispute_id: int,
    data: DisputeStatusUpdate
) -> Any:
    dispute = await get_dispute_or_404(db, dispute_id)
    if not dispute.can_edit:
        raise HTTPException(status_code=400, detail=f"Cannot update dispute with status: {dispute.status}")
    if data.status not in SETTABLE_STATUSES:
        raise HTTPException(
            status_code=400, detail=f"Invalid status. Must be one of: {', '.join(SETTABLE_STATUSES)}"
        )

    old_status = dispute.status
    dispute.status = data.status
    note = f": {data.notes}" if data.notes else ""
    dispute.add_communication(f"Status changed from {old_status} to {data.status}{note}",
                              actor.name, actor.id, is_internal=True)
    await db.commit()
    await db.refresh(dispute)
    return ApiResponse(message=f"Dispute status updated to {data.status}", data=build_vendor_dispute_response(dispute))


@router.post("/{dispute_id}/communication", response_model=ApiResponse[VendorDisputeResponse])
async def add_communication(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    dispute_id: int,
    data: DisputeCommunication
) -> Any:
    if not data.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    dispute = await get_dispute_or_404(db, dispute_id)
    dispute.add_communication(data.message, actor.name, actor.id,
                              is_internal=data.is_internal, attachments=data.attachments)
    await db.commit()
    await db.refresh(dispute)
    return ApiResponse(message="Communication added successfully", data=build_vendor_dispute_response(dispute))


@router.put("/{dispute_id}/resolve", response_model=ApiResponse[VendorDisputeResponse])
async def resolve_dispute(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    dispute_id: int,
    data: DisputeResolve
) -> Any:
    if not data.resolution_notes.strip() or not data.resolution_type:
        raise HTTPException(status_code=400, detail="Resolution notes and type are required")
    dispute = await get_dispute_or_404(db, dispute_id)
    if not dispute.can_resolve:
        raise HTTPException(status_code=400, detail=f"Cannot resolve dispute with status: {dispute.status}")
    if data.credit_memo_id and not await db.get(VendorCreditMemo, data.credit_memo_id):
        raise HTTPException(status_code=400, detail="Credit memo not found")

    dispute.status = "resolved"
    dispute.resolution_type = data.resolution_type
    dispute.resolution_notes = data.resolution_notes
    dispute.resolution_amount = money(data.resolution_amount) if data.resolution_amount is not None else None
    dispute.credit_memo_id = data.credit_memo_id
    dispute.resolved_at = datetime.utcnow()
    dispute.resolved_by_name = actor.name
    dispute.add_communication(f"Dispute resolved: {data.resolution_notes} (Type: {data.resolution_type})",
                              actor.name, actor.id, is_internal=True)

    released = 0
    if data.release_invoice_holds:
        released = await set_invoice_holds(db, held_invoice_ids(dispute), None)

    await db.commit()
    await db.refresh(dispute)
    logger.info(f"Resolved dispute {dispute.dispute_number} ({data.resolution_type}), released {released} holds")
    return ApiResponse(message="Dispute resolved successfully", data=build_vendor_dispute_response(dispute))


@router.put("/{dispute_id}/escalate", response_model=ApiResponse[VendorDisputeResponse])
async def escalate_dispute(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    dispute_id: int,
    data: DisputeEscalate
) -> Any:
    if not data.escalation_reason.strip():
        raise HTTPException(status_code=400, detail="Escalation reason is required")
    dispute = await get_dispute_or_404(db, dispute_id)
    if not dispute.can_escalate:
        raise HTTPException(status_code=400, detail=f"Cannot escalate dispute with status: {dispute.status}")

    dispute.status = "escalated"
    dispute.escalated_to = data.escalated_to
    dispute.escalated_at = datetime.utcnow()
    dispute.escalation_reason = data.escalation_reason
    dispute.add_communication(f"Dispute escalated: {data.escalation_reason}", actor.name, actor.id, is_internal=True)
    await db.commit()
    await db.refresh(dispute)
    logger.warning(f"Dispute {dispute.dispute_number} escalated to {data.escalated_to}: {data.escalation_reason}")
    return ApiResponse(message="Dispute escalated successfully", data=build_vendor_dispute_response(dispute))

"""Vendor payment API: paying invoices, check clearance and voids"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import get_db
from produce_app.models.v1.invoice import Invoice
from produce_app.models.v1.vendor import Vendor
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.models.v1.vendor_payment import VendorPayment, VendorPaymentAllocation
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.vendor_payment import (
    VendorPaymentCreate, CheckStatusUpdate, VendorPaymentVoid, DiscountPreviewRequest,
    VendorPaymentResponse, build_vendor_payment_response
)
from produce_app.services.money import money, money_float
from produce_app.services.numbering import generate_payment_number
from produce_app.services.payables import apply_invoice_payment, early_payment_discount, reverse_payment

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_payment_or_404(db: AsyncSession, payment_id: int) -> VendorPayment:
    payment = await db.get(VendorPayment, payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


async def load_payment_documents(db: AsyncSession, payment: VendorPayment):
    invoice_ids = [a.invoice_id for a in payment.allocations]
    memo_ids = [c["credit_memo_id"] for c in payment.applied_credits or []]
    invoices: Dict[int, Invoice] = {}
    memos: Dict[int, VendorCreditMemo] = {}
    if invoice_ids:
        result = await db.execute(select(Invoice).where(Invoice.id.in_(invoice_ids)))
        invoices = {i.id: i for i in result.scalars().all()}
    if memo_ids:
        result = await db.execute(select(VendorCreditMemo).where(VendorCreditMemo.id.in_(memo_ids)))
        memos = {m.id: m for m in result.scalars().all()}
    return invoices, memos


@router.get("/", response_model=ApiResponse[Page[VendorPaymentResponse]])
async def list_payments(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    vendor_id: Optional[int] = Query(None),
    payment_method: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    check_clearance_status: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    search: Optional[str] = Query(None)
) -> Any:
    query = select(VendorPayment).join(Vendor, VendorPayment.vendor_id == Vendor.id)
    conditions = []
    if vendor_id:
        conditions.append(VendorPayment.vendor_id == vendor_id)
    if payment_method and payment_method != "all":
        conditions.append(VendorPayment.payment_method == payment_method)
    if status and status != "all":
        conditions.append(VendorPayment.status == status)
    if check_clearance_status and check_clearance_status != "all":
        conditions.append(VendorPayment.check_clearance_status == check_clearance_status)
    if start_date:
        conditions.append(VendorPayment.payment_date >= start_date)
    if end_date:
        conditions.append(VendorPayment.payment_date <= end_date)
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            VendorPayment.payment_number.ilike(pattern),
            VendorPayment.check_number.ilike(pattern),
            VendorPayment.reference.ilike(pattern),
            Vendor.name.ilike(pattern),
        ))
    if conditions:
        query = query.where(and_(*conditions))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(VendorPayment.payment_date.desc(), VendorPayment.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    payments = result.scalars().all()
    return ApiResponse(data=page_of([build_vendor_payment_response(p) for p in payments], total, page, limit))


@router.post("/", response_model=ApiResponse[VendorPaymentResponse])
async def create_payment(*, db: AsyncSession = Depends(get_db), data: VendorPaymentCreate) -> Any:
    """
    Pay one or more invoices of a vendor.

    net = gross - applied credits - early payment discount. Invoices and
    credit memos are updated in the same commit as the payment.
    """
    vendor = await get_vendor_or_404(db, data.vendor_id)
    if not data.invoice_payments:
        raise HTTPException(status_code=400, detail="At least one invoice payment is required")

    invoice_ids = [line.invoice_id for line in data.invoice_payments]
    result = await db.execute(
        select(Invoice).where(Invoice.id.in_(invoice_ids), Invoice.vendor_id == vendor.id)
    )
    invoices = {i.id: i for i in result.scalars().all()}
    if len(invoices) != len(set(invoice_ids)):
        raise HTTPException(status_code=400, detail="One or more invoices not found or do not belong to this vendor")

    gross = Decimal("0")
    allocations: List[VendorPaymentAllocation] = []
    # Several lines may pay the same invoice
    paid: Dict[int, Decimal] = {}
    for line in data.invoice_payments:
        invoice = invoices[line.invoice_id]
        amount = money(line.amount)
        remaining = money(invoice.amount_remaining) - paid.get(invoice.id, Decimal("0"))
        if invoice.status == "cancelled":
            raise HTTPException(status_code=400, detail=f"Invoice {invoice.invoice_number} is cancelled")
        if amount > remaining:
            raise HTTPException(
                status_code=400,
                detail=f"Payment amount (${amount}) exceeds remaining balance (${remaining}) "
                       f"for invoice {invoice.invoice_number}"
            )
        gross += amount
        paid[invoice.id] = paid.get(invoice.id, Decimal("0")) + amount
        allocations.append(VendorPaymentAllocation(
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            amount=amount,
            remaining_after_payment=remaining - amount,
        ))

    payment_date = data.payment_date or datetime.utcnow()
    discount = Decimal("0")
    if data.apply_early_payment_discount:
        discount = money(early_payment_discount(vendor, invoices.values(), payment_date)["discount_amount"])

    credits_total = Decimal("0")
    applied_credits = []
    memos: Dict[int, VendorCreditMemo] = {}
    used: Dict[int, Decimal] = {}
    for credit in data.applied_credits:
        memo = await db.get(VendorCreditMemo, credit.credit_memo_id)
        if not memo or memo.vendor_id != vendor.id:
            raise HTTPException(status_code=400, detail=f"Credit memo {credit.credit_memo_id} not found")
        if not memo.can_apply:
            raise HTTPException(
                status_code=400,
                detail=f"Credit memo {memo.memo_number} cannot be applied "
                       f"(status: {memo.status}, remaining: ${memo.remaining_amount})"
            )
        amount = money(credit.amount)
        available = money(memo.remaining_amount) - used.get(memo.id, Decimal("0"))
        if amount > available:
            raise HTTPException(
                status_code=400,
                detail=f"Credit amount (${amount}) exceeds remaining credit (${available}) "
                       f"for memo {memo.memo_number}"
            )
        credits_total += amount
        used[memo.id] = used.get(memo.id, Decimal("0")) + amount
        memos[memo.id] = memo
        applied_credits.append({"credit_memo_id": memo.id, "memo_number": memo.memo_number, "amount": float(amount)})

    net = gross - credits_total - discount
    if net < 0:
        raise HTTPException(status_code=400, detail="Net payment amount cannot be negative")

    is_check = data.payment_method == "check"
    payment = VendorPayment(
        vendor=vendor,
        allocations=allocations,
        payment_number=await generate_payment_number(db),
        payment_date=payment_date,
        payment_method=data.payment_method,
        check_number=data.check_number if is_check else None,
        check_clearance_status="pending" if is_check else None,
        reference=data.reference,
        gross_amount=gross,
        credit_applied=credits_total,
        discount_amount=discount,
        net_amount=net,
        applied_credits=applied_credits,
        status="completed",
        notes=data.notes,
    )
    db.add(payment)
    # The payment id is recorded on each credit memo application
    await db.flush()

    for allocation in allocations:
        apply_invoice_payment(invoices[allocation.invoice_id], money(allocation.amount))
    for credit in applied_credits:
        memos[credit["credit_memo_id"]].apply_to_payment(payment.id, money(credit["amount"]))

    await db.commit()
    await db.refresh(payment)
    logger.info(f"Recorded vendor payment {payment.payment_number} to {vendor.name}: "
                f"gross {gross}, credits {credits_total}, discount {discount}, net {net}")
    return ApiResponse(message="Payment recorded successfully", data=build_vendor_payment_response(payment))


@router.post("/discount-preview", response_model=ApiResponse)
async def discount_preview(*, db: AsyncSession = Depends(get_db), data: DiscountPreviewRequest) -> Any:
    vendor = await get_vendor_or_404(db, data.vendor_id)
    invoices = []
    if data.invoice_ids:
        result = await db.execute(
            select(Invoice).where(Invoice.id.in_(data.invoice_ids), Invoice.vendor_id == vendor.id)
        )
        invoices = result.scalars().all()

    preview = early_payment_discount(vendor, invoices, data.payment_date or datetime.utcnow())
    return ApiResponse(message="Discount preview calculated", data={
        "has_discount": vendor.has_early_discount,
        "discount_terms": {
            "percentage": vendor.early_discount_percentage,
            "within_days": vendor.early_discount_within_days,
        } if vendor.has_early_discount else None,
        **preview,
    })


@router.get("/vendor/{vendor_id}/summary", response_model=ApiResponse)
async def vendor_payment_summary(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    await get_vendor_or_404(db, vendor_id)
    count, gross, credits, discounts, net = (await db.execute(
        select(
            func.count(VendorPayment.id),
            func.sum(VendorPayment.gross_amount),
            func.sum(VendorPayment.credit_applied),
            func.sum(VendorPayment.discount_amount),
            func.sum(VendorPayment.net_amount),
        )
        .where(VendorPayment.vendor_id == vendor_id, VendorPayment.status != "voided")
    )).one()
    pending_count, pending_amount = (await db.execute(
        select(func.count(VendorPayment.id), func.sum(VendorPayment.net_amount))
        .where(
            VendorPayment.vendor_id == vendor_id,
            VendorPayment.payment_method == "check",
            VendorPayment.check_clearance_status == "pending",
            VendorPayment.status != "voided",
        )
    )).one()
    return ApiResponse(message="Vendor payment summary fetched successfully", data={
        "totals": {
            "total_payments": count or 0,
            "total_gross_amount": money_float(gross),
            "total_credits_applied": money_float(credits),
            "total_discounts": money_float(discounts),
            "total_net_amount": money_float(net),
        },
        "pending_checks": {"count": pending_count or 0, "total_amount": money_float(pending_amount)},
    })


@router.get("/{payment_id}", response_model=ApiResponse[VendorPaymentResponse])
async def get_payment(*, db: AsyncSession = Depends(get_db), payment_id: int) -> Any:
    payment = await get_payment_or_404(db, payment_id)
    return ApiResponse(data=build_vendor_payment_response(payment))


@router.put("/{payment_id}/check-status", response_model=ApiResponse[VendorPaymentResponse])
async def update_check_status(
    *,
    db: AsyncSession = Depends(get_db),
    payment_id: int,
    data: CheckStatusUpdate
) -> Any:
    payment = await get_payment_or_404(db, payment_id)
    if payment.payment_method != "check":
        raise HTTPException(status_code=400, detail="Can only update check status for check payments")
    if data.status == "bounced" and not data.reason:
        raise HTTPException(status_code=400, detail="Reason is required when marking check as bounced")
    if payment.status in ("voided", "failed"):
        raise HTTPException(status_code=400, detail=f"Cannot update check status of a {payment.status} payment")

    payment.check_clearance_status = data.status
    if data.status == "cleared":
        payment.check_cleared_at = datetime.utcnow()
    elif data.status == "bounced":
        payment.bounce_reason = data.reason
        payment.status = "failed"
        invoices, memos = await load_payment_documents(db, payment)
        reverse_payment(payment, invoices, memos)
        logger.warning(f"Check {payment.check_number} on {payment.payment_number} bounced: {data.reason}")

    await db.commit()
    await db.refresh(payment)
    return ApiResponse(message=f"Check status updated to {data.status}", data=build_vendor_payment_response(payment))


@router.post("/{payment_id}/void", response_model=ApiResponse[VendorPaymentResponse])
async def void_payment(*, db: AsyncSession = Depends(get_db), payment_id: int, data: VendorPaymentVoid) -> Any:
    if not data.void_reason.strip():
        raise HTTPException(status_code=400, detail="Void reason is required")
    payment = await get_payment_or_404(db, payment_id)
    if not payment.can_void:
        raise HTTPException(status_code=400, detail="This payment cannot be voided (check may have already cleared)")

    invoices, memos = await load_payment_documents(db, payment)
    reverse_payment(payment, invoices, memos)
    payment.status = "voided"
    payment.voided_at = datetime.utcnow()
    payment.void_reason = data.void_reason

    await db.commit()
    await db.refresh(payment)
    logger.info(f"Voided vendor payment {payment.payment_number}: {data.void_reason}")
    return ApiResponse(message="Payment voided successfully", data=build_vendor_payment_response(payment))

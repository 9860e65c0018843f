"""Payables reports: aging, vendor statement, vendor scorecard and dashboard"""

import logging
from datetime import datetime
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import get_db
from produce_app.models.v1.adjustment import Adjustment
from produce_app.models.v1.invoice import Invoice
from produce_app.models.v1.order import Order
from produce_app.models.v1.purchase_order import PurchaseOrder
from produce_app.models.v1.vendor import Vendor
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.models.v1.vendor_dispute import VendorDispute, OPEN_STATUSES
from produce_app.models.v1.vendor_payment import VendorPayment
from produce_app.schemas.v1.common import ApiResponse
from produce_app.services.aging import build_aging_report
from produce_app.services.money import money, money_float
from produce_app.services.statements import build_statement

logger = logging.getLogger(__name__)

router = APIRouter()


def rate(part: float, whole: float) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


@router.get("/aging", response_model=ApiResponse)
async def aging_report(
    *,
    db: AsyncSession = Depends(get_db),
    vendor_id: Optional[int] = Query(None),
    min_amount: Optional[float] = Query(None, ge=0),
    as_of_date: Optional[datetime] = Query(None)
) -> Any:
    """Open vendor invoices bucketed by days past due."""
    conditions = [Invoice.status.not_in(["paid", "cancelled"]), Invoice.amount_remaining > 0]
    if vendor_id:
        conditions.append(Invoice.vendor_id == vendor_id)
    if min_amount:
        conditions.append(Invoice.amount_remaining >= min_amount)

    result = await db.execute(
        select(Invoice, Vendor.name)
        .join(Vendor, Invoice.vendor_id == Vendor.id)
        .where(and_(*conditions))
        .order_by(Invoice.due_date.asc())
    )
    invoices = [{
        "id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "vendor_id": invoice.vendor_id,
        "vendor_name": vendor_name,
        "invoice_date": invoice.invoice_date,
        "due_date": invoice.due_date,
        "total_amount": money_float(invoice.total_amount),
        "amount_remaining": money_float(invoice.amount_remaining),
    } for invoice, vendor_name in result.all()]

    report = build_aging_report(invoices, as_of_date or datetime.utcnow())
    return ApiResponse(message="Aging report generated successfully", data=report)


@router.get("/vendor/{vendor_id}/statement", response_model=ApiResponse)
async def vendor_statement(
    *,
    db: AsyncSession = Depends(get_db),
    vendor_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    vendor = await get_vendor_or_404(db, vendor_id)

    def in_range(column):
        conditions = []
        if start_date:
            conditions.append(column >= start_date)
        if end_date:
            conditions.append(column <= end_date)
        return conditions

    invoices = (await db.execute(
        select(Invoice).where(Invoice.vendor_id == vendor_id, *in_range(Invoice.invoice_date))
        .order_by(Invoice.invoice_date.asc())
    )).scalars().all()
    payments = (await db.execute(
        select(VendorPayment)
        .where(VendorPayment.vendor_id == vendor_id, VendorPayment.status != "voided",
               *in_range(VendorPayment.payment_date))
        .order_by(VendorPayment.payment_date.asc())
    )).scalars().all()
    memos = (await db.execute(
        select(VendorCreditMemo)
        .where(VendorCreditMemo.vendor_id == vendor_id, VendorCreditMemo.status.not_in(["voided", "draft"]),
               *in_range(VendorCreditMemo.created_at))
        .order_by(VendorCreditMemo.created_at.asc())
    )).scalars().all()

    statement = build_statement(list(invoices), list(payments), list(memos))
    return ApiResponse(message="Vendor statement generated successfully", data={
        "vendor": {
            "id": vendor.id,
            "name": vendor.name,
            "email": vendor.email,
            "phone": vendor.phone,
            "payment_terms": vendor.payment_terms,
        },
        "date_range": {
            "start_date": start_date or "All time",
            "end_date": end_date or "Present",
        },
        **statement,
    })


@router.get("/vendor/{vendor_id}/performance", response_model=ApiResponse)
async def vendor_scorecard(
    *,
    db: AsyncSession = Depends(get_db),
    vendor_id: int,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    """
    Quality acceptance and fill rate from purchase order items, checked
    against the vendor's thresholds, plus the average days taken to pay.
    """
    vendor = await get_vendor_or_404(db, vendor_id)
    query = select(PurchaseOrder).where(PurchaseOrder.vendor_id == vendor_id)
    if start_date:
        query = query.where(PurchaseOrder.purchase_date >= start_date)
    if end_date:
        query = query.where(PurchaseOrder.purchase_date <= end_date)
    purchase_orders = (await db.execute(query)).scalars().all()

    ordered = approved = rejected = 0.0
    for po in purchase_orders:
        for item in po.items:
            ordered += item.quantity or 0
            if item.quality_status == "approved":
                approved += item.quantity or 0
            elif item.quality_status == "rejected":
                rejected += item.quantity or 0
    inspected = approved + rejected

    payments = (await db.execute(
        select(VendorPayment).where(VendorPayment.vendor_id == vendor_id, VendorPayment.status != "voided")
    )).scalars().all()
    invoice_ids = {a.invoice_id for p in payments for a in p.allocations}
    invoice_dates = {}
    if invoice_ids:
        rows = await db.execute(select(Invoice.id, Invoice.invoice_date).where(Invoice.id.in_(invoice_ids)))
        invoice_dates = dict(rows.all())
    payment_days = [
        (p.payment_date - invoice_dates[a.invoice_id]).days
        for p in payments for a in p.allocations if invoice_dates.get(a.invoice_id)
    ]

    totals = (await db.execute(
        select(func.sum(Invoice.total_amount), func.sum(Invoice.amount_paid), func.sum(Invoice.amount_remaining))
        .where(Invoice.vendor_id == vendor_id)
    )).one()

    quality_rate = rate(approved, inspected)
    fill_rate = rate(approved, ordered)
    violations = {
        "quality_acceptance": inspected > 0 and quality_rate < (vendor.min_quality_score or 0),
        "fill_rate": ordered > 0 and fill_rate < (vendor.min_fill_rate or 0),
    }
    return ApiResponse(message="Vendor performance scorecard generated successfully", data={
        "vendor": {"id": vendor.id, "name": vendor.name, "status": vendor.status},
        "metrics": {
            "quality_acceptance_rate": quality_rate,
            "fill_rate": fill_rate,
            "average_payment_days": round(sum(payment_days) / len(payment_days)) if payment_days else 0,
        },
        "details": {
            "total_purchase_orders": len(purchase_orders),
            "total_ordered": ordered,
            "total_approved": approved,
            "total_rejected": rejected,
        },
        "financials": {
            "total_purchases": money_float(totals[0]),
            "total_paid": money_float(totals[1]),
            "outstanding_balance": money_float(totals[2]),
        },
        "thresholds": {
            "min_quality_score": vendor.min_quality_score,
            "min_fill_rate": vendor.min_fill_rate,
            "min_on_time_rate": vendor.min_on_time_rate,
        },
        "is_below_threshold": any(violations.values()),
        "threshold_violations": violations,
    })


@router.get("/dashboard", response_model=ApiResponse)
async def payables_dashboard(*, db: AsyncSession = Depends(get_db)) -> Any:
    now = datetime.utcnow()

    invoice_count, invoiced, paid, outstanding = (await db.execute(
        select(func.count(Invoice.id), func.sum(Invoice.total_amount),
               func.sum(Invoice.amount_paid), func.sum(Invoice.amount_remaining))
        .where(Invoice.status != "cancelled")
    )).one()
    overdue_count, overdue_amount = (await db.execute(
        select(func.count(Invoice.id), func.sum(Invoice.amount_remaining))
        .where(Invoice.due_date < now, Invoice.status.not_in(["paid", "cancelled"]), Invoice.amount_remaining > 0)
    )).one()
    open_disputes = (await db.execute(
        select(func.count(VendorDispute.id)).where(VendorDispute.status.in_(OPEN_STATUSES))
    )).scalar() or 0
    pending_checks, pending_check_amount = (await db.execute(
        select(func.count(VendorPayment.id), func.sum(VendorPayment.net_amount))
        .where(VendorPayment.payment_method == "check", VendorPayment.check_clearance_status == "pending",
               VendorPayment.status != "voided")
    )).one()
    unapplied_credits = (await db.execute(
        select(func.sum(VendorCreditMemo.amount - VendorCreditMemo.applied_amount))
        .where(VendorCreditMemo.memo_type == "credit",
               VendorCreditMemo.status.in_(["approved", "partially_applied"]))
    )).scalar()

    po_count, po_total, po_paid, po_credit = (await db.execute(
        select(func.count(PurchaseOrder.id), func.sum(PurchaseOrder.total_amount),
               func.sum(PurchaseOrder.payment_amount), func.sum(PurchaseOrder.total_credit_applied))
        .where(PurchaseOrder.status != "cancelled")
    )).one()
    po_settled = money(po_paid) + money(po_credit)

    live_orders = Order.is_delete.is_not(True)
    receivable_count, receivable = (await db.execute(
        select(func.count(Order.id), func.sum(Order.total - Order.payment_amount - Order.credit_applied))
        .where(live_orders, Order.payment_status != "paid")
    )).one()
    pending_adjustments, pending_adjustment_amount = (await db.execute(
        select(func.count(Adjustment.id), func.sum(Adjustment.amount)).where(Adjustment.status == "pending")
    )).one()

    vendor_rows = (await db.execute(select(Vendor.status, func.count(Vendor.id)).group_by(Vendor.status))).all()

    return ApiResponse(message="Dashboard summary generated successfully", data={
        "vendors": {
            "by_status": {status: count for status, count in vendor_rows},
            "total": sum(count for _, count in vendor_rows),
        },
        "payables": {
            "invoice_count": invoice_count or 0,
            "total_invoiced": money_float(invoiced),
            "total_paid": money_float(paid),
            "total_outstanding": money_float(outstanding),
            "overdue": {"count": overdue_count or 0, "total_amount": money_float(overdue_amount)},
            "open_disputes": open_disputes,
            "pending_checks": {"count": pending_checks or 0, "total_amount": money_float(pending_check_amount)},
            "unapplied_credits": money_float(unapplied_credits),
        },
        "purchases": {
            "total_orders": po_count or 0,
            "total_amount": money_float(po_total),
            "total_paid": money_float(po_settled),
            "pending_payment": money_float(max(money(0), money(po_total) - po_settled)),
        },
        "receivables": {
            "open_orders": receivable_count or 0,
            "outstanding": money_float(receivable),
        },
        "adjustments": {
            "pending_count": pending_adjustments or 0,
            "pending_amount": money_float(pending_adjustment_amount),
        },
    })

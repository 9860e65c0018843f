"""Vendor invoice API: accounts payable and three-way matching"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import get_db
from produce_app.models.v1.invoice import Invoice
from produce_app.models.v1.purchase_order import PurchaseOrder
from produce_app.models.v1.vendor import Vendor
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.invoice import (
    InvoiceCreate, InvoiceUpdate, InvoiceApprove, InvoiceDispute, InvoiceMatchRequest,
    InvoiceResponse, build_invoice_response
)
from produce_app.services.money import money, money_float
from produce_app.services.numbering import generate_invoice_number
from produce_app.services.three_way_matching import get_matching_status_text, perform_three_way_match

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSED_STATUSES = ("paid", "cancelled")


async def get_invoice_or_404(db: AsyncSession, invoice_id: int) -> Invoice:
    invoice = await db.get(Invoice, invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


async def load_vendor_purchase_orders(db: AsyncSession, vendor_id: int, ids: List[int]) -> List[PurchaseOrder]:
    if not ids:
        return []
    result = await db.execute(
        select(PurchaseOrder).where(PurchaseOrder.id.in_(ids), PurchaseOrder.vendor_id == vendor_id)
    )
    purchase_orders = result.scalars().all()
    if len(purchase_orders) != len(set(ids)):
        raise HTTPException(
            status_code=400,
            detail="One or more purchase orders not found or do not belong to this vendor"
        )
    return list(purchase_orders)


def line_items_payload(line_items) -> List[Dict[str, Any]]:
    rows = []
    for line in line_items:
        row = line.model_dump()
        if row.get("total") is None:
            row["total"] = money_float(money(row["quantity"]) * money(row["unit_price"]))
        rows.append(row)
    return rows


def apply_totals(invoice: Invoice, subtotal: Optional[float], total_amount: Optional[float]) -> None:
    """Fill subtotal from the lines and total from the parts when not given."""
    if subtotal is None:
        subtotal = sum((money(line.get("total")) for line in invoice.line_items or []), Decimal("0"))
    invoice.subtotal = money(subtotal)
    if total_amount is None:
        total_amount = (
            money(invoice.subtotal) + money(invoice.tax_amount)
            + money(invoice.shipping_amount) - money(invoice.discount_amount)
        )
    invoice.total_amount = money(total_amount)


def purchase_order_payload(purchase_order: PurchaseOrder) -> Dict[str, Any]:
    return {
        "id": purchase_order.id,
        "purchase_order_number": purchase_order.purchase_order_number,
        "total_amount": money_float(purchase_order.total_amount),
        "status": purchase_order.status,
        "items": [{
            "product_id": item.product_id,
            "product_name": item.product_name,
            "quantity": item.quantity,
            "unit_price": money_float(item.unit_price),
            "total_price": money_float(item.total_price),
            "quality_status": item.quality_status,
        } for item in purchase_order.items],
    }


@router.get("/", response_model=ApiResponse[Page[InvoiceResponse]])
async def list_invoices(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    vendor_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    overdue: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    query = select(Invoice).join(Vendor, Invoice.vendor_id == Vendor.id)
    conditions = []
    if vendor_id:
        conditions.append(Invoice.vendor_id == vendor_id)
    if status:
        conditions.append(Invoice.status == status)
    if overdue:
        conditions.append(Invoice.due_date < datetime.utcnow())
        conditions.append(Invoice.status.not_in(CLOSED_STATUSES))
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            Invoice.invoice_number.ilike(pattern),
            Invoice.vendor_invoice_number.ilike(pattern),
            Vendor.name.ilike(pattern),
        ))
    if start_date:
        conditions.append(Invoice.invoice_date >= start_date)
    if end_date:
        conditions.append(Invoice.invoice_date <= end_date)
    if conditions:
        query = query.where(and_(*conditions))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    invoices = result.scalars().all()
    return ApiResponse(data=page_of([build_invoice_response(i) for i in invoices], total, page, limit))


@router.post("/", response_model=ApiResponse[InvoiceResponse])
async def create_invoice(*, db: AsyncSession = Depends(get_db), data: InvoiceCreate) -> Any:
    vendor = await get_vendor_or_404(db, data.vendor_id)
    purchase_orders = await load_vendor_purchase_orders(db, vendor.id, data.purchase_order_ids)

    invoice_date = data.invoice_date or datetime.utcnow()
    invoice = Invoice(
        vendor=vendor,
        purchase_orders=purchase_orders,
        invoice_number=await generate_invoice_number(db),
        vendor_invoice_number=data.vendor_invoice_number,
        invoice_date=invoice_date,
        due_date=data.due_date or invoice_date + timedelta(days=vendor.due_days),
        line_items=line_items_payload(data.line_items),
        tax_amount=money(data.tax_amount),
        shipping_amount=money(data.shipping_amount),
        discount_amount=money(data.discount_amount),
        amount_paid=Decimal("0.00"),
        status="pending",
        on_hold=False,
        notes=data.notes,
    )
    apply_totals(invoice, data.subtotal, data.total_amount)
    invoice.refresh_payment_status()

    db.add(invoice)
    await db.commit()
    await db.refresh(invoice)
    logger.info(f"Created invoice {invoice.invoice_number} for {vendor.name}: ${invoice.total_amount}")
    return ApiResponse(message="Invoice created successfully", data=build_invoice_response(invoice))


@router.get("/vendor/{vendor_id}/summary", response_model=ApiResponse)
async def vendor_invoice_summary(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    vendor = await get_vendor_or_404(db, vendor_id)
    result = await db.execute(
        select(
            Invoice.status,
            func.count(Invoice.id),
            func.sum(Invoice.total_amount),
            func.sum(Invoice.amount_paid),
            func.sum(Invoice.amount_remaining),
        )
        .where(Invoice.vendor_id == vendor_id)
        .group_by(Invoice.status)
    )
    by_status = [{
        "status": status,
        "count": count,
        "total_amount": money_float(total),
        "amount_paid": money_float(paid),
        "amount_remaining": money_float(remaining),
    } for status, count, total, paid, remaining in result.all()]

    overdue_count, overdue_amount = (await db.execute(
        select(func.count(Invoice.id), func.sum(Invoice.amount_remaining))
        .where(
            Invoice.vendor_id == vendor_id,
            Invoice.due_date < datetime.utcnow(),
            Invoice.status.not_in(CLOSED_STATUSES),
        )
    )).one()

    open_rows = [row for row in by_status if row["status"] not in CLOSED_STATUSES]
    return ApiResponse(message="Vendor invoice summary fetched successfully", data={
        "vendor_id": vendor.id,
        "vendor_name": vendor.name,
        "by_status": by_status,
        "total_invoiced": round(sum(row["total_amount"] for row in by_status if row["status"] != "cancelled"), 2),
        "total_outstanding": round(sum(row["amount_remaining"] for row in open_rows), 2),
        "overdue": {"count": overdue_count or 0, "total_amount": money_float(overdue_amount)},
    })


@router.get("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def get_invoice(*, db: AsyncSession = Depends(get_db), invoice_id: int) -> Any:
    invoice = await get_invoice_or_404(db, invoice_id)
    return ApiResponse(data=build_invoice_response(invoice))


@router.put("/{invoice_id}", response_model=ApiResponse[InvoiceResponse])
async def update_invoice(*, db: AsyncSession = Depends(get_db), invoice_id: int, data: InvoiceUpdate) -> Any:
    invoice = await get_invoice_or_404(db, invoice_id)
    if invoice.status in CLOSED_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot update invoice with status: {invoice.status}")

    values = data.model_dump(exclude_unset=True)
    if data.purchase_order_ids is not None:
        invoice.purchase_orders = await load_vendor_purchase_orders(db, invoice.vendor_id, data.purchase_order_ids)
    if data.line_items is not None:
        invoice.line_items = line_items_payload(data.line_items)
    for field in ("vendor_invoice_number", "invoice_date", "due_date", "notes"):
        if field in values:
            setattr(invoice, field, values[field])
    for field in ("tax_amount", "shipping_amount", "discount_amount"):
        if values.get(field) is not None:
            setattr(invoice, field, money(values[field]))

    amounts_changed = any(
        f in values for f in ("line_items", "subtotal", "tax_amount", "shipping_amount", "discount_amount", "total_amount")
    )
    if amounts_changed:
        apply_totals(invoice, values.get("subtotal"), values.get("total_amount"))
    invoice.refresh_payment_status()

    await db.commit()
    await db.refresh(invoice)
    logger.info(f"Updated invoice {invoice.invoice_number}")
    return ApiResponse(message="Invoice updated successfully", data=build_invoice_response(invoice))


@router.delete("/{invoice_id}", response_model=ApiResponse)
async def delete_invoice(*, db: AsyncSession = Depends(get_db), invoice_id: int) -> Any:
    invoice = await get_invoice_or_404(db, invoice_id)
    if money(invoice.amount_paid) > 0:
        raise HTTPException(status_code=400, detail="Cannot delete invoice with recorded payments")
    number = invoice.invoice_number
    invoice.purchase_orders = []
    await db.delete(invoice)
    await db.commit()
    logger.info(f"Deleted invoice {number}")
    return ApiResponse(message="Invoice deleted successfully")


@router.post("/{invoice_id}/approve", response_model=ApiResponse[InvoiceResponse])
async def approve_invoice(*, db: AsyncSession = Depends(get_db), invoice_id: int, data: InvoiceApprove) -> Any:
    invoice = await get_invoice_or_404(db, invoice_id)
    if invoice.status == "paid":
        raise HTTPException(status_code=400, detail="Invoice is already paid")
    if invoice.status == "cancelled":
        raise HTTPException(status_code=400, detail="Cannot approve cancelled invoice")

    invoice.status = "approved"
    invoice.approved_at = datetime.utcnow()
    invoice.approval_notes = data.approval_notes
    invoice.on_hold = False
    invoice.hold_reason = None
    invoice.refresh_payment_status()

    await db.commit()
    await db.refresh(invoice)
    logger.info(f"Approved invoice {invoice.invoice_number}")
    return ApiResponse(message="Invoice approved successfully", data=build_invoice_response(invoice))


@router.post("/{invoice_id}/dispute", response_model=ApiResponse[InvoiceResponse])
async def dispute_invoice(*, db: AsyncSession = Depends(get_db), invoice_id: int, data: InvoiceDispute) -> Any:
    if not data.dispute_reason.strip():
        raise HTTPException(status_code=400, detail="Dispute reason is required")
    invoice = await get_invoice_or_404(db, invoice_id)
    if invoice.status in CLOSED_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot dispute invoice with status: {invoice.status}")

    invoice.status = "disputed"
    invoice.dispute_reason = data.dispute_reason
    if data.put_on_hold:
        invoice.on_hold = True
        invoice.hold_reason = data.dispute_reason

    await db.commit()
    await db.refresh(invoice)
    logger.warning(f"Invoice {invoice.invoice_number} disputed: {data.dispute_reason}")
    return ApiResponse(message="Invoice marked as disputed", data=build_invoice_response(invoice))


@router.post("/{invoice_id}/match", response_model=ApiResponse)
async def match_invoice(
    *,
    db: AsyncSession = Depends(get_db),
    invoice_id: int,
    data: Optional[InvoiceMatchRequest] = None
) -> Any:
    invoice = await get_invoice_or_404(db, invoice_id)
    if not invoice.purchase_orders:
        raise HTTPException(status_code=400, detail="Invoice has no linked purchase orders to match against")
    if invoice.status in CLOSED_STATUSES:
        raise HTTPException(status_code=400, detail=f"Cannot perform matching on invoice with status: {invoice.status}")

    data = data or InvoiceMatchRequest()
    outcome = perform_three_way_match(
        {"total_amount": money_float(invoice.total_amount), "line_items": invoice.line_items or []},
        [purchase_order_payload(po) for po in invoice.purchase_orders],
        price_tolerance=data.price_tolerance,
        quantity_tolerance=data.quantity_tolerance,
        approval_threshold=data.approval_threshold,
    )
    results = outcome["matching_results"]
    status_text = get_matching_status_text(results)

    invoice.matching_details = {**results, "approval_required": outcome["approval_required"]}
    invoice.matching_status = status_text
    invoice.matched_at = datetime.utcnow()
    if outcome["is_full_match"] and not outcome["approval_required"]:
        invoice.status = "matched"

    await db.commit()
    await db.refresh(invoice)
    logger.info(f"Matched invoice {invoice.invoice_number}: {status_text}, "
                f"variance {results['variance_amount']} ({results['variance_percentage']:.2f}%)")
    return ApiResponse(
        message="Invoice matched successfully" if outcome["is_full_match"] else "Matching completed with discrepancies",
        data={
            "invoice": build_invoice_response(invoice),
            "matching_results": results,
            "is_full_match": outcome["is_full_match"],
            "approval_required": outcome["approval_required"],
            "status_text": status_text,
        }
    )


@router.get("/{invoice_id}/comparison", response_model=ApiResponse)
async def matching_comparison(*, db: AsyncSession = Depends(get_db), invoice_id: int) -> Any:
    """Invoice lines next to the ordered and received quantities of its purchase orders."""
    invoice = await get_invoice_or_404(db, invoice_id)
    purchase_orders = []
    po_total = Decimal("0")
    received_total = Decimal("0")
    for po in invoice.purchase_orders:
        payload = purchase_order_payload(po)
        for item in payload["items"]:
            item["ordered_quantity"] = item["quantity"]
            item["received_quantity"] = item["quantity"] if item["quality_status"] == "approved" else 0
            if item["quality_status"] == "approved":
                received_total += money(item["total_price"])
        po_total += money(po.total_amount)
        purchase_orders.append(payload)

    invoice_total = money(invoice.total_amount)
    return ApiResponse(message="Matching comparison fetched successfully", data={
        "invoice": {
            "invoice_number": invoice.invoice_number,
            "vendor_invoice_number": invoice.vendor_invoice_number,
            "vendor_name": invoice.vendor.name if invoice.vendor else None,
            "total_amount": money_float(invoice_total),
            "line_items": invoice.line_items or [],
        },
        "purchase_orders": purchase_orders,
        "matching_results": invoice.matching_details,
        "totals": {
            "po_total": money_float(po_total),
            "received_total": money_float(received_total),
            "invoice_total": money_float(invoice_total),
            "variance": money_float(invoice_total - po_total),
            "variance_percentage": float((invoice_total - po_total) / po_total * 100) if po_total > 0 else 0.0,
        },
    })

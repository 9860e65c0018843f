"""Purchase order API: vendor orders, quality inspection and payables"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_, exists
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.incoming_stock import IncomingStock
from produce_app.models.v1.invoice import invoice_purchase_orders
from produce_app.models.v1.product import Product
from produce_app.models.v1.purchase_order import PurchaseOrder, PurchaseOrderItem
from produce_app.models.v1.vendor import Vendor
from produce_app.models.v1.vendor_credit_memo import VendorCreditMemo
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.purchase_order import (
    PurchaseOrderCreate, PurchaseOrderUpdate, PurchaseOrderResponse, ItemQualityUpdate,
    PurchasePaymentUpdate, ApplyPurchaseCreditRequest
)
from produce_app.schemas.v1.vendor import build_vendor_response
from produce_app.services.money import money, money_float
from produce_app.services.purchasing import (
    build_purchase_items, create_purchase_order_record, load_purchase_products,
    purchase_due_date, release_purchase_order_stock, sync_purchase_order_stock
)

logger = logging.getLogger(__name__)

router = APIRouter()

ITEM_FIELDS = (
    "product_name", "quantity", "unit_price", "quality_status", "quality_notes",
    "rejection_reason", "batch_number", "expected_weight", "actual_weight", "lb",
)


def build_purchase_order_response(purchase_order: PurchaseOrder) -> PurchaseOrderResponse:
    resp = PurchaseOrderResponse.model_validate(purchase_order)
    resp.vendor_name = purchase_order.vendor.name if purchase_order.vendor else None
    resp.outstanding_amount = money_float(purchase_order.outstanding_amount)
    return resp


async def get_purchase_order_or_404(db: AsyncSession, purchase_order_id: int) -> PurchaseOrder:
    purchase_order = await db.get(PurchaseOrder, purchase_order_id)
    if not purchase_order:
        raise HTTPException(status_code=404, detail="Purchase order not found")
    return purchase_order


async def load_line_products(db: AsyncSession, lines: List[Dict[str, Any]]) -> Dict[int, Product]:
    ids = {line["product_id"] for line in lines}
    result = await db.execute(select(Product).where(Product.id.in_(ids)))
    products = {p.id: p for p in result.scalars().all()}
    missing = sorted(ids - set(products))
    if missing:
        raise HTTPException(status_code=404, detail=f"Product {missing[0]} not found")
    return products


@router.get("/", response_model=ApiResponse[Page[PurchaseOrderResponse]])
async def list_purchase_orders(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    vendor_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None)
) -> Any:
    query = select(PurchaseOrder).join(Vendor, PurchaseOrder.vendor_id == Vendor.id)
    conditions = []
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(
            PurchaseOrder.purchase_order_number.ilike(pattern),
            Vendor.name.ilike(pattern),
        ))
    if vendor_id:
        conditions.append(PurchaseOrder.vendor_id == vendor_id)
    if status:
        conditions.append(PurchaseOrder.status == status)
    if payment_status:
        conditions.append(PurchaseOrder.payment_status == payment_status)
    if conditions:
        query = query.where(and_(*conditions))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    result = await db.execute(
        query.order_by(PurchaseOrder.purchase_date.desc(), PurchaseOrder.id.desc())
        .offset((page - 1) * limit).limit(limit)
    )
    purchase_orders = result.scalars().all()
    return ApiResponse(data=page_of([build_purchase_order_response(p) for p in purchase_orders], total, page, limit))


@router.post("/", response_model=ApiResponse[PurchaseOrderResponse])
async def create_purchase_order(*, db: AsyncSession = Depends(get_db), data: PurchaseOrderCreate) -> Any:
    vendor = await get_vendor_or_404(db, data.vendor_id)
    if not data.items:
        raise HTTPException(status_code=400, detail="Items are required")
    if data.purchase_order_number:
        duplicate = (await db.execute(
            select(PurchaseOrder.id).where(PurchaseOrder.purchase_order_number == data.purchase_order_number)
        )).scalar()
        if duplicate:
            raise HTTPException(status_code=400, detail="Purchase order number already exists")

    lines = [item.model_dump() for item in data.items]
    products = await load_line_products(db, lines)
    purchase_order = await create_purchase_order_record(
        db, vendor, lines, products,
        purchase_order_number=data.purchase_order_number,
        purchase_date=data.purchase_date,
        delivery_date=data.delivery_date,
        status=data.status,
        notes=data.notes,
    )
    await db.commit()
    await db.refresh(purchase_order)
    return ApiResponse(message="Purchase order created successfully",
                       data=build_purchase_order_response(purchase_order))


@router.get("/vendor/{vendor_id}", response_model=ApiResponse)
async def vendor_details(*, db: AsyncSession = Depends(get_db), vendor_id: int) -> Any:
    """A vendor with all its purchase orders and what is still owed."""
    vendor = await get_vendor_or_404(db, vendor_id)
    result = await db.execute(
        select(PurchaseOrder).where(PurchaseOrder.vendor_id == vendor_id)
        .order_by(PurchaseOrder.purchase_date.desc())
    )
    purchase_orders = result.scalars().all()

    total_spent = sum((money(p.total_amount) for p in purchase_orders), Decimal("0"))
    total_paid = sum((money(p.payment_amount) for p in purchase_orders), Decimal("0"))
    total_credit = sum((money(p.total_credit_applied) for p in purchase_orders), Decimal("0"))

    rows = []
    for p in purchase_orders:
        row = build_purchase_order_response(p)
        if row.due_date is None and p.purchase_date:
            row.due_date = purchase_due_date(vendor, p.purchase_date)
        rows.append(row)

    return ApiResponse(message="Vendor details with purchase orders fetched successfully", data={
        "vendor": build_vendor_response(vendor),
        "total_orders": len(purchase_orders),
        "total_spent": money_float(total_spent),
        "total_paid": money_float(total_paid),
        "total_credit_applied": money_float(total_credit),
        "balance_due": money_float(total_spent - total_paid - total_credit),
        "purchase_orders": rows,
    })


@router.get("/{purchase_order_id}", response_model=ApiResponse[PurchaseOrderResponse])
async def get_purchase_order(*, db: AsyncSession = Depends(get_db), purchase_order_id: int) -> Any:
    purchase_order = await get_purchase_order_or_404(db, purchase_order_id)
    return ApiResponse(data=build_purchase_order_response(purchase_order))


@router.put("/{purchase_order_id}", response_model=ApiResponse[PurchaseOrderResponse])
async def update_purchase_order(
    *,
    db: AsyncSession = Depends(get_db),
    purchase_order_id: int,
    data: PurchaseOrderUpdate
) -> Any:
    purchase_order = await get_purchase_order_or_404(db, purchase_order_id)
    values = data.model_dump(exclude_unset=True)
    values.pop("items", None)
    for field, value in values.items():
        setattr(purchase_order, field, value)

    if data.items is not None:
        if not data.items:
            raise HTTPException(status_code=400, detail="Items are required")
        # Only the fields sent for a line change the matched item
        lines = [item.model_dump(exclude_unset=True) for item in data.items]
        products = await load_line_products(db, lines)
        products.update(await load_purchase_products(db, purchase_order))

        # Lines are matched to existing items by product so approved
        # items only move stock by their quantity difference
        by_product: Dict[int, List[PurchaseOrderItem]] = {}
        for item in purchase_order.items:
            by_product.setdefault(item.product_id, []).append(item)
        kept, added = [], []
        for line in lines:
            bucket = by_product.get(line["product_id"])
            if bucket:
                item = bucket.pop(0)
                for field in ITEM_FIELDS:
                    if field in line:
                        setattr(item, field, line[field])
                if item.expected_weight is not None and item.actual_weight is not None:
                    item.weight_variance = item.actual_weight - item.expected_weight
                kept.append(item)
            else:
                added.extend(build_purchase_items([line], products))

        for bucket in by_product.values():
            for item in bucket:
                item.quality_status = "pending"
        purchase_order.recalculate_totals()
        await sync_purchase_order_stock(db, purchase_order, products)

        purchase_order.items = kept + added
        purchase_order.recalculate_totals()
        await sync_purchase_order_stock(db, purchase_order, products)

    if "purchase_date" in values and "due_date" not in values:
        purchase_order.due_date = purchase_due_date(purchase_order.vendor, purchase_order.purchase_date)
    purchase_order.refresh_payment_status()

    await db.commit()
    await db.refresh(purchase_order)
    logger.info(f"Updated purchase order {purchase_order.purchase_order_number}")
    return ApiResponse(message="Purchase order updated successfully",
                       data=build_purchase_order_response(purchase_order))


@router.delete("/{purchase_order_id}", response_model=ApiResponse)
async def delete_purchase_order(*, db: AsyncSession = Depends(get_db), purchase_order_id: int) -> Any:
    purchase_order = await get_purchase_order_or_404(db, purchase_order_id)
    invoiced = (await db.execute(
        select(exists().where(invoice_purchase_orders.c.purchase_order_id == purchase_order_id))
    )).scalar()
    if invoiced:
        raise HTTPException(status_code=400, detail="Purchase order is linked to an invoice and cannot be deleted")

    changes = await release_purchase_order_stock(db, purchase_order)
    result = await db.execute(select(IncomingStock).where(IncomingStock.purchase_order_id == purchase_order_id))
    for entry in result.scalars().all():
        entry.purchase_order_id = None

    number = purchase_order.purchase_order_number
    await db.delete(purchase_order)
    await db.commit()
    logger.info(f"Deleted purchase order {number}, reversed stock on {len(changes)} items")
    return ApiResponse(message="Purchase order deleted successfully", data={"stock_reversed": changes})


@router.put("/{purchase_order_id}/items/{item_id}/quality", response_model=ApiResponse[PurchaseOrderResponse])
async def update_item_quality(
    *,
    db: AsyncSession = Depends(get_db),
    purchase_order_id: int,
    item_id: int,
    data: ItemQualityUpdate
) -> Any:
    purchase_order = await get_purchase_order_or_404(db, purchase_order_id)
    item = next((i for i in purchase_order.items if i.id == item_id), None)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(item, field, value)
    if item.expected_weight is not None and item.actual_weight is not None:
        item.weight_variance = item.actual_weight - item.expected_weight
    purchase_order.recalculate_totals()
    purchase_order.refresh_payment_status()

    changes = await sync_purchase_order_stock(db, purchase_order)
    await db.commit()
    await db.refresh(purchase_order)
    logger.info(f"Quality {item.quality_status} for {item.product_name} on "
                f"{purchase_order.purchase_order_number}, stock changes: {changes}")
    return ApiResponse(message="Items and product quantities updated successfully",
                       data=build_purchase_order_response(purchase_order))


@router.put("/{purchase_order_id}/payment", response_model=ApiResponse[PurchaseOrderResponse])
async def update_payment(
    *,
    db: AsyncSession = Depends(get_db),
    purchase_order_id: int,
    data: PurchasePaymentUpdate
) -> Any:
    if data.method == "creditcard" and not data.transaction_id:
        raise HTTPException(status_code=400, detail="Transaction ID is required for credit card payments")
    if data.method == "cash" and not data.notes:
        raise HTTPException(status_code=400, detail="Notes are required for cash payments")

    purchase_order = await get_purchase_order_or_404(db, purchase_order_id)
    purchase_order.payment_method = data.method
    purchase_order.payment_amount = money(data.amount_paid)
    notes = data.notes or ""
    if data.transaction_id:
        notes = f"{notes} (transaction {data.transaction_id})".strip()
    purchase_order.payment_notes = notes or None
    purchase_order.refresh_payment_status()

    await db.commit()
    await db.refresh(purchase_order)
    logger.info(f"Payment on {purchase_order.purchase_order_number}: "
                f"{purchase_order.payment_amount} -> {purchase_order.payment_status}")
    return ApiResponse(message="Payment details updated successfully",
                       data=build_purchase_order_response(purchase_order))


@router.post("/{purchase_order_id}/apply-credit", response_model=ApiResponse)
async def apply_credit(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    purchase_order_id: int,
    data: ApplyPurchaseCreditRequest
) -> Any:
    purchase_order = await get_purchase_order_or_404(db, purchase_order_id)
    amount = money(data.amount)
    outstanding = purchase_order.outstanding_amount
    if amount > outstanding:
        raise HTTPException(
            status_code=400,
            detail=f"Amount exceeds remaining balance on purchase order ({money(outstanding)})"
        )

    memo = None
    if data.credit_memo_id:
        memo = await db.get(VendorCreditMemo, data.credit_memo_id)
        if not memo:
            raise HTTPException(status_code=404, detail="Credit memo not found")
        if memo.vendor_id != purchase_order.vendor_id:
            raise HTTPException(status_code=400, detail="Credit memo does not belong to the same vendor")
        if not memo.can_apply:
            raise HTTPException(status_code=400, detail=f"Credit memo cannot be applied (status: {memo.status})")
        if amount > memo.remaining_amount:
            raise HTTPException(status_code=400, detail=f"Amount exceeds remaining credit ({memo.remaining_amount})")
        memo.apply_to_purchase_order(purchase_order.id, amount)

    purchase_order.credit_adjustments = list(purchase_order.credit_adjustments or []) + [{
        "credit_memo_id": memo.id if memo else None,
        "memo_number": memo.memo_number if memo else None,
        "amount": float(amount),
        "applied_at": datetime.utcnow().isoformat(),
        "applied_by": actor.name,
        "notes": data.notes,
    }]
    purchase_order.total_credit_applied = money(purchase_order.total_credit_applied) + amount
    purchase_order.refresh_payment_status()

    await db.commit()
    await db.refresh(purchase_order)
    logger.info(f"Applied credit {amount} to {purchase_order.purchase_order_number}")
    return ApiResponse(message="Credit applied successfully", data={
        "purchase_order": build_purchase_order_response(purchase_order),
        "credit_memo_id": memo.id if memo else None,
        "credit_memo_remaining": money_float(memo.remaining_amount) if memo else None,
    })

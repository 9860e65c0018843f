"""Incoming stock API: weekly expected deliveries entered from the matrix"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.products import get_product_or_404
from produce_app.api.api_v1.endpoints.purchase_orders import build_purchase_order_response
from produce_app.api.api_v1.endpoints.vendors import get_vendor_or_404
from produce_app.core.deps import get_db
from produce_app.models.v1.incoming_stock import IncomingStock
from produce_app.models.v1.purchase_order import PurchaseOrder, PurchaseOrderItem
from produce_app.models.v1.vendor import Vendor
from produce_app.schemas.v1.common import ApiResponse
from produce_app.schemas.v1.incoming_stock import (
    IncomingStockAdd, IncomingStockLink, BulkLinkRequest, IncomingStockReceive,
    IncomingStockResponse, build_incoming_response
)
from produce_app.services.numbering import generate_purchase_order_number
from produce_app.services.purchasing import create_purchase_order_record, purchase_due_date
from produce_app.services.stock import get_week_range

logger = logging.getLogger(__name__)

router = APIRouter()


def week_payload(week: dict) -> dict:
    return {"start": week["start"], "end": week["end"], "label": week["label"]}


async def get_incoming_or_404(db: AsyncSession, incoming_id: int) -> IncomingStock:
    entry = await db.get(IncomingStock, incoming_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Incoming stock not found")
    return entry


def link_entry(entry: IncomingStock, vendor: Vendor, unit_price: float) -> None:
    entry.vendor = vendor
    entry.unit_price = unit_price or 0
    entry.status = "linked"
    entry.linked_at = datetime.utcnow()
    entry.compute_total()


@router.get("/", response_model=ApiResponse)
async def get_week_incoming(*, db: AsyncSession = Depends(get_db), week_offset: int = Query(0)) -> Any:
    week = get_week_range(week_offset)
    result = await db.execute(
        select(IncomingStock)
        .where(
            IncomingStock.week_start >= week["start"],
            IncomingStock.week_end <= week["end"],
            IncomingStock.status != "cancelled",
        )
        .order_by(IncomingStock.id.asc())
    )

    by_product: Dict[int, Dict[str, Any]] = {}
    for entry in result.scalars().all():
        group = by_product.setdefault(entry.product_id, {
            "product_id": entry.product_id,
            "product_name": entry.product.name,
            "total_incoming": 0,
            "items": [],
            "all_linked": True,
        })
        group["total_incoming"] += entry.quantity or 0
        group["items"].append(build_incoming_response(entry))
        if entry.status == "draft":
            group["all_linked"] = False

    return ApiResponse(data={
        "incoming_stock": list(by_product.values()),
        "week_range": week_payload(week),
    })


@router.post("/", response_model=ApiResponse[IncomingStockResponse])
async def add_incoming(*, db: AsyncSession = Depends(get_db), data: IncomingStockAdd) -> Any:
    """Set the draft quantity for a product and week; 0 removes the draft."""
    qty = max(0, int(data.quantity))
    week = get_week_range(data.week_offset)
    product = await get_product_or_404(db, data.product_id)

    result = await db.execute(
        select(IncomingStock).where(
            IncomingStock.product_id == product.id,
            IncomingStock.week_start == week["start"],
            IncomingStock.status == "draft",
        )
    )
    entry = result.scalars().first()

    if qty == 0:
        if entry is None:
            return ApiResponse(message="No incoming stock to remove", data=None)
        await db.delete(entry)
        await db.commit()
        logger.info(f"Removed incoming draft for {product.name} ({week['label']})")
        return ApiResponse(message="Incoming stock removed", data=None)

    if entry is None:
        entry = IncomingStock(
            product=product,
            quantity=qty,
            week_start=week["start"],
            week_end=week["end"],
            status="draft",
            notes=data.notes or "",
        )
        db.add(entry)
    else:
        entry.quantity = qty
        if data.notes:
            entry.notes = data.notes

    await db.commit()
    await db.refresh(entry)
    logger.info(f"Incoming {product.name}: {qty} for {week['label']}")
    return ApiResponse(message="Incoming stock updated", data=build_incoming_response(entry))


@router.get("/unlinked", response_model=ApiResponse)
async def get_unlinked(*, db: AsyncSession = Depends(get_db), week_offset: int = Query(0)) -> Any:
    week = get_week_range(week_offset)
    result = await db.execute(
        select(IncomingStock)
        .where(IncomingStock.week_start == week["start"], IncomingStock.status == "draft")
        .order_by(IncomingStock.id.asc())
    )
    unlinked = result.scalars().all()
    return ApiResponse(data={
        "unlinked_count": len(unlinked),
        "items": [build_incoming_response(e) for e in unlinked],
        "can_confirm": not unlinked,
        "week_range": week_payload(week),
    })


@router.post("/bulk-link", response_model=ApiResponse)
async def bulk_link(*, db: AsyncSession = Depends(get_db), data: BulkLinkRequest) -> Any:
    """
    Link several drafts at once.

    A quantity below the draft's splits off a linked entry and leaves the
    rest as draft. With create_purchase_order every vendor gets one purchase
    order whose items are approved on creation, so their stock is added and
    the entries are marked received.
    """
    if not data.items:
        raise HTTPException(status_code=400, detail="Items are required")

    vendors: Dict[int, Vendor] = {}
    linked: Dict[int, List[IncomingStock]] = defaultdict(list)
    errors = []

    for item in data.items:
        vendor_id = item.vendor_id or data.vendor_id
        if not vendor_id:
            errors.append({"id": item.incoming_stock_id, "error": "vendor_id is required"})
            continue
        if vendor_id not in vendors:
            vendor = await db.get(Vendor, vendor_id)
            if vendor is None:
                errors.append({"id": item.incoming_stock_id, "error": "Vendor not found"})
                continue
            vendors[vendor_id] = vendor
        vendor = vendors[vendor_id]

        entry = await db.get(IncomingStock, item.incoming_stock_id)
        if entry is None:
            errors.append({"id": item.incoming_stock_id, "error": "Not found"})
            continue
        if entry.status != "draft":
            errors.append({"id": item.incoming_stock_id, "error": "Already linked"})
            continue

        quantity = entry.quantity if item.quantity is None else min(item.quantity, entry.quantity)
        if quantity <= 0:
            errors.append({"id": item.incoming_stock_id, "error": "Invalid quantity"})
            continue

        remainder = (entry.quantity or 0) - quantity
        if remainder > 0:
            split = IncomingStock(
                product=entry.product,
                quantity=quantity,
                week_start=entry.week_start,
                week_end=entry.week_end,
                notes=f"{entry.notes} (partial link)" if entry.notes else "Partial link from incoming",
            )
            link_entry(split, vendor, item.unit_price)
            db.add(split)
            entry.quantity = remainder
            linked[vendor_id].append(split)
        else:
            link_entry(entry, vendor, item.unit_price)
            linked[vendor_id].append(entry)

    purchase_orders = []
    if data.create_purchase_order:
        for vendor_id, entries in linked.items():
            products = {e.product.id: e.product for e in entries}
            lines = [{
                "product_id": e.product.id,
                "quantity": e.quantity,
                "unit_price": float(e.unit_price or 0),
                "quality_status": "approved",
            } for e in entries]
            purchase_order = await create_purchase_order_record(
                db, vendors[vendor_id], lines, products,
                status="pending",
                notes=f"Auto-created from Matrix - {len(lines)} items (Auto-Approved)",
            )
            received_at = datetime.utcnow()
            for e in entries:
                e.purchase_order_id = purchase_order.id
                e.status = "received"
                e.received_at = received_at
                e.received_quantity = e.quantity
            purchase_orders.append(purchase_order)

    await db.commit()
    for purchase_order in purchase_orders:
        await db.refresh(purchase_order)

    linked_count = sum(len(entries) for entries in linked.values())
    logger.info(f"Bulk linked {linked_count} incoming entries, {len(purchase_orders)} purchase orders, "
                f"{len(errors)} errors")
    return ApiResponse(
        message=f"{linked_count} items linked to vendor"
                + (" and auto-approved" if data.create_purchase_order else ""),
        data={
            "linked_count": linked_count,
            "purchase_orders": [build_purchase_order_response(p) for p in purchase_orders],
            "auto_approved": data.create_purchase_order,
            "errors": errors,
        }
    )


@router.post("/{incoming_id}/link", response_model=ApiResponse[IncomingStockResponse])
async def link_incoming(*, db: AsyncSession = Depends(get_db), incoming_id: int, data: IncomingStockLink) -> Any:
    entry = await get_incoming_or_404(db, incoming_id)
    if entry.status != "draft":
        raise HTTPException(status_code=400, detail="Only draft incoming stock can be linked")
    vendor = await get_vendor_or_404(db, data.vendor_id)
    link_entry(entry, vendor, data.unit_price)

    if data.create_purchase_order:
        purchase_date = datetime.utcnow()
        purchase_order = PurchaseOrder(
            vendor=vendor,
            purchase_order_number=await generate_purchase_order_number(db),
            purchase_date=purchase_date,
            delivery_date=entry.week_end,
            due_date=purchase_due_date(vendor, purchase_date),
            status="pending",
            payment_status="pending",
            credit_adjustments=[],
            notes="Auto-created from Matrix incoming stock",
            items=[PurchaseOrderItem(
                product_id=entry.product_id,
                product_name=entry.product.name,
                quantity=entry.quantity,
                unit_price=entry.unit_price,
                quality_status="pending",
                approved_quantity=0,
            )],
        )
        purchase_order.recalculate_totals()
        db.add(purchase_order)
        await db.flush()
        entry.purchase_order_id = purchase_order.id
        logger.info(f"Created purchase order {purchase_order.purchase_order_number} from incoming stock")

    await db.commit()
    await db.refresh(entry)
    return ApiResponse(message="Incoming stock linked to vendor", data=build_incoming_response(entry))


@router.post("/{incoming_id}/receive", response_model=ApiResponse[IncomingStockResponse])
async def receive_incoming(
    *,
    db: AsyncSession = Depends(get_db),
    incoming_id: int,
    data: IncomingStockReceive
) -> Any:
    """Mark as received; stock moves when the purchase item passes quality check."""
    entry = await get_incoming_or_404(db, incoming_id)
    if entry.status != "linked":
        raise HTTPException(status_code=400, detail="Only linked incoming stock can be received")

    entry.status = "received"
    entry.received_at = datetime.utcnow()
    entry.received_quantity = entry.quantity if data.received_quantity is None else data.received_quantity

    await db.commit()
    await db.refresh(entry)
    logger.info(f"Received incoming {entry.id}: {entry.received_quantity}")
    return ApiResponse(
        message="Incoming stock marked as received. Stock will be adjusted after Quality Control approval.",
        data=build_incoming_response(entry)
    )


@router.delete("/{incoming_id}", response_model=ApiResponse)
async def delete_incoming(*, db: AsyncSession = Depends(get_db), incoming_id: int) -> Any:
    entry = await get_incoming_or_404(db, incoming_id)
    if entry.status == "received":
        raise HTTPException(status_code=400, detail="Cannot delete received incoming stock")
    entry.status = "cancelled"
    await db.commit()
    logger.info(f"Cancelled incoming {entry.id}")
    return ApiResponse(message="Incoming stock cancelled")

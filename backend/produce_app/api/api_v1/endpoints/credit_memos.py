"""Store credit memo API and store credit balance"""

import logging
from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.orders.core import get_order_or_404, refresh_payment_status
from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.credit_memo import CreditMemo
from produce_app.models.v1.order import Order
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.credit_memo import (
    CreditMemoCreate, CreditMemoUpdate, CreditMemoProcess, ApplyStoreCreditRequest,
    CreditMemoResponse, items_payload
)
from produce_app.schemas.v1.store import CreditEntryResponse, StoreCreditInfo
from produce_app.services.money import money, money_float, to_decimal
from produce_app.services.numbering import generate_credit_memo_number
from produce_app.services.store_credit import post_credit

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_credit_memo_or_404(db: AsyncSession, memo_id: int) -> CreditMemo:
    memo = await db.get(CreditMemo, memo_id)
    if not memo:
        raise HTTPException(status_code=404, detail="Credit memo not found")
    return memo


def process_credit_memo(memo: CreditMemo, actor: Actor, notes: Optional[str] = None) -> Optional[dict]:
    """Mark processed; store_credit memos add their total to the store balance.

    The caller commits.
    """
    memo.status = "processed"
    memo.processed_at = datetime.utcnow()
    memo.processed_by = actor.name
    memo.process_notes = notes
    if memo.refund_method != "store_credit":
        return None
    entry = post_credit(
        memo.store, memo.total_amount, "credit_issued",
        f"Credit Memo {memo.credit_memo_number}: {memo.reason or 'Credit issued'}",
        reference_id=memo.id, reference_model="CreditMemo", actor=actor,
    )
    return {"balance_before": money_float(entry.balance_before), "balance_after": money_float(entry.balance_after)}


@router.get("/", response_model=ApiResponse[Page[CreditMemoResponse]])
async def list_credit_memos(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    store_id: Optional[int] = Query(None)
) -> Any:
    conditions = []
    if status:
        conditions.append(CreditMemo.status == status)
    if store_id:
        conditions.append(CreditMemo.store_id == store_id)

    query = select(CreditMemo)
    count_query = select(func.count(CreditMemo.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    total = (await db.execute(count_query)).scalar() or 0
    result = await db.execute(
        query.order_by(CreditMemo.created_at.desc(), CreditMemo.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    memos = result.scalars().all()
    return ApiResponse(data=page_of([CreditMemoResponse.model_validate(m) for m in memos], total, page, limit))


@router.post("/", response_model=ApiResponse[CreditMemoResponse])
async def create_credit_memo(*, db: AsyncSession = Depends(get_db), data: CreditMemoCreate) -> Any:
    order = await get_order_or_404(db, data.order_id)
    if data.credit_memo_number:
        existing = await db.execute(
            select(CreditMemo.id).where(CreditMemo.credit_memo_number == data.credit_memo_number)
        )
        if existing.first():
            raise HTTPException(status_code=400, detail="Credit memo number already exists")

    items = items_payload(data.items)
    total_amount = data.total_amount
    if total_amount is None:
        total_amount = sum(line["total"] for line in items)

    memo = CreditMemo(
        credit_memo_number=data.credit_memo_number or await generate_credit_memo_number(db),
        memo_date=data.memo_date or datetime.utcnow(),
        order_id=order.id,
        store=order.store,
        order_number=order.order_number,
        customer_name=data.customer_name or order.store.display_name,
        reason=data.reason,
        notes=data.notes,
        refund_method=data.refund_method,
        total_amount=money(total_amount),
        items=items,
        status="pending",
    )
    db.add(memo)
    await db.commit()
    await db.refresh(memo)
    logger.info(f"Created credit memo {memo.credit_memo_number} for order {order.order_number}: ${memo.total_amount}")
    return ApiResponse(message="Credit memo created and added to order", data=CreditMemoResponse.model_validate(memo))


@router.post("/apply-credit", response_model=ApiResponse)
async def apply_store_credit(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    data: ApplyStoreCreditRequest
) -> Any:
    """Pay part of an order from the store's credit balance."""
    if not data.store_id or not data.order_id or data.amount is None:
        raise HTTPException(status_code=400, detail="store_id, order_id, and amount are required")
    if data.amount <= 0:
        raise HTTPException(status_code=400, detail="Amount must be greater than 0")

    order = await get_order_or_404(db, data.order_id)
    if order.store_id != data.store_id:
        raise HTTPException(status_code=400, detail="Order does not belong to this store")
    store = await get_store_or_404(db, data.store_id)

    amount = money(data.amount)
    available = to_decimal(store.credit_balance)
    if available < amount:
        raise HTTPException(
            status_code=400, detail=f"Insufficient credit balance. Available: {available}, Requested: {amount}"
        )

    entry = post_credit(
        store, -amount, "credit_applied", f"Credit applied to order #{order.order_number}",
        reference_id=order.id, reference_model="Order", actor=actor,
    )
    order.credit_applied = money(to_decimal(order.credit_applied) + amount)
    refresh_payment_status(order)

    await db.commit()
    logger.info(f"Applied {amount} store credit from {store.display_name} to order {order.order_number}")
    return ApiResponse(message="Store credit applied successfully", data={
        "amount_applied": money_float(amount),
        "new_credit_balance": money_float(entry.balance_after),
        "order_payment_status": order.payment_status,
    })


@router.get("/store-credit/{store_id}", response_model=ApiResponse[StoreCreditInfo])
async def store_credit_info(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    store = await get_store_or_404(db, store_id)

    order_ids = {
        e.reference_id for e in store.credit_history
        if e.entry_type == "credit_applied" and e.reference_model == "Order" and e.reference_id
    }
    order_numbers = {}
    if order_ids:
        result = await db.execute(select(Order.id, Order.order_number).where(Order.id.in_(order_ids)))
        order_numbers = dict(result.all())

    history: List[dict] = []
    for entry in store.credit_history:
        row = CreditEntryResponse.model_validate(entry).model_dump()
        if entry.entry_type == "credit_applied" and entry.reference_id in order_numbers:
            row["order_id"] = entry.reference_id
            row["order_number"] = order_numbers[entry.reference_id]
        history.append(row)

    pending = await db.execute(
        select(CreditMemo)
        .where(
            CreditMemo.store_id == store_id,
            CreditMemo.status == "pending",
            CreditMemo.refund_method == "store_credit",
        )
        .order_by(CreditMemo.created_at.desc())
    )
    pending_credits = [{
        "id": m.id,
        "credit_memo_number": m.credit_memo_number,
        "total_amount": money_float(m.total_amount),
        "reason": m.reason,
        "created_at": m.created_at,
    } for m in pending.scalars().all()]

    return ApiResponse(data=StoreCreditInfo(
        store_id=store.id,
        store_name=store.display_name,
        credit_balance=money_float(store.credit_balance),
        credit_history=history,
        pending_credits=pending_credits,
    ))


@router.get("/by-order/{order_id}", response_model=ApiResponse[List[CreditMemoResponse]])
async def credit_memos_by_order(*, db: AsyncSession = Depends(get_db), order_id: int) -> Any:
    result = await db.execute(
        select(CreditMemo).where(CreditMemo.order_id == order_id).order_by(CreditMemo.created_at.desc())
    )
    memos = result.scalars().all()
    if not memos:
        raise HTTPException(status_code=404, detail="No credit memos found for this order ID")
    return ApiResponse(message="Credit memos fetched successfully",
                       data=[CreditMemoResponse.model_validate(m) for m in memos])


@router.get("/{memo_id}", response_model=ApiResponse[CreditMemoResponse])
async def get_credit_memo(*, db: AsyncSession = Depends(get_db), memo_id: int) -> Any:
    memo = await get_credit_memo_or_404(db, memo_id)
    return ApiResponse(data=CreditMemoResponse.model_validate(memo))


@router.put("/{memo_id}", response_model=ApiResponse[CreditMemoResponse])
async def update_credit_memo(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    memo_id: int,
    data: CreditMemoUpdate
) -> Any:
    memo = await get_credit_memo_or_404(db, memo_id)
    updates = data.model_dump(exclude_unset=True)
    new_status = updates.pop("status", None)

    if "items" in updates and data.items is not None:
        updates["items"] = items_payload(data.items)
    if updates.get("total_amount") is not None:
        updates["total_amount"] = money(updates["total_amount"])
    if memo.status == "processed" and updates:
        raise HTTPException(status_code=400, detail="Cannot edit a processed credit memo")
    for field, value in updates.items():
        setattr(memo, field, value)

    if new_status == "processed" and memo.status != "processed":
        process_credit_memo(memo, actor, memo.process_notes)
    elif new_status == "pending" and memo.status == "processed":
        raise HTTPException(status_code=400, detail="Credit memo is already processed")

    await db.commit()
    await db.refresh(memo)
    logger.info(f"Updated credit memo {memo.credit_memo_number}")
    return ApiResponse(message="Credit memo updated", data=CreditMemoResponse.model_validate(memo))


@router.delete("/{memo_id}", response_model=ApiResponse)
async def delete_credit_memo(*, db: AsyncSession = Depends(get_db), memo_id: int) -> Any:
    memo = await get_credit_memo_or_404(db, memo_id)
    if memo.status == "processed":
        raise HTTPException(status_code=400, detail="Cannot delete a processed credit memo")
    number = memo.credit_memo_number
    await db.delete(memo)
    await db.commit()
    logger.info(f"Deleted credit memo {number}")
    return ApiResponse(message="Credit memo deleted")


@router.put("/{memo_id}/process", response_model=ApiResponse)
async def process_memo(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    memo_id: int,
    data: CreditMemoProcess
) -> Any:
    memo = await get_credit_memo_or_404(db, memo_id)
    if memo.status == "processed":
        raise HTTPException(status_code=400, detail="Credit memo is already processed")

    balance_update = process_credit_memo(memo, actor, data.process_notes)
    await db.commit()
    await db.refresh(memo)
    logger.info(f"Processed credit memo {memo.credit_memo_number} ({memo.refund_method})")
    return ApiResponse(message="Credit memo processed successfully", data={
        "credit_memo": CreditMemoResponse.model_validate(memo),
        "credit_balance_update": balance_update,
    })

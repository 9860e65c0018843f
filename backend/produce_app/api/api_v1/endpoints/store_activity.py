"""Store analytics, communication logs and payment records"""

import logging
from datetime import datetime
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.orders.core import refresh_payment_status
from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.order import Order
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.common import ApiResponse
from produce_app.schemas.v1.store import CommunicationLogCreate, PaymentRecordCreate
from produce_app.services.money import money, money_float, to_decimal
from produce_app.services.store_analytics import analytics_summary, store_order_analytics

logger = logging.getLogger(__name__)

router = APIRouter()


def store_profile(store: Store) -> Dict[str, Any]:
    return {
        "store_id": store.id,
        "store_name": store.store_name,
        "owner_name": store.owner_name,
        "email": store.email,
        "phone": store.phone,
        "address": store.address,
        "city": store.city,
        "state": store.state,
        "zip_code": store.zip_code,
        "price_category": store.price_category,
        "shipping_cost": money_float(store.shipping_cost),
        "created_at": store.created_at,
    }


def newest_first(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(entries or [], key=lambda e: (e.get("created_at") or "", e.get("id") or 0), reverse=True)


@router.get("/analytics", response_model=ApiResponse)
async def get_all_store_analytics(*, db: AsyncSession = Depends(get_db)) -> Any:
    """Analytics for every store account, plus fleet totals."""
    stores = (await db.execute(
        select(Store).where(Store.role == "store").order_by(Store.store_name.asc())
    )).scalars().all()
    orders = (await db.execute(select(Order).where(Order.is_delete.is_not(True)))).scalars().all()

    by_store: Dict[int, List[Order]] = {}
    for order in orders:
        by_store.setdefault(order.store_id, []).append(order)

    now = datetime.utcnow()
    rows = [{**store_profile(s), **store_order_analytics(by_store.get(s.id, []), now)} for s in stores]
    return ApiResponse(data={"stores": rows, "summary": analytics_summary(rows)})


@router.get("/{store_id}/analytics", response_model=ApiResponse)
async def get_store_analytics(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    store = await get_store_or_404(db, store_id)
    orders = (await db.execute(
        select(Order).where(Order.store_id == store.id, Order.is_delete.is_not(True))
    )).scalars().all()
    analytics = store_order_analytics(orders, datetime.utcnow())
    return ApiResponse(data={
        "store_id": store.id,
        "store_name": store.store_name,
        "owner_name": store.owner_name,
        **analytics,
    })


@router.post("/{store_id}/communication", response_model=ApiResponse)
async def add_communication_log(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    store_id: int,
    data: CommunicationLogCreate
) -> Any:
    if not data.type:
        raise HTTPException(status_code=400, detail="Type is required")
    store = await get_store_or_404(db, store_id)

    logs = list(store.communication_logs or [])
    entry = {
        "id": len(logs) + 1,
        "type": data.type,
        "subject": data.subject or "",
        "notes": data.notes or "",
        "outcome": data.outcome or "",
        "created_by": actor.id,
        "created_by_name": data.created_by_name or "Admin",
        "created_at": datetime.utcnow().isoformat(),
    }
    store.communication_logs = logs + [entry]
    await db.commit()
    logger.info(f"Logged {data.type} with {store.display_name}")
    return ApiResponse(message="Communication logged successfully", data=entry)


@router.get("/{store_id}/communications", response_model=ApiResponse)
async def get_communication_logs(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    store = await get_store_or_404(db, store_id)
    return ApiResponse(data={"logs": newest_first(store.communication_logs), "store_name": store.store_name})


@router.post("/{store_id}/payment", response_model=ApiResponse)
async def add_payment_record(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    store_id: int,
    data: PaymentRecordCreate
) -> Any:
    """
    Record a payment taken from the store. With order_id the amount is
    added to that order's payments and its payment status is recomputed.
    """
    if not data.amount or data.amount <= 0:
        raise HTTPException(status_code=400, detail="Valid amount is required")
    store = await get_store_or_404(db, store_id)
    amount = money(data.amount)
    now = datetime.utcnow()

    order = None
    if data.order_id:
        order = await db.get(Order, data.order_id)
        if order is None or order.store_id != store.id or order.is_delete:
            raise HTTPException(status_code=404, detail="Order not found")

    records = list(store.payment_records or [])
    record = {
        "id": len(records) + 1,
        "amount": float(amount),
        "type": data.type or "cash",
        "reference": data.reference or "",
        "notes": data.notes or "",
        "order_id": data.order_id,
        "created_by": actor.id,
        "created_at": now.isoformat(),
    }
    store.payment_records = records + [record]

    if order is not None:
        order.payment_amount = money(to_decimal(order.payment_amount) + amount)
        order.payment_date = now
        order.payment_history = list(order.payment_history or []) + [{
            "amount": float(amount),
            "method": record["type"],
            "notes": record["notes"] or f"Store payment {record['reference']}".strip(),
            "payment_date": now.isoformat(),
            "recorded_by": actor.id,
            "recorded_by_name": actor.name,
        }]
        refresh_payment_status(order)

    await db.commit()
    logger.info(f"Recorded {record['type']} payment {amount} from {store.display_name}"
                + (f" on {order.order_number}" if order is not None else ""))
    return ApiResponse(message="Payment recorded successfully", data={
        **record,
        "order_payment_status": order.payment_status if order is not None else None,
    })


@router.get("/{store_id}/payments", response_model=ApiResponse)
async def get_payment_records(*, db: AsyncSession = Depends(get_db), store_id: int) -> Any:
    store = await get_store_or_404(db, store_id)
    return ApiResponse(data={"payments": newest_first(store.payment_records), "store_name": store.store_name})

"""
Order actions
- payment, mark unpaid
- order type, shipping, pallet info
- store statement and dashboard
"""

import logging
from typing import Any, Optional
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.order import Order, OrderItem
from produce_app.models.v1.product import Product
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.common import ApiResponse, ReasonBody
from produce_app.schemas.v1.order import (
    OrderResponse, PaymentUpdate, OrderTypeUpdate, ShippingUpdate, PalletUpdate
)
from produce_app.services.money import money, money_float, to_decimal
from produce_app.services.stock import calculate_actual_stock
from produce_app.services.store_credit import post_credit

from .core import build_order_response, get_order_or_404, refresh_payment_status

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/dashboard", response_model=ApiResponse)
async def get_dashboard(*, db: AsyncSession = Depends(get_db)) -> Any:
    """Order totals, a 7-day sales series, top products and low stock."""
    live = Order.is_delete.is_not(True)

    totals = (await db.execute(
        select(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.coalesce(func.sum(Order.payment_amount), 0),
            func.coalesce(func.sum(Order.credit_applied), 0),
        ).where(live)
    )).one()
    outstanding = (await db.execute(
        select(func.coalesce(func.sum(Order.total - Order.payment_amount - Order.credit_applied), 0))
        .where(live, Order.payment_status != "paid")
    )).scalar()

    status_rows = (await db.execute(
        select(Order.status, func.count(Order.id)).where(live).group_by(Order.status)
    )).all()
    payment_rows = (await db.execute(
        select(Order.payment_status, func.count(Order.id)).where(live).group_by(Order.payment_status)
    )).all()

    today = datetime.utcnow().date()
    first_day = today - timedelta(days=6)
    day_rows = (await db.execute(
        select(func.date(Order.created_at), func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
        .where(live, Order.created_at >= datetime.combine(first_day, datetime.min.time()))
        .group_by(func.date(Order.created_at))
    )).all()
    by_day = {str(day): (count, amount) for day, count, amount in day_rows}
    sales_series = []
    for offset in range(7):
        day = (first_day + timedelta(days=offset)).isoformat()
        count, amount = by_day.get(day, (0, 0))
        sales_series.append({"date": day, "orders": count, "amount": money_float(amount)})

    top_product_rows = (await db.execute(
        select(OrderItem.product_id, OrderItem.product_name,
               func.sum(OrderItem.quantity).label("quantity"), func.sum(OrderItem.total))
        .join(Order, OrderItem.order_id == Order.id)
        .where(live)
        .group_by(OrderItem.product_id, OrderItem.product_name)
        .order_by(func.sum(OrderItem.quantity).desc())
        .limit(5)
    )).all()

    top_store_rows = (await db.execute(
        select(Store.id, Store.store_name, Store.name, func.count(Order.id), func.sum(Order.total))
        .join(Order, Order.store_id == Store.id)
        .where(live)
        .group_by(Store.id, Store.store_name, Store.name)
        .order_by(func.sum(Order.total).desc())
        .limit(10)
    )).all()

    products = (await db.execute(select(Product).where(Product.threshold > 0))).scalars().all()
    low_stock = []
    for product in products:
        remaining = calculate_actual_stock(product)["total_remaining"]
        if remaining < product.threshold:
            low_stock.append({
                "product_id": product.id,
                "name": product.name,
                "remaining": remaining,
                "threshold": product.threshold,
            })

    total_stores = (await db.execute(select(func.count(Store.id)).where(Store.role == "store"))).scalar() or 0
    total_orders, revenue, paid, credit = totals
    return ApiResponse(message="Dashboard data fetched successfully", data={
        "total_orders": total_orders,
        "total_stores": total_stores,
        "total_revenue": money_float(revenue),
        "total_received": money_float(to_decimal(paid) + to_decimal(credit)),
        "total_outstanding": money_float(outstanding),
        "orders_by_status": {status: count for status, count in status_rows},
        "orders_by_payment_status": {status: count for status, count in payment_rows},
        "sales_last_7_days": sales_series,
        "top_products": [
            {"product_id": pid, "product_name": name, "quantity": qty or 0, "amount": money_float(amount)}
            for pid, name, qty, amount in top_product_rows
        ],
        "top_stores": [
            {"store_id": sid, "store_name": store_name or name, "order_count": count, "total_amount": money_float(amount)}
            for sid, store_name, name, count, amount in top_store_rows
        ],
        "low_stock_products": low_stock,
    })


@router.get("/statement/{store_id}", response_model=ApiResponse)
async def get_store_statement(
    *,
    db: AsyncSession = Depends(get_db),
    store_id: int,
    payment_status: str = Query("all", pattern="^(all|pending|partial|paid)$"),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None)
) -> Any:
    """Store statement; `pending` also lists partially paid orders."""
    store = await get_store_or_404(db, store_id)

    conditions = [Order.store_id == store_id, Order.is_delete.is_not(True)]
    if payment_status == "pending":
        conditions.append(Order.payment_status.in_(["pending", "partial"]))
    elif payment_status != "all":
        conditions.append(Order.payment_status == payment_status)
    if start_date:
        conditions.append(Order.created_at >= start_date)
    if end_date:
        conditions.append(Order.created_at <= end_date)

    result = await db.execute(select(Order).where(and_(*conditions)).order_by(Order.created_at.asc()))
    orders = result.scalars().all()

    total_amount = sum((to_decimal(o.total) for o in orders), to_decimal(0))
    total_paid = sum((to_decimal(o.payment_amount) for o in orders), to_decimal(0))
    total_credit = sum((to_decimal(o.credit_applied) for o in orders), to_decimal(0))
    rows = []
    for order in orders:
        balance = max(to_decimal(0), to_decimal(order.total) - to_decimal(order.payment_amount)
                      - to_decimal(order.credit_applied))
        rows.append({
            "order_id": order.id,
            "order_number": order.order_number,
            "date": order.created_at,
            "status": order.status,
            "payment_status": order.payment_status,
            "total": money_float(order.total),
            "paid": money_float(order.payment_amount),
            "credit_applied": money_float(order.credit_applied),
            "balance": money_float(balance),
        })

    return ApiResponse(data={
        "store": {
            "id": store.id,
            "name": store.display_name,
            "email": store.email,
            "phone": store.phone,
            "address": store.address,
            "city": store.city,
            "state": store.state,
            "zip_code": store.zip_code,
        },
        "orders": rows,
        "summary": {
            "total_orders": len(orders),
            "total_amount": money_float(total_amount),
            "total_paid": money_float(total_paid),
            "total_credit_applied": money_float(total_credit),
            "outstanding": money_float(max(to_decimal(0), total_amount - total_paid - total_credit)),
        },
    })


@router.put("/{order_id}/payment", response_model=ApiResponse[OrderResponse])
async def update_payment(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    order_id: int,
    data: PaymentUpdate
) -> Any:
    """
    Record the cumulative amount paid. The difference from the previous
    amount is appended to payment_history.
    """
    if data.method == "creditcard" and not data.transaction_id:
        raise HTTPException(status_code=400, detail="Transaction ID is required for credit card payments")
    if data.method == "cash" and not data.notes:
        raise HTTPException(status_code=400, detail="Notes are required for cash payments")

    order = await get_order_or_404(db, order_id)
    if order.is_delete:
        raise HTTPException(status_code=400, detail="Cannot record payment on a deleted order")

    amount_paid = money(data.amount_paid)
    difference = amount_paid - to_decimal(order.payment_amount)
    paid_at = data.payment_date or datetime.utcnow()

    order.payment_amount = amount_paid
    order.payment_method = data.method
    order.payment_transaction_id = data.transaction_id if data.method == "creditcard" else None
    order.payment_notes = data.notes
    order.payment_date = paid_at
    order.payment_history = list(order.payment_history or []) + [{
        "amount": money_float(difference if difference > 0 else amount_paid),
        "method": data.method,
        "transaction_id": order.payment_transaction_id,
        "notes": data.notes,
        "payment_date": paid_at.isoformat(),
        "recorded_by": actor.id,
        "recorded_by_name": actor.name,
    }]
    refresh_payment_status(order)

    await db.commit()
    await db.refresh(order)
    logger.info(f"Payment on {order.order_number}: {amount_paid} via {data.method} -> {order.payment_status}")
    return ApiResponse(message="Payment details updated successfully", data=build_order_response(order))


@router.post("/{order_id}/mark-unpaid", response_model=ApiResponse[OrderResponse])
async def mark_unpaid(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    order_id: int,
    data: ReasonBody
) -> Any:
    """Clear the payment; applied store credit goes back to the store."""
    if not data.reason:
        raise HTTPException(status_code=400, detail="Reason is required")
    order = await get_order_or_404(db, order_id)

    credit_refunded = to_decimal(order.credit_applied)
    if credit_refunded > 0 and order.store:
        post_credit(
            order.store, credit_refunded, "refund",
            f"Order {order.order_number} marked unpaid: {data.reason}",
            reference_id=order.id, reference_model="Order", actor=actor,
        )

    order.payment_history = list(order.payment_history or []) + [{
        "amount": 0,
        "method": None,
        "notes": f"Marked unpaid: {data.reason}",
        "payment_date": datetime.utcnow().isoformat(),
        "recorded_by": actor.id,
        "recorded_by_name": actor.name,
    }]
    order.payment_status = "pending"
    order.payment_amount = money(0)
    order.payment_method = None
    order.payment_transaction_id = None
    order.payment_notes = None
    order.payment_date = None
    order.credit_applied = money(0)

    await db.commit()
    await db.refresh(order)
    logger.info(f"Order {order.order_number} marked unpaid, credit refunded {credit_refunded}")
    message = (f"Order marked as unpaid. {credit_refunded:.2f} credit refunded to store."
               if credit_refunded > 0 else "Order marked as unpaid successfully")
    return ApiResponse(message=message, data=build_order_response(order))


@router.put("/{order_id}/order-type", response_model=ApiResponse[OrderResponse])
async def update_order_type(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    data: OrderTypeUpdate
) -> Any:
    order = await get_order_or_404(db, order_id)
    order.order_type = data.order_type
    await db.commit()
    await db.refresh(order)
    return ApiResponse(message="Order type updated", data=build_order_response(order))


@router.put("/{order_id}/shipping", response_model=ApiResponse[OrderResponse])
async def update_shipping(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    data: ShippingUpdate
) -> Any:
    order = await get_order_or_404(db, order_id)
    if data.plate_count is not None:
        order.plate_count = data.plate_count
        order.shipping_cost = money(to_decimal(data.shipping_cost) * data.plate_count)
    else:
        order.shipping_cost = money(data.shipping_cost)
    order.recalculate_total()
    refresh_payment_status(order)

    await db.commit()
    await db.refresh(order)
    logger.info(f"Shipping for {order.order_number} set to {order.shipping_cost}, total {order.total}")
    return ApiResponse(message="Order total recalculated and shipping updated", data=build_order_response(order))


@router.put("/{order_id}/pallet", response_model=ApiResponse[OrderResponse])
async def update_pallet_info(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    data: PalletUpdate
) -> Any:
    order = await get_order_or_404(db, order_id)
    if data.pallet_data is not None:
        order.pallet_data = data.pallet_data
    if data.plate_count is not None:
        order.plate_count = data.plate_count
    await db.commit()
    await db.refresh(order)
    return ApiResponse(message="Pallet info saved successfully", data=build_order_response(order))

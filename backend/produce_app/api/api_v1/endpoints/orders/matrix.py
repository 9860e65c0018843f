"""
Weekly order matrix
- product x store grid of this week's orders, last week's orders and PreOrders
- single-cell edits of orders and PreOrders
- PreOrder review and week confirmation
"""

import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.api.api_v1.endpoints.products import get_product_or_404
from produce_app.api.api_v1.endpoints.stores import get_store_or_404
from produce_app.core.config import settings
from produce_app.core.deps import Actor, get_db, get_optional_user
from produce_app.models.v1.incoming_stock import IncomingStock
from produce_app.models.v1.order import Order, OrderItem, PreOrder, PreOrderItem
from produce_app.models.v1.product import Product
from produce_app.models.v1.store import Store
from produce_app.schemas.v1.common import ApiResponse
from produce_app.schemas.v1.order import MatrixItemUpdate, ConfirmWeekRequest
from produce_app.services.money import money, money_float
from produce_app.services.numbering import generate_order_number, generate_pre_order_number
from produce_app.services.pricing import get_product_price_for_store
from produce_app.services.stock import calculate_actual_stock, date_within_week, get_week_range
from produce_app.services.work_order_builder import upsert_week_work_order

from .core import build_order_response, refresh_payment_status
from .pre_order_ops import build_pre_order_response, confirm_pre_order
from .stock_ops import rebuild_products, store_address

logger = logging.getLogger(__name__)

router = APIRouter()


def week_pre_order_conditions(week: Dict[str, Any]) -> List[Any]:
    """Open PreOrders delivered in the week, or created in it when no delivery date is set."""
    return [
        or_(
            and_(PreOrder.expected_delivery_date >= week["start"], PreOrder.expected_delivery_date <= week["end"]),
            and_(
                PreOrder.expected_delivery_date.is_(None),
                PreOrder.created_at >= week["start"],
                PreOrder.created_at <= week["end"],
            ),
        ),
        PreOrder.confirmed.is_not(True),
        PreOrder.is_delete.is_not(True),
        PreOrder.status == "pending",
    ]


async def week_orders(db: AsyncSession, week: Dict[str, Any], store_id: Optional[int] = None,
                      regular_only: bool = True) -> List[Order]:
    conditions = [
        Order.created_at >= week["start"],
        Order.created_at <= week["end"],
        Order.is_delete.is_not(True),
    ]
    if regular_only:
        conditions.append(Order.order_type == "Regular")
    if store_id:
        conditions.append(Order.store_id == store_id)
    result = await db.execute(select(Order).where(and_(*conditions)).order_by(Order.created_at.desc(), Order.id.desc()))
    return list(result.scalars().all())


def _cell(pricing_type: str) -> Dict[str, Any]:
    return {
        "current_qty": 0,
        "previous_qty": 0,
        "pre_order_qty": 0,
        "pending_req": 0,
        "pre_order_id": None,
        "order_id": None,
        "item_index": -1,
        "pricing_type": pricing_type or "box",
        "is_pre_order_fulfilled": False,
    }


@router.get("/matrix", response_model=ApiResponse)
async def get_order_matrix(
    *,
    db: AsyncSession = Depends(get_db),
    week_offset: int = Query(0),
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
    search: Optional[str] = Query(None),
    status_filter: str = Query("all", pattern="^(all|short|ok)$")
) -> Any:
    """
    Product x store grid for a week.

    final_stock = actual stock + draft incoming - open PreOrder quantity.
    The short/ok filter needs every product's stock, so it is applied
    before paginating in memory.
    """
    week = get_week_range(week_offset)
    previous_week = get_week_range(week_offset - 1)

    product_query = select(Product)
    if search:
        product_query = product_query.where(Product.name.ilike(f"%{search}%"))
    product_query = product_query.order_by(Product.name.asc())

    paginate_in_sql = status_filter == "all"
    if paginate_in_sql:
        total_products = (await db.execute(select(func.count()).select_from(product_query.subquery()))).scalar() or 0
        product_query = product_query.offset((page - 1) * limit).limit(limit)
    products = (await db.execute(product_query)).scalars().all()

    current_orders = await week_orders(db, week)
    previous_orders = await week_orders(db, previous_week)
    pre_orders = (await db.execute(
        select(PreOrder).where(and_(*week_pre_order_conditions(week))).order_by(PreOrder.created_at.desc())
    )).scalars().all()
    incoming_entries = (await db.execute(
        select(IncomingStock).where(
            IncomingStock.week_start == week["start"],
            IncomingStock.status.in_(["draft", "linked"]),
        )
    )).scalars().all()
    stores = (await db.execute(
        select(Store).where(Store.role == "store").order_by(Store.store_name.asc())
    )).scalars().all()

    incoming_by_product: Dict[int, Dict[str, Any]] = {}
    for entry in incoming_entries:
        info = incoming_by_product.setdefault(entry.product_id, {"total": 0, "items": [], "all_linked": True})
        # Linked entries are already on a purchase order
        if entry.status == "draft":
            info["total"] += entry.quantity or 0
            info["all_linked"] = False
        info["items"].append({
            "id": entry.id,
            "quantity": entry.quantity,
            "vendor_id": entry.vendor_id,
            "vendor_name": entry.vendor.name if entry.vendor else None,
            "unit_price": money_float(entry.unit_price),
            "status": entry.status,
            "is_linked": entry.status in ("linked", "received"),
        })

    rows: Dict[int, Dict[str, Any]] = {}
    for product in products:
        incoming = incoming_by_product.get(product.id, {"total": 0, "items": [], "all_linked": True})
        rows[product.id] = {
            "product_id": product.id,
            "product_name": product.name,
            "short_code": product.short_code,
            "price_per_box": money_float(product.price_per_box),
            "a_price": money_float(product.a_price),
            "b_price": money_float(product.b_price),
            "c_price": money_float(product.c_price),
            "restaurant_price": money_float(product.restaurant_price),
            "store_orders": {},
            "total_current": 0,
            "total_previous": 0,
            "total_pre_order": 0,
            "pending_req_total": 0,
            "incoming": incoming["total"],
            "incoming_items": incoming["items"],
            "incoming_all_linked": incoming["all_linked"],
        }

    # Newest first, so the first order seen per cell is the one edits go to
    for order in current_orders:
        for index, item in enumerate(order.items):
            row = rows.get(item.product_id)
            if row is None:
                continue
            cell = row["store_orders"].setdefault(order.store_id, _cell(item.pricing_type))
            cell["current_qty"] += item.quantity or 0
            if cell["order_id"] is None:
                cell["order_id"] = order.id
                cell["item_index"] = index
            row["total_current"] += item.quantity or 0

    for order in previous_orders:
        for item in order.items:
            row = rows.get(item.product_id)
            if row is None:
                continue
            cell = row["store_orders"].setdefault(order.store_id, _cell(item.pricing_type))
            cell["previous_qty"] += item.quantity or 0
            row["total_previous"] += item.quantity or 0

    for pre_order in pre_orders:
        for item in pre_order.items:
            row = rows.get(item.product_id)
            if row is None:
                continue
            cell = row["store_orders"].setdefault(pre_order.store_id, _cell(item.pricing_type))
            quantity = item.quantity or 0
            cell["pre_order_qty"] += quantity
            cell["pending_req"] += quantity
            cell["pre_order_id"] = pre_order.id
            cell["is_pre_order_fulfilled"] = cell["current_qty"] >= cell["pre_order_qty"]
            row["total_pre_order"] += quantity
            row["pending_req_total"] += quantity

    stock_base = settings.STOCK_BASE_DATE.isoformat()
    for product in products:
        row = rows[product.id]
        actual = calculate_actual_stock(product)["total_remaining"]
        final_stock = actual + row["incoming"] - row["total_pre_order"]
        row.update(
            actual_stock=actual,
            final_stock=final_stock,
            is_short=final_stock < 0,
            shortage_qty=abs(final_stock) if final_stock < 0 else 0,
            stock_base=stock_base,
        )

    matrix = list(rows.values())
    if status_filter == "short":
        matrix = [r for r in matrix if r["is_short"]]
    elif status_filter == "ok":
        matrix = [r for r in matrix if not r["is_short"]]
    if not paginate_in_sql:
        total_products = len(matrix)
        matrix = matrix[(page - 1) * limit:page * limit]

    short_rows = [r for r in matrix if r["is_short"]]
    draft_incoming = [e for e in incoming_entries if e.status == "draft"]
    unlinked_items = [{
        "id": e.id,
        "product_id": e.product_id,
        "product_name": e.product.name if e.product else None,
        "quantity": e.quantity,
    } for e in draft_incoming]
    pages = -(-total_products // limit) if limit else 0

    return ApiResponse(message="Order matrix data fetched successfully", data={
        "matrix": matrix,
        "stores": [{
            "id": s.id,
            "store_name": s.store_name,
            "owner_name": s.owner_name,
            "city": s.city,
            "state": s.state,
            "approval_status": s.approval_status,
            "price_category": s.price_category,
        } for s in stores],
        "week_range": {"start": week["start"], "end": week["end"], "label": week["label"]},
        "previous_week_range": {"start": previous_week["start"], "end": previous_week["end"]},
        "week_offset": week_offset,
        "pre_orders_count": len(pre_orders),
        "pagination": {
            "current_page": page,
            "total_pages": pages,
            "total_products": total_products,
            "limit": limit,
            "has_next_page": page < pages,
            "has_prev_page": page > 1,
        },
        "summary": {
            "products": total_products,
            "short_products": len(short_rows),
            "total_shortage": sum(r["shortage_qty"] for r in short_rows),
        },
        "incoming_stock_count": len(incoming_entries),
        "has_unlinked_incoming": bool(draft_incoming),
        "unlinked_incoming_count": len(draft_incoming),
        "unlinked_incoming_items": unlinked_items,
        "can_confirm": not draft_incoming,
        "confirm_block_reason": (
            f"{len(draft_incoming)} incoming stock item(s) not linked to vendor" if draft_incoming else None
        ),
        "shortage_info": {
            "has_shortage": bool(short_rows),
            "short_product_count": len(short_rows),
            "total_short_quantity": sum(r["shortage_qty"] for r in short_rows),
        },
    })


@router.post("/matrix/update-item", response_model=ApiResponse)
async def update_matrix_item(*, db: AsyncSession = Depends(get_db), data: MatrixItemUpdate) -> Any:
    """
    Set a store's quantity of a product for the week.

    Edits go to the store's newest order of the week holding the product
    (or its newest order); 0 removes the line. A matching open PreOrder
    line follows the new quantity and the PreOrder is confirmed once the
    order covers all of its products.
    """
    quantity = max(0, int(data.quantity))
    week = get_week_range(data.week_offset)
    product = await get_product_or_404(db, data.product_id)
    store = await get_store_or_404(db, data.store_id)

    candidates = (await db.execute(
        select(PreOrder).where(and_(PreOrder.store_id == store.id, *week_pre_order_conditions(week)))
        .order_by(PreOrder.created_at.desc())
    )).scalars().all()
    pre_order = next((p for p in candidates if any(i.product_id == product.id for i in p.items)), None)

    orders = await week_orders(db, week, store_id=store.id, regular_only=False)
    order = None
    existing_item = None
    for candidate in orders:
        existing_item = next((i for i in candidate.items if i.product_id == product.id), None)
        if existing_item is not None:
            order = candidate
            break
    if order is None and orders:
        order = orders[0]

    if quantity == 0:
        if order is not None and existing_item is not None:
            order.items.remove(existing_item)
            order.recalculate_total()
            refresh_payment_status(order)
            await rebuild_products(db, [product.id])
            await db.commit()
            await db.refresh(order)
            logger.info(f"Matrix removed {product.name} from {order.order_number}")
        return ApiResponse(message="Item removed from order", data={
            "order": build_order_response(order) if order is not None else None,
            "pre_order_handled": False,
        })

    pre_order_handled = False
    if pre_order is not None:
        for item in pre_order.items:
            if item.product_id == product.id:
                item.quantity = quantity
        pre_order.recalculate_total()
        pre_order_handled = True

    if order is None:
        unit_price = get_product_price_for_store(product, store.price_category, data.pricing_type)
        order = Order(
            store=store,
            items=[OrderItem(product_id=product.id, product_name=product.name, quantity=quantity,
                             pricing_type=data.pricing_type, unit_price=money(unit_price))],
            order_number=await generate_order_number(db),
            status="Processing",
            order_type="Regular",
            pre_order_id=pre_order.id if pre_order_handled else None,
            billing_address=store_address(store),
            shipping_address=store_address(store),
            shipping_cost=money(store.shipping_cost),
            payment_status="pending",
            payment_history=[],
            created_at=date_within_week(week),
        )
        db.add(order)
        message = "PreOrder converted to Order" if pre_order_handled else "New order created"
    elif existing_item is not None:
        # Existing lines keep their price
        existing_item.quantity = quantity
        message = "PreOrder quantity updated in Order" if pre_order_handled else "Order item quantity updated"
    else:
        unit_price = get_product_price_for_store(product, store.price_category, data.pricing_type)
        order.items.append(OrderItem(product_id=product.id, product_name=product.name, quantity=quantity,
                                     pricing_type=data.pricing_type, unit_price=money(unit_price)))
        message = "PreOrder item added to Order" if pre_order_handled else "New item added to existing order"

    order.recalculate_total()
    refresh_payment_status(order)
    await db.flush()

    if pre_order_handled:
        if not order.pre_order_id:
            order.pre_order_id = pre_order.id
        if not pre_order.order_id:
            pre_order.order_id = order.id
        ordered_products = {i.product_id for i in order.items}
        if all(i.product_id in ordered_products for i in pre_order.items):
            pre_order.confirmed = True
            pre_order.status = "confirmed"
            pre_order.order_id = order.id
            logger.info(f"PreOrder {pre_order.pre_order_number} fully covered by {order.order_number}")

    await rebuild_products(db, [product.id])
    await db.commit()
    await db.refresh(order)
    logger.info(f"Matrix set {store.display_name} / {product.name} = {quantity} on {order.order_number}")
    return ApiResponse(message=message, data={
        "order": build_order_response(order),
        "pre_order_handled": pre_order_handled,
        "pre_order_id": pre_order.id if pre_order_handled else None,
    })


@router.post("/matrix/update-preorder-item", response_model=ApiResponse)
async def update_matrix_pre_order_item(*, db: AsyncSession = Depends(get_db), data: MatrixItemUpdate) -> Any:
    """Set a store's PreOrder quantity of a product for the week; 0 removes the line."""
    quantity = max(0, int(data.quantity))
    week = get_week_range(data.week_offset)
    product = await get_product_or_404(db, data.product_id)
    store = await get_store_or_404(db, data.store_id)

    pre_order = (await db.execute(
        select(PreOrder).where(
            PreOrder.store_id == store.id,
            or_(
                and_(PreOrder.expected_delivery_date >= week["start"], PreOrder.expected_delivery_date <= week["end"]),
                and_(PreOrder.expected_delivery_date.is_(None),
                     PreOrder.created_at >= week["start"], PreOrder.created_at <= week["end"]),
            ),
            PreOrder.is_delete.is_not(True),
            PreOrder.confirmed.is_not(True),
        ).order_by(PreOrder.created_at.desc())
    )).scalars().first()
    existing_item = None
    if pre_order is not None:
        existing_item = next((i for i in pre_order.items if i.product_id == product.id), None)

    if quantity == 0:
        if existing_item is not None:
            pre_order.items.remove(existing_item)
            pre_order.recalculate_total()
            if not pre_order.items:
                pre_order.is_delete = True
            await db.commit()
            await db.refresh(pre_order)
        return ApiResponse(message="Item removed from PreOrder", data={
            "pre_order": build_pre_order_response(pre_order) if pre_order is not None else None,
            "mode": "preorder",
        })

    if pre_order is None:
        pre_order = PreOrder(
            store=store,
            items=[],
            pre_order_number=await generate_pre_order_number(db),
            status="pending",
            expected_delivery_date=week["end"],
        )
        db.add(pre_order)
        message = "New PreOrder created"
    elif existing_item is not None:
        message = "PreOrder item quantity updated"
    else:
        message = "New item added to existing PreOrder"

    if existing_item is not None:
        existing_item.quantity = quantity
    else:
        unit_price = get_product_price_for_store(product, store.price_category, data.pricing_type)
        pre_order.items.append(PreOrderItem(product_id=product.id, product_name=product.name, quantity=quantity,
                                            pricing_type=data.pricing_type, unit_price=money(unit_price)))
    pre_order.recalculate_total()

    await db.commit()
    await db.refresh(pre_order)
    logger.info(f"Matrix PreOrder {pre_order.pre_order_number}: {product.name} = {quantity}")
    return ApiResponse(message=message, data={"pre_order": build_pre_order_response(pre_order), "mode": "preorder"})


@router.get("/matrix/pending-review", response_model=ApiResponse)
async def get_pending_pre_orders(*, db: AsyncSession = Depends(get_db), week_offset: int = Query(0)) -> Any:
    """The week's open PreOrders, flat per item and grouped by store."""
    week = get_week_range(week_offset)
    pre_orders = (await db.execute(
        select(PreOrder).where(and_(*week_pre_order_conditions(week))).order_by(PreOrder.created_at.desc())
    )).scalars().all()

    items = []
    by_store: Dict[int, Dict[str, Any]] = {}
    for pre_order in pre_orders:
        store = pre_order.store
        group = by_store.setdefault(pre_order.store_id, {
            "store_id": pre_order.store_id,
            "store_name": store.display_name if store else None,
            "city": store.city if store else None,
            "state": store.state if store else None,
            "pre_orders": [],
            "item_count": 0,
            "total": 0.0,
        })
        group["pre_orders"].append({
            "id": pre_order.id,
            "pre_order_number": pre_order.pre_order_number,
            "item_count": len(pre_order.items),
            "total": money_float(pre_order.total_amount),
            "expected_delivery_date": pre_order.expected_delivery_date,
        })
        for item in pre_order.items:
            line_total = money_float(item.total)
            items.append({
                "pre_order_id": pre_order.id,
                "pre_order_number": pre_order.pre_order_number,
                "store_id": pre_order.store_id,
                "store_name": group["store_name"],
                "product_id": item.product_id,
                "product_name": item.product_name or "Unknown Product",
                "quantity": item.quantity,
                "unit_price": money_float(item.unit_price),
                "total": line_total,
                "created_at": pre_order.created_at,
                "expected_delivery_date": pre_order.expected_delivery_date,
            })
            group["item_count"] += 1
            group["total"] = round(group["total"] + line_total, 2)

    return ApiResponse(message=f"Found {len(pre_orders)} pending PreOrder(s)", data={
        "items": items,
        "stores": list(by_store.values()),
        "total_pre_orders": len(pre_orders),
        "total_items": len(items),
        "week_range": {"start": week["start"], "end": week["end"], "label": week["label"]},
    })


@router.post("/matrix/confirm-preorders", response_model=ApiResponse)
async def confirm_week_pre_orders(
    *,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_optional_user),
    data: ConfirmWeekRequest
) -> Any:
    """
    Confirm the week's open PreOrders (or the given ids) one by one, then
    build or extend the week's work order from the created orders.

    A PreOrder that fails validation or the stock check is reported in
    `errors` and left pending; the others are still confirmed.
    """
    week = get_week_range(data.week_offset)
    if data.pre_order_ids:
        conditions = [
            PreOrder.id.in_(data.pre_order_ids),
            PreOrder.confirmed.is_not(True),
            PreOrder.is_delete.is_not(True),
            PreOrder.status == "pending",
        ]
    else:
        conditions = week_pre_order_conditions(week)
    if data.store_id:
        conditions.append(PreOrder.store_id == data.store_id)

    pre_orders = (await db.execute(
        select(PreOrder).where(and_(*conditions)).order_by(PreOrder.created_at.asc(), PreOrder.id.asc())
    )).scalars().all()
    week_range = {"start": week["start"], "end": week["end"], "label": week["label"]}
    if not pre_orders:
        return ApiResponse(message="No pending PreOrders found for this week", data={
            "confirmed_count": 0,
            "pre_orders": [],
            "created_orders": [],
            "errors": [],
            "work_order": None,
            "week_range": week_range,
        })

    confirmed, created, errors = [], [], []
    for pre_order in pre_orders:
        store_name = pre_order.store.display_name if pre_order.store else None
        try:
            order, _ = await confirm_pre_order(db, pre_order)
        except HTTPException as exc:
            detail = exc.detail if isinstance(exc.detail, dict) else {"message": exc.detail}
            errors.append({
                "pre_order_id": pre_order.id,
                "pre_order_number": pre_order.pre_order_number,
                "store": store_name,
                "error": detail.get("message"),
                "insufficient_stock": detail.get("insufficient_stock"),
                "validation_errors": detail.get("errors"),
            })
            logger.warning(f"PreOrder {pre_order.pre_order_number} not confirmed: {detail.get('message')}")
            continue

        confirmed.append({
            "id": pre_order.id,
            "pre_order_number": pre_order.pre_order_number,
            "store": store_name,
            "item_count": len(pre_order.items),
            "total": money_float(pre_order.total_amount),
        })
        created.append({
            "id": order.id,
            "order_number": order.order_number,
            "store": store_name,
            "total": money_float(order.total),
        })

    work_order_info = None
    if created:
        work_order = await upsert_week_work_order(
            db, data.week_offset, [o["id"] for o in created], [p["id"] for p in confirmed], actor
        )
        await db.flush()
        work_order_info = {
            "id": work_order.id,
            "work_order_number": work_order.work_order_number,
            "has_shortage": work_order.has_shortage,
            "short_product_count": work_order.short_product_count,
            "total_shortage_quantity": work_order.total_shortage_quantity,
        }
    await db.commit()

    logger.info(f"Week {week['label']}: {len(confirmed)} PreOrder(s) confirmed, {len(errors)} failed")
    return ApiResponse(
        message=f"{len(confirmed)} PreOrder(s) confirmed and {len(created)} Order(s) created",
        data={
            "confirmed_count": len(confirmed),
            "pre_orders": confirmed,
            "created_orders": created,
            "errors": errors,
            "work_order": work_order_info,
            "week_range": week_range,
        }
    )

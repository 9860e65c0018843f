"""Product catalogue, stock ledger and pallet info"""

import logging
from typing import Any, Optional
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select, func, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from produce_app.core.deps import get_db
from produce_app.models.v1.order import Order, OrderItem
from produce_app.models.v1.product import Product
from produce_app.schemas.v1.common import ApiResponse, Page, page_of
from produce_app.schemas.v1.product import (
    ProductCreate, ProductUpdate, ProductResponse,
    TrashRequest, ManualAddRequest, RebuildHistoryRequest
)
from produce_app.services.money import money, money_float
from produce_app.services.pallet_calculator import (
    calculate_inventory_pallets, calculate_pallet_capacity, format_pallet_estimate
)
from produce_app.services.pricing import get_product_price_for_store
from produce_app.services.stock import calculate_actual_stock, get_week_range, rebuild_product_history

logger = logging.getLogger(__name__)

router = APIRouter()

PRICE_FIELDS = ("price", "price_per_box", "a_price", "b_price", "c_price", "restaurant_price")
PALLET_FIELDS = ("case_length", "case_width", "case_height", "case_weight",
                 "pallet_input_mode", "manual_cases_per_pallet")
SHORT_CODE_START = 100


async def generate_short_code(db: AsyncSession) -> str:
    """Next numeric short code, starting at 101."""
    result = await db.execute(select(Product.short_code).where(Product.short_code.is_not(None)))
    highest = SHORT_CODE_START
    for (code,) in result.all():
        if code.isdigit():
            highest = max(highest, int(code))
    return str(highest + 1)


async def get_product_or_404(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


async def ensure_short_code_free(db: AsyncSession, short_code: str, product_id: int = None) -> None:
    query = select(Product.id).where(Product.short_code == short_code)
    if product_id:
        query = query.where(Product.id != product_id)
    if (await db.execute(query)).first():
        raise HTTPException(status_code=400, detail=f"Short code {short_code} is already in use")


def pallet_info(product: Product, stock: dict) -> dict:
    capacity = {
        "cases_per_layer": product.cases_per_layer or 0,
        "layers_per_pallet": product.layers_per_pallet or 0,
        "total_cases_per_pallet": product.total_cases_per_pallet or 0,
        "is_manual": bool(product.pallet_is_manual),
    }
    estimate = calculate_inventory_pallets(stock["total_remaining"], capacity)
    return {
        "capacity": capacity,
        "dimensions_capacity": calculate_pallet_capacity(product.case_dimensions, product.case_weight or 0),
        "inventory": estimate,
        "display": format_pallet_estimate(estimate) if capacity["total_cases_per_pallet"] else format_pallet_estimate(None),
    }


def build_product_response(product: Product) -> ProductResponse:
    resp = ProductResponse.model_validate(product)
    stock = calculate_actual_stock(product)
    resp.stock = stock
    resp.pallet_estimate = pallet_info(product, stock)
    return resp


def apply_product_fields(product: Product, values: dict) -> None:
    for field, value in values.items():
        if field in PRICE_FIELDS and value is not None:
            value = money(value)
        setattr(product, field, value)
    if any(field in values for field in PALLET_FIELDS):
        product.refresh_pallet_capacity()


@router.get("/", response_model=ApiResponse[Page[ProductResponse]])
async def list_products(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None)
) -> Any:
    """Products with stock computed from the ledger"""
    conditions = []
    if category:
        conditions.append(Product.category == category)
    if search:
        conditions.append(or_(
            Product.name.ilike(f"%{search}%"),
            Product.short_code == search,
        ))

    query = select(Product)
    if conditions:
        query = query.where(and_(*conditions))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    result = await db.execute(query.order_by(Product.name.asc()).offset((page - 1) * limit).limit(limit))
    products = result.scalars().all()
    return ApiResponse(data=page_of([build_product_response(p) for p in products], total, page, limit))


@router.post("/", response_model=ApiResponse[ProductResponse])
async def create_product(*, db: AsyncSession = Depends(get_db), data: ProductCreate) -> Any:
    values = data.model_dump()
    if values.get("short_code"):
        await ensure_short_code_free(db, values["short_code"])
    else:
        values["short_code"] = await generate_short_code(db)

    product = Product(ledger_entries=[], purchase_logs=[])
    apply_product_fields(product, values)
    product.refresh_pallet_capacity()

    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info(f"Created product {product.name} ({product.short_code})")
    return ApiResponse(message="Product created", data=build_product_response(product))


@router.get("/categories", response_model=ApiResponse)
async def list_categories(*, db: AsyncSession = Depends(get_db)) -> Any:
    result = await db.execute(
        select(Product.category).where(Product.category.is_not(None)).distinct().order_by(Product.category)
    )
    return ApiResponse(data=[r[0] for r in result.all() if r[0]])


@router.post("/generate-short-codes", response_model=ApiResponse)
async def generate_missing_short_codes(*, db: AsyncSession = Depends(get_db)) -> Any:
    """Assign short codes to products that have none."""
    result = await db.execute(
        select(Product).where(or_(Product.short_code.is_(None), Product.short_code == "")).order_by(Product.id)
    )
    products = result.scalars().all()
    next_code = int(await generate_short_code(db))
    assigned = []
    for product in products:
        product.short_code = str(next_code)
        assigned.append({"id": product.id, "name": product.name, "short_code": product.short_code})
        next_code += 1

    await db.commit()
    logger.info(f"Assigned {len(assigned)} short codes")
    return ApiResponse(message=f"Assigned {len(assigned)} short codes", data=assigned)


@router.get("/by-code/{short_code}", response_model=ApiResponse[ProductResponse])
async def get_product_by_code(*, db: AsyncSession = Depends(get_db), short_code: str) -> Any:
    result = await db.execute(select(Product).where(Product.short_code == short_code))
    product = result.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return ApiResponse(data=build_product_response(product))


@router.get("/{product_id}", response_model=ApiResponse[ProductResponse])
async def get_product(*, db: AsyncSession = Depends(get_db), product_id: int) -> Any:
    product = await get_product_or_404(db, product_id)
    return ApiResponse(data=build_product_response(product))


@router.put("/{product_id}", response_model=ApiResponse[ProductResponse])
async def update_product(*, db: AsyncSession = Depends(get_db), product_id: int, data: ProductUpdate) -> Any:
    product = await get_product_or_404(db, product_id)
    values = data.model_dump(exclude_unset=True)
    if values.get("short_code"):
        await ensure_short_code_free(db, values["short_code"], product_id)

    apply_product_fields(product, values)
    await db.commit()
    await db.refresh(product)
    logger.info(f"Updated product {product.name}")
    return ApiResponse(message="Product updated", data=build_product_response(product))


@router.delete("/{product_id}", response_model=ApiResponse)
async def delete_product(*, db: AsyncSession = Depends(get_db), product_id: int) -> Any:
    product = await get_product_or_404(db, product_id)

    order_items_count = (await db.execute(
        select(func.count(OrderItem.id)).where(OrderItem.product_id == product_id)
    )).scalar() or 0
    if order_items_count:
        raise HTTPException(
            status_code=400,
            detail=f"Product is used by {order_items_count} order items and cannot be deleted"
        )

    await db.delete(product)
    await db.commit()
    logger.info(f"Deleted product {product_id}")
    return ApiResponse(message="Product deleted")


@router.post("/{product_id}/trash", response_model=ApiResponse[ProductResponse])
async def trash_product(*, db: AsyncSession = Depends(get_db), product_id: int, data: TrashRequest) -> Any:
    product = await get_product_or_404(db, product_id)
    product.add_ledger_entry(
        "trash", data.date or datetime.utcnow(),
        quantity=data.quantity, trash_type=data.trash_type, reason=data.reason,
    )
    await db.commit()
    await db.refresh(product)
    logger.info(f"Trashed {data.quantity} {data.trash_type} of {product.name}: {data.reason}")
    return ApiResponse(message="Trash recorded", data=build_product_response(product))


@router.post("/{product_id}/manual-add", response_model=ApiResponse[ProductResponse])
async def manual_add(*, db: AsyncSession = Depends(get_db), product_id: int, data: ManualAddRequest) -> Any:
    """Set the manual stock correction (replaces the previous one)."""
    product = await get_product_or_404(db, product_id)
    when = data.date or datetime.utcnow()
    if data.add_type == "unit":
        product.manually_add_unit = data.quantity
        product.manually_add_unit_date = when
    else:
        product.manually_add_box = data.quantity
        product.manually_add_box_date = when
    await db.commit()
    await db.refresh(product)
    logger.info(f"Manual {data.add_type} add for {product.name}: {data.quantity}")
    return ApiResponse(message="Manual quantity saved", data=build_product_response(product))


@router.post("/{product_id}/rebuild-history", response_model=ApiResponse)
async def rebuild_history(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    data: Optional[RebuildHistoryRequest] = None
) -> Any:
    product = await get_product_or_404(db, product_id)
    data = data or RebuildHistoryRequest()
    summary = await rebuild_product_history(db, product, data.date_from, data.date_to)
    await db.commit()
    return ApiResponse(message="Product history rebuilt", data=summary)


@router.get("/{product_id}/weekly-orders", response_model=ApiResponse)
async def get_weekly_orders(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    week_offset: int = Query(0)
) -> Any:
    """Order lines of the product placed in a week, newest first, with per-store totals."""
    product = await get_product_or_404(db, product_id)
    week = get_week_range(week_offset)
    result = await db.execute(
        select(OrderItem, Order)
        .join(Order, OrderItem.order_id == Order.id)
        .where(
            OrderItem.product_id == product.id,
            Order.is_delete.is_not(True),
            Order.created_at >= week["start"],
            Order.created_at <= week["end"],
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
    )

    lines = []
    stores = {}
    for item, order in result.all():
        store_name = order.store.display_name if order.store else None
        lines.append({
            "order_id": order.id,
            "order_number": order.order_number,
            "store_id": order.store_id,
            "store_name": store_name,
            "quantity": item.quantity,
            "pricing_type": item.pricing_type,
            "unit_price": money_float(item.unit_price),
            "total": money_float(item.total),
            "created_at": order.created_at,
        })
        totals = stores.setdefault(order.store_id, {
            "store_id": order.store_id, "store_name": store_name, "quantity": 0, "total": 0.0,
        })
        totals["quantity"] += item.quantity or 0
        totals["total"] = round(totals["total"] + money_float(item.total), 2)

    return ApiResponse(data={
        "product_id": product.id,
        "product_name": product.name,
        "week_range": {"start": week["start"], "end": week["end"], "label": week["label"]},
        "orders": lines,
        "stores": list(stores.values()),
        "total_quantity": sum(line["quantity"] or 0 for line in lines),
        "total_amount": round(sum(line["total"] for line in lines), 2),
    })


@router.get("/{product_id}/pallet-info", response_model=ApiResponse)
async def get_pallet_info(*, db: AsyncSession = Depends(get_db), product_id: int) -> Any:
    product = await get_product_or_404(db, product_id)
    stock = calculate_actual_stock(product)
    return ApiResponse(data={
        "product_id": product.id,
        "product_name": product.name,
        "case_dimensions": product.case_dimensions,
        "case_weight": product.case_weight or 0,
        "pallet_input_mode": product.pallet_input_mode,
        "current_stock": stock["total_remaining"],
        **pallet_info(product, stock),
    })


@router.get("/{product_id}/price", response_model=ApiResponse)
async def get_store_price(
    *,
    db: AsyncSession = Depends(get_db),
    product_id: int,
    price_category: str = Query("a_price"),
    pricing_type: str = Query("box", pattern="^(box|unit)$")
) -> Any:
    product = await get_product_or_404(db, product_id)
    price = get_product_price_for_store(product, price_category, pricing_type)
    return ApiResponse(data={
        "product_id": product.id,
        "price_category": price_category,
        "pricing_type": pricing_type,
        "price": money_float(price),
    })

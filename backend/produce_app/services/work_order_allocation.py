"""
Weekly allocation of available stock to store orders.

Everything here works on plain dicts so it can be computed (and tested)
without a database; the work order endpoints turn the result into rows.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping


def product_status(shortage: float, ordered: float) -> str:
    if shortage >= 0:
        return "full"
    if shortage > -ordered:
        return "partial"
    return "short"


def item_status(ordered: float, allocated: float) -> str:
    if ordered - allocated <= 0:
        return "full"
    return "partial" if allocated > 0 else "short"


def store_allocation_status(total_allocated: float, total_shortage: float) -> str:
    if total_shortage == 0:
        return "full"
    return "partial" if total_allocated > 0 else "short"


def group_store_orders(orders: Iterable[Mapping[str, Any]]) -> Dict[int, Dict[str, Any]]:
    """
    Merge order lines per store and product.

    Each order: {order_id, store_id, store_name, store_city, store_state,
    items: [{product_id, product_name, quantity}]}.
    """
    stores: Dict[int, Dict[str, Any]] = {}
    for order in orders:
        store = stores.setdefault(order["store_id"], {
            "store_id": order["store_id"],
            "store_name": order.get("store_name"),
            "store_city": order.get("store_city"),
            "store_state": order.get("store_state"),
            "order_id": order.get("order_id"),
            "items": {},
        })
        # The latest order of the store is the one shown for picking
        store["order_id"] = order.get("order_id")
        for line in order.get("items") or []:
            quantity = float(line.get("quantity") or 0)
            item = store["items"].setdefault(line["product_id"], {
                "product_id": line["product_id"],
                "product_name": line.get("product_name"),
                "ordered": 0.0,
            })
            item["ordered"] += quantity
    return stores


def allocate(orders: Iterable[Mapping[str, Any]],
             stock: Mapping[int, Mapping[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Allocate stock to store orders.

    `stock` maps product_id -> {product_name, current_stock, incoming_stock}.
    Products that are short are shared pro rata, smallest orders first:
    allocated = min(ordered, floor(available * ordered / total_ordered)),
    never more than what is left.

    Returns {"products": [...], "stores": [...]}.
    """
    stores = group_store_orders(orders)

    ordered_by_product: Dict[int, float] = {}
    for store in stores.values():
        for product_id, item in store["items"].items():
            ordered_by_product[product_id] = ordered_by_product.get(product_id, 0) + item["ordered"]

    products: List[Dict[str, Any]] = []
    for product_id, total_ordered in ordered_by_product.items():
        info = stock.get(product_id) or {}
        current = float(info.get("current_stock") or 0)
        incoming = float(info.get("incoming_stock") or 0)
        available = current + incoming
        shortage = available - total_ordered
        products.append({
            "product_id": product_id,
            "product_name": info.get("product_name"),
            "total_ordered": total_ordered,
            "total_available": available,
            "current_stock": current,
            "incoming_stock": incoming,
            "shortage": shortage,
            "status": product_status(shortage, total_ordered),
        })

    for store in stores.values():
        for item in store["items"].values():
            item.update(allocated=item["ordered"], shortage=0.0, status="full")

    for product in products:
        if product["shortage"] >= 0:
            continue
        items = sorted(
            (s["items"][product["product_id"]] for s in stores.values() if product["product_id"] in s["items"]),
            key=lambda i: i["ordered"],
        )
        remaining = product["total_available"]
        for item in items:
            if remaining <= 0:
                allocated = 0.0
            else:
                share = math.floor(product["total_available"] * item["ordered"] / product["total_ordered"])
                allocated = min(item["ordered"], share, remaining)
            remaining -= allocated
            item.update(
                allocated=allocated,
                shortage=item["ordered"] - allocated,
                status=item_status(item["ordered"], allocated),
            )

    store_rows: List[Dict[str, Any]] = []
    for store in stores.values():
        items = list(store["items"].values())
        total_ordered = sum(i["ordered"] for i in items)
        total_allocated = sum(i["allocated"] for i in items)
        total_shortage = sum(i["shortage"] for i in items)
        store_rows.append({
            "store_id": store["store_id"],
            "store_name": store["store_name"],
            "store_city": store["store_city"],
            "store_state": store["store_state"],
            "order_id": store["order_id"],
            "items": items,
            "total_ordered": total_ordered,
            "total_allocated": total_allocated,
            "total_shortage": total_shortage,
            "allocation_status": store_allocation_status(total_allocated, total_shortage),
        })

    return {"products": products, "stores": store_rows}

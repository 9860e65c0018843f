"""
Order line rules driven by a product's sales mode.

sales_mode:
- case: boxes only, whole quantities
- unit: loose units only (lb, oz, pieces ...)
- both: either; boxes still need whole quantities
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional


def _is_whole(quantity) -> bool:
    return float(quantity).is_integer()


def validate_order_item(product, item: Mapping[str, Any]) -> Dict[str, Any]:
    sales_mode = getattr(product, "sales_mode", None) or "both"
    quantity = item.get("quantity")
    pricing_type = item.get("pricing_type")

    if quantity is None:
        return {"valid": False, "error": "Quantity is required"}
    if quantity <= 0:
        return {"valid": False, "error": "Quantity must be greater than 0"}
    if not pricing_type:
        return {"valid": False, "error": "Pricing type is required"}

    if sales_mode == "case":
        if pricing_type == "unit":
            return {"valid": False, "error": "This product can only be ordered by case. Please select case/box pricing."}
        if not _is_whole(quantity) or quantity < 1:
            return {"valid": False, "error": "Case quantity must be a whole number (1 or more)"}
    elif sales_mode == "unit":
        if pricing_type == "box":
            return {"valid": False, "error": "This product can only be ordered by unit (lb, oz, pieces, etc.)"}
    else:
        if pricing_type == "box" and (not _is_whole(quantity) or quantity < 1):
            return {"valid": False, "error": "Case quantity must be a whole number (1 or more)"}

    return {"valid": True}


def validate_order_items(items: Optional[Iterable[Mapping[str, Any]]],
                         products_by_id: Mapping[int, Any]) -> Dict[str, Any]:
    items = list(items or [])
    if not items:
        return {"valid": False, "errors": [{"error": "Order must contain at least one item"}]}

    errors: List[Dict[str, Any]] = []
    for index, item in enumerate(items):
        product_id = item.get("product_id")
        product = products_by_id.get(product_id)
        if product is None:
            errors.append({"item_index": index, "product_id": product_id, "error": "Product not found"})
            continue

        result = validate_order_item(product, item)
        if not result["valid"]:
            errors.append({
                "item_index": index,
                "product_id": product_id,
                "product_name": getattr(product, "name", None) or "Unknown Product",
                "error": result["error"],
            })

    return {"valid": not errors, "errors": errors}


def get_allowed_pricing_types(sales_mode: Optional[str]) -> Dict[str, Any]:
    if sales_mode == "case":
        return {"allow_unit": False, "allow_case": True, "default": "box"}
    if sales_mode == "unit":
        return {"allow_unit": True, "allow_case": False, "default": "unit"}
    return {"allow_unit": True, "allow_case": True, "default": "box"}


def get_quantity_constraints(pricing_type: Optional[str]) -> Dict[str, Any]:
    if pricing_type == "unit":
        return {"min": 0.01, "step": 0.01, "allow_decimals": True}
    return {"min": 1, "step": 1, "allow_decimals": False}

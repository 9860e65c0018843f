"""
Pallet estimates for case goods on a standard 48 x 40 in pallet.

All figures are planning estimates: they ignore overhang, mixed loads and
carrier-specific limits.
"""

import math
from typing import Any, Dict, Optional

STANDARD_PALLET = {
    "length": 48,       # inches
    "width": 40,        # inches
    "max_height": 48,   # inches of stacked cases
    "max_weight": 2500,  # lbs
}

ORDER_PALLET_DISCLAIMER = "Pallet estimates are for planning purposes only - verify for actual shipping"


def _positive(value) -> bool:
    try:
        return value is not None and float(value) > 0 and not math.isnan(float(value))
    except (TypeError, ValueError):
        return False


def calculate_pallet_capacity(case_dimensions: Optional[Dict[str, float]],
                              case_weight: float = 0) -> Optional[Dict[str, Any]]:
    """
    Cases that fit on one pallet.

    Both orientations of the case on the pallet footprint are tried; layers
    are limited by stack height and, when a case weight is known, by the
    pallet weight limit.

    Returns None when a dimension is missing or not positive.
    """
    dims = case_dimensions or {}
    length, width, height = dims.get("length"), dims.get("width"), dims.get("height")
    if not (_positive(length) and _positive(width) and _positive(height)):
        return None

    orientation1 = math.floor(STANDARD_PALLET["length"] / length) * math.floor(STANDARD_PALLET["width"] / width)
    orientation2 = math.floor(STANDARD_PALLET["length"] / width) * math.floor(STANDARD_PALLET["width"] / length)
    cases_per_layer = max(orientation1, orientation2)

    if cases_per_layer == 0:
        return {
            "cases_per_layer": 0,
            "layers_per_pallet": 0,
            "total_cases_per_pallet": 0,
            "is_estimate": True,
            "error": "Case dimensions exceed pallet size",
        }

    layers_by_height = math.floor(STANDARD_PALLET["max_height"] / height)
    layers_by_weight = layers_by_height
    if _positive(case_weight):
        max_cases_by_weight = math.floor(STANDARD_PALLET["max_weight"] / case_weight)
        layers_by_weight = math.floor(max_cases_by_weight / cases_per_layer)

    layers_per_pallet = min(layers_by_height, layers_by_weight)

    return {
        "cases_per_layer": cases_per_layer,
        "layers_per_pallet": layers_per_pallet,
        "total_cases_per_pallet": cases_per_layer * layers_per_pallet,
        "is_estimate": True,
        "limited_by": "weight" if _positive(case_weight) and layers_by_weight < layers_by_height else "height",
        "pallet_dimensions": dict(STANDARD_PALLET),
        "used_orientation": "standard" if orientation1 >= orientation2 else "rotated",
    }


def calculate_pallets_needed(quantity: float, cases_per_pallet: int) -> Optional[Dict[str, Any]]:
    if not _positive(quantity) or not _positive(cases_per_pallet):
        return None

    full_pallets = int(quantity // cases_per_pallet)
    remainder = quantity % cases_per_pallet
    if float(remainder).is_integer():
        remainder = int(remainder)
    total_pallets = full_pallets + 1 if remainder > 0 else full_pallets
    total_capacity = total_pallets * cases_per_pallet

    return {
        "full_pallets": full_pallets,
        "partial_pallet_cases": remainder,
        "total_pallets": total_pallets,
        "utilization_percent": round(quantity / total_capacity * 100, 1),
        "is_estimate": True,
    }


def calculate_inventory_pallets(current_stock: float, pallet_capacity: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not current_stock or current_stock <= 0:
        return {"estimated_pallets": 0, "is_estimate": True}

    if not pallet_capacity or not pallet_capacity.get("total_cases_per_pallet"):
        return None

    result = calculate_pallets_needed(current_stock, pallet_capacity["total_cases_per_pallet"])
    if not result:
        return None

    return {
        "estimated_pallets": result["total_pallets"],
        "full_pallets": result["full_pallets"],
        "partial_pallet_cases": result["partial_pallet_cases"],
        "utilization_percent": result["utilization_percent"],
        "is_estimate": True,
    }


def format_pallet_estimate(pallet_info: Optional[Dict[str, Any]]) -> str:
    if not pallet_info:
        return "Dimensions required for pallet calculation"

    pallets = pallet_info.get("total_pallets") or pallet_info.get("estimated_pallets") or 0
    if pallets == 0:
        return "0 pallets"

    display = f"~{pallets} pallet{'s' if pallets != 1 else ''}"
    partial = pallet_info.get("partial_pallet_cases") or 0
    if partial > 0:
        display += f" ({pallet_info.get('full_pallets', 0)} full + {partial} cases)"
    return display + " (estimate)"


def product_pallet_capacity(product) -> Dict[str, Any]:
    """Capacity stored on a product, honouring its pallet input mode.

    In manual mode the entered cases-per-pallet wins; dimensions (when
    present) only tell how many layers that takes.
    """
    capacity = calculate_pallet_capacity(product.case_dimensions, product.case_weight or 0)

    if product.pallet_input_mode == "manual":
        cases_per_pallet = product.manual_cases_per_pallet or 0
        cases_per_layer = 0
        layers = 0
        if capacity and capacity.get("cases_per_layer"):
            cases_per_layer = capacity["cases_per_layer"]
            layers = math.ceil(cases_per_pallet / cases_per_layer)
        return {
            "cases_per_layer": cases_per_layer,
            "layers_per_pallet": layers,
            "total_cases_per_pallet": cases_per_pallet,
            "is_manual": True,
        }

    if not capacity or capacity.get("error"):
        return {
            "cases_per_layer": 0,
            "layers_per_pallet": 0,
            "total_cases_per_pallet": 0,
            "is_manual": False,
        }
    return {
        "cases_per_layer": capacity["cases_per_layer"],
        "layers_per_pallet": capacity["layers_per_pallet"],
        "total_cases_per_pallet": capacity["total_cases_per_pallet"],
        "is_manual": False,
    }

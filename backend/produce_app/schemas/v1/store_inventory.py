"""Store inventory schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

UNIT_TYPE_PATTERN = "^(box|unit)$"


class InventoryTransfer(BaseModel):
    from_store_id: int
    to_store_id: int
    product_id: int
    quantity: float = Field(..., gt=0)
    unit_type: str = Field("box", pattern=UNIT_TYPE_PATTERN)
    reason: Optional[str] = None


class InventoryAdjust(BaseModel):
    store_id: int
    product_id: int
    quantity: float = Field(..., gt=0)
    unit_type: str = Field("box", pattern=UNIT_TYPE_PATTERN)
    type: str = Field(..., pattern="^(add|remove)$")
    reason: Optional[str] = None


class StoreInventoryResponse(BaseModel):
    id: int
    store_id: int
    product_id: int
    product_name: Optional[str] = None
    product_category: Optional[str] = None
    product_unit: Optional[str] = None
    quantity: float = 0
    allocated: float = 0
    available: float = 0
    unit_quantity: float = 0
    unit_allocated: float = 0
    unit_available: float = 0
    min_stock: float = 5
    max_stock: float = 100
    reorder_point: float = 10
    location: Optional[str] = None
    stock_status: str
    movements: List[Dict[str, Any]] = []
    last_restocked: Optional[datetime] = None
    last_sold: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_inventory_response(row) -> StoreInventoryResponse:
    resp = StoreInventoryResponse.model_validate(row)
    if row.product is not None:
        resp.product_name = row.product.name
        resp.product_category = row.product.category
        resp.product_unit = row.product.unit
    return resp

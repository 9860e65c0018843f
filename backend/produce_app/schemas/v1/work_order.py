"""Work order schemas"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

WORK_ORDER_STATUS_PATTERN = "^(draft|confirmed|in_progress|completed|cancelled)$"


class WorkOrderCreate(BaseModel):
    week_offset: int = 0
    order_ids: List[int] = []
    pre_order_ids: List[int] = []
    notes: Optional[str] = None


class PickingUpdate(BaseModel):
    store_id: int
    product_id: int
    picked: bool


class ResolveShortageRequest(BaseModel):
    product_id: int
    additional_quantity: float = Field(..., gt=0)
    notes: Optional[str] = None


class WorkOrderStatusUpdate(BaseModel):
    status: str = Field(..., pattern=WORK_ORDER_STATUS_PATTERN)
    notes: Optional[str] = None


class WorkOrderStoreItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    ordered: float = 0
    allocated: float = 0
    shortage: float = 0
    status: str
    picked: bool = False
    picked_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WorkOrderStoreResponse(BaseModel):
    id: int
    store_id: int
    store_name: Optional[str] = None
    store_city: Optional[str] = None
    store_state: Optional[str] = None
    order_id: Optional[int] = None
    total_ordered: float = 0
    total_allocated: float = 0
    total_shortage: float = 0
    allocation_status: str
    picking_status: str
    picking_started_at: Optional[datetime] = None
    picking_completed_at: Optional[datetime] = None
    items: List[WorkOrderStoreItemResponse] = []

    class Config:
        from_attributes = True


class WorkOrderProductResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    total_ordered: float = 0
    total_available: float = 0
    current_stock: float = 0
    incoming_stock: float = 0
    shortage: float = 0
    status: str
    resolved_at: Optional[datetime] = None
    resolved_quantity: Optional[float] = 0
    resolution_notes: Optional[str] = None

    class Config:
        from_attributes = True


class WorkOrderResponse(BaseModel):
    id: int
    work_order_number: str
    week_start: datetime
    week_end: datetime
    week_label: Optional[str] = None
    status: str
    total_products: int = 0
    total_stores: int = 0
    total_orders: int = 0
    total_pre_orders: int = 0
    has_shortage: bool = False
    short_product_count: int = 0
    total_shortage_quantity: float = 0
    shortage_percentage: int = 0
    confirmed_order_ids: List[int] = []
    confirmed_pre_order_ids: List[int] = []
    confirmed_at: Optional[datetime] = None
    confirmed_by_name: Optional[str] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    products: List[WorkOrderProductResponse] = []
    store_allocations: List[WorkOrderStoreResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

"""Incoming stock schemas"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class IncomingStockAdd(BaseModel):
    product_id: int
    quantity: float
    week_offset: int = 0
    notes: Optional[str] = None


class IncomingStockLink(BaseModel):
    vendor_id: int
    unit_price: float = Field(default=0, ge=0)
    create_purchase_order: bool = False


class BulkLinkItem(BaseModel):
    incoming_stock_id: int
    # Defaults to the request's vendor_id
    vendor_id: Optional[int] = None
    unit_price: float = Field(default=0, ge=0)
    quantity: Optional[float] = None


class BulkLinkRequest(BaseModel):
    vendor_id: Optional[int] = None
    items: List[BulkLinkItem] = []
    create_purchase_order: bool = True


class IncomingStockReceive(BaseModel):
    received_quantity: Optional[float] = Field(None, ge=0)


class IncomingStockResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: float
    week_start: datetime
    week_end: datetime
    status: str
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None
    unit_price: float = 0
    total_price: float = 0
    purchase_order_id: Optional[int] = None
    linked_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    received_quantity: Optional[float] = None
    notes: Optional[str] = None
    is_linked: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_incoming_response(entry) -> IncomingStockResponse:
    resp = IncomingStockResponse.model_validate(entry)
    resp.product_name = entry.product.name if entry.product else None
    resp.vendor_name = entry.vendor.name if entry.vendor else None
    resp.is_linked = entry.status in ("linked", "received")
    return resp

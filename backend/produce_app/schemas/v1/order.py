"""Order and PreOrder schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

PRICING_TYPE_PATTERN = "^(box|unit)$"
ORDER_STATUS_PATTERN = "^(Processing|Shipped|Delivered|Cancelled)$"
ORDER_TYPE_PATTERN = "^(Regular|PreOrder)$"


class OrderItemCreate(BaseModel):
    product_id: int
    quantity: float
    pricing_type: str = Field(default="box", pattern=PRICING_TYPE_PATTERN)
    # Defaults to the store's price for the product
    unit_price: Optional[float] = Field(None, ge=0)
    product_name: Optional[str] = None


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: float
    pricing_type: str
    unit_price: float
    total: float
    deleted_quantity: Optional[float] = None
    deleted_total: Optional[float] = None

    class Config:
        from_attributes = True


class OrderCreate(BaseModel):
    store_id: int
    items: List[OrderItemCreate] = []
    status: str = Field(default="Processing", pattern=ORDER_STATUS_PATTERN)
    order_type: str = Field(default="Regular", pattern=ORDER_TYPE_PATTERN)
    order_number: Optional[str] = None
    shipping_cost: Optional[float] = Field(None, ge=0)
    billing_address: Optional[Dict[str, Any]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    pre_order_id: Optional[int] = None


class OrderUpdate(BaseModel):
    """Items, when given, replace the order lines"""
    items: Optional[List[OrderItemCreate]] = None
    status: Optional[str] = Field(None, pattern=ORDER_STATUS_PATTERN)
    billing_address: Optional[Dict[str, Any]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    shipping_cost: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    plate_count: Optional[int] = Field(None, ge=0)


class PaymentUpdate(BaseModel):
    method: str = Field(..., pattern="^(cash|creditcard|cheque)$")
    amount_paid: float = Field(..., ge=0)
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    payment_date: Optional[datetime] = None


class OrderDeleteRequest(BaseModel):
    reason: str = ""


class OrderTypeUpdate(BaseModel):
    order_type: str = Field(..., pattern=ORDER_TYPE_PATTERN)


class ShippingUpdate(BaseModel):
    """With plate_count, shipping_cost is the price per plate."""
    shipping_cost: float = Field(..., ge=0)
    plate_count: Optional[int] = Field(None, ge=0)


class PalletUpdate(BaseModel):
    pallet_data: Optional[Dict[str, Any]] = None
    plate_count: Optional[int] = Field(None, ge=0)


class OrderResponse(BaseModel):
    id: int
    order_number: str
    store_id: int
    store_name: str = ""
    pre_order_id: Optional[int] = None
    status: str
    order_type: str
    total: float
    items_total: float = 0
    shipping_cost: float = 0
    credit_applied: float = 0
    payment_status: str
    payment_amount: float = 0
    payment_method: Optional[str] = None
    payment_transaction_id: Optional[str] = None
    payment_notes: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_history: List[Dict[str, Any]] = []
    plate_count: Optional[int] = 0
    billing_address: Optional[Dict[str, Any]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    pallet_data: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    is_delete: bool = False
    deleted_reason: Optional[str] = None
    deleted_amount: Optional[float] = None
    items: List[OrderItemResponse] = []
    pallet_estimate: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MatrixItemUpdate(BaseModel):
    store_id: int
    product_id: int
    quantity: float = Field(..., ge=0)
    week_offset: int = 0
    pricing_type: str = Field(default="box", pattern=PRICING_TYPE_PATTERN)


# PreOrders

class PreOrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: float
    pricing_type: str
    unit_price: float
    total: float

    class Config:
        from_attributes = True


class PreOrderCreate(BaseModel):
    store_id: int
    items: List[OrderItemCreate] = []
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None


class PreOrderUpdate(BaseModel):
    items: Optional[List[OrderItemCreate]] = None
    expected_delivery_date: Optional[datetime] = None
    notes: Optional[str] = None
    status: Optional[str] = Field(None, pattern="^(pending|cancelled)$")


class PreOrderResponse(BaseModel):
    id: int
    pre_order_number: str
    store_id: int
    store_name: str = ""
    status: str
    confirmed: bool = False
    order_id: Optional[int] = None
    expected_delivery_date: Optional[datetime] = None
    total_amount: float = 0
    notes: Optional[str] = None
    is_delete: bool = False
    items: List[PreOrderItemResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ConfirmWeekRequest(BaseModel):
    week_offset: int = 0
    store_id: Optional[int] = None
    pre_order_ids: Optional[List[int]] = None

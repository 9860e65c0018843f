"""Purchase order schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

PO_STATUS_PATTERN = "^(pending|quality-check|approved|received|cancelled)$"
QUALITY_STATUS_PATTERN = "^(pending|approved|rejected)$"
REJECTION_REASON_PATTERN = "^(damaged|spoiled|wrong_item|quality_issue|short_shipment|other)$"
PAYMENT_METHOD_PATTERN = "^(cash|creditcard|cheque)$"


class PurchaseOrderItemCreate(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    quantity: float = Field(..., gt=0)
    unit_price: float = Field(default=0, ge=0)
    quality_status: str = Field(default="pending", pattern=QUALITY_STATUS_PATTERN)
    quality_notes: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, pattern=REJECTION_REASON_PATTERN)
    batch_number: Optional[str] = None
    expected_weight: Optional[float] = None
    actual_weight: Optional[float] = None
    lb: Optional[float] = Field(None, ge=0)


class PurchaseOrderCreate(BaseModel):
    vendor_id: int
    purchase_order_number: Optional[str] = None
    purchase_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    status: str = Field(default="quality-check", pattern=PO_STATUS_PATTERN)
    items: List[PurchaseOrderItemCreate] = []
    notes: Optional[str] = None


class PurchaseOrderUpdate(BaseModel):
    """Items, when given, replace the purchase order lines"""
    purchase_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    status: Optional[str] = Field(None, pattern=PO_STATUS_PATTERN)
    items: Optional[List[PurchaseOrderItemCreate]] = None
    notes: Optional[str] = None


class ItemQualityUpdate(BaseModel):
    quality_status: str = Field(..., pattern=QUALITY_STATUS_PATTERN)
    quality_notes: Optional[str] = None
    rejection_reason: Optional[str] = Field(None, pattern=REJECTION_REASON_PATTERN)
    quantity: Optional[float] = Field(None, gt=0)
    actual_weight: Optional[float] = None
    lb: Optional[float] = Field(None, ge=0)
    batch_number: Optional[str] = None


class PurchasePaymentUpdate(BaseModel):
    method: str = Field(..., pattern=PAYMENT_METHOD_PATTERN)
    amount_paid: float = Field(..., ge=0)
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class ApplyPurchaseCreditRequest(BaseModel):
    amount: float = Field(..., gt=0)
    credit_memo_id: Optional[int] = None
    notes: Optional[str] = None


class PurchaseOrderItemResponse(BaseModel):
    id: int
    product_id: int
    product_name: Optional[str] = None
    quantity: float
    unit_price: float
    total_price: float
    quality_status: str
    quality_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    batch_number: Optional[str] = None
    expected_weight: Optional[float] = None
    actual_weight: Optional[float] = None
    weight_variance: Optional[float] = None
    lb: Optional[float] = None
    total_weight: Optional[float] = None
    approved_quantity: Optional[float] = 0

    class Config:
        from_attributes = True


class PurchaseOrderResponse(BaseModel):
    id: int
    purchase_order_number: str
    vendor_id: int
    vendor_name: Optional[str] = None
    purchase_date: datetime
    delivery_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    status: str
    payment_status: str
    payment_amount: float = 0
    payment_method: Optional[str] = None
    payment_notes: Optional[str] = None
    total_amount: float
    total_credit_applied: float = 0
    outstanding_amount: float = 0
    credit_adjustments: List[Dict[str, Any]] = []
    notes: Optional[str] = None
    items: List[PurchaseOrderItemResponse] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

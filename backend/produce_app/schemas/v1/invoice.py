"""Vendor invoice schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

INVOICE_STATUS_PATTERN = "^(pending|matched|disputed|approved|partially_paid|paid|cancelled)$"


class InvoiceLineItem(BaseModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    # Used for matching when no product is linked
    description: Optional[str] = None
    quantity: float = Field(default=0, ge=0)
    unit_price: float = Field(default=0, ge=0)
    total: Optional[float] = None


class InvoiceCreate(BaseModel):
    vendor_id: int
    vendor_invoice_number: Optional[str] = None
    purchase_order_ids: List[int] = []
    invoice_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    line_items: List[InvoiceLineItem] = []
    subtotal: Optional[float] = Field(None, ge=0)
    tax_amount: float = Field(default=0, ge=0)
    shipping_amount: float = Field(default=0, ge=0)
    discount_amount: float = Field(default=0, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class InvoiceUpdate(BaseModel):
    vendor_invoice_number: Optional[str] = None
    purchase_order_ids: Optional[List[int]] = None
    invoice_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    line_items: Optional[List[InvoiceLineItem]] = None
    subtotal: Optional[float] = Field(None, ge=0)
    tax_amount: Optional[float] = Field(None, ge=0)
    shipping_amount: Optional[float] = Field(None, ge=0)
    discount_amount: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class InvoiceApprove(BaseModel):
    approval_notes: Optional[str] = None


class InvoiceDispute(BaseModel):
    dispute_reason: str = ""
    put_on_hold: bool = False


class InvoiceMatchRequest(BaseModel):
    price_tolerance: Optional[float] = Field(None, ge=0)
    quantity_tolerance: Optional[float] = Field(None, ge=0)
    approval_threshold: Optional[float] = Field(None, ge=0)


class InvoiceResponse(BaseModel):
    id: int
    invoice_number: str
    vendor_invoice_number: Optional[str] = None
    vendor_id: int
    vendor_name: Optional[str] = None
    purchase_order_ids: List[int] = []
    invoice_date: datetime
    due_date: Optional[datetime] = None
    line_items: List[Dict[str, Any]] = []
    subtotal: float = 0
    tax_amount: float = 0
    shipping_amount: float = 0
    discount_amount: float = 0
    total_amount: float
    amount_paid: float = 0
    amount_remaining: float = 0
    status: str
    matching_status: Optional[str] = None
    matching_details: Optional[Dict[str, Any]] = None
    matched_at: Optional[datetime] = None
    on_hold: bool = False
    hold_reason: Optional[str] = None
    dispute_reason: Optional[str] = None
    approved_at: Optional[datetime] = None
    approval_notes: Optional[str] = None
    notes: Optional[str] = None
    is_overdue: bool = False
    days_until_due: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_invoice_response(invoice) -> InvoiceResponse:
    resp = InvoiceResponse.model_validate(invoice)
    resp.vendor_name = invoice.vendor.name if invoice.vendor else None
    resp.purchase_order_ids = [po.id for po in invoice.purchase_orders]
    return resp

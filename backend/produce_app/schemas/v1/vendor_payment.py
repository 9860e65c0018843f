"""Vendor payment schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

PAYMENT_METHOD_PATTERN = "^(cash|check|credit_card|ach|wire|other)$"
CHECK_STATUS_PATTERN = "^(pending|cleared|bounced)$"


class InvoicePaymentLine(BaseModel):
    invoice_id: int
    amount: float = Field(..., gt=0)


class AppliedCredit(BaseModel):
    credit_memo_id: int
    amount: float = Field(..., gt=0)


class VendorPaymentCreate(BaseModel):
    vendor_id: int
    invoice_payments: List[InvoicePaymentLine] = []
    payment_method: str = Field(..., pattern=PAYMENT_METHOD_PATTERN)
    check_number: Optional[str] = None
    reference: Optional[str] = None
    payment_date: Optional[datetime] = None
    applied_credits: List[AppliedCredit] = []
    apply_early_payment_discount: bool = False
    notes: Optional[str] = None


class CheckStatusUpdate(BaseModel):
    status: str = Field(..., pattern=CHECK_STATUS_PATTERN)
    reason: Optional[str] = None


class VendorPaymentVoid(BaseModel):
    void_reason: str = ""


class DiscountPreviewRequest(BaseModel):
    vendor_id: int
    invoice_ids: List[int] = []
    payment_date: Optional[datetime] = None


class VendorPaymentAllocationResponse(BaseModel):
    id: int
    invoice_id: int
    invoice_number: Optional[str] = None
    amount: float
    remaining_after_payment: Optional[float] = None

    class Config:
        from_attributes = True


class VendorPaymentResponse(BaseModel):
    id: int
    payment_number: str
    vendor_id: int
    vendor_name: Optional[str] = None
    payment_date: datetime
    payment_method: str
    check_number: Optional[str] = None
    check_clearance_status: Optional[str] = None
    check_cleared_at: Optional[datetime] = None
    bounce_reason: Optional[str] = None
    reference: Optional[str] = None
    gross_amount: float
    credit_applied: float = 0
    discount_amount: float = 0
    net_amount: float
    applied_credits: List[Dict[str, Any]] = []
    status: str
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    notes: Optional[str] = None
    can_void: bool = False
    allocations: List[VendorPaymentAllocationResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_vendor_payment_response(payment) -> VendorPaymentResponse:
    resp = VendorPaymentResponse.model_validate(payment)
    resp.vendor_name = payment.vendor.name if payment.vendor else None
    return resp

"""Adjustment schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

ADJUSTMENT_TYPE_PATTERN = "^(credit|debit|write_off|correction|refund|discount)$"
REASON_CATEGORY_PATTERN = (
    "^(pricing_error|damaged_goods|returned_goods|customer_goodwill|promotional_credit|bad_debt|"
    "duplicate_payment|overpayment|underpayment|service_issue|billing_error|other)$"
)


class AdjustmentCreate(BaseModel):
    store_id: Optional[int] = None
    vendor_id: Optional[int] = None
    adjustment_type: str = Field(..., pattern=ADJUSTMENT_TYPE_PATTERN)
    amount: float = Field(..., gt=0)
    reason_category: str = Field("other", pattern=REASON_CATEGORY_PATTERN)
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    requires_approval: bool = True


class AdjustmentUpdate(BaseModel):
    adjustment_type: Optional[str] = Field(None, pattern=ADJUSTMENT_TYPE_PATTERN)
    amount: Optional[float] = Field(None, gt=0)
    reason_category: Optional[str] = Field(None, pattern=REASON_CATEGORY_PATTERN)
    reason: Optional[str] = None
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None


class AdjustmentApprove(BaseModel):
    notes: Optional[str] = None


class AdjustmentReject(BaseModel):
    rejection_reason: str = ""


class AdjustmentVoid(BaseModel):
    void_reason: str = ""


class AdjustmentResponse(BaseModel):
    id: int
    adjustment_number: str
    store_id: Optional[int] = None
    store_name: Optional[str] = None
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None
    adjustment_type: str
    amount: float
    signed_amount: float
    reason_category: str
    reason: str
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    reference_number: Optional[str] = None
    status: str
    requires_approval: bool = True
    approved_at: Optional[datetime] = None
    approved_by_name: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    applied_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    balance_before: Optional[float] = None
    balance_after: Optional[float] = None
    audit_log: List[Dict[str, Any]] = []
    created_by_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_adjustment_response(adjustment) -> AdjustmentResponse:
    resp = AdjustmentResponse.model_validate(adjustment)
    resp.store_name = adjustment.store.display_name if adjustment.store else None
    resp.vendor_name = adjustment.vendor.name if adjustment.vendor else None
    return resp

"""Vendor credit memo schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

MEMO_TYPE_PATTERN = "^(credit|debit)$"
REASON_CATEGORY_PATTERN = (
    "^(quality_issue|short_shipment|price_correction|return|spoilage|bruising|size_variance|"
    "temperature_damage|pest_damage|ripeness_issues|weight_variance|other)$"
)


class VendorCreditMemoCreate(BaseModel):
    memo_type: str = Field(default="credit", pattern=MEMO_TYPE_PATTERN)
    vendor_id: int
    purchase_order_id: Optional[int] = None
    invoice_id: Optional[int] = None
    reason_category: str = Field(default="other", pattern=REASON_CATEGORY_PATTERN)
    description: Optional[str] = None
    line_items: List[Dict[str, Any]] = []
    subtotal: Optional[float] = Field(None, ge=0)
    amount: float = Field(..., gt=0)
    notes: Optional[str] = None
    submit_for_approval: bool = False


class VendorCreditMemoUpdate(BaseModel):
    reason_category: Optional[str] = Field(None, pattern=REASON_CATEGORY_PATTERN)
    description: Optional[str] = None
    line_items: Optional[List[Dict[str, Any]]] = None
    subtotal: Optional[float] = Field(None, ge=0)
    amount: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = None


class VendorCreditMemoApprove(BaseModel):
    approval_notes: Optional[str] = None


class VendorCreditMemoVoid(BaseModel):
    void_reason: str = ""


class VendorCreditMemoResponse(BaseModel):
    id: int
    memo_number: str
    memo_type: str
    vendor_id: int
    vendor_name: Optional[str] = None
    purchase_order_id: Optional[int] = None
    invoice_id: Optional[int] = None
    reason_category: str
    description: Optional[str] = None
    line_items: List[Dict[str, Any]] = []
    subtotal: float = 0
    amount: float
    applied_amount: float = 0
    remaining_amount: float = 0
    status: str
    approved_at: Optional[datetime] = None
    approved_by_name: Optional[str] = None
    approval_notes: Optional[str] = None
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None
    applications: List[Dict[str, Any]] = []
    notes: Optional[str] = None
    can_edit: bool = False
    can_approve: bool = False
    can_void: bool = False
    can_apply: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_vendor_credit_memo_response(memo) -> VendorCreditMemoResponse:
    resp = VendorCreditMemoResponse.model_validate(memo)
    resp.vendor_name = memo.vendor.name if memo.vendor else None
    return resp

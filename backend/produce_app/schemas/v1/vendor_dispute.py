"""Vendor dispute schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

DISPUTE_TYPE_PATTERN = "^(quality|quantity|pricing|delivery|documentation|other)$"
PRIORITY_PATTERN = "^(low|medium|high|urgent)$"
RESOLUTION_TYPE_PATTERN = "^(credit_issued|replacement|price_adjustment|no_action|other)$"
# resolved is reached through the resolve action only
SETTABLE_STATUSES = ("open", "in_progress", "pending_vendor", "escalated", "closed")


class VendorDisputeCreate(BaseModel):
    vendor_id: int
    purchase_order_id: Optional[int] = None
    invoice_id: Optional[int] = None
    dispute_type: str = Field(..., pattern=DISPUTE_TYPE_PATTERN)
    priority: str = Field("medium", pattern=PRIORITY_PATTERN)
    description: str = Field(..., min_length=1)
    disputed_amount: float = Field(0, ge=0)
    put_invoices_on_hold: bool = False
    affected_invoice_ids: List[int] = []
    due_date: Optional[datetime] = None


class DisputeStatusUpdate(BaseModel):
    status: str
    notes: Optional[str] = None


class DisputeCommunication(BaseModel):
    message: str = ""
    is_internal: bool = False
    attachments: List[str] = []


class DisputeResolve(BaseModel):
    resolution_notes: str = ""
    resolution_type: Optional[str] = Field(None, pattern=RESOLUTION_TYPE_PATTERN)
    credit_memo_id: Optional[int] = None
    resolution_amount: Optional[float] = None
    release_invoice_holds: bool = True


class DisputeEscalate(BaseModel):
    escalation_reason: str = ""
    escalated_to: Optional[str] = None


class VendorDisputeResponse(BaseModel):
    id: int
    dispute_number: str
    vendor_id: int
    vendor_name: Optional[str] = None
    purchase_order_id: Optional[int] = None
    invoice_id: Optional[int] = None
    dispute_type: str
    priority: str
    status: str
    description: str
    disputed_amount: float = 0
    put_invoices_on_hold: bool = False
    affected_invoice_ids: List[int] = []
    communications: List[Dict[str, Any]] = []
    resolution_type: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolution_amount: Optional[float] = None
    credit_memo_id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    resolved_by_name: Optional[str] = None
    escalated_at: Optional[datetime] = None
    escalation_reason: Optional[str] = None
    escalated_to: Optional[str] = None
    due_date: Optional[datetime] = None
    can_edit: bool = False
    can_resolve: bool = False
    can_escalate: bool = False
    is_overdue: bool = False
    days_open: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_vendor_dispute_response(dispute) -> VendorDisputeResponse:
    resp = VendorDisputeResponse.model_validate(dispute)
    resp.vendor_name = dispute.vendor.name if dispute.vendor else None
    return resp

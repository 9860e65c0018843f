"""Quality issue schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

ISSUE_TYPE_PATTERN = "^(damaged|wrong_item|missing_item|quality|expired|other)$"
REQUESTED_ACTION_PATTERN = "^(refund|replacement|credit|adjustment)$"
ISSUE_STATUS_PATTERN = "^(pending|under_review|approved|partially_approved|rejected|resolved)$"


class QualityIssueCreate(BaseModel):
    order_id: int
    store_id: Optional[int] = Field(None, description="Admins may file on behalf of a store")
    issue_type: str = Field(..., pattern=ISSUE_TYPE_PATTERN)
    description: str = Field(..., min_length=1)
    affected_items: List[Dict[str, Any]] = []
    requested_action: str = Field("credit", pattern=REQUESTED_ACTION_PATTERN)
    requested_amount: float = Field(0, ge=0)
    images: List[str] = []


class QualityIssueMessage(BaseModel):
    message: str = Field(..., min_length=1)


class QualityIssueStatusUpdate(BaseModel):
    status: str = Field(..., pattern=ISSUE_STATUS_PATTERN)
    admin_notes: Optional[str] = None


class QualityIssueResolve(BaseModel):
    status: str = Field(..., pattern=ISSUE_STATUS_PATTERN)
    approved_amount: float = Field(0, ge=0)
    resolution: str = ""
    create_credit_memo: bool = False


class QualityIssueResponse(BaseModel):
    id: int
    store_id: int
    store_name: Optional[str] = None
    order_id: int
    order_number: Optional[str] = None
    issue_type: str
    description: str
    affected_items: List[Dict[str, Any]] = []
    requested_action: str
    requested_amount: float = 0
    images: List[str] = []
    status: str
    admin_notes: Optional[str] = None
    resolution: Optional[str] = None
    approved_amount: float = 0
    resolved_at: Optional[datetime] = None
    resolved_by_name: Optional[str] = None
    credit_memo_created: bool = False
    communications: List[Dict[str, Any]] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_quality_issue_response(issue) -> QualityIssueResponse:
    resp = QualityIssueResponse.model_validate(issue)
    resp.store_name = issue.store.display_name if issue.store else None
    return resp

"""Store credit memo and store credit schemas"""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

REFUND_METHOD_PATTERN = "^(store_credit|refund|replacement)$"


class CreditMemoItem(BaseModel):
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: float = 0
    unit_price: float = 0
    total: Optional[float] = None
    reason: Optional[str] = None


class CreditMemoCreate(BaseModel):
    order_id: int
    credit_memo_number: Optional[str] = None
    memo_date: Optional[datetime] = None
    customer_name: Optional[str] = None
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None
    refund_method: str = Field("store_credit", pattern=REFUND_METHOD_PATTERN)
    total_amount: Optional[float] = Field(None, ge=0)
    items: List[CreditMemoItem] = []


class CreditMemoUpdate(BaseModel):
    status: Optional[str] = Field(None, pattern="^(pending|processed)$")
    reason: Optional[str] = None
    notes: Optional[str] = None
    refund_method: Optional[str] = Field(None, pattern=REFUND_METHOD_PATTERN)
    items: Optional[List[CreditMemoItem]] = None
    total_amount: Optional[float] = Field(None, ge=0)


class CreditMemoProcess(BaseModel):
    process_notes: Optional[str] = None


class ApplyStoreCreditRequest(BaseModel):
    store_id: Optional[int] = None
    order_id: Optional[int] = None
    amount: Optional[float] = None


class CreditMemoResponse(BaseModel):
    id: int
    credit_memo_number: str
    memo_date: Optional[datetime] = None
    order_id: int
    store_id: int
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    reason: str
    notes: Optional[str] = None
    refund_method: str
    total_amount: float
    items: List[Dict[str, Any]] = []
    status: str
    processed_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    process_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def items_payload(items: List[CreditMemoItem]) -> List[Dict[str, Any]]:
    """Line dicts for the JSON column; a missing total is quantity x unit price."""
    lines = []
    for item in items:
        line = item.model_dump()
        if line["total"] is None:
            line["total"] = round(item.quantity * item.unit_price, 2)
        lines.append(line)
    return lines

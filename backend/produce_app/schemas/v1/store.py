"""Store account schemas"""

from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field


class StoreRegister(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    store_name: Optional[str] = None
    owner_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    business_description: Optional[str] = None
    role: str = Field(default="store", pattern="^(member|store|admin)$")
    price_category: str = "a_price"
    shipping_cost: float = Field(default=0, ge=0)


class LoginRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=6)


class StoreUpdate(BaseModel):
    """Profile fields; password and credit balance are not editable here"""
    name: Optional[str] = None
    phone: Optional[str] = None
    store_name: Optional[str] = None
    owner_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    business_description: Optional[str] = None
    price_category: Optional[str] = Field(None, pattern="^(a_price|b_price|c_price|restaurant_price)$")
    shipping_cost: Optional[float] = Field(None, ge=0)
    status: Optional[str] = Field(None, pattern="^(active|inactive|suspended)$")
    credit_limit: Optional[float] = Field(None, ge=0)
    payment_terms_days: Optional[int] = Field(None, ge=0)
    interest_rate: Optional[float] = Field(None, ge=0)
    credit_status: Optional[str] = Field(None, pattern="^(active|suspended|revoked)$")


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class CreditEntryResponse(BaseModel):
    id: int
    entry_type: str
    amount: float
    reference_id: Optional[int] = None
    reference_model: Optional[str] = None
    reason: Optional[str] = None
    balance_before: float
    balance_after: float
    performed_by: Optional[int] = None
    performed_by_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StoreResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    store_name: Optional[str] = None
    owner_name: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    business_description: Optional[str] = None
    role: str
    price_category: str
    shipping_cost: float = 0
    approval_status: str
    registration_ref: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    status: str
    last_login: Optional[datetime] = None
    credit_balance: float = 0
    credit_limit: float = 0
    payment_terms_days: Optional[int] = None
    interest_rate: Optional[float] = None
    credit_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    token: str
    user: StoreResponse


class StoreCreditInfo(BaseModel):
    store_id: int
    store_name: str
    credit_balance: float
    credit_history: List[dict] = []
    pending_credits: List[dict] = []


class CommunicationLogCreate(BaseModel):
    type: Optional[str] = None
    subject: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[str] = None
    created_by_name: Optional[str] = None


class PaymentRecordCreate(BaseModel):
    amount: Optional[float] = None
    type: str = "cash"
    reference: Optional[str] = None
    notes: Optional[str] = None
    order_id: Optional[int] = None

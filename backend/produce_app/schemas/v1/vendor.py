"""Vendor schemas"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

VENDOR_TYPE_PATTERN = "^(farmer|supplier|distributor|other)$"
VENDOR_STATUS_PATTERN = "^(active|inactive|on_hold|blacklisted)$"
PAYMENT_TERMS_PATTERN = "^(cod|net15|net30|net45|net60|custom)$"


class VendorBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    vendor_type: str = Field(default="supplier", pattern=VENDOR_TYPE_PATTERN)
    status: str = Field(default="active", pattern=VENDOR_STATUS_PATTERN)
    payment_terms: str = Field(default="net30", pattern=PAYMENT_TERMS_PATTERN)
    custom_terms_days: Optional[int] = Field(None, ge=0)
    early_discount_percentage: float = Field(default=0, ge=0, le=100)
    early_discount_within_days: int = Field(default=0, ge=0)
    min_quality_score: float = 90
    min_fill_rate: float = 95
    min_on_time_rate: float = 95
    notes: Optional[str] = None


class VendorCreate(VendorBase):
    pass


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    vendor_type: Optional[str] = Field(None, pattern=VENDOR_TYPE_PATTERN)
    status: Optional[str] = Field(None, pattern=VENDOR_STATUS_PATTERN)
    payment_terms: Optional[str] = Field(None, pattern=PAYMENT_TERMS_PATTERN)
    custom_terms_days: Optional[int] = Field(None, ge=0)
    early_discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    early_discount_within_days: Optional[int] = Field(None, ge=0)
    min_quality_score: Optional[float] = None
    min_fill_rate: Optional[float] = None
    min_on_time_rate: Optional[float] = None
    notes: Optional[str] = None


class VendorResponse(VendorBase):
    id: int
    due_days: int = 30
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def build_vendor_response(vendor) -> VendorResponse:
    return VendorResponse.model_validate(vendor)

"""Product and stock ledger schemas"""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field

SALES_MODE_PATTERN = "^(case|unit|both)$"


class ProductBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    short_code: Optional[str] = Field(None, max_length=20)
    category: Optional[str] = None
    unit: str = "lb"
    description: Optional[str] = None
    origin: Optional[str] = None
    organic: bool = False
    threshold: float = Field(default=0, ge=0)

    price: float = Field(default=0, ge=0)
    price_per_box: float = Field(default=0, ge=0)
    a_price: float = Field(default=0, ge=0)
    b_price: float = Field(default=0, ge=0)
    c_price: float = Field(default=0, ge=0)
    restaurant_price: float = Field(default=0, ge=0)

    sales_mode: str = Field(default="both", pattern=SALES_MODE_PATTERN)

    case_length: float = Field(default=0, ge=0)
    case_width: float = Field(default=0, ge=0)
    case_height: float = Field(default=0, ge=0)
    case_weight: float = Field(default=0, ge=0)
    pallet_input_mode: str = Field(default="auto", pattern="^(auto|manual)$")
    manual_cases_per_pallet: int = Field(default=0, ge=0)

    carry_forward_box: float = 0
    carry_forward_unit: float = 0


class ProductCreate(ProductBase):
    pass


class ProductUpdate(BaseModel):
    """Partial update; running counters are never written directly"""
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    short_code: Optional[str] = Field(None, max_length=20)
    category: Optional[str] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    origin: Optional[str] = None
    organic: Optional[bool] = None
    threshold: Optional[float] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    price_per_box: Optional[float] = Field(None, ge=0)
    a_price: Optional[float] = Field(None, ge=0)
    b_price: Optional[float] = Field(None, ge=0)
    c_price: Optional[float] = Field(None, ge=0)
    restaurant_price: Optional[float] = Field(None, ge=0)
    sales_mode: Optional[str] = Field(None, pattern=SALES_MODE_PATTERN)
    case_length: Optional[float] = Field(None, ge=0)
    case_width: Optional[float] = Field(None, ge=0)
    case_height: Optional[float] = Field(None, ge=0)
    case_weight: Optional[float] = Field(None, ge=0)
    pallet_input_mode: Optional[str] = Field(None, pattern="^(auto|manual)$")
    manual_cases_per_pallet: Optional[int] = Field(None, ge=0)
    carry_forward_box: Optional[float] = None
    carry_forward_unit: Optional[float] = None


class ProductResponse(ProductBase):
    id: int
    short_code: Optional[str] = None
    cases_per_layer: int = 0
    layers_per_pallet: int = 0
    total_cases_per_pallet: int = 0
    pallet_is_manual: bool = False

    total_purchase: float = 0
    total_sell: float = 0
    remaining: float = 0
    unit_purchase: float = 0
    unit_sell: float = 0
    unit_remaining: float = 0
    manually_add_box: float = 0
    manually_add_box_date: Optional[datetime] = None
    manually_add_unit: float = 0
    manually_add_unit_date: Optional[datetime] = None

    # Computed
    stock: Optional[Dict[str, Any]] = None
    pallet_estimate: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TrashRequest(BaseModel):
    quantity: float = Field(..., gt=0)
    trash_type: str = Field(default="box", pattern="^(box|unit)$")
    reason: Optional[str] = None
    date: Optional[datetime] = None


class ManualAddRequest(BaseModel):
    quantity: float
    add_type: str = Field(default="box", pattern="^(box|unit)$")
    date: Optional[datetime] = None


class RebuildHistoryRequest(BaseModel):
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

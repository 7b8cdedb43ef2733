# cabinetry/schemas/quote.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field

from cabinetry.schemas.common import ORMModel


class QuoteCreate(BaseModel):
    customer_name: str = Field(min_length=1, max_length=200)
    customer_email: EmailStr
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    user_id: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=4000)
    valid_until: Optional[date] = None


class QuoteUpdate(BaseModel):
    customer_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=4000)
    valid_until: Optional[date] = None


class QuoteItemIn(BaseModel):
    item_name: Optional[str] = Field(default=None, max_length=200)
    job_reference: Optional[str] = Field(default=None, max_length=120)
    cabinet_type_id: Optional[str] = None
    door_style_id: Optional[str] = None
    color_id: Optional[str] = None
    finish_id: Optional[str] = None
    width_mm: Optional[int] = Field(default=None, gt=0)
    height_mm: Optional[int] = Field(default=None, gt=0)
    depth_mm: Optional[int] = Field(default=None, gt=0)
    quantity: int = Field(default=1, ge=1)
    production_option_ids: List[str] = []
    hardware: Dict[str, Any] = {}
    assembly: Optional[str] = Field(default=None, pattern=r"^(none|carcass|with_doors)$")
    # explicit price skips the calculator (custom work)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)


class QuoteItemUpdate(BaseModel):
    item_name: Optional[str] = Field(default=None, max_length=200)
    job_reference: Optional[str] = Field(default=None, max_length=120)
    door_style_id: Optional[str] = None
    color_id: Optional[str] = None
    finish_id: Optional[str] = None
    width_mm: Optional[int] = Field(default=None, gt=0)
    height_mm: Optional[int] = Field(default=None, gt=0)
    depth_mm: Optional[int] = Field(default=None, gt=0)
    quantity: Optional[int] = Field(default=None, ge=1)
    production_option_ids: Optional[List[str]] = None
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=2000)


class QuoteItemOut(ORMModel):
    id: str
    line_number: int
    item_name: str
    job_reference: Optional[str]
    cabinet_type_id: Optional[str]
    door_style_id: Optional[str]
    color_id: Optional[str]
    finish_id: Optional[str]
    width_mm: Optional[int]
    height_mm: Optional[int]
    depth_mm: Optional[int]
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    configuration: Dict[str, Any]
    notes: Optional[str]


class QuoteVersionOut(ORMModel):
    id: str
    version_number: int
    status: str
    changes_requested: Optional[str]
    created_by: Optional[str]
    created_at: Optional[datetime]


class QuoteSummary(ORMModel):
    id: str
    quote_number: str
    customer_name: str
    customer_email: str
    status: str
    version_number: int
    total_amount: Decimal
    valid_until: Optional[date]
    created_at: Optional[datetime]


class QuoteOut(QuoteSummary):
    user_id: Optional[str]
    customer_phone: Optional[str]
    subtotal: Decimal
    tax_amount: Decimal
    sent_at: Optional[datetime]
    viewed_at: Optional[datetime]
    accepted_at: Optional[datetime]
    rejected_at: Optional[datetime]
    rejection_reason: Optional[str]
    converted_order_id: Optional[str]
    source_cart_id: Optional[str]
    notes: Optional[str]
    pdf_url: Optional[str]
    items: List[QuoteItemOut] = []


class QuoteDetail(QuoteOut):
    versions: List[QuoteVersionOut] = []


class AcceptQuoteIn(BaseModel):
    payment_option: str = Field(default="deposit", pattern=r"^(full|deposit|milestones)$")
    shipping_address_id: Optional[str] = None
    billing_address_id: Optional[str] = None


class RejectQuoteIn(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=2000)


class ChangeRequestIn(BaseModel):
    changes: str = Field(min_length=3, max_length=4000)


class QuoteToCartIn(BaseModel):
    item_ids: Optional[List[str]] = None


class ExpireResult(BaseModel):
    expired: int

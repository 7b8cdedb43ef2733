# cabinetry/schemas/cart.py
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from cabinetry.schemas.common import ORMModel


class ItemConfigIn(BaseModel):
    cabinet_type_id: str
    width_mm: int = Field(gt=0)
    height_mm: int = Field(gt=0)
    depth_mm: int = Field(gt=0)
    quantity: int = Field(default=1, ge=1)
    door_style_id: Optional[str] = None
    color_id: Optional[str] = None
    finish_id: Optional[str] = None
    production_option_ids: List[str] = []
    hardware: Dict[str, Any] = {}
    assembly: Optional[str] = Field(default=None, pattern=r"^(none|carcass|with_doors)$")
    notes: Optional[str] = Field(default=None, max_length=2000)


class CartItemUpdate(BaseModel):
    width_mm: Optional[int] = Field(default=None, gt=0)
    height_mm: Optional[int] = Field(default=None, gt=0)
    depth_mm: Optional[int] = Field(default=None, gt=0)
    quantity: Optional[int] = Field(default=None, ge=1)
    door_style_id: Optional[str] = None
    color_id: Optional[str] = None
    finish_id: Optional[str] = None
    production_option_ids: Optional[List[str]] = None
    hardware: Optional[Dict[str, Any]] = None
    assembly: Optional[str] = Field(default=None, pattern=r"^(none|carcass|with_doors)$")
    notes: Optional[str] = Field(default=None, max_length=2000)


class PriceOverrideIn(BaseModel):
    unit_price: Decimal = Field(ge=0)
    reason: str = Field(min_length=3, max_length=500)


class CartItemOut(ORMModel):
    id: str
    cart_id: str
    cabinet_type_id: str
    door_style_id: Optional[str]
    color_id: Optional[str]
    finish_id: Optional[str]
    width_mm: int
    height_mm: int
    depth_mm: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    configuration: Dict[str, Any]
    notes: Optional[str]
    price_override: Optional[Decimal]
    override_reason: Optional[str]


class CartCreate(BaseModel):
    name: str = Field(default="My Cart", min_length=1, max_length=200)
    make_primary: bool = False


class CartOut(ORMModel):
    id: str
    user_id: str
    name: str
    status: str
    is_primary: bool
    source: str
    total_amount: Decimal
    notes: Optional[str]
    converted_quote_id: Optional[str]
    converted_order_id: Optional[str]
    last_activity_at: Optional[datetime]
    abandoned_at: Optional[datetime] = None
    abandon_reason: Optional[str] = None
    items: List[CartItemOut] = []


class CartSummary(ORMModel):
    id: str
    name: str
    status: str
    is_primary: bool
    source: str
    total_amount: Decimal
    last_activity_at: Optional[datetime]


class CartToQuoteIn(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)
    customer_phone: Optional[str] = None


class CheckoutIn(BaseModel):
    shipping_address_id: str
    billing_address_id: Optional[str] = None
    payment_option: str = Field(default="deposit", pattern=r"^(full|deposit|milestones)$")
    include_shipping: bool = True
    tail_lift: bool = False
    notes: Optional[str] = Field(default=None, max_length=2000)


class ConsolidationResult(BaseModel):
    kept_cart_id: Optional[str]
    actions: List[Dict[str, Any]] = []


class AbandonSweepResult(BaseModel):
    abandoned: int

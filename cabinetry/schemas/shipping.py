# cabinetry/schemas/shipping.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from cabinetry.domain.geo import DEFAULT_CENTER
from cabinetry.schemas.common import ORMModel

POSTCODE = r"^\d{4}$"


class PostcodeZoneIn(BaseModel):
    postcode: str = Field(pattern=POSTCODE)
    suburb: Optional[str] = Field(default=None, max_length=120)
    state: str = Field(min_length=2, max_length=10)
    zone: str = Field(default="METRO", max_length=32)
    metro: bool = True
    remote: bool = False
    delivery_eligible: bool = True
    lead_time_days: Optional[int] = Field(default=None, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class PostcodeZoneUpdate(BaseModel):
    suburb: Optional[str] = Field(default=None, max_length=120)
    state: Optional[str] = Field(default=None, min_length=2, max_length=10)
    zone: Optional[str] = Field(default=None, max_length=32)
    metro: Optional[bool] = None
    remote: Optional[bool] = None
    delivery_eligible: Optional[bool] = None
    lead_time_days: Optional[int] = Field(default=None, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class PostcodeAssemblyUpdate(BaseModel):
    assembly_eligible: Optional[bool] = None
    assembly_carcass_base: Optional[Decimal] = Field(default=None, ge=0)
    assembly_doors_base: Optional[Decimal] = Field(default=None, ge=0)
    assembly_carcass_surcharge_pct: Optional[Decimal] = Field(default=None, ge=0)
    assembly_doors_surcharge_pct: Optional[Decimal] = Field(default=None, ge=0)


class PostcodeZoneOut(ORMModel):
    id: str
    postcode: str
    suburb: Optional[str]
    state: str
    zone: str
    metro: bool
    remote: bool
    delivery_eligible: bool
    lead_time_days: Optional[int]
    latitude: Optional[float]
    longitude: Optional[float]
    assembly_eligible: bool
    assembly_carcass_base: Optional[Decimal]
    assembly_doors_base: Optional[Decimal]
    assembly_carcass_surcharge_pct: Decimal
    assembly_doors_surcharge_pct: Decimal
    assignment_method: Optional[str]
    assigned_zone_id: Optional[str]
    last_assignment_date: Optional[datetime]


class PostcodeImportIn(BaseModel):
    rows: List[Dict[str, Any]] = Field(min_length=1)


class AssemblyZoneIn(BaseModel):
    zone_name: str = Field(min_length=1, max_length=200)
    center_latitude: float = Field(default=DEFAULT_CENTER.latitude, ge=-90, le=90)
    center_longitude: float = Field(default=DEFAULT_CENTER.longitude, ge=-180, le=180)
    radius_km: float = Field(default=50, gt=0)
    carcass_surcharge_pct: Decimal = Field(default=Decimal("15"), ge=0)
    doors_surcharge_pct: Decimal = Field(default=Decimal("20"), ge=0)
    active: bool = True


class AssemblyZoneUpdate(BaseModel):
    zone_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    center_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    center_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    radius_km: Optional[float] = Field(default=None, gt=0)
    carcass_surcharge_pct: Optional[Decimal] = Field(default=None, ge=0)
    doors_surcharge_pct: Optional[Decimal] = Field(default=None, ge=0)
    active: Optional[bool] = None


class AssemblyZoneOut(ORMModel):
    id: str
    zone_name: str
    center_latitude: float
    center_longitude: float
    radius_km: float
    carcass_surcharge_pct: Decimal
    doors_surcharge_pct: Decimal
    active: bool
    affected_postcodes_count: int
    last_applied_at: Optional[datetime]


class RadiusPreviewIn(BaseModel):
    center_latitude: float = Field(ge=-90, le=90)
    center_longitude: float = Field(ge=-180, le=180)
    radius_km: float = Field(gt=0)
    geocode_missing: bool = False


class RadiusApplyIn(BaseModel):
    override_manual: bool = False


class RateCardIn(BaseModel):
    carrier: str = Field(min_length=1, max_length=120)
    service_name: str = Field(min_length=1, max_length=120)
    zone_from: str = Field(min_length=1, max_length=32)
    zone_to: str = Field(min_length=1, max_length=32)
    base_price: Decimal = Field(default=Decimal("0"), ge=0)
    per_kg: Decimal = Field(default=Decimal("0"), ge=0)
    per_cubic_m: Decimal = Field(default=Decimal("0"), ge=0)
    minimum_charge: Decimal = Field(default=Decimal("0"), ge=0)
    fuel_levy_pct: Decimal = Field(default=Decimal("0"), ge=0)
    residential_surcharge: Decimal = Field(default=Decimal("0"), ge=0)
    tail_lift_fee: Decimal = Field(default=Decimal("0"), ge=0)
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    active: bool = True


class RateCardOut(ORMModel, RateCardIn):
    id: str


class EligibilityIn(BaseModel):
    postcode: str


class ShippingQuoteIn(BaseModel):
    postcode: str
    cart_id: Optional[str] = None
    residential: bool = True
    tail_lift: bool = False


class ShippingQuoteOut(BaseModel):
    carrier: str
    service_name: str
    zone_from: str
    zone_to: str
    weight_kg: Decimal
    cubic_m3: Decimal
    ex_gst: Decimal
    gst: Decimal
    total: Decimal
    lead_time_days: int

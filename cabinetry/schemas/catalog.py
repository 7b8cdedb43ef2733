# cabinetry/schemas/catalog.py
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from cabinetry.schemas.common import ORMModel


class CabinetPartIn(BaseModel):
    part_name: str = Field(min_length=1, max_length=120)
    quantity: int = Field(default=1, ge=1)
    cost_formula: Optional[str] = Field(default=None, max_length=500)
    is_door: bool = False
    is_hardware: bool = False


class CabinetPartOut(ORMModel):
    id: str
    part_name: str
    quantity: int
    cost_formula: Optional[str]
    is_door: bool
    is_hardware: bool


class ProductionOptionIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    additional_cost: Decimal = Field(default=Decimal("0"), ge=0)
    active: bool = True


class ProductionOptionOut(ORMModel):
    id: str
    cabinet_type_id: str
    name: str
    additional_cost: Decimal
    active: bool


class CabinetTypeBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=64)
    short_description: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    door_count: int = Field(default=0, ge=0)
    drawer_count: int = Field(default=0, ge=0)
    default_width_mm: int = Field(gt=0)
    default_height_mm: int = Field(gt=0)
    default_depth_mm: int = Field(gt=0)
    min_width_mm: Optional[int] = Field(default=None, gt=0)
    max_width_mm: Optional[int] = Field(default=None, gt=0)
    min_height_mm: Optional[int] = Field(default=None, gt=0)
    max_height_mm: Optional[int] = Field(default=None, gt=0)
    min_depth_mm: Optional[int] = Field(default=None, gt=0)
    max_depth_mm: Optional[int] = Field(default=None, gt=0)
    left_side_width_mm: Optional[int] = None
    right_side_width_mm: Optional[int] = None
    left_side_depth_mm: Optional[int] = None
    right_side_depth_mm: Optional[int] = None
    material_rate_per_sqm: Optional[Decimal] = Field(default=None, ge=0)
    door_rate_per_sqm: Optional[Decimal] = Field(default=None, ge=0)
    price_method: Literal["area", "parts"] = "area"
    assembly_available: bool = True
    active: bool = True
    display_order: int = 0

    @model_validator(mode="after")
    def _ranges(self):
        for dim in ("width", "height", "depth"):
            lo = getattr(self, f"min_{dim}_mm")
            hi = getattr(self, f"max_{dim}_mm")
            if lo is not None and hi is not None and lo > hi:
                raise ValueError(f"min_{dim}_mm cannot exceed max_{dim}_mm")
        return self


class CabinetTypeCreate(CabinetTypeBase):
    parts: List[CabinetPartIn] = []


class CabinetTypeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[str] = None
    short_description: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    door_count: Optional[int] = Field(default=None, ge=0)
    drawer_count: Optional[int] = Field(default=None, ge=0)
    default_width_mm: Optional[int] = Field(default=None, gt=0)
    default_height_mm: Optional[int] = Field(default=None, gt=0)
    default_depth_mm: Optional[int] = Field(default=None, gt=0)
    min_width_mm: Optional[int] = None
    max_width_mm: Optional[int] = None
    min_height_mm: Optional[int] = None
    max_height_mm: Optional[int] = None
    min_depth_mm: Optional[int] = None
    max_depth_mm: Optional[int] = None
    material_rate_per_sqm: Optional[Decimal] = Field(default=None, ge=0)
    door_rate_per_sqm: Optional[Decimal] = Field(default=None, ge=0)
    price_method: Optional[Literal["area", "parts"]] = None
    assembly_available: Optional[bool] = None
    active: Optional[bool] = None
    display_order: Optional[int] = None


class CabinetTypeOut(ORMModel, CabinetTypeBase):
    id: str


class CabinetTypeDetail(CabinetTypeOut):
    parts: List[CabinetPartOut] = []
    production_options: List[ProductionOptionOut] = []


class DoorStyleIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    base_rate_per_sqm: Decimal = Field(ge=0)
    active: bool = True


class DoorStyleOut(ORMModel, DoorStyleIn):
    id: str


class ColorIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    hex_code: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")
    door_style_id: Optional[str] = None
    surcharge_rate_per_sqm: Decimal = Field(default=Decimal("0"), ge=0)
    active: bool = True


class ColorOut(ORMModel, ColorIn):
    id: str


class FinishIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    finish_type: str = "standard"
    door_style_id: Optional[str] = None
    rate_per_sqm: Decimal = Field(default=Decimal("0"), ge=0)
    active: bool = True


class FinishOut(ORMModel, FinishIn):
    id: str


class GlobalSettingIn(BaseModel):
    setting_key: str = Field(min_length=1, max_length=100)
    setting_value: str = Field(max_length=200)
    description: Optional[str] = None


class GlobalSettingOut(ORMModel, GlobalSettingIn):
    id: str


class PricePreviewIn(BaseModel):
    cabinet_type_id: str
    width_mm: int = Field(gt=0)
    height_mm: int = Field(gt=0)
    depth_mm: int = Field(gt=0)
    quantity: int = Field(default=1, ge=1)
    door_style_id: Optional[str] = None
    color_id: Optional[str] = None
    finish_id: Optional[str] = None
    production_option_ids: List[str] = []


class PriceBreakdownOut(BaseModel):
    method: str
    quantity: int
    area_sqm: Decimal
    material: Decimal
    doors: Decimal
    hardware: Decimal
    surcharges: Decimal
    base: Decimal
    options: Decimal
    unit_price: Decimal
    total_price: Decimal
    option_ids: List[str] = []

# cabinetry/models/catalog.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cabinetry.db import Base
from cabinetry.models.common import MONEY, IdMixin, TimestampMixin


class CabinetType(IdMixin, TimestampMixin, Base):
    __tablename__ = "cabinet_types"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    short_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    base_price: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    door_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    drawer_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    default_width_mm: Mapped[int] = mapped_column(Integer, nullable=False)
    default_height_mm: Mapped[int] = mapped_column(Integer, nullable=False)
    default_depth_mm: Mapped[int] = mapped_column(Integer, nullable=False)
    min_width_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_width_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_height_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_height_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    min_depth_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    max_depth_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # corner cabinets
    left_side_width_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    right_side_width_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    left_side_depth_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    right_side_depth_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    material_rate_per_sqm: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    door_rate_per_sqm: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    # "area" (dimension formula) or "parts" (per-part cost formulas)
    price_method: Mapped[str] = mapped_column(String(20), nullable=False, default="area")

    assembly_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    parts: Mapped[List["CabinetPart"]] = relationship(
        "CabinetPart",
        back_populates="cabinet_type",
        cascade="all, delete-orphan",
        order_by="CabinetPart.part_name",
    )
    production_options: Mapped[List["ProductionOption"]] = relationship(
        "ProductionOption",
        back_populates="cabinet_type",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<CabinetType id={self.id} name={self.name!r}>"


class CabinetPart(IdMixin, TimestampMixin, Base):
    __tablename__ = "cabinet_parts"

    cabinet_type_id: Mapped[str] = mapped_column(
        ForeignKey("cabinet_types.id", ondelete="CASCADE"), index=True, nullable=False
    )
    part_name: Mapped[str] = mapped_column(String(120), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    cost_formula: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_door: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_hardware: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    cabinet_type: Mapped["CabinetType"] = relationship("CabinetType", back_populates="parts")


class DoorStyle(IdMixin, TimestampMixin, Base):
    __tablename__ = "door_styles"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    base_rate_per_sqm: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Color(IdMixin, TimestampMixin, Base):
    __tablename__ = "colors"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    hex_code: Mapped[Optional[str]] = mapped_column(String(7), nullable=True)
    door_style_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("door_styles.id", ondelete="SET NULL"), nullable=True
    )
    surcharge_rate_per_sqm: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Finish(IdMixin, TimestampMixin, Base):
    __tablename__ = "finishes"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    finish_type: Mapped[str] = mapped_column(String(64), nullable=False, default="standard")
    door_style_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("door_styles.id", ondelete="SET NULL"), nullable=True
    )
    rate_per_sqm: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ProductionOption(IdMixin, TimestampMixin, Base):
    __tablename__ = "production_options"

    cabinet_type_id: Mapped[str] = mapped_column(
        ForeignKey("cabinet_types.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    additional_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    cabinet_type: Mapped["CabinetType"] = relationship(
        "CabinetType", back_populates="production_options"
    )


class GlobalSetting(IdMixin, TimestampMixin, Base):
    __tablename__ = "global_settings"

    setting_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    setting_value: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

# cabinetry/models/shipping.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from cabinetry.db import Base
from cabinetry.models.common import MONEY, PCT, IdMixin, TimestampMixin


class PostcodeZone(IdMixin, TimestampMixin, Base):
    __tablename__ = "postcode_zones"

    postcode: Mapped[str] = mapped_column(String(4), unique=True, index=True, nullable=False)
    suburb: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    state: Mapped[str] = mapped_column(String(10), nullable=False)
    zone: Mapped[str] = mapped_column(String(32), nullable=False, default="METRO")
    metro: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    remote: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivery_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    lead_time_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    assembly_eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assembly_carcass_base: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    assembly_doors_base: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    assembly_carcass_surcharge_pct: Mapped[Decimal] = mapped_column(PCT, nullable=False, default=Decimal("0"))
    assembly_doors_surcharge_pct: Mapped[Decimal] = mapped_column(PCT, nullable=False, default=Decimal("0"))

    # manual | radius | NULL
    assignment_method: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    assigned_zone_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("assembly_surcharge_zones.id", ondelete="SET NULL"), nullable=True
    )
    last_assignment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<PostcodeZone {self.postcode} {self.suburb or ''} {self.state}>"


class AssemblySurchargeZone(IdMixin, TimestampMixin, Base):
    __tablename__ = "assembly_surcharge_zones"

    zone_name: Mapped[str] = mapped_column(String(200), nullable=False)
    center_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    center_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    radius_km: Mapped[float] = mapped_column(Float, nullable=False)
    carcass_surcharge_pct: Mapped[Decimal] = mapped_column(PCT, nullable=False, default=Decimal("0"))
    doors_surcharge_pct: Mapped[Decimal] = mapped_column(PCT, nullable=False, default=Decimal("0"))
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    affected_postcodes_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_applied_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class RateCard(IdMixin, TimestampMixin, Base):
    __tablename__ = "rate_cards"

    carrier: Mapped[str] = mapped_column(String(120), nullable=False)
    service_name: Mapped[str] = mapped_column(String(120), nullable=False)
    zone_from: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    zone_to: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    base_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    per_kg: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    per_cubic_m: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    minimum_charge: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    fuel_levy_pct: Mapped[Decimal] = mapped_column(PCT, nullable=False, default=Decimal("0"))
    residential_surcharge: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    tail_lift_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    effective_from: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    effective_to: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

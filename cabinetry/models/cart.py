# cabinetry/models/cart.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cabinetry.db import Base
from cabinetry.models.common import MONEY, IdMixin, TimestampMixin

CART_STATUSES = ("active", "archived", "converted", "abandoned")


class Cart(IdMixin, TimestampMixin, Base):
    __tablename__ = "carts"

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False, default="My Cart")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # web | quote_conversion | admin
    source: Mapped[str] = mapped_column(String(32), nullable=False, default="web")
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    converted_quote_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    converted_order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    abandoned_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    abandon_reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    items: Mapped[List["CartItem"]] = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.created_at",
    )

    def __repr__(self) -> str:
        return f"<Cart id={self.id} status={self.status} items={len(self.items)}>"


class CartItem(IdMixin, TimestampMixin, Base):
    __tablename__ = "cart_items"

    cart_id: Mapped[str] = mapped_column(
        ForeignKey("carts.id", ondelete="CASCADE"), index=True, nullable=False
    )
    cabinet_type_id: Mapped[str] = mapped_column(ForeignKey("cabinet_types.id"), nullable=False)
    door_style_id: Mapped[Optional[str]] = mapped_column(ForeignKey("door_styles.id"), nullable=True)
    color_id: Mapped[Optional[str]] = mapped_column(ForeignKey("colors.id"), nullable=True)
    finish_id: Mapped[Optional[str]] = mapped_column(ForeignKey("finishes.id"), nullable=True)

    width_mm: Mapped[int] = mapped_column(Integer, nullable=False)
    height_mm: Mapped[int] = mapped_column(Integer, nullable=False)
    depth_mm: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    # production_options, hardware, assembly, breakdown
    configuration: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    price_override: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    override_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cart: Mapped["Cart"] = relationship("Cart", back_populates="items")

    @property
    def price_locked(self) -> bool:
        return self.price_override is not None

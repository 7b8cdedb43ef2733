# cabinetry/models/quote.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cabinetry.db import Base
from cabinetry.models.common import MONEY, IdMixin, TimestampMixin


class Quote(IdMixin, TimestampMixin, Base):
    __tablename__ = "quotes"

    quote_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )

    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # draft -> sent -> viewed -> accepted/rejected/expired (+ revision_requested)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft", index=True)
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    valid_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    converted_order_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    source_cart_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pdf_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    items: Mapped[List["QuoteItem"]] = relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.line_number",
    )
    versions: Mapped[List["QuoteVersion"]] = relationship(
        "QuoteVersion",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteVersion.version_number",
    )

    def __repr__(self) -> str:
        return f"<Quote {self.quote_number} status={self.status}>"


class QuoteItem(IdMixin, TimestampMixin, Base):
    __tablename__ = "quote_items"

    quote_id: Mapped[str] = mapped_column(
        ForeignKey("quotes.id", ondelete="CASCADE"), index=True, nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    job_reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    cabinet_type_id: Mapped[Optional[str]] = mapped_column(ForeignKey("cabinet_types.id"), nullable=True)
    door_style_id: Mapped[Optional[str]] = mapped_column(ForeignKey("door_styles.id"), nullable=True)
    color_id: Mapped[Optional[str]] = mapped_column(ForeignKey("colors.id"), nullable=True)
    finish_id: Mapped[Optional[str]] = mapped_column(ForeignKey("finishes.id"), nullable=True)

    width_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    depth_mm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    configuration: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    quote: Mapped["Quote"] = relationship("Quote", back_populates="items")


class QuoteVersion(IdMixin, TimestampMixin, Base):
    """Snapshot of a quote each time it is sent or sent back for revision."""

    __tablename__ = "quote_versions"

    quote_id: Mapped[str] = mapped_column(
        ForeignKey("quotes.id", ondelete="CASCADE"), index=True, nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    snapshot: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    changes_requested: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    quote: Mapped["Quote"] = relationship("Quote", back_populates="versions")

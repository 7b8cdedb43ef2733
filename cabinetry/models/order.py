# cabinetry/models/order.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cabinetry.db import Base
from cabinetry.models.common import MONEY, PCT, IdMixin, TimestampMixin


class Order(IdMixin, TimestampMixin, Base):
    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    quote_id: Mapped[Optional[str]] = mapped_column(ForeignKey("quotes.id"), nullable=True)
    cart_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending", index=True)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="unpaid")
    production_status: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    production_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    drawings_status: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    payment_option: Mapped[str] = mapped_column(String(16), nullable=False, default="deposit")

    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    shipping_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    shipping_address: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    billing_address: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan"
    )
    schedules: Mapped[List["PaymentSchedule"]] = relationship(
        "PaymentSchedule",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PaymentSchedule.sequence",
    )
    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice", back_populates="order", cascade="all, delete-orphan"
    )
    shipments: Mapped[List["Shipment"]] = relationship(
        "Shipment", back_populates="order", cascade="all, delete-orphan", order_by="Shipment.created_at"
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status} payment={self.payment_status}>"


class OrderItem(IdMixin, TimestampMixin, Base):
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    item_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
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

    order: Mapped["Order"] = relationship("Order", back_populates="items")


class PaymentSchedule(IdMixin, TimestampMixin, Base):
    __tablename__ = "payment_schedules"

    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    # deposit | progress | balance | full
    schedule_type: Mapped[str] = mapped_column(String(16), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(PCT, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    # locked | pending | paid | overdue
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="locked")
    trigger_event: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    unlocked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="schedules")


class Invoice(IdMixin, TimestampMixin, Base):
    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    payment_schedule_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("payment_schedules.id", ondelete="SET NULL"), nullable=True
    )
    # draft | sent | paid | void
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    issued_on: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pdf_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="invoices")
    lines: Mapped[List["InvoiceLine"]] = relationship(
        "InvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_number",
    )


class InvoiceLine(IdMixin, TimestampMixin, Base):
    __tablename__ = "invoice_lines"

    invoice_id: Mapped[str] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), index=True, nullable=False
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(300), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    amount_ex_gst: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    gst_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    amount_inc_gst: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="lines")


class Payment(IdMixin, TimestampMixin, Base):
    __tablename__ = "payments"

    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    payment_schedule_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("payment_schedules.id", ondelete="SET NULL"), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    # manual | card | bank_transfer
    method: Mapped[str] = mapped_column(String(32), nullable=False, default="manual")
    external_id: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed")


class Shipment(IdMixin, TimestampMixin, Base):
    __tablename__ = "shipments"

    order_id: Mapped[str] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    carrier: Mapped[str] = mapped_column(String(64), nullable=False)
    service_type: Mapped[str] = mapped_column(String(64), nullable=False)
    tracking_number: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    tracking_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    # preparing | in_transit | delivered | cancelled
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="preparing")
    pallet_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    weight_kg: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    shipping_cost: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    shipping_address: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    estimated_delivery: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    order: Mapped["Order"] = relationship("Order", back_populates="shipments")

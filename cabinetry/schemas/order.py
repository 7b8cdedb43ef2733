# cabinetry/schemas/order.py
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from cabinetry.schemas.common import ORMModel


class OrderItemOut(ORMModel):
    id: str
    item_name: Optional[str]
    cabinet_type_id: Optional[str]
    width_mm: Optional[int]
    height_mm: Optional[int]
    depth_mm: Optional[int]
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    configuration: Dict[str, Any]


class PaymentScheduleOut(ORMModel):
    id: str
    schedule_type: str
    sequence: int
    percentage: Decimal
    amount: Decimal
    status: str
    trigger_event: Optional[str]
    unlocked_at: Optional[datetime]
    due_date: Optional[date]
    paid_at: Optional[datetime]
    payment_reference: Optional[str]


class InvoiceLineOut(ORMModel):
    line_number: int
    description: str
    quantity: int
    amount_ex_gst: Decimal
    gst_amount: Decimal
    amount_inc_gst: Decimal


class InvoiceOut(ORMModel):
    id: str
    invoice_number: str
    order_id: str
    payment_schedule_id: Optional[str]
    status: str
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    issued_on: date
    due_date: Optional[date]
    paid_at: Optional[datetime]
    pdf_url: Optional[str]
    lines: List[InvoiceLineOut] = []


class PaymentOut(ORMModel):
    id: str
    payment_schedule_id: Optional[str]
    amount: Decimal
    method: str
    external_id: Optional[str]
    status: str
    created_at: Optional[datetime]


class ShipmentOut(ORMModel):
    id: str
    order_id: str
    carrier: str
    service_type: str
    tracking_number: str
    tracking_url: Optional[str]
    status: str
    pallet_count: int
    weight_kg: Optional[Decimal]
    shipping_cost: Optional[Decimal]
    shipping_address: Dict[str, Any]
    estimated_delivery: Optional[date]
    shipped_at: Optional[datetime]
    delivered_at: Optional[datetime]
    notes: Optional[str]


class OrderSummary(ORMModel):
    id: str
    order_number: str
    status: str
    payment_status: str
    total_amount: Decimal
    customer_name: Optional[str]
    created_at: Optional[datetime]


class OrderOut(OrderSummary):
    user_id: Optional[str]
    quote_id: Optional[str]
    customer_email: Optional[str]
    production_status: Optional[str]
    production_notes: Optional[str]
    drawings_status: Optional[str]
    payment_option: str
    subtotal: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    shipping_address: Optional[Dict[str, Any]]
    billing_address: Optional[Dict[str, Any]]
    notes: Optional[str]
    items: List[OrderItemOut] = []
    schedules: List[PaymentScheduleOut] = []
    invoices: List[InvoiceOut] = []
    shipments: List[ShipmentOut] = []


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = Field(
        default=None,
        pattern=r"^(pending|confirmed|in_production|ready_for_delivery|shipped|delivered|cancelled)$",
    )
    production_status: Optional[str] = Field(default=None, max_length=64)
    production_notes: Optional[str] = Field(default=None, max_length=4000)
    drawings_status: Optional[str] = Field(default=None, max_length=32)


class TriggerIn(BaseModel):
    trigger_event: str = Field(pattern=r"^(deposit_paid|drawings_approved|production_complete)$")


class TriggerResult(BaseModel):
    trigger_event: str
    unlocked: List[str] = []
    skipped: List[str] = []
    order_status: str
    drawings_status: Optional[str] = None


class PaymentIn(BaseModel):
    amount: Decimal = Field(gt=0)
    method: str = Field(default="manual", pattern=r"^(manual|card|bank_transfer)$")
    reference: Optional[str] = Field(default=None, max_length=120)


class InvoiceCreate(BaseModel):
    payment_schedule_id: Optional[str] = None
    render_pdf: bool = False


class InvoiceStatusUpdate(BaseModel):
    status: str = Field(pattern=r"^(sent|paid|void)$")


class SweepResult(BaseModel):
    updated: int


class ShipmentCreate(BaseModel):
    carrier: str = Field(min_length=1, max_length=64)
    service_type: str = Field(min_length=1, max_length=64)
    pallet_count: int = Field(default=1, ge=1)
    weight_kg: Optional[Decimal] = Field(default=None, gt=0)
    shipping_cost: Optional[Decimal] = Field(default=None, ge=0)
    tracking_number: Optional[str] = Field(default=None, max_length=64)
    tracking_url: Optional[str] = Field(default=None, max_length=1024)
    shipping_address: Optional[Dict[str, Any]] = None
    estimated_delivery: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class ShipmentUpdate(BaseModel):
    status: Optional[str] = Field(default=None, pattern=r"^(preparing|in_transit|delivered|cancelled)$")
    tracking_number: Optional[str] = Field(default=None, max_length=64)
    tracking_url: Optional[str] = Field(default=None, max_length=1024)
    estimated_delivery: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

# cabinetry/routers/admin_orders.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cabinetry import tasks
from cabinetry.auth.admin import AdminIdentity, require_admin
from cabinetry.core.errors import NotFoundError
from cabinetry.db import get_db
from cabinetry.schemas.order import (
    InvoiceCreate,
    InvoiceOut,
    InvoiceStatusUpdate,
    OrderOut,
    OrderStatusUpdate,
    OrderSummary,
    PaymentIn,
    PaymentOut,
    ShipmentCreate,
    ShipmentOut,
    ShipmentUpdate,
    SweepResult,
    TriggerIn,
    TriggerResult,
)
from cabinetry.services import invoice_service, order_service, shipment_service

router = APIRouter(prefix="/admin/orders", tags=["admin-orders"], dependencies=[Depends(require_admin)])


@router.get("", response_model=List[OrderSummary])
def list_orders(
    status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None, pattern=r"^(unpaid|partial|paid)$"),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return order_service.list_orders(
        db, status=status, payment_status=payment_status, search=search, limit=limit, offset=offset
    )


@router.post("/sweep/overdue", response_model=SweepResult)
def sweep_overdue(db: Session = Depends(get_db)):
    return SweepResult(updated=order_service.mark_overdue(db))


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, db: Session = Depends(get_db)):
    return order_service.get_order(db, order_id)


@router.patch("/{order_id}", response_model=OrderOut)
def update_order(order_id: str, payload: OrderStatusUpdate, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    return order_service.update_order(db, order, payload.model_dump(exclude_unset=True))


@router.post("/{order_id}/triggers", response_model=TriggerResult)
def fire_trigger(order_id: str, payload: TriggerIn, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    return order_service.unlock_trigger(db, order, payload.trigger_event)


@router.post("/{order_id}/schedules/{schedule_id}/payments", response_model=PaymentOut, status_code=201)
def record_payment(order_id: str, schedule_id: str, payload: PaymentIn, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    schedule = order_service.get_schedule(db, order, schedule_id)
    return order_service.record_payment(
        db, order, schedule, payload.amount, method=payload.method, reference=payload.reference
    )


# ----------------------------------------------------
# Invoices
# ----------------------------------------------------
@router.post("/{order_id}/invoices", response_model=InvoiceOut, status_code=201)
def create_invoice(order_id: str, payload: InvoiceCreate, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    return order_service.create_invoice(
        db, order, payload.payment_schedule_id, render_pdf=payload.render_pdf
    )


@router.patch("/{order_id}/invoices/{invoice_id}", response_model=InvoiceOut)
def update_invoice_status(
    order_id: str, invoice_id: str, payload: InvoiceStatusUpdate, db: Session = Depends(get_db)
):
    order = order_service.get_order(db, order_id)
    return order_service.change_invoice_status(db, order, invoice_id, payload.status)


@router.post("/{order_id}/invoices/{invoice_id}/pdf", response_model=InvoiceOut)
def render_invoice_pdf(order_id: str, invoice_id: str, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    invoice = invoice_service.get_invoice(db, invoice_id)
    if invoice.order_id != order.id:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    tasks.render_invoice_pdf.delay(invoice.id)
    db.refresh(invoice)
    return invoice


# ----------------------------------------------------
# Shipments
# ----------------------------------------------------
@router.post("/{order_id}/shipments", response_model=ShipmentOut, status_code=201)
def create_shipment(
    order_id: str,
    payload: ShipmentCreate,
    db: Session = Depends(get_db),
    admin: AdminIdentity = Depends(require_admin),
):
    order = order_service.get_order(db, order_id)
    return shipment_service.create_shipment(db, order, payload.model_dump(), actor=admin.username)


@router.patch("/{order_id}/shipments/{shipment_id}", response_model=ShipmentOut)
def update_shipment(order_id: str, shipment_id: str, payload: ShipmentUpdate, db: Session = Depends(get_db)):
    order = order_service.get_order(db, order_id)
    shipment = shipment_service.get_shipment(db, order, shipment_id)
    return shipment_service.update_shipment(db, order, shipment, payload.model_dump(exclude_unset=True))

# cabinetry/services/invoice_service.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from cabinetry.core.errors import BusinessRuleError, InvalidTransitionError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.models import Invoice, InvoiceLine, Order, PaymentSchedule
from cabinetry.services.numbering import next_number
from cabinetry.services.tax import qmoney, split_inclusive, to_decimal

INVOICE_TRANSITIONS = {
    "draft": {"sent", "paid", "void"},
    "sent": {"paid", "void"},
    "paid": set(),
    "void": set(),
}


def get_invoice(db: Session, invoice_id: str) -> Invoice:
    invoice = db.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def _weighted_sources(order: Order) -> List[Tuple[str, int, Decimal]]:
    """(description, quantity, ex-GST weight) for every billable line of an order."""
    sources = [
        (item.item_name or "Cabinet", item.quantity, to_decimal(item.total_price))
        for item in order.items
    ]
    if to_decimal(order.shipping_amount) > 0:
        sources.append(("Delivery", 1, to_decimal(order.shipping_amount)))
    return sources


def allocate_lines(order: Order, amount_inc_gst: Decimal, gst_rate: Decimal,
                   label: Optional[str] = None) -> List[InvoiceLine]:
    """
    Spread an inclusive amount over the order's items in proportion to
    their ex-GST totals. The last line takes the rounding remainder so the
    lines always add up to the invoiced amount.
    """
    amount_inc_gst = qmoney(amount_inc_gst)
    sources = _weighted_sources(order)
    weight_total = sum((w for _, _, w in sources), Decimal("0"))
    if not sources or weight_total <= 0:
        sources = [(label or f"Order {order.order_number}", 1, Decimal("1"))]
        weight_total = Decimal("1")

    lines: List[InvoiceLine] = []
    allocated = Decimal("0.00")
    for n, (description, qty, weight) in enumerate(sources, start=1):
        if n == len(sources):
            share = amount_inc_gst - allocated
        else:
            share = qmoney(amount_inc_gst * weight / weight_total)
            allocated += share
        split = split_inclusive(share, gst_rate)
        if label:
            description = f"{description} ({label})"
        lines.append(
            InvoiceLine(
                line_number=n,
                description=description[:300],
                quantity=qty,
                amount_ex_gst=split.subtotal_ex_gst,
                gst_amount=split.gst_amount,
                amount_inc_gst=split.total_inc_gst,
            )
        )
    return lines


def create_invoice(
    db: Session,
    order: Order,
    schedule: Optional[PaymentSchedule] = None,
    today: Optional[date] = None,
) -> Invoice:
    """Invoice one milestone of an order, or the whole order when no milestone is given."""
    today = today or date.today()
    if order.status == "cancelled":
        raise BusinessRuleError("Cannot invoice a cancelled order", meta={"order_id": order.id})

    if schedule is not None:
        if schedule.order_id != order.id:
            raise NotFoundError(f"Payment schedule {schedule.id} not found on this order")
        existing = (
            db.query(Invoice)
            .filter(Invoice.payment_schedule_id == schedule.id, Invoice.status != "void")
            .first()
        )
        if existing is not None:
            raise BusinessRuleError(
                "Milestone already has an invoice",
                meta={"invoice_number": existing.invoice_number},
            )
        amount = to_decimal(schedule.amount)
        label = f"{schedule.schedule_type} {schedule.percentage}%"
        due = schedule.due_date
    else:
        amount = to_decimal(order.total_amount)
        label = None
        due = today

    lines = allocate_lines(order, amount, settings.GST_RATE, label=label)
    invoice = Invoice(
        invoice_number=next_number(db, Invoice.invoice_number, "INV", today),
        order_id=order.id,
        payment_schedule_id=schedule.id if schedule is not None else None,
        status="paid" if schedule is not None and schedule.status == "paid" else "draft",
        subtotal=qmoney(sum((ln.amount_ex_gst for ln in lines), Decimal("0"))),
        tax_amount=qmoney(sum((ln.gst_amount for ln in lines), Decimal("0"))),
        total_amount=qmoney(amount),
        issued_on=today,
        due_date=due,
        lines=lines,
    )
    if invoice.status == "paid":
        invoice.paid_at = schedule.paid_at
    db.add(invoice)
    db.flush()

    logger.bind(order_id=order.id, invoice_number=invoice.invoice_number).info(
        "invoice_created", total=str(invoice.total_amount), lines=len(lines)
    )
    return invoice


def set_invoice_status(db: Session, invoice: Invoice, status: str) -> Invoice:
    allowed = INVOICE_TRANSITIONS.get(invoice.status, set())
    if status not in allowed:
        raise InvalidTransitionError(
            f"Cannot move invoice from '{invoice.status}' to '{status}'",
            meta={"from": invoice.status, "to": status},
        )
    invoice.status = status
    if status == "paid":
        invoice.paid_at = datetime.now(timezone.utc)
    logger.bind(invoice_number=invoice.invoice_number).info("invoice_status_changed", status=status)
    return invoice


def mark_schedule_invoice_paid(db: Session, schedule: PaymentSchedule) -> Optional[Invoice]:
    invoice = (
        db.query(Invoice)
        .filter(Invoice.payment_schedule_id == schedule.id, Invoice.status.in_(("draft", "sent")))
        .first()
    )
    if invoice is None:
        return None
    invoice.status = "paid"
    invoice.paid_at = schedule.paid_at or datetime.now(timezone.utc)
    return invoice

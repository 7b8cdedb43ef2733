# cabinetry/services/order_service.py
"""
Orders, payment milestones and payments.

Milestone unlock events:
  deposit_paid         -> drawings_status = pending_upload (order confirmed)
  drawings_approved    -> progress milestone pending, due in PROGRESS_DUE_DAYS
  production_complete  -> balance milestone pending, due in BALANCE_DUE_DAYS,
                          order ready_for_delivery
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cabinetry import tasks
from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.domain.status import ORDER_FLOW, ORDER_TERMINAL, ensure_order_transition
from cabinetry.models import (
    Address,
    CabinetType,
    Cart,
    Order,
    OrderItem,
    Payment,
    PaymentSchedule,
    Quote,
    User,
)
from cabinetry.observability.metrics import orders_created_counter, payments_recorded_counter
from cabinetry.services import invoice_service, shipping_service
from cabinetry.services.numbering import next_number
from cabinetry.services.payment_schedule import build_schedule, validate_payment_amount
from cabinetry.services.tax import calc_gst, qmoney, to_decimal

TRIGGER_EVENTS = ("deposit_paid", "drawings_approved", "production_complete")

DUE_DAYS = {
    "drawings_approved": settings.PROGRESS_DUE_DAYS,
    "production_complete": settings.BALANCE_DUE_DAYS,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_order(db: Session, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def get_schedule(db: Session, order: Order, schedule_id: str) -> PaymentSchedule:
    schedule = db.get(PaymentSchedule, schedule_id)
    if schedule is None or schedule.order_id != order.id:
        raise NotFoundError(f"Payment schedule {schedule_id} not found")
    return schedule


def list_orders(
    db: Session,
    *,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
    user_id: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Order]:
    q = db.query(Order)
    if status:
        q = q.filter(Order.status == status)
    if payment_status:
        q = q.filter(Order.payment_status == payment_status)
    if user_id:
        q = q.filter(Order.user_id == user_id)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Order.order_number.ilike(term),
                Order.customer_name.ilike(term),
                Order.customer_email.ilike(term),
            )
        )
    return q.order_by(Order.created_at.desc()).offset(offset).limit(limit).all()


# ----------------------------------------------------
# Creation
# ----------------------------------------------------
def _address_snapshot(db: Session, user_id: Optional[str], address_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not address_id:
        return None
    address = db.get(Address, address_id)
    if address is None or address.user_id != user_id:
        raise NotFoundError(f"Address {address_id} not found")
    return address.as_dict()


def _cabinet_name(db: Session, cabinet_type_id: Optional[str]) -> Optional[str]:
    ct = db.get(CabinetType, cabinet_type_id) if cabinet_type_id else None
    return ct.name if ct else None


def _attach_schedule(order: Order, option: str, today: Optional[date] = None) -> None:
    for m in build_schedule(order.total_amount, option, today):
        order.schedules.append(
            PaymentSchedule(
                schedule_type=m.schedule_type,
                sequence=m.sequence,
                percentage=m.percentage,
                amount=m.amount,
                status=m.status,
                trigger_event=m.trigger_event,
                due_date=m.due_date,
                unlocked_at=_now() if m.status == "pending" else None,
            )
        )


def create_order_from_quote(
    db: Session,
    quote: Quote,
    *,
    user: Optional[User] = None,
    payment_option: str = "deposit",
    shipping_address_id: Optional[str] = None,
    billing_address_id: Optional[str] = None,
    today: Optional[date] = None,
) -> Order:
    """Build the order for an accepted quote. The caller commits."""
    if quote.converted_order_id:
        raise BusinessRuleError(
            "Quote has already been converted to an order",
            meta={"order_id": quote.converted_order_id},
        )
    user_id = user.id if user else quote.user_id
    order = Order(
        order_number=next_number(db, Order.order_number, "ORD", today),
        user_id=user_id,
        quote_id=quote.id,
        customer_name=quote.customer_name,
        customer_email=quote.customer_email,
        status="pending",
        payment_status="unpaid",
        payment_option=payment_option,
        subtotal=qmoney(quote.subtotal),
        shipping_amount=Decimal("0.00"),
        tax_amount=qmoney(quote.tax_amount),
        total_amount=qmoney(quote.total_amount),
        shipping_address=_address_snapshot(db, user_id, shipping_address_id),
        billing_address=_address_snapshot(db, user_id, billing_address_id),
        notes=quote.notes,
    )
    for item in quote.items:
        order.items.append(
            OrderItem(
                item_name=item.item_name,
                cabinet_type_id=item.cabinet_type_id,
                door_style_id=item.door_style_id,
                color_id=item.color_id,
                finish_id=item.finish_id,
                width_mm=item.width_mm,
                height_mm=item.height_mm,
                depth_mm=item.depth_mm,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                configuration=dict(item.configuration or {}),
            )
        )
    _attach_schedule(order, payment_option, today)
    db.add(order)
    db.flush()

    orders_created_counter.labels(source="quote").inc()
    logger.bind(order_id=order.id, quote_id=quote.id, order_number=order.order_number).info(
        "order_created", source="quote", total=str(order.total_amount)
    )
    return order


def create_order_from_checkout(
    db: Session,
    user: User,
    cart: Cart,
    *,
    shipping_address_id: str,
    billing_address_id: Optional[str] = None,
    payment_option: str = "deposit",
    include_shipping: bool = True,
    tail_lift: bool = False,
    notes: Optional[str] = None,
    today: Optional[date] = None,
) -> Order:
    if cart.user_id != user.id:
        raise NotFoundError(f"Cart {cart.id} not found")
    if cart.status != "active":
        raise BusinessRuleError(f"Cart is {cart.status}", meta={"cart_id": cart.id})
    if not cart.items:
        raise BusinessRuleError("Cart is empty", meta={"cart_id": cart.id})

    shipping_address = _address_snapshot(db, user.id, shipping_address_id)
    billing_address = _address_snapshot(db, user.id, billing_address_id) or shipping_address

    subtotal = qmoney(sum((to_decimal(i.total_price) for i in cart.items), Decimal("0")))
    shipping = Decimal("0.00")
    if include_shipping:
        quote = shipping_service.quote_shipping(
            db,
            shipping_address["postcode"],
            shipping_service.packed_items_from_cart(db, cart.items),
            residential=True,
            tail_lift=tail_lift,
            today=today,
        )
        shipping = quote.ex_gst

    gst = calc_gst(subtotal + shipping, settings.GST_RATE)
    order = Order(
        order_number=next_number(db, Order.order_number, "ORD", today),
        user_id=user.id,
        cart_id=cart.id,
        customer_name=user.full_name or shipping_address.get("name"),
        customer_email=user.email,
        status="pending",
        payment_status="unpaid",
        payment_option=payment_option,
        subtotal=subtotal,
        shipping_amount=shipping,
        tax_amount=gst.gst_amount,
        total_amount=gst.total_inc_gst,
        shipping_address=shipping_address,
        billing_address=billing_address,
        notes=notes or cart.notes,
    )
    for item in cart.items:
        order.items.append(
            OrderItem(
                item_name=_cabinet_name(db, item.cabinet_type_id),
                cabinet_type_id=item.cabinet_type_id,
                door_style_id=item.door_style_id,
                color_id=item.color_id,
                finish_id=item.finish_id,
                width_mm=item.width_mm,
                height_mm=item.height_mm,
                depth_mm=item.depth_mm,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total_price,
                configuration=dict(item.configuration or {}),
            )
        )
    _attach_schedule(order, payment_option, today)
    db.add(order)
    db.flush()

    cart.status = "converted"
    cart.is_primary = False
    cart.converted_order_id = order.id
    cart.last_activity_at = _now()
    db.commit()
    db.refresh(order)

    orders_created_counter.labels(source="checkout").inc()
    logger.bind(order_id=order.id, cart_id=cart.id, order_number=order.order_number).info(
        "order_created", source="checkout", total=str(order.total_amount), shipping=str(shipping)
    )
    tasks.send_order_confirmation.delay(order.id)
    return order


# ----------------------------------------------------
# Status
# ----------------------------------------------------
def update_order(db: Session, order: Order, data: Dict[str, Any]) -> Order:
    status = data.pop("status", None)
    if status and status != order.status:
        ensure_order_transition(order.status, status)
        logger.bind(order_id=order.id).info("order_status_changed", old=order.status, new=status)
        order.status = status
    for key in ("production_status", "production_notes", "drawings_status"):
        if data.get(key) is not None:
            setattr(order, key, data[key])
    db.commit()
    db.refresh(order)
    return order


def refresh_payment_status(order: Order) -> str:
    paid = [s for s in order.schedules if s.status == "paid"]
    if order.schedules and len(paid) == len(order.schedules):
        order.payment_status = "paid"
    elif paid:
        order.payment_status = "partial"
    else:
        order.payment_status = "unpaid"
    return order.payment_status


def _advance_to(order: Order, target: str) -> None:
    """Move forward along the order flow; never backwards, never out of a terminal state."""
    if order.status in ORDER_TERMINAL:
        return
    if ORDER_FLOW.index(order.status) < ORDER_FLOW.index(target):
        order.status = target


# ----------------------------------------------------
# Milestones
# ----------------------------------------------------
def _ensure_not_cancelled(order: Order) -> None:
    if order.status == "cancelled":
        raise BusinessRuleError("Order is cancelled", meta={"order_id": order.id})


def _apply_trigger(order: Order, trigger_event: str, today: date):
    unlocked: List[PaymentSchedule] = []
    skipped: List[str] = []
    for schedule in order.schedules:
        if schedule.trigger_event != trigger_event:
            continue
        if schedule.status != "locked":
            skipped.append(schedule.id)
            continue
        schedule.status = "pending"
        schedule.unlocked_at = _now()
        schedule.due_date = today + timedelta(days=DUE_DAYS.get(trigger_event, 0))
        unlocked.append(schedule)

    if trigger_event == "deposit_paid":
        order.drawings_status = "pending_upload"
        _advance_to(order, "confirmed")
    elif trigger_event == "drawings_approved":
        order.drawings_status = "approved"
    elif trigger_event == "production_complete":
        order.production_status = "complete"
        _advance_to(order, "ready_for_delivery")
    return unlocked, skipped


def unlock_trigger(db: Session, order: Order, trigger_event: str,
                   today: Optional[date] = None) -> Dict[str, Any]:
    """
    Fire a milestone trigger. Milestones waiting on the trigger become
    pending with a due date; anything not locked is reported as skipped.
    """
    if trigger_event not in TRIGGER_EVENTS:
        raise BusinessRuleError(
            f"Unknown trigger '{trigger_event}'", meta={"allowed": list(TRIGGER_EVENTS)}
        )
    _ensure_not_cancelled(order)
    unlocked, skipped = _apply_trigger(order, trigger_event, today or date.today())
    db.commit()
    logger.bind(order_id=order.id, trigger=trigger_event).info(
        "milestone_trigger_fired", unlocked=len(unlocked), skipped=len(skipped)
    )
    for schedule in unlocked:
        tasks.send_milestone_unlocked.delay(schedule.id)

    return {
        "trigger_event": trigger_event,
        "unlocked": [s.id for s in unlocked],
        "skipped": skipped,
        "order_status": order.status,
        "drawings_status": order.drawings_status,
    }


def record_payment(
    db: Session,
    order: Order,
    schedule: PaymentSchedule,
    amount: Any,
    *,
    method: str = "manual",
    reference: Optional[str] = None,
) -> Payment:
    if schedule.order_id != order.id:
        raise NotFoundError(f"Payment schedule {schedule.id} not found")
    _ensure_not_cancelled(order)
    if schedule.status not in ("pending", "overdue"):
        raise BusinessRuleError(
            f"Milestone is {schedule.status} and cannot be paid",
            meta={"schedule_id": schedule.id, "status": schedule.status},
        )
    validate_payment_amount(amount, schedule.amount)

    schedule.status = "paid"
    schedule.paid_at = _now()
    schedule.payment_reference = reference
    payment = Payment(
        order_id=order.id,
        payment_schedule_id=schedule.id,
        amount=qmoney(amount),
        method=method,
        external_id=reference,
        status="completed",
    )
    db.add(payment)
    invoice_service.mark_schedule_invoice_paid(db, schedule)
    refresh_payment_status(order)
    unlocked: List[PaymentSchedule] = []
    if schedule.schedule_type in ("deposit", "full"):
        unlocked, _ = _apply_trigger(order, "deposit_paid", date.today())
    db.commit()

    payments_recorded_counter.labels(schedule_type=schedule.schedule_type).inc()
    logger.bind(order_id=order.id, schedule_id=schedule.id).info(
        "payment_recorded", amount=str(payment.amount), method=method,
        payment_status=order.payment_status,
    )

    for unlocked_schedule in unlocked:
        tasks.send_milestone_unlocked.delay(unlocked_schedule.id)
    db.refresh(payment)
    return payment


def mark_overdue(db: Session, today: Optional[date] = None) -> int:
    today = today or date.today()
    rows = (
        db.query(PaymentSchedule)
        .filter(PaymentSchedule.status == "pending")
        .filter(PaymentSchedule.due_date.is_not(None), PaymentSchedule.due_date < today)
        .all()
    )
    for schedule in rows:
        schedule.status = "overdue"
    db.commit()
    if rows:
        logger.bind(count=len(rows)).info("milestones_overdue")
    return len(rows)


def create_invoice(db: Session, order: Order, schedule_id: Optional[str] = None,
                   *, render_pdf: bool = False):
    schedule = get_schedule(db, order, schedule_id) if schedule_id else None
    invoice = invoice_service.create_invoice(db, order, schedule)
    db.commit()
    db.refresh(invoice)
    if render_pdf:
        tasks.render_invoice_pdf.delay(invoice.id)
        db.refresh(invoice)
    return invoice


def change_invoice_status(db: Session, order: Order, invoice_id: str, status: str):
    invoice = invoice_service.get_invoice(db, invoice_id)
    if invoice.order_id != order.id:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    invoice_service.set_invoice_status(db, invoice, status)
    db.commit()
    db.refresh(invoice)
    return invoice

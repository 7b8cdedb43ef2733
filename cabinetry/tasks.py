# cabinetry/tasks.py
"""Side effects that run outside the request: e-mail and document rendering."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Optional

from cabinetry.celery_app import celery_app
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.db import SessionLocal
from cabinetry.models import Invoice, Order, PaymentSchedule, Quote, Shipment, User
from cabinetry.services import email_service
from cabinetry.services.document_renderer import DocumentRenderer


@contextmanager
def _session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@celery_app.task(name="cabinetry.send_quote_notification")
def send_quote_notification(quote_id: str) -> bool:
    with _session() as db:
        quote = db.get(Quote, quote_id)
        if quote is None:
            logger.bind(quote_id=quote_id).warning("task_quote_missing")
            return False
        return email_service.send_quote_email(
            quote.customer_email,
            quote.customer_name,
            quote.quote_number,
            quote.id,
            str(quote.total_amount),
            quote.valid_until.strftime("%d/%m/%Y") if quote.valid_until else None,
        )


@celery_app.task(name="cabinetry.send_order_confirmation")
def send_order_confirmation(order_id: str) -> bool:
    with _session() as db:
        order = db.get(Order, order_id)
        if order is None:
            logger.bind(order_id=order_id).warning("task_order_missing")
            return False
        first_due = next((s for s in order.schedules if s.status == "pending"), None)
        return email_service.send_order_confirmation(
            order.customer_email,
            order.customer_name,
            order.order_number,
            order.id,
            str(order.total_amount),
            f"${first_due.amount}" if first_due else None,
        )


@celery_app.task(name="cabinetry.send_milestone_unlocked")
def send_milestone_unlocked(schedule_id: str) -> bool:
    with _session() as db:
        milestone = db.get(PaymentSchedule, schedule_id)
        if milestone is None:
            logger.bind(schedule_id=schedule_id).warning("task_milestone_missing")
            return False
        order = milestone.order
        return email_service.send_milestone_unlocked(
            order.customer_email,
            order.customer_name,
            order.order_number,
            milestone.schedule_type,
            str(milestone.amount),
            milestone.due_date.strftime("%d/%m/%Y") if milestone.due_date else None,
        )


@celery_app.task(name="cabinetry.send_shipment_dispatched")
def send_shipment_dispatched(shipment_id: str) -> bool:
    with _session() as db:
        shipment = db.get(Shipment, shipment_id)
        if shipment is None:
            logger.bind(shipment_id=shipment_id).warning("task_shipment_missing")
            return False
        order = shipment.order
        return email_service.send_shipment_dispatched(
            order.customer_email,
            order.customer_name,
            order.order_number,
            shipment.carrier,
            shipment.tracking_number,
            shipment.tracking_url,
            shipment.estimated_delivery.strftime("%d/%m/%Y") if shipment.estimated_delivery else None,
        )


@celery_app.task(name="cabinetry.send_message_notification")
def send_message_notification(scope: str, scope_ref: str, preview: str,
                              to_user_id: Optional[str] = None) -> bool:
    """Customer posts notify the admin inbox; admin posts notify the customer."""
    with _session() as db:
        if to_user_id:
            user = db.get(User, to_user_id)
            to_email = user.email if user else None
        else:
            to_email = settings.ADMIN_NOTIFY_EMAIL
        return email_service.send_message_notification(to_email, scope, scope_ref, preview)


@celery_app.task(name="cabinetry.render_invoice_pdf")
def render_invoice_pdf(invoice_id: str) -> Optional[str]:
    with _session() as db:
        invoice = db.get(Invoice, invoice_id)
        if invoice is None:
            logger.bind(invoice_id=invoice_id).warning("task_invoice_missing")
            return None
        milestone = db.get(PaymentSchedule, invoice.payment_schedule_id) if invoice.payment_schedule_id else None
        url = DocumentRenderer().render_invoice_pdf(invoice, invoice.order, milestone)
        invoice.pdf_url = url
        db.commit()
        return url


@celery_app.task(name="cabinetry.render_quote_pdf")
def render_quote_pdf(quote_id: str) -> Optional[str]:
    with _session() as db:
        quote = db.get(Quote, quote_id)
        if quote is None:
            logger.bind(quote_id=quote_id).warning("task_quote_missing")
            return None
        url = DocumentRenderer().render_quote_pdf(quote)
        quote.pdf_url = url
        db.commit()
        return url

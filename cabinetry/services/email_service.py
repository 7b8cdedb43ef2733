# cabinetry/services/email_service.py
import smtplib
from email.message import EmailMessage
from typing import Optional

from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.infra.retry import retry_on


def _is_transient_smtp_error(e: Exception) -> bool:
    if isinstance(e, smtplib.SMTPResponseException):
        # 4xx is temporary, 5xx permanent
        return 400 <= e.smtp_code < 500
    return isinstance(e, (smtplib.SMTPServerDisconnected, smtplib.SMTPConnectError, OSError))


def _deliver(msg: EmailMessage) -> None:
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
        server.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)


def send_email(
    to_email: Optional[str],
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
) -> bool:
    """
    Send one e-mail. Without SMTP_HOST the mail is only logged (dev mode).
    Returns False when there is nobody to send to.
    """
    log = logger.bind(to=to_email, subject=subject)
    if not to_email:
        log.info("email_skipped_no_recipient")
        return False

    if not settings.SMTP_HOST:
        log.info("email_dev_mode", body=text_body)
        return True

    msg = EmailMessage()
    from_email = settings.SMTP_FROM_EMAIL or settings.SMTP_USER
    msg["Subject"] = subject
    msg["From"] = f"{settings.SMTP_FROM_NAME} <{from_email}>"
    msg["To"] = to_email
    msg.set_content(text_body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")

    retry_on(lambda: _deliver(msg), attempts=3, is_retryable=_is_transient_smtp_error)
    log.info("email_sent")
    return True


def _portal_url(path: str) -> str:
    return f"{str(settings.PUBLIC_BASE_URL).rstrip('/')}{path}"


def send_quote_email(to_email: str, to_name: Optional[str], quote_number: str, quote_id: str,
                     total: str, valid_until: Optional[str]) -> bool:
    url = _portal_url(f"/portal/quotes/{quote_id}")
    name = to_name or "there"
    validity = f"This quote is valid until {valid_until}.\n\n" if valid_until else ""
    text_body = (
        f"Hi {name},\n\n"
        f"Your quote {quote_number} is ready. Total (inc. GST): ${total}.\n"
        f"{validity}"
        f"View, accept or request changes here:\n{url}\n\n"
        f"Kind regards,\n{settings.SMTP_FROM_NAME}"
    )
    html_body = (
        f"<p>Hi {name},</p>"
        f"<p>Your quote <strong>{quote_number}</strong> is ready. Total (inc. GST): ${total}.</p>"
        f"<p><a href=\"{url}\">View your quote</a></p>"
        f"<p>Kind regards,<br>{settings.SMTP_FROM_NAME}</p>"
    )
    return send_email(to_email, f"Your quote {quote_number} is ready", text_body, html_body)


def send_order_confirmation(to_email: str, to_name: Optional[str], order_number: str,
                            order_id: str, total: str, first_due: Optional[str]) -> bool:
    url = _portal_url(f"/portal/orders/{order_id}")
    due = f"Your first payment of {first_due} is now due.\n" if first_due else ""
    text_body = (
        f"Hi {to_name or 'there'},\n\n"
        f"Thank you for your order {order_number} (total ${total}).\n"
        f"{due}"
        f"Track production and payments here:\n{url}\n\n"
        f"Kind regards,\n{settings.SMTP_FROM_NAME}"
    )
    return send_email(to_email, f"Order {order_number} confirmed", text_body)


def send_milestone_unlocked(to_email: str, to_name: Optional[str], order_number: str,
                            schedule_type: str, amount: str, due_date: Optional[str]) -> bool:
    text_body = (
        f"Hi {to_name or 'there'},\n\n"
        f"The {schedule_type} payment of ${amount} for order {order_number} is now due"
        f"{' by ' + due_date if due_date else ''}.\n\n"
        f"Kind regards,\n{settings.SMTP_FROM_NAME}"
    )
    return send_email(to_email, f"Payment due for order {order_number}", text_body)


def send_shipment_dispatched(to_email: Optional[str], to_name: Optional[str], order_number: str,
                             carrier: str, tracking_number: str, tracking_url: Optional[str],
                             estimated_delivery: Optional[str]) -> bool:
    lines = [
        f"Hi {to_name or 'there'},",
        "",
        f"Order {order_number} is on its way with {carrier}.",
        f"Tracking number: {tracking_number}",
    ]
    if tracking_url:
        lines.append(f"Track it at {tracking_url}")
    if estimated_delivery:
        lines.append(f"Estimated delivery: {estimated_delivery}")
    lines += ["", "Kind regards,", settings.SMTP_FROM_NAME]
    return send_email(to_email, f"Order {order_number} has shipped", "\n".join(lines))


def send_message_notification(to_email: Optional[str], scope: str, scope_ref: str, preview: str) -> bool:
    text_body = (
        f"A new message was posted on {scope} {scope_ref}:\n\n"
        f"{preview[:500]}\n"
    )
    return send_email(to_email, f"New message on {scope} {scope_ref}", text_body)

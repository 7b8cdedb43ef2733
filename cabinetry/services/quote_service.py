# cabinetry/services/quote_service.py
"""
Quote lifecycle.

    draft -> sent -> viewed -> accepted | rejected | expired
    sent | viewed -> revision_requested -> draft   (version_number + 1)

Sending and revision requests snapshot the quote into ``quote_versions``.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from cabinetry import tasks
from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.domain.status import QUOTE_EDITABLE, QUOTE_OPEN, ensure_quote_transition
from cabinetry.models import CabinetType, Order, Quote, QuoteItem, QuoteVersion, User
from cabinetry.observability.metrics import quotes_decided_counter, quotes_sent_counter
from cabinetry.services import message_service, order_service
from cabinetry.services.numbering import next_number
from cabinetry.services.pricing import item_configuration, load_rates, price_from_ids, quote_totals
from cabinetry.services.tax import qmoney


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_quote(db: Session, quote_id: str) -> Quote:
    quote = db.get(Quote, quote_id)
    if quote is None:
        raise NotFoundError(f"Quote {quote_id} not found")
    return quote


def list_quotes(
    db: Session,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    user: Optional[User] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Quote]:
    q = db.query(Quote)
    if status:
        q = q.filter(Quote.status == status)
    if user is not None:
        owned_by_email = and_(Quote.user_id.is_(None), func.lower(Quote.customer_email) == user.email.lower())
        q = q.filter(or_(Quote.user_id == user.id, owned_by_email))
        q = q.filter(Quote.status != "draft")
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Quote.quote_number.ilike(term),
                Quote.customer_name.ilike(term),
                Quote.customer_email.ilike(term),
            )
        )
    return q.order_by(Quote.created_at.desc()).offset(offset).limit(limit).all()


def _ensure_editable(quote: Quote) -> None:
    if quote.status not in QUOTE_EDITABLE:
        raise BusinessRuleError(
            f"Quote is {quote.status} and can no longer be edited",
            code="quote_locked",
            meta={"status": quote.status},
        )


def recompute_totals(quote: Quote) -> Quote:
    subtotal, tax, total = quote_totals((i.total_price for i in quote.items), settings.GST_RATE)
    quote.subtotal, quote.tax_amount, quote.total_amount = subtotal, tax, total
    return quote


def renumber_items(quote: Quote) -> None:
    for n, item in enumerate(sorted(quote.items, key=lambda i: i.line_number), start=1):
        item.line_number = n


def new_quote(
    db: Session,
    *,
    customer_name: str,
    customer_email: str,
    customer_phone: Optional[str] = None,
    user_id: Optional[str] = None,
    notes: Optional[str] = None,
    valid_until: Optional[date] = None,
    source_cart_id: Optional[str] = None,
) -> Quote:
    """Add a draft quote to the session without committing."""
    quote = Quote(
        quote_number=next_number(db, Quote.quote_number, "QUO"),
        customer_name=customer_name,
        customer_email=customer_email.strip().lower(),
        customer_phone=customer_phone,
        user_id=user_id,
        notes=notes,
        valid_until=valid_until,
        source_cart_id=source_cart_id,
        status="draft",
        version_number=1,
    )
    db.add(quote)
    return quote


def create_quote(db: Session, data: Dict[str, Any]) -> Quote:
    if data.get("user_id") and db.get(User, data["user_id"]) is None:
        raise NotFoundError(f"User {data['user_id']} not found")
    quote = new_quote(db, **data)
    db.commit()
    db.refresh(quote)
    logger.bind(quote_id=quote.id, quote_number=quote.quote_number).info("quote_created")
    return quote


def update_quote(db: Session, quote: Quote, data: Dict[str, Any]) -> Quote:
    _ensure_editable(quote)
    if data.get("customer_email"):
        data = {**data, "customer_email": data["customer_email"].strip().lower()}
    for key, value in data.items():
        setattr(quote, key, value)
    db.commit()
    db.refresh(quote)
    return quote


def delete_quote(db: Session, quote: Quote) -> None:
    if quote.status != "draft":
        raise BusinessRuleError("Only draft quotes can be deleted", meta={"status": quote.status})
    db.delete(quote)
    db.commit()
    logger.bind(quote_id=quote.id).info("quote_deleted")


# ----------------------------------------------------
# Items
# ----------------------------------------------------
def _price_fields(db: Session, data: Dict[str, Any]) -> Dict[str, Any]:
    """Unit/total price and configuration for a quote line."""
    explicit = data.get("unit_price")
    if explicit is not None:
        unit = qmoney(explicit)
        return {
            "unit_price": unit,
            "total_price": qmoney(unit * data["quantity"]),
            "configuration": {
                "production_option_ids": list(data.get("production_option_ids") or []),
                "hardware": dict(data.get("hardware") or {}),
                "assembly": data.get("assembly") or "none",
                "pricing": {"method": "manual", "unit_price": str(unit)},
            },
        }
    if not data.get("cabinet_type_id"):
        raise BusinessRuleError("Either a cabinet type or an explicit unit price is required")
    for dim in ("width_mm", "height_mm", "depth_mm"):
        if not data.get(dim):
            raise BusinessRuleError(f"{dim} is required to price a cabinet", meta={"field": dim})
    bd = price_from_ids(
        db,
        data["cabinet_type_id"],
        data["width_mm"],
        data["height_mm"],
        data["depth_mm"],
        data["quantity"],
        door_style_id=data.get("door_style_id"),
        color_id=data.get("color_id"),
        finish_id=data.get("finish_id"),
        option_ids=data.get("production_option_ids") or [],
        rates=load_rates(db),
    )
    return {
        "unit_price": bd.unit_price,
        "total_price": bd.total_price,
        "configuration": item_configuration(bd, data.get("hardware"), data.get("assembly")),
    }


_ITEM_COLUMNS = (
    "item_name", "job_reference", "cabinet_type_id", "door_style_id", "color_id",
    "finish_id", "width_mm", "height_mm", "depth_mm", "quantity", "notes",
)


def add_item(db: Session, quote: Quote, data: Dict[str, Any]) -> QuoteItem:
    _ensure_editable(quote)
    data = dict(data)
    data.setdefault("quantity", 1)
    priced = _price_fields(db, data)
    if not data.get("item_name"):
        ct = db.get(CabinetType, data["cabinet_type_id"]) if data.get("cabinet_type_id") else None
        data["item_name"] = ct.name if ct else "Custom item"

    item = QuoteItem(
        line_number=len(quote.items) + 1,
        **{k: data.get(k) for k in _ITEM_COLUMNS},
        **priced,
    )
    quote.items.append(item)
    recompute_totals(quote)
    db.commit()
    db.refresh(item)
    logger.bind(quote_id=quote.id, item_id=item.id).info("quote_item_added", total=str(item.total_price))
    return item


def get_item(quote: Quote, item_id: str) -> QuoteItem:
    for item in quote.items:
        if item.id == item_id:
            return item
    raise NotFoundError(f"Quote item {item_id} not found")


def update_item(db: Session, quote: Quote, item: QuoteItem, data: Dict[str, Any]) -> QuoteItem:
    _ensure_editable(quote)
    config = item.configuration or {}
    merged = {k: getattr(item, k) for k in _ITEM_COLUMNS}
    merged["production_option_ids"] = config.get("production_option_ids", [])
    merged["hardware"] = config.get("hardware", {})
    merged["assembly"] = config.get("assembly")
    if (config.get("pricing") or {}).get("method") == "manual":
        merged["unit_price"] = item.unit_price
    merged.update(data)

    priced = _price_fields(db, merged)
    for key in _ITEM_COLUMNS:
        setattr(item, key, merged.get(key))
    for key, value in priced.items():
        setattr(item, key, value)
    recompute_totals(quote)
    db.commit()
    db.refresh(item)
    return item


def remove_item(db: Session, quote: Quote, item: QuoteItem) -> None:
    _ensure_editable(quote)
    quote.items.remove(item)
    renumber_items(quote)
    recompute_totals(quote)
    db.commit()


# ----------------------------------------------------
# Lifecycle
# ----------------------------------------------------
def snapshot(quote: Quote) -> Dict[str, Any]:
    return {
        "quote_number": quote.quote_number,
        "status": quote.status,
        "customer_name": quote.customer_name,
        "customer_email": quote.customer_email,
        "subtotal": str(quote.subtotal),
        "tax_amount": str(quote.tax_amount),
        "total_amount": str(quote.total_amount),
        "valid_until": quote.valid_until.isoformat() if quote.valid_until else None,
        "items": [
            {
                "line_number": i.line_number,
                "item_name": i.item_name,
                "cabinet_type_id": i.cabinet_type_id,
                "width_mm": i.width_mm,
                "height_mm": i.height_mm,
                "depth_mm": i.depth_mm,
                "quantity": i.quantity,
                "unit_price": str(i.unit_price),
                "total_price": str(i.total_price),
            }
            for i in quote.items
        ],
    }


def _write_version(quote: Quote, created_by: str, changes: Optional[str] = None) -> QuoteVersion:
    version = QuoteVersion(
        version_number=quote.version_number,
        status=quote.status,
        snapshot=snapshot(quote),
        changes_requested=changes,
        created_by=created_by,
    )
    quote.versions.append(version)
    return version


def send_quote(db: Session, quote: Quote, *, actor: str = "admin", today: Optional[date] = None) -> Quote:
    ensure_quote_transition(quote.status, "sent")
    if not quote.items:
        raise BusinessRuleError("Cannot send a quote without items", code="quote_empty")
    today = today or date.today()

    quote.status = "sent"
    quote.sent_at = _now()
    if quote.valid_until is None or quote.valid_until < today:
        quote.valid_until = today + timedelta(days=settings.QUOTE_VALIDITY_DAYS)
    recompute_totals(quote)
    _write_version(quote, actor)
    db.commit()
    db.refresh(quote)

    quotes_sent_counter.inc()
    logger.bind(quote_id=quote.id, quote_number=quote.quote_number).info(
        "quote_sent", version=quote.version_number, total=str(quote.total_amount)
    )
    tasks.send_quote_notification.delay(quote.id)
    return quote


def mark_viewed(db: Session, quote: Quote) -> Quote:
    """First portal view of a sent quote. Later views change nothing."""
    if quote.status != "sent":
        return quote
    quote.status = "viewed"
    quote.viewed_at = _now()
    db.commit()
    db.refresh(quote)
    logger.bind(quote_id=quote.id).info("quote_viewed")
    return quote


def _ensure_open(quote: Quote, target: str, today: date) -> None:
    ensure_quote_transition(quote.status, target)
    if quote.valid_until is not None and quote.valid_until < today:
        raise BusinessRuleError(
            "Quote has expired",
            code="quote_expired",
            meta={"valid_until": quote.valid_until.isoformat()},
        )


def accept_quote(
    db: Session,
    quote: Quote,
    *,
    user: Optional[User] = None,
    payment_option: str = "deposit",
    shipping_address_id: Optional[str] = None,
    billing_address_id: Optional[str] = None,
    today: Optional[date] = None,
) -> Order:
    today = today or date.today()
    _ensure_open(quote, "accepted", today)

    order = order_service.create_order_from_quote(
        db,
        quote,
        user=user,
        payment_option=payment_option,
        shipping_address_id=shipping_address_id,
        billing_address_id=billing_address_id,
        today=today,
    )
    quote.status = "accepted"
    quote.accepted_at = _now()
    quote.converted_order_id = order.id
    if user is not None and quote.user_id is None:
        quote.user_id = user.id
    db.commit()
    db.refresh(order)

    quotes_decided_counter.labels(decision="accepted").inc()
    logger.bind(quote_id=quote.id, order_id=order.id).info(
        "quote_accepted", payment_option=payment_option
    )
    tasks.send_order_confirmation.delay(order.id)
    return order


def reject_quote(db: Session, quote: Quote, reason: Optional[str] = None) -> Quote:
    ensure_quote_transition(quote.status, "rejected")
    quote.status = "rejected"
    quote.rejected_at = _now()
    quote.rejection_reason = reason
    db.commit()
    db.refresh(quote)
    quotes_decided_counter.labels(decision="rejected").inc()
    logger.bind(quote_id=quote.id).info("quote_rejected", has_reason=bool(reason))
    return quote


def request_changes(db: Session, quote: Quote, changes: str, *, actor: str = "customer") -> Quote:
    ensure_quote_transition(quote.status, "revision_requested")
    quote.status = "revision_requested"
    _write_version(quote, actor, changes=changes)
    db.commit()
    message_service.post_system_message(
        db, "quote", quote.id, f"Changes requested on version {quote.version_number}: {changes}"
    )
    db.refresh(quote)
    quotes_decided_counter.labels(decision="revision_requested").inc()
    logger.bind(quote_id=quote.id).info("quote_revision_requested", version=quote.version_number)
    return quote


def revise_quote(db: Session, quote: Quote) -> Quote:
    """Reopen a quote for editing after a change request."""
    ensure_quote_transition(quote.status, "draft")
    quote.status = "draft"
    quote.version_number += 1
    quote.sent_at = None
    quote.viewed_at = None
    db.commit()
    db.refresh(quote)
    logger.bind(quote_id=quote.id).info("quote_revised", version=quote.version_number)
    return quote


def expire_quotes(db: Session, today: Optional[date] = None) -> int:
    today = today or date.today()
    rows = (
        db.query(Quote)
        .filter(Quote.status.in_(QUOTE_OPEN))
        .filter(Quote.valid_until.is_not(None), Quote.valid_until < today)
        .all()
    )
    for quote in rows:
        quote.status = "expired"
    db.commit()
    if rows:
        quotes_decided_counter.labels(decision="expired").inc(len(rows))
        logger.bind(count=len(rows)).info("quotes_expired")
    return len(rows)

# cabinetry/routers/portal.py
"""Customer self-service: dashboard, quotes, orders, addresses and messages."""
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from cabinetry.auth.deps import get_current_user
from cabinetry.core.rate_limit import limiter
from cabinetry.core.settings import settings
from cabinetry.db import get_db
from cabinetry.models import User
from cabinetry.schemas.cart import CartOut
from cabinetry.schemas.common import Deleted
from cabinetry.schemas.order import InvoiceOut, OrderOut, OrderSummary, PaymentIn, PaymentOut
from cabinetry.schemas.portal import (
    AddressIn,
    AddressOut,
    AddressUpdate,
    DashboardOut,
    MessageIn,
    MessageOut,
    Scope,
)
from cabinetry.schemas.quote import (
    AcceptQuoteIn,
    ChangeRequestIn,
    QuoteOut,
    QuoteSummary,
    QuoteToCartIn,
    RejectQuoteIn,
)
from cabinetry.services import account_service, cart_service, message_service, order_service, quote_service
from cabinetry.services.access import customer_order, customer_quote, ensure_scope_access
from cabinetry.services.document_renderer import DocumentRenderer

router = APIRouter(prefix="/portal", tags=["portal"])


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return account_service.dashboard(db, user)


# ----------------------------------------------------
# Quotes
# ----------------------------------------------------
@router.get("/quotes", response_model=List[QuoteSummary])
def my_quotes(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return quote_service.list_quotes(db, user=user)


@router.get("/quotes/{quote_id}", response_model=QuoteOut)
def quote_detail(quote_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    quote = customer_quote(db, user, quote_id)
    return quote_service.mark_viewed(db, quote)


@router.post("/quotes/{quote_id}/accept", response_model=OrderOut, status_code=201)
@limiter.limit(settings.PORTAL_WRITE_LIMIT)
def accept_quote(
    request: Request,
    quote_id: str,
    payload: AcceptQuoteIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    quote = customer_quote(db, user, quote_id)
    return quote_service.accept_quote(
        db,
        quote,
        user=user,
        payment_option=payload.payment_option,
        shipping_address_id=payload.shipping_address_id,
        billing_address_id=payload.billing_address_id,
    )


@router.post("/quotes/{quote_id}/reject", response_model=QuoteOut)
def reject_quote(
    quote_id: str,
    payload: RejectQuoteIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    quote = customer_quote(db, user, quote_id)
    return quote_service.reject_quote(db, quote, payload.reason)


@router.post("/quotes/{quote_id}/request-changes", response_model=QuoteOut)
def request_changes(
    quote_id: str,
    payload: ChangeRequestIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    quote = customer_quote(db, user, quote_id)
    return quote_service.request_changes(db, quote, payload.changes, actor=user.id)


@router.get("/quotes/{quote_id}/pdf")
def quote_pdf(quote_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    quote = customer_quote(db, user, quote_id)
    quote.pdf_url = DocumentRenderer().render_quote_pdf(quote)
    db.commit()
    return {"quote_id": quote.id, "pdf_url": quote.pdf_url}


@router.post("/quotes/{quote_id}/cart", response_model=CartOut)
def quote_to_cart(
    quote_id: str,
    payload: QuoteToCartIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    quote = customer_quote(db, user, quote_id)
    return cart_service.quote_to_cart(db, user, quote, payload.item_ids)


# ----------------------------------------------------
# Orders
# ----------------------------------------------------
@router.get("/orders", response_model=List[OrderSummary])
def my_orders(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return order_service.list_orders(db, user_id=user.id)


@router.get("/orders/{order_id}", response_model=OrderOut)
def order_detail(order_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return customer_order(db, user, order_id)


@router.get("/orders/{order_id}/invoices", response_model=List[InvoiceOut])
def order_invoices(order_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    order = customer_order(db, user, order_id)
    return [inv for inv in order.invoices if inv.status != "draft"]


@router.post("/orders/{order_id}/schedules/{schedule_id}/pay", response_model=PaymentOut, status_code=201)
@limiter.limit(settings.PORTAL_WRITE_LIMIT)
def pay_milestone(
    request: Request,
    order_id: str,
    schedule_id: str,
    payload: PaymentIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = customer_order(db, user, order_id)
    schedule = order_service.get_schedule(db, order, schedule_id)
    return order_service.record_payment(
        db, order, schedule, payload.amount, method=payload.method, reference=payload.reference
    )


# ----------------------------------------------------
# Address book
# ----------------------------------------------------
@router.get("/addresses", response_model=List[AddressOut])
def list_addresses(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return account_service.list_addresses(db, user)


@router.post("/addresses", response_model=AddressOut, status_code=201)
def create_address(payload: AddressIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return account_service.create_address(db, user, payload.model_dump())


@router.patch("/addresses/{address_id}", response_model=AddressOut)
def update_address(
    address_id: str,
    payload: AddressUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    address = account_service.get_address(db, user, address_id)
    return account_service.update_address(db, user, address, payload.model_dump(exclude_unset=True))


@router.delete("/addresses/{address_id}", response_model=Deleted)
def delete_address(address_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    address = account_service.get_address(db, user, address_id)
    account_service.delete_address(db, user, address)
    return Deleted(id=address_id)


# ----------------------------------------------------
# Messages
# ----------------------------------------------------
@router.get("/messages/{scope}/{scope_id}", response_model=List[MessageOut])
def thread(scope: Scope, scope_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_scope_access(db, user, scope, scope_id)
    return message_service.list_thread(db, scope, scope_id, reader="customer")


@router.post("/messages/{scope}/{scope_id}", response_model=MessageOut, status_code=201)
@limiter.limit(settings.PORTAL_WRITE_LIMIT)
def post_message(
    request: Request,
    scope: Scope,
    scope_id: str,
    payload: MessageIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_scope_access(db, user, scope, scope_id)
    return message_service.post_message(
        db,
        scope,
        scope_id,
        payload.message_text,
        message_type="customer",
        author_id=user.id,
        file_ids=payload.file_ids,
    )

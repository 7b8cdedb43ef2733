# cabinetry/services/access.py
from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from cabinetry.core.errors import BusinessRuleError, NotFoundError, PermissionDeniedError
from cabinetry.models import CartItem, Message, Order, Quote, User
from cabinetry.models.files import SCOPES


def owns_quote(user: User, quote: Quote) -> bool:
    if quote.user_id:
        return quote.user_id == user.id
    return quote.customer_email.lower() == user.email.lower()


def customer_quote(db: Session, user: User, quote_id: str) -> Quote:
    quote = db.get(Quote, quote_id)
    # hide other customers' quotes behind a 404
    if quote is None or not owns_quote(user, quote) or quote.status == "draft":
        raise NotFoundError(f"Quote {quote_id} not found")
    return quote


def customer_order(db: Session, user: User, order_id: str) -> Order:
    order = db.get(Order, order_id)
    if order is None or order.user_id != user.id:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def scope_owner_id(db: Session, scope: str, scope_id: str) -> Optional[str]:
    """User id of the customer a scoped record belongs to (None if unowned)."""
    if scope not in SCOPES:
        raise BusinessRuleError(f"Unknown scope '{scope}'", meta={"allowed": list(SCOPES)})
    if scope == "quote":
        quote = db.get(Quote, scope_id)
        if quote is None:
            raise NotFoundError(f"Quote {scope_id} not found")
        if quote.user_id:
            return quote.user_id
        user = db.query(User).filter(User.email == quote.customer_email.lower()).first()
        return user.id if user else None
    if scope == "order":
        order = db.get(Order, scope_id)
        if order is None:
            raise NotFoundError(f"Order {scope_id} not found")
        return order.user_id
    if scope == "cart_item":
        item = db.get(CartItem, scope_id)
        if item is None:
            raise NotFoundError(f"Cart item {scope_id} not found")
        return item.cart.user_id
    message = db.get(Message, scope_id)
    if message is None:
        raise NotFoundError(f"Message {scope_id} not found")
    return scope_owner_id(db, message.scope, message.scope_id)


def ensure_scope_access(db: Session, user: User, scope: str, scope_id: str) -> None:
    owner = scope_owner_id(db, scope, scope_id)
    if owner != user.id:
        raise PermissionDeniedError(
            f"Not allowed to access {scope} {scope_id}", meta={"scope": scope, "scope_id": scope_id}
        )

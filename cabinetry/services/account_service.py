# cabinetry/services/account_service.py
"""Customer accounts, address book and the portal dashboard."""
from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from cabinetry.auth.passwords import hash_password, verify_password
from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.domain.status import QUOTE_OPEN
from cabinetry.models import Address, Cart, CartItem, Order, PaymentSchedule, Quote, User
from cabinetry.services.message_service import unread_count


def register(db: Session, email: str, password: str, full_name=None, phone=None) -> User:
    email = email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise BusinessRuleError("Email already registered", code="email_taken")
    user = User(
        email=email,
        full_name=full_name,
        phone=phone,
        password_hash=hash_password(password),
        role="customer",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.bind(user_id=user.id).info("user_registered")
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        return None
    return user


# ----------------------------------------------------
# Address book
# ----------------------------------------------------
def list_addresses(db: Session, user: User) -> List[Address]:
    return (
        db.query(Address)
        .filter(Address.user_id == user.id)
        .order_by(Address.type, Address.is_default.desc(), Address.created_at)
        .all()
    )


def get_address(db: Session, user: User, address_id: str) -> Address:
    address = db.get(Address, address_id)
    if address is None or address.user_id != user.id:
        raise NotFoundError(f"Address {address_id} not found")
    return address


def _clear_defaults(db: Session, user: User, address_type: str, keep_id: str | None = None) -> None:
    q = db.query(Address).filter(
        Address.user_id == user.id, Address.type == address_type, Address.is_default.is_(True)
    )
    for other in q.all():
        if other.id != keep_id:
            other.is_default = False


def create_address(db: Session, user: User, data: Dict[str, Any]) -> Address:
    address = Address(user_id=user.id, **data)
    has_any = (
        db.query(Address).filter(Address.user_id == user.id, Address.type == address.type).first()
    )
    # first address of a type is the default
    if not has_any:
        address.is_default = True
    db.add(address)
    db.flush()
    if address.is_default:
        _clear_defaults(db, user, address.type, keep_id=address.id)
    db.commit()
    db.refresh(address)
    return address


def update_address(db: Session, user: User, address: Address, data: Dict[str, Any]) -> Address:
    for key, value in data.items():
        setattr(address, key, value)
    if data.get("is_default"):
        _clear_defaults(db, user, address.type, keep_id=address.id)
    db.commit()
    db.refresh(address)
    return address


def delete_address(db: Session, user: User, address: Address) -> None:
    was_default, address_type = address.is_default, address.type
    db.delete(address)
    db.flush()
    if was_default:
        replacement = (
            db.query(Address)
            .filter(Address.user_id == user.id, Address.type == address_type)
            .order_by(Address.created_at)
            .first()
        )
        if replacement is not None:
            replacement.is_default = True
    db.commit()


# ----------------------------------------------------
# Dashboard
# ----------------------------------------------------
def dashboard(db: Session, user: User) -> Dict[str, int]:
    owned_by_email = and_(Quote.user_id.is_(None), func.lower(Quote.customer_email) == user.email.lower())
    quotes = (
        db.query(Quote.id)
        .filter(or_(Quote.user_id == user.id, owned_by_email))
        .filter(Quote.status != "draft")
        .all()
    )
    quote_ids = [q.id for q in quotes]
    orders = db.query(Order.id).filter(Order.user_id == user.id).all()
    order_ids = [o.id for o in orders]

    open_quotes = (
        db.query(Quote).filter(Quote.id.in_(quote_ids), Quote.status.in_(QUOTE_OPEN)).count()
        if quote_ids else 0
    )
    active_orders = (
        db.query(Order)
        .filter(Order.user_id == user.id, Order.status.notin_(("delivered", "cancelled")))
        .count()
    )
    pending_payments = (
        db.query(PaymentSchedule)
        .filter(PaymentSchedule.order_id.in_(order_ids), PaymentSchedule.status.in_(("pending", "overdue")))
        .count()
        if order_ids else 0
    )
    unread = unread_count(db, "quote", quote_ids) + unread_count(db, "order", order_ids)
    cart_items = (
        db.query(CartItem)
        .join(Cart, Cart.id == CartItem.cart_id)
        .filter(Cart.user_id == user.id, Cart.status == "active")
        .count()
    )
    return {
        "open_quotes": open_quotes,
        "active_orders": active_orders,
        "pending_payments": pending_payments,
        "unread_messages": unread,
        "active_cart_items": cart_items,
    }

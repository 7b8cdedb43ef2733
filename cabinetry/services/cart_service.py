# cabinetry/services/cart_service.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.models import CabinetType, Cart, CartItem, Quote, QuoteItem, User
from cabinetry.services import quote_service
from cabinetry.services.pricing import item_configuration, load_rates, price_from_ids
from cabinetry.services.tax import qmoney, to_decimal


def _now() -> datetime:
    return datetime.now(timezone.utc)


def recompute_total(cart: Cart) -> Cart:
    cart.total_amount = qmoney(sum((to_decimal(i.total_price) for i in cart.items), Decimal("0")))
    cart.last_activity_at = _now()
    return cart


def _ensure_active(cart: Cart) -> None:
    if cart.status != "active":
        raise BusinessRuleError(f"Cart is {cart.status}", code="cart_not_active", meta={"cart_id": cart.id})


# ----------------------------------------------------
# Carts
# ----------------------------------------------------
def get_cart(db: Session, user: User, cart_id: str) -> Cart:
    cart = db.get(Cart, cart_id)
    if cart is None or cart.user_id != user.id:
        raise NotFoundError(f"Cart {cart_id} not found")
    return cart


def list_carts(db: Session, user: User, include_archived: bool = False) -> List[Cart]:
    q = db.query(Cart).filter(Cart.user_id == user.id)
    if not include_archived:
        q = q.filter(Cart.status == "active")
    return q.order_by(Cart.is_primary.desc(), Cart.last_activity_at.desc()).all()


def _active_cart(db: Session, user: User) -> Optional[Cart]:
    return (
        db.query(Cart)
        .filter(Cart.user_id == user.id, Cart.status == "active")
        .order_by(Cart.is_primary.desc(), Cart.last_activity_at.desc())
        .first()
    )


def get_or_create_active_cart(db: Session, user: User) -> Cart:
    cart = _active_cart(db, user)
    if cart is None:
        cart = Cart(user_id=user.id, name="My Cart", status="active", is_primary=True, source="web")
        db.add(cart)
        db.commit()
        db.refresh(cart)
        logger.bind(cart_id=cart.id, user_id=user.id).info("cart_created", source="web")
    return cart


def _clear_primary(db: Session, user: User, keep_id: Optional[str] = None) -> None:
    for other in db.query(Cart).filter(Cart.user_id == user.id, Cart.is_primary.is_(True)).all():
        if other.id != keep_id:
            other.is_primary = False


def create_cart(db: Session, user: User, name: str = "My Cart", make_primary: bool = False,
                source: str = "web") -> Cart:
    first = _active_cart(db, user) is None
    cart = Cart(user_id=user.id, name=name, status="active", source=source, is_primary=False)
    db.add(cart)
    db.flush()
    if make_primary or first:
        _clear_primary(db, user, keep_id=cart.id)
        cart.is_primary = True
    db.commit()
    db.refresh(cart)
    logger.bind(cart_id=cart.id, user_id=user.id).info("cart_created", source=source)
    return cart


def set_primary(db: Session, user: User, cart: Cart) -> Cart:
    _ensure_active(cart)
    _clear_primary(db, user, keep_id=cart.id)
    cart.is_primary = True
    db.commit()
    db.refresh(cart)
    return cart


def archive_cart(db: Session, user: User, cart: Cart) -> Cart:
    _ensure_active(cart)
    cart.status = "archived"
    cart.is_primary = False
    cart.last_activity_at = _now()
    db.commit()
    db.refresh(cart)
    logger.bind(cart_id=cart.id).info("cart_archived")
    return cart


# ----------------------------------------------------
# Housekeeping
# ----------------------------------------------------
def _abandon(cart: Cart, reason: str) -> None:
    cart.status = "abandoned"
    cart.is_primary = False
    cart.abandoned_at = _now()
    cart.abandon_reason = reason


def consolidate_carts(db: Session, user: User) -> Dict[str, Any]:
    """
    Tidy a customer's active carts: fix stored totals that drifted from their
    items, retire empty duplicates and make sure one cart is primary.

    The kept cart is the primary one, else the most recent cart with items,
    else the most recent cart.
    """
    carts = (
        db.query(Cart)
        .filter(Cart.user_id == user.id, Cart.status == "active")
        .order_by(Cart.last_activity_at.desc())
        .all()
    )
    if not carts:
        return {"kept_cart_id": None, "actions": []}

    keep = (
        next((c for c in carts if c.is_primary), None)
        or next((c for c in carts if c.items), None)
        or carts[0]
    )
    actions: List[Dict[str, Any]] = []

    for cart in carts:
        if cart is not keep and not cart.items:
            _abandon(cart, "Consolidated: duplicate empty cart")
            actions.append({"type": "empty_cart_retired", "cart_id": cart.id})
            continue
        actual = qmoney(sum((to_decimal(i.total_price) for i in cart.items), Decimal("0")))
        if actual != qmoney(cart.total_amount):
            actions.append(
                {"type": "total_fixed", "cart_id": cart.id,
                 "old_total": str(qmoney(cart.total_amount)), "new_total": str(actual)}
            )
            cart.total_amount = actual

    if not keep.is_primary:
        _clear_primary(db, user, keep_id=keep.id)
        keep.is_primary = True
        actions.append({"type": "primary_restored", "cart_id": keep.id})

    db.commit()
    logger.bind(user_id=user.id, cart_id=keep.id).info("carts_consolidated", actions=len(actions))
    return {"kept_cart_id": keep.id, "actions": actions}


def sweep_abandoned(db: Session, older_than_days: Optional[int] = None,
                    now: Optional[datetime] = None) -> int:
    """Mark active carts with no activity for ``older_than_days`` as abandoned."""
    days = older_than_days if older_than_days is not None else settings.CART_ABANDON_DAYS
    cutoff = (now or _now()) - timedelta(days=days)
    stale = (
        db.query(Cart)
        .filter(Cart.status == "active", Cart.last_activity_at < cutoff)
        .all()
    )
    for cart in stale:
        _abandon(cart, f"No activity for {days} days")
    db.commit()
    if stale:
        logger.bind(count=len(stale), days=days).info("carts_abandoned")
    return len(stale)


# ----------------------------------------------------
# Items
# ----------------------------------------------------
def _price(db: Session, data: Dict[str, Any]):
    return price_from_ids(
        db,
        data["cabinet_type_id"],
        data["width_mm"],
        data["height_mm"],
        data["depth_mm"],
        data.get("quantity") or 1,
        door_style_id=data.get("door_style_id"),
        color_id=data.get("color_id"),
        finish_id=data.get("finish_id"),
        option_ids=data.get("production_option_ids") or [],
        rates=load_rates(db),
    )


_ITEM_COLUMNS = (
    "cabinet_type_id", "door_style_id", "color_id", "finish_id",
    "width_mm", "height_mm", "depth_mm", "quantity", "notes",
)


def add_item(db: Session, cart: Cart, data: Dict[str, Any]) -> CartItem:
    _ensure_active(cart)
    ct = db.get(CabinetType, data["cabinet_type_id"])
    if ct is None or not ct.active:
        raise NotFoundError(f"Cabinet type {data['cabinet_type_id']} not found")
    bd = _price(db, data)
    item = CartItem(
        **{k: data.get(k) for k in _ITEM_COLUMNS},
        unit_price=bd.unit_price,
        total_price=bd.total_price,
        configuration=item_configuration(bd, data.get("hardware"), data.get("assembly")),
    )
    if item.quantity is None:
        item.quantity = 1
    cart.items.append(item)
    recompute_total(cart)
    db.commit()
    db.refresh(item)
    logger.bind(cart_id=cart.id, item_id=item.id).info(
        "cart_item_added", cabinet_type_id=ct.id, total=str(item.total_price)
    )
    return item


def get_item(cart: Cart, item_id: str) -> CartItem:
    for item in cart.items:
        if item.id == item_id:
            return item
    raise NotFoundError(f"Cart item {item_id} not found")


def update_item(db: Session, cart: Cart, item: CartItem, data: Dict[str, Any]) -> CartItem:
    """Apply changes and reprice; a price-locked item keeps its override unit price."""
    _ensure_active(cart)
    config = dict(item.configuration or {})
    merged = {k: getattr(item, k) for k in _ITEM_COLUMNS}
    merged["production_option_ids"] = config.get("production_option_ids", [])
    merged["hardware"] = config.get("hardware", {})
    merged["assembly"] = config.get("assembly")
    merged.update(data)

    for key in _ITEM_COLUMNS:
        setattr(item, key, merged.get(key))

    if item.price_locked:
        config.update(
            production_option_ids=list(merged["production_option_ids"] or []),
            hardware=dict(merged["hardware"] or {}),
            assembly=merged["assembly"] or "none",
        )
        item.configuration = config
        item.unit_price = qmoney(item.price_override)
        item.total_price = qmoney(item.unit_price * item.quantity)
    else:
        bd = _price(db, merged)
        item.unit_price = bd.unit_price
        item.total_price = bd.total_price
        item.configuration = item_configuration(bd, merged["hardware"], merged["assembly"])

    recompute_total(cart)
    db.commit()
    db.refresh(item)
    return item


def remove_item(db: Session, cart: Cart, item: CartItem) -> None:
    _ensure_active(cart)
    cart.items.remove(item)
    recompute_total(cart)
    db.commit()
    logger.bind(cart_id=cart.id, item_id=item.id).info("cart_item_removed")


def override_price(db: Session, item: CartItem, unit_price: Any, reason: str,
                   *, actor: str = "admin") -> CartItem:
    cart = item.cart
    _ensure_active(cart)
    item.price_override = qmoney(unit_price)
    item.override_reason = reason
    item.unit_price = item.price_override
    item.total_price = qmoney(item.unit_price * item.quantity)
    recompute_total(cart)
    db.commit()
    db.refresh(item)
    logger.bind(cart_id=cart.id, item_id=item.id).info(
        "cart_item_price_overridden", unit_price=str(item.unit_price), actor=actor
    )
    return item


# ----------------------------------------------------
# Conversions
# ----------------------------------------------------
def cart_to_quote(db: Session, user: User, cart: Cart, *, notes: Optional[str] = None,
                  customer_phone: Optional[str] = None) -> Quote:
    _ensure_active(cart)
    if not cart.items:
        raise BusinessRuleError("Cart is empty", code="cart_empty", meta={"cart_id": cart.id})

    quote = quote_service.new_quote(
        db,
        customer_name=user.full_name or user.email,
        customer_email=user.email,
        customer_phone=customer_phone or user.phone,
        user_id=user.id,
        notes=notes or cart.notes,
        source_cart_id=cart.id,
    )
    for n, item in enumerate(cart.items, start=1):
        ct = db.get(CabinetType, item.cabinet_type_id)
        quote.items.append(
            QuoteItem(
                line_number=n,
                item_name=ct.name if ct else "Cabinet",
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
                notes=item.notes,
            )
        )
    quote_service.recompute_totals(quote)
    db.flush()

    cart.status = "converted"
    cart.is_primary = False
    cart.converted_quote_id = quote.id
    cart.last_activity_at = _now()
    db.commit()
    db.refresh(quote)
    logger.bind(cart_id=cart.id, quote_id=quote.id, quote_number=quote.quote_number).info(
        "cart_converted_to_quote", items=len(quote.items)
    )
    return quote


def _configurable(q_item) -> bool:
    return bool(q_item.cabinet_type_id and q_item.width_mm and q_item.height_mm and q_item.depth_mm)


def quote_to_cart(db: Session, user: User, quote: Quote,
                  item_ids: Optional[Sequence[str]] = None) -> Cart:
    """
    Copy quote lines into the customer's active cart. With no active cart a
    new one named after the quote is opened. Copied lines keep the quoted
    price as an override so later edits do not reprice them.

    Manual lines (no cabinet or dimensions) are skipped when copying the
    whole quote; selecting one explicitly is an error.
    """
    wanted = None if item_ids is None else set(item_ids)
    selected = [i for i in quote.items if wanted is None or i.id in wanted]
    if not selected:
        raise BusinessRuleError("No items selected", code="no_items_selected")
    manual = [i.id for i in selected if not _configurable(i)]
    if manual and wanted is not None:
        raise BusinessRuleError(
            "Manual quote lines cannot be added to a cart",
            code="items_not_configurable",
            meta={"item_ids": manual},
        )
    selected = [i for i in selected if _configurable(i)]
    if not selected:
        raise BusinessRuleError("No items selected", code="no_items_selected")

    cart = _active_cart(db, user)
    if cart is None:
        cart = Cart(
            user_id=user.id,
            name=f"Quote {quote.quote_number}",
            status="active",
            is_primary=True,
            source="quote_conversion",
        )
        db.add(cart)

    for q_item in selected:
        cart.items.append(
            CartItem(
                cabinet_type_id=q_item.cabinet_type_id,
                door_style_id=q_item.door_style_id,
                color_id=q_item.color_id,
                finish_id=q_item.finish_id,
                width_mm=q_item.width_mm,
                height_mm=q_item.height_mm,
                depth_mm=q_item.depth_mm,
                quantity=q_item.quantity,
                unit_price=q_item.unit_price,
                total_price=q_item.total_price,
                price_override=q_item.unit_price,
                override_reason=f"Quoted on {quote.quote_number}",
                configuration=dict(q_item.configuration or {}),
                notes=f"Added from quote {quote.quote_number}",
            )
        )
    recompute_total(cart)
    db.commit()
    db.refresh(cart)
    logger.bind(cart_id=cart.id, quote_id=quote.id).info("quote_copied_to_cart", items=len(selected))
    return cart

# cabinetry/routers/carts.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cabinetry.auth.admin import AdminIdentity, require_admin
from cabinetry.auth.deps import get_current_user
from cabinetry.db import get_db
from cabinetry.models import CartItem, User
from cabinetry.schemas.cart import (
    AbandonSweepResult,
    CartCreate,
    CartItemOut,
    CartItemUpdate,
    CartOut,
    CartSummary,
    CartToQuoteIn,
    CheckoutIn,
    ConsolidationResult,
    ItemConfigIn,
    PriceOverrideIn,
)
from cabinetry.schemas.common import Deleted
from cabinetry.schemas.order import OrderOut
from cabinetry.schemas.quote import QuoteOut
from cabinetry.services import cart_service, order_service
from cabinetry.services.catalog_service import get_or_404

router = APIRouter(prefix="/carts", tags=["carts"])
admin_router = APIRouter(prefix="/admin/cart-items", tags=["admin-carts"])
admin_carts_router = APIRouter(
    prefix="/admin/carts", tags=["admin-carts"], dependencies=[Depends(require_admin)]
)


@router.get("", response_model=List[CartSummary])
def list_carts(
    include_archived: bool = Query(False),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return cart_service.list_carts(db, user, include_archived=include_archived)


@router.post("", response_model=CartOut, status_code=201)
def create_cart(payload: CartCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return cart_service.create_cart(db, user, payload.name, make_primary=payload.make_primary)


@router.post("/consolidate", response_model=ConsolidationResult)
def consolidate(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return cart_service.consolidate_carts(db, user)


@router.get("/active", response_model=CartOut)
def active_cart(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return cart_service.get_or_create_active_cart(db, user)


@router.get("/{cart_id}", response_model=CartOut)
def get_cart(cart_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return cart_service.get_cart(db, user, cart_id)


@router.post("/{cart_id}/primary", response_model=CartOut)
def set_primary(cart_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    cart = cart_service.get_cart(db, user, cart_id)
    return cart_service.set_primary(db, user, cart)


@router.post("/{cart_id}/archive", response_model=CartOut)
def archive(cart_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    cart = cart_service.get_cart(db, user, cart_id)
    return cart_service.archive_cart(db, user, cart)


# ----------------------------------------------------
# Items
# ----------------------------------------------------
@router.post("/{cart_id}/items", response_model=CartItemOut, status_code=201)
def add_item(
    cart_id: str,
    payload: ItemConfigIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = cart_service.get_cart(db, user, cart_id)
    return cart_service.add_item(db, cart, payload.model_dump())


@router.patch("/{cart_id}/items/{item_id}", response_model=CartItemOut)
def update_item(
    cart_id: str,
    item_id: str,
    payload: CartItemUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = cart_service.get_cart(db, user, cart_id)
    item = cart_service.get_item(cart, item_id)
    return cart_service.update_item(db, cart, item, payload.model_dump(exclude_unset=True))


@router.delete("/{cart_id}/items/{item_id}", response_model=Deleted)
def remove_item(
    cart_id: str,
    item_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = cart_service.get_cart(db, user, cart_id)
    item = cart_service.get_item(cart, item_id)
    cart_service.remove_item(db, cart, item)
    return Deleted(id=item_id)


# ----------------------------------------------------
# Conversions
# ----------------------------------------------------
@router.post("/{cart_id}/quote", response_model=QuoteOut, status_code=201)
def convert_to_quote(
    cart_id: str,
    payload: CartToQuoteIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = cart_service.get_cart(db, user, cart_id)
    return cart_service.cart_to_quote(
        db, user, cart, notes=payload.notes, customer_phone=payload.customer_phone
    )


@router.post("/{cart_id}/checkout", response_model=OrderOut, status_code=201)
def checkout(
    cart_id: str,
    payload: CheckoutIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = cart_service.get_cart(db, user, cart_id)
    return order_service.create_order_from_checkout(db, user, cart, **payload.model_dump())


# ----------------------------------------------------
# Admin
# ----------------------------------------------------
@admin_router.post("/{item_id}/price-override", response_model=CartItemOut)
def override_price(
    item_id: str,
    payload: PriceOverrideIn,
    db: Session = Depends(get_db),
    admin: AdminIdentity = Depends(require_admin),
):
    item = get_or_404(db, CartItem, item_id)
    return cart_service.override_price(db, item, payload.unit_price, payload.reason, actor=admin.username)


@admin_carts_router.post("/sweep/abandoned", response_model=AbandonSweepResult)
def sweep_abandoned(
    older_than_days: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    return AbandonSweepResult(abandoned=cart_service.sweep_abandoned(db, older_than_days))

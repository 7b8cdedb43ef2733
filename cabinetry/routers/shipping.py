# cabinetry/routers/shipping.py
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cabinetry.auth.deps import get_current_user
from cabinetry.core.errors import BusinessRuleError
from cabinetry.db import get_db
from cabinetry.dependencies import get_geocoder
from cabinetry.models import User
from cabinetry.schemas.shipping import EligibilityIn, ShippingQuoteIn, ShippingQuoteOut
from cabinetry.services import cart_service, shipping_service
from cabinetry.services.geocoding import GeocodingClient

router = APIRouter(prefix="/shipping", tags=["shipping"])


@router.post("/assembly-eligibility")
def assembly_eligibility(
    payload: EligibilityIn,
    db: Session = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
) -> Dict[str, Any]:
    return shipping_service.check_assembly_eligibility(db, payload.postcode, geocoder=geocoder)


@router.post("/quote", response_model=ShippingQuoteOut)
def shipping_quote(
    payload: ShippingQuoteIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if payload.cart_id:
        cart = cart_service.get_cart(db, user, payload.cart_id)
    else:
        cart = cart_service.get_or_create_active_cart(db, user)
    if not cart.items:
        raise BusinessRuleError("Cart is empty", code="cart_empty")
    quote = shipping_service.quote_shipping(
        db,
        payload.postcode,
        shipping_service.packed_items_from_cart(db, cart.items),
        residential=payload.residential,
        tail_lift=payload.tail_lift,
    )
    return quote.as_dict()

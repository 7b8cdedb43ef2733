# cabinetry/services/shipment_service.py
"""
Shipments for orders that have left production.

    preparing -> in_transit -> delivered
    preparing | in_transit -> cancelled

A shipment going in transit moves the order to ``shipped``; once every live
shipment is delivered the order is ``delivered``.
"""
from __future__ import annotations

import secrets
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from cabinetry import tasks
from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.domain.status import ORDER_FLOW, ensure_shipment_transition
from cabinetry.models import Order, PostcodeZone, Shipment
from cabinetry.services.tax import qmoney

SHIPPABLE_ORDER_STATUSES = ("ready_for_delivery", "shipped")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def tracking_number(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"TRK{today:%Y%m%d}{secrets.token_hex(3).upper()}"


def estimate_delivery(db: Session, address: Dict[str, Any], today: Optional[date] = None) -> date:
    today = today or date.today()
    zone = None
    if address.get("postcode"):
        zone = db.query(PostcodeZone).filter(PostcodeZone.postcode == address["postcode"]).first()
    lead = zone.lead_time_days if zone and zone.lead_time_days else settings.DEFAULT_LEAD_TIME_DAYS
    return today + timedelta(days=lead)


def get_shipment(db: Session, order: Order, shipment_id: str) -> Shipment:
    shipment = db.get(Shipment, shipment_id)
    if shipment is None or shipment.order_id != order.id:
        raise NotFoundError(f"Shipment {shipment_id} not found")
    return shipment


def create_shipment(db: Session, order: Order, data: Dict[str, Any], *, actor: str = "admin") -> Shipment:
    if order.status not in SHIPPABLE_ORDER_STATUSES:
        raise BusinessRuleError(
            "Order is not ready for shipping",
            code="order_not_ready",
            meta={"status": order.status, "allowed": list(SHIPPABLE_ORDER_STATUSES)},
        )
    address = data.get("shipping_address") or order.shipping_address
    if not address:
        raise BusinessRuleError("No shipping address available", meta={"order_id": order.id})

    shipment = Shipment(
        order_id=order.id,
        carrier=data["carrier"].strip().upper(),
        service_type=data["service_type"],
        tracking_number=data.get("tracking_number") or tracking_number(),
        tracking_url=data.get("tracking_url"),
        pallet_count=data.get("pallet_count") or 1,
        weight_kg=data.get("weight_kg"),
        shipping_cost=qmoney(data["shipping_cost"]) if data.get("shipping_cost") is not None else None,
        shipping_address=dict(address),
        estimated_delivery=data.get("estimated_delivery") or estimate_delivery(db, address),
        created_by=actor,
        notes=data.get("notes"),
        status="preparing",
    )
    db.add(shipment)
    order.production_status = "ready_for_shipping"
    db.commit()
    db.refresh(shipment)
    logger.bind(order_id=order.id, shipment_id=shipment.id).info(
        "shipment_created", carrier=shipment.carrier, tracking_number=shipment.tracking_number
    )
    return shipment


def _advance_order(order: Order, target: str) -> None:
    if order.status in ORDER_FLOW and ORDER_FLOW.index(order.status) < ORDER_FLOW.index(target):
        order.status = target


def update_shipment(db: Session, order: Order, shipment: Shipment, data: Dict[str, Any]) -> Shipment:
    status = data.pop("status", None)
    for key in ("tracking_number", "tracking_url", "estimated_delivery", "notes"):
        if data.get(key) is not None:
            setattr(shipment, key, data[key])

    dispatched = False
    if status and status != shipment.status:
        ensure_shipment_transition(shipment.status, status)
        logger.bind(shipment_id=shipment.id).info("shipment_status_changed", old=shipment.status, new=status)
        shipment.status = status
        if status == "in_transit":
            shipment.shipped_at = _now()
            _advance_order(order, "shipped")
            dispatched = True
        elif status == "delivered":
            shipment.delivered_at = _now()
            live = [s for s in order.shipments if s.status != "cancelled"]
            if all(s.status == "delivered" for s in live):
                _advance_order(order, "delivered")

    db.commit()
    db.refresh(shipment)
    if dispatched:
        tasks.send_shipment_dispatched.delay(shipment.id)
    return shipment

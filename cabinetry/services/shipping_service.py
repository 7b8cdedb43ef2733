# cabinetry/services/shipping_service.py
"""
Postcode zones, assembly surcharge zones and delivery pricing.

Radius assignment rules:
  * postcodes inside a zone's radius become assembly eligible with the
    zone's surcharges and ``assignment_method = "radius"``;
  * a manual edit always sets ``assignment_method = "manual"`` and a later
    radius application skips that postcode unless ``override_manual`` is set;
  * postcodes this zone assigned earlier that now fall outside the radius
    are released.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.domain.geo import (
    GeoPoint,
    distance_km,
    is_valid_coordinate,
    is_valid_postcode,
)
from cabinetry.models import AssemblySurchargeZone, CabinetType, PostcodeZone, RateCard
from cabinetry.observability.metrics import radius_applied_counter
from cabinetry.services.geocoding import GeocodingClient
from cabinetry.services.tax import calc_gst, qmoney, to_decimal

ASSEMBLY_INCLUDES = [
    "Professional installation",
    "Assembly of carcass components",
    "Drawer runner installation",
    "Quality inspection",
]

# packed weight per cabinet by category
PACKAGE_WEIGHT_KG = {"base": Decimal("25"), "top": Decimal("15")}
DEFAULT_PACKAGE_WEIGHT_KG = Decimal("5")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_postcode(postcode: Optional[str]) -> str:
    if not is_valid_postcode(postcode):
        raise BusinessRuleError("Valid 4-digit postcode required", meta={"postcode": postcode})
    return postcode.strip()


# ----------------------------------------------------
# Postcode zones
# ----------------------------------------------------
def get_postcode(db: Session, postcode: str) -> Optional[PostcodeZone]:
    return db.query(PostcodeZone).filter(PostcodeZone.postcode == postcode).first()


def list_postcodes(
    db: Session,
    *,
    state: Optional[str] = None,
    assignment_method: Optional[str] = None,
    assembly_eligible: Optional[bool] = None,
    search: Optional[str] = None,
    limit: int = 200,
    offset: int = 0,
) -> List[PostcodeZone]:
    q = db.query(PostcodeZone)
    if state:
        q = q.filter(PostcodeZone.state == state.upper())
    if assignment_method == "none":
        q = q.filter(PostcodeZone.assignment_method.is_(None))
    elif assignment_method:
        q = q.filter(PostcodeZone.assignment_method == assignment_method)
    if assembly_eligible is not None:
        q = q.filter(PostcodeZone.assembly_eligible.is_(assembly_eligible))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(PostcodeZone.postcode.like(term), PostcodeZone.suburb.ilike(term)))
    return q.order_by(PostcodeZone.postcode).offset(offset).limit(limit).all()


def _check_postcode_fields(data: Dict[str, Any]) -> None:
    if "postcode" in data:
        _require_postcode(data["postcode"])
    lat, lon = data.get("latitude"), data.get("longitude")
    if (lat is not None or lon is not None) and not is_valid_coordinate(lat, lon):
        raise BusinessRuleError("Invalid coordinates", meta={"latitude": lat, "longitude": lon})
    for key in ("assembly_carcass_surcharge_pct", "assembly_doors_surcharge_pct"):
        if data.get(key) is not None and to_decimal(data[key]) < 0:
            raise BusinessRuleError(f"{key} cannot be negative")


def create_postcode(db: Session, data: Dict[str, Any]) -> PostcodeZone:
    _check_postcode_fields(data)
    if get_postcode(db, data["postcode"]):
        raise BusinessRuleError(f"Postcode {data['postcode']} already exists")
    pc = PostcodeZone(**data)
    db.add(pc)
    db.commit()
    db.refresh(pc)
    logger.bind(postcode=pc.postcode).info("postcode_created")
    return pc


def update_postcode(db: Session, pc: PostcodeZone, data: Dict[str, Any]) -> PostcodeZone:
    """Delivery fields (zone, metro, lead time, ...). Assembly fields go through update_postcode_assembly."""
    _check_postcode_fields(data)
    for key, value in data.items():
        setattr(pc, key, value)
    db.commit()
    db.refresh(pc)
    return pc


def update_postcode_assembly(db: Session, pc: PostcodeZone, data: Dict[str, Any]) -> PostcodeZone:
    """Manual admin edit of assembly settings; pins the postcode as manual."""
    _check_postcode_fields(data)
    for key, value in data.items():
        setattr(pc, key, value)
    pc.assignment_method = "manual"
    pc.assigned_zone_id = None
    pc.last_assignment_date = _now()
    db.commit()
    db.refresh(pc)
    logger.bind(postcode=pc.postcode, fields=sorted(data)).info("postcode_assembly_manual_update")
    return pc


def delete_postcode(db: Session, pc: PostcodeZone) -> None:
    db.delete(pc)
    db.commit()


def bulk_import_postcodes(db: Session, rows: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    created = updated = 0
    errors: List[Dict[str, Any]] = []
    for i, row in enumerate(rows):
        try:
            _check_postcode_fields(row)
        except BusinessRuleError as e:
            errors.append({"row": i, "postcode": row.get("postcode"), "error": e.message})
            continue
        existing = get_postcode(db, row["postcode"])
        if existing:
            for key, value in row.items():
                setattr(existing, key, value)
            updated += 1
        else:
            db.add(PostcodeZone(**row))
            created += 1
    db.commit()
    logger.bind(created=created, updated=updated, errors=len(errors)).info("postcodes_imported")
    return {"created": created, "updated": updated, "errors": errors}


# ----------------------------------------------------
# Assembly surcharge zones
# ----------------------------------------------------
def _check_zone_fields(data: Dict[str, Any]) -> None:
    if "zone_name" in data and not (data["zone_name"] or "").strip():
        raise BusinessRuleError("zone_name is required")
    if "radius_km" in data and (data["radius_km"] is None or data["radius_km"] <= 0):
        raise BusinessRuleError("radius_km must be greater than 0")
    if "center_latitude" in data or "center_longitude" in data:
        if not is_valid_coordinate(data.get("center_latitude"), data.get("center_longitude")):
            raise BusinessRuleError("Invalid center coordinates")
    for key in ("carcass_surcharge_pct", "doors_surcharge_pct"):
        if data.get(key) is not None and to_decimal(data[key]) < 0:
            raise BusinessRuleError(f"{key} cannot be negative")


def get_zone(db: Session, zone_id: str) -> AssemblySurchargeZone:
    zone = db.get(AssemblySurchargeZone, zone_id)
    if zone is None:
        raise NotFoundError(f"Assembly zone {zone_id} not found")
    return zone


def create_zone(db: Session, data: Dict[str, Any]) -> AssemblySurchargeZone:
    _check_zone_fields(data)
    zone = AssemblySurchargeZone(**data)
    db.add(zone)
    db.commit()
    db.refresh(zone)
    logger.bind(zone_id=zone.id, zone_name=zone.zone_name).info("assembly_zone_created")
    return zone


def update_zone(db: Session, zone: AssemblySurchargeZone, data: Dict[str, Any]) -> AssemblySurchargeZone:
    merged = {
        "center_latitude": data.get("center_latitude", zone.center_latitude),
        "center_longitude": data.get("center_longitude", zone.center_longitude),
        **data,
    }
    _check_zone_fields(merged)
    for key, value in data.items():
        setattr(zone, key, value)
    db.commit()
    db.refresh(zone)
    return zone


def _release(pc: PostcodeZone) -> None:
    pc.assembly_eligible = False
    pc.assembly_carcass_surcharge_pct = Decimal("0")
    pc.assembly_doors_surcharge_pct = Decimal("0")
    pc.assignment_method = None
    pc.assigned_zone_id = None
    pc.last_assignment_date = _now()


def delete_zone(db: Session, zone: AssemblySurchargeZone) -> int:
    """Delete a zone and release the postcodes it assigned. Returns the released count."""
    assigned = db.query(PostcodeZone).filter(PostcodeZone.assigned_zone_id == zone.id).all()
    for pc in assigned:
        _release(pc)
    db.delete(zone)
    db.commit()
    logger.bind(zone_id=zone.id, released=len(assigned)).info("assembly_zone_deleted")
    return len(assigned)


# ----------------------------------------------------
# Radius preview / apply
# ----------------------------------------------------
@dataclass
class RadiusRow:
    postcode: str
    suburb: Optional[str]
    state: str
    distance_km: Optional[float]
    within_radius: bool
    assignment_method: Optional[str]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "postcode": self.postcode,
            "suburb": self.suburb,
            "state": self.state,
            "distance_km": self.distance_km,
            "within_radius": self.within_radius,
            "assignment_method": self.assignment_method,
        }


@dataclass
class RadiusPreview:
    rows: List[RadiusRow] = field(default_factory=list)
    geocoded_count: int = 0
    geocode_errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def stats(self) -> Dict[str, Any]:
        total = len(self.rows)
        within = sum(1 for r in self.rows if r.within_radius)
        missing = sum(1 for r in self.rows if r.distance_km is None)
        with_coords = total - missing
        return {
            "total": total,
            "within_radius": within,
            "outside_radius": with_coords - within,
            "missing_coordinates": missing,
            "coverage_pct": round(within / total * 100, 1) if total else 0.0,
            "geocoded_count": self.geocoded_count,
        }


def geocode_missing(db: Session, geocoder: GeocodingClient, limit: Optional[int] = None) -> tuple[int, List[Dict[str, str]]]:
    """Fill in coordinates for postcodes that have none, one batch at a time."""
    pending = (
        db.query(PostcodeZone)
        .filter(or_(PostcodeZone.latitude.is_(None), PostcodeZone.longitude.is_(None)))
        .order_by(PostcodeZone.postcode)
        .limit(limit or settings.GEOCODE_BATCH_LIMIT)
        .all()
    )
    by_code = {pc.postcode: pc for pc in pending}
    results = geocoder.geocode_many(((pc.postcode, pc.suburb, pc.state) for pc in pending), limit=limit)
    count = 0
    errors: List[Dict[str, str]] = []
    for res in results:
        if res.ok:
            pc = by_code[res.postcode]
            pc.latitude, pc.longitude = res.latitude, res.longitude
            count += 1
        else:
            errors.append({"postcode": res.postcode, "error": res.error or "unknown"})
    db.commit()
    logger.bind(geocoded=count, failed=len(errors)).info("postcodes_geocoded")
    return count, errors


def preview_radius(
    db: Session,
    center: GeoPoint,
    radius_km: float,
    *,
    geocoder: Optional[GeocodingClient] = None,
) -> RadiusPreview:
    if radius_km is None or radius_km <= 0:
        raise BusinessRuleError("radius_km must be greater than 0")
    if not is_valid_coordinate(center.latitude, center.longitude):
        raise BusinessRuleError("Invalid center coordinates")

    preview = RadiusPreview()
    if geocoder is not None and geocoder.enabled:
        preview.geocoded_count, preview.geocode_errors = geocode_missing(db, geocoder)

    for pc in db.query(PostcodeZone).all():
        if pc.latitude is None or pc.longitude is None:
            dist = None
        else:
            dist = distance_km(center, GeoPoint(pc.latitude, pc.longitude))
        preview.rows.append(
            RadiusRow(
                postcode=pc.postcode,
                suburb=pc.suburb,
                state=pc.state,
                distance_km=dist,
                within_radius=dist is not None and dist <= radius_km,
                assignment_method=pc.assignment_method,
            )
        )
    # nearest first, unknown distances last
    preview.rows.sort(key=lambda r: (r.distance_km is None, r.distance_km or 0.0, r.postcode))
    return preview


@dataclass
class RadiusApplication:
    zone_id: str
    assigned: List[str] = field(default_factory=list)
    released: List[str] = field(default_factory=list)
    skipped_manual: List[str] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "zone_id": self.zone_id,
            "assigned_count": len(self.assigned),
            "released_count": len(self.released),
            "skipped_manual": self.skipped_manual,
            "assigned": self.assigned,
            "released": self.released,
        }


def apply_zone_radius(
    db: Session, zone: AssemblySurchargeZone, *, override_manual: bool = False
) -> RadiusApplication:
    if not zone.active:
        raise BusinessRuleError("Cannot apply an inactive assembly zone")

    center = GeoPoint(zone.center_latitude, zone.center_longitude)
    result = RadiusApplication(zone_id=zone.id)
    now = _now()

    for pc in db.query(PostcodeZone).all():
        if pc.latitude is None or pc.longitude is None:
            continue
        inside = distance_km(center, GeoPoint(pc.latitude, pc.longitude)) <= zone.radius_km

        if inside:
            if pc.assignment_method == "manual" and not override_manual:
                result.skipped_manual.append(pc.postcode)
                continue
            pc.assembly_eligible = True
            pc.assembly_carcass_surcharge_pct = zone.carcass_surcharge_pct
            pc.assembly_doors_surcharge_pct = zone.doors_surcharge_pct
            pc.assignment_method = "radius"
            pc.assigned_zone_id = zone.id
            pc.last_assignment_date = now
            result.assigned.append(pc.postcode)
        elif pc.assigned_zone_id == zone.id and pc.assignment_method == "radius":
            _release(pc)
            result.released.append(pc.postcode)

    zone.affected_postcodes_count = len(result.assigned)
    zone.last_applied_at = now
    db.commit()

    radius_applied_counter.inc()
    logger.bind(
        zone_id=zone.id,
        assigned=len(result.assigned),
        released=len(result.released),
        skipped_manual=len(result.skipped_manual),
        override_manual=override_manual,
    ).info("radius_applied")
    return result


# ----------------------------------------------------
# Assembly eligibility
# ----------------------------------------------------
def _with_surcharge(base: Decimal, pct: Any) -> Decimal:
    return qmoney(base * (Decimal("1") + to_decimal(pct) / Decimal("100")))


def check_assembly_eligibility(
    db: Session, postcode: str, *, geocoder: Optional[GeocodingClient] = None
) -> Dict[str, Any]:
    postcode = _require_postcode(postcode)
    pc = get_postcode(db, postcode)

    if pc is not None:
        result: Dict[str, Any] = {
            "postcode": pc.postcode,
            "eligible": bool(pc.assembly_eligible),
            "state": pc.state,
            "zone": pc.zone,
            "metro": pc.metro,
            "lead_time_days": pc.lead_time_days or settings.DEFAULT_LEAD_TIME_DAYS,
            "source": "postcode_zone",
        }
        if pc.assembly_eligible:
            carcass_base = to_decimal(pc.assembly_carcass_base or settings.ASSEMBLY_CARCASS_BASE_PRICE)
            doors_base = to_decimal(pc.assembly_doors_base or settings.ASSEMBLY_DOORS_BASE_PRICE)
            carcass_pct = to_decimal(pc.assembly_carcass_surcharge_pct)
            doors_pct = to_decimal(pc.assembly_doors_surcharge_pct)
            result["carcass_only_price"] = _with_surcharge(carcass_base, carcass_pct)
            result["with_doors_price"] = _with_surcharge(doors_base, doors_pct)
            result["includes"] = list(ASSEMBLY_INCLUDES)
            if carcass_pct > 0 or doors_pct > 0:
                result["surcharge_info"] = {
                    "carcass_surcharge_pct": carcass_pct,
                    "doors_surcharge_pct": doors_pct,
                    "reason": "Remote area surcharge" if pc.remote else "Regional surcharge",
                }
        return result

    result = {
        "postcode": postcode,
        "eligible": False,
        "lead_time_days": settings.DEFAULT_LEAD_TIME_DAYS,
        "source": "unknown",
    }
    if geocoder is None or not geocoder.enabled:
        return result

    geo = geocoder.geocode_postcode(postcode)
    if not geo.ok:
        return result
    result["source"] = "geocoded"

    point = GeoPoint(geo.latitude, geo.longitude)
    nearest: Optional[tuple[float, AssemblySurchargeZone]] = None
    for zone in db.query(AssemblySurchargeZone).filter(AssemblySurchargeZone.active.is_(True)).all():
        dist = distance_km(point, GeoPoint(zone.center_latitude, zone.center_longitude))
        if dist <= zone.radius_km and (nearest is None or dist < nearest[0]):
            nearest = (dist, zone)

    if nearest is not None:
        dist, zone = nearest
        result["eligible"] = True
        result["assembly_center"] = {"name": zone.zone_name, "distance_km": dist}
        result["carcass_only_price"] = _with_surcharge(
            to_decimal(settings.ASSEMBLY_CARCASS_BASE_PRICE), zone.carcass_surcharge_pct
        )
        result["with_doors_price"] = _with_surcharge(
            to_decimal(settings.ASSEMBLY_DOORS_BASE_PRICE), zone.doors_surcharge_pct
        )
        result["includes"] = list(ASSEMBLY_INCLUDES)
        if to_decimal(zone.carcass_surcharge_pct) > 0 or to_decimal(zone.doors_surcharge_pct) > 0:
            result["surcharge_info"] = {
                "carcass_surcharge_pct": to_decimal(zone.carcass_surcharge_pct),
                "doors_surcharge_pct": to_decimal(zone.doors_surcharge_pct),
                "reason": "Regional surcharge",
            }
    return result


# ----------------------------------------------------
# Delivery pricing
# ----------------------------------------------------
@dataclass
class PackedItem:
    category: str
    width_mm: int
    height_mm: int
    depth_mm: int
    quantity: int


@dataclass
class ShippingQuote:
    carrier: str
    service_name: str
    zone_from: str
    zone_to: str
    weight_kg: Decimal
    cubic_m3: Decimal
    ex_gst: Decimal
    gst: Decimal
    total: Decimal
    lead_time_days: int

    def as_dict(self) -> Dict[str, Any]:
        return {
            "carrier": self.carrier,
            "service_name": self.service_name,
            "zone_from": self.zone_from,
            "zone_to": self.zone_to,
            "weight_kg": self.weight_kg,
            "cubic_m3": self.cubic_m3,
            "ex_gst": self.ex_gst,
            "gst": self.gst,
            "total": self.total,
            "lead_time_days": self.lead_time_days,
        }


def package_weight(category: Optional[str]) -> Decimal:
    return PACKAGE_WEIGHT_KG.get((category or "").lower(), DEFAULT_PACKAGE_WEIGHT_KG)


def pack_items(items: Iterable[PackedItem]) -> tuple[Decimal, Decimal]:
    weight = Decimal("0")
    cubic = Decimal("0")
    for it in items:
        qty = Decimal(it.quantity)
        weight += package_weight(it.category) * qty
        cubic += (Decimal(it.width_mm) * Decimal(it.height_mm) * Decimal(it.depth_mm)
                  / Decimal("1000000000")) * qty
    return weight, cubic.quantize(Decimal("0.001"))


def find_rate_card(db: Session, zone_from: str, zone_to: str, today: Optional[date] = None) -> Optional[RateCard]:
    today = today or date.today()
    q = (
        db.query(RateCard)
        .filter(RateCard.active.is_(True))
        .filter(RateCard.zone_from == zone_from, RateCard.zone_to == zone_to)
        .filter(or_(RateCard.effective_from.is_(None), RateCard.effective_from <= today))
        .filter(or_(RateCard.effective_to.is_(None), RateCard.effective_to >= today))
    )
    cards = q.all()
    if not cards:
        return None
    # latest effective_from wins when several overlap
    return max(cards, key=lambda c: (c.effective_from or date.min, c.id))


def rate_card_cost(card: RateCard, weight_kg: Decimal, cubic_m3: Decimal,
                   *, residential: bool = True, tail_lift: bool = False) -> Decimal:
    cost = to_decimal(card.base_price) + weight_kg * to_decimal(card.per_kg) + cubic_m3 * to_decimal(card.per_cubic_m)
    cost = max(cost, to_decimal(card.minimum_charge))
    if residential:
        cost += to_decimal(card.residential_surcharge)
    if tail_lift:
        cost += to_decimal(card.tail_lift_fee)
    cost = cost * (Decimal("1") + to_decimal(card.fuel_levy_pct) / Decimal("100"))
    return qmoney(cost)


def quote_shipping(
    db: Session,
    postcode: str,
    items: Iterable[PackedItem],
    *,
    residential: bool = True,
    tail_lift: bool = False,
    today: Optional[date] = None,
) -> ShippingQuote:
    postcode = _require_postcode(postcode)
    pc = get_postcode(db, postcode)
    if pc is None:
        raise BusinessRuleError(f"We do not deliver to postcode {postcode} yet", code="unknown_postcode")
    if not pc.delivery_eligible:
        raise BusinessRuleError(f"Postcode {postcode} is not eligible for delivery", code="delivery_ineligible")

    items = list(items)
    if not items:
        raise BusinessRuleError("Nothing to ship")

    card = find_rate_card(db, settings.DEPOT_ZONE, pc.zone, today)
    if card is None:
        raise BusinessRuleError(
            f"No rate card from {settings.DEPOT_ZONE} to {pc.zone}",
            code="no_rate_card",
            meta={"zone_from": settings.DEPOT_ZONE, "zone_to": pc.zone},
        )

    weight, cubic = pack_items(items)
    ex_gst = rate_card_cost(card, weight, cubic, residential=residential, tail_lift=tail_lift)
    gst = calc_gst(ex_gst, settings.GST_RATE)
    logger.bind(postcode=postcode, rate_card_id=card.id, weight_kg=str(weight)).info("shipping_quoted")
    return ShippingQuote(
        carrier=card.carrier,
        service_name=card.service_name,
        zone_from=card.zone_from,
        zone_to=card.zone_to,
        weight_kg=weight,
        cubic_m3=cubic,
        ex_gst=gst.subtotal_ex_gst,
        gst=gst.gst_amount,
        total=gst.total_inc_gst,
        lead_time_days=pc.lead_time_days or settings.DEFAULT_LEAD_TIME_DAYS,
    )


def packed_items_from_cart(db: Session, cart_items) -> List[PackedItem]:
    packed: List[PackedItem] = []
    for it in cart_items:
        ct = db.get(CabinetType, it.cabinet_type_id)
        packed.append(
            PackedItem(
                category=ct.category if ct else "other",
                width_mm=it.width_mm,
                height_mm=it.height_mm,
                depth_mm=it.depth_mm,
                quantity=it.quantity,
            )
        )
    return packed

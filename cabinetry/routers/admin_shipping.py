# cabinetry/routers/admin_shipping.py
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cabinetry.auth.admin import require_admin
from cabinetry.core.errors import NotFoundError
from cabinetry.db import get_db
from cabinetry.dependencies import get_geocoder
from cabinetry.domain.geo import GeoPoint
from cabinetry.models import AssemblySurchargeZone, RateCard
from cabinetry.schemas.common import Deleted
from cabinetry.schemas.shipping import (
    AssemblyZoneIn,
    AssemblyZoneOut,
    AssemblyZoneUpdate,
    PostcodeAssemblyUpdate,
    PostcodeImportIn,
    PostcodeZoneIn,
    PostcodeZoneOut,
    PostcodeZoneUpdate,
    RadiusApplyIn,
    RadiusPreviewIn,
    RateCardIn,
    RateCardOut,
)
from cabinetry.services import catalog_service, shipping_service
from cabinetry.services.geocoding import GeocodingClient

router = APIRouter(
    prefix="/admin/shipping",
    tags=["admin-shipping"],
    dependencies=[Depends(require_admin)],
)


def _postcode_or_404(db: Session, postcode: str):
    pc = shipping_service.get_postcode(db, postcode)
    if pc is None:
        raise NotFoundError(f"Postcode {postcode} not found")
    return pc


# ----------------------------------------------------
# Postcode zones
# ----------------------------------------------------
@router.get("/postcodes", response_model=List[PostcodeZoneOut])
def list_postcodes(
    state: Optional[str] = Query(None),
    assignment_method: Optional[str] = Query(None, pattern=r"^(manual|radius|none)$"),
    assembly_eligible: Optional[bool] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(200, ge=1, le=5000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return shipping_service.list_postcodes(
        db,
        state=state,
        assignment_method=assignment_method,
        assembly_eligible=assembly_eligible,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.post("/postcodes", response_model=PostcodeZoneOut, status_code=201)
def create_postcode(payload: PostcodeZoneIn, db: Session = Depends(get_db)):
    return shipping_service.create_postcode(db, payload.model_dump())


@router.post("/postcodes/import")
def import_postcodes(payload: PostcodeImportIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return shipping_service.bulk_import_postcodes(db, payload.rows)


@router.get("/postcodes/{postcode}", response_model=PostcodeZoneOut)
def get_postcode(postcode: str, db: Session = Depends(get_db)):
    return _postcode_or_404(db, postcode)


@router.patch("/postcodes/{postcode}", response_model=PostcodeZoneOut)
def update_postcode(postcode: str, payload: PostcodeZoneUpdate, db: Session = Depends(get_db)):
    pc = _postcode_or_404(db, postcode)
    return shipping_service.update_postcode(db, pc, payload.model_dump(exclude_unset=True))


@router.patch("/postcodes/{postcode}/assembly", response_model=PostcodeZoneOut)
def update_postcode_assembly(postcode: str, payload: PostcodeAssemblyUpdate, db: Session = Depends(get_db)):
    pc = _postcode_or_404(db, postcode)
    return shipping_service.update_postcode_assembly(db, pc, payload.model_dump(exclude_unset=True))


@router.delete("/postcodes/{postcode}", response_model=Deleted)
def delete_postcode(postcode: str, db: Session = Depends(get_db)):
    pc = _postcode_or_404(db, postcode)
    pc_id = pc.id
    shipping_service.delete_postcode(db, pc)
    return Deleted(id=pc_id)


# ----------------------------------------------------
# Assembly surcharge zones
# ----------------------------------------------------
@router.get("/zones", response_model=List[AssemblyZoneOut])
def list_zones(active_only: bool = Query(False), db: Session = Depends(get_db)):
    return catalog_service.list_rows(
        db, AssemblySurchargeZone, active_only=active_only, order_by=AssemblySurchargeZone.zone_name
    )


@router.post("/zones", response_model=AssemblyZoneOut, status_code=201)
def create_zone(payload: AssemblyZoneIn, db: Session = Depends(get_db)):
    return shipping_service.create_zone(db, payload.model_dump())


@router.get("/zones/{zone_id}", response_model=AssemblyZoneOut)
def get_zone(zone_id: str, db: Session = Depends(get_db)):
    return shipping_service.get_zone(db, zone_id)


@router.patch("/zones/{zone_id}", response_model=AssemblyZoneOut)
def update_zone(zone_id: str, payload: AssemblyZoneUpdate, db: Session = Depends(get_db)):
    zone = shipping_service.get_zone(db, zone_id)
    return shipping_service.update_zone(db, zone, payload.model_dump(exclude_unset=True))


@router.delete("/zones/{zone_id}")
def delete_zone(zone_id: str, db: Session = Depends(get_db)) -> Dict[str, Any]:
    zone = shipping_service.get_zone(db, zone_id)
    released = shipping_service.delete_zone(db, zone)
    return {"id": zone_id, "result": "deleted", "released_postcodes": released}


@router.post("/zones/radius-preview")
def radius_preview(
    payload: RadiusPreviewIn,
    db: Session = Depends(get_db),
    geocoder: GeocodingClient = Depends(get_geocoder),
) -> Dict[str, Any]:
    preview = shipping_service.preview_radius(
        db,
        GeoPoint(payload.center_latitude, payload.center_longitude),
        payload.radius_km,
        geocoder=geocoder if payload.geocode_missing else None,
    )
    return {
        "stats": preview.stats,
        "postcodes": [r.as_dict() for r in preview.rows],
        "geocode_errors": preview.geocode_errors,
    }


@router.post("/zones/{zone_id}/apply")
def apply_zone(zone_id: str, payload: RadiusApplyIn, db: Session = Depends(get_db)) -> Dict[str, Any]:
    zone = shipping_service.get_zone(db, zone_id)
    return shipping_service.apply_zone_radius(db, zone, override_manual=payload.override_manual).as_dict()


# ----------------------------------------------------
# Rate cards
# ----------------------------------------------------
@router.get("/rate-cards", response_model=List[RateCardOut])
def list_rate_cards(active_only: bool = Query(False), db: Session = Depends(get_db)):
    return catalog_service.list_rows(db, RateCard, active_only=active_only, order_by=RateCard.carrier)


@router.post("/rate-cards", response_model=RateCardOut, status_code=201)
def create_rate_card(payload: RateCardIn, db: Session = Depends(get_db)):
    return catalog_service.create_row(db, RateCard, payload.model_dump())


@router.put("/rate-cards/{card_id}", response_model=RateCardOut)
def update_rate_card(card_id: str, payload: RateCardIn, db: Session = Depends(get_db)):
    card = catalog_service.get_or_404(db, RateCard, card_id)
    return catalog_service.update_row(db, card, payload.model_dump())


@router.delete("/rate-cards/{card_id}", response_model=Deleted)
def delete_rate_card(card_id: str, db: Session = Depends(get_db)):
    card = catalog_service.get_or_404(db, RateCard, card_id)
    catalog_service.delete_row(db, card)
    return Deleted(id=card_id)

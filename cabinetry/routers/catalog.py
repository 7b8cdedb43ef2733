# cabinetry/routers/catalog.py
"""Public catalog browsing and price preview."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cabinetry.core.errors import NotFoundError
from cabinetry.db import get_db
from cabinetry.models import Color, DoorStyle, Finish
from cabinetry.schemas.catalog import (
    CabinetTypeDetail,
    CabinetTypeOut,
    ColorOut,
    DoorStyleOut,
    FinishOut,
    PriceBreakdownOut,
    PricePreviewIn,
)
from cabinetry.services import catalog_service
from cabinetry.services.pricing import price_from_ids

router = APIRouter(tags=["catalog"])


@router.get("/catalog/cabinet-types", response_model=List[CabinetTypeOut])
def list_cabinet_types(
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return catalog_service.list_cabinet_types(db, active_only=True, category=category, search=search)


@router.get("/catalog/cabinet-types/{cabinet_type_id}", response_model=CabinetTypeDetail)
def get_cabinet_type(cabinet_type_id: str, db: Session = Depends(get_db)):
    ct = catalog_service.get_cabinet_type(db, cabinet_type_id)
    if not ct.active:
        raise NotFoundError(f"CabinetType {cabinet_type_id} not found")
    detail = CabinetTypeDetail.model_validate(ct)
    detail.production_options = [o for o in detail.production_options if o.active]
    return detail


@router.get("/catalog/door-styles", response_model=List[DoorStyleOut])
def list_door_styles(db: Session = Depends(get_db)):
    return catalog_service.list_rows(db, DoorStyle, active_only=True)


@router.get("/catalog/colors", response_model=List[ColorOut])
def list_colors(door_style_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    rows = catalog_service.list_rows(db, Color, active_only=True)
    if door_style_id:
        rows = [c for c in rows if c.door_style_id in (None, door_style_id)]
    return rows


@router.get("/catalog/finishes", response_model=List[FinishOut])
def list_finishes(door_style_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    rows = catalog_service.list_rows(db, Finish, active_only=True)
    if door_style_id:
        rows = [f for f in rows if f.door_style_id in (None, door_style_id)]
    return rows


@router.post("/pricing/preview", response_model=PriceBreakdownOut)
def price_preview(payload: PricePreviewIn, db: Session = Depends(get_db)):
    bd = price_from_ids(
        db,
        payload.cabinet_type_id,
        payload.width_mm,
        payload.height_mm,
        payload.depth_mm,
        payload.quantity,
        door_style_id=payload.door_style_id,
        color_id=payload.color_id,
        finish_id=payload.finish_id,
        option_ids=payload.production_option_ids,
    )
    return PriceBreakdownOut(**bd.as_dict())

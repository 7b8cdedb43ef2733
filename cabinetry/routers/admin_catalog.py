# cabinetry/routers/admin_catalog.py
from typing import List, Optional, Type

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cabinetry.auth.admin import require_admin
from cabinetry.db import Base, get_db
from cabinetry.models import CabinetPart, Color, DoorStyle, Finish, GlobalSetting, ProductionOption
from cabinetry.schemas.catalog import (
    CabinetPartIn,
    CabinetPartOut,
    CabinetTypeCreate,
    CabinetTypeDetail,
    CabinetTypeOut,
    CabinetTypeUpdate,
    ColorIn,
    ColorOut,
    DoorStyleIn,
    DoorStyleOut,
    FinishIn,
    FinishOut,
    GlobalSettingIn,
    GlobalSettingOut,
    ProductionOptionIn,
    ProductionOptionOut,
)
from cabinetry.schemas.common import Deleted
from cabinetry.services import catalog_service

router = APIRouter(
    prefix="/admin/catalog",
    tags=["admin-catalog"],
    dependencies=[Depends(require_admin)],
)


# ----------------------------------------------------
# Cabinet types
# ----------------------------------------------------
@router.get("/cabinet-types", response_model=List[CabinetTypeOut])
def list_cabinet_types(
    active_only: bool = Query(False),
    category: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return catalog_service.list_cabinet_types(
        db, active_only=active_only, category=category, search=search
    )


@router.post("/cabinet-types", response_model=CabinetTypeDetail, status_code=201)
def create_cabinet_type(payload: CabinetTypeCreate, db: Session = Depends(get_db)):
    return catalog_service.create_cabinet_type(db, payload.model_dump())


@router.get("/cabinet-types/{cabinet_type_id}", response_model=CabinetTypeDetail)
def get_cabinet_type(cabinet_type_id: str, db: Session = Depends(get_db)):
    return catalog_service.get_cabinet_type(db, cabinet_type_id)


@router.patch("/cabinet-types/{cabinet_type_id}", response_model=CabinetTypeDetail)
def update_cabinet_type(cabinet_type_id: str, payload: CabinetTypeUpdate, db: Session = Depends(get_db)):
    ct = catalog_service.get_cabinet_type(db, cabinet_type_id)
    return catalog_service.update_row(db, ct, payload.model_dump(exclude_unset=True))


@router.delete("/cabinet-types/{cabinet_type_id}", response_model=Deleted)
def delete_cabinet_type(cabinet_type_id: str, db: Session = Depends(get_db)):
    ct = catalog_service.get_cabinet_type(db, cabinet_type_id)
    result = catalog_service.delete_cabinet_type(db, ct)
    return Deleted(id=cabinet_type_id, result=result)


@router.post("/cabinet-types/{cabinet_type_id}/parts", response_model=CabinetPartOut, status_code=201)
def add_part(cabinet_type_id: str, payload: CabinetPartIn, db: Session = Depends(get_db)):
    ct = catalog_service.get_cabinet_type(db, cabinet_type_id)
    return catalog_service.add_part(db, ct, payload.model_dump())


@router.post("/cabinet-types/{cabinet_type_id}/options", response_model=ProductionOptionOut, status_code=201)
def add_option(cabinet_type_id: str, payload: ProductionOptionIn, db: Session = Depends(get_db)):
    ct = catalog_service.get_cabinet_type(db, cabinet_type_id)
    return catalog_service.add_option(db, ct, payload.model_dump())


# ----------------------------------------------------
# Simple catalog tables
# ----------------------------------------------------
def _register_crud(path: str, model: Type[Base], schema_in: Type[BaseModel],
                   schema_out: Type[BaseModel], *, listable: bool = True) -> None:
    """List/create/update/delete routes for a flat catalog table."""
    if listable:
        @router.get(f"/{path}", response_model=List[schema_out], name=f"list_{path}")
        def _list(
            active_only: bool = Query(False),
            search: Optional[str] = Query(None),
            db: Session = Depends(get_db),
        ):
            return catalog_service.list_rows(db, model, active_only=active_only, search=search)

        @router.post(f"/{path}", response_model=schema_out, status_code=201, name=f"create_{path}")
        def _create(payload: schema_in, db: Session = Depends(get_db)):
            return catalog_service.create_row(db, model, payload.model_dump())

    @router.put(f"/{path}/{{obj_id}}", response_model=schema_out, name=f"update_{path}")
    def _update(obj_id: str, payload: schema_in, db: Session = Depends(get_db)):
        obj = catalog_service.get_or_404(db, model, obj_id)
        return catalog_service.update_row(db, obj, payload.model_dump(exclude_unset=True))

    @router.delete(f"/{path}/{{obj_id}}", response_model=Deleted, name=f"delete_{path}")
    def _delete(obj_id: str, db: Session = Depends(get_db)):
        obj = catalog_service.get_or_404(db, model, obj_id)
        catalog_service.delete_row(db, obj)
        return Deleted(id=obj_id)


_register_crud("door-styles", DoorStyle, DoorStyleIn, DoorStyleOut)
_register_crud("colors", Color, ColorIn, ColorOut)
_register_crud("finishes", Finish, FinishIn, FinishOut)
# parts and options are created under their cabinet type
_register_crud("parts", CabinetPart, CabinetPartIn, CabinetPartOut, listable=False)
_register_crud("options", ProductionOption, ProductionOptionIn, ProductionOptionOut, listable=False)


# ----------------------------------------------------
# Global settings
# ----------------------------------------------------
@router.get("/settings", response_model=List[GlobalSettingOut])
def list_settings(db: Session = Depends(get_db)):
    return catalog_service.list_rows(db, GlobalSetting, order_by=GlobalSetting.setting_key)


@router.put("/settings", response_model=GlobalSettingOut)
def upsert_setting(payload: GlobalSettingIn, db: Session = Depends(get_db)):
    return catalog_service.upsert_setting(
        db, payload.setting_key, payload.setting_value, payload.description
    )

# cabinetry/services/catalog_service.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.db import Base
from cabinetry.models import (
    CabinetPart,
    CabinetType,
    CartItem,
    GlobalSetting,
    OrderItem,
    ProductionOption,
    QuoteItem,
)

M = TypeVar("M", bound=Base)


def get_or_404(db: Session, model: Type[M], obj_id: str) -> M:
    obj = db.get(model, obj_id)
    if obj is None:
        raise NotFoundError(f"{model.__name__} {obj_id} not found")
    return obj


def get_cabinet_type(db: Session, cabinet_type_id: str) -> CabinetType:
    return get_or_404(db, CabinetType, cabinet_type_id)


def list_rows(
    db: Session,
    model: Type[M],
    *,
    active_only: bool = False,
    search: Optional[str] = None,
    order_by: Any = None,
) -> List[M]:
    q = db.query(model)
    if active_only and hasattr(model, "active"):
        q = q.filter(model.active.is_(True))
    if search and hasattr(model, "name"):
        q = q.filter(model.name.ilike(f"%{search.strip()}%"))
    if order_by is not None:
        q = q.order_by(order_by)
    elif hasattr(model, "name"):
        q = q.order_by(model.name)
    return q.all()


def list_cabinet_types(
    db: Session,
    *,
    active_only: bool = True,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[CabinetType]:
    q = db.query(CabinetType)
    if active_only:
        q = q.filter(CabinetType.active.is_(True))
    if category:
        q = q.filter(CabinetType.category == category)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(CabinetType.name.ilike(term), CabinetType.category.ilike(term)))
    return q.order_by(CabinetType.display_order, CabinetType.name).all()


def create_row(db: Session, model: Type[M], data: Dict[str, Any]) -> M:
    obj = model(**data)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    logger.bind(entity=model.__tablename__, entity_id=obj.id).info("catalog_created")
    return obj


def update_row(db: Session, obj: M, data: Dict[str, Any]) -> M:
    for key, value in data.items():
        setattr(obj, key, value)
    db.commit()
    db.refresh(obj)
    logger.bind(entity=obj.__tablename__, entity_id=obj.id, fields=sorted(data)).info(
        "catalog_updated"
    )
    return obj


def delete_row(db: Session, obj: Base) -> None:
    db.delete(obj)
    db.commit()
    logger.bind(entity=obj.__tablename__, entity_id=obj.id).info("catalog_deleted")


def create_cabinet_type(db: Session, data: Dict[str, Any]) -> CabinetType:
    parts = data.pop("parts", None) or []
    cabinet_type = CabinetType(**data)
    cabinet_type.parts = [CabinetPart(**p) for p in parts]
    db.add(cabinet_type)
    db.commit()
    db.refresh(cabinet_type)
    logger.bind(entity="cabinet_types", entity_id=cabinet_type.id, parts=len(parts)).info(
        "catalog_created"
    )
    return cabinet_type


def _cabinet_type_in_use(db: Session, cabinet_type_id: str) -> bool:
    for model in (CartItem, QuoteItem, OrderItem):
        if db.query(model.id).filter(model.cabinet_type_id == cabinet_type_id).first():
            return True
    return False


def delete_cabinet_type(db: Session, cabinet_type: CabinetType) -> str:
    """Hard delete, or deactivate when line items still reference the type."""
    if _cabinet_type_in_use(db, cabinet_type.id):
        cabinet_type.active = False
        db.commit()
        logger.bind(cabinet_type_id=cabinet_type.id).info("cabinet_type_deactivated")
        return "deactivated"
    delete_row(db, cabinet_type)
    return "deleted"


def add_part(db: Session, cabinet_type: CabinetType, data: Dict[str, Any]) -> CabinetPart:
    return create_row(db, CabinetPart, {**data, "cabinet_type_id": cabinet_type.id})


def add_option(db: Session, cabinet_type: CabinetType, data: Dict[str, Any]) -> ProductionOption:
    return create_row(db, ProductionOption, {**data, "cabinet_type_id": cabinet_type.id})


def upsert_setting(db: Session, key: str, value: str, description: Optional[str] = None) -> GlobalSetting:
    if not key.strip():
        raise BusinessRuleError("setting_key is required")
    row = db.query(GlobalSetting).filter(GlobalSetting.setting_key == key).first()
    if row is None:
        row = GlobalSetting(setting_key=key, setting_value=value, description=description)
        db.add(row)
    else:
        row.setting_value = value
        if description is not None:
            row.description = description
    db.commit()
    db.refresh(row)
    logger.bind(setting_key=key).info("global_setting_saved")
    return row

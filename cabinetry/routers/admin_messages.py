# cabinetry/routers/admin_messages.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cabinetry.auth.admin import require_admin
from cabinetry.db import get_db
from cabinetry.schemas.portal import MessageIn, MessageOut, Scope
from cabinetry.services import message_service
from cabinetry.services.access import scope_owner_id

router = APIRouter(prefix="/admin/messages", tags=["admin-messages"], dependencies=[Depends(require_admin)])


@router.get("/{scope}/{scope_id}", response_model=List[MessageOut])
def thread(scope: Scope, scope_id: str, db: Session = Depends(get_db)):
    scope_owner_id(db, scope, scope_id)
    return message_service.list_thread(db, scope, scope_id, reader="admin")


@router.post("/{scope}/{scope_id}", response_model=MessageOut, status_code=201)
def post_message(scope: Scope, scope_id: str, payload: MessageIn, db: Session = Depends(get_db)):
    scope_owner_id(db, scope, scope_id)
    return message_service.post_message(
        db, scope, scope_id, payload.message_text, message_type="admin", file_ids=payload.file_ids
    )

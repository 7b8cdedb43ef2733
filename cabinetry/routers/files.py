# cabinetry/routers/files.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File as FileParam, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from cabinetry.auth.admin import require_admin
from cabinetry.auth.deps import get_current_user
from cabinetry.core.rate_limit import limiter
from cabinetry.core.settings import settings
from cabinetry.db import get_db
from cabinetry.dependencies import get_storage_service
from cabinetry.models import User
from cabinetry.schemas.common import Deleted
from cabinetry.schemas.portal import AttachIn, AttachmentOut, FileOut, Scope
from cabinetry.services import file_service
from cabinetry.services.access import ensure_scope_access
from cabinetry.services.storage import LocalStorage, Storage, guess_content_type

router = APIRouter(prefix="/files", tags=["files"])
admin_router = APIRouter(prefix="/admin/files", tags=["admin-files"], dependencies=[Depends(require_admin)])


@router.post("", response_model=FileOut, status_code=201)
@limiter.limit(settings.PORTAL_WRITE_LIMIT)
async def upload_file(
    request: Request,
    file: UploadFile = FileParam(...),
    scope: Optional[Scope] = Form(None),
    scope_id: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage_service),
):
    data = await file.read()
    record, _ = file_service.upload(
        db,
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        user=user,
        scope=scope,
        scope_id=scope_id,
        storage=storage,
    )
    return record


@router.post("/attach", response_model=AttachmentOut, status_code=201)
def attach_file(payload: AttachIn, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    f = file_service.get_file(db, payload.file_id)
    return file_service.attach(db, f, payload.scope, payload.scope_id, user=user)


@router.delete("/attachments/{attachment_id}", response_model=Deleted)
def detach_file(attachment_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    file_service.detach(db, attachment_id, user=user)
    return Deleted(id=attachment_id)


@router.get("/scope/{scope}/{scope_id}", response_model=List[FileOut])
def scope_files(scope: Scope, scope_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_scope_access(db, user, scope, scope_id)
    return file_service.list_attachments(db, scope, scope_id)


@router.get("/raw/{key:path}")
def raw_file(key: str, storage: Storage = Depends(get_storage_service)):
    """Serves objects from local storage (S3 objects are served by S3/CloudFront)."""
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="Not found")
    try:
        if not storage.exists(key):
            raise HTTPException(status_code=404, detail="Not found")
        data = storage.read_bytes(key)
    except ValueError:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(content=data, media_type=guess_content_type(key))


# ----------------------------------------------------
# Admin
# ----------------------------------------------------
@admin_router.post("", response_model=FileOut, status_code=201)
async def admin_upload_file(
    file: UploadFile = FileParam(...),
    scope: Optional[Scope] = Form(None),
    scope_id: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    storage: Storage = Depends(get_storage_service),
):
    data = await file.read()
    record, _ = file_service.upload(
        db,
        filename=file.filename,
        content_type=file.content_type,
        data=data,
        scope=scope,
        scope_id=scope_id,
        storage=storage,
    )
    return record


@admin_router.post("/attach", response_model=AttachmentOut, status_code=201)
def admin_attach(payload: AttachIn, db: Session = Depends(get_db)):
    f = file_service.get_file(db, payload.file_id)
    return file_service.attach(db, f, payload.scope, payload.scope_id)


@admin_router.delete("/attachments/{attachment_id}", response_model=Deleted)
def admin_detach(attachment_id: str, db: Session = Depends(get_db)):
    file_service.detach(db, attachment_id)
    return Deleted(id=attachment_id)


@admin_router.get("/scope/{scope}/{scope_id}", response_model=List[FileOut])
def admin_scope_files(scope: Scope, scope_id: str, db: Session = Depends(get_db)):
    return file_service.list_attachments(db, scope, scope_id)

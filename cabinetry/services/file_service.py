# cabinetry/services/file_service.py
from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from cabinetry.core.errors import BusinessRuleError, NotFoundError
from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.models import File, FileAttachment, User
from cabinetry.models.files import SCOPES
from cabinetry.services.access import ensure_scope_access, scope_owner_id
from cabinetry.services.storage import Storage, get_storage


def s3_key_join(*parts: str) -> str:
    cleaned = [str(p).strip("/ ") for p in parts if p is not None and str(p).strip("/ ")]
    return "/".join(cleaned)


def safe_filename(filename: str) -> str:
    filename = (filename or "upload").replace("..", "").replace("/", "_").replace("\\", "_")
    return filename.strip() or "upload"


def build_upload_key(owner: str, filename: str, now: Optional[datetime] = None) -> str:
    # uploads/{owner}/{yyyy-mm}/{uuid}_{filename}
    now = now or datetime.now(timezone.utc)
    return s3_key_join("uploads", owner, now.strftime("%Y-%m"), f"{uuid.uuid4().hex}_{safe_filename(filename)}")


def validate_upload(mime_type: Optional[str], size: int) -> None:
    if not mime_type or mime_type not in settings.allowed_mimes:
        raise BusinessRuleError(
            f"File type not allowed: {mime_type}",
            code="mime_not_allowed",
            meta={"allowed": settings.allowed_mimes},
        )
    if size <= 0:
        raise BusinessRuleError("File is empty", code="empty_file")
    max_bytes = settings.max_upload_mb * 1024 * 1024
    if size > max_bytes:
        raise BusinessRuleError(
            f"File exceeds {settings.max_upload_mb} MB", code="file_too_large", meta={"size": size}
        )


def get_file(db: Session, file_id: str) -> File:
    f = db.get(File, file_id)
    if f is None:
        raise NotFoundError(f"File {file_id} not found")
    return f


def _check_scope(db: Session, user: Optional[User], scope: str, scope_id: str) -> None:
    if scope not in SCOPES:
        raise BusinessRuleError(f"Unknown scope '{scope}'", meta={"allowed": list(SCOPES)})
    if user is None:
        # admin: the scoped record only has to exist
        scope_owner_id(db, scope, scope_id)
    else:
        ensure_scope_access(db, user, scope, scope_id)


def upload(
    db: Session,
    *,
    filename: str,
    content_type: Optional[str],
    data: bytes,
    user: Optional[User] = None,
    scope: Optional[str] = None,
    scope_id: Optional[str] = None,
    storage: Optional[Storage] = None,
) -> Tuple[File, Optional[FileAttachment]]:
    """
    Store an uploaded file and optionally attach it right away.

    ``user`` is the uploading customer; None means an administrator, who may
    attach to any existing record.
    """
    validate_upload(content_type, len(data))
    if scope or scope_id:
        if not (scope and scope_id):
            raise BusinessRuleError("scope and scope_id go together")
        _check_scope(db, user, scope, scope_id)

    storage = storage or get_storage()
    key = build_upload_key(user.id if user else "admin", filename)
    storage.save_bytes(key, data, content_type=content_type)

    record = File(
        owner_id=user.id if user else None,
        filename=safe_filename(filename),
        mime_type=content_type,
        size_bytes=len(data),
        sha256=hashlib.sha256(data).hexdigest(),
        storage_key=key,
        url=storage.public_url(key),
    )
    db.add(record)
    db.flush()

    attachment = None
    if scope:
        attachment = FileAttachment(
            file_id=record.id, scope=scope, scope_id=scope_id, attached_by=user.id if user else "admin"
        )
        db.add(attachment)
    db.commit()
    db.refresh(record)

    logger.bind(file_id=record.id, key=key, size=record.size_bytes).info(
        "file_uploaded", mime=content_type, scope=scope
    )
    return record, attachment


def attach(db: Session, file: File, scope: str, scope_id: str, *, user: Optional[User] = None) -> FileAttachment:
    if user is not None and file.owner_id != user.id:
        raise NotFoundError(f"File {file.id} not found")
    _check_scope(db, user, scope, scope_id)

    existing = (
        db.query(FileAttachment)
        .filter_by(file_id=file.id, scope=scope, scope_id=scope_id)
        .first()
    )
    if existing is not None:
        return existing
    attachment = FileAttachment(
        file_id=file.id, scope=scope, scope_id=scope_id, attached_by=user.id if user else "admin"
    )
    db.add(attachment)
    db.commit()
    db.refresh(attachment)
    logger.bind(file_id=file.id, scope=scope, scope_id=scope_id).info("file_attached")
    return attachment


def detach(db: Session, attachment_id: str, *, user: Optional[User] = None) -> None:
    attachment = db.get(FileAttachment, attachment_id)
    if attachment is None:
        raise NotFoundError(f"Attachment {attachment_id} not found")
    if user is not None:
        f = db.get(File, attachment.file_id)
        if f is None or f.owner_id != user.id:
            raise NotFoundError(f"Attachment {attachment_id} not found")
    db.delete(attachment)
    db.commit()
    logger.bind(attachment_id=attachment_id).info("file_detached")


def list_attachments(db: Session, scope: str, scope_id: str) -> List[File]:
    return (
        db.query(File)
        .join(FileAttachment, FileAttachment.file_id == File.id)
        .filter(FileAttachment.scope == scope, FileAttachment.scope_id == scope_id)
        .order_by(FileAttachment.created_at)
        .all()
    )

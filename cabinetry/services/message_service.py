# cabinetry/services/message_service.py
from __future__ import annotations

from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from cabinetry import tasks
from cabinetry.core.errors import BusinessRuleError
from cabinetry.core.logging_config import logger
from cabinetry.models import File, FileAttachment, Message, Order, Quote
from cabinetry.services.access import scope_owner_id

MESSAGE_TYPES = ("customer", "admin", "system")
PREVIEW_CHARS = 140


def _scope_ref(db: Session, scope: str, scope_id: str) -> str:
    if scope == "quote":
        quote = db.get(Quote, scope_id)
        return quote.quote_number if quote else scope_id
    if scope == "order":
        order = db.get(Order, scope_id)
        return order.order_number if order else scope_id
    return scope_id


def list_thread(db: Session, scope: str, scope_id: str, *, reader: Optional[str] = None) -> List[Message]:
    """Messages of a thread, oldest first. ``reader`` ('customer' or 'admin') marks them read."""
    messages = (
        db.query(Message)
        .filter(Message.scope == scope, Message.scope_id == scope_id)
        .order_by(Message.created_at, Message.id)
        .all()
    )
    if reader == "customer":
        changed = [m for m in messages if not m.read_by_customer]
        for m in changed:
            m.read_by_customer = True
    elif reader == "admin":
        changed = [m for m in messages if not m.read_by_admin]
        for m in changed:
            m.read_by_admin = True
    else:
        changed = []
    if changed:
        db.commit()
    return messages


def post_message(
    db: Session,
    scope: str,
    scope_id: str,
    text: str,
    *,
    message_type: str = "customer",
    author_id: Optional[str] = None,
    file_ids: Sequence[str] = (),
    notify: bool = True,
) -> Message:
    if message_type not in MESSAGE_TYPES:
        raise BusinessRuleError(f"Unknown message type '{message_type}'")
    if not text or not text.strip():
        raise BusinessRuleError("Message text is required")
    owner_id = scope_owner_id(db, scope, scope_id)

    file_ids = list(dict.fromkeys(file_ids))
    if file_ids:
        found = {f.id: f for f in db.query(File).filter(File.id.in_(file_ids)).all()}
        missing = [fid for fid in file_ids if fid not in found]
        if missing:
            raise BusinessRuleError("Unknown file ids", meta={"file_ids": missing})
        if message_type == "customer":
            foreign = [fid for fid, f in found.items() if f.owner_id != author_id]
            if foreign:
                raise BusinessRuleError("Files belong to another user", meta={"file_ids": foreign})

    message = Message(
        scope=scope,
        scope_id=scope_id,
        author_id=author_id,
        message_type=message_type,
        message_text=text.strip(),
        file_ids=file_ids,
        read_by_customer=message_type == "customer",
        read_by_admin=message_type in ("admin", "system"),
    )
    db.add(message)
    db.flush()
    for fid in file_ids:
        db.add(FileAttachment(file_id=fid, scope="message", scope_id=message.id, attached_by=author_id))
    db.commit()
    db.refresh(message)

    logger.bind(scope=scope, scope_id=scope_id, message_id=message.id).info(
        "message_posted", message_type=message_type, files=len(file_ids)
    )

    if notify and message_type != "system":
        preview = message.message_text[:PREVIEW_CHARS]
        ref = _scope_ref(db, scope, scope_id)
        if message_type == "customer":
            tasks.send_message_notification.delay(scope, ref, preview)
        elif owner_id:
            tasks.send_message_notification.delay(scope, ref, preview, owner_id)
    return message


def post_system_message(db: Session, scope: str, scope_id: str, text: str) -> Message:
    return post_message(db, scope, scope_id, text, message_type="system", notify=False)


def unread_count(db: Session, scope: str, scope_ids: Sequence[str]) -> int:
    if not scope_ids:
        return 0
    return (
        db.query(Message)
        .filter(Message.scope == scope, Message.scope_id.in_(list(scope_ids)))
        .filter(Message.read_by_customer.is_(False))
        .count()
    )

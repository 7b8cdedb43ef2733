# cabinetry/models/files.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cabinetry.db import Base
from cabinetry.models.common import IdMixin, TimestampMixin

SCOPES = ("quote", "order", "message", "cart_item")


class File(IdMixin, TimestampMixin, Base):
    __tablename__ = "files"

    owner_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(120), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    url: Mapped[str] = mapped_column(String(1024), nullable=False)


class FileAttachment(IdMixin, TimestampMixin, Base):
    __tablename__ = "file_attachments"
    __table_args__ = (UniqueConstraint("file_id", "scope", "scope_id", name="uq_attachment_scope"),)

    file_id: Mapped[str] = mapped_column(
        ForeignKey("files.id", ondelete="CASCADE"), index=True, nullable=False
    )
    scope: Mapped[str] = mapped_column(String(32), nullable=False)
    scope_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    attached_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)


class Message(IdMixin, TimestampMixin, Base):
    __tablename__ = "messages"

    scope: Mapped[str] = mapped_column(String(32), nullable=False)
    scope_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    author_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # customer | admin | system
    message_type: Mapped[str] = mapped_column(String(16), nullable=False, default="customer")
    message_text: Mapped[str] = mapped_column(Text, nullable=False)
    file_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    read_by_customer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

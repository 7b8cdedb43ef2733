# cabinetry/schemas/portal.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from cabinetry.schemas.common import ORMModel

Scope = Literal["quote", "order", "message", "cart_item"]


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=50)


class TokenIn(BaseModel):
    email: EmailStr
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(ORMModel):
    id: str
    email: str
    full_name: Optional[str]
    phone: Optional[str]
    role: str


class AddressIn(BaseModel):
    type: Literal["shipping", "billing"] = "shipping"
    name: str = Field(min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=50)
    line1: str = Field(min_length=1, max_length=300)
    line2: Optional[str] = Field(default=None, max_length=300)
    suburb: str = Field(min_length=1, max_length=120)
    state: str = Field(min_length=2, max_length=10)
    postcode: str = Field(pattern=r"^\d{4}$")
    country: str = Field(default="AU", min_length=2, max_length=2)
    is_default: bool = False


class AddressUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, max_length=50)
    line1: Optional[str] = Field(default=None, min_length=1, max_length=300)
    line2: Optional[str] = Field(default=None, max_length=300)
    suburb: Optional[str] = Field(default=None, min_length=1, max_length=120)
    state: Optional[str] = Field(default=None, min_length=2, max_length=10)
    postcode: Optional[str] = Field(default=None, pattern=r"^\d{4}$")
    is_default: Optional[bool] = None


class AddressOut(ORMModel, AddressIn):
    id: str


class FileOut(ORMModel):
    id: str
    filename: str
    mime_type: str
    size_bytes: int
    sha256: str
    url: str
    created_at: Optional[datetime]


class AttachIn(BaseModel):
    file_id: str
    scope: Scope
    scope_id: str


class AttachmentOut(ORMModel):
    id: str
    file_id: str
    scope: str
    scope_id: str
    created_at: Optional[datetime]


class MessageIn(BaseModel):
    message_text: str = Field(min_length=1, max_length=8000)
    file_ids: List[str] = []


class MessageOut(ORMModel):
    id: str
    scope: str
    scope_id: str
    author_id: Optional[str]
    message_type: str
    message_text: str
    file_ids: List[str]
    created_at: Optional[datetime]


class DashboardOut(BaseModel):
    open_quotes: int
    active_orders: int
    pending_payments: int
    unread_messages: int
    active_cart_items: int

# cabinetry/routers/admin_quotes.py
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from cabinetry import tasks
from cabinetry.auth.admin import AdminIdentity, require_admin
from cabinetry.db import get_db
from cabinetry.schemas.common import Deleted
from cabinetry.schemas.quote import (
    ExpireResult,
    QuoteCreate,
    QuoteDetail,
    QuoteItemIn,
    QuoteItemOut,
    QuoteItemUpdate,
    QuoteSummary,
    QuoteUpdate,
)
from cabinetry.services import quote_service
from cabinetry.services.excel_export import XLSX_MEDIA_TYPE, export_quotes_to_excel

router = APIRouter(prefix="/admin/quotes", tags=["admin-quotes"], dependencies=[Depends(require_admin)])


@router.get("", response_model=List[QuoteSummary])
def list_quotes(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return quote_service.list_quotes(db, status=status, search=search, limit=limit, offset=offset)


@router.get("/export.xlsx")
def export_quotes(
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    quotes = quote_service.list_quotes(db, status=status, search=search, limit=10000)
    filename = f"quotes_{date.today().isoformat()}.xlsx"
    return Response(
        content=export_quotes_to_excel(quotes),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("", response_model=QuoteDetail, status_code=201)
def create_quote(payload: QuoteCreate, db: Session = Depends(get_db)):
    return quote_service.create_quote(db, payload.model_dump())


@router.post("/expire", response_model=ExpireResult)
def expire_quotes(db: Session = Depends(get_db)):
    return ExpireResult(expired=quote_service.expire_quotes(db))


@router.get("/{quote_id}", response_model=QuoteDetail)
def get_quote(quote_id: str, db: Session = Depends(get_db)):
    return quote_service.get_quote(db, quote_id)


@router.patch("/{quote_id}", response_model=QuoteDetail)
def update_quote(quote_id: str, payload: QuoteUpdate, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    return quote_service.update_quote(db, quote, payload.model_dump(exclude_unset=True))


@router.delete("/{quote_id}", response_model=Deleted)
def delete_quote(quote_id: str, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    quote_service.delete_quote(db, quote)
    return Deleted(id=quote_id)


# ----------------------------------------------------
# Line items
# ----------------------------------------------------
@router.post("/{quote_id}/items", response_model=QuoteItemOut, status_code=201)
def add_item(quote_id: str, payload: QuoteItemIn, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    return quote_service.add_item(db, quote, payload.model_dump())


@router.patch("/{quote_id}/items/{item_id}", response_model=QuoteItemOut)
def update_item(quote_id: str, item_id: str, payload: QuoteItemUpdate, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    item = quote_service.get_item(quote, item_id)
    return quote_service.update_item(db, quote, item, payload.model_dump(exclude_unset=True))


@router.delete("/{quote_id}/items/{item_id}", response_model=Deleted)
def remove_item(quote_id: str, item_id: str, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    item = quote_service.get_item(quote, item_id)
    quote_service.remove_item(db, quote, item)
    return Deleted(id=item_id)


# ----------------------------------------------------
# Lifecycle
# ----------------------------------------------------
@router.post("/{quote_id}/send", response_model=QuoteDetail)
def send_quote(quote_id: str, db: Session = Depends(get_db), admin: AdminIdentity = Depends(require_admin)):
    quote = quote_service.get_quote(db, quote_id)
    return quote_service.send_quote(db, quote, actor=admin.username)


@router.post("/{quote_id}/revise", response_model=QuoteDetail)
def revise_quote(quote_id: str, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    return quote_service.revise_quote(db, quote)


@router.post("/{quote_id}/pdf", response_model=QuoteDetail)
def render_pdf(quote_id: str, db: Session = Depends(get_db)):
    quote = quote_service.get_quote(db, quote_id)
    tasks.render_quote_pdf.delay(quote.id)
    db.refresh(quote)
    return quote

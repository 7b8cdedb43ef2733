from __future__ import annotations

from io import BytesIO
from typing import Iterable

from openpyxl import Workbook

from cabinetry.models import Quote

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

QUOTE_COLUMNS = [
    "Quote number",
    "Customer",
    "Email",
    "Status",
    "Version",
    "Items",
    "Subtotal",
    "GST",
    "Total",
    "Valid until",
    "Created",
]


def export_quotes_to_excel(quotes: Iterable[Quote]) -> bytes:
    """One row per quote; money as numbers so the sheet can sum them."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Quotes"
    ws.append(QUOTE_COLUMNS)

    for q in quotes:
        ws.append(
            [
                q.quote_number,
                q.customer_name,
                q.customer_email,
                q.status,
                q.version_number,
                len(q.items),
                float(q.subtotal),
                float(q.tax_amount),
                float(q.total_amount),
                q.valid_until,
                q.created_at.replace(tzinfo=None) if q.created_at else None,
            ]
        )

    for col in ("G", "H", "I"):
        for cell in ws[col][1:]:
            cell.number_format = "#,##0.00"
    ws.freeze_panes = "A2"

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()

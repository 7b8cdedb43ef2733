# cabinetry/services/document_renderer.py
from __future__ import annotations

from datetime import date
from typing import Any, Dict, Optional

from cabinetry.core.logging_config import logger
from cabinetry.core.settings import settings
from cabinetry.models import Invoice, Order, PaymentSchedule, Quote
from cabinetry.services.storage import Storage, get_storage
from cabinetry.templating import render_template

PRINT_CSS = """
@page { size: A4; margin: 1.8cm; }
.header { page-break-after: avoid; }
table { page-break-inside: auto; }
tr { page-break-inside: avoid; }
"""


def html_to_pdf(html: str) -> bytes:
    # weasyprint pulls in native libs (pango/cairo); only import when rendering
    from weasyprint import CSS, HTML

    return HTML(string=html).write_pdf(stylesheets=[CSS(string=PRINT_CSS)])


class DocumentRenderer:
    """Renders quotes and invoices to HTML and PDF and stores the PDF."""

    def __init__(self, storage: Optional[Storage] = None):
        self.storage = storage or get_storage()

    def _base_context(self) -> Dict[str, Any]:
        return {"company_name": settings.SMTP_FROM_NAME, "currency": settings.CURRENCY}

    def quote_html(self, quote: Quote) -> str:
        ctx = self._base_context()
        ctx.update(quote=quote, issued_on=(quote.sent_at.date() if quote.sent_at else date.today()))
        return render_template("quote.html", ctx)

    def invoice_html(self, invoice: Invoice, order: Order,
                     milestone: Optional[PaymentSchedule] = None) -> str:
        ctx = self._base_context()
        ctx.update(invoice=invoice, order=order, milestone=milestone)
        return render_template("invoice.html", ctx)

    def _store_pdf(self, key: str, html: str) -> str:
        pdf = html_to_pdf(html)
        self.storage.save_bytes(key, pdf, content_type="application/pdf")
        return self.storage.public_url(key)

    def render_quote_pdf(self, quote: Quote) -> str:
        key = f"documents/quotes/{quote.quote_number}-v{quote.version_number}.pdf"
        url = self._store_pdf(key, self.quote_html(quote))
        logger.bind(quote_id=quote.id, key=key).info("quote_pdf_rendered")
        return url

    def render_invoice_pdf(self, invoice: Invoice, order: Order,
                           milestone: Optional[PaymentSchedule] = None) -> str:
        key = f"documents/invoices/{invoice.invoice_number}.pdf"
        url = self._store_pdf(key, self.invoice_html(invoice, order, milestone))
        logger.bind(invoice_id=invoice.id, order_id=order.id, key=key).info("invoice_pdf_rendered")
        return url

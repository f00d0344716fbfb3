"""Quote export — a renderable document, its HTML (Jinja2) and its PDF (WeasyPrint).

prepare_quote_document() resolves unit names and attaches the company block;
rendering never touches a store.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

import jinja2
from pydantic import BaseModel

from src.config import CompanySettings
from src.export.formatters import format_currency, format_date, format_percentage
from src.models.enums import QuoteStatus
from src.schemas.catalog import Unit
from src.schemas.quote import Quote

logger = logging.getLogger(__name__)

UNKNOWN_UNIT = "Unknown unit"

_template_dir = Path(__file__).parent / "templates"
_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(_template_dir)),
    autoescape=jinja2.select_autoescape(["html"]),
)
_env.filters["date"] = format_date
_env.filters["percentage"] = format_percentage


class CompanyBlock(BaseModel):
    name: str
    address: str
    phone: str
    email: str


class DocumentLine(BaseModel):
    unit_id: str
    unit_name: str
    quantity: int
    base_price: Decimal
    discount_percentage: Decimal
    line_total: Decimal


class QuoteDocument(BaseModel):
    """Everything the template needs, with no further lookups."""

    quote_id: str
    name: str
    status: QuoteStatus
    created_by: str
    created_at: datetime
    valid_until: datetime
    lines: list[DocumentLine]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    company: CompanyBlock
    terms: list[str]
    currency_symbol: str = "$"


def prepare_quote_document(
    quote: Quote,
    units_by_id: Mapping[str, Unit],
    company: CompanySettings,
) -> QuoteDocument:
    """Build the export view of a quote. Units that no longer exist show as "Unknown unit"."""
    lines = []
    for item in quote.items:
        unit = units_by_id.get(item.unit_id)
        if unit is None:
            logger.debug("Quote %s references missing unit %s", quote.id, item.unit_id)
        lines.append(
            DocumentLine(
                unit_id=item.unit_id,
                unit_name=unit.name if unit is not None else UNKNOWN_UNIT,
                quantity=item.quantity,
                base_price=item.base_price,
                discount_percentage=item.discount_percentage,
                line_total=item.line_total,
            )
        )

    return QuoteDocument(
        quote_id=quote.id,
        name=quote.name,
        status=quote.status,
        created_by=quote.created_by,
        created_at=quote.created_at,
        valid_until=quote.created_at + timedelta(days=company.quote_validity_days),
        lines=lines,
        subtotal=quote.subtotal,
        discount=quote.discount,
        total=quote.total,
        company=CompanyBlock(
            name=company.company_name,
            address=company.company_address,
            phone=company.company_phone,
            email=company.company_email,
        ),
        terms=[line for line in company.quote_terms.splitlines() if line.strip()],
        currency_symbol=company.currency_symbol,
    )


def render_quote_html(document: QuoteDocument) -> str:
    template = _env.get_template("quote.html")
    return template.render(
        doc=document,
        money=lambda value: format_currency(value, document.currency_symbol),
    )


def render_quote_pdf(document: QuoteDocument) -> bytes:
    """HTML rendered to an A4 PDF."""
    # Imported lazily: WeasyPrint loads Pango/Cairo at import time
    from weasyprint import CSS, HTML

    html = render_quote_html(document)
    css = CSS(string="@page { size: A4; margin: 2cm; }")
    pdf_bytes = HTML(string=html).write_pdf(stylesheets=[css])
    logger.info("PDF rendered for quote %s (%d bytes)", document.quote_id, len(pdf_bytes))
    return pdf_bytes

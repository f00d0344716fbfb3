"""Tests for quote export.

Covers:
- US-English formatters (currency, long date, percentage)
- Document preparation: unit names, "Unknown unit", company block, validity
- HTML rendering (PDF conversion itself is WeasyPrint's job and not exercised)
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from src.config import CompanySettings
from src.export.document import UNKNOWN_UNIT, prepare_quote_document, render_quote_html
from src.export.formatters import format_currency, format_date, format_percentage
from src.schemas.catalog import Unit
from src.schemas.quote import Quote, QuoteLineItem

NOW = datetime(2026, 1, 5, 9, 30, tzinfo=UTC)


# ── Formatters ───────────────────────────────────────────────────────


class TestFormatCurrency:
    def test_thousands(self):
        assert format_currency(Decimal("1234.5")) == "$1,234.50"

    def test_rounds_half_up(self):
        assert format_currency(Decimal("0.125")) == "$0.13"

    def test_integer(self):
        assert format_currency(270000) == "$270,000.00"

    def test_negative(self):
        assert format_currency(Decimal("-5")) == "-$5.00"

    def test_custom_symbol(self):
        assert format_currency(Decimal("3"), "€") == "€3.00"

    def test_none(self):
        assert format_currency(None) == "-"


class TestFormatDate:
    def test_long_date(self):
        assert format_date(NOW) == "January 5, 2026"

    def test_none(self):
        assert format_date(None) == "-"


class TestFormatPercentage:
    def test_whole(self):
        assert format_percentage(Decimal("10")) == "10%"

    def test_fraction(self):
        assert format_percentage(Decimal("12.50")) == "12.5%"

    def test_zero(self):
        assert format_percentage(Decimal("0")) == "0%"

    def test_none(self):
        assert format_percentage(None) == "-"


# ── Document ─────────────────────────────────────────────────────────


def _make_quote() -> Quote:
    return Quote(
        id="q-123",
        name="Team <licences>",
        items=[
            QuoteLineItem(
                unit_id="cascade",
                quantity=150,
                base_price=Decimal("2000"),
                discount_percentage=Decimal("10"),
                line_total=Decimal("270000"),
                applied_rule_id="volume-discount",
            ),
            QuoteLineItem(
                unit_id="retired",
                quantity=1,
                base_price=Decimal("50"),
                line_total=Decimal("50"),
            ),
        ],
        subtotal=Decimal("300050"),
        discount=Decimal("30000"),
        total=Decimal("270050"),
        owner_user_id="alice",
        created_by="alice@example.com",
        created_at=NOW,
        updated_at=NOW,
    )


def _make_units() -> dict[str, Unit]:
    return {
        "cascade": Unit(id="cascade", name="Cascade", base_price=Decimal("2000"), created_at=NOW, updated_at=NOW)
    }


class TestPrepareDocument:
    def test_unit_names_resolved(self):
        doc = prepare_quote_document(_make_quote(), _make_units(), CompanySettings())

        assert [line.unit_name for line in doc.lines] == ["Cascade", UNKNOWN_UNIT]

    def test_company_block_and_validity(self):
        company = CompanySettings(company_name="Acme", quote_validity_days=15)
        doc = prepare_quote_document(_make_quote(), _make_units(), company)

        assert doc.company.name == "Acme"
        assert doc.valid_until == datetime(2026, 1, 20, 9, 30, tzinfo=UTC)
        assert doc.terms[0] == "1. All prices are in USD"


class TestRenderHtml:
    def test_contains_formatted_values(self):
        doc = prepare_quote_document(_make_quote(), _make_units(), CompanySettings())
        html = render_quote_html(doc)

        assert "Cascade" in html
        assert UNKNOWN_UNIT in html
        assert "$270,050.00" in html
        assert "$2,000.00" in html
        assert "10%" in html
        assert "January 5, 2026" in html
        assert "February 4, 2026" in html

    def test_escapes_user_text(self):
        doc = prepare_quote_document(_make_quote(), _make_units(), CompanySettings())
        html = render_quote_html(doc)

        assert "Team &lt;licences&gt;" in html
        assert "<licences>" not in html

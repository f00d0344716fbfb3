"""Jinja2 custom filters for US-English quote documents.

All filters are registered on the Jinja2 environment in document.py.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal


def format_currency(value: Decimal | float | int | None, symbol: str = "$") -> str:
    """Format as US currency: 1234.5 -> "$1,234.50"."""
    if value is None:
        return "-"
    d = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if d < 0 else ""
    return f"{sign}{symbol}{abs(d):,.2f}"


def format_date(value: datetime | None) -> str:
    """Format as long US date: "January 5, 2026"."""
    if value is None:
        return "-"
    return f"{value.strftime('%B')} {value.day}, {value.year}"


def format_percentage(value: Decimal | float | int | None) -> str:
    """Format a 0-100 percentage: 10 -> "10%", 12.5 -> "12.5%"."""
    if value is None:
        return "-"
    d = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP).normalize()
    # normalize() turns 10 into 1E+1
    text = f"{d:f}"
    return f"{text}%"

"""Pricing engine — discount resolution and quote arithmetic."""

from src.pricing.calculator import (
    compute_line_item,
    compute_quote,
    format_money,
    price_line_item,
    reprice_line_item,
)
from src.pricing.resolver import best_discount, resolve_applicable_discounts

__all__ = [
    "resolve_applicable_discounts",
    "best_discount",
    "compute_line_item",
    "compute_quote",
    "price_line_item",
    "reprice_line_item",
    "format_money",
]

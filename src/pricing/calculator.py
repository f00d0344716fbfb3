"""Quote calculator — line item pricing and quote totals.

Pure Python, Decimal arithmetic at full precision:
  line_subtotal = quantity * base_price
  line_total    = line_subtotal * (1 - discount_percentage / 100)
  subtotal      = Σ quantity * base_price
  total         = Σ line_total
  discount      = subtotal - total

Only the best single discount is applied to a line. Rounding happens in
format_money(), never in the sums.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from src.errors import NotFoundError
from src.models.enums import AccountType
from src.pricing.resolver import best_discount
from src.schemas.catalog import CatalogSnapshot
from src.schemas.quote import ZERO, LineItemPrice, QuoteLineItem, QuoteTotals

HUNDRED = Decimal("100")


def format_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places for display."""
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def discounted_total(quantity: int, base_price: Decimal, discount_percentage: Decimal) -> Decimal:
    """quantity * base_price reduced by a percentage in [0, 100]."""
    line_subtotal = quantity * base_price
    return line_subtotal * (1 - discount_percentage / HUNDRED)


def compute_line_item(
    catalog: CatalogSnapshot,
    unit_id: str,
    quantity: int,
    account_type: AccountType,
    now: datetime,
) -> LineItemPrice:
    """Price one line against the current catalog.

    Raises:
        NotFoundError: the unit is not in the catalog (a base price is required).
        InputValidationError: negative quantity.
    """
    unit = catalog.units.get(unit_id)
    if unit is None:
        raise NotFoundError("Unit", unit_id)

    rule = best_discount(catalog, quantity, unit_id, account_type, now)
    percentage = rule.discount_percentage if rule is not None else ZERO

    return LineItemPrice(
        base_price=unit.base_price,
        discount_percentage=percentage,
        line_total=discounted_total(quantity, unit.base_price, percentage),
        applied_rule_id=rule.id if rule is not None else None,
    )


def price_line_item(
    catalog: CatalogSnapshot,
    unit_id: str,
    quantity: int,
    account_type: AccountType,
    now: datetime,
) -> QuoteLineItem:
    """compute_line_item() packaged as a quote line."""
    price = compute_line_item(catalog, unit_id, quantity, account_type, now)
    return QuoteLineItem(unit_id=unit_id, quantity=quantity, **price.model_dump())


def reprice_line_item(
    catalog: CatalogSnapshot,
    item: QuoteLineItem,
    account_type: AccountType,
    now: datetime,
) -> QuoteLineItem:
    """Explicit recomputation: refresh the base-price snapshot and the discount."""
    return price_line_item(catalog, item.unit_id, item.quantity, account_type, now)


def compute_quote(items: Iterable[QuoteLineItem]) -> QuoteTotals:
    """Aggregate totals. An empty quote is all zeros; zero-quantity lines add nothing."""
    subtotal = ZERO
    total = ZERO
    for item in items:
        subtotal += item.quantity * item.base_price
        total += item.line_total

    return QuoteTotals(subtotal=subtotal, discount=subtotal - total, total=total)

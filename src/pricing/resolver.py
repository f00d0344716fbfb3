"""Discount resolution — which rules apply to a (unit, quantity, account type).

Pure Python, deterministic. No store access: the caller passes a
CatalogSnapshot taken from the catalog store.

Filters, in order, for every rule:
  1. Unit scope   — a unit with a non-empty allow-list only admits listed rules;
                    an empty allow-list admits every rule.
  2. Time window  — effective_date <= now < end_date (end_date optional).
  3. Type         — ACCOUNT_TYPE: account type matches
                    VOLUME:       quantity >= threshold
                    SPECIAL:      always

Survivors are ranked by discount_percentage descending, ties broken by rule id
ascending. Only the first one is ever applied (no stacking).
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from src.errors import InputValidationError
from src.models.enums import AccountType, DiscountType
from src.schemas.catalog import CatalogSnapshot, DiscountRule


def _volume_eligible(rule: DiscountRule, quantity: int, account_type: AccountType) -> bool:
    return rule.threshold is not None and quantity >= rule.threshold


def _account_type_eligible(rule: DiscountRule, quantity: int, account_type: AccountType) -> bool:
    return rule.account_type == account_type


def _special_eligible(rule: DiscountRule, quantity: int, account_type: AccountType) -> bool:
    return True


TYPE_CHECKS: dict[DiscountType, Callable[[DiscountRule, int, AccountType], bool]] = {
    DiscountType.VOLUME: _volume_eligible,
    DiscountType.ACCOUNT_TYPE: _account_type_eligible,
    DiscountType.SPECIAL: _special_eligible,
}


def rank_key(rule: DiscountRule) -> tuple:
    """Highest percentage first; equal percentages fall back to the lowest id."""
    return (-rule.discount_percentage, rule.id)


def resolve_applicable_discounts(
    catalog: CatalogSnapshot,
    quantity: int,
    unit_id: str,
    account_type: AccountType,
    now: datetime,
) -> list[DiscountRule]:
    """Return every rule applicable to one line, best first.

    Args:
        catalog: Units and rules as currently stored.
        quantity: Line quantity (>= 0).
        unit_id: Unit on the line. Unknown units resolve to no discounts.
        account_type: Account type of the caller the quote is priced for.
        now: Evaluation instant (timezone-aware).

    Returns:
        Applicable rules sorted by discount_percentage descending.
    """
    if quantity < 0:
        raise InputValidationError(f"Quantity must be >= 0, got {quantity}")

    unit = catalog.units.get(unit_id)
    if unit is None:
        return []

    allowed = set(unit.applicable_discounts)

    applicable = [
        rule
        for rule in catalog.rules
        if (not allowed or rule.id in allowed)
        and rule.is_live(now)
        and TYPE_CHECKS[rule.type](rule, quantity, account_type)
    ]
    applicable.sort(key=rank_key)
    return applicable


def best_discount(
    catalog: CatalogSnapshot,
    quantity: int,
    unit_id: str,
    account_type: AccountType,
    now: datetime,
) -> DiscountRule | None:
    """The single rule that wins for a line, or None."""
    rules = resolve_applicable_discounts(catalog, quantity, unit_id, account_type, now)
    return rules[0] if rules else None

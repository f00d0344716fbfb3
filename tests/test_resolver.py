"""Tests for discount resolution.

Covers:
- VOLUME threshold boundary (99 excluded, 100 included)
- Time window: future effective_date and past end_date never apply
- ACCOUNT_TYPE matching, SPECIAL always eligible
- Unit allow-list: empty admits every rule, non-empty admits listed rules only
- Ordering: percentage descending, ties by lowest rule id
- Unknown unit → no discounts; negative quantity → InputValidationError
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from src.errors import InputValidationError
from src.models.enums import AccountType, DiscountType
from src.pricing.resolver import best_discount, resolve_applicable_discounts
from src.schemas.catalog import CatalogSnapshot, DiscountRule, Unit

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# ── Helpers ──────────────────────────────────────────────────────────


def _make_unit(unit_id: str = "cascade", price: str = "2000", allowed: list[str] | None = None) -> Unit:
    return Unit(
        id=unit_id,
        name=unit_id.title(),
        base_price=Decimal(price),
        applicable_discounts=allowed or [],
        created_at=NOW,
        updated_at=NOW,
    )


def _make_rule(
    rule_id: str,
    rule_type: DiscountType = DiscountType.SPECIAL,
    pct: str = "10",
    **overrides,
) -> DiscountRule:
    fields = {
        "id": rule_id,
        "name": rule_id,
        "type": rule_type,
        "discount_percentage": Decimal(pct),
        "effective_date": NOW - timedelta(days=30),
    }
    fields.update(overrides)
    return DiscountRule(**fields)


def _make_catalog(units: list[Unit], rules: list[DiscountRule]) -> CatalogSnapshot:
    return CatalogSnapshot(units={u.id: u for u in units}, rules=rules)


def _resolve(catalog: CatalogSnapshot, quantity: int, account_type=AccountType.INDIVIDUAL, unit_id="cascade"):
    return resolve_applicable_discounts(catalog, quantity, unit_id, account_type, NOW)


# ── Type eligibility ─────────────────────────────────────────────────


class TestVolumeThreshold:
    def test_below_threshold_excluded(self):
        rule = _make_rule("volume", DiscountType.VOLUME, "10", threshold=100)
        catalog = _make_catalog([_make_unit()], [rule])
        assert _resolve(catalog, 99) == []

    def test_at_threshold_included(self):
        rule = _make_rule("volume", DiscountType.VOLUME, "10", threshold=100)
        catalog = _make_catalog([_make_unit()], [rule])
        assert [r.id for r in _resolve(catalog, 100)] == ["volume"]

    def test_volume_rule_without_threshold_never_applies(self):
        rule = _make_rule("volume", DiscountType.VOLUME, "10")
        catalog = _make_catalog([_make_unit()], [rule])
        assert _resolve(catalog, 10_000) == []


class TestAccountType:
    def test_matching_account_type(self):
        rule = _make_rule("student", DiscountType.ACCOUNT_TYPE, "50", account_type=AccountType.STUDENT)
        catalog = _make_catalog([_make_unit()], [rule])
        assert [r.id for r in _resolve(catalog, 1, AccountType.STUDENT)] == ["student"]

    def test_other_account_type_excluded(self):
        rule = _make_rule("student", DiscountType.ACCOUNT_TYPE, "50", account_type=AccountType.STUDENT)
        catalog = _make_catalog([_make_unit()], [rule])
        assert _resolve(catalog, 1, AccountType.ENTERPRISE) == []

    def test_special_always_eligible(self):
        catalog = _make_catalog([_make_unit()], [_make_rule("promo")])
        assert [r.id for r in _resolve(catalog, 0)] == ["promo"]


# ── Time window ──────────────────────────────────────────────────────


class TestTimeWindow:
    def test_future_effective_date_excluded(self):
        rule = _make_rule("later", effective_date=NOW + timedelta(seconds=1))
        catalog = _make_catalog([_make_unit()], [rule])
        assert _resolve(catalog, 500) == []

    def test_past_end_date_excluded(self):
        rule = _make_rule(
            "expired", DiscountType.VOLUME, "20", threshold=1, end_date=NOW - timedelta(days=1)
        )
        catalog = _make_catalog([_make_unit()], [rule])
        assert _resolve(catalog, 500) == []

    def test_end_date_is_exclusive(self):
        rule = _make_rule("ends-now", end_date=NOW)
        catalog = _make_catalog([_make_unit()], [rule])
        assert _resolve(catalog, 1) == []

    def test_effective_date_is_inclusive(self):
        rule = _make_rule("starts-now", effective_date=NOW)
        catalog = _make_catalog([_make_unit()], [rule])
        assert [r.id for r in _resolve(catalog, 1)] == ["starts-now"]


# ── Unit scope ───────────────────────────────────────────────────────


class TestUnitScope:
    def test_empty_allow_list_admits_all(self):
        rules = [_make_rule("a", pct="5"), _make_rule("b", pct="15")]
        catalog = _make_catalog([_make_unit()], rules)
        assert [r.id for r in _resolve(catalog, 1)] == ["b", "a"]

    def test_allow_list_restricts_rules(self):
        rules = [_make_rule("a", pct="5"), _make_rule("b", pct="15")]
        catalog = _make_catalog([_make_unit(allowed=["a"])], rules)
        assert [r.id for r in _resolve(catalog, 1)] == ["a"]

    def test_unknown_unit_has_no_discounts(self):
        catalog = _make_catalog([_make_unit()], [_make_rule("a")])
        assert _resolve(catalog, 1, unit_id="missing") == []


# ── Ordering ─────────────────────────────────────────────────────────


class TestOrdering:
    def test_student_and_volume_ordered_by_percentage(self):
        """Student 50% and volume 10% both eligible → [50, 10]."""
        rules = [
            _make_rule("volume", DiscountType.VOLUME, "10", threshold=1),
            _make_rule("student", DiscountType.ACCOUNT_TYPE, "50", account_type=AccountType.STUDENT),
        ]
        catalog = _make_catalog([_make_unit()], rules)
        result = _resolve(catalog, 5, AccountType.STUDENT)
        assert [r.discount_percentage for r in result] == [Decimal("50"), Decimal("10")]

    def test_equal_percentages_lowest_id_first(self):
        rules = [_make_rule("zeta", pct="20"), _make_rule("alpha", pct="20"), _make_rule("mid", pct="20")]
        catalog = _make_catalog([_make_unit()], rules)
        assert [r.id for r in _resolve(catalog, 1)] == ["alpha", "mid", "zeta"]

    def test_best_discount_is_first(self):
        rules = [_make_rule("small", pct="5"), _make_rule("big", pct="25")]
        catalog = _make_catalog([_make_unit()], rules)
        assert best_discount(catalog, 1, "cascade", AccountType.INDIVIDUAL, NOW).id == "big"

    def test_best_discount_none(self):
        catalog = _make_catalog([_make_unit()], [])
        assert best_discount(catalog, 1, "cascade", AccountType.INDIVIDUAL, NOW) is None


class TestInvalidInput:
    def test_negative_quantity(self):
        catalog = _make_catalog([_make_unit()], [_make_rule("a")])
        with pytest.raises(InputValidationError):
            _resolve(catalog, -1)

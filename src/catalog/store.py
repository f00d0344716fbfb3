"""Catalog store — CRUD over units and discount rules on top of a storage backend.

Owns the unit ⇄ rule relation: backends hold the (unit_id, rule_id) pairs,
this module projects them onto Unit.applicable_discounts and
DiscountRule.applicable_units on every read and keeps them consistent on
every write. Mutations require an administrator; reads are open.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections import defaultdict
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from src.errors import InputValidationError, NotFoundError, UnauthorizedError
from src.models.enums import DiscountType, SortOrder, UnitSortField
from src.schemas.catalog import (
    CatalogSnapshot,
    DiscountRule,
    DiscountRuleCreate,
    DiscountRuleUpdate,
    Unit,
    UnitCreate,
    UnitSearchParams,
    UnitSearchResult,
    UnitUpdate,
)
from src.schemas.identity import CallerAccessor, CallerIdentity
from src.storage.base import StorageBackend

logger = logging.getLogger(__name__)

# Optional fields that may be explicitly cleared by an update
_NULLABLE_UNIT_FIELDS = {"description", "category"}
_NULLABLE_RULE_FIELDS = {"threshold", "account_type", "end_date"}

_SORT_KEYS: dict[UnitSortField, Callable[[Unit], Any]] = {
    UnitSortField.NAME: lambda u: u.name.lower(),
    UnitSortField.PRICE: lambda u: u.base_price,
    UnitSortField.CATEGORY: lambda u: (u.category or "").lower(),
    UnitSortField.UPDATED_AT: lambda u: u.updated_at,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _changes(update: Any, nullable: set[str]) -> dict[str, Any]:
    """Fields explicitly set on a partial update; None only clears nullable fields."""
    return {
        key: value
        for key, value in update.model_dump(exclude_unset=True).items()
        if value is not None or key in nullable
    }


def _check_rule_fields(rule: DiscountRule) -> None:
    if rule.type == DiscountType.VOLUME and rule.threshold is None:
        raise InputValidationError("VOLUME discount rules require a threshold")
    if rule.type == DiscountType.ACCOUNT_TYPE and rule.account_type is None:
        raise InputValidationError("ACCOUNT_TYPE discount rules require an account_type")
    if rule.end_date is not None and rule.end_date <= rule.effective_date:
        raise InputValidationError("end_date must be after effective_date")


def _matches(unit: Unit, params: UnitSearchParams) -> bool:
    if params.query:
        needle = params.query.lower()
        haystacks = (unit.name, unit.description or "", unit.category or "")
        if not any(needle in h.lower() for h in haystacks):
            return False
    if params.category and (unit.category or "").lower() != params.category.lower():
        return False
    if params.active is not None and unit.active != params.active:
        return False
    return True


class CatalogStore:
    """Units, discount rules and the allow-list relation between them."""

    def __init__(
        self,
        backend: StorageBackend,
        current_caller: CallerAccessor,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend = backend
        self._current_caller = current_caller
        self._clock = clock

    def _require_admin(self) -> CallerIdentity:
        caller = self._current_caller()
        if caller is None:
            raise UnauthorizedError("Authentication required")
        if not caller.is_admin:
            raise UnauthorizedError(f"{caller.username} is not an administrator")
        return caller

    # ── Relation ─────────────────────────────────────────────────────

    async def _links(self) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
        """(rule ids per unit, unit ids per rule), both sorted."""
        by_unit: dict[str, list[str]] = defaultdict(list)
        by_rule: dict[str, list[str]] = defaultdict(list)
        for unit_id, rule_id in await self._backend.unit_discounts.pairs():
            by_unit[unit_id].append(rule_id)
            by_rule[rule_id].append(unit_id)
        return by_unit, by_rule

    @staticmethod
    def _with_rules(unit: Unit, by_unit: dict[str, list[str]]) -> Unit:
        return unit.model_copy(update={"applicable_discounts": sorted(by_unit.get(unit.id, []))})

    @staticmethod
    def _with_units(rule: DiscountRule, by_rule: dict[str, list[str]]) -> DiscountRule:
        return rule.model_copy(update={"applicable_units": sorted(by_rule.get(rule.id, []))})

    async def _ensure_exist(self, repository: Any, ids: Iterable[str]) -> None:
        for record_id in ids:
            if await repository.get(record_id) is None:
                raise InputValidationError(f"Unknown {repository.entity.lower()} id: {record_id}")

    async def _relink(
        self,
        current: set[tuple[str, str]],
        wanted: set[tuple[str, str]],
    ) -> None:
        links = self._backend.unit_discounts
        for unit_id, rule_id in sorted(wanted - current):
            await links.add(unit_id, rule_id)
        for unit_id, rule_id in sorted(current - wanted):
            await links.remove(unit_id, rule_id)

    # ── Units ────────────────────────────────────────────────────────

    async def list_units(self) -> list[Unit]:
        by_unit, _ = await self._links()
        return [self._with_rules(u, by_unit) for u in await self._backend.units.list()]

    async def get_unit(self, unit_id: str) -> Unit | None:
        unit = await self._backend.units.get(unit_id)
        if unit is None:
            return None
        by_unit, _ = await self._links()
        return self._with_rules(unit, by_unit)

    async def create_unit(self, data: UnitCreate) -> Unit:
        self._require_admin()
        await self._ensure_exist(self._backend.discount_rules, data.applicable_discounts)

        now = self._clock()
        unit = Unit(
            **data.model_dump(exclude={"id", "applicable_discounts"}),
            id=data.id or uuid.uuid4().hex,
            created_at=now,
            updated_at=now,
        )
        await self._backend.units.create(unit)
        for rule_id in sorted(set(data.applicable_discounts)):
            await self._backend.unit_discounts.add(unit.id, rule_id)

        logger.info("Unit created: %s (%s)", unit.id, unit.name)
        return await self._get_existing_unit(unit.id)

    async def update_unit(self, unit_id: str, data: UnitUpdate) -> Unit:
        """Apply a partial update. A given applicable_discounts list replaces the unit's links."""
        self._require_admin()
        existing = await self._backend.units.get(unit_id)
        if existing is None:
            raise NotFoundError("Unit", unit_id)

        changes = _changes(data, _NULLABLE_UNIT_FIELDS)
        rule_ids = changes.pop("applicable_discounts", None)
        if rule_ids is not None:
            await self._ensure_exist(self._backend.discount_rules, rule_ids)

        updated = Unit.model_validate(
            {**existing.model_dump(), **changes, "id": unit_id, "updated_at": self._clock()}
        )
        await self._backend.units.update(updated)

        if rule_ids is not None:
            by_unit, _ = await self._links()
            await self._relink(
                {(unit_id, r) for r in by_unit.get(unit_id, [])},
                {(unit_id, r) for r in rule_ids},
            )

        logger.info("Unit updated: %s (%s)", unit_id, ", ".join(sorted(data.model_fields_set)))
        return await self._get_existing_unit(unit_id)

    async def delete_unit(self, unit_id: str) -> None:
        """Strip the unit from every rule, then delete it. Not transactional.

        A unit on any stored quote, whoever owns it, cannot be deleted; it can
        only be deactivated.
        """
        self._require_admin()
        if await self._backend.units.get(unit_id) is None:
            raise NotFoundError("Unit", unit_id)

        quoted_in = sorted(
            quote.id
            for quote in await self._backend.quotes.list()
            if any(item.unit_id == unit_id for item in quote.items)
        )
        if quoted_in:
            raise InputValidationError(
                f"Unit {unit_id} is used by {len(quoted_in)} quote(s); deactivate it instead of deleting"
            )

        await self._backend.unit_discounts.remove_unit(unit_id)
        await self._backend.units.delete(unit_id)
        logger.info("Unit deleted: %s", unit_id)

    async def search_units(self, params: UnitSearchParams) -> UnitSearchResult:
        """Filter, sort and paginate the catalog. Pages are 1-indexed."""
        matches = [u for u in await self.list_units() if _matches(u, params)]
        matches.sort(key=_SORT_KEYS[params.sort_by], reverse=params.sort_order == SortOrder.DESC)

        total = len(matches)
        page_size = params.page_size or total
        total_pages = math.ceil(total / page_size) if page_size else 0
        start = (params.page - 1) * page_size

        return UnitSearchResult(
            units=matches[start:start + page_size],
            total=total,
            page=params.page,
            page_size=page_size,
            total_pages=total_pages,
        )

    async def _get_existing_unit(self, unit_id: str) -> Unit:
        unit = await self.get_unit(unit_id)
        if unit is None:
            raise NotFoundError("Unit", unit_id)
        return unit

    # ── Discount rules ───────────────────────────────────────────────

    async def list_discount_rules(self) -> list[DiscountRule]:
        _, by_rule = await self._links()
        return [self._with_units(r, by_rule) for r in await self._backend.discount_rules.list()]

    async def get_discount_rule(self, rule_id: str) -> DiscountRule | None:
        rule = await self._backend.discount_rules.get(rule_id)
        if rule is None:
            return None
        _, by_rule = await self._links()
        return self._with_units(rule, by_rule)

    async def create_discount_rule(self, data: DiscountRuleCreate) -> DiscountRule:
        self._require_admin()
        rule = DiscountRule(
            **data.model_dump(exclude={"id", "effective_date", "applicable_units"}),
            id=data.id or f"{data.type.value.lower().replace('_', '-')}-{uuid.uuid4().hex[:8]}",
            effective_date=data.effective_date or self._clock(),
        )
        _check_rule_fields(rule)
        await self._ensure_exist(self._backend.units, data.applicable_units)

        await self._backend.discount_rules.create(rule)
        for unit_id in sorted(set(data.applicable_units)):
            await self._backend.unit_discounts.add(unit_id, rule.id)

        logger.info("Discount rule created: %s (%s %s%%)", rule.id, rule.type.value, rule.discount_percentage)
        return await self._get_existing_rule(rule.id)

    async def update_discount_rule(self, rule_id: str, data: DiscountRuleUpdate) -> DiscountRule:
        """Apply a partial update. A given applicable_units list is diffed against the
        current links: newly included units are linked, excluded ones unlinked."""
        self._require_admin()
        existing = await self._backend.discount_rules.get(rule_id)
        if existing is None:
            raise NotFoundError("DiscountRule", rule_id)

        changes = _changes(data, _NULLABLE_RULE_FIELDS)
        unit_ids = changes.pop("applicable_units", None)

        updated = DiscountRule.model_validate({**existing.model_dump(), **changes, "id": rule_id})
        _check_rule_fields(updated)
        if unit_ids is not None:
            await self._ensure_exist(self._backend.units, unit_ids)

        await self._backend.discount_rules.update(updated)

        if unit_ids is not None:
            _, by_rule = await self._links()
            await self._relink(
                {(u, rule_id) for u in by_rule.get(rule_id, [])},
                {(u, rule_id) for u in unit_ids},
            )

        logger.info("Discount rule updated: %s (%s)", rule_id, ", ".join(sorted(data.model_fields_set)))
        return await self._get_existing_rule(rule_id)

    async def delete_discount_rule(self, rule_id: str) -> None:
        self._require_admin()
        if await self._backend.discount_rules.get(rule_id) is None:
            raise NotFoundError("DiscountRule", rule_id)

        await self._backend.unit_discounts.remove_rule(rule_id)
        await self._backend.discount_rules.delete(rule_id)
        logger.info("Discount rule deleted: %s", rule_id)

    async def _get_existing_rule(self, rule_id: str) -> DiscountRule:
        rule = await self.get_discount_rule(rule_id)
        if rule is None:
            raise NotFoundError("DiscountRule", rule_id)
        return rule

    # ── Pricing view ─────────────────────────────────────────────────

    async def snapshot(self) -> CatalogSnapshot:
        """Immutable view of units and rules for the pricing functions."""
        by_unit, by_rule = await self._links()
        units = await self._backend.units.list()
        rules = await self._backend.discount_rules.list()
        return CatalogSnapshot(
            units={u.id: self._with_rules(u, by_unit) for u in units},
            rules=[self._with_units(r, by_rule) for r in rules],
        )

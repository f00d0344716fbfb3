"""Pydantic schemas for the unit catalog and discount rules.

Pure data classes — no DB dependencies. `Unit.applicable_discounts` and
`DiscountRule.applicable_units` are projections of the single unit ⇄ rule
relation; backends never persist them, the catalog store fills them on read.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from src.models.enums import AccountType, DiscountType, SortOrder, UnitSortField


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps (SQLite, CRM date strings) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


# ---------------------------------------------------------------------------
# Units
# ---------------------------------------------------------------------------


class Unit(BaseModel):
    """A sellable catalog entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str | None = None
    base_price: Decimal = Field(ge=0)
    category: str | None = None
    features: list[str] = Field(default_factory=list)
    active: bool = True
    applicable_discounts: list[str] = Field(default_factory=list)  # empty = no restriction
    created_at: UtcDatetime
    updated_at: UtcDatetime


class UnitCreate(BaseModel):
    """Admin input for a new unit. `id` is generated when omitted."""

    id: str | None = None
    name: str = Field(min_length=1)
    description: str | None = None
    base_price: Decimal = Field(ge=0)
    category: str | None = None
    features: list[str] = Field(default_factory=list)
    active: bool = True
    applicable_discounts: list[str] = Field(default_factory=list)


class UnitUpdate(BaseModel):
    """Partial unit update — only fields explicitly set are applied."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    base_price: Decimal | None = Field(default=None, ge=0)
    category: str | None = None
    features: list[str] | None = None
    active: bool | None = None
    applicable_discounts: list[str] | None = None


class UnitSearchParams(BaseModel):
    """Catalog search: free text, category filter, sort, 1-indexed pagination."""

    query: str | None = None
    category: str | None = None
    active: bool | None = None
    sort_by: UnitSortField = UnitSortField.NAME
    sort_order: SortOrder = SortOrder.ASC
    page: int = Field(default=1, ge=1)
    page_size: int | None = Field(default=None, ge=1)  # None = all results in one page


class UnitSearchResult(BaseModel):
    units: list[Unit]
    total: int
    page: int
    page_size: int
    total_pages: int


# ---------------------------------------------------------------------------
# Discount rules
# ---------------------------------------------------------------------------


class DiscountRule(BaseModel):
    """A pricing adjustment policy gated by type, time window and unit scope.

    `threshold` is only meaningful for VOLUME rules and `account_type` only for
    ACCOUNT_TYPE rules; the other field may still be stored and is ignored.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: DiscountType
    discount_percentage: Decimal = Field(ge=0, le=100)
    threshold: int | None = None
    account_type: AccountType | None = None
    effective_date: UtcDatetime
    end_date: UtcDatetime | None = None
    applicable_units: list[str] = Field(default_factory=list)  # empty = all units

    def is_live(self, now: datetime) -> bool:
        """Live iff effective_date <= now < end_date (end_date optional)."""
        return self.effective_date <= now and (self.end_date is None or self.end_date > now)


class DiscountRuleCreate(BaseModel):
    """Admin input for a new rule. `effective_date` defaults to now."""

    id: str | None = None
    name: str = Field(min_length=1)
    type: DiscountType
    discount_percentage: Decimal = Field(ge=0, le=100)
    threshold: int | None = Field(default=None, ge=0)
    account_type: AccountType | None = None
    effective_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    applicable_units: list[str] = Field(default_factory=list)


class DiscountRuleUpdate(BaseModel):
    """Partial rule update — only fields explicitly set are applied."""

    name: str | None = Field(default=None, min_length=1)
    type: DiscountType | None = None
    discount_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    threshold: int | None = Field(default=None, ge=0)
    account_type: AccountType | None = None
    effective_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    applicable_units: list[str] | None = None


class CatalogSnapshot(BaseModel):
    """Read-only view of the catalog handed to the pricing functions."""

    model_config = ConfigDict(frozen=True)

    units: dict[str, Unit] = Field(default_factory=dict)
    rules: list[DiscountRule] = Field(default_factory=list)

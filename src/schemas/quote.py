"""Pydantic schemas for quotes, line items and pricing results.

Money is Decimal at full precision everywhere in this module; rounding to two
places only happens when a value is formatted for display.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import AccountType, QuoteStatus
from src.schemas.catalog import UtcDatetime

ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Pricing results
# ---------------------------------------------------------------------------


class LineItemPrice(BaseModel):
    """Outcome of pricing one (unit, quantity) pair."""

    base_price: Decimal
    discount_percentage: Decimal = ZERO
    line_total: Decimal
    applied_rule_id: str | None = None  # winning rule, None when no rule applies


class QuoteTotals(BaseModel):
    subtotal: Decimal = ZERO   # undiscounted sum
    discount: Decimal = ZERO   # currency amount, subtotal - total
    total: Decimal = ZERO


# ---------------------------------------------------------------------------
# Persisted quote
# ---------------------------------------------------------------------------


class QuoteLineItem(BaseModel):
    """One priced line. `base_price` is a snapshot taken when the line was priced."""

    model_config = ConfigDict(frozen=True)

    unit_id: str
    quantity: int = Field(ge=0)
    base_price: Decimal = Field(ge=0)
    discount_percentage: Decimal = Field(default=ZERO, ge=0, le=100)
    line_total: Decimal
    applied_rule_id: str | None = None


class Quote(BaseModel):
    """A persisted, owned collection of line items with computed totals."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    items: list[QuoteLineItem] = Field(default_factory=list)
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO
    status: QuoteStatus = QuoteStatus.DRAFT
    account_type: AccountType = AccountType.INDIVIDUAL  # priced for this account type
    owner_user_id: str
    created_by: str
    created_at: UtcDatetime
    updated_at: UtcDatetime


# ---------------------------------------------------------------------------
# Workflow inputs
# ---------------------------------------------------------------------------


class LineItemRequest(BaseModel):
    """What the quote form submits per line: a unit and a quantity.

    Quantity is validated by the pricing layer so that a negative value is
    reported as an input error rather than a schema error.
    """

    unit_id: str
    quantity: int


class QuoteDraft(BaseModel):
    name: str
    items: list[LineItemRequest] = Field(default_factory=list)


class QuoteChanges(BaseModel):
    """Partial quote update — replaced items are re-priced."""

    name: str | None = None
    items: list[LineItemRequest] | None = None


class QuoteReview(BaseModel):
    approve: bool

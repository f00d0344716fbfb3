"""Quote workflow — pricing new lines, explicit recomputation and status transitions.

Sits between the API and the two stores: line items are priced against a
catalog snapshot, totals come from compute_quote(), and the result is handed
to the quote store, which enforces ownership.

Status machine:
    draft ──submit──▶ submitted ──review──▶ approved | rejected
"""

from __future__ import annotations

import logging
from datetime import datetime

from src.catalog.store import CatalogStore
from src.errors import InputValidationError, UnauthorizedError
from src.models.enums import QuoteStatus
from src.pricing.calculator import compute_line_item, compute_quote, price_line_item, reprice_line_item
from src.quotes.store import QuoteStore
from src.schemas.catalog import CatalogSnapshot
from src.schemas.identity import CallerAccessor, CallerIdentity
from src.schemas.quote import (
    LineItemPrice,
    LineItemRequest,
    Quote,
    QuoteChanges,
    QuoteDraft,
    QuoteLineItem,
)

logger = logging.getLogger(__name__)


class QuoteService:
    """Quote operations on behalf of the current caller."""

    def __init__(self, catalog: CatalogStore, store: QuoteStore, current_caller: CallerAccessor) -> None:
        self._catalog = catalog
        self._store = store
        self._current_caller = current_caller

    def _require_caller(self) -> CallerIdentity:
        caller = self._current_caller()
        if caller is None:
            raise UnauthorizedError("Authentication required")
        return caller

    async def _quote_for_write(self, quote_id: str) -> Quote:
        _, quote = await self._store.get_for_write(quote_id)
        return quote

    @staticmethod
    def _validate_name(name: str) -> str:
        name = name.strip()
        if not name:
            raise InputValidationError("Quote name is required")
        return name

    @staticmethod
    def _price_requests(
        catalog: CatalogSnapshot,
        requests: list[LineItemRequest],
        caller: CallerIdentity,
        now: datetime,
    ) -> list[QuoteLineItem]:
        """Price submitted lines. New lines must reference existing, active units."""
        if not requests:
            raise InputValidationError("A quote needs at least one line item")

        items = []
        for request in requests:
            unit = catalog.units.get(request.unit_id)
            if unit is None:
                raise InputValidationError(f"Unknown unit id: {request.unit_id}")
            if not unit.active:
                raise InputValidationError(f"Unit {request.unit_id} is not active")
            items.append(price_line_item(catalog, request.unit_id, request.quantity, caller.account_type, now))
        return items

    # ── Pricing preview ──────────────────────────────────────────────

    async def preview_line_item(self, unit_id: str, quantity: int, now: datetime) -> LineItemPrice:
        """Price one line for the caller without persisting anything."""
        caller = self._require_caller()
        catalog = await self._catalog.snapshot()
        return compute_line_item(catalog, unit_id, quantity, caller.account_type, now)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def create_quote(self, draft: QuoteDraft, now: datetime) -> Quote:
        caller = self._require_caller()
        name = self._validate_name(draft.name)
        catalog = await self._catalog.snapshot()
        items = self._price_requests(catalog, draft.items, caller, now)
        totals = compute_quote(items)

        quote = Quote(
            id="",
            name=name,
            items=items,
            **totals.model_dump(),
            status=QuoteStatus.DRAFT,
            account_type=caller.account_type,
            owner_user_id=caller.user_id,
            created_by=caller.username,
            created_at=now,
            updated_at=now,
        )
        return await self._store.create(quote)

    async def update_quote(self, quote_id: str, changes: QuoteChanges, now: datetime) -> Quote:
        """Rename and/or replace the items of a draft. Replaced items are re-priced."""
        caller = self._require_caller()
        quote = await self._quote_for_write(quote_id)
        if quote.status != QuoteStatus.DRAFT:
            raise InputValidationError(f"Only draft quotes can be edited (quote is {quote.status.value})")

        update: dict = {}
        if changes.name is not None:
            update["name"] = self._validate_name(changes.name)
        if changes.items is not None:
            catalog = await self._catalog.snapshot()
            # Lines are priced for the account type the quote was created for
            owner = caller.model_copy(update={"account_type": quote.account_type})
            items = self._price_requests(catalog, changes.items, owner, now)
            update["items"] = items
            update.update(compute_quote(items).model_dump())

        return await self._store.update(quote_id, update)

    async def recompute_quote(self, quote_id: str, now: datetime) -> Quote:
        """Re-price every line against the current catalog.

        Base-price snapshots are refreshed and discounts re-resolved for the
        quote's stored account type. Inactive units are still priced; deleted
        units raise NotFoundError.
        """
        quote = await self._quote_for_write(quote_id)
        catalog = await self._catalog.snapshot()
        items = [reprice_line_item(catalog, item, quote.account_type, now) for item in quote.items]
        totals = compute_quote(items)
        logger.info("Quote recomputed: %s (total %s → %s)", quote_id, quote.total, totals.total)
        return await self._store.update(quote_id, {"items": items, **totals.model_dump()})

    async def submit_quote(self, quote_id: str) -> Quote:
        quote = await self._quote_for_write(quote_id)
        if quote.status != QuoteStatus.DRAFT:
            raise InputValidationError(f"Cannot submit a {quote.status.value} quote")
        if not quote.items:
            raise InputValidationError("Cannot submit a quote without line items")
        return await self._store.update(quote_id, {"status": QuoteStatus.SUBMITTED})

    async def review_quote(self, quote_id: str, approve: bool) -> Quote:
        """Approve or reject a submitted quote. Administrators only."""
        caller = self._require_caller()
        if not caller.is_admin:
            raise UnauthorizedError("Only administrators can review quotes")
        quote = await self._quote_for_write(quote_id)
        if quote.status != QuoteStatus.SUBMITTED:
            raise InputValidationError(f"Cannot review a {quote.status.value} quote")

        status = QuoteStatus.APPROVED if approve else QuoteStatus.REJECTED
        logger.info("Quote %s %s by %s", quote_id, status.value, caller.username)
        return await self._store.update(quote_id, {"status": status})

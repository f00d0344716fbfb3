"""Tests for the quote workflow.

Covers:
- create_quote: validation (name, items, unknown/inactive units), pricing for
  the caller's account type, totals
- update_quote: re-pricing replaced items, drafts only
- recompute_quote: refreshed snapshots, owner's account type, deleted units
- submit/review transitions and who may perform them
- preview_line_item
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from src.catalog.demo import seed_demo_catalog
from src.catalog.store import CatalogStore
from src.errors import InputValidationError, NotFoundError, UnauthorizedError
from src.models.enums import AccountType, QuoteStatus
from src.quotes.service import QuoteService
from src.quotes.store import QuoteStore
from src.schemas.catalog import UnitCreate, UnitUpdate
from src.schemas.identity import CallerIdentity, fixed_caller
from src.schemas.quote import LineItemRequest, QuoteChanges, QuoteDraft
from src.storage.local import LocalBackend

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

STUDENT = CallerIdentity(user_id="stu", username="stu@example.com", account_type=AccountType.STUDENT)
INDIVIDUAL = CallerIdentity(user_id="ind", username="ind@example.com")
ADMIN = CallerIdentity(
    user_id="admin", username="admin@example.com", is_admin=True, account_type=AccountType.ENTERPRISE
)


# ── Helpers ──────────────────────────────────────────────────────────


async def _make_backend() -> LocalBackend:
    backend = LocalBackend()
    await seed_demo_catalog(backend, NOW)
    return backend


def _make_service(backend: LocalBackend, caller: CallerIdentity | None) -> QuoteService:
    accessor = fixed_caller(caller)
    return QuoteService(
        CatalogStore(backend, accessor, clock=lambda: NOW),
        QuoteStore(backend.quotes, accessor, clock=lambda: NOW),
        accessor,
    )


def _draft(*lines: tuple[str, int], name: str = "Team licences") -> QuoteDraft:
    return QuoteDraft(name=name, items=[LineItemRequest(unit_id=u, quantity=q) for u, q in lines])


# ── Creation ─────────────────────────────────────────────────────────


class TestCreateQuote:
    @pytest.mark.asyncio()
    async def test_volume_discount_applied(self):
        backend = await _make_backend()
        quote = await _make_service(backend, INDIVIDUAL).create_quote(_draft(("cascade", 150)), NOW)

        assert quote.status == QuoteStatus.DRAFT
        assert quote.items[0].applied_rule_id == "volume-discount"
        assert quote.subtotal == Decimal("300000")
        assert quote.total == Decimal("270000")
        assert quote.discount == Decimal("30000")

    @pytest.mark.asyncio()
    async def test_priced_for_callers_account_type(self):
        backend = await _make_backend()
        quote = await _make_service(backend, STUDENT).create_quote(_draft(("enterprise-seat", 2)), NOW)

        assert quote.account_type == AccountType.STUDENT
        assert quote.items[0].discount_percentage == Decimal("50")
        assert quote.total == Decimal("1000")

    @pytest.mark.asyncio()
    async def test_blank_name_rejected(self):
        backend = await _make_backend()
        with pytest.raises(InputValidationError):
            await _make_service(backend, INDIVIDUAL).create_quote(_draft(("cascade", 1), name="  "), NOW)

    @pytest.mark.asyncio()
    async def test_no_items_rejected(self):
        backend = await _make_backend()
        with pytest.raises(InputValidationError):
            await _make_service(backend, INDIVIDUAL).create_quote(_draft(), NOW)

    @pytest.mark.asyncio()
    async def test_unknown_unit_rejected(self):
        backend = await _make_backend()
        with pytest.raises(InputValidationError):
            await _make_service(backend, INDIVIDUAL).create_quote(_draft(("ghost", 1)), NOW)

    @pytest.mark.asyncio()
    async def test_inactive_unit_rejected(self):
        backend = await _make_backend()
        admin_catalog = CatalogStore(backend, fixed_caller(ADMIN), clock=lambda: NOW)
        await admin_catalog.create_unit(
            UnitCreate(id="retired", name="Retired", base_price=Decimal("5"), active=False)
        )
        with pytest.raises(InputValidationError):
            await _make_service(backend, INDIVIDUAL).create_quote(_draft(("retired", 1)), NOW)

    @pytest.mark.asyncio()
    async def test_negative_quantity_rejected(self):
        backend = await _make_backend()
        with pytest.raises(InputValidationError):
            await _make_service(backend, INDIVIDUAL).create_quote(_draft(("cascade", -3)), NOW)
        assert await backend.quotes.list() == []

    @pytest.mark.asyncio()
    async def test_anonymous_rejected(self):
        backend = await _make_backend()
        with pytest.raises(UnauthorizedError):
            await _make_service(backend, None).create_quote(_draft(("cascade", 1)), NOW)


# ── Editing and recomputation ────────────────────────────────────────


class TestUpdateQuote:
    @pytest.mark.asyncio()
    async def test_replaced_items_are_repriced(self):
        backend = await _make_backend()
        service = _make_service(backend, INDIVIDUAL)
        quote = await service.create_quote(_draft(("cascade", 1)), NOW)

        updated = await service.update_quote(
            quote.id, QuoteChanges(items=[LineItemRequest(unit_id="enterprise-seat", quantity=100)]), NOW
        )

        assert updated.total == Decimal("90000")
        assert updated.subtotal - updated.discount == updated.total

    @pytest.mark.asyncio()
    async def test_rename_only(self):
        backend = await _make_backend()
        service = _make_service(backend, INDIVIDUAL)
        quote = await service.create_quote(_draft(("cascade", 1)), NOW)

        updated = await service.update_quote(quote.id, QuoteChanges(name="Renamed"), NOW)

        assert updated.name == "Renamed"
        assert updated.items == quote.items

    @pytest.mark.asyncio()
    async def test_submitted_quote_is_frozen(self):
        backend = await _make_backend()
        service = _make_service(backend, INDIVIDUAL)
        quote = await service.create_quote(_draft(("cascade", 1)), NOW)
        await service.submit_quote(quote.id)

        with pytest.raises(InputValidationError):
            await service.update_quote(quote.id, QuoteChanges(name="Late edit"), NOW)


class TestRecomputeQuote:
    @pytest.mark.asyncio()
    async def test_picks_up_new_base_price(self):
        backend = await _make_backend()
        quote = await _make_service(backend, INDIVIDUAL).create_quote(_draft(("enterprise-seat", 2)), NOW)

        admin_catalog = CatalogStore(backend, fixed_caller(ADMIN), clock=lambda: NOW)
        await admin_catalog.update_unit("enterprise-seat", UnitUpdate(base_price=Decimal("1500")))

        stored = await backend.quotes.get(quote.id)
        assert stored.total == Decimal("2000")

        recomputed = await _make_service(backend, INDIVIDUAL).recompute_quote(quote.id, NOW)
        assert recomputed.items[0].base_price == Decimal("1500")
        assert recomputed.total == Decimal("3000")

    @pytest.mark.asyncio()
    async def test_admin_recompute_uses_owner_account_type(self):
        backend = await _make_backend()
        quote = await _make_service(backend, STUDENT).create_quote(_draft(("cascade", 1)), NOW)

        recomputed = await _make_service(backend, ADMIN).recompute_quote(quote.id, NOW)

        assert recomputed.items[0].discount_percentage == Decimal("50")

    @pytest.mark.asyncio()
    async def test_unit_removed_from_storage_raises(self):
        backend = await _make_backend()
        quote = await _make_service(backend, INDIVIDUAL).create_quote(_draft(("cascade", 1)), NOW)
        # The catalog store refuses this delete; another writer on the backend may not
        await backend.units.delete("cascade")

        with pytest.raises(NotFoundError):
            await _make_service(backend, INDIVIDUAL).recompute_quote(quote.id, NOW)

    @pytest.mark.asyncio()
    async def test_missing_quote_not_found(self):
        backend = await _make_backend()
        with pytest.raises(NotFoundError):
            await _make_service(backend, INDIVIDUAL).recompute_quote("ghost", NOW)


class TestForeignQuoteWrites:
    @pytest.mark.asyncio()
    async def test_update_unauthorized(self):
        backend = await _make_backend()
        quote = await _make_service(backend, STUDENT).create_quote(_draft(("cascade", 1)), NOW)
        with pytest.raises(UnauthorizedError):
            await _make_service(backend, INDIVIDUAL).update_quote(quote.id, QuoteChanges(name="Mine now"), NOW)
        assert (await backend.quotes.get(quote.id)).name == "Team licences"

    @pytest.mark.asyncio()
    async def test_submit_unauthorized(self):
        backend = await _make_backend()
        quote = await _make_service(backend, STUDENT).create_quote(_draft(("cascade", 1)), NOW)
        with pytest.raises(UnauthorizedError):
            await _make_service(backend, INDIVIDUAL).submit_quote(quote.id)
        assert (await backend.quotes.get(quote.id)).status == QuoteStatus.DRAFT

    @pytest.mark.asyncio()
    async def test_recompute_unauthorized(self):
        backend = await _make_backend()
        quote = await _make_service(backend, STUDENT).create_quote(_draft(("cascade", 1)), NOW)
        with pytest.raises(UnauthorizedError):
            await _make_service(backend, INDIVIDUAL).recompute_quote(quote.id, NOW)

    @pytest.mark.asyncio()
    async def test_foreign_quote_still_hidden_on_read(self):
        backend = await _make_backend()
        quote = await _make_service(backend, STUDENT).create_quote(_draft(("cascade", 1)), NOW)
        store = QuoteStore(backend.quotes, fixed_caller(INDIVIDUAL))
        assert await store.get(quote.id) is None


# ── Status transitions ───────────────────────────────────────────────


class TestWorkflow:
    @pytest.mark.asyncio()
    async def test_submit_then_approve(self):
        backend = await _make_backend()
        quote = await _make_service(backend, INDIVIDUAL).create_quote(_draft(("cascade", 1)), NOW)

        submitted = await _make_service(backend, INDIVIDUAL).submit_quote(quote.id)
        approved = await _make_service(backend, ADMIN).review_quote(quote.id, approve=True)

        assert submitted.status == QuoteStatus.SUBMITTED
        assert approved.status == QuoteStatus.APPROVED

    @pytest.mark.asyncio()
    async def test_reject(self):
        backend = await _make_backend()
        quote = await _make_service(backend, INDIVIDUAL).create_quote(_draft(("cascade", 1)), NOW)
        await _make_service(backend, INDIVIDUAL).submit_quote(quote.id)

        rejected = await _make_service(backend, ADMIN).review_quote(quote.id, approve=False)
        assert rejected.status == QuoteStatus.REJECTED

    @pytest.mark.asyncio()
    async def test_owner_cannot_review(self):
        backend = await _make_backend()
        service = _make_service(backend, INDIVIDUAL)
        quote = await service.create_quote(_draft(("cascade", 1)), NOW)
        await service.submit_quote(quote.id)

        with pytest.raises(UnauthorizedError):
            await service.review_quote(quote.id, approve=True)

    @pytest.mark.asyncio()
    async def test_review_requires_submitted(self):
        backend = await _make_backend()
        quote = await _make_service(backend, INDIVIDUAL).create_quote(_draft(("cascade", 1)), NOW)
        with pytest.raises(InputValidationError):
            await _make_service(backend, ADMIN).review_quote(quote.id, approve=True)

    @pytest.mark.asyncio()
    async def test_submit_twice_rejected(self):
        backend = await _make_backend()
        service = _make_service(backend, INDIVIDUAL)
        quote = await service.create_quote(_draft(("cascade", 1)), NOW)
        await service.submit_quote(quote.id)
        with pytest.raises(InputValidationError):
            await service.submit_quote(quote.id)

    @pytest.mark.asyncio()
    async def test_submit_empty_quote_rejected(self):
        backend = await _make_backend()
        service = _make_service(backend, INDIVIDUAL)
        quote = await service.create_quote(_draft(("cascade", 1)), NOW)
        # Items can only be emptied behind the service's back
        await QuoteStore(backend.quotes, fixed_caller(INDIVIDUAL)).update(quote.id, {"items": []})

        with pytest.raises(InputValidationError):
            await service.submit_quote(quote.id)


class TestPreview:
    @pytest.mark.asyncio()
    async def test_preview_does_not_persist(self):
        backend = await _make_backend()
        price = await _make_service(backend, STUDENT).preview_line_item("cascade", 3, NOW)

        assert price.discount_percentage == Decimal("50")
        assert price.line_total == Decimal("3000")
        assert await backend.quotes.list() == []

    @pytest.mark.asyncio()
    async def test_preview_unknown_unit(self):
        backend = await _make_backend()
        with pytest.raises(NotFoundError):
            await _make_service(backend, INDIVIDUAL).preview_line_item("ghost", 1, NOW)

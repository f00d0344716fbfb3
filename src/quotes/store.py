"""Quote store — owned persistence of Quote aggregates.

Access rules, checked on every call against the injected caller accessor:
  - no caller at all            → UnauthorizedError
  - administrator               → every quote
  - anyone else                 → only quotes they own

get() masks a foreign quote as missing (returns None). update() and delete()
distinguish: NotFoundError for a missing id, UnauthorizedError for someone
else's quote.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from src.errors import NotFoundError, UnauthorizedError
from src.schemas.identity import CallerAccessor, CallerIdentity
from src.schemas.quote import Quote
from src.storage.base import Repository

logger = logging.getLogger(__name__)

# Never changed by update()
_IMMUTABLE_FIELDS = {"id", "owner_user_id", "created_by", "created_at"}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _can_access(caller: CallerIdentity, quote: Quote) -> bool:
    return caller.is_admin or quote.owner_user_id == caller.user_id


class QuoteStore:
    """CRUD over quotes, scoped to the current caller."""

    def __init__(
        self,
        repository: Repository[Quote],
        current_caller: CallerAccessor,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._current_caller = current_caller
        self._clock = clock

    def _require_caller(self) -> CallerIdentity:
        caller = self._current_caller()
        if caller is None:
            raise UnauthorizedError("Authentication required")
        return caller

    async def create(self, quote: Quote) -> Quote:
        """Persist a new quote owned by the caller. Id, ownership and timestamps are stamped here."""
        caller = self._require_caller()
        now = self._clock()
        stored = quote.model_copy(
            update={
                "id": str(uuid.uuid4()),
                "owner_user_id": caller.user_id,
                "created_by": caller.username,
                "created_at": now,
                "updated_at": now,
            }
        )
        await self._repository.create(stored)
        logger.info("Quote created: %s by %s", stored.id, caller.username)
        return stored

    async def list(self) -> list[Quote]:
        """Every quote visible to the caller, newest first."""
        caller = self._require_caller()
        quotes = [q for q in await self._repository.list() if _can_access(caller, q)]
        quotes.sort(key=lambda q: q.created_at, reverse=True)
        return quotes

    async def get(self, quote_id: str) -> Quote | None:
        caller = self._require_caller()
        quote = await self._repository.get(quote_id)
        if quote is None or not _can_access(caller, quote):
            return None
        return quote

    async def get_for_write(self, quote_id: str) -> tuple[CallerIdentity, Quote]:
        """Load a quote the caller is about to change.

        Unlike get(), a foreign quote is reported as UnauthorizedError rather than hidden.
        """
        caller = self._require_caller()
        quote = await self._repository.get(quote_id)
        if quote is None:
            raise NotFoundError("Quote", quote_id)
        if not _can_access(caller, quote):
            logger.warning("User %s denied access to quote %s", caller.username, quote_id)
            raise UnauthorizedError(f"Quote {quote_id} belongs to another user")
        return caller, quote

    async def update(self, quote_id: str, changes: dict[str, Any]) -> Quote:
        """Apply field changes. Identity and ownership fields are ignored; updated_at is refreshed."""
        _, existing = await self.get_for_write(quote_id)
        allowed = {k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}
        updated = Quote.model_validate(
            {**existing.model_dump(), **allowed, "updated_at": self._clock()}
        )
        await self._repository.update(updated)
        logger.info("Quote updated: %s (%s)", quote_id, ", ".join(sorted(allowed)))
        return updated

    async def delete(self, quote_id: str) -> None:
        await self.get_for_write(quote_id)
        await self._repository.delete(quote_id)
        logger.info("Quote deleted: %s", quote_id)

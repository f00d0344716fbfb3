"""Abstract persistence interface shared by every storage backend.

The catalog and quote stores depend only on these classes. Each entity type
gets a Repository with the same five operations; the unit ⇄ discount rule
allow-list is a single LinkRepository of (unit_id, rule_id) pairs.
"""

from __future__ import annotations

import abc
from typing import Generic, TypeVar

from pydantic import BaseModel

from src.schemas.catalog import DiscountRule, Unit
from src.schemas.quote import Quote

ModelT = TypeVar("ModelT", bound=BaseModel)


class Repository(abc.ABC, Generic[ModelT]):
    """CRUD over one entity type, keyed by the record's `id`."""

    entity: str = "Record"

    @abc.abstractmethod
    async def get(self, record_id: str) -> ModelT | None:
        """Return the record, or None if it does not exist."""

    @abc.abstractmethod
    async def list(self) -> list[ModelT]:
        """Return every record."""

    @abc.abstractmethod
    async def create(self, record: ModelT) -> ModelT:
        """Insert a new record and return it as stored."""

    @abc.abstractmethod
    async def update(self, record: ModelT) -> ModelT:
        """Replace an existing record. Raises NotFoundError if absent."""

    @abc.abstractmethod
    async def delete(self, record_id: str) -> None:
        """Remove a record. Raises NotFoundError if absent."""


class LinkRepository(abc.ABC):
    """The authoritative many-to-many relation between units and discount rules."""

    @abc.abstractmethod
    async def pairs(self) -> list[tuple[str, str]]:
        """Every (unit_id, rule_id) link."""

    @abc.abstractmethod
    async def add(self, unit_id: str, rule_id: str) -> None:
        """Create a link; a no-op if it already exists."""

    @abc.abstractmethod
    async def remove(self, unit_id: str, rule_id: str) -> None:
        """Drop a link; a no-op if it does not exist."""

    async def remove_unit(self, unit_id: str) -> None:
        """Drop every link of a unit."""
        for linked_unit, rule_id in await self.pairs():
            if linked_unit == unit_id:
                await self.remove(linked_unit, rule_id)

    async def remove_rule(self, rule_id: str) -> None:
        """Drop every link of a discount rule."""
        for unit_id, linked_rule in await self.pairs():
            if linked_rule == rule_id:
                await self.remove(unit_id, linked_rule)


class StorageBackend(abc.ABC):
    """One persistence backend: four collections plus lifecycle hooks."""

    name: str = "abstract"

    units: Repository[Unit]
    discount_rules: Repository[DiscountRule]
    unit_discounts: LinkRepository
    quotes: Repository[Quote]

    async def init(self) -> None:
        """Open connections / load state. Called once at startup."""

    async def close(self) -> None:
        """Release connections. Called once at shutdown."""

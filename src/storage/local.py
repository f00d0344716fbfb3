"""Local device store — in-process dictionaries, optionally mirrored to a JSON file.

The analogue of browser local storage: everything lives in memory and, when a
path is configured, the whole store is rewritten as one JSON document after
every write and loaded again on init().
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Generic

from src.errors import BackendError, InputValidationError, NotFoundError
from src.schemas.catalog import DiscountRule, Unit
from src.schemas.quote import Quote
from src.storage.base import LinkRepository, ModelT, Repository, StorageBackend

logger = logging.getLogger(__name__)

# Projection fields maintained by the catalog store, never persisted.
_UNPERSISTED: dict[type, set[str]] = {
    Unit: {"applicable_discounts"},
    DiscountRule: {"applicable_units"},
}


class LocalRepository(Repository[ModelT], Generic[ModelT]):
    """Dictionary-backed repository. Records are immutable models, so no copies are needed."""

    def __init__(self, backend: LocalBackend, model: type[ModelT], entity: str) -> None:
        self._backend = backend
        self._model = model
        self.entity = entity
        self._records: dict[str, ModelT] = {}

    def _strip(self, record: ModelT) -> ModelT:
        fields = _UNPERSISTED.get(self._model)
        if not fields:
            return record
        return record.model_copy(update={name: [] for name in fields})

    async def get(self, record_id: str) -> ModelT | None:
        return self._records.get(record_id)

    async def list(self) -> list[ModelT]:
        return list(self._records.values())

    def _commit(self, record_id: str, record: ModelT | None) -> None:
        """Apply one change (None deletes) and flush; undone if the file write fails."""
        previous = self._records.get(record_id)
        if record is None:
            del self._records[record_id]
        else:
            self._records[record_id] = record
        try:
            self._backend.flush()
        except BackendError:
            if previous is None:
                self._records.pop(record_id, None)
            else:
                self._records[record_id] = previous
            raise

    async def create(self, record: ModelT) -> ModelT:
        record_id = record.id  # type: ignore[attr-defined]
        if record_id in self._records:
            raise InputValidationError(f"{self.entity} {record_id} already exists")
        self._commit(record_id, self._strip(record))
        return self._records[record_id]

    async def update(self, record: ModelT) -> ModelT:
        record_id = record.id  # type: ignore[attr-defined]
        if record_id not in self._records:
            raise NotFoundError(self.entity, record_id)
        self._commit(record_id, self._strip(record))
        return self._records[record_id]

    async def delete(self, record_id: str) -> None:
        if record_id not in self._records:
            raise NotFoundError(self.entity, record_id)
        self._commit(record_id, None)

    # ── JSON (de)serialisation ───────────────────────────────────────

    def dump(self) -> list[dict[str, Any]]:
        return [record.model_dump(mode="json") for record in self._records.values()]

    def load(self, rows: list[dict[str, Any]]) -> None:
        self._records = {}
        for row in rows:
            record = self._model.model_validate(row)
            self._records[record.id] = record  # type: ignore[attr-defined]


class LocalLinkRepository(LinkRepository):
    """Set of (unit_id, rule_id) pairs."""

    def __init__(self, backend: LocalBackend) -> None:
        self._backend = backend
        self._pairs: set[tuple[str, str]] = set()

    async def pairs(self) -> list[tuple[str, str]]:
        return sorted(self._pairs)

    async def add(self, unit_id: str, rule_id: str) -> None:
        if (unit_id, rule_id) not in self._pairs:
            self._pairs.add((unit_id, rule_id))
            try:
                self._backend.flush()
            except BackendError:
                self._pairs.discard((unit_id, rule_id))
                raise

    async def remove(self, unit_id: str, rule_id: str) -> None:
        if (unit_id, rule_id) in self._pairs:
            self._pairs.discard((unit_id, rule_id))
            try:
                self._backend.flush()
            except BackendError:
                self._pairs.add((unit_id, rule_id))
                raise

    def dump(self) -> list[list[str]]:
        return [list(pair) for pair in sorted(self._pairs)]

    def load(self, rows: list[list[str]]) -> None:
        self._pairs = {(unit_id, rule_id) for unit_id, rule_id in rows}


class LocalBackend(StorageBackend):
    """In-memory backend with optional JSON file persistence."""

    name = "local"

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else None
        self.units = LocalRepository(self, Unit, "Unit")
        self.discount_rules = LocalRepository(self, DiscountRule, "DiscountRule")
        self.unit_discounts = LocalLinkRepository(self)
        self.quotes = LocalRepository(self, Quote, "Quote")

    async def init(self) -> None:
        """Load the JSON file if one is configured and present."""
        if self.path is None or not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise BackendError(f"Cannot read local store {self.path}: {exc}") from exc

        self.units.load(payload.get("units", []))
        self.discount_rules.load(payload.get("discount_rules", []))
        self.unit_discounts.load(payload.get("unit_discounts", []))
        self.quotes.load(payload.get("quotes", []))
        logger.info(
            "Local store loaded from %s (%d units, %d rules, %d quotes)",
            self.path,
            len(payload.get("units", [])),
            len(payload.get("discount_rules", [])),
            len(payload.get("quotes", [])),
        )

    def flush(self) -> None:
        """Rewrite the JSON file. No-op for a memory-only store."""
        if self.path is None:
            return
        payload = {
            "units": self.units.dump(),
            "discount_rules": self.discount_rules.dump(),
            "unit_discounts": self.unit_discounts.dump(),
            "quotes": self.quotes.dump(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp.replace(self.path)
        except OSError as exc:
            raise BackendError(f"Cannot write local store {self.path}: {exc}") from exc

"""Copy catalog and quotes from one backend to another (e.g. local → crm).

Records already present in the target (same id) are skipped, so a migration
can be re-run after a partial failure. A failing record is counted and logged
and the copy continues.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from src.errors import QuotingError
from src.storage.base import Repository, StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Per-collection counters of a migration run."""

    migrated: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)
    failed: dict[str, list[str]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not any(self.failed.values())

    @property
    def message(self) -> str:
        migrated = sum(self.migrated.values())
        failed = sum(len(ids) for ids in self.failed.values())
        return f"Migration completed. Migrated {migrated} records, {failed} failed."


async def _copy(name: str, source: Repository, target: Repository, report: MigrationReport) -> None:
    existing = {record.id for record in await target.list()}
    report.migrated[name] = 0
    report.skipped[name] = 0
    report.failed[name] = []

    for record in await source.list():
        if record.id in existing:
            report.skipped[name] += 1
            continue
        try:
            await target.create(record)
        except QuotingError as exc:
            logger.warning("Failed to migrate %s %s: %s", name, record.id, exc)
            report.failed[name].append(record.id)
        else:
            report.migrated[name] += 1


async def migrate_backend(source: StorageBackend, target: StorageBackend) -> MigrationReport:
    """Copy units, rules, their links and quotes from source into target."""
    report = MigrationReport()

    await _copy("units", source.units, target.units, report)
    await _copy("discount_rules", source.discount_rules, target.discount_rules, report)

    target_pairs = set(await target.unit_discounts.pairs())
    report.migrated["unit_discounts"] = 0
    report.failed["unit_discounts"] = []
    for unit_id, rule_id in await source.unit_discounts.pairs():
        if (unit_id, rule_id) in target_pairs:
            continue
        try:
            await target.unit_discounts.add(unit_id, rule_id)
        except QuotingError as exc:
            logger.warning("Failed to migrate link %s:%s: %s", unit_id, rule_id, exc)
            report.failed["unit_discounts"].append(f"{unit_id}:{rule_id}")
        else:
            report.migrated["unit_discounts"] += 1

    await _copy("quotes", source.quotes, target.quotes, report)

    logger.info("%s → %s: %s", source.name, target.name, report.message)
    return report


async def validate_migration(source: StorageBackend, target: StorageBackend) -> list[str]:
    """Ids of quotes present in source but missing from target."""
    target_ids = {quote.id for quote in await target.quotes.list()}
    missing = [quote.id for quote in await source.quotes.list() if quote.id not in target_ids]
    if missing:
        logger.warning("%d quotes missing from %s backend", len(missing), target.name)
    return missing

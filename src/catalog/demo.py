"""Demo catalog — two units and three discount rules for a fresh install."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from src.models.enums import AccountType, DiscountType
from src.schemas.catalog import DiscountRule, Unit
from src.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def demo_units(now: datetime) -> list[Unit]:
    return [
        Unit(
            id="enterprise-seat",
            name="Enterprise Seat",
            description="Full platform access for one enterprise user",
            base_price=Decimal("1000"),
            category="Enterprise",
            features=["AI Code Completion", "Team Collaboration", "Advanced Code Generation"],
            created_at=now,
            updated_at=now,
        ),
        Unit(
            id="cascade",
            name="Cascade",
            description="Premium agentic assistant add-on",
            base_price=Decimal("2000"),
            category="Premium",
            features=["AI Code Completion", "Code Analysis"],
            created_at=now,
            updated_at=now,
        ),
    ]


def demo_discount_rules(now: datetime) -> list[DiscountRule]:
    return [
        DiscountRule(
            id="student-discount",
            name="Student Discount",
            type=DiscountType.ACCOUNT_TYPE,
            discount_percentage=Decimal("50"),
            account_type=AccountType.STUDENT,
            effective_date=now,
        ),
        DiscountRule(
            id="startup-discount",
            name="Startup Discount",
            type=DiscountType.ACCOUNT_TYPE,
            discount_percentage=Decimal("30"),
            account_type=AccountType.STARTUP,
            effective_date=now,
        ),
        DiscountRule(
            id="volume-discount",
            name="Volume Discount",
            type=DiscountType.VOLUME,
            discount_percentage=Decimal("10"),
            threshold=100,
            effective_date=now,
        ),
    ]


async def seed_demo_catalog(backend: StorageBackend, now: datetime) -> bool:
    """Write the demo catalog if the backend holds no units and no rules.

    Returns True when anything was written. No links are created, so every
    demo rule applies to every unit.
    """
    if await backend.units.list() or await backend.discount_rules.list():
        logger.debug("Catalog not empty, skipping demo seed")
        return False

    for unit in demo_units(now):
        await backend.units.create(unit)
    for rule in demo_discount_rules(now):
        await backend.discount_rules.create(rule)

    logger.info("Demo catalog seeded on %s backend", backend.name)
    return True

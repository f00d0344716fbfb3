"""SQL backend — SQLAlchemy 2.0 async over PostgreSQL (asyncpg) or SQLite (aiosqlite).

One short-lived session per repository call, committed before returning.
SQLAlchemy errors are translated into the backend error taxonomy here so the
stores never see driver exceptions.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Generic

from sqlalchemy import delete, select
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.engine import create_engine, create_session_factory, init_db
from src.errors import BackendError, BackendUnavailableError, InputValidationError, NotFoundError
from src.models.base import Base
from src.models.catalog import DiscountRuleRecord, UnitDiscountLink, UnitRecord
from src.models.quote import QuoteRecord
from src.schemas.catalog import DiscountRule, Unit
from src.schemas.quote import Quote
from src.storage.base import LinkRepository, ModelT, Repository, StorageBackend

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


@contextlib.asynccontextmanager
async def _session_scope(factory: SessionFactory) -> AsyncIterator[AsyncSession]:
    """Yield a session; translate driver failures into backend errors."""
    try:
        async with factory() as session:
            yield session
    except (OperationalError, InterfaceError) as exc:
        logger.warning("Database unavailable: %s", exc)
        raise BackendUnavailableError(f"Database unavailable: {exc}") from exc
    except SQLAlchemyError as exc:
        logger.warning("Database error: %s", exc)
        raise BackendError(f"Database error: {exc}") from exc


# ── Row ⇄ schema mapping ─────────────────────────────────────────────


def _unit_to_model(row: UnitRecord) -> Unit:
    return Unit(
        id=row.id,
        name=row.name,
        description=row.description,
        base_price=row.base_price,
        category=row.category,
        features=list(row.features or []),
        active=row.active,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _unit_values(unit: Unit) -> dict[str, Any]:
    return unit.model_dump(exclude={"applicable_discounts"})


def _rule_to_model(row: DiscountRuleRecord) -> DiscountRule:
    return DiscountRule(
        id=row.id,
        name=row.name,
        type=row.type,
        discount_percentage=row.discount_percentage,
        threshold=row.threshold,
        account_type=row.account_type,
        effective_date=row.effective_date,
        end_date=row.end_date,
    )


def _rule_values(rule: DiscountRule) -> dict[str, Any]:
    values = rule.model_dump(exclude={"applicable_units"})
    values["type"] = rule.type.value
    values["account_type"] = rule.account_type.value if rule.account_type else None
    return values


def _quote_to_model(row: QuoteRecord) -> Quote:
    return Quote(
        id=row.id,
        name=row.name,
        items=row.items,
        subtotal=row.subtotal,
        discount=row.discount,
        total=row.total,
        status=row.status,
        account_type=row.account_type,
        owner_user_id=row.owner_user_id,
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _quote_values(quote: Quote) -> dict[str, Any]:
    values = quote.model_dump(exclude={"items"})
    values["items"] = [item.model_dump(mode="json") for item in quote.items]
    values["status"] = quote.status.value
    values["account_type"] = quote.account_type.value
    return values


# ── Repositories ─────────────────────────────────────────────────────


class SqlRepository(Repository[ModelT], Generic[ModelT]):
    """Repository over one ORM table."""

    def __init__(
        self,
        factory: SessionFactory,
        orm_model: type[Base],
        entity: str,
        to_model: Callable[[Any], ModelT],
        to_values: Callable[[ModelT], dict[str, Any]],
    ) -> None:
        self._factory = factory
        self._orm = orm_model
        self.entity = entity
        self._to_model = to_model
        self._to_values = to_values

    async def get(self, record_id: str) -> ModelT | None:
        async with _session_scope(self._factory) as session:
            row = await session.get(self._orm, record_id)
            return self._to_model(row) if row is not None else None

    async def list(self) -> list[ModelT]:
        async with _session_scope(self._factory) as session:
            result = await session.execute(select(self._orm))
            return [self._to_model(row) for row in result.scalars().all()]

    async def create(self, record: ModelT) -> ModelT:
        values = self._to_values(record)
        async with _session_scope(self._factory) as session:
            if await session.get(self._orm, values["id"]) is not None:
                raise InputValidationError(f"{self.entity} {values['id']} already exists")
            row = self._orm(**values)
            session.add(row)
            await session.commit()
            return self._to_model(row)

    async def update(self, record: ModelT) -> ModelT:
        values = self._to_values(record)
        async with _session_scope(self._factory) as session:
            row = await session.get(self._orm, values["id"])
            if row is None:
                raise NotFoundError(self.entity, values["id"])
            for key, value in values.items():
                setattr(row, key, value)
            await session.commit()
            return self._to_model(row)

    async def delete(self, record_id: str) -> None:
        async with _session_scope(self._factory) as session:
            row = await session.get(self._orm, record_id)
            if row is None:
                raise NotFoundError(self.entity, record_id)
            await session.delete(row)
            await session.commit()


class SqlLinkRepository(LinkRepository):
    """unit_discounts join table."""

    def __init__(self, factory: SessionFactory) -> None:
        self._factory = factory

    async def pairs(self) -> list[tuple[str, str]]:
        async with _session_scope(self._factory) as session:
            result = await session.execute(
                select(UnitDiscountLink.unit_id, UnitDiscountLink.rule_id).order_by(
                    UnitDiscountLink.unit_id, UnitDiscountLink.rule_id
                )
            )
            return [(unit_id, rule_id) for unit_id, rule_id in result.all()]

    async def add(self, unit_id: str, rule_id: str) -> None:
        async with _session_scope(self._factory) as session:
            if await session.get(UnitDiscountLink, (unit_id, rule_id)) is None:
                session.add(UnitDiscountLink(unit_id=unit_id, rule_id=rule_id))
                await session.commit()

    async def remove(self, unit_id: str, rule_id: str) -> None:
        async with _session_scope(self._factory) as session:
            await session.execute(
                delete(UnitDiscountLink).where(
                    UnitDiscountLink.unit_id == unit_id,
                    UnitDiscountLink.rule_id == rule_id,
                )
            )
            await session.commit()

    async def remove_unit(self, unit_id: str) -> None:
        async with _session_scope(self._factory) as session:
            await session.execute(delete(UnitDiscountLink).where(UnitDiscountLink.unit_id == unit_id))
            await session.commit()

    async def remove_rule(self, rule_id: str) -> None:
        async with _session_scope(self._factory) as session:
            await session.execute(delete(UnitDiscountLink).where(UnitDiscountLink.rule_id == rule_id))
            await session.commit()


# ── Backend ──────────────────────────────────────────────────────────


class SqlBackend(StorageBackend):
    """Database-backed storage."""

    name = "sql"

    def __init__(self, database_url: str, *, create_tables: bool = True, echo: bool = False) -> None:
        self.engine = create_engine(database_url, echo=echo)
        self._create_tables = create_tables
        factory = create_session_factory(self.engine)

        self.units = SqlRepository(factory, UnitRecord, "Unit", _unit_to_model, _unit_values)
        self.discount_rules = SqlRepository(
            factory, DiscountRuleRecord, "DiscountRule", _rule_to_model, _rule_values
        )
        self.unit_discounts = SqlLinkRepository(factory)
        self.quotes = SqlRepository(factory, QuoteRecord, "Quote", _quote_to_model, _quote_values)

    async def init(self) -> None:
        try:
            await init_db(self.engine, create_tables=self._create_tables)
        except (OperationalError, InterfaceError, OSError) as exc:
            raise BackendUnavailableError(f"Database unavailable: {exc}") from exc
        logger.info("SQL backend ready (%s)", self.engine.url.render_as_string(hide_password=True))

    async def close(self) -> None:
        await self.engine.dispose()

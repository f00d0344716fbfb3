"""SQLAlchemy declarative base and shared mixins.

Every table gets a string `id`, `created_at` and `updated_at` via the
TimestampMixin. Ids are generated by the application, not the database, so
the same record keeps its id when it moves between backends.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


class TimestampMixin:
    """Mixin adding id, created_at, and updated_at to a model."""

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ExactDecimal(TypeDecorator):
    """Decimal kept as its exact string form.

    Numeric would round to the column scale, and SQLite stores it as a float.
    Money is only rounded for display, so the database must not round either.
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str | None:
        return str(Decimal(value)) if value is not None else None

    def process_result_value(self, value: Any, dialect: Any) -> Decimal | None:
        return Decimal(value) if value is not None else None

"""SQLAlchemy ORM models for the sql storage backend.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from src.models.base import Base
from src.models.catalog import DiscountRuleRecord, UnitDiscountLink, UnitRecord
from src.models.enums import (
    AccountType,
    DiscountType,
    QuoteStatus,
    SortOrder,
    StorageBackendType,
    UnitSortField,
)
from src.models.quote import QuoteRecord

__all__ = [
    "Base",
    "UnitRecord",
    "DiscountRuleRecord",
    "UnitDiscountLink",
    "QuoteRecord",
    "AccountType",
    "DiscountType",
    "QuoteStatus",
    "SortOrder",
    "StorageBackendType",
    "UnitSortField",
]

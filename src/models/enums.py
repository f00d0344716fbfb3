"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization and plain string columns.
"""

from __future__ import annotations

from enum import Enum


class DiscountType(str, Enum):
    """Discount rule families — each gates eligibility differently."""

    VOLUME = "VOLUME"              # quantity >= threshold
    ACCOUNT_TYPE = "ACCOUNT_TYPE"  # caller account type matches
    SPECIAL = "SPECIAL"            # unconditional


class AccountType(str, Enum):
    """Caller classification, used only for ACCOUNT_TYPE discounts."""

    STUDENT = "STUDENT"
    ENTERPRISE = "ENTERPRISE"
    STARTUP = "STARTUP"
    INDIVIDUAL = "INDIVIDUAL"


class QuoteStatus(str, Enum):
    """Quote lifecycle: draft → submitted → approved | rejected."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def _missing_(cls, value: object) -> QuoteStatus | None:
        # "sent" / "accepted" are older spellings still produced by some CRM records
        aliases = {"sent": cls.SUBMITTED, "accepted": cls.APPROVED}
        if isinstance(value, str):
            return aliases.get(value.lower())
        return None


class UnitSortField(str, Enum):
    """Fields the unit catalog can be sorted by."""

    NAME = "name"
    PRICE = "price"
    CATEGORY = "category"
    UPDATED_AT = "updated_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class StorageBackendType(str, Enum):
    """Persistence backends selectable through configuration."""

    LOCAL = "local"
    SQL = "sql"
    CRM = "crm"

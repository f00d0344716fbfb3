"""QuoteRecord model — a persisted quote with its priced line items."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, ExactDecimal, TimestampMixin


class QuoteRecord(TimestampMixin, Base):
    """Owned collection of line items with computed totals."""

    __tablename__ = "quotes"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Line items as JSON; unit ids are weak references, prices are snapshots
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    subtotal: Mapped[Decimal] = mapped_column(ExactDecimal(64), nullable=False)
    discount: Mapped[Decimal] = mapped_column(ExactDecimal(64), nullable=False)
    total: Mapped[Decimal] = mapped_column(ExactDecimal(64), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Ownership
    owner_user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<QuoteRecord id={self.id} owner={self.owner_user_id} status={self.status}>"

"""Catalog tables — units, discount rules and the join table between them."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import Base, ExactDecimal, TimestampMixin


class UnitRecord(TimestampMixin, Base):
    """A sellable catalog entry."""

    __tablename__ = "units"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    base_price: Mapped[Decimal] = mapped_column(ExactDecimal(64), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), index=True)
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<UnitRecord id={self.id} name={self.name}>"


class DiscountRuleRecord(Base):
    """A discount policy. Has its own validity window instead of timestamps."""

    __tablename__ = "discount_rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    discount_percentage: Mapped[Decimal] = mapped_column(ExactDecimal(32), nullable=False)
    threshold: Mapped[int | None] = mapped_column(Integer, comment="VOLUME rules only")
    account_type: Mapped[str | None] = mapped_column(String(20), comment="ACCOUNT_TYPE rules only")
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<DiscountRuleRecord id={self.id} type={self.type}>"


class UnitDiscountLink(Base):
    """One row per (unit, rule) allow-list entry."""

    __tablename__ = "unit_discounts"

    unit_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("units.id", ondelete="CASCADE"), primary_key=True
    )
    rule_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("discount_rules.id", ondelete="CASCADE"), primary_key=True
    )

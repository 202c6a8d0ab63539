"""
Module: wallet_kernel.models.exchange_rate
Responsibility: ORM persistence for directed exchange rates.  Each row is a
    timestamped conversion factor from one currency to another.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - rate > 0 and <= MAX_RATE (CHECK constraint + ORM listener on insert).
    - A self-pair row (from == to) must carry rate 1.
    - Rows are immutable.  Updating a rate means inserting a new row; the
      current rate for a pair is the row with the latest effective_at.

Non-goals:
    - No inverse consistency: rate(A->B) need not equal 1/rate(B->A).
    - No triangulation; only direct pairs are ever resolved.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from wallet_kernel.db.base import TimestampedBase, UUIDString
from wallet_kernel.db.types import rate_column_type


class ExchangeRate(TimestampedBase):
    """One directional conversion factor: from_amount * rate = to_amount."""

    __tablename__ = "exchange_rates"

    __table_args__ = (
        CheckConstraint(
            "CAST(rate AS NUMERIC) > 0",
            name="ck_rate_positive",
        ),
        Index(
            "idx_rate_lookup",
            "from_currency_id",
            "to_currency_id",
            "effective_at",
        ),
    )

    from_currency_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("currencies.id"),
        nullable=False,
    )

    to_currency_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("currencies.id"),
        nullable=False,
    )

    rate: Mapped[Decimal] = mapped_column(
        rate_column_type(),
        nullable=False,
    )

    # When this rate became current for the pair
    effective_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Source of the rate (e.g., "manual", "ECB")
    source: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="manual",
    )

    def __repr__(self) -> str:
        return f"<ExchangeRate {self.from_currency_id}->{self.to_currency_id} = {self.rate}>"

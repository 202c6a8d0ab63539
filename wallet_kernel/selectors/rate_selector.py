"""
Module: wallet_kernel.selectors.rate_selector
Responsibility: Deterministic resolution of the directed exchange rate for a
    currency pair.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Identity: resolve(c, c) == 1 regardless of stored rows.
    - Direct pairs only.  A missing (from, to) row resolves to None; the
      inverse row and chained routes are never consulted.
    - Deterministic choice among several rows for a pair: latest
      effective_at, then latest created_at, then highest id.
    - The resolved rate is quantized to RATE_DECIMAL_PLACES so the value a
      transfer multiplies is exactly the value it stores.
    - Side-effect free: plain SELECT, no locks, no writes.

Failure modes:
    - None is returned when no rate exists; the transfer engine turns that
      into RateUnavailableError.
"""

from datetime import timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from wallet_kernel.db.types import round_rate
from wallet_kernel.domain.dtos import RateQuote
from wallet_kernel.logging_config import get_logger
from wallet_kernel.models.exchange_rate import ExchangeRate
from wallet_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.rate")

IDENTITY_RATE = Decimal("1")


def _as_utc(value):
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RateSelector(BaseSelector):
    """Read-side access to the rate table."""

    def _pair_query(self, from_currency_id: UUID, to_currency_id: UUID):
        return (
            select(ExchangeRate)
            .where(
                ExchangeRate.from_currency_id == from_currency_id,
                ExchangeRate.to_currency_id == to_currency_id,
            )
            .order_by(
                ExchangeRate.effective_at.desc(),
                ExchangeRate.created_at.desc(),
                ExchangeRate.id.desc(),
            )
        )

    def quote(self, from_currency_id: UUID, to_currency_id: UUID) -> RateQuote | None:
        """
        Resolve the current rate for a directed pair, with provenance.

        Returns:
            RateQuote, or None when no row exists for a non-identity pair.
        """
        if str(from_currency_id) == str(to_currency_id):
            return RateQuote(
                from_currency_id=from_currency_id,
                to_currency_id=to_currency_id,
                rate=IDENTITY_RATE,
            )

        row = self.session.execute(
            self._pair_query(from_currency_id, to_currency_id).limit(1)
        ).scalar_one_or_none()

        if row is None:
            logger.debug(
                "rate_not_found",
                extra={
                    "from_currency_id": str(from_currency_id),
                    "to_currency_id": str(to_currency_id),
                },
            )
            return None

        quote = RateQuote(
            from_currency_id=from_currency_id,
            to_currency_id=to_currency_id,
            rate=round_rate(row.rate),
            rate_id=row.id,
            effective_at=_as_utc(row.effective_at),
        )
        logger.debug(
            "rate_resolved",
            extra={
                "from_currency_id": str(from_currency_id),
                "to_currency_id": str(to_currency_id),
                "rate": str(quote.rate),
                "rate_id": str(row.id),
            },
        )
        return quote

    def resolve(self, from_currency_id: UUID, to_currency_id: UUID) -> Decimal | None:
        """Current rate for the pair, 1 for the identity pair, or None."""
        quote = self.quote(from_currency_id, to_currency_id)
        return quote.rate if quote is not None else None

    def history(self, from_currency_id: UUID, to_currency_id: UUID) -> list[RateQuote]:
        """All stored rows for the pair, newest (current) first."""
        rows = self.session.execute(
            self._pair_query(from_currency_id, to_currency_id)
        ).scalars().all()
        return [
            RateQuote(
                from_currency_id=row.from_currency_id,
                to_currency_id=row.to_currency_id,
                rate=round_rate(row.rate),
                rate_id=row.id,
                effective_at=_as_utc(row.effective_at),
            )
            for row in rows
        ]

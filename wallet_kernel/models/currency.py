"""
Module: wallet_kernel.models.currency
Responsibility: ORM persistence for the currencies a wallet can hold.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - symbol is unique (uq_currency_symbol).
    - Rows are immutable once created; ORM listener in db/immutability.py.
      Users, balances, rates and transactions reference currencies by id and
      never embed their fields.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wallet_kernel.db.base import TimestampedBase


class Currency(TimestampedBase):
    """A currency identity: display name plus unique symbol (e.g. "USD")."""

    __tablename__ = "currencies"

    __table_args__ = (
        UniqueConstraint("symbol", name="uq_currency_symbol"),
    )

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    symbol: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Currency {self.symbol}>"

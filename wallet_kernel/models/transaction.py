"""
Module: wallet_kernel.models.transaction
Responsibility: ORM persistence for completed transfers (the transaction log).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: UPDATE and DELETE are rejected by the ORM listener in
      db/immutability.py.
    - to_currency_id is the receiver's preferred currency as read under lock
      at transfer time.
    - amount_to == round_money(amount_from * rate_used).  rate_used is the
      exact rate that was multiplied, so the row is self-verifying without
      consulting the rate table.

Audit relevance:
    Settlement currency, rate and amounts are captured facts.  Later changes
    to the receiver's preference or to the rate table never alter them.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from wallet_kernel.db.base import Base, UUIDString
from wallet_kernel.db.types import money_column_type, rate_column_type


class LedgerTransaction(Base):
    """Immutable record of one completed transfer."""

    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint(
            "CAST(amount_from AS NUMERIC) > 0",
            name="ck_transaction_amount_positive",
        ),
        Index("idx_trans_sender_date", "sender_user_id", "transaction_date"),
        Index("idx_trans_receiver_date", "receiver_user_id", "transaction_date"),
        Index(
            "idx_trans_currency_date",
            "from_currency_id",
            "to_currency_id",
            "transaction_date",
        ),
    )

    sender_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    receiver_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    # Source currency
    from_currency_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("currencies.id"),
        nullable=False,
    )

    # Settlement currency
    to_currency_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("currencies.id"),
        nullable=False,
    )

    amount_from: Mapped[Decimal] = mapped_column(
        money_column_type(),
        nullable=False,
    )

    rate_used: Mapped[Decimal] = mapped_column(
        rate_column_type(),
        nullable=False,
    )

    amount_to: Mapped[Decimal] = mapped_column(
        money_column_type(),
        nullable=False,
    )

    transaction_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.id} {self.amount_from} @ {self.rate_used} "
            f"-> {self.amount_to}>"
        )

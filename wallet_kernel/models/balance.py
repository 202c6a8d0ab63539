"""
Module: wallet_kernel.models.balance
Responsibility: ORM persistence for per-(user, currency) ledger rows.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (user_id, currency_id) is unique (uq_balance_user_currency); the row is
      the unit of pessimistic locking during a transfer.
    - amount >= 0: CHECK constraint plus ORM listener (db/immutability.py).
    - Rows are never deleted.

Failure modes:
    - IntegrityError on a duplicate (user, currency) insert.  BalanceStore
      uses insert-or-ignore so this never surfaces during a transfer.
    - NegativeBalanceError from the ORM listener if a write bypasses
      BalanceStore.adjust() validation.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from wallet_kernel.db.base import TimestampedBase, UUIDString
from wallet_kernel.db.types import money_column_type


class Balance(TimestampedBase):
    """Amount held by one user in one currency."""

    __tablename__ = "balances"

    __table_args__ = (
        UniqueConstraint("user_id", "currency_id", name="uq_balance_user_currency"),
        CheckConstraint(
            "CAST(amount AS NUMERIC) >= 0",
            name="ck_balance_non_negative",
        ),
        Index("idx_balance_currency", "currency_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id"),
        nullable=False,
    )

    currency_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("currencies.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        money_column_type(),
        nullable=False,
        default=Decimal("0.00"),
    )

    def __repr__(self) -> str:
        return f"<Balance user={self.user_id} currency={self.currency_id} amount={self.amount}>"

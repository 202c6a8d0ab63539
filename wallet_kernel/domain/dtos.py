"""
Data Transfer Objects for the wallet kernel.

Immutable value objects passed between services, selectors and callers.
Selectors return these instead of ORM instances so callers never hold a
live, session-bound row.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from wallet_kernel.db.types import DEFAULT_LOCK_TIMEOUT_MS


@dataclass(frozen=True)
class TransferPolicy:
    """
    Tunables for the transfer engine.

    Attributes:
        lock_timeout_ms: Bound on each row-lock wait (PostgreSQL
            ``lock_timeout``).  On SQLite the engine-level busy timeout
            applies instead.
        allow_self_transfer: When False, sender == receiver is rejected with
            SelfTransferError.  When True it is a same-user currency
            conversion.
    """

    lock_timeout_ms: int = DEFAULT_LOCK_TIMEOUT_MS
    allow_self_transfer: bool = True

    def __post_init__(self) -> None:
        if self.lock_timeout_ms <= 0:
            raise ValueError("lock_timeout_ms must be positive")


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a committed transfer."""

    transaction_id: UUID
    settlement_currency_id: UUID
    settled_amount: Decimal
    rate_used: Decimal
    amount: Decimal
    transaction_date: datetime


@dataclass(frozen=True)
class RateQuote:
    """
    A resolved rate and where it came from.

    rate_id and effective_at are None for the identity quote (from == to),
    which is returned without consulting stored rows.
    """

    from_currency_id: UUID
    to_currency_id: UUID
    rate: Decimal
    rate_id: UUID | None = None
    effective_at: datetime | None = None

    @property
    def is_identity(self) -> bool:
        return self.from_currency_id == self.to_currency_id


@dataclass(frozen=True)
class BalanceView:
    """Read-only snapshot of one ledger row."""

    user_id: UUID
    currency_id: UUID
    currency_symbol: str
    amount: Decimal


@dataclass(frozen=True)
class TransactionView:
    """Read-only snapshot of one transaction log row."""

    transaction_id: UUID
    sender_user_id: UUID
    receiver_user_id: UUID
    from_currency_id: UUID
    to_currency_id: UUID
    amount_from: Decimal
    rate_used: Decimal
    amount_to: Decimal
    transaction_date: datetime

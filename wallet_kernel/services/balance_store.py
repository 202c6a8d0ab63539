"""
BalanceStore -- per-(user, currency) ledger rows under pessimistic locks.

Responsibility:
    Reads, creates and mutates ledger rows inside the caller's unit of work.
    Every mutation happens on a row this store has locked with
    ``SELECT ... FOR UPDATE`` in the current transaction.

Architecture position:
    Kernel > Services.  Called by TransferEngine and ReferenceDataService.

Invariants enforced:
    - No lost updates: adjust() mutates only a locked row, re-read with
      ``populate_existing`` so a stale identity-map value is never used.
    - No negative balances: a debit larger than the locked amount raises
      InsufficientFundsError before anything is written.
    - ensure_row() never overwrites an existing amount.

Failure modes:
    - NoFundsInCurrencyError when adjust() targets a missing row.
    - InsufficientFundsError when a debit exceeds the locked amount.
    - OperationalError (lock wait timeout) propagates to the caller, which
      classifies it.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wallet_kernel.exceptions import InsufficientFundsError, NoFundsInCurrencyError
from wallet_kernel.logging_config import get_logger
from wallet_kernel.models.balance import Balance
from wallet_kernel.services.base import BaseService

logger = get_logger("services.balance_store")

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class BalanceStore(BaseService):
    """
    Ledger row access for one unit of work.

    One instance per transaction: it remembers which rows it has locked so
    adjust() can reuse them.
    """

    def __init__(self, session: Session):
        super().__init__(session)
        self._locked: dict[tuple[str, str], Balance] = {}

    def lock_and_read(self, user_id: UUID, currency_id: UUID) -> Decimal | None:
        """
        Lock a ledger row for the rest of the transaction and return its amount.

        Returns:
            The current amount, or None if the row does not exist (nothing is
            locked in that case).
        """
        row = self.session.execute(
            select(Balance)
            .where(
                Balance.user_id == user_id,
                Balance.currency_id == currency_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if row is None:
            return None

        self._locked[(str(user_id), str(currency_id))] = row
        return row.amount

    def ensure_row(self, user_id: UUID, currency_id: UUID) -> None:
        """
        Create the ledger row at zero if it does not exist.

        Atomic with respect to concurrent creators: a conflicting row written
        by another transaction is left untouched.
        """
        values = {
            "user_id": user_id,
            "currency_id": currency_id,
            "amount": Decimal("0.00"),
        }
        dialect = self.session.get_bind().dialect.name
        upsert_insert = _UPSERT_INSERTS.get(dialect)

        if upsert_insert is not None:
            stmt = upsert_insert(Balance).values(**values).on_conflict_do_nothing(
                index_elements=["user_id", "currency_id"],
            )
            self.session.execute(stmt)
            return

        savepoint = self.session.begin_nested()
        try:
            self.session.execute(insert(Balance).values(**values))
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug(
                "balance_row_exists",
                extra={"user_id": str(user_id), "currency_id": str(currency_id)},
            )

    def adjust(self, user_id: UUID, currency_id: UUID, delta: Decimal) -> Decimal:
        """
        Apply a signed delta to a ledger row.

        Locks the row first if this unit of work has not locked it yet.

        Returns:
            The new amount.

        Raises:
            NoFundsInCurrencyError: The row does not exist.
            InsufficientFundsError: A debit exceeds the current amount.
        """
        key = (str(user_id), str(currency_id))
        if key not in self._locked and self.lock_and_read(user_id, currency_id) is None:
            raise NoFundsInCurrencyError(str(user_id), str(currency_id))

        row = self._locked[key]
        new_amount = row.amount + delta
        if new_amount < 0:
            raise InsufficientFundsError(
                user_id=str(user_id),
                currency_id=str(currency_id),
                available=row.amount,
                requested=-delta,
            )

        row.amount = new_amount
        self.session.flush()

        logger.info(
            "balance_adjusted",
            extra={
                "user_id": str(user_id),
                "currency_id": str(currency_id),
                "delta": str(delta),
                "new_amount": str(new_amount),
            },
        )
        return new_amount

"""
TransferEngine -- atomic cross-currency transfer between two users.

Responsibility:
    Orchestrates one transfer as a single unit of work: lock the users,
    read the receiver's preferred currency, resolve the rate, debit the
    sender, credit the receiver in the settlement currency and append the
    transaction record.  Either all of it commits or none of it does.

Architecture position:
    Kernel > Services.  The only write path that moves money between users.
    Owns the transaction boundary when ``auto_commit=True`` (the default).

Invariants enforced:
    - Settlement currency is the receiver's preferred currency, read while
      holding the receiver's user row lock.  It is never a caller parameter.
    - The rate and settled amount are computed once, inside the unit of
      work, and stored verbatim on the transaction row:
      amount_to == round_money(amount_from * rate_used).
    - Conservation: the sender is debited exactly ``amount`` and the
      receiver credited exactly ``settled``.
    - Deadlock-free lock order: user rows in ascending id order, then the
      sender's ledger row, then the receiver's ledger row.
    - Missing rate is a hard stop.  No inverse, chained or default rate.

Failure modes:
    - InvalidAmountError, SelfTransferError before any lock is taken.
    - ReceiverNotFoundError, RateUnavailableError, NoFundsInCurrencyError,
      InsufficientFundsError from validation under lock.
    - ContentionError when a lock wait times out or a deadlock is detected.
    - LedgerUnavailableError for any other storage failure.
    - Any other exception is re-raised unchanged after the rollback and
      logged as transfer_failed.
    Malformed user ids are reported like missing users: ReceiverNotFoundError
    for the receiver, NoFundsInCurrencyError for the sender.
    In every case the unit of work is rolled back (when auto_commit=True)
    and no ledger row or transaction row changes.

Audit relevance:
    transfer_started / transfer_completed / transfer_rejected are logged
    with sender_id, receiver_id and a per-transfer correlation_id bound in
    LogContext, so every nested event of one transfer can be joined.
"""

import time
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from wallet_kernel.db.engine import is_lock_contention, is_postgres
from wallet_kernel.domain.clock import Clock, SystemClock
from wallet_kernel.domain.conversion import normalize_amount, settle
from wallet_kernel.domain.dtos import TransferPolicy, TransferResult
from wallet_kernel.exceptions import (
    ContentionError,
    InsufficientFundsError,
    LedgerUnavailableError,
    NoFundsInCurrencyError,
    RateUnavailableError,
    ReceiverNotFoundError,
    SelfTransferError,
    WalletKernelError,
)
from wallet_kernel.logging_config import LogContext, get_logger
from wallet_kernel.models.user import WalletUser
from wallet_kernel.selectors.rate_selector import RateSelector
from wallet_kernel.services.balance_store import BalanceStore
from wallet_kernel.services.transaction_log import TransactionLog

logger = get_logger("services.transfer_engine")


def _canonical_id(value) -> UUID | None:
    """The id as a UUID, or None when it is not a well-formed UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class TransferEngine:
    """
    Entry point for transfers.

    Contract:
        ``transfer()`` either returns a TransferResult describing a committed
        transfer or raises a WalletKernelError subclass with the ledger
        unchanged.

    Non-goals:
        - No retries.  ContentionError goes back to the caller.
        - No idempotency key; calling twice transfers twice.

    Usage:
        session = get_session()
        engine = TransferEngine(session, clock=SystemClock())
        result = engine.transfer(sender_id, receiver_id, clp_id, Decimal("15000"))
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: TransferPolicy | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or TransferPolicy()
        self._auto_commit = auto_commit

    @property
    def policy(self) -> TransferPolicy:
        return self._policy

    def transfer(
        self,
        sender_id: UUID,
        receiver_id: UUID,
        source_currency_id: UUID,
        amount: Decimal,
    ) -> TransferResult:
        """
        Move ``amount`` of ``source_currency_id`` from sender to receiver.

        Preconditions:
            - ``amount`` is a positive Decimal (or int / numeric str) with at
              most two decimal places.  Floats are rejected.

        Postconditions:
            - On success the unit of work is committed (when auto_commit=True)
              and the returned TransferResult matches the stored row.
            - On failure the session is rolled back (when auto_commit=True).
              With auto_commit=False the caller must roll back.

        Raises:
            WalletKernelError: see module docstring for the full list.
        """
        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            sender_id=sender_id,
            receiver_id=receiver_id,
        ):
            logger.info(
                "transfer_started",
                extra={
                    "source_currency_id": str(source_currency_id),
                    "amount": str(amount),
                },
            )
            t0 = time.monotonic()

            try:
                result = self._do_transfer(
                    sender_id, receiver_id, source_currency_id, amount,
                )
                if self._auto_commit:
                    self._session.commit()
            except WalletKernelError as exc:
                self._rollback()
                self._log_rejected(exc, t0)
                raise
            except DBAPIError as exc:
                self._rollback()
                if is_lock_contention(exc):
                    error = ContentionError("transfer", str(exc.orig))
                else:
                    error = LedgerUnavailableError("transfer", str(exc.orig))
                self._log_rejected(error, t0)
                raise error from exc
            except SQLAlchemyError as exc:
                self._rollback()
                error = LedgerUnavailableError("transfer", str(exc))
                self._log_rejected(error, t0)
                raise error from exc
            except Exception:
                self._rollback()
                logger.error(
                    "transfer_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            with LogContext.bind(transaction_id=result.transaction_id):
                logger.info(
                    "transfer_completed",
                    extra={
                        "settlement_currency_id": str(result.settlement_currency_id),
                        "amount": str(result.amount),
                        "settled_amount": str(result.settled_amount),
                        "rate_used": str(result.rate_used),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
            return result

    def _do_transfer(
        self,
        sender_id: UUID,
        receiver_id: UUID,
        source_currency_id: UUID,
        amount,
    ) -> TransferResult:
        """Transfer logic without transaction management."""
        amount = normalize_amount(amount)

        receiver_key = _canonical_id(receiver_id)
        if receiver_key is None:
            raise ReceiverNotFoundError(str(receiver_id))
        sender_key = _canonical_id(sender_id)
        if sender_key is None:
            raise NoFundsInCurrencyError(str(sender_id), str(source_currency_id))
        source_key = _canonical_id(source_currency_id)
        sender_id, receiver_id = sender_key, receiver_key

        if sender_id == receiver_id and not self._policy.allow_self_transfer:
            raise SelfTransferError(str(sender_id))

        self._apply_lock_timeout()

        users = self._lock_users(sender_id, receiver_id)
        receiver = users.get(str(receiver_id))
        if receiver is None:
            raise ReceiverNotFoundError(str(receiver_id))
        settlement_currency_id = receiver.preferred_currency_id

        rate = None
        if source_key is not None:
            source_currency_id = source_key
            rate = RateSelector(self._session).resolve(
                source_currency_id, settlement_currency_id,
            )
        if rate is None:
            raise RateUnavailableError(
                str(source_currency_id), str(settlement_currency_id),
            )
        settled = settle(amount, rate)

        balances = BalanceStore(self._session)
        available = balances.lock_and_read(sender_id, source_currency_id)
        if available is None:
            raise NoFundsInCurrencyError(str(sender_id), str(source_currency_id))
        if available < amount:
            raise InsufficientFundsError(
                user_id=str(sender_id),
                currency_id=str(source_currency_id),
                available=available,
                requested=amount,
            )

        balances.adjust(sender_id, source_currency_id, -amount)
        balances.ensure_row(receiver_id, settlement_currency_id)
        balances.adjust(receiver_id, settlement_currency_id, settled)

        transaction_date = self._clock.now()
        transaction_id = TransactionLog(self._session).record(
            sender_user_id=sender_id,
            receiver_user_id=receiver_id,
            from_currency_id=source_currency_id,
            to_currency_id=settlement_currency_id,
            amount_from=amount,
            rate_used=rate,
            amount_to=settled,
            transaction_date=transaction_date,
        )

        return TransferResult(
            transaction_id=transaction_id,
            settlement_currency_id=settlement_currency_id,
            settled_amount=settled,
            rate_used=rate,
            amount=amount,
            transaction_date=transaction_date,
        )

    def _apply_lock_timeout(self) -> None:
        # SQLite bounds lock waits with the connection busy timeout instead
        if is_postgres(self._session):
            timeout_ms = int(self._policy.lock_timeout_ms)
            self._session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

    def _lock_users(self, *user_ids: UUID) -> dict[str, WalletUser]:
        """Lock user rows one at a time in ascending id order."""
        locked: dict[str, WalletUser] = {}
        for user_id in sorted({str(uid) for uid in user_ids}):
            user = self._session.execute(
                select(WalletUser)
                .where(WalletUser.id == user_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if user is not None:
                locked[user_id] = user
        return locked

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    def _log_rejected(self, exc: WalletKernelError, t0: float) -> None:
        logger.warning(
            "transfer_rejected",
            extra={
                "error_code": exc.code,
                "reason": str(exc),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )

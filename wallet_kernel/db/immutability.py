"""
ORM-Level Persistence Guards for the Wallet Ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

The transfer engine validates everything it writes.  This module is the
second line: it catches writes that reach the ORM through any other path
(an admin script, a test, a future service that forgot the rules).

SQLAlchemy fires events before INSERT/UPDATE/DELETE reach the database.
We register listeners that check the invariants and raise before any SQL is
emitted, so the transaction is aborted and the database is never modified.

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |
         +--> _check_*() --> ImmutabilityViolationError / NegativeBalanceError
         |                   / InvalidExchangeRateError
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity             | Rule                                   | Why
-------------------|----------------------------------------|---------------------------------
LedgerTransaction  | No UPDATE, no DELETE                   | Captured facts; audit trail
Currency           | No UPDATE of symbol/name, no DELETE    | Referenced by id everywhere
ExchangeRate       | Valid value on INSERT; no UPDATE/DELETE| New rows supersede old ones
Balance            | amount >= 0 on INSERT/UPDATE; no DELETE| No negative balances, ever

===============================================================================
USAGE
===============================================================================

    from wallet_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY - never in production):

    from wallet_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()

Imports of model classes are inline to avoid import cycles between db/ and
models/.
===============================================================================
"""

from decimal import Decimal, InvalidOperation

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from wallet_kernel.db.types import MAX_RATE
from wallet_kernel.exceptions import (
    ImmutabilityViolationError,
    InvalidExchangeRateError,
    NegativeBalanceError,
)
from wallet_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _changed_fields(target, field_names) -> list[str]:
    return [
        name for name in field_names
        if get_history(target, name).has_changes()
    ]


def _block(entity_type: str, target, operation: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =============================================================================
# LedgerTransaction: append-only
# =============================================================================


def _check_transaction_update(mapper, connection, target):
    """Transactions are immutable from creation."""
    _block(
        "LedgerTransaction", target, "UPDATE",
        "Transactions are immutable and cannot be modified",
    )


def _check_transaction_delete(mapper, connection, target):
    """Transactions are never deleted by the ledger."""
    _block(
        "LedgerTransaction", target, "DELETE",
        "Transactions cannot be deleted",
    )


# =============================================================================
# Currency: immutable identity
# =============================================================================


def _check_currency_update(mapper, connection, target):
    if _changed_fields(target, ("symbol", "name")):
        _block(
            "Currency", target, "UPDATE",
            "Currencies are immutable once created",
        )


def _check_currency_delete(mapper, connection, target):
    _block("Currency", target, "DELETE", "Currencies cannot be deleted")


# =============================================================================
# ExchangeRate: validated on insert, immutable afterwards
# =============================================================================


def validate_rate_value(rate_value, from_currency_id=None, to_currency_id=None) -> Decimal:
    """
    Validate that an exchange rate value is usable.

    Raises:
        InvalidExchangeRateError: If rate is missing, non-numeric, zero,
            negative, above MAX_RATE, or a self-pair rate other than 1.
    """
    if rate_value is None:
        raise InvalidExchangeRateError(
            rate_value="None",
            reason="Exchange rate cannot be null",
        )
    if isinstance(rate_value, float):
        raise InvalidExchangeRateError(
            rate_value=str(rate_value),
            reason="Exchange rate must be a Decimal, not a float",
        )

    try:
        value = Decimal(rate_value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidExchangeRateError(
            rate_value=str(rate_value),
            reason="Exchange rate must be a valid number",
        ) from exc

    if not value.is_finite() or value <= Decimal("0"):
        raise InvalidExchangeRateError(
            rate_value=str(rate_value),
            reason="Exchange rate must be positive (greater than zero)",
        )

    if value > MAX_RATE:
        raise InvalidExchangeRateError(
            rate_value=str(rate_value),
            reason=f"Exchange rate exceeds maximum allowed value ({MAX_RATE})",
        )

    if (
        from_currency_id is not None
        and from_currency_id == to_currency_id
        and value != Decimal("1")
    ):
        raise InvalidExchangeRateError(
            rate_value=str(rate_value),
            reason="A currency's rate to itself must be exactly 1",
        )

    return value


def _check_exchange_rate_insert(mapper, connection, target):
    validate_rate_value(target.rate, target.from_currency_id, target.to_currency_id)


def _check_exchange_rate_update(mapper, connection, target):
    changed = _changed_fields(
        target,
        ("rate", "from_currency_id", "to_currency_id", "effective_at", "source"),
    )
    if changed:
        _block(
            "ExchangeRate", target, "UPDATE",
            f"Exchange rates are immutable (attempted change to {', '.join(changed)}); "
            "publish a new rate instead",
        )


def _check_exchange_rate_delete(mapper, connection, target):
    _block(
        "ExchangeRate", target, "DELETE",
        "Exchange rates cannot be deleted; rate history is part of the audit trail",
    )


# =============================================================================
# Balance: never negative, never deleted
# =============================================================================


def _check_balance_amount(mapper, connection, target):
    amount = target.amount
    if amount is not None and Decimal(amount) < Decimal("0"):
        logger.error(
            "negative_balance_blocked",
            extra={
                "balance_id": str(target.id),
                "user_id": str(target.user_id),
                "currency_id": str(target.currency_id),
                "amount": str(amount),
            },
        )
        raise NegativeBalanceError(balance_id=str(target.id), amount=Decimal(amount))


def _check_balance_update(mapper, connection, target):
    if _changed_fields(target, ("user_id", "currency_id")):
        _block(
            "Balance", target, "UPDATE",
            "A ledger row cannot be moved to another user or currency",
        )
    _check_balance_amount(mapper, connection, target)


def _check_balance_delete(mapper, connection, target):
    _block("Balance", target, "DELETE", "Ledger rows cannot be deleted")


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from wallet_kernel.models.balance import Balance
    from wallet_kernel.models.currency import Currency
    from wallet_kernel.models.exchange_rate import ExchangeRate
    from wallet_kernel.models.transaction import LedgerTransaction

    return (
        (LedgerTransaction, "before_update", _check_transaction_update),
        (LedgerTransaction, "before_delete", _check_transaction_delete),
        (Currency, "before_update", _check_currency_update),
        (Currency, "before_delete", _check_currency_delete),
        (ExchangeRate, "before_insert", _check_exchange_rate_insert),
        (ExchangeRate, "before_update", _check_exchange_rate_update),
        (ExchangeRate, "before_delete", _check_exchange_rate_delete),
        (Balance, "before_insert", _check_balance_amount),
        (Balance, "before_update", _check_balance_update),
        (Balance, "before_delete", _check_balance_delete),
    )


def register_immutability_listeners():
    """
    Register all persistence guard listeners.

    Idempotent.  Call after models are importable and before any database
    operations begin.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove persistence guard listeners.

    WARNING: Only use this in tests that intentionally violate the rules
    to verify the database-level constraints.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)

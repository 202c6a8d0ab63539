"""
Typed Exception Hierarchy for the Wallet Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A transfer can fail for many reasons, and callers react differently to each
one: a missing rate is an operations problem, insufficient funds is a user
problem, lock contention is worth retrying after a backoff.  Parsing error
messages to tell them apart is fragile, so every failure has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        engine.transfer(sender_id, receiver_id, usd_id, Decimal("10.00"))
    except InsufficientFundsError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)
    except ContentionError:
        schedule_retry()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from WalletKernelError:

    WalletKernelError (base)
    |
    +-- TransferError
    |   +-- ReceiverNotFoundError
    |   +-- NoFundsInCurrencyError
    |   +-- InsufficientFundsError
    |   +-- InvalidAmountError
    |   +-- SelfTransferError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyNotFoundError
    |   +-- DuplicateCurrencyError
    |
    +-- UserError
    |   +-- UserNotFoundError
    |   +-- DuplicateUserError
    |
    +-- ExchangeRateError
    |   +-- RateUnavailableError
    |   +-- InvalidExchangeRateError
    |
    +-- ConcurrencyError
    |   +-- ContentionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |   +-- NegativeBalanceError
    |
    +-- InfrastructureError
        +-- LedgerUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                     | When Raised
----------------|--------------------------|--------------------------------------------
Transfer        | RECEIVER_NOT_FOUND       | Receiver id does not exist
                | NO_FUNDS_IN_CURRENCY     | Sender has no ledger row in source currency
                | INSUFFICIENT_FUNDS       | Sender balance < requested amount
                | INVALID_AMOUNT           | Amount <= 0, > 2 places, or a float
                | SELF_TRANSFER_REJECTED   | sender == receiver and policy forbids it
----------------|--------------------------|--------------------------------------------
Currency        | INVALID_CURRENCY         | Symbol is not a known ISO 4217 code
                | CURRENCY_NOT_FOUND       | Currency id does not exist
                | DUPLICATE_CURRENCY       | Symbol already registered
----------------|--------------------------|--------------------------------------------
User            | USER_NOT_FOUND           | User id does not exist
                | DUPLICATE_USER           | Contact e-mail already registered
----------------|--------------------------|--------------------------------------------
Exchange Rate   | RATE_UNAVAILABLE         | No rate for the directed pair (hard stop)
                | INVALID_EXCHANGE_RATE    | Rate is zero/negative/too large
----------------|--------------------------|--------------------------------------------
Concurrency     | LOCK_CONTENTION          | Lock wait timed out or deadlock detected
----------------|--------------------------|--------------------------------------------
Immutability    | IMMUTABILITY_VIOLATION   | Update/delete of an append-only record
                | NEGATIVE_BALANCE         | A write would leave a balance below zero
----------------|--------------------------|--------------------------------------------
Infrastructure  | LEDGER_UNAVAILABLE       | Storage failure; unit of work not committed

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Every domain error is terminal for the current call.  The transfer engine
   never retries; the caller decides (top up funds, back off on contention).

2. InfrastructureError sits outside the domain branches.  It means
   "the unit of work did not commit", never "the ledger is inconsistent".

3. NegativeBalanceError lives under ImmutabilityError because it is raised by
   the ORM persistence guards, not by transfer validation.  Seeing it means
   a code path bypassed BalanceStore.adjust().

===============================================================================
"""

from decimal import Decimal


class WalletKernelError(Exception):
    """
    Base exception for all wallet kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WALLET_KERNEL_ERROR"


# Transfer-related exceptions


class TransferError(WalletKernelError):
    """Base exception for transfer validation errors."""

    code: str = "TRANSFER_ERROR"


class ReceiverNotFoundError(TransferError):
    """Receiver does not exist (so has no preferred currency)."""

    code: str = "RECEIVER_NOT_FOUND"

    def __init__(self, receiver_id: str):
        self.receiver_id = receiver_id
        super().__init__(f"Receiver not found: {receiver_id}")


class NoFundsInCurrencyError(TransferError):
    """Sender has no ledger row at all in the source currency."""

    code: str = "NO_FUNDS_IN_CURRENCY"

    def __init__(self, user_id: str, currency_id: str):
        self.user_id = user_id
        self.currency_id = currency_id
        super().__init__(
            f"User {user_id} has no balance in currency {currency_id}"
        )


class InsufficientFundsError(TransferError):
    """Sender balance is lower than the requested amount."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        user_id: str,
        currency_id: str,
        available: Decimal,
        requested: Decimal,
    ):
        self.user_id = user_id
        self.currency_id = currency_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient funds for user {user_id} in currency {currency_id}: "
            f"available {available}, requested {requested}"
        )


class InvalidAmountError(TransferError):
    """Transfer amount is not a positive two-place decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid transfer amount {amount}: {reason}")


class SelfTransferError(TransferError):
    """Sender and receiver are the same user and the policy forbids it."""

    code: str = "SELF_TRANSFER_REJECTED"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"Transfers from user {user_id} to itself are not allowed")


# Currency-related exceptions


class CurrencyError(WalletKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Invalid ISO 4217 currency code provided."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class CurrencyNotFoundError(CurrencyError):
    """Currency with given ID was not found."""

    code: str = "CURRENCY_NOT_FOUND"

    def __init__(self, currency_id: str):
        self.currency_id = currency_id
        super().__init__(f"Currency not found: {currency_id}")


class DuplicateCurrencyError(CurrencyError):
    """Currency symbol is already registered."""

    code: str = "DUPLICATE_CURRENCY"

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Currency already exists: {symbol}")


# User-related exceptions


class UserError(WalletKernelError):
    """Base exception for user-related errors."""

    code: str = "USER_ERROR"


class UserNotFoundError(UserError):
    """User with given ID was not found."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


class DuplicateUserError(UserError):
    """Contact identifier is already registered."""

    code: str = "DUPLICATE_USER"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"User already exists: {email}")


# Exchange Rate related exceptions


class ExchangeRateError(WalletKernelError):
    """Base exception for exchange rate related errors."""

    code: str = "EXCHANGE_RATE_ERROR"


class RateUnavailableError(ExchangeRateError):
    """
    No rate exists for the directed currency pair.

    This is a hard stop: the transfer never proceeds with a guessed, default,
    inverse or chained rate.
    """

    code: str = "RATE_UNAVAILABLE"

    def __init__(self, from_currency_id: str, to_currency_id: str):
        self.from_currency_id = from_currency_id
        self.to_currency_id = to_currency_id
        super().__init__(
            f"No exchange rate for {from_currency_id} -> {to_currency_id}"
        )


class InvalidExchangeRateError(ExchangeRateError):
    """
    Exchange rate value is invalid (zero, negative, or implausibly large).

    Also raised for a self-pair row whose rate is not exactly 1.
    """

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate_value: str, reason: str):
        self.rate_value = rate_value
        self.reason = reason
        super().__init__(
            f"Invalid exchange rate value {rate_value}: {reason}"
        )


# Concurrency-related exceptions


class ConcurrencyError(WalletKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ContentionError(ConcurrencyError):
    """Required row locks could not be acquired within the bounded wait."""

    code: str = "LOCK_CONTENTION"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Lock contention during {operation}: {detail}"
        )


# Immutability-related exceptions


class ImmutabilityError(WalletKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Transactions, currencies and exchange rates are append-only; balances
    can be adjusted but never deleted.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class NegativeBalanceError(ImmutabilityError):
    """A balance row was about to be persisted with a negative amount."""

    code: str = "NEGATIVE_BALANCE"

    def __init__(self, balance_id: str, amount: Decimal):
        self.balance_id = balance_id
        self.amount = amount
        super().__init__(
            f"Balance {balance_id} cannot be persisted with negative amount {amount}"
        )


# Infrastructure exceptions


class InfrastructureError(WalletKernelError):
    """Base exception for storage/infrastructure failures."""

    code: str = "INFRASTRUCTURE_ERROR"


class LedgerUnavailableError(InfrastructureError):
    """
    The underlying store failed; the unit of work did not commit.

    The original driver exception is chained as ``__cause__``.
    """

    code: str = "LEDGER_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Ledger unavailable during {operation}: {detail}")

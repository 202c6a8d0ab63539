"""
Conversion -- pure amount validation and settlement arithmetic.

Responsibility:
    The single place where a transfer amount is validated and where the
    settled amount is derived from (amount, rate).  The transfer engine calls
    these once per transfer; the ledger audit check calls ``settle`` again on
    stored columns, so both paths share one rounding rule.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amounts are positive, finite, have at most two decimal places, and are
      never floats.
    - settled = round_money(amount * rate) with ROUND_HALF_UP.
"""

from decimal import Decimal, InvalidOperation

from wallet_kernel.db.types import (
    MONEY_DECIMAL_PLACES,
    MONEY_PRECISION,
    round_money,
    round_rate,
)
from wallet_kernel.exceptions import InvalidAmountError

# Exclusive upper bound of a NUMERIC(15, 2) money column
MAX_AMOUNT = Decimal(10) ** (MONEY_PRECISION - MONEY_DECIMAL_PLACES)


def normalize_amount(amount) -> Decimal:
    """
    Validate a caller-supplied transfer amount.

    Accepts Decimal, int, or a numeric string.  Returns the amount quantized
    to two places (without changing its value).

    Raises:
        InvalidAmountError: float input, non-numeric input, non-finite,
            zero or negative, too large for a money column, or more than two
            decimal places.
    """
    if isinstance(amount, bool) or isinstance(amount, float):
        raise InvalidAmountError(str(amount), "amount must be a Decimal, int or str")

    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(str(amount), "amount is not a number") from None

    if not value.is_finite():
        raise InvalidAmountError(str(amount), "amount must be finite")
    if value <= 0:
        raise InvalidAmountError(str(amount), "amount must be greater than zero")

    if value >= MAX_AMOUNT:
        raise InvalidAmountError(str(amount), f"amount must be less than {MAX_AMOUNT}")

    try:
        quantized = round_money(value)
    except InvalidOperation:
        raise InvalidAmountError(str(amount), "amount cannot be represented exactly") from None
    if quantized != value:
        raise InvalidAmountError(
            str(amount),
            f"amount has more than {MONEY_DECIMAL_PLACES} decimal places",
        )
    return quantized


def settle(amount: Decimal, rate: Decimal) -> Decimal:
    """Settled amount for ``amount`` converted at ``rate``."""
    return round_money(amount * rate)


def is_consistent(amount_from: Decimal, rate_used: Decimal, amount_to: Decimal) -> bool:
    """Check the recorded-rate property for one stored transaction."""
    return settle(amount_from, round_rate(rate_used)) == amount_to

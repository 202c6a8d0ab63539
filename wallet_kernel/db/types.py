"""
Module: wallet_kernel.db.types
Responsibility: Exact decimal column type and the sanctioned rounding helpers
    for money and exchange rates.  Centralizes precision so every model and
    service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money columns are NUMERIC(15, 2); rate columns are NUMERIC(18, 8).
    - round_money() is the ONLY rounding function for monetary values and
      always uses ROUND_HALF_UP (half away from zero).
    - CRITICAL: No floats anywhere in the wallet kernel.  ExactDecimal
      refuses float binds.

Failure modes:
    - TypeError when a float is bound to an ExactDecimal column.
    - decimal.InvalidOperation when a value exceeds the column precision.

Audit relevance:
    The recorded-rate property of every transaction
    (amount_to == round_money(amount_from * rate_used)) is only checkable if
    the stored values are exact.  On SQLite, which has no exact decimal
    storage class, ExactDecimal stores the canonical string form.
"""

from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator

# Money: 15 digits total, 2 decimal places
MONEY_PRECISION = 15
MONEY_DECIMAL_PLACES = 2

# Exchange rate: 18 digits total, 8 decimal places
RATE_PRECISION = 18
RATE_DECIMAL_PLACES = 8

DEFAULT_ROUNDING = ROUND_HALF_UP

# Upper bound accepted for a single exchange rate value
MAX_RATE = Decimal("1000000")

# Bound on one row-lock wait (PostgreSQL lock_timeout, SQLite busy timeout)
DEFAULT_LOCK_TIMEOUT_MS = 5000


def _quantum(decimal_places: int) -> Decimal:
    return Decimal(1).scaleb(-decimal_places)


class ExactDecimal(TypeDecorator):
    """
    Fixed-point decimal stored without float conversion on any backend.

    Contract:
        PostgreSQL (and any dialect with native NUMERIC) gets NUMERIC(p, s).
        SQLite gets a VARCHAR holding the quantized decimal string.

    Guarantees:
        - Values are quantized to ``scale`` with ROUND_HALF_UP on bind.
        - Results are always ``Decimal`` instances.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int = 38, scale: int = 9):
        super().__init__(precision=precision, scale=scale, asdecimal=True)
        self.precision = precision
        self.scale = scale

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(self.precision + 2))
        return dialect.type_descriptor(
            Numeric(self.precision, self.scale, asdecimal=True)
        )

    def process_bind_param(self, value, dialect):
        """Quantize on the way in; stringify for SQLite."""
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("float values are not accepted for decimal columns")
        value = Decimal(value).quantize(_quantum(self.scale), rounding=DEFAULT_ROUNDING)
        if dialect.name == "sqlite":
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


def money_column_type() -> ExactDecimal:
    """Column type for monetary amounts."""
    return ExactDecimal(MONEY_PRECISION, MONEY_DECIMAL_PLACES)


def rate_column_type() -> ExactDecimal:
    """Column type for exchange rates."""
    return ExactDecimal(RATE_PRECISION, RATE_DECIMAL_PLACES)


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for monetary values.
    Settled amounts, balances, and the recorded-rate audit check all go
    through it so they can never disagree.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    return value.quantize(_quantum(decimal_places), rounding=rounding)


def round_rate(value: Decimal) -> Decimal:
    """Quantize an exchange rate to the stored rate precision."""
    return value.quantize(_quantum(RATE_DECIMAL_PLACES), rounding=DEFAULT_ROUNDING)

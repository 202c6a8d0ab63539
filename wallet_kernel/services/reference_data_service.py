"""
ReferenceDataService -- administration of currencies, users, rates and funding.

Responsibility:
    The write path for everything a transfer reads but never writes:
    currency rows (with their identity rate), users and their preferred
    currency, published exchange rates, and initial funding of ledger rows.

Architecture position:
    Kernel > Services.  Used by the CLI, by bootstrap scripts and by tests.
    Flushes only; the caller commits.

Invariants enforced:
    - Currency symbols are canonical ISO 4217 codes from CurrencyRegistry.
    - Every currency gets an explicit identity rate row (rate 1) on creation.
    - Rates are validated before insert and never updated; publishing a new
      rate inserts a superseding row.
    - Changing a user's preferred currency takes the same user row lock a
      transfer takes, so a transfer in flight settles entirely in the old
      currency or entirely in the new one.

Failure modes:
    - InvalidCurrencyError, DuplicateCurrencyError on create_currency().
    - CurrencyNotFoundError, DuplicateUserError on register_user().
    - InvalidExchangeRateError, CurrencyNotFoundError on publish_rate().
    - UserNotFoundError, CurrencyNotFoundError on change_preferred_currency()
      and deposit().
    - InvalidAmountError on deposit().
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wallet_kernel.db.immutability import validate_rate_value
from wallet_kernel.db.types import round_rate
from wallet_kernel.domain.clock import Clock, SystemClock
from wallet_kernel.domain.conversion import normalize_amount
from wallet_kernel.domain.currency import CurrencyRegistry
from wallet_kernel.exceptions import (
    CurrencyNotFoundError,
    DuplicateCurrencyError,
    DuplicateUserError,
    InvalidExchangeRateError,
    UserNotFoundError,
)
from wallet_kernel.logging_config import get_logger
from wallet_kernel.models.currency import Currency
from wallet_kernel.models.exchange_rate import ExchangeRate
from wallet_kernel.models.user import WalletUser
from wallet_kernel.services.balance_store import BalanceStore
from wallet_kernel.services.base import BaseService

logger = get_logger("services.reference_data")

IDENTITY_SOURCE = "identity"


class ReferenceDataService(BaseService):
    """
    Administrative writes for reference data.

    Usage:
        with session_scope() as session:
            service = ReferenceDataService(session, clock)
            usd = service.create_currency("USD")
            alice = service.register_user("Alice", "alice@example.com", "x", usd.id)
            service.deposit(alice.id, usd.id, Decimal("100.00"))
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # -------------------------------------------------------------------------
    # Currencies
    # -------------------------------------------------------------------------

    def create_currency(self, symbol: str, name: str | None = None) -> Currency:
        """
        Register a currency and its identity rate.

        Args:
            symbol: ISO 4217 code (case-insensitive, surrounding blanks ignored).
            name: Display name.  Defaults to the registry name.

        Raises:
            InvalidCurrencyError: Unknown code.
            DuplicateCurrencyError: Symbol already registered.
        """
        code = CurrencyRegistry.validate(symbol)
        display_name = name or CurrencyRegistry.get_info(code).name

        existing = self.session.execute(
            select(Currency.id).where(Currency.symbol == code)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateCurrencyError(code)

        savepoint = self.session.begin_nested()
        try:
            currency = Currency(symbol=code, name=display_name)
            self.session.add(currency)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateCurrencyError(code) from None

        self.session.add(
            ExchangeRate(
                from_currency_id=currency.id,
                to_currency_id=currency.id,
                rate=Decimal("1"),
                effective_at=self._clock.now(),
                source=IDENTITY_SOURCE,
            )
        )
        self.session.flush()

        logger.info(
            "currency_created",
            extra={"currency_id": str(currency.id), "symbol": code},
        )
        return currency

    def get_currency_by_symbol(self, symbol: str) -> Currency | None:
        code = CurrencyRegistry.validate(symbol)
        return self.session.execute(
            select(Currency).where(Currency.symbol == code)
        ).scalar_one_or_none()

    def _require_currency(self, currency_id: UUID) -> Currency:
        currency = self.session.get(Currency, currency_id)
        if currency is None:
            raise CurrencyNotFoundError(str(currency_id))
        return currency

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def register_user(
        self,
        name: str,
        email: str,
        credential: str,
        preferred_currency_id: UUID,
    ) -> WalletUser:
        """
        Register a wallet holder.

        Raises:
            CurrencyNotFoundError: preferred_currency_id does not exist.
            DuplicateUserError: email already registered.
        """
        self._require_currency(preferred_currency_id)

        savepoint = self.session.begin_nested()
        try:
            user = WalletUser(
                name=name,
                email=email,
                credential=credential,
                preferred_currency_id=preferred_currency_id,
            )
            self.session.add(user)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateUserError(email) from None

        logger.info(
            "user_registered",
            extra={
                "user_id": str(user.id),
                "preferred_currency_id": str(preferred_currency_id),
            },
        )
        return user

    def change_preferred_currency(self, user_id: UUID, currency_id: UUID) -> WalletUser:
        """
        Change the settlement currency for future incoming transfers.

        Serializes with in-flight transfers through the user row lock.

        Raises:
            CurrencyNotFoundError: currency_id does not exist.
            UserNotFoundError: user_id does not exist.
        """
        self._require_currency(currency_id)
        user = self._lock_user(user_id)

        previous = user.preferred_currency_id
        user.preferred_currency_id = currency_id
        self.session.flush()

        logger.info(
            "preferred_currency_changed",
            extra={
                "user_id": str(user_id),
                "previous_currency_id": str(previous),
                "currency_id": str(currency_id),
            },
        )
        return user

    def _lock_user(self, user_id: UUID) -> WalletUser:
        try:
            user_id = UUID(str(user_id))
        except ValueError:
            raise UserNotFoundError(str(user_id)) from None
        user = self.session.execute(
            select(WalletUser)
            .where(WalletUser.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    # -------------------------------------------------------------------------
    # Rates
    # -------------------------------------------------------------------------

    def publish_rate(
        self,
        from_currency_id: UUID,
        to_currency_id: UUID,
        rate: Decimal,
        effective_at: datetime | None = None,
        source: str = "manual",
    ) -> ExchangeRate:
        """
        Insert a new rate for a directed pair.

        The new row becomes current if its effective_at is the latest for
        the pair.  The value is quantized to the stored rate precision.

        Raises:
            CurrencyNotFoundError: Either currency does not exist.
            InvalidExchangeRateError: Rate is not a usable value.
        """
        self._require_currency(from_currency_id)
        self._require_currency(to_currency_id)

        value = round_rate(
            validate_rate_value(rate, from_currency_id, to_currency_id)
        )
        if value <= 0:
            raise InvalidExchangeRateError(
                rate_value=str(rate),
                reason="Exchange rate rounds to zero at stored precision",
            )

        row = ExchangeRate(
            from_currency_id=from_currency_id,
            to_currency_id=to_currency_id,
            rate=value,
            effective_at=effective_at or self._clock.now(),
            source=source,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "rate_published",
            extra={
                "rate_id": str(row.id),
                "from_currency_id": str(from_currency_id),
                "to_currency_id": str(to_currency_id),
                "rate": str(value),
                "source": source,
            },
        )
        return row

    # -------------------------------------------------------------------------
    # Funding
    # -------------------------------------------------------------------------

    def deposit(self, user_id: UUID, currency_id: UUID, amount: Decimal) -> Decimal:
        """
        Credit a user's ledger row, creating it if needed.

        Takes the user row lock first, the same order a transfer uses.

        Returns:
            The new balance.
        """
        amount = normalize_amount(amount)
        self._require_currency(currency_id)
        self._lock_user(user_id)

        balances = BalanceStore(self.session)
        balances.ensure_row(user_id, currency_id)
        new_amount = balances.adjust(user_id, currency_id, amount)

        logger.info(
            "deposit_recorded",
            extra={
                "user_id": str(user_id),
                "currency_id": str(currency_id),
                "amount": str(amount),
            },
        )
        return new_amount

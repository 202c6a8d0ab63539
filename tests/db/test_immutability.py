"""
Persistence guards on append-only and constrained records.

These tests write through the ORM directly, bypassing the services, to show
that the listeners stop bad writes on their own.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from wallet_kernel.exceptions import (
    ImmutabilityViolationError,
    InvalidExchangeRateError,
    NegativeBalanceError,
)
from wallet_kernel.models.balance import Balance
from wallet_kernel.models.exchange_rate import ExchangeRate
from wallet_kernel.models.transaction import LedgerTransaction


class TestTransactionImmutability:
    @pytest.fixture
    def recorded(self, session, transfer_engine, make_user, fund, currencies, rates):
        alice = make_user("Alice", "USD")
        bob = make_user("Bob", "USD")
        fund(alice, "USD", "50.00")
        result = transfer_engine.transfer(
            alice.id, bob.id, currencies["USD"].id, Decimal("10.00"),
        )
        return session.get(LedgerTransaction, result.transaction_id)

    def test_update_blocked(self, session, recorded, captured_logs):
        recorded.amount_to = Decimal("999.00")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "LedgerTransaction"
        assert any(
            r["message"] == "immutability_violation_blocked" for r in captured_logs()
        )

    def test_delete_blocked(self, session, recorded):
        session.delete(recorded)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestCurrencyImmutability:
    def test_symbol_change_blocked(self, session, currencies):
        currencies["USD"].symbol = "EUR"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, currencies):
        session.delete(currencies["JPY"])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestExchangeRateGuards:
    def _row(self, currencies, clock, rate, to="USD"):
        return ExchangeRate(
            from_currency_id=currencies["CLP"].id,
            to_currency_id=currencies[to].id,
            rate=rate,
            effective_at=clock.now(),
        )

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-1"), Decimal("1000001")])
    def test_invalid_value_rejected_on_insert(self, session, currencies, clock, rate):
        session.add(self._row(currencies, clock, rate))
        with pytest.raises(InvalidExchangeRateError):
            session.flush()

    def test_self_pair_must_be_identity(self, session, currencies, clock):
        clp = currencies["CLP"].id
        session.add(ExchangeRate(
            from_currency_id=clp, to_currency_id=clp,
            rate=Decimal("2"), effective_at=clock.now(),
        ))
        with pytest.raises(InvalidExchangeRateError, match="exactly 1"):
            session.flush()

    def test_rate_update_blocked(self, session, currencies, clock):
        row = self._row(currencies, clock, Decimal("0.00105263"))
        session.add(row)
        session.flush()
        row.rate = Decimal("0.002")
        with pytest.raises(ImmutabilityViolationError, match="publish a new rate"):
            session.flush()

    def test_effective_at_update_blocked(self, session, currencies, clock):
        row = self._row(currencies, clock, Decimal("0.00105263"))
        session.add(row)
        session.flush()
        row.effective_at = clock.now() + timedelta(days=1)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, currencies, clock):
        row = self._row(currencies, clock, Decimal("0.00105263"))
        session.add(row)
        session.flush()
        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestBalanceGuards:
    @pytest.fixture
    def balance(self, session, make_user, fund, currencies):
        alice = make_user("Alice", "USD")
        fund(alice, "USD", "5.00")
        return session.execute(
            select(Balance).where(Balance.user_id == alice.id)
        ).scalar_one()

    def test_negative_amount_blocked(self, session, balance):
        balance.amount = Decimal("-0.01")
        with pytest.raises(NegativeBalanceError) as exc_info:
            session.flush()
        assert exc_info.value.code == "NEGATIVE_BALANCE"

    def test_moving_row_to_other_currency_blocked(self, session, balance, currencies):
        balance.currency_id = currencies["EUR"].id
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, balance):
        session.delete(balance)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_negative_insert_blocked(self, session, make_user, currencies):
        bob = make_user("Bob", "USD")
        session.add(Balance(
            user_id=bob.id, currency_id=currencies["USD"].id, amount=Decimal("-1.00"),
        ))
        with pytest.raises(NegativeBalanceError):
            session.flush()

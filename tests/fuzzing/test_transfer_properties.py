"""
Hypothesis-based property tests for settlement arithmetic and transfers.

Properties checked:
- Settlement is round_money(amount * rate) and never off by more than half a cent.
- Settlement is monotonic in the amount for a fixed rate.
- Identity rate settles to exactly the amount.
- Any sequence of same-currency transfers conserves the total and never
  drives a ledger row negative.
- Every recorded cross-currency transaction satisfies
  amount_to == round_money(amount_from * rate_used).
"""

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, assume, given, settings
from hypothesis import strategies as st

from wallet_kernel.db.types import round_money
from wallet_kernel.domain.conversion import is_consistent, normalize_amount, settle
from wallet_kernel.exceptions import InsufficientFundsError, InvalidAmountError
from wallet_kernel.selectors.ledger_selector import LedgerSelector

CLP_TO_USD = Decimal("0.00105263")

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

rate_values = st.decimals(
    min_value=Decimal("0.00000001"),
    max_value=Decimal("1000000"),
    places=8,
    allow_nan=False,
    allow_infinity=False,
)

_db_settings = settings(
    max_examples=20,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)


class TestSettlementArithmetic:
    @given(amount=amounts, rate=rate_values)
    @settings(max_examples=300)
    def test_settled_within_half_cent(self, amount, rate):
        settled = settle(amount, rate)
        assert abs(settled - amount * rate) <= Decimal("0.005")
        assert settled == round_money(amount * rate)

    @given(amount=amounts, rate=rate_values)
    @settings(max_examples=300)
    def test_settlement_is_consistent(self, amount, rate):
        assert is_consistent(amount, rate, settle(amount, rate))

    @given(a=amounts, b=amounts, rate=rate_values)
    @settings(max_examples=200)
    def test_monotonic_in_amount(self, a, b, rate):
        low, high = sorted((a, b))
        assert settle(low, rate) <= settle(high, rate)

    @given(amount=amounts)
    def test_identity_rate_is_exact(self, amount):
        assert settle(amount, Decimal("1")) == amount


class TestAmountValidation:
    @given(amount=amounts)
    def test_two_place_amounts_accepted_unchanged(self, amount):
        assert normalize_amount(amount) == amount

    @given(
        amount=st.decimals(
            min_value=Decimal("0.001"),
            max_value=Decimal("1000"),
            places=3,
            allow_nan=False,
            allow_infinity=False,
        )
    )
    def test_sub_cent_amounts_rejected(self, amount):
        assume(amount != amount.quantize(Decimal("0.01")))
        with pytest.raises(InvalidAmountError):
            normalize_amount(amount)

    @given(value=st.floats(allow_nan=True, allow_infinity=True))
    def test_floats_always_rejected(self, value):
        with pytest.raises(InvalidAmountError):
            normalize_amount(value)


class TestTransferSequences:
    @given(
        steps=st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=2),
                st.integers(min_value=0, max_value=2),
                st.decimals(
                    min_value=Decimal("0.01"),
                    max_value=Decimal("600.00"),
                    places=2,
                    allow_nan=False,
                    allow_infinity=False,
                ),
            ),
            min_size=1,
            max_size=12,
        )
    )
    @_db_settings
    def test_same_currency_conservation(
        self, session, transfer_engine, make_user, fund, currencies, steps,
    ):
        usd = currencies["USD"].id
        users = [make_user(f"p{i}", "USD") for i in range(3)]
        for user in users:
            fund(user, "USD", "1000.00")

        for sender_idx, receiver_idx, amount in steps:
            try:
                transfer_engine.transfer(
                    users[sender_idx].id, users[receiver_idx].id, usd, amount,
                )
            except InsufficientFundsError:
                pass

        ledger = LedgerSelector(session)
        balances = [ledger.get_balance(u.id, usd) for u in users]
        assert sum(balances) == Decimal("3000.00")
        assert all(b >= 0 for b in balances)
        session.rollback()

    @given(
        payments=st.lists(
            st.decimals(
                min_value=Decimal("0.01"),
                max_value=Decimal("20000.00"),
                places=2,
                allow_nan=False,
                allow_infinity=False,
            ),
            min_size=1,
            max_size=8,
        )
    )
    @_db_settings
    def test_recorded_rate_property(
        self, session, transfer_engine, make_user, fund, currencies, rates, payments,
    ):
        usd, clp = currencies["USD"].id, currencies["CLP"].id
        juan = make_user("Juan", "CLP")
        maria = make_user("Maria", "USD")
        fund(juan, "CLP", "200000.00")

        debited = Decimal("0")
        credited = Decimal("0")
        for amount in payments:
            result = transfer_engine.transfer(juan.id, maria.id, clp, amount)
            assert result.rate_used == CLP_TO_USD
            assert result.settled_amount == round_money(amount * CLP_TO_USD)
            debited += result.amount
            credited += result.settled_amount

        ledger = LedgerSelector(session)
        assert ledger.get_balance(juan.id, clp) == Decimal("200000.00") - debited
        assert ledger.get_balance(maria.id, usd) == credited
        for view in ledger.transactions_for_user(juan.id):
            assert view.amount_to == round_money(view.amount_from * view.rate_used)
        session.rollback()

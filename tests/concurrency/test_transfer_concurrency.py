"""
True concurrency tests for transfers.

Each thread uses its own session and its own unit of work.  On SQLite the
writers are serialized by BEGIN IMMEDIATE; on PostgreSQL by row locks taken
in a fixed order.  Either way the outcomes must be the same: no
double-spend, no lost update, no deadlock.
"""

import time
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy import func, select

from wallet_kernel.db.engine import get_session_factory, init_engine_from_url, reset_engine
from wallet_kernel.domain.clock import SystemClock
from wallet_kernel.domain.dtos import TransferPolicy
from wallet_kernel.exceptions import ContentionError, InsufficientFundsError
from wallet_kernel.models.transaction import LedgerTransaction
from wallet_kernel.selectors.ledger_selector import LedgerSelector
from wallet_kernel.services.balance_store import BalanceStore
from wallet_kernel.services.reference_data_service import ReferenceDataService
from wallet_kernel.services.transfer_engine import TransferEngine

pytestmark = pytest.mark.slow_locks


def _run_concurrently(session_factory, jobs, num_threads):
    """Run ``jobs`` (sender, receiver, currency_id, amount) across threads."""
    barrier = Barrier(num_threads, timeout=30)

    def _transfer(job):
        sender_id, receiver_id, currency_id, amount = job
        barrier.wait()
        session = session_factory()
        try:
            return TransferEngine(session, clock=SystemClock()).transfer(
                sender_id, receiver_id, currency_id, amount,
            )
        except InsufficientFundsError as exc:
            return exc
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=num_threads) as executor:
        # future.result() re-raises if a thread hit an unexpected exception
        return [f.result() for f in [executor.submit(_transfer, job) for job in jobs]]


class TestNoDoubleSpend:
    def test_only_the_fitting_subset_succeeds(self, session, session_factory, make_user, fund, currencies):
        """10 concurrent debits of 10.00 against 50.00: exactly 5 succeed."""
        usd = currencies["USD"].id
        sender = make_user("Sender", "USD")
        receivers = [make_user(f"Receiver{i}", "USD") for i in range(10)]
        fund(sender, "USD", "50.00")

        jobs = [(sender.id, r.id, usd, Decimal("10.00")) for r in receivers]
        results = _run_concurrently(session_factory, jobs, num_threads=10)

        failures = [r for r in results if isinstance(r, InsufficientFundsError)]
        successes = [r for r in results if not isinstance(r, InsufficientFundsError)]
        assert len(successes) == 5
        assert len(failures) == 5

        ledger = LedgerSelector(session)
        assert ledger.get_balance(sender.id, usd) == Decimal("0.00")
        credited = sum(
            (ledger.get_balance(r.id, usd) or Decimal("0")) for r in receivers
        )
        assert credited == Decimal("50.00")
        count = session.execute(select(func.count()).select_from(LedgerTransaction)).scalar_one()
        assert count == 5

    def test_uneven_amounts_never_overdraw(self, session, session_factory, make_user, fund, currencies):
        usd = currencies["USD"].id
        sender = make_user("Sender", "USD")
        receiver = make_user("Receiver", "USD")
        fund(sender, "USD", "25.00")

        amounts = [Decimal(a) for a in ("7.00", "9.50", "3.25", "11.00", "6.10", "4.40", "8.80", "2.05")]
        jobs = [(sender.id, receiver.id, usd, a) for a in amounts]
        results = _run_concurrently(session_factory, jobs, num_threads=len(jobs))

        moved = sum(r.amount for r in results if not isinstance(r, InsufficientFundsError))
        ledger = LedgerSelector(session)
        assert ledger.get_balance(sender.id, usd) == Decimal("25.00") - moved
        assert ledger.get_balance(receiver.id, usd) == moved
        assert ledger.get_balance(sender.id, usd) >= 0


class TestNoDeadlock:
    def test_opposing_transfers_complete(self, session, session_factory, make_user, fund, currencies):
        """A->B and B->A interleaved: lock ordering keeps every transfer alive."""
        usd = currencies["USD"].id
        a = make_user("A", "USD")
        b = make_user("B", "USD")
        fund(a, "USD", "100.00")
        fund(b, "USD", "100.00")

        jobs = [
            (a.id, b.id, usd, Decimal("1.00")) if i % 2 == 0 else (b.id, a.id, usd, Decimal("1.00"))
            for i in range(20)
        ]
        results = _run_concurrently(session_factory, jobs, num_threads=20)

        assert not any(isinstance(r, InsufficientFundsError) for r in results)
        ledger = LedgerSelector(session)
        assert ledger.get_balance(a.id, usd) == Decimal("100.00")
        assert ledger.get_balance(b.id, usd) == Decimal("100.00")

    def test_cross_currency_ring(self, session, session_factory, make_user, fund, currencies, rates):
        """CLP user pays USD user, USD user pays CLP user, concurrently."""
        usd, clp = currencies["USD"].id, currencies["CLP"].id
        juan = make_user("Juan", "CLP")
        maria = make_user("Maria", "USD")
        fund(juan, "CLP", "95000")
        fund(maria, "USD", "100.00")

        jobs = (
            [(juan.id, maria.id, clp, Decimal("950"))] * 5
            + [(maria.id, juan.id, usd, Decimal("1.00"))] * 5
        )
        _run_concurrently(session_factory, jobs, num_threads=10)

        ledger = LedgerSelector(session)
        assert ledger.get_balance(juan.id, clp) == Decimal("95000.00")
        assert ledger.get_balance(maria.id, usd) == Decimal("100.00")
        assert LedgerSelector(session).find_inconsistent_transactions() == []


class TestPreferenceSerialization:
    def test_transfer_waits_for_preference_change(self, session, session_factory, make_user, fund, currencies, rates):
        """A preference change holding the user lock decides the settlement currency."""
        usd, eur = currencies["USD"].id, currencies["EUR"].id
        alice = make_user("Alice", "USD")
        bob = make_user("Bob", "USD")
        fund(alice, "USD", "10.00")

        holder = session_factory()
        try:
            ReferenceDataService(holder).change_preferred_currency(bob.id, eur)

            with ThreadPoolExecutor(max_workers=1) as executor:
                def _transfer():
                    s = session_factory()
                    try:
                        return TransferEngine(s).transfer(alice.id, bob.id, usd, Decimal("10.00"))
                    finally:
                        s.close()

                future = executor.submit(_transfer)
                time.sleep(0.2)
                holder.commit()
                result = future.result(timeout=30)
        finally:
            holder.close()

        assert result.settlement_currency_id == eur
        assert result.settled_amount == Decimal("9.20")


class TestContention:
    def test_lock_wait_bounded(self, session, database_url, make_user, fund, currencies):
        """A transfer that cannot get its locks in time fails with ContentionError."""
        usd = currencies["USD"].id
        alice = make_user("Alice", "USD")
        bob = make_user("Bob", "USD")
        fund(alice, "USD", "10.00")

        reset_engine()
        init_engine_from_url(database_url, pool_size=5, lock_timeout_ms=200)
        factory = get_session_factory()

        holder = factory()
        contender = factory()
        try:
            assert BalanceStore(holder).lock_and_read(alice.id, usd) == Decimal("10.00")

            engine = TransferEngine(contender, policy=TransferPolicy(lock_timeout_ms=200))
            with pytest.raises(ContentionError) as exc_info:
                engine.transfer(alice.id, bob.id, usd, Decimal("1.00"))
            assert exc_info.value.code == "LOCK_CONTENTION"
        finally:
            holder.rollback()
            holder.close()
            contender.close()

        check = factory()
        try:
            assert LedgerSelector(check).get_balance(alice.id, usd) == Decimal("10.00")
        finally:
            check.close()

"""
Module: wallet_kernel.selectors.ledger_selector
Responsibility: Read-only queries over ledger rows and the transaction log,
    including the recorded-rate audit check.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - find_inconsistent_transactions() verifies
      amount_to == round_money(amount_from * rate_used) from the stored
      columns alone.  It never consults the rate table, because the rate a
      transaction used is a captured fact.

Audit relevance:
    An empty result from find_inconsistent_transactions() is the evidence
    that every recorded transfer is internally consistent.
"""

from datetime import timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from wallet_kernel.domain.conversion import is_consistent
from wallet_kernel.domain.dtos import BalanceView, TransactionView
from wallet_kernel.models.balance import Balance
from wallet_kernel.models.currency import Currency
from wallet_kernel.models.transaction import LedgerTransaction
from wallet_kernel.selectors.base import BaseSelector


def _to_view(row: LedgerTransaction) -> TransactionView:
    transaction_date = row.transaction_date
    if transaction_date.tzinfo is None:
        transaction_date = transaction_date.replace(tzinfo=timezone.utc)
    return TransactionView(
        transaction_id=row.id,
        sender_user_id=row.sender_user_id,
        receiver_user_id=row.receiver_user_id,
        from_currency_id=row.from_currency_id,
        to_currency_id=row.to_currency_id,
        amount_from=row.amount_from,
        rate_used=row.rate_used,
        amount_to=row.amount_to,
        transaction_date=transaction_date,
    )


class LedgerSelector(BaseSelector):
    """Queries over balances and recorded transfers."""

    def get_balance(self, user_id: UUID, currency_id: UUID) -> Decimal | None:
        """Current amount of one ledger row, or None if the row does not exist."""
        return self.session.execute(
            select(Balance.amount).where(
                Balance.user_id == user_id,
                Balance.currency_id == currency_id,
            )
        ).scalar_one_or_none()

    def balances_for_user(self, user_id: UUID) -> list[BalanceView]:
        """Every ledger row of a user, ordered by currency symbol."""
        rows = self.session.execute(
            select(Balance, Currency.symbol)
            .join(Currency, Currency.id == Balance.currency_id)
            .where(Balance.user_id == user_id)
            .order_by(Currency.symbol)
        ).all()
        return [
            BalanceView(
                user_id=balance.user_id,
                currency_id=balance.currency_id,
                currency_symbol=symbol,
                amount=balance.amount,
            )
            for balance, symbol in rows
        ]

    def get_transaction(self, transaction_id: UUID) -> TransactionView | None:
        row = self.session.get(LedgerTransaction, transaction_id)
        return _to_view(row) if row is not None else None

    def transactions_for_user(self, user_id: UUID) -> list[TransactionView]:
        """Transfers sent or received by a user, oldest first."""
        rows = self.session.execute(
            select(LedgerTransaction)
            .where(
                (LedgerTransaction.sender_user_id == user_id)
                | (LedgerTransaction.receiver_user_id == user_id)
            )
            .order_by(LedgerTransaction.transaction_date, LedgerTransaction.id)
        ).scalars().all()
        return [_to_view(row) for row in rows]

    def find_inconsistent_transactions(self) -> list[UUID]:
        """
        Ids of transactions whose stored amounts disagree with their stored rate.

        Scans the whole log in batches.
        """
        inconsistent: list[UUID] = []
        result = self.session.execute(
            select(
                LedgerTransaction.id,
                LedgerTransaction.amount_from,
                LedgerTransaction.rate_used,
                LedgerTransaction.amount_to,
            ).execution_options(yield_per=500)
        )
        for transaction_id, amount_from, rate_used, amount_to in result:
            if not is_consistent(amount_from, rate_used, amount_to):
                inconsistent.append(transaction_id)
        return inconsistent

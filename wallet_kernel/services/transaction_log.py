"""
TransactionLog -- append-only record of completed transfers.

Responsibility:
    Writes one LedgerTransaction row per transfer.  There is no update or
    recompute operation; the ORM listener rejects both anyway.

Architecture position:
    Kernel > Services.  Called by TransferEngine inside its unit of work.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from wallet_kernel.logging_config import get_logger
from wallet_kernel.models.transaction import LedgerTransaction
from wallet_kernel.services.base import BaseService

logger = get_logger("services.transaction_log")


class TransactionLog(BaseService):
    """Append-only writer for the transaction log."""

    def record(
        self,
        sender_user_id: UUID,
        receiver_user_id: UUID,
        from_currency_id: UUID,
        to_currency_id: UUID,
        amount_from: Decimal,
        rate_used: Decimal,
        amount_to: Decimal,
        transaction_date: datetime,
    ) -> UUID:
        """
        Append one transaction row.

        The values are stored verbatim; callers compute amount_to from
        amount_from and rate_used before calling.

        Returns:
            The id of the new row.
        """
        row = LedgerTransaction(
            sender_user_id=sender_user_id,
            receiver_user_id=receiver_user_id,
            from_currency_id=from_currency_id,
            to_currency_id=to_currency_id,
            amount_from=amount_from,
            rate_used=rate_used,
            amount_to=amount_to,
            transaction_date=transaction_date,
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "transaction_recorded",
            extra={
                "transaction_id": str(row.id),
                "from_currency_id": str(from_currency_id),
                "to_currency_id": str(to_currency_id),
                "amount_from": str(amount_from),
                "rate_used": str(rate_used),
                "amount_to": str(amount_to),
            },
        )
        return row.id

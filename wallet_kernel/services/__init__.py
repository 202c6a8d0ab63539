"""Write-side kernel services."""

from wallet_kernel.services.balance_store import BalanceStore
from wallet_kernel.services.reference_data_service import ReferenceDataService
from wallet_kernel.services.transaction_log import TransactionLog
from wallet_kernel.services.transfer_engine import TransferEngine

__all__ = [
    "BalanceStore",
    "ReferenceDataService",
    "TransactionLog",
    "TransferEngine",
]

"""Read-only query selectors for rates, balances and the transaction log."""

from wallet_kernel.selectors.ledger_selector import LedgerSelector
from wallet_kernel.selectors.rate_selector import RateSelector

__all__ = [
    "LedgerSelector",
    "RateSelector",
]

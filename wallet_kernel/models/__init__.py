"""ORM models for the wallet kernel."""

from wallet_kernel.models.balance import Balance
from wallet_kernel.models.currency import Currency
from wallet_kernel.models.exchange_rate import ExchangeRate
from wallet_kernel.models.transaction import LedgerTransaction
from wallet_kernel.models.user import WalletUser

__all__ = [
    "Balance",
    "Currency",
    "ExchangeRate",
    "LedgerTransaction",
    "WalletUser",
]

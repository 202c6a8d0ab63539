"""
Wallet Kernel - multi-currency wallet ledger.

A transactional ledger with:
- Per-user balances in any number of currencies
- Directed exchange rates with update history
- Transfers settled in the receiver's preferred currency
- Pessimistic row locking in a fixed global order
- Append-only, self-verifying transaction records
"""

__version__ = "0.1.0"

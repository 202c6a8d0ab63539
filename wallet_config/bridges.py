"""
Config -> Kernel Bridges.

Functions that convert a WalletConfig into kernel-compatible inputs.
These live in wallet_config because the kernel must never import
wallet_config.

Usage:
    from wallet_config.bridges import build_engine_kwargs, build_transfer_policy

    config = get_active_config()
    init_engine_from_url(**build_engine_kwargs(config))
    engine = TransferEngine(session, policy=build_transfer_policy(config))
"""

from __future__ import annotations

from typing import Any

from wallet_config.schema import WalletConfig
from wallet_kernel.domain.dtos import TransferPolicy


def build_transfer_policy(config: WalletConfig) -> TransferPolicy:
    return TransferPolicy(
        lock_timeout_ms=config.transfer.lock_timeout_ms,
        allow_self_transfer=config.transfer.allow_self_transfer,
    )


def build_engine_kwargs(config: WalletConfig) -> dict[str, Any]:
    """Keyword arguments for wallet_kernel.db.engine.init_engine_from_url()."""
    db = config.database
    return {
        "database_url": db.url,
        "echo": db.echo,
        "pool_size": db.pool_size,
        "max_overflow": db.max_overflow,
        "pool_timeout": db.pool_timeout,
        "pool_recycle": db.pool_recycle,
        "lock_timeout_ms": config.transfer.lock_timeout_ms,
    }

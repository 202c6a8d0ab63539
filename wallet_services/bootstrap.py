"""
Runtime bootstrap: configuration -> logging -> engine -> persistence guards.

Responsibility:
    The one place that wires wallet_config to wallet_kernel.  Everything
    that runs against a real database (CLI, scripts, services) calls
    ``bootstrap()`` once before opening sessions.

Architecture position:
    Services layer.  Imports from wallet_config and wallet_kernel; nothing
    below imports from here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy.engine import Engine

from wallet_config import WalletConfig, get_active_config
from wallet_config.bridges import build_engine_kwargs, build_transfer_policy
from wallet_kernel.db.engine import init_engine_from_url
from wallet_kernel.db.immutability import register_immutability_listeners
from wallet_kernel.domain.dtos import TransferPolicy
from wallet_kernel.logging_config import configure_logging


@dataclass(frozen=True)
class WalletRuntime:
    """What a caller needs after bootstrap."""

    config: WalletConfig
    engine: Engine
    policy: TransferPolicy


def bootstrap(
    config_path: Path | str | None = None,
    database_url: str | None = None,
) -> WalletRuntime:
    """
    Load configuration and initialize the kernel.

    Args:
        config_path: YAML file; defaults to the packaged default set.
        database_url: Overrides the configured URL (after the
            WALLET_DATABASE_URL environment override).
    """
    configure_logging()
    config = get_active_config(config_path)
    logging.getLogger("wallet_kernel").setLevel(config.logging.level.upper())

    engine_kwargs = build_engine_kwargs(config)
    if database_url:
        engine_kwargs["database_url"] = database_url
    engine = init_engine_from_url(**engine_kwargs)

    register_immutability_listeners()

    return WalletRuntime(
        config=config,
        engine=engine,
        policy=build_transfer_policy(config),
    )

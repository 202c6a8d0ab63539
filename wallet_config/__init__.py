"""
wallet_config -- single public entrypoint for wallet configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  Sits above ``wallet_kernel`` and below
    ``wallet_services``.  The kernel MUST NEVER import from
    ``wallet_config``; ``wallet_config.bridges`` translates the config into
    kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` -- a required key is missing.
    - ``ValueError`` -- a value fails validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``wallet_config_loaded`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import os
from pathlib import Path

from wallet_config.loader import apply_env_overrides, load_yaml_file, parse_config
from wallet_config.schema import WalletConfig
from wallet_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> WalletConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  Defaults to
            wallet_config/sets/default.yaml.

    Returns:
        A validated, frozen WalletConfig.  ``WALLET_DATABASE_URL``, when
        set, replaces ``database.url``.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = apply_env_overrides(load_yaml_file(path), dict(os.environ))
    config = parse_config(data)

    logger.info(
        "wallet_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "config_path": str(path),
        },
    )
    return config


__all__ = ["WalletConfig", "get_active_config"]

"""
WalletConfig schema.

Frozen dataclasses parsed from a YAML configuration set by
``wallet_config.loader``.  Validation lives in ``__post_init__`` so an
invalid instance can never exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection and pool settings passed to init_engine_from_url()."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size < 1:
            raise ValueError(f"database.pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise ValueError(
                f"database.max_overflow must be >= 0, got {self.max_overflow}"
            )
        if self.pool_timeout <= 0:
            raise ValueError(
                f"database.pool_timeout must be positive, got {self.pool_timeout}"
            )


@dataclass(frozen=True)
class TransferConfig:
    """Transfer engine tunables."""

    lock_timeout_ms: int = 5000
    allow_self_transfer: bool = True

    def __post_init__(self) -> None:
        if self.lock_timeout_ms <= 0:
            raise ValueError(
                f"transfer.lock_timeout_ms must be positive, got {self.lock_timeout_ms}"
            )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ValueError(
                f"logging.level must be one of {', '.join(_LOG_LEVELS)}, got {self.level!r}"
            )


@dataclass(frozen=True)
class WalletConfig:
    """
    Root configuration object.

    ``checksum`` is the SHA-256 of the canonical JSON form of the parsed
    YAML (after environment overrides), so two processes can confirm they
    run with the same settings.
    """

    config_id: str
    version: int
    database: DatabaseConfig
    transfer: TransferConfig = field(default_factory=TransferConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""

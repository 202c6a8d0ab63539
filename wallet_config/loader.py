"""
Configuration Loader (``wallet_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``wallet_config.schema``.  Runtime callers go through
``wallet_config.get_active_config()``; this module is its implementation.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys in a section raise ``ValueError`` rather than being ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Bad values  -> ``ValueError`` from the schema.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from wallet_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    TransferConfig,
    WalletConfig,
)

DATABASE_URL_ENV = "WALLET_DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _section(data: dict[str, Any], name: str, cls: type) -> Any:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ValueError(f"Unknown keys in section '{name}': {', '.join(unknown)}")
    return cls(**raw)


def apply_env_overrides(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    """Return a copy of ``data`` with the database URL override applied."""
    url = environ.get(DATABASE_URL_ENV)
    if not url:
        return data
    merged = dict(data)
    merged["database"] = {**(data.get("database") or {}), "url": url}
    return merged


def parse_config(data: dict[str, Any]) -> WalletConfig:
    """
    Parse a WalletConfig from a dict.

    Raises:
        KeyError: if config_id, version or database.url is missing.
        ValueError: if any value fails schema validation.
    """
    if "url" not in (data.get("database") or {}):
        raise KeyError("database.url")
    return WalletConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        database=_section(data, "database", DatabaseConfig),
        transfer=_section(data, "transfer", TransferConfig),
        logging=_section(data, "logging", LoggingConfig),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 checksum of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads the billing YAML file and parses it into the frozen dataclasses of
``billing_config.schema``.  Runtime callers go through
``billing_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed content for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values (unknown currency, bad due window token, negative
  delays)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingConfig, ConfirmationPolicy
from billing_engines.due_window import DueWindow
from billing_kernel.domain.currency import CurrencyRegistry


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_confirmation(data: dict[str, Any]) -> ConfirmationPolicy:
    return ConfirmationPolicy(
        max_attempts=int(data.get("max_attempts", 3)),
        base_delay_seconds=float(data.get("base_delay_seconds", 2.0)),
    )


def parse_billing_config(data: dict[str, Any]) -> BillingConfig:
    """Parse a billing config dict into a validated BillingConfig."""
    currency = str(data.get("currency", CurrencyRegistry.DEFAULT_CODE)).upper()
    if not CurrencyRegistry.is_valid(currency):
        raise ValueError(f"Unknown currency in billing config: {currency}")

    tokens = tuple(str(t) for t in data.get("due_windows", BillingConfig.due_windows))
    for token in tokens:
        DueWindow.parse(token)
    if len(set(tokens)) != len(tokens):
        raise ValueError(f"Duplicate due windows: {list(tokens)}")

    return BillingConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        currency=currency,
        confirmation=parse_confirmation(data.get("confirmation") or {}),
        due_windows=tokens,
        checksum=compute_checksum(data),
    )


def load_billing_config(path: Path) -> BillingConfig:
    return parse_billing_config(load_yaml_file(path))

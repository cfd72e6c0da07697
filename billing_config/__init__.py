"""
billing_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``.  Services receive the returned
    ``BillingConfig``; they never read configuration files themselves.

Architecture position:
    Configuration -- sits above ``billing_kernel`` and ``billing_engines``
    and below ``billing_services``.  The kernel MUST NEVER import from
    ``billing_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` / ``KeyError`` -- validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``BILLING_CONFIG_TRACE`` log entry with config_id, version and checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from billing_config.loader import load_billing_config
from billing_config.schema import BillingConfig, ConfirmationPolicy

_logger = logging.getLogger("billing_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> BillingConfig:
    """
    Load and validate the billing configuration.

    Args:
        path: YAML file to load.  Defaults to ``billing_config/defaults.yaml``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If validation fails.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_billing_config(config_path)

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": config.currency,
            "max_attempts": config.confirmation.max_attempts,
            "base_delay_seconds": config.confirmation.base_delay_seconds,
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "ConfirmationPolicy",
    "DEFAULT_CONFIG_PATH",
    "get_active_config",
]

"""
Billing configuration schema.

Frozen dataclasses the YAML configuration is parsed into.  Amount-free:
currency code, payment confirmation policy and the due-date filters the
list screens offer.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from billing_engines.due_window import DueWindow


@dataclass(frozen=True)
class ConfirmationPolicy:
    """
    Polling policy for payment confirmation.

    Attempt k waits ``k * base_delay_seconds`` before reading the snapshot.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay_seconds < 0:
            raise ValueError(
                f"base_delay_seconds must be >= 0, got {self.base_delay_seconds}"
            )


@dataclass(frozen=True)
class BillingConfig:
    """Runtime billing configuration."""

    config_id: str
    version: int
    currency: str = "INR"
    confirmation: ConfirmationPolicy = field(default_factory=ConfirmationPolicy)
    due_windows: tuple[str, ...] = ("all", "overdue", "7", "15", "20", "31", "45")
    checksum: str = ""

    def windows(self) -> tuple[DueWindow, ...]:
        return tuple(DueWindow.parse(token) for token in self.due_windows)

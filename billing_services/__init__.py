"""
billing_services -- stateful orchestration over the pure billing engines.

Payment confirmation polling, snapshot sources and the caller-facing
BillingService facade live here; engines stay pure and clock-free.
"""

from billing_services.billing_service import BillingService, DocumentView
from billing_services.payment_confirmation import (
    ConfirmationHandle,
    ConfirmationOutcome,
    ConfirmationPending,
    ConfirmationState,
    GatewayFailure,
    PaymentConfirmationCoordinator,
    event_wait,
    linear_delay,
    payment_visible,
)
from billing_services.snapshot_sources import (
    SelectorSnapshotSource,
    SnapshotSource,
    StaticSnapshotSource,
)

__all__ = [
    "BillingService",
    "DocumentView",
    "ConfirmationHandle",
    "ConfirmationOutcome",
    "ConfirmationPending",
    "ConfirmationState",
    "GatewayFailure",
    "PaymentConfirmationCoordinator",
    "event_wait",
    "linear_delay",
    "payment_visible",
    "SelectorSnapshotSource",
    "SnapshotSource",
    "StaticSnapshotSource",
]

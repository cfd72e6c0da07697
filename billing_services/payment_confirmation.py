"""
PaymentConfirmationCoordinator -- Reconcile a gateway "payment succeeded"
callback against the eventually consistent billing backend.

Contract:
    After the gateway reports success, the backend may not show the
    payment yet.  The coordinator re-reads the document snapshot a bounded
    number of times with growing delays (attempt k waits
    ``delay_fn(k, base_delay)``, linear by default) and reports exactly one
    outcome per payment:

        IDLE --gateway_success--> POLLING(1..N) --> CONFIRMED | GIVEN_UP
        IDLE --gateway_failure--> FAILED
        IDLE | POLLING --cancel--> CANCELLED

    GIVEN_UP is not an error: the payment most likely went through and the
    caller should ask the user to refresh later (``ConfirmationPending``).

Architecture: billing_services.  Reads snapshots through a SnapshotSource,
    derives balances with ReconciliationEngine (pure), and follows the
    stop-event polling loop used by the batch scheduler: waits are
    ``Event.wait(timeout)`` so cancellation wakes them immediately.

Invariants enforced:
    - on_outcome is invoked exactly once per handle.
    - No snapshot query is issued after cancel(); the result of a query
      already in flight when cancel() is called is discarded.
    - A snapshot query that raises counts as an unconfirmed attempt.
    - Any other error inside the polling loop ends it as GIVEN_UP.
    - Handles share no mutable state; one coordinator may serve many
      concurrent payments.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from billing_config.schema import ConfirmationPolicy
from billing_engines.reconciliation import ReconciliationEngine, ReconciliationResult
from billing_kernel.domain.ledger import LedgerDocument
from billing_kernel.exceptions import InvalidConfirmationTransitionError
from billing_kernel.logging_config import LogContext, get_logger
from billing_services.snapshot_sources import SnapshotSource

logger = get_logger("services.payment_confirmation")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 2.0

PENDING_MESSAGE = (
    "Payment received by the gateway but not yet reflected by billing. "
    "It will appear shortly; refresh to see the updated status."
)


class ConfirmationState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    GIVEN_UP = "given_up"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (ConfirmationState.IDLE, ConfirmationState.POLLING)


@dataclass(frozen=True)
class ConfirmationPending:
    """Polling ran out before the backend showed the payment."""

    document_id: str
    attempts: int
    message: str = PENDING_MESSAGE


@dataclass(frozen=True)
class GatewayFailure:
    """The gateway reported the payment as failed or dismissed."""

    document_id: str
    reason: str | None = None


@dataclass(frozen=True)
class ConfirmationOutcome:
    """
    Terminal result of one payment confirmation.

    ``document`` / ``reconciliation`` hold the last snapshot read, if any.
    ``total_delay`` is the sum of the delays waited before each query.
    """

    document_id: str
    state: ConfirmationState
    attempts: int
    document: LedgerDocument | None = None
    reconciliation: ReconciliationResult | None = None
    gateway_reference: str | None = None
    failure_reason: str | None = None
    total_delay: float = 0.0

    @property
    def is_confirmed(self) -> bool:
        return self.state == ConfirmationState.CONFIRMED

    @property
    def is_failure(self) -> bool:
        return self.state == ConfirmationState.FAILED

    @property
    def pending(self) -> ConfirmationPending | None:
        if self.state != ConfirmationState.GIVEN_UP:
            return None
        return ConfirmationPending(self.document_id, self.attempts)

    @property
    def gateway_failure(self) -> GatewayFailure | None:
        if self.state != ConfirmationState.FAILED:
            return None
        return GatewayFailure(self.document_id, self.failure_reason)


OutcomeCallback = Callable[[ConfirmationOutcome], None]
DelayFn = Callable[[int, float], float]
Waiter = Callable[[float, threading.Event], bool]


def linear_delay(attempt: int, base_delay: float) -> float:
    """Attempt k waits k * base_delay."""
    return attempt * base_delay


def payment_visible(document: LedgerDocument) -> bool:
    """Default confirmation predicate: settled, or some payment recorded."""
    return document.outstanding_amount.is_zero or document.paid_amount.is_positive


def event_wait(delay: float, cancelled: threading.Event) -> bool:
    """Sleep ``delay`` seconds unless cancelled first.  True if cancelled."""
    return cancelled.wait(timeout=delay)


class ConfirmationHandle:
    """
    One payment's confirmation state machine.

    Created by ``PaymentConfirmationCoordinator.confirm_payment``; the
    caller forwards the gateway callback to ``gateway_success`` or
    ``gateway_failure`` and may ``cancel()`` at any time.
    """

    def __init__(
        self,
        coordinator: PaymentConfirmationCoordinator,
        document_id: str,
        on_outcome: OutcomeCallback | None,
    ):
        self.document_id = document_id
        self._coordinator = coordinator
        self._on_outcome = on_outcome
        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._state = ConfirmationState.IDLE
        self._attempt = 0
        self._total_delay = 0.0
        self._reference: str | None = None
        self._outcome: ConfirmationOutcome | None = None
        self._last_document: LedgerDocument | None = None
        self._last_result: ReconciliationResult | None = None
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConfirmationState:
        return self._state

    @property
    def attempt(self) -> int:
        """Number of snapshot queries issued so far."""
        return self._attempt

    @property
    def outcome(self) -> ConfirmationOutcome | None:
        return self._outcome

    @property
    def gateway_reference(self) -> str | None:
        return self._reference

    def gateway_success(self, reference: str | None = None) -> None:
        """
        The gateway reported success; start polling.

        Raises:
            InvalidConfirmationTransitionError: the handle already left IDLE.
        """
        with self._lock:
            self._require_idle("gateway_success")
            self._state = ConfirmationState.POLLING
            self._reference = reference

        logger.info("payment_confirmation_started", extra={
            "document_id": self.document_id,
            "payment_reference": reference,
            "max_attempts": self._coordinator.max_attempts,
        })

        if self._coordinator.run_in_background:
            self._thread = threading.Thread(
                target=self._poll,
                name=f"payment-confirmation-{self.document_id}",
                daemon=True,
            )
            self._thread.start()
        else:
            self._poll()

    def gateway_failure(self, reason: str | None = None) -> None:
        """
        The gateway reported failure or the user dismissed the checkout.

        Raises:
            InvalidConfirmationTransitionError: the handle already left IDLE.
        """
        self._finish(
            ConfirmationState.FAILED,
            failure_reason=reason,
            from_idle_event="gateway_failure",
        )
        logger.info("payment_gateway_failed", extra={
            "document_id": self.document_id,
            "reason": reason,
        })

    def cancel(self) -> bool:
        """
        Stop confirming.  Wakes a pending wait; no further query is issued.

        Returns False if an outcome was already reported.
        """
        self._cancelled.set()
        finished = self._finish(ConfirmationState.CANCELLED)
        if finished:
            logger.info("payment_confirmation_cancelled", extra={
                "document_id": self.document_id,
                "attempts": self._attempt,
            })
        return finished

    def wait(self, timeout: float | None = None) -> ConfirmationOutcome | None:
        """Block until an outcome exists; None on timeout."""
        self._done.wait(timeout=timeout)
        return self._outcome

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _require_idle(self, event: str) -> None:
        if self._state != ConfirmationState.IDLE:
            raise InvalidConfirmationTransitionError(
                document_id=self.document_id,
                from_state=self._state.value,
                event=event,
            )

    def _poll(self) -> None:
        """
        Run the polling loop; an unexpected error ends it as GIVEN_UP so
        the outcome is still reported.
        """
        with LogContext.bind(
            document_id=self.document_id, payment_reference=self._reference
        ):
            try:
                self._poll_attempts()
            except Exception as exc:
                logger.exception("payment_confirmation_poll_failed", extra={
                    "document_id": self.document_id,
                    "attempt": self._attempt,
                })
                self._finish(
                    ConfirmationState.GIVEN_UP,
                    document=self._last_document,
                    reconciliation=self._last_result,
                    failure_reason=str(exc),
                )

    def _poll_attempts(self) -> None:
        """Bounded polling loop.  Exits early once cancelled."""
        coordinator = self._coordinator
        for attempt in range(1, coordinator.max_attempts + 1):
            delay = coordinator.delay_fn(attempt, coordinator.base_delay)
            if coordinator.waiter(delay, self._cancelled) or self._cancelled.is_set():
                return

            with self._lock:
                if self._state.is_terminal:
                    return
                self._attempt = attempt
                self._total_delay += delay

            try:
                document = coordinator.snapshot_source.fetch(self.document_id)
                result = coordinator.engine.reconcile(document)
                confirmed = coordinator.is_confirmed(document)
            except Exception:
                logger.warning("payment_confirmation_query_failed", extra={
                    "document_id": self.document_id,
                    "attempt": attempt,
                }, exc_info=True)
                continue

            if self._cancelled.is_set():
                logger.debug("payment_confirmation_result_discarded", extra={
                    "document_id": self.document_id,
                    "attempt": attempt,
                })
                return

            self._last_document, self._last_result = document, result
            logger.debug("payment_confirmation_attempt", extra={
                "document_id": self.document_id,
                "attempt": attempt,
                "delay_seconds": delay,
                "confirmed": confirmed,
                "outstanding_amount": result.outstanding_amount.amount,
            })

            if confirmed:
                self._finish(
                    ConfirmationState.CONFIRMED,
                    document=document,
                    reconciliation=result,
                )
                return

        self._finish(
            ConfirmationState.GIVEN_UP,
            document=self._last_document,
            reconciliation=self._last_result,
        )

    def _finish(
        self,
        state: ConfirmationState,
        document: LedgerDocument | None = None,
        reconciliation: ReconciliationResult | None = None,
        failure_reason: str | None = None,
        from_idle_event: str | None = None,
    ) -> bool:
        """
        Record the single outcome.  False if one was already recorded.

        With ``from_idle_event`` the handle must still be IDLE; the check
        and the transition happen under one lock.
        """
        with self._lock:
            if from_idle_event is not None:
                self._require_idle(from_idle_event)
            elif self._state.is_terminal:
                return False
            self._state = state
            self._outcome = ConfirmationOutcome(
                document_id=self.document_id,
                state=state,
                attempts=self._attempt,
                document=document,
                reconciliation=reconciliation,
                gateway_reference=self._reference,
                failure_reason=failure_reason,
                total_delay=self._total_delay,
            )
            outcome = self._outcome
        self._done.set()

        logger.info("payment_confirmation_finished", extra={
            "document_id": self.document_id,
            "state": state.value,
            "attempts": outcome.attempts,
            "total_delay_seconds": outcome.total_delay,
        })

        if self._on_outcome is not None:
            try:
                self._on_outcome(outcome)
            except Exception:
                logger.exception("payment_confirmation_callback_failed", extra={
                    "document_id": self.document_id,
                    "state": state.value,
                })
        return True


class PaymentConfirmationCoordinator:
    """
    Creates one ConfirmationHandle per payment.

    Contract:
        Holds configuration only; every piece of mutable state lives in
        the handle it returns.

    Non-goals:
        - Does NOT talk to the payment gateway; the caller relays the
          gateway callback to the handle.
        - Does NOT write to the backend; it only reads snapshots.
    """

    def __init__(
        self,
        snapshot_source: SnapshotSource,
        policy: ConfirmationPolicy | None = None,
        engine: ReconciliationEngine | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        delay_fn: DelayFn = linear_delay,
        is_confirmed: Callable[[LedgerDocument], bool] = payment_visible,
        waiter: Waiter = event_wait,
        run_in_background: bool = True,
    ):
        if max_attempts is None:
            max_attempts = policy.max_attempts if policy else DEFAULT_MAX_ATTEMPTS
        if base_delay is None:
            base_delay = policy.base_delay_seconds if policy else DEFAULT_BASE_DELAY_SECONDS
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {base_delay}")

        self.snapshot_source = snapshot_source
        self.engine = engine or ReconciliationEngine()
        self.max_attempts = max_attempts
        self.base_delay = float(base_delay)
        self.delay_fn = delay_fn
        self.is_confirmed = is_confirmed
        self.waiter = waiter
        self.run_in_background = run_in_background

    def confirm_payment(
        self,
        document_id: str,
        on_outcome: OutcomeCallback | None = None,
    ) -> ConfirmationHandle:
        """Start tracking a payment for ``document_id``; the handle begins IDLE."""
        return ConfirmationHandle(self, document_id, on_outcome)

    def max_total_delay(self) -> float:
        """Worst-case wait before GIVEN_UP is reported."""
        return sum(
            self.delay_fn(attempt, self.base_delay)
            for attempt in range(1, self.max_attempts + 1)
        )

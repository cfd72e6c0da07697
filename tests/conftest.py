"""
Pytest fixtures for the billing reconciliation test suite.

Provides:
- Structured logging configuration and capture
- Ledger replica database (file-backed SQLite, one session per query)
- A default invoice (builders live in tests/builders.py)
"""

import json
import logging
from datetime import datetime, timezone
from io import StringIO

import pytest

from billing_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.builders import make_invoice


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            engine.reconcile(invoice)
            logs = captured_logs()
            assert any(r["message"] == "BILLING_ENGINE_TRACE" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc))


# =============================================================================
# Documents
# =============================================================================


@pytest.fixture
def invoice():
    return make_invoice()


# =============================================================================
# Ledger replica database
# =============================================================================


@pytest.fixture
def replica_db(tmp_path):
    """
    File-backed SQLite ledger replica.

    A file (not :memory:) so that sessions opened from polling threads see
    the same tables.  Yields the session factory.
    """
    init_engine_from_url(f"sqlite:///{tmp_path / 'replica.db'}")
    create_tables()
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def session(replica_db):
    session = replica_db()
    yield session
    session.rollback()
    session.close()

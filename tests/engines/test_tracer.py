"""Tests for the engine tracer decorator."""

from datetime import date
from decimal import Decimal

from billing_engines.tracer import compute_input_fingerprint, traced_engine


@traced_engine("sample", "2.1", fingerprint_fields=("amount", "as_of"))
def _sample(amount, as_of, note=None):
    return amount * 2


class TestFingerprint:
    def test_deterministic(self):
        args = {"amount": Decimal("10.00"), "as_of": date(2024, 3, 1)}
        assert compute_input_fingerprint(("amount", "as_of"), args) == (
            compute_input_fingerprint(("amount", "as_of"), dict(args))
        )

    def test_length(self):
        assert len(compute_input_fingerprint(("x",), {"x": 1})) == 16

    def test_missing_field_is_null(self):
        assert compute_input_fingerprint(("x",), {}) == compute_input_fingerprint(
            ("x",), {"x": None}
        )

    def test_dict_key_order_irrelevant(self):
        a = compute_input_fingerprint(("d",), {"d": {"a": 1, "b": 2}})
        b = compute_input_fingerprint(("d",), {"d": {"b": 2, "a": 1}})
        assert a == b

    def test_different_inputs_differ(self):
        assert compute_input_fingerprint(("x",), {"x": 1}) != compute_input_fingerprint(
            ("x",), {"x": 2}
        )


class TestTracedEngine:
    def test_result_passed_through(self):
        assert _sample(Decimal("2"), date(2024, 3, 1)) == Decimal("4")

    def test_trace_record(self, captured_logs):
        _sample(Decimal("2"), as_of=date(2024, 3, 1))
        _sample(amount=Decimal("2"), as_of=date(2024, 3, 1), note="ignored")
        traces = [r for r in captured_logs() if r["message"] == "BILLING_ENGINE_TRACE"]
        assert len(traces) == 2
        assert traces[0]["engine_name"] == "sample"
        assert traces[0]["engine_version"] == "2.1"
        assert traces[0]["function"] == "_sample"
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
        assert traces[0]["duration_ms"] >= 0

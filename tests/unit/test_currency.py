"""
Tests for currency validation and precision.

- Currency codes are validated at the domain boundary.
- Rounding precision is derived from the currency, never fixed.
"""

from decimal import Decimal

import pytest

from billing_kernel.domain.currency import CurrencyRegistry
from billing_kernel.domain.values import Currency


class TestCurrencyRegistry:
    """Tests for the ISO 4217 registry."""

    def test_known_codes(self):
        for code in ["INR", "USD", "EUR", "GBP", "JPY", "KWD"]:
            assert CurrencyRegistry.is_valid(code)

    def test_unknown_codes(self):
        for code in ["XXY", "ABC", "123", "US", "", "inr"]:
            assert not CurrencyRegistry.is_valid(code)

    def test_decimal_places(self):
        assert CurrencyRegistry.get_decimal_places("INR") == 2
        assert CurrencyRegistry.get_decimal_places("JPY") == 0
        assert CurrencyRegistry.get_decimal_places("BHD") == 3

    def test_quantum(self):
        assert CurrencyRegistry.get_info("INR").quantum == Decimal("0.01")
        assert CurrencyRegistry.get_info("KWD").quantum == Decimal("0.001")

    def test_default_is_inr(self):
        assert CurrencyRegistry.DEFAULT_CODE == "INR"
        assert "INR" in CurrencyRegistry.all_codes()


class TestCurrencyValue:
    """Tests for the Currency value object."""

    def test_lowercase_normalized(self):
        assert Currency("inr").code == "INR"

    def test_invalid_rejected(self):
        with pytest.raises(ValueError, match="Invalid ISO 4217 currency code"):
            Currency("XYZ")

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            Currency("")

"""Currency -- ISO 4217 registry for billing amounts."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, for Decimal.quantize()."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of the currencies the billing backend issues documents in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
    }

    DEFAULT_CODE: ClassVar[str] = "INR"

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Decimal places for a code; unknown codes fall back to 2."""
        info = cls._CURRENCIES.get(code)
        return info.decimal_places if info else 2

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)

"""Registry of the fixed set of currencies quoted against the home currency."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass(frozen=True)
class SupportedCurrency:
    """A currency the upstream publisher quotes, with its quoting unit."""

    code: str
    name: str
    unit: int = 1


SUPPORTED_CURRENCIES: tuple[SupportedCurrency, ...] = (
    SupportedCurrency("INR", "Indian Rupee", 100),
    SupportedCurrency("USD", "U.S. Dollar"),
    SupportedCurrency("EUR", "European Euro"),
    SupportedCurrency("GBP", "UK Pound Sterling"),
    SupportedCurrency("CHF", "Swiss Franc"),
    SupportedCurrency("AUD", "Australian Dollar"),
    SupportedCurrency("CAD", "Canadian Dollar"),
    SupportedCurrency("SGD", "Singapore Dollar"),
    SupportedCurrency("JPY", "Japanese Yen", 10),
    SupportedCurrency("CNY", "Chinese Yuan"),
    SupportedCurrency("SAR", "Saudi Arabian Riyal"),
    SupportedCurrency("QAR", "Qatari Riyal"),
    SupportedCurrency("THB", "Thai Baht"),
    SupportedCurrency("AED", "U.A.E Dirham"),
    SupportedCurrency("MYR", "Malaysian Ringgit"),
    SupportedCurrency("KRW", "South Korean Won", 100),
    SupportedCurrency("SEK", "Swedish Kroner"),
    SupportedCurrency("DKK", "Danish Kroner"),
    SupportedCurrency("HKD", "Hong Kong Dollar"),
    SupportedCurrency("KWD", "Kuwaity Dinar"),
    SupportedCurrency("BHD", "Bahrain Dinar"),
    SupportedCurrency("OMR", "Omani Rial"),
)

CURRENCY_CODES: tuple[str, ...] = tuple(currency.code for currency in SUPPORTED_CURRENCIES)


@dataclass
class CurrencyRegistry:
    """Provides fast lookup for the supported currency codes."""

    currencies: dict[str, SupportedCurrency] = field(
        default_factory=lambda: {currency.code: currency for currency in SUPPORTED_CURRENCIES}
    )

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(self.currencies)

    def is_allowed(self, code: str | None) -> bool:
        """Check if the given code is one of the supported currencies."""

        if not code:
            return False
        return code.strip().upper() in self.currencies

    def get(self, code: str) -> SupportedCurrency:
        """Return currency metadata; raises KeyError for unsupported codes."""

        return self.currencies[code.strip().upper()]

    def unit_for(self, code: str) -> int:
        return self.get(code).unit

    def __iter__(self) -> Iterator[SupportedCurrency]:
        return iter(self.currencies.values())


registry = CurrencyRegistry()


def init_registry(app) -> CurrencyRegistry:
    """Attach the registry to the Flask app."""

    app.extensions["currency_registry"] = registry
    return registry

"""Currency -- ISO 4217 registry, precision-derived rounding and rate checks."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

from commerce_kernel.exceptions import InvalidCurrencyError, InvalidExchangeRateError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, usable with ``Decimal.quantize``."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies documents may be issued in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "CNY": CurrencyInfo("CNY", 2, "Yuan Renminbi"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "XOF": CurrencyInfo("XOF", 0, "West African CFA Franc"),
        "XAF": CurrencyInfo("XAF", 0, "Central African CFA Franc"),
        "TND": CurrencyInfo("TND", 3, "Tunisian Dinar"),
        "LYD": CurrencyInfo("LYD", 3, "Libyan Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Rial Omani"),
        "DZD": CurrencyInfo("DZD", 2, "Algerian Dinar"),
        "MAD": CurrencyInfo("MAD", 2, "Moroccan Dirham"),
        "EGP": CurrencyInfo("EGP", 2, "Egyptian Pound"),
        "SAR": CurrencyInfo("SAR", 2, "Saudi Riyal"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "TRY": CurrencyInfo("TRY", 2, "Turkish Lira"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "ZAR": CurrencyInfo("ZAR", 2, "Rand"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is known."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code.

        Raises:
            InvalidCurrencyError: if the code is empty or unknown.
        """
        if not code or not isinstance(code, str):
            raise InvalidCurrencyError(repr(code))
        normalized = code.upper().strip()
        if normalized not in cls._CURRENCIES:
            raise InvalidCurrencyError(code)
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES.keys())


def quantize_amount(amount: Decimal, currency: str) -> Decimal:
    """Round ``amount`` half-up to the precision of ``currency``."""
    places = CurrencyRegistry.get_decimal_places(currency)
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def normalize_exchange_rate(
    currency: str,
    base_currency: str,
    exchange_rate: Decimal | None,
) -> Decimal:
    """
    Resolve the exchange rate stored on a document.

    A document in the base currency always carries a rate of 1.  A foreign
    currency document must carry a positive rate other than 1, entered by
    the user (rates are never looked up).

    Raises:
        InvalidExchangeRateError: for a missing, non-positive or unit rate
            on a foreign-currency document.
    """
    if currency == base_currency:
        return Decimal("1")
    if exchange_rate is None:
        raise InvalidExchangeRateError(
            currency, "None", f"an exchange rate to {base_currency} is required"
        )
    rate = Decimal(exchange_rate)
    if rate <= 0:
        raise InvalidExchangeRateError(currency, str(rate), "rate must be positive")
    if rate == 1:
        raise InvalidExchangeRateError(
            currency, str(rate), f"a unit rate is only valid for {base_currency}"
        )
    return rate

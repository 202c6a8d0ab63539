"""Currency -- ISO 4217 registry of canonical currency identities and symbols."""

from dataclasses import dataclass
from typing import ClassVar

from wallet_kernel.exceptions import InvalidCurrencyError


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str


class CurrencyRegistry:
    """Static registry of the ISO 4217 currencies a wallet may register."""

    # Source: https://www.iso.org/iso-4217-currency-codes.html
    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        info.code: info
        for info in (
            # Major currencies
            CurrencyInfo("USD", 2, "US Dollar"),
            CurrencyInfo("EUR", 2, "Euro"),
            CurrencyInfo("GBP", 2, "Pound Sterling"),
            CurrencyInfo("JPY", 0, "Japanese Yen"),
            CurrencyInfo("CHF", 2, "Swiss Franc"),
            CurrencyInfo("CAD", 2, "Canadian Dollar"),
            CurrencyInfo("AUD", 2, "Australian Dollar"),
            CurrencyInfo("NZD", 2, "New Zealand Dollar"),
            CurrencyInfo("CNY", 2, "Chinese Yuan"),
            # Latin America
            CurrencyInfo("ARS", 2, "Argentine Peso"),
            CurrencyInfo("BOB", 2, "Bolivian Boliviano"),
            CurrencyInfo("BRL", 2, "Brazilian Real"),
            CurrencyInfo("CLP", 0, "Chilean Peso"),
            CurrencyInfo("CLF", 4, "Chilean Unidad de Fomento"),
            CurrencyInfo("COP", 2, "Colombian Peso"),
            CurrencyInfo("MXN", 2, "Mexican Peso"),
            CurrencyInfo("PEN", 2, "Peruvian Sol"),
            CurrencyInfo("PYG", 0, "Paraguayan Guarani"),
            CurrencyInfo("UYU", 2, "Uruguayan Peso"),
            # Europe
            CurrencyInfo("CZK", 2, "Czech Koruna"),
            CurrencyInfo("DKK", 2, "Danish Krone"),
            CurrencyInfo("HUF", 2, "Hungarian Forint"),
            CurrencyInfo("ISK", 0, "Icelandic Krona"),
            CurrencyInfo("NOK", 2, "Norwegian Krone"),
            CurrencyInfo("PLN", 2, "Polish Zloty"),
            CurrencyInfo("RON", 2, "Romanian Leu"),
            CurrencyInfo("SEK", 2, "Swedish Krona"),
            CurrencyInfo("TRY", 2, "Turkish Lira"),
            # Asia / Pacific
            CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
            CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
            CurrencyInfo("INR", 2, "Indian Rupee"),
            CurrencyInfo("KRW", 0, "South Korean Won"),
            CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
            CurrencyInfo("PHP", 2, "Philippine Peso"),
            CurrencyInfo("SGD", 2, "Singapore Dollar"),
            CurrencyInfo("THB", 2, "Thai Baht"),
            CurrencyInfo("TWD", 2, "New Taiwan Dollar"),
            CurrencyInfo("VND", 0, "Vietnamese Dong"),
            # Middle East / Africa
            CurrencyInfo("AED", 2, "UAE Dirham"),
            CurrencyInfo("BHD", 3, "Bahraini Dinar"),
            CurrencyInfo("EGP", 2, "Egyptian Pound"),
            CurrencyInfo("ILS", 2, "Israeli New Shekel"),
            CurrencyInfo("JOD", 3, "Jordanian Dinar"),
            CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
            CurrencyInfo("NGN", 2, "Nigerian Naira"),
            CurrencyInfo("SAR", 2, "Saudi Riyal"),
            CurrencyInfo("ZAR", 2, "South African Rand"),
        )
    }

    @classmethod
    def validate(cls, code: str) -> str:
        """
        Validate and normalize a currency code.

        Returns:
            The uppercase, trimmed code.

        Raises:
            InvalidCurrencyError: If the code is empty, not 3 characters, or
                not in the registry.
        """
        if not code or not isinstance(code, str):
            raise InvalidCurrencyError(str(code))

        normalized = code.strip().upper()
        if len(normalized) != 3 or normalized not in cls._CURRENCIES:
            raise InvalidCurrencyError(code)
        return normalized

    @classmethod
    def is_valid(cls, code: str) -> bool:
        try:
            cls.validate(code)
        except InvalidCurrencyError:
            return False
        return True

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo:
        """Get registry information for a currency code."""
        return cls._CURRENCIES[cls.validate(code)]

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)

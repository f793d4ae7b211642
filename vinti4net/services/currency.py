"""
ISO 4217 alpha-3 <-> numeric currency codes accepted by the SISP gateway.
"""

from types import MappingProxyType
from typing import Union

from vinti4net.core.exceptions import InvalidCurrency

CURRENCY_CVE = 132

CURRENCY_CODES = MappingProxyType({
    "CVE": 132,  # Cape Verdean Escudo
    "USD": 840,
    "EUR": 978,
    "BRL": 986,
    "GBP": 826,
    "JPY": 392,
    "AUD": 36,
    "CAD": 124,
    "CHF": 756,
    "CNY": 156,
    "INR": 356,
    "ZAR": 710,
    "RUB": 643,
    "MXN": 484,
    "KRW": 410,
    "SGD": 702,
})

CURRENCY_SYMBOLS = MappingProxyType({code: symbol for symbol, code in CURRENCY_CODES.items()})


class CurrencyCodec:
    """Maps currency symbols to the numeric codes the gateway expects."""

    @staticmethod
    def to_code(currency: Union[str, int]) -> int:
        """
        Convert a currency symbol (any case) or numeric code to the numeric code.

        Raises:
            InvalidCurrency: If the value is neither a known symbol nor numeric
        """
        if isinstance(currency, bool):
            raise InvalidCurrency(currency)
        if isinstance(currency, int):
            return currency

        text = str(currency).strip()
        code = CURRENCY_CODES.get(text.upper())
        if code is not None:
            return code
        if text.isascii() and text.isdigit() and len(text) <= 4:
            return int(text)
        raise InvalidCurrency(currency)

    @staticmethod
    def to_symbol(currency: Union[str, int, None]) -> str:
        """Best-effort reverse lookup; unknown values are returned unchanged."""
        if currency is None:
            return ""
        text = str(currency).strip()
        if text.isascii() and text.isdigit() and len(text) <= 4:
            return CURRENCY_SYMBOLS.get(int(text), text)
        return text.upper()


to_code = CurrencyCodec.to_code
to_symbol = CurrencyCodec.to_symbol

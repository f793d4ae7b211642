import pytest

from vinti4net.core.exceptions import InvalidArgument, InvalidCurrency
from vinti4net.services.currency import CURRENCY_CODES, CurrencyCodec


class TestCurrencyCodecUnit:
    @pytest.mark.parametrize("value", ["cve", "CVE", " Cve ", "132", 132])
    def test_cape_verde_escudo_forms(self, value):
        assert CurrencyCodec.to_code(value) == 132

    def test_known_symbols(self):
        assert CurrencyCodec.to_code("usd") == 840
        assert CurrencyCodec.to_code("EUR") == 978
        assert CurrencyCodec.to_code("aud") == 36
        assert len(CURRENCY_CODES) == 16

    def test_numeric_string_passes_through_as_int(self):
        code = CurrencyCodec.to_code("978")
        assert code == 978
        assert isinstance(code, int)

    @pytest.mark.parametrize("value", ["XYZ", "", "12.5", "euro", True, "9" * 50])
    def test_unknown_currency(self, value):
        with pytest.raises(InvalidCurrency) as exc_info:
            CurrencyCodec.to_code(value)

        assert isinstance(exc_info.value, InvalidArgument)
        assert exc_info.value.field == "currency"
        assert exc_info.value.http_status_code == 400

    def test_to_symbol(self):
        assert CurrencyCodec.to_symbol(132) == "CVE"
        assert CurrencyCodec.to_symbol("978") == "EUR"
        assert CurrencyCodec.to_symbol("999") == "999"
        assert CurrencyCodec.to_symbol(None) == ""

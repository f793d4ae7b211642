import base64
import json
import pytest
from datetime import datetime
from types import SimpleNamespace

from vinti4net.core.exceptions import InvalidArgument, MissingBillingField
from vinti4net.services.billing import REQUIRED_BILLING_FIELDS, BillingNormalizer


class TestPhoneExtractionUnit:
    def test_plus_prefix_sets_country_code(self):
        result = BillingNormalizer.normalize({"user": {"phone": "+23899123456"}})

        assert result["mobilePhone"] == {"cc": "238", "subscriber": "23899123456"}

    def test_double_zero_prefix(self):
        assert BillingNormalizer.extract_phone("00351 912 345 678") == {
            "cc": "351",
            "subscriber": "00351912345678",
        }

    def test_no_prefix_defaults_to_cabo_verde(self):
        assert BillingNormalizer.extract_phone("991 23 45") == {"cc": "238", "subscriber": "9912345"}

    def test_explicit_country_code_wins(self):
        assert BillingNormalizer.extract_phone("+1 555 0100", cc="44") == {
            "cc": "44",
            "subscriber": "15550100",
        }

    def test_gateway_shaped_record_passes_through(self):
        assert BillingNormalizer.extract_phone({"cc": "238", "subscriber": "991-2345"}) == {
            "cc": "238",
            "subscriber": "9912345",
        }

    @pytest.mark.parametrize("raw", [None, "", "no digits", {"cc": "238"}])
    def test_empty_phone_is_dropped(self, raw):
        assert BillingNormalizer.extract_phone(raw) is None


class TestBillingNormalizationUnit:
    def test_gateway_keys_win_over_user_keys(self):
        result = BillingNormalizer.normalize({
            "billAddrCity": "Praia",
            "user": {"city": "Mindelo", "address": "Rua Y", "email": "u@loja.cv"},
        })

        assert result["billAddrCity"] == "Praia"
        assert result["billAddrLine1"] == "Rua Y"
        assert result["email"] == "u@loja.cv"

    def test_defaults_and_empty_values_dropped(self):
        result = BillingNormalizer.normalize({})

        assert result["billAddrCountry"] == "132"
        assert "billAddrCity" not in result
        assert "billAddrLine2" not in result
        assert "email" not in result
        assert "mobilePhone" not in result

    def test_user_object_attributes_are_read(self):
        user = SimpleNamespace(id=42, email="obj@loja.cv", city="Praia", created_at=None, updated_at=None)

        result = BillingNormalizer.normalize({"user": user})

        assert result["acctID"] == "42"
        assert result["email"] == "obj@loja.cv"

    def test_account_info_from_timestamps(self):
        result = BillingNormalizer.normalize({
            "user": {
                "created_at": "2023-01-05 10:00:00",
                "updated_at": datetime(2024, 6, 30, 8, 0),
                "suspicious": False,
            }
        })

        assert result["acctInfo"] == {
            "chAccAgeInd": "05",
            "chAccChange": "20240630",
            "chAccDate": "20230105",
            "chAccPwChange": "20240630",
            "chAccPwChangeInd": "05",
            "suspiciousAccActivity": "01",
        }

    def test_account_info_without_history(self):
        result = BillingNormalizer.normalize({"user": {"suspicious": True}})

        assert result["acctInfo"] == {
            "chAccAgeInd": "01",
            "chAccPwChangeInd": "01",
            "suspiciousAccActivity": "02",
        }

    def test_suspicious_flag_omitted_when_absent(self):
        result = BillingNormalizer.normalize({"user": {}})

        assert "suspiciousAccActivity" not in result["acctInfo"]

    def test_shipping_and_addr_match_pass_through(self):
        result = BillingNormalizer.normalize({"addrMatch": "Y", "shipAddrCity": "Praia"})

        assert result["addrMatch"] == "Y"
        assert result["shipAddrCity"] == "Praia"

    def test_non_mapping_rejected(self):
        with pytest.raises(InvalidArgument):
            BillingNormalizer.normalize(["not", "a", "map"])


class TestRequiredBillingUnit:
    def test_all_missing_fields_named(self):
        normalized = BillingNormalizer.normalize({"billAddrCity": "Praia"})

        with pytest.raises(MissingBillingField) as exc_info:
            BillingNormalizer.require(normalized)

        assert exc_info.value.fields == ["billAddrLine1", "billAddrPostCode", "email"]
        assert str(exc_info.value) == (
            "missing required billing fields: billAddrLine1, billAddrPostCode, email"
        )

    def test_complete_billing_passes(self, valid_billing):
        normalized = BillingNormalizer.normalize(valid_billing)

        BillingNormalizer.require(normalized)
        assert BillingNormalizer.missing_fields(normalized) == []
        assert set(REQUIRED_BILLING_FIELDS) <= set(normalized)

    def test_purchase_request_is_unescaped_utf8_json(self):
        normalized = {"billAddrCity": "São Filipe", "email": "a@b.cv"}

        encoded = BillingNormalizer.encode_purchase_request(normalized)
        raw = base64.b64decode(encoded).decode("utf-8")

        assert "São Filipe" in raw
        assert json.loads(raw) == normalized

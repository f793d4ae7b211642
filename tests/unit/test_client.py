import base64
import json
import pytest

from vinti4net.client import RequestState, Vinti4Net
from vinti4net.core.config import AppConfig, GatewayConfig, LoggingConfig, RateLimitConfig
from vinti4net.core.exceptions import AlreadyPrepared, InvalidArgument, InvalidCurrency
from vinti4net.schemas.responses import CallbackStatus

POS_AUTH_CODE = "kfyhhKJH875ndu44"
RESPONSE_URL = "https://loja.cv/payments/callback"


class TestFacadePreparationUnit:
    def test_purchase_flow(self, gateway_client, valid_billing):
        prepared = gateway_client.prepare_purchase(2500, valid_billing).build(RESPONSE_URL)

        assert gateway_client.state is RequestState.SIGNED
        assert prepared.fields["currency"] == 132
        assert prepared.fields["transactionCode"] == "1"
        assert prepared.fields["urlMerchantResponse"] == RESPONSE_URL
        billing = json.loads(base64.b64decode(prepared.fields["purchaseRequest"]))
        assert billing["email"] == "a@b.cv"
        assert gateway_client.prepared_request is prepared

    def test_second_preparation_fails(self, gateway_client, valid_billing):
        gateway_client.prepare_purchase(2500, valid_billing)

        with pytest.raises(AlreadyPrepared) as exc_info:
            gateway_client.prepare_service(1000, 10001, "1234567")

        assert exc_info.value.http_status_code == 409
        assert gateway_client.state is RequestState.PREPARED

    def test_second_build_fails(self, gateway_client):
        gateway_client.prepare_service(1000, 10001, "1234567").build(RESPONSE_URL)

        with pytest.raises(AlreadyPrepared):
            gateway_client.build(RESPONSE_URL)
        with pytest.raises(AlreadyPrepared):
            gateway_client.set_request_params({"merchantRef": "R2"})

    def test_build_without_preparation(self, gateway_client):
        with pytest.raises(InvalidArgument):
            gateway_client.build(RESPONSE_URL)

    def test_failed_build_keeps_client_prepared(self, gateway_client):
        gateway_client.prepare_recharge(500, 10021, "")

        with pytest.raises(InvalidArgument):
            gateway_client.build(RESPONSE_URL)
        assert gateway_client.state is RequestState.PREPARED

    def test_request_params_are_applied(self, gateway_client):
        prepared = (
            gateway_client
            .set_request_params({"merchantRef": "PEDIDO42", "languageMessages": "en", "currency": "eur"})
            .prepare_service(1000, 10002, "7654321")
            .build(RESPONSE_URL)
        )

        assert prepared.fields["merchantRef"] == "PEDIDO42"
        assert prepared.fields["languageMessages"] == "en"
        assert prepared.fields["currency"] == 978
        assert prepared.fields["entityCode"] == 10002

    def test_purchase_keeps_currency_from_request_params(self, gateway_client, valid_billing):
        prepared = (
            gateway_client
            .set_request_params({"currency": "USD"})
            .prepare_purchase(2500, valid_billing)
            .build(RESPONSE_URL)
        )

        assert prepared.fields["currency"] == 840

    def test_purchase_currency_argument_wins(self, gateway_client, valid_billing):
        prepared = (
            gateway_client
            .set_request_params({"currency": "USD"})
            .prepare_purchase(2500, valid_billing, currency="EUR")
            .build(RESPONSE_URL)
        )

        assert prepared.fields["currency"] == 978

    def test_merchant_ref_override_on_build(self, gateway_client):
        prepared = gateway_client.prepare_service(1000, 10001, "1234567").build(RESPONSE_URL, "ENC-1")

        assert prepared.fields["merchantRef"] == "ENC-1"

    def test_unknown_param_rejected(self, gateway_client):
        with pytest.raises(InvalidArgument) as exc_info:
            gateway_client.set_request_params({"posID": "1"})

        assert exc_info.value.field == "posID"

    def test_unknown_currency_param(self, gateway_client):
        with pytest.raises(InvalidCurrency):
            gateway_client.set_request_params({"currency": "DOGE"})

    def test_refund_flow(self, gateway_client):
        prepared = gateway_client.prepare_refund(
            "1000", "R20250301120000", "S20250301120000", "12345678", "1234"
        ).build(RESPONSE_URL)

        assert prepared.transaction_code == "4"
        assert prepared.fields["reversal"] == "R"

    def test_refund_decimal_amount(self, gateway_client):
        gateway_client.prepare_refund("100.5", "R1", "S1", "12345678", "1234")

        with pytest.raises(InvalidArgument) as exc_info:
            gateway_client.build(RESPONSE_URL)

        assert "integer" in exc_info.value.message

    def test_payment_form(self, gateway_client, valid_billing):
        html = gateway_client.prepare_purchase(2500, valid_billing).create_payment_form(RESPONSE_URL)

        assert "document.forms[0].submit()" in html
        assert 'name="purchaseRequest"' in html
        assert 'name="transactionCode" value="1"' in html

    def test_credentials_required(self):
        with pytest.raises(InvalidArgument):
            Vinti4Net("90000045", "")

    def test_repr_hides_auth_code(self, gateway_client):
        assert POS_AUTH_CODE not in repr(gateway_client)


class TestFacadeConfigurationUnit:
    def test_from_gateway_config(self):
        config = GatewayConfig(
            pos_id="90000045",
            pos_auth_code=POS_AUTH_CODE,
            endpoint="https://test.vinti4net.cv/pay",
            language="fr",
        )

        client = Vinti4Net.from_config(config)
        prepared = client.prepare_service(1000, 10001, "1234567").build(RESPONSE_URL)

        assert prepared.post_url.startswith("https://test.vinti4net.cv/pay?")
        assert prepared.fields["languageMessages"] == "fr"

    def test_from_app_config(self):
        config = AppConfig(
            gateway=GatewayConfig(pos_id="123", pos_auth_code=POS_AUTH_CODE),
            rate_limit=RateLimitConfig(),
            logging=LoggingConfig(),
        )

        assert Vinti4Net.from_config(config).pos_id == "123"


class TestFacadeCallbackUnit:
    def test_process_response(self, gateway_client, callback_data):
        result = gateway_client.process_response(callback_data)

        assert result.status is CallbackStatus.SUCCESS

    def test_process_response_with_wrong_terminal(self, callback_data):
        other = Vinti4Net("90000045", "different-secret")

        assert other.process_response(callback_data).status is CallbackStatus.INVALID_FINGERPRINT

import dataclasses

import pytest
from fastapi.testclient import TestClient

from vinti4net.core.config import RateLimitConfig
from vinti4net.core.limiter import limiter
from vinti4net.main import create_app

POS_AUTH_CODE = "kfyhhKJH875ndu44"


def checkout_body(valid_billing, **overrides):
    body = {"amount": "2500", "currency": "CVE", "billing": valid_billing}
    body.update(overrides)
    return body


class TestCheckoutEndpointIntegration:
    def test_purchase_returns_redirect_form(self, client, valid_billing):
        response = client.post("/payments/purchase", json=checkout_body(valid_billing))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'action="https://mc.vinti4net.cv/BizMPIOnUsSisp/CardPayment?FingerPrint=' in response.text
        assert 'name="urlMerchantResponse" value="https://loja.cv/payments/callback"' in response.text
        assert POS_AUTH_CODE not in response.text

    def test_merchant_ref_and_response_url_from_body(self, client, valid_billing):
        response = client.post(
            "/payments/purchase",
            json=checkout_body(
                valid_billing,
                merchant_ref="PEDIDO42",
                response_url="https://outra.cv/retorno",
            ),
        )

        assert response.status_code == 200
        assert 'name="merchantRef" value="PEDIDO42"' in response.text
        assert 'value="https://outra.cv/retorno"' in response.text

    def test_missing_billing_fields(self, client):
        response = client.post(
            "/payments/purchase",
            json=checkout_body({"billAddrCity": "Praia"}),
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "MissingBillingField"
        assert body["fields"] == ["billAddrLine1", "billAddrPostCode", "email"]

    def test_unknown_currency(self, client, valid_billing):
        response = client.post("/payments/purchase", json=checkout_body(valid_billing, currency="XYZ"))

        assert response.status_code == 400
        assert response.json()["error"] == "InvalidCurrency"

    @pytest.mark.parametrize("body", [
        {"currency": "CVE", "billing": {}},
        {"amount": "-5", "billing": {}},
        {"amount": "10", "billing": {}, "currency": "euro"},
        {"amount": "10", "billing": {}, "merchant_ref": "R" * 16},
    ])
    def test_schema_validation(self, client, body):
        response = client.post("/payments/purchase", json=body)

        assert response.status_code == 422

    def test_missing_response_url(self, app_config, valid_billing):
        config = dataclasses.replace(
            app_config, gateway=dataclasses.replace(app_config.gateway, response_url=None)
        )
        limiter.reset()

        with TestClient(create_app(config)) as test_client:
            response = test_client.post("/payments/purchase", json=checkout_body(valid_billing))

        assert response.status_code == 400
        assert response.json()["field"] == "response_url"


class TestCheckoutRateLimitIntegration:
    def test_checkout_is_rate_limited(self, app_config, valid_billing):
        config = dataclasses.replace(
            app_config, rate_limit=RateLimitConfig(checkout_rate_limit="2/minute")
        )
        limiter.reset()

        with TestClient(create_app(config)) as test_client:
            statuses = [
                test_client.post("/payments/purchase", json=checkout_body(valid_billing)).status_code
                for _ in range(5)
            ]
        limiter.reset()

        assert statuses[0] == 200
        assert 429 in statuses

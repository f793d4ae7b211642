import base64
import hashlib
import pytest
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from fastapi.testclient import TestClient
from vinti4net.client import Vinti4Net
from vinti4net.core.config import (
    AppConfig,
    GatewayConfig,
    LoggingConfig,
    RateLimitConfig,
    set_config,
)
from vinti4net.core.limiter import limiter
from vinti4net.services.fingerprint import FingerprintEngine

# Test terminal
POS_ID = "90000045"
POS_AUTH_CODE = "kfyhhKJH875ndu44"
RESPONSE_URL = "https://loja.cv/payments/callback"
FIXED_NOW = datetime(2025, 3, 14, 9, 26, 53)

VALID_BILLING = {
    "email": "a@b.cv",
    "billAddrCountry": "132",
    "billAddrCity": "Praia",
    "billAddrLine1": "Rua X",
    "billAddrPostCode": "7600",
}


def _b64_sha512(text: str) -> str:
    return base64.b64encode(hashlib.sha512(text.encode("utf-8")).digest()).decode()


def _scaled(value) -> str:
    if value in (None, ""):
        return "0"
    return str(int((Decimal(str(value)) * 1000).to_integral_value(rounding=ROUND_DOWN)))


def _int_or_empty(value) -> str:
    return str(int(value)) if value not in (None, "", "0", 0) else ""


def compute_response_fingerprint(data: dict, pos_auth_code: str = POS_AUTH_CODE) -> str:
    """Independent reimplementation of the gateway response fingerprint."""
    parts = [
        _b64_sha512(pos_auth_code),
        data.get("messageType", ""),
        data.get("merchantRespCP", ""),
        data.get("merchantRespTid", ""),
        data.get("merchantRespMerchantRef", ""),
        data.get("merchantRespMerchantSession", ""),
        _scaled(data.get("merchantRespPurchaseAmount")),
        data.get("merchantRespMessageID", ""),
        data.get("merchantRespPan", ""),
        data.get("merchantResp", ""),
        data.get("merchantRespTimeStamp", ""),
        _int_or_empty(data.get("merchantRespReferenceNumber")),
        _int_or_empty(data.get("merchantRespEntityCode")),
        data.get("merchantRespClientReceipt", ""),
        data.get("merchantRespAdditionalErrorMessage", "").strip(),
        data.get("merchantRespReloadCode", ""),
    ]
    return _b64_sha512("".join(parts))


def compute_payment_fingerprint(fields: dict, pos_auth_code: str = POS_AUTH_CODE) -> str:
    """Independent reimplementation of the payment request fingerprint."""
    parts = [
        _b64_sha512(pos_auth_code),
        fields["timeStamp"],
        _scaled(fields["amount"]),
        fields["merchantRef"],
        fields["merchantSession"],
        fields["posID"],
        str(fields["currency"]),
        fields["transactionCode"],
        _int_or_empty(fields.get("entityCode")),
        _int_or_empty(fields.get("referenceNumber")),
    ]
    return _b64_sha512("".join(parts))


def compute_refund_fingerprint(fields: dict, pos_auth_code: str = POS_AUTH_CODE) -> str:
    """Independent reimplementation of the refund request fingerprint."""
    parts = [
        _b64_sha512(pos_auth_code),
        fields["transactionCode"],
        fields["posID"],
        fields["merchantRef"],
        fields["merchantSession"],
        _scaled(fields["amount"]),
        str(fields["currency"]),
        fields["clearingPeriod"],
        fields["transactionID"],
        "R",
        fields["urlMerchantResponse"],
        fields["languageMessages"],
        fields["fingerprintversion"],
        fields["timeStamp"],
    ]
    return _b64_sha512("".join(parts))


def create_callback_data(**overrides):
    """Successful purchase callback, signed with the test terminal's auth code."""
    data = {
        "messageType": "8",
        "merchantRespCP": "20250314",
        "merchantRespTid": "12345678",
        "merchantRespMerchantRef": "R20250314092653",
        "merchantRespMerchantSession": "S20250314092653",
        "merchantRespPurchaseAmount": "2500",
        "merchantRespMessageID": "A1B2C3",
        "merchantRespPan": "4242424242424242",
        "merchantResp": "C",
        "merchantRespTimeStamp": "2025-03-14 09:28:11",
        "merchantRespReferenceNumber": "",
        "merchantRespEntityCode": "",
        "merchantRespClientReceipt": "",
        "merchantRespAdditionalErrorMessage": "",
        "merchantRespReloadCode": "",
        "merchantRespCurrency": "132",
        "transactionCode": "1",
    }
    data.update(overrides)
    data["resultFingerPrint"] = compute_response_fingerprint(data)
    return data


@pytest.fixture
def engine():
    return FingerprintEngine(POS_AUTH_CODE)


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def gateway_client():
    """A fresh one-shot facade client for the test terminal"""
    return Vinti4Net(POS_ID, POS_AUTH_CODE)


@pytest.fixture
def valid_billing():
    return dict(VALID_BILLING)


@pytest.fixture
def callback_data():
    return create_callback_data()


@pytest.fixture
def app_config():
    config = AppConfig(
        gateway=GatewayConfig(
            pos_id=POS_ID,
            pos_auth_code=POS_AUTH_CODE,
            response_url=RESPONSE_URL,
        ),
        rate_limit=RateLimitConfig(),
        logging=LoggingConfig(level="INFO", log_requests=True),
        environment="testing",
    )
    yield config
    set_config(None)


@pytest.fixture
def client(app_config):
    """FastAPI TestClient over an app built from the test configuration"""
    from vinti4net.main import create_app

    limiter.reset()
    with TestClient(create_app(app_config)) as test_client:
        yield test_client
    limiter.reset()


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Minimal valid environment for load_config()"""
    test_env = {
        "VINTI4_POS_ID": POS_ID,
        "VINTI4_POS_AUTH_CODE": POS_AUTH_CODE,
        "VINTI4_RESPONSE_URL": RESPONSE_URL,
        "ENVIRONMENT": "testing",
    }
    for key in (
        "VINTI4_ENDPOINT", "VINTI4_LANGUAGE", "DEBUG", "LOG_LEVEL",
        "LOG_REQUESTS", "CHECKOUT_RATE_LIMIT",
    ):
        monkeypatch.delenv(key, raising=False)
    for key, value in test_env.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setattr("vinti4net.core.config.load_dotenv", lambda *a, **k: False)
    yield test_env
    set_config(None)


@pytest.fixture
def make_callback():
    """Factory for signed callback payloads: make_callback(messageType="P", ...)"""
    return create_callback_data


@pytest.fixture
def fingerprints():
    """Independent fingerprint implementations keyed by family"""
    return {
        "payment": compute_payment_fingerprint,
        "refund": compute_refund_fingerprint,
        "response": compute_response_fingerprint,
    }

"""
Request builders for the SISP card-payment gateway.

`PaymentBuilder` covers purchases (1), service payments (2) and recharges (3);
`RefundBuilder` covers refunds (4). Builders hold no per-request state:
`prepare()` assembles the flat field map, validates it, signs it and returns
a frozen `PreparedRequest`. Only `FingerPrint`, `TimeStamp` and
`FingerPrintVersion` travel in the query string; every other field is posted
by the redirect form.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from enum import Enum
from typing import Any, Callable, Dict, Mapping
from urllib.parse import urlencode
import logging
import re

from vinti4net.core.config import DEFAULT_BASE_URL
from vinti4net.core.exceptions import InvalidArgument
from vinti4net.schemas.responses import PreparedRequest
from vinti4net.services.billing import BillingNormalizer
from vinti4net.services.currency import CURRENCY_CVE, CurrencyCodec
from vinti4net.services.fingerprint import REVERSAL_FLAG, FingerprintEngine
from vinti4net.services.validator import TIMESTAMP_FORMAT, ParamValidator, validator as default_validator

logger = logging.getLogger(__name__)

FINGERPRINT_VERSION = "1"
DEFAULT_LANGUAGE = "pt"

# Top-level request keys folded into the purchase billing block
BILLING_REQUEST_KEYS = (
    "email",
    "billAddrCountry",
    "billAddrCity",
    "billAddrLine1",
    "billAddrPostCode",
    "acctID",
    "acctInfo",
    "addrMatch",
)

REFUND_REQUIRED_FIELDS = (
    "amount",
    "merchantRef",
    "urlMerchantResponse",
    "clearingPeriod",
    "transactionID",
)


class TransactionCode(str, Enum):
    PURCHASE = "1"
    SERVICE = "2"
    RECHARGE = "3"
    REFUND = "4"


def _blank(value: Any) -> bool:
    return value is None or value == ""


def whole_amount(value: Any) -> int:
    """
    Truncate a payment amount to the integer the gateway receives.

    Raises:
        InvalidArgument: If the amount is missing or not a finite number
    """
    if _blank(value) or isinstance(value, bool):
        raise InvalidArgument("amount is required and must be a number", field="amount", value=value)
    try:
        amount = Decimal(repr(value)) if isinstance(value, float) else Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidArgument("amount must be a number", field="amount", value=value)
    if not amount.is_finite() or amount.adjusted() >= 16:
        raise InvalidArgument("amount must be a number", field="amount", value=value)
    return int(amount.to_integral_value(rounding=ROUND_DOWN))


class TransactionBuilder(ABC):
    """Shared assembly, validation and signing for one POS terminal."""

    def __init__(
        self,
        pos_id: str,
        engine: FingerprintEngine,
        base_url: str = DEFAULT_BASE_URL,
        validator: ParamValidator = default_validator,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.pos_id = str(pos_id)
        self.engine = engine
        self.base_url = base_url or DEFAULT_BASE_URL
        self.validator = validator
        self.clock = clock

    @abstractmethod
    def prepare(self, params: Mapping[str, Any]) -> PreparedRequest:
        """Assemble, validate and sign one request."""

    def _stamp(self, params: Mapping[str, Any]) -> Dict[str, str]:
        now = self.clock()
        compact = now.strftime("%Y%m%d%H%M%S")
        return {
            "merchantRef": params.get("merchantRef") or f"R{compact}",
            "merchantSession": params.get("merchantSession") or f"S{compact}",
            "timeStamp": params.get("timeStamp") or now.strftime(TIMESTAMP_FORMAT),
        }

    def _sign(self, fields: Dict[str, Any]) -> PreparedRequest:
        self.validator.check(fields)

        fingerprint = self.engine.sign_request(fields)
        fields["fingerprint"] = fingerprint

        query = urlencode({
            "FingerPrint": fingerprint,
            "TimeStamp": fields["timeStamp"],
            "FingerPrintVersion": fields["fingerprintversion"],
        })

        logger.info(
            f"Prepared transaction {fields['transactionCode']} "
            f"for merchantRef {fields['merchantRef']}"
        )
        return PreparedRequest(
            post_url=f"{self.base_url}?{query}",
            fields=fields,
            fingerprint=fingerprint,
            transaction_code=str(fields["transactionCode"]),
        )


class PaymentBuilder(TransactionBuilder):
    """Purchase, service payment and recharge requests."""

    def prepare(self, params: Mapping[str, Any]) -> PreparedRequest:
        """
        Build a signed payment request.

        Args:
            params: `transactionCode`, `amount` and `urlMerchantResponse` are
                required; `currency` defaults to CVE; service and recharge
                also need `entityCode` and `referenceNumber`; purchases need
                billing data (`billing` map and/or top-level billing keys).

        Raises:
            InvalidArgument: For missing, malformed or disallowed parameters
            MissingBillingField: If a purchase lacks required billing fields
            InvalidCurrency: For an unknown currency symbol
        """
        code = params.get("transactionCode")
        if _blank(code):
            raise InvalidArgument("transactionCode is required", field="transactionCode")
        code = str(code)
        if code == TransactionCode.REFUND.value:
            raise InvalidArgument(
                "Refunds must be prepared with RefundBuilder", field="transactionCode", value=code
            )

        stamp = self._stamp(params)
        fields: Dict[str, Any] = {
            "posID": self.pos_id,
            "merchantRef": stamp["merchantRef"],
            "merchantSession": stamp["merchantSession"],
            "amount": whole_amount(params.get("amount")),
            "currency": CurrencyCodec.to_code(params.get("currency") or CURRENCY_CVE),
            "transactionCode": code,
            "languageMessages": params.get("languageMessages") or DEFAULT_LANGUAGE,
            "entityCode": params.get("entityCode") or "",
            "referenceNumber": params.get("referenceNumber") or "",
            "timeStamp": stamp["timeStamp"],
            "fingerprintversion": FINGERPRINT_VERSION,
            "is3DSec": "1",
            "urlMerchantResponse": params.get("urlMerchantResponse") or "",
        }

        if code == TransactionCode.PURCHASE.value:
            billing = self._purchase_billing(params)
            # nested records (phones, acctInfo) only travel inside purchaseRequest
            fields.update({k: v for k, v in billing.items() if not isinstance(v, (dict, list))})
            fields["purchaseRequest"] = BillingNormalizer.encode_purchase_request(billing)

        return self._sign(fields)

    @staticmethod
    def _purchase_billing(params: Mapping[str, Any]) -> Dict[str, Any]:
        raw = params.get("billing") or {}
        if not isinstance(raw, Mapping):
            raise InvalidArgument("billing must be a mapping", field="billing")

        raw = dict(raw)
        for key in BILLING_REQUEST_KEYS:
            if key not in raw and not _blank(params.get(key)):
                raw[key] = params[key]

        normalized = BillingNormalizer.normalize(raw)
        BillingNormalizer.require(normalized)
        return normalized


class RefundBuilder(TransactionBuilder):
    """Refund (reversal) requests against a previously cleared transaction."""

    def prepare(self, params: Mapping[str, Any]) -> PreparedRequest:
        """
        Build a signed refund request.

        Raises:
            InvalidArgument: If a required field is missing, the amount has
                decimal places, or any field fails validation
        """
        for field in REFUND_REQUIRED_FIELDS:
            if _blank(params.get(field)):
                raise InvalidArgument(f"{field} is required for refunds", field=field)

        amount = params["amount"]
        if isinstance(amount, bool) or not re.fullmatch(r"\d+", str(amount)):
            raise InvalidArgument(
                f"Refund amount must be a non-negative integer without decimal places, got {amount!r}",
                field="amount",
                value=amount,
            )
        if len(str(amount)) > 13:
            raise InvalidArgument("amount must have at most 13 digits.", field="amount", value=amount)
        if not str(amount).strip("0"):
            raise InvalidArgument("Refund amount must be greater than zero", field="amount", value=amount)

        stamp = self._stamp(params)
        fields: Dict[str, Any] = {
            "posID": self.pos_id,
            "merchantRef": stamp["merchantRef"],
            "merchantSession": stamp["merchantSession"],
            "amount": int(str(amount)),
            "currency": CurrencyCodec.to_code(params.get("currency") or CURRENCY_CVE),
            "is3DSec": "1",
            "transactionCode": TransactionCode.REFUND.value,
            "urlMerchantResponse": params["urlMerchantResponse"],
            "languageMessages": params.get("languageMessages") or DEFAULT_LANGUAGE,
            "timeStamp": stamp["timeStamp"],
            "fingerprintversion": FINGERPRINT_VERSION,
            "entityCode": "",
            "referenceNumber": "",
            "reversal": REVERSAL_FLAG,
            "clearingPeriod": params["clearingPeriod"],
            "transactionID": params["transactionID"],
        }
        return self._sign(fields)

"""
Vinti4Net facade: the main entry point for merchants.

Typical flow::

    client = Vinti4Net(pos_id="90000045", pos_auth_code=secret)
    html = client.prepare_purchase(1500, billing).create_payment_form(
        "https://shop.cv/payments/callback"
    )
    ...
    result = Vinti4Net(...).process_response(request_form)

One client prepares exactly one request. Use a fresh client per checkout.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional
import logging

from vinti4net.core.config import DEFAULT_BASE_URL, AppConfig, GatewayConfig
from vinti4net.core.exceptions import AlreadyPrepared, InvalidArgument
from vinti4net.rendering.form import render_payment_form
from vinti4net.schemas.responses import CallbackResult, PreparedRequest
from vinti4net.services.currency import CurrencyCodec
from vinti4net.services.fingerprint import FingerprintEngine
from vinti4net.services.response import ResponseClassifier
from vinti4net.services.transaction import PaymentBuilder, RefundBuilder, TransactionCode

logger = logging.getLogger(__name__)

ALLOWED_REQUEST_PARAMS = frozenset({
    "merchantRef",
    "merchantSession",
    "languageMessages",
    "entityCode",
    "referenceNumber",
    "timeStamp",
    "billing",
    "currency",
    "acctID",
    "acctInfo",
    "addrMatch",
    "billAddrCountry",
    "billAddrCity",
    "billAddrLine1",
    "billAddrPostCode",
    "email",
    "clearingPeriod",
})


class RequestState(str, Enum):
    UNPREPARED = "unprepared"
    PREPARED = "prepared"
    SIGNED = "signed"


class Vinti4Net:
    """Facade over the payment/refund builders and the callback classifier."""

    def __init__(
        self,
        pos_id: str,
        pos_auth_code: str,
        endpoint: Optional[str] = None,
        language: Optional[str] = None,
    ):
        if not pos_id or not pos_auth_code:
            raise InvalidArgument("pos_id and pos_auth_code are required")

        engine = FingerprintEngine(pos_auth_code)
        base_url = endpoint or DEFAULT_BASE_URL

        self.pos_id = str(pos_id)
        self.payment = PaymentBuilder(self.pos_id, engine, base_url)
        self.refund = RefundBuilder(self.pos_id, engine, base_url)
        self.classifier = ResponseClassifier(engine)

        self.state = RequestState.UNPREPARED
        self._params: Dict[str, Any] = {}
        if language:
            self._params["languageMessages"] = language
        self._prepared: Optional[PreparedRequest] = None

    @classmethod
    def from_config(cls, config) -> "Vinti4Net":
        """Build a client from an `AppConfig` or `GatewayConfig`."""
        gateway: GatewayConfig = config.gateway if isinstance(config, AppConfig) else config
        return cls(
            pos_id=gateway.pos_id,
            pos_auth_code=gateway.pos_auth_code,
            endpoint=gateway.endpoint,
            language=gateway.language,
        )

    def __repr__(self) -> str:
        return f"Vinti4Net(pos_id={self.pos_id!r}, state={self.state.value})"

    # ------------------------------------------------------------------
    # Request parameters
    # ------------------------------------------------------------------

    def set_request_params(self, params: Mapping[str, Any]) -> "Vinti4Net":
        """
        Add optional request parameters (merchantRef, billing keys, ...).

        Raises:
            InvalidArgument: For any key outside the allow-list
            InvalidCurrency: For an unknown currency symbol
            AlreadyPrepared: Once the request has been signed
        """
        if self.state is RequestState.SIGNED:
            raise AlreadyPrepared("Request already signed; create a new client")

        for key, value in params.items():
            if key not in ALLOWED_REQUEST_PARAMS:
                raise InvalidArgument(f"Parameter not allowed: {key}", field=key)
            if key == "currency":
                value = CurrencyCodec.to_code(value)
            self._params[key] = value
        return self

    # ------------------------------------------------------------------
    # Preparation (one per client)
    # ------------------------------------------------------------------

    def prepare_purchase(self, amount, billing: Mapping[str, Any], currency=None) -> "Vinti4Net":
        """3-D Secure card purchase; `currency` defaults to any set param, then CVE."""
        request = {
            "transactionCode": TransactionCode.PURCHASE.value,
            "amount": amount,
            "billing": billing,
        }
        if currency is not None:
            request["currency"] = currency
        return self._prepare(request)

    def prepare_service(self, amount, entity, number) -> "Vinti4Net":
        """Utility/service payment for `entity` with reference `number`."""
        return self._prepare({
            "transactionCode": TransactionCode.SERVICE.value,
            "amount": amount,
            "entityCode": entity,
            "referenceNumber": number,
        })

    def prepare_recharge(self, amount, entity, number) -> "Vinti4Net":
        """Mobile top-up for phone `number` with operator `entity`."""
        return self._prepare({
            "transactionCode": TransactionCode.RECHARGE.value,
            "amount": amount,
            "entityCode": entity,
            "referenceNumber": number,
        })

    def prepare_refund(
        self,
        amount,
        merchant_ref: str,
        merchant_session: str,
        transaction_id: str,
        clearing_period: str,
    ) -> "Vinti4Net":
        """Refund of a previously cleared transaction."""
        return self._prepare({
            "transactionCode": TransactionCode.REFUND.value,
            "amount": amount,
            "merchantRef": merchant_ref,
            "merchantSession": merchant_session,
            "transactionID": transaction_id,
            "clearingPeriod": clearing_period,
        })

    def _prepare(self, request: Dict[str, Any]) -> "Vinti4Net":
        if self.state is not RequestState.UNPREPARED:
            raise AlreadyPrepared()
        self._params.update(request)
        self.state = RequestState.PREPARED
        return self

    # ------------------------------------------------------------------
    # Signing and rendering
    # ------------------------------------------------------------------

    def build(self, response_url: str, merchant_ref: Optional[str] = None) -> PreparedRequest:
        """
        Validate and sign the prepared request.

        Raises:
            InvalidArgument: If nothing was prepared or a field is invalid
            AlreadyPrepared: If the request was already signed
        """
        if self.state is RequestState.UNPREPARED:
            raise InvalidArgument("No payment prepared")
        if self.state is RequestState.SIGNED:
            raise AlreadyPrepared("Request already signed; create a new client")

        params = dict(self._params)
        params["urlMerchantResponse"] = response_url
        if merchant_ref is not None:
            params["merchantRef"] = merchant_ref

        if params["transactionCode"] == TransactionCode.REFUND.value:
            prepared = self.refund.prepare(params)
        else:
            prepared = self.payment.prepare(params)

        self._prepared = prepared
        self.state = RequestState.SIGNED
        return prepared

    def create_payment_form(self, response_url: str, merchant_ref: Optional[str] = None) -> str:
        """Sign the request and return the auto-submitting redirect page."""
        return render_payment_form(self.build(response_url, merchant_ref))

    @property
    def prepared_request(self) -> Optional[PreparedRequest]:
        return self._prepared

    # ------------------------------------------------------------------
    # Callback
    # ------------------------------------------------------------------

    def process_response(self, post_data: Mapping[str, Any]) -> CallbackResult:
        """Classify the gateway's callback POST; never raises."""
        return self.classifier.classify(post_data)

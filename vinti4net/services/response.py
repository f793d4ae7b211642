"""
Classification of the gateway's asynchronous callback POST.

The callback endpoint is reachable by anyone, so `classify()` never raises:
malformed input degrades to `ERROR` (or a disabled DCC block) instead of
crashing the handler. A success-typed callback whose fingerprint does not
verify is reported as `INVALID_FINGERPRINT`, never as `SUCCESS`.
"""

from typing import Any, Mapping, Optional
import json
import logging

from vinti4net.core.monitoring import error_monitor
from vinti4net.schemas.responses import CallbackResult, CallbackStatus, DccInfo, FingerprintDebug
from vinti4net.services.fingerprint import FingerprintEngine, fingerprints_match

logger = logging.getLogger(__name__)

# 8 = purchase, 10 = refund, P = service payment, M = recharge
SUCCESS_MESSAGE_TYPES = frozenset({"8", "10", "P", "M"})
PURCHASE_MESSAGE_TYPE = "8"
PURCHASE_TRANSACTION_CODE = "1"
REFUND_TRANSACTION_CODE = "4"
REFUND_MESSAGE_TYPE = "10"

MESSAGE_SUCCESS = "Transaction valid."
MESSAGE_REFUND_SUCCESS = "Refund processed successfully."
MESSAGE_CANCELLED = "User cancelled the transaction."
MESSAGE_FAILED = "Transaction failed."


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def extract_dcc(data: Mapping[str, Any]) -> Optional[DccInfo]:
    """Parse `merchantRespDCCData` for purchases; None when not applicable."""
    is_purchase = (
        _text(data.get("transactionCode")) == PURCHASE_TRANSACTION_CODE
        or _text(data.get("messageType")) == PURCHASE_MESSAGE_TYPE
    )
    raw = data.get("merchantRespDCCData")
    if not is_purchase or not raw:
        return None

    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        parsed = None
    if not isinstance(parsed, dict):
        logger.warning("Malformed DCC data in gateway callback")
        return DccInfo(enabled=False, error="malformed")

    return DccInfo(
        enabled=parsed.get("dcc", "N") == "Y",
        amount=parsed.get("dccAmount"),
        currency=parsed.get("dccCurrency"),
        markup=parsed.get("dccMarkup"),
        rate=parsed.get("dccRate"),
    )


class ResponseClassifier:
    """Turns raw callback fields into a `CallbackResult` for one POS."""

    def __init__(self, engine: FingerprintEngine):
        self.engine = engine

    def classify(self, post_data: Mapping[str, Any]) -> CallbackResult:
        try:
            return self._classify(dict(post_data or {}))
        except Exception as e:
            error_monitor.log_error(e, {"context": "callback_classification"})
            return CallbackResult.error_result(MESSAGE_FAILED, detail="Callback could not be processed")

    def _classify(self, data: dict) -> CallbackResult:
        if data.get("UserCancelled") == "true":
            logger.info("Gateway callback: transaction cancelled by user")
            return CallbackResult.cancelled_result(MESSAGE_CANCELLED, data=data)

        computed = self.engine.sign_response(data)
        received = _text(data.get("resultFingerPrint"))
        fingerprint_valid = fingerprints_match(computed, received)
        message_type = _text(data.get("messageType"))

        if message_type in SUCCESS_MESSAGE_TYPES:
            if not fingerprint_valid:
                logger.warning(
                    f"Gateway callback with invalid fingerprint "
                    f"(messageType={message_type}, merchantRef={_text(data.get('merchantRespMerchantRef'))})"
                )
                return CallbackResult.invalid_fingerprint_result(
                    debug=FingerprintDebug(received=received, computed=computed),
                    data=data,
                )

            is_refund = (
                message_type == REFUND_MESSAGE_TYPE
                or _text(data.get("transactionCode")) == REFUND_TRANSACTION_CODE
            )
            logger.info(f"Gateway callback accepted (messageType={message_type})")
            return CallbackResult.success_result(
                MESSAGE_REFUND_SUCCESS if is_refund else MESSAGE_SUCCESS,
                data=data,
                dcc=extract_dcc(data),
            )

        logger.info(f"Gateway callback reported failure (messageType={message_type or 'none'})")
        return CallbackResult(
            status=CallbackStatus.ERROR,
            message=_text(data.get("merchantRespErrorDescription")) or MESSAGE_FAILED,
            success=False,
            fingerprint_valid=fingerprint_valid,
            data=data,
            dcc=extract_dcc(data),
            detail=_text(data.get("merchantRespErrorDetail")) or None,
        )

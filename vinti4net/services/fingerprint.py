"""
SISP fingerprint computation and verification.

A fingerprint is ``Base64(SHA-512(...))`` over the UTF-8 concatenation of
field values in a fixed order, prefixed by ``Base64(SHA-512(posAuthCode))``.
Absent optional fields contribute an empty string. Amounts are scaled to
thousandths with exact decimal arithmetic and truncated, never rounded.

Field orders:
    payment request  (transactionCode 1, 2, 3):
        timeStamp, amount, merchantRef, merchantSession, posID, currency,
        transactionCode, entityCode, referenceNumber
    refund request   (transactionCode 4):
        transactionCode, posID, merchantRef, merchantSession, amount, currency,
        clearingPeriod, transactionID, "R", urlMerchantResponse,
        languageMessages, fingerprintversion, timeStamp
    gateway response:
        messageType, merchantRespCP, merchantRespTid, merchantRespMerchantRef,
        merchantRespMerchantSession, merchantRespPurchaseAmount,
        merchantRespMessageID, merchantRespPan, merchantResp,
        merchantRespTimeStamp, merchantRespReferenceNumber,
        merchantRespEntityCode, merchantRespClientReceipt,
        merchantRespAdditionalErrorMessage (trimmed), merchantRespReloadCode
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN
from enum import Enum
from typing import Any, Mapping, Optional
import base64
import hashlib
import hmac
import re

from vinti4net.core.exceptions import InvalidArgument

REFUND_TRANSACTION_CODE = "4"
REVERSAL_FLAG = "R"

_AMOUNT_SCALE = Decimal(1000)
_MAX_AMOUNT_DIGITS = 16
_LEADING_NUMBER = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")
_LEADING_INTEGER = re.compile(r"\s*([+-]?)(\d+)")
_PHP_TRIM = " \t\n\r\0\x0b"


class FingerprintFamily(str, Enum):
    PAYMENT = "payment"
    REFUND = "refund"
    RESPONSE = "response"


def family_for(transaction_code: Any) -> FingerprintFamily:
    """Refunds (code 4) have their own field order; every other code signs as a payment."""
    if str(transaction_code) == REFUND_TRANSACTION_CODE:
        return FingerprintFamily.REFUND
    return FingerprintFamily.PAYMENT


def scale_amount(value: Any) -> int:
    """
    Convert an amount to the integer thousandths used inside fingerprints.

    ``12.345 -> 12345`` and ``12.3456 -> 12345`` (truncation).

    Raises:
        InvalidArgument: If the value is not a finite decimal number
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise InvalidArgument("amount must be a number", field="amount", value=value)

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, float):
            # repr gives the shortest round-tripping literal, e.g. 12.345
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidArgument("amount must be a number", field="amount", value=value)

    if not amount.is_finite():
        raise InvalidArgument("amount must be a number", field="amount", value=value)
    if amount.adjusted() >= _MAX_AMOUNT_DIGITS:
        raise InvalidArgument("amount is out of range", field="amount", value=value)

    return int((amount * _AMOUNT_SCALE).to_integral_value(rounding=ROUND_DOWN))


def _lenient_scale(value: Any) -> int:
    # Callback data is attacker-controlled; a malformed amount hashes as 0
    try:
        return scale_amount(value)
    except InvalidArgument:
        match = _LEADING_NUMBER.match(str(value))
        if match:
            try:
                return scale_amount(match.group(1))
            except InvalidArgument:
                pass
        return 0


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int_or_empty(value: Any) -> str:
    """Integer rendering of entity/reference codes; zero or absent gives ''."""
    if value is None or value is False or value == "" or value == "0" or value == 0:
        return ""
    if isinstance(value, int):
        return str(value)
    match = _LEADING_INTEGER.match(str(value))
    if not match:
        return "0"
    sign, digits = match.groups()
    digits = digits.lstrip("0") or "0"
    return f"-{digits}" if sign == "-" and digits != "0" else digits


def _digest(payload: str) -> str:
    return base64.b64encode(hashlib.sha512(payload.encode("utf-8")).digest()).decode("ascii")


def encode_auth_code(pos_auth_code: str) -> str:
    return _digest(pos_auth_code)


def fingerprints_match(expected: Optional[str], received: Optional[str]) -> bool:
    """Constant-time comparison over UTF-8 bytes (safe for non-ASCII input)."""
    return hmac.compare_digest(
        _text(expected).encode("utf-8"),
        _text(received).encode("utf-8"),
    )


class FingerprintEngine:
    """Signs outbound requests and verifies inbound callbacks for one POS."""

    def __init__(self, pos_auth_code: str):
        self._encoded_auth_code = encode_auth_code(pos_auth_code)

    def __repr__(self) -> str:
        return "FingerprintEngine(pos_auth_code=[REDACTED])"

    def sign(self, fields: Mapping[str, Any], family: FingerprintFamily) -> str:
        family = FingerprintFamily(family)
        if family is FingerprintFamily.PAYMENT:
            parts = self._payment_parts(fields)
        elif family is FingerprintFamily.REFUND:
            parts = self._refund_parts(fields)
        else:
            parts = self._response_parts(fields)
        return _digest(self._encoded_auth_code + "".join(parts))

    def sign_request(self, fields: Mapping[str, Any]) -> str:
        return self.sign(fields, family_for(fields.get("transactionCode")))

    def sign_response(self, fields: Mapping[str, Any]) -> str:
        return self.sign(fields, FingerprintFamily.RESPONSE)

    def verify(self, fields: Mapping[str, Any], expected_fingerprint: Optional[str]) -> bool:
        """Check a callback's `resultFingerPrint` against the recomputed value."""
        return fingerprints_match(self.sign_response(fields), expected_fingerprint)

    @staticmethod
    def _payment_parts(fields):
        return (
            _text(fields.get("timeStamp")),
            str(scale_amount(fields.get("amount"))),
            _text(fields.get("merchantRef")),
            _text(fields.get("merchantSession")),
            _text(fields.get("posID")),
            _text(fields.get("currency")),
            _text(fields.get("transactionCode")),
            _int_or_empty(fields.get("entityCode")),
            _int_or_empty(fields.get("referenceNumber")),
        )

    @staticmethod
    def _refund_parts(fields):
        return (
            _text(fields.get("transactionCode")),
            _text(fields.get("posID")),
            _text(fields.get("merchantRef")),
            _text(fields.get("merchantSession")),
            str(scale_amount(fields.get("amount"))),
            _text(fields.get("currency")),
            _text(fields.get("clearingPeriod")),
            _text(fields.get("transactionID")),
            REVERSAL_FLAG,
            _text(fields.get("urlMerchantResponse")),
            _text(fields.get("languageMessages")),
            _text(fields.get("fingerprintversion", fields.get("fingerPrintVersion"))),
            _text(fields.get("timeStamp")),
        )

    @staticmethod
    def _response_parts(fields):
        return (
            _text(fields.get("messageType")),
            _text(fields.get("merchantRespCP")),
            _text(fields.get("merchantRespTid")),
            _text(fields.get("merchantRespMerchantRef")),
            _text(fields.get("merchantRespMerchantSession")),
            str(_lenient_scale(fields.get("merchantRespPurchaseAmount"))),
            _text(fields.get("merchantRespMessageID")),
            _text(fields.get("merchantRespPan")),
            _text(fields.get("merchantResp")),
            _text(fields.get("merchantRespTimeStamp")),
            _int_or_empty(fields.get("merchantRespReferenceNumber")),
            _int_or_empty(fields.get("merchantRespEntityCode")),
            _text(fields.get("merchantRespClientReceipt")),
            _text(fields.get("merchantRespAdditionalErrorMessage")).strip(_PHP_TRIM),
            _text(fields.get("merchantRespReloadCode")),
        )

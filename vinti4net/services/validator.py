"""
Per-field validation rules for gateway request parameters.

Rules live in an ordered table mapping a field name to a function
``rule(value, params) -> Optional[str]`` that returns an error message or
``None``. Only fields present in the request are checked. `validate()` stops
at the first failing field in the request's own iteration order and returns
that single message; `validate_all()` collects every failure.
"""

from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional
import re

from pydantic import AnyHttpUrl, EmailStr, TypeAdapter, ValidationError

from vinti4net.core.exceptions import InvalidArgument

Rule = Callable[[Any, Mapping[str, Any]], Optional[str]]

TRANSACTION_CODES = ("1", "2", "3", "4")
LANGUAGES = ("pt", "en", "fr")
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_url_adapter = TypeAdapter(AnyHttpUrl)
_email_adapter = TypeAdapter(EmailStr)


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _currency_text(value: Any) -> str:
    # ISO numeric codes below 100 (AUD=36) are three digits once zero-padded
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < 1000:
        return f"{value:03d}"
    return _text(value)


def _transaction_code(params: Mapping[str, Any]) -> str:
    return _text(params.get("transactionCode"))


def check_transaction_code(value, params):
    if _text(value) not in TRANSACTION_CODES:
        return "Invalid transactionCode. Allowed values: 1, 2, 3, 4."
    return None


def check_pos_id(value, params):
    if not re.fullmatch(r"\d{1,9}", _text(value)):
        return "posID must have between 1 and 9 digits."
    return None


def check_merchant_ref(value, params):
    if len(_text(value)) > 15:
        return "merchantRef must have at most 15 characters."
    return None


def check_merchant_session(value, params):
    if len(_text(value)) > 15:
        return "merchantSession must have at most 15 characters."
    return None


def check_amount(value, params):
    text = _text(value)
    if not re.fullmatch(r"\d+", text):
        return "amount must be an integer without decimal places."
    if len(text) > 13:
        return "amount must have at most 13 digits."
    return None


def check_currency(value, params):
    text = _currency_text(value)
    if _transaction_code(params) == "4" and text != "132":
        return "currency for refunds must be '132' (CVE)."
    if not re.fullmatch(r"\d{3}", text):
        return "currency must be a 3-digit ISO 4217 numeric code."
    return None


def check_url_merchant_response(value, params):
    try:
        _url_adapter.validate_python(_text(value))
    except ValidationError:
        return "urlMerchantResponse must be a valid URL."
    return None


def check_language_messages(value, params):
    if _text(value).lower() not in LANGUAGES:
        return "languageMessages must be 'pt', 'en' or 'fr'."
    return None


def check_entity_code(value, params):
    if _transaction_code(params) not in ("2", "3"):
        return None
    text = _text(value).strip()
    # zero is signed as an empty code, so it counts as missing
    if value is False or not text.strip("0"):
        return "entityCode is required for transactionCode 2 and 3."
    if not re.fullmatch(r"[0-9]+", text):
        return "entityCode must be numeric."
    return None


def check_reference_number(value, params):
    text = _text(value)
    if not text and _transaction_code(params) not in ("2", "3"):
        return None
    if not re.fullmatch(r"\d{7,9}", text):
        return "referenceNumber must have between 7 and 9 digits."
    return None


def check_clearing_period(value, params):
    if not re.fullmatch(r"\d{1,4}", _text(value)):
        return "clearingPeriod must have at most 4 digits."
    return None


def check_transaction_id(value, params):
    if not re.fullmatch(r"[A-Za-z0-9]{1,8}", _text(value)):
        return "transactionID must have between 1 and 8 alphanumeric characters."
    return None


def check_acct_id(value, params):
    if len(_text(value)) > 64:
        return "acctID must have at most 64 characters."
    return None


def check_email(value, params):
    try:
        _email_adapter.validate_python(_text(value))
    except ValidationError:
        return "email must be a valid email address."
    return None


def check_timestamp(value, params):
    text = _text(value)
    try:
        parsed = datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        return "timeStamp must use the format YYYY-MM-DD HH:MM:SS."
    if parsed.strftime(TIMESTAMP_FORMAT) != text:
        return "timeStamp must use the format YYYY-MM-DD HH:MM:SS."
    return None


RULES: Mapping[str, Rule] = MappingProxyType({
    "transactionCode": check_transaction_code,
    "posID": check_pos_id,
    "merchantRef": check_merchant_ref,
    "merchantSession": check_merchant_session,
    "amount": check_amount,
    "currency": check_currency,
    "urlMerchantResponse": check_url_merchant_response,
    "languageMessages": check_language_messages,
    "entityCode": check_entity_code,
    "referenceNumber": check_reference_number,
    "clearingPeriod": check_clearing_period,
    "transactionID": check_transaction_id,
    "acctID": check_acct_id,
    "email": check_email,
    "timeStamp": check_timestamp,
})


class ParamValidator:
    """Stateless validator driven by the `RULES` table."""

    def __init__(self, rules: Mapping[str, Rule] = RULES):
        self.rules = rules

    def validate(self, params: Mapping[str, Any]) -> Optional[str]:
        """Return the first error message in iteration order, or None."""
        for field, message in self._failures(params):
            return message
        return None

    def validate_all(self, params: Mapping[str, Any]) -> Dict[str, str]:
        """Return every failing field mapped to its message."""
        return dict(self._failures(params))

    def check(self, params: Mapping[str, Any]) -> None:
        """
        Raises:
            InvalidArgument: naming the first failing field
        """
        for field, message in self._failures(params):
            raise InvalidArgument(message, field=field, value=params.get(field))

    def _failures(self, params: Mapping[str, Any]):
        for field, value in params.items():
            rule = self.rules.get(field)
            if rule is None:
                continue
            message = rule(value, params)
            if message is not None:
                yield field, message


validator = ParamValidator()

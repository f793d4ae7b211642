"""
Billing normalization for 3-D Secure purchases.

Merchants pass billing data in whatever shape their user model has; the
gateway wants a strict set of `billAddr*` / phone / account keys. This module
folds the two together:

1. An embedded ``user`` mapping (or object) is split off the billing map.
2. Gateway-named keys win, ``user``-named keys are the fallback, then a
   per-field default.
3. Phones become ``{"cc": ..., "subscriber": ...}`` records.
4. Account age / password-change indicators are derived from the user's
   ``created_at`` / ``updated_at`` timestamps.
5. Null and empty values are dropped.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
import base64
import json
import logging
import re

from pydantic import ValidationError

from vinti4net.core.exceptions import InvalidArgument, MissingBillingField
from vinti4net.schemas.billing import BillingInfo

logger = logging.getLogger(__name__)

DEFAULT_PHONE_CC = "238"

REQUIRED_BILLING_FIELDS = (
    "billAddrCountry",
    "billAddrCity",
    "billAddrLine1",
    "billAddrPostCode",
    "email",
)

# gateway key -> (user key, default)
ADDRESS_FIELDS = (
    ("email", "email", None),
    ("billAddrCountry", "country", "132"),
    ("billAddrCity", "city", ""),
    ("billAddrLine1", "address", ""),
    ("billAddrLine2", "address2", ""),
    ("billAddrLine3", "address3", ""),
    ("billAddrPostCode", "postCode", ""),
    ("billAddrState", "state", None),
)

PASSTHROUGH_FIELDS = (
    "shipAddrCountry",
    "shipAddrCity",
    "shipAddrLine1",
    "shipAddrLine2",
    "shipAddrLine3",
    "shipAddrPostCode",
    "shipAddrState",
    "addrMatch",
)

_PHONE_PREFIX = re.compile(r"^\s*(?:\+|00)(\d{1,3})")
_NON_DIGITS = re.compile(r"\D+")


def _lookup(source: Any, key: str, default: Any = None) -> Any:
    """Read `key` from a mapping or an attribute of an arbitrary user object."""
    if source is None:
        return default
    if isinstance(source, Mapping):
        value = source.get(key)
    else:
        value = getattr(source, key, None)
    return default if value is None else value


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _as_text(value: Any) -> Any:
    if value is None or isinstance(value, (dict, list)):
        return value
    if isinstance(value, bool):
        return "Y" if value else "N"
    return str(value)


def _country_code(value: Any) -> str:
    digits = _NON_DIGITS.sub("", "" if value is None else str(value))
    return digits or DEFAULT_PHONE_CC


def _to_ymd(value: Any) -> str:
    """Reformat a timestamp as YYYYMMDD; unparseable values give ''."""
    if isinstance(value, datetime):
        return value.strftime("%Y%m%d")
    if isinstance(value, date):
        return value.strftime("%Y%m%d")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y%m%d")

    text = str(value).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).strftime("%Y%m%d")
    except ValueError:
        pass
    match = re.match(r"^(\d{4})-(\d{2})-(\d{2})", text)
    if match:
        return "".join(match.groups())
    logger.warning("Ignoring unparseable account timestamp")
    return ""


class BillingNormalizer:
    """Turns flexible billing/user data into the gateway's 3DS billing block."""

    @staticmethod
    def extract_phone(raw: Any, cc: Any = None) -> Optional[Dict[str, str]]:
        """
        Build a `{cc, subscriber}` record from a gateway-shaped mapping or a raw string.

        The country code comes from `cc` when given, otherwise from a leading
        `+` / `00` prefix of the raw string, otherwise defaults to 238.
        """
        if _is_blank(raw):
            return None

        if isinstance(raw, Mapping):
            subscriber = _NON_DIGITS.sub("", str(raw.get("subscriber") or ""))
            if not subscriber:
                return None
            if _is_blank(cc):
                cc = raw.get("cc", raw.get("countryCode"))
            return {"cc": _country_code(cc), "subscriber": subscriber}

        text = str(raw)
        subscriber = _NON_DIGITS.sub("", text)
        if not subscriber:
            return None

        if _is_blank(cc):
            prefix = _PHONE_PREFIX.match(text)
            cc = prefix.group(1) if prefix else DEFAULT_PHONE_CC

        return {"cc": _country_code(cc), "subscriber": subscriber}

    @staticmethod
    def account_info(
        user: Any, override: Optional[Mapping] = None, suspicious: Any = None
    ) -> Dict[str, str]:
        """Derive the `acctInfo` block from the user's account timestamps."""
        created_at = _lookup(user, "created_at")
        updated_at = _lookup(user, "updated_at")
        suspicious = _lookup(user, "suspicious", suspicious)

        info = {
            "chAccAgeInd": _lookup(user, "chAccAgeInd", "05" if created_at else "01"),
            "chAccChange": _to_ymd(updated_at) if updated_at else "",
            "chAccDate": _to_ymd(created_at) if created_at else "",
            "chAccPwChange": _to_ymd(updated_at) if updated_at else "",
            "chAccPwChangeInd": _lookup(user, "chAccPwChangeInd", "05" if updated_at else "01"),
            "suspiciousAccActivity": "" if suspicious is None else ("02" if suspicious else "01"),
        }
        if override:
            info.update({k: v for k, v in override.items() if not _is_blank(v)})

        return {k: str(v) for k, v in info.items() if not _is_blank(v)}

    @classmethod
    def normalize(cls, billing: Mapping) -> Dict[str, Any]:
        """
        Normalize a billing map (optionally embedding `user`) into the gateway layout.

        Returns:
            A flat dict holding only non-empty values

        Raises:
            InvalidArgument: If the billing input is not a mapping or a phone record is malformed
        """
        if not isinstance(billing, Mapping):
            raise InvalidArgument("Billing data must be a mapping", field="billing")

        billing = dict(billing)
        user = billing.pop("user", None) or {}

        data: Dict[str, Any] = {}
        for key, user_key, default in ADDRESS_FIELDS:
            value = billing.get(key)
            if value is None:
                value = _lookup(user, user_key, default)
            data[key] = _as_text(value)

        for key in PASSTHROUGH_FIELDS:
            if not _is_blank(billing.get(key)):
                data[key] = _as_text(billing[key])

        mobile = billing.get("mobilePhone")
        if mobile is None:
            mobile = _lookup(user, "mobilePhone", _lookup(user, "phone"))
        work = billing.get("workPhone")
        if work is None:
            work = _lookup(user, "workPhone")

        data["mobilePhone"] = cls.extract_phone(
            mobile, billing.get("mobilePhoneCC", _lookup(user, "mobilePhoneCC"))
        )
        data["workPhone"] = cls.extract_phone(
            work, billing.get("workPhoneCC", _lookup(user, "workPhoneCC"))
        )

        acct_id = billing.get("acctID")
        if acct_id is None:
            acct_id = _lookup(user, "id")
        data["acctID"] = _as_text(acct_id)

        acct_info = cls.account_info(user, billing.get("acctInfo"), billing.get("suspicious"))
        data["acctInfo"] = acct_info or None

        data = {k: v for k, v in data.items() if not _is_blank(v)}

        try:
            BillingInfo.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first["loc"])
            raise InvalidArgument(f"Invalid billing field {field}: {first['msg']}", field=field)

        return data

    @staticmethod
    def missing_fields(normalized: Mapping) -> List[str]:
        return [key for key in REQUIRED_BILLING_FIELDS if _is_blank(normalized.get(key))]

    @classmethod
    def require(cls, normalized: Mapping) -> None:
        """Raise `MissingBillingField` naming every absent required key."""
        missing = cls.missing_fields(normalized)
        if missing:
            raise MissingBillingField(missing)

    @staticmethod
    def encode_purchase_request(normalized: Mapping) -> str:
        """Base64 of the compact UTF-8 JSON billing block (`purchaseRequest`)."""
        payload = json.dumps(normalized, ensure_ascii=False, separators=(",", ":"))
        return base64.b64encode(payload.encode("utf-8")).decode("ascii")

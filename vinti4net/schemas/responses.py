"""
Pydantic result models returned by the gateway client.

`PreparedRequest` is what the request builders hand to the form renderer;
`CallbackResult` is the normalized interpretation of a gateway callback.
Both are frozen: they are created once and never mutated.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional
import json


class CallbackStatus(str, Enum):
    SUCCESS = "SUCCESS"
    CANCELLED = "CANCELLED"
    INVALID_FINGERPRINT = "INVALID_FINGERPRINT"
    ERROR = "ERROR"


class PreparedRequest(BaseModel):
    """Signed request: the form fields plus the gateway URL to post them to."""

    model_config = ConfigDict(frozen=True)

    post_url: str = Field(..., description="Gateway URL carrying FingerPrint/TimeStamp/FingerPrintVersion")
    fields: Dict[str, Any] = Field(..., description="Form fields in gateway order")
    fingerprint: str = Field(..., description="Request fingerprint")
    transaction_code: str = Field(..., description="1=purchase, 2=service, 3=recharge, 4=refund")


class DccInfo(BaseModel):
    """Dynamic Currency Conversion details reported on purchase callbacks."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    amount: Optional[Any] = None
    currency: Optional[Any] = None
    markup: Optional[Any] = None
    rate: Optional[Any] = None
    error: Optional[str] = None


class FingerprintDebug(BaseModel):
    """Received vs. recomputed fingerprint; for server-side logs only."""

    model_config = ConfigDict(frozen=True)

    received: str = ""
    computed: str = ""


class CallbackResult(BaseModel):
    """Normalized interpretation of a gateway callback."""

    model_config = ConfigDict(frozen=True)

    status: CallbackStatus = Field(..., description="Normalized status")
    message: str = Field(..., description="Human-readable result message")
    success: bool = Field(..., description="True only for SUCCESS")
    fingerprint_valid: bool = Field(False, description="Whether resultFingerPrint matched")
    data: Dict[str, Any] = Field(default_factory=dict, description="Raw callback fields")
    dcc: Optional[DccInfo] = None
    debug: Optional[FingerprintDebug] = None
    detail: Optional[str] = None

    # Factories

    @classmethod
    def success_result(
        cls, message: str = "Transaction valid.", data: Dict[str, Any] = None, dcc: DccInfo = None
    ) -> "CallbackResult":
        return cls(
            status=CallbackStatus.SUCCESS, message=message, success=True,
            fingerprint_valid=True, data=data or {}, dcc=dcc,
        )

    @classmethod
    def error_result(
        cls, message: str, detail: Optional[str] = None, data: Dict[str, Any] = None
    ) -> "CallbackResult":
        return cls(status=CallbackStatus.ERROR, message=message, success=False, data=data or {}, detail=detail)

    @classmethod
    def cancelled_result(
        cls, message: str = "User cancelled the transaction.", data: Dict[str, Any] = None
    ) -> "CallbackResult":
        return cls(status=CallbackStatus.CANCELLED, message=message, success=False, data=data or {})

    @classmethod
    def invalid_fingerprint_result(
        cls, debug: FingerprintDebug = None, data: Dict[str, Any] = None
    ) -> "CallbackResult":
        return cls(
            status=CallbackStatus.INVALID_FINGERPRINT,
            message="Invalid fingerprint (check security).",
            success=False,
            data=data or {},
            debug=debug,
        )

    # Predicates

    def is_success(self) -> bool:
        return self.success

    def is_cancelled(self) -> bool:
        return self.status is CallbackStatus.CANCELLED

    def has_invalid_fingerprint(self) -> bool:
        return self.status is CallbackStatus.INVALID_FINGERPRINT

    # Callback accessors

    @property
    def transaction_id(self) -> Optional[str]:
        return self.data.get("merchantRespTid")

    @property
    def clearing_period(self) -> Optional[str]:
        return self.data.get("merchantRespCP")

    @property
    def merchant_ref(self) -> Optional[str]:
        return self.data.get("merchantRespMerchantRef")

    @property
    def message_type(self) -> Optional[str]:
        return self.data.get("messageType")

    @property
    def amount(self) -> Optional[Decimal]:
        value = self.data.get("merchantRespPurchaseAmount")
        if value is None or value == "":
            return None
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return None
        return amount if amount.is_finite() and amount.adjusted() < 16 else None

    @property
    def currency(self) -> Optional[str]:
        return self.data.get("merchantRespCurrency")

    @property
    def additional_error_message(self) -> str:
        return self.data.get("merchantRespAdditionalErrorMessage") or ""

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        """Full result including raw data and debug info; server side only."""
        return self.model_dump(mode="json")

    def to_safe_dict(self) -> Dict[str, Any]:
        """Result safe to echo back over HTTP: no raw data, no fingerprints."""
        return self.model_dump(mode="json", exclude={"data", "debug"})

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

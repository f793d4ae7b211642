"""
Pydantic schemas for the checkout endpoint of the web integration.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, Optional
from decimal import Decimal
import re


class PurchaseCheckout(BaseModel):
    """Body of `POST /payments/purchase`."""

    amount: Decimal = Field(
        ...,
        gt=0,
        max_digits=16,
        description="Amount in escudos (decimals are truncated by the gateway)",
    )

    currency: str = Field(
        "CVE",
        min_length=1,
        max_length=3,
        description="ISO 4217 alpha-3 symbol or numeric code",
    )

    billing: Dict[str, Any] = Field(
        ...,
        description="Billing/user data normalized for 3-D Secure",
    )

    merchant_ref: Optional[str] = Field(
        None,
        min_length=1,
        max_length=15,
        description="Merchant reference (generated when omitted)",
    )

    response_url: Optional[str] = Field(
        None,
        max_length=2048,
        description="Callback URL; defaults to VINTI4_RESPONSE_URL",
    )

    @field_validator("currency")
    @classmethod
    def currency_format(cls, v):
        if not re.fullmatch(r"[A-Za-z]{3}|\d{1,3}", v):
            raise ValueError("currency must be a 3-letter symbol or a numeric code")
        return v.upper()

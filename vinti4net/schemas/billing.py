"""
Pydantic models for the 3-D Secure billing payload sent as `purchaseRequest`.

The models describe the *normalized* shape produced by
`vinti4net.services.billing.BillingNormalizer`; unknown gateway keys
(shipping address, `addrMatch`, ...) are carried through as extras.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
import re


class Phone(BaseModel):
    """Gateway phone record: country calling code plus digits-only subscriber."""

    cc: str = Field(..., pattern=r"^\d{1,3}$", description="Country calling code")
    subscriber: str = Field(..., min_length=1, description="Subscriber number, digits only")

    @field_validator("subscriber")
    @classmethod
    def digits_only(cls, v):
        return re.sub(r"\D+", "", v)


class AccountInfo(BaseModel):
    """Cardholder account indicators ('01' = unavailable, '05' = known date)."""

    model_config = ConfigDict(extra="allow")

    chAccAgeInd: Optional[str] = None
    chAccChange: Optional[str] = Field(None, pattern=r"^\d{8}$")
    chAccDate: Optional[str] = Field(None, pattern=r"^\d{8}$")
    chAccPwChange: Optional[str] = Field(None, pattern=r"^\d{8}$")
    chAccPwChangeInd: Optional[str] = None
    suspiciousAccActivity: Optional[str] = Field(None, pattern=r"^0[12]$")


class BillingInfo(BaseModel):
    """Normalized billing block; required keys are enforced by the normalizer."""

    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None
    billAddrCountry: Optional[str] = None
    billAddrCity: Optional[str] = None
    billAddrLine1: Optional[str] = None
    billAddrLine2: Optional[str] = None
    billAddrLine3: Optional[str] = None
    billAddrPostCode: Optional[str] = None
    billAddrState: Optional[str] = None
    mobilePhone: Optional[Phone] = None
    workPhone: Optional[Phone] = None
    acctID: Optional[str] = Field(None, max_length=64)
    acctInfo: Optional[AccountInfo] = None

"""
x402-compliant facilitator models
Request/response shapes for /verify and /settle, with the protocol's camelCase field names
"""

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PaymentRequirements(BaseModel):
    """Seller-declared payment requirements, supplied fresh on every call"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    scheme: str = Field(description="Payment scheme")
    network: str = Field(description="Network identifier, e.g. aptos:2")
    asset: Optional[str] = Field(default=None, description="Fungible asset metadata address or coin type (APT when omitted)")
    pay_to: str = Field(alias="payTo", description="Recipient address")
    amount: Optional[str] = Field(default=None, description="Exact amount in the smallest unit")
    max_amount_required: Optional[str] = Field(
        default=None,
        alias="maxAmountRequired",
        description="Legacy (x402 v1) amount field",
    )
    resource: Optional[str] = None
    description: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")
    max_timeout_seconds: Optional[int] = Field(default=None, alias="maxTimeoutSeconds")
    extra: Optional[Dict[str, Any]] = None

    @field_validator("amount", "max_amount_required")
    @classmethod
    def validate_amount(cls, v):
        if v is not None and not re.fullmatch(r"[0-9]+", str(v).strip()):
            raise ValueError("amount must be an integer encoded as a string")
        return v

    @model_validator(mode="after")
    def require_amount(self):
        if self.amount is None and self.max_amount_required is None:
            raise ValueError("amount or maxAmountRequired is required")
        return self

    @property
    def required_amount(self) -> int:
        return int(self.amount if self.amount is not None else self.max_amount_required)

    @property
    def declares_maximum_only(self) -> bool:
        """True for legacy requirements that only carry maxAmountRequired"""
        return self.amount is None

    @property
    def sponsored(self) -> bool:
        return bool((self.extra or {}).get("sponsored", False))


class PaymentPayload(BaseModel):
    """x402 payment payload built and signed by the payer"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    x402_version: Optional[int] = Field(default=None, alias="x402Version")
    scheme: Optional[str] = None
    network: Optional[str] = None
    accepted: Optional[Dict[str, Any]] = Field(default=None, description="x402 v2: the requirements being fulfilled")
    resource: Optional[Any] = None
    payload: Dict[str, Any] = Field(description="Contains transaction and (optionally) signature")

    @property
    def declared_scheme(self) -> Optional[str]:
        if self.scheme is not None:
            return self.scheme
        return (self.accepted or {}).get("scheme")

    @property
    def declared_network(self) -> Optional[str]:
        if self.network is not None:
            return self.network
        return (self.accepted or {}).get("network")


class VerifyRequest(BaseModel):
    """Body of POST /verify"""
    model_config = ConfigDict(populate_by_name=True)

    x402_version: int = Field(alias="x402Version")
    payment_header: Union[str, Dict[str, Any]] = Field(alias="paymentHeader")
    payment_requirements: PaymentRequirements = Field(alias="paymentRequirements")


class SettleRequest(VerifyRequest):
    """Body of POST /settle"""


class VerifyResponse(BaseModel):
    """Verification verdict"""
    model_config = ConfigDict(populate_by_name=True)

    is_valid: bool = Field(alias="isValid")
    invalid_reason: Optional[str] = Field(default=None, alias="invalidReason")


class SettleResponse(BaseModel):
    """Settlement verdict; success means submitted, not confirmed"""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    transaction: Optional[str] = Field(default=None, description="Transaction hash")
    network: Optional[str] = None
    payer: Optional[str] = None
    error: Optional[str] = None


class SupportedKind(BaseModel):
    """One (version, scheme, network) combination this facilitator settles"""
    model_config = ConfigDict(populate_by_name=True)

    x402_version: int = Field(alias="x402Version")
    scheme: str
    network: str
    extra: Optional[Dict[str, Any]] = None


class SupportedResponse(BaseModel):
    kinds: List[SupportedKind]

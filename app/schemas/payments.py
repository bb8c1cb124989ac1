from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class PaymentMetadata(BaseModel):
    """Caller metadata forwarded to the provider; unknown keys are kept."""

    model_config = ConfigDict(extra="allow")

    # Values are forwarded as sent; clients send ids and tiers as numbers too
    tier: Optional[Any] = None
    subscriptionType: Optional[Any] = None
    userId: Optional[Any] = None
    botName: Optional[Any] = None
    returnUrl: Optional[Any] = None


class InitializeRequest(BaseModel):
    # Presence of email/phoneNumber and amount is checked by the route so a
    # missing field answers 400 rather than 422.
    email: Optional[str] = None
    phoneNumber: Optional[str | int] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    callback_url: Optional[str] = None
    metadata: Optional[PaymentMetadata] = None


class MpesaInitiateRequest(BaseModel):
    phoneNumber: Optional[str | int] = None
    amount: Optional[float] = None
    accountReference: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[PaymentMetadata] = None


class VerificationOut(BaseModel):
    reference: str
    provider: str
    success: bool
    status: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    verified_at: float
    cached: bool = False

"""Canonical, provider-agnostic models shared across the pipeline."""

import enum
from decimal import Decimal
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field, field_validator

CENTS = Decimal("0.01")

# Amounts are stored as 32-bit integers of minor units
MAX_MINOR_AMOUNT = 2**31 - 1


class Provider(str, enum.Enum):
    """Payment providers that deliver completion events."""
    STRIPE = "stripe"
    PAYPAL = "paypal"

    @property
    def display_name(self) -> str:
        return {"stripe": "Stripe", "paypal": "Paypal"}[self.value]


class VerifiedEvent(BaseModel):
    """An inbound event proven to originate from ``provider``."""
    provider: Provider
    event_id: Optional[str] = None
    event_type: str
    payload: Dict[str, Any]


class VerificationResult(BaseModel):
    """Uniform verifier outcome; verifiers never raise on a bad event."""
    provider: Provider
    ok: bool
    event: Optional[VerifiedEvent] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, event: VerifiedEvent) -> "VerificationResult":
        return cls(provider=event.provider, ok=True, event=event)

    @classmethod
    def failure(cls, provider: Provider, error: str) -> "VerificationResult":
        return cls(provider=provider, ok=False, error=error)


class DonationIntent(BaseModel):
    """What a completed payment pays for: who, which item, how much, for whom."""
    provider: Provider
    payer_user_id: str = Field(..., min_length=1)
    item_id: str = Field(..., min_length=1)
    donation_amount: Decimal = Field(..., gt=0, description="Charged total: item price + supplemental")
    supplemental_amount: Optional[Decimal] = Field(None, ge=0)
    beneficiary_agency_name: str = Field(..., min_length=1)
    event_id: Optional[str] = None

    @field_validator("donation_amount", "supplemental_amount")
    @classmethod
    def _whole_minor_units(cls, value: Optional[Decimal]) -> Optional[Decimal]:
        if value is None:
            return value
        if value * 100 > MAX_MINOR_AMOUNT:
            raise ValueError(f"amount {value} exceeds {MAX_MINOR_AMOUNT} minor units")
        if value.quantize(CENTS) != value:
            raise ValueError(f"amount {value} has fractional minor units")
        return value

    @property
    def donation_amount_minor(self) -> int:
        return int(self.donation_amount * 100)


class CommitStatus(str, enum.Enum):
    COMMITTED = "committed"
    SKIPPED = "skipped"
    FAILED = "failed"


class ChannelResult(BaseModel):
    """Outcome of one notification channel dispatch."""
    channel: str
    delivered: bool
    error: Optional[str] = None


class CommitOutcome(BaseModel):
    """Result of one commit attempt."""
    status: CommitStatus
    reason: Optional[str] = None
    donation_id: Optional[str] = None
    notifications: List[ChannelResult] = Field(default_factory=list)

    @classmethod
    def committed(cls, donation_id: str, notifications: List[ChannelResult]) -> "CommitOutcome":
        return cls(status=CommitStatus.COMMITTED, donation_id=donation_id, notifications=notifications)

    @classmethod
    def skipped(cls, reason: str = "duplicate") -> "CommitOutcome":
        return cls(status=CommitStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, reason: str) -> "CommitOutcome":
        return cls(status=CommitStatus.FAILED, reason=reason)

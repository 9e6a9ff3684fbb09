"""Exceptions raised by the donation reconciliation pipeline.

Exception hierarchy:
    DonationPaymentsError (base)
    ├── VerificationError      inbound event not proven to come from the provider
    ├── NormalizationError     verified payload cannot be mapped to a DonationIntent
    ├── EntityNotFoundError    payer, item or agency missing from the record store
    └── NotificationError      a single notification channel failed

Duplicate deliveries are not errors; the dedup gate reports them as a
skipped commit.
"""

from typing import Optional


class DonationPaymentsError(Exception):
    """Base exception for all donation payment errors."""


class VerificationError(DonationPaymentsError):
    """Raised when a provider event fails authenticity verification."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class NormalizationError(DonationPaymentsError):
    """Raised when a provider payload is malformed or missing fields."""


class EntityNotFoundError(DonationPaymentsError):
    """Raised when a referenced domain record does not exist."""

    def __init__(self, entity: str, identifier: str):
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = identifier


class NotificationError(DonationPaymentsError):
    """Raised by a notification channel that could not deliver."""

    def __init__(self, channel: str, message: str):
        super().__init__(f"{channel}: {message}")
        self.channel = channel

"""Payment-completion reconciliation.

Turns verified Stripe and PayPal completion events into exactly one
committed donation per item:

- normalize provider payloads into a DonationIntent
- suppress redundant deliveries with a dedup gate
- mark the item donated, persist the donation, fan out notifications
"""

from .normalizer import normalize, encode_reference, decode_reference
from .dedup import DedupGate, InMemoryDedupGate, LedgerDedupGate
from .notifications import (
    NotificationService,
    LoggingNotificationService,
    DiscordNotificationService,
    NotificationFanout,
    PayerConfirmation,
    AgencyConfirmation,
    PublicAnnouncement,
)
from .orchestrator import CommitOrchestrator
from .pipeline import WebhookProcessor, WebhookResult, WebhookStatus

__all__ = [
    # Normalizer
    "normalize",
    "encode_reference",
    "decode_reference",
    # Dedup
    "DedupGate",
    "InMemoryDedupGate",
    "LedgerDedupGate",
    # Notifications
    "NotificationService",
    "LoggingNotificationService",
    "DiscordNotificationService",
    "NotificationFanout",
    "PayerConfirmation",
    "AgencyConfirmation",
    "PublicAnnouncement",
    # Commit and pipeline
    "CommitOrchestrator",
    "WebhookProcessor",
    "WebhookResult",
    "WebhookStatus",
]

# donation_payments package
__version__ = "0.1.0"

from .models import (
    Provider,
    DonationIntent,
    CommitOutcome,
    CommitStatus,
    ChannelResult,
    VerifiedEvent,
    VerificationResult,
)
from .exceptions import (
    DonationPaymentsError,
    VerificationError,
    NormalizationError,
    EntityNotFoundError,
    NotificationError,
)
from .verifiers import Verifier, StripeVerifier, PayPalVerifier, select_verifier
from .reconciliation import (
    normalize,
    InMemoryDedupGate,
    LedgerDedupGate,
    NotificationFanout,
    CommitOrchestrator,
    WebhookProcessor,
)
from .services import CheckoutService

"""Provider verifiers for inbound payment webhooks."""

from typing import Dict, Any, List, Optional

from ..config import Settings
from .base import Verifier
from .stripe_verifier import StripeVerifier, SIGNATURE_HEADER
from .paypal_verifier import PayPalVerifier, ORDER_APPROVED, TRANSMISSION_HEADERS


def build_verifiers(settings: Settings) -> List[Verifier]:
    """Verifiers in selection order: a Stripe signature header wins."""
    return [
        StripeVerifier(signing_secret=settings.stripe_signing_secret),
        PayPalVerifier(
            client_id=settings.paypal_client_id,
            secret=settings.paypal_secret,
            webhook_id=settings.paypal_webhook_id,
            base_url=settings.paypal_base_url,
        ),
    ]


def select_verifier(
    headers: Dict[str, str],
    payload: Dict[str, Any],
    verifiers: List[Verifier],
) -> Optional[Verifier]:
    """Return the first verifier whose provider signal is present, else None."""
    for verifier in verifiers:
        if verifier.matches(headers, payload):
            return verifier
    return None


__all__ = [
    "Verifier",
    "StripeVerifier",
    "PayPalVerifier",
    "SIGNATURE_HEADER",
    "ORDER_APPROVED",
    "TRANSMISSION_HEADERS",
    "build_verifiers",
    "select_verifier",
]

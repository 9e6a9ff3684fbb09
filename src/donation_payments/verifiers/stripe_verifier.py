import logging
from typing import Dict, Any

import stripe

from ..models import Provider, VerifiedEvent, VerificationResult
from .base import Verifier

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "stripe-signature"


class StripeVerifier(Verifier):
    """
    Verifies Stripe webhooks by their ``Stripe-Signature`` HMAC header using
    stripe-python's ``Webhook.construct_event``.
    """

    provider = Provider.STRIPE

    def __init__(self, signing_secret: str):
        self.signing_secret = signing_secret

    def matches(self, headers: Dict[str, str], payload: Dict[str, Any]) -> bool:
        return bool(headers.get(SIGNATURE_HEADER))

    async def verify(
        self,
        headers: Dict[str, str],
        raw_body: bytes,
        payload: Dict[str, Any],
    ) -> VerificationResult:
        if not self.signing_secret:
            logger.error("Stripe signing secret is not configured")
            return VerificationResult.failure(self.provider, "Stripe signing secret is not configured")
        try:
            event = stripe.Webhook.construct_event(
                payload=raw_body,
                sig_header=headers.get(SIGNATURE_HEADER, ""),
                secret=self.signing_secret,
            )
        except Exception as e:
            # SignatureVerificationError for bad signatures, ValueError for bad JSON
            logger.warning(f"Stripe signature verification failed: {e}")
            return VerificationResult.failure(self.provider, str(e))

        # The signed body is the payload we already parsed
        return VerificationResult.success(VerifiedEvent(
            provider=self.provider,
            event_id=payload.get("id") or getattr(event, "id", None),
            event_type=payload.get("type") or getattr(event, "type", "unknown"),
            payload=payload,
        ))

"""Webhook pipeline: verify -> normalize -> dedup -> commit -> notify."""

import json
import enum
import logging
from typing import Dict, Any, List, Optional, Mapping

from pydantic import BaseModel

from ..exceptions import NormalizationError, VerificationError
from ..models import CommitOutcome, Provider
from ..verifiers import Verifier, select_verifier
from .normalizer import normalize
from .orchestrator import CommitOrchestrator

logger = logging.getLogger(__name__)


class WebhookStatus(str, enum.Enum):
    IGNORED = "ignored"      # no provider signal, or not a completion event
    REJECTED = "rejected"    # verification failed, answer with a client error
    INVALID = "invalid"      # verified but not normalizable
    PROCESSED = "processed"  # reached the commit step


class WebhookResult(BaseModel):
    status: WebhookStatus
    provider: Optional[Provider] = None
    outcome: Optional[CommitOutcome] = None
    error: Optional[str] = None


def parse_body(raw_body: bytes) -> Dict[str, Any]:
    """Best-effort JSON parse; an unparseable body carries no provider signal."""
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


class WebhookProcessor:
    """Runs one inbound webhook through the reconciliation pipeline."""

    def __init__(
        self,
        verifiers: List[Verifier],
        orchestrator: CommitOrchestrator,
        stripe_completion_events: List[str],
    ):
        self.verifiers = verifiers
        self.orchestrator = orchestrator
        self.stripe_completion_events = set(stripe_completion_events)

    async def process(self, headers: Mapping[str, str], raw_body: bytes) -> WebhookResult:
        """Process a webhook request.

        Args:
            headers: Request headers, any case.
            raw_body: Exact request body bytes, as signed by the provider.

        Returns:
            WebhookResult describing how far the event got.

        Raises:
            VerificationError: When a provider whose failures are fatal
                (PayPal) could not verify the event.
        """
        headers = {k.lower(): v for k, v in headers.items()}
        payload = parse_body(raw_body)

        verifier = select_verifier(headers, payload, self.verifiers)
        if verifier is None:
            logger.debug("Webhook carries no provider signal, acknowledging")
            return WebhookResult(status=WebhookStatus.IGNORED)

        result = await verifier.verify(headers, raw_body, payload)
        if not result.ok:
            if verifier.fatal_on_failure:
                logger.error(f"{verifier.provider.value} verification failed: {result.error}")
                raise VerificationError(result.error or "verification failed", provider=verifier.provider.value)
            return WebhookResult(status=WebhookStatus.REJECTED, provider=verifier.provider, error=result.error)

        event = result.event
        if event.provider == Provider.STRIPE and event.event_type not in self.stripe_completion_events:
            logger.info(f"Ignoring Stripe event {event.event_id} of type {event.event_type}")
            return WebhookResult(status=WebhookStatus.IGNORED, provider=event.provider)

        try:
            intent = normalize(event)
        except NormalizationError as e:
            logger.error(f"Could not normalize {event.provider.value} event {event.event_id}: {e}")
            return WebhookResult(status=WebhookStatus.INVALID, provider=event.provider, error=str(e))

        outcome = await self.orchestrator.commit(intent)
        return WebhookResult(status=WebhookStatus.PROCESSED, provider=event.provider, outcome=outcome)

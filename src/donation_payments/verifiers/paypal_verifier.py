"""PayPal webhook verification against PayPal's verify-webhook-signature API."""

import logging
from typing import Dict, Any, Optional

import httpx

from ..models import Provider, VerifiedEvent, VerificationResult
from .base import Verifier

logger = logging.getLogger(__name__)

ORDER_APPROVED = "CHECKOUT.ORDER.APPROVED"

# PayPal transmission header -> verify-webhook-signature body field
TRANSMISSION_HEADERS = {
    "paypal-auth-algo": "auth_algo",
    "paypal-cert-url": "cert_url",
    "paypal-transmission-id": "transmission_id",
    "paypal-transmission-sig": "transmission_sig",
    "paypal-transmission-time": "transmission_time",
}


class PayPalVerifier(Verifier):
    """
    Verifies PayPal ``CHECKOUT.ORDER.APPROVED`` webhooks by asking PayPal to
    check the transmission signature.

    Flow:
    - exchange client credentials for an OAuth access token
    - POST the transmission headers, webhook id and event to
      ``/v1/notifications/verify-webhook-signature``
    - accept only ``verification_status == "SUCCESS"``
    """

    provider = Provider.PAYPAL
    fatal_on_failure = True

    def __init__(
        self,
        client_id: str,
        secret: str,
        webhook_id: str,
        base_url: str = "https://api-m.sandbox.paypal.com",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.secret = secret
        self.webhook_id = webhook_id
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def matches(self, headers: Dict[str, str], payload: Dict[str, Any]) -> bool:
        return payload.get("event_type") == ORDER_APPROVED

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.secret),
        )
        response.raise_for_status()
        return response.json()["access_token"]

    async def verify(
        self,
        headers: Dict[str, str],
        raw_body: bytes,
        payload: Dict[str, Any],
    ) -> VerificationResult:
        missing = [h for h in TRANSMISSION_HEADERS if not headers.get(h)]
        if missing:
            return VerificationResult.failure(
                self.provider, f"Missing PayPal transmission headers: {', '.join(missing)}"
            )

        body = {field: headers[h] for h, field in TRANSMISSION_HEADERS.items()}
        body["webhook_id"] = self.webhook_id
        body["webhook_event"] = payload

        try:
            async with self._client() as client:
                token = await self._access_token(client)
                response = await client.post(
                    "/v1/notifications/verify-webhook-signature",
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
                response.raise_for_status()
                result = response.json()
                if not isinstance(result, dict):
                    raise ValueError(f"unexpected verification response: {result!r}")
                status = result.get("verification_status")
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
            logger.error(f"PayPal verification request failed: {e}")
            return VerificationResult.failure(self.provider, f"PayPal verification request failed: {e}")

        if status != "SUCCESS":
            logger.warning(f"PayPal rejected webhook {payload.get('id')}: {status}")
            return VerificationResult.failure(self.provider, f"PayPal verification status {status}")

        return VerificationResult.success(VerifiedEvent(
            provider=self.provider,
            event_id=payload.get("id"),
            event_type=ORDER_APPROVED,
            payload=payload,
        ))

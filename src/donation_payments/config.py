"""Runtime configuration read from the environment."""

import os
import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_COMPLETION_EVENTS = "payment_intent.succeeded"


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseModel):
    """Service settings. Secrets are never logged."""
    environment: str = "production"
    stripe_api_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_secret_local: Optional[str] = None
    stripe_completion_events: List[str] = Field(
        default_factory=lambda: _split(DEFAULT_COMPLETION_EVENTS)
    )
    paypal_client_id: str = ""
    paypal_secret: str = ""
    paypal_webhook_id: str = ""
    currency: str = "usd"
    dedup_backend: str = "ledger"  # ledger|memory
    dedup_ttl_hours: int = 720
    discord_webhook_url: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            environment=os.getenv("ENVIRONMENT", "production").lower(),
            stripe_api_key=os.getenv("STRIPE_API_KEY", ""),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET", ""),
            stripe_webhook_secret_local=os.getenv("STRIPE_WEBHOOK_SECRET_LOCAL") or None,
            stripe_completion_events=_split(
                os.getenv("STRIPE_COMPLETION_EVENTS", DEFAULT_COMPLETION_EVENTS)
            ),
            paypal_client_id=os.getenv("PAYPAL_CLIENT_ID", ""),
            paypal_secret=os.getenv("PAYPAL_SECRET", ""),
            paypal_webhook_id=os.getenv("PAYPAL_WEBHOOK_ID", ""),
            currency=os.getenv("CURRENCY", "usd").lower(),
            dedup_backend=os.getenv("DEDUP_BACKEND", "ledger").lower(),
            dedup_ttl_hours=int(os.getenv("DEDUP_TTL_HOURS", "720")),
            discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL") or None,
        )

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def stripe_signing_secret(self) -> str:
        """Signing secret for Stripe webhooks.

        A local secret (as printed by ``stripe listen``) overrides the
        dashboard secret, but only in development.
        """
        if self.is_development and self.stripe_webhook_secret_local:
            return self.stripe_webhook_secret_local
        return self.stripe_webhook_secret

    @property
    def paypal_base_url(self) -> str:
        if self.is_development:
            return "https://api-m.sandbox.paypal.com"
        return "https://api-m.paypal.com"


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging for the API and the CLI."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

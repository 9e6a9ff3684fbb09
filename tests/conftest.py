"""Shared test fixtures and configuration."""

import os
import hmac
import json
import time
import hashlib
import pytest
from typing import Dict, Any, List, Optional, Set

# Set up test environment variables before importing modules
os.environ.setdefault("STRIPE_API_KEY", "sk_test_dummy_key_for_testing")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from donation_payments.database import (
    Base,
    User,
    Agency,
    Item,
    create_async_engine,
    get_async_session_factory,
)
from donation_payments.reconciliation.notifications import (
    NotificationService,
    PayerConfirmation,
    AgencyConfirmation,
    PublicAnnouncement,
)

STRIPE_SECRET = "whsec_test_secret"


def sign_stripe_payload(body: bytes, secret: str = STRIPE_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhooks."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{body.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event_body(
    item_id: str = "i9",
    user_id: str = "u1",
    amount: str = "37.50",
    supplemental: str = "5.00",
    agency: str = "HopeAgency",
    event_type: str = "payment_intent.succeeded",
    event_id: str = "evt_test_1",
) -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "pi_test_1",
                "object": "payment_intent",
                "amount": 3750,
                "metadata": {
                    "user_id": user_id,
                    "item_id": item_id,
                    "amount": amount,
                    "supplemental_amount": supplemental,
                    "agency_name": agency,
                },
            }
        },
    }).encode("utf-8")


def paypal_event(reference: str = "u1%i9%5.00%HopeAgency", amount: str = "37.50") -> Dict[str, Any]:
    return {
        "id": "WH-TEST-1",
        "event_type": "CHECKOUT.ORDER.APPROVED",
        "resource": {
            "id": "ORDER-1",
            "purchase_units": [
                {"reference_id": reference, "amount": {"currency_code": "USD", "value": amount}}
            ],
        },
    }


PAYPAL_HEADERS = {
    "paypal-auth-algo": "SHA256withRSA",
    "paypal-cert-url": "https://api.paypal.com/cert.pem",
    "paypal-transmission-id": "tx-1",
    "paypal-transmission-sig": "sig",
    "paypal-transmission-time": "2026-10-19T10:00:00Z",
}


class RecordingNotificationService(NotificationService):
    """Records every send; channels named in ``failing`` raise."""

    def __init__(self, failing: Optional[Set[str]] = None):
        self.failing = failing or set()
        self.sent: List[tuple] = []

    async def _record(self, channel: str, payload) -> None:
        self.sent.append((channel, payload))
        if channel in self.failing:
            raise RuntimeError(f"{channel} is down")

    async def send_payer_confirmation(self, payload: PayerConfirmation) -> None:
        await self._record("payer_confirmation", payload)

    async def send_agency_confirmation(self, payload: AgencyConfirmation) -> None:
        await self._record("agency_confirmation", payload)

    async def send_public_announcement(self, payload: PublicAnnouncement) -> None:
        await self._record("public_announcement", payload)

    @property
    def channels(self) -> List[str]:
        return [channel for channel, _ in self.sent]


def build_records() -> Dict[str, Any]:
    """The donor, agency and item used across tests."""
    agency = Agency(
        id="a1",
        name="HopeAgency",
        manager_email="manager@hope.example",
        address1="1 Main St",
        address2="Suite 2",
        city="Springfield",
        state="IL",
        zipcode="62701",
    )
    user = User(id="u1", email="donor@example.com", first_name="Dana", last_name="Donor")
    item = Item(
        id="i9",
        name="Bicycle",
        price=3250,
        url="https://shop.example/bike",
        child_first_name="Sam",
        owner_id="a1",
    )
    return {"agency": agency, "user": user, "item": item}


def seed_records(session) -> Dict[str, Any]:
    """Add the standard records to ``session`` (not flushed)."""
    records = build_records()
    session.add_all(list(records.values()))
    return records


# Database fixtures
@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        database_url="sqlite+aiosqlite:///:memory:",
        echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Create a database session for testing."""
    session_factory = get_async_session_factory(db_engine)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded_session(db_session):
    """Session with the standard donor, agency and item committed."""
    seed_records(db_session)
    await db_session.commit()
    yield db_session


@pytest.fixture
def notifications():
    return RecordingNotificationService()

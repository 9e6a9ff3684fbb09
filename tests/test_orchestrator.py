"""Tests for the commit orchestrator."""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from donation_payments.database import (
    Donation,
    DonationRepository,
    ItemRepository,
    ItemStatus,
    ProcessedEventRepository,
)
from donation_payments.models import CommitStatus, DonationIntent, Provider
from donation_payments.reconciliation import (
    CommitOrchestrator,
    InMemoryDedupGate,
    LedgerDedupGate,
    NotificationFanout,
)

from conftest import RecordingNotificationService


def make_intent(**overrides) -> DonationIntent:
    fields = dict(
        provider=Provider.STRIPE,
        payer_user_id="u1",
        item_id="i9",
        donation_amount=Decimal("37.50"),
        supplemental_amount=Decimal("5.00"),
        beneficiary_agency_name="HopeAgency",
        event_id="evt_1",
    )
    fields.update(overrides)
    return DonationIntent(**fields)


def orchestrator(session, gate=None, notifications=None) -> CommitOrchestrator:
    return CommitOrchestrator(
        session,
        gate or LedgerDedupGate(session),
        NotificationFanout(notifications or RecordingNotificationService()),
    )


class TestCommit:
    """Tests for the commit sequence."""

    async def test_commits_donation(self, seeded_session, notifications):
        outcome = await orchestrator(seeded_session, notifications=notifications).commit(
            make_intent(), today=date(2026, 10, 19)
        )

        assert outcome.status == CommitStatus.COMMITTED
        assert outcome.donation_id is not None

        item = await ItemRepository(seeded_session).get_by_id("i9")
        assert item.status == ItemStatus.DONATED.value

        donations = await DonationRepository(seeded_session).list_by_item("i9")
        assert len(donations) == 1
        assert donations[0].amount == 3750
        assert donations[0].amount_major == Decimal("37.50")
        assert donations[0].donor_id == "u1"
        assert donations[0].recipient_id == "a1"
        assert donations[0].provider == "stripe"

        assert len(outcome.notifications) == 3
        assert notifications.channels == [
            "payer_confirmation", "agency_confirmation", "public_announcement"
        ]

    async def test_duplicate_is_skipped(self, seeded_session, notifications):
        orch = orchestrator(seeded_session, notifications=notifications)
        await orch.commit(make_intent())
        outcome = await orch.commit(make_intent(event_id="evt_2"))

        assert outcome.status == CommitStatus.SKIPPED
        assert outcome.reason == "duplicate"
        assert len(await DonationRepository(seeded_session).list_by_item("i9")) == 1
        assert len(notifications.sent) == 3

    async def test_duplicate_across_providers(self, seeded_session):
        orch = orchestrator(seeded_session)
        await orch.commit(make_intent())
        outcome = await orch.commit(make_intent(provider=Provider.PAYPAL))
        assert outcome.status == CommitStatus.SKIPPED

    @pytest.mark.parametrize("overrides,entity", [
        ({"item_id": "missing"}, "item"),
        ({"payer_user_id": "nobody"}, "user"),
        ({"beneficiary_agency_name": "NoSuchAgency"}, "agency"),
    ])
    async def test_missing_entity_fails_without_mutation(self, seeded_session, notifications, overrides, entity):
        outcome = await orchestrator(seeded_session, notifications=notifications).commit(make_intent(**overrides))

        assert outcome.status == CommitStatus.FAILED
        assert outcome.reason == f"NotFound: {entity}"
        item = await ItemRepository(seeded_session).get_by_id("i9")
        assert item.status == ItemStatus.PUBLISHED.value
        assert await DonationRepository(seeded_session).list_by_item("i9") == []
        assert notifications.sent == []

    async def test_failed_commit_releases_dedup_key(self, seeded_session):
        gate = InMemoryDedupGate()
        orch = orchestrator(seeded_session, gate=gate)

        await orch.commit(make_intent(payer_user_id="nobody"))
        assert gate.last_key is None

        outcome = await orch.commit(make_intent())
        assert outcome.status == CommitStatus.COMMITTED

    async def test_notification_failure_keeps_committed(self, seeded_session):
        notifications = RecordingNotificationService(failing={"public_announcement"})

        outcome = await orchestrator(seeded_session, notifications=notifications).commit(make_intent())

        assert outcome.status == CommitStatus.COMMITTED
        delivered = {r.channel: r.delivered for r in outcome.notifications}
        assert delivered == {
            "payer_confirmation": True,
            "agency_confirmation": True,
            "public_announcement": False,
        }

    async def test_persist_failure_leaves_item_marked(self, seeded_session, notifications):
        gate = InMemoryDedupGate()
        orch = orchestrator(seeded_session, gate=gate, notifications=notifications)

        with patch.object(orch.donation_repo, "create", AsyncMock(side_effect=RuntimeError("disk full"))):
            outcome = await orch.commit(make_intent())

        assert outcome.status == CommitStatus.FAILED
        assert "disk full" in outcome.reason
        item = await ItemRepository(seeded_session).get_by_id("i9")
        assert item.status == ItemStatus.DONATED.value
        assert notifications.sent == []
        assert gate.last_key is None

    async def test_flush_failure_leaves_session_usable(self, seeded_session, notifications):
        orch = orchestrator(seeded_session, notifications=notifications)

        async def create_without_amount(**kwargs):
            seeded_session.add(Donation(
                donor_id=kwargs["donor_id"],
                item_id=kwargs["item_id"],
                recipient_id=kwargs["recipient_id"],
                amount=None,
                provider=kwargs["provider"],
            ))
            await seeded_session.flush()

        with patch.object(orch.donation_repo, "create", create_without_amount):
            outcome = await orch.commit(make_intent())

        assert outcome.status == CommitStatus.FAILED
        assert outcome.reason.startswith("IntegrityError")
        assert notifications.sent == []
        assert await ProcessedEventRepository(seeded_session).get_by_key("i9") is None
        await seeded_session.commit()

        item = await ItemRepository(seeded_session).get_by_id("i9")
        assert item.status == ItemStatus.DONATED.value
        assert await DonationRepository(seeded_session).list_by_item("i9") == []

    async def test_donation_durable_before_notifications(self, seeded_session):
        committed_at_dispatch = []

        class CheckingNotifications(RecordingNotificationService):
            async def send_payer_confirmation(self, payload):
                committed_at_dispatch.append(not seeded_session.in_transaction())
                await super().send_payer_confirmation(payload)

        outcome = await orchestrator(seeded_session, notifications=CheckingNotifications()).commit(make_intent())

        assert outcome.status == CommitStatus.COMMITTED
        assert committed_at_dispatch == [True]

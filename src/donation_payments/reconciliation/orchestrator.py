"""Commit orchestration: the only place domain state is mutated."""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..database import (
    ItemStatus,
    UserRepository,
    ItemRepository,
    AgencyRepository,
    DonationRepository,
)
from ..exceptions import EntityNotFoundError
from ..models import CommitOutcome, DonationIntent
from .dedup import DedupGate
from .notifications import NotificationFanout

logger = logging.getLogger(__name__)


class CommitOrchestrator:
    """Commits a DonationIntent against the record store."""

    def __init__(
        self,
        session: AsyncSession,
        dedup_gate: DedupGate,
        fanout: NotificationFanout,
    ):
        """Initialize the orchestrator.

        Args:
            session: AsyncSession used for every read and write of the commit.
            dedup_gate: Gate consulted before anything is resolved.
            fanout: Notification fan-out run after the donation is persisted.
        """
        self.session = session
        self.dedup_gate = dedup_gate
        self.fanout = fanout
        self.user_repo = UserRepository(session)
        self.item_repo = ItemRepository(session)
        self.agency_repo = AgencyRepository(session)
        self.donation_repo = DonationRepository(session)

    async def _resolve(self, intent: DonationIntent):
        payer = await self.user_repo.get_by_id(intent.payer_user_id)
        if payer is None:
            raise EntityNotFoundError("user", intent.payer_user_id)
        item = await self.item_repo.get_by_id(intent.item_id)
        if item is None:
            raise EntityNotFoundError("item", intent.item_id)
        agency = await self.agency_repo.get_by_name(intent.beneficiary_agency_name)
        if agency is None:
            raise EntityNotFoundError("agency", intent.beneficiary_agency_name)
        return payer, item, agency

    async def commit(self, intent: DonationIntent, today: Optional[date] = None) -> CommitOutcome:
        """Commit a donation.

        Sequence:
        1. dedup check-and-set on the item id
        2. resolve payer, item and agency; a miss fails before any mutation
        3. mark the item donated and commit (never rolled back by this method)
        4. persist the donation record and commit
        5. notification fan-out; its failures never change the outcome

        Notifications are only sent once the donation is durable. A failure in
        steps 3-4 rolls back the pending work and releases the dedup key, so the
        session stays usable for the caller.

        Args:
            intent: Normalized donation intent.
            today: Donation date used in notifications, defaults to today.

        Returns:
            CommitOutcome (committed, skipped as duplicate, or failed).
        """
        provider = intent.provider.value
        amount = intent.donation_amount_minor
        if not await self.dedup_gate.should_process(intent.item_id, provider, intent.event_id):
            return CommitOutcome.skipped("duplicate")

        try:
            payer, item, agency = await self._resolve(intent)
        except EntityNotFoundError as e:
            logger.error(f"Commit for {provider} event {intent.event_id} aborted: {e}")
            await self.dedup_gate.release(intent.item_id)
            return CommitOutcome.failed(f"NotFound: {e.entity}")

        try:
            await self.item_repo.update_status(item, ItemStatus.DONATED.value)
            await self.session.commit()
            donation = await self.donation_repo.create(
                donor_id=payer.id,
                item_id=item.id,
                recipient_id=item.owner_id,
                amount=amount,
                provider=provider,
            )
            await self.session.commit()
        except Exception as e:
            logger.exception(f"Commit for item {item.id} failed after resolution")
            await self.session.rollback()
            await self._release_quietly(intent.item_id)
            return CommitOutcome.failed(f"{type(e).__name__}: {e}")

        notifications = await self.fanout.dispatch(intent, payer, item, agency, today=today)
        logger.info(
            f"Committed {provider} donation {donation.id}: item {item.id}, "
            f"{intent.donation_amount} from user {payer.id}"
        )
        return CommitOutcome.committed(donation.id, notifications)

    async def _release_quietly(self, key: str) -> None:
        try:
            await self.dedup_gate.release(key)
        except Exception as e:
            logger.error(f"Could not release dedup key {key}: {e}")

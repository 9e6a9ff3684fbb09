"""Repository layer for donation persistence operations."""

import logging
from datetime import datetime, timedelta
from typing import Optional, List

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    User,
    Agency,
    Item,
    Donation,
    ProcessedEvent,
)

logger = logging.getLogger(__name__)

# Default dedup ledger retention in hours
DEFAULT_LEDGER_TTL_HOURS = 720


class UserRepository:
    """Read access to donors."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        return await self.session.get(User, user_id)


class AgencyRepository:
    """Read access to partner agencies."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_name(self, name: str) -> Optional[Agency]:
        """Get an agency by its unique display name.

        Args:
            name: Agency name as stamped on the payment.

        Returns:
            Agency instance if found, None otherwise.
        """
        result = await self.session.execute(
            select(Agency).where(Agency.name == name)
        )
        return result.scalar_one_or_none()


class ItemRepository:
    """Repository for wish item lookups and status changes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, item_id: str) -> Optional[Item]:
        return await self.session.get(Item, item_id)

    async def update_status(self, item: Item, new_status: str) -> Item:
        """Update an item's status.

        Args:
            item: Item instance to update.
            new_status: New item status.

        Returns:
            Updated Item instance.
        """
        previous_status = item.status
        item.status = new_status
        item.updated_at = datetime.utcnow()
        await self.session.flush()
        logger.info(f"Updated item {item.id} status {previous_status} -> {new_status}")
        return item


class DonationRepository:
    """Repository for donation records."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        donor_id: str,
        item_id: str,
        recipient_id: str,
        amount: int,
        provider: str,
    ) -> Donation:
        """Create a donation record.

        Args:
            donor_id: Paying user ID.
            item_id: Donated item ID.
            recipient_id: ID of the agency owning the item.
            amount: Charged amount in minor units.
            provider: Payment provider name.

        Returns:
            Created Donation instance.
        """
        donation = Donation(
            donor_id=donor_id,
            item_id=item_id,
            recipient_id=recipient_id,
            amount=amount,
            provider=provider,
        )
        self.session.add(donation)
        await self.session.flush()

        logger.info(f"Created donation {donation.id} for item {item_id} ({amount} minor units)")
        return donation

    async def list_by_item(self, item_id: str) -> List[Donation]:
        result = await self.session.execute(
            select(Donation)
            .where(Donation.item_id == item_id)
            .order_by(Donation.created_at.desc())
        )
        return list(result.scalars().all())


class ProcessedEventRepository:
    """Repository for the durable dedup ledger."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_key(self, key: str) -> Optional[ProcessedEvent]:
        result = await self.session.execute(
            select(ProcessedEvent).where(ProcessedEvent.key == key)
        )
        return result.scalar_one_or_none()

    async def check_and_insert(
        self,
        key: str,
        provider: str,
        provider_event_id: Optional[str] = None,
        ttl_hours: int = DEFAULT_LEDGER_TTL_HOURS,
    ) -> bool:
        """Record ``key`` as processed unless a live entry already exists.

        The unique constraint on ``key`` makes the insert the arbiter when two
        sessions race: the loser gets an IntegrityError.

        Args:
            key: Idempotency key.
            provider: Provider that delivered the event.
            provider_event_id: Provider's own event identifier, if any.
            ttl_hours: Retention window for the entry.

        Returns:
            True if the key was newly recorded, False if it is a duplicate.
        """
        existing = await self.get_by_key(key)
        if existing is not None:
            if not existing.is_expired():
                return False
            await self.session.delete(existing)
            await self.session.flush()

        entry = ProcessedEvent(
            key=key,
            provider=provider,
            provider_event_id=provider_event_id,
            expires_at=datetime.utcnow() + timedelta(hours=ttl_hours),
        )
        self.session.add(entry)
        try:
            await self.session.flush()
        except IntegrityError:
            # Nothing else is pending in this session at the gate.
            await self.session.rollback()
            logger.info(f"Ledger key {key} inserted concurrently, treating as duplicate")
            return False

        logger.debug(f"Recorded ledger key {key} from {provider}")
        return True

    async def remove(self, key: str) -> None:
        await self.session.execute(
            delete(ProcessedEvent).where(ProcessedEvent.key == key)
        )
        await self.session.flush()

    async def delete_expired(self) -> int:
        """Delete ledger entries past their retention window.

        Returns:
            Number of deleted records.
        """
        result = await self.session.execute(
            delete(ProcessedEvent).where(
                ProcessedEvent.expires_at < datetime.utcnow()
            )
        )
        await self.session.flush()
        return result.rowcount

"""Dedup gates that suppress repeated commits for the same item."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..database import ProcessedEventRepository
from ..database.repository import DEFAULT_LEDGER_TTL_HOURS

logger = logging.getLogger(__name__)


class DedupGate(ABC):
    """Check-and-set guard run immediately before a commit."""

    @abstractmethod
    async def should_process(self, key: str, provider: str, event_id: Optional[str] = None) -> bool:
        """Atomically record ``key`` and return True, or return False for a duplicate."""
        raise NotImplementedError

    @abstractmethod
    async def release(self, key: str) -> None:
        """Forget ``key`` after a failed commit so a redelivery can commit."""
        raise NotImplementedError


class InMemoryDedupGate(DedupGate):
    """
    Remembers only the most recently processed key, in process memory.

    Lost on restart and blind to anything but the immediately preceding
    delivery; use LedgerDedupGate where durability matters. One instance must
    be shared by all requests of the process.

    Besides a successful check-and-set, the slot also changes on ``release``,
    which clears it when it still holds the key of a failed commit.
    """

    def __init__(self):
        self._last_key: Optional[str] = None
        self._lock = asyncio.Lock()

    @property
    def last_key(self) -> Optional[str]:
        return self._last_key

    async def should_process(self, key: str, provider: str, event_id: Optional[str] = None) -> bool:
        async with self._lock:
            if key == self._last_key:
                logger.info(f"Skipping duplicate {provider} delivery for {key}")
                return False
            self._last_key = key
            return True

    async def release(self, key: str) -> None:
        async with self._lock:
            if self._last_key == key:
                self._last_key = None


class LedgerDedupGate(DedupGate):
    """
    Durable dedup backed by the ``processed_events`` table.

    The ledger row is written in the request's session, so it becomes visible
    to other requests together with the donation it guards.
    """

    def __init__(self, session: AsyncSession, ttl_hours: int = DEFAULT_LEDGER_TTL_HOURS):
        self.repo = ProcessedEventRepository(session)
        self.ttl_hours = ttl_hours

    async def should_process(self, key: str, provider: str, event_id: Optional[str] = None) -> bool:
        recorded = await self.repo.check_and_insert(
            key=key,
            provider=provider,
            provider_event_id=event_id,
            ttl_hours=self.ttl_hours,
        )
        if not recorded:
            logger.info(f"Skipping duplicate {provider} delivery for {key} (ledger)")
        return recorded

    async def release(self, key: str) -> None:
        await self.repo.remove(key)

"""Tests for the in-memory and ledger dedup gates."""

import asyncio
import pytest
from datetime import datetime, timedelta

from donation_payments.database import ProcessedEvent, ProcessedEventRepository
from donation_payments.reconciliation.dedup import InMemoryDedupGate, LedgerDedupGate


class TestInMemoryDedupGate:
    """Tests for the single-slot gate."""

    async def test_first_delivery_passes(self):
        gate = InMemoryDedupGate()
        assert await gate.should_process("i9", "stripe") is True
        assert gate.last_key == "i9"

    async def test_repeat_delivery_skipped(self):
        gate = InMemoryDedupGate()
        await gate.should_process("i9", "stripe")
        assert await gate.should_process("i9", "paypal") is False

    async def test_only_remembers_last_key(self):
        gate = InMemoryDedupGate()
        await gate.should_process("i9", "stripe")
        await gate.should_process("i10", "stripe")
        # Single slot: i9 is forgotten once i10 passes
        assert await gate.should_process("i9", "stripe") is True

    async def test_concurrent_same_key_passes_once(self):
        gate = InMemoryDedupGate()
        results = await asyncio.gather(*[gate.should_process("i9", "stripe") for _ in range(10)])
        assert results.count(True) == 1

    async def test_release_allows_retry(self):
        gate = InMemoryDedupGate()
        await gate.should_process("i9", "stripe")
        await gate.release("i9")
        assert await gate.should_process("i9", "stripe") is True

    async def test_release_of_other_key_keeps_slot(self):
        gate = InMemoryDedupGate()
        await gate.should_process("i9", "stripe")
        await gate.release("i10")
        assert gate.last_key == "i9"


class TestLedgerDedupGate:
    """Tests for the durable ledger gate."""

    async def test_records_key(self, db_session):
        gate = LedgerDedupGate(db_session)
        assert await gate.should_process("i9", "stripe", "evt_1") is True

        entry = await ProcessedEventRepository(db_session).get_by_key("i9")
        assert entry.provider == "stripe"
        assert entry.provider_event_id == "evt_1"
        assert entry.expires_at > datetime.utcnow()

    async def test_remembers_every_key(self, db_session):
        gate = LedgerDedupGate(db_session)
        await gate.should_process("i9", "stripe")
        await gate.should_process("i10", "stripe")

        assert await gate.should_process("i9", "paypal") is False
        assert await gate.should_process("i10", "stripe") is False

    async def test_survives_gate_instances(self, db_session):
        await LedgerDedupGate(db_session).should_process("i9", "stripe")
        await db_session.commit()

        assert await LedgerDedupGate(db_session).should_process("i9", "stripe") is False

    async def test_expired_key_is_new(self, db_session):
        db_session.add(ProcessedEvent(
            key="i9",
            provider="stripe",
            expires_at=datetime.utcnow() - timedelta(hours=1),
        ))
        await db_session.flush()

        gate = LedgerDedupGate(db_session, ttl_hours=1)
        assert await gate.should_process("i9", "paypal") is True

        entry = await ProcessedEventRepository(db_session).get_by_key("i9")
        assert entry.provider == "paypal"

    async def test_release_removes_key(self, db_session):
        gate = LedgerDedupGate(db_session)
        await gate.should_process("i9", "stripe")
        await gate.release("i9")

        assert await ProcessedEventRepository(db_session).get_by_key("i9") is None
        assert await gate.should_process("i9", "stripe") is True

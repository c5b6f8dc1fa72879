"""
Tests for PipelineStats and AuditTrail.
"""
import asyncio
from decimal import Decimal

import pytest

from sniper_bot.core import AuditTrail, PipelineStats
from sniper_bot.storage.models import AuditAction


class TestPipelineStats:
    """Tests for the counters."""

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self):
        stats = PipelineStats()

        await asyncio.gather(*(stats.record_scanned() for _ in range(200)))

        assert (await stats.snapshot()).tokens_scanned == 200

    @pytest.mark.asyncio
    async def test_exits_accumulate_pnl(self):
        stats = PipelineStats()

        await stats.record_exit(Decimal("120"), win=True)
        await stats.record_exit(Decimal("-55"), win=False)

        snapshot = await stats.snapshot()
        assert snapshot.wins == 1
        assert snapshot.losses == 1
        assert snapshot.total_pnl == Decimal("65")

    @pytest.mark.asyncio
    async def test_snapshot_is_a_copy(self):
        stats = PipelineStats()
        snapshot = await stats.snapshot()

        await stats.record_snipe()

        assert snapshot.snipes_executed == 0
        assert snapshot.to_dict()["snipes_executed"] == 0


class TestAuditTrail:
    """Tests for the audit writer."""

    @pytest.mark.asyncio
    async def test_record_persists_entry(self, mock_store):
        trail = AuditTrail(mock_store)

        entry = await trail.record(
            AuditAction.APPROVED, "mint_a", reason="High score", score=86
        )

        assert entry.action == "APPROVED"
        assert entry.score == 86
        mock_store.audit.create.assert_awaited_once_with(entry)

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self, mock_store):
        mock_store.audit.create.side_effect = ConnectionError("db down")
        trail = AuditTrail(mock_store)

        await trail.record(AuditAction.DETECTED, "mint_a")

        assert len(trail.recent()) == 1

    @pytest.mark.asyncio
    async def test_recent_is_newest_first_and_filterable(self):
        trail = AuditTrail(history_size=3)
        for i in range(4):
            await trail.record(AuditAction.DETECTED, f"mint{i % 2}")

        assert [e.token_address for e in trail.recent()] == ["mint1", "mint0", "mint1"]
        assert [e.token_address for e in trail.recent(token_address="mint0")] == ["mint0"]
        assert len(trail.recent(limit=1)) == 1

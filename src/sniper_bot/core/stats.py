"""
Aggregate pipeline counters.

Mutated from token-processing tasks, the position supervisor and manual
triggers; every update goes through one asyncio.Lock.
"""
from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from decimal import Decimal


@dataclass
class StatsSnapshot:
    """Point-in-time copy of the counters."""

    tokens_scanned: int = 0
    snipes_executed: int = 0
    wins: int = 0
    losses: int = 0
    total_pnl: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return asdict(self)


class PipelineStats:
    """Counters for tokens scanned, snipes executed and closed-position results."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._data = StatsSnapshot()

    async def record_scanned(self) -> None:
        async with self._lock:
            self._data.tokens_scanned += 1

    async def record_snipe(self) -> None:
        async with self._lock:
            self._data.snipes_executed += 1

    async def record_exit(self, pnl_percent: Decimal, win: bool) -> None:
        """Count a closed position and add its P&L percent to the running total."""
        async with self._lock:
            if win:
                self._data.wins += 1
            else:
                self._data.losses += 1
            self._data.total_pnl += pnl_percent

    async def snapshot(self) -> StatsSnapshot:
        async with self._lock:
            return StatsSnapshot(**asdict(self._data))

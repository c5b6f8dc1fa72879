"""
PositionSupervisor - periodic price check and exit for open positions.

Each tick, for every open position:
    1. Fetch the current price (skip if unavailable)
    2. Skip positions whose entry price is not positive
    3. Refresh price / P&L in memory and in storage
    4. If take-profit or stop-loss triggers, sell everything; on success the
       position closes and the win/loss counters move, on failure it stays
       open and is retried next tick

Positions are checked concurrently; one failing never affects the others.
"""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from sniper_bot.execution.positions import ExitReason, Position
from sniper_bot.storage.models import AuditAction

if TYPE_CHECKING:
    from sniper_bot.execution import ExitManager, PositionBook
    from sniper_bot.ingestion import BirdeyeClient
    from sniper_bot.storage import SniperStore

    from .audit import AuditTrail
    from .stats import PipelineStats

logger = logging.getLogger(__name__)


class PositionSupervisor:
    """Runs the exit rule against every open position."""

    def __init__(
        self,
        book: "PositionBook",
        exit_manager: "ExitManager",
        market_data: "BirdeyeClient",
        stats: "PipelineStats",
        audit: "AuditTrail",
        store: Optional["SniperStore"] = None,
    ) -> None:
        self._book = book
        self._exit_manager = exit_manager
        self._market_data = market_data
        self._stats = stats
        self._audit = audit
        self._store = store

    async def restore(self) -> int:
        """Load open positions from storage into the book."""
        if self._store is None:
            return 0
        records = await self._store.positions.get_open()
        added = self._book.load(Position.from_record(r) for r in records)
        if added:
            logger.info(f"Restored {added} open positions")
        return added

    async def tick(self) -> int:
        """Check every open position once. Returns the number closed."""
        positions = self._book.open_positions()
        if not positions:
            return 0

        results = await asyncio.gather(
            *(self._check_position(p) for p in positions),
            return_exceptions=True,
        )

        closed = 0
        for position, result in zip(positions, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, Exception):
                logger.error(f"Supervising {position.token_address} failed: {result}")
            elif result:
                closed += 1
        return closed

    async def _check_position(self, position: Position) -> bool:
        address = position.token_address
        if not position.is_open or self._book.is_exiting(address):
            return False

        price = await self._market_data.get_price(address)
        if price is None or price <= 0:
            logger.debug(f"No price for {address}, skipping")
            return False
        # Closed or exiting while the price was being fetched
        if not position.is_open or self._book.is_exiting(address):
            return False
        if position.entry_price <= 0:
            logger.debug(f"Position {address} has no entry price, skipping")
            return False

        pnl = position.refresh(price)
        await self._persist_price(position)

        should_exit, reason = self._exit_manager.evaluate_exit(position)
        if not should_exit:
            return False

        logger.info(f"{reason.value} triggered for {address} at {pnl:.2f}%")
        signature = await self._exit_manager.execute_exit(position, reason)
        if not signature:
            await self._audit.record(
                AuditAction.EXIT_FAILED,
                address,
                reason=f"{reason.value} sell not executed",
                pnl_percent=pnl,
            )
            return False

        win = reason == ExitReason.TAKE_PROFIT
        await self._stats.record_exit(pnl, win=win)
        await self._audit.record(
            AuditAction.TAKE_PROFIT if win else AuditAction.STOP_LOSS,
            address,
            reason=f"{pnl:.2f}%",
            pnl_percent=pnl,
            tx_signature=signature,
        )
        return True

    async def _persist_price(self, position: Position) -> None:
        if self._store is None or position.position_id is None:
            return
        try:
            await self._store.positions.update_price(
                position.position_id, position.current_price, position.pnl_percent
            )
        except Exception as e:
            logger.warning(f"Failed to persist price for {position.token_address}: {e}")

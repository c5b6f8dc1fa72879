"""
Exit Manager for take-profit / stop-loss exits.

Exit rule (P&L measured from entry price, in percent):
    - pnl >= take_profit_percent  -> sell everything, reason "take-profit"
    - pnl <= stop_loss_percent    -> sell everything, reason "stop-loss"

A position is only closed once the sell has actually been submitted.
A failed sell leaves it open for the next evaluation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Tuple

from sniper_bot.storage.models import TradeRecord

from .gateway import TradeGateway
from .positions import ExitReason, Position, PositionBook

if TYPE_CHECKING:
    from sniper_bot.storage import SniperStore

logger = logging.getLogger(__name__)

FULL_EXIT = Decimal("1")


@dataclass
class ExitConfig:
    """Configuration for exit rules."""

    take_profit_percent: Decimal = Decimal("100")
    stop_loss_percent: Decimal = Decimal("-50")
    slippage: Optional[int] = None  # gateway default when None


class ExitManager:
    """
    Evaluates and executes exits.

    Usage:
        manager = ExitManager(gateway, book, store)

        should_exit, reason = manager.evaluate_exit(position)
        if should_exit:
            signature = await manager.execute_exit(position, reason)
    """

    def __init__(
        self,
        gateway: TradeGateway,
        book: PositionBook,
        store: Optional["SniperStore"] = None,
        config: Optional[ExitConfig] = None,
    ) -> None:
        self._gateway = gateway
        self._book = book
        self._store = store
        self.config = config or ExitConfig()

    def evaluate_exit(self, position: Position) -> Tuple[bool, Optional[ExitReason]]:
        """Check the exit rule against the position's last P&L."""
        pnl = position.pnl_percent
        if pnl is None or not position.is_open:
            return False, None
        if pnl >= self.config.take_profit_percent:
            return True, ExitReason.TAKE_PROFIT
        if pnl <= self.config.stop_loss_percent:
            return True, ExitReason.STOP_LOSS
        return False, None

    async def execute_exit(
        self,
        position: Position,
        reason: ExitReason,
        fraction: Decimal = FULL_EXIT,
    ) -> Optional[str]:
        """
        Sell ``fraction`` of a position.

        A full exit closes the position in memory and in storage.

        Returns:
            The sell signature, or None if nothing was sold (gateway failure,
            or another exit for this token already in flight).
        """
        address = position.token_address
        if not self._book.begin_exit(address):
            logger.info(f"Exit already in progress for {address}, skipping")
            return None

        try:
            signature = await self._gateway.release(address, fraction, self.config.slippage)
            if not signature:
                logger.warning(f"Exit ({reason.value}) for {address} not executed, position stays open")
                return None

            await self._record_sell(position, signature)

            if fraction >= FULL_EXIT:
                position.close(reason, signature)
                self._book.remove(address)
                await self._persist_close(position)
                logger.info(
                    f"Closed {address} ({reason.value}) pnl={position.pnl_percent}%"
                )
            return signature

        finally:
            self._book.end_exit(address)

    async def _record_sell(self, position: Position, signature: str) -> None:
        if self._store is None:
            return
        try:
            await self._store.trades.create(
                TradeRecord(
                    token_address=position.token_address,
                    side="sell",
                    price=position.current_price,
                    tx_signature=signature,
                )
            )
        except Exception as e:
            logger.error(f"Failed to record sell of {position.token_address}: {e}")

    async def _persist_close(self, position: Position) -> None:
        if self._store is None or position.position_id is None:
            return
        try:
            await self._store.positions.close(
                position.position_id,
                position.pnl_percent,
                position.exit_reason.value,
                position.exit_signature,
            )
        except Exception as e:
            logger.error(f"Failed to persist close of position {position.position_id}: {e}")

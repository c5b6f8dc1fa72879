"""
Position tracking.

A Position goes OPEN -> CLOSED exactly once. While open its current price
and P&L can be refreshed; once closed, any mutation raises.

PositionBook holds the open positions in memory (one per token) and
guards exits so two callers cannot sell the same position at once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from sniper_bot.storage.models import PositionRecord

logger = logging.getLogger(__name__)


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class ExitReason(str, Enum):
    TAKE_PROFIT = "take-profit"
    STOP_LOSS = "stop-loss"
    MANUAL = "manual"


class PositionClosedError(Exception):
    """Raised when a closed position is mutated."""
    pass


def compute_pnl_percent(entry_price: Decimal, current_price: Decimal) -> Decimal:
    """Percent change from entry. Entry price must be positive."""
    return (current_price - entry_price) / entry_price * Decimal("100")


@dataclass
class Position:
    """A held token position."""

    token_address: str
    size_native: Decimal
    entry_price: Decimal
    position_id: Optional[int] = None
    current_price: Optional[Decimal] = None
    pnl_percent: Optional[Decimal] = None
    status: PositionStatus = PositionStatus.OPEN
    exit_reason: Optional[ExitReason] = None
    entry_signature: Optional[str] = None
    exit_signature: Optional[str] = None
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    closed_at: Optional[datetime] = None

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise PositionClosedError(
                f"Position {self.position_id or self.token_address} is closed"
            )

    def refresh(self, current_price: Decimal) -> Optional[Decimal]:
        """
        Record a new price.

        Returns:
            The new P&L percent, or None if the entry price is unusable.
        """
        self._ensure_open()
        self.current_price = current_price
        if self.entry_price <= 0:
            return None
        self.pnl_percent = compute_pnl_percent(self.entry_price, current_price)
        return self.pnl_percent

    def close(self, reason: ExitReason, exit_signature: Optional[str] = None) -> None:
        self._ensure_open()
        self.status = PositionStatus.CLOSED
        self.exit_reason = reason
        self.exit_signature = exit_signature
        self.closed_at = datetime.now(timezone.utc)

    @classmethod
    def from_record(cls, record: "PositionRecord") -> "Position":
        return cls(
            token_address=record.token_address,
            size_native=record.size_sol,
            entry_price=record.entry_price,
            position_id=record.id,
            current_price=record.current_price,
            pnl_percent=record.pnl_percent,
            status=PositionStatus(record.status),
            exit_reason=ExitReason(record.exit_reason) if record.exit_reason else None,
            entry_signature=record.entry_signature,
            exit_signature=record.exit_signature,
            opened_at=record.opened_at or datetime.now(timezone.utc),
            closed_at=record.closed_at,
        )


class PositionBook:
    """
    Open positions keyed by token address.

    begin_exit/end_exit mark a position as being sold; a second begin_exit
    for the same token fails until the first one ends.
    """

    def __init__(self) -> None:
        self._open: dict[str, Position] = {}
        self._exiting: set[str] = set()

    def load(self, positions: Iterable[Position]) -> int:
        """Add every open position from an iterable. Returns how many were added."""
        added = 0
        for position in positions:
            if position.is_open and self.add(position):
                added += 1
        return added

    def add(self, position: Position) -> bool:
        """Track an open position. False if the token already has one."""
        if position.token_address in self._open:
            return False
        self._open[position.token_address] = position
        return True

    def get(self, token_address: str) -> Optional[Position]:
        return self._open.get(token_address)

    def remove(self, token_address: str) -> Optional[Position]:
        return self._open.pop(token_address, None)

    def open_positions(self) -> list[Position]:
        return list(self._open.values())

    def begin_exit(self, token_address: str) -> bool:
        if token_address in self._exiting:
            return False
        self._exiting.add(token_address)
        return True

    def end_exit(self, token_address: str) -> None:
        self._exiting.discard(token_address)

    def is_exiting(self, token_address: str) -> bool:
        return token_address in self._exiting

    def __len__(self) -> int:
        return len(self._open)

    def __contains__(self, token_address: object) -> bool:
        return token_address in self._open

"""
SniperStore - one handle on every repository.

The pipeline takes a SniperStore rather than a Database so that tests can
hand it mocks per repository.
"""
from __future__ import annotations

from dataclasses import dataclass

from sniper_bot.storage.database import Database
from sniper_bot.storage.repositories import (
    AuditRepository,
    PositionRepository,
    SystemStatusRepository,
    TokenRepository,
    TradeRepository,
)


@dataclass
class SniperStore:
    """Repositories for tokens, trades, positions, audit log and status."""

    tokens: TokenRepository
    trades: TradeRepository
    positions: PositionRepository
    audit: AuditRepository
    status: SystemStatusRepository

    @classmethod
    def from_database(cls, db: Database) -> "SniperStore":
        return cls(
            tokens=TokenRepository(db),
            trades=TradeRepository(db),
            positions=PositionRepository(db),
            audit=AuditRepository(db),
            status=SystemStatusRepository(db),
        )

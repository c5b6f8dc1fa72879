"""
Repository exports.
"""
from sniper_bot.storage.repositories.audit_repo import AuditRepository
from sniper_bot.storage.repositories.base import BaseRepository
from sniper_bot.storage.repositories.position_repo import PositionRepository
from sniper_bot.storage.repositories.status_repo import SystemStatusRepository
from sniper_bot.storage.repositories.token_repo import TokenRepository
from sniper_bot.storage.repositories.trade_repo import TradeRepository

__all__ = [
    "AuditRepository",
    "BaseRepository",
    "PositionRepository",
    "SystemStatusRepository",
    "TokenRepository",
    "TradeRepository",
]

"""
Storage Layer - PostgreSQL persistence.

This module provides:
    - Database / DatabaseConfig: asyncpg pool with reconnect and retry
    - SniperStore: Facade over all repositories
    - Record models for tokens, trades, positions, audit log and status
"""

from .database import Database, DatabaseConfig
from .models import (
    AuditAction,
    AuditEntry,
    BotStatus,
    PositionRecord,
    SystemStatus,
    TokenRecord,
    TokenStatus,
    TradeRecord,
)
from .store import SniperStore

__all__ = [
    "Database",
    "DatabaseConfig",
    "SniperStore",
    "AuditAction",
    "AuditEntry",
    "BotStatus",
    "PositionRecord",
    "SystemStatus",
    "TokenRecord",
    "TokenStatus",
    "TradeRecord",
]

"""
Pydantic models matching the PostgreSQL schema.

These models mirror seed/01_schema.sql. Field names match the columns.

IMPORTANT: All monetary fields (prices, sizes, market caps, P&L) use Decimal.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TokenStatus(str, Enum):
    """Lifecycle of a token record. Verdict statuses are the lowercased verdict."""
    SCANNING = "scanning"
    EXCELLENT = "excellent"
    GOOD = "good"
    RISKY = "risky"
    AVOID = "avoid"
    REJECTED = "rejected"
    ERROR = "error"
    SNIPED = "sniped"


class AuditAction(str, Enum):
    """Actions written to sniper_logs."""
    DETECTED = "DETECTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SNIPING = "SNIPING"
    SNIPE_SUCCESS = "SNIPE_SUCCESS"
    SNIPE_FAILED = "SNIPE_FAILED"
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    EXIT_FAILED = "EXIT_FAILED"
    MANUAL_BUY = "MANUAL_BUY"
    MANUAL_SELL = "MANUAL_SELL"
    SNIPER_TOGGLED = "SNIPER_TOGGLED"


class BotStatus(str, Enum):
    """Value of system_status.status."""
    STARTING = "STARTING"
    HUNTING = "HUNTING"
    OFFLINE = "OFFLINE"


# =============================================================================
# TOKENS
# =============================================================================


class TokenRecord(BaseModel):
    """A scanned token. Upserted on contract_address; missing fields keep their stored value."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    contract_address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    metadata_uri: Optional[str] = None
    logo_uri: Optional[str] = None
    market_cap: Optional[Decimal] = None
    price: Optional[Decimal] = None
    liquidity: Optional[Decimal] = None
    holders: Optional[int] = None
    score: Optional[int] = None
    verdict: Optional[str] = None
    status: Optional[str] = None
    reject_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# TRADES & POSITIONS
# =============================================================================


class TradeRecord(BaseModel):
    """An executed buy or sell. Insert-only."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[int] = None
    token_address: str
    side: str  # "buy" | "sell"
    amount_sol: Optional[Decimal] = None
    price: Optional[Decimal] = None
    tx_signature: Optional[str] = None
    created_at: Optional[datetime] = None


class PositionRecord(BaseModel):
    """A held position."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[int] = None
    token_address: str
    size_sol: Decimal
    entry_price: Decimal
    current_price: Optional[Decimal] = None
    pnl_percent: Optional[Decimal] = None
    status: str = "open"  # open, closed
    exit_reason: Optional[str] = None
    entry_signature: Optional[str] = None
    exit_signature: Optional[str] = None
    opened_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


# =============================================================================
# AUDIT & STATUS
# =============================================================================


class AuditEntry(BaseModel):
    """One row of the sniper audit log."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: Optional[int] = None
    token_address: Optional[str] = None
    action: str
    reason: Optional[str] = None
    score: Optional[int] = None
    market_cap: Optional[Decimal] = None
    liquidity: Optional[Decimal] = None
    pnl_percent: Optional[Decimal] = None
    tx_signature: Optional[str] = None
    created_at: Optional[datetime] = None


class SystemStatus(BaseModel):
    """The single system_status row (id = 1)."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: int = 1
    status: Optional[str] = None
    wallet_address: Optional[str] = None
    balance_sol: Optional[Decimal] = None
    sniper_enabled: Optional[bool] = None
    tokens_scanned: Optional[int] = None
    snipes_executed: Optional[int] = None
    wins: Optional[int] = None
    losses: Optional[int] = None
    total_pnl: Optional[Decimal] = None
    updated_at: Optional[datetime] = None

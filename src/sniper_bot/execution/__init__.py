"""
Execution Layer - Trade submission and position management.

This module provides:
    - TradeGateway: Buy/sell through PumpPortal, signed locally, sent over RPC
    - load_keypair: Parse a wallet secret (JSON array, base64 or base58)
    - Position / PositionBook: Open positions and the OPEN -> CLOSED lifecycle
    - ExitManager: Take-profit / stop-loss evaluation and execution
"""

from .exit_manager import ExitConfig, ExitManager
from .gateway import GatewayConfig, TradeAction, TradeGateway, TradeGatewayError
from .positions import (
    ExitReason,
    Position,
    PositionBook,
    PositionClosedError,
    PositionStatus,
    compute_pnl_percent,
)
from .wallet import WalletError, load_keypair

__all__ = [
    # Gateway
    "TradeGateway",
    "GatewayConfig",
    "TradeAction",
    "TradeGatewayError",
    # Wallet
    "load_keypair",
    "WalletError",
    # Positions
    "Position",
    "PositionBook",
    "PositionStatus",
    "PositionClosedError",
    "ExitReason",
    "compute_pnl_percent",
    # Exits
    "ExitManager",
    "ExitConfig",
]

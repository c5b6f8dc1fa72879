"""
Ingestion Layer - Live feed and market data.

This module provides:
    - PumpPortalFeed: Websocket feed of token launches and trades
    - SubscriptionSet: Bounded, FIFO-evicting set of followed tokens
    - BirdeyeClient: Token metadata, market data and prices
    - TokenSnapshot / TradeUpdate / TokenInfo: Data models
"""

from .client import BirdeyeAPIError, BirdeyeClient, RateLimitError
from .models import TokenInfo, TokenSnapshot, TradeSide, TradeUpdate
from .subscriptions import SubscriptionSet
from .websocket import ConnectionState, FeedObserver, PumpPortalFeed, ReconnectPolicy

__all__ = [
    # Feed
    "PumpPortalFeed",
    "ConnectionState",
    "ReconnectPolicy",
    "FeedObserver",
    "SubscriptionSet",
    # Market data
    "BirdeyeClient",
    "BirdeyeAPIError",
    "RateLimitError",
    # Models
    "TokenSnapshot",
    "TradeUpdate",
    "TradeSide",
    "TokenInfo",
]

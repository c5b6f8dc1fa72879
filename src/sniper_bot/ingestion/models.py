"""
Data models for the ingestion layer.

These models represent what arrives from the PumpPortal websocket feed
and from the Birdeye market-data API.

IMPORTANT: All monetary fields (prices, sizes, market caps) use Decimal.
Values that the feed reports in SOL carry a ``_native`` suffix; values
from Birdeye are USD.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional


def _to_decimal(value: Any) -> Decimal:
    """Convert a feed value to Decimal, treating missing/garbage as zero."""
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def _to_optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


class TradeSide(str, Enum):
    """Direction of a trade on the bonding curve."""
    BUY = "buy"
    SELL = "sell"


@dataclass
class TokenSnapshot:
    """
    A newly launched token as first observed on the feed.

    ``market_cap_native`` and ``liquidity_native`` are the only fields that
    change after creation; trade events overwrite them (last write wins).
    """

    contract_address: str
    name: str = ""
    symbol: str = ""
    metadata_uri: Optional[str] = None
    market_cap_native: Decimal = Decimal("0")
    liquidity_native: Decimal = Decimal("0")
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    trader: Optional[str] = None
    initial_buy: Decimal = Decimal("0")
    signature: Optional[str] = None

    @classmethod
    def from_create_event(cls, data: dict) -> "TokenSnapshot":
        """Build a snapshot from a ``txType == "create"`` frame."""
        return cls(
            contract_address=data["mint"],
            name=data.get("name") or "",
            symbol=data.get("symbol") or "",
            metadata_uri=data.get("uri"),
            market_cap_native=_to_decimal(data.get("marketCapSol")),
            liquidity_native=_to_decimal(data.get("vSolInBondingCurve")),
            trader=data.get("traderPublicKey"),
            initial_buy=_to_decimal(data.get("initialBuy")),
            signature=data.get("signature"),
        )

    def apply_trade(self, trade: "TradeUpdate") -> None:
        """Overwrite the market fields from a trade on this token."""
        if trade.market_cap_native is not None:
            self.market_cap_native = trade.market_cap_native
        if trade.liquidity_native is not None:
            self.liquidity_native = trade.liquidity_native

    @property
    def age_minutes(self) -> float:
        """Minutes since the token was first observed."""
        delta = datetime.now(timezone.utc) - self.created_at
        return max(delta.total_seconds() / 60.0, 0.0)


@dataclass
class TradeUpdate:
    """A buy or sell on a subscribed token."""

    contract_address: str
    side: TradeSide
    sol_amount: Decimal = Decimal("0")
    token_amount: Decimal = Decimal("0")
    market_cap_native: Optional[Decimal] = None
    liquidity_native: Optional[Decimal] = None
    trader: Optional[str] = None
    signature: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_trade_event(cls, data: dict) -> "TradeUpdate":
        """Build an update from a ``txType in ("buy", "sell")`` frame."""
        return cls(
            contract_address=data["mint"],
            side=TradeSide(data["txType"]),
            sol_amount=_to_decimal(data.get("solAmount")),
            token_amount=_to_decimal(data.get("tokenAmount")),
            market_cap_native=_to_optional_decimal(data.get("marketCapSol")),
            liquidity_native=_to_optional_decimal(data.get("vSolInBondingCurve")),
            trader=data.get("traderPublicKey"),
            signature=data.get("signature"),
        )


@dataclass
class TokenInfo:
    """
    Enriched token data from Birdeye.

    Any field may be missing when the token is too new for the indexer.
    """

    contract_address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    logo_uri: Optional[str] = None
    decimals: Optional[int] = None
    price: Optional[Decimal] = None
    market_cap: Optional[Decimal] = None
    liquidity: Optional[Decimal] = None
    volume_24h: Optional[Decimal] = None
    price_change_24h: Optional[Decimal] = None
    holders: Optional[int] = None

    @classmethod
    def from_api(
        cls,
        address: str,
        metadata: Optional[dict] = None,
        market: Optional[dict] = None,
    ) -> "TokenInfo":
        """Merge a metadata record and a market-data record."""
        metadata = metadata or {}
        market = market or {}

        holders = market.get("holder")
        try:
            holders = int(holders) if holders is not None else None
        except (TypeError, ValueError):
            holders = None

        return cls(
            contract_address=address,
            name=metadata.get("name"),
            symbol=metadata.get("symbol"),
            logo_uri=metadata.get("logo_uri") or metadata.get("logoURI"),
            decimals=metadata.get("decimals"),
            price=_to_optional_decimal(market.get("price")),
            market_cap=_to_optional_decimal(
                market.get("market_cap") or market.get("marketCap") or market.get("realMc")
            ),
            liquidity=_to_optional_decimal(market.get("liquidity")),
            volume_24h=_to_optional_decimal(market.get("v24hUSD")),
            price_change_24h=_to_optional_decimal(market.get("v24hChangePercent")),
            holders=holders,
        )

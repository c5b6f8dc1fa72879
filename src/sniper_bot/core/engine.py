"""
Sniper Engine - Main orchestrator for the sniper bot.

The engine is the feed's observer. For every newly created token it runs an
independent task:

1. Persist the raw token (status "scanning") and audit DETECTED
2. Wait briefly so market-data indexers catch up
3. Analyze (enrich + score), persist the verdict, audit APPROVED/REJECTED
4. If approved, auto-trading is on and a wallet is loaded: buy, open a
   position, mark the token "sniped" and follow its trades

Trade events only update the cached snapshot's market fields. Connection
changes are mirrored to the status row (HUNTING / OFFLINE).

Persistence failures are logged and never abort a token's pipeline.
"""
from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

from sniper_bot.execution.positions import ExitReason, Position
from sniper_bot.ingestion.models import TokenSnapshot
from sniper_bot.storage.models import (
    AuditAction,
    AuditEntry,
    BotStatus,
    PositionRecord,
    TokenRecord,
    TokenStatus,
    TradeRecord,
)

from .analyzer import Analysis
from .audit import AuditTrail
from .stats import PipelineStats

if TYPE_CHECKING:
    from sniper_bot.execution import ExitManager, PositionBook, TradeGateway
    from sniper_bot.ingestion import BirdeyeClient, PumpPortalFeed, TradeUpdate
    from sniper_bot.storage import SniperStore

    from .analyzer import TokenAnalyzer

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class EngineConfig:
    """Configuration for the sniper engine."""

    auto_trading_enabled: bool = False
    buy_amount_sol: Decimal = Decimal("0.1")
    slippage: int = 15  # percent

    # Delay between detection and the market-data lookup
    market_data_delay_seconds: float = 1.5

    # Snapshots kept for trade-event updates
    snapshot_cache_size: int = 1000


class SniperEngine:
    """
    Main sniper orchestrator.

    Usage:
        engine = SniperEngine(
            config=EngineConfig(auto_trading_enabled=True),
            analyzer=analyzer,
            gateway=gateway,
            book=book,
            exit_manager=exit_manager,
            market_data=birdeye,
            store=store,
        )
        feed = PumpPortalFeed(observer=engine)
        engine.attach_feed(feed)

        await engine.start()
        await feed.start()
    """

    def __init__(
        self,
        config: EngineConfig,
        analyzer: "TokenAnalyzer",
        gateway: "TradeGateway",
        book: "PositionBook",
        exit_manager: "ExitManager",
        market_data: Optional["BirdeyeClient"] = None,
        store: Optional["SniperStore"] = None,
        stats: Optional[PipelineStats] = None,
        audit: Optional[AuditTrail] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self.config = config
        self._analyzer = analyzer
        self._gateway = gateway
        self._book = book
        self._exit_manager = exit_manager
        self._market_data = market_data
        self._store = store
        self._stats = stats or PipelineStats()
        self._audit = audit or AuditTrail(store)
        self._sleep = sleep or asyncio.sleep
        self._feed: Optional["PumpPortalFeed"] = None

        self._auto_trading = config.auto_trading_enabled
        self._is_running = False
        self._tasks: set[asyncio.Task] = set()
        self._snapshots: "OrderedDict[str, TokenSnapshot]" = OrderedDict()

    def attach_feed(self, feed: "PumpPortalFeed") -> None:
        """Feed used to follow trades of bought tokens."""
        self._feed = feed

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def auto_trading_enabled(self) -> bool:
        return self._auto_trading

    @property
    def stats(self) -> PipelineStats:
        return self._stats

    @property
    def audit(self) -> AuditTrail:
        return self._audit

    @property
    def in_flight(self) -> int:
        """Token pipelines currently running."""
        return len(self._tasks)

    async def start(self) -> None:
        if self._is_running:
            logger.warning("Engine already running")
            return

        logger.info(
            f"Starting sniper engine (auto-trading={'ON' if self._auto_trading else 'OFF'}, "
            f"wallet={'loaded' if self._gateway.has_signer else 'observer mode'})"
        )
        self._is_running = True

    async def stop(self) -> None:
        if not self._is_running:
            return

        logger.info("Stopping sniper engine...")
        self._is_running = False

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Sniper engine stopped")

    # =========================================================================
    # Feed observer
    # =========================================================================

    async def on_token_created(self, snapshot: TokenSnapshot) -> None:
        if not self._is_running:
            return
        self._cache_snapshot(snapshot)
        self._spawn(
            self.process_new_token(snapshot),
            name=f"token_{snapshot.contract_address[:8]}",
        )

    async def on_trade_occurred(self, trade: "TradeUpdate") -> None:
        snapshot = self._snapshots.get(trade.contract_address)
        if snapshot is not None:
            snapshot.apply_trade(trade)

    async def on_connection_status_changed(self, connected: bool) -> None:
        status = BotStatus.HUNTING if connected else BotStatus.OFFLINE
        logger.info(f"Feed {'connected' if connected else 'disconnected'}: {status.value}")
        await self._persist("status", lambda s: s.status.update(status=status.value))

    def _cache_snapshot(self, snapshot: TokenSnapshot) -> None:
        self._snapshots[snapshot.contract_address] = snapshot
        self._snapshots.move_to_end(snapshot.contract_address)
        while len(self._snapshots) > self.config.snapshot_cache_size:
            self._snapshots.popitem(last=False)

    def get_snapshot(self, address: str) -> Optional[TokenSnapshot]:
        return self._snapshots.get(address)

    def _spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Task {task.get_name()} failed: {error}")

    # =========================================================================
    # Token pipeline
    # =========================================================================

    async def process_new_token(self, snapshot: TokenSnapshot) -> Analysis:
        """Run the full detect -> score -> maybe-buy chain for one token."""
        address = snapshot.contract_address
        await self._stats.record_scanned()

        await self._persist(
            "token",
            lambda s: s.tokens.upsert(
                TokenRecord(
                    contract_address=address,
                    name=snapshot.name or None,
                    symbol=snapshot.symbol or None,
                    metadata_uri=snapshot.metadata_uri,
                    status=TokenStatus.SCANNING.value,
                )
            ),
        )
        await self._audit.record(
            AuditAction.DETECTED,
            address,
            reason=f"{snapshot.name} ({snapshot.symbol})",
        )

        if self.config.market_data_delay_seconds > 0:
            await self._sleep(self.config.market_data_delay_seconds)

        analysis = await self._analyzer.analyze(snapshot)
        result = analysis.result
        inputs = analysis.inputs

        await self._persist(
            "token",
            lambda s: s.tokens.upsert(
                TokenRecord(
                    contract_address=address,
                    logo_uri=analysis.info.logo_uri if analysis.info else None,
                    market_cap=inputs.market_cap if inputs else None,
                    price=analysis.price,
                    liquidity=inputs.liquidity if inputs else None,
                    holders=inputs.holders if inputs else None,
                    score=result.score,
                    verdict=result.verdict.value,
                    status=result.verdict.value.lower(),
                    reject_reason=result.reject_reason,
                )
            ),
        )
        await self._audit.record(
            AuditAction.APPROVED if result.approved else AuditAction.REJECTED,
            address,
            reason=result.reasons[0] if result.reasons else None,
            score=result.score,
            market_cap=inputs.market_cap if inputs else None,
            liquidity=inputs.liquidity if inputs else None,
        )

        if not result.approved:
            return analysis
        if not self._auto_trading:
            logger.info(f"{address} approved but auto-trading is off")
            return analysis
        if not self._gateway.has_signer:
            logger.info(f"{address} approved but no wallet loaded")
            return analysis

        size = self.config.buy_amount_sol
        await self._audit.record(
            AuditAction.SNIPING,
            address,
            reason=f"Buying {size} SOL",
            score=result.score,
        )
        signature = await self._buy(address, size, analysis.price)
        if signature:
            await self._audit.record(
                AuditAction.SNIPE_SUCCESS,
                address,
                reason=f"Bought {size} SOL",
                score=result.score,
                tx_signature=signature,
            )
        else:
            await self._audit.record(
                AuditAction.SNIPE_FAILED,
                address,
                reason="Trade not executed",
                score=result.score,
            )
        return analysis

    async def _buy(
        self, address: str, size: Decimal, entry_price: Optional[Decimal]
    ) -> Optional[str]:
        """Buy, then record the trade, open the position and follow the token."""
        signature = await self._gateway.acquire(address, size, self.config.slippage)
        if not signature:
            return None

        await self._stats.record_snipe()
        await self._persist(
            "trade",
            lambda s: s.trades.create(
                TradeRecord(
                    token_address=address,
                    side="buy",
                    amount_sol=size,
                    price=entry_price,
                    tx_signature=signature,
                )
            ),
        )

        position = Position(
            token_address=address,
            size_native=size,
            entry_price=entry_price or Decimal("0"),
            entry_signature=signature,
        )
        if self._book.add(position):
            record = await self._persist(
                "position",
                lambda s: s.positions.create(
                    PositionRecord(
                        token_address=address,
                        size_sol=size,
                        entry_price=position.entry_price,
                        entry_signature=signature,
                    )
                ),
            )
            if record is not None:
                position.position_id = record.id
        else:
            logger.warning(f"Already holding {address}, not opening a second position")

        await self._persist(
            "token", lambda s: s.tokens.update_status(address, TokenStatus.SNIPED.value)
        )
        if self._feed is not None:
            await self._feed.subscribe(address)

        return signature

    # =========================================================================
    # Manual controls
    # =========================================================================

    async def acquire_now(
        self, address: str, size: Optional[Decimal] = None
    ) -> Optional[str]:
        """Buy a token immediately, bypassing scoring."""
        size = size if size is not None else self.config.buy_amount_sol
        entry_price = None
        if self._market_data is not None:
            entry_price = await self._market_data.get_price(address)

        signature = await self._buy(address, size, entry_price)
        await self._audit.record(
            AuditAction.MANUAL_BUY,
            address,
            reason=f"{size} SOL" if signature else f"{size} SOL not executed",
            tx_signature=signature,
        )
        return signature

    async def release_now(
        self, address: str, fraction: Decimal = Decimal("1")
    ) -> Optional[str]:
        """
        Sell a fraction of a token immediately.

        Selling everything of a tracked position closes it with reason "manual".
        """
        position = self._book.get(address)
        if position is not None:
            signature = await self._exit_manager.execute_exit(
                position, ExitReason.MANUAL, fraction
            )
        else:
            signature = await self._gateway.release(address, fraction, self.config.slippage)
            if signature:
                await self._persist(
                    "trade",
                    lambda s: s.trades.create(
                        TradeRecord(token_address=address, side="sell", tx_signature=signature)
                    ),
                )

        percent = (fraction * 100).normalize()
        await self._audit.record(
            AuditAction.MANUAL_SELL,
            address,
            reason=f"{percent:f}%" if signature else f"{percent:f}% not executed",
            pnl_percent=position.pnl_percent if position else None,
            tx_signature=signature,
        )
        return signature

    async def analyze_now(self, address: str) -> Analysis:
        """Score a token without trading or persisting anything."""
        snapshot = self._snapshots.get(address) or TokenSnapshot(contract_address=address)
        return await self._analyzer.analyze(snapshot)

    async def set_auto_trading(self, enabled: bool) -> bool:
        self._auto_trading = enabled
        await self._audit.record(
            AuditAction.SNIPER_TOGGLED,
            reason="enabled" if enabled else "disabled",
        )
        await self._persist("status", lambda s: s.status.update(sniper_enabled=enabled))
        return enabled

    async def toggle_auto_trading(self) -> bool:
        return await self.set_auto_trading(not self._auto_trading)

    # =========================================================================
    # Status
    # =========================================================================

    async def get_stats(self) -> dict:
        snapshot = await self._stats.snapshot()
        data = snapshot.to_dict()
        data.update(
            auto_trading_enabled=self._auto_trading,
            open_positions=len(self._book),
            wallet=self._gateway.public_key,
        )
        return data

    async def recent_audit(
        self, limit: int = 50, token_address: Optional[str] = None
    ) -> list[AuditEntry]:
        """Newest audit entries, from storage when available."""
        if self._store is not None:
            try:
                if token_address:
                    return await self._store.audit.get_for_address(token_address, limit)
                return await self._store.audit.get_recent(limit)
            except Exception as e:
                logger.warning(f"Audit lookup failed, using in-memory history: {e}")
        return self._audit.recent(limit, token_address)

    def health(self) -> dict:
        return {
            "engine_running": self._is_running,
            "feed_connected": bool(self._feed and self._feed.is_connected),
            "feed_state": self._feed.state.value if self._feed else None,
            "auto_trading_enabled": self._auto_trading,
            "wallet_loaded": self._gateway.has_signer,
            "open_positions": len(self._book),
            "in_flight": len(self._tasks),
        }

    async def record_startup(self) -> None:
        """Write the STARTING status row with wallet and balance."""
        balance = await self._gateway.get_balance()
        await self._persist(
            "status",
            lambda s: s.status.update(
                status=BotStatus.STARTING.value,
                wallet_address=self._gateway.public_key,
                balance_sol=balance,
                sniper_enabled=self._auto_trading,
            ),
        )

    async def refresh_status(self) -> None:
        """Push counters (and the wallet balance, when a wallet is loaded)."""
        snapshot = await self._stats.snapshot()
        fields: dict[str, Any] = dict(
            tokens_scanned=snapshot.tokens_scanned,
            snipes_executed=snapshot.snipes_executed,
            wins=snapshot.wins,
            losses=snapshot.losses,
            total_pnl=snapshot.total_pnl,
            sniper_enabled=self._auto_trading,
        )
        if self._gateway.has_signer:
            fields["balance_sol"] = await self._gateway.get_balance()
        await self._persist("status", lambda s: s.status.update(**fields))

    async def _persist(
        self, label: str, operation: Callable[["SniperStore"], Awaitable[R]]
    ) -> Optional[R]:
        if self._store is None:
            return None
        try:
            return await operation(self._store)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to persist {label}: {e}")
            return None

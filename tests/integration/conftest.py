"""
Integration test fixtures.

These fixtures assemble the real pipeline components around mocked
external services.
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from sniper_bot.core import (
    AuditTrail,
    EngineConfig,
    PipelineStats,
    PositionSupervisor,
    ScoringEngine,
    SniperEngine,
    TokenAnalyzer,
)
from sniper_bot.execution import ExitManager, PositionBook
from sniper_bot.ingestion import PumpPortalFeed

# Mark all tests in this directory as integration tests
pytestmark = pytest.mark.integration


async def _block_forever(*args, **kwargs):
    await asyncio.Event().wait()


@pytest.fixture
def feed_socket():
    """
    Websocket stand-in. Push raw frames onto ``feed_socket.inbox``.
    """
    inbox: asyncio.Queue = asyncio.Queue()
    ws = AsyncMock()
    ws.inbox = inbox
    ws.recv = AsyncMock(side_effect=inbox.get)
    ws.send = AsyncMock()
    ws.close = AsyncMock()
    return ws


@pytest.fixture
def pipeline(market_data, gateway):
    """The full pipeline with no storage."""
    book = PositionBook()
    stats = PipelineStats()
    audit = AuditTrail()
    exit_manager = ExitManager(gateway, book)
    engine = SniperEngine(
        config=EngineConfig(auto_trading_enabled=True, market_data_delay_seconds=0),
        analyzer=TokenAnalyzer(market_data, ScoringEngine()),
        gateway=gateway,
        book=book,
        exit_manager=exit_manager,
        market_data=market_data,
        stats=stats,
        audit=audit,
    )
    feed = PumpPortalFeed(observer=engine, sleep=_block_forever)
    engine.attach_feed(feed)
    supervisor = PositionSupervisor(book, exit_manager, market_data, stats, audit)

    return SimpleNamespace(
        book=book,
        stats=stats,
        audit=audit,
        engine=engine,
        feed=feed,
        supervisor=supervisor,
    )

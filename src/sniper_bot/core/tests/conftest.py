"""
Core layer test fixtures.

Core tests verify orchestration logic, so we mock
the storage, market-data and gateway layers.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

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
from sniper_bot.ingestion import TokenInfo, TokenSnapshot
from sniper_bot.storage.models import PositionRecord


# =============================================================================
# Storage Fixtures
# =============================================================================


@pytest.fixture
def mock_store():
    """SniperStore with every repository mocked."""
    store = MagicMock()
    store.tokens.upsert = AsyncMock()
    store.tokens.update_status = AsyncMock(return_value=True)
    store.trades.create = AsyncMock()
    store.positions.create = AsyncMock(
        side_effect=lambda record: PositionRecord(
            id=42,
            token_address=record.token_address,
            size_sol=record.size_sol,
            entry_price=record.entry_price,
            entry_signature=record.entry_signature,
        )
    )
    store.positions.get_open = AsyncMock(return_value=[])
    store.positions.update_price = AsyncMock(return_value=True)
    store.positions.close = AsyncMock()
    store.audit.create = AsyncMock()
    store.audit.get_recent = AsyncMock(return_value=[])
    store.audit.get_for_address = AsyncMock(return_value=[])
    store.status.update = AsyncMock()
    return store


# =============================================================================
# Market Data / Gateway Fixtures
# =============================================================================


@pytest.fixture
def good_token_info():
    """Birdeye data for a token that scores EXCELLENT."""
    return TokenInfo(
        contract_address="mint_good",
        name="Good Token",
        symbol="GOOD",
        price=Decimal("0.0005"),
        market_cap=Decimal("15000"),
        liquidity=Decimal("5000"),
        holders=60,
    )


@pytest.fixture
def mock_market_data(good_token_info):
    """Birdeye client returning good data and a SOL price of 100."""
    client = MagicMock()
    client.get_token_info = AsyncMock(return_value=good_token_info)
    client.get_sol_price = AsyncMock(return_value=Decimal("100"))
    client.get_price = AsyncMock(return_value=Decimal("0.0005"))
    return client


@pytest.fixture
def mock_gateway():
    """Gateway with a loaded wallet whose trades succeed."""
    gateway = MagicMock()
    gateway.has_signer = True
    gateway.public_key = "Wallet11111111111111111111111111111111111111"
    gateway.acquire = AsyncMock(return_value="buy_sig")
    gateway.release = AsyncMock(return_value="sell_sig")
    gateway.get_balance = AsyncMock(return_value=Decimal("1.5"))
    return gateway


@pytest.fixture
def mock_feed():
    feed = MagicMock()
    feed.subscribe = AsyncMock(return_value=None)
    feed.is_connected = True
    return feed


# =============================================================================
# Snapshot Fixtures
# =============================================================================


@pytest.fixture
def fresh_snapshot():
    """A token first seen two minutes ago with no feed market cap."""
    return TokenSnapshot(
        contract_address="mint_good",
        name="Good Token",
        symbol="GOOD",
        created_at=datetime.now(timezone.utc) - timedelta(minutes=2),
    )


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def book():
    return PositionBook()


@pytest.fixture
def stats():
    return PipelineStats()


@pytest.fixture
def audit(mock_store):
    return AuditTrail(mock_store)


@pytest.fixture
def analyzer(mock_market_data):
    return TokenAnalyzer(mock_market_data, ScoringEngine())


@pytest.fixture
def exit_manager(mock_gateway, book, mock_store):
    return ExitManager(mock_gateway, book, mock_store)


@pytest.fixture
def engine_config():
    return EngineConfig(
        auto_trading_enabled=True,
        buy_amount_sol=Decimal("0.1"),
        market_data_delay_seconds=0,
    )


@pytest.fixture
def engine(
    engine_config,
    analyzer,
    mock_gateway,
    book,
    exit_manager,
    mock_market_data,
    mock_store,
    stats,
    audit,
    mock_feed,
):
    """Sniper engine with mocked collaborators."""
    sniper = SniperEngine(
        config=engine_config,
        analyzer=analyzer,
        gateway=mock_gateway,
        book=book,
        exit_manager=exit_manager,
        market_data=mock_market_data,
        store=mock_store,
        stats=stats,
        audit=audit,
    )
    sniper.attach_feed(mock_feed)
    return sniper


@pytest.fixture
def supervisor(book, exit_manager, mock_market_data, stats, audit, mock_store):
    return PositionSupervisor(book, exit_manager, mock_market_data, stats, audit, mock_store)


def audited_actions(store) -> list[str]:
    return [c.args[0].action for c in store.audit.create.call_args_list]


@pytest.fixture
def actions():
    """Audit actions written to the store, in order."""
    return audited_actions

"""
Test fixtures for storage tests.

Repositories are exercised against a mocked Database: the tests check the
SQL they issue and how rows become models. Rows are plain dicts, which
convert the same way asyncpg Records do.
"""
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from sniper_bot.storage import SniperStore


@pytest.fixture
def mock_db():
    """Mock database for unit tests."""
    db = AsyncMock()
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock(return_value=None)
    return db


@pytest.fixture
def store(mock_db):
    return SniperStore.from_database(mock_db)


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def position_row(now):
    return {
        "id": 5,
        "token_address": "mint_x",
        "size_sol": Decimal("0.1"),
        "entry_price": Decimal("0.0005"),
        "current_price": None,
        "pnl_percent": None,
        "status": "open",
        "exit_reason": None,
        "entry_signature": "buy_sig",
        "exit_signature": None,
        "opened_at": now,
        "closed_at": None,
    }

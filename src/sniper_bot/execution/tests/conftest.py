"""
Execution layer test fixtures.

The trade endpoint and the RPC node are replaced by a fake aiohttp
session. Keys are generated fresh per test; no real wallet is used.
"""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from sniper_bot.execution import (
    ExitManager,
    GatewayConfig,
    Position,
    PositionBook,
    TradeGateway,
)


class FakeResponse:
    """Minimal aiohttp response usable as an async context manager."""

    def __init__(self, status=200, body=None, raw=b"", text=""):
        self.status = status
        self._body = body
        self._raw = raw
        self._text = text

    async def json(self, content_type="application/json"):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    async def read(self):
        return self._raw

    async def text(self):
        return self._text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False


@pytest.fixture
def response():
    """Factory for fake responses."""
    return FakeResponse


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def unsigned_tx_bytes(keypair):
    """A serialized transaction paid for by ``keypair``, as the trade endpoint returns it."""
    ix = transfer(
        TransferParams(from_pubkey=keypair.pubkey(), to_pubkey=Keypair().pubkey(), lamports=1000)
    )
    message = MessageV0.try_compile(keypair.pubkey(), [ix], [], Hash.default())
    return bytes(VersionedTransaction(message, [keypair]))


@pytest.fixture
def fake_session():
    """aiohttp session whose post() responses are set per test."""
    session = MagicMock()
    session.post = MagicMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def gateway(keypair, fake_session):
    return TradeGateway(keypair, GatewayConfig(rpc_url="https://rpc.test"), session=fake_session)


@pytest.fixture
def mock_gateway():
    gateway = MagicMock()
    gateway.release = AsyncMock(return_value="sell_sig")
    return gateway


@pytest.fixture
def book():
    return PositionBook()


@pytest.fixture
def mock_store():
    store = MagicMock()
    store.trades.create = AsyncMock()
    store.positions.close = AsyncMock()
    return store


@pytest.fixture
def exit_manager(mock_gateway, book, mock_store):
    return ExitManager(mock_gateway, book, mock_store)


@pytest.fixture
def open_position(book):
    position = Position(
        token_address="mint_x",
        size_native=Decimal("0.1"),
        entry_price=Decimal("1.0"),
        position_id=3,
    )
    book.add(position)
    return position

"""
Test fixtures for ingestion layer.

IMPORTANT: All external connections must be mocked.
Never hit the real PumpPortal or Birdeye endpoints in tests.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from sniper_bot.ingestion.websocket import PumpPortalFeed, ReconnectPolicy


MINT_A = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
MINT_B = "9wFFyRfZBsuAha4YcuxcXLKwMxJR43S7fPfQLusDBzvT"
MINT_C = "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"


# =============================================================================
# Frame Fixtures
# =============================================================================


@pytest.fixture
def create_event():
    """A token-creation frame as PumpPortal sends it."""
    return {
        "signature": "5sig",
        "mint": MINT_A,
        "traderPublicKey": "Trader1111111111111111111111111111111111111",
        "txType": "create",
        "initialBuy": 65000000.5,
        "solAmount": 2,
        "vSolInBondingCurve": 32.0,
        "marketCapSol": 31.5,
        "name": "Doge Moon",
        "symbol": "DMOON",
        "uri": "https://ipfs.io/ipfs/QmHash",
    }


@pytest.fixture
def buy_event():
    """A trade frame on a subscribed token."""
    return {
        "signature": "6sig",
        "mint": MINT_A,
        "traderPublicKey": "Trader2222222222222222222222222222222222222",
        "txType": "buy",
        "tokenAmount": 1500000,
        "solAmount": 0.5,
        "vSolInBondingCurve": 40.25,
        "marketCapSol": 45.75,
    }


# =============================================================================
# Feed Fixtures
# =============================================================================


@pytest.fixture
def observer():
    """Observer with async callbacks."""
    obs = MagicMock()
    obs.on_token_created = AsyncMock()
    obs.on_trade_occurred = AsyncMock()
    obs.on_connection_status_changed = AsyncMock()
    return obs


@pytest.fixture
def mock_ws():
    """An open websocket connection that records sent frames."""
    ws = AsyncMock()
    ws.send = AsyncMock()
    ws.close = AsyncMock()
    return ws


@pytest.fixture
def feed(observer):
    """A feed with a small subscription set."""
    return PumpPortalFeed(
        observer=observer,
        url="wss://test.invalid/api/data",
        subscription_capacity=2,
        reconnect_policy=ReconnectPolicy(base_delay=5, max_delay=30, max_retries=10),
    )


@pytest.fixture
def sent_frames():
    """Decoder for every frame passed to ws.send."""

    def decode(ws) -> list[dict]:
        return [json.loads(c.args[0]) for c in ws.send.call_args_list]

    return decode

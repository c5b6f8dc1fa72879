"""
Shared test fixtures for integration tests.

This file provides fixtures that span multiple components,
unlike component-specific fixtures in src/sniper_bot/{component}/tests/conftest.py
"""
import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from sniper_bot.ingestion import TokenInfo


# =============================================================================
# External Service Fixtures
# =============================================================================


@pytest.fixture
def market_data():
    """
    Birdeye stand-in with mutable prices.

    Set ``market_data.prices[mint]`` to move a token's price.
    """
    client = MagicMock()
    client.prices = {}

    async def get_token_info(address):
        return TokenInfo(
            contract_address=address,
            price=client.prices.get(address),
            liquidity=Decimal("8000"),
            holders=120,
        )

    async def get_price(address):
        return client.prices.get(address)

    client.get_token_info = AsyncMock(side_effect=get_token_info)
    client.get_price = AsyncMock(side_effect=get_price)
    client.get_sol_price = AsyncMock(return_value=Decimal("150"))
    return client


@pytest.fixture
def gateway():
    """Gateway with a loaded wallet; every trade succeeds."""
    gw = MagicMock()
    gw.has_signer = True
    gw.public_key = "Wallet11111111111111111111111111111111111111"
    gw.acquire = AsyncMock(return_value="buy_sig")
    gw.release = AsyncMock(return_value="sell_sig")
    gw.get_balance = AsyncMock(return_value=Decimal("2"))
    return gw


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the attempts run out."""

    async def _wait(predicate, attempts: int = 500):
        for _ in range(attempts):
            if predicate():
                return
            await asyncio.sleep(0.001)
        raise AssertionError("condition not reached")

    return _wait

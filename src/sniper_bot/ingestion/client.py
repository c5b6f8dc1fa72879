"""
REST API client for Birdeye market data.

Provides async access to token metadata, market data (price, market cap,
liquidity, holders) and spot prices on Solana.

Lookups never raise to callers: a failed lookup is logged and returned as
None so a missing data point degrades the score instead of aborting it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Any, Optional

import aiohttp

from .models import TokenInfo, _to_optional_decimal

logger = logging.getLogger(__name__)

SOL_MINT = "So11111111111111111111111111111111111111112"


class BirdeyeAPIError(Exception):
    """Base exception for Birdeye API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(BirdeyeAPIError):
    """Rate limit exceeded."""
    pass


class BirdeyeClient:
    """
    Async REST client for the Birdeye public API.

    Features:
        - Rate limiting to avoid API throttling
        - Retries with exponential backoff on 5xx/timeouts
        - Cached SOL/USD price with a fallback constant

    Usage:
        async with BirdeyeClient(api_key="...") as client:
            info = await client.get_token_info(mint)
            sol_usd = await client.get_sol_price()
    """

    BASE_URL = "https://public-api.birdeye.so"
    TOKEN_METADATA = "/defi/v3/token/meta-data/multiple"
    TOKEN_MARKET = "/defi/v3/token/market-data/multiple"
    PRICE = "/defi/price"

    def __init__(
        self,
        api_key: str = "",
        session: Optional[aiohttp.ClientSession] = None,
        base_url: Optional[str] = None,
        rate_limit: float = 10.0,  # requests per second
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        sol_price_ttl: float = 60.0,
        sol_price_fallback: Decimal = Decimal("200"),
    ):
        """
        Initialize the REST client.

        Args:
            api_key: Birdeye API key (sent as X-API-KEY)
            session: Optional aiohttp session (created if not provided)
            base_url: Optional API base override
            rate_limit: Maximum requests per second
            timeout: Request timeout in seconds
            max_retries: Number of attempts for a request
            retry_delay: Base delay between retries (exponential backoff)
            sol_price_ttl: Seconds a fetched SOL price stays fresh
            sol_price_fallback: SOL price used before any successful fetch
        """
        self._api_key = api_key
        self._session = session
        self._owns_session = session is None
        self._base_url = base_url or self.BASE_URL
        self._rate_limit = rate_limit
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._max_retries = max_retries
        self._retry_delay = retry_delay

        self._sol_price_ttl = sol_price_ttl
        self._sol_price_fallback = sol_price_fallback
        self._sol_price: Optional[Decimal] = None
        self._sol_price_fetched_at = 0.0

        # Rate limiting
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self) -> "BirdeyeClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "X-API-KEY": self._api_key,
            "x-chain": "solana",
            "accept": "application/json",
        }

    async def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits."""
        async with self._rate_lock:
            now = time.time()
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self._rate_limit:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.time())

    async def _request(self, path: str, params: Optional[dict] = None) -> Any:
        """
        GET a Birdeye endpoint with rate limiting and retries.

        Returns:
            The ``data`` member of the response envelope

        Raises:
            BirdeyeAPIError: On API errors or when retries are exhausted
            RateLimitError: When rate limited on the final attempt
        """
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        url = f"{self._base_url}{path}"
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                await self._rate_limit_wait()

                async with self._session.get(url, params=params, headers=self._headers) as response:
                    if response.status == 429:
                        raise RateLimitError("Rate limit exceeded", status_code=429)

                    if response.status >= 400:
                        text = await response.text()
                        raise BirdeyeAPIError(
                            f"API error: {response.status} - {text[:200]}",
                            status_code=response.status,
                        )

                    body = await response.json()

                if not isinstance(body, dict) or not body.get("success", True):
                    raise BirdeyeAPIError(f"Unsuccessful response: {str(body)[:200]}")
                return body.get("data")

            except RateLimitError as e:
                delay = self._retry_delay * (2 ** attempt) * 2
                logger.warning(f"Rate limited, waiting {delay}s before retry")
                await asyncio.sleep(delay)
                last_error = e

            except BirdeyeAPIError as e:
                if e.status_code and e.status_code >= 500:
                    delay = self._retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Server error {e.status_code}, retry {attempt + 1}/{self._max_retries}"
                    )
                    await asyncio.sleep(delay)
                    last_error = e
                else:
                    raise

            except asyncio.TimeoutError:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(f"Request timeout, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(delay)
                last_error = BirdeyeAPIError("Request timed out")

            except asyncio.CancelledError:
                raise

            except aiohttp.ClientError as e:
                delay = self._retry_delay * (2 ** attempt)
                logger.warning(f"Request failed: {e}, retry {attempt + 1}/{self._max_retries}")
                await asyncio.sleep(delay)
                last_error = BirdeyeAPIError(str(e))

        raise last_error or BirdeyeAPIError("Request failed after retries")

    # =========================================================================
    # Token data
    # =========================================================================

    async def get_token_metadata(self, address: str) -> Optional[dict]:
        """Name, symbol, decimals and logo for a token."""
        try:
            data = await self._request(self.TOKEN_METADATA, {"list_address": address})
        except BirdeyeAPIError as e:
            logger.warning(f"Metadata lookup failed for {address}: {e}")
            return None
        return (data or {}).get(address)

    async def get_token_market(self, address: str) -> Optional[dict]:
        """Price, market cap, liquidity and holder count for a token."""
        try:
            data = await self._request(self.TOKEN_MARKET, {"list_address": address})
        except BirdeyeAPIError as e:
            logger.warning(f"Market lookup failed for {address}: {e}")
            return None
        return (data or {}).get(address)

    async def get_token_info(self, address: str) -> Optional[TokenInfo]:
        """
        Metadata and market data merged into one TokenInfo.

        Both lookups run concurrently. Returns None only when both fail.
        """
        metadata, market = await asyncio.gather(
            self.get_token_metadata(address),
            self.get_token_market(address),
        )
        if metadata is None and market is None:
            return None
        return TokenInfo.from_api(address, metadata, market)

    async def get_price(self, address: str) -> Optional[Decimal]:
        """Current USD price for a token, or None if unavailable."""
        try:
            data = await self._request(self.PRICE, {"address": address})
        except BirdeyeAPIError as e:
            logger.warning(f"Price lookup failed for {address}: {e}")
            return None

        price = _to_optional_decimal((data or {}).get("value"))
        if price is None or not price.is_finite() or price <= 0:
            return None
        return price

    async def get_sol_price(self) -> Decimal:
        """
        SOL/USD, cached for ``sol_price_ttl`` seconds.

        Falls back to the last known price, then to the configured constant.
        """
        now = time.monotonic()
        if self._sol_price is not None and now - self._sol_price_fetched_at < self._sol_price_ttl:
            return self._sol_price

        price = await self.get_price(SOL_MINT)
        if price is not None:
            self._sol_price = price
            self._sol_price_fetched_at = now
            return price

        if self._sol_price is not None:
            return self._sol_price
        return self._sol_price_fallback

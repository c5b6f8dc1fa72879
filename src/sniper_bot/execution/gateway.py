"""
Trade Execution Gateway.

Turns a buy/sell decision into a submitted Solana transaction:

    1. POST the trade to PumpPortal's local-trade endpoint, which returns
       an unsigned serialized VersionedTransaction
    2. Sign it locally with the wallet keypair (the key never leaves us)
    3. Broadcast with JSON-RPC sendTransaction

Every failure (non-200, undecodable transaction, RPC rejection, timeout)
is logged and reported as None. The gateway never retries.
"""
from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

import aiohttp
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = Decimal("1000000000")


class TradeAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class TradeGatewayError(Exception):
    """A trade could not be built, signed or submitted."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GatewayConfig:
    """Configuration for trade submission."""

    trade_url: str = "https://pumpportal.fun/api/trade-local"
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    default_slippage: int = 15  # percent
    priority_fee: Decimal = Decimal("0.001")  # SOL
    pool: str = "pump"
    timeout_seconds: float = 30.0
    skip_preflight: bool = False


class TradeGateway:
    """
    Buys and sells pump.fun tokens through PumpPortal.

    With no keypair the gateway runs in observer mode: every trade returns
    None without touching the network.

    Usage:
        gateway = TradeGateway(keypair, GatewayConfig(rpc_url=...))
        signature = await gateway.acquire(mint, Decimal("0.1"))
        if signature:
            ...
        await gateway.release(mint)  # sell everything
        await gateway.close()
    """

    def __init__(
        self,
        keypair: Optional[Keypair] = None,
        config: Optional[GatewayConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._keypair = keypair
        self._config = config or GatewayConfig()
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=self._config.timeout_seconds)

    @property
    def has_signer(self) -> bool:
        return self._keypair is not None

    @property
    def public_key(self) -> Optional[str]:
        return str(self._keypair.pubkey()) if self._keypair else None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    # =========================================================================
    # Trading
    # =========================================================================

    async def acquire(
        self,
        address: str,
        size_native: Decimal,
        slippage: Optional[int] = None,
    ) -> Optional[str]:
        """
        Buy ``size_native`` SOL worth of a token.

        Returns:
            Transaction signature, or None if not executed.
        """
        if size_native <= 0:
            logger.warning(f"Refusing to buy {address} with size {size_native}")
            return None

        return await self._execute(
            TradeAction.BUY,
            address,
            amount=float(size_native),
            denominated_in_sol=True,
            slippage=slippage,
        )

    async def release(
        self,
        address: str,
        fraction: Decimal = Decimal("1"),
        slippage: Optional[int] = None,
    ) -> Optional[str]:
        """
        Sell a fraction (0, 1] of the held tokens.

        Returns:
            Transaction signature, or None if not executed.
        """
        if not (Decimal("0") < fraction <= Decimal("1")):
            logger.warning(f"Refusing to sell {address} with fraction {fraction}")
            return None

        percent = (fraction * 100).normalize()
        return await self._execute(
            TradeAction.SELL,
            address,
            amount=f"{percent:f}%",
            denominated_in_sol=False,
            slippage=slippage,
        )

    async def _execute(
        self,
        action: TradeAction,
        address: str,
        amount: Union[float, str],
        denominated_in_sol: bool,
        slippage: Optional[int],
    ) -> Optional[str]:
        if self._keypair is None:
            logger.warning(f"No wallet loaded, not executing {action.value} for {address}")
            return None

        payload = {
            "publicKey": str(self._keypair.pubkey()),
            "action": action.value,
            "mint": address,
            "amount": amount,
            "denominatedInSol": "true" if denominated_in_sol else "false",
            "slippage": slippage if slippage is not None else self._config.default_slippage,
            "priorityFee": float(self._config.priority_fee),
            "pool": self._config.pool,
        }

        try:
            unsigned = await self._fetch_unsigned(payload)
            signed = self._sign(unsigned)
            signature = await self._send_transaction(signed)

        except asyncio.CancelledError:
            raise

        except TradeGatewayError as e:
            logger.error(f"{action.value.upper()} {address} failed: {e}")
            return None

        except asyncio.TimeoutError:
            logger.error(f"{action.value.upper()} {address} timed out")
            return None

        except aiohttp.ClientError as e:
            logger.error(f"{action.value.upper()} {address} request failed: {e}")
            return None

        logger.info(f"{action.value.upper()} {address} submitted: {signature}")
        return signature

    async def _fetch_unsigned(self, payload: dict) -> bytes:
        session = self._get_session()
        async with session.post(self._config.trade_url, json=payload) as response:
            if response.status != 200:
                text = await response.text()
                raise TradeGatewayError(
                    f"Trade endpoint returned {response.status}: {text[:200]}",
                    status_code=response.status,
                )
            return await response.read()

    def _sign(self, unsigned: bytes) -> VersionedTransaction:
        try:
            tx = VersionedTransaction.from_bytes(unsigned)
        except Exception as e:
            raise TradeGatewayError(f"Could not decode transaction: {e}") from e
        try:
            return VersionedTransaction(tx.message, [self._keypair])
        except Exception as e:
            raise TradeGatewayError(f"Could not sign transaction: {e}") from e

    async def _send_transaction(self, tx: VersionedTransaction) -> str:
        encoded = base64.b64encode(bytes(tx)).decode("ascii")
        result = await self._rpc(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": self._config.skip_preflight,
                    "preflightCommitment": "confirmed",
                },
            ],
        )
        if not isinstance(result, str):
            raise TradeGatewayError(f"Unexpected sendTransaction result: {result!r}")
        return result

    async def _rpc(self, method: str, params: list) -> Any:
        session = self._get_session()
        body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        async with session.post(self._config.rpc_url, json=body) as response:
            if response.status != 200:
                text = await response.text()
                raise TradeGatewayError(
                    f"RPC {method} returned {response.status}: {text[:200]}",
                    status_code=response.status,
                )
            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                raise TradeGatewayError(f"RPC {method} returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise TradeGatewayError(f"RPC {method} returned unexpected body: {data!r:.200}")
        if data.get("error"):
            raise TradeGatewayError(f"RPC {method} error: {data['error']}")
        return data.get("result")

    # =========================================================================
    # Wallet
    # =========================================================================

    async def get_balance(self) -> Decimal:
        """SOL balance of the wallet; zero with no wallet or on failure."""
        if self._keypair is None:
            return Decimal("0")

        try:
            result = await self._rpc("getBalance", [str(self._keypair.pubkey())])
        except asyncio.CancelledError:
            raise
        except (TradeGatewayError, asyncio.TimeoutError, aiohttp.ClientError) as e:
            logger.warning(f"Balance lookup failed: {e}")
            return Decimal("0")

        lamports = result.get("value", 0) if isinstance(result, dict) else 0
        return Decimal(lamports) / LAMPORTS_PER_SOL

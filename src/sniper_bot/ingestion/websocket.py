"""
WebSocket client for the PumpPortal real-time data feed.

Features:
    - Standing subscription to token-creation events
    - Per-token trade subscriptions, bounded by a SubscriptionSet
    - Subscription persistence across reconnects
    - Linear backoff reconnection that never gives up
    - Stale-stream detection

Events are delivered to a FeedObserver. All outbound frames go through a
single lock so subscribe/unsubscribe/resubscribe frames never interleave.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Protocol

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from .models import TokenSnapshot, TradeUpdate
from .subscriptions import DEFAULT_CAPACITY, SubscriptionSet

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Feed connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKOFF_WAIT = "backoff_wait"
    STOPPING = "stopping"


@dataclass
class ReconnectPolicy:
    """
    Linear backoff: attempt N waits ``min(base_delay * N, max_delay)``.

    After ``max_retries`` consecutive failures the attempt counter starts
    over, so the following delay is ``base_delay`` again.
    """

    base_delay: float = 5.0
    max_delay: float = 30.0
    max_retries: int = 10

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * attempt, self.max_delay)


class FeedObserver(Protocol):
    """Receiver of feed events."""

    async def on_token_created(self, snapshot: TokenSnapshot) -> None: ...

    async def on_trade_occurred(self, trade: TradeUpdate) -> None: ...

    async def on_connection_status_changed(self, connected: bool) -> None: ...


Sleeper = Callable[[float], Awaitable[None]]


class PumpPortalFeed:
    """
    Resilient PumpPortal websocket client.

    Usage:
        feed = PumpPortalFeed(observer=engine)
        await feed.start()

        await feed.subscribe("So11111111111111111111111111111111111111112")

        # ... later
        await feed.stop()
    """

    WS_URL = "wss://pumpportal.fun/api/data"

    def __init__(
        self,
        observer: FeedObserver,
        url: Optional[str] = None,
        subscription_capacity: int = DEFAULT_CAPACITY,
        reconnect_policy: Optional[ReconnectPolicy] = None,
        heartbeat_timeout: float = 120.0,
        sleep: Optional[Sleeper] = None,
    ):
        """
        Initialize the feed.

        Args:
            observer: Receives token-created, trade and connection events
            url: Optional WebSocket URL override
            subscription_capacity: Max tokens whose trades are followed
            reconnect_policy: Backoff settings (defaults 5s step, 30s cap)
            heartbeat_timeout: Seconds without a frame before reconnecting
            sleep: Timer used for backoff waits (defaults to asyncio.sleep)
        """
        self._observer = observer
        self._url = url or self.WS_URL
        self._policy = reconnect_policy or ReconnectPolicy()
        self._heartbeat_timeout = heartbeat_timeout
        self._sleep = sleep or asyncio.sleep

        self._state = ConnectionState.DISCONNECTED
        self._ws: Optional[Any] = None
        self._subscriptions = SubscriptionSet(subscription_capacity)
        self._send_lock = asyncio.Lock()

        self._retry_count = 0
        self._receive_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def retry_count(self) -> int:
        """Consecutive failed connection attempts."""
        return self._retry_count

    @property
    def subscriptions(self) -> list[str]:
        """Followed token addresses, oldest first."""
        return self._subscriptions.snapshot()

    def _set_state(self, state: ConnectionState) -> None:
        if self._state != state:
            old_state = self._state
            self._state = state
            logger.info(f"Feed state: {old_state.value} -> {state.value}")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Open the connection; failures are retried in the background."""
        if self._state != ConnectionState.DISCONNECTED:
            logger.warning(f"Cannot start: already in state {self._state.value}")
            return

        self._stop_event.clear()
        await self.connect()

    async def stop(self) -> None:
        """Cancel pending work and close the socket."""
        if self._state == ConnectionState.STOPPING:
            return
        if self._state == ConnectionState.DISCONNECTED and not self._has_pending_tasks():
            self._stop_event.set()
            return

        logger.info("Stopping feed...")
        self._set_state(ConnectionState.STOPPING)
        self._stop_event.set()

        current = asyncio.current_task()
        for task in (self._reconnect_task, self._receive_task):
            if task and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reconnect_task = None
        self._receive_task = None

        await self._close_socket()
        self._set_state(ConnectionState.DISCONNECTED)
        logger.info("Feed stopped")

    def _has_pending_tasks(self) -> bool:
        return any(
            task is not None and not task.done()
            for task in (self._reconnect_task, self._receive_task)
        )

    async def connect(self) -> None:
        """
        Connect and restore subscriptions.

        No-op while a connection is open or being opened.
        """
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return
        if self._stop_event.is_set():
            return

        current = asyncio.current_task()
        if (
            self._reconnect_task
            and self._reconnect_task is not current
            and not self._reconnect_task.done()
        ):
            self._reconnect_task.cancel()

        self._set_state(ConnectionState.CONNECTING)

        try:
            ws = await websockets.connect(
                self._url,
                ping_interval=20,
                ping_timeout=10,
                close_timeout=5,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to connect to {self._url}: {e}")
            await self._handle_disconnect()
            return

        self._ws = ws
        self._retry_count = 0
        self._set_state(ConnectionState.CONNECTED)
        logger.info(f"Connected to {self._url}")

        async with self._send_lock:
            tracked = self._subscriptions.snapshot()
            if tracked:
                await self._send_locked({"method": "subscribeTokenTrade", "keys": tracked})
                logger.info(f"Resubscribed to {len(tracked)} token trade streams")
            await self._send_locked({"method": "subscribeNewToken"})

        await self._notify_connection(True)

        self._receive_task = asyncio.create_task(
            self._receive_loop(ws),
            name="pumpportal_receive",
        )

    # -------------------------------------------------------------------------
    # Receive / reconnect
    # -------------------------------------------------------------------------

    async def _receive_loop(self, ws: Any) -> None:
        """Read frames until the socket closes or goes quiet."""
        try:
            while not self._stop_event.is_set() and self._ws is ws:
                try:
                    message = await asyncio.wait_for(
                        ws.recv(),
                        timeout=self._heartbeat_timeout,
                    )
                except asyncio.TimeoutError:
                    logger.warning(
                        f"No message received in {self._heartbeat_timeout}s, reconnecting..."
                    )
                    break
                except ConnectionClosedOK:
                    logger.info("Feed closed normally")
                    break
                except ConnectionClosed as e:
                    logger.warning(f"Feed connection closed: {e}")
                    break

                await self._handle_message(message)

        except asyncio.CancelledError:
            logger.debug("Receive loop cancelled")
            raise

        except Exception as e:
            logger.error(f"Error in receive loop: {e}")

        if not self._stop_event.is_set():
            await self._handle_disconnect()

    async def _handle_disconnect(self) -> None:
        """Record the failure and schedule exactly one reconnect."""
        if self._stop_event.is_set():
            return
        if self._state == ConnectionState.BACKOFF_WAIT:
            return

        await self._close_socket()
        self._set_state(ConnectionState.DISCONNECTED)

        if self._retry_count >= self._policy.max_retries:
            logger.warning(
                f"{self._retry_count} consecutive connection failures, "
                f"restarting backoff"
            )
            self._retry_count = 0
        self._retry_count += 1
        delay = self._policy.delay_for(self._retry_count)

        self._set_state(ConnectionState.BACKOFF_WAIT)
        logger.info(f"Reconnecting in {delay:.1f}s (attempt #{self._retry_count})...")
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after(delay),
            name="pumpportal_reconnect",
        )

        await self._notify_connection(False)

    async def _reconnect_after(self, delay: float) -> None:
        await self._sleep(delay)
        if self._stop_event.is_set():
            return
        self._set_state(ConnectionState.DISCONNECTED)
        await self.connect()

    async def _close_socket(self) -> None:
        ws, self._ws = self._ws, None
        if ws is None:
            return
        try:
            await ws.close()
        except Exception as e:
            logger.debug(f"Error closing feed socket: {e}")

    # -------------------------------------------------------------------------
    # Inbound frames
    # -------------------------------------------------------------------------

    async def _handle_message(self, raw_message: Any) -> None:
        """Parse a frame and dispatch it; malformed frames are dropped."""
        try:
            data = json.loads(raw_message)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            logger.debug(f"Dropping unparseable frame: {e}")
            return

        if isinstance(data, list):
            for event in data:
                if isinstance(event, dict):
                    await self._handle_single_message(event)
            return

        if isinstance(data, dict):
            await self._handle_single_message(data)

    async def _handle_single_message(self, data: dict) -> None:
        tx_type = data.get("txType")
        mint = data.get("mint")

        if tx_type == "create" and mint:
            try:
                snapshot = TokenSnapshot.from_create_event(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Dropping malformed create frame: {e}")
                return
            await self._notify("on_token_created", snapshot)

        elif tx_type in ("buy", "sell") and mint:
            try:
                trade = TradeUpdate.from_trade_event(data)
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Dropping malformed trade frame: {e}")
                return
            await self._notify("on_trade_occurred", trade)

        elif "errors" in data:
            logger.warning(f"Feed error message: {data['errors']}")

        elif "message" in data:
            logger.debug(f"Feed message: {data['message']}")

        else:
            logger.debug(f"Unknown frame: {str(data)[:200]}")

    async def _notify(self, method: str, payload: Any) -> None:
        try:
            await getattr(self._observer, method)(payload)
        except Exception as e:
            logger.error(f"Observer {method} failed: {e}")

    async def _notify_connection(self, connected: bool) -> None:
        await self._notify("on_connection_status_changed", connected)

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    async def subscribe(self, address: str) -> Optional[str]:
        """
        Follow trades for a token.

        Returns:
            The address evicted to make room, if any. Its unsubscribe frame
            is sent before the new subscribe frame.
        """
        async with self._send_lock:
            if address in self._subscriptions:
                return None

            evicted = self._subscriptions.add(address)
            if evicted:
                logger.info(f"Subscription set full, evicting {evicted}")

            if self.is_connected:
                if evicted:
                    await self._send_locked({"method": "unsubscribeTokenTrade", "keys": [evicted]})
                await self._send_locked({"method": "subscribeTokenTrade", "keys": [address]})
            else:
                logger.debug(f"Queued {address} for subscription on connect")

            return evicted

    async def unsubscribe(self, address: str) -> None:
        """Stop following trades for a token."""
        async with self._send_lock:
            if not self._subscriptions.discard(address):
                return
            if self.is_connected:
                await self._send_locked({"method": "unsubscribeTokenTrade", "keys": [address]})

    async def _send_locked(self, frame: dict) -> bool:
        """Send a frame. Caller must hold ``_send_lock``."""
        if self._ws is None:
            return False

        try:
            await self._ws.send(json.dumps(frame))
            logger.debug(f"Sent {frame['method']}")
            return True
        except Exception as e:
            logger.error(f"Failed to send {frame.get('method')}: {e}")
            return False

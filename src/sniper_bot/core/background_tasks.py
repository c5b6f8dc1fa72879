"""
BackgroundTasksManager - Manages async background tasks.

Handles periodic tasks:
- Position supervision (take-profit / stop-loss)
- Status refresh (balance and counters to the status row)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional

if TYPE_CHECKING:
    from .engine import SniperEngine
    from .supervisor import PositionSupervisor

logger = logging.getLogger(__name__)


@dataclass
class BackgroundTaskConfig:
    """Configuration for background tasks."""

    position_check_interval_seconds: float = 15
    position_check_enabled: bool = True

    status_refresh_interval_seconds: float = 30
    status_refresh_enabled: bool = True

    # Pause after an unexpected error before the loop continues
    error_backoff_seconds: float = 5


class BackgroundTasksManager:
    """
    Runs the periodic loops of the sniper bot.

    Usage:
        manager = BackgroundTasksManager(
            supervisor=supervisor,
            engine=engine,
            config=BackgroundTaskConfig(),
        )
        await manager.start()
        # ... bot runs ...
        await manager.stop()
    """

    def __init__(
        self,
        supervisor: Optional["PositionSupervisor"] = None,
        engine: Optional["SniperEngine"] = None,
        config: Optional[BackgroundTaskConfig] = None,
    ) -> None:
        self._supervisor = supervisor
        self._engine = engine
        self._config = config or BackgroundTaskConfig()

        self._running = False
        self._tasks: List[asyncio.Task] = []
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start all enabled tasks."""
        if self._running:
            logger.warning("BackgroundTasksManager already running")
            return

        logger.info("Starting background tasks...")
        self._running = True
        self._stop_event.clear()

        if self._config.position_check_enabled and self._supervisor:
            self._tasks.append(
                asyncio.create_task(
                    self._periodic(
                        "position check",
                        self._config.position_check_interval_seconds,
                        self._check_positions,
                    ),
                    name="position_check",
                )
            )
            logger.info(
                f"Started position check task "
                f"(interval={self._config.position_check_interval_seconds}s)"
            )

        if self._config.status_refresh_enabled and self._engine:
            self._tasks.append(
                asyncio.create_task(
                    self._periodic(
                        "status refresh",
                        self._config.status_refresh_interval_seconds,
                        self._engine.refresh_status,
                    ),
                    name="status_refresh",
                )
            )
            logger.info(
                f"Started status refresh task "
                f"(interval={self._config.status_refresh_interval_seconds}s)"
            )

        logger.info(f"Background tasks started: {len(self._tasks)} tasks")

    async def stop(self) -> None:
        """Stop all tasks."""
        if not self._running:
            return

        logger.info("Stopping background tasks...")
        self._running = False
        self._stop_event.set()

        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        logger.info("Background tasks stopped")

    async def _check_positions(self) -> None:
        closed = await self._supervisor.tick()
        if closed:
            logger.info(f"Position check: {closed} positions closed")

    async def _periodic(
        self,
        label: str,
        interval: float,
        action: Callable[[], Awaitable[None]],
    ) -> None:
        """Run ``action`` every ``interval`` seconds until stopped."""
        while self._running:
            try:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break  # Stop requested
                except asyncio.TimeoutError:
                    pass

                if not self._running:
                    break

                await action()

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in {label}: {e}")
                await asyncio.sleep(self._config.error_backoff_seconds)

"""
Pump.fun Sniper Bot - Main Entry Point

Usage:
    python -m sniper_bot.main [--dry-run] [--log-level DEBUG]
    sniper-bot --dry-run

Configuration:
    The bot reads configuration from:
    1. Environment variables (optionally from a .env file)
    2. Command line arguments

Environment Variables:
    DATABASE_URL              PostgreSQL connection string (required)
    WALLET_PRIVATE_KEY        Wallet secret (JSON array, base64 or base58).
                              Without it the bot runs in observer mode.
    SNIPER_ENABLED            Buy approved tokens automatically (default: false)
    BUY_AMOUNT_SOL            SOL spent per snipe (default: 0.1)
    SLIPPAGE                  Slippage tolerance in percent (default: 15)
    PRIORITY_FEE              Priority fee in SOL (default: 0.001)
    TAKE_PROFIT_PERCENT       Sell everything at this gain (default: 100)
    STOP_LOSS_PERCENT         Sell everything at this loss (default: -50)
    MIN_LIQUIDITY             Reject tokens below this USD liquidity (default: 1000)
    MAX_MCAP                  Reject tokens above this USD market cap (default: 50000)
    BIRDEYE_API_KEY           Birdeye API key
    RPC_URL                   Solana RPC endpoint
    PUMPPORTAL_WS_URL         Feed websocket URL
    PUMPPORTAL_TRADE_URL      Local-trade endpoint
    POSITION_CHECK_INTERVAL   Seconds between position checks (default: 15)
    STATUS_REFRESH_INTERVAL   Seconds between status refreshes (default: 30)
    LOG_LEVEL                 Logging level (DEBUG/INFO/WARNING/ERROR)
"""

from __future__ import annotations

import argparse
import asyncio
import atexit
import fcntl
import logging
import os
import signal
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Generator, Optional

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_PID_FILE = "/tmp/sniper-bot.pid"


class SingletonBotError(Exception):
    """Raised when another bot instance is already running."""
    pass


@contextmanager
def singleton_lock(pid_file: str = DEFAULT_PID_FILE) -> Generator[None, None, None]:
    """
    Ensure only one bot instance runs at a time.

    Holds an exclusive non-blocking flock on ``pid_file`` for the lifetime
    of the block and writes our PID into it.

    Raises:
        SingletonBotError: If another instance holds the lock
    """
    pid_path = Path(pid_file)

    existing_pid = None
    try:
        existing_pid = pid_path.read_text().strip()
    except FileNotFoundError:
        pass

    # "a+" so the file is not truncated before we own the lock
    fp = open(pid_path, "a+")
    try:
        fcntl.flock(fp.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except OSError:
        fp.close()
        detail = f" (PID: {existing_pid})" if existing_pid else ""
        raise SingletonBotError(f"Another sniper bot instance is already running{detail}")

    fp.seek(0)
    fp.truncate()
    fp.write(str(os.getpid()))
    fp.flush()

    def cleanup():
        try:
            fcntl.flock(fp.fileno(), fcntl.LOCK_UN)
            fp.close()
            pid_path.unlink(missing_ok=True)
        except OSError:
            pass

    atexit.register(cleanup)
    try:
        logger.info(f"Acquired singleton lock (PID: {os.getpid()}, file: {pid_file})")
        yield
    finally:
        cleanup()
        atexit.unregister(cleanup)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class BotConfig:
    """Complete bot configuration."""

    # Database
    database_url: str = ""

    # Wallet
    wallet_private_key: Optional[str] = None

    # Trading
    sniper_enabled: bool = False
    buy_amount_sol: Decimal = Decimal("0.1")
    slippage: int = 15
    priority_fee: Decimal = Decimal("0.001")
    take_profit_percent: Decimal = Decimal("100")
    stop_loss_percent: Decimal = Decimal("-50")

    # Scoring gates
    min_liquidity: Decimal = Decimal("1000")
    max_market_cap: Decimal = Decimal("50000")

    # Endpoints
    birdeye_api_key: str = ""
    rpc_url: str = "https://api.mainnet-beta.solana.com"
    websocket_url: str = "wss://pumpportal.fun/api/data"
    trade_url: str = "https://pumpportal.fun/api/trade-local"

    # Background tasks
    position_check_interval_seconds: float = 15
    status_refresh_interval_seconds: float = 30

    # Feed
    subscription_capacity: int = 100
    market_data_delay_seconds: float = 1.5

    @classmethod
    def from_env(cls) -> "BotConfig":
        """Load configuration from environment variables."""
        return cls(
            database_url=os.environ.get("DATABASE_URL", ""),
            wallet_private_key=os.environ.get("WALLET_PRIVATE_KEY") or None,
            sniper_enabled=_env_bool("SNIPER_ENABLED"),
            buy_amount_sol=Decimal(os.environ.get("BUY_AMOUNT_SOL", "0.1")),
            slippage=int(os.environ.get("SLIPPAGE", "15")),
            priority_fee=Decimal(os.environ.get("PRIORITY_FEE", "0.001")),
            take_profit_percent=Decimal(os.environ.get("TAKE_PROFIT_PERCENT", "100")),
            stop_loss_percent=Decimal(os.environ.get("STOP_LOSS_PERCENT", "-50")),
            min_liquidity=Decimal(os.environ.get("MIN_LIQUIDITY", "1000")),
            max_market_cap=Decimal(os.environ.get("MAX_MCAP", "50000")),
            birdeye_api_key=os.environ.get("BIRDEYE_API_KEY", ""),
            rpc_url=os.environ.get("RPC_URL", "https://api.mainnet-beta.solana.com"),
            websocket_url=os.environ.get("PUMPPORTAL_WS_URL", "wss://pumpportal.fun/api/data"),
            trade_url=os.environ.get("PUMPPORTAL_TRADE_URL", "https://pumpportal.fun/api/trade-local"),
            position_check_interval_seconds=float(os.environ.get("POSITION_CHECK_INTERVAL", "15")),
            status_refresh_interval_seconds=float(os.environ.get("STATUS_REFRESH_INTERVAL", "30")),
            subscription_capacity=int(os.environ.get("SUBSCRIPTION_CAPACITY", "100")),
            market_data_delay_seconds=float(os.environ.get("MARKET_DATA_DELAY", "1.5")),
        )


class SniperBot:
    """
    Main bot orchestrator.

    Manages the lifecycle of all components:
    - Database connection
    - Birdeye client and trade gateway
    - Sniper engine, position supervisor and background loops
    - PumpPortal feed
    """

    def __init__(self, config: BotConfig):
        self.config = config
        self._running = False
        self._shutdown_event = asyncio.Event()

        self._db = None
        self._store = None
        self._market_data = None
        self._gateway = None
        self._engine = None
        self._supervisor = None
        self._feed = None
        self._background_tasks = None

    async def start(self) -> None:
        """Start the bot and block until shutdown."""
        logger.info("=" * 60)
        logger.info("PUMP.FUN SNIPER BOT")
        logger.info("=" * 60)
        logger.info(f"Auto-trading: {'ON' if self.config.sniper_enabled else 'OFF'}")
        logger.info(f"Buy amount: {self.config.buy_amount_sol} SOL, slippage {self.config.slippage}%")
        logger.info(
            f"Exits: take-profit {self.config.take_profit_percent}%, "
            f"stop-loss {self.config.stop_loss_percent}%"
        )
        logger.info("=" * 60)

        self._running = True
        self._setup_signal_handlers()

        try:
            await self._init_database()
            self._init_clients()
            self._init_engine()

            await self._supervisor.restore()
            await self._engine.start()
            await self._engine.record_startup()
            await self._background_tasks.start()
            await self._feed.start()

            logger.info("Bot started")
            await self._run_loop()

        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Stop all components in reverse order."""
        if self._db is None and self._engine is None:
            return

        logger.info("Shutting down...")
        self._running = False
        self._shutdown_event.set()

        for name, component in (
            ("feed", self._feed),
            ("background tasks", self._background_tasks),
            ("engine", self._engine),
        ):
            if component is None:
                continue
            try:
                await component.stop()
            except Exception as e:
                logger.warning(f"Error stopping {name}: {e}")

        for name, client in (("gateway", self._gateway), ("market data", self._market_data)):
            if client is None:
                continue
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")

        if self._db:
            try:
                await self._db.close()
            except Exception as e:
                logger.warning(f"Error closing database: {e}")

        self._feed = self._background_tasks = self._engine = None
        self._gateway = self._market_data = self._db = None
        logger.info("Shutdown complete")

    async def _init_database(self) -> None:
        from sniper_bot.storage import Database, DatabaseConfig, SniperStore

        if not self.config.database_url:
            raise ValueError("DATABASE_URL environment variable is required")

        self._db = Database(DatabaseConfig(url=self.config.database_url))
        await self._db.initialize()
        if not await self._db.health_check():
            raise RuntimeError("Database health check failed")

        self._store = SniperStore.from_database(self._db)
        logger.info("Database: Connected")

    def _init_clients(self) -> None:
        from sniper_bot.execution import GatewayConfig, TradeGateway, load_keypair
        from sniper_bot.ingestion import BirdeyeClient

        self._market_data = BirdeyeClient(api_key=self.config.birdeye_api_key)

        keypair = load_keypair(self.config.wallet_private_key)
        if keypair is None:
            logger.warning("No WALLET_PRIVATE_KEY set: running in observer mode")
        else:
            logger.info(f"Wallet: {keypair.pubkey()}")

        self._gateway = TradeGateway(
            keypair,
            GatewayConfig(
                trade_url=self.config.trade_url,
                rpc_url=self.config.rpc_url,
                default_slippage=self.config.slippage,
                priority_fee=self.config.priority_fee,
            ),
        )

    def _init_engine(self) -> None:
        from sniper_bot.core import (
            AuditTrail,
            BackgroundTaskConfig,
            BackgroundTasksManager,
            EngineConfig,
            PipelineStats,
            PositionSupervisor,
            ScoringConfig,
            ScoringEngine,
            SniperEngine,
            TokenAnalyzer,
        )
        from sniper_bot.execution import ExitConfig, ExitManager, PositionBook
        from sniper_bot.ingestion import PumpPortalFeed

        scoring = ScoringEngine(
            ScoringConfig(
                gate_min_liquidity=self.config.min_liquidity,
                gate_max_market_cap=self.config.max_market_cap,
            )
        )
        analyzer = TokenAnalyzer(self._market_data, scoring)

        book = PositionBook()
        stats = PipelineStats()
        audit = AuditTrail(self._store)
        exit_manager = ExitManager(
            self._gateway,
            book,
            self._store,
            ExitConfig(
                take_profit_percent=self.config.take_profit_percent,
                stop_loss_percent=self.config.stop_loss_percent,
                slippage=self.config.slippage,
            ),
        )

        self._engine = SniperEngine(
            config=EngineConfig(
                auto_trading_enabled=self.config.sniper_enabled,
                buy_amount_sol=self.config.buy_amount_sol,
                slippage=self.config.slippage,
                market_data_delay_seconds=self.config.market_data_delay_seconds,
            ),
            analyzer=analyzer,
            gateway=self._gateway,
            book=book,
            exit_manager=exit_manager,
            market_data=self._market_data,
            store=self._store,
            stats=stats,
            audit=audit,
        )
        self._supervisor = PositionSupervisor(
            book, exit_manager, self._market_data, stats, audit, self._store
        )
        self._feed = PumpPortalFeed(
            observer=self._engine,
            url=self.config.websocket_url,
            subscription_capacity=self.config.subscription_capacity,
        )
        self._engine.attach_feed(self._feed)

        self._background_tasks = BackgroundTasksManager(
            supervisor=self._supervisor,
            engine=self._engine,
            config=BackgroundTaskConfig(
                position_check_interval_seconds=self.config.position_check_interval_seconds,
                status_refresh_interval_seconds=self.config.status_refresh_interval_seconds,
            ),
        )

    async def _run_loop(self) -> None:
        """Idle until shutdown, logging stats every minute."""
        while self._running:
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=60)
                break
            except asyncio.TimeoutError:
                pass

            stats = await self._engine.get_stats()
            logger.info(
                f"Stats: scanned={stats['tokens_scanned']}, "
                f"snipes={stats['snipes_executed']}, "
                f"wins={stats['wins']}, losses={stats['losses']}, "
                f"open={stats['open_positions']}"
            )

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def handle_signal(sig):
            logger.info(f"Received signal {sig}")
            self._running = False
            self._shutdown_event.set()

        try:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))
        except NotImplementedError:
            pass


def load_env_file(path: str = ".env") -> None:
    """Load environment variables from a .env file if it exists."""
    env_path = Path(path)
    if not env_path.exists():
        return

    logger.info(f"Loading environment from {env_path}")
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                value = value.strip().strip('"').strip("'")
                os.environ.setdefault(key.strip(), value)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Pump.fun Sniper Bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Score tokens but never buy automatically",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override log level",
    )
    parser.add_argument(
        "--pid-file",
        default=DEFAULT_PID_FILE,
        help=f"Single-instance lock file (default: {DEFAULT_PID_FILE})",
    )
    return parser.parse_args(argv)


async def main_async(args: argparse.Namespace) -> int:
    from sniper_bot.execution import WalletError

    config = BotConfig.from_env()
    if args.dry_run:
        config.sniper_enabled = False

    if not config.database_url:
        logger.error("DATABASE_URL environment variable is required")
        return 1

    bot = SniperBot(config)
    try:
        await bot.start()
        return 0
    except WalletError as e:
        logger.error(f"Invalid WALLET_PRIVATE_KEY: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1


def main() -> int:
    load_env_file()
    args = parse_args()

    if args.log_level:
        logging.getLogger().setLevel(getattr(logging, args.log_level))

    try:
        with singleton_lock(args.pid_file):
            try:
                return asyncio.run(main_async(args))
            except KeyboardInterrupt:
                return 0
    except SingletonBotError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())

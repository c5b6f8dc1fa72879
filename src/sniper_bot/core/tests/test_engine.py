"""
Tests for the SniperEngine.

These tests verify:
- The detect -> score -> buy chain and its audit trail
- Buy preconditions (approval, auto-trading, wallet)
- Storage failures never abort a token's pipeline
- Feed observer callbacks
- Manual controls and status reporting
"""
import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from sniper_bot.core import EngineConfig, SniperEngine
from sniper_bot.execution import ExitReason, Position
from sniper_bot.ingestion import TokenInfo, TokenSnapshot, TradeSide, TradeUpdate


class TestProcessNewToken:
    """Tests for the per-token pipeline."""

    @pytest.mark.asyncio
    async def test_approved_token_is_bought(
        self, engine, fresh_snapshot, mock_gateway, mock_store, mock_feed, book, stats, actions
    ):
        analysis = await engine.process_new_token(fresh_snapshot)

        assert analysis.approved is True
        mock_gateway.acquire.assert_awaited_once_with("mint_good", Decimal("0.1"), 15)
        assert actions(mock_store) == ["DETECTED", "APPROVED", "SNIPING", "SNIPE_SUCCESS"]

        position = book.get("mint_good")
        assert position is not None
        assert position.entry_price == Decimal("0.0005")
        assert position.entry_signature == "buy_sig"
        assert position.position_id == 42

        mock_store.tokens.update_status.assert_awaited_once_with("mint_good", "sniped")
        mock_feed.subscribe.assert_awaited_once_with("mint_good")

        snapshot = await stats.snapshot()
        assert snapshot.tokens_scanned == 1
        assert snapshot.snipes_executed == 1

    @pytest.mark.asyncio
    async def test_token_records_track_the_verdict(self, engine, fresh_snapshot, mock_store):
        await engine.process_new_token(fresh_snapshot)

        first, second = [c.args[0] for c in mock_store.tokens.upsert.call_args_list]
        assert first.status == "scanning"
        assert first.symbol == "GOOD"
        assert second.status == "excellent"
        assert second.verdict == "EXCELLENT"
        assert second.score == 86
        assert second.reject_reason is None

    @pytest.mark.asyncio
    async def test_auto_trading_off_does_not_buy(
        self, engine, fresh_snapshot, mock_gateway, mock_store, actions
    ):
        await engine.set_auto_trading(False)
        mock_store.audit.create.reset_mock()

        await engine.process_new_token(fresh_snapshot)

        mock_gateway.acquire.assert_not_called()
        assert actions(mock_store) == ["DETECTED", "APPROVED"]

    @pytest.mark.asyncio
    async def test_observer_mode_does_not_buy(self, engine, fresh_snapshot, mock_gateway):
        mock_gateway.has_signer = False

        await engine.process_new_token(fresh_snapshot)

        mock_gateway.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_token_is_not_bought(
        self, engine, fresh_snapshot, mock_market_data, mock_gateway, mock_store, actions
    ):
        mock_market_data.get_token_info.return_value = TokenInfo(
            contract_address="mint_good",
            liquidity=Decimal("200"),
            market_cap=Decimal("15000"),
            holders=100,
        )

        analysis = await engine.process_new_token(fresh_snapshot)

        assert analysis.approved is False
        mock_gateway.acquire.assert_not_called()
        assert actions(mock_store) == ["DETECTED", "REJECTED"]
        record = mock_store.tokens.upsert.call_args_list[-1].args[0]
        assert record.status == "rejected"
        assert record.reject_reason == "Liquidity below minimum threshold"

    @pytest.mark.asyncio
    async def test_failed_buy_opens_nothing(
        self, engine, fresh_snapshot, mock_gateway, mock_store, book, stats, actions
    ):
        mock_gateway.acquire.return_value = None

        await engine.process_new_token(fresh_snapshot)

        assert actions(mock_store)[-1] == "SNIPE_FAILED"
        assert len(book) == 0
        assert (await stats.snapshot()).snipes_executed == 0
        mock_store.trades.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_abort(
        self, engine, fresh_snapshot, mock_gateway, mock_store, book
    ):
        mock_store.tokens.upsert.side_effect = ConnectionError("db down")
        mock_store.positions.create.side_effect = ConnectionError("db down")

        await engine.process_new_token(fresh_snapshot)

        mock_gateway.acquire.assert_awaited_once()
        position = book.get("mint_good")
        assert position is not None
        assert position.position_id is None

    @pytest.mark.asyncio
    async def test_waits_for_market_data(
        self, analyzer, mock_gateway, book, exit_manager, fresh_snapshot
    ):
        sleep = AsyncMock()
        engine = SniperEngine(
            config=EngineConfig(market_data_delay_seconds=1.5),
            analyzer=analyzer,
            gateway=mock_gateway,
            book=book,
            exit_manager=exit_manager,
            sleep=sleep,
        )

        await engine.process_new_token(fresh_snapshot)

        sleep.assert_awaited_once_with(1.5)


class TestFeedObserver:
    """Tests for the feed callbacks."""

    @pytest.mark.asyncio
    async def test_ignores_tokens_while_stopped(self, engine, fresh_snapshot, mock_store):
        await engine.on_token_created(fresh_snapshot)

        assert engine.in_flight == 0
        mock_store.tokens.upsert.assert_not_called()

    @pytest.mark.asyncio
    async def test_spawns_pipeline_per_token(self, engine, fresh_snapshot, mock_gateway):
        await engine.start()

        await engine.on_token_created(fresh_snapshot)
        assert engine.in_flight == 1
        await asyncio.gather(*list(engine._tasks))

        mock_gateway.acquire.assert_awaited_once()
        await engine.stop()

    @pytest.mark.asyncio
    async def test_trade_updates_cached_snapshot(self, engine, fresh_snapshot):
        await engine.start()
        engine._cache_snapshot(fresh_snapshot)

        await engine.on_trade_occurred(
            TradeUpdate(
                contract_address="mint_good",
                side=TradeSide.BUY,
                market_cap_native=Decimal("55"),
                liquidity_native=Decimal("41"),
            )
        )

        assert engine.get_snapshot("mint_good").market_cap_native == Decimal("55")
        assert engine.get_snapshot("mint_good").liquidity_native == Decimal("41")
        await engine.stop()

    @pytest.mark.asyncio
    async def test_trade_for_unknown_token_is_ignored(self, engine):
        await engine.on_trade_occurred(TradeUpdate(contract_address="other", side=TradeSide.SELL))

        assert engine.get_snapshot("other") is None

    @pytest.mark.asyncio
    async def test_connection_status_is_mirrored(self, engine, mock_store):
        await engine.on_connection_status_changed(True)
        await engine.on_connection_status_changed(False)

        statuses = [c.kwargs["status"] for c in mock_store.status.update.call_args_list]
        assert statuses == ["HUNTING", "OFFLINE"]

    @pytest.mark.asyncio
    async def test_snapshot_cache_is_bounded(self, engine):
        engine.config.snapshot_cache_size = 2
        for i in range(3):
            engine._cache_snapshot(TokenSnapshot(contract_address=f"mint{i}"))

        assert engine.get_snapshot("mint0") is None
        assert engine.get_snapshot("mint2") is not None


class TestManualControls:
    """Tests for manual buy/sell and the auto-trading toggle."""

    @pytest.mark.asyncio
    async def test_acquire_now_opens_position(
        self, engine, mock_gateway, mock_store, book, actions
    ):
        signature = await engine.acquire_now("mint_x", Decimal("0.25"))

        assert signature == "buy_sig"
        mock_gateway.acquire.assert_awaited_once_with("mint_x", Decimal("0.25"), 15)
        assert book.get("mint_x").entry_price == Decimal("0.0005")
        assert actions(mock_store) == ["MANUAL_BUY"]

    @pytest.mark.asyncio
    async def test_release_now_closes_tracked_position(
        self, engine, mock_gateway, mock_store, book, actions
    ):
        book.add(
            Position(
                token_address="mint_x",
                size_native=Decimal("0.1"),
                entry_price=Decimal("1"),
                position_id=7,
            )
        )

        signature = await engine.release_now("mint_x")

        assert signature == "sell_sig"
        assert "mint_x" not in book
        mock_store.positions.close.assert_awaited_once()
        assert mock_store.positions.close.call_args.args[2] == ExitReason.MANUAL.value
        assert actions(mock_store) == ["MANUAL_SELL"]

    @pytest.mark.asyncio
    async def test_partial_release_keeps_position_open(self, engine, mock_gateway, book):
        book.add(Position(token_address="mint_x", size_native=Decimal("0.1"), entry_price=Decimal("1")))

        await engine.release_now("mint_x", Decimal("0.5"))

        mock_gateway.release.assert_awaited_once_with("mint_x", Decimal("0.5"), None)
        assert book.get("mint_x").is_open

    @pytest.mark.asyncio
    async def test_release_now_without_position(self, engine, mock_gateway, mock_store):
        await engine.release_now("mint_y")

        mock_gateway.release.assert_awaited_once_with("mint_y", Decimal("1"), 15)
        trade = mock_store.trades.create.call_args.args[0]
        assert trade.side == "sell"
        assert trade.tx_signature == "sell_sig"

    @pytest.mark.asyncio
    async def test_toggle_auto_trading(self, engine, mock_store, actions):
        enabled = await engine.toggle_auto_trading()

        assert enabled is False
        assert engine.auto_trading_enabled is False
        assert actions(mock_store) == ["SNIPER_TOGGLED"]
        mock_store.status.update.assert_awaited_with(sniper_enabled=False)

    @pytest.mark.asyncio
    async def test_analyze_now_does_not_trade(self, engine, mock_gateway, mock_store):
        analysis = await engine.analyze_now("mint_good")

        assert analysis.approved is True
        mock_gateway.acquire.assert_not_called()
        mock_store.tokens.upsert.assert_not_called()


class TestStatus:
    """Tests for stats, audit lookup and the status row."""

    @pytest.mark.asyncio
    async def test_get_stats(self, engine, fresh_snapshot):
        await engine.process_new_token(fresh_snapshot)

        stats = await engine.get_stats()

        assert stats["tokens_scanned"] == 1
        assert stats["snipes_executed"] == 1
        assert stats["open_positions"] == 1
        assert stats["auto_trading_enabled"] is True

    @pytest.mark.asyncio
    async def test_recent_audit_falls_back_to_memory(self, engine, mock_store, fresh_snapshot):
        await engine.process_new_token(fresh_snapshot)
        mock_store.audit.get_recent.side_effect = ConnectionError("db down")

        entries = await engine.recent_audit(limit=2)

        assert [e.action for e in entries] == ["SNIPE_SUCCESS", "SNIPING"]

    @pytest.mark.asyncio
    async def test_recent_audit_for_one_token(self, engine, mock_store):
        await engine.recent_audit(limit=10, token_address="mint_good")

        mock_store.audit.get_for_address.assert_awaited_once_with("mint_good", 10)

    def test_health(self, engine, mock_feed):
        mock_feed.state.value = "connected"

        health = engine.health()

        assert health["feed_connected"] is True
        assert health["feed_state"] == "connected"
        assert health["wallet_loaded"] is True
        assert health["engine_running"] is False

    @pytest.mark.asyncio
    async def test_record_startup(self, engine, mock_store):
        await engine.record_startup()

        mock_store.status.update.assert_awaited_once_with(
            status="STARTING",
            wallet_address="Wallet11111111111111111111111111111111111111",
            balance_sol=Decimal("1.5"),
            sniper_enabled=True,
        )

    @pytest.mark.asyncio
    async def test_refresh_status_pushes_counters(self, engine, mock_store, stats):
        await stats.record_scanned()
        await stats.record_exit(Decimal("100"), win=True)

        await engine.refresh_status()

        fields = mock_store.status.update.call_args.kwargs
        assert fields["tokens_scanned"] == 1
        assert fields["wins"] == 1
        assert fields["total_pnl"] == Decimal("100")
        assert fields["balance_sol"] == Decimal("1.5")

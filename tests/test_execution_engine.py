"""
Tests for the polling engine.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from src.engine.arbitrage_detector import MISSING_PRICE_DATA, ZERO_QUANTITY
from src.engine.execution_engine import ArbitrageEngine
from src.errors import FatalStartupError
from src.models import Depth, EngineState


@pytest.fixture
def engine(config, polymarket_client, probo_client, recorder):
    return ArbitrageEngine(config, polymarket_client, probo_client, recorder)


class TestStartup:

    @pytest.mark.asyncio
    async def test_initialize_connects_both_venues(self, engine, polymarket_client, probo_client):
        await engine.initialize()

        polymarket_client.connect.assert_awaited_once()
        probo_client.connect.assert_awaited_once()
        assert engine.state == EngineState.INITIALIZING

    @pytest.mark.asyncio
    async def test_missing_credentials_are_fatal_in_live_mode(
        self, make_config, polymarket_client, probo_client
    ):
        engine = ArbitrageEngine(make_config(), polymarket_client, probo_client)

        with pytest.raises(FatalStartupError, match="PROBO_AUTH_TOKEN"):
            await engine.initialize()

        assert engine.state == EngineState.FATAL
        polymarket_client.connect.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dry_run_does_not_need_credentials(self, make_config, polymarket_client, probo_client):
        engine = ArbitrageEngine(
            make_config(development={"dry_run": True}), polymarket_client, probo_client
        )

        await engine.initialize()

        polymarket_client.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_approval_succeeds(self, engine, polymarket_client, config):
        await engine.approve()

        polymarket_client.approve_allowance.assert_awaited_once_with(config.polymarket.token_id)
        assert engine.state == EngineState.APPROVING

    @pytest.mark.asyncio
    async def test_approval_retries_then_succeeds(self, engine, polymarket_client):
        polymarket_client.approve_allowance.side_effect = [RuntimeError("rpc"), True]

        await engine.approve()

        assert polymarket_client.approve_allowance.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_approval_is_fatal(self, engine, polymarket_client, probo_client, config):
        polymarket_client.approve_allowance.side_effect = RuntimeError("rpc down")

        with pytest.raises(FatalStartupError):
            await engine.start()

        assert engine.state == EngineState.FATAL
        assert polymarket_client.approve_allowance.await_count == config.execution.max_retries + 1
        polymarket_client.get_depth.assert_not_awaited()
        probo_client.create_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_approval_returning_false_counts_as_failure(self, engine, polymarket_client, config):
        polymarket_client.approve_allowance.return_value = False

        with pytest.raises(FatalStartupError):
            await engine.approve()

        assert polymarket_client.approve_allowance.await_count == config.execution.max_retries + 1


class TestCycle:

    @pytest.mark.asyncio
    async def test_viable_cycle_executes_and_records(
        self, engine, polymarket_client, probo_client, recorder, config
    ):
        outcome = await engine.run_once()

        assert outcome.has_depths
        assert outcome.opportunity.is_viable
        assert outcome.execution.fully_filled
        polymarket_client.get_depth.assert_awaited_once_with(config.polymarket.token_id)
        probo_client.get_depth.assert_awaited_once_with(config.probo.event_id)
        recorder.log_opportunity.assert_called_once_with(outcome.opportunity, executed=False)
        recorder.log_execution.assert_called_once_with(outcome.execution)

    @pytest.mark.asyncio
    async def test_non_viable_opportunity_is_recorded_but_not_executed(
        self, make_config, polymarket_client, probo_client, recorder
    ):
        config = make_config(arbitrage={"min_profit_percent": 10})
        engine = ArbitrageEngine(config, polymarket_client, probo_client, recorder)

        outcome = await engine.run_once()

        assert outcome.opportunity.found
        assert not outcome.opportunity.is_viable
        assert outcome.execution is None
        recorder.log_opportunity.assert_called_once()
        polymarket_client.create_order.assert_not_awaited()
        assert engine.metrics["opportunities_found"] == 1

    @pytest.mark.asyncio
    async def test_empty_books_are_not_executed(self, engine, polymarket_client, probo_client):
        polymarket_client.get_depth.return_value = Depth()
        probo_client.get_depth.return_value = Depth()

        outcome = await engine.run_once()

        assert not outcome.opportunity.found
        assert outcome.opportunity.reason == MISSING_PRICE_DATA
        assert outcome.execution is None

    @pytest.mark.asyncio
    async def test_recorder_failure_does_not_block_execution(
        self, engine, polymarket_client, probo_client, recorder
    ):
        recorder.log_opportunity.side_effect = OSError("disk full")

        outcome = await engine.run_once()

        assert outcome.opportunity.is_viable
        assert outcome.execution.fully_filled
        polymarket_client.create_order.assert_awaited_once()
        probo_client.create_order.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_zero_size_opportunity_is_not_executed(
        self, engine, polymarket_client, probo_client, recorder
    ):
        polymarket_client.get_depth.return_value = Depth(sell={"0.74": "0.001"})

        outcome = await engine.run_once()

        assert outcome.opportunity.found
        assert outcome.opportunity.reason == ZERO_QUANTITY
        assert outcome.execution is None
        polymarket_client.create_order.assert_not_awaited()
        probo_client.create_order.assert_not_awaited()
        recorder.log_opportunity.assert_called_once_with(outcome.opportunity, executed=False)

    @pytest.mark.asyncio
    async def test_fetch_error_skips_cycle(self, engine, polymarket_client, probo_client, recorder):
        polymarket_client.get_depth.side_effect = ConnectionError("reset")

        outcome = await engine.run_once()

        assert outcome.polymarket_depth is None
        assert outcome.opportunity is None
        probo_client.get_depth.assert_awaited_once()
        recorder.log_opportunity.assert_not_called()
        assert engine.metrics["skipped_cycles"] == 1

    @pytest.mark.asyncio
    async def test_fetch_timeout_skips_cycle(self, make_config, polymarket_client, probo_client, recorder):
        config = make_config(execution={"fetch_timeout_seconds": 0.01})
        engine = ArbitrageEngine(config, polymarket_client, probo_client, recorder)

        async def slow_depth(market_id):
            await asyncio.sleep(1)
            return Depth(sell={"2.0": "10"})

        probo_client.get_depth.side_effect = slow_depth

        outcome = await engine.run_once()

        assert outcome.polymarket_depth is not None
        assert outcome.probo_depth is None
        assert outcome.execution is None
        polymarket_client.create_order.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_polymarket_is_fetched_before_probo(self, engine, polymarket_client, probo_client, polymarket_depth, probo_depth):
        calls = []

        async def poly_depth(market_id):
            calls.append("polymarket")
            return polymarket_depth

        async def probo_depth_fetch(market_id):
            calls.append("probo")
            return probo_depth

        polymarket_client.get_depth.side_effect = poly_depth
        probo_client.get_depth.side_effect = probo_depth_fetch

        await engine.run_once()

        assert calls == ["polymarket", "probo"]


class TestPollingLoop:

    @pytest.mark.asyncio
    async def test_runs_bounded_number_of_cycles(self, engine):
        await engine.run(max_cycles=3)

        assert engine.metrics["cycles"] == 3
        assert engine.state == EngineState.STOPPED

    @pytest.mark.asyncio
    async def test_cycle_errors_do_not_stop_the_loop(self, engine, monkeypatch):
        execute = AsyncMock(side_effect=RuntimeError("executor crashed"))
        monkeypatch.setattr(engine.executor, "execute", execute)

        await engine.run(max_cycles=2)

        assert engine.metrics["cycles"] == 2
        assert execute.await_count == 2
        assert engine.state == EngineState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_interrupts_wait(self, make_config, polymarket_client, probo_client):
        config = make_config(execution={"poll_interval_ms": 60_000})
        engine = ArbitrageEngine(config, polymarket_client, probo_client)

        task = asyncio.create_task(engine.run())
        await asyncio.sleep(0.05)
        engine.stop()
        await asyncio.wait_for(task, timeout=1)

        assert engine.metrics["cycles"] == 1
        assert engine.state == EngineState.STOPPED

    @pytest.mark.asyncio
    async def test_status_logged_every_interval(self, make_config, polymarket_client, probo_client, monkeypatch):
        config = make_config(execution={"status_interval_cycles": 2})
        engine = ArbitrageEngine(config, polymarket_client, probo_client)
        status_calls = []
        monkeypatch.setattr(engine, "_log_status", lambda: status_calls.append(engine.metrics["cycles"]))

        await engine.run(max_cycles=5)

        assert status_calls == [2, 4]

    @pytest.mark.asyncio
    async def test_shutdown_disconnects(self, engine, polymarket_client, probo_client):
        await engine.shutdown()

        polymarket_client.disconnect.assert_awaited_once()
        probo_client.disconnect.assert_awaited_once()

"""
Main execution engine that drives the polling loop.
"""

import asyncio
import random
from datetime import datetime
from typing import Any, Optional

from src.config import BotConfig
from src.database import Database
from src.errors import ConfigurationError, FatalStartupError, RetryExhaustedError
from src.engine.arbitrage_detector import evaluate
from src.engine.executor import DualVenueExecutor
from src.engine.retry import retry_with_delay
from src.logger import get_logger, trade_logger
from src.models import ArbOpportunity, CycleOutcome, Depth, EngineState
from src.trading.base import BaseVenueClient
from src.trading.polymarket_client import PolymarketClient


logger = get_logger("engine")


class ArbitrageEngine:
    """
    The orchestrator for the Probo/Polymarket arbitrage bot.

    Flow:
    1. Validate configuration and connect to both venues
    2. Approve the Polymarket USDC allowance (fatal if it never succeeds)
    3. Poll Polymarket then Probo for their books
    4. Evaluate the books and execute viable opportunities
    5. Sleep for the polling interval plus jitter and repeat
    """

    def __init__(
        self,
        config: BotConfig,
        polymarket: PolymarketClient,
        probo: BaseVenueClient,
        recorder: Optional[Database] = None,
        executor: Optional[DualVenueExecutor] = None,
    ):
        self.config = config
        self.polymarket = polymarket
        self.probo = probo
        self.recorder = recorder
        self.executor = executor or DualVenueExecutor(config, polymarket, probo, recorder)

        self.state = EngineState.INITIALIZING
        self._stop_event = asyncio.Event()

        # Performance tracking
        self._start_time: Optional[datetime] = None
        self._cycle_count = 0
        self._skipped_cycles = 0
        self._opportunities_found = 0
        self._executions = 0

    async def initialize(self) -> None:
        """Validate configuration and connect to both venues."""
        self.state = EngineState.INITIALIZING
        try:
            self.config.validate_for_trading()
            await self.polymarket.connect()
            await self.probo.connect()
        except ConfigurationError as e:
            self.state = EngineState.FATAL
            logger.error("Invalid configuration", error=str(e))
            raise FatalStartupError(str(e)) from e

        mode = "DRY RUN" if self.config.development.dry_run else "LIVE TRADING"
        logger.info(
            f"🚀 Arbitrage bot initialized in {mode} mode",
            polymarket_token_id=self.config.polymarket.token_id,
            probo_event_id=self.config.probo.event_id,
            dollar_price_inr=self.config.arbitrage.dollar_price_inr,
            min_profit_percent=self.config.arbitrage.min_profit_percent,
        )

    async def approve(self) -> None:
        """Grant the Polymarket allowance, retrying like an order."""
        self.state = EngineState.APPROVING
        logger.info("Approving Polymarket allowance...")

        try:
            await retry_with_delay(
                lambda: self.polymarket.approve_allowance(self.config.polymarket.token_id),
                max_retries=self.config.execution.max_retries,
                delay_ms=self.config.execution.retry_delay_ms,
                description="Polymarket allowance approval",
                is_success=bool,
            )
        except RetryExhaustedError as e:
            self.state = EngineState.FATAL
            logger.error("Failed to approve Polymarket allowance after maximum retries")
            raise FatalStartupError(
                "Failed to approve Polymarket allowance after maximum retries"
            ) from e

        logger.info("Polymarket allowance approved successfully")

    async def start(self, max_cycles: Optional[int] = None) -> None:
        """Initialize, approve and run the polling loop."""
        await self.initialize()
        await self.approve()
        await self.run(max_cycles=max_cycles)

    def stop(self) -> None:
        """Ask the polling loop to exit after the current cycle."""
        logger.info("Stopping bot...")
        self._stop_event.set()

    @property
    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    async def shutdown(self) -> None:
        """Close venue connections and log a session summary."""
        await self.polymarket.disconnect()
        await self.probo.disconnect()
        self._log_session_summary()

    async def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Run polling cycles until stopped.

        Args:
            max_cycles: Stop after this many cycles (None runs until stop())
        """
        self.state = EngineState.RUNNING
        self._start_time = self._start_time or datetime.utcnow()
        logger.info("Bot initialized successfully, starting arbitrage monitoring...")

        cycles_run = 0
        while not self.is_stopping:
            try:
                await self.run_once()
            except Exception as e:
                logger.error("Error in arbitrage cycle", error=str(e), exc_info=True)

            cycles_run += 1
            if max_cycles is not None and cycles_run >= max_cycles:
                break

            await self._wait_for_next_cycle()

        self.state = EngineState.STOPPED

    async def _wait_for_next_cycle(self) -> None:
        """Sleep for the interval plus jitter, waking early on stop()."""
        jitter_ms = random.randint(0, self.config.execution.max_jitter_ms)
        delay = (self.config.execution.poll_interval_ms + jitter_ms) / 1000
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def run_once(self) -> CycleOutcome:
        """Fetch both books, evaluate them and execute if viable."""
        self._cycle_count += 1
        outcome = CycleOutcome(cycle=self._cycle_count)

        if self._cycle_count % self.config.execution.status_interval_cycles == 0:
            self._log_status()

        logger.debug("Fetching market depths...")
        outcome.polymarket_depth = await self._fetch_depth(
            self.polymarket, self.config.polymarket.token_id
        )

        await asyncio.sleep(self.config.execution.request_throttle_ms / 1000)

        outcome.probo_depth = await self._fetch_depth(
            self.probo, self.config.probo.event_id
        )

        if not outcome.has_depths:
            self._skipped_cycles += 1
            logger.warning("Skipped arbitrage cycle due to missing depth data")
            return outcome

        logger.debug("Analyzing arbitrage opportunities...")
        opportunity = evaluate(outcome.polymarket_depth, outcome.probo_depth, self.config)
        outcome.opportunity = opportunity

        self._record_opportunity(opportunity)

        if self._should_execute(opportunity):
            outcome.execution = await self.executor.execute(opportunity)
            self._executions += 1

        return outcome

    def _record_opportunity(self, opportunity: ArbOpportunity) -> None:
        if self.recorder is None:
            return
        try:
            self.recorder.log_opportunity(opportunity, executed=False)
        except Exception as e:
            logger.error("Failed to record opportunity", error=str(e), exc_info=True)

    def _should_execute(self, opportunity: ArbOpportunity) -> bool:
        if not opportunity.found:
            logger.info("No arbitrage opportunity found", reason=opportunity.reason)
            return False

        self._opportunities_found += 1

        if not opportunity.is_viable:
            logger.info(
                "Arbitrage opportunity found, but not executable",
                reason=opportunity.reason,
                profit_percent=str(opportunity.profit_percent),
                min_required=self.config.arbitrage.min_profit_percent,
            )
            return False

        trade_logger.log_opportunity_detected(
            profit_percent=opportunity.profit_percent,
            polymarket_price=opportunity.polymarket_price,
            probo_price=opportunity.probo_price,
            polymarket_qty=opportunity.polymarket_qty,
            probo_qty=opportunity.probo_qty,
        )
        return True

    async def _fetch_depth(self, client: BaseVenueClient, market_id: Any) -> Optional[Depth]:
        """Fetch one venue's book. Timeouts and errors yield None."""
        venue = client.venue.value
        timeout = self.config.execution.fetch_timeout_seconds
        try:
            return await asyncio.wait_for(client.get_depth(market_id), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Failed to fetch {venue} depth data", error=f"{venue} API timeout")
        except Exception as e:
            logger.warning(f"Failed to fetch {venue} depth data", error=str(e))
        return None

    def _log_status(self) -> None:
        logger.info(
            f"Bot running: completed {self._cycle_count} cycles",
            **self.metrics,
        )

    def _log_session_summary(self) -> None:
        runtime = (
            (datetime.utcnow() - self._start_time).total_seconds()
            if self._start_time else 0.0
        )
        logger.info(
            "📊 session_summary",
            runtime_seconds=f"{runtime:.0f}",
            **self.metrics,
        )

    @property
    def metrics(self) -> dict:
        """Get engine metrics."""
        return {
            "cycles": self._cycle_count,
            "skipped_cycles": self._skipped_cycles,
            "opportunities_found": self._opportunities_found,
            "executions": self._executions,
        }

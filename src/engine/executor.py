"""
Dual-venue order execution.
Places the Polymarket leg, then the Probo leg, each with its own retries.
"""

import asyncio
from decimal import Decimal
from typing import Any, Optional

from src.config import BotConfig
from src.database import Database
from src.errors import RetryExhaustedError
from src.engine.retry import retry_with_delay
from src.logger import get_logger, trade_logger
from src.models import ArbOpportunity, ExecutionResult, OrderResult, Side, Venue
from src.trading.base import BaseVenueClient


logger = get_logger("executor")

DRY_RUN_ORDER_ID = "dry-run-order-id"


class DualVenueExecutor:
    """
    Places the two offsetting orders of an arbitrage.

    The legs are independent: a Polymarket leg that fails every retry does
    not stop the Probo leg from being attempted, and nothing is rolled back
    when only one leg goes through. Such executions are recorded and
    logged as unhedged exposure.
    """

    def __init__(
        self,
        config: BotConfig,
        polymarket: BaseVenueClient,
        probo: BaseVenueClient,
        recorder: Optional[Database] = None,
    ):
        self.config = config
        self.polymarket = polymarket
        self.probo = probo
        self.recorder = recorder

        self._executions = 0
        self._fully_filled = 0
        self._partial = 0

    async def execute(self, opportunity: ArbOpportunity) -> ExecutionResult:
        """
        Execute a viable opportunity on both venues.

        Args:
            opportunity: A viable opportunity from the detector

        Returns:
            ExecutionResult with the final result of each leg
        """
        polymarket_order = await self._place_leg(
            client=self.polymarket,
            market_id=self.config.polymarket.token_id,
            size=opportunity.polymarket_qty,
            price=opportunity.polymarket_price,
        )

        # Respect venue rate limits between the two order sequences
        await asyncio.sleep(self.config.execution.request_throttle_ms / 1000)

        probo_order = await self._place_leg(
            client=self.probo,
            market_id=self.config.probo.event_id,
            size=opportunity.probo_qty,
            price=opportunity.probo_price,
        )

        result = ExecutionResult(
            polymarket_order=polymarket_order,
            probo_order=probo_order,
            opportunity=opportunity,
        )

        self._executions += 1
        if result.fully_filled:
            self._fully_filled += 1
        elif result.is_partial:
            self._partial += 1
            filled, failed = (
                (Venue.POLYMARKET, Venue.PROBO)
                if polymarket_order.success
                else (Venue.PROBO, Venue.POLYMARKET)
            )
            trade_logger.log_unhedged_exposure(filled.value, failed.value)

        if self.recorder is not None:
            try:
                self.recorder.log_execution(result)
            except Exception as e:
                logger.error("Failed to record execution", error=str(e), exc_info=True)

        trade_logger.log_execution_completed(
            polymarket_success=polymarket_order.success,
            probo_success=probo_order.success,
            polymarket_order_id=polymarket_order.order_id,
            probo_order_id=probo_order.order_id,
        )

        return result

    async def _place_leg(
        self,
        client: BaseVenueClient,
        market_id: Any,
        size: Decimal,
        price: Decimal,
    ) -> OrderResult:
        """Place one leg with bounded retries. Never raises."""
        venue = client.venue.value

        if self.config.development.dry_run:
            logger.info(
                f"DRY RUN: Would create buy order on {venue}",
                size=str(size),
                price=str(price),
            )
            return OrderResult(
                success=True,
                order_id=DRY_RUN_ORDER_ID,
                exchange_response={"dry_run": True},
            )

        attempts = 0

        async def attempt() -> OrderResult:
            nonlocal attempts
            attempts += 1
            return await client.create_order(market_id, Side.BUY, size, price)

        try:
            result = await retry_with_delay(
                attempt,
                max_retries=self.config.execution.max_retries,
                delay_ms=self.config.execution.retry_delay_ms,
                description=f"{venue} order",
                is_success=lambda r: r.success,
            )
        except RetryExhaustedError as e:
            if e.last_result is not None:
                result = e.last_result
            elif e.last_error is not None:
                result = OrderResult.failed(str(e.last_error))
            else:
                result = OrderResult.failed("Order not attempted")

            trade_logger.log_order_failed(
                venue=venue,
                market_id=str(market_id),
                error=result.error,
                attempts=attempts,
            )
            return result

        trade_logger.log_order_submitted(
            venue=venue,
            order_id=result.order_id,
            market_id=str(market_id),
            side=Side.BUY.value,
            size=size,
            price=price,
            attempts=attempts,
        )
        return result

    @property
    def metrics(self) -> dict:
        """Get executor metrics."""
        return {
            "executions": self._executions,
            "fully_filled": self._fully_filled,
            "partial": self._partial,
        }

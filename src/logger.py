"""
Structured logging configuration for the Probo/Polymarket Arbitrage Bot.
Uses structlog for rich, structured logging output.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

from src.config import BotConfig, get_config


# Rich console for pretty output
console = Console()


def add_timestamp(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add ISO timestamp to log events."""
    event_dict["timestamp"] = datetime.utcnow().isoformat()
    return event_dict


def add_component(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Ensure component is present in log events."""
    if "component" not in event_dict:
        event_dict["component"] = "main"
    return event_dict


def setup_logging(config: Optional[BotConfig] = None) -> None:
    """Configure structured logging for the application."""
    config = config or get_config()
    log_level = getattr(logging, config.monitoring.log_level.upper(), logging.INFO)

    # Configure standard library logging
    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                show_time=True,
                show_path=False,
            )
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)

    # Configure structlog
    processors = [
        structlog.stdlib.filter_by_level,
        add_timestamp,
        add_component,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.development.debug_mode:
        # Pretty console output for development
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        # JSON output for production
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance bound to a specific component."""
    return structlog.get_logger().bind(component=component)


class TradeLogger:
    """Specialized logger for arbitrage activity."""

    def __init__(self):
        self.logger = get_logger("trades")

    def log_opportunity_detected(
        self,
        profit_percent: Any,
        polymarket_price: Any,
        probo_price: Any,
        polymarket_qty: Any,
        probo_qty: Any,
    ) -> None:
        """Log detection of a viable arbitrage opportunity."""
        self.logger.info(
            "🎯 opportunity_detected",
            profit_percent=f"{float(profit_percent):.2f}%",
            polymarket_price=str(polymarket_price),
            probo_price=str(probo_price),
            polymarket_qty=str(polymarket_qty),
            probo_qty=str(probo_qty),
        )

    def log_order_submitted(
        self,
        venue: str,
        order_id: Optional[str],
        market_id: str,
        side: str,
        size: Any,
        price: Any,
        attempts: int,
    ) -> None:
        """Log a successful order submission."""
        self.logger.info(
            "order_submitted",
            venue=venue,
            order_id=order_id,
            market_id=market_id,
            side=side,
            size=str(size),
            price=str(price),
            attempts=attempts,
        )

    def log_order_failed(
        self,
        venue: str,
        market_id: str,
        error: Optional[str],
        attempts: int,
    ) -> None:
        """Log an order leg that failed after all retries."""
        self.logger.error(
            "order_failed",
            venue=venue,
            market_id=market_id,
            error=error,
            attempts=attempts,
        )

    def log_execution_completed(
        self,
        polymarket_success: bool,
        probo_success: bool,
        polymarket_order_id: Optional[str],
        probo_order_id: Optional[str],
    ) -> None:
        """Log the outcome of a paired execution."""
        emoji = "🟢" if polymarket_success and probo_success else "🔴"
        self.logger.info(
            f"{emoji} execution_completed",
            polymarket_success=polymarket_success,
            probo_success=probo_success,
            polymarket_order_id=polymarket_order_id,
            probo_order_id=probo_order_id,
        )

    def log_unhedged_exposure(self, filled_venue: str, failed_venue: str) -> None:
        """Log a paired execution where only one leg was placed."""
        self.logger.warning(
            "⚠️ unhedged_exposure",
            filled_venue=filled_venue,
            failed_venue=failed_venue,
        )


# Global logger instance
trade_logger = TradeLogger()

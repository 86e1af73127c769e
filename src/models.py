"""
Data models for the Probo/Polymarket Arbitrage Bot.
Defines all core data structures used throughout the system.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any
from decimal import Decimal


ZERO = Decimal("0")


class Venue(Enum):
    """Supported trading venues."""
    POLYMARKET = "polymarket"
    PROBO = "probo"


class Side(Enum):
    """Trading side."""
    BUY = "buy"
    SELL = "sell"


class EngineState(Enum):
    """Lifecycle state of the polling engine."""
    INITIALIZING = "initializing"
    APPROVING = "approving"
    RUNNING = "running"
    STOPPED = "stopped"
    FATAL = "fatal"


@dataclass
class Depth:
    """
    Order book snapshot normalized across venues.

    Both sides map a price level (decimal string) to the available
    quantity (decimal string). Keys carry no ordering.
    """
    buy: Dict[str, str] = field(default_factory=dict)
    sell: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ArbOpportunity:
    """Result of one evaluation of the two venues' books."""
    found: bool
    is_viable: bool
    profit_percent: Decimal = ZERO
    polymarket_price: Decimal = ZERO
    probo_price: Decimal = ZERO
    polymarket_qty: Decimal = ZERO
    probo_qty: Decimal = ZERO
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "is_viable": self.is_viable,
            "profit_percent": str(self.profit_percent),
            "polymarket_price": str(self.polymarket_price),
            "probo_price": str(self.probo_price),
            "polymarket_qty": str(self.polymarket_qty),
            "probo_qty": str(self.probo_qty),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class OrderResult:
    """Outcome of a single order attempt on one venue."""
    success: bool
    order_id: Optional[str] = None
    error: Optional[str] = None

    # Raw venue payload, kept for audit only
    exchange_response: Optional[Any] = None

    @classmethod
    def failed(cls, error: str, exchange_response: Optional[Any] = None) -> "OrderResult":
        return cls(success=False, error=error, exchange_response=exchange_response)


@dataclass(frozen=True)
class ExecutionResult:
    """Paired order outcomes for one executed opportunity."""
    polymarket_order: OrderResult
    probo_order: OrderResult
    opportunity: ArbOpportunity
    timestamp: datetime = field(default_factory=datetime.utcnow)

    @property
    def fully_filled(self) -> bool:
        """Both legs were placed successfully."""
        return self.polymarket_order.success and self.probo_order.success

    @property
    def is_partial(self) -> bool:
        """Exactly one leg succeeded, leaving the position unhedged."""
        return self.polymarket_order.success != self.probo_order.success


@dataclass
class CycleOutcome:
    """What happened during one polling cycle."""
    cycle: int
    polymarket_depth: Optional[Depth] = None
    probo_depth: Optional[Depth] = None
    opportunity: Optional[ArbOpportunity] = None
    execution: Optional[ExecutionResult] = None
    error: Optional[str] = None

    @property
    def has_depths(self) -> bool:
        return self.polymarket_depth is not None and self.probo_depth is not None

"""
Base class for venue clients.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict

from src.config import BotConfig
from src.models import Depth, OrderResult, Side, Venue


class BaseVenueClient(ABC):
    """Abstract base class for the price-fetch and order-placement adapters."""

    venue: Venue

    def __init__(self, config: BotConfig):
        self.config = config
        self._is_connected = False

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @abstractmethod
    async def connect(self) -> None:
        """Open the HTTP session."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the HTTP session."""
        pass

    @abstractmethod
    async def get_depth(self, market_id: Any) -> Depth:
        """
        Fetch the current book for a market.

        Raises:
            VenueError or httpx.HTTPError when the book cannot be read
        """
        pass

    @abstractmethod
    async def create_order(
        self,
        market_id: Any,
        side: Side,
        size: Decimal,
        price: Decimal,
    ) -> OrderResult:
        """
        Place a limit order.

        API failures are reported as an unsuccessful OrderResult.
        """
        pass

    @abstractmethod
    async def get_order_status(self, order_id: str) -> Dict[str, Any]:
        """Look up an order previously placed on this venue."""
        pass

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

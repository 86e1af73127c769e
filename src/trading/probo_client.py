"""
Probo API client.
Reads best available prices and places limit orders on an event.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from src.config import BotConfig
from src.errors import VenueError
from src.logger import get_logger
from src.models import Depth, OrderResult, Side, Venue
from src.trading.base import BaseVenueClient


logger = get_logger("probo")


class ProboClient(BaseVenueClient):
    """
    Async client for the Probo trading API.

    Probo prices are quoted in rupees between 0 and 10; a contract pays
    10 INR if the outcome happens.
    """

    venue = Venue.PROBO

    DEPTH_TIMEOUT = 10.0
    ORDER_TIMEOUT = 15.0
    STATUS_TIMEOUT = 5.0

    # Orders auto-cancel after a minute; exit triggers stay disabled
    ORDER_ADVANCED_OPTIONS = {
        "auto_cancel": {"minutes": 1, "disable_trigger": True},
        "book_profit": {"price": 8, "quantity": 5, "disable_trigger": True},
        "stop_loss": {"price": 6.5, "quantity": 5, "disable_trigger": True},
    }

    def __init__(self, config: BotConfig):
        super().__init__(config)
        self._auth_token = config.probo.auth_token
        self._http: Optional[httpx.AsyncClient] = None

    def _headers(self) -> Dict[str, str]:
        return {
            "accept": "*/*",
            "appid": "in.probo.pro",
            "authorization": f"Bearer {self._auth_token}",
            "content-type": "application/json",
            "origin": "https://probo.in",
            "referer": "https://probo.in/",
            "x-device-os": "ANDROID",
            "x-version-name": "10",
        }

    async def connect(self) -> None:
        """Initialize the HTTP client."""
        self._http = httpx.AsyncClient(
            base_url=self.config.probo.api_url,
            headers=self._headers(),
            timeout=self.ORDER_TIMEOUT,
        )
        self._is_connected = True
        logger.info("Connected to Probo", event_id=self.config.probo.event_id)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._http:
            await self._http.aclose()
        self._is_connected = False
        logger.info("Disconnected from Probo")

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise VenueError(self.venue.value, "client is not connected")
        return self._http

    async def get_depth(self, event_id: int) -> Depth:
        """
        Get best available prices for an event.

        Args:
            event_id: Probo event ID

        Returns:
            Depth built from the event's available quantities
        """
        logger.debug(f"Fetching Probo depth for event {event_id}")

        response = await self._client().get(
            "/api/v3/tms/trade/bestAvailablePrice",
            params={"eventId": event_id},
            timeout=self.DEPTH_TIMEOUT,
        )
        response.raise_for_status()
        payload = response.json()

        data = payload.get("data") if isinstance(payload, dict) else None
        available = data.get("available_qty") if isinstance(data, dict) else None
        if not available:
            raise VenueError(self.venue.value, "Invalid response format from Probo API")

        depth = Depth(
            buy={str(price): str(qty) for price, qty in (available.get("buy") or {}).items()},
            sell={str(price): str(qty) for price, qty in (available.get("sell") or {}).items()},
        )

        logger.debug(
            "Probo depth data retrieved",
            buy_levels=len(depth.buy),
            sell_levels=len(depth.sell),
        )
        return depth

    async def create_order(
        self,
        event_id: int,
        side: Side,
        size: Decimal,
        price: Decimal,
    ) -> OrderResult:
        """
        Place a limit order on Probo.

        Args:
            event_id: Probo event ID
            side: BUY or SELL
            size: Number of contracts
            price: Limit price in rupees

        Returns:
            OrderResult, unsuccessful if Probo rejected the order
        """
        order_data = {
            "event_id": event_id,
            "offer_type": side.value,
            "order_type": "LO",
            "l1_order_quantity": float(size),
            "l1_expected_price": float(price),
            "advanced_options": self.ORDER_ADVANCED_OPTIONS,
        }

        logger.info(
            f"Creating {side.value} order on Probo",
            size=str(size),
            price=str(price),
        )

        try:
            response = await self._client().post("/api/v1/oms/order/initiate", json=order_data)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                "Failed to create Probo order",
                error=str(e),
                event_id=event_id,
                size=str(size),
                price=str(price),
            )
            exchange_response = None
            if isinstance(e, httpx.HTTPStatusError):
                exchange_response = e.response.text
            return OrderResult.failed(str(e), exchange_response)

        if not data:
            return OrderResult.failed("Empty response received from Probo")

        errors = data.get("errors") if isinstance(data, dict) else None
        if errors:
            message = errors[0].get("message") if isinstance(errors[0], dict) else str(errors[0])
            logger.error("Probo rejected order", error=message)
            return OrderResult.failed(f"Probo API error: {message}", data)

        order_id = (data.get("data") or {}).get("order_id") if isinstance(data, dict) else None
        logger.info("Probo order created", order_id=order_id)

        return OrderResult(
            success=True,
            order_id=str(order_id) if order_id is not None else "unknown-order-id",
            exchange_response=data,
        )

    async def get_order_status(self, order_id: str) -> Dict[str, Any]:
        """Get the status of an order."""
        response = await self._client().get(
            f"/api/v1/oms/order/{order_id}",
            timeout=self.STATUS_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
        if not data:
            raise VenueError(self.venue.value, "Empty response received from Probo")
        return data

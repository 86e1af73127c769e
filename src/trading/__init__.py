"""
Venue clients for Polymarket and Probo.
"""

from src.trading.base import BaseVenueClient
from src.trading.polymarket_client import PolymarketClient
from src.trading.probo_client import ProboClient

__all__ = [
    "BaseVenueClient",
    "PolymarketClient",
    "ProboClient",
]

"""
Pytest configuration and shared fixtures.
"""

import os
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set test environment
os.environ["DRY_RUN"] = "false"
os.environ["DEBUG_MODE"] = "true"
os.environ["DB_PATH"] = "./test_data/arb_history.db"
for _var in (
    "PRIVATE_KEY",
    "POLYMARKET_API_KEY",
    "POLYMARKET_API_SECRET",
    "POLYMARKET_PASS_PHRASE",
    "PROBO_AUTH_TOKEN",
    "EXPECTED_ARB_PERCENT_MIN",
    "DOLLAR_PRICE_INR",
    "MAX_RETRIES",
):
    os.environ.pop(_var, None)

from src.config import BotConfig
from src.database import Database
from src.models import Depth, OrderResult, Venue


FAST_EXECUTION = {
    "retry_delay_ms": 0,
    "request_throttle_ms": 0,
    "poll_interval_ms": 0,
    "max_jitter_ms": 0,
}

LIVE_CREDENTIALS = {
    "polymarket": {
        "private_key": "0x" + "1" * 64,
        "api_key": "test-key",
        "api_secret": "dGVzdC1zZWNyZXQ=",
        "api_passphrase": "test-pass",
    },
    "probo": {"auth_token": "test-token"},
}


@pytest.fixture
def make_config():
    """Build a config with zero delays, applying per-section overrides."""

    def _make(**overrides):
        sections = {"execution": dict(FAST_EXECUTION)}
        for section, values in overrides.items():
            sections.setdefault(section, {}).update(values)
        return BotConfig(**sections)

    return _make


@pytest.fixture
def config(make_config):
    """Live-mode config with a 5% threshold and 3 retries."""
    return make_config(**LIVE_CREDENTIALS)


@pytest.fixture
def polymarket_depth():
    return Depth(buy={"0.7": "100"}, sell={"0.74": "100"})


@pytest.fixture
def probo_depth():
    return Depth(buy={"1.8": "100"}, sell={"2.0": "100000"})


def _venue_client(venue: Venue, order_id: str) -> AsyncMock:
    client = AsyncMock()
    client.venue = venue
    client.create_order.return_value = OrderResult(success=True, order_id=order_id)
    client.approve_allowance.return_value = True
    return client


@pytest.fixture
def polymarket_client(polymarket_depth):
    client = _venue_client(Venue.POLYMARKET, "poly-order-1")
    client.get_depth.return_value = polymarket_depth
    return client


@pytest.fixture
def probo_client(probo_depth):
    client = _venue_client(Venue.PROBO, "probo-order-1")
    client.get_depth.return_value = probo_depth
    return client


@pytest.fixture
def recorder():
    return MagicMock(spec=Database)


@pytest.fixture
def database(tmp_path):
    """A real history database in a temporary directory."""
    return Database(tmp_path / "history.db")

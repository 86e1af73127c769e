"""
Exception hierarchy for the arbitrage bot.
"""

from typing import Any, Optional


class ArbBotError(Exception):
    """Base class for all bot errors."""
    pass


class ConfigurationError(ArbBotError):
    """Configuration is missing or invalid."""
    pass


class FatalStartupError(ArbBotError):
    """The bot cannot start trading. The process must exit."""
    pass


class VenueError(ArbBotError):
    """A venue returned an unusable response."""

    def __init__(self, venue: str, message: str):
        super().__init__(f"{venue}: {message}")
        self.venue = venue
        self.message = message


class RetryExhaustedError(ArbBotError):
    """An operation failed on every allowed attempt."""

    def __init__(
        self,
        description: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
        last_result: Any = None,
    ):
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"{description} failed after {attempts} attempts{detail}")
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        self.last_result = last_result

"""
Core arbitrage detection and execution engine.
"""

from src.engine.arbitrage_detector import evaluate
from src.engine.executor import DualVenueExecutor
from src.engine.execution_engine import ArbitrageEngine

__all__ = [
    "evaluate",
    "DualVenueExecutor",
    "ArbitrageEngine",
]

"""
Probo / Polymarket cross-venue arbitrage bot.
"""

__version__ = "1.0.0"

"""
Core arbitrage detection logic.
Identifies when buying both sides of the same outcome across Polymarket
and Probo costs less than the guaranteed payout.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Dict, Optional, Tuple

from src.config import BotConfig
from src.models import ArbOpportunity, Depth, ZERO


# Probo contracts settle at 10 INR; Polymarket prices are scaled onto the same range
PAYOUT = Decimal("10")
POLYMARKET_PRICE_SCALE = Decimal("10")

# Smallest order size increment accepted by both venues
SIZE_STEP = Decimal("0.01")

MISSING_PRICE_DATA = "Missing price data from one or both exchanges"
NO_ARBITRAGE = "Combined price exceeds payout, no arbitrage possible"
BELOW_THRESHOLD = "Profit below minimum threshold"
ZERO_QUANTITY = "Matched quantity is zero"


def _positive_levels(levels: Dict[str, str]) -> Dict[Decimal, Decimal]:
    """Parse a side of the book, dropping levels with no quantity."""
    parsed = {}
    for price, qty in levels.items():
        quantity = Decimal(str(qty))
        if quantity > 0:
            parsed[Decimal(str(price))] = quantity
    return parsed


def best_ask_level(depth: Depth) -> Optional[Tuple[Decimal, Decimal]]:
    """Lowest ask price with positive quantity, and that quantity."""
    levels = _positive_levels(depth.sell)
    if not levels:
        return None
    price = sorted(levels)[0]
    return price, levels[price]


def find_lowest_ask(depth: Depth) -> Optional[Decimal]:
    level = best_ask_level(depth)
    return level[0] if level else None


def find_highest_bid(depth: Depth) -> Optional[Decimal]:
    levels = _positive_levels(depth.buy)
    if not levels:
        return None
    return sorted(levels, reverse=True)[0]


def match_quantities(
    polymarket_qty: Decimal,
    probo_qty: Decimal,
    dollar_price_inr: Decimal,
) -> Tuple[Decimal, Decimal]:
    """
    Size both legs so they hedge each other.

    One Polymarket share pays 1 USD, one Probo contract pays 10 INR, so a
    Polymarket share is covered by ``dollar_price_inr / 10`` Probo contracts.
    The leg with less depth is taken in full and the other leg is scaled
    down to match it. Both sizes are then rounded down to ``SIZE_STEP``.
    """
    ratio = dollar_price_inr / POLYMARKET_PRICE_SCALE
    if polymarket_qty * ratio <= probo_qty:
        poly_qty, probo_matched = polymarket_qty, polymarket_qty * ratio
    else:
        poly_qty, probo_matched = probo_qty / ratio, probo_qty
    return _to_size_step(poly_qty), _to_size_step(probo_matched)


def _to_size_step(qty: Decimal) -> Decimal:
    return qty.quantize(SIZE_STEP, rounding=ROUND_DOWN)


def evaluate(
    polymarket_depth: Depth,
    probo_depth: Depth,
    config: BotConfig,
) -> ArbOpportunity:
    """
    Evaluate the two books for a cross-venue arbitrage.

    Pure function of its inputs. Never raises: malformed books produce an
    opportunity with ``found=False`` and the cause in ``reason``.

    ``is_viable`` normally means ``profit_percent >= min_profit_percent``.
    The one exception is a profitable book whose matched size rounds down
    to zero on either leg: it is returned with ``is_viable=False`` and
    ``reason=ZERO_QUANTITY`` so no empty order is ever placed.

    Args:
        polymarket_depth: Polymarket book, prices in the unit interval
        probo_depth: Probo book, prices on the 0-10 INR scale
        config: Bot configuration (conversion rate and profit threshold)

    Returns:
        ArbOpportunity describing prices, profit and matched sizes
    """
    try:
        poly_level = best_ask_level(polymarket_depth)
        probo_level = best_ask_level(probo_depth)

        if poly_level is None or probo_level is None:
            return ArbOpportunity(found=False, is_viable=False, reason=MISSING_PRICE_DATA)

        poly_price, poly_available = poly_level
        probo_price, probo_available = probo_level

        combined = poly_price * POLYMARKET_PRICE_SCALE + probo_price
        if combined >= PAYOUT:
            return ArbOpportunity(
                found=False,
                is_viable=False,
                polymarket_price=poly_price,
                probo_price=probo_price,
                reason=NO_ARBITRAGE,
            )

        profit_percent = (PAYOUT - combined) * 10
        min_profit = Decimal(str(config.arbitrage.min_profit_percent))
        is_viable = profit_percent >= min_profit

        poly_qty, probo_qty = match_quantities(
            poly_available,
            probo_available,
            Decimal(str(config.arbitrage.dollar_price_inr)),
        )

        reason = None if is_viable else BELOW_THRESHOLD
        if is_viable and (poly_qty <= 0 or probo_qty <= 0):
            is_viable = False
            reason = ZERO_QUANTITY

        return ArbOpportunity(
            found=True,
            is_viable=is_viable,
            profit_percent=profit_percent,
            polymarket_price=poly_price,
            probo_price=probo_price,
            polymarket_qty=poly_qty,
            probo_qty=probo_qty,
            reason=reason,
        )
    except (InvalidOperation, AttributeError, TypeError, ValueError, ZeroDivisionError) as e:
        return ArbOpportunity(
            found=False,
            is_viable=False,
            profit_percent=ZERO,
            reason=f"Error: {e}",
        )

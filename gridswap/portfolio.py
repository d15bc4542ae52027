"""
Portfolio valuation and per-level buy sizing.

Balances and fills travel as raw integers in minimal on-chain units; they are
converted to float asset units only here, where they meet prices.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from .exceptions import InsufficientCapital
from .grid import GridLevelSet

logger = logging.getLogger(__name__)


def to_units(raw: int, decimals: int) -> float:
    """Raw minimal units -> asset units"""
    return raw / (10 ** decimals)


def to_raw(units: float, decimals: int) -> int:
    """Asset units -> raw minimal units (floored)"""
    return int(units * (10 ** decimals))


@dataclass
class PortfolioSnapshot:
    """Point-in-time valuation, in quote-asset units"""
    price: float
    quote_balance: float
    base_balance: float
    invested_in_quote: float
    total_value_in_quote: float
    reserve: float
    free_capital_in_quote: float
    remaining_empty_levels: int

    def to_dict(self) -> Dict:
        return asdict(self)


def value(
    price: float,
    quote_balance: float,
    base_balance: float,
    levels: GridLevelSet,
    reserve: float,
    base_decimals: int,
) -> PortfolioSnapshot:
    """
    Value the wallet against the open grid positions.

    Args:
        price: Current price, quote per base
        quote_balance: Wallet quote balance in asset units
        base_balance: Wallet base balance in asset units
        levels: Current ladder
        reserve: Quote amount never available for buys
        base_decimals: Decimals of the base asset, for converting filled amounts

    Returns:
        PortfolioSnapshot
    """
    invested = sum(
        to_units(level.filled_amount, base_decimals) * price
        for _, level in levels.filled()
    )
    total = quote_balance + base_balance * price
    return PortfolioSnapshot(
        price=price,
        quote_balance=quote_balance,
        base_balance=base_balance,
        invested_in_quote=invested,
        total_value_in_quote=total,
        reserve=reserve,
        free_capital_in_quote=total - invested - reserve,
        remaining_empty_levels=levels.empty_count,
    )


def per_level_size(snapshot: PortfolioSnapshot, min_order: float) -> Optional[float]:
    """
    Equal-weight share of free capital for each still-empty level.

    Returns:
        Quote amount to spend on the next buy, or None when no buy should be
        proposed (no empty levels, or the share does not exceed min_order)
    """
    if snapshot.remaining_empty_levels <= 0:
        return None
    size = snapshot.free_capital_in_quote / snapshot.remaining_empty_levels
    if size <= min_order:
        logger.debug(f"Per-level size {size:.9f} not above minimum order {min_order}")
        return None
    return size


def buy_size(snapshot: PortfolioSnapshot, min_order: float) -> float:
    """
    Quote amount for the next buy.

    Raises:
        InsufficientCapital: No empty level is left, or the equal-weight share
            of free capital does not exceed min_order
    """
    size = per_level_size(snapshot, min_order)
    if size is None:
        raise InsufficientCapital(
            f"free capital {snapshot.free_capital_in_quote:.6f} over "
            f"{snapshot.remaining_empty_levels} empty levels is not above minimum order {min_order}"
        )
    return size

"""
Price sampling and swap quoting against the aggregator.
"""

import logging
from dataclasses import dataclass

from .exceptions import NoPriceAvailable
from .jupiter import JupiterClient, Quote
from .portfolio import to_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetPair:
    """The traded pair: quote is spent on buys, base is accumulated"""
    quote_mint: str
    base_mint: str
    quote_decimals: int
    base_decimals: int

    def price(self, quote_raw: int, base_raw: int) -> float:
        """Quote per base for a pair of raw amounts"""
        return to_units(quote_raw, self.quote_decimals) / to_units(base_raw, self.base_decimals)


class PriceOracle:
    """
    Spot price and quotes for one asset pair.

    The spot price is sampled with a small fixed probe amount: large enough that
    the output does not round to zero, small enough not to move the quote.
    """

    def __init__(self, jupiter: JupiterClient, pair: AssetPair, probe_amount: int, slippage_bps: int = 0):
        self.jupiter = jupiter
        self.pair = pair
        self.probe_amount = probe_amount
        self.slippage_bps = slippage_bps

    async def quote(self, input_mint: str, output_mint: str, amount: int) -> Quote:
        return await self.jupiter.quote(input_mint, output_mint, amount, self.slippage_bps)

    async def buy_quote(self, quote_amount: int) -> Quote:
        """Quote spending ``quote_amount`` raw quote units on the base asset"""
        return await self.quote(self.pair.quote_mint, self.pair.base_mint, quote_amount)

    async def sell_quote(self, base_amount: int) -> Quote:
        """Quote selling ``base_amount`` raw base units for the quote asset"""
        return await self.quote(self.pair.base_mint, self.pair.quote_mint, base_amount)

    async def sample(self) -> float:
        """
        Current price in quote per base.

        Raises:
            NoPriceAvailable: The aggregator has no route for the probe
        """
        quote = await self.buy_quote(self.probe_amount)
        if not quote.has_route:
            raise NoPriceAvailable(f"No route for {self.pair.quote_mint} -> {self.pair.base_mint}")
        return self.pair.price(self.probe_amount, quote.out_amount)

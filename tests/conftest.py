"""Shared fixtures and in-memory collaborators for gridswap tests."""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from gridswap.config import GridConfig
from gridswap.exceptions import NoPriceAvailable
from gridswap.gateway import ExecutionResult
from gridswap.jupiter import Quote
from gridswap.oracle import AssetPair
from gridswap.portfolio import to_units

QUOTE_MINT = "So11111111111111111111111111111111111111112"
BASE_MINT = "PHtoken1111111111111111111111111111111111111"

PAIR = AssetPair(QUOTE_MINT, BASE_MINT, quote_decimals=9, base_decimals=6)


def make_config(tmp_path, **overrides) -> GridConfig:
    """GridConfig for the 0.001 .. 0.002 ladder in 2 steps"""
    values = dict(
        rpc_url="http://rpc.test",
        keypair_path=str(tmp_path / "id.json"),
        input_mint=QUOTE_MINT,
        output_mint=BASE_MINT,
        grid_lower=0.001,
        grid_upper=0.002,
        grid_steps=2,
        sell_threshold=0.0016,
        fee_reserve_per_level=0.0,
        min_order=0.0,
        max_priority_fee=1_000_000,
        request_timeout=1.0,
        execution_timeout=1.0,
        state_path=str(tmp_path / "grid_state.json"),
        trade_log_path=str(tmp_path / "grid_trade_log.csv"),
    )
    values.update(overrides)
    return GridConfig(**values)


class FakeWallet:
    """Raw balances held in memory"""

    def __init__(self, quote_raw: int = 0, base_raw: int = 0):
        self.quote_raw = quote_raw
        self.base_raw = base_raw

    async def quote_balance_raw(self) -> int:
        return self.quote_raw

    async def base_balance_raw(self) -> int:
        return self.base_raw


class FakeOracle:
    """
    Replays a scripted price series; quotes are filled at the latest price.

    A ``None`` entry in ``prices`` means "no route" for that tick.
    """

    def __init__(self, prices: List[Optional[float]], pair: AssetPair = PAIR):
        self.pair = pair
        self.prices = list(prices)
        self.current: Optional[float] = None
        self.sell_price: Optional[float] = None
        self.sell_route = True
        self.samples = 0

    async def sample(self) -> float:
        self.samples += 1
        if not self.prices:
            raise NoPriceAvailable("price series exhausted")
        price = self.prices.pop(0)
        if price is None:
            raise NoPriceAvailable("no route")
        self.current = price
        return price

    async def buy_quote(self, quote_amount: int) -> Quote:
        base_units = to_units(quote_amount, self.pair.quote_decimals) / self.current
        out = int(base_units * 10 ** self.pair.base_decimals)
        return Quote(self.pair.quote_mint, self.pair.base_mint, quote_amount, out, has_route=True)

    async def sell_quote(self, base_amount: int) -> Quote:
        price = self.sell_price if self.sell_price is not None else self.current
        quote_units = to_units(base_amount, self.pair.base_decimals) * price
        out = int(round(quote_units * 10 ** self.pair.quote_decimals))
        return Quote(self.pair.base_mint, self.pair.quote_mint, base_amount, out, has_route=self.sell_route)


class FakeGateway:
    """Settles swaps against a FakeWallet"""

    def __init__(self, wallet: FakeWallet, pair: AssetPair = PAIR):
        self.wallet = wallet
        self.pair = pair
        self.calls: List[Quote] = []
        self.priority_fee = 0
        self.buy_priority_fee: Optional[int] = None  # overrides priority_fee for buys
        self.confirmed = True
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def execute(self, quote: Quote, max_priority_fee: int) -> ExecutionResult:
        self.calls.append(quote)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        is_buy = quote.input_mint == self.pair.quote_mint
        fee = self.priority_fee
        if is_buy and self.buy_priority_fee is not None:
            fee = self.buy_priority_fee
        if not self.confirmed or fee > max_priority_fee:
            return ExecutionResult(confirmed=False, filled_amount=0, priority_fee=fee)

        if is_buy:
            self.wallet.quote_raw -= quote.in_amount
            self.wallet.base_raw += quote.out_amount
        else:
            self.wallet.base_raw -= quote.in_amount
            self.wallet.quote_raw += quote.out_amount
        return ExecutionResult(
            confirmed=True,
            filled_amount=quote.out_amount,
            priority_fee=fee,
            signature=f"sig{len(self.calls)}",
        )


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path)


@pytest.fixture
def wallet():
    return FakeWallet(quote_raw=1_000_000_000)  # 1 SOL

"""
Grid decision engine.

One call to :meth:`GridEngine.tick` samples the price, values the portfolio and
runs the trading rules:

1. price >= upper bound with inventory held -> bulk sell the whole ladder, and
   nothing else this tick
2. otherwise, first level crossed downward (ascending) -> buy
3. then, whatever the buy did, first filled level (ascending, top excluded)
   whose sell quote clears the sell threshold -> sell

The ladder only changes after a confirmed execution, and every change is
persisted before the tick returns. State between ticks lives in an explicit
:class:`TickContext` rather than in the engine.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Optional, TypeVar

from .config import GridConfig
from .exceptions import (
    ExecutionFailed,
    FeeTooHigh,
    GridSwapError,
    InsufficientCapital,
    NoPriceAvailable,
)
from .gateway import ExecutionResult
from .grid import GridLevelSet
from .jupiter import Quote
from .notifier import Notifier
from .oracle import PriceOracle
from .portfolio import PortfolioSnapshot, buy_size, to_raw, to_units, value
from .state import StateStore
from .trade_log import TradeLog

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TickContext:
    """State carried from one tick to the next"""
    levels: GridLevelSet
    prev_price: Optional[float] = None


@dataclass
class TickResult:
    """
    Outcome of one tick.

    A tick that evaluates a buy also runs the ladder-sell step afterwards; the
    sell outcome then rides along as ``followup`` and ``context`` reflects both.
    """
    action: str  # "buy", "sell", "bulk_sell", "hold", "no_price", "dry_run", "error"
    context: TickContext
    price: Optional[float] = None
    intent: Optional[str] = None  # action attempted, for "dry_run" and "error"
    level: Optional[int] = None
    amount: Optional[int] = None  # raw input units of the swap
    filled_amount: Optional[int] = None  # raw output units received
    signature: Optional[str] = None
    snapshot: Optional[PortfolioSnapshot] = None
    error: Optional[str] = None
    followup: Optional["TickResult"] = None
    timestamp: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def traded(self) -> bool:
        if self.followup is not None and self.followup.traded:
            return True
        return self.action in ("buy", "sell", "bulk_sell")

    @property
    def buy_failed(self) -> bool:
        """A buy was attempted and did not go through"""
        return self.action == "error" and self.intent == "buy"


class GridEngine:
    """
    Decides and executes grid trades.

    Example:
        engine = GridEngine(config, oracle, gateway, wallet, store)
        ctx = TickContext(levels=store.load(config.grid_prices))
        result = await engine.tick(ctx)
        ctx = result.context
    """

    def __init__(
        self,
        config: GridConfig,
        oracle: PriceOracle,
        gateway,
        wallet,
        store: StateStore,
        trade_log: Optional[TradeLog] = None,
        notifier: Optional[Notifier] = None,
    ):
        """
        Args:
            config: Grid configuration
            oracle: Price and quote source
            gateway: Anything with ``async execute(quote, max_priority_fee) -> ExecutionResult``
            wallet: Anything with ``async quote_balance_raw()`` and ``async base_balance_raw()``
            store: Persistence for the ladder
            trade_log: Optional CSV ledger of confirmed trades
            notifier: Optional sink for trade messages
        """
        self.config = config
        self.oracle = oracle
        self.pair = oracle.pair
        self.gateway = gateway
        self.wallet = wallet
        self.store = store
        self.trade_log = trade_log
        self.notifier = notifier or Notifier()
        self.liquidating = False

    # ==================== Tick ====================

    async def tick(self, ctx: TickContext) -> TickResult:
        """
        Run one evaluation cycle.

        Never raises for trading errors; they come back as ``action="error"``
        with the incoming ladder untouched.

        The previous-price memo advances on every tick that obtained a price,
        except when a buy was attempted and failed: that crossing has to
        qualify again on the next tick.
        """
        try:
            price = await self._timed(self.oracle.sample())
        except NoPriceAvailable as e:
            logger.info(f"No price this tick: {e}")
            return TickResult(action="no_price", context=ctx, error=str(e))
        except asyncio.TimeoutError:
            logger.warning("Price sample timed out")
            return TickResult(action="error", context=ctx, error="price sample timed out")
        except GridSwapError as e:
            logger.warning(f"Price sample failed: {e}")
            return TickResult(action="error", context=ctx, error=str(e))

        logger.info(f"Current price: {price:.9f}")

        try:
            result = await self._evaluate(ctx, price)
        except Exception as e:
            logger.exception(f"Tick aborted: {e}")
            result = TickResult(action="error", context=ctx, price=price, error=str(e))

        prev_price = ctx.prev_price if result.buy_failed else price
        result.context = TickContext(levels=result.context.levels, prev_price=prev_price)
        return result

    async def _evaluate(self, ctx: TickContext, price: float) -> TickResult:
        levels = ctx.levels
        try:
            quote_raw = await self._timed(self.wallet.quote_balance_raw())
            base_raw = await self._timed(self.wallet.base_balance_raw())
        except (asyncio.TimeoutError, GridSwapError) as e:
            logger.warning(f"Balance read failed: {e!r}")
            return TickResult(action="error", context=ctx, price=price, error=f"balance read failed: {e!r}")

        snapshot = value(
            price=price,
            quote_balance=to_units(quote_raw, self.pair.quote_decimals),
            base_balance=to_units(base_raw, self.pair.base_decimals),
            levels=levels,
            reserve=self.config.reserve,
            base_decimals=self.pair.base_decimals,
        )
        logger.info(
            f"Balances: {snapshot.quote_balance:.6f} quote | {snapshot.base_balance:.3f} base | "
            f"free {snapshot.free_capital_in_quote:.6f} | empty levels {snapshot.remaining_empty_levels}"
        )

        if price >= levels.upper and levels.filled():
            return await self._bulk_sell(ctx, price, base_raw, snapshot)

        buy = await self._evaluate_buy(ctx, price, snapshot)

        # The sell step always runs, against the ladder and inventory the buy left behind
        sell_ctx, sell_base_raw = ctx, base_raw
        if buy is not None:
            sell_ctx = buy.context
            if buy.action == "buy":
                sell_base_raw += buy.filled_amount
        sell = await self._evaluate_sell(sell_ctx, price, sell_base_raw, snapshot)

        if buy is None and sell is None:
            return TickResult(
                action="hold",
                context=TickContext(levels=levels, prev_price=ctx.prev_price),
                price=price,
                snapshot=snapshot,
            )
        if buy is None:
            return sell
        if sell is not None:
            buy.followup = sell
            buy.context = sell.context
        return buy

    # ==================== Rules ====================

    async def _evaluate_buy(self, ctx: TickContext, price: float, snapshot: PortfolioSnapshot) -> Optional[TickResult]:
        """Buy the first level crossed downward since the previous sample."""
        prev = ctx.prev_price
        if prev is None:
            return None

        levels = ctx.levels
        index = next(
            (i for i, level in enumerate(levels) if not level.bought and prev > level.price >= price),
            None,
        )
        if index is None:
            return None
        level = levels[index]

        try:
            size = buy_size(snapshot, self.config.min_order)
        except InsufficientCapital as e:
            logger.info(f"grid#{index} crossed, no buy: {e}")
            return None

        amount = to_raw(size, self.pair.quote_decimals)
        if amount <= 0:
            return None

        logger.info(f"🔔 Price dropped through {level.price:.9f}: grid#{index} BUY {size:.6f}")
        if self.config.dry_run:
            return self._dry_run(ctx, price, "buy", index, amount, snapshot)

        try:
            quote = await self._quote(self.oracle.buy_quote(amount))
            execution = await self._execute(quote)
            if execution.filled_amount <= 0:
                raise ExecutionFailed(f"buy {execution.signature} reported no fill")
        except GridSwapError as e:
            return self._failed(ctx, price, "buy", index, e, snapshot)

        new_levels = levels.mark_bought(index, execution.filled_amount)
        self._persist(new_levels)
        await self._record("BUY", index, price, amount, execution, snapshot)
        return TickResult(
            action="buy",
            context=TickContext(levels=new_levels, prev_price=prev),
            price=price,
            level=index,
            amount=amount,
            filled_amount=execution.filled_amount,
            signature=execution.signature,
            snapshot=snapshot,
        )

    async def _evaluate_sell(
        self,
        ctx: TickContext,
        price: float,
        base_raw: int,
        snapshot: PortfolioSnapshot,
    ) -> Optional[TickResult]:
        """Sell the first filled level (top excluded) whose quote clears the threshold."""
        levels = ctx.levels
        for index in range(len(levels) - 1):
            level = levels[index]
            if not level.bought or level.filled_amount > base_raw:
                continue

            try:
                quote = await self._quote(self.oracle.sell_quote(level.filled_amount))
            except GridSwapError as e:
                return self._failed(ctx, price, "sell", index, e, snapshot)
            if not quote.has_route:
                continue

            sell_price = self.pair.price(quote.out_amount, level.filled_amount)
            if sell_price < self.config.sell_threshold:
                continue

            logger.info(f"🔔 Price ≥ {sell_price:.9f}: grid#{index} SELL")
            if self.config.dry_run:
                return self._dry_run(ctx, price, "sell", index, level.filled_amount, snapshot)

            try:
                execution = await self._execute(quote)
            except GridSwapError as e:
                return self._failed(ctx, price, "sell", index, e, snapshot)

            new_levels = levels.mark_sold(index)
            self._persist(new_levels)
            await self._record("SELL", index, sell_price, level.filled_amount, execution, snapshot)
            return TickResult(
                action="sell",
                context=TickContext(levels=new_levels, prev_price=ctx.prev_price),
                price=price,
                level=index,
                amount=level.filled_amount,
                filled_amount=execution.filled_amount,
                signature=execution.signature,
                snapshot=snapshot,
            )
        return None

    async def _bulk_sell(
        self,
        ctx: TickContext,
        price: float,
        base_raw: int,
        snapshot: PortfolioSnapshot,
    ) -> TickResult:
        """Liquidate every filled level in one swap and reset the ladder."""
        levels = ctx.levels
        amount = min(levels.total_filled_amount, base_raw)
        logger.info(
            f"🔔 Price {price:.9f} ≥ upper {levels.upper:.9f}: LIQUIDATING "
            f"{len(levels.filled())} levels ({amount} base units)"
        )
        if self.config.dry_run:
            return self._dry_run(ctx, price, "bulk_sell", None, amount, snapshot)
        if amount <= 0:
            return self._failed(
                ctx, price, "bulk_sell", None,
                ExecutionFailed("wallet holds none of the filled inventory"), snapshot,
            )

        self.liquidating = True
        try:
            quote = await self._quote(self.oracle.sell_quote(amount))
            if not quote.has_route:
                raise NoPriceAvailable("no route for bulk sell")
            execution = await self._execute(quote)
        except GridSwapError as e:
            return self._failed(ctx, price, "bulk_sell", None, e, snapshot)
        finally:
            self.liquidating = False

        new_levels = levels.reset()
        self._persist(new_levels)
        sell_price = self.pair.price(quote.out_amount, amount)
        await self._record("SELL ALL", None, sell_price, amount, execution, snapshot)
        return TickResult(
            action="bulk_sell",
            context=TickContext(levels=new_levels, prev_price=ctx.prev_price),
            price=price,
            amount=amount,
            filled_amount=execution.filled_amount,
            signature=execution.signature,
            snapshot=snapshot,
        )

    # ==================== Helpers ====================

    async def _timed(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        return await asyncio.wait_for(awaitable, timeout or self.config.request_timeout)

    async def _quote(self, awaitable: Awaitable[Quote]) -> Quote:
        try:
            quote = await self._timed(awaitable)
        except asyncio.TimeoutError:
            raise NoPriceAvailable("quote timed out")
        return quote

    async def _execute(self, quote: Quote) -> ExecutionResult:
        """
        Execute a quote and apply the fee guard.

        Raises:
            NoPriceAvailable: The quote has no route
            FeeTooHigh: The priority fee exceeds the configured ceiling
            ExecutionFailed: Not confirmed, or timed out
        """
        if not quote.has_route:
            raise NoPriceAvailable("no route")

        ceiling = self.config.max_priority_fee
        try:
            result = await self._timed(self.gateway.execute(quote, ceiling), self.config.execution_timeout)
        except asyncio.TimeoutError:
            raise ExecutionFailed(f"execution timed out after {self.config.execution_timeout}s")

        if result.priority_fee > ceiling:
            raise FeeTooHigh(result.priority_fee, ceiling)
        if not result.confirmed:
            raise ExecutionFailed(f"swap {result.signature or '(not sent)'} was not confirmed")
        return result

    def _persist(self, levels: GridLevelSet):
        try:
            self.store.save(levels)
        except OSError as e:
            # The trade has happened; keep the in-memory ladder and retry on the next save
            logger.critical(f"Grid state write failed for {self.store.path}: {e}")

    async def _record(
        self,
        action: str,
        index: Optional[int],
        price: float,
        amount: int,
        execution: ExecutionResult,
        snapshot: PortfolioSnapshot,
    ):
        where = f"grid#{index}" if index is not None else "all levels"
        message = (
            f"✅ GRID {action} {where} @ {price:.9f} | in {amount} out {execution.filled_amount} | "
            f"fee {execution.priority_fee} | tx {execution.signature}"
        )
        if self.trade_log:
            self.trade_log.record(action, price, amount, snapshot.quote_balance, snapshot.base_balance)
        try:
            await self._timed(self.notifier.send(message))
        except asyncio.TimeoutError:
            logger.error(f"Notification timed out: {message}")

    def _failed(
        self,
        ctx: TickContext,
        price: float,
        intent: str,
        index: Optional[int],
        error: GridSwapError,
        snapshot: PortfolioSnapshot,
    ) -> TickResult:
        where = f"grid#{index}" if index is not None else "ladder"
        logger.warning(f"{intent} {where} aborted ({type(error).__name__}): {error}")
        return TickResult(
            action="error",
            context=TickContext(levels=ctx.levels, prev_price=ctx.prev_price),
            price=price,
            intent=intent,
            level=index,
            snapshot=snapshot,
            error=f"{type(error).__name__}: {error}",
        )

    def _dry_run(
        self,
        ctx: TickContext,
        price: float,
        intent: str,
        index: Optional[int],
        amount: int,
        snapshot: PortfolioSnapshot,
    ) -> TickResult:
        return TickResult(
            action="dry_run",
            context=TickContext(levels=ctx.levels, prev_price=ctx.prev_price),
            price=price,
            intent=intent,
            level=index,
            amount=amount,
            snapshot=snapshot,
        )


def format_result(result: TickResult) -> str:
    """Format a tick result for logging"""
    ts = time.strftime("%H:%M:%S", time.localtime(result.timestamp / 1000))
    line = f"[{ts}] {_describe(result)}"
    if result.followup is not None:
        line += f" | then {_describe(result.followup)}"
    return line


def _describe(result: TickResult) -> str:
    price = f"{result.price:.9f}" if result.price is not None else "n/a"
    filled = len(result.context.levels.filled())
    total = len(result.context.levels)
    action = result.action

    if action in ("buy", "sell"):
        return (f"{action.upper()} grid#{result.level} @ {price} | "
                f"in {result.amount} out {result.filled_amount} | filled {filled}/{total} | tx {result.signature}")
    if action == "bulk_sell":
        return f"SELL ALL @ {price} | in {result.amount} out {result.filled_amount} | tx {result.signature}"
    if action == "dry_run":
        where = f" grid#{result.level}" if result.level is not None else ""
        return f"[DRY] would {result.intent}{where} @ {price} amount {result.amount}"
    if action == "no_price":
        return f"No price: {result.error}"
    if action == "error":
        return f"❌ ERROR @ {price}: {result.error}"
    return f"HOLD @ {price} | filled {filled}/{total}"

"""
Grid bot runner - wires configuration, wallet, aggregator and engine together.
"""

import asyncio
import logging
import signal
from typing import Optional

from .auth import Keypair
from .config import GridConfig
from .engine import GridEngine, TickContext, TickResult, format_result
from .gateway import JupiterGateway
from .jupiter import JupiterClient
from .notifier import build_notifier
from .oracle import AssetPair, PriceOracle
from .portfolio import to_units, value
from .rpc import SolanaRPC, Wallet
from .scheduler import Scheduler
from .state import StateStore
from .trade_log import TradeLog

logger = logging.getLogger(__name__)


class GridBot:
    """
    A fully assembled bot.

    Example:
        bot = await GridBot.create(GridConfig.from_env())
        try:
            await bot.run_loop()
        finally:
            await bot.close()
    """

    def __init__(
        self,
        config: GridConfig,
        keypair: Keypair,
        rpc: SolanaRPC,
        jupiter: JupiterClient,
        wallet: Wallet,
        pair: AssetPair,
    ):
        self.config = config
        self.keypair = keypair
        self.rpc = rpc
        self.jupiter = jupiter
        self.wallet = wallet
        self.pair = pair
        self.store = StateStore(config.state_path)
        self.oracle = PriceOracle(jupiter, pair, config.probe_amount, config.slippage_bps)
        self.gateway = JupiterGateway(jupiter, rpc, keypair, wallet, confirm_timeout=config.confirm_timeout)
        self.notifier = build_notifier(config)
        self.engine = GridEngine(
            config,
            self.oracle,
            self.gateway,
            wallet,
            self.store,
            trade_log=TradeLog(config.trade_log_path),
            notifier=self.notifier,
        )
        self.scheduler: Optional[Scheduler] = None

    @classmethod
    async def create(cls, config: GridConfig, keypair: Optional[Keypair] = None) -> "GridBot":
        """
        Load the key, open clients and look up both mints' decimals.

        Raises:
            KeypairError: Key material is unreadable
            RPCError: Mint decimals could not be fetched
        """
        keypair = keypair or Keypair.from_file(config.keypair_path)
        rpc = SolanaRPC(config.rpc_url, timeout=config.request_timeout)
        jupiter = JupiterClient(config.jupiter_api_base, timeout=config.request_timeout)
        try:
            quote_decimals = await rpc.get_mint_decimals(config.input_mint)
            base_decimals = await rpc.get_mint_decimals(config.output_mint)
        except Exception:
            await rpc.close()
            await jupiter.close()
            raise

        pair = AssetPair(config.input_mint, config.output_mint, quote_decimals, base_decimals)
        wallet = Wallet(rpc, keypair.public_key, config.input_mint, config.output_mint)
        return cls(config, keypair, rpc, jupiter, wallet, pair)

    def load_context(self) -> TickContext:
        levels = self.store.load(self.config.grid_prices)
        logger.info("Grid levels: " + ", ".join(f"{p:.9f}" for p in levels.prices))
        filled = levels.filled()
        if filled:
            logger.info(f"Restored {len(filled)} filled levels: " + ", ".join(f"#{i}" for i, _ in filled))
        return TickContext(levels=levels)

    async def run_once(self) -> TickResult:
        """Run a single tick against the persisted ladder"""
        result = await self.engine.tick(self.load_context())
        logger.info(format_result(result))
        return result

    async def run_loop(self, max_ticks: Optional[int] = None):
        """Run ticks every ``check_interval`` seconds until stopped"""
        config = self.config
        logger.info(f"🤖 Grid bot for {self.keypair.public_key}")
        logger.info(f"   Pair: {config.input_mint} -> {config.output_mint}")
        logger.info(f"   Grid: {config.grid_lower} .. {config.grid_upper} in {config.grid_steps} steps")
        logger.info(f"   Sell threshold: {config.sell_threshold}")
        logger.info(f"   Reserve: {config.reserve:.6f}")
        logger.info(f"   Interval: {config.check_interval}s")
        logger.info(f"   Mode: {'DRY RUN' if config.dry_run else 'LIVE'}")

        self.scheduler = Scheduler(self.engine, self.load_context(), config.check_interval)
        await self.notifier.send(f"Starting grid every {config.check_interval:g}s")
        await self.scheduler.run(max_ticks=max_ticks)
        logger.info(f"Stopped after {self.scheduler.ticks} ticks ({self.scheduler.skipped} skipped)")

    def stop(self):
        if self.scheduler:
            self.scheduler.stop()

    async def status(self) -> dict:
        """Balances, valuation and ladder, without trading"""
        levels = self.store.load(self.config.grid_prices)
        quote_raw = await self.wallet.quote_balance_raw()
        base_raw = await self.wallet.base_balance_raw()
        price = await self.oracle.sample()
        snapshot = value(
            price=price,
            quote_balance=to_units(quote_raw, self.pair.quote_decimals),
            base_balance=to_units(base_raw, self.pair.base_decimals),
            levels=levels,
            reserve=self.config.reserve,
            base_decimals=self.pair.base_decimals,
        )
        return {
            "wallet": self.keypair.public_key,
            "snapshot": snapshot.to_dict(),
            "levels": levels.to_dict()["levels"],
        }

    async def close(self):
        await self.rpc.close()
        await self.jupiter.close()
        await self.notifier.close()


async def run_bot(config: GridConfig, once: bool = False) -> Optional[TickResult]:
    """Create a bot, run it, and close its clients"""
    bot = await GridBot.create(config)
    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, bot.stop)
            except (NotImplementedError, RuntimeError):
                pass
        if once:
            return await bot.run_once()
        await bot.run_loop()
        return None
    finally:
        await bot.close()


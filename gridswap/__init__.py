"""
gridswap - Grid trading on the Jupiter aggregator for Solana wallets.

Usage:
    from gridswap import GridConfig, GridBot

    config = GridConfig.from_env()
    bot = await GridBot.create(config)
    await bot.run_loop()

    # Or drive the engine yourself
    from gridswap import GridEngine, TickContext
    result = await engine.tick(TickContext(levels=levels))
"""

from .config import GridConfig
from .grid import GridLevel, GridLevelSet, grid_prices
from .state import StateStore
from .portfolio import PortfolioSnapshot, buy_size, per_level_size, value
from .engine import GridEngine, TickContext, TickResult
from .scheduler import Scheduler
from .runner import GridBot, run_bot
from .exceptions import (
    GridSwapError,
    ConfigError,
    KeypairError,
    NoPriceAvailable,
    InsufficientCapital,
    FeeTooHigh,
    ExecutionFailed,
    StateCorrupt,
)

__version__ = "0.1.0"
__all__ = [
    # Core
    "GridConfig",
    "GridLevel",
    "GridLevelSet",
    "grid_prices",
    "StateStore",
    "PortfolioSnapshot",
    "per_level_size",
    "buy_size",
    "value",
    # Engine
    "GridEngine",
    "TickContext",
    "TickResult",
    "Scheduler",
    "GridBot",
    "run_bot",
    # Exceptions
    "GridSwapError",
    "ConfigError",
    "KeypairError",
    "NoPriceAvailable",
    "InsufficientCapital",
    "FeeTooHigh",
    "ExecutionFailed",
    "StateCorrupt",
]

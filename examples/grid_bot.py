#!/usr/bin/env python3
"""
Grid Bot - Dry Run

Builds the grid bot from a .env file and runs a few ticks without trading,
printing the portfolio valuation after each one.

Buys fire when the price drops through an empty level; filled levels are sold
when the quoted sell price clears SELL_THRESHOLD, and everything is liquidated
once the price reaches GRID_UPPER.
"""

import asyncio

from dotenv import load_dotenv

from gridswap import GridBot, GridConfig
from gridswap.engine import format_result


async def main():
    load_dotenv()
    config = GridConfig.from_env()
    config.dry_run = True

    bot = await GridBot.create(config)
    try:
        ctx = bot.load_context()
        print(f"📊 Grid {config.grid_lower} .. {config.grid_upper} ({len(ctx.levels)} levels)")

        for _ in range(3):
            result = await bot.engine.tick(ctx)
            ctx = result.context
            print(format_result(result))
            if result.snapshot:
                snap = result.snapshot
                print(f"   Total: {snap.total_value_in_quote:.6f} | Free: {snap.free_capital_in_quote:.6f} "
                      f"| Empty levels: {snap.remaining_empty_levels}")
            await asyncio.sleep(config.check_interval)
    finally:
        await bot.close()


if __name__ == "__main__":
    asyncio.run(main())

#!/usr/bin/env python3
"""
gridswap CLI - Run the grid bot from the command line.

Usage:
    gridswap run                       # settings from .env / environment
    gridswap run --config grid.json --dry-run
    gridswap run --once
    gridswap levels
    gridswap status --json
    gridswap price
"""

import argparse
import asyncio
import json
import logging
import sys

from dotenv import find_dotenv, load_dotenv

from .config import GridConfig
from .exceptions import GridSwapError
from .runner import GridBot, run_bot
from .state import StateStore


def load_config(args) -> GridConfig:
    """Config from --config JSON if given, else environment"""
    if args.config:
        config = GridConfig.from_file(args.config)
    else:
        config = GridConfig.from_env()
    if getattr(args, "dry_run", False):
        config.dry_run = True
    return config


def cmd_run(args):
    """Run the grid bot"""
    config = load_config(args)
    asyncio.run(run_bot(config, once=args.once))


def cmd_levels(args):
    """Show the ladder and its persisted fill status"""
    config = load_config(args)
    levels = StateStore(config.state_path).load(config.grid_prices)

    if args.json:
        print(json.dumps(levels.to_dict(), indent=2))
        return

    for i, level in reversed(list(enumerate(levels))):
        mark = f"FILLED {level.filled_amount}" if level.bought else "empty"
        print(f"  #{i:<3} {level.price:.9f}  {mark}")
    print(f"\n{len(levels.filled())}/{len(levels)} levels filled")


async def _status(config: GridConfig) -> dict:
    bot = await GridBot.create(config)
    try:
        return await bot.status()
    finally:
        await bot.close()


def cmd_status(args):
    """Show balances, valuation and ladder"""
    config = load_config(args)
    status = asyncio.run(_status(config))

    if args.json:
        print(json.dumps(status, indent=2))
        return

    snap = status["snapshot"]
    print(f"Wallet: {status['wallet']}")
    print(f"Price: {snap['price']:.9f}")
    print(f"Quote balance: {snap['quote_balance']:.6f}")
    print(f"Base balance: {snap['base_balance']:.6f}")
    print(f"Invested: {snap['invested_in_quote']:.6f}")
    print(f"Total value: {snap['total_value_in_quote']:.6f}")
    print(f"Reserve: {snap['reserve']:.6f}")
    print(f"Free capital: {snap['free_capital_in_quote']:.6f} over {snap['remaining_empty_levels']} empty levels")

    filled = [lvl for lvl in status["levels"] if lvl["bought"]]
    if filled:
        print("\nFilled levels:")
        for lvl in filled:
            print(f"  {lvl['price']:.9f}: {lvl['phAmount']}")


async def _price(config: GridConfig) -> float:
    bot = await GridBot.create(config)
    try:
        return await bot.oracle.sample()
    finally:
        await bot.close()


def cmd_price(args):
    """Sample the current price"""
    config = load_config(args)
    price = asyncio.run(_price(config))
    if args.json:
        print(json.dumps({"price": price}))
    else:
        print(f"{price:.9f}")


def main():
    parser = argparse.ArgumentParser(
        description="gridswap - grid trading on the Jupiter aggregator"
    )
    parser.add_argument("--env-file", default=None, help="Path to .env file (default: search from cwd)")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the grid bot")
    run_parser.add_argument("-c", "--config", help="Path to JSON config (default: environment)")
    run_parser.add_argument("--dry-run", action="store_true", help="Don't execute trades")
    run_parser.add_argument("--once", action="store_true", help="Run a single tick and exit")
    run_parser.set_defaults(func=cmd_run)

    # Levels command
    levels_parser = subparsers.add_parser("levels", help="Show grid levels")
    levels_parser.add_argument("-c", "--config", help="Path to JSON config (default: environment)")
    levels_parser.add_argument("--json", action="store_true", help="Output as JSON")
    levels_parser.set_defaults(func=cmd_levels)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show balances and valuation")
    status_parser.add_argument("-c", "--config", help="Path to JSON config (default: environment)")
    status_parser.add_argument("--json", action="store_true", help="Output as JSON")
    status_parser.set_defaults(func=cmd_status)

    # Price command
    price_parser = subparsers.add_parser("price", help="Get current price")
    price_parser.add_argument("-c", "--config", help="Path to JSON config (default: environment)")
    price_parser.add_argument("--json", action="store_true", help="Output as JSON")
    price_parser.set_defaults(func=cmd_price)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv(args.env_file or find_dotenv(usecwd=True))

    try:
        args.func(args)
    except GridSwapError as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nStopped")


if __name__ == "__main__":
    main()

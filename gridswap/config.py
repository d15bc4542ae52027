"""
gridswap configuration.

Loaded from environment variables (optionally via a ``.env`` file) or from a
JSON file whose keys are the lowercase field names.
"""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import ConfigError
from .grid import grid_prices

NATIVE_SOL_MINT = "So11111111111111111111111111111111111111112"
DEFAULT_JUPITER_API = "https://lite-api.jup.ag/swap/v1"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GridConfig:
    """Configuration for a grid trading bot."""
    rpc_url: str
    keypair_path: str
    input_mint: str    # quote asset, spent on buys (e.g. SOL)
    output_mint: str   # base asset, accumulated on buys
    slippage_bps: int = 0
    check_interval: float = 300.0  # seconds
    grid_lower: float = 0.0
    grid_upper: float = 1.0
    grid_steps: int = 30
    sell_threshold: float = 0.001
    commission_reserve_multiplier: float = 1.0
    fee_reserve_per_level: float = 0.01  # quote units reserved per grid cell
    min_order: float = 0.0               # quote units
    max_priority_fee: int = 1_000_000    # lamports
    probe_amount: int = 1_000_000        # raw quote units used for price sampling
    request_timeout: float = 30.0        # seconds, per network call
    confirm_timeout: float = 60.0        # seconds to wait for a swap to confirm
    execution_timeout: float = 120.0     # seconds for build + broadcast + confirm
    state_path: str = "grid_state.json"
    trade_log_path: str = "grid_trade_log.csv"
    jupiter_api_base: str = DEFAULT_JUPITER_API
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    dry_run: bool = False

    # Environment variable -> (field, parser)
    ENV_FIELDS = {
        "SOLANA_RPC_URL": ("rpc_url", str),
        "KEYPAIR_PATH": ("keypair_path", str),
        "INPUT_MINT": ("input_mint", str),
        "OUTPUT_MINT": ("output_mint", str),
        "SLIPPAGE_BPS": ("slippage_bps", int),
        "CHECK_INTERVAL": ("check_interval", lambda v: int(v) / 1000),  # milliseconds
        "GRID_LOWER": ("grid_lower", float),
        "GRID_UPPER": ("grid_upper", float),
        "GRID_STEPS": ("grid_steps", int),
        "SELL_THRESHOLD": ("sell_threshold", float),
        "COMMISSION_RESERVE_MULTIPLIER": ("commission_reserve_multiplier", float),
        "FEE_RESERVE_PER_LEVEL": ("fee_reserve_per_level", float),
        "MIN_ORDER": ("min_order", float),
        "MAX_PRIORITY_FEE_LAMPORTS": ("max_priority_fee", int),
        "PROBE_AMOUNT": ("probe_amount", int),
        "REQUEST_TIMEOUT": ("request_timeout", float),
        "CONFIRM_TIMEOUT": ("confirm_timeout", float),
        "EXECUTION_TIMEOUT": ("execution_timeout", float),
        "STATE_PATH": ("state_path", str),
        "TRADE_LOG_PATH": ("trade_log_path", str),
        "JUPITER_API_BASE": ("jupiter_api_base", str),
        "TELEGRAM_BOT_TOKEN": ("telegram_bot_token", str),
        "TELEGRAM_CHAT_ID": ("telegram_chat_id", str),
        "DRY_RUN": ("dry_run", _env_bool),
    }

    REQUIRED = ("rpc_url", "keypair_path", "input_mint", "output_mint")

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "GridConfig":
        """Load configuration from environment variables."""
        environ = os.environ if environ is None else environ
        data = {}
        for name, (field_name, parse) in cls.ENV_FIELDS.items():
            value = environ.get(name)
            if value is None or value == "":
                continue
            try:
                data[field_name] = parse(value)
            except ValueError:
                raise ConfigError(f"{name} has an invalid value: {value!r}")
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: str) -> "GridConfig":
        """Load configuration from a JSON file"""
        try:
            with open(Path(path).expanduser()) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read config {path}: {e}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict) -> "GridConfig":
        """Create config from dict, validating required fields"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

        missing = [name for name in cls.REQUIRED if not data.get(name)]
        if missing:
            env_names = [n for n, (f, _) in cls.ENV_FIELDS.items() if f in missing]
            raise ConfigError(
                f"Missing required configuration: {', '.join(missing)}\n"
                f"Set it with: export {env_names[0]}='...'"
            )

        config = cls(**data)
        config.validate()
        return config

    def validate(self):
        if self.grid_steps < 1:
            raise ConfigError("GRID_STEPS must be at least 1")
        if self.grid_lower <= 0 or self.grid_upper <= self.grid_lower:
            raise ConfigError("Grid bounds must satisfy 0 < GRID_LOWER < GRID_UPPER")
        if self.check_interval <= 0:
            raise ConfigError("CHECK_INTERVAL must be positive")
        if min(self.request_timeout, self.confirm_timeout, self.execution_timeout) <= 0:
            raise ConfigError("REQUEST_TIMEOUT, CONFIRM_TIMEOUT and EXECUTION_TIMEOUT must be positive")
        if self.probe_amount <= 0:
            raise ConfigError("PROBE_AMOUNT must be positive")
        if self.slippage_bps < 0 or self.max_priority_fee < 0 or self.min_order < 0:
            raise ConfigError("SLIPPAGE_BPS, MAX_PRIORITY_FEE_LAMPORTS and MIN_ORDER cannot be negative")

    @property
    def grid_prices(self) -> List[float]:
        return grid_prices(self.grid_lower, self.grid_upper, self.grid_steps)

    @property
    def reserve(self) -> float:
        """Quote-asset amount held back for network fees"""
        return self.commission_reserve_multiplier * self.grid_steps * self.fee_reserve_per_level

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

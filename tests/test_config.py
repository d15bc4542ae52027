"""Tests for configuration loading and validation."""

import json

import pytest

from gridswap.config import DEFAULT_JUPITER_API, GridConfig
from gridswap.exceptions import ConfigError

BASE_ENV = {
    "SOLANA_RPC_URL": "https://api.mainnet-beta.solana.com",
    "KEYPAIR_PATH": "~/.config/solana/id.json",
    "INPUT_MINT": "So11111111111111111111111111111111111111112",
    "OUTPUT_MINT": "PHtoken1111111111111111111111111111111111111",
    "GRID_LOWER": "0.001",
    "GRID_UPPER": "0.002",
}


class TestFromEnv:

    def test_defaults(self):
        config = GridConfig.from_env(dict(BASE_ENV))

        assert config.grid_steps == 30
        assert config.check_interval == 300.0
        assert config.slippage_bps == 0
        assert config.jupiter_api_base == DEFAULT_JUPITER_API
        assert config.dry_run is False
        assert not config.telegram_enabled

    def test_parses_values(self):
        env = dict(
            BASE_ENV,
            CHECK_INTERVAL="60000",
            GRID_STEPS="10",
            SLIPPAGE_BPS="50",
            SELL_THRESHOLD="0.0018",
            MAX_PRIORITY_FEE_LAMPORTS="250000",
            DRY_RUN="true",
            TELEGRAM_BOT_TOKEN="123:abc",
            TELEGRAM_CHAT_ID="42",
        )

        config = GridConfig.from_env(env)

        assert config.check_interval == 60.0
        assert config.grid_steps == 10
        assert config.slippage_bps == 50
        assert config.sell_threshold == 0.0018
        assert config.max_priority_fee == 250_000
        assert config.dry_run is True
        assert config.telegram_enabled
        assert len(config.grid_prices) == 11

    def test_empty_values_use_defaults(self):
        config = GridConfig.from_env(dict(BASE_ENV, GRID_STEPS=""))
        assert config.grid_steps == 30

    def test_missing_required(self):
        env = dict(BASE_ENV)
        del env["OUTPUT_MINT"]

        with pytest.raises(ConfigError, match="output_mint"):
            GridConfig.from_env(env)

    def test_invalid_number(self):
        with pytest.raises(ConfigError, match="GRID_STEPS"):
            GridConfig.from_env(dict(BASE_ENV, GRID_STEPS="many"))

    def test_reserve(self):
        config = GridConfig.from_env(dict(BASE_ENV, COMMISSION_RESERVE_MULTIPLIER="2"))
        assert config.reserve == pytest.approx(0.6)


class TestFromDict:

    def test_unknown_keys(self):
        data = {"rpc_url": "x", "keypair_path": "x", "input_mint": "a", "output_mint": "b",
                "grid_lower": 1.0, "grid_upper": 2.0, "grid_stpes": 3}
        with pytest.raises(ConfigError, match="grid_stpes"):
            GridConfig.from_dict(data)

    @pytest.mark.parametrize("overrides", [
        {"grid_lower": 2.0, "grid_upper": 1.0},
        {"grid_lower": 0.0},
        {"grid_steps": 0},
        {"check_interval": 0},
        {"execution_timeout": -1},
        {"slippage_bps": -5},
    ])
    def test_validation(self, overrides):
        data = {"rpc_url": "x", "keypair_path": "x", "input_mint": "a", "output_mint": "b",
                "grid_lower": 1.0, "grid_upper": 2.0}
        data.update(overrides)
        with pytest.raises(ConfigError):
            GridConfig.from_dict(data)


class TestFromFile:

    def test_json_file(self, tmp_path):
        path = tmp_path / "grid.json"
        path.write_text(json.dumps({
            "rpc_url": "http://localhost:8899",
            "keypair_path": "id.json",
            "input_mint": "a",
            "output_mint": "b",
            "grid_lower": 0.5,
            "grid_upper": 1.5,
            "grid_steps": 4,
        }))

        config = GridConfig.from_file(str(path))

        assert config.grid_prices == [0.5, 0.75, 1.0, 1.25, 1.5]

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ConfigError):
            GridConfig.from_file(str(tmp_path / "missing.json"))

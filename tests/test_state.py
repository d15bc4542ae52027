"""Tests for grid state persistence."""

import json
import os

import pytest

from gridswap.grid import GridLevel, GridLevelSet, grid_prices
from gridswap.state import StateStore

PRICES = grid_prices(0.001, 0.002, 2)


def write_state(path, levels):
    with open(path, "w") as f:
        json.dump({"levels": levels}, f)


def read_state(path):
    with open(path) as f:
        return json.load(f)


def persisted_levels(path) -> GridLevelSet:
    return GridLevelSet([GridLevel.from_dict(raw) for raw in read_state(path)["levels"]])


class TestLoad:

    def test_missing_file_creates_empty_ladder(self, tmp_path):
        store = StateStore(tmp_path / "grid_state.json")

        levels = store.load(PRICES)

        assert levels == GridLevelSet.from_prices(PRICES)
        assert len(read_state(store.path)["levels"]) == 3

    def test_merges_filled_levels(self, tmp_path):
        store = StateStore(tmp_path / "grid_state.json")
        write_state(store.path, [
            {"price": 0.001, "bought": False, "phAmount": None},
            {"price": 0.0015, "bought": True, "phAmount": "5000000"},
            {"price": 0.002, "bought": False, "phAmount": None},
        ])

        levels = store.load(PRICES)

        assert levels.filled() == [(1, levels[1])]
        assert levels[1].filled_amount == 5_000_000

    def test_matches_within_epsilon(self, tmp_path):
        store = StateStore(tmp_path / "grid_state.json")
        write_state(store.path, [{"price": 0.0015 + 1e-12, "bought": True, "phAmount": "7"}])

        levels = store.load(PRICES)

        assert levels[1].filled_amount == 7
        assert levels[1].price == PRICES[1]

    def test_tight_ladder_restores_exact_level(self, tmp_path):
        prices = grid_prices(1e-7, 2e-7, 200)
        store = StateStore(tmp_path / "grid_state.json")
        store.save(GridLevelSet.from_prices(prices).mark_bought(57, 42))

        levels = store.load(prices)

        assert [i for i, _ in levels.filled()] == [57]
        assert levels[57].filled_amount == 42

    def test_geometry_change_drops_unmatched(self, tmp_path):
        store = StateStore(tmp_path / "grid_state.json")
        write_state(store.path, [
            {"price": 0.00125, "bought": True, "phAmount": "100"},
            {"price": 0.002, "bought": True, "phAmount": "200"},
        ])

        levels = store.load(PRICES)

        assert [i for i, _ in levels.filled()] == [2]
        persisted = read_state(store.path)["levels"]
        assert [lvl["price"] for lvl in persisted] == PRICES
        assert [lvl["bought"] for lvl in persisted] == [False, False, True]

    def test_filled_without_amount_is_skipped(self, tmp_path):
        store = StateStore(tmp_path / "grid_state.json")
        write_state(store.path, [
            {"price": 0.001, "bought": True, "phAmount": None},
            {"price": 0.0015, "bought": True},
            {"price": 0.002, "bought": True, "phAmount": "abc"},
        ])

        assert store.load(PRICES).filled() == []

    @pytest.mark.parametrize("content", ["{not json", "[]", '{"levels": 3}'])
    def test_corrupt_state_heals(self, tmp_path, content):
        store = StateStore(tmp_path / "grid_state.json")
        store.path.write_text(content)

        levels = store.load(PRICES)

        assert levels.filled() == []
        assert persisted_levels(store.path) == levels


class TestSave:

    def test_amounts_stored_as_strings(self, tmp_path):
        store = StateStore(tmp_path / "grid_state.json")
        big = 2 ** 64 + 1

        store.save(GridLevelSet.from_prices(PRICES).mark_bought(0, big))

        level = read_state(store.path)["levels"][0]
        assert level == {"price": 0.001, "bought": True, "phAmount": str(big)}
        assert not store.tmp_path.exists()

    def test_round_trip(self, tmp_path):
        store = StateStore(tmp_path / "grid_state.json")
        levels = GridLevelSet.from_prices(PRICES).mark_bought(0, 11).mark_bought(2, 22)

        store.save(levels)

        assert StateStore(store.path).load(PRICES) == levels

    def test_failed_replace_keeps_previous_state(self, tmp_path, monkeypatch):
        store = StateStore(tmp_path / "grid_state.json")
        original = GridLevelSet.from_prices(PRICES).mark_bought(1, 5)
        store.save(original)

        def failing_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr(os, "replace", failing_replace)
        with pytest.raises(OSError):
            store.save(original.mark_sold(1))
        monkeypatch.undo()

        assert not store.tmp_path.exists()
        assert persisted_levels(store.path) == original

    def test_creates_parent_directory(self, tmp_path):
        store = StateStore(tmp_path / "nested" / "grid_state.json")
        store.save(GridLevelSet.from_prices(PRICES))
        assert store.path.exists()

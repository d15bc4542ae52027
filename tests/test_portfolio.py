"""Tests for valuation and per-level sizing."""

import pytest

from gridswap.grid import GridLevelSet
from gridswap.exceptions import InsufficientCapital
from gridswap.portfolio import PortfolioSnapshot, buy_size, per_level_size, to_raw, to_units, value


def snapshot(free: float, remaining: int) -> PortfolioSnapshot:
    return PortfolioSnapshot(
        price=1.0,
        quote_balance=free,
        base_balance=0.0,
        invested_in_quote=0.0,
        total_value_in_quote=free,
        reserve=0.0,
        free_capital_in_quote=free,
        remaining_empty_levels=remaining,
    )


class TestUnits:

    def test_conversions(self):
        assert to_units(1_500_000_000, 9) == 1.5
        assert to_raw(1.5, 9) == 1_500_000_000

    def test_to_raw_floors(self):
        assert to_raw(0.0000019, 6) == 1


class TestValue:

    def test_snapshot(self):
        levels = GridLevelSet.from_prices([0.001, 0.0015, 0.002]).mark_bought(0, 2_000_000)

        snap = value(
            price=0.0015,
            quote_balance=1.0,
            base_balance=3.0,
            levels=levels,
            reserve=0.1,
            base_decimals=6,
        )

        assert snap.invested_in_quote == pytest.approx(0.003)
        assert snap.total_value_in_quote == pytest.approx(1.0045)
        assert snap.free_capital_in_quote == pytest.approx(1.0045 - 0.003 - 0.1)
        assert snap.remaining_empty_levels == 2

    def test_reserve_can_push_free_capital_negative(self):
        levels = GridLevelSet.from_prices([1.0, 2.0])
        snap = value(1.5, 0.01, 0.0, levels, reserve=0.6, base_decimals=6)
        assert snap.free_capital_in_quote < 0
        assert per_level_size(snap, 0.0) is None


class TestPerLevelSize:

    def test_equal_weight(self):
        assert per_level_size(snapshot(10.0, 5), min_order=1.0) == 2.0

    def test_no_empty_levels(self):
        assert per_level_size(snapshot(10.0, 0), min_order=0.0) is None

    def test_must_exceed_min_order(self):
        assert per_level_size(snapshot(10.0, 5), min_order=2.0) is None
        assert per_level_size(snapshot(0.0, 5), min_order=0.0) is None


class TestBuySize:

    def test_returns_equal_weight_share(self):
        assert buy_size(snapshot(10.0, 5), min_order=1.0) == 2.0

    @pytest.mark.parametrize("free,remaining,min_order", [
        (10.0, 5, 2.0),
        (0.0, 5, 0.0),
        (-1.0, 3, 0.0),
        (10.0, 0, 0.0),
    ])
    def test_raises_when_share_too_small(self, free, remaining, min_order):
        with pytest.raises(InsufficientCapital):
            buy_size(snapshot(free, remaining), min_order=min_order)

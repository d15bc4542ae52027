"""
Grid ladder value types.

A ladder is ``steps + 1`` evenly spaced price levels between ``lower`` and
``upper``. Every mutation returns a new :class:`GridLevelSet`, so a trade that
fails halfway never leaves a half-updated ladder behind.
"""

import math
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

# Relative tolerance used when matching persisted prices against a freshly built ladder
PRICE_EPSILON = 1e-9


def grid_prices(lower: float, upper: float, steps: int) -> List[float]:
    """
    Build the price ladder.

    Args:
        lower: Lowest level price
        upper: Highest level price
        steps: Number of intervals (the ladder has steps + 1 levels)

    Returns:
        Strictly increasing list of prices, first == lower, last == upper
    """
    if steps < 1:
        raise ValueError("steps must be >= 1")
    if not lower < upper:
        raise ValueError("lower must be below upper")
    prices = [lower + (upper - lower) * i / steps for i in range(steps + 1)]
    prices[-1] = upper
    return prices


def prices_match(a: float, b: float, epsilon: float = PRICE_EPSILON) -> bool:
    """Equal within ``epsilon`` relative to the larger magnitude"""
    return math.isclose(a, b, rel_tol=epsilon)


@dataclass(frozen=True)
class GridLevel:
    """A single price level and its fill status"""
    price: float
    bought: bool = False
    filled_amount: Optional[int] = None  # raw base-asset units

    def __post_init__(self):
        if self.bought:
            if self.filled_amount is None or self.filled_amount <= 0:
                raise ValueError(f"bought level at {self.price} needs a positive filled_amount")
        elif self.filled_amount is not None:
            raise ValueError(f"empty level at {self.price} cannot carry a filled_amount")

    @classmethod
    def from_dict(cls, raw: Dict) -> "GridLevel":
        """
        Rebuild a level from its persisted form.

        Raises:
            KeyError, TypeError, ValueError: The entry is malformed
        """
        amount = raw.get("phAmount")
        return cls(
            price=float(raw["price"]),
            bought=bool(raw.get("bought")),
            filled_amount=int(amount) if amount is not None else None,
        )

    def to_dict(self) -> Dict:
        return {
            "price": self.price,
            "bought": self.bought,
            "phAmount": str(self.filled_amount) if self.filled_amount is not None else None,
        }


class GridLevelSet:
    """
    Ordered, immutable ladder of grid levels.

    Example:
        levels = GridLevelSet.from_prices(grid_prices(0.001, 0.002, 2))
        levels = levels.mark_bought(1, 5_000_000)
        levels.filled()  # [(1, GridLevel(price=0.0015, ...))]
    """

    def __init__(self, levels: Sequence[GridLevel]):
        levels = tuple(levels)
        for prev, cur in zip(levels, levels[1:]):
            if not cur.price > prev.price:
                raise ValueError("grid levels must be strictly increasing in price")
        self._levels: Tuple[GridLevel, ...] = levels

    @classmethod
    def from_prices(cls, prices: Sequence[float]) -> "GridLevelSet":
        return cls([GridLevel(price=p) for p in prices])

    def to_dict(self) -> Dict:
        return {"levels": [level.to_dict() for level in self._levels]}

    # ==================== Queries ====================

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> Iterator[GridLevel]:
        return iter(self._levels)

    def __getitem__(self, index: int) -> GridLevel:
        return self._levels[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, GridLevelSet):
            return NotImplemented
        return self._levels == other._levels

    def __repr__(self) -> str:
        return f"GridLevelSet({len(self)} levels, {len(self.filled())} filled)"

    @property
    def prices(self) -> List[float]:
        return [level.price for level in self._levels]

    @property
    def lower(self) -> float:
        return self._levels[0].price

    @property
    def upper(self) -> float:
        return self._levels[-1].price

    @property
    def empty_count(self) -> int:
        return sum(1 for level in self._levels if not level.bought)

    @property
    def total_filled_amount(self) -> int:
        return sum(level.filled_amount for level in self._levels if level.bought)

    def filled(self) -> List[Tuple[int, GridLevel]]:
        """Indexes and levels currently holding inventory"""
        return [(i, level) for i, level in enumerate(self._levels) if level.bought]

    def find(self, price: float, epsilon: float = PRICE_EPSILON) -> Optional[int]:
        """Index of the level whose price matches within epsilon"""
        for i, level in enumerate(self._levels):
            if prices_match(level.price, price, epsilon):
                return i
        return None

    # ==================== Transitions ====================

    def mark_bought(self, index: int, filled_amount: int) -> "GridLevelSet":
        """EMPTY -> FILLED"""
        level = self._levels[index]
        if level.bought:
            raise ValueError(f"level {index} is already filled")
        return self._with(index, replace(level, bought=True, filled_amount=int(filled_amount)))

    def mark_sold(self, index: int) -> "GridLevelSet":
        """FILLED -> EMPTY"""
        level = self._levels[index]
        if not level.bought:
            raise ValueError(f"level {index} is not filled")
        return self._with(index, replace(level, bought=False, filled_amount=None))

    def reset(self) -> "GridLevelSet":
        """Empty every level (after a bulk sell)"""
        return GridLevelSet.from_prices(self.prices)

    def _with(self, index: int, level: GridLevel) -> "GridLevelSet":
        levels = list(self._levels)
        levels[index] = level
        return GridLevelSet(levels)

"""
Grid state persistence.

The ladder is stored as one human-diffable JSON document. Writes go to a temp
file in the same directory, are fsynced, then renamed over the target, so the
next load sees either the previous or the new document and never a torn one.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Sequence, Union

from .exceptions import StateCorrupt
from .grid import PRICE_EPSILON, GridLevel, GridLevelSet

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = "grid_state.json"


class StateStore:
    """
    Loads, merges and persists a :class:`GridLevelSet`.

    Example:
        store = StateStore("grid_state.json")
        levels = store.load(grid_prices(0.001, 0.002, 10))
        ...
        store.save(levels)
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_STATE_PATH, epsilon: float = PRICE_EPSILON):
        self.path = Path(path).expanduser()
        self.epsilon = epsilon

    @property
    def tmp_path(self) -> Path:
        return self.path.with_name(self.path.name + ".tmp")

    def load(self, prices: Sequence[float]) -> GridLevelSet:
        """
        Build a fresh ladder from ``prices`` and carry over fills from disk.

        Only persisted levels with ``bought = true`` are considered; each is
        copied onto the fresh level whose price matches within the relative
        tolerance ``epsilon``. Persisted levels without a match (the ladder
        geometry changed) are dropped. The merged ladder is written back before
        returning, so a missing or corrupt file heals into an all-empty ladder.
        """
        levels = GridLevelSet.from_prices(prices)

        try:
            previous = self._read()
        except StateCorrupt as e:
            logger.warning(f"Ignoring unreadable grid state {self.path}: {e}")
            previous = None

        if previous:
            for raw in previous:
                if not isinstance(raw, dict) or not raw.get("bought"):
                    continue
                try:
                    persisted = GridLevel.from_dict(raw)
                except (KeyError, TypeError, ValueError):
                    logger.warning(f"Skipping malformed persisted level: {raw!r}")
                    continue

                index = levels.find(persisted.price, self.epsilon)
                if index is None:
                    logger.warning(f"Dropping filled level {persisted.price:.9f}: no matching price in current ladder")
                    continue
                if levels[index].bought:
                    continue
                levels = levels.mark_bought(index, persisted.filled_amount)

        self.save(levels)
        return levels

    def save(self, levels: GridLevelSet):
        """Atomically replace the persisted ladder"""
        tmp_path = self.tmp_path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(tmp_path, "w") as f:
                json.dump(levels.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            if tmp_path.exists():
                tmp_path.unlink()
            raise

    def _read(self) -> Optional[list]:
        """Persisted ``levels`` list, or None when there is no prior state"""
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StateCorrupt(str(e)) from e

        if not isinstance(data, dict) or not isinstance(data.get("levels"), list):
            raise StateCorrupt("expected an object with a 'levels' list")
        return data["levels"]

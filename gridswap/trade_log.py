"""CSV ledger of executed grid trades."""

import csv
import logging
import time
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

HEADER = ["Timestamp", "Action", "Price", "Amount", "Quote Balance", "Base Balance"]


class TradeLog:
    """Appends one row per confirmed trade; the header is written on first use."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def record(self, action: str, price: float, amount: int, quote_balance: float, base_balance: float) -> bool:
        """
        Append a trade row.

        Returns:
            True if written. A failed write is logged; the trade already happened
            and the bot keeps running.
        """
        row = [
            time.strftime("%Y-%m-%d %H:%M:%S"),
            action,
            f"{price:.9f}",
            str(amount),
            f"{quote_balance:.9f}",
            f"{base_balance:.9f}",
        ]
        try:
            new_file = not self.path.exists()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", newline="") as f:
                writer = csv.writer(f)
                if new_file:
                    writer.writerow(HEADER)
                writer.writerow(row)
        except OSError as e:
            logger.error(f"Trade log write failed for {self.path}: {e}")
            return False
        logger.debug(f"Logged trade: {','.join(row)}")
        return True

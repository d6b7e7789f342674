"""
In-memory implementation of the bar store

Used for local runs and tests. Bars are kept per symbol in timestamp order.
"""

import bisect
import logging
from datetime import datetime

from core.exceptions import OutOfOrderBarError
from core.interfaces.store import BaseBarStore
from core.models.market_data import Bar

logger = logging.getLogger(__name__)


class InMemoryBarStore(BaseBarStore):
    """
    In-memory bar store

    Features:
    - Append-only per symbol (timestamps must strictly increase)
    - Range queries via binary search
    - replace_history() for backfills/corrections (followed by engine invalidation)
    """

    def __init__(self, bars: list[Bar] | None = None):
        self._bars: dict[str, list[Bar]] = {}
        self._timestamps: dict[str, list[datetime]] = {}
        if bars:
            self.add_bars(bars)

    async def connect(self) -> None:
        logger.info("✓ Using in-memory bar store")

    def add_bar(self, bar: Bar) -> None:
        """
        Append one bar

        Raises:
            OutOfOrderBarError: If the bar does not come after the symbol's last bar
        """
        timestamps = self._timestamps.setdefault(bar.symbol, [])
        if timestamps and bar.timestamp <= timestamps[-1]:
            raise OutOfOrderBarError(
                f"Out-of-order bar for {bar.symbol}: {bar.timestamp} is not after {timestamps[-1]}"
            )
        timestamps.append(bar.timestamp)
        self._bars.setdefault(bar.symbol, []).append(bar)

    def add_bars(self, bars: list[Bar]) -> int:
        """Append many bars (sorted by timestamp first)"""
        for bar in sorted(bars, key=lambda b: b.timestamp):
            self.add_bar(bar)
        return len(bars)

    def replace_history(self, symbol: str, bars: list[Bar]) -> None:
        """Replace a symbol's whole history (backfill / correction)"""
        symbol = symbol.upper()
        ordered = sorted(bars, key=lambda b: b.timestamp)
        self._bars[symbol] = ordered
        self._timestamps[symbol] = [b.timestamp for b in ordered]
        logger.info(f"✓ Replaced history for {symbol}: {len(ordered)} bars")

    def symbols(self) -> list[str]:
        return sorted(self._bars)

    async def get_bars(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Bar]:
        symbol = symbol.upper()
        bars = self._bars.get(symbol, [])
        timestamps = self._timestamps.get(symbol, [])

        lo = bisect.bisect_left(timestamps, start) if start is not None else 0
        hi = bisect.bisect_right(timestamps, end) if end is not None else len(bars)
        return bars[lo:hi]

    async def get_latest_bars(self, symbol: str, n: int) -> list[Bar]:
        if n <= 0:
            return []
        return self._bars.get(symbol.upper(), [])[-n:]

    async def close(self) -> None:
        logger.info("✓ In-memory bar store closed")

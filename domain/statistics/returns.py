"""
Return series

Log returns derived from daily closes. One series per (symbol, window) is
built per update and shared by every statistic that needs it.
"""

from dataclasses import dataclass
from datetime import datetime

import numpy as np

from core.exceptions import DegenerateInputError
from core.models.market_data import Bar


@dataclass(frozen=True)
class ReturnSeries:
    """
    Closes and log returns of one symbol

    returns[i] = ln(closes[i + 1] / closes[i]), stamped with timestamps[i + 1]
    """

    symbol: str
    timestamps: tuple[datetime, ...]
    closes: np.ndarray
    returns: np.ndarray

    @classmethod
    def from_bars(cls, symbol: str, bars: list[Bar]) -> "ReturnSeries":
        """
        Build from bars ordered by timestamp ASC

        Raises:
            DegenerateInputError: If any close is not positive
        """
        closes = np.array([b.close for b in bars], dtype=float)
        if np.any(closes <= 0):
            raise DegenerateInputError(f"{symbol}: Non-positive close in price history")

        returns = np.diff(np.log(closes)) if len(closes) > 1 else np.empty(0)
        return cls(
            symbol=symbol,
            timestamps=tuple(b.timestamp for b in bars),
            closes=closes,
            returns=returns,
        )

    @property
    def latest_timestamp(self) -> datetime | None:
        return self.timestamps[-1] if self.timestamps else None

    @property
    def return_timestamps(self) -> tuple[datetime, ...]:
        return self.timestamps[1:]

    def __len__(self) -> int:
        return len(self.returns)

    def tail(self, window: int) -> "ReturnSeries":
        """Last `window` returns (and the window + 1 closes behind them)"""
        if len(self.returns) <= window:
            return self
        return ReturnSeries(
            symbol=self.symbol,
            timestamps=self.timestamps[-(window + 1) :],
            closes=self.closes[-(window + 1) :],
            returns=self.returns[-window:],
        )

    def align(self, other: "ReturnSeries", window: int | None = None) -> tuple[np.ndarray, np.ndarray]:
        """
        Pair returns of both series on their common timestamps

        Returns:
            (own returns, other returns), oldest first, last `window` pairs
        """
        other_index = {ts: i for i, ts in enumerate(other.return_timestamps)}
        own_idx, other_idx = [], []
        for i, ts in enumerate(self.return_timestamps):
            j = other_index.get(ts)
            if j is not None:
                own_idx.append(i)
                other_idx.append(j)

        a = self.returns[own_idx]
        b = other.returns[other_idx]
        if window is not None:
            a, b = a[-window:], b[-window:]
        return a, b

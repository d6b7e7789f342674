"""
Price level indicators

Implementations:
- SupportResistance: pivot highs/lows over a lookback window
"""

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from core.interfaces.indicators import BaseIndicator
from core.models.market_data import Bar
from core.models.metrics import (
    MetricKind,
    PivotLevel,
    SupportResistanceParams,
    SupportResistanceValue,
)


class SupportResistance(BaseIndicator):
    """
    Support and resistance from local extrema

    A bar is a pivot high when its high is the maximum of the highs within
    ±pivot_width bars, a pivot low when its low is the minimum of the lows.
    Only bars with a full neighbourhood on both sides qualify.

    Recomputed from scratch on every call (no incremental form).

    Example:
        >>> sr = SupportResistance(SupportResistanceParams(lookback=90, pivot_width=2))
        >>> value = sr.calculate(bars)
        >>> value.resistance[0]  # most recent pivot high
    """

    kind = MetricKind.SUPPORT_RESISTANCE

    def __init__(self, params: SupportResistanceParams):
        super().__init__(params)
        self.lookback = params.lookback
        self.pivot_width = params.pivot_width
        self.max_levels = params.max_levels

    def required_bars(self) -> int:
        return self.lookback

    def calculate(self, bars: list[Bar]) -> SupportResistanceValue:
        window = 2 * self.pivot_width + 1
        bars = bars[-self.lookback :]
        self.validate_input(bars, window)

        highs = np.array([b.high for b in bars], dtype=float)
        lows = np.array([b.low for b in bars], dtype=float)

        # Row i covers bars[i : i + window]; its centre is bar i + pivot_width
        centre = slice(self.pivot_width, len(bars) - self.pivot_width)
        is_high = highs[centre] == sliding_window_view(highs, window).max(axis=1)
        is_low = lows[centre] == sliding_window_view(lows, window).min(axis=1)

        high_idx = (np.flatnonzero(is_high) + self.pivot_width)[::-1][: self.max_levels]
        low_idx = (np.flatnonzero(is_low) + self.pivot_width)[::-1][: self.max_levels]

        pivots = [
            PivotLevel(timestamp=bars[i].timestamp, price=bars[i].high, side="high")
            for i in high_idx
        ] + [
            PivotLevel(timestamp=bars[i].timestamp, price=bars[i].low, side="low")
            for i in low_idx
        ]
        pivots.sort(key=lambda p: p.timestamp, reverse=True)

        return SupportResistanceValue(
            support=[bars[i].low for i in low_idx],
            resistance=[bars[i].high for i in high_idx],
            pivots=pivots,
        )

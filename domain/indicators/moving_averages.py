"""
Moving average indicators

Implementations:
- SMA: Simple Moving Average (rolling sum, O(1) per bar)
- EMA: Exponential Moving Average (SMA-seeded, O(1) per bar)

ExponentialAverage is the shared accumulator, also used by MACD.
"""

import logging
from collections import deque
from dataclasses import dataclass, field

import numpy as np
import talib

from core.interfaces.indicators import EngineState, IncrementalIndicator
from core.models.market_data import Bar
from core.models.metrics import EmaParams, MetricKind, SmaParams

logger = logging.getLogger(__name__)

# Rolling sums are recomputed from the window this often to bound float drift
RESUM_INTERVAL = 1000


@dataclass
class ExponentialAverage:
    """
    SMA-seeded exponential average of a scalar stream

    Formula: EMA_t = (x_t - EMA_{t-1}) × multiplier + EMA_{t-1}
    where multiplier = 2 / (period + 1), EMA seeded with the mean of the first `period` values
    """

    period: int
    count: int = 0
    seed_sum: float = 0.0
    value: float | None = None

    @property
    def multiplier(self) -> float:
        return 2.0 / (self.period + 1)

    @property
    def ready(self) -> bool:
        return self.value is not None

    def push(self, x: float) -> float | None:
        """Fold one value, return the average (None until `period` values seen)"""
        self.count += 1
        if self.value is None:
            self.seed_sum += x
            if self.count == self.period:
                self.value = self.seed_sum / self.period
            return self.value

        self.value = (x - self.value) * self.multiplier + self.value
        return self.value


@dataclass
class SmaState(EngineState):
    window: deque = field(default_factory=deque)
    total: float = 0.0
    updates_since_resum: int = 0


@dataclass
class EmaState(EngineState):
    average: ExponentialAverage | None = None


class SMA(IncrementalIndicator):
    """
    Simple Moving Average

    Formula: SMA = SUM(Close) / N

    Incremental path keeps the last N closes and a running sum.
    Full path only reads the last N closes (TA-Lib).

    Example:
        >>> sma = SMA(SmaParams(period=20))
        >>> value = sma.calculate(bars)
    """

    kind = MetricKind.SMA

    def __init__(self, params: SmaParams):
        super().__init__(params)
        self.period = params.period

    def required_bars(self) -> int:
        return self.period

    def minimum_bars(self) -> int:
        return self.period

    def new_state(self) -> SmaState:
        return SmaState(window=deque(maxlen=self.period))

    def update(self, state: SmaState, bar: Bar) -> float | None:
        if len(state.window) == self.period:
            state.total -= state.window[0]
        state.window.append(bar.close)
        state.total += bar.close
        state.updates_since_resum += 1

        if state.updates_since_resum >= RESUM_INTERVAL:
            state.total = float(sum(state.window))
            state.updates_since_resum = 0

        if len(state.window) < self.period:
            return None
        return state.total / self.period

    def calculate(self, bars: list[Bar]) -> float:
        """Calculate SMA over the most recent `period` closes"""
        self.validate_input(bars, self.period)

        closes = np.array([b.close for b in bars[-self.period :]], dtype=float)
        sma_values = talib.SMA(closes, timeperiod=self.period)

        return float(sma_values[-1])


class EMA(IncrementalIndicator):
    """
    Exponential Moving Average

    Formula: EMA = α × Price + (1-α) × EMA_prev
    where α = 2 / (period + 1), seeded with SMA(period) over the first `period` bars

    Note:
        The value depends on the full history. Cold start replays every stored
        bar so it matches the warm incremental path exactly.

    Example:
        >>> ema = EMA(EmaParams(period=12))
        >>> state, value = ema.replay(bars)
        >>> value = ema.step(state, new_bar)
    """

    kind = MetricKind.EMA

    def __init__(self, params: EmaParams):
        super().__init__(params)
        self.period = params.period

    def minimum_bars(self) -> int:
        return self.period

    def new_state(self) -> EmaState:
        return EmaState(average=ExponentialAverage(self.period))

    def update(self, state: EmaState, bar: Bar) -> float | None:
        return state.average.push(bar.close)

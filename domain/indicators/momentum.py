"""
Momentum indicators

Implementations:
- RSI: Relative Strength Index (Wilder's smoothing)
- MACD: Moving Average Convergence Divergence
"""

import logging
from dataclasses import dataclass

from core.interfaces.indicators import EngineState, IncrementalIndicator
from core.models.market_data import Bar
from core.models.metrics import MacdParams, MacdValue, MetricKind, RsiParams
from domain.indicators.moving_averages import ExponentialAverage

logger = logging.getLogger(__name__)


@dataclass
class RsiState(EngineState):
    prev_close: float | None = None
    changes: int = 0
    gain_sum: float = 0.0
    loss_sum: float = 0.0
    avg_gain: float | None = None
    avg_loss: float | None = None


@dataclass
class MacdState(EngineState):
    fast: ExponentialAverage | None = None
    slow: ExponentialAverage | None = None
    signal: ExponentialAverage | None = None


class RSI(IncrementalIndicator):
    """
    Relative Strength Index

    Formula: RSI = 100 - (100 / (1 + RS))
    where RS = Average Gain / Average Loss

    Averages are seeded with the simple mean of the first `period` changes,
    then smoothed: avg_t = (avg_{t-1} × (period - 1) + x_t) / period

    RSI is 100 when the average loss is zero.

    Range: 0-100
    - RSI > 70: Overbought
    - RSI < 30: Oversold

    Example:
        >>> rsi = RSI(RsiParams(period=14))
        >>> value = rsi.calculate(bars)  # needs 15 bars
    """

    kind = MetricKind.RSI

    def __init__(self, params: RsiParams):
        super().__init__(params)
        self.period = params.period

    def minimum_bars(self) -> int:
        return self.period + 1

    def new_state(self) -> RsiState:
        return RsiState()

    def update(self, state: RsiState, bar: Bar) -> float | None:
        if state.prev_close is None:
            state.prev_close = bar.close
            return None

        change = bar.close - state.prev_close
        gain = change if change > 0 else 0.0
        loss = -change if change < 0 else 0.0
        state.prev_close = bar.close
        state.changes += 1

        if state.avg_gain is None:
            state.gain_sum += gain
            state.loss_sum += loss
            if state.changes < self.period:
                return None
            state.avg_gain = state.gain_sum / self.period
            state.avg_loss = state.loss_sum / self.period
        else:
            state.avg_gain = (state.avg_gain * (self.period - 1) + gain) / self.period
            state.avg_loss = (state.avg_loss * (self.period - 1) + loss) / self.period

        return self._rsi(state.avg_gain, state.avg_loss)

    @staticmethod
    def _rsi(avg_gain: float, avg_loss: float) -> float:
        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        value = 100.0 - 100.0 / (1.0 + rs)
        return min(100.0, max(0.0, value))


class MACD(IncrementalIndicator):
    """
    Moving Average Convergence Divergence

    Components:
    - MACD Line: EMA(fast) - EMA(slow)
    - Signal Line: EMA(signal) of MACD Line
    - Histogram: MACD Line - Signal Line

    Three independent exponential averages; the signal average starts once
    the slow average is seeded.

    Example:
        >>> macd = MACD(MacdParams(fast=12, slow=26, signal=9))
        >>> value = macd.calculate(bars)  # needs 34 bars
        >>> value.histogram
    """

    kind = MetricKind.MACD

    def __init__(self, params: MacdParams):
        super().__init__(params)
        self.fast_period = params.fast
        self.slow_period = params.slow
        self.signal_period = params.signal

    def minimum_bars(self) -> int:
        return self.slow_period + self.signal_period - 1

    def new_state(self) -> MacdState:
        return MacdState(
            fast=ExponentialAverage(self.fast_period),
            slow=ExponentialAverage(self.slow_period),
            signal=ExponentialAverage(self.signal_period),
        )

    def update(self, state: MacdState, bar: Bar) -> MacdValue | None:
        fast = state.fast.push(bar.close)
        slow = state.slow.push(bar.close)
        if fast is None or slow is None:
            return None

        macd_line = fast - slow
        signal = state.signal.push(macd_line)
        if signal is None:
            return None

        return MacdValue(macd=macd_line, signal=signal, histogram=macd_line - signal)

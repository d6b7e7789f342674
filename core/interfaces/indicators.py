"""
Abstract interface for technical indicators

Two flavours:
- BaseIndicator: declarative, recomputed from a window of bars each call
- IncrementalIndicator: carries running state (EngineState) and advances it
  one bar at a time; full computation is a replay of the same step
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, ClassVar

from core.exceptions import InsufficientDataError
from core.models.market_data import Bar
from core.models.metrics import MetricKind, MetricParams


@dataclass
class EngineState:
    """
    Running accumulator for one (symbol, metric, params) triple

    Owned exclusively by the symbol's recompute stream. Never exposed to readers.
    """

    as_of: datetime | None = None
    bars_seen: int = 0
    last_value: Any = None

    def snapshot(self) -> "EngineState":
        """Deep copy used to apply updates atomically"""
        return copy.deepcopy(self)


class BaseIndicator(ABC):
    """
    Indicator interface

    Design principle:
    - Pure calculation logic (no storage dependency)
    - Testable with in-memory bars
    - History requirement declared up front so the caller can fetch it

    Implementations:
    - SMA, EMA (domain/indicators/moving_averages.py)
    - RSI, MACD (domain/indicators/momentum.py)
    - BollingerBands (domain/indicators/bands.py)
    - SupportResistance (domain/indicators/levels.py)
    - PriceChange, Performance (domain/indicators/price.py)
    """

    kind: ClassVar[MetricKind]
    incremental: ClassVar[bool] = False

    # Calendar span of history needed instead of a bar count (None = use required_bars)
    lookback_span: ClassVar[timedelta | None] = None

    def __init__(self, params: MetricParams):
        self.params = params
        self.name = self.__class__.__name__

    @abstractmethod
    def required_bars(self) -> int | None:
        """
        Number of most recent bars needed for a full computation

        Returns:
            Bar count, or None when the full stored history is needed
        """

    @abstractmethod
    def calculate(self, bars: list[Bar]) -> Any:
        """
        Calculate indicator from bars

        Args:
            bars: Bars ordered by timestamp ASC (oldest first)

        Returns:
            Most recent indicator value

        Raises:
            InsufficientDataError: Not enough bars for the window
        """

    def validate_input(self, bars: list[Bar], required: int) -> None:
        """
        Validate input bars

        Raises:
            InsufficientDataError: If fewer than `required` bars are supplied
        """
        if len(bars) < required:
            raise InsufficientDataError(f"{self!r}: Need {required} bars, got {len(bars)}")

    def __repr__(self) -> str:
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.model_dump().items())
        return f"{self.name}({params_str})"


class IncrementalIndicator(BaseIndicator):
    """
    Indicator with O(1) per-bar update from prior state

    Cold start (no state) replays history through `step()`, so a full
    recompute produces exactly what the warm incremental path produces.
    """

    incremental = True

    def required_bars(self) -> int | None:
        return None

    @abstractmethod
    def new_state(self) -> EngineState:
        """Fresh, empty accumulator"""

    @abstractmethod
    def update(self, state: EngineState, bar: Bar) -> Any:
        """
        Fold one bar into the state

        Returns:
            New indicator value, or None while still warming up
        """

    @abstractmethod
    def minimum_bars(self) -> int:
        """Bars needed before the first value is produced"""

    def step(self, state: EngineState, bar: Bar) -> Any:
        """
        Advance state by one bar, ignoring bars already applied

        Returns:
            Current indicator value (None while warming up)
        """
        if state.as_of is not None and bar.timestamp <= state.as_of:
            return state.last_value

        value = self.update(state, bar)
        state.as_of = bar.timestamp
        state.bars_seen += 1
        state.last_value = value
        return value

    def replay(self, bars: list[Bar], state: EngineState | None = None) -> tuple[EngineState, Any]:
        """
        Build (or extend) state from a bar sequence

        Returns:
            (state, latest value)

        Raises:
            InsufficientDataError: If the state is still warming up after replay
        """
        state = state if state is not None else self.new_state()
        value = state.last_value
        for bar in bars:
            value = self.step(state, bar)

        if value is None:
            raise InsufficientDataError(
                f"{self!r}: Need {self.minimum_bars()} bars, got {state.bars_seen}"
            )
        return state, value

    def calculate(self, bars: list[Bar]) -> Any:
        """Full computation = replay from an empty state"""
        _, value = self.replay(bars)
        return value

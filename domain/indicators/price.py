"""
Price summary indicators

Implementations:
- PriceChange: latest bar vs previous close, gap, day range, VWAP
- Performance: percent returns over calendar periods + 52-week range
"""

from datetime import UTC, datetime, timedelta

from core.interfaces.indicators import BaseIndicator
from core.models.market_data import Bar
from core.models.metrics import (
    MetricKind,
    PerformanceParams,
    PerformanceValue,
    PriceChangeParams,
    PriceChangeValue,
)

# Calendar offsets (days) for each reported performance period
PERFORMANCE_PERIODS: dict[str, int] = {
    "one_day": 1,
    "one_week": 7,
    "one_month": 30,
    "three_month": 90,
    "six_month": 180,
    "one_year": 365,
}


class PriceChange(BaseIndicator):
    """
    Latest-bar price metrics

    - price_change = close - previous close
    - change_percent = price_change / previous close × 100
    - gap_percent = (open - previous close) / previous close × 100
    - vwap = Σ(typical price × volume) / Σ volume over the last `vwap_window` bars

    Example:
        >>> pc = PriceChange(PriceChangeParams(vwap_window=5))
        >>> pc.calculate(bars).change_percent
    """

    kind = MetricKind.PRICE_CHANGE

    def __init__(self, params: PriceChangeParams):
        super().__init__(params)
        self.vwap_window = params.vwap_window

    def required_bars(self) -> int:
        return max(2, self.vwap_window)

    def calculate(self, bars: list[Bar]) -> PriceChangeValue:
        self.validate_input(bars, 2)

        latest, previous = bars[-1], bars[-2]
        change = latest.close - previous.close

        return PriceChangeValue(
            close=latest.close,
            previous_close=previous.close,
            price_change=change,
            change_percent=change / previous.close * 100,
            gap_percent=(latest.open - previous.close) / previous.close * 100,
            day_high=latest.high,
            day_low=latest.low,
            vwap=self._vwap(bars[-self.vwap_window :]),
        )

    @staticmethod
    def _vwap(bars: list[Bar]) -> float:
        total_volume = sum(b.volume for b in bars)
        if total_volume == 0:
            # No volume reported: plain mean of typical prices
            return sum(b.typical_price for b in bars) / len(bars)
        return sum(b.typical_price * b.volume for b in bars) / total_volume


class Performance(BaseIndicator):
    """
    Period performance

    Each return is (latest close - start close) / start close × 100, where the
    start bar is the first bar on or after (latest bar date - offset).
    A period is None when the stored history does not reach back to its start.
    Year-to-date starts on January 1st of the latest bar's year.
    """

    kind = MetricKind.PERFORMANCE
    # A little over a year so the one-year start bar is always in range
    lookback_span = timedelta(days=372)

    def __init__(self, params: PerformanceParams):
        super().__init__(params)

    def required_bars(self) -> None:
        return None

    def calculate(self, bars: list[Bar]) -> PerformanceValue:
        self.validate_input(bars, 1)

        latest = bars[-1]
        year_window = [b for b in bars if b.timestamp >= latest.timestamp - timedelta(days=365)]

        returns = {
            name: self._period_return(bars, latest.timestamp - timedelta(days=days), latest.close)
            for name, days in PERFORMANCE_PERIODS.items()
        }
        year_start = datetime(latest.timestamp.year, 1, 1, tzinfo=UTC)

        return PerformanceValue(
            **returns,
            year_to_date=self._period_return(bars, year_start, latest.close),
            fifty_two_week_high=max(b.high for b in year_window),
            fifty_two_week_low=min(b.low for b in year_window),
        )

    @staticmethod
    def _period_return(bars: list[Bar], start: datetime, current: float) -> float | None:
        if bars[0].timestamp > start:
            return None
        start_bar = next(b for b in bars if b.timestamp >= start)
        return (current - start_bar.close) / start_bar.close * 100

"""
Volatility band indicators

Implementations:
- BollingerBands: SMA ± k × population standard deviation
"""

import numpy as np
import talib

from core.interfaces.indicators import BaseIndicator
from core.models.market_data import Bar
from core.models.metrics import BollingerParams, BollingerValue, MetricKind


class BollingerBands(BaseIndicator):
    """
    Bollinger Bands

    Formula:
    - Middle = SMA(period)
    - Upper/Lower = Middle ± std_dev_multiplier × σ (population σ over the same window)
    - Width = (Upper - Lower) / Middle × 100

    Example:
        >>> bb = BollingerBands(BollingerParams(period=20, std_dev_multiplier=2.0))
        >>> value = bb.calculate(bars)
        >>> value.lower <= value.middle <= value.upper
        True
    """

    kind = MetricKind.BOLLINGER

    def __init__(self, params: BollingerParams):
        super().__init__(params)
        self.period = params.period
        self.multiplier = params.std_dev_multiplier

    def required_bars(self) -> int:
        return self.period

    def calculate(self, bars: list[Bar]) -> BollingerValue:
        self.validate_input(bars, self.period)

        closes = np.array([b.close for b in bars[-self.period :]], dtype=float)
        upper, middle, lower = talib.BBANDS(
            closes,
            timeperiod=self.period,
            nbdevup=self.multiplier,
            nbdevdn=self.multiplier,
            matype=0,
        )
        upper, middle, lower = float(upper[-1]), float(middle[-1]), float(lower[-1])

        # TA-Lib can leave the bands a few ulps inside the middle on flat input
        upper = max(upper, middle)
        lower = min(lower, middle)

        return BollingerValue(
            upper=upper,
            middle=middle,
            lower=lower,
            width=(upper - lower) / middle * 100,
        )

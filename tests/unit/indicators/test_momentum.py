"""
Unit tests for momentum indicators

RSI verified against Wilder's textbook dataset and talib.RSI,
MACD verified for internal consistency with its component EMAs
"""

import numpy as np
import pytest
import talib

from core.exceptions import InsufficientDataError
from core.models.metrics import EmaParams, MacdParams, MacdValue, RsiParams
from domain.indicators.momentum import MACD, RSI
from domain.indicators.moving_averages import EMA


class TestRSI:
    """Test Relative Strength Index"""

    def test_rsi_textbook_first_value(self, bars_factory, known_closes):
        """First RSI(14) of the textbook dataset"""
        bars = bars_factory(known_closes[:15])

        result = RSI(RsiParams(period=14)).calculate(bars)

        # avg gain 3.34 / 14, avg loss 1.40 / 14
        assert result == pytest.approx(70.464, abs=0.01)

    def test_rsi_matches_talib(self, bars_factory, known_closes):
        bars = bars_factory(known_closes)

        result = RSI(RsiParams(period=14)).calculate(bars)
        expected = talib.RSI(np.array(known_closes, dtype=float), timeperiod=14)[-1]

        assert result == pytest.approx(expected, rel=1e-9)

    def test_rsi_all_gains_is_100(self, bars_factory):
        """No losses in the window → RSI = 100"""
        bars = bars_factory([100.0 + i for i in range(20)])

        assert RSI(RsiParams(period=14)).calculate(bars) == 100.0

    def test_rsi_all_losses_is_0(self, bars_factory):
        bars = bars_factory([200.0 - i for i in range(20)])

        assert RSI(RsiParams(period=14)).calculate(bars) == pytest.approx(0.0)

    def test_rsi_within_range(self, bars_factory, known_closes):
        rsi = RSI(RsiParams(period=5))
        state = rsi.new_state()

        for bar in bars_factory(known_closes):
            value = rsi.step(state, bar)
            if value is not None:
                assert 0.0 <= value <= 100.0

    def test_rsi_needs_period_plus_one_bars(self, bars_factory):
        rsi = RSI(RsiParams(period=14))

        assert rsi.minimum_bars() == 15
        with pytest.raises(InsufficientDataError):
            rsi.calculate(bars_factory([100.0 + i for i in range(14)]))

    def test_incremental_matches_full(self, bars_factory, known_closes):
        rsi = RSI(RsiParams(period=14))
        bars = bars_factory(known_closes)
        state, _ = rsi.replay(bars[:20])

        for i in range(20, len(bars)):
            assert rsi.step(state, bars[i]) == pytest.approx(rsi.calculate(bars[: i + 1]))


class TestMACD:
    """Test MACD"""

    def test_macd_components_consistent(self, bars_factory, known_closes):
        """MACD line = EMA(fast) - EMA(slow), histogram = MACD - signal"""
        bars = bars_factory(known_closes)
        value = MACD(MacdParams(fast=3, slow=6, signal=4)).calculate(bars)

        fast = EMA(EmaParams(period=3)).calculate(bars)
        slow = EMA(EmaParams(period=6)).calculate(bars)

        assert isinstance(value, MacdValue)
        assert value.macd == pytest.approx(fast - slow, rel=1e-9)
        assert value.histogram == pytest.approx(value.macd - value.signal, rel=1e-9)

    def test_macd_minimum_bars(self, bars_factory, known_closes):
        """Needs slow + signal - 1 bars"""
        macd = MACD(MacdParams(fast=3, slow=6, signal=4))

        assert macd.minimum_bars() == 9
        with pytest.raises(InsufficientDataError):
            macd.calculate(bars_factory(known_closes[:8]))
        assert macd.calculate(bars_factory(known_closes[:9])) is not None

    def test_macd_default_needs_34_bars(self):
        assert MACD(MacdParams()).minimum_bars() == 34

    def test_incremental_matches_full(self, bars_factory, known_closes):
        macd = MACD(MacdParams(fast=3, slow=6, signal=4))
        bars = bars_factory(known_closes)
        state, _ = macd.replay(bars[:12])

        for i in range(12, len(bars)):
            warm = macd.step(state, bars[i])
            full = macd.calculate(bars[: i + 1])
            assert warm.macd == pytest.approx(full.macd)
            assert warm.signal == pytest.approx(full.signal)

"""
Unit tests for EMA fan scoring, ranking and summary
"""

import pytest

from core.models.metrics import EmaFanValue
from domain.indicators.fan import rank_ema_fans, score_ema_fan, summarize_ema_fans


def fan(symbol: str, emas: list[float | None]) -> EmaFanValue:
    score, is_perfect, fan_strength = score_ema_fan(emas)
    return EmaFanValue(
        symbol=symbol,
        latest_price=emas[0],
        emas=dict(zip([18, 50, 100, 200], emas)),
        score=score,
        is_perfect=is_perfect,
        fan_strength=fan_strength,
    )


class TestScore:
    def test_perfect_fan(self):
        score, is_perfect, strength = score_ema_fan([110.0, 105.0, 100.0, 95.0])

        assert score == 3
        assert is_perfect
        expected = (5 / 105 + 5 / 100 + 5 / 95) / 3 * 100
        assert strength == pytest.approx(expected)

    def test_partial_fan_counts_from_shortest(self):
        assert score_ema_fan([110.0, 105.0, 106.0, 95.0]) == (1, False, None)
        assert score_ema_fan([110.0, 105.0, 100.0, 101.0]) == (2, False, None)

    def test_broken_first_pair_scores_zero(self):
        # Later pairs in order do not count once the shortest pair fails
        assert score_ema_fan([100.0, 105.0, 100.0, 95.0]) == (0, False, None)

    def test_equal_emas_are_not_ordered(self):
        assert score_ema_fan([100.0, 100.0, 90.0, 80.0]) == (0, False, None)

    def test_missing_ema_scores_zero(self):
        assert score_ema_fan([110.0, 105.0, 100.0, None]) == (0, False, None)
        assert score_ema_fan([110.0]) == (0, False, None)


class TestRanking:
    def test_score_then_strength_then_symbol(self):
        values = [
            fan("AAA", [100.0, 105.0, 100.0, 95.0]),
            fan("WIDE", [120.0, 105.0, 100.0, 95.0]),
            fan("TIGHT", [101.0, 100.5, 100.0, 99.5]),
            fan("TWO", [110.0, 105.0, 100.0, 101.0]),
            fan("AA", [None, None, None, None]),
        ]

        ranked = rank_ema_fans(values)

        assert [v.symbol for v in ranked] == ["WIDE", "TIGHT", "TWO", "AA", "AAA"]
        assert [v.symbol for v in rank_ema_fans(values, limit=2)] == ["WIDE", "TIGHT"]


class TestSummary:
    def test_summary(self):
        values = [
            fan("A", [110.0, 105.0, 100.0, 95.0]),
            fan("B", [120.0, 110.0, 100.0, 90.0]),
            fan("C", [110.0, 105.0, 106.0, 95.0]),
        ]

        summary = summarize_ema_fans(values)

        assert summary.total_analyzed == 3
        assert summary.perfect_count == 2
        assert summary.perfect_percentage == pytest.approx(66.67)
        assert summary.score_distribution == {3: 2, 1: 1}
        assert summary.average_fan_strength == pytest.approx(
            (values[0].fan_strength + values[1].fan_strength) / 2
        )

    def test_empty(self):
        summary = summarize_ema_fans([])

        assert summary.total_analyzed == 0
        assert summary.perfect_percentage == 0.0
        assert summary.average_fan_strength == 0.0
        assert summary.score_distribution == {}

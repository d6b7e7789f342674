"""
EMA fan analysis

A symbol shows an EMA fan when its EMAs are stacked shortest period on top,
e.g. EMA18 > EMA50 > EMA100 > EMA200. Built on top of EMA results, it has no
state of its own.

Scoring:
- score: consecutive orderings satisfied, starting from the shortest pair
  (0..len(periods) - 1); any missing EMA scores 0
- fan_strength: mean percent spacing between adjacent EMAs, perfect fans only
"""

from core.models.metrics import EmaFanSummary, EmaFanValue


def score_ema_fan(emas: list[float | None]) -> tuple[int, bool, float | None]:
    """
    Score EMA values ordered from shortest to longest period

    Returns:
        (score, is_perfect, fan_strength)

    Example:
        >>> score_ema_fan([110.0, 105.0, 100.0, 95.0])
        (3, True, 5.008...)
    """
    if len(emas) < 2 or any(v is None for v in emas):
        return 0, False, None

    score = 0
    for shorter, longer in zip(emas, emas[1:]):
        if shorter <= longer:
            break
        score += 1

    is_perfect = score == len(emas) - 1
    if not is_perfect:
        return score, False, None

    spacings = [(shorter - longer) / longer * 100 for shorter, longer in zip(emas, emas[1:])]
    return score, True, sum(spacings) / len(spacings)


def rank_ema_fans(values: list[EmaFanValue], limit: int | None = None) -> list[EmaFanValue]:
    """Best fans first: score, then fan strength (descending), then symbol"""
    ranked = sorted(values, key=lambda v: (-v.score, -(v.fan_strength or 0.0), v.symbol))
    return ranked if limit is None else ranked[:limit]


def summarize_ema_fans(values: list[EmaFanValue]) -> EmaFanSummary:
    total = len(values)
    perfect = sum(1 for v in values if v.is_perfect)

    distribution: dict[int, int] = {}
    for v in values:
        distribution[v.score] = distribution.get(v.score, 0) + 1

    strengths = [v.fan_strength for v in values if v.fan_strength is not None]

    return EmaFanSummary(
        total_analyzed=total,
        perfect_count=perfect,
        perfect_percentage=round(perfect / total * 100, 2) if total else 0.0,
        score_distribution=distribution,
        average_fan_strength=sum(strengths) / len(strengths) if strengths else 0.0,
    )

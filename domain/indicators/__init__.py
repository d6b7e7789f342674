"""
Technical indicators module

Exports:
- BaseIndicator, IncrementalIndicator (core/interfaces/indicators.py)
- Moving averages: SMA, EMA
- Momentum: RSI, MACD
- Bands: BollingerBands
- Levels: SupportResistance
- Price: PriceChange, Performance
- EMA fan: score_ema_fan, rank_ema_fans, summarize_ema_fans
"""

from core.interfaces.indicators import BaseIndicator, IncrementalIndicator
from domain.indicators.bands import BollingerBands
from domain.indicators.fan import rank_ema_fans, score_ema_fan, summarize_ema_fans
from domain.indicators.levels import SupportResistance
from domain.indicators.momentum import MACD, RSI
from domain.indicators.moving_averages import EMA, SMA
from domain.indicators.price import Performance, PriceChange

__all__ = [
    "BaseIndicator",
    "IncrementalIndicator",
    "SMA",
    "EMA",
    "RSI",
    "MACD",
    "BollingerBands",
    "SupportResistance",
    "PriceChange",
    "Performance",
    "score_ema_fan",
    "rank_ema_fans",
    "summarize_ema_fans",
]

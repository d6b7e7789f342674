"""Interfaces module - Abstract base classes for stores, feeds, publishers and engines"""

from .cache import BaseCalculationCache
from .feed import BaseBarFeed
from .indicators import BaseIndicator, EngineState, IncrementalIndicator
from .publisher import BaseEventPublisher, Subscription
from .statistics import BaseStatistic
from .store import BaseBarStore

__all__ = [
    "BaseBarStore",
    "BaseBarFeed",
    "BaseEventPublisher",
    "Subscription",
    "BaseCalculationCache",
    "BaseIndicator",
    "IncrementalIndicator",
    "EngineState",
    "BaseStatistic",
]

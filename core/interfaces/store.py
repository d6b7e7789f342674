from abc import ABC, abstractmethod
from datetime import datetime

from core.models.market_data import Bar


class BaseBarStore(ABC):
    """
    Read-only view over ordered bars per symbol

    The store is the source of truth for history and ordering.
    The analytics core never mutates it.

    Implementations:
    - InMemoryBarStore (local runs, tests)
    - ClickHouseBarStore (columnar OHLCV table)
    """

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection to storage"""

    @abstractmethod
    async def get_bars(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Bar]:
        """
        Get bars in a time range (used for cold start / full recompute)

        Args:
            symbol: Symbol
            start: Inclusive lower bound (None = from first bar)
            end: Inclusive upper bound (None = up to latest bar)

        Returns:
            Bars ordered by timestamp ASC
        """

    @abstractmethod
    async def get_latest_bars(self, symbol: str, n: int) -> list[Bar]:
        """
        Get the most recent N bars (used by window-based algorithms)

        Returns:
            Up to N bars ordered by timestamp ASC
        """

    @abstractmethod
    async def close(self) -> None:
        """Close connection"""

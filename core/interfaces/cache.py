from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from core.models.metrics import MetricKey, MetricKind, MetricResult


class BaseCalculationCache(ABC):
    """
    Abstract interface for the calculation cache

    Contract:
    - TTL per metric kind (configuration input)
    - Tag invalidation: every key carries its symbol (and benchmark) as tags
    - Single flight: concurrent misses for one key share one computation

    Implementations:
    - CalculationCache (in-process, services/analytics_service/cache.py)
    """

    @abstractmethod
    def get(self, key: MetricKey) -> tuple[MetricResult | None, bool]:
        """
        Look up a cached result

        Returns:
            (result, True) on a fresh hit
            (stale result, False) when the entry is flagged stale
            (None, False) when missing or expired
        """

    @abstractmethod
    def peek(self, key: MetricKey) -> MetricResult | None:
        """Cached result, fresh or stale (None when missing or expired)"""

    @abstractmethod
    def put(self, key: MetricKey, result: MetricResult, generation: tuple | None = None) -> bool:
        """
        Store a result

        Args:
            key: Metric key
            result: Computed result
            generation: Token from generation() taken before computing;
                the put is discarded if a tag was invalidated since

        Returns:
            True if stored, False if discarded (stale generation or older as_of)
        """

    @abstractmethod
    def generation(self, key: MetricKey) -> tuple:
        """Current generation token of the key's tags"""

    @abstractmethod
    def bump_generation(self, tag: str) -> None:
        """Reject puts from computations started before this point (entries kept)"""

    @abstractmethod
    def invalidate_tag(self, tag: str) -> list[MetricKey]:
        """
        Remove every entry carrying the tag

        Returns:
            Keys removed
        """

    @abstractmethod
    def invalidate_kind(self, tag: str, kind: MetricKind) -> list[MetricKey]:
        """
        Remove every entry of one kind carrying the tag

        Computations of that kind already running must not populate the cache.

        Returns:
            Keys removed
        """

    @abstractmethod
    def mark_stale(self, keys: list[MetricKey]) -> list[MetricKey]:
        """
        Flag cached entries stale (value kept, next reader recomputes)

        Returns:
            Keys that were present and flagged
        """

    @abstractmethod
    def keys_for_tag(self, tag: str) -> set[MetricKey]:
        """Keys currently cached under a tag"""

    @abstractmethod
    async def get_or_compute(
        self,
        key: MetricKey,
        compute: Callable[[], Awaitable[MetricResult]],
        timeout: float | None = None,
    ) -> MetricResult:
        """
        Cache-aside read with single-flight computation

        Raises:
            ComputationTimeoutError: If the bounded wait elapses
            AnalyticsError: Whatever the computation raised
        """

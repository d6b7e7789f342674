"""
Calculation Cache - TTL + tag invalidation + single flight

Strategy:
1. Fresh hit → return cached snapshot
2. Miss / expired / stale → join the in-flight computation for the key, or start one
3. Computation runs as a detached task; waiters get a bounded, shielded wait

Coherence:
- Every put carries a generation token captured before computing.
  invalidate_tag() bumps the generation of the tag, invalidate_kind() the
  generation of tag + kind, so a computation that started before the
  invalidation can never write its (older) result.
- Puts are monotonic: a result older (as_of) than the cached one is discarded.

Architecture:
    get_or_compute(key) →
        ├─ get() (hit → return)
        └─ _inflight[key] (shared future) ← _run() task → compute() → put()
"""

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from config.loader import CacheConfig
from core.exceptions import ComputationTimeoutError
from core.interfaces.cache import BaseCalculationCache
from core.models.metrics import MetricKey, MetricKind, MetricResult

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    result: MetricResult
    expires_at: float


class CalculationCache(BaseCalculationCache):
    """
    In-process calculation cache

    Single asyncio loop: reads never await, so they always see a complete
    MetricResult snapshot.

    Example:
        >>> cache = CalculationCache(config.cache)
        >>> result = await cache.get_or_compute(key, lambda: calculator.compute(key), timeout=5)
    """

    def __init__(self, config: CacheConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._clock = clock

        self._entries: dict[MetricKey, CacheEntry] = {}
        self._tags: dict[str, set[MetricKey]] = defaultdict(set)
        # Keyed by tag ("AAPL") and by tag + kind ("AAPL:EMA")
        self._generations: dict[str, int] = defaultdict(int)
        self._next_sweep = clock() + config.sweep_interval_seconds

        # Single flight
        self._inflight: dict[MetricKey, asyncio.Future] = {}
        self._tasks: set[asyncio.Task] = set()

        # Metrics
        self.hits = 0
        self.misses = 0
        self.computations = 0
        self.discarded_puts = 0
        self.timeouts = 0
        self.evictions = 0

    # ============================================
    # READ / WRITE
    # ============================================

    def get(self, key: MetricKey) -> tuple[MetricResult | None, bool]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None, False

        if self._clock() >= entry.expires_at:
            self._remove(key)
            self.misses += 1
            return None, False

        if entry.result.stale:
            self.misses += 1
            return entry.result, False

        self.hits += 1
        return entry.result, True

    def peek(self, key: MetricKey) -> MetricResult | None:
        """Cached result (fresh or stale) without touching hit/miss counters"""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._remove(key)
            self.evictions += 1
            return None
        return entry.result

    def generation(self, key: MetricKey) -> tuple:
        kind = key.kind.value
        return tuple(
            sorted(
                (tag, self._generations.get(tag, 0), self._generations.get(f"{tag}:{kind}", 0))
                for tag in key.tags
            )
        )

    def put(self, key: MetricKey, result: MetricResult, generation: tuple | None = None) -> bool:
        if generation is not None and generation != self.generation(key):
            self.discarded_puts += 1
            logger.debug(f"Discarding {key!r}: invalidated while computing")
            return False

        if self._clock() >= self._next_sweep:
            self.purge_expired()

        existing = self._entries.get(key)
        if (
            existing is not None
            and self._clock() < existing.expires_at
            and result.as_of < existing.result.as_of
        ):
            self.discarded_puts += 1
            logger.debug(
                f"Discarding {key!r}: as_of {result.as_of} older than cached {existing.result.as_of}"
            )
            return False

        ttl = self.config.ttl_for(key.kind)
        self._entries[key] = CacheEntry(result=result, expires_at=self._clock() + ttl)
        for tag in key.tags:
            self._tags[tag].add(key)
        return True

    def _remove(self, key: MetricKey) -> None:
        self._entries.pop(key, None)
        for tag in key.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]

    def purge_expired(self) -> int:
        """
        Evict every expired entry

        Runs from put() at most once per sweep_interval_seconds, so keys that
        are never read again do not pile up.

        Returns:
            Number of entries evicted
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in expired:
            self._remove(key)

        self.evictions += len(expired)
        self._next_sweep = now + self.config.sweep_interval_seconds
        if expired:
            logger.debug(f"Evicted {len(expired)} expired entries")
        return len(expired)

    # ============================================
    # INVALIDATION
    # ============================================

    def bump_generation(self, tag: str) -> None:
        self._generations[tag.upper()] += 1

    def invalidate_tag(self, tag: str) -> list[MetricKey]:
        tag = tag.upper()
        self._generations[tag] += 1

        removed = list(self._tags.get(tag, ()))
        for key in removed:
            self._remove(key)

        # New callers must not join a computation that started before this point
        for key in [k for k in self._inflight if tag in k.tags]:
            del self._inflight[key]

        logger.info(f"✓ Invalidated tag {tag}: {len(removed)} entries")
        return removed

    def invalidate_kind(self, tag: str, kind: MetricKind) -> list[MetricKey]:
        """
        Remove every entry of one metric kind carrying the tag

        Also rejects puts of computations of that kind started before this
        point, whether or not anything was cached yet.
        """
        tag = tag.upper()
        self._generations[f"{tag}:{kind.value}"] += 1

        removed = [k for k in self._tags.get(tag, ()) if k.kind == kind]
        for key in removed:
            self._remove(key)

        for key in [k for k in self._inflight if k.kind == kind and tag in k.tags]:
            del self._inflight[key]

        logger.info(f"✓ Invalidated {kind.value} under tag {tag}: {len(removed)} entries")
        return removed

    def invalidate(self, key: MetricKey) -> bool:
        """Remove a single key (bumps its tags' generations)"""
        for tag in key.tags:
            self._generations[tag] += 1
        self._inflight.pop(key, None)
        present = key in self._entries
        self._remove(key)
        return present

    def mark_stale(self, keys: list[MetricKey]) -> list[MetricKey]:
        flagged = []
        for key in keys:
            entry = self._entries.get(key)
            if entry is None:
                continue
            entry.result = entry.result.mark_stale()
            flagged.append(key)
        return flagged

    def keys_for_tag(self, tag: str) -> set[MetricKey]:
        return set(self._tags.get(tag.upper(), ()))

    # ============================================
    # SINGLE FLIGHT
    # ============================================

    async def get_or_compute(
        self,
        key: MetricKey,
        compute: Callable[[], Awaitable[MetricResult]],
        timeout: float | None = None,
    ) -> MetricResult:
        result, hit = self.get(key)
        if hit:
            return result

        future = self._inflight.get(key)
        if future is None:
            future = asyncio.get_running_loop().create_future()
            # Mark exceptions retrieved even if every waiter already timed out
            future.add_done_callback(lambda f: f.cancelled() or f.exception())
            self._inflight[key] = future

            task = asyncio.create_task(
                self._run(key, compute, self.generation(key), future),
                name=f"compute-{key.cache_key}",
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        timeout = timeout if timeout is not None else self.config.computation_timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.shield(future), timeout=timeout)
        except asyncio.TimeoutError as e:
            self.timeouts += 1
            raise ComputationTimeoutError(
                f"{key!r}: computation did not finish within {timeout}s"
            ) from e

    async def _run(
        self,
        key: MetricKey,
        compute: Callable[[], Awaitable[MetricResult]],
        generation: tuple,
        future: asyncio.Future,
    ) -> None:
        self.computations += 1
        try:
            result = await compute()
        except asyncio.CancelledError:
            if not future.done():
                future.set_exception(ComputationTimeoutError(f"{key!r}: computation cancelled"))
            raise
        except Exception as e:
            if not future.done():
                future.set_exception(e)
        else:
            self.put(key, result, generation)
            if not future.done():
                future.set_result(result)
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    async def close(self, timeout: float = 10.0) -> None:
        """
        Drain in-flight computations

        Computations still running after `timeout` are cancelled; their
        waiters receive ComputationTimeoutError.
        """
        if not self._tasks:
            return

        pending = list(self._tasks)
        done, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning(f"Cancelled {len(still_running)} computations still running after {timeout}s")
            await asyncio.gather(*still_running, return_exceptions=True)

        logger.info(f"✓ Calculation cache drained ({len(done)} computations finished)")

    def get_stats(self) -> dict[str, int]:
        """
        Get cache statistics

        Example:
            >>> stats = cache.get_stats()
            >>> print(f"Hits: {stats['hits']}, Computations: {stats['computations']}")
        """
        return {
            "entries": len(self._entries),
            "tags": len(self._tags),
            "inflight": len(self._inflight),
            "hits": self.hits,
            "misses": self.misses,
            "computations": self.computations,
            "discarded_puts": self.discarded_puts,
            "timeouts": self.timeouts,
            "evictions": self.evictions,
        }

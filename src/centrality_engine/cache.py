"""
Result cache for network analyses.

The cache is an explicit object handed to the facade: create one per
process (or per facade), clear it explicitly, or bound it with
``max_entries`` for LRU eviction.

Concurrency:
- the "check, else compute and store" sequence is guarded by one lock
- a miss installs a Future for its key before the lock is released, so
  concurrent callers for the same key wait on that single computation
- a failed, timed-out or cancelled computation removes its slot and sets
  the error on the Future, so every waiter sees the failure and the next
  caller starts afresh; nothing partial is ever stored
"""

from collections import OrderedDict
from concurrent.futures import Executor, Future
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar
import logging
import threading

from .core.exceptions import ComputationTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar('T')

Compute = Callable[[threading.Event], T]


@dataclass
class CacheStats:
    """Cache counters."""
    hits: int = 0
    misses: int = 0
    joins: int = 0
    evictions: int = 0
    failures: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "joins": self.joins,
            "evictions": self.evictions,
            "failures": self.failures,
            "hit_rate": round(self.hit_rate * 100, 2),
        }


class ResultCache(Generic[T]):
    """
    Thread-safe result cache with per-key in-flight latches.

    Example:
        cache = ResultCache(max_entries=32)
        facade = NetworkAnalysisFacade(cache=cache)
    """

    def __init__(self, max_entries: Optional[int] = None):
        """
        Initialize cache.

        Args:
            max_entries: LRU bound on stored results (None = unbounded)
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._results: 'OrderedDict[str, T]' = OrderedDict()
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._results

    def get(self, key: str) -> Optional[T]:
        """Stored result for key, or None. Counts as a hit when found."""
        with self._lock:
            if key in self._results:
                self._results.move_to_end(key)
                self.stats.hits += 1
                return self._results[key]
        return None

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._inflight

    def invalidate(self, key: str) -> bool:
        """Drop a stored result. In-flight computations are not affected."""
        with self._lock:
            return self._results.pop(key, None) is not None

    def clear(self) -> None:
        """Drop all stored results."""
        with self._lock:
            self._results.clear()
        logger.debug("Result cache cleared")

    def get_or_compute(
        self,
        key: str,
        compute: Compute,
        executor: Optional[Executor] = None,
        timeout: Optional[float] = None,
    ) -> T:
        """
        Return the cached result for key, computing it at most once.

        Args:
            key: Cache key
            compute: Callable receiving a cancellation Event
            executor: Runs the computation; required when timeout is set
            timeout: Seconds this caller is willing to wait

        Returns:
            The computed or cached result

        Raises:
            ComputationTimeoutError: If no result arrived within timeout
            Exception: Whatever the computation raised
        """
        if timeout is not None and executor is None:
            raise ValueError("a timeout requires an executor")

        with self._lock:
            if key in self._results:
                self._results.move_to_end(key)
                self.stats.hits += 1
                return self._results[key]

            latch = self._inflight.get(key)
            owner = latch is None
            if owner:
                latch = Future()
                latch.set_running_or_notify_cancel()
                self._inflight[key] = latch
                self.stats.misses += 1
            else:
                self.stats.joins += 1

        if not owner:
            logger.debug(f"Awaiting in-flight computation {key[:12]}")
            return self._await(latch, key, timeout)

        return self._run(key, latch, compute, executor, timeout)

    def _await(self, latch: Future, key: str, timeout: Optional[float]) -> T:
        try:
            return latch.result(timeout=timeout)
        except FuturesTimeoutError:
            raise ComputationTimeoutError(timeout, key) from None

    def _run(
        self,
        key: str,
        latch: Future,
        compute: Compute,
        executor: Optional[Executor],
        timeout: Optional[float],
    ) -> T:
        cancel_event = threading.Event()
        try:
            if executor is None:
                result = compute(cancel_event)
            else:
                work = executor.submit(compute, cancel_event)
                try:
                    result = work.result(timeout=timeout)
                except FuturesTimeoutError:
                    work.cancel()
                    work.add_done_callback(
                        lambda _: logger.debug(f"Discarded late result for {key[:12]}")
                    )
                    raise ComputationTimeoutError(timeout, key) from None
        except BaseException as e:
            cancel_event.set()
            self._abandon(key, latch, e)
            raise

        with self._lock:
            self._inflight.pop(key, None)
            self._results[key] = result
            self._evict()
        latch.set_result(result)
        return result

    def _abandon(self, key: str, latch: Future, error: BaseException) -> None:
        """Release the slot and hand the failure to every waiter."""
        with self._lock:
            if self._inflight.get(key) is latch:
                del self._inflight[key]
            self.stats.failures += 1
        latch.set_exception(error)
        logger.debug(f"Computation {key[:12]} abandoned: {type(error).__name__}")

    def _evict(self) -> None:
        # Caller holds the lock
        if self.max_entries is None:
            return
        while len(self._results) > self.max_entries:
            evicted, _ = self._results.popitem(last=False)
            self.stats.evictions += 1
            logger.debug(f"Evicted {evicted[:12]}")

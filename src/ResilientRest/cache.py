# === NAVMAP v1 ===
# {
#   "module": "ResilientRest.cache",
#   "purpose": "Keyed result cache with single-flight dispatch and eviction on failure",
#   "sections": [
#     {
#       "id": "resultcache",
#       "name": "ResultCache",
#       "anchor": "class-resultcache",
#       "kind": "class"
#     },
#     {
#       "id": "inmemoryresultcache",
#       "name": "InMemoryResultCache",
#       "anchor": "class-inmemoryresultcache",
#       "kind": "class"
#     },
#     {
#       "id": "cachedcallexecutor",
#       "name": "CachedCallExecutor",
#       "anchor": "class-cachedcallexecutor",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Result caching for REST calls.

Entries are keyed by ``(operation_key, cache_key)`` and hold a
``concurrent.futures.Future`` resolved with the call's outcome:

- the first caller for a key owns the entry and dispatches the call;
- concurrent callers for the same key wait on the owner's future and receive the
  same outcome without dispatching;
- a completed successful entry is returned to later callers without dispatch;
- a failed outcome removes the entry before the future resolves, so no caller
  arriving afterwards can observe it and the next call dispatches again;
- a flush while the call is in flight is final: the late result is handed to the
  callers already waiting but is not stored.

Caching is layered on :class:`~ResilientRest.executor.CallExecutor` by
composition in :class:`CachedCallExecutor`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Dict, Hashable, Optional, Protocol, Tuple

from ResilientRest.executor import CallExecutor
from ResilientRest.models import CallOutcome, ResourceCall, RestResponse

__all__ = ("CacheKey", "ResultCache", "InMemoryResultCache", "CachedCallExecutor")

LOGGER = logging.getLogger(__name__)

CacheKey = Tuple[str, Hashable]


class ResultCache(Protocol):
    """Storage consumed by :class:`CachedCallExecutor`."""

    def reserve(self, key: CacheKey) -> Tuple[Future, bool]: ...
    def resolve(self, key: CacheKey, future: Future, outcome: CallOutcome) -> None: ...
    def abandon(self, key: CacheKey, future: Future, exc: BaseException) -> None: ...
    def evict(self, key: CacheKey) -> bool: ...


class InMemoryResultCache:
    """Thread-safe in-process result cache.

    ``reserve`` hands out the entry for a key together with an ownership flag.
    Only the owner calls :meth:`resolve`. Every mutation happens under one lock;
    waiting on a future happens outside it.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKey, Future] = {}
        self._lock = threading.RLock()

    def reserve(self, key: CacheKey) -> Tuple[Future, bool]:
        with self._lock:
            future = self._entries.get(key)
            if future is not None:
                return future, False
            future = Future()
            self._entries[key] = future
            return future, True

    def resolve(self, key: CacheKey, future: Future, outcome: CallOutcome) -> None:
        """Publish ``outcome`` for an owned entry, evicting it first on failure.

        An entry flushed while its call was in flight stays flushed: the outcome
        still reaches the waiters on ``future`` but is never stored.
        """

        with self._lock:
            if self._entries.get(key) is future:
                if outcome.is_ok():
                    LOGGER.debug("Cached outcome for %s", key)
                else:
                    del self._entries[key]
            elif outcome.is_ok():
                LOGGER.debug("Entry %s was flushed in flight; result not cached", key)
        future.set_result(outcome)

    def abandon(self, key: CacheKey, future: Future, exc: BaseException) -> None:
        """Drop an owned entry whose dispatch raised instead of returning an outcome."""

        with self._lock:
            if self._entries.get(key) is future:
                del self._entries[key]
        future.set_exception(exc)

    def evict(self, key: CacheKey) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def get(self, key: CacheKey) -> Optional[RestResponse]:
        """Return the cached response for ``key`` if a successful call completed."""

        with self._lock:
            future = self._entries.get(key)
        if future is None or not future.done() or future.exception() is not None:
            return None
        outcome = future.result()
        return outcome.value if outcome.is_ok() else None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class CachedCallExecutor:
    """Deduplicate calls sharing a cache key and evict on any failure.

    Callers already waiting on an in-flight entry receive its outcome, failures
    included; only callers arriving after a failure dispatch again. A
    ``cache_key`` of ``None`` bypasses the cache entirely.
    """

    def __init__(self, inner: CallExecutor, cache: Optional[ResultCache] = None) -> None:
        self.inner = inner
        self.cache = cache if cache is not None else InMemoryResultCache()

    def cache_key_for(self, command_name: str, cache_key: Hashable) -> CacheKey:
        return (self.inner.operation_identity(command_name).operation_key, cache_key)

    def execute(self, call: ResourceCall, command_name: str, cache_key: Optional[Hashable]) -> CallOutcome:
        if cache_key is None:
            return self.inner.execute(call, command_name)

        key = self.cache_key_for(command_name, cache_key)
        future, owner = self.cache.reserve(key)
        if not owner:
            LOGGER.debug("Cache entry found for %s; awaiting its outcome", key)
            return future.result()

        try:
            outcome = self.inner.execute(call, command_name)
        except BaseException as exc:
            self.cache.abandon(key, future, exc)
            raise
        if not outcome.is_ok():
            LOGGER.debug("Evicting %s after a failed call", key)
        self.cache.resolve(key, future, outcome)
        return outcome

    def flush(self, command_name: str, cache_key: Hashable) -> bool:
        """Remove the entry for ``(command_name, cache_key)``; ``True`` if one existed."""

        key = self.cache_key_for(command_name, cache_key)
        removed = self.cache.evict(key)
        if removed:
            LOGGER.debug("Flushed cache entry %s", key)
        return removed


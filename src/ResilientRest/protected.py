# === NAVMAP v1 ===
# {
#   "module": "ResilientRest.protected",
#   "purpose": "Protected-executor boundary: pybreaker breakers plus thread/semaphore isolation",
#   "sections": [
#     {
#       "id": "badrequesterror",
#       "name": "BadRequestError",
#       "anchor": "class-badrequesterror",
#       "kind": "class"
#     },
#     {
#       "id": "protectedexecutionerror",
#       "name": "ProtectedExecutionError",
#       "anchor": "class-protectedexecutionerror",
#       "kind": "class"
#     },
#     {
#       "id": "protectedexecutor",
#       "name": "ProtectedExecutor",
#       "anchor": "class-protectedexecutor",
#       "kind": "class"
#     },
#     {
#       "id": "loggingbreakerlistener",
#       "name": "LoggingBreakerListener",
#       "anchor": "class-loggingbreakerlistener",
#       "kind": "class"
#     },
#     {
#       "id": "breakerexecutor",
#       "name": "BreakerExecutor",
#       "anchor": "class-breakerexecutor",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Failure-isolating execution boundary for REST calls.

Every call is dispatched through a :class:`ProtectedExecutor`. The executor
either returns the action's result or raises:

- :class:`ProtectedExecutionError` carrying a
  :class:`~ResilientRest.models.FailureKind` when it refused, timed out, or the
  action itself failed;
- :class:`BadRequestError` when the caller's input was rejected (this never
  counts against the breaker);
- any :class:`~ResilientRest.errors.RestClientError` raised by the action,
  unchanged.

:class:`BreakerExecutor` is the default implementation. It owns one
``pybreaker.CircuitBreaker`` per operation key (pybreaker runs the
closed/open/half-open state machine) and bounds concurrency either with a
per-group worker pool (``thread`` isolation, with an execution timeout) or a
per-operation semaphore (``semaphore`` isolation, run on the calling thread; a
timeout is reported once the call returns).
An open breaker refuses calls before any work is scheduled and, after its
cooldown, admits a single trial call; the outcome of each admitted call is then
reported back to its breaker.

Example:
  ```python
  executor = BreakerExecutor(ProtectionConfig())
  try:
      response = executor.execute("orders", "getOrder", lambda: transport.execute(req))
  except ProtectedExecutionError as exc:
      if exc.kind is FailureKind.SHORT_CIRCUIT:
          ...
  ```
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict, Optional, Protocol, Set, TypeVar

import pybreaker

from ResilientRest.config.models import IsolationStrategy, ProtectionConfig, ProtectionPolicy
from ResilientRest.errors import RestClientError
from ResilientRest.models import FailureKind

__all__ = (
    "BadRequestError",
    "ProtectedExecutionError",
    "ProtectedExecutor",
    "LoggingBreakerListener",
    "BreakerExecutor",
)

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class BadRequestError(ValueError):
    """The executor rejected the caller's input; never counted as a breaker failure."""


class ProtectedExecutionError(RuntimeError):
    """The executor refused or failed to complete a call."""

    def __init__(
        self,
        kind: FailureKind,
        operation_key: str,
        message: Optional[str] = None,
        *,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message or f"{operation_key} failed with {kind.value}")
        self.kind = kind
        self.operation_key = operation_key
        self.cause = cause


class ProtectedExecutor(Protocol):
    """Capability consumed by the call executor."""

    def execute(self, group_key: str, operation_key: str, action: Callable[[], T]) -> T: ...


class LoggingBreakerListener(pybreaker.CircuitBreakerListener):
    """Log breaker state transitions for one operation."""

    def __init__(self, operation_key: str) -> None:
        self.operation_key = operation_key

    def state_change(self, cb, old_state, new_state) -> None:  # type: ignore[override]
        old_name = getattr(old_state, "name", old_state)
        new_name = getattr(new_state, "name", new_state)
        level = logging.WARNING if new_name == pybreaker.STATE_OPEN else logging.INFO
        LOGGER.log(
            level,
            "Circuit breaker for %s changed state %s -> %s",
            self.operation_key,
            old_name,
            new_name,
        )


class _OpenedAtListener(pybreaker.CircuitBreakerListener):
    """Remember when each breaker last opened so callers can be refused early."""

    def __init__(self, opened_at: Dict[str, float], operation_key: str) -> None:
        self.opened_at = opened_at
        self.operation_key = operation_key

    def state_change(self, cb, old_state, new_state) -> None:  # type: ignore[override]
        new_name = getattr(new_state, "name", new_state)
        if new_name == pybreaker.STATE_OPEN:
            self.opened_at[self.operation_key] = time.monotonic()
        elif new_name == pybreaker.STATE_CLOSED:
            self.opened_at.pop(self.operation_key, None)


class _GroupPool:
    """Worker pool plus admission slots (workers + queue) for one group key."""

    def __init__(self, group_key: str, policy: ProtectionPolicy) -> None:
        self.group_key = group_key
        self.executor = ThreadPoolExecutor(
            max_workers=policy.pool_size, thread_name_prefix=f"restcore-{group_key}"
        )
        self.slots = threading.BoundedSemaphore(policy.pool_size + policy.max_queue_size)

    def submit(self, fn: Callable[[], T]) -> Optional[Future]:
        if not self.slots.acquire(blocking=False):
            return None
        try:
            future = self.executor.submit(fn)
        except BaseException:
            self.slots.release()
            raise
        future.add_done_callback(lambda _f: self.slots.release())
        return future


class BreakerExecutor:
    """
    Default protected executor.

    Typical usage:
        executor = BreakerExecutor(config)
        result = executor.execute("orders", "orders.getOrder", action)
        ...
        executor.shutdown()
    """

    def __init__(
        self,
        config: Optional[ProtectionConfig] = None,
        *,
        listener_factory: Optional[Callable[[str], Optional[object]]] = LoggingBreakerListener,
    ) -> None:
        self.config = config or ProtectionConfig()
        self.listener_factory = listener_factory

        self._breakers: Dict[str, pybreaker.CircuitBreaker] = {}
        self._pools: Dict[str, _GroupPool] = {}
        self._semaphores: Dict[str, threading.BoundedSemaphore] = {}
        self._opened_at: Dict[str, float] = {}
        self._probing: Set[str] = set()
        self._lock = threading.RLock()
        self._closed = False

    # ── Public API ────────────────────────────────────────────────────────────

    def execute(self, group_key: str, operation_key: str, action: Callable[[], T]) -> T:
        """Run ``action`` under the breaker and isolation policy of ``operation_key``.

        Raises:
            BadRequestError: Missing keys or a non-callable action.
            ProtectedExecutionError: The call was refused or failed.
            RestClientError: Raised by ``action`` itself, passed through.
        """
        self._check_arguments(group_key, operation_key, action)

        policy = self.config.policy_for(operation_key)
        breaker = self._get_or_create_breaker(operation_key, policy)
        probe = self._allow(operation_key, breaker)

        LOGGER.debug("Executing %s circuit breaker command", operation_key)
        try:
            try:
                if policy.isolation is IsolationStrategy.THREAD:
                    result = self._run_in_pool(group_key, operation_key, action, policy)
                else:
                    result = self._run_with_semaphore(operation_key, action, policy)
            except BadRequestError:
                raise
            except (ProtectedExecutionError, RestClientError) as exc:
                self._record(breaker, exc)
                raise
            except Exception as exc:
                self._record(breaker, exc)
                raise ProtectedExecutionError(
                    FailureKind.COMMAND_EXCEPTION, operation_key, str(exc), cause=exc
                ) from exc
            self._record(breaker, None)
            return result
        finally:
            if probe:
                with self._lock:
                    self._probing.discard(operation_key)

    def current_state(self, operation_key: str) -> str:
        """Return ``closed``, ``open`` or ``half_open`` for ``operation_key``."""

        with self._lock:
            breaker = self._breakers.get(operation_key)
        if breaker is None:
            return "closed"
        state = breaker.current_state
        if state == pybreaker.STATE_OPEN:
            return "open"
        if state == pybreaker.STATE_HALF_OPEN:
            return "half_open"
        return "closed"

    def reset(self, operation_key: str) -> None:
        """Close the breaker of ``operation_key`` and clear its failure count."""

        with self._lock:
            breaker = self._breakers.get(operation_key)
        if breaker is not None:
            breaker.close()

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            pools = list(self._pools.values())
            self._pools.clear()
            self._closed = True
        for pool in pools:
            pool.executor.shutdown(wait=wait)

    # ── Internals ─────────────────────────────────────────────────────────────

    @staticmethod
    def _check_arguments(group_key: str, operation_key: str, action: Callable[[], T]) -> None:
        if not group_key:
            LOGGER.error("groupKeyName is null")
            raise BadRequestError("groupKeyName is null")
        if not operation_key:
            LOGGER.error("commandName is null")
            raise BadRequestError("commandName is null")
        if not callable(action):
            LOGGER.error("action is not callable")
            raise BadRequestError("action is not callable")

    def _allow(self, operation_key: str, breaker: pybreaker.CircuitBreaker) -> bool:
        """Pre-flight check: refuse while the breaker is open.

        Once the cooldown has elapsed exactly one caller is admitted as the
        half-open trial; everyone else is refused until its outcome is recorded.
        Returns ``True`` for that trial call.
        """

        if breaker.current_state != pybreaker.STATE_OPEN:
            return False
        with self._lock:
            opened_at = self._opened_at.get(operation_key)
            cooled = opened_at is not None and (
                time.monotonic() - opened_at >= float(breaker.reset_timeout)
            )
            if cooled and operation_key not in self._probing:
                self._probing.add(operation_key)
                LOGGER.debug("Admitting half-open trial call for %s", operation_key)
                return True
        raise ProtectedExecutionError(
            FailureKind.SHORT_CIRCUIT,
            operation_key,
            f"circuit breaker for {operation_key} is open",
        )

    @staticmethod
    def _record(breaker: pybreaker.CircuitBreaker, error: Optional[BaseException]) -> None:
        """Feed the outcome of a finished call to the breaker's state machine.

        The action runs outside ``breaker.call`` because pybreaker holds its lock
        for the whole call; only the recorded outcome is replayed through it.
        """

        def replay() -> None:
            if error is not None:
                raise error

        try:
            breaker.call(replay)
        except pybreaker.CircuitBreakerError:
            LOGGER.debug("Breaker %s opened concurrently; outcome not recorded", breaker.name)
        except Exception as exc:
            if exc is not error:
                raise

    def _get_or_create_breaker(
        self, operation_key: str, policy: ProtectionPolicy
    ) -> pybreaker.CircuitBreaker:
        with self._lock:
            cb = self._breakers.get(operation_key)
            if cb is not None:
                return cb
            listeners: list = [_OpenedAtListener(self._opened_at, operation_key)]
            if self.listener_factory:
                listener = self.listener_factory(operation_key)
                if listener is not None:
                    listeners.append(listener)
            cb = pybreaker.CircuitBreaker(
                fail_max=policy.fail_max,
                reset_timeout=policy.reset_timeout_s,
                listeners=listeners,
                name=operation_key,
                throw_new_error_on_trip=False,
            )
            self._breakers[operation_key] = cb
            return cb

    def _get_or_create_pool(self, group_key: str) -> _GroupPool:
        with self._lock:
            if self._closed:
                raise RuntimeError("executor has been shut down")
            pool = self._pools.get(group_key)
            if pool is None:
                pool = _GroupPool(group_key, self.config.pool_policy_for(group_key))
                self._pools[group_key] = pool
            return pool

    def _get_or_create_semaphore(
        self, operation_key: str, policy: ProtectionPolicy
    ) -> threading.BoundedSemaphore:
        with self._lock:
            sem = self._semaphores.get(operation_key)
            if sem is None:
                sem = threading.BoundedSemaphore(policy.max_concurrent_requests)
                self._semaphores[operation_key] = sem
            return sem

    def _run_in_pool(
        self,
        group_key: str,
        operation_key: str,
        action: Callable[[], T],
        policy: ProtectionPolicy,
    ) -> T:
        try:
            future = self._get_or_create_pool(group_key).submit(action)
        except RuntimeError as exc:
            raise ProtectedExecutionError(
                FailureKind.UNKNOWN, operation_key, str(exc), cause=exc
            ) from exc
        if future is None:
            raise ProtectedExecutionError(
                FailureKind.REJECTED_THREAD,
                operation_key,
                f"worker pool for {group_key} is exhausted",
            )

        timeout_s: Optional[float] = None
        if policy.timeout_enabled:
            timeout_s = policy.execution_timeout_ms / 1000.0
        try:
            return future.result(timeout=timeout_s)
        except FutureTimeoutError:
            if future.done():
                raise
            future.cancel()
            raise ProtectedExecutionError(
                FailureKind.TIMEOUT,
                operation_key,
                f"{operation_key} timed out after {policy.execution_timeout_ms} ms",
            ) from None

    def _run_with_semaphore(
        self, operation_key: str, action: Callable[[], T], policy: ProtectionPolicy
    ) -> T:
        sem = self._get_or_create_semaphore(operation_key, policy)
        if not sem.acquire(blocking=False):
            raise ProtectedExecutionError(
                FailureKind.REJECTED_SEMAPHORE_EXECUTION,
                operation_key,
                f"{operation_key} exceeded {policy.max_concurrent_requests} concurrent calls",
            )
        started = time.monotonic()
        try:
            result = action()
        finally:
            sem.release()
        elapsed_ms = (time.monotonic() - started) * 1000.0
        if policy.timeout_enabled and elapsed_ms > policy.execution_timeout_ms:
            raise ProtectedExecutionError(
                FailureKind.TIMEOUT,
                operation_key,
                f"{operation_key} took {elapsed_ms:.0f} ms, limit {policy.execution_timeout_ms} ms",
            )
        return result


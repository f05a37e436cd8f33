"""Result caching: hits, single-flight dispatch and eviction on failure."""

from __future__ import annotations

import threading

import pytest

from ResilientRest.cache import CachedCallExecutor, InMemoryResultCache
from ResilientRest.errors import ServerSideError
from ResilientRest.executor import CallExecutor
from ResilientRest.models import (
    Failure,
    FailureKind,
    HttpMethod,
    Ok,
    OperationIdentity,
    ResourceCall,
)
from tests.fakes import FakeProtectedExecutor, response

GET = ResourceCall(HttpMethod.GET, "/orders/42")


@pytest.fixture
def cache() -> InMemoryResultCache:
    return InMemoryResultCache()


@pytest.fixture
def cached(call_executor, cache) -> CachedCallExecutor:
    return CachedCallExecutor(call_executor, cache)


def test_hit_returns_without_dispatch(cached, cache, fake_transport):
    fake_transport.queue(response(200, "first"), response(200, "second"))

    first = cached.execute(GET, "getOrder", "42")
    second = cached.execute(GET, "getOrder", "42")

    assert first.unwrap().body == "first"
    assert second.unwrap().body == "first"
    assert len(fake_transport.executed) == 1
    assert cache.get(("getOrder", "42")).body == "first"


def test_distinct_keys_dispatch_separately(cached, fake_transport):
    cached.execute(GET, "getOrder", "42")
    cached.execute(GET, "getOrder", "43")
    cached.execute(GET, "listOrders", "42")

    assert len(fake_transport.executed) == 3


def test_failure_evicts_then_next_call_redispatches(cached, cache, fake_transport):
    fake_transport.queue(response(500, "boom"), response(200, "recovered"))

    failed = cached.execute(GET, "getOrder", "42")
    assert isinstance(failed.error, ServerSideError)
    assert ("getOrder", "42") not in cache

    recovered = cached.execute(GET, "getOrder", "42")

    assert recovered.unwrap().body == "recovered"
    assert len(fake_transport.executed) == 2
    assert ("getOrder", "42") in cache


def test_failure_kind_evicts(builder, fake_transport, cache):
    protected = FakeProtectedExecutor(FailureKind.SHORT_CIRCUIT)
    cached = CachedCallExecutor(CallExecutor("orders", builder, protected, fake_transport), cache)

    outcome = cached.execute(GET, "getOrder", "42")

    assert not outcome.is_ok()
    assert len(cache) == 0


def test_build_failure_evicts(cached, cache):
    outcome = cached.execute(ResourceCall(HttpMethod.PUT, "/orders/42"), "updateOrder", "42")

    assert not outcome.is_ok()
    assert len(cache) == 0


def test_none_cache_key_bypasses_cache(cached, cache, fake_transport):
    cached.execute(GET, "getOrder", None)
    cached.execute(GET, "getOrder", None)

    assert len(fake_transport.executed) == 2
    assert len(cache) == 0


def test_prefixed_operation_key_scopes_entries(builder, fake_protected, fake_transport, cache):
    inner = CallExecutor(
        "orders", builder, fake_protected, fake_transport, prepend_group_key_name=True
    )
    cached = CachedCallExecutor(inner, cache)

    cached.execute(GET, "getOrder", "42")

    assert ("orders.getOrder", "42") in cache


def test_flush_forces_redispatch(cached, fake_transport):
    cached.execute(GET, "getOrder", "42")

    assert cached.flush("getOrder", "42") is True
    assert cached.flush("getOrder", "42") is False
    cached.execute(GET, "getOrder", "42")

    assert len(fake_transport.executed) == 2


def test_unexpected_exception_evicts_and_propagates(cache):
    class ExplodingExecutor:
        def operation_identity(self, command_name):
            return OperationIdentity("orders", command_name)

        def execute(self, call, command_name):
            raise RuntimeError("executor bug")

    cached = CachedCallExecutor(ExplodingExecutor(), cache)

    with pytest.raises(RuntimeError, match="executor bug"):
        cached.execute(GET, "getOrder", "42")
    assert len(cache) == 0


def test_concurrent_callers_share_one_dispatch(cache):
    release = threading.Event()
    started = threading.Event()
    dispatched = []

    class SlowExecutor:
        def operation_identity(self, command_name):
            return OperationIdentity("orders", command_name)

        def execute(self, call, command_name):
            dispatched.append(command_name)
            started.set()
            release.wait(timeout=5)
            return Ok(response(200, "shared"))

    cached = CachedCallExecutor(SlowExecutor(), cache)
    results = []

    def worker():
        results.append(cached.execute(GET, "getOrder", "42").unwrap().body)

    owner = threading.Thread(target=worker)
    owner.start()
    assert started.wait(timeout=5)
    waiters = [threading.Thread(target=worker) for _ in range(3)]
    for thread in waiters:
        thread.start()
    release.set()
    for thread in [owner, *waiters]:
        thread.join(timeout=5)

    assert dispatched == ["getOrder"]
    assert results == ["shared"] * 4


def test_failed_entry_is_evicted_before_waiters_see_the_outcome(cache):
    key = ("getOrder", "42")
    future, owner = cache.reserve(key)
    same_future, second_owner = cache.reserve(key)
    assert owner is True and second_owner is False
    assert same_future is future

    seen_in_cache = []
    future.add_done_callback(lambda _f: seen_in_cache.append(key in cache))
    cache.resolve(key, future, Failure(ServerSideError("down")))

    assert seen_in_cache == [False]
    assert not future.result().is_ok()
    _, owner_again = cache.reserve(key)
    assert owner_again is True


def test_flush_during_an_in_flight_call_is_not_undone(cache):
    key = ("getOrder", "42")
    future, _ = cache.reserve(key)
    cache.evict(key)

    cache.resolve(key, future, Ok(response(200, "late")))

    assert future.result().unwrap().body == "late"
    assert key not in cache
    assert cache.get(key) is None


def test_flush_while_owner_is_dispatching_forces_a_new_dispatch(cache):
    release = threading.Event()
    started = threading.Event()
    bodies = iter(["before-write", "after-write"])
    dispatched = []

    class BlockingExecutor:
        def operation_identity(self, command_name):
            return OperationIdentity("orders", command_name)

        def execute(self, call, command_name):
            body = next(bodies)
            dispatched.append(body)
            if body == "before-write":
                started.set()
                release.wait(timeout=5)
            return Ok(response(200, body))

    cached = CachedCallExecutor(BlockingExecutor(), cache)
    results = []
    owner = threading.Thread(
        target=lambda: results.append(cached.execute(GET, "getOrder", "42").unwrap().body)
    )
    owner.start()
    assert started.wait(timeout=5)

    assert cached.flush("getOrder", "42") is True
    release.set()
    owner.join(timeout=5)

    after = cached.execute(GET, "getOrder", "42")

    assert results == ["before-write"]
    assert after.unwrap().body == "after-write"
    assert dispatched == ["before-write", "after-write"]
    assert cache.get(("getOrder", "42")).body == "after-write"

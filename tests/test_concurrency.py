"""Concurrent admissions for a single client never overshoot the limit."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import fakeredis
import pytest

from ratelimit_api.adapters.rate_limit.in_memory import InMemoryCounterStore
from ratelimit_api.adapters.rate_limit.redis_store import RedisCounterStore
from ratelimit_api.services.rate_limiter_service import Admission, FixedWindowRateLimiter


def _build_store(backend: str):
    if backend == "memory":
        return InMemoryCounterStore()
    return RedisCounterStore(fakeredis.FakeStrictRedis(server=fakeredis.FakeServer()))


@pytest.mark.parametrize("backend", ["memory", "redis"])
@pytest.mark.parametrize("requests, limit", [(40, 7), (5, 10), (16, 16)])
def test_exactly_min_n_l_admitted(backend: str, requests: int, limit: int) -> None:
    store = _build_store(backend)
    # Two engine instances over one store stand in for two service processes.
    limiters = [
        FixedWindowRateLimiter(store, limit=limit, window_seconds=60) for _ in range(2)
    ]
    barrier = threading.Barrier(requests)

    def hit(i: int) -> Admission:
        barrier.wait()
        return limiters[i % 2].allow("fresh-client")

    with ThreadPoolExecutor(max_workers=requests) as pool:
        results = list(pool.map(hit, range(requests)))

    admitted = results.count(Admission.ADMITTED)
    assert admitted == min(requests, limit)
    assert results.count(Admission.DENIED) == requests - admitted
    assert limiters[0].remaining_quota("fresh-client") == max(0, limit - requests)

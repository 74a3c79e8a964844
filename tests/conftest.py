from __future__ import annotations

import pytest

from dashboard.cache import MemoryStore, TimedCache
from dashboard.fallback import StaleFallbackPolicy

from tests.fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def cache(store: MemoryStore, clock: FakeClock) -> TimedCache:
    return TimedCache(store, prefix="cache_", clock=clock)


@pytest.fixture
def policy(cache: TimedCache) -> StaleFallbackPolicy:
    return StaleFallbackPolicy(cache, cooldown_seconds=3600)

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

from config import RATE_LIMIT_COOLDOWN
from dashboard.cache import TimedCache
from dashboard.errors import UpstreamError, classify
from dashboard.schemas import CacheEntry, FetchResult, FetchStatus

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


class StaleFallbackPolicy:
    """Cache-first fetch that degrades to the last persisted value on failure.

    1. A live cache entry is returned without calling upstream.
    2. Otherwise the loader runs; its value is written through with the TTL.
    3. If the loader fails, the persisted value (expired or not) is served
       as stale; with nothing persisted the result is ``unavailable``.

    Concurrent loads of the same key share one upstream call.
    """

    def __init__(self, cache: TimedCache, cooldown_seconds: int = RATE_LIMIT_COOLDOWN) -> None:
        self._cache = cache
        self._cooldown = cooldown_seconds
        self._inflight: dict[str, asyncio.Task[FetchResult]] = {}

    @property
    def cache(self) -> TimedCache:
        return self._cache

    async def fetch(self, key: str, loader: Loader, ttl_minutes: float) -> FetchResult:
        return await self._fetch(key, loader, ttl_minutes, fallback=None)

    async def refresh(self, key: str, loader: Loader, ttl_minutes: float) -> FetchResult:
        """Drop the cached entry and fetch again, skipping the fast path once."""
        snapshot = await self._cache.peek(key)
        await self._cache.delete(key)
        logger.info(f"Cache bust for '{key}'")
        return await self._fetch(key, loader, ttl_minutes, fallback=snapshot)

    async def _fetch(
        self,
        key: str,
        loader: Loader,
        ttl_minutes: float,
        fallback: CacheEntry | None,
    ) -> FetchResult:
        t0 = time.time()
        value, evicted = await self._cache.lookup(key)
        if value is not None:
            return FetchResult(
                key=key,
                status=FetchStatus.CACHED,
                data=value,
                latency_ms=(time.time() - t0) * 1000,
            )

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(
                self._load(key, loader, ttl_minutes, evicted or fallback),
                name=f"load:{key}",
            )
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            logger.info(f"Joining in-flight load for '{key}'")

        result = await asyncio.shield(task)
        return result.model_copy(update={"latency_ms": (time.time() - t0) * 1000})

    def _forget(self, key: str, task: asyncio.Task[FetchResult]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _load(
        self,
        key: str,
        loader: Loader,
        ttl_minutes: float,
        fallback: CacheEntry | None,
    ) -> FetchResult:
        try:
            value = await loader()
        except Exception as e:
            return await self._degrade(key, classify(e), fallback)

        await self._cache.set(key, value, ttl_minutes)
        return FetchResult(key=key, status=FetchStatus.FRESH, data=value)

    async def _degrade(
        self, key: str, error: UpstreamError, fallback: CacheEntry | None
    ) -> FetchResult:
        logger.error(
            f"Fetch '{key}' failed ({error.kind.value}, status={error.status_code}): {error.message}"
        )

        stale = await self._cache.read_stale(key)
        if stale is None and fallback is not None:
            stale = fallback.data
            await self._cache.restore(key, fallback)

        common: dict[str, Any] = {
            "key": key,
            "failure": error.kind,
            "status_code": error.status_code,
        }

        if error.rate_limited:
            common["retry_after_seconds"] = self._cooldown
            if stale is not None:
                logger.warning(f"'{key}' rate limited, serving stale data")
                return FetchResult(
                    status=FetchStatus.STALE_RATE_LIMITED,
                    data=stale,
                    message="Too many requests; showing cached data. Try again later.",
                    **common,
                )
            return FetchResult(
                status=FetchStatus.UNAVAILABLE,
                message="Too many requests and no cached data; try again later.",
                **common,
            )

        if stale is not None:
            logger.warning(f"'{key}' unavailable, serving stale data")
            return FetchResult(
                status=FetchStatus.STALE,
                data=stale,
                message="Showing cached data; it may be out of date.",
                **common,
            )
        return FetchResult(status=FetchStatus.UNAVAILABLE, message=error.message, **common)

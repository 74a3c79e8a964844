from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

import diskcache

from config import CACHE_PREFIX
from dashboard.schemas import CacheEntry

logger = logging.getLogger(__name__)


class PersistentStore(Protocol):
    """String-to-string storage that outlives the process (localStorage-like)."""

    async def get_item(self, key: str) -> str | None: ...
    async def set_item(self, key: str, value: str) -> None: ...
    async def remove_item(self, key: str) -> None: ...
    async def keys(self) -> Iterable[str]: ...


class MemoryStore:
    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    async def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    async def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    async def keys(self) -> list[str]:
        return list(self._items)


class DiskStore:
    """Persistent store backed by diskcache (SQLite under the hood).

    diskcache is synchronous, so every call runs in a worker thread.
    """

    def __init__(self, directory: Path | str) -> None:
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        self._cache = diskcache.Cache(str(path))

    async def get_item(self, key: str) -> str | None:
        value = await asyncio.to_thread(self._cache.get, key)
        return None if value is None else str(value)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._cache.set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._cache.delete, key)

    async def keys(self) -> list[str]:
        return await asyncio.to_thread(lambda: [str(k) for k in self._cache.iterkeys()])

    def close(self) -> None:
        self._cache.close()


class TimedCache:
    """Expiry-aware key/value cache mirrored to a persistent store.

    The in-memory map is authoritative; the persistent store is read only on
    a memory miss. Expiry is checked lazily on read, there is no sweeper.
    Persistent-store failures are logged and never reach the caller.
    """

    def __init__(
        self,
        store: PersistentStore | None = None,
        prefix: str = CACHE_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._memory: dict[str, CacheEntry] = {}
        self._store = store if store is not None else MemoryStore()
        self._prefix = prefix
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _persisted_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def _load_persisted(self, key: str) -> CacheEntry | None:
        try:
            raw = await self._store.get_item(self._persisted_key(key))
            if raw is None:
                return None
            return CacheEntry.model_validate_json(raw)
        except Exception as e:
            logger.warning(f"Could not read persisted cache entry '{key}': {e}")
            return None

    async def _write_persisted(self, key: str, entry: CacheEntry) -> None:
        try:
            await self._store.set_item(
                self._persisted_key(key), entry.model_dump_json(by_alias=True)
            )
        except Exception as e:
            logger.warning(f"Could not persist cache entry '{key}': {e}")

    async def _remove_persisted(self, key: str) -> None:
        try:
            await self._store.remove_item(self._persisted_key(key))
        except Exception as e:
            logger.warning(f"Could not remove persisted cache entry '{key}': {e}")

    async def lookup(self, key: str) -> tuple[Any | None, CacheEntry | None]:
        """Return ``(value, evicted)``.

        ``value`` is the live value or None. When the entry turned out to be
        expired it is removed from both stores and handed back as ``evicted``
        so a caller can still fall back on it.
        """
        entry = self._memory.get(key)
        if entry is None:
            entry = await self._load_persisted(key)
            if entry is None:
                return None, None
            self._memory[key] = entry

        if entry.expired(self._now_ms()):
            await self.delete(key)
            return None, entry
        return entry.data, None

    async def get(self, key: str) -> Any | None:
        value, _ = await self.lookup(key)
        return value

    async def set(self, key: str, value: Any, ttl_minutes: float = 5) -> None:
        now = self._now_ms()
        entry = CacheEntry(
            data=value,
            timestamp=now,
            expires_in=now + int(ttl_minutes * 60 * 1000),
        )
        self._memory[key] = entry
        await self._write_persisted(key, entry)

    async def has(self, key: str) -> bool:
        return await self.get(key) is not None

    async def delete(self, key: str) -> None:
        self._memory.pop(key, None)
        await self._remove_persisted(key)

    async def clear(self) -> None:
        self._memory.clear()
        try:
            owned = [k for k in await self._store.keys() if k.startswith(self._prefix)]
        except Exception as e:
            logger.warning(f"Could not list persisted cache entries: {e}")
            return
        for persisted_key in owned:
            try:
                await self._store.remove_item(persisted_key)
            except Exception as e:
                logger.warning(f"Could not remove persisted cache entry '{persisted_key}': {e}")

    async def peek(self, key: str) -> CacheEntry | None:
        """Persisted entry for ``key`` without expiry checks or hydration."""
        return await self._load_persisted(key)

    async def read_stale(self, key: str) -> Any | None:
        """Last persisted value for ``key``, ignoring expiry."""
        entry = await self.peek(key)
        return None if entry is None else entry.data

    async def restore(self, key: str, entry: CacheEntry) -> None:
        """Put an evicted entry back in the persistent store only.

        The deadline is capped at now, so ``get`` treats it as absent while
        ``read_stale`` can serve it after the next failure.
        """
        deadline = min(entry.expires_in, self._now_ms())
        await self._write_persisted(key, entry.model_copy(update={"expires_in": deadline}))


def build_cache(cache_dir: str = "") -> TimedCache:
    if not cache_dir:
        return TimedCache()
    try:
        return TimedCache(DiskStore(cache_dir))
    except Exception as e:
        logger.warning(f"Persistent cache at {cache_dir} unavailable, using memory only: {e}")
        return TimedCache()

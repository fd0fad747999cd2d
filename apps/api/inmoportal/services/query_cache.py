"""Key-addressed cache of query results.

Entries are keyed by tuples such as ``("property", "P1")`` and invalidated by
tuple prefix, so ``("properties",)`` marks every category and search listing
stale at once. Each entry has its own staleness window and a retention ceiling
measured from its last access. A failed refresh is retried, and when it still
fails the last good value keeps being served with the error attached.
Snapshot writes are batched and run in the default executor.
"""
from __future__ import annotations

import asyncio
import enum
import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

from pydantic_core import to_jsonable_python

logger = logging.getLogger(__name__)

QueryKey = tuple[Any, ...]
Fetcher = Callable[[], Awaitable[Any]]
Decoder = Callable[[Any], Any]
Clock = Callable[[], float]


class QueryStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True)
class QueryState:
    """Snapshot of one cache entry as seen by a reader."""

    key: QueryKey
    status: QueryStatus
    data: Any = None
    error: BaseException | None = None
    updated_at: float | None = None
    is_stale: bool = True
    is_fetching: bool = False


@dataclass(slots=True)
class _CacheEntry:
    key: QueryKey
    stale_time: float
    gc_time: float
    data: Any = None
    has_data: bool = False
    raw: bool = False
    updated_at: float | None = None
    invalidated: bool = False
    error: BaseException | None = None
    error_at: float | None = None
    last_accessed: float = 0.0
    task: asyncio.Future[Any] | None = None
    # bumped by every invalidation; a refresh started under an older
    # generation cannot mark the entry fresh
    generation: int = 0
    task_generation: int = 0
    data_generation: int = 0

    @property
    def is_fetching(self) -> bool:
        return self.task is not None and not self.task.done()


def normalize_key(key: Any) -> QueryKey:
    """Coerce lists (as found in persisted snapshots) into hashable tuples."""

    if isinstance(key, (list, tuple)):
        return tuple(normalize_key(part) if isinstance(part, (list, tuple)) else part for part in key)
    return (key,)


def _key_matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """Process-wide query result cache."""

    def __init__(
        self,
        *,
        default_stale_time: float = 60 * 60 * 24,
        default_gc_time: float = 60 * 60 * 24,
        retry: int = 1,
        retry_delay: float = 0.0,
        persister: "FileCachePersister | None" = None,
        persist_delay: float = 1.0,
        clock: Clock = time.time,
    ) -> None:
        self._entries: dict[QueryKey, _CacheEntry] = {}
        self._default_stale_time = default_stale_time
        self._default_gc_time = default_gc_time
        self._retry = max(0, retry)
        self._retry_delay = retry_delay
        self._persister = persister
        self._persist_delay = persist_delay
        self._flush_handle: asyncio.TimerHandle | None = None
        self._flush_tasks: set[asyncio.Task[None]] = set()
        self._save_lock = asyncio.Lock()
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return normalize_key(key) in self._entries

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    async def fetch(
        self,
        key: Iterable[Any],
        fetcher: Fetcher,
        *,
        stale_time: float | None = None,
        gc_time: float | None = None,
        decode: Decoder | None = None,
    ) -> Any:
        """Return the value for ``key``, refetching when missing or stale.

        Concurrent callers share one in-flight refresh. Raises only when the
        refresh fails and there is no previous value to fall back on.
        """

        entry = self._touch(normalize_key(key), stale_time, gc_time, decode)
        if entry.has_data and not self._is_stale(entry):
            return entry.data
        return await asyncio.shield(self._start(entry, fetcher))

    def read(
        self,
        key: Iterable[Any],
        fetcher: Fetcher,
        *,
        stale_time: float | None = None,
        gc_time: float | None = None,
        decode: Decoder | None = None,
    ) -> QueryState:
        """Return the current state at once, refreshing in the background if needed.

        Must be called from a running event loop.
        """

        entry = self._touch(normalize_key(key), stale_time, gc_time, decode)
        if not entry.has_data or self._is_stale(entry):
            self._start(entry, fetcher)
        return self._state_of(entry)

    def state(self, key: Iterable[Any]) -> QueryState | None:
        entry = self._entries.get(normalize_key(key))
        if entry is None:
            return None
        return self._state_of(entry)

    def get_data(self, key: Iterable[Any]) -> Any:
        entry = self._entries.get(normalize_key(key))
        if entry is None or not entry.has_data:
            return None
        return entry.data

    def set_data(
        self,
        key: Iterable[Any],
        data: Any,
        *,
        stale_time: float | None = None,
        gc_time: float | None = None,
    ) -> None:
        entry = self._touch(normalize_key(key), stale_time, gc_time, None)
        self._store(entry, data)

    def invalidate(self, prefix: Iterable[Any]) -> int:
        """Mark every entry under ``prefix`` stale; the next read refetches."""

        normalized = normalize_key(prefix)
        count = 0
        for key, entry in self._entries.items():
            if _key_matches(key, normalized):
                entry.invalidated = True
                entry.generation += 1
                count += 1
        if count:
            logger.debug("Invalidated %d cache entr%s under %s", count, "y" if count == 1 else "ies", normalized)
            self._persist()
        return count

    def remove(self, prefix: Iterable[Any]) -> int:
        normalized = normalize_key(prefix)
        doomed = [key for key in self._entries if _key_matches(key, normalized)]
        for key in doomed:
            self._entries.pop(key, None)
        if doomed:
            self._persist()
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._persist()

    def snapshot(self) -> list[dict[str, Any]]:
        """Serialise every entry holding data into JSON-compatible dicts."""

        items: list[dict[str, Any]] = []
        for key, entry in self._entries.items():
            if not entry.has_data:
                continue
            try:
                data = entry.data if entry.raw else to_jsonable_python(entry.data)
                key_json = to_jsonable_python(key)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Skipping unserialisable cache entry %s: %s", key, exc)
                continue
            items.append(
                {
                    "key": key_json,
                    "data": data,
                    "updated_at": entry.updated_at,
                    "stale_time": entry.stale_time,
                    "gc_time": entry.gc_time,
                    "invalidated": entry.invalidated,
                    "last_accessed": entry.last_accessed,
                }
            )
        return items

    def restore(self) -> int:
        """Rehydrate entries from the persister and return how many were loaded."""

        if self._persister is None:
            return 0
        items = self._persister.load()
        if not items:
            return 0

        now = self._clock()
        restored = 0
        for item in items:
            try:
                key = normalize_key(item["key"])
                entry = _CacheEntry(
                    key=key,
                    stale_time=float(item.get("stale_time", self._default_stale_time)),
                    gc_time=float(item.get("gc_time", self._default_gc_time)),
                    data=item["data"],
                    has_data=True,
                    raw=True,
                    updated_at=item.get("updated_at"),
                    invalidated=bool(item.get("invalidated", False)),
                    last_accessed=float(item.get("last_accessed") or now),
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping malformed persisted cache entry: %s", exc)
                continue
            self._entries[key] = entry
            restored += 1

        self._evict_expired()
        logger.info("Restored %d query cache entr%s", restored, "y" if restored == 1 else "ies")
        return restored

    def _touch(
        self,
        key: QueryKey,
        stale_time: float | None,
        gc_time: float | None,
        decode: Decoder | None,
    ) -> _CacheEntry:
        self._evict_expired()
        entry = self._entries.get(key)
        if entry is None:
            entry = _CacheEntry(
                key=key,
                stale_time=self._default_stale_time if stale_time is None else stale_time,
                gc_time=self._default_gc_time if gc_time is None else gc_time,
            )
            self._entries[key] = entry
        else:
            if stale_time is not None:
                entry.stale_time = stale_time
            if gc_time is not None:
                entry.gc_time = gc_time
        entry.last_accessed = self._clock()

        if entry.raw and decode is not None:
            try:
                entry.data = decode(entry.data)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Discarding persisted value for %s: %s", key, exc)
                entry.data = None
                entry.has_data = False
                entry.updated_at = None
            entry.raw = False
        return entry

    def _start(self, entry: _CacheEntry, fetcher: Fetcher) -> asyncio.Future[Any]:
        if entry.task is None or entry.task.done() or entry.task_generation != entry.generation:
            generation = entry.generation
            task = asyncio.ensure_future(self._run(entry, fetcher, generation))
            task.add_done_callback(lambda done, owner=entry: self._finish(owner, done))
            entry.task = task
            entry.task_generation = generation
        return entry.task

    def _finish(self, entry: _CacheEntry, task: asyncio.Future[Any]) -> None:
        if entry.task is task:
            entry.task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Background refresh of %s failed: %s", entry.key, exc)

    async def _run(self, entry: _CacheEntry, fetcher: Fetcher, generation: int) -> Any:
        attempts = self._retry + 1
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                data = await fetcher()
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "Query %s failed (attempt %d/%d): %s", entry.key, attempt, attempts, exc
                )
                if attempt < attempts and self._retry_delay:
                    await asyncio.sleep(self._retry_delay)
                continue
            self._store(entry, data, generation)
            return data

        assert last_error is not None
        if generation >= entry.data_generation:
            entry.error = last_error
            entry.error_at = self._clock()
        if entry.has_data:
            logger.warning("Serving last good value for %s after refresh failure", entry.key)
            return entry.data
        raise last_error

    def _store(self, entry: _CacheEntry, data: Any, generation: int | None = None) -> None:
        if generation is None:
            generation = entry.generation
        if generation < entry.data_generation:
            # a refresh started after a later invalidation already landed
            return
        entry.data = data
        entry.has_data = True
        entry.raw = False
        entry.data_generation = generation
        entry.updated_at = self._clock()
        entry.invalidated = generation != entry.generation
        entry.error = None
        entry.error_at = None
        self._persist()

    def _is_stale(self, entry: _CacheEntry) -> bool:
        if entry.invalidated or entry.updated_at is None:
            return True
        return self._clock() - entry.updated_at >= entry.stale_time

    def _state_of(self, entry: _CacheEntry) -> QueryState:
        fetching = entry.is_fetching
        if entry.error is not None and not fetching:
            status = QueryStatus.ERROR
        elif entry.has_data:
            status = QueryStatus.SUCCESS
        else:
            status = QueryStatus.PENDING
        return QueryState(
            key=entry.key,
            status=status,
            data=entry.data if entry.has_data else None,
            error=entry.error,
            updated_at=entry.updated_at,
            is_stale=self._is_stale(entry),
            is_fetching=fetching,
        )

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if not entry.is_fetching and now - entry.last_accessed > entry.gc_time
        ]
        for key in expired:
            self._entries.pop(key, None)
        if expired:
            logger.debug("Evicted %d unused cache entries", len(expired))
            self._persist()

    async def flush(self) -> None:
        """Write the current snapshot now instead of waiting for the batched save."""

        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._persister is None:
            return
        async with self._save_lock:
            entries = self.snapshot()
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, self._persister.save, entries)
            except (OSError, TypeError, ValueError) as exc:
                logger.warning("Could not persist query cache: %s", exc)

    def _persist(self) -> None:
        if self._persister is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            try:
                self._persister.save(self.snapshot())
            except (OSError, TypeError, ValueError) as exc:
                logger.warning("Could not persist query cache: %s", exc)
            return
        # mutations within one delay window share a single write
        if self._flush_handle is None:
            self._flush_handle = loop.call_later(self._persist_delay, self._schedule_flush)

    def _schedule_flush(self) -> None:
        self._flush_handle = None
        task = asyncio.ensure_future(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)


class FileCachePersister:
    """Durable JSON snapshot of the query cache on local disk."""

    def __init__(
        self,
        path: str | Path,
        *,
        storage_key: str = "REAL_ESTATE_QUERY_CACHE",
        max_age: float = 60 * 60 * 24,
        clock: Clock = time.time,
    ) -> None:
        self.path = Path(path)
        self.storage_key = storage_key
        self.max_age = max_age
        self._clock = clock

    def load(self) -> list[dict[str, Any]] | None:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache snapshot %s: %s", self.path, exc)
            return None

        if not isinstance(payload, dict) or payload.get("storage_key") != self.storage_key:
            logger.info("Ignoring cache snapshot written under another key")
            return None
        try:
            timestamp = float(payload.get("timestamp") or 0)
        except (TypeError, ValueError):
            logger.warning("Ignoring cache snapshot %s with a malformed timestamp", self.path)
            return None
        if self._clock() - timestamp > self.max_age:
            logger.info("Ignoring cache snapshot older than %.0fs", self.max_age)
            return None
        entries = payload.get("entries")
        return entries if isinstance(entries, list) else None

    def save(self, entries: list[dict[str, Any]]) -> None:
        payload = {"storage_key": self.storage_key, "timestamp": self._clock(), "entries": entries}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)

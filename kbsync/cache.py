"""Shared store of in-flight and completed collaborator fetches."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Callable, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SourceKind(str, Enum):
    DIRECTORY = "directory"
    INDEX = "index"


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Identifies one listing: ``(source kind, folder-or-index id, path)``."""

    kind: SourceKind
    scope: str | None
    target: str | None

    @classmethod
    def directory(cls, folder_id: str | None, *, scope: str | None = None) -> "CacheKey":
        return cls(SourceKind.DIRECTORY, scope, folder_id)

    @classmethod
    def index(cls, index_id: str, path: str) -> "CacheKey":
        return cls(SourceKind.INDEX, index_id, path)


@dataclass(slots=True)
class _CacheEntry:
    future: Future
    started_at: float
    completed_at: float | None = None


class FetchCache:
    """Key-value store of fetch futures with explicit prefetch and invalidation.

    ``fetch`` and ``prefetch`` run loaders on *executor* when one is given;
    ``get`` loads on the calling thread and only waits on fetches that are
    already in flight. A loader that raises leaves no entry behind, so the next
    request retries. Entries older than the per-kind ``max_age`` are refetched.
    """

    def __init__(
        self,
        *,
        executor: Executor | None = None,
        max_age: Mapping[SourceKind, float | None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._executor = executor
        self._max_age = dict(max_age or {})
        self._clock = clock
        self._entries: dict[CacheKey, _CacheEntry] = {}
        self._lock = Lock()

    def fetch(self, key: CacheKey, loader: Callable[[], T], *, force: bool = False) -> Future:
        """Return the future for *key*, starting *loader* when nothing usable is cached."""

        return self._fetch(key, loader, force=force, inline=False)

    def get(self, key: CacheKey, loader: Callable[[], T], *, force: bool = False) -> T:
        """Return the value for *key*, loading it on the calling thread when missing."""

        return self._fetch(key, loader, force=force, inline=True).result()

    def _fetch(
        self,
        key: CacheKey,
        loader: Callable[[], T],
        *,
        force: bool,
        inline: bool,
    ) -> Future:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not force and self._is_usable(key, entry):
                return entry.future
            future: Future = Future()
            entry = _CacheEntry(future=future, started_at=self._clock())
            self._entries[key] = entry
        future.add_done_callback(lambda done: self._on_done(key, entry, done))
        self._start(future, loader, inline=inline)
        return future

    def prefetch(self, key: CacheKey, loader: Callable[[], T]) -> None:
        """Warm *key* without waiting; failures are dropped from the cache."""

        self.fetch(key, loader)

    def peek(self, key: CacheKey):
        """Return the completed value for *key*, or None when absent or unfinished."""

        with self._lock:
            entry = self._entries.get(key)
        if entry is None or not entry.future.done():
            return None
        if entry.future.cancelled() or entry.future.exception() is not None:
            return None
        return entry.future.result()

    def invalidate(
        self,
        key: CacheKey | None = None,
        *,
        kind: SourceKind | None = None,
        scope: str | None = None,
    ) -> int:
        """Drop one entry, or every entry matching *kind* and *scope*."""

        with self._lock:
            if key is not None:
                return 1 if self._entries.pop(key, None) is not None else 0
            doomed = [
                existing
                for existing in self._entries
                if (kind is None or existing.kind is kind)
                and (scope is None or existing.scope == scope)
            ]
            for existing in doomed:
                del self._entries[existing]
        if doomed:
            logger.debug("Invalidated %d cached listing(s)", len(doomed))
        return len(doomed)

    def clear(self) -> int:
        return self.invalidate()

    def _is_usable(self, key: CacheKey, entry: _CacheEntry) -> bool:
        if entry.completed_at is None:
            return True
        max_age = self._max_age.get(key.kind)
        if max_age is None:
            return True
        return self._clock() - entry.completed_at < max_age

    def _start(self, future: Future, loader: Callable[[], T], *, inline: bool) -> None:
        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = loader()
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

        if inline or self._executor is None:
            _run()
        else:
            self._executor.submit(_run)

    def _on_done(self, key: CacheKey, entry: _CacheEntry, future: Future) -> None:
        failed = future.cancelled() or future.exception() is not None
        with self._lock:
            if self._entries.get(key) is not entry:
                return
            if failed:
                del self._entries[key]
            else:
                entry.completed_at = self._clock()
        if failed and not future.cancelled():
            logger.debug("Fetch for %s failed: %s", key, future.exception())

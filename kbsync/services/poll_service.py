"""Polling contract for folders whose files are still being processed."""

from __future__ import annotations

import time
from typing import Callable, Iterable

from ..models import IndexStatus, MergedNode
from ..paths import normalize_path

DEFAULT_POLL_INTERVAL = 3.0


def needs_polling(statuses: Iterable[tuple[MergedNode, IndexStatus]]) -> bool:
    """True while any file shows ``pending`` or ``being_indexed``.

    *statuses* pairs each node with the status currently displayed for it.
    Directories are containers and never keep a folder polling.
    """

    return any(node.is_file and status.needs_polling for node, status in statuses)


class FolderPoller:
    """Tracks which visible folders are polled and when they last were."""

    def __init__(
        self,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("Poll interval must be > 0")
        self.interval = interval
        self._clock = clock
        self._watched: dict[str, float | None] = {}
        self._active: set[str] = set()

    @property
    def watched(self) -> list[str]:
        return sorted(self._watched)

    def watch(self, path: str) -> None:
        self._watched.setdefault(normalize_path(path), None)

    def unwatch(self, path: str) -> None:
        clean = normalize_path(path)
        self._watched.pop(clean, None)
        self._active.discard(clean)

    def is_polling(self, path: str) -> bool:
        return normalize_path(path) in self._active

    def update(self, path: str, statuses: Iterable[tuple[MergedNode, IndexStatus]]) -> bool:
        """Record a fresh listing of *path*; return whether it keeps polling."""

        clean = normalize_path(path)
        if clean not in self._watched:
            return False
        self._watched[clean] = self._clock()
        if needs_polling(statuses):
            self._active.add(clean)
            return True
        self._active.discard(clean)
        return False

    def due(self, *, include_idle: bool = False) -> list[str]:
        """Folders whose last listing is older than the interval.

        Only polling folders count unless *include_idle* is set, which a
        session uses while a rebuild is still settling.
        """

        now = self._clock()
        candidates = self._watched if include_idle else self._active
        ready: list[str] = []
        for path in sorted(candidates):
            last = self._watched.get(path)
            if last is None or now - last >= self.interval:
                ready.append(path)
        return ready

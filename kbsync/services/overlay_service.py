"""Optimistic pending status between a rebuild submission and server confirmation."""

from __future__ import annotations

import logging
import time
from enum import Enum
from threading import RLock
from typing import Callable, Iterable, Sequence

from ..models import IndexStatus, MergedNode
from ..paths import PathSet

logger = logging.getLogger(__name__)

DEFAULT_SUPPRESSION_WINDOW = 3.0
DEFAULT_GRACE_PERIOD = 30.0


class OverlayPhase(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    DRAINING = "draining"


class PendingOverlay:
    """The set of paths force-displayed as pending while a rebuild settles.

    While non-empty it is the only source of display status: covered paths
    show ``pending`` and everything else shows ``not_indexed``.
    """

    def __init__(self) -> None:
        self._paths = PathSet()

    @property
    def paths(self) -> PathSet:
        return self._paths

    @property
    def active(self) -> bool:
        return bool(self._paths)

    def arm(self, paths: Iterable[str]) -> None:
        self._paths = PathSet.canonical(paths)

    def clear(self) -> None:
        self._paths = PathSet()

    def discard(self, path: str) -> bool:
        if path not in self._paths:
            return False
        self._paths = self._paths.without(path)
        return True

    def covering(self, path: str) -> str | None:
        return self._paths.covering_member(path)

    def effective_status(self, path: str, raw: IndexStatus) -> IndexStatus:
        if not self._paths:
            return raw
        if self._paths.covers(path):
            return IndexStatus.PENDING
        return IndexStatus.NOT_INDEXED


class Reconciler:
    """Arms and drains the pending overlay for one rebuild at a time.

    Each ``begin`` starts a new generation. Observations only count once the
    suppression window has elapsed and the generation's submission has
    reported its new index id, and only when they were fetched from that
    index. Whatever is still pending after the grace period is dropped.
    Timers are checked lazily against *clock* on every call.
    """

    def __init__(
        self,
        overlay: PendingOverlay | None = None,
        *,
        suppression_window: float = DEFAULT_SUPPRESSION_WINDOW,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if suppression_window < 0 or grace_period < 0:
            raise ValueError("Reconciler windows must be >= 0")
        self.overlay = overlay or PendingOverlay()
        self.suppression_window = suppression_window
        self.grace_period = max(grace_period, suppression_window)
        self._clock = clock
        self._lock = RLock()
        self._generation = 0
        self._armed_at: float | None = None
        self._target_index_id: str | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def target_index_id(self) -> str | None:
        return self._target_index_id

    @property
    def phase(self) -> OverlayPhase:
        with self._lock:
            self._expire()
            return self._phase()

    def _phase(self) -> OverlayPhase:
        if not self.overlay.active or self._armed_at is None:
            return OverlayPhase.IDLE
        suppressed = self._clock() - self._armed_at < self.suppression_window
        if suppressed or self._target_index_id is None:
            return OverlayPhase.ARMED
        return OverlayPhase.DRAINING

    def _expire(self) -> None:
        if self._armed_at is None:
            return
        if not self.overlay.active:
            self._reset()
            return
        if self._clock() - self._armed_at >= self.grace_period:
            logger.debug(
                "Grace period over for generation %d; dropping %d pending path(s)",
                self._generation,
                len(self.overlay.paths),
            )
            self._reset()

    def _reset(self) -> None:
        self.overlay.clear()
        self._armed_at = None
        self._target_index_id = None

    def begin(self, paths: Iterable[str]) -> int:
        """Arm the overlay with exactly *paths* and return the new generation."""

        with self._lock:
            self._generation += 1
            self.overlay.arm(paths)
            self._target_index_id = None
            self._armed_at = self._clock() if self.overlay.active else None
            logger.debug(
                "Armed generation %d with %d path(s)",
                self._generation,
                len(self.overlay.paths),
            )
            return self._generation

    def confirm_submission(self, generation: int, index_id: str) -> bool:
        """Record the index id produced by *generation*'s rebuild."""

        with self._lock:
            if generation != self._generation:
                logger.debug("Ignoring submission of stale generation %d", generation)
                return False
            self._target_index_id = index_id
            return True

    def abort(self, generation: int) -> bool:
        """Disarm immediately because *generation*'s submission failed."""

        with self._lock:
            if generation != self._generation:
                return False
            logger.debug("Disarming generation %d after failed submission", generation)
            self._reset()
            return True

    def tick(self) -> OverlayPhase:
        return self.phase

    def release(self, path: str) -> bool:
        """Drop *path* from the overlay when it is a member, e.g. after a delete."""

        with self._lock:
            released = self.overlay.discard(path)
            if released and not self.overlay.active:
                self._reset()
            return released

    def observe(self, index_id: str | None, nodes: Sequence[MergedNode]) -> list[str]:
        """Narrow the overlay using raw statuses fetched from *index_id*.

        Returns the overlay members that were removed.
        """

        with self._lock:
            self._expire()
            if self._phase() is not OverlayPhase.DRAINING:
                return []
            if index_id is None or index_id != self._target_index_id:
                return []
            removed: list[str] = []
            for node in nodes:
                if not node.is_file or not node.status.is_confirmed:
                    continue
                covering = self.overlay.covering(node.path)
                if covering is not None and self.overlay.discard(covering):
                    removed.append(covering)
            if removed:
                logger.debug("Confirmed %s for generation %d", removed, self._generation)
            if not self.overlay.active:
                self._reset()
            return removed

    def effective_status(self, node: MergedNode) -> IndexStatus:
        with self._lock:
            self._expire()
            return self.overlay.effective_status(node.path, node.status)

    def covers(self, path: str) -> bool:
        with self._lock:
            self._expire()
            return self.overlay.covering(path) is not None

"""Rebuild and delete submissions against the index source."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable, Iterable

from ..errors import KbSyncError, NotFoundError, TransientServerError
from ..models import IndexStatus
from ..paths import PathSet, normalize_path
from ..text import Messages
from .expand_service import PathExpander
from .merge_service import FolderLoader
from .overlay_service import Reconciler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RebuildResult:
    generation: int
    index_id: str
    previous_index_id: str | None
    paths: list[str] = field(default_factory=list)
    file_ids: list[str] = field(default_factory=list)


def _run_now(func: Callable, *args) -> Future:
    future: Future = Future()
    future.set_running_or_notify_cancel()
    try:
        future.set_result(func(*args))
    except Exception as exc:
        future.set_exception(exc)
    return future


class IndexMutations:
    """Submit rebuilds and deletes while keeping local display state honest.

    A rebuild arms the reconciler before anything touches the network and
    disarms it again if any step fails. A delete hides the path locally
    straight away and restores it if the server call fails.
    """

    def __init__(
        self,
        loader: FolderLoader,
        expander: PathExpander,
        reconciler: Reconciler,
        *,
        executor: Executor | None = None,
    ) -> None:
        self._loader = loader
        self._expander = expander
        self._reconciler = reconciler
        self._executor = executor
        self._lock = Lock()
        self._rebuild_in_flight = False
        self._removals = PathSet()

    @property
    def rebuild_in_flight(self) -> bool:
        return self._rebuild_in_flight

    @property
    def removals(self) -> PathSet:
        return self._removals

    def _submit(self, func: Callable, *args) -> Future:
        if self._executor is None:
            return _run_now(func, *args)
        return self._executor.submit(func, *args)

    def rebuild(self, paths: Iterable[str]) -> RebuildResult:
        return self.rebuild_async(paths).result()

    def rebuild_async(self, paths: Iterable[str]) -> Future:
        """Arm the overlay with *paths* now and submit the rebuild."""

        selected = PathSet.canonical(paths).to_list()
        with self._lock:
            if self._rebuild_in_flight:
                raise KbSyncError(Messages.ERROR_REBUILD_IN_FLIGHT)
            self._rebuild_in_flight = True
        generation: int | None = None
        try:
            generation = self._reconciler.begin(selected)
            return self._submit(self._run_rebuild, generation, selected)
        except Exception:
            if generation is not None:
                self._reconciler.abort(generation)
            with self._lock:
                self._rebuild_in_flight = False
            raise

    def _run_rebuild(self, generation: int, selected: list[str]) -> RebuildResult:
        previous = self._loader.index_id
        try:
            file_ids = self._expander.expand(selected)
            new_index_id = self._loader.index_source.submit_rebuild(previous, file_ids)
        except Exception:
            self._reconciler.abort(generation)
            with self._lock:
                self._rebuild_in_flight = False
            logger.debug("Rebuild generation %d failed", generation, exc_info=True)
            raise
        self._reconciler.confirm_submission(generation, new_index_id)
        self._loader.set_index_id(new_index_id)
        with self._lock:
            self._rebuild_in_flight = False
        logger.debug(
            "Rebuild generation %d replaced %s with %s (%d file(s))",
            generation,
            previous,
            new_index_id,
            len(file_ids),
        )
        return RebuildResult(
            generation=generation,
            index_id=new_index_id,
            previous_index_id=previous,
            paths=selected,
            file_ids=file_ids,
        )

    def delete(self, path: str) -> None:
        self.delete_async(path).result()

    def delete_async(self, path: str) -> Future:
        """Hide *path* locally now and remove it from the index."""

        clean = normalize_path(path)
        index_id = self._loader.index_id
        if index_id is None:
            raise NotFoundError(Messages.ERROR_NO_INDEX, path=clean)
        with self._lock:
            self._removals = self._removals.with_added(clean)
        self._reconciler.release(clean)
        return self._submit(self._run_delete, index_id, clean)

    def _run_delete(self, index_id: str, path: str) -> None:
        try:
            self._loader.index_source.delete_resource(index_id, path)
        except Exception as exc:
            with self._lock:
                self._removals = self._removals.without(path)
            self._loader.invalidate_index()
            logger.debug("Delete of %s failed; restored local state", path, exc_info=True)
            if isinstance(exc, KbSyncError):
                raise
            raise TransientServerError(
                Messages.ERROR_DELETE_FAILED.format(path=path, reason=exc)
            ) from exc
        self._loader.invalidate_index()
        with self._lock:
            self._removals = self._removals.without(path)

    def effective_status(self, path: str, status: IndexStatus) -> IndexStatus:
        if self._removals.covers(path):
            return IndexStatus.NOT_INDEXED
        return status

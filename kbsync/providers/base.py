"""Interfaces of the two external collaborators and shared retry helpers."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Protocol, Sequence, TypeVar

from ..errors import TransientServerError
from ..models import IndexedNode, IndexStatus, NodeKind, ResourceNode
from ..paths import ancestors, is_ancestor, parent_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
_RETRY_BASE_DELAY = 0.5
_RETRY_MAX_DELAY = 4.0


class DirectorySource(Protocol):
    """Hierarchical file listing that is the ground truth for what exists."""

    def list_children(self, folder_id: str | None, folder_path: str) -> Sequence[ResourceNode]:
        """List one level below *folder_id* (``None`` lists the root)."""
        raise NotImplementedError


class IndexSource(Protocol):
    """Service ingesting selected files and reporting their processing status."""

    def list_indexed(self, index_id: str, path: str) -> Sequence[IndexedNode]:
        """List indexed children of *path*; absence of a node means not indexed."""
        raise NotImplementedError

    def submit_rebuild(self, index_id: str | None, file_ids: Sequence[str]) -> str:
        """Replace *index_id* with a new index over *file_ids* and return its id."""
        raise NotImplementedError

    def delete_resource(self, index_id: str, path: str) -> None:
        raise NotImplementedError


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


def _backoff_delay(attempt: int) -> float:
    return min(_RETRY_MAX_DELAY, _RETRY_BASE_DELAY * (2**attempt))


def should_retry(exc: Exception) -> bool:
    if not isinstance(exc, TransientServerError):
        return False
    if exc.status_code is None:
        return True
    return exc.status_code in _RETRYABLE_STATUS_CODES


def call_with_retries(
    func: Callable[[], T],
    *,
    max_retries: int,
    sleep: Callable[[float], None] | None = None,
) -> T:
    """Run *func*, retrying transient server failures with exponential backoff."""

    pause = sleep or _sleep
    attempt = 0
    while True:
        try:
            return func()
        except TransientServerError as exc:
            if should_retry(exc) and attempt < max_retries:
                delay = _backoff_delay(attempt)
                logger.debug("Retrying after %s (attempt %d, %.1fs)", exc, attempt + 1, delay)
                pause(delay)
                attempt += 1
                continue
            raise


def indexed_children(
    files: Iterable[IndexedNode],
    folder: str,
    directory_id: Callable[[str], str],
) -> list[IndexedNode]:
    """Project indexed files onto the direct children of *folder*.

    Files directly inside *folder* are returned as-is; deeper files surface
    as their top-level directory under *folder*. A directory reports
    ``being_indexed`` while any file below it is still in progress.
    """

    children: dict[str, IndexedNode] = {}
    for node in files:
        if parent_path(node.path) == folder:
            children[node.path] = node
            continue
        if not is_ancestor(folder, node.path):
            continue
        for ancestor in ancestors(node.path):
            if parent_path(ancestor) != folder:
                continue
            previous = children.get(ancestor)
            if node.status.needs_polling:
                status = IndexStatus.BEING_INDEXED
            elif previous is not None:
                status = previous.status
            else:
                status = IndexStatus.INDEXED
            children[ancestor] = IndexedNode(
                directory_id(ancestor), ancestor, NodeKind.DIRECTORY, status
            )
            break
    return [children[key] for key in sorted(children)]

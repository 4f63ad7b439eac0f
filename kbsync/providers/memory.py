"""In-memory directory and index sources for library use and tests."""

from __future__ import annotations

import hashlib
import itertools
from threading import Lock
from typing import Iterable, Sequence

from ..errors import KbSyncError, NotFoundError
from ..models import IndexedNode, IndexStatus, NodeKind, ResourceNode
from ..paths import ROOT, ancestors, is_ancestor, normalize_path, parent_path
from ..text import Messages
from .base import indexed_children


def _stable_id(path: str) -> str:
    return hashlib.sha1(path.encode("utf-8")).hexdigest()[:12]


class InMemoryDirectorySource:
    """Directory tree held in memory.

    Paths ending with ``/`` are directories; parent folders are created
    implicitly. Register an exception in ``failures`` (keyed by folder id,
    ``None`` for the root) to make listing that folder fail.
    """

    def __init__(self, entries: Iterable[str] = ()) -> None:
        self._lock = Lock()
        self._by_path: dict[str, ResourceNode] = {}
        self._by_id: dict[str, ResourceNode] = {}
        self._children: dict[str, list[str]] = {ROOT: []}
        self.calls: list[str | None] = []
        self.failures: dict[str | None, Exception] = {}
        for entry in entries:
            self.add(entry)

    def add(
        self,
        path: str,
        *,
        kind: NodeKind | None = None,
        resource_id: str | None = None,
    ) -> ResourceNode:
        if kind is None:
            kind = NodeKind.DIRECTORY if path.endswith("/") else NodeKind.FILE
        clean = normalize_path(path)
        if clean == ROOT:
            raise ValueError("The root folder always exists")
        with self._lock:
            for ancestor in reversed(list(ancestors(clean))):
                if ancestor != ROOT and ancestor not in self._by_path:
                    self._insert(ResourceNode(_stable_id(ancestor), ancestor, NodeKind.DIRECTORY))
            existing = self._by_path.get(clean)
            if existing is not None:
                return existing
            node = ResourceNode(resource_id or _stable_id(clean), clean, kind)
            self._insert(node)
            return node

    def _insert(self, node: ResourceNode) -> None:
        self._by_path[node.path] = node
        self._by_id[node.id] = node
        self._children.setdefault(parent_path(node.path), []).append(node.path)
        if node.is_directory:
            self._children.setdefault(node.path, [])

    def node(self, path: str) -> ResourceNode:
        clean = normalize_path(path)
        node = self._by_path.get(clean)
        if node is None:
            raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
        return node

    def id_of(self, path: str) -> str:
        return self.node(path).id

    def by_id(self, resource_id: str) -> ResourceNode:
        node = self._by_id.get(resource_id)
        if node is None:
            raise NotFoundError(Messages.ERROR_RESOURCE_NOT_FOUND.format(resource_id=resource_id))
        return node

    def remove(self, path: str) -> None:
        clean = normalize_path(path)
        with self._lock:
            doomed = [p for p in self._by_path if p == clean or is_ancestor(clean, p)]
            for doomed_path in doomed:
                node = self._by_path.pop(doomed_path)
                self._by_id.pop(node.id, None)
                self._children.pop(doomed_path, None)
            siblings = self._children.get(parent_path(clean), [])
            if clean in siblings:
                siblings.remove(clean)

    def list_children(self, folder_id: str | None, folder_path: str = ROOT) -> list[ResourceNode]:
        with self._lock:
            self.calls.append(folder_id)
            failure = self.failures.get(folder_id)
            if failure is not None:
                raise failure
            if folder_id is None:
                folder = ROOT
            else:
                node = self._by_id.get(folder_id)
                if node is None or not node.is_directory:
                    raise NotFoundError(
                        Messages.ERROR_RESOURCE_NOT_FOUND.format(resource_id=folder_id)
                    )
                folder = node.path
            return [self._by_path[path] for path in sorted(self._children.get(folder, []))]


class InMemoryIndexSource:
    """Index source holding one file set per index id.

    Rebuilt files start at ``initial_status``; call ``set_status`` to
    simulate server-side progress. ``failures`` maps an operation name
    (``list``, ``rebuild``, ``create``, ``delete``) to the exception it should
    raise next; ``create`` fails after the previous index was already dropped.
    """

    def __init__(
        self,
        directory: InMemoryDirectorySource,
        *,
        index_id: str = "kb-0",
        initial_status: IndexStatus = IndexStatus.PENDING,
        id_prefix: str = "kb",
    ) -> None:
        self._directory = directory
        self._lock = Lock()
        self._indexes: dict[str, dict[str, IndexedNode]] = {index_id: {}}
        self._counter = itertools.count(1)
        self._id_prefix = id_prefix
        self.initial_status = initial_status
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, str | None, object]] = []

    @property
    def index_ids(self) -> list[str]:
        return sorted(self._indexes)

    def files(self, index_id: str) -> dict[str, IndexStatus]:
        with self._lock:
            return {path: node.status for path, node in self._indexes.get(index_id, {}).items()}

    def set_status(self, index_id: str, path: str, status: IndexStatus) -> None:
        clean = normalize_path(path)
        with self._lock:
            entries = self._indexes.get(index_id)
            if entries is None or clean not in entries:
                raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
            node = entries[clean]
            entries[clean] = IndexedNode(node.id, node.path, node.kind, status)

    def seed(self, index_id: str, paths: Iterable[str], status: IndexStatus) -> None:
        """Mark existing directory-source files as indexed under *index_id*."""

        with self._lock:
            entries = self._indexes.setdefault(index_id, {})
            for path in paths:
                node = self._directory.node(path)
                entries[node.path] = IndexedNode(node.id, node.path, node.kind, status)

    def _take_failure(self, operation: str) -> None:
        failure = self.failures.pop(operation, None)
        if failure is not None:
            raise failure

    def list_indexed(self, index_id: str, path: str) -> list[IndexedNode]:
        folder = normalize_path(path)
        with self._lock:
            self.calls.append(("list", index_id, folder))
            self._take_failure("list")
            entries = self._indexes.get(index_id)
            if not entries:
                return []
            files = [node for node in entries.values() if node.is_file]
        return indexed_children(files, folder, lambda path: self._directory.id_of(path))

    def submit_rebuild(self, index_id: str | None, file_ids: Sequence[str]) -> str:
        with self._lock:
            self.calls.append(("rebuild", index_id, tuple(file_ids)))
            self._take_failure("rebuild")
            if index_id is not None:
                self._indexes.pop(index_id, None)
            self._take_failure("create")
            new_id = f"{self._id_prefix}-{next(self._counter)}"
            entries: dict[str, IndexedNode] = {}
            for resource_id in file_ids:
                node = self._directory.by_id(resource_id)
                if not node.is_file:
                    raise KbSyncError(Messages.ERROR_REBUILD_NOT_FILE.format(path=node.path))
                entries[node.path] = IndexedNode(
                    node.id, node.path, node.kind, self.initial_status
                )
            self._indexes[new_id] = entries
            return new_id

    def delete_resource(self, index_id: str, path: str) -> None:
        clean = normalize_path(path)
        with self._lock:
            self.calls.append(("delete", index_id, clean))
            self._take_failure("delete")
            entries = self._indexes.get(index_id)
            doomed = [
                existing
                for existing in (entries or {})
                if existing == clean or is_ancestor(clean, existing)
            ]
            if not doomed:
                raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
            for existing in doomed:
                del entries[existing]

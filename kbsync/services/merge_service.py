"""Per-folder merge of directory listings with index status."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Collection, Sequence

from ..cache import CacheKey, FetchCache, SourceKind
from ..errors import KbSyncError, NotFoundError
from ..models import ROOT_NODE, IndexedNode, IndexStatus, MergedNode, ResourceNode
from ..paths import ROOT, normalize_path
from ..providers.base import DirectorySource, IndexSource, call_with_retries
from ..text import Messages

logger = logging.getLogger(__name__)


def merge_nodes(
    directory_nodes: Sequence[ResourceNode],
    indexed_nodes: Sequence[IndexedNode],
) -> list[MergedNode]:
    """Annotate every directory node with its index status, keyed by id."""

    status_by_id = {node.id: node.status for node in indexed_nodes}
    return [
        MergedNode(
            id=node.id,
            path=node.path,
            kind=node.kind,
            status=status_by_id.get(node.id, IndexStatus.NOT_INDEXED),
        )
        for node in directory_nodes
    ]


@dataclass(slots=True)
class FolderListing:
    folder_id: str | None
    path: str
    nodes: list[MergedNode] = field(default_factory=list)
    index_id: str | None = None
    error: KbSyncError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def child_paths(self) -> list[str]:
        return [node.path for node in self.nodes]

    @property
    def folders(self) -> list[MergedNode]:
        return [node for node in self.nodes if node.is_directory]


class FolderLoader:
    """Fetch, cache and merge one folder at a time.

    Directory listings are cached per folder id, index listings per
    ``(index id, path)``. Every node seen is remembered by path so later
    stages can resolve paths to ids without refetching.
    """

    def __init__(
        self,
        directory_source: DirectorySource,
        index_source: IndexSource,
        cache: FetchCache,
        *,
        index_id: str | None,
        scope: str | None = None,
        max_retries: int = 2,
        prefetch: bool = True,
    ) -> None:
        self.directory_source = directory_source
        self.index_source = index_source
        self.cache = cache
        self.scope = scope
        self.max_retries = max_retries
        self.prefetch_enabled = prefetch
        self._index_id = index_id
        self._known: dict[str, ResourceNode] = {ROOT: ROOT_NODE}
        self._known_lock = Lock()

    @property
    def index_id(self) -> str | None:
        return self._index_id

    def set_index_id(self, index_id: str | None) -> None:
        previous = self._index_id
        self._index_id = index_id
        if previous is not None and previous != index_id:
            self.cache.invalidate(kind=SourceKind.INDEX, scope=previous)

    def remember(self, nodes: Sequence[ResourceNode]) -> None:
        with self._known_lock:
            for node in nodes:
                self._known[node.path] = ResourceNode(node.id, node.path, node.kind)

    def known_node(self, path: str) -> ResourceNode | None:
        with self._known_lock:
            return self._known.get(normalize_path(path))

    def resolve_id(self, path: str) -> str | None:
        node = self.known_node(path)
        return node.id if node is not None and node.id else None

    def _directory_key(self, folder_id: str | None) -> CacheKey:
        return CacheKey.directory(folder_id, scope=self.scope)

    def _directory_loader(self, folder_id: str | None, path: str):
        def _load() -> list[ResourceNode]:
            nodes = list(
                call_with_retries(
                    lambda: self.directory_source.list_children(folder_id, path),
                    max_retries=self.max_retries,
                )
            )
            self.remember(nodes)
            return nodes

        return _load

    def _index_loader(self, index_id: str, path: str):
        def _load() -> list[IndexedNode]:
            return list(
                call_with_retries(
                    lambda: self.index_source.list_indexed(index_id, path),
                    max_retries=self.max_retries,
                )
            )

        return _load

    def list_directory(self, folder_id: str | None, path: str) -> list[ResourceNode]:
        clean = normalize_path(path)
        return self.cache.get(
            self._directory_key(folder_id), self._directory_loader(folder_id, clean)
        )

    def list_indexed(self, path: str, *, refresh: bool = False) -> list[IndexedNode]:
        index_id = self._index_id
        if index_id is None:
            return []
        clean = normalize_path(path)
        return self.cache.get(
            CacheKey.index(index_id, clean),
            self._index_loader(index_id, clean),
            force=refresh,
        )

    def prefetch_children(self, nodes: Sequence[ResourceNode]) -> None:
        """Warm directory listings of child folders without waiting."""

        for node in nodes:
            if node.is_directory:
                self.cache.prefetch(
                    self._directory_key(node.id), self._directory_loader(node.id, node.path)
                )

    def load(
        self,
        folder_id: str | None,
        path: str,
        *,
        refresh_index: bool = False,
    ) -> FolderListing:
        """Merge one folder; failures are reported on the listing, not raised."""

        clean = normalize_path(path)
        index_id = self._index_id
        try:
            directory_nodes = self.list_directory(folder_id, clean)
        except KbSyncError as exc:
            logger.debug("Listing %s failed: %s", clean, exc)
            return FolderListing(folder_id=folder_id, path=clean, index_id=index_id, error=exc)
        if self.prefetch_enabled:
            self.prefetch_children(directory_nodes)
        error: KbSyncError | None = None
        try:
            indexed_nodes = self.list_indexed(clean, refresh=refresh_index)
        except KbSyncError as exc:
            logger.debug("Index status for %s failed: %s", clean, exc)
            indexed_nodes = []
            error = exc
        return FolderListing(
            folder_id=folder_id,
            path=clean,
            nodes=merge_nodes(directory_nodes, indexed_nodes),
            index_id=index_id,
            error=error,
        )

    def load_path(self, path: str, *, refresh_index: bool = False) -> FolderListing:
        clean = normalize_path(path)
        if clean == ROOT:
            return self.load(None, ROOT, refresh_index=refresh_index)
        node = self.known_node(clean)
        if node is None or not node.is_directory:
            raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
        return self.load(node.id, clean, refresh_index=refresh_index)

    def walk(self, expanded: Collection[str]) -> list[FolderListing]:
        """Load the root and every expanded folder reachable from it, breadth first."""

        open_paths = {normalize_path(path) for path in expanded}
        listings: list[FolderListing] = []
        worklist: deque[tuple[str | None, str]] = deque([(None, ROOT)])
        while worklist:
            folder_id, path = worklist.popleft()
            listing = self.load(folder_id, path)
            listings.append(listing)
            for node in listing.folders:
                if node.path in open_paths:
                    worklist.append((node.id, node.path))
        return listings

    def invalidate_index(self, path: str | None = None) -> int:
        index_id = self._index_id
        if index_id is None:
            return 0
        if path is None:
            return self.cache.invalidate(kind=SourceKind.INDEX, scope=index_id)
        return self.cache.invalidate(CacheKey.index(index_id, normalize_path(path)))

"""Public Python API for kbsync."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Iterable

from .cache import FetchCache, SourceKind
from .config import Config
from .errors import KbSyncError, NotFoundError
from .models import IndexStatus, MergedNode
from .paths import ROOT, PathSet, ancestors, is_ancestor, normalize_path, parent_path
from .providers.base import DirectorySource, IndexSource
from .services.expand_service import FileInfo, PathExpander, collect_indexed_files
from .services.merge_service import FolderListing, FolderLoader
from .services.mutation_service import IndexMutations, RebuildResult
from .services.overlay_service import Reconciler
from .services.poll_service import FolderPoller
from .services.selection_service import SelectionEngine
from .text import Messages

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TreeEntry:
    node: MergedNode
    status: IndexStatus
    depth: int
    selected: bool = False
    partially_selected: bool = False
    expanded: bool = False

    @property
    def path(self) -> str:
        return self.node.path

    @property
    def raw_status(self) -> IndexStatus:
        return self.node.status


class PickerSession:
    """One picker over a directory source and the index built from it.

    The session owns the fetch cache, the worker pools and every service.
    Reads (``folder``, ``tree``, ``poll``) happen on the calling thread and
    feed what they see to the reconciler and the poller. Rebuilds and
    deletes run on a single submission worker; the ``*_async`` variants
    return their futures.
    """

    def __init__(
        self,
        directory_source: DirectorySource,
        index_source: IndexSource,
        *,
        index_id: str | None = None,
        config: Config | None = None,
        clock: Callable[[], float] = time.monotonic,
        scope: str | None = None,
        prefetch: bool = True,
    ) -> None:
        self.config = config or Config()
        workers = max(1, self.config.fetch_concurrency)
        self._fetch_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kbsync-fetch")
        self._expand_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="kbsync-expand")
        self._submit_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kbsync-submit")
        self.cache = FetchCache(
            executor=self._fetch_pool,
            max_age={
                SourceKind.DIRECTORY: self.config.directory_ttl,
                SourceKind.INDEX: self.config.poll_interval,
            },
            clock=clock,
        )
        self.loader = FolderLoader(
            directory_source,
            index_source,
            self.cache,
            index_id=index_id,
            scope=scope,
            max_retries=self.config.max_retries,
            prefetch=prefetch,
        )
        self.engine = SelectionEngine()
        self.reconciler = Reconciler(
            suppression_window=self.config.suppression_window,
            grace_period=self.config.grace_period,
            clock=clock,
        )
        self.poller = FolderPoller(interval=self.config.poll_interval, clock=clock)
        self.expander = PathExpander(self.loader.list_directory, executor=self._expand_pool)
        self.mutations = IndexMutations(
            self.loader,
            self.expander,
            self.reconciler,
            executor=self._submit_pool,
        )
        self._expanded: set[str] = {ROOT}
        self._listings: dict[str, FolderListing] = {}
        self.errors: dict[str, KbSyncError] = {}
        self.poller.watch(ROOT)
        self._closed = False

    def __enter__(self) -> "PickerSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def index_id(self) -> str | None:
        return self.loader.index_id

    @property
    def edit_mode(self) -> bool:
        return self.engine.edit_mode

    @property
    def expanded(self) -> list[str]:
        return sorted(self._expanded)

    def is_expanded(self, path: str) -> bool:
        return normalize_path(path) in self._expanded

    # Loading -----------------------------------------------------------

    def _observe(self, listing: FolderListing) -> None:
        self._listings[listing.path] = listing
        if listing.error is not None:
            self.errors[listing.path] = listing.error
        else:
            self.errors.pop(listing.path, None)
        if listing.nodes:
            self.reconciler.observe(listing.index_id, listing.nodes)
        if listing.path in self._expanded:
            self.poller.update(
                listing.path,
                [(node, self.effective_status(node)) for node in listing.nodes],
            )

    def _load(self, path: str, *, refresh_index: bool = False) -> FolderListing:
        listing = self.loader.load_path(path, refresh_index=refresh_index)
        self._observe(listing)
        return listing

    def _entry(self, node: MergedNode, depth: int) -> TreeEntry:
        return TreeEntry(
            node=node,
            status=self.effective_status(node),
            depth=depth,
            selected=self.engine.edit_mode and self.engine.is_selected(node.path),
            partially_selected=self.engine.edit_mode
            and node.is_directory
            and self.engine.is_partially_selected(node.path),
            expanded=node.path in self._expanded,
        )

    def folder(self, path: str = ROOT, *, refresh: bool = False) -> list[TreeEntry]:
        """Return the merged direct children of *path*."""

        clean = normalize_path(path)
        listing = self._load(clean, refresh_index=refresh)
        depth = len(list(ancestors(clean)))
        return [self._entry(node, depth) for node in listing.nodes]

    def tree(self) -> list[TreeEntry]:
        """Return every visible entry in display order, depth first."""

        by_path: dict[str, FolderListing] = {}
        for listing in self.loader.walk(self._expanded):
            self._observe(listing)
            by_path[listing.path] = listing

        entries: list[TreeEntry] = []
        stack: list[tuple[MergedNode, int]] = [
            (node, 0) for node in reversed(by_path[ROOT].nodes)
        ]
        while stack:
            node, depth = stack.pop()
            entries.append(self._entry(node, depth))
            child_listing = by_path.get(node.path) if node.is_directory else None
            if child_listing is not None:
                stack.extend((child, depth + 1) for child in reversed(child_listing.nodes))
        return entries

    def expand_folder(self, path: str) -> list[TreeEntry]:
        clean = normalize_path(path)
        if clean != ROOT:
            node = self.loader.known_node(clean)
            if node is None or not node.is_directory:
                raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
        self._expanded.add(clean)
        self.poller.watch(clean)
        return self.folder(clean)

    def collapse_folder(self, path: str) -> None:
        clean = normalize_path(path)
        if clean == ROOT:
            return
        closing = [
            folder for folder in self._expanded if folder == clean or is_ancestor(clean, folder)
        ]
        for folder in closing:
            self._expanded.discard(folder)
            self.poller.unwatch(folder)

    def reveal(self, path: str) -> None:
        """Expand every folder above *path* so that it becomes visible."""

        for folder in reversed(list(ancestors(normalize_path(path)))):
            if folder not in self._expanded or folder not in self._listings:
                self.expand_folder(folder)

    def toggle_expanded(self, path: str) -> bool:
        """Flip the expansion of *path* and return whether it is now expanded."""

        if self.is_expanded(path) and normalize_path(path) != ROOT:
            self.collapse_folder(path)
            return False
        self.expand_folder(path)
        return True

    # Status -----------------------------------------------------------

    def effective_status(self, node: MergedNode) -> IndexStatus:
        status = self.reconciler.effective_status(node)
        return self.mutations.effective_status(node.path, status)

    def status_of(self, path: str) -> IndexStatus:
        clean = normalize_path(path)
        parent = parent_path(clean)
        listing = self._listings.get(parent) or self._load(parent)
        node = next((item for item in listing.nodes if item.path == clean), None)
        if node is None:
            raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
        return self.effective_status(node)

    def indexed_files(self) -> list[FileInfo]:
        """Every file currently held by the index, minus pending removals."""

        removals = self.mutations.removals
        files = collect_indexed_files(self.loader.list_indexed, executor=self._expand_pool)
        kept = [info for info in files if not removals.covers(info.path)]
        return sorted(kept, key=lambda info: info.path)

    def indexed_paths(self) -> list[str]:
        return [info.path for info in self.indexed_files()]

    # Selection --------------------------------------------------------

    def enter_edit_mode(self, initial_paths: Iterable[str] | None = None) -> PathSet:
        """Start selecting; without *initial_paths* the current index is the start."""

        if initial_paths is None:
            if self.reconciler.overlay.active:
                initial_paths = self.reconciler.overlay.paths.to_list()
            else:
                initial_paths = self.indexed_paths()
        self.engine.enter_edit_mode(initial_paths)
        return self.engine.selection

    def exit_edit_mode(self) -> PathSet:
        return self.engine.exit_edit_mode()

    def cancel(self) -> PathSet:
        return self.exit_edit_mode()

    def _children_of(self, folder: str) -> list[str]:
        if folder == ROOT:
            nodes = self.loader.list_directory(None, ROOT)
        else:
            folder_id = self.loader.resolve_id(folder)
            if folder_id is None:
                raise KbSyncError(Messages.ERROR_FOLDER_NOT_LOADED.format(path=folder))
            nodes = self.loader.list_directory(folder_id, folder)
        return [child.path for child in nodes]

    def toggle(self, path: str) -> PathSet:
        """Toggle *path* in the edit-mode selection and return the new selection."""

        if not self.engine.edit_mode:
            raise KbSyncError(Messages.ERROR_NOT_IN_EDIT_MODE)
        clean = normalize_path(path)
        node = self.loader.known_node(clean)
        if node is None or clean == ROOT:
            raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
        parent = parent_path(clean)
        folder_children = {folder: self._children_of(folder) for folder in ancestors(clean)}
        siblings = folder_children[parent]
        if node.is_directory:
            return self.engine.toggle_folder(
                clean, parent, siblings, folder_children=folder_children
            )
        return self.engine.toggle_file(clean, parent, siblings, folder_children=folder_children)

    def is_selected(self, path: str) -> bool:
        return self.engine.is_selected(path)

    def selected_paths(self) -> list[str]:
        return self.engine.selected_paths()

    # Mutations --------------------------------------------------------

    def save_async(self) -> Future:
        """Leave edit mode and rebuild the index to exactly the selection."""

        if not self.engine.edit_mode:
            raise KbSyncError(Messages.ERROR_NOT_IN_EDIT_MODE)
        selection = self.engine.exit_edit_mode()
        return self.mutations.rebuild_async(selection.to_list())

    def save(self) -> RebuildResult:
        return self.save_async().result()

    def rebuild(self, paths: Iterable[str]) -> RebuildResult:
        """Rebuild the index to *paths* without going through edit mode."""

        return self.mutations.rebuild(paths)

    def delete_async(self, path: str) -> Future:
        if self.engine.edit_mode:
            raise KbSyncError(Messages.ERROR_DELETE_IN_EDIT_MODE)
        clean = normalize_path(path)
        if self.status_of(clean) is IndexStatus.NOT_INDEXED:
            raise KbSyncError(Messages.ERROR_DELETE_NOT_INDEXED.format(path=clean))
        return self.mutations.delete_async(clean)

    def delete(self, path: str) -> None:
        self.delete_async(path).result()

    # Polling ----------------------------------------------------------

    def poll(self) -> list[str]:
        """Refresh index status for every expanded folder that is due."""

        self.reconciler.tick()
        refreshed: list[str] = []
        for path in self.poller.due(include_idle=self.reconciler.overlay.active):
            if path not in self._expanded:
                self.poller.unwatch(path)
                continue
            try:
                self._load(path, refresh_index=True)
            except NotFoundError:
                logger.debug("Stopped polling %s; folder is gone", path)
                self.poller.unwatch(path)
                continue
            refreshed.append(path)
        return refreshed

    def is_polling(self, path: str = ROOT) -> bool:
        return self.poller.is_polling(path)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._submit_pool.shutdown(wait=True)
        self._expand_pool.shutdown(wait=True)
        self._fetch_pool.shutdown(wait=True)

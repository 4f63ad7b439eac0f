"""Resolve selected paths to the file ids a rebuild needs."""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

from ..errors import NotFoundError
from ..models import ROOT_NODE, IndexedNode, IndexStatus, ResourceNode
from ..paths import ROOT, join_path, normalize_path, split_path
from ..text import Messages

logger = logging.getLogger(__name__)

ListChildren = Callable[[str | None, str], Sequence[ResourceNode]]
ListIndexed = Callable[[str], Sequence[IndexedNode]]


@dataclass(frozen=True, slots=True)
class FileInfo:
    path: str
    resource_id: str
    status: IndexStatus | None = None


def _map(executor: Executor | None, func, items: Sequence):
    if executor is None or len(items) <= 1:
        return [func(item) for item in items]
    return list(executor.map(func, items))


class PathExpander:
    """Expand selected files and folders into a flat list of file ids.

    Path resolution walks one segment at a time. Folder contents are read
    breadth first: every folder at one depth is listed concurrently on
    *executor*, and depths are processed one after another. Any path that
    cannot be resolved aborts the whole expansion.
    """

    def __init__(self, list_children: ListChildren, *, executor: Executor | None = None) -> None:
        self._list_children = list_children
        self._executor = executor

    def resolve(self, path: str) -> ResourceNode:
        clean = normalize_path(path)
        current = ROOT_NODE
        for segment in split_path(clean):
            if not current.is_directory:
                raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
            wanted = join_path(current.path, segment)
            children = self._list_children(current.id or None, current.path)
            match = next((child for child in children if child.path == wanted), None)
            if match is None:
                raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
            current = match
        return current

    def expand_files(self, paths: Iterable[str]) -> list[FileInfo]:
        requested = list(dict.fromkeys(normalize_path(path) for path in paths))
        if not requested:
            return []
        resolved = _map(self._executor, self.resolve, requested)

        files: list[FileInfo] = []
        level: list[ResourceNode] = []
        for node in resolved:
            if node.is_file:
                files.append(FileInfo(path=node.path, resource_id=node.id))
            else:
                level.append(node)

        while level:
            listings = _map(
                self._executor,
                lambda folder: self._list_children(folder.id or None, folder.path),
                level,
            )
            next_level: list[ResourceNode] = []
            for children in listings:
                for child in children:
                    if child.is_file:
                        files.append(FileInfo(path=child.path, resource_id=child.id))
                    elif child.is_directory:
                        next_level.append(child)
            level = next_level

        unique: dict[str, FileInfo] = {}
        for info in files:
            unique.setdefault(info.resource_id, info)
        if len(unique) != len(files):
            logger.debug("Dropped %d duplicate file id(s)", len(files) - len(unique))
        return list(unique.values())

    def expand(self, paths: Iterable[str]) -> list[str]:
        return [info.resource_id for info in self.expand_files(paths)]


def collect_indexed_files(
    list_indexed: ListIndexed,
    *,
    root: str = ROOT,
    executor: Executor | None = None,
) -> list[FileInfo]:
    """Walk the index source breadth first and return every indexed file."""

    files: list[FileInfo] = []
    level = [normalize_path(root)]
    while level:
        listings = _map(executor, list_indexed, level)
        next_level: list[str] = []
        for children in listings:
            for child in children:
                if child.is_file:
                    files.append(
                        FileInfo(path=child.path, resource_id=child.id, status=child.status)
                    )
                elif child.is_directory:
                    next_level.append(child.path)
        level = next_level
    return files

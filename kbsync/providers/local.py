"""Filesystem directory source and JSON-manifest index source."""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Sequence

from ..errors import KbSyncError, NotFoundError, TransientServerError
from ..models import IndexedNode, IndexStatus, NodeKind, ResourceNode, parse_indexed
from ..paths import ROOT, is_ancestor, normalize_path
from ..text import Messages
from .base import indexed_children

MANIFEST_VERSION = 1


def _relative_id(path: str) -> str:
    return normalize_path(path).lstrip("/")


class LocalDirectorySource:
    """Expose a local directory as the directory source.

    Resource ids are root-relative POSIX paths, so the same id names the
    same file in the directory source and in ``LocalIndexSource``.
    """

    def __init__(self, root: Path | str, *, include_hidden: bool = False) -> None:
        self.root = Path(root).expanduser().resolve()
        if not self.root.is_dir():
            raise NotFoundError(Messages.ERROR_ROOT_NOT_DIRECTORY.format(path=self.root))
        self.include_hidden = include_hidden

    def _folder(self, folder_id: str | None) -> Path:
        if not folder_id:
            return self.root
        folder = (self.root / folder_id).resolve()
        if folder != self.root and self.root not in folder.parents:
            raise NotFoundError(Messages.ERROR_RESOURCE_NOT_FOUND.format(resource_id=folder_id))
        return folder

    def list_children(self, folder_id: str | None, folder_path: str = ROOT) -> list[ResourceNode]:
        folder = self._folder(folder_id)
        try:
            entries = sorted(folder.iterdir(), key=lambda item: item.name.lower())
        except FileNotFoundError as exc:
            raise NotFoundError(
                Messages.ERROR_RESOURCE_NOT_FOUND.format(resource_id=folder_id)
            ) from exc
        except NotADirectoryError as exc:
            raise NotFoundError(
                Messages.ERROR_RESOURCE_NOT_FOUND.format(resource_id=folder_id)
            ) from exc
        except OSError as exc:
            raise TransientServerError(str(exc)) from exc
        nodes: list[ResourceNode] = []
        for entry in entries:
            if not self.include_hidden and entry.name.startswith("."):
                continue
            if entry.is_symlink():
                continue
            rel = entry.relative_to(self.root).as_posix()
            if entry.is_dir():
                kind = NodeKind.DIRECTORY
            elif entry.is_file():
                kind = NodeKind.FILE
            else:
                continue
            nodes.append(ResourceNode(id=rel, path=normalize_path(rel), kind=kind))
        return nodes


class LocalIndexSource:
    """Index source persisted as a JSON manifest.

    Each index belongs to one root directory. Local indexing has no async
    pipeline, so rebuilt files are reported ``indexed`` straight away.
    """

    def __init__(self, manifest_path: Path | str) -> None:
        self.manifest_path = Path(manifest_path).expanduser()
        self._lock = Lock()

    def _load(self) -> Dict[str, Any]:
        if not self.manifest_path.exists():
            return {"version": MANIFEST_VERSION, "indexes": {}}
        try:
            raw = json.loads(self.manifest_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise KbSyncError(
                Messages.ERROR_MANIFEST_INVALID.format(path=self.manifest_path)
            ) from exc
        if not isinstance(raw, dict) or not isinstance(raw.get("indexes"), dict):
            raise KbSyncError(Messages.ERROR_MANIFEST_INVALID.format(path=self.manifest_path))
        return raw

    def _save(self, data: Dict[str, Any]) -> None:
        self.manifest_path.parent.mkdir(parents=True, exist_ok=True)
        self.manifest_path.write_text(
            json.dumps(data, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def find_index(self, root: Path | str) -> str | None:
        root_key = str(Path(root).expanduser().resolve())
        with self._lock:
            data = self._load()
        for index_id, record in data["indexes"].items():
            if record.get("root") == root_key:
                return index_id
        return None

    def ensure_index(self, root: Path | str) -> str:
        """Return the index id for *root*, creating an empty index when missing."""

        existing = self.find_index(root)
        if existing is not None:
            return existing
        root_key = str(Path(root).expanduser().resolve())
        index_id = uuid.uuid4().hex[:12]
        with self._lock:
            data = self._load()
            data["indexes"][index_id] = {"root": root_key, "files": {}}
            self._save(data)
        return index_id

    def _entries(self, record: Dict[str, Any]) -> list[IndexedNode]:
        nodes: list[IndexedNode] = []
        for path, status in sorted((record.get("files") or {}).items()):
            payload = {
                "resource_id": path.strip("/"),
                "inode_path": {"path": path},
                "inode_type": NodeKind.FILE.value,
                "status": status,
            }
            nodes.append(parse_indexed(payload))
        return nodes

    def list_indexed(self, index_id: str, path: str) -> list[IndexedNode]:
        with self._lock:
            record = self._load()["indexes"].get(index_id)
        if record is None:
            return []
        return indexed_children(self._entries(record), normalize_path(path), _relative_id)

    def submit_rebuild(self, index_id: str | None, file_ids: Sequence[str]) -> str:
        if index_id is None:
            raise NotFoundError(Messages.ERROR_INDEX_NOT_FOUND.format(index_id=index_id))
        with self._lock:
            data = self._load()
            record = data["indexes"].pop(index_id, None)
            if record is None:
                raise NotFoundError(Messages.ERROR_INDEX_NOT_FOUND.format(index_id=index_id))
            new_id = uuid.uuid4().hex[:12]
            data["indexes"][new_id] = {
                "root": record.get("root"),
                "files": {
                    normalize_path(resource_id): IndexStatus.INDEXED.value
                    for resource_id in file_ids
                },
            }
            self._save(data)
        return new_id

    def delete_resource(self, index_id: str, path: str) -> None:
        clean = normalize_path(path)
        with self._lock:
            data = self._load()
            record = data["indexes"].get(index_id)
            if record is None:
                raise NotFoundError(Messages.ERROR_INDEX_NOT_FOUND.format(index_id=index_id))
            files = record.get("files") or {}
            doomed = [
                existing
                for existing in files
                if normalize_path(existing) == clean or is_ancestor(clean, existing)
            ]
            if not doomed:
                raise NotFoundError(Messages.ERROR_PATH_NOT_FOUND.format(path=clean), path=clean)
            for existing in doomed:
                del files[existing]
            record["files"] = files
            self._save(data)

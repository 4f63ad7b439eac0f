"""Typed records exchanged between the directory source, the index source and the UI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .errors import InvalidResourceError
from .paths import ROOT, base_name, join_path, normalize_path
from .text import Messages


class NodeKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class IndexStatus(str, Enum):
    NOT_INDEXED = "not_indexed"
    PENDING = "pending"
    BEING_INDEXED = "being_indexed"
    INDEXED = "indexed"
    ERROR = "error"
    DELETED = "deleted"

    @property
    def needs_polling(self) -> bool:
        return self in _POLLING_STATUSES

    @property
    def is_confirmed(self) -> bool:
        """True once the server reports real progress for a rebuilt path."""
        return self in _CONFIRMED_STATUSES

    @property
    def is_setup(self) -> bool:
        return self in _SETUP_STATUSES


_POLLING_STATUSES = frozenset({IndexStatus.PENDING, IndexStatus.BEING_INDEXED})
_CONFIRMED_STATUSES = frozenset(
    {IndexStatus.PENDING, IndexStatus.BEING_INDEXED, IndexStatus.INDEXED}
)
_SETUP_STATUSES = frozenset({IndexStatus.NOT_INDEXED, IndexStatus.ERROR})
_STATUS_ALIASES = {"parsed": IndexStatus.INDEXED}


@dataclass(frozen=True, slots=True)
class ResourceNode:
    id: str
    path: str
    kind: NodeKind

    @property
    def name(self) -> str:
        return base_name(self.path)

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY


@dataclass(frozen=True, slots=True)
class IndexedNode(ResourceNode):
    status: IndexStatus = IndexStatus.PENDING


@dataclass(frozen=True, slots=True)
class MergedNode(ResourceNode):
    status: IndexStatus = IndexStatus.NOT_INDEXED


ROOT_NODE = ResourceNode(id="", path=ROOT, kind=NodeKind.DIRECTORY)


def parse_status(value: object) -> IndexStatus:
    """Map a wire status onto ``IndexStatus``, rejecting unknown values."""

    if isinstance(value, IndexStatus):
        return value
    if not isinstance(value, str):
        raise InvalidResourceError(Messages.ERROR_STATUS_INVALID.format(value=value))
    token = value.strip().lower()
    alias = _STATUS_ALIASES.get(token)
    if alias is not None:
        return alias
    try:
        return IndexStatus(token)
    except ValueError as exc:
        raise InvalidResourceError(
            Messages.ERROR_STATUS_INVALID.format(value=value)
        ) from exc


def parse_kind(value: object) -> NodeKind:
    if isinstance(value, NodeKind):
        return value
    try:
        return NodeKind(str(value).strip().lower())
    except ValueError as exc:
        raise InvalidResourceError(Messages.ERROR_KIND_INVALID.format(value=value)) from exc


def parse_resource(payload: Mapping[str, object], *, parent_path: str = ROOT) -> ResourceNode:
    """Build a ``ResourceNode`` from a collaborator payload.

    The payload follows the listing shape ``{resource_id, inode_path: {path},
    inode_type}``. A relative ``inode_path.path`` is resolved against
    *parent_path*, the folder that was listed.
    """

    resource_id, path, kind = _parse_common(payload, parent_path)
    return ResourceNode(id=resource_id, path=path, kind=kind)


def parse_indexed(payload: Mapping[str, object], *, parent_path: str = ROOT) -> IndexedNode:
    resource_id, path, kind = _parse_common(payload, parent_path)
    if "status" not in payload:
        raise InvalidResourceError(Messages.ERROR_PAYLOAD_FIELD.format(field="status"))
    return IndexedNode(
        id=resource_id,
        path=path,
        kind=kind,
        status=parse_status(payload["status"]),
    )


def _parse_common(
    payload: Mapping[str, object], parent_path: str
) -> tuple[str, str, NodeKind]:
    if not isinstance(payload, Mapping):
        raise InvalidResourceError(Messages.ERROR_PAYLOAD_INVALID)
    resource_id = payload.get("resource_id")
    if not isinstance(resource_id, str) or not resource_id:
        raise InvalidResourceError(Messages.ERROR_PAYLOAD_FIELD.format(field="resource_id"))
    inode_path = payload.get("inode_path")
    raw_path = inode_path.get("path") if isinstance(inode_path, Mapping) else None
    if not isinstance(raw_path, str) or not raw_path.strip("/ "):
        raise InvalidResourceError(Messages.ERROR_PAYLOAD_FIELD.format(field="inode_path"))
    try:
        if raw_path.startswith("/"):
            path = normalize_path(raw_path)
        else:
            path = join_path(parent_path, raw_path)
    except ValueError as exc:
        raise InvalidResourceError(str(exc)) from exc
    kind = parse_kind(payload.get("inode_type"))
    return resource_id, path, kind

"""kbsync package initialization."""

from __future__ import annotations

from .api import PickerSession, TreeEntry
from .config import Config, config_dir_context
from .errors import (
    InvalidResourceError,
    InvariantViolation,
    KbSyncError,
    NotFoundError,
    TransientServerError,
)
from .models import IndexStatus, MergedNode, NodeKind, ResourceNode
from .paths import PathSet

__all__ = [
    "__version__",
    "Config",
    "IndexStatus",
    "InvalidResourceError",
    "InvariantViolation",
    "KbSyncError",
    "MergedNode",
    "NodeKind",
    "NotFoundError",
    "PathSet",
    "PickerSession",
    "ResourceNode",
    "TransientServerError",
    "TreeEntry",
    "config_dir_context",
    "get_version",
]

__version__ = "0.3.0"


def get_version() -> str:
    """Return the current package version."""
    return __version__

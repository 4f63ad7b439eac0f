"""Collaborator implementations for the directory and index sources."""

from .base import DirectorySource, IndexSource, call_with_retries
from .local import LocalDirectorySource, LocalIndexSource
from .memory import InMemoryDirectorySource, InMemoryIndexSource

__all__ = [
    "DirectorySource",
    "InMemoryDirectorySource",
    "InMemoryIndexSource",
    "IndexSource",
    "LocalDirectorySource",
    "LocalIndexSource",
    "call_with_retries",
]

"""Path helpers and the ancestor-aware ``PathSet`` value type."""

from __future__ import annotations

from typing import Iterable, Iterator

ROOT = "/"


def normalize_path(value: str) -> str:
    """Return *value* as an absolute ``/``-delimited path without a trailing slash."""

    if not isinstance(value, str):
        raise TypeError(f"Path must be a string, got {type(value).__name__}")
    parts = [part for part in value.strip().split("/") if part]
    if any(part in {".", ".."} for part in parts):
        raise ValueError(f"Relative segments are not allowed: {value!r}")
    return ROOT + "/".join(parts)


def split_path(path: str) -> list[str]:
    return [part for part in normalize_path(path).split("/") if part]


def join_path(parent: str, name: str) -> str:
    clean_name = name.strip().strip("/")
    if not clean_name:
        return normalize_path(parent)
    base = normalize_path(parent)
    if base == ROOT:
        return normalize_path(f"/{clean_name}")
    return normalize_path(f"{base}/{clean_name}")


def parent_path(path: str) -> str:
    parts = split_path(path)
    if len(parts) <= 1:
        return ROOT
    return ROOT + "/".join(parts[:-1])


def base_name(path: str) -> str:
    parts = split_path(path)
    return parts[-1] if parts else ""


def ancestors(path: str) -> Iterator[str]:
    """Yield the proper ancestors of *path*, nearest first, ending with the root."""

    parts = split_path(path)
    for idx in range(len(parts) - 1, 0, -1):
        yield ROOT + "/".join(parts[:idx])
    if parts:
        yield ROOT


def is_ancestor(candidate: str, path: str) -> bool:
    """Return True when *candidate* is a proper ancestor of *path*."""

    ancestor = normalize_path(candidate)
    target = normalize_path(path)
    if ancestor == target:
        return False
    if ancestor == ROOT:
        return True
    return target.startswith(ancestor + "/")


def lineage(ancestor: str, path: str) -> list[str]:
    """Return the folders from *ancestor* (inclusive) down to *path* (exclusive)."""

    top = normalize_path(ancestor)
    target = normalize_path(path)
    if not is_ancestor(top, target):
        raise ValueError(f"{top!r} is not an ancestor of {target!r}")
    chain = [top]
    for parent in reversed(list(ancestors(target))):
        if is_ancestor(top, parent):
            chain.append(parent)
    return chain


class PathSet:
    """Immutable set of normalised paths with ancestor-aware lookups."""

    __slots__ = ("_members",)

    def __init__(self, paths: Iterable[str] = ()) -> None:
        self._members = frozenset(normalize_path(path) for path in paths)

    @classmethod
    def canonical(cls, paths: Iterable[str]) -> "PathSet":
        """Build a set keeping only paths not covered by another member."""

        members = {normalize_path(path) for path in paths}
        kept = [
            path
            for path in members
            if not any(ancestor in members for ancestor in ancestors(path))
        ]
        return cls(kept)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        return normalize_path(path) in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._members))

    def __len__(self) -> int:
        return len(self._members)

    def __bool__(self) -> bool:
        return bool(self._members)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, PathSet):
            return self._members == other._members
        if isinstance(other, (set, frozenset)):
            return self._members == {normalize_path(path) for path in other}
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._members)

    def __repr__(self) -> str:
        return f"PathSet({sorted(self._members)!r})"

    def covering_member(self, path: str) -> str | None:
        """Return *path* if it is a member, else its nearest member ancestor."""

        target = normalize_path(path)
        if target in self._members:
            return target
        for ancestor in ancestors(target):
            if ancestor in self._members:
                return ancestor
        return None

    def covers(self, path: str) -> bool:
        return self.covering_member(path) is not None

    def descendants_of(self, path: str) -> list[str]:
        return sorted(member for member in self._members if is_ancestor(path, member))

    def with_added(self, *paths: str) -> "PathSet":
        return PathSet(self._members.union(normalize_path(path) for path in paths))

    def without(self, *paths: str) -> "PathSet":
        removed = {normalize_path(path) for path in paths}
        return PathSet(self._members - removed)

    def without_subtree(self, path: str) -> "PathSet":
        """Drop *path* and every member below it."""

        target = normalize_path(path)
        return PathSet(
            member
            for member in self._members
            if member != target and not is_ancestor(target, member)
        )

    def is_canonical(self) -> bool:
        return not any(
            ancestor in self._members
            for member in self._members
            for ancestor in ancestors(member)
        )

    def to_list(self) -> list[str]:
        return sorted(self._members)

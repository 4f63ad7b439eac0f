"""Cascading multi-select over a lazily loaded tree."""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

from ..errors import InvariantViolation
from ..paths import PathSet, is_ancestor, lineage, normalize_path, parent_path
from ..text import Messages

FolderChildren = Mapping[str, Sequence[str]]


class SelectionEngine:
    """Holds the edit-mode selection in canonical minimal form.

    Selecting a folder implies all of its descendants, so the set never holds
    a path together with one of its ancestors. Every toggle computes the next
    set from the current one and replaces it in a single assignment.

    Callers pass the complete child list of the toggled path's parent as
    *sibling_paths*. *folder_children* optionally maps further folders to
    their child lists; it lets an explosion cascade from a grandparent or
    higher, and lets a consolidation cascade upward.
    """

    def __init__(self) -> None:
        self._selection = PathSet()
        self._edit_mode = False

    @property
    def edit_mode(self) -> bool:
        return self._edit_mode

    @property
    def selection(self) -> PathSet:
        return self._selection

    def selected_paths(self) -> list[str]:
        return self._selection.to_list()

    def is_selected(self, path: str) -> bool:
        return self._selection.covers(path)

    def is_partially_selected(self, path: str) -> bool:
        if self._selection.covers(path):
            return False
        return bool(self._selection.descendants_of(path))

    def enter_edit_mode(self, initial_paths: Iterable[str] | None = None) -> None:
        self._edit_mode = True
        self._commit(PathSet.canonical(initial_paths or ()))

    def exit_edit_mode(self) -> PathSet:
        """Leave edit mode, returning the selection that was discarded."""

        previous = self._selection
        self._edit_mode = False
        self._selection = PathSet()
        return previous

    def toggle_file(
        self,
        path: str,
        parent: str,
        sibling_paths: Sequence[str],
        *,
        folder_children: FolderChildren | None = None,
    ) -> PathSet:
        return self._toggle(path, parent, sibling_paths, folder_children, folder=False)

    def toggle_folder(
        self,
        path: str,
        parent: str,
        sibling_paths: Sequence[str],
        *,
        folder_children: FolderChildren | None = None,
    ) -> PathSet:
        return self._toggle(path, parent, sibling_paths, folder_children, folder=True)

    def _toggle(
        self,
        path: str,
        parent: str,
        sibling_paths: Sequence[str],
        folder_children: FolderChildren | None,
        *,
        folder: bool,
    ) -> PathSet:
        target = normalize_path(path)
        parent_folder = normalize_path(parent)
        siblings = [normalize_path(sibling) for sibling in sibling_paths]
        if target not in siblings:
            raise ValueError(Messages.ERROR_SIBLINGS_MISSING_TARGET.format(path=target))
        if parent_path(target) != parent_folder:
            raise ValueError(
                Messages.ERROR_PARENT_MISMATCH.format(path=target, parent=parent_folder)
            )
        children = {normalize_path(key): list(value) for key, value in (folder_children or {}).items()}
        children[parent_folder] = siblings

        current = self._selection
        covering = current.covering_member(target)
        if covering is not None:
            if covering == target:
                following = current.without_subtree(target)
            else:
                following = _explode(current, covering, target, children)
        else:
            following = current.with_added(target)
            if folder:
                following = following.without(*following.descendants_of(target))
            following = _consolidate(following, parent_folder, children)
        return self._commit(following)

    def _commit(self, selection: PathSet) -> PathSet:
        if not selection.is_canonical():
            raise InvariantViolation(
                Messages.ERROR_SELECTION_NOT_CANONICAL.format(paths=selection.to_list())
            )
        self._selection = selection
        return selection


def _explode(
    selection: PathSet,
    covering: str,
    target: str,
    children: Mapping[str, Sequence[str]],
) -> PathSet:
    """Deselect *target* out of the selected ancestor *covering*."""

    added: list[str] = []
    for folder in lineage(covering, target):
        listing = children.get(folder)
        if listing is None:
            raise ValueError(Messages.ERROR_SIBLINGS_MISSING.format(path=folder))
        for child in listing:
            clean = normalize_path(child)
            if clean == target or is_ancestor(clean, target):
                continue
            added.append(clean)
    return selection.without(covering).with_added(*added)


def _consolidate(
    selection: PathSet,
    parent: str,
    children: Mapping[str, Sequence[str]],
) -> PathSet:
    """Collapse fully selected sibling groups into their parent, walking upward."""

    folder = parent
    while True:
        listing = [normalize_path(child) for child in children.get(folder, ())]
        if not listing or not all(child in selection for child in listing):
            return selection
        selection = selection.without(*listing).with_added(folder)
        if folder == parent_path(folder):
            return selection
        folder = parent_path(folder)

import random

import pytest

from kbsync.paths import parent_path
from kbsync.services.selection_service import SelectionEngine

SIBLINGS = ["/parent/a", "/parent/b", "/parent/c"]

TREE = {
    "/": ["/a", "/b"],
    "/a": ["/a/x", "/a/y.txt"],
    "/a/x": ["/a/x/1.txt", "/a/x/2.txt"],
    "/b": ["/b/z.txt"],
}


def _engine(paths=()):
    engine = SelectionEngine()
    engine.enter_edit_mode(paths)
    return engine


def test_selecting_last_sibling_consolidates_into_parent():
    engine = _engine(["/parent/a", "/parent/b"])

    assert engine.toggle_file("/parent/c", "/parent", SIBLINGS) == {"/parent"}


def test_deselecting_child_of_selected_parent_explodes():
    engine = _engine(["/parent"])

    result = engine.toggle_file("/parent/b", "/parent", SIBLINGS)

    assert result == {"/parent/a", "/parent/c"}
    assert not engine.is_selected("/parent/b")
    assert engine.is_selected("/parent/a")


def test_consolidation_and_explosion_are_inverse():
    engine = _engine(["/parent/a", "/parent/b"])

    engine.toggle_file("/parent/c", "/parent", SIBLINGS)
    result = engine.toggle_file("/parent/c", "/parent", SIBLINGS)

    assert result == {"/parent/a", "/parent/b"}


def test_deselecting_individual_member_removes_it():
    engine = _engine(["/parent/a", "/other"])

    assert engine.toggle_file("/parent/a", "/parent", SIBLINGS) == {"/other"}


def test_selecting_folder_drops_selected_descendants():
    engine = _engine(["/docs/x/1.txt", "/other"])

    result = engine.toggle_folder("/docs/x", "/docs", ["/docs/x", "/docs/y"])

    assert result == {"/docs/x", "/other"}


def test_deselecting_folder_removes_folder_and_descendants():
    engine = _engine(["/docs"])

    assert engine.toggle_folder("/docs", "/", ["/docs", "/other"]) == set()


def test_explosion_cascades_through_several_levels():
    engine = _engine(["/a"])

    result = engine.toggle_file(
        "/a/x/1.txt",
        "/a/x",
        TREE["/a/x"],
        folder_children={"/a": TREE["/a"]},
    )

    assert result == {"/a/y.txt", "/a/x/2.txt"}


def test_multi_level_explosion_needs_every_child_list():
    engine = _engine(["/a"])

    with pytest.raises(ValueError):
        engine.toggle_file("/a/x/1.txt", "/a/x", TREE["/a/x"])
    assert engine.selection == {"/a"}


def test_consolidation_cascades_upward_when_lists_are_known():
    engine = _engine(["/a/y.txt", "/a/x/2.txt"])

    result = engine.toggle_file(
        "/a/x/1.txt",
        "/a/x",
        TREE["/a/x"],
        folder_children={"/a": TREE["/a"]},
    )

    assert result == {"/a"}


def test_toggle_rejects_inconsistent_sibling_lists():
    engine = _engine()

    with pytest.raises(ValueError):
        engine.toggle_file("/parent/d", "/parent", SIBLINGS)
    with pytest.raises(ValueError):
        engine.toggle_file("/parent/a", "/elsewhere", SIBLINGS)


def test_enter_edit_mode_canonicalises_initial_paths():
    engine = _engine(["/a", "/a/x/1.txt", "/b/z.txt"])

    assert engine.edit_mode
    assert engine.selected_paths() == ["/a", "/b/z.txt"]


def test_exit_edit_mode_returns_and_discards_selection():
    engine = _engine(["/a"])

    previous = engine.exit_edit_mode()

    assert previous == {"/a"}
    assert not engine.edit_mode
    assert not engine.selection


def test_partial_selection_reports_tri_state():
    engine = _engine(["/a/x/1.txt"])

    assert engine.is_partially_selected("/a")
    assert engine.is_partially_selected("/a/x")
    assert not engine.is_partially_selected("/a/x/1.txt")
    assert not engine.is_partially_selected("/b")
    assert not engine.is_selected("/a")


def test_random_toggles_keep_selection_canonical():
    rng = random.Random(1234)
    nodes = [child for children in TREE.values() for child in children]
    engine = _engine()

    for _ in range(300):
        path = rng.choice(nodes)
        parent = parent_path(path)
        if path in TREE:
            engine.toggle_folder(path, parent, TREE[parent], folder_children=TREE)
        else:
            engine.toggle_file(path, parent, TREE[parent], folder_children=TREE)
        assert engine.selection.is_canonical()

import json

import pytest

from kbsync.errors import InvalidResourceError, KbSyncError, NotFoundError, TransientServerError
from kbsync.models import IndexStatus, NodeKind
from kbsync.providers import base as base_module
from kbsync.providers.base import call_with_retries, should_retry
from kbsync.providers.local import LocalDirectorySource, LocalIndexSource
from kbsync.providers.memory import InMemoryDirectorySource, InMemoryIndexSource


def test_call_with_retries_backs_off_on_transient_errors():
    delays = []
    attempts = {"count": 0}

    def flaky():
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise TransientServerError("busy", status_code=503)
        return "ok"

    assert call_with_retries(flaky, max_retries=2, sleep=delays.append) == "ok"
    assert delays == [0.5, 1.0]


def test_call_with_retries_gives_up_after_max_retries():
    delays = []

    def always_down():
        raise TransientServerError("down")

    with pytest.raises(TransientServerError):
        call_with_retries(always_down, max_retries=1, sleep=delays.append)
    assert delays == [0.5]


def test_non_retryable_errors_raise_immediately(monkeypatch):
    monkeypatch.setattr(base_module, "_sleep", lambda seconds: pytest.fail("slept"))

    def bad_request():
        raise TransientServerError("bad request", status_code=400)

    with pytest.raises(TransientServerError):
        call_with_retries(bad_request, max_retries=3)
    assert not should_retry(NotFoundError("gone"))
    assert should_retry(TransientServerError("timeout", status_code=504))


def test_memory_directory_creates_parents_and_lists_sorted():
    directory = InMemoryDirectorySource(["/b/z.txt", "/a/y.txt", "/a/x/"])

    root = directory.list_children(None)
    children = directory.list_children(directory.id_of("/a"), "/a")

    assert [node.path for node in root] == ["/a", "/b"]
    assert [(node.path, node.kind) for node in children] == [
        ("/a/x", NodeKind.DIRECTORY),
        ("/a/y.txt", NodeKind.FILE),
    ]


def test_memory_directory_remove_and_failures():
    directory = InMemoryDirectorySource(["/a/y.txt", "/b/z.txt"])
    directory.remove("/a")

    assert [node.path for node in directory.list_children(None)] == ["/b"]
    with pytest.raises(NotFoundError):
        directory.node("/a/y.txt")

    directory.failures[None] = TransientServerError("down")
    with pytest.raises(TransientServerError):
        directory.list_children(None)


def test_memory_index_rebuild_replaces_index():
    directory = InMemoryDirectorySource(["/docs/a.txt", "/docs/b.txt"])
    index = InMemoryIndexSource(directory)

    new_id = index.submit_rebuild("kb-0", [directory.id_of("/docs/a.txt")])

    assert new_id == "kb-1"
    assert index.index_ids == ["kb-1"]
    assert index.files("kb-1") == {"/docs/a.txt": IndexStatus.PENDING}
    assert index.list_indexed("kb-0", "/") == []


def test_memory_index_refuses_directory_ids():
    directory = InMemoryDirectorySource(["/docs/a.txt"])
    index = InMemoryIndexSource(directory)

    with pytest.raises(KbSyncError):
        index.submit_rebuild("kb-0", [directory.id_of("/docs")])


def test_memory_index_projects_folder_status():
    directory = InMemoryDirectorySource(["/docs/a.txt", "/docs/sub/b.txt", "/top.txt"])
    index = InMemoryIndexSource(directory)
    index.seed("kb-0", ["/docs/a.txt", "/top.txt"], IndexStatus.INDEXED)
    index.seed("kb-0", ["/docs/sub/b.txt"], IndexStatus.PENDING)

    root = {node.path: node.status for node in index.list_indexed("kb-0", "/")}
    docs = {node.path: node.status for node in index.list_indexed("kb-0", "/docs")}

    assert root == {"/docs": IndexStatus.BEING_INDEXED, "/top.txt": IndexStatus.INDEXED}
    assert docs == {"/docs/a.txt": IndexStatus.INDEXED, "/docs/sub": IndexStatus.BEING_INDEXED}


def test_memory_index_delete_removes_subtree():
    directory = InMemoryDirectorySource(["/docs/a.txt", "/docs/sub/b.txt", "/top.txt"])
    index = InMemoryIndexSource(directory)
    index.seed("kb-0", ["/docs/a.txt", "/docs/sub/b.txt", "/top.txt"], IndexStatus.INDEXED)

    index.delete_resource("kb-0", "/docs")

    assert list(index.files("kb-0")) == ["/top.txt"]
    with pytest.raises(NotFoundError):
        index.delete_resource("kb-0", "/docs")


def _make_tree(tmp_path):
    root = tmp_path / "project"
    (root / "docs" / "sub").mkdir(parents=True)
    (root / "docs" / "a.txt").write_text("a", encoding="utf-8")
    (root / "docs" / "sub" / "b.txt").write_text("b", encoding="utf-8")
    (root / "README.md").write_text("readme", encoding="utf-8")
    (root / ".secret").write_text("hidden", encoding="utf-8")
    return root


def test_local_directory_lists_relative_ids(tmp_path):
    root = _make_tree(tmp_path)
    source = LocalDirectorySource(root)

    top = source.list_children(None, "/")
    docs = source.list_children("docs", "/docs")

    assert [(node.id, node.path, node.kind) for node in top] == [
        ("docs", "/docs", NodeKind.DIRECTORY),
        ("README.md", "/README.md", NodeKind.FILE),
    ]
    assert [node.id for node in docs] == ["docs/a.txt", "docs/sub"]


def test_local_directory_can_include_hidden(tmp_path):
    root = _make_tree(tmp_path)
    source = LocalDirectorySource(root, include_hidden=True)

    assert "/.secret" in [node.path for node in source.list_children(None, "/")]


def test_local_directory_rejects_missing_paths(tmp_path):
    with pytest.raises(NotFoundError):
        LocalDirectorySource(tmp_path / "missing")
    source = LocalDirectorySource(_make_tree(tmp_path))
    with pytest.raises(NotFoundError):
        source.list_children("nope", "/nope")
    with pytest.raises(NotFoundError):
        source.list_children("../outside", "/outside")


def test_local_index_round_trip(tmp_path):
    root = _make_tree(tmp_path)
    index = LocalIndexSource(tmp_path / "config" / "indexes.json")

    assert index.find_index(root) is None
    index_id = index.ensure_index(root)
    assert index.ensure_index(root) == index_id
    assert index.list_indexed(index_id, "/") == []

    new_id = index.submit_rebuild(index_id, ["docs/a.txt", "docs/sub/b.txt"])

    assert new_id != index_id
    assert index.find_index(root) == new_id
    root_nodes = index.list_indexed(new_id, "/")
    assert [(node.id, node.status) for node in root_nodes] == [("docs", IndexStatus.INDEXED)]
    docs_nodes = index.list_indexed(new_id, "/docs")
    assert [node.path for node in docs_nodes] == ["/docs/a.txt", "/docs/sub"]

    index.delete_resource(new_id, "/docs/sub")
    assert [node.path for node in index.list_indexed(new_id, "/docs")] == ["/docs/a.txt"]


def test_local_index_requires_existing_index(tmp_path):
    index = LocalIndexSource(tmp_path / "indexes.json")

    with pytest.raises(NotFoundError):
        index.submit_rebuild(None, ["a.txt"])
    with pytest.raises(NotFoundError):
        index.submit_rebuild("missing", ["a.txt"])
    with pytest.raises(NotFoundError):
        index.delete_resource("missing", "/a.txt")


def test_local_index_rejects_corrupt_manifest(tmp_path):
    manifest = tmp_path / "indexes.json"
    manifest.write_text("{not json", encoding="utf-8")
    index = LocalIndexSource(manifest)

    with pytest.raises(KbSyncError):
        index.find_index(tmp_path)

    manifest.write_text(json.dumps({"version": 1, "indexes": []}), encoding="utf-8")
    with pytest.raises(KbSyncError):
        index.find_index(tmp_path)


@pytest.mark.parametrize(
    "files",
    [
        {"/docs/a.txt": "bogus"},
        {"/docs/../a.txt": "indexed"},
        {"/": "indexed"},
    ],
)
def test_local_index_rejects_malformed_entries(tmp_path, files):
    manifest = tmp_path / "indexes.json"
    record = {"root": str(tmp_path), "files": files}
    manifest.write_text(json.dumps({"version": 1, "indexes": {"kb-1": record}}), encoding="utf-8")
    index = LocalIndexSource(manifest)

    with pytest.raises(InvalidResourceError):
        index.list_indexed("kb-1", "/")

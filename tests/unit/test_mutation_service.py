import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from kbsync.cache import FetchCache
from kbsync.errors import KbSyncError, NotFoundError, TransientServerError
from kbsync.models import IndexStatus
from kbsync.services.expand_service import PathExpander
from kbsync.services.merge_service import FolderLoader
from kbsync.services.mutation_service import IndexMutations
from kbsync.services.overlay_service import OverlayPhase, Reconciler
from kbsync.providers.memory import InMemoryDirectorySource, InMemoryIndexSource


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def _setup(*, executor=None, index_id="kb-0"):
    directory = InMemoryDirectorySource(["/readme.md", "/docs/a.txt", "/docs/sub/b.txt"])
    index = InMemoryIndexSource(directory)
    loader = FolderLoader(directory, index, FetchCache(), index_id=index_id, max_retries=0)
    reconciler = Reconciler(clock=FakeClock())
    mutations = IndexMutations(
        loader,
        PathExpander(loader.list_directory),
        reconciler,
        executor=executor,
    )
    return directory, index, loader, reconciler, mutations


def test_rebuild_arms_overlay_before_submitting(monkeypatch):
    directory, index, loader, reconciler, mutations = _setup()
    seen = []
    original = index.submit_rebuild

    def spy(index_id, file_ids):
        seen.append(reconciler.overlay.paths.to_list())
        return original(index_id, file_ids)

    monkeypatch.setattr(index, "submit_rebuild", spy)

    result = mutations.rebuild(["/docs"])

    assert seen == [["/docs"]]
    assert result.index_id == "kb-1"
    assert result.previous_index_id == "kb-0"
    assert sorted(result.file_ids) == sorted(
        [directory.id_of("/docs/a.txt"), directory.id_of("/docs/sub/b.txt")]
    )
    assert loader.index_id == "kb-1"
    assert reconciler.target_index_id == "kb-1"
    assert index.index_ids == ["kb-1"]


def test_failed_submission_disarms_overlay():
    _, index, loader, reconciler, mutations = _setup()
    index.failures["create"] = TransientServerError("create failed", status_code=500)

    with pytest.raises(TransientServerError):
        mutations.rebuild(["/docs"])

    assert not reconciler.overlay.active
    assert reconciler.phase is OverlayPhase.IDLE
    assert not mutations.rebuild_in_flight
    assert loader.index_id == "kb-0"


def test_failed_expansion_disarms_overlay_without_submitting():
    _, index, _, reconciler, mutations = _setup()

    with pytest.raises(NotFoundError):
        mutations.rebuild(["/docs", "/missing"])

    assert not reconciler.overlay.active
    assert not [call for call in index.calls if call[0] == "rebuild"]


def test_second_rebuild_while_in_flight_is_refused(monkeypatch):
    gate = threading.Event()
    with ThreadPoolExecutor(max_workers=1) as pool:
        _, index, _, _, mutations = _setup(executor=pool)
        original = index.submit_rebuild

        def slow(index_id, file_ids):
            gate.wait(timeout=5)
            return original(index_id, file_ids)

        monkeypatch.setattr(index, "submit_rebuild", slow)
        future = mutations.rebuild_async(["/readme.md"])
        try:
            with pytest.raises(KbSyncError):
                mutations.rebuild_async(["/docs"])
        finally:
            gate.set()
        assert future.result(timeout=5).index_id == "kb-1"
    assert not mutations.rebuild_in_flight


def test_rejected_paths_do_not_block_later_rebuilds():
    _, _, loader, reconciler, mutations = _setup()

    with pytest.raises(ValueError):
        mutations.rebuild(["/../etc"])

    assert not mutations.rebuild_in_flight
    assert not reconciler.overlay.active
    assert mutations.rebuild(["/readme.md"]).index_id == "kb-1"
    assert loader.index_id == "kb-1"


def test_refused_submission_disarms_overlay_and_clears_flag():
    pool = ThreadPoolExecutor(max_workers=1)
    pool.shutdown(wait=True)
    _, index, loader, reconciler, mutations = _setup(executor=pool)

    with pytest.raises(RuntimeError):
        mutations.rebuild_async(["/readme.md"])

    assert not mutations.rebuild_in_flight
    assert not reconciler.overlay.active
    assert reconciler.phase is OverlayPhase.IDLE
    assert index.index_ids == []
    assert loader.index_id == "kb-0"


def test_delete_hides_path_until_the_server_answers(monkeypatch):
    _, index, _, _, mutations = _setup()
    index.seed("kb-0", ["/docs/a.txt", "/readme.md"], IndexStatus.INDEXED)
    seen = []
    original = index.delete_resource

    def spy(index_id, path):
        seen.append(mutations.effective_status("/docs/a.txt", IndexStatus.INDEXED))
        return original(index_id, path)

    monkeypatch.setattr(index, "delete_resource", spy)

    mutations.delete("/docs")

    assert seen == [IndexStatus.NOT_INDEXED]
    assert list(index.files("kb-0")) == ["/readme.md"]
    assert not mutations.removals


def test_failed_delete_rolls_back():
    _, index, _, _, mutations = _setup()
    index.seed("kb-0", ["/readme.md"], IndexStatus.INDEXED)
    index.failures["delete"] = TransientServerError("unavailable", status_code=503)

    with pytest.raises(TransientServerError):
        mutations.delete("/readme.md")

    assert not mutations.removals
    assert mutations.effective_status("/readme.md", IndexStatus.INDEXED) is IndexStatus.INDEXED
    assert "/readme.md" in index.files("kb-0")


def test_unexpected_delete_failure_is_reported_as_transient():
    _, index, _, _, mutations = _setup()
    index.seed("kb-0", ["/readme.md"], IndexStatus.INDEXED)
    index.failures["delete"] = OSError("socket closed")

    with pytest.raises(TransientServerError):
        mutations.delete("/readme.md")


def test_delete_without_index_is_not_found():
    *_, mutations = _setup(index_id=None)

    with pytest.raises(NotFoundError):
        mutations.delete("/readme.md")


def test_delete_releases_pending_member():
    _, index, _, reconciler, mutations = _setup()
    index.seed("kb-0", ["/readme.md"], IndexStatus.INDEXED)
    reconciler.begin(["/readme.md", "/docs"])

    mutations.delete("/readme.md")

    assert reconciler.overlay.paths == {"/docs"}

import pytest

from kbsync.models import IndexStatus, MergedNode, NodeKind
from kbsync.services.poll_service import FolderPoller, needs_polling


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _pair(path, status, kind=NodeKind.FILE):
    return MergedNode(id=path, path=path, kind=kind), status


def test_needs_polling_only_counts_files():
    assert needs_polling([_pair("/a.txt", IndexStatus.PENDING)])
    assert needs_polling([_pair("/a.txt", IndexStatus.BEING_INDEXED)])
    assert not needs_polling([_pair("/a.txt", IndexStatus.INDEXED)])
    assert not needs_polling([_pair("/d", IndexStatus.BEING_INDEXED, NodeKind.DIRECTORY)])
    assert not needs_polling([])


def test_poller_reports_due_folders_after_interval():
    clock = FakeClock()
    poller = FolderPoller(interval=3.0, clock=clock)
    poller.watch("/docs")

    assert poller.update("/docs", [_pair("/docs/a.txt", IndexStatus.PENDING)])
    assert poller.due() == []

    clock.advance(3.0)
    assert poller.due() == ["/docs"]


def test_poller_stops_once_everything_settles():
    clock = FakeClock()
    poller = FolderPoller(interval=3.0, clock=clock)
    poller.watch("/docs")
    poller.update("/docs", [_pair("/docs/a.txt", IndexStatus.PENDING)])

    assert not poller.update("/docs", [_pair("/docs/a.txt", IndexStatus.INDEXED)])
    clock.advance(10.0)
    assert poller.due() == []
    assert not poller.is_polling("/docs")


def test_idle_folders_are_due_when_asked_for():
    clock = FakeClock()
    poller = FolderPoller(interval=3.0, clock=clock)
    poller.watch("/")
    poller.watch("/docs")
    poller.update("/", [_pair("/readme.md", IndexStatus.INDEXED)])
    poller.update("/docs", [_pair("/docs/a.txt", IndexStatus.PENDING)])

    clock.advance(1.0)
    assert poller.due(include_idle=True) == []

    clock.advance(2.0)
    assert poller.due() == ["/docs"]
    assert poller.due(include_idle=True) == ["/", "/docs"]
    assert not poller.is_polling("/")


def test_unwatched_folders_are_never_polled():
    poller = FolderPoller(clock=FakeClock())

    assert not poller.update("/docs", [_pair("/docs/a.txt", IndexStatus.PENDING)])

    poller.watch("/docs")
    poller.update("/docs", [_pair("/docs/a.txt", IndexStatus.PENDING)])
    poller.unwatch("/docs")
    assert not poller.is_polling("/docs")
    assert poller.watched == []


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        FolderPoller(interval=0)

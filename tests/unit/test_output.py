from io import StringIO

from rich.console import Console

from kbsync import output as output_module
from kbsync.models import IndexStatus
from kbsync.output import format_status_badge


def test_status_badge_uses_unicode_when_supported():
    console = Console(file=StringIO())

    badge = format_status_badge(IndexStatus.INDEXED, console)

    assert badge == "[green]✓ indexed[/green]"


def test_status_badge_falls_back_to_ascii(monkeypatch):
    monkeypatch.setattr(output_module, "supports_unicode_output", lambda console=None: False)

    assert format_status_badge(IndexStatus.INDEXED) == "[green]OK indexed[/green]"
    assert format_status_badge(IndexStatus.NOT_INDEXED) == "[dim]- not indexed[/dim]"
    assert format_status_badge(IndexStatus.BEING_INDEXED) == "[cyan]* being indexed[/cyan]"

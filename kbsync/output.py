"""Helpers for formatting CLI output safely across terminals."""

from __future__ import annotations

import sys

from rich.console import Console

from .models import IndexStatus

_STATUS_STYLES = {
    IndexStatus.NOT_INDEXED: "dim",
    IndexStatus.PENDING: "yellow",
    IndexStatus.BEING_INDEXED: "cyan",
    IndexStatus.INDEXED: "green",
    IndexStatus.ERROR: "red",
    IndexStatus.DELETED: "dim",
}
_UNICODE_MARKS = {
    IndexStatus.NOT_INDEXED: "○",
    IndexStatus.PENDING: "◌",
    IndexStatus.BEING_INDEXED: "↻",
    IndexStatus.INDEXED: "✓",
    IndexStatus.ERROR: "✗",
    IndexStatus.DELETED: "−",
}
_ASCII_MARKS = {
    IndexStatus.NOT_INDEXED: "-",
    IndexStatus.PENDING: "~",
    IndexStatus.BEING_INDEXED: "*",
    IndexStatus.INDEXED: "OK",
    IndexStatus.ERROR: "X",
    IndexStatus.DELETED: "-",
}


def _encoding_supports(text: str, encoding: str | None) -> bool:
    if not encoding:
        return False
    try:
        text.encode(encoding)
    except (LookupError, UnicodeError):
        return False
    return True


def supports_unicode_output(console: Console | None = None) -> bool:
    sample = "".join(_UNICODE_MARKS.values())
    if console is not None and _encoding_supports(sample, console.encoding):
        return True
    return _encoding_supports(sample, sys.stdout.encoding)


def format_status_badge(status: IndexStatus, console: Console | None = None) -> str:
    marks = _UNICODE_MARKS if supports_unicode_output(console) else _ASCII_MARKS
    style = _STATUS_STYLES[status]
    label = status.value.replace("_", " ")
    return f"[{style}]{marks[status]} {label}[/{style}]"

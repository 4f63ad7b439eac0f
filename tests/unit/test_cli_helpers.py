from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from kbsync import cli


@pytest.mark.parametrize("token", ["yes", "TRUE", " on ", "1"])
def test_parse_boolean_accepts_truthy_tokens(token):
    assert cli._parse_boolean(token) is True  # type: ignore[attr-defined]


def test_parse_boolean_rejects_unknown_tokens():
    assert cli._parse_boolean("off") is False  # type: ignore[attr-defined]
    with pytest.raises(ValueError):
        cli._parse_boolean("maybe")  # type: ignore[attr-defined]


def test_styled_wraps_markup():
    assert cli._styled("done", "green") == "[green]done[/green]"  # type: ignore[attr-defined]


def test_configure_logging_attaches_rich_handler_once(monkeypatch):
    logger = logging.getLogger("kbsync")
    monkeypatch.setattr(logger, "handlers", [])
    monkeypatch.setattr(logger, "level", logging.NOTSET)

    cli._configure_logging(False)  # type: ignore[attr-defined]
    assert logger.handlers == []

    cli._configure_logging(True)  # type: ignore[attr-defined]
    cli._configure_logging(True)  # type: ignore[attr-defined]
    assert [type(handler) for handler in logger.handlers] == [RichHandler]
    assert logger.level == logging.DEBUG

"""Command line interface for kbsync."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .api import PickerSession, TreeEntry
from .config import index_manifest_path, load_config
from .errors import KbSyncError
from .output import format_status_badge
from .providers.local import LocalDirectorySource, LocalIndexSource
from .services.config_service import apply_config_updates, get_config_snapshot
from .text import Messages, Styles

console = Console()

app = typer.Typer(
    help=Messages.APP_HELP,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"kbsync v{__version__}")
        raise typer.Exit()


def _parse_boolean(value: str) -> bool:
    token = value.strip().lower()
    if token in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if token in {"0", "false", "f", "no", "n", "off"}:
        return False
    raise ValueError(Messages.ERROR_BOOLEAN_INVALID.format(value=value))


def _styled(text: str, style: str) -> str:
    return f"[{style}]{text}[/{style}]"


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("kbsync")
    if not verbose:
        return
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
    logger.setLevel(logging.DEBUG)


def _open_session(root: Path, *, create_index: bool = False) -> PickerSession:
    config = load_config()
    directory_source = LocalDirectorySource(root, include_hidden=config.include_hidden)
    index_source = LocalIndexSource(index_manifest_path())
    if create_index:
        index_id = index_source.ensure_index(directory_source.root)
    else:
        index_id = index_source.find_index(directory_source.root)
    return PickerSession(
        directory_source,
        index_source,
        index_id=index_id,
        config=config,
        scope=str(directory_source.root),
    )


def _fail(exc: Exception) -> NoReturn:
    console.print(_styled(str(exc), Styles.ERROR))
    raise typer.Exit(code=1)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help=Messages.HELP_VERBOSE),
) -> None:
    """Global Typer callback for shared options."""
    _configure_logging(verbose)


@app.command()
def tree(
    root: Path = typer.Argument(Path("."), help=Messages.HELP_ROOT),
    expand: List[str] | None = typer.Option(
        None, "--expand", "-e", help=Messages.HELP_TREE_EXPAND
    ),
    expand_all: bool = typer.Option(False, "--all", "-a", help=Messages.HELP_TREE_ALL),
) -> None:
    """Show the directory tree with the index status of every entry."""
    try:
        with _open_session(root) as session:
            for path in expand or []:
                session.reveal(path)
                session.expand_folder(path)
            entries = session.tree()
            while expand_all:
                closed = [
                    entry.path
                    for entry in entries
                    if entry.node.is_directory and not entry.expanded
                ]
                if not closed:
                    break
                for path in closed:
                    session.expand_folder(path)
                entries = session.tree()
            errors = dict(session.errors)
            shown_root = session.loader.directory_source.root
    except KbSyncError as exc:
        _fail(exc)
    console.print(_styled(Messages.INFO_TREE_TITLE.format(root=shown_root), Styles.TITLE))
    _render_tree(entries)
    for path, error in sorted(errors.items()):
        console.print(
            _styled(Messages.INFO_TREE_FOLDER_ERROR.format(path=path, reason=error), Styles.WARNING)
        )


@app.command()
def select(
    paths: List[str] = typer.Argument(..., help=Messages.HELP_SELECT_PATHS),
    root: Path = typer.Option(Path("."), "--root", "-r", help=Messages.HELP_ROOT),
) -> None:
    """Rebuild the index so it holds exactly the given files and folders."""
    try:
        with _open_session(root, create_index=True) as session:
            result = session.rebuild(paths)
    except KbSyncError as exc:
        _fail(exc)
    console.print(
        _styled(
            Messages.INFO_REBUILD_SUBMITTED.format(
                index_id=result.index_id, count=len(result.file_ids)
            ),
            Styles.SUCCESS,
        )
    )


@app.command()
def remove(
    path: str = typer.Argument(..., help=Messages.HELP_REMOVE_PATH),
    root: Path = typer.Option(Path("."), "--root", "-r", help=Messages.HELP_ROOT),
) -> None:
    """Remove one file or folder from the index."""
    try:
        with _open_session(root) as session:
            if session.index_id is None:
                raise KbSyncError(Messages.ERROR_NO_INDEX)
            session.reveal(path)
            session.delete(path)
    except KbSyncError as exc:
        _fail(exc)
    console.print(_styled(Messages.INFO_REMOVED.format(path=path), Styles.SUCCESS))


@app.command()
def status(
    root: Path = typer.Option(Path("."), "--root", "-r", help=Messages.HELP_ROOT),
) -> None:
    """List every indexed file with its status."""
    try:
        with _open_session(root) as session:
            files = session.indexed_files()
            shown_root = session.loader.directory_source.root
    except KbSyncError as exc:
        _fail(exc)
    if not files:
        console.print(_styled(Messages.INFO_INDEX_EMPTY.format(root=shown_root), Styles.INFO))
        return
    table = Table(show_header=True, header_style=Styles.TABLE_HEADER)
    table.add_column(Messages.TABLE_HEADER_INDEX, justify="right")
    table.add_column(Messages.TABLE_HEADER_PATH, overflow="fold")
    table.add_column(Messages.TABLE_HEADER_STATUS)
    for idx, info in enumerate(files, start=1):
        badge = format_status_badge(info.status, console) if info.status is not None else "-"
        table.add_row(str(idx), info.path, badge)
    console.print(table)


@app.command()
def config(
    show: bool = typer.Option(False, "--show", help=Messages.HELP_SHOW_CONFIG),
    set_poll_interval: float | None = typer.Option(
        None, "--set-poll-interval", help=Messages.HELP_SET_POLL_INTERVAL
    ),
    set_suppression_window: float | None = typer.Option(
        None, "--set-suppression-window", help=Messages.HELP_SET_SUPPRESSION_WINDOW
    ),
    set_grace_period: float | None = typer.Option(
        None, "--set-grace-period", help=Messages.HELP_SET_GRACE_PERIOD
    ),
    set_directory_ttl: float | None = typer.Option(
        None, "--set-directory-ttl", help=Messages.HELP_SET_DIRECTORY_TTL
    ),
    set_fetch_concurrency: int | None = typer.Option(
        None, "--set-fetch-concurrency", help=Messages.HELP_SET_FETCH_CONCURRENCY
    ),
    set_max_retries: int | None = typer.Option(
        None, "--set-max-retries", help=Messages.HELP_SET_MAX_RETRIES
    ),
    set_include_hidden: str | None = typer.Option(
        None, "--set-include-hidden", help=Messages.HELP_SET_INCLUDE_HIDDEN
    ),
) -> None:
    """View or persist kbsync configuration."""
    try:
        include_hidden = (
            _parse_boolean(set_include_hidden) if set_include_hidden is not None else None
        )
        updates = apply_config_updates(
            poll_interval=set_poll_interval,
            suppression_window=set_suppression_window,
            grace_period=set_grace_period,
            directory_ttl=set_directory_ttl,
            fetch_concurrency=set_fetch_concurrency,
            max_retries=set_max_retries,
            include_hidden=include_hidden,
        )
    except ValueError as exc:
        _fail(exc)

    snapshot = get_config_snapshot()
    for field_name in updates.updated:
        console.print(
            _styled(
                Messages.INFO_CONFIG_SET.format(
                    field=field_name, value=getattr(snapshot, field_name)
                ),
                Styles.SUCCESS,
            )
        )
    if show or not updates.changed:
        console.print(
            _styled(
                Messages.INFO_CONFIG_SUMMARY.format(
                    poll_interval=snapshot.poll_interval,
                    suppression_window=snapshot.suppression_window,
                    grace_period=snapshot.grace_period,
                    directory_ttl=snapshot.directory_ttl,
                    fetch_concurrency=snapshot.fetch_concurrency,
                    max_retries=snapshot.max_retries,
                    include_hidden="yes" if snapshot.include_hidden else "no",
                ),
                Styles.INFO,
            )
        )


def _render_tree(entries: List[TreeEntry]) -> None:
    for entry in entries:
        indent = "  " * entry.depth
        name = entry.node.name + ("/" if entry.node.is_directory else "")
        badge = format_status_badge(entry.status, console)
        console.print(f"{indent}{name}  {badge}", highlight=False)


def run(argv: list[str] | None = None) -> None:
    """Entry point wrapper allowing optional argument override."""
    args = list(argv) if argv is not None else sys.argv[1:]
    if argv is None:
        app()
    else:
        app(args=args)

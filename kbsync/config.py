"""Global configuration management for kbsync."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from .text import Messages

DEFAULT_CONFIG_DIR = Path(os.path.expanduser("~")) / ".kbsync"
CONFIG_DIR = DEFAULT_CONFIG_DIR
CONFIG_FILE = CONFIG_DIR / "config.json"
INDEX_MANIFEST_NAME = "indexes.json"
_CONFIG_DIR_OVERRIDE: ContextVar[Path | None] = ContextVar(
    "kbsync_config_dir_override",
    default=None,
)
DEFAULT_POLL_INTERVAL = 3.0
DEFAULT_SUPPRESSION_WINDOW = 3.0
DEFAULT_GRACE_PERIOD = 30.0
DEFAULT_DIRECTORY_TTL = 300.0
DEFAULT_FETCH_CONCURRENCY = 4
DEFAULT_MAX_RETRIES = 2


@dataclass
class Config:
    poll_interval: float = DEFAULT_POLL_INTERVAL
    suppression_window: float = DEFAULT_SUPPRESSION_WINDOW
    grace_period: float = DEFAULT_GRACE_PERIOD
    directory_ttl: float = DEFAULT_DIRECTORY_TTL
    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY
    max_retries: int = DEFAULT_MAX_RETRIES
    include_hidden: bool = False


def _resolve_config_dir() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    return override if override is not None else CONFIG_DIR


def _resolve_config_file() -> Path:
    override = _CONFIG_DIR_OVERRIDE.get()
    if override is not None:
        return override / "config.json"
    return CONFIG_FILE


@contextmanager
def config_dir_context(path: Path | str | None):
    """Temporarily override the config directory for the current context."""

    if path is None:
        yield
        return
    dir_path = Path(path).expanduser().resolve()
    if dir_path.exists() and not dir_path.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {dir_path}")
    token = _CONFIG_DIR_OVERRIDE.set(dir_path)
    try:
        yield
    finally:
        _CONFIG_DIR_OVERRIDE.reset(token)


def index_manifest_path() -> Path:
    return _resolve_config_dir() / INDEX_MANIFEST_NAME


def load_config() -> Config:
    config_file = _resolve_config_file()
    if not config_file.exists():
        return Config()
    raw = json.loads(config_file.read_text(encoding="utf-8"))
    return config_from_json(raw)


def save_config(config: Config) -> None:
    config_dir = _resolve_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    data: Dict[str, Any] = {
        "poll_interval": config.poll_interval,
        "suppression_window": config.suppression_window,
        "grace_period": config.grace_period,
        "directory_ttl": config.directory_ttl,
        "fetch_concurrency": config.fetch_concurrency,
        "max_retries": config.max_retries,
        "include_hidden": bool(config.include_hidden),
    }
    config_file = _resolve_config_file()
    config_file.write_text(
        json.dumps(data, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def set_config_dir(path: Path | str | None) -> None:
    global CONFIG_DIR, CONFIG_FILE
    if path is None:
        CONFIG_DIR = DEFAULT_CONFIG_DIR
    else:
        dir_path = Path(path).expanduser().resolve()
        if dir_path.exists() and not dir_path.is_dir():
            raise NotADirectoryError(f"Path is not a directory: {dir_path}")
        CONFIG_DIR = dir_path
    CONFIG_FILE = CONFIG_DIR / "config.json"


def config_from_json(
    payload: str | Mapping[str, object], *, base: Config | None = None
) -> Config:
    """Return a Config from a JSON string or mapping without saving it."""
    data = _coerce_config_payload(payload)
    config = Config() if base is None else _clone_config(base)
    _apply_config_payload(config, data)
    return config


def update_config_from_json(
    payload: str | Mapping[str, object], *, replace: bool = False
) -> Config:
    """Update config from a JSON string or mapping and persist it."""
    base = None if replace else load_config()
    config = config_from_json(payload, base=base)
    save_config(config)
    return config


def _update(field: str, value: object) -> None:
    config = load_config()
    _apply_config_payload(config, {field: value})
    save_config(config)


def set_poll_interval(value: float) -> None:
    _update("poll_interval", value)


def set_suppression_window(value: float) -> None:
    _update("suppression_window", value)


def set_grace_period(value: float) -> None:
    _update("grace_period", value)


def set_directory_ttl(value: float) -> None:
    _update("directory_ttl", value)


def set_fetch_concurrency(value: int) -> None:
    _update("fetch_concurrency", value)


def set_max_retries(value: int) -> None:
    _update("max_retries", value)


def set_include_hidden(value: bool) -> None:
    _update("include_hidden", value)


def _coerce_config_payload(payload: str | Mapping[str, object]) -> Mapping[str, object]:
    if isinstance(payload, str):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID) from exc
    elif isinstance(payload, Mapping):
        data = dict(payload)
    else:
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    if not isinstance(data, Mapping):
        raise ValueError(Messages.ERROR_CONFIG_JSON_INVALID)
    return data


def _clone_config(config: Config) -> Config:
    return Config(
        poll_interval=config.poll_interval,
        suppression_window=config.suppression_window,
        grace_period=config.grace_period,
        directory_ttl=config.directory_ttl,
        fetch_concurrency=config.fetch_concurrency,
        max_retries=config.max_retries,
        include_hidden=config.include_hidden,
    )


def _apply_config_payload(config: Config, payload: Mapping[str, object]) -> None:
    if "poll_interval" in payload:
        config.poll_interval = _coerce_seconds(
            payload["poll_interval"], "poll_interval", DEFAULT_POLL_INTERVAL, positive=True
        )
    if "suppression_window" in payload:
        config.suppression_window = _coerce_seconds(
            payload["suppression_window"], "suppression_window", DEFAULT_SUPPRESSION_WINDOW
        )
    if "grace_period" in payload:
        config.grace_period = _coerce_seconds(
            payload["grace_period"], "grace_period", DEFAULT_GRACE_PERIOD
        )
    if "directory_ttl" in payload:
        config.directory_ttl = _coerce_seconds(
            payload["directory_ttl"], "directory_ttl", DEFAULT_DIRECTORY_TTL
        )
    if "fetch_concurrency" in payload:
        config.fetch_concurrency = _coerce_int(
            payload["fetch_concurrency"],
            "fetch_concurrency",
            DEFAULT_FETCH_CONCURRENCY,
            minimum=1,
        )
    if "max_retries" in payload:
        config.max_retries = _coerce_int(
            payload["max_retries"], "max_retries", DEFAULT_MAX_RETRIES, minimum=0
        )
    if "include_hidden" in payload:
        config.include_hidden = _coerce_bool(payload["include_hidden"], "include_hidden")


def _coerce_seconds(
    value: object, field: str, default: float, *, positive: bool = False
) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            seconds = float(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    else:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if seconds < 0 or (positive and seconds == 0):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    return seconds


def _coerce_int(value: object, field: str, default: int, *, minimum: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
        number = int(value)
    elif isinstance(value, str):
        cleaned = value.strip()
        if not cleaned:
            return default
        try:
            number = int(cleaned)
        except ValueError as exc:
            raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field)) from exc
    else:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    if number < minimum:
        raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))
    return number


def _coerce_bool(value: object, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in {"true", "1", "yes", "on"}:
            return True
        if cleaned in {"false", "0", "no", "off"}:
            return False
    raise ValueError(Messages.ERROR_CONFIG_VALUE_INVALID.format(field=field))

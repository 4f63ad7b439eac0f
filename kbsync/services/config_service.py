"""Logic helpers for the `kbsync config` command."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import (
    Config,
    load_config,
    set_directory_ttl,
    set_fetch_concurrency,
    set_grace_period,
    set_include_hidden,
    set_max_retries,
    set_poll_interval,
    set_suppression_window,
)


@dataclass(slots=True)
class ConfigUpdateResult:
    updated: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.updated)


def apply_config_updates(
    *,
    poll_interval: float | None = None,
    suppression_window: float | None = None,
    grace_period: float | None = None,
    directory_ttl: float | None = None,
    fetch_concurrency: int | None = None,
    max_retries: int | None = None,
    include_hidden: bool | None = None,
) -> ConfigUpdateResult:
    """Apply config mutations and report which fields were updated."""

    result = ConfigUpdateResult()
    setters = (
        ("poll_interval", poll_interval, set_poll_interval),
        ("suppression_window", suppression_window, set_suppression_window),
        ("grace_period", grace_period, set_grace_period),
        ("directory_ttl", directory_ttl, set_directory_ttl),
        ("fetch_concurrency", fetch_concurrency, set_fetch_concurrency),
        ("max_retries", max_retries, set_max_retries),
        ("include_hidden", include_hidden, set_include_hidden),
    )
    for name, value, setter in setters:
        if value is None:
            continue
        setter(value)
        result.updated.append(name)
    return result


def get_config_snapshot() -> Config:
    return load_config()

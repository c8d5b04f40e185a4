from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml

from rss2hook.utils.duration_utils import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "rss2hook/0.1 (+https://github.com/skx/rss2hook)"
DEFAULT_CACHE_FILENAME = "cache.sqlite"
DEFAULT_FETCH_TIMEOUT_SECONDS = 5.0
DEFAULT_NOTIFY_TIMEOUT_SECONDS = 30.0
DEFAULT_INTERVAL_SECONDS = 300.0

# Everything up to the last "=" is the feed, so feed URLs may carry query strings.
_ENTRY_LINE = re.compile(r"^(.*)=([^=]+)")
_YAML_SUFFIXES = {".yaml", ".yml"}


class ConfigError(ValueError):
    """Raised when configuration is invalid."""


@dataclass(frozen=True, slots=True)
class FeedEntry:
    feed_url: str
    hook_url: str


@dataclass(slots=True)
class AppConfig:
    feeds: list[FeedEntry]
    config_path: str
    storage_path: str
    fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS
    notify_timeout_seconds: float | None = DEFAULT_NOTIFY_TIMEOUT_SECONDS
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    max_workers: int = 1
    fail_on_error_status: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"
    warnings: list[str] = field(default_factory=list)


def parse_feed_entries(lines: Iterable[str]) -> tuple[list[FeedEntry], list[str]]:
    """Parse ``feed=hook`` lines, returning entries and per-line warnings."""
    entries: list[FeedEntry] = []
    warnings: list[str] = []

    for number, raw_line in enumerate(lines, start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        match = _ENTRY_LINE.match(line)
        if match is None:
            warnings.append(f"line {number}: expected feed=hook, skipping {line!r}")
            continue

        feed_url = match.group(1).strip()
        hook_url = match.group(2).strip()
        if not feed_url or not hook_url:
            warnings.append(f"line {number}: empty feed or hook, skipping {line!r}")
            continue

        entries.append(FeedEntry(feed_url=feed_url, hook_url=hook_url))

    return entries, warnings


def _as_bool(value: Any, *, field_name: str) -> bool:
    if isinstance(value, bool):
        return value

    if isinstance(value, int) and value in {0, 1}:
        return bool(value)

    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "on"}:
            return True
        if normalized in {"false", "0", "no", "off"}:
            return False

    raise ConfigError(f"{field_name} must be a boolean")


def _as_int(value: Any, *, field_name: str, minimum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be an integer")

    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{field_name} must be an integer") from exc

    if minimum is not None and parsed < minimum:
        raise ConfigError(f"{field_name} must be >= {minimum}")
    return parsed


def _as_duration(value: Any, *, field_name: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise ConfigError(f"{field_name}: {exc}") from exc


def _resolve_relative_path(config_path: Path, raw_path: str) -> str:
    candidate = Path(raw_path).expanduser()
    if candidate.is_absolute():
        return str(candidate)
    return str((config_path.parent / candidate).resolve())


def load_config(path: str | Path) -> AppConfig:
    config_path = Path(path).expanduser().resolve()
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    if config_path.suffix.lower() in _YAML_SUFFIXES:
        return _load_yaml_config(config_path)

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            feeds, warnings = parse_feed_entries(handle)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Error opening {config_path}: {exc}") from exc

    for warning in warnings:
        logger.warning("%s: %s", config_path, warning)

    return AppConfig(
        feeds=feeds,
        config_path=str(config_path),
        storage_path=str(config_path.parent / DEFAULT_CACHE_FILENAME),
        warnings=warnings,
    )


def _load_yaml_config(config_path: Path) -> AppConfig:
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Error reading {config_path}: {exc}") from exc

    if not isinstance(parsed, dict):
        raise ConfigError("Config root must be a mapping")

    raw_feeds = parsed.get("feeds", [])
    if not isinstance(raw_feeds, list):
        raise ConfigError("feeds must be a list")

    feeds: list[FeedEntry] = []
    warnings: list[str] = []
    for index, raw_feed in enumerate(raw_feeds, start=1):
        if not isinstance(raw_feed, dict):
            raise ConfigError(f"Feed entry #{index} must be a mapping")

        feed_url = str(raw_feed.get("feed") or "").strip()
        hook_url = str(raw_feed.get("hook") or "").strip()
        if not feed_url or not hook_url:
            warnings.append(f"feed entry #{index}: missing feed or hook, skipping")
            continue
        feeds.append(FeedEntry(feed_url=feed_url, hook_url=hook_url))

    for warning in warnings:
        logger.warning("%s: %s", config_path, warning)

    raw_storage = parsed.get("storage", {}) or {}
    if not isinstance(raw_storage, dict):
        raise ConfigError("storage must be a mapping")

    storage_path = str(raw_storage.get("path") or DEFAULT_CACHE_FILENAME).strip()

    notify_timeout_raw = parsed.get("notify_timeout", DEFAULT_NOTIFY_TIMEOUT_SECONDS)
    notify_timeout = (
        _as_duration(notify_timeout_raw, field_name="notify_timeout")
        if notify_timeout_raw is not None
        else None
    )

    return AppConfig(
        feeds=feeds,
        config_path=str(config_path),
        storage_path=_resolve_relative_path(config_path, storage_path),
        fetch_timeout_seconds=_as_duration(
            parsed.get("timeout", DEFAULT_FETCH_TIMEOUT_SECONDS),
            field_name="timeout",
        ),
        notify_timeout_seconds=notify_timeout,
        interval_seconds=_as_duration(
            parsed.get("interval", DEFAULT_INTERVAL_SECONDS),
            field_name="interval",
        ),
        max_workers=_as_int(
            parsed.get("max_workers", 1),
            field_name="max_workers",
            minimum=1,
        ),
        fail_on_error_status=_as_bool(
            parsed.get("fail_on_error_status", False),
            field_name="fail_on_error_status",
        ),
        user_agent=str(parsed.get("user_agent") or DEFAULT_USER_AGENT).strip(),
        log_level=str(parsed.get("log_level", "INFO")).upper(),
        warnings=warnings,
    )

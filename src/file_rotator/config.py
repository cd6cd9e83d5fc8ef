"""Configuration resolution.

Each option resolves as: CLI flag -> environment variable -> dotenv file ->
built-in default.  The result is validated into an immutable
:class:`RotateConfig`; anything invalid raises :class:`ConfigError` before
the filesystem is touched.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from dotenv import dotenv_values

from .candidates import DEFAULT_FILE_REGEX, compile_name_filter
from .errors import ConfigError
from .thresholds import parse_time_threshold


DEFAULT_ENV_FILE = ".env.rotate"

ENV_SRC_DIR = "FILE_ROTATOR_SRC_DIR"
ENV_DEST_DIR = "FILE_ROTATOR_DEST_DIR"
ENV_MIN_FREE_BYTES = "FILE_ROTATOR_MIN_FREE_BYTES"
ENV_MIN_FREE_PERCENT = "FILE_ROTATOR_MIN_FREE_PERCENT"
ENV_OLDER_THAN = "FILE_ROTATOR_OLDER_THAN"
ENV_FILE_REGEX = "FILE_ROTATOR_FILE_REGEX"
ENV_DRY_RUN = "FILE_ROTATOR_DRY_RUN"
ENV_STRICT = "FILE_ROTATOR_STRICT"
ENV_INTERVAL_SECONDS = "FILE_ROTATOR_INTERVAL_SECONDS"
ENV_LOG_LEVEL = "FILE_ROTATOR_LOG_LEVEL"

_DIGITS = re.compile(r"^[0-9]+$")


@dataclass(frozen=True)
class RotateConfig:
    source_dir: str
    dest_dir: str
    min_free_bytes: int | None = None
    min_free_percent: int | None = None
    older_than: str | None = None
    file_regex: str = DEFAULT_FILE_REGEX
    dry_run: bool = False
    strict: bool = False
    interval_seconds: int | None = None
    log_level: str = "INFO"

    @property
    def has_space_threshold(self) -> bool:
        return self.min_free_bytes is not None or self.min_free_percent is not None


def parse_boolish(value: str, *, default: bool = False) -> bool:
    normalized = str(value or "").strip().lower()
    if not normalized:
        return default
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def read_dotenv(dotenv_path: Path | None) -> dict[str, str]:
    if dotenv_path is None or not dotenv_path.exists():
        return {}
    raw = dotenv_values(dotenv_path)
    return {str(key): str(value) for key, value in raw.items() if value is not None}


def _parse_non_negative_int(raw: str, *, option: str) -> int:
    text = str(raw).strip()
    if not _DIGITS.match(text):
        raise ConfigError(f"Invalid {option} value: {raw!r} (expected a non-negative integer)")
    return int(text)


class _Resolver:
    def __init__(self, env: Mapping[str, str], dotenv: Mapping[str, str]):
        self._env = env
        self._dotenv = dotenv

    def get(self, cli_value: Any, key: str) -> str:
        resolved = str(cli_value if cli_value is not None else "").strip()
        if not resolved:
            resolved = str(self._env.get(key) or "").strip()
        if not resolved:
            resolved = str(self._dotenv.get(key) or "").strip()
        return resolved

    def flag(self, cli_value: bool, key: str) -> bool:
        if cli_value:
            return True
        return parse_boolish(self.get(None, key), default=False)


def build_config(
    *,
    source_dir: str | None = None,
    dest_dir: str | None = None,
    min_free_bytes: str | int | None = None,
    min_free_percent: str | int | None = None,
    older_than: str | None = None,
    file_regex: str | None = None,
    dry_run: bool = False,
    strict: bool = False,
    interval_seconds: str | int | None = None,
    verbose: bool = False,
    env: Mapping[str, str] | None = None,
    dotenv_path: Path | None = None,
) -> RotateConfig:
    resolver = _Resolver(os.environ if env is None else env, read_dotenv(dotenv_path))

    resolved_source = resolver.get(source_dir, ENV_SRC_DIR)
    resolved_dest = resolver.get(dest_dir, ENV_DEST_DIR)
    if not resolved_source or not resolved_dest:
        raise ConfigError("Both a source directory and a destination directory are required")

    raw_bytes = resolver.get(min_free_bytes, ENV_MIN_FREE_BYTES)
    raw_percent = resolver.get(min_free_percent, ENV_MIN_FREE_PERCENT)
    if raw_bytes and raw_percent:
        raise ConfigError("Byte and percentage free-space thresholds cannot be combined")

    resolved_bytes = _parse_non_negative_int(raw_bytes, option="byte threshold") if raw_bytes else None
    resolved_percent = None
    if raw_percent:
        resolved_percent = _parse_non_negative_int(raw_percent, option="percentage threshold")
        if resolved_percent > 100:
            raise ConfigError(f"Percentage threshold must be between 0 and 100, got {resolved_percent}")

    resolved_older_than = None
    if older_than is not None and not str(older_than).strip():
        raise ConfigError("Time threshold is empty")
    raw_older_than = resolver.get(older_than, ENV_OLDER_THAN)
    if raw_older_than:
        parse_time_threshold(raw_older_than)
        resolved_older_than = raw_older_than

    if resolved_bytes is None and resolved_percent is None and resolved_older_than is None:
        raise ConfigError("Provide at least one of a byte, percentage or time threshold")

    resolved_regex = resolver.get(file_regex, ENV_FILE_REGEX) or DEFAULT_FILE_REGEX
    compile_name_filter(resolved_regex)

    resolved_interval = None
    raw_interval = resolver.get(interval_seconds, ENV_INTERVAL_SECONDS)
    if raw_interval:
        resolved_interval = _parse_non_negative_int(raw_interval, option="interval")
        if resolved_interval <= 0:
            raise ConfigError("Interval must be greater than 0 seconds")

    resolved_strict = resolver.flag(strict, ENV_STRICT)
    if resolved_strict and resolved_interval:
        raise ConfigError("Strict mode cannot be combined with an interval; repeated runs have no single exit status")

    log_level = "DEBUG" if verbose else (resolver.get(None, ENV_LOG_LEVEL).upper() or "INFO")

    return RotateConfig(
        source_dir=resolved_source,
        dest_dir=resolved_dest,
        min_free_bytes=resolved_bytes,
        min_free_percent=resolved_percent,
        older_than=resolved_older_than,
        file_regex=resolved_regex,
        dry_run=resolver.flag(dry_run, ENV_DRY_RUN),
        strict=resolved_strict,
        interval_seconds=resolved_interval,
        log_level=log_level,
    )

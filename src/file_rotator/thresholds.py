"""Resolve user supplied thresholds into absolute values.

A run is governed by two thresholds: a free-space floor in bytes (given
directly or as a percentage of the source filesystem's capacity) and a
modification-time cutoff in epoch seconds.  Resolution also computes the
initial space deficit that the eviction loop works down.
"""
from __future__ import annotations

import logging
import math
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from .errors import ConfigError, CrossPartitionError, FilesystemQueryError


LOGGER = logging.getLogger("file_rotator")

_EPOCH_PATTERN = re.compile(r"^@(-?\d+(?:\.\d+)?)$")
_RELATIVE_UNITS = {
    "second": "seconds",
    "sec": "seconds",
    "minute": "minutes",
    "min": "minutes",
    "hour": "hours",
    "day": "days",
    "week": "weeks",
    "month": "months",
    "year": "years",
}
_UNIT_ALTERNATION = "|".join(sorted(_RELATIVE_UNITS, key=len, reverse=True))
_RELATIVE_COMPONENT = re.compile(rf"(\d+)\s*({_UNIT_ALTERNATION})s?\b", re.IGNORECASE)
_RELATIVE_PATTERN = re.compile(
    rf"^(?:\d+\s*(?:{_UNIT_ALTERNATION})s?\s+)+ago$",
    re.IGNORECASE,
)
_NAMED_OFFSETS = {
    "now": timedelta(0),
    "today": timedelta(0),
    "yesterday": timedelta(days=-1),
    "tomorrow": timedelta(days=1),
}


DiskUsageFn = Callable[[str], Any]
DeviceFn = Callable[[str], int]


@dataclass(frozen=True)
class ResolvedThresholds:
    byte_threshold: int | None
    time_threshold: int | None
    need_bytes: int | None
    total_bytes: int | None = None
    free_bytes: int | None = None

    @property
    def already_satisfied(self) -> bool:
        return self.need_bytes is not None and self.need_bytes <= 0


def _to_epoch(moment: datetime) -> int:
    return int(math.floor(moment.timestamp()))


def parse_time_threshold(expression: str, *, now: datetime | None = None) -> int:
    """Parse a human readable point in time into integer epoch seconds.

    Accepts ``@<epoch>``, ``now``/``today``/``yesterday``/``tomorrow``,
    relative phrases such as ``3 days ago`` or ``1 week 2 hours ago`` and any
    absolute date understood by :func:`dateutil.parser.parse`.  Naive dates
    are interpreted in local time.
    """
    text = str(expression or "").strip()
    if not text:
        raise ConfigError("Time threshold is empty")

    reference = now or datetime.now()

    epoch_match = _EPOCH_PATTERN.match(text)
    if epoch_match:
        return int(math.floor(float(epoch_match.group(1))))

    lowered = text.lower()
    if lowered in _NAMED_OFFSETS:
        return _to_epoch(reference + _NAMED_OFFSETS[lowered])

    if _RELATIVE_PATTERN.match(text):
        offset: dict[str, int] = {}
        for amount, unit in _RELATIVE_COMPONENT.findall(text):
            key = _RELATIVE_UNITS[unit.lower()]
            offset[key] = offset.get(key, 0) + int(amount)
        return _to_epoch(reference - relativedelta(**offset))

    midnight = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    try:
        parsed = date_parser.parse(text, default=midnight)
    except (ValueError, OverflowError) as exc:
        raise ConfigError(f"Cannot parse time threshold: {expression!r}") from exc
    return _to_epoch(parsed)


def percent_to_bytes(total_bytes: int, percent: int) -> int:
    return int(total_bytes) * int(percent) // 100


def device_of(path: str) -> int:
    return int(os.stat(path).st_dev)


def query_capacity(path: str, *, disk_usage: DiskUsageFn = shutil.disk_usage) -> tuple[int, int]:
    """Return ``(total_bytes, free_bytes)`` for the filesystem hosting *path*."""
    try:
        usage = disk_usage(path)
        total = int(usage.total)
        free = int(usage.free)
    except (OSError, AttributeError, TypeError, ValueError) as exc:
        raise FilesystemQueryError(f"Failed to query filesystem capacity for {path}") from exc
    if total < 0 or free < 0:
        raise FilesystemQueryError(f"Filesystem reported invalid capacity for {path}: total={total}, free={free}")
    return total, free


def ensure_separate_filesystems(
    source_dir: str,
    dest_dir: str,
    *,
    device_fn: DeviceFn = device_of,
) -> None:
    try:
        source_device = device_fn(source_dir)
        dest_device = device_fn(dest_dir)
    except OSError as exc:
        raise FilesystemQueryError(
            f"Failed to determine filesystem identity (source={source_dir}, destination={dest_dir})"
        ) from exc

    if source_device == dest_device:
        raise CrossPartitionError(
            "A free-space threshold is set but source and destination are on the same filesystem "
            f"(device {source_device}); moving files there cannot free space"
        )


def resolve_thresholds(
    *,
    source_dir: str,
    dest_dir: str,
    min_free_bytes: int | None = None,
    min_free_percent: int | None = None,
    older_than: str | None = None,
    now: datetime | None = None,
    disk_usage: DiskUsageFn = shutil.disk_usage,
    device_fn: DeviceFn = device_of,
) -> ResolvedThresholds:
    if min_free_bytes is not None and min_free_percent is not None:
        raise ConfigError("Byte and percentage free-space thresholds are mutually exclusive")
    if min_free_bytes is None and min_free_percent is None and not older_than:
        raise ConfigError("At least one of a byte, percentage or time threshold is required")

    time_threshold = None
    if older_than:
        time_threshold = parse_time_threshold(older_than, now=now)
        LOGGER.debug("[ROTATE]: Time threshold %r resolved to epoch %d", older_than, time_threshold)

    if min_free_bytes is None and min_free_percent is None:
        return ResolvedThresholds(byte_threshold=None, time_threshold=time_threshold, need_bytes=None)

    total_bytes, free_bytes = query_capacity(source_dir, disk_usage=disk_usage)

    if min_free_percent is not None:
        byte_threshold = percent_to_bytes(total_bytes, min_free_percent)
        LOGGER.debug(
            "[ROTATE]: Free-space threshold %d%% -> %d bytes (total %d bytes)",
            min_free_percent,
            byte_threshold,
            total_bytes,
        )
    else:
        byte_threshold = int(min_free_bytes or 0)

    ensure_separate_filesystems(source_dir, dest_dir, device_fn=device_fn)

    need_bytes = byte_threshold - free_bytes
    LOGGER.debug(
        "[ROTATE]: Initial free space %d bytes, threshold %d bytes, deficit %d bytes",
        free_bytes,
        byte_threshold,
        need_bytes,
    )
    return ResolvedThresholds(
        byte_threshold=byte_threshold,
        time_threshold=time_threshold,
        need_bytes=need_bytes,
        total_bytes=total_bytes,
        free_bytes=free_bytes,
    )

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

from .candidates import list_candidates
from .config import RotateConfig
from .errors import DirectoryAccessError, MoveError
from .eviction import Mover, evict, move_file
from .thresholds import DeviceFn, DiskUsageFn, device_of, resolve_thresholds


LOGGER = logging.getLogger("file_rotator")

STOP_ALREADY_SATISFIED = "already_satisfied"
STOP_NO_CANDIDATES = "no_candidates"


@dataclass
class RotationReport:
    stop_reason: str
    moved: list[str] = field(default_factory=list)
    bytes_moved: int = 0
    failures: list[MoveError] = field(default_factory=list)
    need_bytes: int | None = None

    @property
    def files_moved(self) -> int:
        return len(self.moved)


def validate_directories(source_dir: str, dest_dir: str) -> None:
    if not Path(source_dir).is_dir():
        raise DirectoryAccessError(f"Source directory {source_dir!r} does not exist or is not a directory")
    if not Path(dest_dir).is_dir():
        raise DirectoryAccessError(f"Destination directory {dest_dir!r} does not exist or is not a directory")
    try:
        same = os.path.samefile(source_dir, dest_dir)
    except OSError as exc:
        raise DirectoryAccessError(f"Cannot compare {source_dir!r} and {dest_dir!r}: {exc}") from exc
    if same:
        raise DirectoryAccessError("Source and destination are the same directory")


def run_rotation(
    config: RotateConfig,
    *,
    emit: Callable[[str], None] | None = None,
    mover: Mover = move_file,
    disk_usage: DiskUsageFn = shutil.disk_usage,
    device_fn: DeviceFn = device_of,
    now: datetime | None = None,
) -> RotationReport:
    """Run one complete pass: resolve thresholds, list candidates, evict."""
    validate_directories(config.source_dir, config.dest_dir)
    if config.has_space_threshold:
        LOGGER.debug("[ROTATE]: Free-space threshold set; checking capacity of %s", config.source_dir)

    thresholds = resolve_thresholds(
        source_dir=config.source_dir,
        dest_dir=config.dest_dir,
        min_free_bytes=config.min_free_bytes,
        min_free_percent=config.min_free_percent,
        older_than=config.older_than,
        now=now,
        disk_usage=disk_usage,
        device_fn=device_fn,
    )
    if thresholds.already_satisfied:
        LOGGER.info(
            "[ROTATE]: Free space %d bytes already meets threshold %d bytes; nothing to move",
            thresholds.free_bytes,
            thresholds.byte_threshold,
        )
        return RotationReport(stop_reason=STOP_ALREADY_SATISFIED, need_bytes=thresholds.need_bytes)

    candidates = list_candidates(config.source_dir, config.file_regex)
    if not candidates:
        LOGGER.info("[ROTATE]: No candidate files in %s (file regex %r)", config.source_dir, config.file_regex)
        return RotationReport(stop_reason=STOP_NO_CANDIDATES, need_bytes=thresholds.need_bytes)

    LOGGER.info(
        "[ROTATE]: Processing %d candidate(s): source=%r, destination=%r, file regex=%r%s",
        len(candidates),
        config.source_dir,
        config.dest_dir,
        config.file_regex,
        " (dry run)" if config.dry_run else "",
    )
    result = evict(
        candidates,
        dest_dir=config.dest_dir,
        thresholds=thresholds,
        mover=mover,
        emit=emit,
        dry_run=config.dry_run,
    )

    if result.failures:
        LOGGER.warning(
            "[ROTATE]: Finished with %d failed move(s); %d file(s) moved",
            len(result.failures),
            result.files_moved,
        )
    else:
        LOGGER.info("[ROTATE]: Finished; %d file(s) moved, %d bytes", result.files_moved, result.bytes_moved)

    return RotationReport(
        stop_reason=result.stop_reason,
        moved=list(result.moved),
        bytes_moved=result.bytes_moved,
        failures=list(result.failures),
        need_bytes=result.need_bytes,
    )

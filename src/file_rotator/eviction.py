from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from .candidates import Candidate
from .errors import MoveError
from .thresholds import ResolvedThresholds


LOGGER = logging.getLogger("file_rotator")

STOP_EXHAUSTED = "exhausted"
STOP_CUTOFF = "cutoff"


Mover = Callable[[str, str], str]


class DeficitTracker:
    """Running estimate of how many bytes still have to leave the source filesystem.

    ``need_bytes`` is ``None`` when no free-space threshold is configured.
    The estimate only ever decreases, by the size of each moved file.
    """

    def __init__(self, need_bytes: int | None, byte_threshold: int | None = None):
        self.need_bytes = need_bytes
        self.byte_threshold = byte_threshold

    @property
    def active(self) -> bool:
        return self.need_bytes is not None

    def space_still_low(self) -> bool:
        return self.need_bytes is not None and self.need_bytes > 0

    def record_move(self, size: int) -> None:
        if self.need_bytes is not None:
            self.need_bytes -= int(size)

    def estimated_free_bytes(self) -> int | None:
        if self.need_bytes is None or self.byte_threshold is None:
            return None
        return self.byte_threshold - self.need_bytes


@dataclass
class EvictionResult:
    moved: list[str] = field(default_factory=list)
    bytes_moved: int = 0
    failures: list[MoveError] = field(default_factory=list)
    stop_reason: str = STOP_EXHAUSTED
    need_bytes: int | None = None

    @property
    def files_moved(self) -> int:
        return len(self.moved)


def move_file(path: str, dest_dir: str) -> str:
    """Move *path* into *dest_dir* under its base name, refusing to overwrite."""
    target = Path(dest_dir) / Path(path).name
    if os.path.lexists(target):
        raise MoveError(path, f"destination {target} already exists")
    try:
        shutil.move(path, str(target))
    except OSError as exc:
        # Target did not exist before the call; a copy that died midway must
        # not block this file on later runs.
        if os.path.lexists(path) and os.path.lexists(target):
            try:
                os.unlink(target)
            except OSError:
                LOGGER.warning("[ROTATE]: Could not remove partial copy %s", target, exc_info=True)
        raise MoveError(path, str(exc), cause=exc) from exc
    return str(target)


def evict(
    candidates: Iterable[Candidate],
    *,
    dest_dir: str,
    thresholds: ResolvedThresholds,
    mover: Mover = move_file,
    emit: Callable[[str], None] | None = None,
    dry_run: bool = False,
) -> EvictionResult:
    """Move candidates, oldest first, while a threshold still applies.

    *candidates* must be sorted ascending by mtime.  Each moved path is passed
    to *emit* as soon as the move succeeds.  A failed move is recorded and
    skipped; it never touches the deficit.
    """
    tracker = DeficitTracker(thresholds.need_bytes, thresholds.byte_threshold)
    time_threshold = thresholds.time_threshold
    result = EvictionResult()

    for candidate in candidates:
        older = time_threshold is not None and candidate.mtime < time_threshold
        space_low = tracker.space_still_low()

        # Input is mtime-sorted and the deficit never grows: nothing after
        # the first non-qualifying candidate can qualify.
        if not older and not space_low:
            LOGGER.debug(
                "[ROTATE]: Stopping at %s (mtime=%d, need_bytes=%s)",
                candidate.path,
                candidate.mtime,
                tracker.need_bytes,
            )
            result.stop_reason = STOP_CUTOFF
            break

        if not dry_run:
            try:
                mover(candidate.path, dest_dir)
            except MoveError as exc:
                LOGGER.error("[ROTATE]: %s", exc)
                result.failures.append(exc)
                continue

        tracker.record_move(candidate.size)
        result.moved.append(candidate.path)
        result.bytes_moved += candidate.size

        estimated_free = tracker.estimated_free_bytes()
        if estimated_free is not None:
            LOGGER.info(
                "[ROTATE]: %s %s (older=%s, space_low=%s, size=%d bytes, estimated free=%d bytes, threshold=%d bytes)",
                "Would move" if dry_run else "Moved",
                candidate.path,
                older,
                space_low,
                candidate.size,
                estimated_free,
                tracker.byte_threshold,
            )
        else:
            LOGGER.info(
                "[ROTATE]: %s %s (older=%s, size=%d bytes)",
                "Would move" if dry_run else "Moved",
                candidate.path,
                older,
                candidate.size,
            )

        if emit is not None:
            emit(candidate.path)

    result.need_bytes = tracker.need_bytes
    return result

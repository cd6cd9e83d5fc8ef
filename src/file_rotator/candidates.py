from __future__ import annotations

import logging
import re
import stat
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigError, DirectoryAccessError


LOGGER = logging.getLogger("file_rotator")

DEFAULT_FILE_REGEX = r"^[^.].*"


@dataclass(frozen=True)
class Candidate:
    path: str
    mtime: int
    size: int

    @property
    def name(self) -> str:
        return Path(self.path).name


def compile_name_filter(pattern: str | re.Pattern[str] | None) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    raw = DEFAULT_FILE_REGEX if pattern is None else str(pattern)
    try:
        return re.compile(raw)
    except re.error as exc:
        raise ConfigError(f"Invalid file name regex {raw!r}: {exc}") from exc


def list_candidates(
    source_dir: str,
    name_filter: str | re.Pattern[str] | None = DEFAULT_FILE_REGEX,
) -> list[Candidate]:
    """List regular files directly inside *source_dir*, oldest first.

    Only entries whose whole base name matches *name_filter* are kept.
    Anything that is not a regular file is skipped, symlinks included, and
    nothing below the top level is visited.  Modification times are truncated
    to whole seconds; equal timestamps are ordered by name.
    """
    pattern = compile_name_filter(name_filter)
    root = Path(source_dir)
    try:
        entries = list(root.iterdir())
    except OSError as exc:
        raise DirectoryAccessError(f"Cannot read source directory {source_dir}: {exc}") from exc

    out: list[Candidate] = []
    for item in entries:
        if not pattern.fullmatch(item.name):
            continue
        try:
            info = item.lstat()
        except FileNotFoundError:
            LOGGER.debug("[ROTATE]: %s disappeared while listing", item)
            continue
        if not stat.S_ISREG(info.st_mode):
            continue
        out.append(Candidate(path=str(item), mtime=int(info.st_mtime), size=int(info.st_size)))

    out.sort(key=lambda candidate: (candidate.mtime, candidate.name))
    return out

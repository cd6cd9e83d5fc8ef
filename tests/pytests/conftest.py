from __future__ import annotations

import os
import time
from collections import namedtuple
from pathlib import Path

import pytest


DiskUsage = namedtuple("DiskUsage", ["total", "used", "free"])

SECONDS_PER_DAY = 60 * 60 * 24


@pytest.fixture
def make_aged_file():
    """Create a file of *size* bytes whose mtime is *days_ago* days in the past."""

    def _make(directory: Path, name: str, *, days_ago: float = 0, size: int = 10) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_bytes(b"x" * size)
        timestamp = time.time() - days_ago * SECONDS_PER_DAY
        os.utime(path, (timestamp, timestamp))
        return path

    return _make


@pytest.fixture
def fake_disk_usage():
    def _factory(*, total: int, free: int):
        def _disk_usage(path: str) -> DiskUsage:
            return DiskUsage(total=total, used=total - free, free=free)

        return _disk_usage

    return _factory


@pytest.fixture
def rotate_dirs(tmp_path: Path) -> tuple[Path, Path]:
    source = tmp_path / "src"
    dest = tmp_path / "dest"
    source.mkdir()
    dest.mkdir()
    return source, dest

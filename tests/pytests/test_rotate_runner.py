from __future__ import annotations

import importlib
import logging
import sys
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).parents[2]
PACKAGE_SRC = REPO_ROOT / "src"
if str(PACKAGE_SRC) not in sys.path:
    sys.path.append(str(PACKAGE_SRC))

runner = importlib.import_module("file_rotator.runner")
config_module = importlib.import_module("file_rotator.config")
errors = importlib.import_module("file_rotator.errors")

RotateConfig = config_module.RotateConfig


def _separate_devices(source: Path):
    def _device_fn(path: str) -> int:
        return 1 if Path(path) == source else 2

    return _device_fn


def test_time_threshold_end_to_end(rotate_dirs, make_aged_file) -> None:
    source, dest = rotate_dirs
    make_aged_file(source, "ten", days_ago=10)
    make_aged_file(source, "five", days_ago=5)
    make_aged_file(source, "one", days_ago=1)
    emitted: list[str] = []

    report = runner.run_rotation(
        RotateConfig(source_dir=str(source), dest_dir=str(dest), older_than="3 days ago"),
        emit=emitted.append,
    )

    assert emitted == [str(source / "ten"), str(source / "five")]
    assert report.moved == emitted
    assert sorted(item.name for item in dest.iterdir()) == ["five", "ten"]
    assert [item.name for item in source.iterdir()] == ["one"]
    assert report.stop_reason == "cutoff"


def test_second_run_moves_nothing(rotate_dirs, make_aged_file) -> None:
    source, dest = rotate_dirs
    make_aged_file(source, "old", days_ago=10)
    make_aged_file(source, "new", days_ago=1)
    config = RotateConfig(source_dir=str(source), dest_dir=str(dest), older_than="3 days ago")

    first = runner.run_rotation(config)
    second = runner.run_rotation(config)

    assert first.files_moved == 1
    assert second.files_moved == 0


def test_name_filter_limits_moves(rotate_dirs, make_aged_file) -> None:
    source, dest = rotate_dirs
    make_aged_file(source, "report-1", days_ago=10)
    make_aged_file(source, "notes-1", days_ago=10)

    report = runner.run_rotation(
        RotateConfig(source_dir=str(source), dest_dir=str(dest), older_than="3 days ago", file_regex="report.*")
    )

    assert report.moved == [str(source / "report-1")]
    assert (source / "notes-1").exists()


def test_space_threshold_moves_oldest_until_deficit_cleared(rotate_dirs, make_aged_file, fake_disk_usage) -> None:
    source, dest = rotate_dirs
    for index, days_ago in enumerate([4, 3, 2, 1]):
        make_aged_file(source, f"f{index}", days_ago=days_ago, size=60)

    report = runner.run_rotation(
        RotateConfig(source_dir=str(source), dest_dir=str(dest), min_free_bytes=200),
        disk_usage=fake_disk_usage(total=1000, free=50),
        device_fn=_separate_devices(source),
    )

    assert [Path(path).name for path in report.moved] == ["f0", "f1", "f2"]
    assert report.need_bytes == -30
    assert (source / "f3").exists()


def test_already_satisfied_moves_nothing(rotate_dirs, make_aged_file, fake_disk_usage) -> None:
    source, dest = rotate_dirs
    make_aged_file(source, "ancient", days_ago=100)

    report = runner.run_rotation(
        RotateConfig(source_dir=str(source), dest_dir=str(dest), min_free_bytes=200, older_than="3 days ago"),
        disk_usage=fake_disk_usage(total=1000, free=300),
        device_fn=_separate_devices(source),
    )

    assert report.stop_reason == runner.STOP_ALREADY_SATISFIED
    assert report.need_bytes == -100
    assert report.files_moved == 0
    assert (source / "ancient").exists()


def test_same_filesystem_with_space_threshold_raises(rotate_dirs, make_aged_file) -> None:
    source, dest = rotate_dirs
    make_aged_file(source, "a", days_ago=10)

    with pytest.raises(errors.CrossPartitionError):
        runner.run_rotation(RotateConfig(source_dir=str(source), dest_dir=str(dest), min_free_bytes=1))

    assert (source / "a").exists()
    assert list(dest.iterdir()) == []


def test_no_candidates_is_not_an_error(rotate_dirs) -> None:
    source, dest = rotate_dirs
    report = runner.run_rotation(RotateConfig(source_dir=str(source), dest_dir=str(dest), older_than="now"))
    assert report.stop_reason == runner.STOP_NO_CANDIDATES
    assert report.files_moved == 0


def test_collision_is_reported_and_loop_continues(rotate_dirs, make_aged_file) -> None:
    source, dest = rotate_dirs
    make_aged_file(source, "clash", days_ago=10)
    make_aged_file(source, "fine", days_ago=9)
    (dest / "clash").write_text("keep me")

    report = runner.run_rotation(RotateConfig(source_dir=str(source), dest_dir=str(dest), older_than="3 days ago"))

    assert report.moved == [str(source / "fine")]
    assert [failure.path for failure in report.failures] == [str(source / "clash")]
    assert (dest / "clash").read_text() == "keep me"
    assert (source / "clash").exists()


def test_dry_run_leaves_files_in_place(rotate_dirs, make_aged_file) -> None:
    source, dest = rotate_dirs
    make_aged_file(source, "old", days_ago=10)

    report = runner.run_rotation(
        RotateConfig(source_dir=str(source), dest_dir=str(dest), older_than="3 days ago", dry_run=True)
    )

    assert report.moved == [str(source / "old")]
    assert (source / "old").exists()
    assert list(dest.iterdir()) == []


def test_missing_or_identical_directories_raise(tmp_path: Path) -> None:
    existing = tmp_path / "exists"
    existing.mkdir()

    with pytest.raises(errors.DirectoryAccessError):
        runner.validate_directories(str(tmp_path / "missing"), str(existing))
    with pytest.raises(errors.DirectoryAccessError):
        runner.validate_directories(str(existing), str(tmp_path / "missing"))
    with pytest.raises(errors.DirectoryAccessError):
        runner.validate_directories(str(existing), str(tmp_path / "exists" / "."))


def test_source_file_instead_of_directory_raises(tmp_path: Path) -> None:
    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x")
    dest = tmp_path / "dest"
    dest.mkdir()

    with pytest.raises(errors.DirectoryAccessError):
        runner.run_rotation(RotateConfig(source_dir=str(not_a_dir), dest_dir=str(dest), older_than="now"))


def test_space_threshold_logs_capacity_check(rotate_dirs, fake_disk_usage, caplog) -> None:
    source, dest = rotate_dirs
    caplog.set_level(logging.DEBUG, logger="file_rotator")

    runner.run_rotation(
        RotateConfig(source_dir=str(source), dest_dir=str(dest), min_free_percent=20),
        disk_usage=fake_disk_usage(total=1000, free=50),
        device_fn=_separate_devices(source),
    )

    assert any("checking capacity" in record.getMessage() for record in caplog.records)


def test_time_only_run_skips_capacity_check(rotate_dirs, caplog) -> None:
    source, dest = rotate_dirs
    caplog.set_level(logging.DEBUG, logger="file_rotator")

    runner.run_rotation(RotateConfig(source_dir=str(source), dest_dir=str(dest), older_than="now"))

    assert not any("checking capacity" in record.getMessage() for record in caplog.records)

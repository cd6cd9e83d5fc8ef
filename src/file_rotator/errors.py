from __future__ import annotations


class RotateError(Exception):
    """Base class for every error raised by file_rotator."""


class ConfigError(RotateError):
    """Invalid, missing or conflicting configuration."""


class DirectoryAccessError(RotateError):
    """Source or destination directory is missing, unreadable or shared."""


class FilesystemQueryError(RotateError):
    """Capacity, free space or device identity could not be determined."""


class CrossPartitionError(RotateError):
    """Source and destination share a filesystem while a space threshold is set."""


class MoveError(RotateError):
    """A single file could not be moved. Recoverable."""

    def __init__(self, path: str, reason: str, *, cause: OSError | None = None):
        super().__init__(f"Failed to move {path}: {reason}")
        self.path = path
        self.reason = reason
        self.cause = cause

from .candidates import Candidate, list_candidates
from .errors import (
    ConfigError,
    CrossPartitionError,
    DirectoryAccessError,
    FilesystemQueryError,
    MoveError,
    RotateError,
)
from .eviction import DeficitTracker, EvictionResult, evict
from .runner import RotationReport, run_rotation
from .thresholds import ResolvedThresholds, parse_time_threshold, resolve_thresholds


__all__ = [
    "Candidate",
    "ConfigError",
    "CrossPartitionError",
    "DeficitTracker",
    "DirectoryAccessError",
    "EvictionResult",
    "FilesystemQueryError",
    "MoveError",
    "ResolvedThresholds",
    "RotateError",
    "RotationReport",
    "evict",
    "list_candidates",
    "parse_time_threshold",
    "resolve_thresholds",
    "run_rotation",
]

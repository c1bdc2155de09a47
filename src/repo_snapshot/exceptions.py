from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SnapshotError(Exception):
    """Base exception for errors in the repo_snapshot package."""


@dataclass(frozen=True)
class FileProcessingError(SnapshotError):
    """Raised when a selected file cannot be read while writing the report."""

    path: Path
    reason: str


@dataclass(frozen=True)
class AllFilesFailedError(SnapshotError):
    """Raised when every selected file failed to read during aggregation."""

    failed: int
    message: str = "All selected files failed to read."


@dataclass(frozen=True)
class OutputWriteError(SnapshotError):
    """Raised when the output artifact cannot be created or written."""

    target: str
    reason: str

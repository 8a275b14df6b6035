"""Error hierarchy for recorder supervision and disk reclamation.

Everything here is recoverable: the control loops log these and carry on.
Fatal configuration problems use `homerec.config.ConfigError` instead.
"""

from __future__ import annotations

from pathlib import Path


class RecorderError(Exception):
    """Base exception for all recoverable HomeRec errors.

    Preserves stack traces via exception chaining.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.__cause__ = cause


class ProcessError(RecorderError):
    """Recording process failed to spawn or exited abnormally."""

    def __init__(
        self,
        camera_name: str,
        message: str,
        *,
        exit_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(f"{message} (camera: {camera_name})", cause=cause)
        self.camera_name = camera_name
        self.exit_code = exit_code


class DiskQueryError(RecorderError):
    """Free space could not be sampled for a directory."""

    def __init__(self, path: Path, cause: Exception) -> None:
        super().__init__(f"Disk usage query failed for {path}: {cause}", cause=cause)
        self.path = path


class ScanError(RecorderError):
    """A directory or entry could not be read during an inventory scan."""

    def __init__(self, path: Path, cause: Exception) -> None:
        super().__init__(f"Scan failed at {path}: {cause}", cause=cause)
        self.path = path


class DeleteError(RecorderError):
    """A reclaim candidate could not be deleted."""

    def __init__(self, path: Path, cause: Exception) -> None:
        super().__init__(f"Delete failed for {path}: {cause}", cause=cause)
        self.path = path

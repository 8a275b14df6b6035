"""Storage-related data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class FileRecord:
    """One regular file seen by an inventory scan."""

    path: Path
    size_bytes: int
    modified_at: float

    @property
    def sort_key(self) -> tuple[float, str]:
        """Oldest first; path breaks ties so deletion order is reproducible."""
        return (self.modified_at, str(self.path))


@dataclass(frozen=True, slots=True)
class DiskSample:
    """Free-space snapshot for a directory."""

    available_bytes: int
    total_bytes: int


@dataclass(slots=True)
class ReclaimResult:
    """Outcome of one reclaim pass."""

    requested_bytes: int
    freed_bytes: int = 0
    deleted: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)
    dry_run: bool = False

    @property
    def remaining_bytes(self) -> int:
        return max(0, self.requested_bytes - self.freed_bytes)

    @property
    def satisfied(self) -> bool:
        return self.remaining_bytes == 0

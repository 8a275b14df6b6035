"""Data models for HomeRec."""

from homerec.models.config import Config, SourceConfig
from homerec.models.enums import RecorderPhase
from homerec.models.sizes import parse_size
from homerec.models.storage import DiskSample, FileRecord, ReclaimResult

__all__ = [
    "Config",
    "DiskSample",
    "FileRecord",
    "ReclaimResult",
    "RecorderPhase",
    "SourceConfig",
    "parse_size",
]

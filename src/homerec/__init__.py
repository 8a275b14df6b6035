"""HomeRec: supervised camera recorders with a disk budget."""

__version__ = "0.1.0"

# Export commonly used types
from homerec.errors import DeleteError, DiskQueryError, ProcessError, RecorderError, ScanError
from homerec.models.config import Config, SourceConfig
from homerec.models.storage import FileRecord, ReclaimResult

__all__ = [
    "Config",
    "DeleteError",
    "DiskQueryError",
    "FileRecord",
    "ProcessError",
    "ReclaimResult",
    "RecorderError",
    "ScanError",
    "SourceConfig",
    "__version__",
]

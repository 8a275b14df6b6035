"""Recursive inventory of regular files under a directory."""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterator
from pathlib import Path

from homerec.errors import ScanError
from homerec.models.storage import FileRecord

logger = logging.getLogger(__name__)


class FileInventory:
    """Walks a directory tree and yields one FileRecord per regular file.

    Every call to `scan` is a fresh traversal. Unreadable entries are logged
    and skipped. Symlinks are never followed.
    """

    def scan(self, root: Path) -> Iterator[FileRecord]:
        pending: list[Path] = [root]
        while pending:
            directory = pending.pop()
            try:
                with os.scandir(directory) as entries:
                    for entry in entries:
                        record = self._inspect(entry, pending)
                        if record is not None:
                            yield record
            except OSError as exc:
                self._log_skip(ScanError(directory, exc))

    def _inspect(self, entry: os.DirEntry[str], pending: list[Path]) -> FileRecord | None:
        path = Path(entry.path)
        try:
            info = entry.stat(follow_symlinks=False)
        except OSError as exc:
            self._log_skip(ScanError(path, exc))
            return None

        if stat.S_ISDIR(info.st_mode):
            pending.append(path)
            return None
        if not stat.S_ISREG(info.st_mode):
            return None
        return FileRecord(path=path, size_bytes=info.st_size, modified_at=info.st_mtime)

    @staticmethod
    def _log_skip(error: ScanError) -> None:
        logger.warning("Skipping unreadable entry: %s", error, extra={"path": str(error.path)})

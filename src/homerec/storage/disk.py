"""Free-space sampling for the storage directory."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from homerec.errors import DiskQueryError
from homerec.models.storage import DiskSample


class DiskSampler:
    """Queries available free space without blocking the event loop."""

    async def check(self, directory: Path) -> DiskSample:
        """Return free/total bytes for the filesystem holding `directory`.

        Raises:
            DiskQueryError: If the path is missing or cannot be stat'ed.
        """
        try:
            usage = await asyncio.to_thread(shutil.disk_usage, directory)
        except OSError as exc:
            raise DiskQueryError(directory, exc) from exc
        return DiskSample(available_bytes=usage.free, total_bytes=usage.total)

"""Oldest-first deletion to keep a free-space budget."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path

from homerec.errors import DeleteError, DiskQueryError
from homerec.models.storage import FileRecord, ReclaimResult
from homerec.storage.disk import DiskSampler
from homerec.storage.inventory import FileInventory

logger = logging.getLogger(__name__)


def compute_deficit(threshold_bytes: int, available_bytes: int) -> int:
    """Bytes still needed to bring free space up to the threshold."""
    return max(0, threshold_bytes - available_bytes)


def order_candidates(records: Iterable[FileRecord]) -> list[FileRecord]:
    """Sort records oldest first, ties broken by path."""
    return sorted(records, key=lambda record: record.sort_key)


class Reclaimer:
    """Deletes the oldest files under a root until a byte deficit is covered.

    Deletions are issued one at a time; each finishes (or fails) before the
    next is attempted, so the walk can stop as soon as the deficit is met.
    """

    def __init__(
        self,
        *,
        sampler: DiskSampler | None = None,
        inventory: FileInventory | None = None,
        dry_run: bool = False,
    ) -> None:
        self._sampler = sampler or DiskSampler()
        self._inventory = inventory or FileInventory()
        self._dry_run = dry_run

    async def tick(self, root: Path, threshold_bytes: int) -> ReclaimResult | None:
        """Run one reclaim tick.

        Returns None when the disk could not be sampled; the tick is skipped.
        """
        try:
            sample = await self._sampler.check(root)
        except DiskQueryError as exc:
            logger.error("Reclaim tick skipped: %s", exc, exc_info=exc)
            return None

        bytes_to_free = compute_deficit(threshold_bytes, sample.available_bytes)
        logger.debug(
            "Disk sample: available=%d threshold=%d deficit=%d",
            sample.available_bytes,
            threshold_bytes,
            bytes_to_free,
        )
        if bytes_to_free <= 0:
            return ReclaimResult(requested_bytes=0, dry_run=self._dry_run)

        logger.info(
            "Free space below threshold: available=%d threshold=%d, reclaiming %d bytes",
            sample.available_bytes,
            threshold_bytes,
            bytes_to_free,
        )
        return await self.reclaim(root, bytes_to_free)

    async def reclaim(self, root: Path, bytes_to_free: int) -> ReclaimResult:
        result = ReclaimResult(requested_bytes=max(0, bytes_to_free), dry_run=self._dry_run)
        if result.requested_bytes == 0:
            return result

        records = await asyncio.to_thread(self._collect, root)
        remaining = result.requested_bytes

        for record in records:
            if remaining <= 0:
                break
            try:
                await self._delete(record)
            except DeleteError as exc:
                logger.warning("Skipping reclaim candidate: %s", exc)
                result.failed.append(record.path)
                continue

            result.deleted.append(record.path)
            result.freed_bytes += record.size_bytes
            remaining -= record.size_bytes
            logger.info(
                "%s %s (%d bytes), %d bytes still to free",
                "Would delete" if self._dry_run else "Deleted",
                record.path,
                record.size_bytes,
                max(0, remaining),
            )

        if remaining > 0:
            logger.warning(
                "Reclaim unresolved: %d of %d bytes still needed after %d candidates under %s",
                remaining,
                result.requested_bytes,
                len(records),
                root,
            )
        return result

    def _collect(self, root: Path) -> list[FileRecord]:
        return order_candidates(self._inventory.scan(root))

    async def _delete(self, record: FileRecord) -> None:
        if self._dry_run:
            return
        try:
            await asyncio.to_thread(record.path.unlink)
        except OSError as exc:
            raise DeleteError(record.path, exc) from exc

"""Owning context for recorder supervisors and the reclaim ticker."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

from homerec.models.config import Config, SourceConfig
from homerec.models.storage import ReclaimResult
from homerec.recorder.supervisor import ProcessSupervisor
from homerec.storage.reclaimer import Reclaimer

logger = logging.getLogger(__name__)

SupervisorFactory = Callable[[SourceConfig], ProcessSupervisor]


class Scheduler:
    """Runs one ProcessSupervisor per enabled camera plus a periodic reclaim tick.

    All state lives on the instance, so several schedulers can coexist in one
    process.
    """

    def __init__(
        self,
        config: Config,
        *,
        ffmpeg_bin: str = "ffmpeg",
        reclaimer: Reclaimer | None = None,
        supervisor_factory: SupervisorFactory | None = None,
    ) -> None:
        self._config = config
        self._storage_dir = Path(config.storage_dir).expanduser()
        self._ffmpeg_bin = ffmpeg_bin
        self._reclaimer = reclaimer or Reclaimer(dry_run=config.reclaim_dry_run)
        factory = supervisor_factory or self._default_supervisor
        self._supervisors = [factory(camera) for camera in config.enabled_cameras]
        self._ticker: asyncio.Task[None] | None = None
        self._started = False

    @property
    def supervisors(self) -> list[ProcessSupervisor]:
        return list(self._supervisors)

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    def get_supervisor(self, camera_name: str) -> ProcessSupervisor | None:
        for supervisor in self._supervisors:
            if supervisor.name == camera_name:
                return supervisor
        return None

    async def start(self) -> None:
        """Start every supervisor and the reclaim ticker."""
        if self._started:
            logger.warning("Scheduler already started")
            return
        self._started = True

        try:
            await asyncio.to_thread(self._storage_dir.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            # Recorders back off and reclaim ticks are skipped until it becomes usable.
            logger.error(
                "Cannot create storage dir %s: %s",
                self._storage_dir,
                exc,
                extra={"path": str(self._storage_dir)},
            )
        skipped = len(self._config.cameras) - len(self._supervisors)
        if skipped:
            logger.info("Skipping %d disabled camera(s)", skipped)

        for supervisor in self._supervisors:
            await supervisor.start()
        self._ticker = asyncio.create_task(self._reclaim_loop(), name="reclaim-ticker")
        logger.info(
            "Scheduler started: cameras=%s storage_dir=%s threshold=%d interval=%.0fs",
            [supervisor.name for supervisor in self._supervisors],
            self._storage_dir,
            self._config.cleanup_threshold,
            self._config.reclaim_interval_s,
        )

    async def run_reclaim_tick(self) -> ReclaimResult | None:
        return await self._reclaimer.tick(self._storage_dir, self._config.cleanup_threshold)

    async def shutdown(self, grace_s: float | None = None) -> None:
        """Stop the ticker, then stop every supervisor concurrently.

        Each recorder gets `grace_s` seconds to exit after SIGINT before it is
        killed, so in-progress files are finalized where possible.
        """
        grace = self._config.shutdown_grace_s if grace_s is None else grace_s
        logger.info("Shutting down %d recorder(s), grace=%.1fs", len(self._supervisors), grace)

        ticker = self._ticker
        self._ticker = None
        if ticker is not None and not ticker.done():
            ticker.cancel()
            await asyncio.gather(ticker, return_exceptions=True)

        results = await asyncio.gather(
            *(supervisor.stop(timeout=grace) for supervisor in self._supervisors),
            return_exceptions=True,
        )
        for supervisor, result in zip(self._supervisors, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    "Failed to stop recorder %s: %s",
                    supervisor.name,
                    result,
                    exc_info=result,
                )
        logger.info("Scheduler shutdown complete")

    async def _reclaim_loop(self) -> None:
        interval = self._config.reclaim_interval_s
        while True:
            try:
                await self.run_reclaim_tick()
            except Exception:
                logger.exception("Reclaim tick failed")
            await asyncio.sleep(interval)

    def _default_supervisor(self, camera: SourceConfig) -> ProcessSupervisor:
        return ProcessSupervisor(
            camera,
            storage_dir=self._storage_dir,
            ffmpeg_bin=self._ffmpeg_bin,
        )

"""Process-level wiring: config, scheduler and termination signals."""

from __future__ import annotations

import asyncio
import logging
import signal
from pathlib import Path

from homerec.config import load_config
from homerec.models.config import Config
from homerec.scheduler import Scheduler
from homerec.settings import RecorderSettings

logger = logging.getLogger(__name__)

_TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Application:
    """Runs the scheduler until SIGINT/SIGTERM, then stops every recorder."""

    def __init__(self, config_path: Path, *, settings: RecorderSettings | None = None) -> None:
        self._config_path = config_path
        self._settings = settings or RecorderSettings()
        self._config: Config | None = None
        self._scheduler: Scheduler | None = None
        self._stop_requested = asyncio.Event()
        self._stopping = False
        self._installed_signals: list[signal.Signals] = []

    async def run(self) -> None:
        """Record until asked to stop.

        Raises:
            ConfigError: If the config cannot be loaded.
        """
        self._config = load_config(self._config_path)
        logger.info(
            "Loaded %s: %d camera(s), storage_dir=%s",
            self._config_path,
            len(self._config.enabled_cameras),
            self._config.storage_dir,
        )

        self._scheduler = Scheduler(self._config, ffmpeg_bin=self._settings.ffmpeg_bin)
        self._install_signal_handlers()
        try:
            await self._scheduler.start()
            await self._stop_requested.wait()
        finally:
            await self.shutdown()
            self._remove_signal_handlers()

    def request_shutdown(self) -> None:
        self._stopping = True
        self._stop_requested.set()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in _TERMINATION_SIGNALS:
            loop.add_signal_handler(sig, self._handle_signal, sig)
            self._installed_signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        while self._installed_signals:
            loop.remove_signal_handler(self._installed_signals.pop())

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._stopping:
            logger.warning("Shutdown already in progress, ignoring %s", sig.name)
            return
        logger.info("Received %s, stopping recorders...", sig.name)
        self.request_shutdown()

    async def shutdown(self) -> None:
        """Stop the reclaim ticker and every recorder, waiting for them to exit."""
        if self._scheduler is None:
            return
        await self._scheduler.shutdown()
        logger.info("All recorders stopped")

    @property
    def config(self) -> Config:
        if self._config is None:
            raise RuntimeError("Config not loaded")
        return self._config

    @property
    def scheduler(self) -> Scheduler:
        if self._scheduler is None:
            raise RuntimeError("Scheduler not initialized")
        return self._scheduler

"""Supervisor that keeps one recording process alive."""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from homerec.errors import ProcessError
from homerec.logging_setup import set_camera_name
from homerec.models.config import SourceConfig
from homerec.models.enums import RecorderPhase
from homerec.recorder.clock import Clock, SystemClock
from homerec.recorder.command import build_ffmpeg_command, build_output_path
from homerec.recorder.output import is_progress_line, iter_lines
from homerec.recorder.utils import format_cmd, redact_command

logger = logging.getLogger(__name__)


class RecordingProcess(Protocol):
    """The parts of `asyncio.subprocess.Process` the supervisor relies on."""

    pid: int
    stdout: asyncio.StreamReader | None
    stderr: asyncio.StreamReader | None

    @property
    def returncode(self) -> int | None: ...

    async def wait(self) -> int: ...

    def send_signal(self, sig: int) -> None: ...

    def kill(self) -> None: ...


ProcessLauncher = Callable[[list[str]], Awaitable[RecordingProcess]]


async def spawn_process(cmd: list[str]) -> RecordingProcess:
    # New session: a terminal Ctrl+C reaches the supervisor, which forwards it.
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )


@dataclass(slots=True)
class RecorderState:
    """Mutable state owned by exactly one ProcessSupervisor."""

    config: SourceConfig
    phase: RecorderPhase = RecorderPhase.IDLE
    process: RecordingProcess | None = None
    started_at: float | None = None
    stop_requested: bool = False
    restart_count: int = 0
    last_exit_code: int | None = None
    output_path: Path | None = None


@dataclass(frozen=True, slots=True)
class RestartPlan:
    delay_s: float
    crash_loop: bool


def plan_restart(
    run_time_s: float | None,
    *,
    stop_requested: bool,
    threshold_s: float,
    delay_s: float,
) -> RestartPlan | None:
    """Decide what happens after the recording process exits.

    Returns None when a stop was requested (terminal). A run shorter than
    the threshold is a crash loop and waits `delay_s`; anything else,
    including an unknown run time, restarts immediately.
    """
    if stop_requested:
        return None
    if run_time_s is not None and run_time_s < threshold_s:
        return RestartPlan(delay_s=delay_s, crash_loop=True)
    return RestartPlan(delay_s=0.0, crash_loop=False)


def describe_exit(return_code: int) -> str:
    if return_code < 0:
        try:
            return f"terminated by {signal.Signals(-return_code).name}"
        except ValueError:
            return f"terminated by signal {-return_code}"
    return f"exit code {return_code}"


class ProcessSupervisor:
    """Owns the lifecycle of one external recording process.

    `start()` launches a control loop task that spawns the recorder, forwards
    its output to the log and restarts it when it exits. Exits faster than
    `restart_threshold_ms` wait `restart_delay_ms` before the next spawn.
    Only `stop()` ends the loop.
    """

    def __init__(
        self,
        config: SourceConfig,
        *,
        storage_dir: Path,
        ffmpeg_bin: str = "ffmpeg",
        launcher: ProcessLauncher | None = None,
        clock: Clock | None = None,
        kill_timeout_s: float = 5.0,
    ) -> None:
        self._state = RecorderState(config=config)
        self._storage_dir = storage_dir
        self._ffmpeg_bin = ffmpeg_bin
        self._launcher = launcher or spawn_process
        self._clock = clock or SystemClock()
        self._kill_timeout_s = kill_timeout_s
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self._state.config.name

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def phase(self) -> RecorderPhase:
        return self._state.phase

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the control loop unless it is already running."""
        if self.is_running:
            logger.debug("Recorder %s already running", self.name)
            return
        if self._state.stop_requested:
            logger.warning("Recorder %s was stopped; not starting again", self.name)
            return
        self._task = asyncio.create_task(self._run(), name=f"recorder:{self.name}")

    def request_stop(self) -> None:
        """Mark the recorder stopped and interrupt the live process, if any."""
        state = self._state
        state.stop_requested = True
        self._stop_event.set()
        process = state.process
        if process is None or process.returncode is not None:
            return
        logger.info("Stopping recorder %s (PID: %s)", self.name, process.pid)
        self._send_signal(process, signal.SIGINT)

    async def stop(self, timeout: float | None = None) -> None:
        """Request a stop and wait for the recorder to reach its terminal state.

        With a timeout, a process still alive after `timeout` seconds is killed.
        """
        self.request_stop()
        task = self._task
        if task is None:
            self._state.phase = RecorderPhase.STOPPED
            return

        done, _ = await asyncio.wait({task}, timeout=timeout)
        if done:
            return

        process = self._state.process
        if process is not None and process.returncode is None:
            logger.warning(
                "Recorder %s did not exit within %.1fs of SIGINT, killing (PID: %s)",
                self.name,
                timeout,
                process.pid,
            )
            try:
                process.kill()
            except ProcessLookupError:
                pass

        done, _ = await asyncio.wait({task}, timeout=self._kill_timeout_s)
        if not done:
            logger.error("Recorder %s control loop did not finish; cancelling", self.name)
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    async def wait_stopped(self) -> None:
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def _run(self) -> None:
        set_camera_name(self.name)
        state = self._state
        config = state.config
        try:
            while not state.stop_requested:
                try:
                    run_time_s = await self._run_once()
                except Exception:
                    logger.exception("Recorder iteration failed; backing off")
                    self._abandon_process()
                    run_time_s = 0.0
                plan = plan_restart(
                    run_time_s,
                    stop_requested=state.stop_requested,
                    threshold_s=config.restart_threshold_s,
                    delay_s=config.restart_delay_s,
                )
                if plan is None:
                    break

                state.restart_count += 1
                if not plan.crash_loop:
                    state.phase = RecorderPhase.RESTARTING
                    logger.info("Recorder exited after %.1fs; restarting", run_time_s or 0.0)
                    continue

                state.phase = RecorderPhase.BACKOFF
                logger.warning(
                    "Recorder crash loop: ran %.1fs (threshold %.1fs); restarting in %.1fs",
                    run_time_s or 0.0,
                    config.restart_threshold_s,
                    plan.delay_s,
                )
                await self._wait_backoff(plan.delay_s)
        finally:
            state.phase = RecorderPhase.STOPPED
            state.process = None
            state.started_at = None
            logger.info("Recorder stopped")

    async def _run_once(self) -> float | None:
        """Spawn the recorder and wait for it to exit; return its run time."""
        state = self._state
        config = state.config
        output_path = build_output_path(
            self._storage_dir,
            config.name,
            config.output_format,
            self._clock.wall_time(),
        )
        cmd = build_ffmpeg_command(config, output_path, ffmpeg_bin=self._ffmpeg_bin)
        logger.debug("Recording ffmpeg: %s", format_cmd(redact_command(cmd)))

        try:
            await asyncio.to_thread(output_path.parent.mkdir, parents=True, exist_ok=True)
            process = await self._launcher(cmd)
        except Exception as exc:
            error = ProcessError(config.name, "Failed to spawn recording process", cause=exc)
            logger.error("%s", error, exc_info=exc)
            state.last_exit_code = None
            # Count as a zero-length run so spawn failures back off.
            return 0.0

        state.process = process
        state.started_at = self._clock.now()
        state.output_path = output_path
        state.phase = RecorderPhase.RUNNING
        logger.info(
            "Recording started: %s (PID: %s)",
            output_path,
            process.pid,
            extra={"recording_id": output_path.name},
        )

        readers = [
            asyncio.create_task(self._forward_output(process.stdout, "stdout")),
            asyncio.create_task(self._forward_output(process.stderr, "stderr")),
        ]
        if state.stop_requested:
            self._send_signal(process, signal.SIGINT)

        return_code = await process.wait()
        _, pending = await asyncio.wait(readers, timeout=self._kill_timeout_s)
        for reader in pending:
            reader.cancel()
        await asyncio.gather(*readers, return_exceptions=True)

        run_time_s = None
        if state.started_at is not None:
            run_time_s = self._clock.now() - state.started_at
        state.process = None
        state.started_at = None
        state.last_exit_code = return_code
        self._log_exit(return_code, run_time_s, output_path)
        return run_time_s

    async def _forward_output(self, stream: asyncio.StreamReader | None, stream_name: str) -> None:
        if stream is None:
            return
        async for line in iter_lines(stream):
            text = line.rstrip()
            if not text or is_progress_line(text):
                continue
            logger.info("ffmpeg %s: %s", stream_name, text)

    async def _wait_backoff(self, delay_s: float) -> None:
        if self._stop_event.is_set():
            return
        sleeper = asyncio.ensure_future(self._clock.sleep(delay_s))
        stopper = asyncio.ensure_future(self._stop_event.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (sleeper, stopper):
                waiter.cancel()
            await asyncio.gather(sleeper, stopper, return_exceptions=True)

    def _log_exit(self, return_code: int, run_time_s: float | None, output_path: Path) -> None:
        run_time_text = "unknown" if run_time_s is None else f"{run_time_s:.1f}s"
        if return_code == 0 or self._state.stop_requested:
            logger.info(
                "Recording process exited (%s) after %s: %s",
                describe_exit(return_code),
                run_time_text,
                output_path,
            )
            return
        error = ProcessError(
            self.name,
            f"Recording process {describe_exit(return_code)} after {run_time_text}",
            exit_code=return_code,
        )
        logger.warning("%s", error)

    def _abandon_process(self) -> None:
        """Drop the current process after a failed iteration, killing it if still alive."""
        state = self._state
        process = state.process
        state.process = None
        state.started_at = None
        if process is None or process.returncode is not None:
            return
        logger.warning("Killing orphaned recorder process (PID: %s)", process.pid)
        try:
            process.kill()
        except ProcessLookupError:
            pass

    def _send_signal(self, process: RecordingProcess, sig: signal.Signals) -> None:
        try:
            process.send_signal(sig)
        except ProcessLookupError:
            logger.debug("Recorder process already gone (PID: %s)", process.pid)

"""Tests for the recording process supervisor."""

from __future__ import annotations

import asyncio
import signal
import time
from pathlib import Path

import pytest

from homerec.models.enums import RecorderPhase
from homerec.recorder.supervisor import ProcessSupervisor, describe_exit, plan_restart
from tests.homerec.helpers import make_source, wait_until
from tests.homerec.mocks import FakeClock, FakeLauncher, FakeProcess


def _supervisor(
    tmp_path: Path,
    launcher: FakeLauncher,
    clock: FakeClock | None = None,
    **source_overrides: object,
) -> ProcessSupervisor:
    return ProcessSupervisor(
        make_source(**source_overrides),
        storage_dir=tmp_path,
        launcher=launcher,
        clock=clock,
        kill_timeout_s=0.5,
    )


class TestPlanRestart:
    """Restart decision table."""

    @pytest.mark.parametrize("run_time", [None, 0.0, 1.0, 5.0, 3600.0])
    def test_stop_requested_is_always_terminal(self, run_time: float | None) -> None:
        """A requested stop ends supervision regardless of run time."""
        # Given/When an exit after stop was requested
        plan = plan_restart(run_time, stop_requested=True, threshold_s=5.0, delay_s=60.0)

        # Then there is no restart
        assert plan is None

    @pytest.mark.parametrize("run_time", [0.0, 0.5, 4.999])
    def test_short_run_backs_off(self, run_time: float) -> None:
        """Runs shorter than the threshold wait the full delay."""
        # Given/When a short run
        plan = plan_restart(run_time, stop_requested=False, threshold_s=5.0, delay_s=60.0)

        # Then a delayed restart is planned
        assert plan is not None
        assert plan.crash_loop is True
        assert plan.delay_s == 60.0

    @pytest.mark.parametrize("run_time", [None, 5.0, 5.001, 86400.0])
    def test_long_or_unknown_run_restarts_immediately(self, run_time: float | None) -> None:
        """Runs at or past the threshold, or with unknown duration, restart with no delay."""
        # Given/When a long (or unknown) run
        plan = plan_restart(run_time, stop_requested=False, threshold_s=5.0, delay_s=60.0)

        # Then the restart has no delay
        assert plan is not None
        assert plan.crash_loop is False
        assert plan.delay_s == 0.0


def test_describe_exit() -> None:
    assert describe_exit(0) == "exit code 0"
    assert describe_exit(1) == "exit code 1"
    assert describe_exit(-int(signal.SIGINT)) == "terminated by SIGINT"


class TestSupervisorLifecycle:
    """Control loop behaviour with fake processes."""

    @pytest.mark.asyncio
    async def test_start_spawns_process_with_output_path(self, tmp_path: Path) -> None:
        """start() spawns ffmpeg writing into the storage dir."""
        # Given a supervisor with a fake clock
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock)

        # When starting it
        await supervisor.start()
        process = await launcher.next_process()

        # Then the recorder is running with a timestamped output file
        assert supervisor.phase == RecorderPhase.RUNNING
        assert supervisor.state.process is process
        output = Path(launcher.commands[0][-1])
        assert output.parent == tmp_path
        assert output.name.endswith("_front_door.mp4")
        assert supervisor.state.output_path == output

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, tmp_path: Path) -> None:
        """A second start() while running spawns nothing new."""
        # Given a running supervisor
        launcher = FakeLauncher(clock=FakeClock())
        supervisor = _supervisor(tmp_path, launcher)
        await supervisor.start()
        await launcher.next_process()

        # When starting again
        await supervisor.start()
        await asyncio.sleep(0.01)

        # Then only one process was spawned
        assert launcher.attempts == 1

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_stop_interrupts_and_reaches_terminal_state(self, tmp_path: Path) -> None:
        """stop() sends SIGINT and the loop ends without restarting."""
        # Given a running recorder
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock)
        await supervisor.start()
        process = await launcher.next_process()

        # When stopping it
        await supervisor.stop()

        # Then SIGINT was sent, nothing restarted, and the phase is terminal
        assert process.signals == [signal.SIGINT]
        assert process.killed is False
        assert supervisor.phase == RecorderPhase.STOPPED
        assert supervisor.state.process is None
        assert launcher.attempts == 1

    @pytest.mark.asyncio
    async def test_stop_after_long_run_is_still_terminal(self, tmp_path: Path) -> None:
        """A stopped recorder never restarts even if it ran past the threshold."""
        # Given a recorder that has run for an hour
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock)
        await supervisor.start()
        await launcher.next_process()
        clock.advance(3600)

        # When stopping it
        await supervisor.stop()
        await asyncio.sleep(0.01)

        # Then no restart happened
        assert launcher.attempts == 1
        assert supervisor.phase.is_terminal

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop_and_blocks_start(self, tmp_path: Path) -> None:
        """stop() on an idle supervisor just marks it terminal."""
        # Given an idle supervisor
        launcher = FakeLauncher()
        supervisor = _supervisor(tmp_path, launcher)

        # When stopping then starting it
        await supervisor.stop()
        await supervisor.start()

        # Then nothing was spawned
        assert supervisor.phase == RecorderPhase.STOPPED
        assert launcher.attempts == 0

    @pytest.mark.asyncio
    async def test_crash_loop_waits_restart_delay(self, tmp_path: Path) -> None:
        """An exit before the threshold delays the next spawn by restart_delay_ms."""
        # Given a recorder with a 5s threshold and 60s delay
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(
            tmp_path, launcher, clock, restart_threshold_ms=5000, restart_delay_ms=60000
        )
        await supervisor.start()
        first = await launcher.next_process()

        # When it dies after one second
        clock.advance(1.0)
        exit_time = clock.now()
        first.finish(1)
        await launcher.next_process()

        # Then the next spawn happened only after the full delay
        assert clock.sleeps == [60.0]
        assert launcher.spawn_times[1] - exit_time >= 60.0
        assert supervisor.state.restart_count == 1
        assert supervisor.state.last_exit_code == 1

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_repeated_crashes_each_wait_full_delay(self, tmp_path: Path) -> None:
        """Every crash in a loop waits the delay; there is no tight respawn."""
        # Given a recorder that keeps crashing immediately
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock, restart_delay_ms=2000)
        await supervisor.start()

        # When three processes crash right after starting
        exit_times = []
        for _ in range(3):
            process = await launcher.next_process()
            clock.advance(1)
            exit_times.append(clock.now())
            process.finish(1)
        await launcher.next_process()

        # Then each following spawn came at least the delay after the exit
        assert clock.sleeps == [2.0, 2.0, 2.0]
        for exit_time, spawn_time in zip(exit_times, launcher.spawn_times[1:], strict=True):
            assert spawn_time - exit_time >= 2.0

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_long_run_restarts_immediately(self, tmp_path: Path) -> None:
        """An exit after the threshold restarts with no added delay."""
        # Given a running recorder
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock, restart_threshold_ms=5000)
        await supervisor.start()
        first = await launcher.next_process()

        # When it ends normally after ten minutes
        clock.advance(600)
        first.finish(0)
        await launcher.next_process()

        # Then the restart did not sleep
        assert clock.sleeps == []
        assert launcher.spawn_times[1] == launcher.spawn_times[0] + 600
        assert launcher.attempts == 2

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_each_spawn_gets_a_fresh_output_file(self, tmp_path: Path) -> None:
        """Restarts write to a new timestamped file."""
        # Given a recorder that rotates
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock)
        await supervisor.start()
        first = await launcher.next_process()

        # When it restarts after a segment
        clock.advance(900)
        first.finish(0)
        await launcher.next_process()

        # Then the two commands target different files
        assert launcher.commands[0][-1] != launcher.commands[1][-1]

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_stop_during_backoff_cancels_pending_restart(self, tmp_path: Path) -> None:
        """A stop requested while waiting to restart prevents the spawn."""
        # Given a recorder in back-off whose delay never elapses on its own
        clock = FakeClock(hold_sleeps=True)
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock)
        await supervisor.start()
        process = await launcher.next_process()
        process.finish(1)
        await wait_until(lambda: supervisor.phase == RecorderPhase.BACKOFF)

        # When stopping it
        await asyncio.wait_for(supervisor.stop(), timeout=1.0)

        # Then the restart never happens
        assert supervisor.phase == RecorderPhase.STOPPED
        assert launcher.attempts == 1

    @pytest.mark.asyncio
    async def test_spawn_failure_backs_off_and_retries(
        self, tmp_path: Path, homerec_caplog: pytest.LogCaptureFixture
    ) -> None:
        """A failed spawn is logged and retried after the crash-loop delay."""
        # Given a launcher whose first spawn fails
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock, failures=1)
        supervisor = _supervisor(tmp_path, launcher, clock, restart_delay_ms=15000)

        # When starting
        await supervisor.start()
        await launcher.next_process()

        # Then the failure was logged and the retry waited the delay
        assert launcher.attempts == 2
        assert clock.sleeps == [15.0]
        assert any(
            "Failed to spawn recording process" in record.getMessage()
            for record in homerec_caplog.records
        )

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_spawn_failure_logs_cause_once(
        self, tmp_path: Path, homerec_caplog: pytest.LogCaptureFixture
    ) -> None:
        """The spawn error message names the camera; the cause rides on exc_info only."""
        # Given a launcher whose first spawn fails
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock, failures=1)
        supervisor = _supervisor(tmp_path, launcher, clock)

        # When starting
        await supervisor.start()
        await launcher.next_process()

        # Then the record carries the cause as exc_info, not in the text
        record = next(
            r for r in homerec_caplog.records if "Failed to spawn" in r.getMessage()
        )
        assert record.getMessage() == "Failed to spawn recording process (camera: front_door)"
        assert record.exc_info is not None
        assert isinstance(record.exc_info[1], FileNotFoundError)

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_unexpected_iteration_error_backs_off_and_continues(
        self, tmp_path: Path, homerec_caplog: pytest.LogCaptureFixture
    ) -> None:
        """An unexpected error while waiting on the recorder never ends supervision."""

        # Given a launcher whose first process fails while being awaited
        class _BrokenFirstWaitLauncher(FakeLauncher):
            async def __call__(self, cmd: list[str]) -> FakeProcess:
                process = await super().__call__(cmd)
                if len(self.processes) == 1:

                    async def broken_wait() -> int:
                        raise RuntimeError("wait failed")

                    process.wait = broken_wait  # type: ignore[method-assign]
                return process

        clock = FakeClock()
        launcher = _BrokenFirstWaitLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock, restart_delay_ms=15000)

        # When starting
        await supervisor.start()
        first = await launcher.next_process()
        await launcher.next_process()

        # Then the stray process was killed, the retry waited the delay and recording resumed
        assert first.killed
        assert clock.sleeps == [15.0]
        assert supervisor.phase == RecorderPhase.RUNNING
        assert any(
            "Recorder iteration failed" in record.getMessage()
            for record in homerec_caplog.records
        )

        # And only an explicit stop reaches the terminal state
        await supervisor.stop()
        assert supervisor.phase == RecorderPhase.STOPPED

    @pytest.mark.asyncio
    async def test_signal_termination_is_logged_not_fatal(
        self, tmp_path: Path, homerec_caplog: pytest.LogCaptureFixture
    ) -> None:
        """A recorder killed by a signal is logged and restarted."""
        # Given a running recorder
        clock = FakeClock()
        launcher = FakeLauncher(clock=clock)
        supervisor = _supervisor(tmp_path, launcher, clock)
        await supervisor.start()
        process = await launcher.next_process()

        # When it is killed externally after a long run
        clock.advance(60)
        process.finish(-int(signal.SIGKILL))
        await launcher.next_process()

        # Then the signal was logged and the supervisor kept going
        assert any("SIGKILL" in record.getMessage() for record in homerec_caplog.records)
        assert supervisor.is_running

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_stop_kills_process_after_grace_period(self, tmp_path: Path) -> None:
        """A recorder ignoring SIGINT is killed once the timeout expires."""
        # Given a recorder that ignores SIGINT
        launcher = FakeLauncher(clock=FakeClock(), exit_on_signal=False)
        supervisor = _supervisor(tmp_path, launcher)
        await supervisor.start()
        process = await launcher.next_process()

        # When stopping with a short grace period
        await supervisor.stop(timeout=0.05)

        # Then it was interrupted, then killed, and the loop finished
        assert process.signals == [signal.SIGINT]
        assert process.killed is True
        assert supervisor.phase == RecorderPhase.STOPPED

    @pytest.mark.asyncio
    async def test_output_is_forwarded_without_progress_lines(
        self, tmp_path: Path, homerec_caplog: pytest.LogCaptureFixture
    ) -> None:
        """Recorder stderr reaches the log, minus periodic progress lines."""
        # Given a recorder that prints a banner and progress updates
        launcher = FakeLauncher(
            clock=FakeClock(),
            stderr_data=b"Input #0, rtsp, from 'rtsp://cam'\nframe=  25 fps=25\rframe=  50 fps=25\r\n",
        )
        supervisor = _supervisor(tmp_path, launcher)

        # When it runs
        await supervisor.start()
        await launcher.next_process()
        await wait_until(
            lambda: any("Input #0" in r.getMessage() for r in homerec_caplog.records)
        )

        # Then the banner was logged and progress lines were suppressed
        messages = [record.getMessage() for record in homerec_caplog.records]
        assert not any("frame=" in message for message in messages)

        await supervisor.stop()

    @pytest.mark.asyncio
    async def test_independent_supervisors_do_not_interfere(self, tmp_path: Path) -> None:
        """Stopping one supervisor leaves another running."""
        # Given two supervisors
        launcher_a = FakeLauncher(clock=FakeClock())
        launcher_b = FakeLauncher(clock=FakeClock())
        first = _supervisor(tmp_path, launcher_a, name="a")
        second = _supervisor(tmp_path, launcher_b, name="b")
        await first.start()
        await second.start()
        await launcher_a.next_process()
        await launcher_b.next_process()

        # When stopping only the first
        await first.stop()

        # Then the second keeps recording
        assert first.phase == RecorderPhase.STOPPED
        assert second.phase == RecorderPhase.RUNNING

        await second.stop()


@pytest.mark.asyncio
async def test_system_clock_backoff_waits_real_time(tmp_path: Path) -> None:
    """With the real clock a crash-loop restart is not earlier than the delay."""
    # Given a supervisor using the system clock and a 50ms delay
    launcher = FakeLauncher()
    supervisor = ProcessSupervisor(
        make_source(restart_threshold_ms=10000, restart_delay_ms=50),
        storage_dir=tmp_path,
        launcher=launcher,
    )
    await supervisor.start()
    process = await launcher.next_process()

    # When the process crashes
    exit_time = time.monotonic()
    process.finish(1)
    await launcher.next_process()

    # Then at least 50ms passed before the next spawn
    assert launcher.spawn_times[1] - exit_time >= 0.049

    await supervisor.stop()

"""Centralized enums for recorder state."""

from enum import StrEnum


class RecorderPhase(StrEnum):
    """Lifecycle phase of one supervised recording process.

    STOPPED is the terminal idle state reached only through an explicit stop.
    """

    IDLE = "idle"
    RUNNING = "running"
    BACKOFF = "backoff"
    RESTARTING = "restarting"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self is RecorderPhase.STOPPED

"""Recording process supervision."""

from homerec.recorder.command import (
    build_endpoint_url,
    build_ffmpeg_command,
    build_output_path,
    format_timestamp,
)
from homerec.recorder.supervisor import (
    ProcessSupervisor,
    RecorderState,
    RestartPlan,
    plan_restart,
    spawn_process,
)

__all__ = [
    "ProcessSupervisor",
    "RecorderState",
    "RestartPlan",
    "build_endpoint_url",
    "build_ffmpeg_command",
    "build_output_path",
    "format_timestamp",
    "plan_restart",
    "spawn_process",
]

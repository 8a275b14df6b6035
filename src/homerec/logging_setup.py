from __future__ import annotations

import json
import logging
import logging.config
from contextvars import ContextVar

from homerec.settings import RecorderSettings

_NO_CAMERA = "-"
_camera_name: ContextVar[str] = ContextVar("homerec_camera_name", default=_NO_CAMERA)

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
    "camera_name",
}


class RecorderContextFilter(logging.Filter):
    """Stamps each record with the camera of the task that emitted it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "camera_name", None):
            record.camera_name = _camera_name.get()
        return True


class ExtrasFormatter(logging.Formatter):
    """Appends `extra=` fields as one JSON line under the message."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = {
            key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS
        }
        if not extras:
            return line
        return f"{line}\n{json.dumps(extras, default=str, sort_keys=True)}"


def set_camera_name(name: str | None) -> None:
    """Set the camera name for log records emitted by the current task.

    Each asyncio task runs in a copy of its parent's context, so a supervisor
    setting its name here never leaks into its siblings.
    """
    _camera_name.set(name or _NO_CAMERA)


def get_camera_name() -> str:
    return _camera_name.get()


def configure_logging(*, log_level: str = "INFO", camera_name: str | None = None) -> None:
    """Send every log record to stdout, tagged with its camera name.

    The root logger accepts DEBUG; `log_level` only gates the console handler.
    The line format comes from `CONSOLE_LOG_FORMAT` when set.
    """
    settings = RecorderSettings()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "recorder_context": {"()": RecorderContextFilter},
            },
            "formatters": {
                "console": {
                    "()": ExtrasFormatter,
                    "format": settings.console_log_format,
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": str(log_level).upper(),
                    "formatter": "console",
                    "filters": ["recorder_context"],
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"level": "DEBUG", "handlers": ["console"]},
        }
    )

    set_camera_name(camera_name)
    logging.captureWarnings(True)
    # Slow-callback warnings only; asyncio is chatty at DEBUG.
    logging.getLogger("asyncio").setLevel(logging.WARNING)

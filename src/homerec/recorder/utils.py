"""Helpers for logging ffmpeg invocations."""

from __future__ import annotations

import shlex
from urllib.parse import urlsplit, urlunsplit


def redact_url(url: str) -> str:
    """Mask the userinfo part of a URL, keeping scheme, host and path."""
    parts = urlsplit(url)
    if not parts.netloc or "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[1]
    return urlunsplit(parts._replace(netloc=f"***:***@{host}"))


def redact_command(cmd: list[str]) -> list[str]:
    """Copy of `cmd` with every `-i` input URL redacted."""
    safe_cmd = list(cmd)
    for idx in range(len(safe_cmd) - 1):
        if safe_cmd[idx] == "-i":
            safe_cmd[idx + 1] = redact_url(safe_cmd[idx + 1])
    return safe_cmd


def format_cmd(cmd: list[str]) -> str:
    return shlex.join(cmd)


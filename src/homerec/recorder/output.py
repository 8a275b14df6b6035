"""Line reader for recorder stdout/stderr."""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator

# ffmpeg rewrites its progress line in place with "\r", so split on both.
_LINE_BREAK_RE = re.compile(rb"\r\n|\r|\n")
_PROGRESS_PREFIXES = ("frame=", "size=")
_CHUNK_SIZE = 4096
_MAX_LINE_BYTES = 64 * 1024


def is_progress_line(line: str) -> bool:
    return line.lstrip().startswith(_PROGRESS_PREFIXES)


async def iter_lines(stream: asyncio.StreamReader) -> AsyncIterator[str]:
    buffer = b""
    while True:
        chunk = await stream.read(_CHUNK_SIZE)
        if not chunk:
            break
        buffer += chunk
        parts = _LINE_BREAK_RE.split(buffer)
        buffer = parts.pop()
        if len(buffer) > _MAX_LINE_BYTES:
            parts.append(buffer)
            buffer = b""
        for part in parts:
            yield part.decode(errors="replace")
    if buffer:
        yield buffer.decode(errors="replace")

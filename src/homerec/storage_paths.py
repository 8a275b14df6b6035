"""File naming under the recordings directory."""

from __future__ import annotations

import re

_UNSAFE_NAME_CHARS = re.compile(r"[^\w.-]+")


def sanitize_name(value: str) -> str:
    """Make a camera name safe to embed in a file name."""
    cleaned = _UNSAFE_NAME_CHARS.sub("_", value.strip()).strip("_.")
    return cleaned or "camera"

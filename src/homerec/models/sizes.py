"""Human-readable byte size parsing."""

from __future__ import annotations

import re

from pydantic import ByteSize, TypeAdapter, ValidationError

DEFAULT_CLEANUP_THRESHOLD = "10GB"
DEFAULT_CLEANUP_THRESHOLD_BYTES = 10 * 1024 * 1024 * 1024

_BYTE_SIZE = TypeAdapter(ByteSize)
# "10GB", "1.5 t", "512kb": single-letter units are binary multiples, like "GiB".
_SHORT_UNIT_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([kmgtpe])(?:i?b)?\s*$", re.IGNORECASE)


def parse_size(value: str | int) -> int:
    """Parse a size such as ``"10GB"`` or ``"750 MiB"`` into bytes.

    ``KB``/``MB``/``GB``/``TB`` are treated as binary multiples (``1GB`` is
    1024**3 bytes), matching how disk quotas are usually written.

    Raises:
        ValueError: If the value is not a recognisable size.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid size: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Size must be non-negative, got {value}")
        return value

    text = str(value)
    match = _SHORT_UNIT_RE.match(text)
    if match is not None:
        number, unit = match.groups()
        text = f"{number}{unit}ib"

    try:
        size = _BYTE_SIZE.validate_python(text)
    except ValidationError as exc:
        raise ValueError(f"Invalid size: {value!r}") from exc
    return int(size)

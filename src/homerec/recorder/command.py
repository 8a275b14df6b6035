"""ffmpeg invocation for one recording source."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from urllib.parse import urlencode, urlsplit, urlunsplit

from homerec.models.config import SourceConfig
from homerec.storage_paths import sanitize_name

TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

# Forced onto TCP transport with an I/O timeout.
_RTSP_SCHEMES = frozenset({"rtsp", "rtsps"})
# Written fragmented so a killed recorder still leaves a playable file.
_FRAGMENTED_FORMATS = frozenset({"mp4", "mov", "m4v"})


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def build_output_path(storage_dir: Path, name: str, output_format: str, moment: datetime) -> Path:
    """Return `<storage_dir>/<YYYYmmdd_HHMMSS>_<name>.<format>`."""
    filename = f"{format_timestamp(moment)}_{sanitize_name(name)}.{output_format}"
    return storage_dir / filename


def build_endpoint_url(endpoint: str, endpoint_args: dict[str, str] | None = None) -> str:
    """Append `endpoint_args` to the endpoint's query string."""
    if not endpoint_args:
        return endpoint
    parts = urlsplit(endpoint)
    extra = urlencode(list(endpoint_args.items()))
    query = f"{parts.query}&{extra}" if parts.query else extra
    return urlunsplit(parts._replace(query=query))


def is_rtsp_endpoint(endpoint: str) -> bool:
    return urlsplit(endpoint).scheme.lower() in _RTSP_SCHEMES


def build_ffmpeg_command(
    source: SourceConfig,
    output_path: Path,
    *,
    ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
    """Build the argv used to record `source` into `output_path`."""
    cmd = [ffmpeg_bin, "-hide_banner", "-nostdin"]

    input_url = build_endpoint_url(source.endpoint, source.endpoint_args)
    if is_rtsp_endpoint(input_url):
        io_timeout_us = int(source.io_timeout_s * 1_000_000)
        cmd.extend(["-rtsp_transport", "tcp", "-timeout", str(io_timeout_us)])
    cmd.extend(["-i", input_url])

    cmd.extend(["-c", "copy"])
    if source.segment_duration_s is not None:
        cmd.extend(["-t", f"{source.segment_duration_s:g}"])
    if source.output_format in _FRAGMENTED_FORMATS:
        cmd.extend(["-movflags", "+frag_keyframe+empty_moov+default_base_moof"])

    # User flags last so they can override the defaults above.
    cmd.extend(source.ffmpeg_flags)
    cmd.extend(["-y", str(output_path)])
    return cmd

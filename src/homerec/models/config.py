"""Configuration models for cameras and storage."""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from homerec.models.sizes import (
    DEFAULT_CLEANUP_THRESHOLD,
    DEFAULT_CLEANUP_THRESHOLD_BYTES,
    parse_size,
)
from homerec.storage_paths import sanitize_name

logger = logging.getLogger(__name__)

_OUTPUT_FORMAT_RE = re.compile(r"^[A-Za-z0-9]+$")


class SourceConfig(BaseModel):
    """One recording source (camera) and its restart policy."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )

    name: str = Field(min_length=1)
    endpoint: str = Field(min_length=1)
    endpoint_args: dict[str, str] = Field(
        default_factory=dict,
        description="Extra query parameters appended to the endpoint URL.",
    )
    restart_threshold_ms: int = Field(
        default=5000,
        gt=0,
        description="Runs shorter than this count as a crash loop.",
    )
    restart_delay_ms: int = Field(
        default=60000,
        gt=0,
        description="Delay before restarting after a crash-loop exit.",
    )
    output_format: str = "mp4"
    enabled: bool = True
    segment_duration_s: float | None = Field(
        default=None,
        gt=0.0,
        description="Stop each recording after this many seconds and start a new file.",
    )
    io_timeout_s: float = Field(
        default=5.0,
        gt=0.0,
        description="Read timeout forced onto RTSP inputs.",
    )
    ffmpeg_flags: list[str] = Field(
        default_factory=list,
        description="Additional ffmpeg output flags appended to the command.",
    )

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value

    @field_validator("endpoint_args", mode="before")
    @classmethod
    def _stringify_args(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): str(v) for k, v in value.items()}
        return value

    @field_validator("output_format")
    @classmethod
    def _normalize_format(cls, value: str) -> str:
        value = value.strip().lstrip(".").lower()
        if not _OUTPUT_FORMAT_RE.match(value):
            raise ValueError(f"output_format must be a plain file extension, got {value!r}")
        return value

    @property
    def restart_threshold_s(self) -> float:
        return self.restart_threshold_ms / 1000.0

    @property
    def restart_delay_s(self) -> float:
        return self.restart_delay_ms / 1000.0


class Config(BaseModel):
    """Root configuration."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    storage_dir: str = Field(min_length=1)
    cleanup_threshold: int = Field(
        default=DEFAULT_CLEANUP_THRESHOLD_BYTES,
        ge=0,
        description="Free space (bytes) the reclaimer keeps available in storage_dir.",
    )
    cameras: list[SourceConfig] = Field(min_length=1)
    reclaim_interval_s: float = Field(default=60.0, gt=0.0)
    shutdown_grace_s: float = Field(default=10.0, ge=0.0)
    reclaim_dry_run: bool = False

    @field_validator("cleanup_threshold", mode="before")
    @classmethod
    def _parse_cleanup_threshold(cls, value: Any) -> int:
        if value is None:
            value = DEFAULT_CLEANUP_THRESHOLD
        try:
            return parse_size(value)
        except ValueError:
            logger.warning(
                "Invalid cleanupThreshold %r; falling back to %d bytes",
                value,
                DEFAULT_CLEANUP_THRESHOLD_BYTES,
            )
            return DEFAULT_CLEANUP_THRESHOLD_BYTES

    @model_validator(mode="after")
    def _validate_unique_names(self) -> Config:
        # Compared as sanitized for file names, ignoring case for case-insensitive filesystems.
        owners: dict[str, str] = {}
        collisions: list[str] = []
        for camera in self.cameras:
            key = sanitize_name(camera.name).casefold()
            if key in owners:
                collisions.append(f"{owners[key]!r} and {camera.name!r} -> {key!r}")
            else:
                owners[key] = camera.name
        if collisions:
            raise ValueError(f"Duplicate camera names: {'; '.join(collisions)}")
        return self

    @property
    def enabled_cameras(self) -> list[SourceConfig]:
        return [camera for camera in self.cameras if camera.enabled]

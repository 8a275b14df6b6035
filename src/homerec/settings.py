"""Environment-driven process settings."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONSOLE_LOG_FORMAT = (
    "%(asctime)s %(levelname)s [%(camera_name)s] %(module)s:%(lineno)d %(message)s"
)


class RecorderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HOMEREC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    ffmpeg_bin: str = "ffmpeg"
    console_log_format: str = Field(
        default=DEFAULT_CONSOLE_LOG_FORMAT,
        validation_alias="CONSOLE_LOG_FORMAT",
    )

    @field_validator("ffmpeg_bin")
    @classmethod
    def _strip_bin(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("ffmpeg_bin must not be empty")
        return value

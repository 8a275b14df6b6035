"""Reading the recorder config file."""

from __future__ import annotations

import logging
import os
import stat
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from homerec.models.config import Config

logger = logging.getLogger(__name__)

# Endpoints embed camera passwords; only the owner should read the file.
_GROUP_OR_OTHER_BITS = stat.S_IRWXG | stat.S_IRWXO


class ConfigErrorCode(str, Enum):
    """Stable config error codes."""

    FILE_NOT_FOUND = "CONFIG_FILE_NOT_FOUND"
    UNREADABLE = "CONFIG_UNREADABLE"
    YAML_INVALID = "CONFIG_YAML_INVALID"
    EMPTY_FILE = "CONFIG_EMPTY_FILE"
    ROOT_NOT_MAPPING = "CONFIG_ROOT_NOT_MAPPING"
    VALIDATION_FAILED = "CONFIG_VALIDATION_FAILED"
    UNKNOWN = "CONFIG_UNKNOWN"


class ConfigError(Exception):
    """The config file is missing, malformed or fails validation."""

    def __init__(
        self,
        message: str,
        *,
        code: ConfigErrorCode = ConfigErrorCode.UNKNOWN,
        path: Path | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.path = path
        self.__cause__ = cause


def load_config(path: Path) -> Config:
    """Load the recorder config from a YAML or JSON file.

    YAML is a superset of JSON, so one parser reads both.

    Raises:
        ConfigError: If the file is missing, unreadable, malformed or invalid.
    """
    document = _read_document(path)
    return _validate(document, path)


def load_config_from_dict(data: dict[str, Any]) -> Config:
    """Validate an already-parsed config mapping.

    Raises:
        ConfigError: If validation fails
    """
    return _validate(data, None)


def format_validation_error(e: ValidationError, path: Path | None = None) -> str:
    """One line per field error, located by the keys used in the file."""
    source = f" ({path})" if path else ""
    lines = [f"Config validation failed{source}:"]
    for err in e.errors():
        lines.append(f"  {_format_location(err['loc'])}: {err['msg']}")
    return "\n".join(lines)


def _format_location(loc: tuple[int | str, ...]) -> str:
    text = ""
    for part in loc:
        if isinstance(part, int):
            text += f"[{part}]"
        else:
            text += f".{part}" if text else part
    return text or "<root>"


def _read_document(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(
            f"Config file not found: {path}",
            code=ConfigErrorCode.FILE_NOT_FOUND,
            path=path,
        )
    _check_permissions(path)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            f"Cannot read config file {path}: {e}",
            code=ConfigErrorCode.UNREADABLE,
            path=path,
            cause=e,
        ) from e

    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML in {path}: {e}",
            code=ConfigErrorCode.YAML_INVALID,
            path=path,
            cause=e,
        ) from e

    if document is None:
        raise ConfigError(
            f"Config file is empty: {path}",
            code=ConfigErrorCode.EMPTY_FILE,
            path=path,
        )
    if not isinstance(document, dict):
        raise ConfigError(
            f"Config root must be a mapping of settings, got {type(document).__name__}",
            code=ConfigErrorCode.ROOT_NOT_MAPPING,
            path=path,
        )
    return document


def _validate(document: dict[str, Any], path: Path | None) -> Config:
    try:
        config = Config.model_validate(document)
    except ValidationError as e:
        raise ConfigError(
            format_validation_error(e, path),
            code=ConfigErrorCode.VALIDATION_FAILED,
            path=path,
            cause=e,
        ) from e
    logger.debug(
        "Config validated: cameras=%d enabled=%d",
        len(config.cameras),
        len(config.enabled_cameras),
    )
    return config


def _check_permissions(path: Path) -> None:
    if os.name != "posix":
        return
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except OSError:
        return
    if mode & _GROUP_OR_OTHER_BITS:
        logger.warning(
            "Config file permissions are too permissive for endpoints with credentials: "
            "path=%s mode=%04o expected=0600",
            path,
            mode,
        )

"""Shared pytest fixtures for HomeRec tests."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from pathlib import Path

# Add src to sys.path for imports
src_path = Path(__file__).parent.parent.parent / "src"
if str(src_path.resolve()) not in sys.path:
    sys.path.insert(0, str(src_path.resolve()))

import pytest


@pytest.fixture
def minimal_config_dict(tmp_path: Path) -> dict[str, object]:
    """Minimal valid config in the camelCase file format."""
    return {
        "storageDir": str(tmp_path / "recordings"),
        "cameras": [
            {
                "name": "front_door",
                "endpoint": "rtsp://camera.local/stream",
            }
        ],
    }


@pytest.fixture
def homerec_caplog(caplog: pytest.LogCaptureFixture) -> Iterator[pytest.LogCaptureFixture]:
    """caplog capturing INFO and above from every homerec logger."""
    caplog.set_level(logging.INFO, logger="homerec")
    yield caplog

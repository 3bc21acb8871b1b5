"""Shared fixtures for marker pack tests."""

from __future__ import annotations

import zipfile
from pathlib import Path

import cv2
import numpy as np
import pytest
from loguru import logger


@pytest.fixture
def log_messages():
    """Capture loguru WARNING+ messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda msg: messages.append(msg.record["message"]),
        level="WARNING",
        format="{message}",
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def png_bytes() -> bytes:
    """A 6x4 RGBA PNG."""
    ok, buf = cv2.imencode(".png", np.zeros((4, 6, 4), dtype=np.uint8))
    assert ok
    return buf.tobytes()


@pytest.fixture
def make_pack(tmp_path):
    """Factory writing a zip pack from {member_name: bytes | str}."""

    def _make(name: str, members: dict, directory: Path | None = None) -> Path:
        directory = directory or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for member, data in members.items():
                if isinstance(data, str):
                    data = data.encode("utf-8")
                zf.writestr(member, data)
        return path

    return _make

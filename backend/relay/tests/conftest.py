"""Shared pytest setup: test-safe settings are set before relay is imported."""

from __future__ import annotations

import io
import os
import tempfile

import pytest

_TMP = tempfile.mkdtemp(prefix="relay-tests-")

os.environ.setdefault("LOCKET_API_KEY", "test-api-key")
os.environ.setdefault("LOGIN_SECRET_KEY", "")
os.environ.setdefault("CHECK_FFMPEG_ON_STARTUP", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP, "uploads"))
os.environ.setdefault("LOG_FILE", os.path.join(_TMP, "logs.txt"))


def make_image_bytes(fmt: str = "PNG", size: tuple[int, int] = (8, 6)) -> bytes:
    """Small solid-colour image encoded in the given Pillow format."""
    from PIL import Image

    buf = io.BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Point UPLOAD_DIR at a per-test directory."""
    from relay.core.config import settings

    target = tmp_path / "uploads"
    target.mkdir()
    monkeypatch.setattr(settings, "upload_dir", str(target))
    return target

"""Spooling of multipart uploads to the upload directory.

Each saved file belongs to exactly one request; whoever consumes it removes
it with ``remove_file`` once, whether the request succeeded or not.
"""

from __future__ import annotations

import os
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO

from relay.core.config import settings
from relay.core.logging import log
from relay.core.models import UploadedMedia


def save_upload(
    stream: BinaryIO,
    filename: str | None,
    mime_type: str | None,
    upload_dir: str | None = None,
) -> UploadedMedia:
    """Copy an uploaded stream into a uniquely named file.

    Args:
        stream: Readable binary stream (the UploadFile's file object)
        filename: Client supplied filename (only its extension is kept)
        mime_type: Client supplied content type
        upload_dir: Target directory (default: UPLOAD_DIR)

    Returns:
        UploadedMedia describing the saved file
    """
    target_dir = Path(upload_dir or settings.upload_dir)
    target_dir.mkdir(parents=True, exist_ok=True)

    suffix = Path(filename or "").suffix.lower()
    path = target_dir / f"{uuid.uuid4().hex}{suffix}"

    with open(path, "wb") as out:
        shutil.copyfileobj(stream, out)

    size = path.stat().st_size
    log.info(f"UPLOAD_SAVED file={path.name} mime={mime_type} size={size}")

    return UploadedMedia(
        path=str(path),
        filename=filename or path.name,
        mime_type=mime_type or "application/octet-stream",
        size=size,
    )


def remove_file(path: str | None, label: str = "file") -> bool:
    """Delete a temp file, logging instead of raising on failure.

    Returns:
        True if a file was removed
    """
    if not path or not os.path.exists(path):
        return False
    try:
        os.remove(path)
    except OSError as e:
        log.error(f"CLEANUP_FAILED {label}={Path(path).name} error={e}")
        return False
    log.info(f"CLEANUP_REMOVED {label}={Path(path).name}")
    return True

"""Locket relay API routes (login + media upload + observability)."""

import os
import shutil
from pathlib import Path

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address

from relay.core import moments
from relay.core.config import settings
from relay.core.logging import LOG_PATH, log, truncate_log_file
from relay.core.models import OverlayOptions
from relay.core.uploads import save_upload

router = APIRouter()

# Rate limiter instance (attached to app.state in relay.main)
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=400)


def _upload_size(upload: UploadFile) -> int:
    """Size of a multipart upload, measured from the spooled file if unknown."""
    if upload.size is not None:
        return upload.size
    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    return size


# ============================================================================
# Locket Endpoints
# ============================================================================


class LoginRequest(BaseModel):
    """Request body for login (values encrypted with LOGIN_SECRET_KEY when set)."""

    email: str
    password: str


@router.post("/locket/login")
@limiter.limit("10/minute")
def login(request: Request, body: LoginRequest) -> dict:
    """Log in to Locket with (encrypted) email and password.

    Args:
        request: FastAPI request object (for rate limiting)
        body: Email and password

    Returns:
        Dict with the upstream login response:
        {
            "user": {
                "localId": "...",
                "idToken": "...",
                "refreshToken": "...",
                ...
            }
        }

    Raises:
        CredentialDecryptError: 400 if credentials cannot be decrypted
        UpstreamError: upstream 4xx forwarded, otherwise 502
    """
    user = moments.login(body.email, body.password)
    return {"user": user}


@router.post("/locket/upload-media")
@limiter.limit("20/minute")
def upload_media(
    request: Request,
    userId: str = Form(...),
    idToken: str = Form(...),
    caption: str | None = Form(None),
    color_top: str | None = Form(None),
    color_bottom: str | None = Form(None),
    text_color: str | None = Form(None),
    overlay_type: str | None = Form(None),
    music_track: str | None = Form(None),
    images: list[UploadFile] | None = File(None),
    videos: list[UploadFile] | None = File(None),
):
    """Publish a photo or video moment.

    Exactly one of ``images`` / ``videos`` must be sent; only the first file
    of that field is used.

    Returns:
        Image: {"message": "Upload image successfully"}
        Video: {"message": "Upload video successfully", "videoUrl": ..., "thumbnailUrl": ...}

    Raises:
        400 if no media, both media types, or video over MAX_VIDEO_BYTES
        UpstreamError / TranscodeError via the error handlers
    """
    if not images and not videos:
        return _bad_request("No media found")

    if images and videos:
        return _bad_request("Only one type of media is allowed")

    overlay = OverlayOptions(
        caption=caption,
        color_top=color_top,
        color_bottom=color_bottom,
        text_color=text_color,
        overlay_type=overlay_type,
        music_track=music_track,
    )

    if images:
        upload = images[0]
        media = save_upload(upload.file, upload.filename, upload.content_type)
        moments.post_image(userId, idToken, media, overlay)
        return {"message": "Upload image successfully"}

    upload = videos[0]
    if _upload_size(upload) > settings.max_video_bytes:
        log.warning(f"UPLOAD_REJECTED reason=video_too_large user={userId}")
        return _bad_request(f"Video size exceeds {settings.max_video_bytes // (1024 * 1024)}MB")

    media = save_upload(upload.file, upload.filename, upload.content_type)
    result = moments.post_video(userId, idToken, media, overlay)
    return {
        "message": "Upload video successfully",
        "videoUrl": result.video_url,
        "thumbnailUrl": result.thumbnail_url,
    }


# ============================================================================
# Health & Observability
# ============================================================================


@router.get("/healthz")
def healthz() -> dict:
    """Health check endpoint with relay readiness status.

    Returns:
        Dict with status and configuration (NO SECRETS)
    """
    return {
        "ok": True,
        "locket": {
            "api_key": "configured" if settings.locket_api_key else "key_missing",
            "credential_encryption": "enabled" if settings.login_secret_key else "disabled",
        },
        "ffmpeg": {
            "ffmpeg": "present" if shutil.which(settings.ffmpeg_path) else "missing",
            "ffprobe": "present" if shutil.which(settings.ffprobe_path) else "missing",
        },
        "uploads": {
            "dir": "present" if Path(settings.upload_dir).is_dir() else "missing",
            "max_video_bytes": settings.max_video_bytes,
        },
    }


@router.get("/logs/tail")
@limiter.limit("60/minute")
def get_logs_tail(request: Request, lines: int = 100) -> dict:
    """Get last N lines from the log file for real-time log viewing.

    Args:
        request: FastAPI request object (for rate limiting)
        lines: Number of lines to return (default 100, max 10000)

    Returns:
        Dict with log lines array and metadata
    """
    # Truncate log file if needed (keeps last 10k lines)
    truncate_log_file()

    max_lines = max(1, min(lines, 10000))

    if not LOG_PATH.exists():
        return {"ok": True, "logs": [], "message": "No logs yet"}

    try:
        with open(LOG_PATH, "r", encoding="utf-8", errors="replace") as f:
            all_lines = f.readlines()
    except OSError as e:
        log.error(f"Failed to read logs: {e}")
        return {"ok": False, "error": str(e)}

    tail_lines = all_lines[-max_lines:]
    return {
        "ok": True,
        "logs": [line.rstrip("\n") for line in tail_lines],
        "total_lines": len(all_lines),
        "returned_lines": len(tail_lines),
    }

"""Moment publishing flows: login, photo moment, video moment.

Each flow is a fixed sequence of blocking upstream calls. A failed step
aborts the flow; temp files handed in are removed in a ``finally`` block
exactly once, whatever the outcome.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from relay.clients.ffmpeg_media import FFmpegMediaClient
from relay.clients.locket import LocketClient
from relay.clients.storage import StorageClient
from relay.core.config import settings
from relay.core.errors import MediaTooLargeError, RelayError, UpstreamError
from relay.core.image_utils import to_webp
from relay.core.logging import log
from relay.core.models import OverlayOptions, UploadedMedia, VideoPostResult
from relay.core.security import decrypt_login_data
from relay.core.uploads import remove_file


def login(email: str, password: str, locket: LocketClient | None = None) -> dict[str, Any]:
    """Decrypt the posted credentials and log in upstream.

    Returns:
        Upstream login response (idToken, localId, ...)

    Raises:
        CredentialDecryptError: If the credentials cannot be decrypted
        UpstreamError: If the identity endpoint rejects the login
    """
    log.info("LOGIN_START")
    plain_email, plain_password = decrypt_login_data(email, password)
    try:
        user = (locket or LocketClient()).login(plain_email, plain_password)
    except Exception as e:
        log.error(f"LOGIN_FAILED error={e}")
        raise
    log.info("LOGIN_END")
    return user


def post_image(
    user_id: str,
    id_token: str,
    image: UploadedMedia,
    overlay: OverlayOptions,
    locket: LocketClient | None = None,
    storage: StorageClient | None = None,
) -> str:
    """Publish a photo moment.

    Args:
        user_id: Locket user id
        id_token: Firebase id token of that user
        image: Spooled upload (removed before returning)
        overlay: Caption styling / music metadata

    Returns:
        Download URL of the uploaded image

    Raises:
        InvalidMediaError: If the upload is not an image
        UpstreamError: If upload or post creation fails
    """
    log.info(f"POST_IMAGE_START user={user_id} file={image.filename} size={image.size}")
    try:
        webp = to_webp(image.path, quality=settings.webp_quality)
        image_url = (storage or StorageClient()).upload_image(user_id, id_token, webp)
        (locket or LocketClient()).create_image_post(id_token, image_url, overlay)
    except Exception as e:
        log.error(f"POST_IMAGE_FAILED user={user_id} error={e}")
        raise
    finally:
        remove_file(image.path, "image")

    log.info(f"POST_IMAGE_END user={user_id}")
    return image_url


def upload_thumbnail_from_video(
    user_id: str,
    id_token: str,
    video_path: str,
    ffmpeg: FFmpegMediaClient,
    storage: StorageClient,
) -> str | None:
    """Extract the first frame of a video and upload it as the moment thumbnail.

    Returns:
        Download URL, or None if extraction or upload failed (logged)
    """
    try:
        frame = ffmpeg.thumbnail(
            video_path,
            max_width=settings.thumbnail_max_width,
            quality=settings.thumbnail_quality,
        )
        return storage.upload_image(user_id, id_token, to_webp(frame, quality=settings.webp_quality))
    except (RelayError, OSError) as e:
        log.error(f"THUMBNAIL_UPLOAD_FAILED user={user_id} error={e}")
        return None


def converted_path_for(video_path: str) -> str:
    """``/tmp/abc.webm`` -> ``/tmp/abc_converted.mp4``."""
    p = Path(video_path)
    return str(p.with_name(f"{p.stem}_converted.mp4"))


def post_video(
    user_id: str,
    id_token: str,
    video: UploadedMedia,
    overlay: OverlayOptions,
    locket: LocketClient | None = None,
    storage: StorageClient | None = None,
    ffmpeg: FFmpegMediaClient | None = None,
) -> VideoPostResult:
    """Publish a video moment.

    WebM input is converted to MP4 first; the thumbnail is taken from the
    video that is actually uploaded.

    Args:
        user_id: Locket user id
        id_token: Firebase id token of that user
        video: Spooled upload (removed before returning, with any conversion output)
        overlay: Caption styling / music metadata

    Returns:
        VideoPostResult with the video and thumbnail download URLs

    Raises:
        MediaTooLargeError: If the upload exceeds MAX_VIDEO_BYTES
        TranscodeError: If WebM conversion fails
        UpstreamError: If any upload or the post creation fails
    """
    storage = storage or StorageClient()
    ffmpeg = ffmpeg or FFmpegMediaClient()
    converted_path: str | None = None

    log.info(f"POST_VIDEO_START user={user_id} file={video.filename} mime={video.mime_type} size={video.size}")

    try:
        if video.size > settings.max_video_bytes:
            raise MediaTooLargeError(f"Video size exceeds {settings.max_video_bytes // (1024 * 1024)}MB")

        final_path = video.path
        final_mime = video.mime_type if video.mime_type.startswith("video/") else "video/mp4"

        if "webm" in final_mime:
            log.info("POST_VIDEO_CONVERT webm->mp4")
            # Set before converting so a partial output is cleaned up too
            converted_path = converted_path_for(video.path)
            ffmpeg.convert_to_mp4(video.path, converted_path)
            final_path = converted_path
            final_mime = "video/mp4"

        with open(final_path, "rb") as f:
            video_bytes = f.read()
        log.info(f"POST_VIDEO_FINAL size_mb={len(video_bytes) / 1024 / 1024:.2f} mime={final_mime}")

        thumbnail_url = upload_thumbnail_from_video(user_id, id_token, final_path, ffmpeg, storage)
        if not thumbnail_url:
            raise UpstreamError("Failed to upload thumbnail")

        video_url = storage.upload_video(user_id, id_token, video_bytes, final_mime)

        (locket or LocketClient()).create_video_post(id_token, video_url, thumbnail_url, overlay)
    except Exception as e:
        log.error(f"POST_VIDEO_FAILED user={user_id} error={e}")
        raise
    finally:
        remove_file(video.path, "original")
        if converted_path and os.path.exists(converted_path):
            remove_file(converted_path, "converted")

    log.info(f"POST_VIDEO_END user={user_id}")
    return VideoPostResult(video_url=video_url, thumbnail_url=thumbnail_url)

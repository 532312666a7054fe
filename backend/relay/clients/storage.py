"""Firebase Storage client implementing the resumable upload protocol.

An upload is three requests against the object's URL:
1. POST ``?uploadType=resumable`` with ``x-goog-upload-command: start`` and
   the object metadata; the session URL comes back in ``X-Goog-Upload-URL``
2. PUT the bytes to the session URL with ``upload, finalize``
3. GET the object metadata and read its ``downloadTokens``

The public URL of the object is ``<object-url>?alt=media&token=<token>``.
"""

from __future__ import annotations

import secrets
import time
from urllib.parse import quote

import httpx

from relay.core.config import settings
from relay.core.errors import UpstreamError
from relay.core.logging import log

STORAGE_USER_AGENT = "com.locket.Locket/1.43.1 iPhone/17.3 hw/iPhone15_3 (GTMSUF/1)"
FIREBASE_GMPID = "1:641029076083:ios:cc8eb46290d69b234fa609"

UPLOADER_HEADERS = {
    "content-type": "application/octet-stream",
    "x-goog-upload-protocol": "resumable",
    "x-goog-upload-offset": "0",
    "x-goog-upload-command": "upload, finalize",
    "upload-incomplete": "?0",
    "upload-draft-interop-version": "3",
    "user-agent": STORAGE_USER_AGENT,
}


def object_name(ext: str) -> str:
    """Unique object basename: ``<epoch-ms>_<random>.<ext>``."""
    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)}.{ext}"


class StorageClient:
    """Resumable uploads of moment media to the Locket buckets."""

    def __init__(
        self,
        base_url: str | None = None,
        image_bucket: str | None = None,
        video_bucket: str | None = None,
        timeout_s: float | None = None,
        upload_timeout_s: float | None = None,
    ):
        self.base_url = (base_url or settings.storage_base_url).rstrip("/")
        self.image_bucket = image_bucket or settings.image_bucket
        self.video_bucket = video_bucket or settings.video_bucket
        self.timeout_s = timeout_s or settings.http_timeout_s
        self.upload_timeout_s = upload_timeout_s or settings.upload_timeout_s

    def upload_image(self, user_id: str, id_token: str, data: bytes) -> str:
        """Upload a WebP image as a moment thumbnail.

        Args:
            user_id: Locket user id (owner of the object path)
            id_token: Firebase id token of that user
            data: WebP bytes

        Returns:
            Download URL including the access token

        Raises:
            UpstreamError: If any of the three upload steps fails
        """
        name = f"users/{user_id}/moments/thumbnails/{object_name('webp')}"
        return self._resumable_upload(
            bucket=self.image_bucket,
            name=name,
            data=data,
            upload_content_type="image/webp",
            metadata_content_type="image/*",
            user_id=user_id,
            id_token=id_token,
        )

    def upload_video(self, user_id: str, id_token: str, data: bytes, mime_type: str = "video/mp4") -> str:
        """Upload a video moment.

        Args:
            user_id: Locket user id
            id_token: Firebase id token of that user
            data: Video bytes
            mime_type: ``video/mp4`` or ``video/webm``

        Returns:
            Download URL including the access token

        Raises:
            UpstreamError: If any of the three upload steps fails
        """
        ext = "webm" if "webm" in mime_type else "mp4"
        name = f"users/{user_id}/moments/videos/{object_name(ext)}"
        log.info(f"STORAGE_VIDEO_UPLOAD format={ext} size_mb={len(data) / 1024 / 1024:.2f}")
        return self._resumable_upload(
            bucket=self.video_bucket,
            name=name,
            data=data,
            upload_content_type=mime_type,
            metadata_content_type=mime_type,
            user_id=user_id,
            id_token=id_token,
        )

    def object_url(self, bucket: str, name: str) -> str:
        return f"{self.base_url}/v0/b/{bucket}/o/{quote(name, safe='')}"

    def _resumable_upload(
        self,
        bucket: str,
        name: str,
        data: bytes,
        upload_content_type: str,
        metadata_content_type: str,
        user_id: str,
        id_token: str,
    ) -> str:
        url = self.object_url(bucket, name)
        log.info(f"STORAGE_UPLOAD_START bucket={bucket} name={name} bytes={len(data)}")

        timeout = httpx.Timeout(self.timeout_s, write=self.upload_timeout_s, read=self.upload_timeout_s)

        try:
            with httpx.Client(timeout=timeout) as client:
                upload_url = self._start_session(client, url, name, data, upload_content_type, metadata_content_type, user_id, id_token)
                self._upload_bytes(client, upload_url, data)
                token = self._download_token(client, url, id_token)
        except httpx.HTTPError as e:
            log.error(f"STORAGE_UPLOAD_FAILED name={name} error={e}")
            raise UpstreamError(f"Storage request failed: {e}") from e

        log.info(f"STORAGE_UPLOAD_DONE name={name}")
        return f"{url}?alt=media&token={token}"

    def _start_session(
        self,
        client: httpx.Client,
        url: str,
        name: str,
        data: bytes,
        upload_content_type: str,
        metadata_content_type: str,
        user_id: str,
        id_token: str,
    ) -> str:
        """Step 1: open an upload session and return its URL."""
        headers = {
            "content-type": "application/json; charset=UTF-8",
            "authorization": f"Bearer {id_token}",
            "x-goog-upload-protocol": "resumable",
            "accept": "*/*",
            "x-goog-upload-command": "start",
            "x-goog-upload-content-length": str(len(data)),
            "accept-language": "vi-VN,vi;q=0.9",
            "x-firebase-storage-version": "ios/10.13.0",
            "user-agent": STORAGE_USER_AGENT,
            "x-goog-upload-content-type": upload_content_type,
            "x-firebase-gmpid": FIREBASE_GMPID,
        }
        metadata = {
            "name": name,
            "contentType": metadata_content_type,
            "bucket": "",
            "metadata": {"creator": user_id, "visibility": "private"},
        }

        resp = client.post(
            url,
            params={"uploadType": "resumable", "name": name},
            headers=headers,
            json=metadata,
        )
        if resp.status_code >= 400:
            raise UpstreamError(f"Failed to start upload: {resp.reason_phrase}", resp.status_code)

        upload_url = resp.headers.get("X-Goog-Upload-URL")
        if not upload_url:
            raise UpstreamError("Failed to start upload: response missing X-Goog-Upload-URL")
        return upload_url

    def _upload_bytes(self, client: httpx.Client, upload_url: str, data: bytes) -> None:
        """Step 2: send the whole payload and finalize the session."""
        resp = client.put(upload_url, headers=UPLOADER_HEADERS, content=data)
        if resp.status_code >= 400:
            raise UpstreamError(f"Failed to upload media: {resp.reason_phrase}", resp.status_code)

    def _download_token(self, client: httpx.Client, url: str, id_token: str) -> str:
        """Step 3: read the object's download token."""
        headers = {
            "content-type": "application/json; charset=UTF-8",
            "authorization": f"Bearer {id_token}",
        }
        resp = client.get(url, headers=headers)
        if resp.status_code >= 400:
            raise UpstreamError(f"Failed to get download token: {resp.reason_phrase}", resp.status_code)

        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamError("Failed to get download token: invalid response") from e
        if not isinstance(body, dict):
            raise UpstreamError("Failed to get download token: invalid response")

        token = body.get("downloadTokens")
        if not token:
            raise UpstreamError("Failed to get download token: response missing downloadTokens")
        return token

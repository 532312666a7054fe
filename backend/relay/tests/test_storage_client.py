"""Tests for the Firebase Storage resumable upload client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from relay.clients.storage import UPLOADER_HEADERS, StorageClient
from relay.core.errors import UpstreamError


def _response(status: int = 200, headers: dict | None = None, payload: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.reason_phrase = "OK" if status < 400 else "Forbidden"
    resp.headers = headers or {}
    resp.json.return_value = payload or {}
    return resp


@pytest.fixture
def storage():
    return StorageClient(base_url="https://storage.test", image_bucket="img-bucket", video_bucket="vid-bucket")


@pytest.fixture
def mock_http():
    """Patches httpx.Client; yields the client instance used inside the `with` block."""
    with patch("relay.clients.storage.httpx.Client") as mock_client_cls:
        mock_client = MagicMock()
        mock_client.__enter__.return_value = mock_client
        mock_client.__exit__.return_value = False
        mock_client_cls.return_value = mock_client

        mock_client.post.return_value = _response(headers={"X-Goog-Upload-URL": "https://upload.test/session/1"})
        mock_client.put.return_value = _response()
        mock_client.get.return_value = _response(payload={"downloadTokens": "tok-xyz"})
        yield mock_client


def test_image_upload_three_steps(storage, mock_http):
    with patch("relay.clients.storage.object_name", return_value="1700000000000_ab12cd34.webp"):
        url = storage.upload_image("uid-1", "id-token", b"webp-bytes")

    object_url = "https://storage.test/v0/b/img-bucket/o/users%2Fuid-1%2Fmoments%2Fthumbnails%2F1700000000000_ab12cd34.webp"
    assert url == f"{object_url}?alt=media&token=tok-xyz"

    # Step 1: session start
    args, kwargs = mock_http.post.call_args
    assert args[0] == object_url
    assert kwargs["params"] == {
        "uploadType": "resumable",
        "name": "users/uid-1/moments/thumbnails/1700000000000_ab12cd34.webp",
    }
    headers = kwargs["headers"]
    assert headers["authorization"] == "Bearer id-token"
    assert headers["x-goog-upload-command"] == "start"
    assert headers["x-goog-upload-content-length"] == str(len(b"webp-bytes"))
    assert headers["x-goog-upload-content-type"] == "image/webp"
    assert kwargs["json"] == {
        "name": "users/uid-1/moments/thumbnails/1700000000000_ab12cd34.webp",
        "contentType": "image/*",
        "bucket": "",
        "metadata": {"creator": "uid-1", "visibility": "private"},
    }

    # Step 2: bytes to the session URL
    args, kwargs = mock_http.put.call_args
    assert args[0] == "https://upload.test/session/1"
    assert kwargs["headers"] == UPLOADER_HEADERS
    assert kwargs["content"] == b"webp-bytes"

    # Step 3: metadata for the download token
    args, kwargs = mock_http.get.call_args
    assert args[0] == object_url
    assert kwargs["headers"]["authorization"] == "Bearer id-token"


def test_video_upload_uses_video_bucket_and_mime(storage, mock_http):
    url = storage.upload_video("uid-1", "id-token", b"\x00" * 32, "video/webm")

    assert url.startswith("https://storage.test/v0/b/vid-bucket/o/users%2Fuid-1%2Fmoments%2Fvideos%2F")
    assert ".webm?alt=media&token=tok-xyz" in url
    kwargs = mock_http.post.call_args[1]
    assert kwargs["headers"]["x-goog-upload-content-type"] == "video/webm"
    assert kwargs["json"]["contentType"] == "video/webm"


def test_start_failure_stops_flow(storage, mock_http):
    mock_http.post.return_value = _response(403)

    with pytest.raises(UpstreamError, match="Failed to start upload") as exc_info:
        storage.upload_image("uid-1", "bad-token", b"x")

    assert exc_info.value.status_code == 403
    mock_http.put.assert_not_called()
    mock_http.get.assert_not_called()


def test_missing_session_url(storage, mock_http):
    mock_http.post.return_value = _response(headers={})

    with pytest.raises(UpstreamError, match="X-Goog-Upload-URL"):
        storage.upload_image("uid-1", "id-token", b"x")
    mock_http.put.assert_not_called()


def test_upload_failure(storage, mock_http):
    mock_http.put.return_value = _response(500)

    with pytest.raises(UpstreamError, match="Failed to upload media") as exc_info:
        storage.upload_video("uid-1", "id-token", b"x")

    assert exc_info.value.status_code == 502
    mock_http.get.assert_not_called()


def test_missing_download_token(storage, mock_http):
    mock_http.get.return_value = _response(payload={"name": "x"})

    with pytest.raises(UpstreamError, match="downloadTokens"):
        storage.upload_video("uid-1", "id-token", b"x")


def test_non_json_token_response(storage, mock_http):
    resp = _response()
    resp.json.side_effect = json.JSONDecodeError("Expecting value", "<html>", 0)
    mock_http.get.return_value = resp

    with pytest.raises(UpstreamError, match="invalid response") as exc_info:
        storage.upload_image("uid-1", "id-token", b"x")

    assert exc_info.value.status_code == 502


def test_non_object_token_response(storage, mock_http):
    resp = _response()
    resp.json.return_value = ["downloadTokens"]
    mock_http.get.return_value = resp

    with pytest.raises(UpstreamError, match="invalid response"):
        storage.upload_video("uid-1", "id-token", b"x")


def test_network_error_wrapped(storage, mock_http):
    mock_http.put.side_effect = httpx.ConnectError("connection reset")

    with pytest.raises(UpstreamError, match="Storage request failed"):
        storage.upload_image("uid-1", "id-token", b"x")

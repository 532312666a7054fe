"""Exception types surfaced to the HTTP layer.

Every error carries the status code the error handler in ``relay.main``
responds with. Upstream failures are never retried.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UpstreamError(RelayError):
    """An external call (identity, storage, post creation) failed.

    4xx answers from upstream (bad password, expired id token) are forwarded
    as-is; anything else is reported as 502.
    """

    status_code = 502

    def __init__(self, message: str, upstream_status: int | None = None):
        status = upstream_status if upstream_status and 400 <= upstream_status < 500 else None
        super().__init__(message, status)
        self.upstream_status = upstream_status


class CredentialDecryptError(RelayError):
    """Encrypted login credentials could not be decrypted."""

    status_code = 400


class InvalidMediaError(RelayError):
    """Uploaded file is not decodable media of the expected kind."""

    status_code = 400


class MediaTooLargeError(RelayError):
    """Uploaded file exceeds the configured size limit."""

    status_code = 400


class TranscodeError(RelayError):
    """ffmpeg failed to convert a video or extract a thumbnail."""

    status_code = 500


class ConfigurationError(RelayError, RuntimeError):
    """A required setting (API key, binary path) is missing."""

    status_code = 500

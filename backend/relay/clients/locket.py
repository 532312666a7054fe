from __future__ import annotations

"""Locket API client: password login and moment creation.

Talks to two upstream endpoints:
- Firebase identity toolkit ``verifyPassword`` (email/password -> idToken)
- Locket ``postMomentV2`` (publishes a moment referencing uploaded media)

IMPORTANT:
- Every call is a single request; failures raise, nothing is retried
- Request headers and payloads mirror the iOS app; do not "clean them up"
- Never log passwords or id tokens
"""

from typing import Any

import requests

from relay.core.config import settings
from relay.core.errors import ConfigurationError, UpstreamError
from relay.core.logging import log
from relay.core.models import OverlayOptions
from relay.core.overlays import build_analytics_stub, build_overlays, md5_hex

LOGIN_HEADERS = {
    "Accept": "*/*",
    "Accept-Language": "en-US",
    "Content-Type": "application/json",
    "User-Agent": "FirebaseAuth.iOS/10.23.1 com.locket.Locket/1.82.0 iPhone/18.0 hw/iPhone12_1",
    "X-Client-Version": "iOS/FirebaseSDK/10.23.1/FirebaseCore-iOS",
    "X-Firebase-GMPID": "1:641029076083:ios:cc8eb46290d69b234fa609",
    "X-Ios-Bundle-Identifier": "com.locket.Locket",
}


class LocketClient:
    """Locket identity + moment API client."""

    def __init__(
        self,
        api_key: str | None = None,
        login_url: str | None = None,
        create_post_url: str | None = None,
        timeout_s: float | None = None,
    ):
        self.api_key = api_key or settings.locket_api_key
        self.login_url = login_url or settings.login_url
        self.create_post_url = create_post_url or settings.create_post_url
        self.timeout_s = timeout_s or settings.http_timeout_s

    def login(self, email: str, password: str) -> dict[str, Any]:
        """Exchange plaintext credentials for an id token.

        Args:
            email: Account email
            password: Account password

        Returns:
            Upstream response JSON verbatim (idToken, localId, refreshToken, ...)

        Raises:
            ConfigurationError: If LOCKET_API_KEY is not configured
            UpstreamError: If the identity endpoint rejects the login
        """
        if not self.api_key:
            raise ConfigurationError("LOCKET_API_KEY is required. Set LOCKET_API_KEY in .env to enable login.")

        payload = {
            "email": email,
            "password": password,
            "returnSecureToken": True,
            "clientType": "CLIENT_TYPE_IOS",
        }

        try:
            resp = requests.post(
                self.login_url,
                params={"key": self.api_key},
                headers=LOGIN_HEADERS,
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Login failed: {e}") from e

        if not resp.ok:
            log.warning(f"LOCKET_LOGIN_REJECTED status={resp.status_code}")
            raise UpstreamError(f"Login failed: {resp.reason}", resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("Login failed: invalid response") from e
        if not isinstance(data, dict):
            raise UpstreamError("Login failed: invalid response")

        log.info(f"LOCKET_LOGIN_OK local_id={data.get('localId')}")
        return data

    def create_image_post(
        self,
        id_token: str,
        thumbnail_url: str,
        overlay: OverlayOptions,
    ) -> dict[str, Any]:
        """Publish a photo moment.

        Args:
            id_token: Firebase id token of the posting user
            thumbnail_url: Download URL of the uploaded WebP
            overlay: Caption styling / music metadata

        Returns:
            Upstream response JSON

        Raises:
            UpstreamError: If the moment is rejected
        """
        data: dict[str, Any] = {
            "thumbnail_url": thumbnail_url,
            "overlays": build_overlays(overlay),
            "sent_to_all": True,
        }
        if overlay.caption:
            data["caption"] = overlay.caption

        return self._post_moment(id_token, {"data": data}, kind="image")

    def create_video_post(
        self,
        id_token: str,
        video_url: str,
        thumbnail_url: str,
        overlay: OverlayOptions,
    ) -> dict[str, Any]:
        """Publish a video moment.

        Args:
            id_token: Firebase id token of the posting user
            video_url: Download URL of the uploaded video
            thumbnail_url: Download URL of the uploaded first-frame thumbnail
            overlay: Caption styling / music metadata

        Returns:
            Upstream response JSON

        Raises:
            UpstreamError: If the moment is rejected
        """
        data: dict[str, Any] = {
            "thumbnail_url": thumbnail_url,
            "video_url": video_url,
            "md5": md5_hex(video_url),
            "recipients": [],
            "analytics": build_analytics_stub(),
            "sent_to_all": True,
            "overlays": build_overlays(overlay),
        }
        if overlay.caption:
            data["caption"] = overlay.caption

        return self._post_moment(id_token, {"data": data}, kind="video")

    def _post_moment(self, id_token: str, payload: dict[str, Any], kind: str) -> dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {id_token}",
        }

        try:
            resp = requests.post(
                self.create_post_url,
                headers=headers,
                json=payload,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise UpstreamError(f"Failed to create post: {e}") from e

        if not resp.ok:
            log.error(f"LOCKET_POST_FAILED kind={kind} status={resp.status_code} body={resp.text[:300]}")
            raise UpstreamError(f"Failed to create post: {resp.reason}", resp.status_code)

        log.info(f"LOCKET_POST_CREATED kind={kind} overlays={len(payload['data']['overlays'])}")
        try:
            return resp.json()
        except ValueError:
            return {}

"""
Zoom API Client with Server-to-Server OAuth authentication
"""

import base64
import logging
import threading
import time
import urllib.parse
from typing import Any

import requests

from recexplorer.config import derive_token_url
from recexplorer.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    MissingConfigurationError,
    RateLimitedError,
    TransportError,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class ZoomClient:
    """Client for the Zoom REST API with a process-wide, single-flight token cache.

    Every outbound call first asks :meth:`get_access_token` for a bearer token.
    The cached token is reused until ``expiry_margin`` seconds before it
    expires. When several worker threads find the token stale at the same
    time, only the first one performs the OAuth request; the others block on
    the refresh lock and pick up the token it stored.
    """

    def __init__(
        self,
        account_id: str | None,
        client_id: str,
        client_secret: str,
        *,
        base_url: str = "https://api.zoom.us/v2",
        token_url: str | None = None,
        expiry_margin: float = 60,
    ):
        self.account_id = account_id or ""
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.token_url = token_url.rstrip("/") if token_url else derive_token_url(base_url)
        self.expiry_margin = expiry_margin

        self._access_token: str | None = None
        self._token_expires_at: float = 0
        self._token_lock = threading.Lock()

    def __repr__(self) -> str:
        """String representation that excludes credentials"""
        return (
            f"ZoomClient("
            f"base_url={self.base_url!r}, "
            f"account_id_set={bool(self.account_id)}, "
            f"client_id_set={bool(self.client_id)}, "
            f"token_cached={bool(self._access_token)}"
            f")"
        )

    def _token_is_fresh(self, now: float) -> bool:
        return bool(self._access_token) and now < (self._token_expires_at - self.expiry_margin)

    def invalidate_token(self) -> None:
        """Drop the cached credential so the next call re-authenticates."""
        with self._token_lock:
            self._access_token = None
            self._token_expires_at = 0

    def get_access_token(self) -> str:
        """Return a valid bearer token, refreshing it at most once per expiry."""
        if self._token_is_fresh(time.time()):
            return str(self._access_token)

        with self._token_lock:
            # Another thread may have refreshed while we waited for the lock
            now = time.time()
            if self._token_is_fresh(now):
                return str(self._access_token)
            token, expires_in = self._request_token()
            self._access_token = token
            self._token_expires_at = now + expires_in
            logger.debug("Obtained new access token (expires in %ss)", expires_in)
            return token

    def _request_token(self) -> tuple[str, float]:
        if not self.account_id:
            raise MissingConfigurationError(
                "No Zoom account identifier configured",
                details="Set ZOOM_ACCOUNT_ID for Server-to-Server OAuth",
            )

        credentials = f"{self.client_id}:{self.client_secret}"
        encoded_credentials = base64.b64encode(credentials.encode()).decode()
        headers = {
            "Authorization": f"Basic {encoded_credentials}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        data = {"grant_type": "account_credentials", "account_id": self.account_id}

        try:
            response = requests.post(self.token_url, headers=headers, data=data, timeout=30)
        except requests.exceptions.Timeout:
            raise AuthenticationError(
                "Authentication timeout",
                details="Zoom OAuth server did not respond within 30 seconds",
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(
                "OAuth token request failed",
                details=f"Request error: {e}",
            ) from e

        if not response.ok:
            raise AuthenticationError(
                f"OAuth token request failed (HTTP {response.status_code})",
                details=response.text,
            )

        try:
            token_data = response.json()
        except ValueError as e:
            raise AuthenticationError(
                "Invalid OAuth response",
                details=f"Could not parse JSON response from Zoom OAuth server: {e}",
            ) from e

        if "access_token" not in token_data:
            raise AuthenticationError(
                "Invalid OAuth token response",
                details="Response did not contain required 'access_token' field",
            )

        return str(token_data["access_token"]), float(token_data.get("expires_in", 3600))

    @staticmethod
    def encode_uuid(uuid: str) -> str:
        """Double URL-encode meeting UUIDs (required when they contain / or //)"""
        return urllib.parse.quote(urllib.parse.quote(uuid, safe=""), safe="")

    @staticmethod
    def _retry_after(response: requests.Response, default: float) -> float:
        value = response.headers.get("Retry-After") if response.headers else None
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return default

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        retry_count: int = 3,
        backoff_factor: float = 1.0,
    ) -> dict[str, Any]:
        """Make an authenticated API request with retry logic.

        Returns the decoded JSON object, or an empty dict for bodiless 2xx
        responses (DELETE returns 204).

        Raises:
            TransportError: network failure or non-2xx status after retries
            MalformedResponseError: 2xx body that is not a JSON object
            AuthenticationError: 401 from the API (cached token is dropped)
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        from recexplorer import __version__

        for attempt in range(retry_count):
            headers = {
                "Authorization": f"Bearer {self.get_access_token()}",
                "Accept": "application/json",
                "User-Agent": f"recexplorer/{__version__}",
            }
            try:
                logger.debug("%s %s params=%s", method, endpoint, params)
                response = requests.request(
                    method, url, headers=headers, params=params, timeout=30
                )
            except (
                requests.exceptions.Timeout,
                requests.exceptions.ConnectionError,
                requests.exceptions.ChunkedEncodingError,
            ) as e:
                if attempt < retry_count - 1:
                    wait_time = backoff_factor * (2**attempt)
                    logger.warning(
                        f"Network error ({type(e).__name__}), retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{retry_count}): {e}"
                    )
                    time.sleep(wait_time)
                    continue
                raise TransportError(
                    f"Network request failed after retries: {type(e).__name__}",
                    details=str(e),
                ) from e

            status = response.status_code
            if status in RETRYABLE_STATUS:
                if attempt < retry_count - 1:
                    wait_time = backoff_factor * (2**attempt)
                    if status == 429:
                        wait_time = self._retry_after(response, wait_time)
                    logger.warning(
                        f"HTTP {status} from {endpoint}, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{retry_count})"
                    )
                    time.sleep(wait_time)
                    continue
                if status == 429:
                    raise RateLimitedError(
                        "Rate limit exceeded",
                        details="Too many requests to Zoom API. Please retry after some time.",
                    )

            text = response.text or ""
            if status == 401:
                self.invalidate_token()
                raise AuthenticationError(
                    "Authentication failed",
                    details="Check ZOOM_ACCOUNT_ID, ZOOM_CLIENT_ID, and ZOOM_CLIENT_SECRET",
                )
            if not 200 <= status < 300:
                raise TransportError(
                    f"Zoom API error (HTTP {status}) for {endpoint}",
                    details=text,
                    status_code=status,
                    body=text,
                )
            if not text.strip():
                return {}
            try:
                result = response.json()
            except ValueError as e:
                raise MalformedResponseError(
                    f"Zoom returned non-JSON response for {endpoint}",
                    details=str(e),
                    raw=text,
                ) from e
            if not isinstance(result, dict):
                raise MalformedResponseError(
                    f"Zoom returned unexpected JSON for {endpoint}",
                    details=f"Expected an object, got {type(result).__name__}",
                    raw=text,
                )
            return result

        raise TransportError("Max retries exceeded")

    @staticmethod
    def _window_params(
        from_date: str | None,
        to_date: str | None,
        page_size: int,
        next_page_token: str | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"page_size": page_size}
        if from_date:
            params["from"] = from_date
        if to_date:
            params["to"] = to_date
        if next_page_token:
            params["next_page_token"] = next_page_token
        return params

    def get_phone_recordings(
        self,
        from_date: str | None = None,
        to_date: str | None = None,
        page_size: int = 300,
        next_page_token: str | None = None,
    ) -> dict[str, Any]:
        """Get one page of account-wide Zoom Phone call recordings"""
        params = self._window_params(from_date, to_date, page_size, next_page_token)
        params["query_date_type"] = "start_time"
        return self._make_request("GET", "phone/recordings", params=params)

    def list_users(
        self,
        status: str = "active",
        page_size: int = 300,
        next_page_token: str | None = None,
    ) -> dict[str, Any]:
        """Get one page of account users"""
        params: dict[str, Any] = {"status": status, "page_size": page_size}
        if next_page_token:
            params["next_page_token"] = next_page_token
        return self._make_request("GET", "users", params=params)

    def get_user_recordings(
        self,
        user_id: str,
        from_date: str | None = None,
        to_date: str | None = None,
        page_size: int = 300,
        next_page_token: str | None = None,
    ) -> dict[str, Any]:
        """Get one page of a user's cloud meeting recordings"""
        params = self._window_params(from_date, to_date, page_size, next_page_token)
        params["trash"] = "false"
        endpoint = f"users/{urllib.parse.quote(user_id, safe='')}/recordings"
        return self._make_request("GET", endpoint, params=params)

    def get_contact_center_recordings(
        self,
        from_date: str | None = None,
        to_date: str | None = None,
        page_size: int = 300,
        next_page_token: str | None = None,
    ) -> dict[str, Any]:
        """Get one page of Contact Center recordings"""
        params = self._window_params(from_date, to_date, page_size, next_page_token)
        return self._make_request("GET", "contact_center/recordings", params=params)

    def get_meeting_analytics_summary(
        self, meeting_id: str, from_date: str | None = None, to_date: str | None = None
    ) -> dict[str, Any]:
        """Get daily view/download counts for a meeting's recordings"""
        params: dict[str, Any] = {}
        if from_date:
            params["from"] = from_date
        if to_date:
            params["to"] = to_date
        endpoint = f"meetings/{self.encode_uuid(meeting_id)}/recordings/analytics_summary"
        return self._make_request("GET", endpoint, params=params)

    def delete_phone_recording(self, recording_id: str) -> dict[str, Any]:
        """Delete a Zoom Phone call recording"""
        endpoint = f"phone/recordings/{urllib.parse.quote(recording_id, safe='')}"
        return self._make_request("DELETE", endpoint, retry_count=1)

    def trash_meeting_recordings(self, meeting_uuid: str) -> dict[str, Any]:
        """Move all recording files of a meeting instance to the trash"""
        endpoint = f"meetings/{self.encode_uuid(meeting_uuid)}/recordings"
        return self._make_request("DELETE", endpoint, params={"action": "trash"}, retry_count=1)

    def delete_contact_center_recording(self, recording_id: str) -> dict[str, Any]:
        """Delete a Contact Center recording"""
        endpoint = f"contact_center/recordings/{urllib.parse.quote(recording_id, safe='')}"
        return self._make_request("DELETE", endpoint, retry_count=1)

"""Directory API client with bearer-token authentication and 401 recovery."""

from __future__ import annotations

import json
import logging
from http.client import HTTPException
from typing import TYPE_CHECKING, Any
from urllib import request as urllib_request
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode

from box_quota.directory.models import USER_FIELDS, CredentialPair, DirectoryUser, Page

if TYPE_CHECKING:
    from box_quota.directory.auth import AuthCoordinator

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.box.com/2.0"
TOKEN_URL = "https://api.box.com/oauth2/token"
DEFAULT_PAGE_SIZE = 1000
DEFAULT_TIMEOUT = 60.0

HTTP_UNAUTHORIZED = 401


class DirectoryError(Exception):
    """Base class for directory client failures."""


class DirectoryApiError(DirectoryError):
    """Raised when a directory call fails with a non-2xx response or a network error.

    A status code of 0 means the request never produced an HTTP response.
    """

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Directory API error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


# Per-user failures are reported under this name by the orchestration layer.
RemoteCallError = DirectoryApiError


class AuthorizationExpired(DirectoryApiError):
    """Raised by the transport when the API answers 401 Unauthorized."""


class AuthorizationError(DirectoryError):
    """Raised when the session cannot be recovered after a 401."""

    def __init__(self, message: str = "Access token is no longer valid, perhaps it expired?") -> None:
        super().__init__(message)


def _send(
    method: str,
    url: str,
    *,
    token: str | None = None,
    data: bytes | None = None,
    content_type: str | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> Any:
    """Perform one HTTP request and decode the JSON response body.

    Raises:
        AuthorizationExpired: If the server answers 401.
        DirectoryApiError: For any other non-2xx status, a network failure or a
            body that is not JSON.
    """
    headers = {"Accept": "application/json"}
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"
    if content_type is not None:
        headers["Content-Type"] = content_type
    req = urllib_request.Request(url, data=data, headers=headers, method=method)
    try:
        with urllib_request.urlopen(req, timeout=timeout) as resp:
            status = resp.status
            body = resp.read()
    except HTTPError as exc:
        raw = exc.read()
        try:
            detail = json.loads(raw).get("message") or exc.reason
        except (ValueError, AttributeError):
            detail = exc.reason
        if exc.code == HTTP_UNAUTHORIZED:
            raise AuthorizationExpired(exc.code, str(detail)) from exc
        raise DirectoryApiError(exc.code, str(detail)) from exc
    except URLError as exc:
        raise DirectoryApiError(0, str(exc.reason)) from exc
    # Timeouts and dropped connections surface from getresponse()/read() unwrapped.
    except (OSError, HTTPException) as exc:
        raise DirectoryApiError(0, str(exc) or type(exc).__name__) from exc

    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError as exc:
        raise DirectoryApiError(status, "invalid JSON response") from exc


def refresh_credentials(
    refresh_token: str,
    client_id: str,
    client_secret: str,
    token_url: str = TOKEN_URL,
    timeout: float = DEFAULT_TIMEOUT,
) -> CredentialPair:
    """Exchange a refresh token for a new access/refresh token pair.

    Args:
        refresh_token: Current OAuth refresh token.
        client_id: Application client ID.
        client_secret: Application client secret.
        token_url: OAuth token endpoint.
        timeout: Socket timeout in seconds.

    Returns:
        The newly issued CredentialPair.

    Raises:
        DirectoryApiError: If the token endpoint rejects the request.
    """
    body = urlencode(
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        }
    ).encode("utf-8")
    result = _send(
        "POST",
        token_url,
        data=body,
        content_type="application/x-www-form-urlencoded",
        timeout=timeout,
    )
    try:
        return CredentialPair.from_dict(result)
    except (KeyError, TypeError) as exc:
        raise DirectoryApiError(0, "token response did not contain an access_token") from exc


class DirectoryClient:
    """Client for the enterprise user directory.

    The client never stores an access token itself: every call borrows the
    current one from the AuthCoordinator, and a 401 answer triggers one
    coordinated refresh followed by exactly one retry.
    """

    def __init__(
        self,
        auth: AuthCoordinator,
        base_url: str = API_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialise the directory client.

        Args:
            auth: Coordinator owning the live credential pair.
            base_url: API root, without a trailing slash.
            timeout: Socket timeout in seconds for each request.
        """
        self._auth = auth
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def list_users(self, offset: int, limit: int = DEFAULT_PAGE_SIZE) -> Page:
        """Fetch one page of enterprise users.

        Args:
            offset: Zero-based index of the first user to return.
            limit: Maximum number of users on the page.

        Returns:
            The Page at the requested offset.

        Raises:
            AuthorizationError: If the session cannot be recovered.
            DirectoryApiError: For any other failure.
        """
        query = urlencode({"limit": limit, "offset": offset, "fields": ",".join(USER_FIELDS)})
        result = self._request("GET", f"/users?{query}")
        try:
            return Page.from_dict(result)
        except (AttributeError, TypeError, ValueError) as exc:
            raise DirectoryApiError(0, f"unexpected user listing: {exc}") from exc

    def update_user_quota(self, user_id: str, quota_bytes: int) -> DirectoryUser:
        """Set a user's storage quota.

        Args:
            user_id: Directory ID of the user.
            quota_bytes: New quota in bytes; -1 means unlimited.

        Returns:
            The user snapshot after the update.

        Raises:
            AuthorizationError: If the session cannot be recovered.
            DirectoryApiError: For any other failure.
        """
        query = urlencode({"fields": ",".join(USER_FIELDS)})
        body = json.dumps({"id": user_id, "space_amount": quota_bytes}).encode("utf-8")
        result = self._request("PUT", f"/users/{quote(user_id, safe='')}?{query}", body)
        try:
            return DirectoryUser.from_dict(result)
        except (AttributeError, TypeError, ValueError) as exc:
            raise DirectoryApiError(0, f"unexpected user record: {exc}") from exc

    def _request(self, method: str, path: str, body: bytes | None = None) -> Any:
        token = self._auth.access_token
        try:
            return self._send(method, path, token, body)
        except AuthorizationExpired:
            logger.info("[_request] access token rejected; method:%s;path:%s", method, path)

        try:
            refreshed = self._auth.ensure_fresh(token)
        except DirectoryApiError as exc:
            logger.error("[_request] token refresh failed; status:%d", exc.status_code)
            raise AuthorizationError(f"Token refresh failed: {exc.message}") from exc
        if not refreshed:
            raise AuthorizationError()

        try:
            return self._send(method, path, self._auth.access_token, body)
        except AuthorizationExpired as exc:
            logger.error("[_request] access token rejected after refresh; path:%s", path)
            raise AuthorizationError() from exc

    def _send(self, method: str, path: str, token: str, body: bytes | None) -> Any:
        return _send(
            method,
            f"{self._base_url}{path}",
            token=token,
            data=body,
            content_type="application/json" if body is not None else None,
            timeout=self._timeout,
        )

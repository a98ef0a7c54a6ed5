"""Single-flight coordination of OAuth access token refreshes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from box_quota.directory.models import CredentialPair

logger = logging.getLogger(__name__)

Refresher = Callable[[str, str, str], CredentialPair]


class AuthCoordinator:
    """Owns the live credential pair and arbitrates refresh attempts.

    Any number of workers may observe the same expired access token at the
    same time. Only the first one to report a given token triggers a live
    refresh; the others are told to retry straight away. The refresh runs
    inside the lock, so a follower that reaches ``ensure_fresh`` after the
    leader has entered it waits for the new token to be installed.
    """

    def __init__(
        self,
        credentials: CredentialPair,
        refresher: Refresher,
        client_id: str | None = None,
        client_secret: str | None = None,
    ) -> None:
        """Initialise the coordinator.

        Args:
            credentials: Initial access token and optional refresh token.
            refresher: Callable performing the token exchange, called as
                ``refresher(refresh_token, client_id, client_secret)``.
            client_id: OAuth client ID; refresh is disabled without it.
            client_secret: OAuth client secret; refresh is disabled without it.
        """
        self._lock = threading.Lock()
        self._credentials = credentials
        self._refresher = refresher
        self._client_id = client_id
        self._client_secret = client_secret
        self._seen_tokens: set[str] = set()
        self._refresh_count = 0

    @property
    def access_token(self) -> str:
        with self._lock:
            return self._credentials.access_token

    @property
    def refresh_enabled(self) -> bool:
        return bool(self._credentials.refresh_token and self._client_id and self._client_secret)

    @property
    def refresh_count(self) -> int:
        """Number of live refresh calls made so far."""
        with self._lock:
            return self._refresh_count

    def ensure_fresh(self, observed_stale_token: str) -> bool:
        """Make sure a token newer than ``observed_stale_token`` is installed.

        Args:
            observed_stale_token: The access token the caller just saw rejected.

        Returns:
            False when no refresh is possible (missing refresh token, client
            ID or secret). True when the caller should retry with the
            current access token.

        Raises:
            DirectoryApiError: If the refresh call fails. Refreshes are not retried.
        """
        with self._lock:
            refresh_token = self._credentials.refresh_token
            if not (refresh_token and self._client_id and self._client_secret):
                logger.warning("[ensure_fresh] token refresh not configured")
                return False

            if observed_stale_token in self._seen_tokens:
                logger.debug("[ensure_fresh] token already refreshed; skipping")
                return True

            self._seen_tokens.add(observed_stale_token)
            self._refresh_count += 1
            logger.info("[ensure_fresh] refreshing access token; refresh_count:%d", self._refresh_count)
            fresh = self._refresher(refresh_token, self._client_id, self._client_secret)
            # Keep the old refresh token if the endpoint did not rotate it.
            self._credentials = CredentialPair(
                access_token=fresh.access_token,
                refresh_token=fresh.refresh_token or refresh_token,
            )
            return True

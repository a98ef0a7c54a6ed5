"""Unit tests for directory/auth.py — single-flight token refresh."""

import threading
import time
from unittest.mock import MagicMock

import pytest

from box_quota.directory.auth import AuthCoordinator
from box_quota.directory.client import DirectoryApiError
from box_quota.directory.models import CredentialPair


def _coordinator(
    refresh_token: str | None = "rt-1",
    client_id: str | None = "cid",
    client_secret: str | None = "secret",
    refresher: MagicMock | None = None,
) -> tuple[AuthCoordinator, MagicMock]:
    refresher = refresher or MagicMock(return_value=CredentialPair("at-2", "rt-2"))
    auth = AuthCoordinator(
        CredentialPair("at-1", refresh_token),
        refresher=refresher,
        client_id=client_id,
        client_secret=client_secret,
    )
    return auth, refresher


class TestEnsureFresh:
    @pytest.mark.parametrize(
        "missing",
        [
            {"refresh_token": None},
            {"client_id": None},
            {"client_secret": None},
            {"client_id": ""},
        ],
    )
    def test_returns_false_without_refresh_credentials(self, missing: dict) -> None:  # type: ignore[type-arg]
        auth, refresher = _coordinator(**missing)
        assert auth.refresh_enabled is False
        assert auth.ensure_fresh("at-1") is False
        refresher.assert_not_called()
        assert auth.access_token == "at-1"

    def test_refreshes_and_installs_new_pair(self) -> None:
        auth, refresher = _coordinator()
        assert auth.ensure_fresh("at-1") is True
        refresher.assert_called_once_with("rt-1", "cid", "secret")
        assert auth.access_token == "at-2"
        assert auth.refresh_count == 1

    def test_rotated_refresh_token_used_for_next_refresh(self) -> None:
        refresher = MagicMock(
            side_effect=[CredentialPair("at-2", "rt-2"), CredentialPair("at-3", "rt-3")]
        )
        auth, _ = _coordinator(refresher=refresher)
        auth.ensure_fresh("at-1")
        auth.ensure_fresh("at-2")
        assert refresher.call_args_list[1][0][0] == "rt-2"
        assert auth.access_token == "at-3"

    def test_keeps_refresh_token_when_not_rotated(self) -> None:
        refresher = MagicMock(
            side_effect=[CredentialPair("at-2", None), CredentialPair("at-3", None)]
        )
        auth, _ = _coordinator(refresher=refresher)
        auth.ensure_fresh("at-1")
        auth.ensure_fresh("at-2")
        assert refresher.call_args_list[1][0][0] == "rt-1"

    def test_seen_token_does_not_refresh_again(self) -> None:
        auth, refresher = _coordinator()
        assert auth.ensure_fresh("at-1") is True
        assert auth.ensure_fresh("at-1") is True
        refresher.assert_called_once()

    def test_refresh_failure_propagates_and_is_not_retried(self) -> None:
        refresher = MagicMock(side_effect=DirectoryApiError(400, "invalid_grant"))
        auth, _ = _coordinator(refresher=refresher)
        with pytest.raises(DirectoryApiError):
            auth.ensure_fresh("at-1")
        # The token stays marked as seen, so no second live call is made.
        assert auth.ensure_fresh("at-1") is True
        refresher.assert_called_once()
        assert auth.access_token == "at-1"

    def test_concurrent_callers_with_same_stale_token_refresh_once(self) -> None:
        calls = []

        def slow_refresh(refresh_token: str, client_id: str, client_secret: str) -> CredentialPair:
            calls.append(refresh_token)
            time.sleep(0.05)
            return CredentialPair("at-2", "rt-2")

        auth = AuthCoordinator(
            CredentialPair("at-1", "rt-1"), refresher=slow_refresh, client_id="c", client_secret="s"
        )
        callers = 8
        barrier = threading.Barrier(callers)
        results: list[bool] = []
        tokens: list[str] = []
        lock = threading.Lock()

        def caller() -> None:
            barrier.wait()
            ok = auth.ensure_fresh("at-1")
            with lock:
                results.append(ok)
                tokens.append(auth.access_token)

        threads = [threading.Thread(target=caller) for _ in range(callers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert calls == ["rt-1"]
        assert results == [True] * callers
        assert set(tokens) == {"at-2"}
        assert auth.refresh_count == 1

"""Application configuration loaded from environment variables and CLI overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ValidationError(ValueError):
    """Raised when startup configuration is malformed."""


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    ``access_token`` is the only required value. Automatic token refresh is
    enabled only when ``refresh_token``, ``client_id`` and ``client_secret``
    are all present.
    """

    # Required
    access_token: str

    # Optional refresh credentials
    refresh_token: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    # Run parameters
    quota: int = -1
    audit_log_path: str = "quota_update.log"

    # Domain constants, overridable via env
    api_base_url: str = "https://api.box.com/2.0"
    token_url: str = "https://api.box.com/oauth2/token"
    page_size: int = 1000
    max_concurrency: int = 5
    progress_batch_size: int = 50
    request_timeout: float = 60.0

    @property
    def refresh_enabled(self) -> bool:
        return bool(self.refresh_token and self.client_id and self.client_secret)


def parse_quota(value: str | int) -> int:
    """Parse a quota in bytes; -1 means unlimited.

    Raises:
        ValidationError: If the value is not a 64-bit integer or is below -1.
    """
    try:
        quota = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"quota must be a 64-bit number, got {value!r}") from exc
    if not INT64_MIN <= quota <= INT64_MAX:
        raise ValidationError(f"quota must be a 64-bit number, got {value!r}")
    if quota < -1:
        raise ValidationError(f"quota must be -1 (unlimited) or a byte count, got {quota}")
    return quota


def _positive_int(name: str, value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise ValidationError(f"{name} must be an integer, got {value!r}") from exc
    if parsed < 1:
        raise ValidationError(f"{name} must be at least 1, got {parsed}")
    return parsed


def load_config(
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppConfig:
    """Construct an AppConfig from environment variables and explicit overrides.

    Overrides (typically parsed command-line options) win over the
    environment; ``None`` override values are ignored.

    Environment variables:
        BOX_ACCESS_TOKEN: Access token with enterprise user management scope.
        BOX_REFRESH_TOKEN: Refresh token for automatic token refresh.
        BOX_CLIENT_ID: Application client ID for automatic token refresh.
        BOX_CLIENT_SECRET: Application client secret for automatic token refresh.
        BOX_QUOTA: Quota in bytes to apply (default: -1, unlimited).
        BOX_AUDIT_LOG: Path of the audit log file (default: quota_update.log).
        BOX_API_BASE_URL: Directory API root (default: https://api.box.com/2.0).
        BOX_TOKEN_URL: OAuth token endpoint (default: https://api.box.com/oauth2/token).
        BOX_PAGE_SIZE: Users per listing page (default: 1000).
        BOX_MAX_CONCURRENCY: Concurrent quota updates (default: 5).
        BOX_REQUEST_TIMEOUT: Per-request socket timeout in seconds (default: 60).

    Returns:
        Configured AppConfig instance.

    Raises:
        ValidationError: If the access token is missing or a value is malformed.
    """
    env = os.environ if environ is None else environ
    given = {k: v for k, v in (overrides or {}).items() if v is not None}

    def pick(key: str, env_name: str, default: Any = None) -> Any:
        if key in given:
            return given[key]
        return env.get(env_name, default)

    access_token = pick("access_token", "BOX_ACCESS_TOKEN")
    if not access_token:
        raise ValidationError("an access token is required (--token or BOX_ACCESS_TOKEN)")

    timeout_raw = str(pick("request_timeout", "BOX_REQUEST_TIMEOUT", "60"))
    try:
        request_timeout = float(timeout_raw)
    except ValueError as exc:
        raise ValidationError(f"request timeout must be a number, got {timeout_raw!r}") from exc

    return AppConfig(
        access_token=access_token,
        refresh_token=pick("refresh_token", "BOX_REFRESH_TOKEN") or None,
        client_id=pick("client_id", "BOX_CLIENT_ID") or None,
        client_secret=pick("client_secret", "BOX_CLIENT_SECRET") or None,
        quota=parse_quota(pick("quota", "BOX_QUOTA", "-1")),
        audit_log_path=pick("audit_log_path", "BOX_AUDIT_LOG", "quota_update.log"),
        api_base_url=pick("api_base_url", "BOX_API_BASE_URL", "https://api.box.com/2.0"),
        token_url=pick("token_url", "BOX_TOKEN_URL", "https://api.box.com/oauth2/token"),
        page_size=_positive_int("page size", str(pick("page_size", "BOX_PAGE_SIZE", "1000"))),
        max_concurrency=_positive_int(
            "max concurrency", str(pick("max_concurrency", "BOX_MAX_CONCURRENCY", "5"))
        ),
        request_timeout=request_timeout,
    )

"""Data models for directory users, listing pages and OAuth credentials."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Directory API JSON field names
FIELD_ID = "id"
FIELD_NAME = "name"
FIELD_LOGIN = "login"
FIELD_SPACE_AMOUNT = "space_amount"
FIELD_STATUS = "status"
FIELD_ENTRIES = "entries"
FIELD_TOTAL_COUNT = "total_count"
FIELD_ACCESS_TOKEN = "access_token"
FIELD_REFRESH_TOKEN = "refresh_token"

# Fields requested on every user listing and update
USER_FIELDS = (FIELD_ID, FIELD_NAME, FIELD_LOGIN, FIELD_SPACE_AMOUNT, FIELD_STATUS)

STATUS_ACTIVE = "active"

# The API reports an "unlimited" quota as 1E15 bytes rather than -1.
UNLIMITED_QUOTA = -1
WIRE_UNLIMITED_SENTINEL = 1_000_000_000_000_000


@dataclass(frozen=True)
class DirectoryUser:
    """Snapshot of one enterprise user as returned by the directory API."""

    id: str
    name: str
    login: str
    space_amount: int
    status: str

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> DirectoryUser:
        """Map a raw user object from the API to a DirectoryUser."""
        return cls(
            id=str(raw.get(FIELD_ID, "")),
            name=raw.get(FIELD_NAME, ""),
            login=raw.get(FIELD_LOGIN, ""),
            space_amount=int(raw.get(FIELD_SPACE_AMOUNT, 0)),
            status=raw.get(FIELD_STATUS, ""),
        )


@dataclass(frozen=True)
class Page:
    """One page of the paginated user listing.

    ``total_count`` is the enterprise-wide user count at fetch time, not
    the number of entries on this page.
    """

    entries: tuple[DirectoryUser, ...]
    total_count: int

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Page:
        entries = tuple(DirectoryUser.from_dict(e) for e in raw.get(FIELD_ENTRIES) or [])
        return cls(entries=entries, total_count=int(raw.get(FIELD_TOTAL_COUNT, 0)))


@dataclass(frozen=True)
class CredentialPair:
    """Access/refresh token pair issued by the OAuth token endpoint."""

    access_token: str
    refresh_token: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> CredentialPair:
        return cls(
            access_token=raw[FIELD_ACCESS_TOKEN],
            refresh_token=raw.get(FIELD_REFRESH_TOKEN),
        )

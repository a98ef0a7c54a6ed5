"""Quota update decision and apply step for a single directory user."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from box_quota.directory.client import RemoteCallError
from box_quota.directory.models import UNLIMITED_QUOTA, WIRE_UNLIMITED_SENTINEL, DirectoryUser

if TYPE_CHECKING:
    from box_quota.directory.client import DirectoryClient

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("box_quota.audit")


class QuotaOutcome(enum.Enum):
    SKIPPED = "skipped"
    UPDATED = "updated"
    FAILED = "failed"


def effective_target(target: int) -> int:
    """Translate the unlimited marker (-1) to the value the API reports."""
    return WIRE_UNLIMITED_SENTINEL if target == UNLIMITED_QUOTA else target


def needs_update(user: DirectoryUser, target: int) -> bool:
    """Return True for active users whose quota differs from the target."""
    return user.is_active and user.space_amount != effective_target(target)


def apply_quota(client: DirectoryClient, user: DirectoryUser, target: int) -> QuotaOutcome:
    """Bring one user's quota in line with ``target``.

    The update is sent with the raw target; the API translates -1 itself.
    Every attempted update produces one audit record of the form
    ``login,name,previous_quota,new_quota`` (or ``Error: ...`` in place of
    the new quota).

    Args:
        client: Directory client used for the update call.
        user: Snapshot of the user from the current page.
        target: Desired quota in bytes, -1 for unlimited.

    Returns:
        The outcome of the attempt.

    Raises:
        AuthorizationError: If the session is no longer usable.
    """
    if not needs_update(user, target):
        logger.debug(
            "[apply_quota] no update needed; login:%s;status:%s;space_amount:%d",
            user.login,
            user.status,
            user.space_amount,
        )
        return QuotaOutcome.SKIPPED

    try:
        updated = client.update_user_quota(user.id, target)
    except RemoteCallError as exc:
        audit_logger.info("%s,%s,%d,Error: %s", user.login, user.name, user.space_amount, exc)
        return QuotaOutcome.FAILED

    audit_logger.info(
        "%s,%s,%d,%d", user.login, user.name, user.space_amount, updated.space_amount
    )
    return QuotaOutcome.UPDATED

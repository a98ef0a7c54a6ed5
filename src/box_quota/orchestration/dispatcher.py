"""Bounded-concurrency processing of one page of users."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING

from box_quota.directory.client import AuthorizationError
from box_quota.orchestration.quota import QuotaOutcome, apply_quota

if TYPE_CHECKING:
    from box_quota.directory.client import DirectoryClient
    from box_quota.directory.models import DirectoryUser
    from box_quota.orchestration.progress import ProgressReporter

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 5


class CancellationFlag:
    """Run-wide stop signal. Once set it is never cleared."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class PageResult:
    """Aggregate outcome of one dispatched page."""

    launched: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    auth_error: AuthorizationError | None = None

    @property
    def fatal(self) -> bool:
        return self.auth_error is not None


@dataclass(frozen=True)
class _UnitResult:
    outcome: QuotaOutcome | None
    auth_error: AuthorizationError | None = None


class WorkerDispatcher:
    """Runs evaluate-and-update units for a page with at most K in flight.

    Cancellation is cooperative: once the shared flag is set no new unit is
    launched, but units that already hold a slot run to completion.
    """

    def __init__(
        self,
        client: DirectoryClient,
        reporter: ProgressReporter,
        cancellation: CancellationFlag,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        """Initialise the dispatcher.

        Args:
            client: Directory client shared by all units.
            reporter: Progress reporter notified of each successful unit.
            cancellation: Run-wide cancellation flag.
            max_concurrency: Number of execution slots (K).
        """
        self._client = client
        self._reporter = reporter
        self._cancellation = cancellation
        self._max_concurrency = max_concurrency

    def dispatch(self, users: Iterable[DirectoryUser], target: int) -> PageResult:
        """Process every user of a page and wait for all launched units.

        Args:
            users: Entries of the current page, in page order.
            target: Desired quota in bytes, -1 for unlimited.

        Returns:
            PageResult with per-outcome counts and the AuthorizationError, if any.
        """
        result = PageResult()
        slots = threading.BoundedSemaphore(self._max_concurrency)
        futures: list[Future[_UnitResult]] = []

        with ThreadPoolExecutor(
            max_workers=self._max_concurrency, thread_name_prefix="quota-unit"
        ) as executor:
            for user in users:
                if self._cancellation.cancelled:
                    break
                slots.acquire()
                # The flag may have flipped while this thread waited for a slot.
                if self._cancellation.cancelled:
                    slots.release()
                    break
                futures.append(executor.submit(self._run_unit, user, target, slots))
        # Leaving the executor block joins every launched unit.

        result.launched = len(futures)
        for future in futures:
            unit = future.result()
            if unit.auth_error is not None:
                if result.auth_error is None:
                    result.auth_error = unit.auth_error
                continue
            if unit.outcome is QuotaOutcome.UPDATED:
                result.updated += 1
            elif unit.outcome is QuotaOutcome.SKIPPED:
                result.skipped += 1
            else:
                result.failed += 1

        if self._cancellation.cancelled:
            logger.warning(
                "[dispatch] page cut short by cancellation; launched:%d", result.launched
            )
        return result

    def _run_unit(
        self, user: DirectoryUser, target: int, slots: threading.BoundedSemaphore
    ) -> _UnitResult:
        try:
            outcome = apply_quota(self._client, user, target)
            if outcome is QuotaOutcome.FAILED:
                logger.warning("[_run_unit] quota update failed; login:%s", user.login)
            else:
                self._reporter.report()
            return _UnitResult(outcome=outcome)
        except AuthorizationError as exc:
            logger.error("[_run_unit] authorization lost; login:%s", user.login)
            self._cancellation.cancel()
            return _UnitResult(outcome=None, auth_error=exc)
        finally:
            slots.release()

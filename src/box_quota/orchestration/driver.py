"""Pagination driver: walks the user directory and applies the quota page by page."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from box_quota.directory.auth import AuthCoordinator
from box_quota.directory.client import (
    DEFAULT_PAGE_SIZE,
    AuthorizationError,
    DirectoryClient,
    DirectoryError,
    refresh_credentials,
)
from box_quota.directory.models import CredentialPair
from box_quota.orchestration.dispatcher import CancellationFlag, WorkerDispatcher
from box_quota.orchestration.progress import ProgressReporter

if TYPE_CHECKING:
    from typing import TextIO

    from box_quota.config import AppConfig

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Summary of one full pass over the directory."""

    pages_fetched: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    completed: int = 0
    total_count: int = 0
    error: DirectoryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PaginationDriver:
    """Fetches pages one at a time and hands each to the dispatcher.

    A page is fully processed before the next one is requested. The run
    stops when the offset reaches the reported total, when a page comes
    back empty, or when the run is cancelled.
    """

    def __init__(
        self,
        client: DirectoryClient,
        dispatcher: WorkerDispatcher,
        reporter: ProgressReporter,
        cancellation: CancellationFlag,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._client = client
        self._dispatcher = dispatcher
        self._reporter = reporter
        self._cancellation = cancellation
        self._page_size = page_size

    def run(self, target: int) -> RunResult:
        """Apply ``target`` to every user in the directory.

        Args:
            target: Desired quota in bytes, -1 for unlimited.

        Returns:
            RunResult with per-outcome totals. ``error`` holds the failure
            that stopped the run early, if any.
        """
        logger.info("[run] starting quota update; target:%d", target)
        result = RunResult()
        offset = 0

        while not self._cancellation.cancelled:
            try:
                page = self._client.list_users(offset, self._page_size)
            except AuthorizationError as exc:
                self._cancellation.cancel()
                result.error = exc
                break
            except DirectoryError as exc:
                logger.error("[run] page fetch failed; offset:%d", offset)
                result.error = exc
                break

            result.pages_fetched += 1
            result.total_count = page.total_count
            self._reporter.set_total(page.total_count)
            count = len(page.entries)
            offset += count
            logger.info(
                "[run] fetched page; offset:%d;count:%d;total_count:%d",
                offset,
                count,
                page.total_count,
            )

            page_result = self._dispatcher.dispatch(page.entries, target)
            result.updated += page_result.updated
            result.skipped += page_result.skipped
            result.failed += page_result.failed
            if page_result.fatal:
                result.error = page_result.auth_error
                break

            if offset == page.total_count or count == 0:
                break

        result.completed = self._reporter.completed
        if result.error is not None:
            logger.error("[run] quota update aborted; error:%s", result.error)
        logger.info(
            "[run] quota update finished; pages:%d;updated:%d;skipped:%d;failed:%d",
            result.pages_fetched,
            result.updated,
            result.skipped,
            result.failed,
        )
        return result


def quota_updater_from_config(
    config: AppConfig, stream: TextIO | None = None
) -> PaginationDriver:
    """Construct a fully wired PaginationDriver from application configuration.

    Builds the run-scoped state (credentials, progress counters,
    cancellation flag) once and passes it to each component.

    Args:
        config: Application configuration instance.
        stream: Destination of the progress line (stdout when None).

    Returns:
        Configured PaginationDriver instance.
    """
    refresher = functools.partial(
        refresh_credentials, token_url=config.token_url, timeout=config.request_timeout
    )
    auth = AuthCoordinator(
        CredentialPair(config.access_token, config.refresh_token),
        refresher=refresher,
        client_id=config.client_id,
        client_secret=config.client_secret,
    )
    client = DirectoryClient(auth, base_url=config.api_base_url, timeout=config.request_timeout)
    reporter = ProgressReporter(batch_size=config.progress_batch_size, stream=stream)
    cancellation = CancellationFlag()
    dispatcher = WorkerDispatcher(
        client, reporter, cancellation, max_concurrency=config.max_concurrency
    )
    return PaginationDriver(client, dispatcher, reporter, cancellation, page_size=config.page_size)

"""Thread-safe throughput reporting."""

from __future__ import annotations

import logging
import sys
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TextIO

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


@dataclass(frozen=True)
class ProgressSnapshot:
    completed: int
    total: int
    elapsed_seconds: float
    rate: float

    def format_line(self) -> str:
        hours, rest = divmod(int(self.elapsed_seconds), 3600)
        minutes, seconds = divmod(rest, 60)
        return (
            f"\r{self.completed:6}/{self.total:6} "
            f"Elapsed: {hours:02}:{minutes:02}:{seconds:02}  "
            f"Rate: {self.rate:.1f}/sec   "
        )


class ProgressReporter:
    """Counts completed units and prints a progress line every batch.

    Only updated or already-compliant users are reported; users whose
    update failed are not, so ``completed`` can stay below ``total``.
    The counter, the total and the batch timestamp are only touched while
    holding the reporter's lock.
    """

    def __init__(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        stream: TextIO | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._lock = threading.Lock()
        self._batch_size = batch_size
        self._stream = stream if stream is not None else sys.stdout
        self._clock = clock
        self._start = clock()
        self._last_batch = self._start
        self._completed = 0
        self._total = 0

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = total

    def report(self) -> ProgressSnapshot | None:
        """Record one completed unit.

        Returns:
            The snapshot written to the stream when this completion closes a
            batch, otherwise None.
        """
        with self._lock:
            self._completed += 1
            if self._completed % self._batch_size:
                return None

            now = self._clock()
            since_last = max(now - self._last_batch, 1.0)
            snapshot = ProgressSnapshot(
                completed=self._completed,
                total=self._total,
                elapsed_seconds=now - self._start,
                rate=self._batch_size / since_last,
            )
            self._last_batch = now
            self._stream.write(snapshot.format_line())
            self._stream.flush()
            logger.debug(
                "[report] batch complete; completed:%d;total:%d;rate:%.1f",
                snapshot.completed,
                snapshot.total,
                snapshot.rate,
            )
            return snapshot

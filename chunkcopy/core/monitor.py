"""
ChunkCopy Progress Monitor

Periodic, read-only sampler of the job queue. Ticks are driven by the
coordinator loop so sampling never interleaves with a queue mutation.
"""

import logging
import time
from typing import Callable, Optional

from chunkcopy.core.jobs import JobQueue
from chunkcopy.core.types import ProcessInfo
from chunkcopy.core.utils import safe_print

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 10.0


def report_process_info(info: ProcessInfo) -> None:
    """Print a progress block for the run."""
    safe_print(
        f"📊 {info.source_table} -> {info.target_table} | "
        f"jobs: {info.count_of_jobs:,} (limit {info.limit_per_job:,}, workers {info.count_of_workers}) | "
        f"completed: {info.count_of_completed_jobs:,} | "
        f"errors: {info.count_of_jobs_with_error:,} | "
        f"remaining: {info.count_of_remaining_jobs:,}"
    )
    safe_print(
        f"   records to migrate: {info.count_of_records_to_migrate:,} | "
        f"already in target: {info.count_of_migrated_records:,} | "
        f"inserted this run: {info.count_of_inserted_records:,}"
    )


class ProgressMonitor:
    """Samples aggregate job counts every interval seconds until nothing remains."""

    def __init__(
        self,
        queue: JobQueue,
        process_info: ProcessInfo,
        interval: float = DEFAULT_INTERVAL,
        reporter: Optional[Callable[[ProcessInfo], None]] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.queue = queue
        self.process_info = process_info
        self.interval = interval
        self.reporter = reporter or report_process_info
        self.clock = clock
        self.stopped = False
        self.ticks = 0
        self._next_due = clock() + interval

    def sample(self) -> ProcessInfo:
        """Refresh the job counters of process_info from the queue."""
        info = self.process_info
        info.count_of_jobs = len(self.queue)
        info.count_of_completed_jobs = self.queue.completed
        info.count_of_jobs_with_error = self.queue.errored
        info.count_of_remaining_jobs = (
            info.count_of_jobs - info.count_of_completed_jobs - info.count_of_jobs_with_error
        )
        return info

    def tick(self) -> bool:
        """Sample and report once. Returns False once the monitor has stopped."""
        info = self.sample()
        self.ticks += 1
        self.reporter(info)
        if info.count_of_remaining_jobs == 0:
            self.stopped = True
        return not self.stopped

    def maybe_tick(self) -> None:
        if self.stopped:
            return
        now = self.clock()
        if now >= self._next_due:
            self.tick()
            self._next_due = now + self.interval

    def finish(self) -> ProcessInfo:
        """Emit a last report unless the monitor already reported zero remaining."""
        if not self.stopped:
            self.tick()
        return self.sample()

"""
ChunkCopy Process Pool Coordinator

Dispatches chunk jobs to at most N worker processes and tracks their status.

All queue mutations happen on the coordinator's own thread, inside its event
handlers (status message, worker termination, monitor tick), so the job queue
needs no locking. Workers only ever send StatusMessage values over a
multiprocessing SimpleQueue, whose put() has written the message to the pipe
by the time it returns.
"""

import logging
import multiprocessing
import time
from typing import Callable, List, Optional

from chunkcopy.core.exceptions import ValidationError
from chunkcopy.core.jobs import JobQueue
from chunkcopy.core.monitor import ProgressMonitor
from chunkcopy.core.types import JobDescriptor, JobStatus, MigrationConfig, StatusMessage, WorkerHandle
from chunkcopy.core.worker import EXIT_SUCCESS, execute_chunk

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.5
EVENT_POLL_STEP = 0.01


class ProcessPoolCoordinator:
    """
    Owns the job queue for one run and the pool of worker processes.

    Args:
        queue: Planned jobs
        config: Migration settings handed to every worker
        monitor: Optional progress monitor ticked from the control loop
        worker_target: Process target, called as worker_target(job, config, status_queue)
        context: multiprocessing context (defaults to the platform default)
        poll_interval: Seconds to block waiting for a status message per loop iteration
    """

    def __init__(
        self,
        queue: JobQueue,
        config: MigrationConfig,
        monitor: Optional[ProgressMonitor] = None,
        worker_target: Callable = execute_chunk,
        context=None,
        poll_interval: float = DEFAULT_POLL_INTERVAL
    ):
        if config.workers <= 0:
            raise ValidationError(f"Number of workers must be greater than zero, got {config.workers}")

        self.queue = queue
        self.config = config
        self.monitor = monitor
        self.worker_target = worker_target
        self.context = context or multiprocessing.get_context()
        self.poll_interval = poll_interval

        self.events = self.context.SimpleQueue()
        self.workers: List[WorkerHandle] = []

        self.dispatch_count = 0
        self.replacement_count = 0
        self.max_active_workers = 0
        self.failed_worker_exits = 0
        self.inserted_records = 0

    # -- dispatch -----------------------------------------------------------

    def _dispatch(self, job: JobDescriptor) -> WorkerHandle:
        process = self.context.Process(
            target=self.worker_target,
            args=(job, self.config, self.events),
            name=f"chunkcopy-job-{job.index}",
        )
        process.start()

        handle = WorkerHandle(job_index=job.index, process=process)
        self.workers.append(handle)
        self.dispatch_count += 1
        self.max_active_workers = max(self.max_active_workers, len(self.workers))
        logger.debug("Dispatched job %s (offset %s) to process %s", job.index, job.offset, process.pid)
        return handle

    def dispatch_next(self) -> Optional[WorkerHandle]:
        """Assign the next unassigned job, if any, and start a worker for it."""
        job = self.queue.assign()
        if job is None:
            return None
        return self._dispatch(job)

    def start(self) -> int:
        """Dispatch the initial min(N, count_of_jobs) workers."""
        started = 0
        for _ in range(self.config.workers):
            if self.dispatch_next() is None:
                if started == 0:
                    logger.info("No jobs in queue")
                break
            started += 1
        return started

    # -- events -------------------------------------------------------------

    def handle_status(self, message: StatusMessage) -> None:
        try:
            self.queue.apply_status(message.index, message.status)
        except ValidationError as e:
            logger.warning("Ignoring status message %s: %s", message, e.message)
            return
        if message.status is JobStatus.COMPLETED and message.record_count:
            self.inserted_records += message.record_count

    def handle_termination(self, handle: WorkerHandle) -> None:
        """React to a worker exit: log failures, then refill the freed slot."""
        exitcode = handle.process.exitcode
        handle.process.join()
        if handle in self.workers:
            self.workers.remove(handle)

        if exitcode != EXIT_SUCCESS:
            self.failed_worker_exits += 1
            job = self.queue[handle.job_index]
            logger.critical(
                "There is a critical error with worker %s (job %s, exit code %s, last status %s)",
                handle.process.pid, handle.job_index, exitcode,
                job.status.value if job.status else None
            )
            if job.status is None or not job.status.is_terminal:
                logger.warning("Job %s at offset %s is left unfinished", job.index, job.offset)

        if self.dispatch_next() is not None:
            self.replacement_count += 1
        elif not self.workers:
            logger.info(
                "All jobs have been processed: %s completed, %s with error",
                self.queue.completed, self.queue.errored
            )

    def _next_event(self, block: bool) -> Optional[StatusMessage]:
        if block:
            deadline = time.monotonic() + self.poll_interval
            while self.events.empty():
                if time.monotonic() >= deadline:
                    return None
                time.sleep(min(EVENT_POLL_STEP, self.poll_interval))
        elif self.events.empty():
            return None
        return self.events.get()

    def drain_events(self, block: bool = False) -> int:
        """Apply all pending status messages; optionally wait for the first one."""
        handled = 0
        message = self._next_event(block)
        while message is not None:
            self.handle_status(message)
            handled += 1
            message = self._next_event(False)
        return handled

    def reap(self) -> int:
        """Handle every worker that has exited since the last call."""
        exited = [handle for handle in self.workers if handle.process.exitcode is not None]
        if not exited:
            return 0
        # messages sent before exit are already in the pipe; apply them first
        self.drain_events()
        for handle in exited:
            self.handle_termination(handle)
        return len(exited)

    # -- loop ---------------------------------------------------------------

    def is_running(self) -> bool:
        return bool(self.workers) or self.queue.has_unassigned()

    def run(self) -> JobQueue:
        """Run the control loop until no job is unassigned and every worker has exited."""
        if len(self.queue) == 0:
            return self.queue

        self.start()
        while self.is_running():
            self.drain_events(block=True)
            self.reap()
            if self.monitor is not None:
                self._sync_progress()
                self.monitor.maybe_tick()

        self.drain_events()
        self.events.close()
        if self.monitor is not None:
            self._sync_progress()
        return self.queue

    def _sync_progress(self) -> None:
        info = self.monitor.process_info
        info.count_of_inserted_records = self.inserted_records
        info.count_of_failed_workers = self.failed_worker_exits

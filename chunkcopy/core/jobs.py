"""
ChunkCopy Job Queue

Ordered job descriptors for one run. The queue has a single writer: the
coordinator's control loop. Workers never touch it; they send status messages
that the coordinator applies here.
"""

import logging
from typing import Dict, Iterator, List, Optional, Union

from chunkcopy.core.exceptions import ValidationError
from chunkcopy.core.types import JobDescriptor, JobStatus

logger = logging.getLogger(__name__)


def _coerce_status(status: Union[JobStatus, str]) -> JobStatus:
    if isinstance(status, JobStatus):
        return status
    try:
        return JobStatus(status)
    except ValueError:
        valid = [s.value for s in JobStatus]
        raise ValidationError(f"Invalid job status '{status}'. Valid statuses: {valid}")


class JobQueue:
    """Job descriptors in offset order, plus the status transitions applied to them."""

    def __init__(self, jobs: Optional[List[JobDescriptor]] = None):
        self._jobs: List[JobDescriptor] = list(jobs or [])

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[JobDescriptor]:
        return iter(self._jobs)

    def __getitem__(self, index: int) -> JobDescriptor:
        return self._jobs[index]

    def _get(self, index: int) -> JobDescriptor:
        if not 0 <= index < len(self._jobs):
            raise ValidationError(f"Job index {index} is out of range (0..{len(self._jobs) - 1})")
        return self._jobs[index]

    def next_unassigned(self) -> Optional[JobDescriptor]:
        for job in self._jobs:
            if job.status is None:
                return job
        return None

    def has_unassigned(self) -> bool:
        return self.next_unassigned() is not None

    def assign(self) -> Optional[JobDescriptor]:
        """Select the first unassigned job and mark it Pending."""
        job = self.next_unassigned()
        if job is not None:
            job.status = JobStatus.PENDING
        return job

    def mark_processing(self, index: int) -> None:
        self._get(index).status = JobStatus.PROCESSING

    def mark_terminal(self, index: int, status: JobStatus) -> None:
        if not status.is_terminal:
            raise ValidationError(f"Status '{status.value}' is not terminal")
        self._get(index).status = status

    def apply_status(self, index: int, status: Union[JobStatus, str]) -> None:
        """Overwrite a job's status with the one reported by its worker."""
        status = _coerce_status(status)
        if status is JobStatus.PROCESSING:
            self.mark_processing(index)
        elif status.is_terminal:
            self.mark_terminal(index, status)
        else:
            self._get(index).status = status

    def count(self, status: Optional[JobStatus]) -> int:
        return sum(1 for job in self._jobs if job.status == status)

    @property
    def completed(self) -> int:
        return self.count(JobStatus.COMPLETED)

    @property
    def errored(self) -> int:
        return self.count(JobStatus.ERROR)

    @property
    def remaining(self) -> int:
        return len(self._jobs) - self.completed - self.errored

    def counts(self) -> Dict[str, int]:
        return {
            'total': len(self._jobs),
            'unassigned': self.count(None),
            'pending': self.count(JobStatus.PENDING),
            'processing': self.count(JobStatus.PROCESSING),
            'completed': self.completed,
            'errored': self.errored,
            'remaining': self.remaining,
        }

    def jobs_with_status(self, status: Optional[JobStatus]) -> List[JobDescriptor]:
        return [job for job in self._jobs if job.status == status]

"""Tests for the job queue."""

import pytest

from chunkcopy.core.exceptions import ValidationError
from chunkcopy.core.jobs import JobQueue
from chunkcopy.core.planner import plan_jobs
from chunkcopy.core.types import JobStatus


@pytest.fixture
def queue():
    return plan_jobs(50, 10, ['name'], ['name__c'])


def assert_accounted_for(queue):
    counts = queue.counts()
    in_flight = counts['unassigned'] + counts['pending'] + counts['processing']
    assert counts['completed'] + counts['errored'] + in_flight == counts['total']
    assert counts['remaining'] == in_flight


class TestJobQueue:
    """Test cases for JobQueue."""

    def test_assign_in_offset_order(self, queue):
        first = queue.assign()
        second = queue.assign()

        assert (first.index, second.index) == (0, 1)
        assert first.status is JobStatus.PENDING
        assert queue.next_unassigned().index == 2

    def test_assign_exhausted(self):
        queue = plan_jobs(10, 10, [], [])
        queue.assign()

        assert queue.assign() is None
        assert not queue.has_unassigned()

    def test_apply_status_overwrites(self, queue):
        queue.assign()
        queue.apply_status(0, JobStatus.PROCESSING)
        queue.apply_status(0, "Completed")

        assert queue[0].status is JobStatus.COMPLETED
        assert queue.completed == 1

    def test_mark_processing_and_terminal(self, queue):
        queue.assign()
        queue.mark_processing(0)
        assert queue[0].status is JobStatus.PROCESSING

        queue.mark_terminal(0, JobStatus.ERROR)
        assert queue[0].status is JobStatus.ERROR
        assert queue.remaining == 4

    def test_mark_terminal_rejects_non_terminal_status(self, queue):
        with pytest.raises(ValidationError):
            queue.mark_terminal(0, JobStatus.PENDING)

    def test_apply_status_invalid(self, queue):
        with pytest.raises(ValidationError):
            queue.apply_status(0, "Done")

    def test_apply_status_out_of_range(self, queue):
        with pytest.raises(ValidationError):
            queue.apply_status(99, JobStatus.COMPLETED)

    def test_counts_invariant_through_lifecycle(self, queue):
        assert_accounted_for(queue)
        for job in list(queue):
            queue.assign()
            assert_accounted_for(queue)
            queue.apply_status(job.index, JobStatus.PROCESSING)
            assert_accounted_for(queue)
            queue.apply_status(job.index, JobStatus.ERROR if job.index == 3 else JobStatus.COMPLETED)
            assert_accounted_for(queue)

        assert queue.counts() == {
            'total': 5,
            'unassigned': 0,
            'pending': 0,
            'processing': 0,
            'completed': 4,
            'errored': 1,
            'remaining': 0,
        }

    def test_jobs_with_status(self, queue):
        queue.assign()
        queue.apply_status(0, JobStatus.ERROR)

        assert [job.index for job in queue.jobs_with_status(JobStatus.ERROR)] == [0]
        assert len(queue.jobs_with_status(None)) == 4

    def test_empty_queue(self):
        queue = JobQueue()

        assert len(queue) == 0
        assert queue.remaining == 0
        assert queue.assign() is None

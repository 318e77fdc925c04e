"""Tests for the progress monitor."""

import pytest

from chunkcopy.core.monitor import ProgressMonitor, report_process_info
from chunkcopy.core.planner import plan_jobs
from chunkcopy.core.types import JobStatus, ProcessInfo


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def job_queue():
    return plan_jobs(30, 10, ['name'], ['name__c'])


@pytest.fixture
def process_info():
    return ProcessInfo(
        source_table="account",
        target_table="account__c",
        limit_per_job=10,
        count_of_records_to_migrate=30,
        count_of_workers=2,
        count_of_jobs=3,
        count_of_remaining_jobs=3,
    )


class TestProgressMonitor:
    """Test cases for ProgressMonitor."""

    def test_sample_counts(self, job_queue, process_info):
        monitor = ProgressMonitor(job_queue, process_info, reporter=lambda info: None)
        job_queue.assign()
        job_queue.apply_status(0, JobStatus.COMPLETED)
        job_queue.assign()
        job_queue.apply_status(1, JobStatus.ERROR)

        info = monitor.sample()

        assert info.count_of_completed_jobs == 1
        assert info.count_of_jobs_with_error == 1
        assert info.count_of_remaining_jobs == 1

    def test_ticks_on_interval(self, job_queue, process_info):
        clock = FakeClock()
        reports = []
        monitor = ProgressMonitor(job_queue, process_info, interval=10, reporter=reports.append, clock=clock)

        monitor.maybe_tick()
        clock.now = 9.9
        monitor.maybe_tick()
        assert reports == []

        clock.now = 10.0
        monitor.maybe_tick()
        clock.now = 15.0
        monitor.maybe_tick()
        assert len(reports) == 1

        clock.now = 20.0
        monitor.maybe_tick()
        assert monitor.ticks == 2

    def test_stops_when_nothing_remains(self, job_queue, process_info):
        clock = FakeClock()
        reports = []
        monitor = ProgressMonitor(job_queue, process_info, interval=1, reporter=reports.append, clock=clock)
        for job in list(job_queue):
            job_queue.assign()
            job_queue.apply_status(job.index, JobStatus.COMPLETED)

        assert monitor.tick() is False
        assert monitor.stopped

        clock.now = 100
        monitor.maybe_tick()
        monitor.finish()
        assert len(reports) == 1

    def test_errors_count_as_finished(self, job_queue, process_info):
        monitor = ProgressMonitor(job_queue, process_info, reporter=lambda info: None)
        for job in list(job_queue):
            job_queue.assign()
            job_queue.apply_status(job.index, JobStatus.ERROR)

        assert monitor.tick() is False

    def test_finish_reports_once_when_still_running(self, job_queue, process_info):
        reports = []
        monitor = ProgressMonitor(job_queue, process_info, reporter=reports.append)

        info = monitor.finish()

        assert len(reports) == 1
        assert info.count_of_remaining_jobs == 3
        assert not monitor.stopped

    def test_empty_queue_finishes_immediately(self, process_info):
        reports = []
        monitor = ProgressMonitor(plan_jobs(0, 10, [], []), process_info, reporter=reports.append)

        info = monitor.finish()

        assert info.count_of_jobs == 0
        assert info.count_of_remaining_jobs == 0
        assert monitor.stopped
        assert len(reports) == 1


class TestReportProcessInfo:
    def test_prints_counts(self, process_info, capsys):
        process_info.count_of_completed_jobs = 2
        process_info.count_of_inserted_records = 20000

        report_process_info(process_info)

        out = capsys.readouterr().out
        assert "account -> account__c" in out
        assert "completed: 2" in out
        assert "inserted this run: 20,000" in out

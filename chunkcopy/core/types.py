"""
ChunkCopy Core Types

Data classes and enums shared across the core modules.
"""

import os
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional


class JobStatus(Enum):
    """Lifecycle of a chunk job. A job that was never selected has status None."""
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.ERROR)


@dataclass
class JobDescriptor:
    """One chunk of the source table, addressed by offset and limit."""
    index: int
    offset: int
    limit: int
    source_columns: List[str] = field(default_factory=list)
    target_columns: List[str] = field(default_factory=list)
    status: Optional[JobStatus] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['status'] = self.status.value if self.status else None
        return data


@dataclass
class StatusMessage:
    """Status report sent by a worker to the coordinator."""
    index: int
    status: JobStatus
    record_count: Optional[int] = None


@dataclass
class WorkerHandle:
    """Association between a running worker process and its job."""
    job_index: int
    process: Any


@dataclass
class ColumnMetadata:
    """Column description returned by a metadata provider."""
    column_name: str
    data_type: Optional[str] = None
    length: Optional[int] = None


@dataclass
class MigrationConfig:
    """Resolved settings for one migration run."""
    database_url: str
    source_table: str
    target_table: str
    source_schema: str = "cache"
    target_schema: str = "salesforce"
    bulk_limit: int = 10000
    workers: int = field(default_factory=lambda: os.cpu_count() or 1)
    order_by: str = "id"
    external_id_column: str = "id__c"
    monitor_interval: float = 10.0
    pool_size: int = 5
    sslmode: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None


@dataclass
class ProcessInfo:
    """Progress snapshot of a migration run."""
    source_table: str
    target_table: str
    limit_per_job: int = 0
    count_of_records_to_migrate: int = 0
    count_of_workers: int = 0
    count_of_jobs: int = 0
    count_of_migrated_records: int = 0
    count_of_completed_jobs: int = 0
    count_of_jobs_with_error: int = 0
    count_of_remaining_jobs: int = 0
    count_of_inserted_records: int = 0
    count_of_failed_workers: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MigrationPlan:
    """Job queue plus the process info describing it."""
    queue: Any
    process_info: ProcessInfo


@dataclass
class OperationResult:
    """Result of an API operation."""
    success: bool
    message: str
    data: Any = None
    record_count: Optional[int] = None
    error_details: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'success': self.success,
            'message': self.message
        }
        if self.data is not None:
            result['data'] = self.data
        if self.record_count is not None:
            result['record_count'] = self.record_count
        if self.error_details:
            result['error_details'] = self.error_details
        return result

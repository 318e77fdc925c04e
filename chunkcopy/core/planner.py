"""
ChunkCopy Job Planner

Partitions a source table into disjoint offset windows of bulk_limit rows.
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy.engine import Engine

from chunkcopy.core.database import count_rows
from chunkcopy.core.exceptions import MetadataError, ValidationError
from chunkcopy.core.jobs import JobQueue
from chunkcopy.core.metadata import InformationSchemaMetadataProvider, MetadataProvider
from chunkcopy.core.naming import to_target_column_name
from chunkcopy.core.types import JobDescriptor, MigrationConfig, MigrationPlan, ProcessInfo

logger = logging.getLogger(__name__)


def compute_job_count(row_count: int, bulk_limit: int) -> int:
    """ceil(row_count / bulk_limit), validated."""
    if bulk_limit is None or int(bulk_limit) <= 0:
        raise ValidationError(f"Bulk limit must be greater than zero, got {bulk_limit}")
    if row_count is None or int(row_count) < 0:
        raise ValidationError(f"Row count must not be negative, got {row_count}")
    return -(-int(row_count) // int(bulk_limit))


def plan_jobs(
    row_count: int,
    bulk_limit: int,
    source_columns: List[str],
    target_columns: List[str]
) -> JobQueue:
    """
    Build the job queue for a table of row_count rows.

    Job i covers offset i * bulk_limit with limit bulk_limit; the last job may
    address fewer rows than its limit.
    """
    if len(source_columns) != len(target_columns):
        raise ValidationError(
            f"Column lists differ in length: {len(source_columns)} source, {len(target_columns)} target"
        )

    count_of_jobs = compute_job_count(row_count, bulk_limit)
    return JobQueue([
        JobDescriptor(
            index=i,
            offset=i * bulk_limit,
            limit=bulk_limit,
            source_columns=list(source_columns),
            target_columns=list(target_columns),
        )
        for i in range(count_of_jobs)
    ])


def build_migration_plan(
    engine: Engine,
    config: MigrationConfig,
    provider: Optional[MetadataProvider] = None,
    translate: Optional[Callable[[str], str]] = None
) -> MigrationPlan:
    """
    Read source metadata and row counts and plan the run.

    Args:
        engine: Engine for the database holding both schemas
        config: Resolved migration settings
        provider: Metadata provider (defaults to information_schema)
        translate: Source-to-target column name function

    Returns:
        MigrationPlan with the job queue and initial process info

    Raises:
        MetadataError: If the source columns cannot be resolved
    """
    provider = provider or InformationSchemaMetadataProvider(engine)
    translate = translate or to_target_column_name

    columns = provider.get_table_metadata(config.source_schema, config.source_table)
    if not columns:
        raise MetadataError(
            f"No columns found for table '{config.source_table}' in schema '{config.source_schema}'"
        )

    source_columns = [col.column_name for col in columns]
    target_columns = [translate(name) for name in source_columns]

    row_count = count_rows(engine, config.source_schema, config.source_table)
    migrated_count = count_rows(engine, config.target_schema, config.target_table)

    queue = plan_jobs(row_count, config.bulk_limit, source_columns, target_columns)
    logger.info(
        "Planned %s job(s) for %s row(s) of %s.%s (bulk limit %s)",
        len(queue), row_count, config.source_schema, config.source_table, config.bulk_limit
    )

    process_info = ProcessInfo(
        source_table=config.source_table,
        target_table=config.target_table,
        limit_per_job=config.bulk_limit,
        count_of_records_to_migrate=row_count,
        count_of_workers=config.workers,
        count_of_jobs=len(queue),
        count_of_migrated_records=migrated_count,
        count_of_remaining_jobs=len(queue),
    )
    return MigrationPlan(queue=queue, process_info=process_info)

"""
ChunkCopy Worker Executor

Runs inside one worker process and migrates exactly one chunk with a single
INSERT ... SELECT statement executed on the server.
"""

import logging
import sys

from sqlalchemy import column, select, true
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from chunkcopy.core.database import engine_from_config, table_ref, upsert_insert
from chunkcopy.core.exceptions import ChunkExecutionError
from chunkcopy.core.types import JobDescriptor, JobStatus, MigrationConfig, StatusMessage
from chunkcopy.core.utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def build_chunk_statement(job: JobDescriptor, config: MigrationConfig, dialect_name: str = 'postgresql'):
    """
    Build the copy statement for one chunk.

    INSERT INTO target (target_columns)
    SELECT source_columns FROM source ORDER BY <order_by> LIMIT <limit> OFFSET <offset>
    ON CONFLICT (<external id>) DO NOTHING

    OFFSET pagination is only stable when the order key is deterministic and the
    source does not change under the run.
    """
    insert = upsert_insert(dialect_name)

    source_names = list(job.source_columns)
    source_table_columns = list(source_names)
    if config.order_by not in source_table_columns:
        source_table_columns.append(config.order_by)

    source = table_ref(config.source_table, config.source_schema, *[column(name) for name in source_table_columns])
    target = table_ref(config.target_table, config.target_schema, *[column(name) for name in job.target_columns])

    query = (
        select(*[source.c[name] for name in source_names])
        .order_by(source.c[config.order_by])
        .limit(job.limit)
        .offset(job.offset)
    )
    if dialect_name == 'sqlite':
        # SQLite cannot parse an upsert after INSERT ... SELECT without a WHERE clause
        query = query.where(true())

    return (
        insert(target)
        .from_select(list(job.target_columns), query)
        .on_conflict_do_nothing(index_elements=[config.external_id_column])
    )


def run_chunk(job: JobDescriptor, config: MigrationConfig, engine: Engine = None) -> int:
    """
    Execute one chunk in a single transaction.

    Returns:
        Number of rows inserted (conflicting rows are skipped and not counted)

    Raises:
        ChunkExecutionError: If the statement fails
    """
    owns_engine = engine is None
    if owns_engine:
        engine = engine_from_config(config, pool_size=1)

    try:
        statement = build_chunk_statement(job, config, engine.dialect.name)
        with engine.begin() as conn:
            result = conn.execute(statement)
            return max(result.rowcount, 0)
    except SQLAlchemyError as e:
        raise ChunkExecutionError(
            f"Chunk {job.index} (offset {job.offset}, limit {job.limit}) failed",
            str(e)
        )
    finally:
        if owns_engine:
            engine.dispose()


def execute_chunk(job: JobDescriptor, config: MigrationConfig, status_queue) -> None:
    """
    Worker process entry point.

    Reports Processing, runs the chunk, reports Completed or Error. A failed
    chunk terminates the process with a non-zero exit code; there is no retry.
    """
    configure_logging(config.log_level, config.log_file)
    status_queue.put(StatusMessage(index=job.index, status=JobStatus.PROCESSING))

    record_count = None
    try:
        record_count = run_chunk(job, config)
        status = JobStatus.COMPLETED
        logger.debug("Chunk %s inserted %s row(s)", job.index, record_count)
    except Exception as e:
        details = getattr(e, 'details', None)
        logger.error(
            "Chunk %s failed (offset=%s, limit=%s): %s%s",
            job.index, job.offset, job.limit, e, f" | {details}" if details else ""
        )
        status = JobStatus.ERROR

    status_queue.put(StatusMessage(index=job.index, status=status, record_count=record_count))

    if status is JobStatus.ERROR:
        sys.exit(EXIT_FAILURE)

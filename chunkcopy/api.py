"""
ChunkCopy API - Programmatic interface for ChunkCopy

This module provides functions for programmatically using ChunkCopy
without going through the command-line interface. Every function returns an
OperationResult; errors are reported in the result instead of raised.

Settings not passed explicitly are resolved from the environment and .env
files (see chunkcopy.core.config).
"""

from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.engine import Engine

from chunkcopy.core import migration
from chunkcopy.core.config import load_migration_config
from chunkcopy.core.database import engine_from_config
from chunkcopy.core.exceptions import MetadataError
from chunkcopy.core.metadata import InformationSchemaMetadataProvider
from chunkcopy.core.naming import identity_column_name
from chunkcopy.core.streaming import DEFAULT_CHUNK_SIZE, stream_copy
from chunkcopy.core.types import MigrationConfig, OperationResult, ProcessInfo
from chunkcopy.core.utils import (
    create_success_result, handle_exception, split_qualified_name, validate_required_params
)


def _load_config(env_file: Optional[str] = None, require_tables: bool = True, **settings: Any) -> MigrationConfig:
    return load_migration_config(overrides=settings, env_file=env_file, require_tables=require_tables)


def _connect(
    database_url: Optional[str] = None,
    env_file: Optional[str] = None,
    pool_size: Optional[int] = None
) -> Tuple[MigrationConfig, Engine]:
    config = _load_config(env_file, require_tables=False, database_url=database_url)
    return config, engine_from_config(config, pool_size=pool_size)


def _translate(keep_column_names: bool) -> Optional[Callable[[str], str]]:
    return identity_column_name if keep_column_names else None


# Migration Functions

def plan_migration(
    env_file: Optional[str] = None,
    keep_column_names: bool = False,
    **settings: Any
) -> OperationResult:
    """
    Plan a migration without dispatching any worker.

    Args:
        env_file: Optional .env file with the settings
        keep_column_names: Use source column names unchanged on the target
        **settings: MigrationConfig fields (database_url, source_table, target_table, ...)

    Returns:
        OperationResult whose data holds 'process_info', 'jobs' and 'column_mapping'
    """
    try:
        config = _load_config(env_file, **settings)
        plan = migration.plan_migration(config, translate=_translate(keep_column_names))

        jobs = [job.to_dict() for job in plan.queue]
        column_mapping: Dict[str, str] = {}
        if jobs:
            column_mapping = dict(zip(jobs[0]['source_columns'], jobs[0]['target_columns']))

        return create_success_result(
            f"Planned {len(jobs)} job(s) for {config.source_schema}.{config.source_table}",
            data={
                'process_info': plan.process_info.to_dict(),
                'jobs': jobs,
                'column_mapping': column_mapping,
            },
            record_count=plan.process_info.count_of_records_to_migrate
        )
    except Exception as e:
        return handle_exception(e, "migration planning")


def migrate_table(
    env_file: Optional[str] = None,
    keep_column_names: bool = False,
    reporter: Optional[Callable[[ProcessInfo], None]] = None,
    **settings: Any
) -> OperationResult:
    """
    Migrate the source table into the target table with a pool of worker processes.

    The result is unsuccessful when any chunk ended in error or was left
    unfinished by a crashed worker; data then still holds the final process info.

    Args:
        env_file: Optional .env file with the settings
        keep_column_names: Use source column names unchanged on the target
        reporter: Progress callback, defaults to console output
        **settings: MigrationConfig fields

    Returns:
        OperationResult with the final process info as data
    """
    try:
        config = _load_config(env_file, **settings)
        info = migration.run_migration(config, translate=_translate(keep_column_names), reporter=reporter)
    except Exception as e:
        return handle_exception(e, "migration")

    if info.count_of_jobs_with_error or info.count_of_remaining_jobs:
        return OperationResult(
            success=False,
            message=(
                f"Migration of {info.source_table} finished with {info.count_of_jobs_with_error} "
                f"failed and {info.count_of_remaining_jobs} unfinished job(s)"
            ),
            data=info.to_dict(),
            record_count=info.count_of_inserted_records,
            error_details="Failed chunks are not retried; re-run the migration to fill the gaps"
        )

    return create_success_result(
        f"Migrated {info.source_table} into {info.target_table} in {info.count_of_jobs} job(s)",
        data=info.to_dict(),
        record_count=info.count_of_inserted_records
    )


def stream_query_to_table(
    query: str,
    table: str,
    schema: Optional[str] = None,
    database_url: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    conflict_column: Optional[str] = None,
    env_file: Optional[str] = None,
    on_batch: Optional[Callable[[int, int, int], None]] = None
) -> OperationResult:
    """
    Stream the rows of a query into a table in batches.

    Args:
        query: SQL query to read from
        table: Target table, optionally qualified as schema.table
        schema: Target schema (defaults to the configured target schema)
        database_url: Database URL (defaults to DATABASE_URL)
        chunk_size: Rows per read and per insert
        conflict_column: Unique column whose conflicts are ignored
        env_file: Optional .env file with the settings
        on_batch: Called as on_batch(batch_number, rows_written, total_rows)

    Returns:
        OperationResult with the number of rows written
    """
    try:
        validate_required_params({'query': query, 'table': table}, ['query', 'table'])
        config = _load_config(env_file, require_tables=False, database_url=database_url)
        target_schema, target_table = split_qualified_name(table, schema or config.target_schema)

        # reader and writer each pin a connection
        engine = engine_from_config(config, pool_size=max(config.pool_size, 2))
        try:
            total = stream_copy(
                engine,
                query,
                target_table,
                schema=target_schema,
                chunk_size=chunk_size,
                conflict_column=conflict_column or config.external_id_column,
                on_batch=on_batch,
            )
        finally:
            engine.dispose()

        return create_success_result(
            f"Streamed {total} row(s) into {target_schema}.{target_table}",
            record_count=total
        )
    except Exception as e:
        return handle_exception(e, "stream copy")


# Metadata Functions

def list_tables(
    schemas: Optional[List[str]] = None,
    database_url: Optional[str] = None,
    env_file: Optional[str] = None
) -> OperationResult:
    """
    List tables grouped by schema.

    Args:
        schemas: Schemas to list; defaults to all schemas owned by the current user
    """
    try:
        _, engine = _connect(database_url, env_file, pool_size=1)
        try:
            provider = InformationSchemaMetadataProvider(engine)
            schemas = list(schemas) if schemas else provider.list_schemas()
            tables = provider.list_tables(schemas)
        finally:
            engine.dispose()

        count = sum(len(items) for items in tables.values())
        return create_success_result(
            f"Found {count} table(s) in {len(tables)} schema(s)",
            data=dict(tables),
            record_count=count
        )
    except Exception as e:
        return handle_exception(e, "table listing")


def get_tables_info(
    tables: List[str],
    database_url: Optional[str] = None,
    env_file: Optional[str] = None
) -> OperationResult:
    """Row count, size and columns of each 'schema.table'."""
    try:
        _, engine = _connect(database_url, env_file, pool_size=1)
        try:
            info = InformationSchemaMetadataProvider(engine).get_tables_info(list(tables or []))
        finally:
            engine.dispose()

        data = {}
        for name, item in info.items():
            data[name] = dict(item)
            data[name]['columns'] = [asdict(col) for col in item['columns']]

        return create_success_result(f"Retrieved info for {len(data)} table(s)", data=data, record_count=len(data))
    except Exception as e:
        return handle_exception(e, "table info")


def get_table_columns(
    schema: str,
    table: str,
    resolve_text_lengths: bool = True,
    database_url: Optional[str] = None,
    env_file: Optional[str] = None
) -> OperationResult:
    """Columns of a table, with the observed maximum length of unbounded text columns."""
    try:
        validate_required_params({'schema': schema, 'table': table}, ['schema', 'table'])
        _, engine = _connect(database_url, env_file, pool_size=1)
        try:
            provider = InformationSchemaMetadataProvider(engine)
            if not provider.table_exists(schema, table):
                raise MetadataError(f"Table '{schema}.{table}' does not exist")
            columns = provider.get_columns(schema, table, resolve_text_lengths=resolve_text_lengths)
        finally:
            engine.dispose()

        return create_success_result(
            f"Found {len(columns)} column(s) in {schema}.{table}",
            data=[asdict(col) for col in columns],
            record_count=len(columns)
        )
    except Exception as e:
        return handle_exception(e, "column lookup")

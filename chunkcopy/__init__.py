"""
ChunkCopy - chunked table migration across a pool of worker processes.
"""

__version__ = "0.1.0"

from chunkcopy.api import (
    get_table_columns,
    get_tables_info,
    list_tables,
    migrate_table,
    plan_migration,
    stream_query_to_table,
)

__all__ = [
    '__version__',
    'get_table_columns',
    'get_tables_info',
    'list_tables',
    'migrate_table',
    'plan_migration',
    'stream_query_to_table',
]

"""
ChunkCopy Database Access

Engine creation and the small ad hoc queries used while planning a run.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import create_engine, func, select, table, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from chunkcopy.core.config import mask_url
from chunkcopy.core.exceptions import ConnectionError, DatabaseError, ValidationError
from chunkcopy.core.types import MigrationConfig

logger = logging.getLogger(__name__)

# dialects whose insert construct supports ON CONFLICT DO NOTHING
UPSERT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def create_db_engine(
    database_url: str,
    pool_size: int = 5,
    sslmode: Optional[str] = None,
    **engine_options: Any
) -> Engine:
    """
    Create a SQLAlchemy engine backed by a fixed-size connection pool.

    The pool does not overflow: every long-lived cursor or writer session pins
    one connection, so the pool must be sized for all live sessions plus ad hoc
    queries or acquisition will block and time out.

    Args:
        database_url: SQLAlchemy connection URL
        pool_size: Number of pooled connections
        sslmode: Optional libpq sslmode (PostgreSQL only)
        **engine_options: Extra create_engine keyword arguments

    Returns:
        SQLAlchemy Engine
    """
    options: Dict[str, Any] = dict(engine_options)
    if not database_url.startswith('sqlite'):
        options.setdefault('pool_size', pool_size)
        options.setdefault('max_overflow', 0)
        options.setdefault('pool_pre_ping', True)
    if sslmode:
        connect_args = dict(options.pop('connect_args', {}))
        connect_args['sslmode'] = sslmode
        options['connect_args'] = connect_args

    logger.debug("Creating engine for %s", mask_url(database_url))
    try:
        return create_engine(database_url, **options)
    except SQLAlchemyError as e:
        raise ConnectionError(f"Could not create database engine: {str(e)}")


def engine_from_config(config: MigrationConfig, pool_size: Optional[int] = None) -> Engine:
    return create_db_engine(
        config.database_url,
        pool_size=pool_size or config.pool_size,
        sslmode=config.sslmode,
    )


def table_ref(table_name: str, schema: Optional[str] = None, *columns):
    """Lightweight table construct; no reflection round trip."""
    return table(table_name, *columns, schema=schema)


def count_rows(engine: Engine, schema: Optional[str], table_name: str) -> int:
    """Return the number of rows in schema.table_name."""
    statement = select(func.count()).select_from(table_ref(table_name, schema))
    try:
        with engine.connect() as conn:
            return int(conn.execute(statement).scalar() or 0)
    except SQLAlchemyError as e:
        qualified = f"{schema}.{table_name}" if schema else table_name
        raise DatabaseError(f"Could not count rows in '{qualified}': {str(e)}")


def fetch_all(engine: Engine, sql, params: Optional[Dict[str, Any]] = None):
    """Run a short query on a pooled connection and return rows as dicts."""
    try:
        with engine.connect() as conn:
            statement = text(sql) if isinstance(sql, str) else sql
            result = conn.execute(statement, params or {})
            return [dict(row) for row in result.mappings()]
    except SQLAlchemyError as e:
        raise DatabaseError(f"Database error: {str(e)}")


def upsert_insert(dialect_name: str):
    """Return the dialect's insert() construct that supports on_conflict_do_nothing."""
    try:
        return UPSERT_INSERTS[dialect_name]
    except KeyError:
        supported = sorted(UPSERT_INSERTS)
        raise ValidationError(
            f"Database dialect '{dialect_name}' does not support conflict-suppressing inserts. "
            f"Supported dialects: {supported}"
        )

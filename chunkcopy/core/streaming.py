"""
ChunkCopy Streaming Primitives

Cursor reader and batched upsert writer for result sets too large to hold in
memory. Each session pins one pooled connection for its whole lifetime and
releases it exactly once, whichever way the session ends.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import pandas as pd
from sqlalchemy import column, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from chunkcopy.core.database import table_ref, upsert_insert
from chunkcopy.core.exceptions import ConnectionError, ValidationError
from chunkcopy.core.naming import get_external_id_column_name

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10000

RowBatch = Union[List[Dict[str, Any]], pd.DataFrame]


class CursorReader:
    """
    Pull-based chunked reads over a server-side cursor.

    The connection is reserved on the first read and held until end-of-stream,
    close(), context exit, an error, or the consumer closing iter_batches().

    Args:
        engine: Engine whose pool provides the reserved connection
        query: SQL string or SQLAlchemy selectable
        params: Bound parameters for the query
        chunk_size: Default number of rows per read
    """

    def __init__(
        self,
        engine: Engine,
        query,
        params: Optional[Dict[str, Any]] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE
    ):
        if not chunk_size or chunk_size <= 0:
            raise ValidationError(f"Chunk size must be greater than zero, got {chunk_size}")
        self.engine = engine
        self.query = query
        self.params = params or {}
        self.chunk_size = chunk_size

        self._connection = None
        self._result = None
        self._rows = None
        self.exhausted = False
        self.closed = False
        self.reads = 0

    def __enter__(self) -> 'CursorReader':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __iter__(self) -> Iterator[List[Dict[str, Any]]]:
        return self.iter_batches()

    def open(self) -> 'CursorReader':
        if self.closed:
            raise ConnectionError("Cursor session is already closed")
        if self._connection is not None:
            return self

        try:
            self._connection = self.engine.connect()
        except SQLAlchemyError as e:
            self.closed = True
            raise ConnectionError(f"Could not reserve a connection for the cursor: {str(e)}")

        try:
            statement = text(self.query) if isinstance(self.query, str) else self.query
            self._result = self._connection.execution_options(
                stream_results=True,
                max_row_buffer=self.chunk_size
            ).execute(statement, self.params)
            self._rows = self._result.mappings()
        except SQLAlchemyError as e:
            logger.error("Cursor query failed: %s", e)
            self.close()
            raise ConnectionError(f"Cursor query failed: {str(e)}")
        return self

    def read(self, chunk_size: Optional[int] = None) -> List[Dict[str, Any]]:
        """
        Read the next chunk of rows.

        A result shorter than chunk_size (including an empty one) marks the end
        of the stream and releases the connection.
        """
        size = chunk_size or self.chunk_size
        if self.exhausted or self.closed:
            return []

        self.open()
        try:
            rows = [dict(row) for row in self._rows.fetchmany(size)]
        except SQLAlchemyError as e:
            logger.error("Cursor read failed after %s read(s): %s", self.reads, e)
            self.close()
            raise ConnectionError(f"Cursor read failed: {str(e)}")

        self.reads += 1
        if len(rows) < size:
            self.exhausted = True
            self.close()
        return rows

    def iter_batches(self, chunk_size: Optional[int] = None) -> Iterator[List[Dict[str, Any]]]:
        """Yield non-empty batches; the next read happens only when the consumer asks for it."""
        size = chunk_size or self.chunk_size
        try:
            while True:
                rows = self.read(size)
                if rows:
                    yield rows
                if len(rows) < size:
                    return
        finally:
            self.close()

    def iter_frames(self, chunk_size: Optional[int] = None) -> Iterator[pd.DataFrame]:
        """Same as iter_batches, as pandas DataFrames."""
        batches = self.iter_batches(chunk_size)
        try:
            for rows in batches:
                yield pd.DataFrame(rows)
        finally:
            batches.close()

    def close(self) -> None:
        """Close the cursor and return the reserved connection to the pool, once."""
        if self.closed and self._connection is None:
            return
        self.closed = True
        try:
            if self._result is not None:
                self._result.close()
        finally:
            self._result = None
            self._rows = None
            if self._connection is not None:
                connection, self._connection = self._connection, None
                connection.close()


def query_cursor(
    engine: Engine,
    query,
    callback: Callable[[List[Dict[str, Any]]], Any],
    params: Optional[Dict[str, Any]] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE
) -> int:
    """
    Drain a query through a cursor, handing every non-empty batch to callback.

    Returns:
        Total number of rows read
    """
    reader = CursorReader(engine, query, params=params, chunk_size=chunk_size)
    total = 0
    try:
        while True:
            rows = reader.read()
            if rows:
                callback(rows)
                total += len(rows)
            if len(rows) < reader.chunk_size:
                break
    except Exception as e:
        logger.error("query_cursor failed after %s row(s): %s", total, e)
        raise
    finally:
        reader.close()
    return total


def _normalize_batch(batch: Optional[RowBatch]) -> List[Dict[str, Any]]:
    if batch is None:
        return []
    if isinstance(batch, pd.DataFrame):
        if batch.empty:
            return []
        frame = batch.astype(object).where(pd.notna(batch), None)
        return frame.to_dict('records')
    return [dict(row) for row in batch]


class BatchedUpsertWriter:
    """
    Writes row batches with conflict-suppressing bulk inserts on one reserved connection.

    Column names come from the first row of each batch. Values are sent as bound
    parameters through the driver's executemany path, one transaction per batch.

    Args:
        engine: Engine whose pool provides the reserved connection
        table_name: Target table
        schema: Target schema
        conflict_column: Unique column whose conflicts are ignored
    """

    def __init__(
        self,
        engine: Engine,
        table_name: str,
        schema: Optional[str] = None,
        conflict_column: Optional[str] = None
    ):
        self.engine = engine
        self.table_name = table_name
        self.schema = schema
        self.conflict_column = conflict_column or get_external_id_column_name()
        self._insert = upsert_insert(engine.dialect.name)

        self._connection = None
        self.closed = False
        self.batches_written = 0
        self.rows_written = 0

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table_name}" if self.schema else self.table_name

    def __enter__(self) -> 'BatchedUpsertWriter':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def open(self) -> 'BatchedUpsertWriter':
        if self.closed:
            raise ConnectionError(f"Writer session for '{self.qualified_name}' is already closed")
        if self._connection is None:
            try:
                self._connection = self.engine.connect()
            except SQLAlchemyError as e:
                self.closed = True
                raise ConnectionError(f"Could not reserve a connection for the writer: {str(e)}")
        return self

    def build_statement(self, columns: List[str]):
        target = table_ref(self.table_name, self.schema, *[column(name) for name in columns])
        return self._insert(target).on_conflict_do_nothing(index_elements=[self.conflict_column])

    def write(self, batch: Optional[RowBatch]) -> int:
        """
        Insert one batch.

        Returns:
            Number of rows submitted (rows conflicting on the key are skipped by the database)

        Raises:
            ConnectionError: If the insert fails; the session is closed
        """
        rows = _normalize_batch(batch)
        if not rows:
            return 0

        columns = list(rows[0].keys())
        statement = self.build_statement(columns)
        params = [{name: row.get(name) for name in columns} for row in rows]

        self.open()
        try:
            with self._connection.begin():
                self._connection.execute(statement, params)
        except SQLAlchemyError as e:
            logger.error("Batch insert into %s failed: %s", self.qualified_name, e)
            self.close()
            raise ConnectionError(f"Batch insert into '{self.qualified_name}' failed", str(e))

        self.batches_written += 1
        self.rows_written += len(rows)
        return len(rows)

    def close(self) -> None:
        """Return the reserved connection to the pool, once."""
        self.closed = True
        if self._connection is not None:
            connection, self._connection = self._connection, None
            connection.close()


def stream_copy(
    engine: Engine,
    query,
    table_name: str,
    schema: Optional[str] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    conflict_column: Optional[str] = None,
    params: Optional[Dict[str, Any]] = None,
    on_batch: Optional[Callable[[int, int, int], None]] = None
) -> int:
    """
    Copy the rows of a query into a table through a cursor reader and an upsert writer.

    Memory stays bounded by chunk_size. Needs two pooled connections.

    Args:
        on_batch: Called as on_batch(batch_number, rows_written, total_rows) after each batch

    Returns:
        Total number of rows submitted
    """
    total = 0
    with CursorReader(engine, query, params=params, chunk_size=chunk_size) as reader, \
            BatchedUpsertWriter(engine, table_name, schema=schema, conflict_column=conflict_column) as writer:
        for batch_number, rows in enumerate(reader.iter_batches(), start=1):
            written = writer.write(rows)
            total += written
            if on_batch is not None:
                on_batch(batch_number, written, total)
    return total

"""
ChunkCopy Metadata Provider

Column and table metadata read from PostgreSQL's information_schema.
This is the single place that knows how to describe a source table; the
planner and the table commands both go through it.
"""

import logging
from collections import OrderedDict
from typing import Any, Dict, List

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine

from chunkcopy.core.database import count_rows, fetch_all
from chunkcopy.core.exceptions import DatabaseError, MetadataError, ValidationError
from chunkcopy.core.types import ColumnMetadata
from chunkcopy.core.utils import split_qualified_name

logger = logging.getLogger(__name__)

TABLE_METADATA_SQL = """
    SELECT column_name AS "columnName", udt_name AS "dataType", character_maximum_length AS "length"
    FROM information_schema.columns
    WHERE column_name <> 'id'
      AND left(column_name, 2) <> '__'
      AND table_schema = :schema
      AND table_name = :table
    ORDER BY ordinal_position
"""

SCHEMAS_SQL = """
    SELECT schema_name FROM information_schema.schemata WHERE schema_owner = current_user
"""

TABLES_SQL = text("""
    SELECT t.schemaname, t.tablename,
           pg_size_pretty(pg_total_relation_size(quote_ident(t.schemaname) || '.' || quote_ident(t.tablename))) AS table_size,
           (SELECT count(*) FROM information_schema.columns c
             WHERE c.table_schema = t.schemaname AND c.table_name = t.tablename) AS number_of_columns
    FROM pg_catalog.pg_tables t
    WHERE left(t.tablename, 1) <> '_'
      AND t.tableowner = current_user
      AND t.schemaname IN :schemas
    ORDER BY t.tablename
""").bindparams(bindparam('schemas', expanding=True))

TABLE_EXISTS_SQL = """
    SELECT EXISTS (
        SELECT FROM information_schema.tables WHERE table_schema = :schema AND table_name = :table
    ) AS "exists"
"""

TABLE_SIZE_SQL = """
    SELECT pg_total_relation_size(quote_ident(:schema) || '.' || quote_ident(:table)) AS table_size
"""

TEXT_TYPES = ('varchar', 'text')


class MetadataProvider:
    """Interface consumed by the planner: (schema, table) -> ordered columns."""

    def get_table_metadata(self, schema: str, table: str) -> List[ColumnMetadata]:
        raise NotImplementedError


class InformationSchemaMetadataProvider(MetadataProvider):
    """Metadata provider backed by information_schema queries."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_table_metadata(self, schema: str, table: str) -> List[ColumnMetadata]:
        """
        Get the migratable columns of a table.

        The 'id' column and '__'-prefixed bookkeeping columns are excluded.

        Raises:
            MetadataError: If the table has no such columns or cannot be inspected
        """
        try:
            rows = fetch_all(self.engine, TABLE_METADATA_SQL, {'schema': schema, 'table': table})
        except DatabaseError as e:
            raise MetadataError(f"Could not read columns of '{schema}.{table}'", e.message)

        if not rows:
            raise MetadataError(f"No columns found for table '{table}' in schema '{schema}'")

        return [
            ColumnMetadata(
                column_name=row['columnName'],
                data_type=row['dataType'],
                length=row['length'],
            )
            for row in rows
        ]

    def get_columns(self, schema: str, table: str, resolve_text_lengths: bool = True) -> List[ColumnMetadata]:
        """Get table columns, filling in the observed maximum length of unbounded text columns."""
        columns = self.get_table_metadata(schema, table)
        if not resolve_text_lengths:
            return columns

        unbounded = [
            col for col in columns
            if col.data_type in TEXT_TYPES and not col.length and not col.column_name.startswith('_')
        ]
        if not unbounded:
            return columns

        preparer = self.engine.dialect.identifier_preparer
        selects = ', '.join(
            f"max(length({preparer.quote(col.column_name)})) AS {preparer.quote(col.column_name)}"
            for col in unbounded
        )
        query = f"SELECT {selects} FROM {preparer.quote(schema)}.{preparer.quote(table)}"
        logger.debug("Resolving text column lengths: %s", query)

        rows = fetch_all(self.engine, query)
        if rows:
            for col in unbounded:
                observed = rows[0].get(col.column_name)
                if observed:
                    col.length = int(observed)
        return columns

    def list_schemas(self) -> List[str]:
        return [row['schema_name'] for row in fetch_all(self.engine, SCHEMAS_SQL)]

    def list_tables(self, schemas: List[str]) -> Dict[str, List[Dict[str, Any]]]:
        """List tables in the given schemas, grouped by schema name."""
        if not schemas:
            raise ValidationError("No schema is selected")

        grouped: Dict[str, List[Dict[str, Any]]] = OrderedDict()
        for row in fetch_all(self.engine, TABLES_SQL, {'schemas': list(schemas)}):
            grouped.setdefault(row['schemaname'], []).append(row)
        return grouped

    def table_exists(self, schema: str, table: str) -> bool:
        rows = fetch_all(self.engine, TABLE_EXISTS_SQL, {'schema': schema, 'table': table})
        return bool(rows and rows[0]['exists'])

    def get_tables_info(self, qualified_names: List[str]) -> Dict[str, Dict[str, Any]]:
        """Row count, size and columns for each 'schema.table' name."""
        if not qualified_names:
            raise ValidationError("No table is selected")

        info: Dict[str, Dict[str, Any]] = OrderedDict()
        for name in qualified_names:
            schema, table = split_qualified_name(name)
            size_rows = fetch_all(self.engine, TABLE_SIZE_SQL, {'schema': schema, 'table': table})
            info[name] = {
                'count_of_rows': count_rows(self.engine, schema, table),
                'table_size': size_rows[0]['table_size'] if size_rows else None,
                'columns': self.get_table_metadata(schema, table),
            }
        return info

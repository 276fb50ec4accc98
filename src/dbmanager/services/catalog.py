"""
Schema catalog reader - enumerates tables and columns from information_schema
"""

import logging
from typing import Iterable, List

from dbmanager.database.connection import Database
from dbmanager.database.errors import CatalogUnavailable, ExecutionFailure
from dbmanager.models.table import ColumnDescriptor
from dbmanager.services.column_types import column_kind_for

logger = logging.getLogger(__name__)


def _visible_table_predicate(excluded_param: int) -> str:
    """Base tables of the schema that are neither engine-internal nor explicitly excluded"""
    return f"""
        t.table_type = 'BASE TABLE'
        AND t.table_name NOT LIKE 'pg\\_%'
        AND t.table_name NOT LIKE '\\_pg\\_%'
        AND NOT (t.table_name = ANY(${excluded_param}::text[]))
    """


LIST_TABLES_SQL = f"""
    SELECT t.table_name
    FROM information_schema.tables t
    WHERE t.table_schema = $1
      AND {_visible_table_predicate(2)}
    ORDER BY t.table_name
"""

DESCRIBE_COLUMNS_SQL = f"""
    SELECT
        c.column_name,
        c.data_type,
        c.is_nullable,
        c.column_default,
        pk.column_name IS NOT NULL AS is_primary_key
    FROM information_schema.columns c
    JOIN information_schema.tables t
        ON t.table_schema = c.table_schema
       AND t.table_name = c.table_name
    LEFT JOIN (
        SELECT ku.column_name
        FROM information_schema.table_constraints tc
        JOIN information_schema.key_column_usage ku
            ON tc.constraint_name = ku.constraint_name
           AND tc.constraint_schema = ku.constraint_schema
           AND tc.table_name = ku.table_name
        WHERE tc.table_schema = $1
          AND tc.table_name = $2
          AND tc.constraint_type = 'PRIMARY KEY'
    ) pk ON c.column_name = pk.column_name
    WHERE c.table_schema = $1
      AND c.table_name = $2
      AND {_visible_table_predicate(3)}
    ORDER BY c.ordinal_position
"""


class SchemaCatalog:
    """Read-only access to the database's own metadata catalog"""

    def __init__(self, database: Database, schema: str = "public", excluded_tables: Iterable[str] = ()):
        self.database = database
        self.schema = schema
        self.excluded_tables = list(excluded_tables)

    async def list_tables(self) -> List[str]:
        """
        Enumerate visible base tables in the configured schema

        Returns:
            Table names in lexicographic order

        Raises:
            CatalogUnavailable: if the catalog cannot be read
        """
        try:
            rows = await self.database.fetch(LIST_TABLES_SQL, (self.schema, self.excluded_tables))
        except ExecutionFailure as e:
            raise CatalogUnavailable(
                "Failed to list tables", detail=e.detail, operation="list_tables"
            ) from e
        except CatalogUnavailable as e:
            raise e.annotate(operation="list_tables")

        return [row["table_name"] for row in rows]

    async def describe_columns(self, table_name: str) -> List[ColumnDescriptor]:
        """
        Describe the columns of one table in ordinal order

        An empty list means the table does not exist (or is hidden); it is
        not an error.

        Raises:
            CatalogUnavailable: if the catalog cannot be read
        """
        try:
            rows = await self.database.fetch(
                DESCRIBE_COLUMNS_SQL, (self.schema, table_name, self.excluded_tables)
            )
        except ExecutionFailure as e:
            raise CatalogUnavailable(
                "Failed to describe table", detail=e.detail, table=table_name, operation="describe_columns"
            ) from e
        except CatalogUnavailable as e:
            raise e.annotate(table=table_name, operation="describe_columns")

        columns = []
        for row in rows:
            columns.append(ColumnDescriptor(
                name=row["column_name"],
                type=row["data_type"],
                kind=column_kind_for(row["data_type"]),
                nullable=row["is_nullable"] == "YES",
                primary_key=bool(row["is_primary_key"]),
                default_value=row["column_default"]
            ))

        if columns:
            logger.debug(f"Described table {table_name}: {len(columns)} columns")
        return columns

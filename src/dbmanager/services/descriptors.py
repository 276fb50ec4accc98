"""
Table descriptor builder - combines catalog columns with a row count snapshot
"""

import logging
from typing import List, Optional

from dbmanager.database.connection import Database
from dbmanager.database.errors import CatalogUnavailable, DatabaseManagerError
from dbmanager.models.table import TableDescriptor
from dbmanager.services.catalog import SchemaCatalog
from dbmanager.services.query_compiler import compile_count

logger = logging.getLogger(__name__)


class DescriptorBuilder:
    """Builds TableDescriptor values on demand; nothing is cached between calls"""

    def __init__(self, database: Database, catalog: SchemaCatalog):
        self.database = database
        self.catalog = catalog

    async def build_descriptor(self, table_name: str, count_rows: bool = True) -> Optional[TableDescriptor]:
        """
        Build the descriptor for a table

        Args:
            table_name: Table to describe
            count_rows: Skip the COUNT(*) snapshot when False (row_count is then None)

        Returns:
            TableDescriptor, or None if the table has no visible columns
        """
        columns = await self.catalog.describe_columns(table_name)
        if not columns:
            logger.info(f"Table not found: {table_name}")
            return None

        if not count_rows:
            return TableDescriptor(table_name=table_name, columns=columns)

        # The catalog just confirmed the name, so it may be quoted into SQL
        statement = compile_count(table_name)
        try:
            row_count = await self.database.fetchval(statement.sql, statement.parameters)
        except DatabaseManagerError as e:
            raise e.annotate(table=table_name, operation="count_rows")

        return TableDescriptor(
            table_name=table_name,
            columns=columns,
            row_count=int(row_count or 0)
        )

    async def list_all_descriptors(self) -> List[TableDescriptor]:
        """
        Build descriptors for every visible table

        A table whose descriptor cannot be built is logged and skipped.
        Connectivity failures propagate so a partial listing is never
        returned as the schema.
        """
        descriptors = []
        for table_name in await self.catalog.list_tables():
            try:
                descriptor = await self.build_descriptor(table_name)
            except CatalogUnavailable:
                raise
            except DatabaseManagerError as e:
                logger.warning(f"Skipping table {table_name}: {e}")
                continue
            if descriptor is not None:
                descriptors.append(descriptor)

        logger.info(f"Built {len(descriptors)} table descriptors")
        return descriptors

"""
Record access engine - generic CRUD against any table identified only by name
"""

import logging
import math
from typing import Any, Dict, Mapping, Optional

from dbmanager.database.connection import Database
from dbmanager.database.errors import (
    DatabaseManagerError,
    ExecutionFailure,
    InvalidRecordId,
    InvalidRequest,
    TableNotFound,
    UnsupportedTable,
)
from dbmanager.models.query import QuerySpec, RecordPage
from dbmanager.models.table import TableDescriptor
from dbmanager.services.column_types import serialize_record
from dbmanager.services.descriptors import DescriptorBuilder
from dbmanager.services.query_compiler import (
    compile_delete,
    compile_get,
    compile_insert,
    compile_select,
    compile_update,
)

logger = logging.getLogger(__name__)


def resolve_primary_key(
    descriptor: TableDescriptor,
    overrides: Optional[Mapping[str, str]] = None,
    fallback: Optional[str] = "id"
) -> str:
    """
    Decide which column identifies a record

    Order: a configured override naming an existing column, then the single
    declared primary key column, then the fallback column if the table has
    one. Composite primary keys are rejected.

    Raises:
        UnsupportedTable: if no single identifying column can be determined
    """
    table_name = descriptor.table_name

    override = (overrides or {}).get(table_name)
    if override:
        if descriptor.has_column(override):
            return override
        logger.warning(f"Ignoring primary key override {table_name}.{override}: no such column")

    pk_columns = descriptor.primary_key_columns
    if len(pk_columns) == 1:
        return pk_columns[0].name
    if len(pk_columns) > 1:
        names = ", ".join(column.name for column in pk_columns)
        raise UnsupportedTable(
            f"Table '{table_name}' has a composite primary key ({names}); "
            f"configure PRIMARY_KEY_OVERRIDES to address its records",
            table=table_name
        )

    if fallback and descriptor.has_column(fallback):
        return fallback
    raise UnsupportedTable(f"Table '{table_name}' has no primary key", table=table_name)


class RecordService:
    """Executes compiled statements for list/get/insert/update/delete"""

    def __init__(
        self,
        database: Database,
        descriptors: DescriptorBuilder,
        primary_key_overrides: Optional[Mapping[str, str]] = None,
        primary_key_fallback: Optional[str] = "id"
    ):
        self.database = database
        self.descriptors = descriptors
        self.primary_key_overrides = dict(primary_key_overrides or {})
        self.primary_key_fallback = primary_key_fallback

    async def _require_descriptor(self, table_name: str, operation: str) -> TableDescriptor:
        descriptor = await self.descriptors.build_descriptor(table_name, count_rows=False)
        if descriptor is None:
            raise TableNotFound(table_name, operation=operation)
        return descriptor

    def _primary_key(self, descriptor: TableDescriptor, operation: str) -> str:
        try:
            return resolve_primary_key(descriptor, self.primary_key_overrides, self.primary_key_fallback)
        except UnsupportedTable as e:
            raise e.annotate(operation=operation)

    def _log_unmatchable_id(self, table_name: str, primary_key: str, record_id: Any):
        logger.info(f"No record in {table_name} with {primary_key}={record_id!r}: id does not fit the column type")

    async def query(self, table_name: str, spec: QuerySpec) -> RecordPage:
        """
        List one page of records

        Count and data queries run as two independent reads, so total may
        drift from the page under concurrent writes.

        Raises:
            TableNotFound: if the table does not exist
            InvalidQuery: on unknown sort/filter columns or bad filter values
        """
        descriptor = await self._require_descriptor(table_name, "query")
        compiled = compile_select(descriptor, spec)

        logger.info(f"Executing READ query: {compiled.sql}")
        logger.debug(f"Parameters: {compiled.parameters}")

        try:
            total = await self.database.fetchval(compiled.count_sql, compiled.count_parameters)
            rows = await self.database.fetch(compiled.sql, compiled.parameters)
        except DatabaseManagerError as e:
            raise e.annotate(table=table_name, operation="query")

        total = int(total or 0)
        return RecordPage(
            data=[serialize_record(row) for row in rows],
            total=total,
            page=spec.page,
            limit=spec.limit,
            total_pages=math.ceil(total / spec.limit) if total else 0
        )

    async def get_by_id(self, table_name: str, record_id: Any) -> Optional[Dict[str, Any]]:
        """Fetch one record by primary key; None when no row matches"""
        descriptor = await self._require_descriptor(table_name, "get")
        primary_key = self._primary_key(descriptor, "get")
        try:
            statement = compile_get(descriptor, primary_key, record_id)
        except InvalidRecordId:
            self._log_unmatchable_id(table_name, primary_key, record_id)
            return None

        logger.info(f"Executing READ: {statement.sql}")
        try:
            row = await self.database.fetchrow(statement.sql, statement.parameters)
        except InvalidRequest:
            # The id is the only argument, so the driver rejected the id itself
            self._log_unmatchable_id(table_name, primary_key, record_id)
            return None
        except DatabaseManagerError as e:
            raise e.annotate(table=table_name, operation="get")

        return serialize_record(row) if row is not None else None

    async def insert(self, table_name: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert a record and return the full stored row, including generated
        and defaulted columns

        Raises:
            InvalidRecord: if the record is empty or does not match the table
        """
        descriptor = await self._require_descriptor(table_name, "insert")
        statement = compile_insert(descriptor, record)

        logger.info(f"Executing INSERT: {statement.sql}")
        logger.debug(f"Parameters: {statement.parameters}")
        try:
            row = await self.database.fetchrow(statement.sql, statement.parameters)
        except DatabaseManagerError as e:
            raise e.annotate(table=table_name, operation="insert")

        if row is None:
            raise ExecutionFailure("Insert operation failed - no data returned", table=table_name, operation="insert")

        logger.info(f"Inserted record into {table_name}")
        return serialize_record(row)

    async def update(self, table_name: str, record_id: Any, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Update the submitted columns of one record

        Returns:
            The full updated row, or None when no record has that id
        """
        descriptor = await self._require_descriptor(table_name, "update")
        primary_key = self._primary_key(descriptor, "update")
        try:
            statement = compile_update(descriptor, primary_key, record_id, record)
        except InvalidRecordId:
            self._log_unmatchable_id(table_name, primary_key, record_id)
            return None

        logger.info(f"Executing UPDATE: {statement.sql}")
        logger.debug(f"Parameters: {statement.parameters}")
        try:
            row = await self.database.fetchrow(statement.sql, statement.parameters)
        except DatabaseManagerError as e:
            raise e.annotate(table=table_name, operation="update")

        if row is None:
            logger.info(f"No record in {table_name} with {primary_key}={record_id} to update")
            return None
        return serialize_record(row)

    async def remove(self, table_name: str, record_id: Any) -> bool:
        """Delete one record; False when no record has that id"""
        descriptor = await self._require_descriptor(table_name, "delete")
        primary_key = self._primary_key(descriptor, "delete")
        try:
            statement = compile_delete(descriptor, primary_key, record_id)
        except InvalidRecordId:
            self._log_unmatchable_id(table_name, primary_key, record_id)
            return False

        logger.info(f"Executing DELETE: {statement.sql}")
        logger.debug(f"Parameters: {statement.parameters}")
        try:
            result = await self.database.execute(statement.sql, statement.parameters)
        except InvalidRequest:
            self._log_unmatchable_id(table_name, primary_key, record_id)
            return False
        except DatabaseManagerError as e:
            raise e.annotate(table=table_name, operation="delete")

        # asyncpg returns "DELETE N" where N is the number of rows
        deleted_count = int(result.split()[-1]) if result else 0
        return deleted_count > 0

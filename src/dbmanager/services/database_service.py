"""
Database service - facade over catalog, descriptors and record access used by the API routes
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from fastapi import Request

from dbmanager.config import settings
from dbmanager.database.connection import Database
from dbmanager.database.errors import DatabaseManagerError
from dbmanager.models.query import QuerySpec, RecordPage
from dbmanager.models.table import TableDescriptor
from dbmanager.services.catalog import SchemaCatalog
from dbmanager.services.descriptors import DescriptorBuilder
from dbmanager.services.record_service import RecordService

logger = logging.getLogger(__name__)


class DatabaseService:
    """Stable contract between the HTTP layer and the introspection/query engine"""

    def __init__(
        self,
        database: Database,
        schema: str = "public",
        excluded_tables: Iterable[str] = (),
        primary_key_overrides: Optional[Mapping[str, str]] = None,
        primary_key_fallback: Optional[str] = "id"
    ):
        self.database = database
        self.catalog = SchemaCatalog(database, schema=schema, excluded_tables=excluded_tables)
        self.descriptors = DescriptorBuilder(database, self.catalog)
        self.records = RecordService(
            database,
            self.descriptors,
            primary_key_overrides=primary_key_overrides,
            primary_key_fallback=primary_key_fallback
        )

    async def test_connection(self) -> bool:
        """Round-trip a trivial query; never raises"""
        try:
            await self.database.fetchval("SELECT 1")
            return True
        except DatabaseManagerError as e:
            logger.error(f"Database connection test failed: {e}")
            return False

    async def get_tables(self) -> List[TableDescriptor]:
        return await self.descriptors.list_all_descriptors()

    async def get_table_info(self, table_name: str) -> Optional[TableDescriptor]:
        return await self.descriptors.build_descriptor(table_name)

    async def get_records(self, table_name: str, spec: QuerySpec) -> RecordPage:
        return await self.records.query(table_name, spec)

    async def get_record(self, table_name: str, record_id: Any) -> Optional[Dict[str, Any]]:
        return await self.records.get_by_id(table_name, record_id)

    async def create_record(self, table_name: str, record: Dict[str, Any]) -> Dict[str, Any]:
        return await self.records.insert(table_name, record)

    async def update_record(self, table_name: str, record_id: Any, record: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.records.update(table_name, record_id, record)

    async def delete_record(self, table_name: str, record_id: Any) -> bool:
        return await self.records.remove(table_name, record_id)


def get_database_service(request: Request) -> DatabaseService:
    """FastAPI dependency wiring the service to the pool opened at startup"""
    return DatabaseService(
        request.app.state.database,
        schema=settings.DB_SCHEMA,
        excluded_tables=settings.EXCLUDED_TABLES,
        primary_key_overrides=settings.PRIMARY_KEY_OVERRIDES,
        primary_key_fallback=settings.PRIMARY_KEY_FALLBACK
    )

"""
Schema catalog and descriptor builder tests
"""

import asyncio

import pytest

from infrastructure import ORDERS_COLUMNS, USERS_COLUMNS, FakePool, column_row
from dbmanager.database.connection import Database
from dbmanager.database.errors import CatalogUnavailable, ExecutionFailure, StatementTimeout
from dbmanager.models.enums import ColumnKind
from dbmanager.services.catalog import SchemaCatalog
from dbmanager.services.descriptors import DescriptorBuilder


class TestSchemaCatalog:

    @pytest.mark.asyncio
    async def test_list_tables(self, catalog, fake_db):
        assert await catalog.list_tables() == ["metrics", "orders", "users"]

        call = fake_db.calls[-1]
        assert "information_schema.tables" in call.sql
        assert call.params == ["public", ["spatial_ref_sys"]]

    @pytest.mark.asyncio
    async def test_describe_columns(self, catalog):
        columns = await catalog.describe_columns("users")

        assert [column.name for column in columns] == ["id", "username", "status", "createdAt"]
        id_column = columns[0]
        assert id_column.primary_key is True
        assert id_column.nullable is False
        assert id_column.kind == ColumnKind.TEXT
        assert id_column.default_value == "gen_random_uuid()"
        assert columns[3].kind == ColumnKind.TIMESTAMP
        assert columns[2].nullable is True

    @pytest.mark.asyncio
    async def test_describe_unknown_table_is_empty(self, catalog):
        assert await catalog.describe_columns("ghosts") == []

    @pytest.mark.asyncio
    async def test_failed_catalog_read(self, catalog, fake_db):
        fake_db.respond("information_schema.columns", ExecutionFailure("query failed", detail="permission denied"))

        with pytest.raises(CatalogUnavailable) as exc_info:
            await catalog.describe_columns("users")

        assert exc_info.value.table == "users"
        assert exc_info.value.operation == "describe_columns"
        assert exc_info.value.detail == "permission denied"

    @pytest.mark.asyncio
    async def test_connectivity_failure_is_annotated(self, catalog, fake_db):
        fake_db.respond("information_schema.tables", CatalogUnavailable("Database connection failed"))

        with pytest.raises(CatalogUnavailable) as exc_info:
            await catalog.list_tables()
        assert exc_info.value.operation == "list_tables"


class TestDescriptorBuilder:

    @pytest.mark.asyncio
    async def test_build_descriptor_counts_rows(self, catalog, fake_db):
        builder = DescriptorBuilder(fake_db, catalog)
        descriptor = await builder.build_descriptor("orders")

        assert descriptor.table_name == "orders"
        assert descriptor.row_count == 12
        assert [column.kind for column in descriptor.columns] == [
            ColumnKind.INTEGER, ColumnKind.INTEGER, ColumnKind.NUMERIC, ColumnKind.BOOLEAN, ColumnKind.JSON
        ]
        assert fake_db.statements("fetchval")[-1].sql == 'SELECT COUNT(*) AS count FROM "orders"'

    @pytest.mark.asyncio
    async def test_build_descriptor_without_count(self, catalog, fake_db):
        builder = DescriptorBuilder(fake_db, catalog)
        descriptor = await builder.build_descriptor("users", count_rows=False)

        assert descriptor.row_count is None
        assert fake_db.statements() == []

    @pytest.mark.asyncio
    async def test_unknown_table(self, catalog, fake_db):
        builder = DescriptorBuilder(fake_db, catalog)
        assert await builder.build_descriptor("ghosts") is None

    @pytest.mark.asyncio
    async def test_serializes_with_camel_case_keys(self, catalog, fake_db):
        builder = DescriptorBuilder(fake_db, catalog)
        payload = (await builder.build_descriptor("users")).model_dump(by_alias=True)

        assert payload["tableName"] == "users"
        assert payload["rowCount"] == 3
        assert payload["columns"][0]["primaryKey"] is True
        assert payload["columns"][0]["defaultValue"] == "gen_random_uuid()"

    @pytest.mark.asyncio
    async def test_list_all_descriptors(self, catalog, fake_db):
        builder = DescriptorBuilder(fake_db, catalog)
        descriptors = await builder.list_all_descriptors()

        assert [d.table_name for d in descriptors] == ["metrics", "orders", "users"]
        assert [d.row_count for d in descriptors] == [0, 12, 3]

    @pytest.mark.asyncio
    async def test_list_all_skips_tables_that_fail(self, catalog, fake_db):
        fake_db.respond('FROM "orders"', ExecutionFailure("relation is locked"))
        builder = DescriptorBuilder(fake_db, catalog)

        descriptors = await builder.list_all_descriptors()
        assert [d.table_name for d in descriptors] == ["metrics", "users"]

    @pytest.mark.asyncio
    async def test_list_all_propagates_connectivity_loss(self, catalog, fake_db):
        fake_db.respond("information_schema.columns", CatalogUnavailable("Database connection failed"))
        builder = DescriptorBuilder(fake_db, catalog)

        with pytest.raises(CatalogUnavailable):
            await builder.list_all_descriptors()

    @pytest.mark.asyncio
    async def test_table_dropped_between_listing_and_describe(self, catalog, fake_db):
        fake_db.tables["archive"] = [column_row("id", "integer", primary_key=True)]
        fake_db.respond("information_schema.columns", [])
        builder = DescriptorBuilder(fake_db, catalog)

        descriptors = await builder.list_all_descriptors()
        assert [d.table_name for d in descriptors] == ["metrics", "orders", "users"]


class _SlowOrdersConnection:
    """Answers catalog reads; the row count on "orders" exceeds the command timeout"""

    async def fetch(self, query, *args):
        if "information_schema.columns" not in query:
            return [{"table_name": name} for name in ("orders", "users")]
        return USERS_COLUMNS if args[1] == "users" else ORDERS_COLUMNS

    async def fetchval(self, query, *args):
        if '"orders"' in query:
            raise asyncio.TimeoutError()
        return 3


class TestStatementTimeouts:

    @pytest.mark.asyncio
    async def test_slow_count_skips_only_that_table(self):
        database = Database("postgresql://unused", command_timeout=5)
        database._pool = FakePool(_SlowOrdersConnection())
        catalog = SchemaCatalog(database, excluded_tables=["spatial_ref_sys"])
        builder = DescriptorBuilder(database, catalog)

        descriptors = await builder.list_all_descriptors()

        assert [d.table_name for d in descriptors] == ["users"]
        assert descriptors[0].row_count == 3

    @pytest.mark.asyncio
    async def test_slow_count_surfaces_on_single_table(self, catalog, fake_db):
        fake_db.respond('FROM "orders"', StatementTimeout("Statement timed out"))
        builder = DescriptorBuilder(fake_db, catalog)

        with pytest.raises(StatementTimeout) as exc_info:
            await builder.build_descriptor("orders")
        assert exc_info.value.operation == "count_rows"

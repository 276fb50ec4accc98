"""
Connection wrapper and error taxonomy tests
"""

import asyncio

import asyncpg
import pytest

from infrastructure import FakePool
from dbmanager.database.connection import Database
from dbmanager.database.errors import (
    CatalogUnavailable,
    ConstraintViolation,
    ExecutionFailure,
    InvalidRecord,
    InvalidRequest,
    StatementTimeout,
    TableNotFound,
)


class _FakeConnection:
    def __init__(self, error=None, result=None):
        self.error = error
        self.result = result

    async def _run(self, query, *args):
        if self.error is not None:
            raise self.error
        return self.result

    fetch = fetchrow = fetchval = execute = _run


def database_with(conn) -> Database:
    database = Database("postgresql://unused")
    database._pool = FakePool(conn)
    return database


class TestErrorTaxonomy:

    def test_status_codes(self):
        assert CatalogUnavailable("x").status_code == 503
        assert TableNotFound("users").status_code == 404
        assert InvalidRecord("x").status_code == 400
        assert ExecutionFailure("x").status_code == 500
        assert ConstraintViolation("x").status_code == 409

    def test_annotate_keeps_closer_context(self):
        error = ExecutionFailure("failed", operation="count_rows")
        error.annotate(table="users", operation="query")

        assert error.table == "users"
        assert error.operation == "count_rows"

    def test_to_dict(self):
        error = TableNotFound("ghosts", operation="get")
        assert error.to_dict() == {
            "error": "TABLE_NOT_FOUND",
            "message": "Table not found: ghosts",
            "table": "ghosts",
            "operation": "get",
        }
        assert str(ExecutionFailure("failed", detail="syntax error")) == "failed: syntax error"


class TestDatabase:

    @pytest.mark.asyncio
    async def test_not_connected(self):
        database = Database("postgresql://unused")
        assert database.is_connected is False

        with pytest.raises(CatalogUnavailable):
            await database.fetch("SELECT 1")

    @pytest.mark.asyncio
    async def test_rows_become_dicts(self):
        database = database_with(_FakeConnection(result=[{"id": 1}]))
        assert await database.fetch("SELECT * FROM t") == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_missing_row(self):
        database = database_with(_FakeConnection(result=None))
        assert await database.fetchrow("SELECT * FROM t") is None

    @pytest.mark.asyncio
    async def test_integrity_error_becomes_constraint_violation(self):
        database = database_with(_FakeConnection(error=asyncpg.UniqueViolationError("duplicate key")))

        with pytest.raises(ConstraintViolation) as exc_info:
            await database.fetchrow("INSERT INTO t VALUES ($1) RETURNING *", (1,))
        assert "duplicate key" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_postgres_error_becomes_execution_failure(self):
        database = database_with(_FakeConnection(error=asyncpg.UndefinedColumnError("column does not exist")))

        with pytest.raises(ExecutionFailure) as exc_info:
            await database.fetch("SELECT nope FROM t")
        assert not isinstance(exc_info.value, ConstraintViolation)

    @pytest.mark.asyncio
    async def test_network_error_becomes_catalog_unavailable(self):
        database = database_with(_FakeConnection(error=ConnectionRefusedError("refused")))

        with pytest.raises(CatalogUnavailable):
            await database.fetchval("SELECT 1")

    @pytest.mark.asyncio
    async def test_statement_timeout_is_not_connectivity_loss(self):
        database = database_with(_FakeConnection(error=asyncio.TimeoutError()))

        with pytest.raises(StatementTimeout) as exc_info:
            await database.fetchval('SELECT COUNT(*) AS count FROM "orders"')

        assert not isinstance(exc_info.value, CatalogUnavailable)
        assert exc_info.value.status_code == 504

    @pytest.mark.asyncio
    async def test_unencodable_argument_is_client_error(self):
        error = asyncpg.exceptions.DataError("invalid input for query argument $1: 'abc'")
        database = database_with(_FakeConnection(error=error))

        with pytest.raises(InvalidRequest) as exc_info:
            await database.fetchrow('SELECT * FROM "users" WHERE "id" = $1 LIMIT 1', ("abc",))

        assert exc_info.value.status_code == 400
        assert "abc" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_close(self):
        database = database_with(_FakeConnection())
        pool = database._pool

        await database.close()

        assert pool.closed is True
        assert database.is_connected is False

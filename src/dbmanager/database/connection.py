"""
Database connection and pool management
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Sequence

import asyncpg

from dbmanager.database.errors import (
    CatalogUnavailable,
    ConstraintViolation,
    ExecutionFailure,
    InvalidRequest,
    StatementTimeout,
)

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection):
    """Decode json/jsonb columns into Python values on every pooled connection"""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog"
        )


class Database:
    """
    Process-wide asyncpg pool shared by every request.

    Constructed once at startup and handed to the services that need it;
    close() drains the pool on shutdown.
    """

    def __init__(
        self,
        dsn: str,
        min_size: int = 2,
        max_size: int = 10,
        command_timeout: float = 60
    ):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self):
        """Initialize database connection pool"""
        if self._pool is not None:
            return
        try:
            self._pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=self.command_timeout,
                statement_cache_size=0,  # pgbouncer compatibility
                init=_init_connection
            )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Failed to create database pool: {e}")
            raise CatalogUnavailable("Could not connect to database", detail=str(e)) from e

        # Test connection
        await self.fetchval("SELECT 1")

        logger.info("Database initialized successfully")

    async def close(self):
        """Close database connection pool, waiting for checked-out connections to be released"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
        logger.info("Database connections closed")

    @asynccontextmanager
    async def _connection(self):
        if self._pool is None:
            raise CatalogUnavailable("Database pool not initialized")
        try:
            async with self._pool.acquire() as conn:
                yield conn
        except asyncpg.IntegrityConstraintViolationError as e:
            logger.warning(f"Constraint violation: {e}")
            raise ConstraintViolation("Constraint violation", detail=str(e)) from e
        except asyncpg.PostgresConnectionError as e:
            logger.error(f"Database connection error: {e}")
            raise CatalogUnavailable("Database connection failed", detail=str(e)) from e
        except asyncpg.PostgresError as e:
            logger.error(f"Database error: {e}")
            raise ExecutionFailure("Database query failed", detail=str(e)) from e
        except asyncpg.exceptions.DataError as e:
            # Argument the driver could not encode for the column's type
            logger.info(f"Rejected query argument: {e}")
            raise InvalidRequest("Invalid query argument", detail=str(e)) from e
        except asyncpg.InterfaceError as e:
            logger.error(f"Database interface error: {e}")
            raise CatalogUnavailable("Database connection failed", detail=str(e)) from e
        except (asyncio.TimeoutError, TimeoutError) as e:
            # command_timeout expired (TimeoutError is also an OSError)
            logger.error(f"Statement timed out after {self.command_timeout}s")
            raise StatementTimeout(
                "Statement timed out", detail=f"exceeded {self.command_timeout}s command timeout"
            ) from e
        except OSError as e:
            logger.error(f"Database unreachable: {e}")
            raise CatalogUnavailable("Database connection failed", detail=str(e) or type(e).__name__) from e

    async def fetch(self, query: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        async with self._connection() as conn:
            rows = await conn.fetch(query, *params)
        return [dict(row) for row in rows]

    async def fetchrow(self, query: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        async with self._connection() as conn:
            row = await conn.fetchrow(query, *params)
        return dict(row) if row is not None else None

    async def fetchval(self, query: str, params: Sequence[Any] = ()) -> Any:
        async with self._connection() as conn:
            return await conn.fetchval(query, *params)

    async def execute(self, query: str, params: Sequence[Any] = ()) -> str:
        """Run a statement and return its command status, e.g. "DELETE 1" """
        async with self._connection() as conn:
            return await conn.execute(query, *params)

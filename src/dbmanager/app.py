"""
Database Manager Backend API Server
Schema-agnostic table discovery and record CRUD over PostgreSQL
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dbmanager import __version__
from dbmanager.api.routes import health, tables
from dbmanager.config.settings import (
    ALLOWED_ORIGINS,
    DATABASE_URL,
    DB_COMMAND_TIMEOUT,
    DB_POOL_MAX_SIZE,
    DB_POOL_MIN_SIZE,
)
from dbmanager.database.connection import Database
from dbmanager.utils.error_handling import setup_error_handling

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the shared pool at startup and drain it at shutdown"""
    database = Database(
        DATABASE_URL,
        min_size=DB_POOL_MIN_SIZE,
        max_size=DB_POOL_MAX_SIZE,
        command_timeout=DB_COMMAND_TIMEOUT
    )
    await database.connect()
    app.state.database = database
    try:
        yield
    finally:
        await database.close()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Database Manager Backend",
        description="Runtime table discovery and generic CRUD over any table",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=ALLOWED_ORIGINS != ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    setup_error_handling(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(tables.router, prefix="/api/database", tags=["Database"])

    return app


# FastAPI app instance is exported for use by uvicorn
app = create_app()

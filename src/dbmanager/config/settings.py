"""
Configuration settings for the Database Manager Backend
"""

import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _split_csv(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_primary_key_overrides(value: str) -> dict:
    """Parse "table:column,table2:column2" into a table -> column mapping"""
    overrides = {}
    for entry in _split_csv(value):
        table_name, sep, column_name = entry.partition(":")
        if not sep or not table_name.strip() or not column_name.strip():
            raise ValueError(f"Invalid PRIMARY_KEY_OVERRIDES entry: '{entry}' (expected table:column)")
        overrides[table_name.strip()] = column_name.strip()
    return overrides


# Environment configuration
ENV = os.getenv("ENV", "PROD")
DATABASE_URL = os.getenv("DATABASE_URL")
PORT = int(os.getenv("PORT", 8080))

# Connection pool
DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", 2))
DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", 10))
DB_COMMAND_TIMEOUT = float(os.getenv("DB_COMMAND_TIMEOUT", 60))

# Schema introspection
DB_SCHEMA = os.getenv("DB_SCHEMA", "public")
EXCLUDED_TABLES = _split_csv(
    os.getenv("EXCLUDED_TABLES", "spatial_ref_sys,geometry_columns,geography_columns")
)

# Primary key resolution
PRIMARY_KEY_FALLBACK = os.getenv("PRIMARY_KEY_FALLBACK", "id")
PRIMARY_KEY_OVERRIDES = _parse_primary_key_overrides(os.getenv("PRIMARY_KEY_OVERRIDES", ""))

logger.info(f"Environment: {ENV}")
logger.info(f"Introspecting schema: {DB_SCHEMA}")

# Validate required environment variables
if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable is required")

# CORS settings
ALLOWED_ORIGINS = _split_csv(os.getenv("ALLOWED_ORIGINS", "*"))

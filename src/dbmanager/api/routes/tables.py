"""
Generic table API routes - table discovery and record CRUD for any table
All database access goes through the DatabaseService facade.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from dbmanager.database.errors import RecordNotFound
from dbmanager.models.query import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, QuerySpec
from dbmanager.services.database_service import DatabaseService, get_database_service

router = APIRouter()
logger = logging.getLogger(__name__)


def _parse_filters(filters: Optional[str]) -> Dict[str, Any]:
    """Decode the JSON-encoded filters query parameter"""
    if not filters:
        return {}
    try:
        parsed = json.loads(filters)
    except ValueError:
        raise HTTPException(status_code=400, detail="filters must be a JSON object")
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="filters must be a JSON object")
    return parsed


@router.get("/connection-test")
async def connection_test(service: DatabaseService = Depends(get_database_service)):
    """Report whether the database answers a trivial query"""
    return {"connected": await service.test_connection()}


@router.get("/tables")
async def list_tables(service: DatabaseService = Depends(get_database_service)):
    """List every visible table with its columns and row count"""
    tables = await service.get_tables()
    return [table.model_dump(by_alias=True) for table in tables]


@router.get("/tables/{table_name}")
async def get_table(table_name: str, service: DatabaseService = Depends(get_database_service)):
    """Describe one table"""
    table = await service.get_table_info(table_name)
    if table is None:
        raise HTTPException(status_code=404, detail="Table not found")
    return table.model_dump(by_alias=True)


@router.get("/tables/{table_name}/records")
async def list_records(
    table_name: str,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    search: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query("asc", alias="sortOrder"),
    filters: Optional[str] = Query(None, description="JSON object of column -> value"),
    service: DatabaseService = Depends(get_database_service)
):
    """List records with pagination, search, sorting and equality filters"""
    spec = QuerySpec(
        page=page,
        limit=limit,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        filters=_parse_filters(filters)
    )
    result = await service.get_records(table_name, spec)
    return result.model_dump(by_alias=True)


@router.get("/tables/{table_name}/records/{record_id}")
async def get_record(
    table_name: str,
    record_id: str,
    service: DatabaseService = Depends(get_database_service)
):
    """Get one record by primary key"""
    record = await service.get_record(table_name, record_id)
    if record is None:
        raise RecordNotFound("Record not found", table=table_name, operation="get")
    return record


@router.post("/tables/{table_name}/records", status_code=201)
async def create_record(
    table_name: str,
    record: Dict[str, Any] = Body(...),
    service: DatabaseService = Depends(get_database_service)
):
    """Create a record; the response carries every column of the stored row"""
    return await service.create_record(table_name, record)


@router.put("/tables/{table_name}/records/{record_id}")
async def update_record(
    table_name: str,
    record_id: str,
    record: Dict[str, Any] = Body(...),
    service: DatabaseService = Depends(get_database_service)
):
    """Update the submitted columns of one record"""
    updated = await service.update_record(table_name, record_id, record)
    if updated is None:
        raise RecordNotFound("Record not found", table=table_name, operation="update")
    return updated


@router.delete("/tables/{table_name}/records/{record_id}")
async def delete_record(
    table_name: str,
    record_id: str,
    service: DatabaseService = Depends(get_database_service)
):
    """Delete one record"""
    if not await service.delete_record(table_name, record_id):
        raise RecordNotFound("Record not found", table=table_name, operation="delete")

    logger.info(f"Deleted record {record_id} from {table_name}")
    return {"message": "Record deleted successfully"}

"""
Health check API route
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from dbmanager.services.database_service import DatabaseService, get_database_service

router = APIRouter()


@router.get("/")
async def health_check(service: DatabaseService = Depends(get_database_service)):
    """Health check - reports unhealthy only when the database is unreachable"""
    if not await service.test_connection():
        raise HTTPException(status_code=503, detail="Health check failed: database unreachable")

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "connected"
    }

"""Health check endpoints with database connectivity check."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from restodesk.core import check_db_connection, settings
from restodesk.core.responses import error_response, success_response

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> JSONResponse:
    """
    Health check endpoint.

    Returns 503 if the database is unavailable.
    """
    db_healthy = await check_db_connection()
    data = {
        "status": "healthy" if db_healthy else "unhealthy",
        "version": settings.app_version,
        "database": "connected" if db_healthy else "disconnected",
    }
    if not db_healthy:
        return error_response("Service unhealthy", status.HTTP_503_SERVICE_UNAVAILABLE, data)
    return success_response(data, "Service healthy")


"""Health Routes — liveness and readiness of the loan service.

Invariants:
    - GET /api/v1/health/ answers 200 whenever the process can serve requests
    - GET /api/v1/health/ready answers 503 until the loan store accepts queries
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from loan_service.config import get_settings
from loan_service.infrastructure import database

SERVICE_NAME = "loan-service"
SERVICE_VERSION = "1.0.0"

router = APIRouter(prefix="/api/v1/health", tags=["health"])


@router.get("/", status_code=status.HTTP_200_OK)
async def liveness():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": get_settings().environment,
    }


@router.get("/ready")
async def readiness():
    """Readiness: the database check decides whether traffic is routed here."""
    manager = database.db_manager
    store_ok = manager is not None and await manager.health_check()
    checks = {"database": "healthy" if store_ok else "unavailable"}
    if not store_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}

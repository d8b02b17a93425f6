"""Health and readiness endpoints."""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from claimrisk.config import settings
from claimrisk.db.database import check_db

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    from claimrisk.main import get_uptime

    return {
        "status": "healthy",
        "version": settings.app_version,
        "uptime_seconds": get_uptime(),
    }


@router.get("/ready")
async def ready() -> JSONResponse:
    from claimrisk.main import kafka_enabled

    db_ok = await check_db()

    status_code = 200 if db_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "ready" if db_ok else "degraded",
            "database": db_ok,
            "kafka": kafka_enabled(),
        },
    )

"""
Health Router.

Public, unauthenticated endpoints for uptime checks.

Endpoints Provided:
- `/api/health`: lightweight liveness check, `{status, timestamp}`.
- `/api/health/detailed`: also queries the database and reports `degraded`
  when it is unreachable.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from core.database import get_database_info
from core.logging_config import get_logger

logger = get_logger(__name__)

health_router = APIRouter(prefix="/api", tags=["Health"])


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@health_router.get("/health")
async def health_check() -> Dict[str, Any]:
    logger.debug("Health check requested")
    return {"status": "ok", "timestamp": _timestamp()}


@health_router.get("/health/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """
    Health check with component status

    The database check runs a real query, so this is slower than `/api/health`.
    """
    logger.info("Detailed health check requested")

    db_info = await get_database_info()
    database_ok = db_info["connection_healthy"]
    return {
        "status": "ok" if database_ok else "degraded",
        "timestamp": _timestamp(),
        "components": {
            "database": {
                "status": "healthy" if database_ok else "unhealthy",
                "info": db_info,
            }
        },
    }

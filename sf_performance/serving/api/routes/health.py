"""
Probes for load balancers and container orchestration.

/health reports the order store check in detail; /health/live only says
the process answers; /health/ready turns 503 while the store is down.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response
from pydantic import BaseModel

from sf_performance.config import get_settings
from sf_performance.database.connection import check_database_health

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


def _store_ok(check: Dict[str, Any]) -> bool:
    return check.get("status") == "healthy"


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Service status with the order store connectivity check"""
    settings = get_settings()
    store = await check_database_health()

    return HealthResponse(
        status="healthy" if _store_ok(store) else "degraded",
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks={"database": store},
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    if not _store_ok(await check_database_health()):
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}

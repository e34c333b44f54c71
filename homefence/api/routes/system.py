"""Liveness, readiness and Prometheus metrics endpoints."""

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST

from homefence.core.config import get_settings
from homefence.core.database import check_database
from homefence.core.metrics import get_metrics_response

router = APIRouter(tags=["system"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: 200 whenever the process can answer HTTP."""
    return {"status": "alive"}


@router.get("/ready")
async def ready(response: Response) -> dict[str, str]:
    """Readiness probe: 200 when the database answers, 503 otherwise."""
    if await check_database():
        return {"status": "ready", "database": "ok"}
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "not_ready", "database": "unavailable"}


@router.get("/api/metrics")
async def metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(content=get_metrics_response(), media_type=CONTENT_TYPE_LATEST)


@router.get("/")
async def root() -> dict[str, str]:
    settings = get_settings()
    return {"status": "ok", "message": f"{settings.app_name} API", "version": settings.app_version}

import logging

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api.dependencies import REPOSITORY_BACKEND, get_repository
from storage.repository import PlannerRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(repository: PlannerRepository = Depends(get_repository)) -> dict:
    """Health check endpoint for container orchestration."""
    storage_health = await repository.health()
    health = {
        "status": "healthy",
        "repository": REPOSITORY_BACKEND,
        "storage": storage_health,
    }
    if storage_health.get("status") != "healthy":
        logger.warning(f"Storage unhealthy: {storage_health}")
        health["status"] = "degraded"
    return health


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

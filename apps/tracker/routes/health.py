from fastapi import APIRouter, Depends

from apps.tracker.config import settings
from apps.tracker.dependencies import get_deployment_worker
from apps.tracker.services.deployment_worker import DeploymentWorker

router = APIRouter()

@router.get("/health")
async def health_check(worker: DeploymentWorker = Depends(get_deployment_worker)):
    """ Health check endpoint

    Returns service status, name, version and how many deployment workers
    are currently in flight.
    """
    return {
        "status": "ok",
        "name": settings.app_name,
        "version": settings.app_version,
        "active_workers": worker.active_count,
    }

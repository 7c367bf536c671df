"""Deployment routes: create, get, list, rollback.

Create and rollback answer 202 Accepted with the pending record; the
worker finishes the deployment in the background. Clients poll
GET /deployments/{id} until the status is successful or failed.
"""

from fastapi import APIRouter, Body, Depends, Query, status as http_status

from apps.tracker.config import settings
from apps.tracker.dependencies import get_deployment_service
from apps.tracker.models.deployment import DeploymentRecord, DeploymentStatus, Environment
from apps.tracker.schemas.deployment import (
    DeploymentCreate,
    DeploymentEnvelope,
    DeploymentListResponse,
    DeploymentResponse,
    ErrorResponse,
    Pagination,
    RollbackEnvelope,
    RollbackRequest,
)
from apps.tracker.services.deployment_service import DeploymentService

router = APIRouter(prefix="/deployments", tags=["deployments"])


def _to_response(record: DeploymentRecord) -> DeploymentResponse:
    return DeploymentResponse.model_validate(record)


@router.post(
    "",
    response_model=DeploymentEnvelope,
    status_code=http_status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def create_deployment(
    body: DeploymentCreate,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Submit a deployment. Returns immediately with status=pending."""
    record = await service.create(
        service_name=body.service_name,
        version=body.version,
        environment=body.environment,
        strategy=body.strategy,
        replicas=body.replicas,
    )
    return DeploymentEnvelope(deployment=_to_response(record))


@router.get("", response_model=DeploymentListResponse, responses={400: {"model": ErrorResponse}})
async def list_deployments(
    environment: Environment | None = Query(default=None, description="Filter by environment"),
    status: DeploymentStatus | None = Query(default=None, description="Filter by status"),
    limit: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
    offset: int = Query(default=0, ge=0),
    service: DeploymentService = Depends(get_deployment_service),
):
    """List deployments in submission order. Filters combine with AND."""
    records, total = await service.list(environment=environment, status=status, limit=limit, offset=offset)
    return DeploymentListResponse(
        deployments=[_to_response(r) for r in records],
        pagination=Pagination(
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + len(records) < total,
        ),
    )


@router.get("/{deployment_id}", response_model=DeploymentEnvelope, responses={404: {"model": ErrorResponse}})
async def get_deployment(
    deployment_id: str,
    service: DeploymentService = Depends(get_deployment_service),
):
    """Current state of one deployment, including its progress log."""
    record = await service.get(deployment_id)
    return DeploymentEnvelope(deployment=_to_response(record))


@router.post(
    "/{deployment_id}/rollback",
    response_model=RollbackEnvelope,
    status_code=http_status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def rollback_deployment(
    deployment_id: str,
    body: RollbackRequest | None = Body(default=None),
    service: DeploymentService = Depends(get_deployment_service),
):
    """Roll back a successful deployment by starting a new one that references it."""
    reason = body.reason if body else None
    record = await service.rollback(deployment_id, reason=reason)
    return RollbackEnvelope(rollback=_to_response(record))

from apps.tracker.schemas.base import BaseSchema
from apps.tracker.schemas.deployment import (
    DeploymentCreate,
    RollbackRequest,
    LogEntryResponse,
    DeploymentResponse,
    DeploymentEnvelope,
    RollbackEnvelope,
    Pagination,
    DeploymentListResponse,
    ErrorDetail,
    ErrorResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    # Requests
    "DeploymentCreate", "RollbackRequest",
    # Responses
    "LogEntryResponse", "DeploymentResponse", "DeploymentEnvelope", "RollbackEnvelope",
    "Pagination", "DeploymentListResponse",
    # Errors
    "ErrorDetail", "ErrorResponse",
]

"""Deployment schemas for request parsing and response serialization."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from apps.tracker.models.deployment import DeploymentStatus, DeploymentStrategy, Environment, LogLevel
from apps.tracker.schemas.base import BaseSchema


# ── Request Schemas ────────────────────────────────────

class DeploymentCreate(BaseModel):
    """Data to start a deployment.

    Fields are accepted as raw JSON values, whatever their type or presence;
    the service validates them together and reports every bad field in one
    400 response.
    """
    service_name: Any = Field(default=None, description="3-50 letters, digits, '-' or '_'")
    version: Any = Field(default=None, description="Semantic version, e.g. v1.2.3")
    environment: Any = Field(default=None, description="development, staging or production")
    strategy: Any = Field(default=None, description="rolling (default), blue-green or canary")
    replicas: Any = Field(default=None, description="Number of replicas, default 1")


class RollbackRequest(BaseModel):
    """Optional context for a rollback."""
    reason: str | None = Field(default=None, max_length=500)


# ── Response Schemas ───────────────────────────────────

class LogEntryResponse(BaseSchema):
    timestamp: datetime
    level: LogLevel
    message: str


class DeploymentResponse(BaseSchema):
    """Deployment record returned by the API."""
    id: str
    service_name: str
    version: str
    environment: Environment
    strategy: DeploymentStrategy
    replicas: int
    status: DeploymentStatus
    created_at: datetime
    updated_at: datetime
    logs: list[LogEntryResponse] = []
    rollback_of: str | None = None


class DeploymentEnvelope(BaseModel):
    deployment: DeploymentResponse


class RollbackEnvelope(BaseModel):
    rollback: DeploymentResponse


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class DeploymentListResponse(BaseModel):
    """One page of deployments."""
    deployments: list[DeploymentResponse]
    pagination: Pagination


class ErrorDetail(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Shape of every 4xx body."""
    error: str
    message: str
    details: list[ErrorDetail] | None = None

"""Deployment service: create, get, list and roll back deployments.

Handlers never change a record after inserting it. They validate input,
insert a pending record, hand it to the worker and return right away; the
worker owns every later update.
"""

import logging
import re

from apps.tracker.events import BaseEventBus, DeploymentEvent, EventType
from apps.tracker.exceptions import ConflictError, ValidationError
from apps.tracker.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    DeploymentStrategy,
    Environment,
    LogEntry,
    LogLevel,
    utc_now,
)
from apps.tracker.repositories.base import DeploymentRepository
from apps.tracker.services.deployment_worker import DeploymentWorker

logger = logging.getLogger(__name__)

SERVICE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{3,50}$")
VERSION_PATTERN = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)
ROLLBACK_VERSION_PREFIX = "rollback-"
MAX_REPLICAS = 100


def _choices(enum_cls) -> str:
    return ", ".join(member.value for member in enum_cls)


def validate_deployment_request(
    service_name,
    version,
    environment,
    strategy=None,
    replicas=None,
) -> tuple[Environment, DeploymentStrategy, int]:
    """Check every field and raise one ValidationError listing all problems.

    Returns the parsed (environment, strategy, replicas) on success.
    """
    errors: list[dict] = []

    if not isinstance(service_name, str) or not SERVICE_NAME_PATTERN.match(service_name):
        errors.append({
            "field": "service_name",
            "message": "must be 3-50 characters of letters, digits, '-' or '_'",
        })

    if not isinstance(version, str) or not VERSION_PATTERN.match(version):
        errors.append({
            "field": "version",
            "message": "must be a semantic version such as 1.2.3 or v1.2.3-rc.1",
        })

    parsed_env = None
    try:
        parsed_env = Environment(environment)
    except (TypeError, ValueError):
        errors.append({"field": "environment", "message": f"must be one of: {_choices(Environment)}"})

    parsed_strategy = DeploymentStrategy.ROLLING
    if strategy is not None:
        try:
            parsed_strategy = DeploymentStrategy(strategy)
        except (TypeError, ValueError):
            errors.append({"field": "strategy", "message": f"must be one of: {_choices(DeploymentStrategy)}"})

    parsed_replicas = 1
    if replicas is not None:
        if isinstance(replicas, bool) or not isinstance(replicas, int) or not 1 <= replicas <= MAX_REPLICAS:
            errors.append({"field": "replicas", "message": f"must be an integer between 1 and {MAX_REPLICAS}"})
        else:
            parsed_replicas = replicas

    if errors:
        raise ValidationError(errors)
    return parsed_env, parsed_strategy, parsed_replicas


class DeploymentService:
    """Request-side operations on deployment records."""

    def __init__(
        self,
        repository: DeploymentRepository,
        worker: DeploymentWorker,
        event_bus: BaseEventBus | None = None,
        max_page_size: int = 100,
    ):
        self.repository = repository
        self.worker = worker
        self.event_bus = event_bus
        self.max_page_size = max_page_size

    async def create(
        self,
        service_name: str,
        version: str,
        environment: str,
        strategy: str | None = None,
        replicas: int | None = None,
    ) -> DeploymentRecord:
        """Validate, store a pending record and start its worker."""
        env, parsed_strategy, parsed_replicas = validate_deployment_request(
            service_name, version, environment, strategy, replicas
        )
        now = utc_now()
        record = DeploymentRecord(
            service_name=service_name,
            version=version,
            environment=env,
            strategy=parsed_strategy,
            replicas=parsed_replicas,
            created_at=now,
            updated_at=now,
            logs=[LogEntry(timestamp=now, level=LogLevel.INFO, message="Deployment request accepted")],
        )
        stored = await self.repository.add(record)
        logger.info(
            "Deployment %s created: %s@%s -> %s",
            stored.id, stored.service_name, stored.version, stored.environment.value,
        )

        await self._publish(EventType.DEPLOYMENT_CREATED, stored)
        self.worker.spawn(stored)
        return stored

    async def get(self, deployment_id: str) -> DeploymentRecord:
        return await self.repository.get(deployment_id)

    async def list(
        self,
        environment: Environment | str | None = None,
        status: DeploymentStatus | str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[DeploymentRecord], int]:
        errors = []
        if not 1 <= limit <= self.max_page_size:
            errors.append({"field": "limit", "message": f"must be between 1 and {self.max_page_size}"})
        if offset < 0:
            errors.append({"field": "offset", "message": "must be 0 or greater"})
        if environment is not None:
            try:
                environment = Environment(environment)
            except ValueError:
                errors.append({"field": "environment", "message": f"must be one of: {_choices(Environment)}"})
        if status is not None:
            try:
                status = DeploymentStatus(status)
            except ValueError:
                errors.append({"field": "status", "message": f"must be one of: {_choices(DeploymentStatus)}"})
        if errors:
            raise ValidationError(errors)

        return await self.repository.list(environment=environment, status=status, limit=limit, offset=offset)

    async def rollback(self, deployment_id: str, reason: str | None = None) -> DeploymentRecord:
        """Start a new deployment that reverses a successful one.

        Rolling back the same target more than once is allowed.
        """
        target = await self.repository.get(deployment_id)
        if target.status != DeploymentStatus.SUCCESSFUL:
            raise ConflictError(
                f"Only successful deployments can be rolled back; "
                f"deployment {deployment_id} is {target.status.value}"
            )

        now = utc_now()
        message = f"Rollback of deployment {target.id} ({target.version}) requested"
        if reason:
            message += f": {reason}"
        record = DeploymentRecord(
            service_name=target.service_name,
            version=f"{ROLLBACK_VERSION_PREFIX}{target.version}",
            environment=target.environment,
            strategy=target.strategy,
            replicas=target.replicas,
            rollback_of=target.id,
            created_at=now,
            updated_at=now,
            logs=[LogEntry(timestamp=now, level=LogLevel.INFO, message=message)],
        )
        stored = await self.repository.add(record)
        logger.info("Rollback %s created for deployment %s", stored.id, target.id)

        await self._publish(EventType.ROLLBACK_REQUESTED, stored)
        self.worker.spawn(stored)
        return stored

    async def _publish(self, event_type: EventType, record: DeploymentRecord) -> None:
        if self.event_bus is None:
            return
        event = DeploymentEvent.from_record(event_type, record, source="deployment_service")
        try:
            await self.event_bus.publish(event.topic, event)
        except Exception as e:
            logger.error("Failed to publish %s for deployment %s: %s", event_type.value, record.id, e)

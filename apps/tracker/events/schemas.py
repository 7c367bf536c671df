"""Event schemas for deployment lifecycle notifications.

These are NOT stored records. They're lightweight dataclasses describing a
state change, published on the event bus so other services (chat ops,
dashboards, audit) can react without polling:

    DeploymentWorker → DeploymentEvent → EventBus → subscribers
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class EventType(str, Enum):
    """Types of events emitted by the deploy tracker."""
    DEPLOYMENT_CREATED = "deployment.created"
    DEPLOYMENT_STARTED = "deployment.started"
    DEPLOYMENT_SUCCEEDED = "deployment.succeeded"
    DEPLOYMENT_FAILED = "deployment.failed"
    ROLLBACK_REQUESTED = "deployment.rollback_requested"


# Topic each event type is published on
TOPICS: dict[EventType, str] = {
    EventType.DEPLOYMENT_CREATED: "deployments.created",
    EventType.DEPLOYMENT_STARTED: "deployments.started",
    EventType.DEPLOYMENT_SUCCEEDED: "deployments.succeeded",
    EventType.DEPLOYMENT_FAILED: "deployments.failed",
    EventType.ROLLBACK_REQUESTED: "deployments.rollback_requested",
}


@dataclass
class BaseEvent:
    """Base event: unique id, type, timestamp and the component that emitted it."""
    source: str
    event_type: EventType = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    metadata: dict = field(default_factory=dict)

    @property
    def topic(self) -> str:
        return TOPICS[self.event_type]

    def to_dict(self) -> dict:
        """Serialize for JSON transport over the event bus."""
        return {
            "id": self.id,
            "event_type": self.event_type.value,
            "source": self.source,
            "timestamp": self.timestamp,
            "metadata": self.metadata,
            "payload": self._payload_dict(),
        }

    def _payload_dict(self) -> dict:
        """Override in subclasses to add event-specific data."""
        return {}


@dataclass
class DeploymentEvent(BaseEvent):
    """Emitted on every deployment lifecycle change."""
    deployment_id: str = ""
    service_name: str = ""
    version: str = ""
    environment: str = ""
    status: str = ""                    # pending, running, successful, failed
    rollback_of: str | None = None
    error: str = ""

    @classmethod
    def from_record(cls, event_type: EventType, record, source: str, error: str = "") -> "DeploymentEvent":
        return cls(
            source=source,
            event_type=event_type,
            deployment_id=record.id,
            service_name=record.service_name,
            version=record.version,
            environment=record.environment.value,
            status=record.status.value,
            rollback_of=record.rollback_of,
            error=error,
        )

    def _payload_dict(self) -> dict:
        return {
            "deployment_id": self.deployment_id,
            "service_name": self.service_name,
            "version": self.version,
            "environment": self.environment,
            "status": self.status,
            "rollback_of": self.rollback_of,
            "error": self.error,
        }

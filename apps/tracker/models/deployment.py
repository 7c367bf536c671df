import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class DeploymentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESSFUL = "successful"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentStatus.SUCCESSFUL, DeploymentStatus.FAILED)


class DeploymentStrategy(str, Enum):
    ROLLING = "rolling"
    BLUE_GREEN = "blue-green"
    CANARY = "canary"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# Allowed forward moves of the status machine
TRANSITIONS: dict[DeploymentStatus, set[DeploymentStatus]] = {
    DeploymentStatus.PENDING: {DeploymentStatus.RUNNING},
    DeploymentStatus.RUNNING: {DeploymentStatus.SUCCESSFUL, DeploymentStatus.FAILED},
    DeploymentStatus.SUCCESSFUL: set(),
    DeploymentStatus.FAILED: set(),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    level: LogLevel
    message: str


@dataclass
class DeploymentRecord:
    """One tracked deployment attempt.

    Records are created in `pending` and only ever moved forward by the
    worker. `logs` is append-only.
    """
    service_name: str
    version: str
    environment: Environment
    strategy: DeploymentStrategy = DeploymentStrategy.ROLLING
    replicas: int = 1
    status: DeploymentStatus = DeploymentStatus.PENDING
    rollback_of: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    logs: list[LogEntry] = field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def can_transition_to(self, status: DeploymentStatus) -> bool:
        return status in TRANSITIONS[self.status]

    def snapshot(self) -> "DeploymentRecord":
        """Copy safe to hand to readers; later mutations don't show through."""
        return copy.deepcopy(self)

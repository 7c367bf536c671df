from apps.tracker.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    DeploymentStrategy,
    Environment,
    LogEntry,
    LogLevel,
    TRANSITIONS,
    utc_now,
)

__all__ = [
    "DeploymentRecord",
    "DeploymentStatus",
    "DeploymentStrategy",
    "Environment",
    "LogEntry",
    "LogLevel",
    "TRANSITIONS",
    "utc_now",
]

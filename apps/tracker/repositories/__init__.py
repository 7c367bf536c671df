from apps.tracker.repositories.base import DeploymentRepository
from apps.tracker.repositories.deployment import InMemoryDeploymentRepository

__all__ = [
    "DeploymentRepository",
    "InMemoryDeploymentRepository",
]

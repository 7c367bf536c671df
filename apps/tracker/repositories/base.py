"""Repository interface for deployment records.

Handlers and the worker only talk to this interface, so tests can use the
in-memory store and production can swap in real storage without touching
either of them.

Write ownership:
    handlers  -> add() only (insert a pending record)
    worker    -> transition(), append_log()
    retention -> purge_terminal()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from apps.tracker.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    Environment,
    LogLevel,
)


class DeploymentRepository(ABC):
    """Abstract deployment store. Every method returns snapshots."""

    @abstractmethod
    async def add(self, record: DeploymentRecord) -> DeploymentRecord:
        """Insert a new record. Raises InvalidStateError if the id was used before."""
        ...

    @abstractmethod
    async def get(self, deployment_id: str) -> DeploymentRecord:
        """Return the record. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def list(
        self,
        *,
        environment: Environment | None = None,
        status: DeploymentStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[DeploymentRecord], int]:
        """Return one page of matching records in insertion order, plus the match count."""
        ...

    @abstractmethod
    async def transition(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        level: LogLevel,
        message: str,
    ) -> DeploymentRecord:
        """Atomically move to `status`, refresh updated_at and append a log entry.

        Raises InvalidStateError for anything but a forward move.
        """
        ...

    @abstractmethod
    async def append_log(self, deployment_id: str, level: LogLevel, message: str) -> DeploymentRecord:
        """Append a progress entry. Raises InvalidStateError on terminal records."""
        ...

    @abstractmethod
    async def purge_terminal(self, older_than: datetime) -> list[str]:
        """Remove terminal records last updated before `older_than`. Returns their ids.

        Purged ids stay reserved: add() keeps rejecting them.
        """
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

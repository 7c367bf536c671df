"""In-memory deployment store."""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from apps.tracker.exceptions import InvalidStateError, NotFoundError
from apps.tracker.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    Environment,
    LogEntry,
    LogLevel,
    utc_now,
)
from apps.tracker.repositories.base import DeploymentRepository

logger = logging.getLogger(__name__)


class _Slot:
    """A stored record together with the lock guarding its mutations."""

    __slots__ = ("record", "lock")

    def __init__(self, record: DeploymentRecord):
        self.record = record
        self.lock = threading.Lock()


class InMemoryDeploymentRepository(DeploymentRepository):
    """Thread-safe dict-backed store.

    `_index_lock` guards the id map and insertion order only. Each record
    has its own lock, so the worker updating one deployment never blocks
    reads or writes of another. Readers copy under the record lock and
    therefore never see status, updated_at and logs out of step.
    """

    def __init__(self):
        self._slots: dict[str, _Slot] = {}
        self._order: list[str] = []
        self._seen_ids: set[str] = set()
        self._index_lock = threading.Lock()

    def _slot(self, deployment_id: str) -> _Slot:
        with self._index_lock:
            slot = self._slots.get(deployment_id)
        if slot is None:
            raise NotFoundError(deployment_id)
        return slot

    async def add(self, record: DeploymentRecord) -> DeploymentRecord:
        stored = record.snapshot()
        with self._index_lock:
            if stored.id in self._seen_ids:
                raise InvalidStateError(f"Deployment id '{stored.id}' was already used")
            self._seen_ids.add(stored.id)
            self._slots[stored.id] = _Slot(stored)
            self._order.append(stored.id)
        logger.debug("Stored deployment %s (%s@%s)", stored.id, stored.service_name, stored.version)
        return stored.snapshot()

    async def get(self, deployment_id: str) -> DeploymentRecord:
        slot = self._slot(deployment_id)
        with slot.lock:
            return slot.record.snapshot()

    async def list(
        self,
        *,
        environment: Environment | None = None,
        status: DeploymentStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[DeploymentRecord], int]:
        with self._index_lock:
            slots = [self._slots[i] for i in self._order]

        matched = []
        for slot in slots:
            with slot.lock:
                record = slot.record
                if environment is not None and record.environment != environment:
                    continue
                if status is not None and record.status != status:
                    continue
                matched.append(record.snapshot())

        return matched[offset:offset + limit], len(matched)

    async def transition(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        level: LogLevel,
        message: str,
    ) -> DeploymentRecord:
        slot = self._slot(deployment_id)
        with slot.lock:
            record = slot.record
            if not record.can_transition_to(status):
                raise InvalidStateError(
                    f"Deployment {deployment_id} cannot move from {record.status.value} to {status.value}"
                )
            now = utc_now()
            record.status = status
            record.updated_at = now
            record.logs.append(LogEntry(timestamp=now, level=level, message=message))
            return record.snapshot()

    async def append_log(self, deployment_id: str, level: LogLevel, message: str) -> DeploymentRecord:
        slot = self._slot(deployment_id)
        with slot.lock:
            record = slot.record
            if record.is_terminal:
                raise InvalidStateError(
                    f"Deployment {deployment_id} is {record.status.value}; no further updates allowed"
                )
            now = utc_now()
            record.updated_at = now
            record.logs.append(LogEntry(timestamp=now, level=level, message=message))
            return record.snapshot()

    async def purge_terminal(self, older_than: datetime) -> list[str]:
        with self._index_lock:
            expired = []
            for deployment_id in self._order:
                slot = self._slots[deployment_id]
                with slot.lock:
                    if slot.record.is_terminal and slot.record.updated_at < older_than:
                        expired.append(deployment_id)
            for deployment_id in expired:
                del self._slots[deployment_id]
            if expired:
                gone = set(expired)
                self._order = [i for i in self._order if i not in gone]
        # Purged ids stay in _seen_ids so they are never handed out again
        return expired

    async def count(self) -> int:
        with self._index_lock:
            return len(self._order)

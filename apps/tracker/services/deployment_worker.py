"""Background worker that drives a deployment record to a terminal state.

One asyncio task per record, spawned exactly once:

    pending ──start──► running ──phases──► successful | failed

Each phase appends a progress log entry. The worker suspends between
phases without blocking request handlers or other workers. The outcome
comes from an OutcomeEvaluator and is recorded as data, never raised.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from apps.tracker.events import BaseEventBus, DeploymentEvent, EventType
from apps.tracker.exceptions import InvalidStateError, TrackerException
from apps.tracker.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    DeploymentStrategy,
    LogLevel,
)
from apps.tracker.repositories.base import DeploymentRepository
from apps.tracker.services.outcome import Outcome, OutcomeEvaluator

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

# Progress messages per strategy, formatted with the record's fields
PHASES: dict[DeploymentStrategy, list[str]] = {
    DeploymentStrategy.ROLLING: [
        "Pulling image {service_name}:{version}",
        "Rolling out {replicas} replica(s) in batches",
        "Running health checks",
    ],
    DeploymentStrategy.BLUE_GREEN: [
        "Pulling image {service_name}:{version}",
        "Provisioning green environment with {replicas} replica(s)",
        "Running health checks",
        "Switching traffic to green",
    ],
    DeploymentStrategy.CANARY: [
        "Pulling image {service_name}:{version}",
        "Shifting 10% of traffic to canary",
        "Running health checks",
        "Promoting canary to 100% across {replicas} replica(s)",
    ],
}

ROLLBACK_PHASE = "Restoring previous release of {service_name} (rollback of {rollback_of})"


def phases_for(record: DeploymentRecord) -> list[str]:
    """Progress messages the worker will log for this record, in order."""
    fields = {
        "service_name": record.service_name,
        "version": record.version,
        "replicas": record.replicas,
        "rollback_of": record.rollback_of,
    }
    templates = list(PHASES[record.strategy])
    if record.rollback_of:
        templates.insert(0, ROLLBACK_PHASE)
    return [t.format(**fields) for t in templates]


class DeploymentWorker:
    """Spawns and tracks one lifecycle task per deployment record."""

    def __init__(
        self,
        repository: DeploymentRepository,
        evaluator: OutcomeEvaluator,
        event_bus: BaseEventBus | None = None,
        phase_delay: float = 1.0,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.repository = repository
        self.evaluator = evaluator
        self.event_bus = event_bus
        self.phase_delay = phase_delay
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task] = {}
        self._spawned: set[str] = set()

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    def spawn(self, record: DeploymentRecord) -> asyncio.Task:
        """Start the lifecycle task for a freshly created record.

        Must be called from inside a running event loop. A record id can
        only ever be spawned once.
        """
        if record.id in self._spawned:
            raise InvalidStateError(f"Worker already started for deployment {record.id}")
        self._spawned.add(record.id)

        task = asyncio.create_task(self._run(record), name=f"deployment-{record.id}")
        self._tasks[record.id] = task
        task.add_done_callback(lambda _t, deployment_id=record.id: self._tasks.pop(deployment_id, None))
        logger.debug("Worker spawned for deployment %s", record.id)
        return task

    def forget(self, deployment_ids) -> int:
        """Drop finished ids whose records were purged from the store.

        The repository still refuses to re-add a purged id, so forgetting it
        here cannot let a record run twice. In-flight ids are kept.
        """
        forgotten = 0
        for deployment_id in deployment_ids:
            if deployment_id in self._spawned and deployment_id not in self._tasks:
                self._spawned.discard(deployment_id)
                forgotten += 1
        return forgotten

    async def wait(self, deployment_id: str) -> None:
        """Block until the worker for `deployment_id` has finished (no-op if it already has)."""
        task = self._tasks.get(deployment_id)
        if task is not None:
            await asyncio.shield(task)

    async def wait_all(self) -> None:
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight workers on application shutdown."""
        tasks = list(self._tasks.values())
        if not tasks:
            return
        logger.warning("Cancelling %d in-flight deployment worker(s)", len(tasks))
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ── Lifecycle ─────────────────────────────────────────

    async def _run(self, record: DeploymentRecord) -> None:
        deployment_id = record.id
        try:
            running = await self.repository.transition(
                deployment_id,
                DeploymentStatus.RUNNING,
                LogLevel.INFO,
                f"Deployment started: {record.service_name}@{record.version} to "
                f"{record.environment.value} ({record.strategy.value}, {record.replicas} replica(s))",
            )
        except TrackerException as e:
            logger.error("Deployment %s could not be started: %s", deployment_id, e.message)
            return

        logger.info("Deployment %s running (%s@%s)", deployment_id, record.service_name, record.version)
        await self._publish(EventType.DEPLOYMENT_STARTED, running)

        try:
            for phase in phases_for(record):
                await self._sleep(self.phase_delay)
                await self.repository.append_log(deployment_id, LogLevel.INFO, phase)
            outcome = await self.evaluator.evaluate(await self.repository.get(deployment_id))
        except asyncio.CancelledError:
            logger.warning("Worker for deployment %s cancelled before completion", deployment_id)
            raise
        except Exception as e:
            logger.exception("Worker error for deployment %s", deployment_id)
            outcome = Outcome(success=False, reason=f"worker error: {e}")

        await self._finish(deployment_id, outcome)

    async def _finish(self, deployment_id: str, outcome: Outcome) -> None:
        if outcome.success:
            status, level, message = DeploymentStatus.SUCCESSFUL, LogLevel.INFO, "Deployment completed successfully"
            event_type = EventType.DEPLOYMENT_SUCCEEDED
        else:
            status, level = DeploymentStatus.FAILED, LogLevel.ERROR
            message = f"Deployment failed: {outcome.reason or 'unknown error'}"
            event_type = EventType.DEPLOYMENT_FAILED

        try:
            final = await self.repository.transition(deployment_id, status, level, message)
        except TrackerException as e:
            logger.error("Deployment %s could not be finished: %s", deployment_id, e.message)
            return

        logger.info("Deployment %s finished: %s", deployment_id, final.status.value)
        await self._publish(event_type, final, error=outcome.reason if not outcome.success else "")

    async def _publish(self, event_type: EventType, record: DeploymentRecord, error: str = "") -> None:
        if self.event_bus is None:
            return
        event = DeploymentEvent.from_record(event_type, record, source="deployment_worker", error=error)
        try:
            await self.event_bus.publish(event.topic, event)
        except Exception as e:
            logger.error("Failed to publish %s for deployment %s: %s", event_type.value, record.id, e)

"""Pytest fixtures for API and internal tests.

Apps are built through create_app() with an in-memory store, no phase
delay and a fixed outcome, so every deployment finishes quickly and
predictably. No Redis or network access.
"""
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from apps.tracker.events import InMemoryEventBus
from apps.tracker.main import create_app
from apps.tracker.repositories import InMemoryDeploymentRepository
from apps.tracker.services.deployment_service import DeploymentService
from apps.tracker.services.deployment_worker import DeploymentWorker
from apps.tracker.services.outcome import StaticOutcomeEvaluator


@pytest.fixture
def repository() -> InMemoryDeploymentRepository:
    return InMemoryDeploymentRepository()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    return InMemoryEventBus()


@pytest.fixture
def worker(repository, event_bus) -> DeploymentWorker:
    """Worker that always succeeds and never waits between phases."""
    return DeploymentWorker(repository, StaticOutcomeEvaluator(success=True), event_bus=event_bus, phase_delay=0)


@pytest.fixture
def service(repository, worker, event_bus) -> DeploymentService:
    return DeploymentService(repository, worker, event_bus=event_bus)


@pytest.fixture
def test_app(repository, event_bus) -> FastAPI:
    """App whose deployments always succeed."""
    return create_app(
        repository=repository,
        evaluator=StaticOutcomeEvaluator(success=True),
        event_bus=event_bus,
        phase_delay=0,
    )


@pytest.fixture
def client(test_app: FastAPI):
    """TestClient kept open for the whole test so background workers keep running."""
    with TestClient(test_app) as c:
        yield c


@pytest.fixture
def failing_client():
    """TestClient for an app whose deployments always fail."""
    app = create_app(
        repository=InMemoryDeploymentRepository(),
        evaluator=StaticOutcomeEvaluator(success=False, reason="readiness probe failed"),
        event_bus=InMemoryEventBus(),
        phase_delay=0,
    )
    with TestClient(app) as c:
        yield c


@pytest.fixture
def deployment_body() -> dict:
    """Valid body for POST /deployments."""
    return {"service_name": "user-api", "version": "v1.0.0", "environment": "staging"}


def _wait_for_terminal(client: TestClient, deployment_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        deployment = client.get(f"/deployments/{deployment_id}").json()["deployment"]
        if deployment["status"] in ("successful", "failed"):
            return deployment
        if time.monotonic() > deadline:
            raise AssertionError(f"deployment {deployment_id} stuck in {deployment['status']}")
        time.sleep(0.01)


@pytest.fixture
def wait_for_terminal():
    """Poll the API until a deployment is successful or failed."""
    return _wait_for_terminal

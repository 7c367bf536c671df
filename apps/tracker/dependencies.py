"""FastAPI dependencies.

The service graph (repository, worker, event bus) is built once per app in
create_app() and kept on app.state, so every test app gets its own store.
"""

from fastapi import Request

from apps.tracker.services.deployment_service import DeploymentService
from apps.tracker.services.deployment_worker import DeploymentWorker


def get_deployment_service(request: Request) -> DeploymentService:
    return request.app.state.deployment_service


def get_deployment_worker(request: Request) -> DeploymentWorker:
    return request.app.state.deployment_worker

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from apps.tracker.config import settings
from apps.tracker.events import BaseEventBus, create_event_bus
from apps.tracker.exceptions import TrackerException, request_validation_handler, tracker_exception_handler
from apps.tracker.middleware import RequestIDMiddleware
from apps.tracker.repositories import DeploymentRepository, InMemoryDeploymentRepository
from apps.tracker.routes import deployments, health
from apps.tracker.services.deployment_service import DeploymentService
from apps.tracker.services.deployment_worker import DeploymentWorker, SleepFn
from apps.tracker.services.outcome import OutcomeEvaluator, RandomOutcomeEvaluator
from apps.tracker.services.retention import RetentionSweeper

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manages application startup and shutdown lifecycle."""

    # --- Startup ---
    logger.info("%s v%s starting up...", settings.app_name, settings.app_version)
    app.state.retention_sweeper.start()

    yield  # App runs and handles requests here

    # --- Shutdown ---
    logger.info("%s shutting down...", settings.app_name)
    app.state.retention_sweeper.stop()
    await app.state.deployment_worker.shutdown()
    await app.state.event_bus.close()


def create_app(
    repository: DeploymentRepository | None = None,
    evaluator: OutcomeEvaluator | None = None,
    event_bus: BaseEventBus | None = None,
    phase_delay: float | None = None,
    sleep: SleepFn | None = None,
) -> FastAPI:
    """Application factory.

    Every collaborator can be injected, which is how tests get an isolated
    store, a deterministic outcome and no phase delay.
    """
    repository = repository or InMemoryDeploymentRepository()
    evaluator = evaluator or RandomOutcomeEvaluator(success_rate=settings.success_rate)
    event_bus = event_bus or create_event_bus(settings.event_bus_backend, redis_url=settings.redis_url)

    worker_kwargs = {}
    if sleep is not None:
        worker_kwargs["sleep"] = sleep
    worker = DeploymentWorker(
        repository,
        evaluator,
        event_bus=event_bus,
        phase_delay=settings.phase_delay_seconds if phase_delay is None else phase_delay,
        **worker_kwargs,
    )

    application = FastAPI(
        title=settings.app_name,
        description="Tracks asynchronous service deployments and rollbacks.",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    application.state.repository = repository
    application.state.event_bus = event_bus
    application.state.deployment_worker = worker
    application.state.deployment_service = DeploymentService(
        repository, worker, event_bus=event_bus, max_page_size=settings.max_page_size
    )
    application.state.retention_sweeper = RetentionSweeper(
        repository,
        retention_hours=settings.retention_hours,
        check_interval_minutes=settings.retention_check_minutes,
        worker=worker,
    )

    # --- Middleware ---
    # Last added runs first: CORS is outermost, RequestID closest to the routes
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestIDMiddleware)

    # --- Exception Handlers ---
    application.add_exception_handler(TrackerException, tracker_exception_handler)
    application.add_exception_handler(RequestValidationError, request_validation_handler)

    # --- Routes ---
    application.include_router(health.router, tags=["health"])
    application.include_router(deployments.router)  # /deployments, /deployments/{id}, /deployments/{id}/rollback

    return application


# Create the app instance - this is what uvicorn runs
app = create_app()

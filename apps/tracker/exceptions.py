from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class TrackerException(Exception):
    """Base exception for deploy tracker API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error: str = "internal_error",
        details: list[dict] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error = error
        self.details = details or []
        super().__init__(self.message)


class ValidationError(TrackerException):
    """Malformed create or rollback input (400). Carries one entry per bad field."""

    def __init__(self, details: list[dict], message: str = "Request validation failed"):
        super().__init__(
            message=message,
            status_code=400,
            error="validation_error",
            details=details,
        )

    @property
    def fields(self) -> list[str]:
        return [d["field"] for d in self.details]


class NotFoundError(TrackerException):
    """Deployment not found (404)."""

    def __init__(self, deployment_id: str):
        super().__init__(
            message=f"Deployment with id '{deployment_id}' not found",
            status_code=404,
            error="deployment_not_found",
        )
        self.deployment_id = deployment_id


class ConflictError(TrackerException):
    """Operation not allowed in the deployment's current status (409)."""

    def __init__(self, message: str, error: str = "invalid_deployment_status"):
        super().__init__(message=message, status_code=409, error=error)


class InvalidStateError(ConflictError):
    """Illegal status transition or mutation of a terminal record."""

    def __init__(self, message: str):
        super().__init__(message=message, error="invalid_state")


async def tracker_exception_handler(request: Request, exc: TrackerException) -> JSONResponse:
    """Converts our custom exceptions into clean JSON error responses."""
    content = {"error": exc.error, "message": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render FastAPI's own body/query validation failures in our error shape."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return await tracker_exception_handler(request, ValidationError(details))

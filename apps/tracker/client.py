"""Async HTTP client for the deploy tracker API, with a completion poller.

Usage:
    async with DeploymentClient("http://localhost:8000") as client:
        deployment = await client.create_deployment("user-api", "v1.0.0", "staging")
        final = await client.wait_for_completion(deployment["id"], poll_interval=2, timeout=120)
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({"successful", "failed"})


class DeploymentAPIError(Exception):
    """Non-2xx response from the API, carrying its structured error body."""

    def __init__(self, status_code: int, error: str, message: str, details: list | None = None):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.details = details or []
        super().__init__(f"{status_code} {error}: {message}")


class PollingTimeoutError(TimeoutError):
    """The deployment did not reach a terminal status within the polling bound."""

    def __init__(self, deployment_id: str, attempts: int, last_status: str | None):
        self.deployment_id = deployment_id
        self.attempts = attempts
        self.last_status = last_status
        super().__init__(
            f"Deployment {deployment_id} still {last_status} after {attempts} poll(s)"
        )


class DeploymentClient:
    """Thin wrapper over httpx.AsyncClient for the /deployments endpoints."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
        self._sleep = sleep
        self._clock = clock

    async def __aenter__(self) -> "DeploymentClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        response = await self.client.request(method, url, **kwargs)
        if response.is_success:
            return response.json()

        try:
            body = response.json()
        except ValueError:
            body = {}
        raise DeploymentAPIError(
            status_code=response.status_code,
            error=body.get("error", "http_error"),
            message=body.get("message", response.text),
            details=body.get("details"),
        )

    # ── Endpoints ────────────────────────────────────────

    async def create_deployment(
        self,
        service_name: str,
        version: str,
        environment: str,
        strategy: str | None = None,
        replicas: int | None = None,
    ) -> dict:
        payload: dict[str, Any] = {
            "service_name": service_name,
            "version": version,
            "environment": environment,
        }
        if strategy is not None:
            payload["strategy"] = strategy
        if replicas is not None:
            payload["replicas"] = replicas
        data = await self._request("POST", "/deployments", json=payload)
        return data["deployment"]

    async def get_deployment(self, deployment_id: str) -> dict:
        data = await self._request("GET", f"/deployments/{deployment_id}")
        return data["deployment"]

    async def list_deployments(
        self,
        environment: str | None = None,
        status: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> dict:
        """Returns the raw page: {"deployments": [...], "pagination": {...}}."""
        params: dict[str, Any] = {"limit": limit, "offset": offset}
        if environment:
            params["environment"] = environment
        if status:
            params["status"] = status
        return await self._request("GET", "/deployments", params=params)

    async def rollback(self, deployment_id: str, reason: str | None = None) -> dict:
        body = {"reason": reason} if reason else None
        data = await self._request("POST", f"/deployments/{deployment_id}/rollback", json=body)
        return data["rollback"]

    # ── Polling ──────────────────────────────────────────

    async def wait_for_completion(
        self,
        deployment_id: str,
        *,
        poll_interval: float = 2.0,
        timeout: float | None = None,
        max_attempts: int | None = None,
        backoff: float = 1.0,
        max_interval: float | None = None,
    ) -> dict:
        """Poll GET /deployments/{id} until the status is successful or failed.

        Polls are at least `poll_interval` apart; with backoff > 1 the gap
        grows geometrically, capped at `max_interval`. If the next poll
        would land at or past the deadline, sleeps until the deadline and
        raises PollingTimeoutError without polling again. `max_attempts`
        caps the number of polls.
        """
        if timeout is None and max_attempts is None:
            raise ValueError("wait_for_completion needs a timeout or max_attempts")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if backoff < 1.0:
            raise ValueError("backoff must be >= 1.0")

        deadline = self._clock() + timeout if timeout is not None else None
        interval = poll_interval
        attempts = 0
        last_status = None

        while True:
            deployment = await self.get_deployment(deployment_id)
            attempts += 1
            last_status = deployment["status"]
            if last_status in TERMINAL_STATUSES:
                logger.info("Deployment %s finished with %s after %d poll(s)", deployment_id, last_status, attempts)
                return deployment

            if max_attempts is not None and attempts >= max_attempts:
                raise PollingTimeoutError(deployment_id, attempts, last_status)

            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= interval:
                    if remaining > 0:
                        await self._sleep(remaining)
                    raise PollingTimeoutError(deployment_id, attempts, last_status)

            logger.debug("Deployment %s is %s; next poll in %.2fs", deployment_id, last_status, interval)
            await self._sleep(interval)

            interval *= backoff
            if max_interval is not None:
                interval = min(interval, max(max_interval, poll_interval))

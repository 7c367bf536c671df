"""Deployment client — endpoint wrappers and the completion poller.

Polling tests use httpx.MockTransport with a fake clock, so timing is exact
and nothing actually sleeps. The end-to-end test drives the real app over
httpx.ASGITransport.
"""
import httpx
import pytest

from apps.tracker.client import DeploymentAPIError, DeploymentClient, PollingTimeoutError
from apps.tracker.main import create_app
from apps.tracker.repositories import InMemoryDeploymentRepository
from apps.tracker.services.outcome import StaticOutcomeEvaluator
from apps.tracker.events import InMemoryEventBus


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        self.now += delay


def _deployment(status: str) -> dict:
    return {"id": "dep-1", "status": status, "logs": []}


def _client(handler, clock: FakeClock) -> DeploymentClient:
    return DeploymentClient(
        "http://tracker.test",
        transport=httpx.MockTransport(handler),
        sleep=clock.sleep,
        clock=clock,
    )


# ─── wait_for_completion ────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_wait_returns_terminal_record():
    statuses = iter(["pending", "running", "running", "successful"])
    polls = []

    def handler(request: httpx.Request) -> httpx.Response:
        polls.append(request.url.path)
        return httpx.Response(200, json={"deployment": _deployment(next(statuses))})

    clock = FakeClock()
    async with _client(handler, clock) as client:
        result = await client.wait_for_completion("dep-1", poll_interval=2.0, timeout=60)

    assert result["status"] == "successful"
    assert polls == ["/deployments/dep-1"] * 4
    assert clock.sleeps == [2.0, 2.0, 2.0]


@pytest.mark.asyncio
async def test_wait_times_out_at_deadline_without_extra_polls():
    polls = []

    def handler(request: httpx.Request) -> httpx.Response:
        polls.append(clock.now)
        return httpx.Response(200, json={"deployment": _deployment("running")})

    clock = FakeClock()
    async with _client(handler, clock) as client:
        with pytest.raises(PollingTimeoutError) as exc_info:
            await client.wait_for_completion("dep-1", poll_interval=1.0, timeout=3.5)

    assert polls == [0.0, 1.0, 2.0, 3.0]
    assert clock.now == pytest.approx(3.5)
    assert exc_info.value.attempts == 4
    assert exc_info.value.last_status == "running"
    assert isinstance(exc_info.value, TimeoutError)


@pytest.mark.asyncio
async def test_wait_never_polls_faster_than_interval():
    polls = []

    def handler(request: httpx.Request) -> httpx.Response:
        polls.append(clock.now)
        return httpx.Response(200, json={"deployment": _deployment("pending")})

    clock = FakeClock()
    async with _client(handler, clock) as client:
        with pytest.raises(PollingTimeoutError):
            await client.wait_for_completion("dep-1", poll_interval=5.0, timeout=12.0)

    gaps = [b - a for a, b in zip(polls, polls[1:])]
    assert all(gap >= 5.0 for gap in gaps)
    assert clock.now == pytest.approx(12.0)


@pytest.mark.asyncio
async def test_wait_max_attempts():
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"deployment": _deployment("running")})

    clock = FakeClock()
    async with _client(handler, clock) as client:
        with pytest.raises(PollingTimeoutError):
            await client.wait_for_completion("dep-1", poll_interval=1.0, max_attempts=3)
    assert calls == 3
    assert clock.sleeps == [1.0, 1.0]


@pytest.mark.asyncio
async def test_wait_exponential_backoff_is_capped():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"deployment": _deployment("running")})

    clock = FakeClock()
    async with _client(handler, clock) as client:
        with pytest.raises(PollingTimeoutError):
            await client.wait_for_completion(
                "dep-1", poll_interval=1.0, backoff=2.0, max_interval=5.0, max_attempts=6
            )
    assert clock.sleeps == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_wait_requires_a_bound():
    clock = FakeClock()
    async with _client(lambda r: httpx.Response(500), clock) as client:
        with pytest.raises(ValueError):
            await client.wait_for_completion("dep-1")


# ─── errors ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_api_error_is_raised_with_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "deployment_not_found", "message": "Deployment with id 'x' not found"})

    async with _client(handler, FakeClock()) as client:
        with pytest.raises(DeploymentAPIError) as exc_info:
            await client.get_deployment("x")
    assert exc_info.value.status_code == 404
    assert exc_info.value.error == "deployment_not_found"


@pytest.mark.asyncio
async def test_create_sends_optional_fields_only_when_set():
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.read())
        return httpx.Response(202, json={"deployment": _deployment("pending")})

    async with _client(handler, FakeClock()) as client:
        await client.create_deployment("user-api", "v1.0.0", "staging")
        await client.create_deployment("user-api", "v1.0.0", "staging", strategy="canary", replicas=2)

    assert b"strategy" not in bodies[0]
    assert b'"canary"' in bodies[1]


# ─── end to end ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_client_against_app():
    app = create_app(
        repository=InMemoryDeploymentRepository(),
        evaluator=StaticOutcomeEvaluator(success=True),
        event_bus=InMemoryEventBus(),
        phase_delay=0,
    )
    client = DeploymentClient("http://tracker.test", transport=httpx.ASGITransport(app=app))
    async with client:
        created = await client.create_deployment("user-api", "v1.0.0", "staging")
        assert created["status"] == "pending"

        final = await client.wait_for_completion(created["id"], poll_interval=0.01, timeout=5)
        assert final["status"] == "successful"

        rollback = await client.rollback(created["id"], reason="smoke test")
        assert rollback["rollback_of"] == created["id"]
        await client.wait_for_completion(rollback["id"], poll_interval=0.01, timeout=5)

        page = await client.list_deployments(environment="staging", status="successful")
        assert page["pagination"]["total"] == 2

        with pytest.raises(DeploymentAPIError) as exc_info:
            await client.create_deployment("a", "bad", "prod")
        assert exc_info.value.status_code == 400
        assert len(exc_info.value.details) == 3

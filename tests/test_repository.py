"""In-memory deployment repository — insert, snapshots, transitions, filters."""
import asyncio
import threading
from datetime import timedelta

import pytest

from apps.tracker.exceptions import InvalidStateError, NotFoundError
from apps.tracker.models.deployment import (
    DeploymentRecord,
    DeploymentStatus,
    Environment,
    LogLevel,
    utc_now,
)
from apps.tracker.repositories import InMemoryDeploymentRepository


def _record(name: str = "user-api", env: Environment = Environment.STAGING) -> DeploymentRecord:
    return DeploymentRecord(service_name=name, version="1.0.0", environment=env)


@pytest.mark.asyncio
async def test_add_and_get_roundtrip():
    repo = InMemoryDeploymentRepository()
    record = await repo.add(_record())
    fetched = await repo.get(record.id)
    assert fetched.id == record.id
    assert fetched.status == DeploymentStatus.PENDING


@pytest.mark.asyncio
async def test_get_missing_raises_not_found():
    repo = InMemoryDeploymentRepository()
    with pytest.raises(NotFoundError) as exc_info:
        await repo.get("missing")
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_id_rejected():
    repo = InMemoryDeploymentRepository()
    record = await repo.add(_record())
    with pytest.raises(InvalidStateError):
        await repo.add(record)


@pytest.mark.asyncio
async def test_returned_records_are_snapshots():
    repo = InMemoryDeploymentRepository()
    record = await repo.add(_record())
    record.status = DeploymentStatus.FAILED
    record.logs.append("garbage")

    fresh = await repo.get(record.id)
    assert fresh.status == DeploymentStatus.PENDING
    assert fresh.logs == []

    before = await repo.get(record.id)
    await repo.transition(record.id, DeploymentStatus.RUNNING, LogLevel.INFO, "started")
    assert before.status == DeploymentStatus.PENDING
    assert before.logs == []


@pytest.mark.asyncio
async def test_transition_forward_only():
    repo = InMemoryDeploymentRepository()
    record = await repo.add(_record())

    with pytest.raises(InvalidStateError):
        await repo.transition(record.id, DeploymentStatus.SUCCESSFUL, LogLevel.INFO, "skip running")

    running = await repo.transition(record.id, DeploymentStatus.RUNNING, LogLevel.INFO, "started")
    assert running.status == DeploymentStatus.RUNNING
    with pytest.raises(InvalidStateError):
        await repo.transition(record.id, DeploymentStatus.PENDING, LogLevel.INFO, "back")
    with pytest.raises(InvalidStateError):
        await repo.transition(record.id, DeploymentStatus.RUNNING, LogLevel.INFO, "again")

    done = await repo.transition(record.id, DeploymentStatus.FAILED, LogLevel.ERROR, "boom")
    assert done.status == DeploymentStatus.FAILED
    assert [entry.message for entry in done.logs] == ["started", "boom"]
    assert done.updated_at >= running.updated_at


@pytest.mark.asyncio
async def test_append_log_refreshes_updated_at():
    repo = InMemoryDeploymentRepository()
    record = await repo.add(_record())
    updated = await repo.append_log(record.id, LogLevel.DEBUG, "queued")
    assert updated.updated_at >= record.updated_at
    assert updated.logs[-1].level == LogLevel.DEBUG
    assert updated.status == DeploymentStatus.PENDING


@pytest.mark.asyncio
async def test_list_filters_are_conjunctive():
    repo = InMemoryDeploymentRepository()
    a = await repo.add(_record("svc-a", Environment.STAGING))
    b = await repo.add(_record("svc-b", Environment.STAGING))
    await repo.add(_record("svc-c", Environment.PRODUCTION))
    await repo.transition(b.id, DeploymentStatus.RUNNING, LogLevel.INFO, "started")

    page, total = await repo.list(environment=Environment.STAGING, status=DeploymentStatus.PENDING)
    assert total == 1
    assert [r.id for r in page] == [a.id]

    page, total = await repo.list(environment=Environment.STAGING)
    assert total == 2
    assert [r.id for r in page] == [a.id, b.id]


@pytest.mark.asyncio
async def test_purge_terminal_keeps_active_and_never_reuses_ids():
    repo = InMemoryDeploymentRepository()
    done = await repo.add(_record("svc-done"))
    active = await repo.add(_record("svc-active"))
    await repo.transition(done.id, DeploymentStatus.RUNNING, LogLevel.INFO, "started")
    await repo.transition(done.id, DeploymentStatus.SUCCESSFUL, LogLevel.INFO, "ok")

    assert await repo.purge_terminal(utc_now() - timedelta(hours=1)) == []
    assert await repo.purge_terminal(utc_now() + timedelta(seconds=1)) == [done.id]

    assert await repo.count() == 1
    assert (await repo.get(active.id)).id == active.id
    with pytest.raises(NotFoundError):
        await repo.get(done.id)
    with pytest.raises(InvalidStateError):
        await repo.add(done)


@pytest.mark.asyncio
async def test_concurrent_inserts_from_threads():
    repo = InMemoryDeploymentRepository()
    records = [_record(f"svc-{i}") for i in range(50)]

    def insert(record):
        asyncio.run(repo.add(record))

    threads = [threading.Thread(target=insert, args=(r,)) for r in records]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    page, total = await repo.list(limit=100)
    assert total == 50
    assert {r.id for r in page} == {r.id for r in records}

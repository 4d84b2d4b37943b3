import asyncio
import uuid
from datetime import date, datetime

import pytest

from planner_ai.commands import CanonicalField, NormalizedUpdate
from planner_ai.models import Task
from storage import db
from storage.memory_repository import InMemoryRepository
from storage.postgres_repository import PostgresRepository
from storage.repository import RepositoryError


def test_memory_repository_scopes_by_user_and_date():
    repo = InMemoryRepository()
    mine = Task(user_id="u1", title="Mine", scheduled_date=date(2025, 1, 15))
    later = Task(user_id="u1", title="Later", scheduled_date=date(2025, 1, 20))
    theirs = Task(user_id="u2", title="Theirs", scheduled_date=date(2025, 1, 15))
    for task in (mine, later, theirs):
        asyncio.run(repo.create_task(task))

    assert [t.title for t in asyncio.run(repo.list_tasks("u1"))] == ["Mine", "Later"]
    in_range = asyncio.run(repo.list_tasks("u1", date(2025, 1, 15), date(2025, 1, 15)))
    assert [t.title for t in in_range] == ["Mine"]

    assert asyncio.run(repo.delete_task("u1", theirs.id)) is False
    assert asyncio.run(repo.update_task("u1", theirs.id, [])) is None


def test_memory_repository_applies_all_updates():
    repo = InMemoryRepository()
    task = asyncio.run(repo.create_task(Task(user_id="u1", title="Team Sync")))

    updated = asyncio.run(
        repo.update_task(
            "u1",
            task.id,
            [
                NormalizedUpdate(field=CanonicalField.PRIORITY, value="high"),
                NormalizedUpdate(field=CanonicalField.SCHEDULED_TIME, value="15:00"),
            ],
        )
    )

    assert updated.priority == "high"
    assert updated.scheduled_time == "15:00"
    assert repo.tasks[task.id] == updated


def test_memory_repository_health():
    assert asyncio.run(InMemoryRepository().health())["status"] == "healthy"


def _row(task_id, **overrides):
    row = {
        "id": uuid.UUID(task_id),
        "user_id": "u1",
        "title": "Team Sync",
        "description": "",
        "scheduled_date": date(2025, 1, 15),
        "scheduled_time": None,
        "estimated_duration": 30,
        "priority": "medium",
        "status": "pending",
        "location": None,
        "goal_id": None,
        "objective_id": None,
        "created_at": datetime(2025, 1, 1, 9, 0),
    }
    row.update(overrides)
    return row


def test_postgres_update_builds_single_statement(monkeypatch):
    calls = []
    task_id = str(uuid.uuid4())

    async def fake_fetchrow(query, *args):
        calls.append((query, args))
        return _row(task_id, priority="high", scheduled_time="15:00")

    monkeypatch.setattr(db, "fetchrow", fake_fetchrow)

    updated = asyncio.run(
        PostgresRepository().update_task(
            "u1",
            task_id,
            [
                NormalizedUpdate(field=CanonicalField.PRIORITY, value="high"),
                NormalizedUpdate(field=CanonicalField.SCHEDULED_TIME, value="15:00"),
            ],
        )
    )

    assert len(calls) == 1
    query, args = calls[0]
    assert "SET priority = $1, scheduled_time = $2" in query
    assert "WHERE id = $3 AND user_id = $4" in query
    assert args == ("high", "15:00", uuid.UUID(task_id), "u1")
    assert updated.id == task_id
    assert updated.priority == "high"


def test_postgres_update_returns_none_when_missing(monkeypatch):
    async def fake_fetchrow(query, *args):
        return None

    monkeypatch.setattr(db, "fetchrow", fake_fetchrow)
    update = NormalizedUpdate(field=CanonicalField.STATUS, value="completed")
    assert asyncio.run(PostgresRepository().update_task("u1", str(uuid.uuid4()), [update])) is None


@pytest.mark.parametrize("tag,expected", [("DELETE 1", True), ("DELETE 0", False)])
def test_postgres_delete_reads_command_tag(monkeypatch, tag, expected):
    async def fake_execute(query, *args):
        return tag

    monkeypatch.setattr(db, "execute", fake_execute)
    assert asyncio.run(PostgresRepository().delete_task("u1", str(uuid.uuid4()))) is expected


def test_postgres_errors_become_repository_errors(monkeypatch):
    async def broken_fetch(query, *args):
        raise OSError("connection refused")

    monkeypatch.setattr(db, "fetch", broken_fetch)
    with pytest.raises(RepositoryError):
        asyncio.run(PostgresRepository().list_tasks("u1"))


def test_postgres_without_pool_is_unhealthy():
    health = asyncio.run(PostgresRepository().health())
    assert health["status"] == "unhealthy"

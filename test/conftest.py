import asyncio
from datetime import date

import pytest

from api.backend import BackendAPI
from planner_ai.models import Goal, Objective, Task
from storage.memory_repository import InMemoryRepository

# A Wednesday
TODAY = date(2025, 1, 15)
USER = "u1"


class RecordingRepository(InMemoryRepository):
    def __init__(self):
        super().__init__()
        self.update_calls = []

    async def update_task(self, user_id, task_id, updates):
        self.update_calls.append((task_id, list(updates)))
        return await super().update_task(user_id, task_id, updates)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def repository():
    return RecordingRepository()


@pytest.fixture
def seed(repository):
    def _seed(*records):
        for record in records:
            if isinstance(record, Task):
                asyncio.run(repository.create_task(record))
            elif isinstance(record, Goal):
                asyncio.run(repository.create_goal(record))
            elif isinstance(record, Objective):
                asyncio.run(repository.create_objective(record))
        return records
    return _seed


@pytest.fixture
def backend(repository):
    return BackendAPI(repository, clock=lambda: TODAY)

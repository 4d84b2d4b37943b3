"""
Repository interface the command dispatcher mutates and queries.

Every call is scoped to one user; implementations never return or touch
records owned by another user. Backend failures are raised as RepositoryError.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence

from planner_ai.commands import NormalizedUpdate
from planner_ai.models import Goal, Objective, Task


class RepositoryError(Exception):
    pass


class PlannerRepository(ABC):

    @abstractmethod
    async def list_tasks(
        self, user_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[Task]:
        """Tasks in creation order, optionally limited to scheduled dates in [start, end]."""

    @abstractmethod
    async def create_task(self, task: Task) -> Task:
        ...

    @abstractmethod
    async def update_task(
        self, user_id: str, task_id: str, updates: Sequence[NormalizedUpdate]
    ) -> Optional[Task]:
        """Apply all updates at once; returns None when the task does not exist."""

    @abstractmethod
    async def delete_task(self, user_id: str, task_id: str) -> bool:
        ...

    @abstractmethod
    async def list_goals(self, user_id: str) -> List[Goal]:
        ...

    @abstractmethod
    async def create_goal(self, goal: Goal) -> Goal:
        ...

    @abstractmethod
    async def list_objectives(self, user_id: str) -> List[Objective]:
        ...

    @abstractmethod
    async def create_objective(self, objective: Objective) -> Objective:
        ...

    async def health(self) -> dict:
        return {"status": "healthy", "backend": type(self).__name__}

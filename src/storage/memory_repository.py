from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

from planner_ai.commands import NormalizedUpdate
from planner_ai.models import Goal, Objective, Task
from storage.repository import PlannerRepository

logger = logging.getLogger(__name__)


class InMemoryRepository(PlannerRepository):
    """Process-local repository; records live in insertion-ordered dicts keyed by id."""

    def __init__(self):
        self.tasks: Dict[str, Task] = {}
        self.goals: Dict[str, Goal] = {}
        self.objectives: Dict[str, Objective] = {}

    async def list_tasks(
        self, user_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[Task]:
        return [
            task
            for task in self.tasks.values()
            if task.user_id == user_id
            and (start is None or task.scheduled_date >= start)
            and (end is None or task.scheduled_date <= end)
        ]

    async def create_task(self, task: Task) -> Task:
        self.tasks[task.id] = task
        return task

    async def update_task(
        self, user_id: str, task_id: str, updates: Sequence[NormalizedUpdate]
    ) -> Optional[Task]:
        task = self.tasks.get(task_id)
        if task is None or task.user_id != user_id:
            return None

        changes = {update.field.value: update.value for update in updates}
        updated = task.model_copy(update=changes)
        self.tasks[task_id] = updated
        logger.debug(f"Task {task_id} updated: {sorted(changes)}")
        return updated

    async def delete_task(self, user_id: str, task_id: str) -> bool:
        task = self.tasks.get(task_id)
        if task is None or task.user_id != user_id:
            return False
        del self.tasks[task_id]
        return True

    async def list_goals(self, user_id: str) -> List[Goal]:
        return [g for g in self.goals.values() if g.user_id == user_id]

    async def create_goal(self, goal: Goal) -> Goal:
        self.goals[goal.id] = goal
        return goal

    async def list_objectives(self, user_id: str) -> List[Objective]:
        return [o for o in self.objectives.values() if o.user_id == user_id]

    async def create_objective(self, objective: Objective) -> Objective:
        self.objectives[objective.id] = objective
        return objective

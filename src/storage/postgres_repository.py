"""
asyncpg-backed PlannerRepository.

Queries go through the shared pool in ``storage.db``. Driver and connection
errors are re-raised as RepositoryError so the dispatcher has a single backend
failure type to handle.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional, Sequence

import asyncpg

from planner_ai.commands import CanonicalField, NormalizedUpdate
from planner_ai.models import Goal, Objective, Task
from storage import db
from storage.repository import PlannerRepository, RepositoryError

logger = logging.getLogger(__name__)

# Only canonical fields may appear in an UPDATE's SET clause.
UPDATABLE_TASK_COLUMNS = frozenset(field.value for field in CanonicalField)

_ID_COLUMNS = ("id", "goal_id", "objective_id")


def _row_to_dict(record) -> dict:
    data = dict(record)
    for column in _ID_COLUMNS:
        if data.get(column) is not None:
            data[column] = str(data[column])
    return data


def _uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    return uuid.UUID(value) if value else None


@asynccontextmanager
async def _translate_errors(operation: str):
    try:
        yield
    except (asyncpg.PostgresError, OSError, RuntimeError) as e:
        logger.error(f"Repository operation '{operation}' failed: {e}")
        raise RepositoryError(f"{operation} failed: {e}") from e


class PostgresRepository(PlannerRepository):

    async def list_tasks(
        self, user_id: str, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[Task]:
        query = """
            SELECT * FROM tasks
            WHERE user_id = $1
              AND ($2::date IS NULL OR scheduled_date >= $2)
              AND ($3::date IS NULL OR scheduled_date <= $3)
            ORDER BY created_at
        """
        async with _translate_errors("list_tasks"):
            rows = await db.fetch(query, user_id, start, end)
        return [Task(**_row_to_dict(row)) for row in rows]

    async def create_task(self, task: Task) -> Task:
        query = """
            INSERT INTO tasks (
                id, user_id, title, description, scheduled_date, scheduled_time,
                estimated_duration, priority, status, location, goal_id, objective_id, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13)
        """
        async with _translate_errors("create_task"):
            await db.execute(
                query,
                _uuid(task.id),
                task.user_id,
                task.title,
                task.description,
                task.scheduled_date,
                task.scheduled_time,
                task.estimated_duration,
                task.priority,
                task.status,
                task.location,
                _uuid(task.goal_id),
                _uuid(task.objective_id),
                task.created_at,
            )
        logger.info(f"Created task {task.id} for user {task.user_id}")
        return task

    async def update_task(
        self, user_id: str, task_id: str, updates: Sequence[NormalizedUpdate]
    ) -> Optional[Task]:
        assignments = []
        values = []
        for update in updates:
            column = update.field.value
            if column not in UPDATABLE_TASK_COLUMNS:
                raise RepositoryError(f"Column {column!r} is not updatable")
            values.append(update.value)
            assignments.append(f"{column} = ${len(values)}")

        if not assignments:
            raise RepositoryError("update_task called without updates")

        values.extend([_uuid(task_id), user_id])
        query = (
            f"UPDATE tasks SET {', '.join(assignments)} "
            f"WHERE id = ${len(values) - 1} AND user_id = ${len(values)} RETURNING *"
        )
        async with _translate_errors("update_task"):
            row = await db.fetchrow(query, *values)
        return Task(**_row_to_dict(row)) if row else None

    async def delete_task(self, user_id: str, task_id: str) -> bool:
        async with _translate_errors("delete_task"):
            status = await db.execute(
                "DELETE FROM tasks WHERE id = $1 AND user_id = $2", _uuid(task_id), user_id
            )
        # asyncpg returns the command tag, e.g. "DELETE 1"
        return status.endswith(" 1")

    async def list_goals(self, user_id: str) -> List[Goal]:
        async with _translate_errors("list_goals"):
            rows = await db.fetch(
                "SELECT * FROM goals WHERE user_id = $1 ORDER BY created_at", user_id
            )
        return [Goal(**_row_to_dict(row)) for row in rows]

    async def create_goal(self, goal: Goal) -> Goal:
        query = """
            INSERT INTO goals (
                id, user_id, title, description, category, target_year, priority, status, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        """
        async with _translate_errors("create_goal"):
            await db.execute(
                query,
                _uuid(goal.id),
                goal.user_id,
                goal.title,
                goal.description,
                goal.category,
                goal.target_year,
                goal.priority,
                goal.status,
                goal.created_at,
            )
        logger.info(f"Created goal {goal.id} for user {goal.user_id}")
        return goal

    async def list_objectives(self, user_id: str) -> List[Objective]:
        async with _translate_errors("list_objectives"):
            rows = await db.fetch(
                "SELECT * FROM objectives WHERE user_id = $1 ORDER BY created_at", user_id
            )
        return [Objective(**_row_to_dict(row)) for row in rows]

    async def create_objective(self, objective: Objective) -> Objective:
        query = """
            INSERT INTO objectives (
                id, user_id, goal_id, title, description, target_month, target_year, status, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
        """
        async with _translate_errors("create_objective"):
            await db.execute(
                query,
                _uuid(objective.id),
                objective.user_id,
                _uuid(objective.goal_id),
                objective.title,
                objective.description,
                objective.target_month,
                objective.target_year,
                objective.status,
                objective.created_at,
            )
        logger.info(f"Created objective {objective.id} for user {objective.user_id}")
        return objective

    async def health(self) -> dict:
        return await db.health_check()

"""
Read-only answers to planner questions ("what's my next task?").

Every answer is computed from the acting user's own records; nothing is
mutated. Weeks start on Monday.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from normalization.values import format_minutes
from planner_ai.commands import EntityBag, ExecutionResult
from planner_ai.models import Task
from storage.repository import PlannerRepository

logger = logging.getLogger(__name__)

PRIORITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}

SUPPORTED_QUESTIONS = (
    "What's my next task?",
    "How many tasks do I have today?",
    "What's my progress this week?",
    "What's my schedule for tomorrow?",
    "How much time do I have left today?",
)

DateRange = Tuple[Optional[date], Optional[date]]


def week_bounds(today: date) -> Tuple[date, date]:
    start = today - timedelta(days=today.weekday())
    return start, start + timedelta(days=6)


def timeframe_range(timeframe: Optional[str], today: date) -> DateRange:
    if timeframe == "today":
        return today, today
    if timeframe == "tomorrow":
        tomorrow = today + timedelta(days=1)
        return tomorrow, tomorrow
    if timeframe == "week":
        return week_bounds(today)
    if timeframe == "month":
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)
    return None, None


def _timeframe_label(timeframe: Optional[str]) -> str:
    return {"today": "today", "tomorrow": "tomorrow", "week": "this week", "month": "this month"}.get(
        timeframe or "", ""
    )


def _task_summary(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "scheduled_date": task.scheduled_date.isoformat(),
        "scheduled_time": task.scheduled_time,
        "priority": task.priority,
        "estimated_duration": task.estimated_duration,
    }


def _next_task_key(task: Task):
    return (
        task.scheduled_date,
        task.scheduled_time is None,
        task.scheduled_time or "",
        PRIORITY_RANK.get(task.priority, 2),
    )


class QuestionAnswerer:

    def __init__(self, repository: PlannerRepository):
        self.repository = repository
        self._handlers: Dict[str, Callable] = {
            "count": self._count,
            "time_remaining": self._time_remaining,
            "next_task": self._next_task,
            "progress": self._progress,
            "schedule": self._schedule,
            "stats": self._stats,
        }

    async def answer(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        question_type = str(entities.get("question_type") or "general")
        handler = self._handlers.get(question_type, self._general)
        logger.debug(f"Answering {question_type} question for user {user_id}")
        return await handler(user_id, entities, today)

    async def _count(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        subject = entities.get("subject") or "task"
        timeframe = entities.get("timeframe")

        if subject == "goal":
            goals = await self.repository.list_goals(user_id)
            return ExecutionResult.ok(f"You have {len(goals)} goals", count=len(goals), subject="goal")

        if subject == "objective":
            objectives = await self.repository.list_objectives(user_id)
            return ExecutionResult.ok(
                f"You have {len(objectives)} objectives", count=len(objectives), subject="objective"
            )

        start, end = timeframe_range(timeframe, today)
        tasks = await self.repository.list_tasks(user_id, start, end)
        status = entities.get("status")
        if status:
            tasks = [t for t in tasks if t.status == status]

        label = _timeframe_label(timeframe)
        kind = str(status).replace("_", " ") if status else "total"
        message = f"You have {len(tasks)} {kind} tasks" + (f" {label}" if label else "")
        return ExecutionResult.ok(message, count=len(tasks), subject="task", timeframe=timeframe, status=status)

    async def _time_remaining(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        tasks = await self.repository.list_tasks(user_id, today, today)
        pending = [t for t in tasks if t.status == "pending"]
        if not pending:
            return ExecutionResult.ok(
                "You have no pending tasks for today. Great job staying on top of things!",
                total_minutes=0,
                pending_task_count=0,
            )

        total = sum(t.estimated_duration for t in pending)
        return ExecutionResult.ok(
            f"You have approximately {format_minutes(total)} of work remaining today "
            f"({len(pending)} pending tasks)",
            total_minutes=total,
            pending_task_count=len(pending),
            tasks=[{"title": t.title, "estimated_duration": t.estimated_duration} for t in pending],
        )

    async def _next_task(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        # Overdue pending tasks sort first.
        tasks = await self.repository.list_tasks(user_id)
        pending = sorted((t for t in tasks if t.status == "pending"), key=_next_task_key)
        if not pending:
            return ExecutionResult.ok(
                "You don't have any pending tasks. Time to relax or plan ahead!", next_task=None
            )

        task = pending[0]
        day = task.scheduled_date.strftime("%A, %B %d")
        if task.scheduled_date == today:
            when = "today"
        elif task.scheduled_date < today:
            when = f"overdue since {day}"
        else:
            when = f"on {day}"
        at = f" at {task.scheduled_time}" if task.scheduled_time else ""
        return ExecutionResult.ok(
            f'Your next task is "{task.title}" {when}{at} (estimated {format_minutes(task.estimated_duration)})',
            next_task=_task_summary(task),
            overdue=task.scheduled_date < today,
        )

    async def _progress(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        if entities.get("subject") == "goal":
            goals = await self.repository.list_goals(user_id)
            completed = sum(1 for g in goals if g.status == "completed")
            active = sum(1 for g in goals if g.status == "active")
            encouragement = "Keep pushing forward!" if active else "Time to set new goals!"
            return ExecutionResult.ok(
                f"You have {completed} completed goals and {active} active goals. {encouragement}",
                total_goals=len(goals),
                completed_goals=completed,
                active_goals=active,
            )

        start, _ = week_bounds(today)
        tasks = await self.repository.list_tasks(user_id, start, today)
        completed = sum(1 for t in tasks if t.status == "completed")
        percentage = round(completed / len(tasks) * 100) if tasks else 0
        return ExecutionResult.ok(
            f"This week you've completed {completed} out of {len(tasks)} tasks "
            f"({percentage}% completion rate)",
            completed_tasks=completed,
            total_tasks=len(tasks),
            completion_percentage=percentage,
        )

    async def _schedule(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        timeframe = entities.get("timeframe") or "today"
        start, end = timeframe_range(timeframe, today)
        label = _timeframe_label(timeframe)

        tasks = await self.repository.list_tasks(user_id, start, end)
        timed: List[Task] = sorted(
            (t for t in tasks if t.scheduled_time),
            key=lambda t: (t.scheduled_date, t.scheduled_time),
        )
        if not timed:
            return ExecutionResult.ok(f"You don't have any scheduled tasks {label}", tasks=[])

        listing = ", ".join(
            f"{t.title} at {t.scheduled_time} on {t.scheduled_date.strftime('%a %b %d')}" for t in timed
        )
        return ExecutionResult.ok(
            f"Your schedule {label}: {listing}", tasks=[_task_summary(t) for t in timed]
        )

    async def _stats(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        tasks = await self.repository.list_tasks(user_id)
        by_status = {
            status: sum(1 for t in tasks if t.status == status)
            for status in ("completed", "pending", "in_progress")
        }
        completed = [t for t in tasks if t.status == "completed"]
        average = round(sum(t.estimated_duration for t in completed) / len(completed)) if completed else 0

        return ExecutionResult.ok(
            f"Your productivity stats: {by_status['completed']} completed tasks, "
            f"{by_status['pending']} pending tasks, with an average completion time of "
            f"{average or 'N/A'} minutes",
            total_tasks=len(tasks),
            completed_tasks=by_status["completed"],
            pending_tasks=by_status["pending"],
            in_progress_tasks=by_status["in_progress"],
            average_completion_minutes=average,
        )

    async def _general(self, user_id: str, entities: EntityBag, today: date) -> ExecutionResult:
        return ExecutionResult.ok(
            "I can help you with tasks, goals, schedules, and productivity questions. "
            "Try asking about your next task, how many tasks you have, or your progress this week!",
            supported_questions=list(SUPPORTED_QUESTIONS),
        )

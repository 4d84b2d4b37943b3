"""
Command dispatcher: turns one classified, extracted Command into at most one
repository mutation (or a read-only answer).

Stage failures are raised internally as CommandError subclasses and converted
to ExecutionResult here; ``execute`` never raises for engine or repository
failures.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from dispatch.questions import QuestionAnswerer
from extraction.entity_extractor import extract_modification
from normalization.fields import field_display_name, normalize_update, value_display_text
from normalization.values import normalize_priority
from planner_ai.commands import (
    CanonicalField,
    CanonicalValue,
    Command,
    CommandError,
    EntityValue,
    ExecutionFailed,
    ExecutionResult,
    IntentKind,
    MissingRequiredEntity,
    NormalizedUpdate,
    ReferenceNotFound,
    ValidationFailed,
)
from planner_ai.models import GOAL_CATEGORIES, Goal, Objective, Task
from resolution.reference_resolver import ReferenceResolver, sample_titles
from storage.repository import PlannerRepository, RepositoryError

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 30

# Direct slots tried, in order, when a modification names no explicit field.
DIRECT_UPDATE_SLOTS: Tuple[Tuple[str, CanonicalField], ...] = (
    ("date", CanonicalField.SCHEDULED_DATE),
    ("time", CanonicalField.SCHEDULED_TIME),
    ("priority", CanonicalField.PRIORITY),
    ("status", CanonicalField.STATUS),
    ("duration", CanonicalField.ESTIMATED_DURATION),
    ("description", CanonicalField.DESCRIPTION),
    ("location", CanonicalField.LOCATION),
)

MODIFY_EXAMPLES = (
    'change team sync priority to high',
    'mark project review as completed',
    'set dentist appointment time to 3pm',
)

_FAILURE_MESSAGES = {
    IntentKind.ADD_TASK: "Failed to create task",
    IntentKind.MODIFY_TASK: "Failed to modify task",
    IntentKind.DELETE_TASK: "Failed to delete task",
    IntentKind.SCHEDULE_TASK: "Failed to schedule task",
    IntentKind.CREATE_GOAL: "Failed to create goal",
    IntentKind.CREATE_OBJECTIVE: "Failed to create objective",
    IntentKind.CREATE_ROADMAP: "Failed to create roadmap",
    IntentKind.ASK_QUESTION: "Failed to process question",
}

CATEGORY_PRIORITIES = {"career": "high", "education": "high", "financial": "high"}

# "all tasks", "all meetings on friday", "everything"; not "all-hands prep".
_BULK_PHRASE = r"(?:(?:all|every|each)\s+(?:(?:of|my|the|our|these|those)\s+)*(?:tasks?|\w+s)\b|everything(?![\w-])|all$)"
_BULK_RE = re.compile(r"^" + _BULK_PHRASE, re.IGNORECASE)
_BULK_COMMAND_RE = re.compile(r"\b(?:delete|remove|cancel|drop|erase|trash)\s+" + _BULK_PHRASE, re.IGNORECASE)


def _normalized(field: CanonicalField, raw: EntityValue, today: date) -> CanonicalValue:
    return normalize_update(field, raw, today=today).value


def _text(entities: Dict[str, EntityValue], slot: str) -> Optional[str]:
    value = entities.get(slot)
    if value is None:
        return None
    value = " ".join(str(value).split())
    return value or None


class CommandDispatcher:
    """
    Central routing component for parsed commands.

    ``clock`` supplies "today" for relative dates and defaults; tests inject a
    fixed date.
    """

    def __init__(
        self,
        repository: PlannerRepository,
        resolver: Optional[ReferenceResolver] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.repository = repository
        self.resolver = resolver or ReferenceResolver()
        self.questions = QuestionAnswerer(repository)
        self.clock = clock
        self._handlers = {
            IntentKind.ADD_TASK: self._add_task,
            IntentKind.MODIFY_TASK: self._modify_task,
            IntentKind.DELETE_TASK: self._delete_task,
            IntentKind.SCHEDULE_TASK: self._schedule_task,
            IntentKind.CREATE_GOAL: self._create_goal,
            IntentKind.CREATE_OBJECTIVE: self._create_objective,
            IntentKind.CREATE_ROADMAP: self._create_roadmap,
            IntentKind.ASK_QUESTION: self._ask_question,
        }

    async def execute(self, command: Command, user_id: str) -> ExecutionResult:
        handler = self._handlers[command.intent]
        today = self.clock()

        try:
            return await handler(command, user_id, today)
        except CommandError as e:
            logger.info(f"{command.intent.value} not executed ({e.kind.value} at {e.stage.value}): {e.message}")
            return e.to_result()
        except RepositoryError:
            logger.exception(f"Repository failure while executing {command.intent.value}")
            return ExecutionFailed(_FAILURE_MESSAGES[command.intent]).to_result()
        except Exception:
            logger.exception(f"Unexpected failure while executing {command.intent.value}")
            return ExecutionFailed(_FAILURE_MESSAGES[command.intent]).to_result()

    async def _resolve_task(self, command: Command, user_id: str, action: str) -> Task:
        query = _text(command.entities, "target")
        if not query:
            raise MissingRequiredEntity(
                f"Please specify which task to {action} by its title",
                data={"missing": "target"},
            )

        tasks = await self.repository.list_tasks(user_id)
        reference = self.resolver.resolve(query, tasks)
        if not reference.found:
            samples = sample_titles(tasks)
            hint = f" Your tasks include: {', '.join(samples)}" if samples else " You don't have any tasks yet."
            raise ReferenceNotFound(
                f'Task "{query}" not found.{hint}',
                data={"query": query, "available_tasks": samples},
            )

        return next(t for t in tasks if t.id == reference.resolved_id)

    def _resolve_link(self, name: str, candidates: Sequence[Any]):
        reference = self.resolver.resolve(name, candidates)
        if not reference.found:
            logger.debug(f"Link {name!r} did not resolve, creating without it")
            return None
        return next(c for c in candidates if c.id == reference.resolved_id)

    async def _add_task(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        entities = command.entities
        title = _text(entities, "title")
        if not title:
            raise MissingRequiredEntity(
                'Task title is required. Try: "add task Call mom tomorrow at 5pm"',
                data={"missing": "title"},
            )

        values: Dict[str, Any] = {
            "title": _normalized(CanonicalField.TITLE, title, today),
            "scheduled_date": _normalized(CanonicalField.SCHEDULED_DATE, entities.get("date", today), today),
            "estimated_duration": _normalized(
                CanonicalField.ESTIMATED_DURATION, entities.get("duration", DEFAULT_DURATION), today
            ),
            "priority": normalize_priority(entities.get("priority", "medium")),
        }
        if "time" in entities:
            values["scheduled_time"] = _normalized(CanonicalField.SCHEDULED_TIME, entities["time"], today)
        if _text(entities, "description"):
            values["description"] = _normalized(CanonicalField.DESCRIPTION, entities["description"], today)
        if _text(entities, "location"):
            values["location"] = _normalized(CanonicalField.LOCATION, entities["location"], today)

        link_message = ""
        objective_name = _text(entities, "objective")
        goal_name = _text(entities, "goal")
        objective = goal = None
        if objective_name:
            objective = self._resolve_link(objective_name, await self.repository.list_objectives(user_id))
        if objective is None and goal_name:
            goal = self._resolve_link(goal_name, await self.repository.list_goals(user_id))

        if objective is not None:
            values["objective_id"] = objective.id
            values["goal_id"] = objective.goal_id
            link_message = f' and linked to objective "{objective.title}"'
        elif goal is not None:
            values["goal_id"] = goal.id
            link_message = f' and linked to goal "{goal.title}"'

        task = await self.repository.create_task(Task(user_id=user_id, **values))
        logger.info(f"Created task {task.id} for user {user_id}")

        when = value_display_text(CanonicalField.SCHEDULED_DATE, task.scheduled_date)
        at = f" at {task.scheduled_time}" if task.scheduled_time else ""
        return ExecutionResult.ok(
            f'Task "{task.title}" created for {when}{at}{link_message}',
            task=task.model_dump(mode="json"),
        )

    def _modification(self, command: Command, task: Task, today: date) -> NormalizedUpdate:
        entities = command.entities
        if "field" in entities and "new_value" in entities:
            return normalize_update(str(entities["field"]), entities["new_value"], today=today)

        for slot, field in DIRECT_UPDATE_SLOTS:
            if slot in entities:
                return normalize_update(field, entities[slot], today=today)

        pair = extract_modification(command.raw_text, task_title=task.title, query=_text(entities, "target"))
        if pair is not None:
            return normalize_update(pair[0], pair[1], today=today)

        examples = "; ".join(f'"{e}"' for e in MODIFY_EXAMPLES)
        raise MissingRequiredEntity(
            f'Please specify what to change on "{task.title}" and the new value, e.g. {examples}',
            data={"missing": "field", "examples": list(MODIFY_EXAMPLES)},
        )

    async def _modify_task(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        task = await self._resolve_task(command, user_id, "modify")
        update = self._modification(command, task, today)

        updated = await self.repository.update_task(user_id, task.id, [update])
        if updated is None:
            raise ExecutionFailed(f'Task "{task.title}" could not be updated')
        logger.info(f"Updated task {task.id} ({update.field.value}) for user {user_id}")

        field_name = field_display_name(update.field)
        shown = value_display_text(update.field, update.value)
        return ExecutionResult.ok(
            f'Task "{task.title}" updated: {field_name} changed to {shown}',
            task=updated.model_dump(mode="json"),
            field=update.field.value,
        )

    async def _delete_task(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        target = _text(command.entities, "target") or ""
        if _BULK_RE.match(target) or _BULK_COMMAND_RE.search(command.raw_text):
            raise ValidationFailed(
                'Bulk deletion is not supported. Delete one task at a time, e.g. "delete dentist appointment"'
            )

        task = await self._resolve_task(command, user_id, "delete")
        if not await self.repository.delete_task(user_id, task.id):
            raise ExecutionFailed(f'Task "{task.title}" could not be deleted')
        logger.info(f"Deleted task {task.id} for user {user_id}")

        return ExecutionResult.ok(f'Task "{task.title}" deleted successfully', task_id=task.id)

    async def _schedule_task(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        task = await self._resolve_task(command, user_id, "schedule")
        entities = command.entities

        updates: List[NormalizedUpdate] = []
        if "date" in entities:
            updates.append(normalize_update(CanonicalField.SCHEDULED_DATE, entities["date"], today=today))
        if "time" in entities:
            updates.append(normalize_update(CanonicalField.SCHEDULED_TIME, entities["time"], today=today))
        if not updates:
            raise MissingRequiredEntity(
                f'Please specify when to schedule "{task.title}", e.g. "move {task.title} to tomorrow at 3pm"',
                data={"missing": "date"},
            )

        updated = await self.repository.update_task(user_id, task.id, updates)
        if updated is None:
            raise ExecutionFailed(f'Task "{task.title}" could not be rescheduled')
        logger.info(f"Rescheduled task {task.id} for user {user_id}")

        parts = [
            f"{'for' if u.field is CanonicalField.SCHEDULED_DATE else 'at'} {value_display_text(u.field, u.value)}"
            for u in updates
        ]
        return ExecutionResult.ok(
            f'Task "{task.title}" scheduled {" ".join(parts)}',
            task=updated.model_dump(mode="json"),
        )

    async def _create_goal(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        entities = command.entities
        title = _text(entities, "title")
        if not title:
            raise MissingRequiredEntity(
                'Goal title is required. Try: "create a goal to run a marathon this year"',
                data={"missing": "title"},
            )

        year = entities.get("year", today.year)
        if isinstance(year, bool) or not isinstance(year, int):
            raise ValidationFailed(f'Could not understand year "{year}"')

        category = str(entities.get("category", "personal")).lower()
        if category not in GOAL_CATEGORIES:
            raise ValidationFailed(f"Category must be one of: {', '.join(GOAL_CATEGORIES)}")

        goal = await self.repository.create_goal(
            Goal(
                user_id=user_id,
                title=_normalized(CanonicalField.TITLE, title, today),
                description=_text(entities, "description") or "",
                category=category,
                target_year=year,
                priority=normalize_priority(entities.get("priority", CATEGORY_PRIORITIES.get(category, "medium"))),
                status="active",
            )
        )
        logger.info(f"Created goal {goal.id} for user {user_id}")
        return ExecutionResult.ok(
            f'Goal "{goal.title}" created successfully for {goal.target_year}',
            goal=goal.model_dump(mode="json"),
        )

    async def _create_objective(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        entities = command.entities
        title = _text(entities, "title")
        if not title:
            raise MissingRequiredEntity(
                'Objective title is required. Try: "create objective Launch MVP under goal Build my startup"',
                data={"missing": "title"},
            )

        goal_name = _text(entities, "goal")
        if not goal_name:
            raise MissingRequiredEntity(
                f'Please specify which goal "{title}" belongs to, e.g. "create objective {title} under goal <goal>"',
                data={"missing": "goal"},
            )

        goals = await self.repository.list_goals(user_id)
        reference = self.resolver.resolve(goal_name, goals)
        if not reference.found:
            samples = sample_titles(goals)
            hint = f" Your goals include: {', '.join(samples)}" if samples else " Please create a goal first."
            raise ReferenceNotFound(
                f'Goal "{goal_name}" not found.{hint}',
                data={"query": goal_name, "available_goals": samples},
            )
        goal = next(g for g in goals if g.id == reference.resolved_id)

        month = entities.get("month", today.month)
        year = entities.get("year", today.year)
        if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
            raise ValidationFailed("Month must be between 1 and 12")
        if isinstance(year, bool) or not isinstance(year, int):
            raise ValidationFailed(f'Could not understand year "{year}"')

        objective = await self.repository.create_objective(
            Objective(
                user_id=user_id,
                goal_id=goal.id,
                title=_normalized(CanonicalField.TITLE, title, today),
                description=_text(entities, "description") or "",
                target_month=month,
                target_year=year,
                status="active",
            )
        )
        logger.info(f"Created objective {objective.id} under goal {goal.id} for user {user_id}")
        return ExecutionResult.ok(
            f'Objective "{objective.title}" created for {calendar.month_name[month]} {year} '
            f'under goal "{goal.title}"',
            objective=objective.model_dump(mode="json"),
        )

    async def _create_roadmap(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        prompt = _text(command.entities, "prompt")
        if not prompt:
            raise MissingRequiredEntity(
                "Please provide a description of what you want to achieve",
                data={"missing": "prompt"},
            )

        suggestions = [
            f"create a goal to {prompt}",
            f"create objective <first milestone> under goal {prompt}",
            "add task <first step> tomorrow",
        ]
        raise ExecutionFailed(
            "Roadmap generation is not available here. Build it step by step instead, e.g. "
            f'"{suggestions[0]}", then add objectives and tasks under it.',
            data={"suggestions": suggestions},
        )

    async def _ask_question(self, command: Command, user_id: str, today: date) -> ExecutionResult:
        return await self.questions.answer(user_id, command.entities, today)

import asyncio
from datetime import date

from api.backend import BackendAPI
from conftest import TODAY, USER
from dispatch.dispatcher import CommandDispatcher
from extraction.entity_extractor import EntityExtractor
from planner_ai.commands import Command, IntentKind, UserContext
from planner_ai.models import Goal, Objective, Task
from storage.memory_repository import InMemoryRepository
from storage.repository import RepositoryError


def _run(backend, text, **kwargs):
    return asyncio.run(backend.interpret(text, UserContext(user_id=USER), **kwargs))


def _execute(repository, entities, intent=IntentKind.MODIFY_TASK, raw_text="x"):
    dispatcher = CommandDispatcher(repository, clock=lambda: TODAY)
    command = Command(raw_text=raw_text, intent=intent, entities=entities, confidence=0.9)
    return asyncio.run(dispatcher.execute(command, USER))


def _only_task(repository):
    tasks = list(repository.tasks.values())
    assert len(tasks) == 1
    return tasks[0]


def test_add_task(backend, repository):
    result = _run(backend, "add task Call mom tomorrow at 5pm for 30 minutes")

    assert result.success, result
    assert result.message == 'Task "Call mom" created for Thursday, January 16, 2025 at 17:00'
    task = _only_task(repository)
    assert task.user_id == USER
    assert task.title == "Call mom"
    assert task.scheduled_date == date(2025, 1, 16)
    assert task.scheduled_time == "17:00"
    assert task.estimated_duration == 30
    assert task.priority == "medium"
    assert result.data["command"]["intent"] == "add_task"


def test_modify_priority(backend, repository, seed):
    seed(Task(user_id=USER, title="Team Sync", scheduled_date=TODAY))

    result = _run(backend, "change team sync priority to critical")

    assert result.success, result
    assert result.message == 'Task "Team Sync" updated: priority changed to critical'
    assert _only_task(repository).priority == "critical"
    assert len(repository.update_calls) == 1


def test_unknown_target_lists_available_tasks(backend, repository, seed):
    seed(Task(user_id=USER, title="Team Sync", scheduled_date=TODAY))

    result = _run(backend, "mark board meeting as completed")

    assert not result.success
    assert result.error == "reference_not_found at resolve"
    assert 'Task "board meeting" not found' in result.message
    assert result.data["available_tasks"] == ["Team Sync"]
    assert repository.update_calls == []
    assert _only_task(repository).status == "pending"


def test_other_users_tasks_are_invisible(backend, repository, seed):
    seed(Task(user_id="someone-else", title="Team Sync", scheduled_date=TODAY))

    result = _run(backend, "delete team sync")

    assert result.error == "reference_not_found at resolve"
    assert len(repository.tasks) == 1


def test_delete_task(backend, repository, seed):
    seed(Task(user_id=USER, title="Dentist Appointment", scheduled_date=TODAY))

    result = _run(backend, "delete the dentist appointment")

    assert result.success, result
    assert result.message == 'Task "Dentist Appointment" deleted successfully'
    assert repository.tasks == {}


def test_bulk_delete_is_refused(backend, repository, seed):
    seed(Task(user_id=USER, title="Team Sync"), Task(user_id=USER, title="Project Review"))

    result = _run(backend, "delete all tasks")

    assert result.error == "validation_failed at validate"
    assert len(repository.tasks) == 2


def test_schedule_task_is_one_update(backend, repository, seed):
    seed(Task(user_id=USER, title="Dentist Appointment", scheduled_date=TODAY))

    result = _run(backend, "move dentist appointment to tomorrow at 3pm")

    assert result.success, result
    assert result.message == 'Task "Dentist Appointment" scheduled for Thursday, January 16, 2025 at 15:00'
    task = _only_task(repository)
    assert task.scheduled_date == date(2025, 1, 16)
    assert task.scheduled_time == "15:00"
    assert len(repository.update_calls) == 1
    assert len(repository.update_calls[0][1]) == 2


def test_invalid_value_is_not_written(backend, repository, seed):
    seed(Task(user_id=USER, title="Team Sync", scheduled_date=TODAY))

    result = _run(backend, "set team sync duration to forever")

    assert result.error == "validation_failed at validate"
    assert repository.update_calls == []
    assert _only_task(repository).estimated_duration == 30


def test_modify_without_field_asks_for_one(backend, repository, seed):
    seed(Task(user_id=USER, title="Team Sync", scheduled_date=TODAY))

    result = _run(backend, "update team sync please", provided={"target": "Team Sync"})

    assert result.error == "missing_required_entity at extract"
    assert "examples" in result.data
    assert repository.update_calls == []


def test_modify_from_direct_slot(repository, seed):
    seed(Task(user_id=USER, title="Team Sync", scheduled_date=TODAY))

    result = _execute(repository, {"target": "Team Sync", "date": date(2025, 1, 20)})

    assert result.success, result
    assert result.message == 'Task "Team Sync" updated: date changed to Monday, January 20, 2025'
    assert _only_task(repository).scheduled_date == date(2025, 1, 20)


def test_modify_without_target(repository):
    result = _execute(repository, {"field": "priority", "new_value": "high"})
    assert result.error == "missing_required_entity at extract"


def test_add_task_without_title(repository):
    result = _execute(repository, {"date": TODAY}, intent=IntentKind.ADD_TASK)
    assert result.error == "missing_required_entity at extract"
    assert repository.tasks == {}


def test_low_confidence_needs_confirmation(backend, repository):
    result = _run(backend, "remind me to call mom")

    assert not result.success
    assert result.error == "classification_ambiguous at classify"
    assert result.data["requires_confirmation"] is True
    assert result.data["command"]["intent"] == "add_task"
    assert repository.tasks == {}

    confirmed = _run(backend, "remind me to call mom", confirmed=True)
    assert confirmed.success, confirmed
    assert _only_task(repository).title == "call mom"
    assert _only_task(repository).scheduled_date == TODAY


def test_create_goal(backend, repository):
    result = _run(backend, "set a goal to run a marathon this year")

    assert result.success, result
    assert result.message == 'Goal "run a marathon" created successfully for 2025'
    goal = list(repository.goals.values())[0]
    assert goal.category == "health"
    assert goal.target_year == 2025
    assert goal.status == "active"


def test_create_objective_under_goal(backend, repository, seed):
    (goal,) = seed(Goal(user_id=USER, title="Build startup", category="career"))

    result = _run(backend, "create objective Launch MVP under goal Build startup in March")

    assert result.success, result
    assert result.message == 'Objective "Launch MVP" created for March 2025 under goal "Build startup"'
    objective = list(repository.objectives.values())[0]
    assert objective.goal_id == goal.id
    assert objective.target_month == 3


def test_objective_requires_existing_goal(backend, repository):
    result = _run(backend, "create objective Launch MVP under goal Build startup in March")

    assert result.error == "reference_not_found at resolve"
    assert repository.objectives == {}


def test_task_linked_to_goal(backend, repository, seed):
    (goal,) = seed(Goal(user_id=USER, title="Write a novel", category="personal"))

    result = _run(backend, "add task Write chapter one for my novel goal")

    assert result.success, result
    assert result.message.endswith('and linked to goal "Write a novel"')
    assert _only_task(repository).goal_id == goal.id


def test_roadmap_reports_suggestions(backend, repository):
    result = _run(backend, "create a roadmap for learning Python")

    assert result.error == "execution_failed at execute"
    assert result.data["suggestions"][0] == "create a goal to learning Python"
    assert repository.goals == {}


class FailingRepository(InMemoryRepository):
    async def delete_task(self, user_id, task_id):
        raise RepositoryError("connection lost")


def test_repository_failure_becomes_result():
    repository = FailingRepository()
    asyncio.run(repository.create_task(Task(user_id=USER, title="Dentist Appointment")))
    backend = BackendAPI(repository, clock=lambda: TODAY)

    result = _run(backend, "delete the dentist appointment")

    assert not result.success
    assert result.error == "execution_failed at execute"
    assert result.message == "Failed to delete task"


def test_not_found_lists_at_most_five_tasks(backend, repository, seed):
    titles = ["Alpha", "Bravo", "Charlie", "Delta", "Echo", "Foxtrot", "Golf"]
    seed(*(Task(user_id=USER, title=t, scheduled_date=TODAY) for t in titles))

    result = _run(backend, "mark board meeting as completed")

    assert result.error == "reference_not_found at resolve"
    assert result.data["available_tasks"] == titles[:5]
    assert result.message.endswith("Your tasks include: Alpha, Bravo, Charlie, Delta, Echo")
    assert "Foxtrot" not in result.message
    assert repository.update_calls == []


def test_task_linked_to_objective(backend, repository, seed):
    (goal,) = seed(Goal(user_id=USER, title="Build startup", category="career"))
    (objective,) = seed(Objective(user_id=USER, goal_id=goal.id, title="Launch MVP"))

    result = _run(backend, "add task Draft pitch deck under objective Launch MVP")

    assert result.success, result
    assert result.message.endswith('and linked to objective "Launch MVP"')
    task = _only_task(repository)
    assert task.title == "Draft pitch deck"
    assert task.objective_id == objective.id
    assert task.goal_id == goal.id
    assert repository.goals.keys() == {goal.id}
    assert repository.objectives.keys() == {objective.id}


def test_far_future_offset_falls_back_to_today(backend, repository):
    result = _run(backend, "add task call mom in 3000000 days")

    assert result.success, result
    task = _only_task(repository)
    assert task.title == "call mom"
    assert task.scheduled_date == TODAY


class BrokenExtractor(EntityExtractor):
    def extract(self, text, intent, provided=None, today=None):
        raise ValueError("unreadable")


def test_parse_failure_becomes_result(repository):
    backend = BackendAPI(repository, extractor=BrokenExtractor(), clock=lambda: TODAY)

    result = _run(backend, "add task call mom")

    assert not result.success
    assert result.error == "execution_failed at extract"
    assert repository.tasks == {}


def test_hyphenated_all_title_is_not_bulk(backend, repository, seed):
    seed(Task(user_id=USER, title="All-hands prep"), Task(user_id=USER, title="Team Sync"))

    result = _run(backend, "delete all-hands prep")

    assert result.success, result
    assert result.message == 'Task "All-hands prep" deleted successfully'
    assert [t.title for t in repository.tasks.values()] == ["Team Sync"]


def test_bulk_phrasings_are_refused(backend, repository, seed):
    seed(Task(user_id=USER, title="Team Sync"), Task(user_id=USER, title="Project Review"))

    for text in ("delete all my tasks", "delete everything", "remove every task"):
        result = _run(backend, text)
        assert result.error == "validation_failed at validate", text

    assert len(repository.tasks) == 2


def test_goal_priority_follows_category(backend, repository):
    result = _run(backend, "create a goal to get a promotion at work")

    assert result.success, result
    goal = list(repository.goals.values())[0]
    assert goal.title == "get a promotion at work"
    assert goal.category == "career"
    assert goal.priority == "high"


def test_explicit_goal_priority_wins_over_category(repository):
    result = _execute(
        repository,
        {"title": "Pay off car loan", "category": "financial", "priority": "low"},
        intent=IntentKind.CREATE_GOAL,
    )

    assert result.success, result
    assert list(repository.goals.values())[0].priority == "low"

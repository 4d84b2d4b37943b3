import asyncio
from datetime import date, timedelta

from conftest import TODAY, USER
from dispatch.questions import QuestionAnswerer, timeframe_range, week_bounds
from planner_ai.commands import UserContext
from planner_ai.models import Goal, Task

TOMORROW = TODAY + timedelta(days=1)


def _ask(backend, text):
    return asyncio.run(backend.interpret(text, UserContext(user_id=USER)))


def _answer(repository, **entities):
    return asyncio.run(QuestionAnswerer(repository).answer(USER, entities, TODAY))


def test_week_starts_on_monday():
    assert week_bounds(TODAY) == (date(2025, 1, 13), date(2025, 1, 19))
    assert timeframe_range("month", TODAY) == (date(2025, 1, 1), date(2025, 1, 31))
    assert timeframe_range(None, TODAY) == (None, None)


def test_count_today(backend, seed):
    seed(
        Task(user_id=USER, title="A", scheduled_date=TODAY),
        Task(user_id=USER, title="B", scheduled_date=TODAY),
        Task(user_id=USER, title="C", scheduled_date=TOMORROW),
    )

    result = _ask(backend, "how many tasks do I have today?")

    assert result.success, result
    assert result.message == "You have 2 total tasks today"
    assert result.data["count"] == 2


def test_next_task_prefers_earliest_timed_pending(backend, seed):
    seed(
        Task(user_id=USER, title="Yesterday", scheduled_date=TODAY - timedelta(days=1), status="completed"),
        Task(user_id=USER, title="Afternoon", scheduled_date=TODAY, scheduled_time="14:00"),
        Task(user_id=USER, title="Morning", scheduled_date=TODAY, scheduled_time="09:00"),
        Task(user_id=USER, title="Done", scheduled_date=TODAY, scheduled_time="07:00", status="completed"),
        Task(user_id=USER, title="Tomorrow", scheduled_date=TOMORROW, scheduled_time="08:00"),
    )

    result = _ask(backend, "what's my next task?")

    assert result.message == 'Your next task is "Morning" today at 09:00 (estimated 30 minutes)'
    assert result.data["next_task"]["title"] == "Morning"
    assert result.data["overdue"] is False


def test_next_task_surfaces_overdue_pending_first(backend, seed):
    seed(
        Task(user_id=USER, title="Morning", scheduled_date=TODAY, scheduled_time="09:00"),
        Task(user_id=USER, title="Expense report", scheduled_date=TODAY - timedelta(days=2)),
    )

    result = _ask(backend, "what's my next task?")

    assert result.message == (
        'Your next task is "Expense report" overdue since Monday, January 13 (estimated 30 minutes)'
    )
    assert result.data["overdue"] is True


def test_next_task_when_nothing_pending(repository):
    result = _answer(repository, question_type="next_task")
    assert result.success
    assert result.data["next_task"] is None


def test_time_remaining(backend, seed):
    seed(
        Task(user_id=USER, title="A", scheduled_date=TODAY, estimated_duration=30),
        Task(user_id=USER, title="B", scheduled_date=TODAY, estimated_duration=60),
        Task(user_id=USER, title="C", scheduled_date=TODAY, estimated_duration=45, status="completed"),
        Task(user_id=USER, title="D", scheduled_date=TOMORROW, estimated_duration=20),
    )

    result = _ask(backend, "how much time do I have left today")

    assert result.message == "You have approximately 1h 30m of work remaining today (2 pending tasks)"
    assert result.data["total_minutes"] == 90


def test_weekly_progress(backend, seed):
    seed(
        Task(user_id=USER, title="Mon", scheduled_date=date(2025, 1, 13), status="completed"),
        Task(user_id=USER, title="Tue", scheduled_date=date(2025, 1, 14)),
        Task(user_id=USER, title="Wed", scheduled_date=date(2025, 1, 15), status="completed"),
        Task(user_id=USER, title="Thu", scheduled_date=date(2025, 1, 16)),
    )

    result = _ask(backend, "what's my progress this week")

    assert result.message == "This week you've completed 2 out of 3 tasks (67% completion rate)"
    assert result.data["completion_percentage"] == 67


def test_schedule_lists_timed_tasks_only(backend, seed):
    seed(
        Task(user_id=USER, title="Standup", scheduled_date=TOMORROW, scheduled_time="09:00"),
        Task(user_id=USER, title="Groceries", scheduled_date=TOMORROW),
        Task(user_id=USER, title="Today thing", scheduled_date=TODAY, scheduled_time="10:00"),
    )

    result = _ask(backend, "what's on my schedule for tomorrow")

    assert [t["title"] for t in result.data["tasks"]] == ["Standup"]
    assert result.message.startswith("Your schedule tomorrow: Standup at 09:00")


def test_goal_count_and_progress(repository, seed):
    seed(
        Goal(user_id=USER, title="Run a marathon", status="completed"),
        Goal(user_id=USER, title="Learn Spanish"),
    )

    assert _answer(repository, question_type="count", subject="goal").data["count"] == 2
    progress = _answer(repository, question_type="progress", subject="goal")
    assert progress.data["completed_goals"] == 1
    assert progress.data["active_goals"] == 1


def test_stats(repository, seed):
    seed(
        Task(user_id=USER, title="A", status="completed", estimated_duration=30),
        Task(user_id=USER, title="B", status="completed", estimated_duration=60),
        Task(user_id=USER, title="C"),
    )

    result = _answer(repository, question_type="stats")

    assert result.data["completed_tasks"] == 2
    assert result.data["pending_tasks"] == 1
    assert result.data["average_completion_minutes"] == 45


def test_general_question_lists_what_is_supported(repository):
    result = _answer(repository, question_type="general")
    assert result.success
    assert "What's my next task?" in result.data["supported_questions"]

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator


Priority = Literal["low", "medium", "high", "critical"]
TaskStatus = Literal["pending", "in_progress", "completed", "cancelled", "rescheduled"]
GoalStatus = Literal["draft", "active", "completed", "paused", "cancelled"]
ObjectiveStatus = Literal["draft", "active", "completed", "paused"]
GoalCategory = Literal["career", "health", "personal", "financial", "education", "other"]

PRIORITIES = ("low", "medium", "high", "critical")
TASK_STATUSES = ("pending", "in_progress", "completed", "cancelled", "rescheduled")
GOAL_CATEGORIES = ("career", "health", "personal", "financial", "education", "other")


def _new_id() -> str:
    return str(uuid.uuid4())


class Task(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""

    scheduled_date: date = Field(default_factory=date.today)
    # "HH:MM", 24h clock
    scheduled_time: Optional[str] = None
    estimated_duration: int = Field(30, gt=0)

    priority: Priority = "medium"
    status: TaskStatus = "pending"
    location: Optional[str] = None

    goal_id: Optional[str] = None
    objective_id: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("title must not be blank")
        return v2


class Goal(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    category: GoalCategory = "personal"
    target_year: int = Field(default_factory=lambda: date.today().year)
    priority: Priority = "medium"
    status: GoalStatus = "active"
    created_at: datetime = Field(default_factory=datetime.now)


class Objective(BaseModel):
    id: str = Field(default_factory=_new_id)
    user_id: str
    goal_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    target_month: int = Field(default_factory=lambda: date.today().month, ge=1, le=12)
    target_year: int = Field(default_factory=lambda: date.today().year)
    status: ObjectiveStatus = "active"
    created_at: datetime = Field(default_factory=datetime.now)

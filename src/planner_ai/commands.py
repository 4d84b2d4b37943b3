"""
Data model of the natural-language command engine.

A Command is built once per incoming sentence (classify, then extract) and is
consumed exactly once by the dispatcher. Every stage failure is raised as a
CommandError subclass and converted into an ExecutionResult at the dispatcher
boundary, so callers only ever see ExecutionResult.
"""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Callers may only auto-execute strictly above this confidence.
AUTO_EXECUTE_THRESHOLD = 0.7


class IntentKind(str, Enum):
    ADD_TASK = "add_task"
    MODIFY_TASK = "modify_task"
    DELETE_TASK = "delete_task"
    SCHEDULE_TASK = "schedule_task"
    CREATE_GOAL = "create_goal"
    CREATE_OBJECTIVE = "create_objective"
    CREATE_ROADMAP = "create_roadmap"
    ASK_QUESTION = "ask_question"


class MatchTier(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    SUBSTRING = "substring"
    TOKEN_OVERLAP = "token_overlap"
    SIMILARITY = "similarity"
    NONE = "none"


class CanonicalField(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    PRIORITY = "priority"
    STATUS = "status"
    SCHEDULED_DATE = "scheduled_date"
    SCHEDULED_TIME = "scheduled_time"
    ESTIMATED_DURATION = "estimated_duration"
    LOCATION = "location"


class CommandStage(str, Enum):
    CLASSIFY = "classify"
    EXTRACT = "extract"
    RESOLVE = "resolve"
    VALIDATE = "validate"
    EXECUTE = "execute"


class ErrorKind(str, Enum):
    CLASSIFICATION_AMBIGUOUS = "classification_ambiguous"
    MISSING_REQUIRED_ENTITY = "missing_required_entity"
    REFERENCE_NOT_FOUND = "reference_not_found"
    VALIDATION_FAILED = "validation_failed"
    EXECUTION_FAILED = "execution_failed"


# Closed set of slot value kinds: text, numbers and calendar dates.
EntityValue = Union[date, int, float, str]
EntityBag = Dict[str, EntityValue]
CanonicalValue = Union[date, int, str]


class UserContext(BaseModel):
    user_id: str = Field(..., min_length=1)


class Command(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw_text: str
    intent: IntentKind
    entities: EntityBag = Field(default_factory=dict)
    confidence: float = Field(..., ge=0.0, le=1.0)

    @property
    def auto_executable(self) -> bool:
        return self.confidence > AUTO_EXECUTE_THRESHOLD


class TargetReference(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    resolved_id: Optional[str] = None
    resolved_title: Optional[str] = None
    match_tier: MatchTier = MatchTier.NONE
    score: Optional[float] = None

    @property
    def found(self) -> bool:
        return self.resolved_id is not None


class NormalizedUpdate(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: CanonicalField
    value: CanonicalValue


class ExecutionResult(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str, **data: Any) -> "ExecutionResult":
        return cls(success=True, message=message, data=data or None)


class CommandError(Exception):
    """A stage of the pipeline could not complete; carries a user-facing message."""

    kind: ErrorKind = ErrorKind.EXECUTION_FAILED
    stage: CommandStage = CommandStage.EXECUTE

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[CommandStage] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.data = data

    def to_result(self) -> ExecutionResult:
        return ExecutionResult(
            success=False,
            message=self.message,
            data=self.data,
            error=f"{self.kind.value} at {self.stage.value}",
        )


class MissingRequiredEntity(CommandError):
    kind = ErrorKind.MISSING_REQUIRED_ENTITY
    stage = CommandStage.EXTRACT


class ReferenceNotFound(CommandError):
    kind = ErrorKind.REFERENCE_NOT_FOUND
    stage = CommandStage.RESOLVE


class ValidationFailed(CommandError):
    kind = ErrorKind.VALIDATION_FAILED
    stage = CommandStage.VALIDATE


class ExecutionFailed(CommandError):
    kind = ErrorKind.EXECUTION_FAILED
    stage = CommandStage.EXECUTE

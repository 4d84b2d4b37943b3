from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Tuple

from normalization.text import strip_politeness
from planner_ai.commands import IntentKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.3

_CREATION_VERBS = {"create", "build", "make", "plan", "generate", "design", "draft"}
_GOAL_VERBS = {"create", "add", "make", "set", "new", "start", "define"}
_DELETE_VERBS = {"delete", "remove", "cancel", "drop", "erase", "trash"}
_ADD_TASK_VERBS = {"add", "create", "new", "schedule", "put"}
_MOVE_VERBS = {"move", "reschedule", "postpone", "push", "shift", "bump"}
_MODIFY_VERBS = {"change", "update", "modify", "edit", "set", "mark", "rename", "make", "switch"}
_IMPLICIT_ADD_RE = re.compile(r"^(?:add|create|new|schedule|remind me(?: to)?|i have to|i must)\b")
_QUESTION_WORDS = {"what", "what's", "whats", "how", "when", "which", "where", "who", "show", "list", "tell"}

_ROADMAP_RE = re.compile(r"\b(?:roadmap|strategy|journey|complete plan|full plan)\b")
_GOAL_RE = re.compile(r"\bgoals?\b")
_OBJECTIVE_RE = re.compile(r"\b(?:objectives?|okrs?)\b")
_TASK_RE = re.compile(r"\btasks?\b")
_QUESTION_PHRASE_RE = re.compile(r"\b(?:do i|am i|have i|is there|are there|did i)\b")
_TASK_LEAD_RE = re.compile(r"^(?:add|create|new|schedule|put)\s+(?:(?:a|an|the|my|new)\s+)*tasks?\b")


def prepare(text: str) -> str:
    """Lower-case, collapse whitespace and drop leading politeness."""
    return strip_politeness(text.lower())


def _words(text: str) -> set:
    return set(re.findall(r"[a-z']+", text))


def _lead(text: str) -> str:
    match = re.match(r"[a-z']+", text)
    return match.group(0) if match else ""


def _is_task_lead(text: str) -> bool:
    return bool(_TASK_LEAD_RE.match(text))


def _is_roadmap(text: str) -> bool:
    return bool(_words(text) & _CREATION_VERBS) and bool(_ROADMAP_RE.search(text))


def _is_goal(text: str) -> bool:
    return (
        bool(_words(text) & _GOAL_VERBS)
        and bool(_GOAL_RE.search(text))
        and not _ROADMAP_RE.search(text)
        and not _OBJECTIVE_RE.search(text)
    )


def _is_objective(text: str) -> bool:
    return bool(_words(text) & _GOAL_VERBS) and bool(_OBJECTIVE_RE.search(text))


def _is_delete(text: str) -> bool:
    return _lead(text) in _DELETE_VERBS


def _is_explicit_add(text: str) -> bool:
    return _lead(text) in _ADD_TASK_VERBS and bool(_TASK_RE.search(text))


def _is_move(text: str) -> bool:
    return _lead(text) in _MOVE_VERBS


def _is_modify(text: str) -> bool:
    if _lead(text) in _MODIFY_VERBS:
        return True
    return bool(_words(text) & {"change", "update", "modify", "edit"}) and bool(_TASK_RE.search(text))


def _is_implicit_add(text: str) -> bool:
    return bool(_IMPLICIT_ADD_RE.match(text))


def _is_question(text: str) -> bool:
    return (
        text.endswith("?")
        or _lead(text) in _QUESTION_WORDS
        or bool(_QUESTION_PHRASE_RE.search(text))
    )


@dataclass(frozen=True)
class IntentRule:
    name: str
    intent: IntentKind
    confidence: float
    matches: Callable[[str], bool]


# Ordered: first matching rule wins. An explicit "add task" lead precedes
# roadmap, goal and objective; roadmap must precede goal.
RULES: Tuple[IntentRule, ...] = (
    IntentRule("task_lead", IntentKind.ADD_TASK, 0.8, _is_task_lead),
    IntentRule("roadmap", IntentKind.CREATE_ROADMAP, 0.9, _is_roadmap),
    IntentRule("goal", IntentKind.CREATE_GOAL, 0.85, _is_goal),
    IntentRule("objective", IntentKind.CREATE_OBJECTIVE, 0.85, _is_objective),
    IntentRule("delete", IntentKind.DELETE_TASK, 0.85, _is_delete),
    IntentRule("add_task", IntentKind.ADD_TASK, 0.8, _is_explicit_add),
    IntentRule("move", IntentKind.SCHEDULE_TASK, 0.8, _is_move),
    IntentRule("modify", IntentKind.MODIFY_TASK, 0.75, _is_modify),
    IntentRule("implicit_add", IntentKind.ADD_TASK, 0.65, _is_implicit_add),
    IntentRule("question", IntentKind.ASK_QUESTION, 0.75, _is_question),
)


class IntentClassifier:

    def __init__(self, rules: Tuple[IntentRule, ...] = RULES):
        self.rules = rules

    def classify(self, text: str) -> Tuple[IntentKind, float]:
        prepared = prepare(text)
        for rule in self.rules:
            if rule.matches(prepared):
                logger.debug(f"Rule '{rule.name}' matched: {rule.intent.value} ({rule.confidence})")
                return rule.intent, rule.confidence

        logger.debug(f"No rule matched {text[:50]!r}, defaulting to ask_question")
        return IntentKind.ASK_QUESTION, DEFAULT_CONFIDENCE

"""
Rule-based entity extraction.

``EntityExtractor.extract`` fills an EntityBag in three stages. Each stage only
fills slots that are still empty, so an earlier stage always wins a slot:

1. direct fields supplied by the caller (keys aliased to slot names),
2. per-intent pattern extractors anchored on keywords ("at 5pm", "to friday",
   "high priority", "under goal X", ...),
3. unanchored inference scans (bare weekdays, am/pm times, priority words).

Every extractor is a pure ``(text) -> Optional[(slot, raw_value)]`` function.
Raw fragments are shaped by the value normalizer before they land in the bag:
dates become ``datetime.date``, times "HH:MM", durations whole minutes.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Pattern, Tuple

from normalization.text import clean_phrase, collapse, strip_politeness
from normalization.values import (
    normalize_date,
    normalize_status,
    normalize_time,
    parse_duration,
)
from planner_ai.commands import EntityBag, EntityValue, IntentKind

logger = logging.getLogger(__name__)

Fragment = Tuple[str, EntityValue]
Extractor = Callable[[str], Optional[Fragment]]

_SCALAR_TYPES = (str, int, float, date)

MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

DIRECT_KEY_ALIASES = MappingProxyType(
    {
        "title": "title",
        "name": "title",
        "target": "target",
        "task": "target",
        "taskidentifier": "target",
        "tasktitle": "target",
        "taskname": "target",
        "originaltitle": "target",
        "date": "date",
        "day": "date",
        "scheduleddate": "date",
        "duedate": "date",
        "time": "time",
        "scheduledtime": "time",
        "starttime": "time",
        "priority": "priority",
        "status": "status",
        "duration": "duration",
        "estimatedduration": "duration",
        "description": "description",
        "notes": "description",
        "location": "location",
        "field": "field",
        "fieldtomodify": "field",
        "newvalue": "new_value",
        "value": "new_value",
        "goal": "goal",
        "goaltitle": "goal",
        "goalname": "goal",
        "objective": "objective",
        "objectivetitle": "objective",
        "objectivename": "objective",
        "year": "year",
        "targetyear": "year",
        "month": "month",
        "targetmonth": "month",
        "category": "category",
        "prompt": "prompt",
        "timeframe": "timeframe",
        "questiontype": "question_type",
        "subject": "subject",
    }
)

PRIORITY_HINTS = MappingProxyType(
    {
        "urgent": "critical",
        "asap": "critical",
        "critical": "critical",
        "important": "high",
    }
)

CATEGORY_KEYWORDS: Tuple[Tuple[str, Pattern], ...] = (
    ("career", re.compile(r"\b(?:work|job|career|promotion|business|startup|professional|clients?)\b", re.I)),
    ("health", re.compile(r"\b(?:health|healthy|fitness|fit|exercise|gym|run|running|marathon|weight|diet|sleep|meditat\w*)\b", re.I)),
    ("financial", re.compile(r"\b(?:money|save|saving|savings|invest\w*|budget|debt|financ\w*|income)\b", re.I)),
    ("education", re.compile(r"\b(?:learn|learning|study|course|degree|read|reading|books?|language|exams?|school|skills?)\b", re.I)),
)

# Shared regex fragments.
_WEEKDAY_NAMES = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_WEEKDAY = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday|mon|tues?|wed|thu(?:rs?)?|fri|sat|sun)"
_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|"
    r"sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_MONTH_NAMES = "(" + "|".join(MONTHS) + ")"
_RELATIVE_DATE = (
    rf"(?:today|tonight|(?:the\s+)?day after tomorrow|tomorrow|yesterday|next week|"
    rf"(?:next|this|coming)\s+{_WEEKDAY_NAMES}|in\s+(?:\d+|a|an|one)\s+(?:days?|weeks?))"
)
_CALENDAR_DATE = (
    rf"(?:\d{{4}}-\d{{2}}-\d{{2}}|\d{{1,2}}/\d{{1,2}}(?:/\d{{2,4}})?|"
    rf"{_MONTH}\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?|"
    rf"\d{{1,2}}(?:st|nd|rd|th)?\s+(?:of\s+)?{_MONTH}(?:,?\s+\d{{4}})?)"
)
_MERIDIEM_TIME = r"\d{1,2}(?:[:.]\d{2})?\s*(?:a\.m\.|p\.m\.|am|pm)"
_CLOCK_TIME = r"\d{1,2}:\d{2}"
_BARE_HOUR = r"\d{1,2}(?!\s*(?:min|hour|hr|h\b|day|week|%))"
_DURATION_NUMERIC = (
    r"(?:\d+\s*h(?:ours?|rs?)?\s*(?:and\s+)?\d+\s*m(?:in(?:ute)?s?)?|"
    r"\d+(?:\.\d+)?\s*(?:minutes?|mins?|hours?|hrs?))"
)
_DURATION_AMOUNT = rf"(?:{_DURATION_NUMERIC}|half an hour|an hour|one hour|a couple of hours)"
_PRIORITY_WORD = r"(low|medium|high|critical)"
_STATUS_WORD = (
    r"(done|finished|completed?|pending|todo|to do|in[\s_-]progress|not started|"
    r"working|started|cancell?ed|rescheduled|postponed)"
)
_LINK_PREP = r"(?:under|for|in|to|towards?|within)"
_OWNER = r"(?:my\s+|the\s+|our\s+)?"
_FIELD_NAMES = (
    r"(?:priority|status|state|due date|deadline|date|day|start time|time|duration|length|"
    r"estimate|title|name|description|desc|details|notes?|location|place|venue)"
)
_FIELD_WORDS = rf"({_FIELD_NAMES})"

_ANCHORED_DATE_RE = re.compile(
    rf"\b(?:on|for|to|by|until|till|due|from)\s+(?:the\s+)?({_RELATIVE_DATE}|{_CALENDAR_DATE}|{_WEEKDAY})\b",
    re.I,
)
_BARE_DATE_RE = re.compile(rf"\b({_RELATIVE_DATE}|{_CALENDAR_DATE}|{_WEEKDAY_NAMES})\b", re.I)
_AT_TIME_RE = re.compile(
    rf"(?:\b(?:at|from)|@)\s*({_MERIDIEM_TIME}|{_CLOCK_TIME}|noon|midnight|{_BARE_HOUR})(?![\w:])", re.I
)
_TO_TIME_RE = re.compile(rf"\bto\s+({_MERIDIEM_TIME}|{_CLOCK_TIME}|noon|midnight)(?![\w:])", re.I)
_BARE_TIME_RE = re.compile(rf"\b({_MERIDIEM_TIME}|{_CLOCK_TIME}|noon|midnight)(?![\w:])", re.I)
_ANCHORED_DURATION_RE = re.compile(rf"\bfor\s+(?:about\s+|around\s+)?({_DURATION_AMOUNT})\b", re.I)
_BARE_DURATION_RE = re.compile(rf"\b({_DURATION_NUMERIC})\b", re.I)

_PRIORITY_PHRASE_RE = re.compile(rf"\b{_PRIORITY_WORD}[\s-]+priority\b", re.I)
_PRIORITY_FIELD_RE = re.compile(rf"\bpriority\s*(?:to|of|as|is|=|:)?\s*{_PRIORITY_WORD}\b", re.I)
_PRIORITY_TARGET_RE = re.compile(rf"\b(?:as|to)\s+{_PRIORITY_WORD}\b", re.I)
_PRIORITY_HINT_RE = re.compile(r"\b(urgent|asap|critical|important)\b", re.I)

_STATUS_AS_RE = re.compile(rf"\b(?:as|to)\s+(?:being\s+)?{_STATUS_WORD}\b", re.I)
_STATUS_HINT_RE = re.compile(rf"\b{_STATUS_WORD}\b", re.I)

_QUOTED_RE = re.compile(r"[\"“]([^\"”]+)[\"”]|(?:^|\s)'([^']+)'(?=[\s,.!?]|$)")

_ADD_PREFIX_RE = re.compile(
    r"^(?:(?:add|create|new|schedule|put|remind me(?: to)?|i have to|i must)\s+)+"
    r"(?:(?:a|an|the|my)\s+)?(?:new\s+)?(?:task\s*(?:(?:called|named|titled|to|for)\b|:)?\s*)?",
    re.I,
)
_DESCRIPTION_RE = re.compile(
    r"\b(?:described as|with (?:a )?(?:note|description)|notes?:|description:)\s*(.+?)\s*$", re.I
)
_TRAILING_CONNECTOR_RE = re.compile(r"(?:\s+(?:on|at|for|by|to|and|with|in|from))+$", re.I)

# Where a free-text title ends.
_TITLE_STOPS: Tuple[Pattern, ...] = (
    _ANCHORED_DATE_RE,
    _BARE_DATE_RE,
    _AT_TIME_RE,
    _BARE_TIME_RE,
    re.compile(rf"\b(?:for\s+)?(?:about\s+)?{_DURATION_AMOUNT}\b", re.I),
    re.compile(rf"\b(?:with\s+)?(?:a\s+)?{_PRIORITY_WORD}[\s-]+priority\b", re.I),
    re.compile(rf"\b(?:with\s+)?priority\s*(?:to|of|as|is|=|:)?\s*{_PRIORITY_WORD}\b", re.I),
    re.compile(rf"\b{_LINK_PREP}\s+{_OWNER}(?:goal|objective)\b", re.I),
    re.compile(rf"\b{_LINK_PREP}\s+{_OWNER}[^,;]+?\s+(?:goal|objective)\b", re.I),
    _DESCRIPTION_RE,
    re.compile(r"\b(?:this|next) year\b|\b(?:in|for|by)\s+20\d{2}\b", re.I),
    re.compile(rf"\b(?:in|for|by|during)\s+{_MONTH_NAMES}\b", re.I),
)

_TARGET_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(
        rf"^(?:change|update|modify|edit|set|switch)\s+(?:the\s+)?{_FIELD_NAMES}\s+(?:of|for|on)\s+"
        rf"{_OWNER}(?:task\s+)?(.+?)\s+(?:to|as)\b",
        re.I,
    ),
    re.compile(
        rf"^(?:change|update|modify|edit|set|switch)\s+{_OWNER}(?:task\s+)?(.+?)(?:'s)?\s+"
        rf"(?:{_FIELD_NAMES}\s+)?(?:to|as|=)\s",
        re.I,
    ),
    re.compile(rf"^(?:mark|flag|set)\s+{_OWNER}(?:task\s+)?(.+?)\s+(?:as|to)\b", re.I),
    re.compile(
        rf"^make\s+{_OWNER}(?:task\s+)?(.+?)\s+(?:a\s+)?(?:low|medium|high|critical|urgent)\b", re.I
    ),
    re.compile(rf"^(?:rename|retitle)\s+{_OWNER}(?:task\s+)?(.+?)\s+(?:to|as)\b", re.I),
    re.compile(
        rf"^(?:move|reschedule|postpone|push(?:\s+back)?|shift|bump)\s+{_OWNER}(?:task\s+)?(.+?)"
        rf"\s+(?:to|for|on|until|till|at|by|back)\b",
        re.I,
    ),
    re.compile(
        rf"^(?:move|reschedule|postpone|push(?:\s+back)?|shift|bump)\s+{_OWNER}(?:task\s+)?(.+?)\s*$",
        re.I,
    ),
    re.compile(
        rf"^(?:delete|remove|cancel|drop|erase|trash)\s+{_OWNER}(?:task\s+)?(.+?)(?:\s+task)?\s*$", re.I
    ),
)

# Ordered modification cascade: each entry yields (raw field, raw value).
_MODIFICATION_PATTERNS: Tuple[Tuple[Optional[str], Pattern], ...] = (
    (None, re.compile(rf"\b{_FIELD_WORDS}\s*(?:to|as|=|:|is|into)\s+(.+?)\s*$", re.I)),
    (None, re.compile(rf"\b{_FIELD_WORDS}\s+(?:of|for|on)\b.*?\b(?:to|as)\s+(.+?)\s*$", re.I)),
    ("title", re.compile(r"^(?:rename|retitle)\b.*?\b(?:to|as)\s+(.+?)\s*$", re.I)),
    ("status", _STATUS_AS_RE),
    ("priority", _PRIORITY_PHRASE_RE),
    ("priority", _PRIORITY_TARGET_RE),
    ("scheduled_date", _ANCHORED_DATE_RE),
    ("scheduled_time", _AT_TIME_RE),
    ("scheduled_time", _TO_TIME_RE),
    ("estimated_duration", _BARE_DURATION_RE),
    ("scheduled_date", _BARE_DATE_RE),
    ("scheduled_time", _BARE_TIME_RE),
    ("status", _STATUS_HINT_RE),
    ("priority", _PRIORITY_HINT_RE),
)

_QUESTION_TYPES: Tuple[Tuple[str, Pattern], ...] = (
    ("count", re.compile(r"\bhow many\b|\bnumber of\b|\bcount\b", re.I)),
    (
        "next_task",
        re.compile(r"\bnext (?:task|thing|item|up)\b|\bwhat'?s next\b|\bup next\b|\bdo next\b|\bwhat should i do\b", re.I),
    ),
    (
        "time_remaining",
        re.compile(r"\bhow much (?:time|work)\b|\btime (?:left|remaining)\b|\bhow long\b|\bhow busy\b", re.I),
    ),
    ("progress", re.compile(r"\bprogress\b|\bhow am i doing\b|\bhow did i do\b|\bcompletion\b|\bon track\b", re.I)),
    (
        "schedule",
        re.compile(r"\bschedule\b|\bagenda\b|\bcalendar\b|\bwhat do i have\b|\bwhat'?s on\b|\bwhen\b|\bplanned\b", re.I),
    ),
    ("stats", re.compile(r"\bstats\b|\bstatistics\b|\bproductivity\b|\bsummary\b|\boverview\b", re.I)),
)

_SUBJECTS: Tuple[Tuple[str, Pattern], ...] = (
    ("goal", re.compile(r"\bgoals?\b", re.I)),
    ("objective", re.compile(r"\b(?:objectives?|okrs?)\b", re.I)),
    ("task", re.compile(r"\btasks?\b", re.I)),
)

_TIMEFRAMES: Tuple[Tuple[str, Pattern], ...] = (
    ("today", re.compile(r"\b(?:today|tonight)\b", re.I)),
    ("tomorrow", re.compile(r"\btomorrow\b", re.I)),
    ("week", re.compile(r"\bweek\b", re.I)),
    ("month", re.compile(r"\bmonth\b", re.I)),
)

_GOAL_TITLE_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"\bgoal\s*(?:(?:called|named|titled|to|of)\b|:)?\s*(.+)$", re.I),
    re.compile(r"^(?:create|add|make|set|new|start|define)\s+(?:(?:a|an|new|my)\s+)*(.+?)\s+goal\b", re.I),
)
_OBJECTIVE_TITLE_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"\b(?:objective|okr)\s*(?:(?:called|named|titled|to|of)\b|:)?\s*(.+)$", re.I),
    re.compile(
        r"^(?:create|add|make|set|new|start|define)\s+(?:(?:a|an|new|my)\s+)*(.+?)\s+(?:objective|okr)\b", re.I
    ),
)
_YEAR_RE = re.compile(r"\b(this year|next year|20\d{2})\b", re.I)
_MONTH_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(rf"\b(?:in|for|by|during)\s+{_MONTH_NAMES}\b", re.I),
    re.compile(r"\bmonth\s+(\d{1,2})\b", re.I),
    re.compile(r"\b(this month|next month)\b", re.I),
)
_ROADMAP_PROMPT_RE = re.compile(
    r"\b(?:roadmap|strategy|journey|plan)\s+(?:for|to|of|on|towards?|about)\s+(.+)$", re.I
)
_ROADMAP_TIMEFRAME_RE = re.compile(
    r"\b(this year|next year|20\d{2}|(?:this|next) (?:semester|quarter|month)|"
    r"(?:in|over|within) (?:the next )?\d+ (?:months?|weeks?|years?))\b",
    re.I,
)


def cut_at_modifiers(text: str) -> str:
    """Cut free text at the first date, time, duration, priority or link modifier."""
    cut = len(text)
    for pattern in _TITLE_STOPS:
        match = pattern.search(text)
        if match and match.start() < cut:
            cut = match.start()
    return _TRAILING_CONNECTOR_RE.sub("", text[:cut]).strip()


def _phrase(raw: str) -> str:
    shortened = clean_phrase(cut_at_modifiers(raw))
    return shortened or clean_phrase(raw)


def _search(slot: str, pattern: Pattern, group: int = 1) -> Extractor:
    def extract(text: str) -> Optional[Fragment]:
        match = pattern.search(text)
        if match and match.group(group):
            return slot, match.group(group)
        return None

    return extract


def _quoted(slot: str) -> Extractor:
    def extract(text: str) -> Optional[Fragment]:
        match = _QUOTED_RE.search(text)
        if not match:
            return None
        value = clean_phrase(match.group(1) or match.group(2))
        return (slot, value) if value else None

    return extract


def _first_phrase(slot: str, patterns: Tuple[Pattern, ...]) -> Extractor:
    def extract(text: str) -> Optional[Fragment]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                value = clean_phrase(cut_at_modifiers(match.group(1)))
                if value:
                    return slot, value
        return None

    return extract


def _link(slot: str, noun: str) -> Extractor:
    """'under goal X' / 'for my X goal' style references to a goal or objective."""
    after = re.compile(
        rf"\b{_LINK_PREP}\s+{_OWNER}{noun}\s*(?:(?:called|named|titled)\b|:)?\s*(.+)$", re.I
    )
    before = re.compile(
        rf"\b{_LINK_PREP}\s+{_OWNER}((?:(?!\b{_LINK_PREP}\b)[^,;])+?)\s+{noun}\b", re.I
    )

    def extract(text: str) -> Optional[Fragment]:
        for pattern in (after, before):
            match = pattern.search(text)
            if match:
                value = _phrase(match.group(1))
                if value:
                    return slot, value
        return None

    return extract


def _first_of(slot: str, table: Tuple[Tuple[str, Pattern], ...], default: Optional[str] = None) -> Extractor:
    def extract(text: str) -> Optional[Fragment]:
        for value, pattern in table:
            if pattern.search(text):
                return slot, value
        return (slot, default) if default else None

    return extract


def _add_task_title(text: str) -> Optional[Fragment]:
    remainder = _ADD_PREFIX_RE.sub("", text, count=1)
    title = clean_phrase(cut_at_modifiers(remainder))
    return ("title", title) if title else None


def _target(text: str) -> Optional[Fragment]:
    for pattern in _TARGET_PATTERNS:
        match = pattern.search(text)
        if match:
            value = _phrase(match.group(1))
            if value:
                return "target", value
    return None


def _priority_hint(text: str) -> Optional[Fragment]:
    match = _PRIORITY_HINT_RE.search(text)
    if match:
        return "priority", PRIORITY_HINTS[match.group(1).lower()]
    return None


_quoted_title = _quoted("title")
_quoted_target = _quoted("target")
_date = _search("date", _ANCHORED_DATE_RE)
_bare_date = _search("date", _BARE_DATE_RE)
_at_time = _search("time", _AT_TIME_RE)
_to_time = _search("time", _TO_TIME_RE)
_bare_time = _search("time", _BARE_TIME_RE)
_duration = _search("duration", _ANCHORED_DURATION_RE)
_bare_duration = _search("duration", _BARE_DURATION_RE)
_priority_phrase = _search("priority", _PRIORITY_PHRASE_RE)
_priority_field = _search("priority", _PRIORITY_FIELD_RE)
_description = _search("description", _DESCRIPTION_RE)
_year = _search("year", _YEAR_RE)
_category = _first_of("category", CATEGORY_KEYWORDS)

PATTERN_EXTRACTORS: Mapping[IntentKind, Tuple[Extractor, ...]] = MappingProxyType(
    {
        IntentKind.ADD_TASK: (
            _quoted_title,
            _add_task_title,
            _date,
            _at_time,
            _duration,
            _priority_phrase,
            _priority_field,
            _link("objective", "objective"),
            _link("goal", "goal"),
            _description,
        ),
        IntentKind.MODIFY_TASK: (_quoted_target, _target),
        IntentKind.DELETE_TASK: (_quoted_target, _target),
        IntentKind.SCHEDULE_TASK: (_quoted_target, _target, _date, _at_time, _to_time),
        IntentKind.CREATE_GOAL: (
            _quoted_title,
            _first_phrase("title", _GOAL_TITLE_PATTERNS),
            _year,
            _priority_phrase,
            _priority_field,
        ),
        IntentKind.CREATE_OBJECTIVE: (
            _quoted_title,
            _first_phrase("title", _OBJECTIVE_TITLE_PATTERNS),
            _link("goal", "goal"),
            *(_search("month", pattern) for pattern in _MONTH_PATTERNS),
            _year,
        ),
        IntentKind.CREATE_ROADMAP: (
            _search("prompt", _ROADMAP_PROMPT_RE),
            _search("timeframe", _ROADMAP_TIMEFRAME_RE),
        ),
        IntentKind.ASK_QUESTION: (
            _first_of("question_type", _QUESTION_TYPES, default="general"),
            _first_of("subject", _SUBJECTS),
            _first_of("timeframe", _TIMEFRAMES),
            _search("status", _STATUS_HINT_RE),
        ),
    }
)

INFERENCE_EXTRACTORS: Mapping[IntentKind, Tuple[Extractor, ...]] = MappingProxyType(
    {
        IntentKind.ADD_TASK: (_bare_date, _bare_time, _bare_duration, _priority_hint),
        IntentKind.SCHEDULE_TASK: (_bare_date, _bare_time),
        IntentKind.CREATE_GOAL: (_priority_hint, _category),
        IntentKind.CREATE_ROADMAP: (_category,),
    }
)


def _shape_year(value: Any, today: date) -> Optional[int]:
    if isinstance(value, int):
        return value
    text = collapse(value).lower()
    if text == "this year":
        return today.year
    if text == "next year":
        return today.year + 1
    return int(text) if text.isdigit() else None


def _shape_month(value: Any, today: date) -> Optional[int]:
    if isinstance(value, int):
        return value
    text = collapse(value).lower()
    if text == "this month":
        return today.month
    if text == "next month":
        return today.month % 12 + 1
    if text.isdigit():
        return int(text)
    for index, name in enumerate(MONTHS, start=1):
        if len(text) >= 3 and name.startswith(text[:3]):
            return index
    return None


def shape_fragment(slot: str, value: EntityValue, today: date) -> Optional[EntityValue]:
    """Pre-shape a raw fragment with the value normalizer."""
    if isinstance(value, str):
        value = collapse(value)
        if not value:
            return None

    if slot == "date":
        return normalize_date(value, today=today)
    if slot == "time":
        return normalize_time(value)
    if slot == "duration":
        return parse_duration(value)
    if slot == "status":
        return normalize_status(value)
    if slot == "priority":
        text = str(value).lower()
        return PRIORITY_HINTS.get(text, text)
    if slot == "year":
        return _shape_year(value, today)
    if slot == "month":
        return _shape_month(value, today)
    if isinstance(value, str) and slot in {"title", "target", "goal", "objective", "description", "location", "prompt"}:
        return clean_phrase(value) or None
    return value


def extract_modification(
    text: str, task_title: Optional[str] = None, query: Optional[str] = None
) -> Optional[Tuple[str, str]]:
    """
    Find the ``(field, value)`` a modification sentence asks for.

    The task's own title (and the phrase used to refer to it) are deleted from
    the text first so that they are never captured as the new value.
    Returns raw text; ``normalize_update`` turns it into a NormalizedUpdate.
    """
    scrubbed = strip_politeness(text)
    for phrase in (task_title, query):
        if phrase and phrase.strip():
            scrubbed = re.sub(re.escape(phrase.strip()), " ", scrubbed, count=1, flags=re.I)
    scrubbed = collapse(scrubbed)

    for field, pattern in _MODIFICATION_PATTERNS:
        match = pattern.search(scrubbed)
        if not match:
            continue
        if field is None:
            raw_field, raw_value = match.group(1), clean_phrase(match.group(2))
        else:
            raw_field, raw_value = field, clean_phrase(match.group(1))
        if raw_value:
            logger.debug(f"Modification pair ({raw_field!r}, {raw_value!r}) from {scrubbed!r}")
            return raw_field, raw_value

    return None


class EntityExtractor:

    def __init__(
        self,
        patterns: Mapping[IntentKind, Tuple[Extractor, ...]] = PATTERN_EXTRACTORS,
        inference: Mapping[IntentKind, Tuple[Extractor, ...]] = INFERENCE_EXTRACTORS,
    ):
        self.patterns = patterns
        self.inference = inference

    def extract(
        self,
        text: str,
        intent: IntentKind,
        provided: Optional[Mapping[str, Any]] = None,
        today: Optional[date] = None,
    ) -> EntityBag:
        today = today or date.today()
        cleaned = strip_politeness(text)
        bag: EntityBag = {}

        for key, value in (provided or {}).items():
            slot = DIRECT_KEY_ALIASES.get(re.sub(r"[^a-z]", "", str(key).lower()))
            if slot is None or value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, _SCALAR_TYPES):
                logger.debug(f"Ignoring non-scalar value for {key!r}: {type(value).__name__}")
                continue
            self._fill(bag, (slot, value), today)

        for extractor in self.patterns.get(intent, ()):
            self._fill(bag, extractor(cleaned), today)

        if intent is IntentKind.MODIFY_TASK and "field" not in bag and "new_value" not in bag:
            target = bag.get("target")
            pair = extract_modification(cleaned, query=target if isinstance(target, str) else None)
            if pair:
                bag["field"], bag["new_value"] = pair

        for extractor in self.inference.get(intent, ()):
            self._fill(bag, extractor(cleaned), today)

        logger.debug(f"Extracted {sorted(bag)} for {intent.value}")
        return bag

    @staticmethod
    def _fill(bag: EntityBag, fragment: Optional[Fragment], today: date) -> None:
        if fragment is None:
            return
        slot, raw = fragment
        if slot in bag:
            return
        value = shape_fragment(slot, raw, today)
        if value is not None and value != "":
            bag[slot] = value

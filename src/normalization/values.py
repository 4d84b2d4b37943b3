"""
Canonicalization of raw textual values (dates, times, durations, enums).

All functions are pure; relative dates are computed against the ``today``
argument (defaults to the current date) so callers and tests can pin the clock.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from types import MappingProxyType
from typing import Optional, Union

from dateutil import parser as dateparser

from planner_ai.models import PRIORITIES

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_WEEKDAY_ABBREVIATIONS = MappingProxyType(
    {
        "mon": 0,
        "tue": 1,
        "tues": 1,
        "wed": 2,
        "thu": 3,
        "thur": 3,
        "thurs": 3,
        "fri": 4,
        "sat": 5,
        "sun": 6,
    }
)

DEFAULT_PRIORITY = "medium"

STATUS_SYNONYMS = MappingProxyType(
    {
        "done": "completed",
        "finished": "completed",
        "complete": "completed",
        "completed": "completed",
        "todo": "pending",
        "to do": "pending",
        "pending": "pending",
        "not started": "pending",
        "in progress": "in_progress",
        "in_progress": "in_progress",
        "working": "in_progress",
        "active": "in_progress",
        "started": "in_progress",
        "canceled": "cancelled",
        "cancelled": "cancelled",
        "rescheduled": "rescheduled",
        "postponed": "rescheduled",
    }
)

_WORD_DURATIONS = MappingProxyType(
    {
        "half an hour": 30,
        "a half hour": 30,
        "half hour": 30,
        "quarter of an hour": 15,
        "an hour": 60,
        "one hour": 60,
        "a couple of hours": 120,
    }
)

_RELATIVE_OFFSET_RE = re.compile(r"^in\s+(\d+|a|an|one)\s+(days?|weeks?)$")
_QUALIFIED_WEEKDAY_RE = re.compile(r"^(?:next|this|coming)\s+([a-z]+)$")
_TIME_RE = re.compile(r"^(\d{1,2})(?:[:.](\d{2}))?\s*(a\.m\.|p\.m\.|am|pm|a|p)?$")
_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(minutes?|mins?|m|hours?|hrs?|h)?$")
_COMPOUND_DURATION_RE = re.compile(
    r"^(\d+)\s*(?:h|hrs?|hours?)\s*(?:and\s+)?(\d+)\s*(?:m|mins?|minutes?)$"
)


def _clean(raw: object) -> str:
    return " ".join(str(raw).lower().split())


def weekday_index(word: str) -> Optional[int]:
    """Monday=0 .. Sunday=6, accepting full names and common abbreviations."""
    word = word.lower().strip(" .,")
    if word in WEEKDAYS:
        return WEEKDAYS.index(word)
    return _WEEKDAY_ABBREVIATIONS.get(word)


def next_weekday(weekday: int, today: date) -> date:
    """Next occurrence of ``weekday`` strictly after ``today``."""
    days_ahead = (weekday - today.weekday()) % 7
    return today + timedelta(days=days_ahead or 7)


def normalize_date(raw: Union[str, date], today: Optional[date] = None) -> date:
    today = today or date.today()
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    text = _clean(raw)
    text = re.sub(r"^(?:on|for|by|to|until)\s+", "", text)

    if text == "today" or text == "tonight":
        return today
    if text == "tomorrow":
        return today + timedelta(days=1)
    if text == "day after tomorrow" or text == "the day after tomorrow":
        return today + timedelta(days=2)
    if text == "yesterday":
        return today - timedelta(days=1)
    if text == "next week":
        return today + timedelta(days=7)

    qualified = _QUALIFIED_WEEKDAY_RE.match(text)
    if qualified:
        text = qualified.group(1)

    weekday = weekday_index(text)
    if weekday is not None:
        return next_weekday(weekday, today)

    offset = _RELATIVE_OFFSET_RE.match(text)
    if offset:
        amount = offset.group(1)
        count = 1 if amount in {"a", "an", "one"} else int(amount)
        unit_days = 7 if offset.group(2).startswith("week") else 1
        try:
            return today + timedelta(days=count * unit_days)
        except OverflowError:
            logger.debug(f"Date offset {raw!r} out of range, falling back to today")
            return today

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return dateparser.parse(text, default=datetime.combine(today, time.min)).date()
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable date {raw!r}, falling back to today")
        return today


def normalize_time(raw: object) -> str:
    """
    Convert ``H``, ``H:MM`` and ``H[:MM] am/pm`` into 24h ``HH:MM``.

    Input that cannot be read as a time is returned unchanged (stripped) so
    that validation can reject it with a proper message.
    """
    original = str(raw).strip()
    text = _clean(raw)
    text = re.sub(r"^(?:at|@)\s*", "", text)
    text = text.replace("o'clock", "").replace("oclock", "").strip()

    if text in {"noon", "midday"}:
        return "12:00"
    if text == "midnight":
        return "00:00"

    match = _TIME_RE.match(text)
    if not match:
        return original

    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    meridiem = match.group(3)

    if meridiem:
        if not 1 <= hour <= 12:
            return original
        is_pm = meridiem.startswith("p")
        if is_pm and hour != 12:
            hour += 12
        elif not is_pm and hour == 12:
            hour = 0

    return f"{hour:02d}:{minute:02d}"


def normalize_priority(raw: object) -> str:
    value = _clean(raw)
    if value in PRIORITIES:
        return value
    logger.debug(f"Unrecognized priority {raw!r}, using {DEFAULT_PRIORITY}")
    return DEFAULT_PRIORITY


def normalize_status(raw: object) -> str:
    value = _clean(raw).replace("-", " ")
    return STATUS_SYNONYMS.get(value, value)


def parse_duration(raw: object) -> Union[int, str]:
    """Duration in whole minutes; non-numeric input is returned as text."""
    if isinstance(raw, bool):
        return str(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(round(raw))

    text = _clean(raw)
    text = re.sub(r"^(?:for|to)\s+", "", text)
    if text in _WORD_DURATIONS:
        return _WORD_DURATIONS[text]

    compound = _COMPOUND_DURATION_RE.match(text)
    if compound:
        return int(compound.group(1)) * 60 + int(compound.group(2))

    match = _DURATION_RE.match(text)
    if not match:
        return str(raw).strip()

    amount = float(match.group(1))
    unit = match.group(2) or "minutes"
    if unit.startswith("h"):
        amount *= 60
    return int(round(amount))


def format_minutes(minutes: int) -> str:
    if minutes >= 60:
        hours, remainder = divmod(minutes, 60)
        return f"{hours}h {remainder}m" if remainder else f"{hours}h"
    return f"{minutes} minutes"

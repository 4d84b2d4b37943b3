"""
Field synonym mapping plus value validation.

Normalization always runs before validation: ``normalize_update`` is the single
path from a raw ``(field, value)`` pair to a ``NormalizedUpdate``.
"""

from __future__ import annotations

import re
from datetime import date
from types import MappingProxyType
from typing import Optional

from normalization.values import (
    format_minutes,
    normalize_date,
    normalize_priority,
    normalize_status,
    normalize_time,
    parse_duration,
)
from planner_ai.commands import (
    CanonicalField,
    CanonicalValue,
    EntityValue,
    NormalizedUpdate,
    ValidationFailed,
)
from planner_ai.models import PRIORITIES, TASK_STATUSES

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000
LOCATION_MAX_LENGTH = 200

FIELD_SYNONYMS = MappingProxyType(
    {
        "title": CanonicalField.TITLE,
        "name": CanonicalField.TITLE,
        "description": CanonicalField.DESCRIPTION,
        "desc": CanonicalField.DESCRIPTION,
        "details": CanonicalField.DESCRIPTION,
        "notes": CanonicalField.DESCRIPTION,
        "note": CanonicalField.DESCRIPTION,
        "priority": CanonicalField.PRIORITY,
        "prio": CanonicalField.PRIORITY,
        "importance": CanonicalField.PRIORITY,
        "status": CanonicalField.STATUS,
        "state": CanonicalField.STATUS,
        "date": CanonicalField.SCHEDULED_DATE,
        "day": CanonicalField.SCHEDULED_DATE,
        "duedate": CanonicalField.SCHEDULED_DATE,
        "deadline": CanonicalField.SCHEDULED_DATE,
        "scheduleddate": CanonicalField.SCHEDULED_DATE,
        "time": CanonicalField.SCHEDULED_TIME,
        "starttime": CanonicalField.SCHEDULED_TIME,
        "scheduledtime": CanonicalField.SCHEDULED_TIME,
        "duration": CanonicalField.ESTIMATED_DURATION,
        "length": CanonicalField.ESTIMATED_DURATION,
        "estimate": CanonicalField.ESTIMATED_DURATION,
        "estimatedduration": CanonicalField.ESTIMATED_DURATION,
        "location": CanonicalField.LOCATION,
        "place": CanonicalField.LOCATION,
        "where": CanonicalField.LOCATION,
        "venue": CanonicalField.LOCATION,
    }
)

_DISPLAY_NAMES = MappingProxyType(
    {
        CanonicalField.TITLE: "title",
        CanonicalField.DESCRIPTION: "description",
        CanonicalField.PRIORITY: "priority",
        CanonicalField.STATUS: "status",
        CanonicalField.SCHEDULED_DATE: "date",
        CanonicalField.SCHEDULED_TIME: "time",
        CanonicalField.ESTIMATED_DURATION: "duration",
        CanonicalField.LOCATION: "location",
    }
)

SUPPORTED_FIELDS = tuple(_DISPLAY_NAMES.values())

_TIME_FORMAT_RE = re.compile(r"^(\d{2}):(\d{2})$")


def normalize_field(raw_field: str) -> Optional[CanonicalField]:
    if isinstance(raw_field, CanonicalField):
        return raw_field
    key = re.sub(r"[^a-z]", "", str(raw_field).lower())
    return FIELD_SYNONYMS.get(key)


def normalize_value(
    field: CanonicalField, raw_value: EntityValue, today: Optional[date] = None
) -> CanonicalValue:
    field = CanonicalField(field)
    if field is CanonicalField.SCHEDULED_DATE:
        return normalize_date(raw_value, today=today)
    if field is CanonicalField.SCHEDULED_TIME:
        return normalize_time(raw_value)
    if field is CanonicalField.PRIORITY:
        return normalize_priority(raw_value)
    if field is CanonicalField.STATUS:
        return normalize_status(raw_value)
    if field is CanonicalField.ESTIMATED_DURATION:
        return parse_duration(raw_value)
    return " ".join(str(raw_value).split())


def _check_length(label: str, value: str, minimum: int, maximum: int) -> None:
    if not minimum <= len(value) <= maximum:
        raise ValidationFailed(f"{label} must be between {minimum} and {maximum} characters")


def validate(field: CanonicalField, value: CanonicalValue) -> None:
    """Raise ValidationFailed when ``value`` is outside the domain of ``field``."""
    field = CanonicalField(field)
    if field is CanonicalField.PRIORITY:
        if value not in PRIORITIES:
            raise ValidationFailed(f"Priority must be one of: {', '.join(PRIORITIES)}")

    elif field is CanonicalField.STATUS:
        if value not in TASK_STATUSES:
            raise ValidationFailed(f"Status must be one of: {', '.join(TASK_STATUSES)}")

    elif field is CanonicalField.ESTIMATED_DURATION:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationFailed("Duration must be a positive number (in minutes)")

    elif field is CanonicalField.SCHEDULED_TIME:
        match = _TIME_FORMAT_RE.match(str(value))
        if not match or int(match.group(1)) > 23 or int(match.group(2)) > 59:
            raise ValidationFailed(
                f'Could not understand time "{value}". Use a time like 14:30 or 2:30pm'
            )

    elif field is CanonicalField.SCHEDULED_DATE:
        if not isinstance(value, date):
            raise ValidationFailed(f'Could not understand date "{value}"')

    elif field is CanonicalField.TITLE:
        _check_length("Title", str(value), 1, TITLE_MAX_LENGTH)

    elif field is CanonicalField.DESCRIPTION:
        _check_length("Description", str(value), 0, DESCRIPTION_MAX_LENGTH)

    elif field is CanonicalField.LOCATION:
        _check_length("Location", str(value), 1, LOCATION_MAX_LENGTH)


def normalize_update(
    raw_field: str, raw_value: EntityValue, today: Optional[date] = None
) -> NormalizedUpdate:
    field = normalize_field(raw_field)
    if field is None:
        raise ValidationFailed(
            f'Cannot modify "{raw_field}". Supported fields: {", ".join(SUPPORTED_FIELDS)}'
        )
    value = normalize_value(field, raw_value, today=today)
    validate(field, value)
    return NormalizedUpdate(field=field, value=value)


def field_display_name(field: CanonicalField) -> str:
    return _DISPLAY_NAMES.get(field, field.value)


def value_display_text(field: CanonicalField, value: CanonicalValue) -> str:
    if field is CanonicalField.SCHEDULED_DATE and isinstance(value, date):
        return value.strftime("%A, %B %d, %Y")
    if field is CanonicalField.ESTIMATED_DURATION and isinstance(value, int):
        return format_minutes(value)
    return str(value)

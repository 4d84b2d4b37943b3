from __future__ import annotations

import re

_POLITENESS_RE = re.compile(
    r"^(?:(?:ok(?:ay)?|hey|hi|please|kindly|can you|could you|would you|will you|"
    r"i want to|i'd like to|i would like to|i need to|help me|let's|lets|go ahead and)[\s,]+)+",
    re.IGNORECASE,
)

_WRAPPING = " \t\"'“”‘’.,;:!-"


def collapse(text: str) -> str:
    return " ".join(str(text).split())


def strip_politeness(text: str) -> str:
    """Drop leading filler ("please", "can you", ...) while keeping the original case."""
    return _POLITENESS_RE.sub("", collapse(text)).strip()


def clean_phrase(text: str) -> str:
    """Trim quotes, punctuation and surrounding whitespace from an extracted phrase."""
    return collapse(text).strip(_WRAPPING)

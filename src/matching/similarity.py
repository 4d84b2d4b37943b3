from __future__ import annotations

from rapidfuzz.distance import Levenshtein


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance: single-character insertions, deletions and substitutions."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """
    Normalized similarity in [0, 1]: (max_len - edit_distance) / max_len.

    Case-insensitive. Two empty strings are identical (1.0).
    """
    return Levenshtein.normalized_similarity(a, b, processor=str.casefold)

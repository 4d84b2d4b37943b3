from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

from matching.similarity import similarity
from planner_ai.commands import MatchTier, TargetReference

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.6


def sample_titles(candidates: Sequence[Any], limit: int = 5) -> List[str]:
    return [candidate.title for candidate in candidates[:limit]]


def _tokens_overlap(query_tokens: List[str], title: str) -> bool:
    title_tokens = title.split()
    if not title_tokens:
        return False
    return all(
        any(q in t or t in q for t in title_tokens)
        for q in query_tokens
    )


class ReferenceResolver:
    """
    Resolves a free-text reference ("dentist appt") to one of the user's records.

    Tiers are tried in order and the first tier with a hit wins; within a tier
    the first candidate in repository order wins:
    exact, prefix, substring, token overlap, then best similarity above
    SIMILARITY_THRESHOLD.
    """

    def __init__(self, threshold: float = SIMILARITY_THRESHOLD):
        self.threshold = threshold

    def resolve(self, query: Optional[str], candidates: Sequence[Any]) -> TargetReference:
        text = " ".join(str(query or "").split()).casefold()
        if not text:
            return TargetReference(query=query or "")

        titled = [(c, c.title.casefold()) for c in candidates]

        for tier, matches in (
            (MatchTier.EXACT, lambda title: title == text),
            (MatchTier.PREFIX, lambda title: title.startswith(text)),
            (MatchTier.SUBSTRING, lambda title: text in title),
        ):
            for candidate, title in titled:
                if matches(title):
                    return self._found(query, candidate, tier)

        query_tokens = text.split()
        for candidate, title in titled:
            if _tokens_overlap(query_tokens, title):
                return self._found(query, candidate, MatchTier.TOKEN_OVERLAP)

        best = None
        best_score = 0.0
        for candidate, title in titled:
            score = similarity(text, title)
            if score > best_score:
                best, best_score = candidate, score

        if best is not None and best_score > self.threshold:
            return self._found(query, best, MatchTier.SIMILARITY, score=best_score)

        logger.debug(f"No match for {query!r} among {len(titled)} candidates (best score {best_score:.2f})")
        return TargetReference(query=query)

    @staticmethod
    def _found(query: str, candidate: Any, tier: MatchTier, score: Optional[float] = None) -> TargetReference:
        logger.debug(f"Resolved {query!r} to {candidate.title!r} ({tier.value})")
        return TargetReference(
            query=query,
            resolved_id=candidate.id,
            resolved_title=candidate.title,
            match_tier=tier,
            score=score,
        )

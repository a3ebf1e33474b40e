"""Ordered-subsequence scoring for the fuzzy filter.

Lower scores rank better. The weights below are a fixed ranking contract:
changing any of them reorders results users and tests rely on.
"""

from __future__ import annotations

from dataclasses import dataclass

START_WEIGHT = 0.2
CONTIGUOUS_BONUS = 0.7
LENGTH_WEIGHT = 0.001


@dataclass(frozen=True)
class FuzzyResult:
    score: float
    positions: tuple[int, ...]
    gaps: int
    start: int  # 1-based index of the first matched char, 0 for an empty query


EMPTY_RESULT = FuzzyResult(score=0.0, positions=(), gaps=0, start=0)


def fuzzy_score(query_lower: str, target_lower: str) -> FuzzyResult | None:
    """Score ``query_lower`` as an ordered subsequence of ``target_lower``.

    Both arguments must already be lowercased. Characters are matched
    greedily left to right. Returns ``None`` when some query character has no
    occurrence after the previous match; an empty query matches everything.
    """
    if not query_lower:
        return EMPTY_RESULT

    score = 0.0
    pos = 0
    last = -1
    gaps = 0
    positions: list[int] = []
    for ch in query_lower:
        found = target_lower.find(ch, pos)
        if found < 0:
            return None
        positions.append(found)
        if last < 0:
            score += found * START_WEIGHT
        else:
            gap = found - last - 1
            score += gap
            gaps += gap
            if gap == 0:
                score -= CONTIGUOUS_BONUS
        last = found
        pos = found + 1

    score += len(target_lower) * LENGTH_WEIGHT
    return FuzzyResult(
        score=score,
        positions=tuple(positions),
        gaps=gaps,
        start=positions[0] + 1,
    )

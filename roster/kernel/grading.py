"""
Roster Kernel — Derived Fields

Two averaging policies live here and stay separate:

  present_score_average  — the record's true mean; absent scores are left out
                           of both numerator and denominator. Used by the store.
  zero_filled_average    — the CSV import preview / export mean; absent scores
                           count as 0 over all three subjects.
"""

from __future__ import annotations

from collections.abc import Iterable

from roster.kernel.types import (
    GRADE_FALLBACK,
    GRADE_RANK,
    GRADE_TABLE,
    SUBJECT_FIELDS,
    UNGRADED_RANK,
)


def present_score_average(scores: Iterable[float | None]) -> float | None:
    present = [s for s in scores if s is not None]
    if not present:
        return None
    return sum(present) / len(present)


def zero_filled_average(scores: Iterable[float | None]) -> float:
    values = list(scores)
    total = sum(s if s is not None else 0.0 for s in values)
    return total / (len(values) or len(SUBJECT_FIELDS))


def grade_for(average: float | None) -> str | None:
    """Grade label for an average. None stays None (it is not an F)."""
    if average is None:
        return None
    for label, minimum in GRADE_TABLE:
        if average >= minimum:
            return label
    return GRADE_FALLBACK


def grade_rank(grade: str | None) -> int:
    """A=1 ... F=5; undefined or unknown grades rank 6."""
    if grade is None:
        return UNGRADED_RANK
    return GRADE_RANK.get(grade, UNGRADED_RANK)

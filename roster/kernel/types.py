"""
Roster Kernel — Shared Types

Data classes used across the store, query engine, analytics, CSV codec,
importer and pipeline. These are the contracts that bind the kernel together.

Records are frozen: the store replaces its working set wholesale and never
patches a record in place, so any pass over a snapshot sees consistent data.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

# ---------------------------------------------------------------------------
# Record fields
# ---------------------------------------------------------------------------

SUBJECT_FIELDS: tuple[str, ...] = ("math_score", "literature_score", "english_score")

# Short subject names used by analytics
SUBJECT_NAMES: dict[str, str] = {
    "math_score": "math",
    "literature_score": "literature",
    "english_score": "english",
}

# User-settable fields, in form order
EDITABLE_FIELDS: tuple[str, ...] = (
    "student_code",
    "first_name",
    "last_name",
    "email",
    "birth_date",
    "hometown",
    *SUBJECT_FIELDS,
)

# ---------------------------------------------------------------------------
# Grade table
# ---------------------------------------------------------------------------

# (label, minimum inclusive), evaluated highest threshold first.
# F has no lower bound.
GRADE_TABLE: tuple[tuple[str, float], ...] = (
    ("A", 8.5),
    ("B", 7.0),
    ("C", 5.5),
    ("D", 4.0),
)
GRADE_FALLBACK = "F"
GRADE_LABELS: tuple[str, ...] = ("A", "B", "C", "D", "F")

# Rank used when sorting by grade; undefined grades sort after F
GRADE_RANK: dict[str, int] = {label: i + 1 for i, label in enumerate(GRADE_LABELS)}
UNGRADED_RANK = 6

SORT_DIRECTIONS: set[str] = {"asc", "desc"}
FILTER_KEYS: tuple[str, ...] = ("search", "hometown", "grade")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StudentRecord:
    """
    One student as mirrored from the remote store.

    `average_score` and `grade` are derived fields. They are filled in by the
    RecordStore on load and are never taken from user input.
    """

    student_code: str
    first_name: str
    last_name: str
    id: int | str | None = None
    email: str | None = None
    birth_date: date | None = None
    hometown: str | None = None
    math_score: float | None = None
    literature_score: float | None = None
    english_score: float | None = None
    average_score: float | None = None
    grade: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def scores(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in SUBJECT_FIELDS}

    @property
    def has_any_score(self) -> bool:
        return any(v is not None for v in self.scores.values())

    def to_fields(self) -> dict[str, Any]:
        """Editable fields only, keyed by field name (input for validation and create/update)."""
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}

    def with_derived(self, average_score: float | None, grade: str | None) -> StudentRecord:
        return replace(self, average_score=average_score, grade=grade)


# ---------------------------------------------------------------------------
# Query state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FilterCriteria:
    """
    Named predicates. An empty or None value means "not applied".
    No active predicate means "match everything".
    """

    search: str | None = None
    hometown: str | None = None
    grade: str | None = None

    def active(self) -> dict[str, str]:
        return {k: getattr(self, k) for k in FILTER_KEYS if getattr(self, k)}

    @property
    def is_active(self) -> bool:
        return bool(self.active())

    def with_value(self, key: str, value: str | None) -> FilterCriteria:
        if key not in FILTER_KEYS:
            raise ValueError(f"Unknown filter: {key}")
        return replace(self, **{key: value or None})


@dataclass(frozen=True)
class PageMeta:
    """Pagination metadata. `page` is always clamped into [1, total_pages]."""

    page: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def start_item(self) -> int:
        """1-based index of the first item on this page (0 when empty)."""
        if self.total_items == 0:
            return 0
        return (self.page - 1) * self.page_size + 1

    @property
    def end_item(self) -> int:
        return min(self.page * self.page_size, self.total_items)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class Page:
    items: list[StudentRecord]
    meta: PageMeta


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RowError:
    """An error attributable to one line of an imported document."""

    line_number: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"line_number": self.line_number, "message": self.message}


@dataclass(frozen=True)
class ImportRow:
    """A parsed, not-yet-persisted record candidate and where it came from."""

    line_number: int
    record: StudentRecord

    @property
    def student_code(self) -> str:
        return self.record.student_code

    @property
    def preview_average(self) -> float:
        """Import-preview mean: absent subject scores count as 0."""
        from roster.kernel.grading import zero_filled_average

        return zero_filled_average(self.record.scores.values())


@dataclass
class ParsedDocument:
    """Result of parsing a CSV document. Row problems are data, not exceptions."""

    rows: list[ImportRow] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    header: list[str] = field(default_factory=list)


@dataclass
class ImportResult:
    """Outcome of a batch import. Errors are ordered by line number."""

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[RowError] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.created + self.updated + self.skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class ImportOptions:
    update_existing: bool = True
    skip_errors: bool = True


# ---------------------------------------------------------------------------
# Remote
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RemotePage:
    """One page of the remote list endpoint. Page size is server-determined."""

    items: list[StudentRecord]
    has_next: bool = False


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Overview:
    total_students: int
    students_with_scores: int
    average_age: float | None  # None when no record has a birth date


@dataclass(frozen=True)
class Insight:
    """A presentation hint derived from the analytics report."""

    code: str  # "high_quality" | "needs_attention" | "subject_gap" | "incomplete_data"
    level: str  # "positive" | "warning" | "info"
    title: str
    description: str


@dataclass
class AnalyticsReport:
    overview: Overview
    grade_distribution: dict[str, int]
    average_scores_by_subject: dict[str, float | None]
    score_ranges: dict[str, int]
    hometown_distribution: dict[str, int]
    scores_by_hometown: dict[str, float]
    top_performers: list[StudentRecord]
    insights: list[Insight] = field(default_factory=list)

    @property
    def excellent_count(self) -> int:
        return self.grade_distribution.get("A", 0)

    @property
    def subject_extremes(self) -> tuple[tuple[str, float], tuple[str, float]] | None:
        """((best_subject, avg), (worst_subject, avg)) over subjects with data."""
        present = [(k, v) for k, v in self.average_scores_by_subject.items() if v is not None]
        if not present:
            return None
        best = present[0]
        worst = present[0]
        for item in present[1:]:
            if item[1] > best[1]:
                best = item
            if item[1] < worst[1]:
                worst = item
        return best, worst

    def top_hometowns(self, n: int = 10) -> list[tuple[str, int]]:
        """Hometowns by count descending; ties keep first-seen order."""
        ranked = sorted(self.hometown_distribution.items(), key=lambda kv: -kv[1])
        return ranked[:n]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_number(value: Any) -> bool:
    """True for finite ints/floats. Bools are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)

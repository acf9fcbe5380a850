"""
Roster Kernel — Query Engine

Pure functions over a snapshot of records:

  apply_filter  — (records, FilterCriteria) → records
  apply_sort    — (records, SortSpec) → records   (stable)
  paginate      — (records, page, page_size) → Page
  page_window   — PageMeta → page numbers to show, None marking a gap

None of these mutate their input; each returns a new list.
"""

from __future__ import annotations

import functools
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from roster.kernel.errors import UnknownSortKey
from roster.kernel.grading import grade_rank
from roster.kernel.types import (
    SORT_DIRECTIONS,
    FilterCriteria,
    Page,
    PageMeta,
    StudentRecord,
)

Comparator = Callable[[StudentRecord, StudentRecord], int]

# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


def _search_haystack(record: StudentRecord) -> tuple[str | None, ...]:
    return (
        record.student_code,
        record.first_name,
        record.last_name,
        record.full_name,
        record.email,
        record.hometown,
    )


def matches_search(record: StudentRecord, term: str) -> bool:
    """True if any searchable field contains the term, case-insensitively."""
    needle = term.lower()
    return any(value and needle in value.lower() for value in _search_haystack(record))


def apply_filter(records: Sequence[StudentRecord], criteria: FilterCriteria) -> list[StudentRecord]:
    """AND of the active predicates. No active predicate is the identity."""
    active = criteria.active()
    result = list(records)

    if "search" in active:
        result = [r for r in result if matches_search(r, active["search"])]

    if "hometown" in active:
        result = [r for r in result if r.hometown == active["hometown"]]

    if "grade" in active:
        # A record without a grade never matches a concrete grade
        result = [r for r in result if r.grade is not None and r.grade == active["grade"]]

    return result


# ---------------------------------------------------------------------------
# Sort
# ---------------------------------------------------------------------------


def _normalize(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.lower()
    return value


def _compare_values(a: Any, b: Any) -> int:
    """
    Three-way compare. None behaves like the empty string, so it sorts
    first in ascending order whatever the field type.
    """
    a, b = _normalize(a), _normalize(b)
    if a == "" or b == "":
        return (a != "") - (b != "")
    same_kind = (
        (isinstance(a, str) and isinstance(b, str))
        or (isinstance(a, (int, float)) and isinstance(b, (int, float)))
        or (isinstance(a, date) and isinstance(b, date))
    )
    if not same_kind:
        a, b = str(a), str(b)
    return (a > b) - (a < b)


def _field_comparator(name: str) -> Comparator:
    def compare(x: StudentRecord, y: StudentRecord) -> int:
        return _compare_values(getattr(x, name), getattr(y, name))

    return compare


def _grade_comparator(x: StudentRecord, y: StudentRecord) -> int:
    rx, ry = grade_rank(x.grade), grade_rank(y.grade)
    return (rx > ry) - (rx < ry)


# The closed set of sortable keys. "grade" sorts by rank, not label text.
SORT_KEYS: dict[str, Comparator] = {
    "id": _field_comparator("id"),
    "student_code": _field_comparator("student_code"),
    "first_name": _field_comparator("first_name"),
    "last_name": _field_comparator("last_name"),
    "full_name": _field_comparator("full_name"),
    "email": _field_comparator("email"),
    "birth_date": _field_comparator("birth_date"),
    "hometown": _field_comparator("hometown"),
    "math_score": _field_comparator("math_score"),
    "literature_score": _field_comparator("literature_score"),
    "english_score": _field_comparator("english_score"),
    "average_score": _field_comparator("average_score"),
    "grade": _grade_comparator,
}


@dataclass(frozen=True)
class SortSpec:
    key: str = "student_code"
    direction: str = "asc"

    def __post_init__(self) -> None:
        if self.key not in SORT_KEYS:
            raise UnknownSortKey(f"Unknown sort key: {self.key}")
        if self.direction not in SORT_DIRECTIONS:
            raise ValueError(f"Invalid sort direction: {self.direction}")

    def toggled(self) -> SortSpec:
        return SortSpec(self.key, "desc" if self.direction == "asc" else "asc")


def apply_sort(records: Sequence[StudentRecord], spec: SortSpec) -> list[StudentRecord]:
    """
    Stable sort. Descending negates the comparator instead of reversing an
    ascending result, so ties keep their prior relative order either way.
    """
    compare = SORT_KEYS[spec.key]
    if spec.direction == "desc":
        base = compare

        def compare(x: StudentRecord, y: StudentRecord) -> int:
            return -base(x, y)

    return sorted(records, key=functools.cmp_to_key(compare))


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def clamp_page(page: int, total_items: int, page_size: int) -> tuple[int, int]:
    """Return (clamped_page, total_pages). total_pages is at least 1."""
    if page_size < 1:
        raise ValueError(f"page_size must be >= 1, got {page_size}")
    total_pages = max(1, math.ceil(total_items / page_size))
    return min(max(page, 1), total_pages), total_pages


def paginate(records: Sequence[StudentRecord], page: int, page_size: int) -> Page:
    total_items = len(records)
    page, total_pages = clamp_page(page, total_items, page_size)
    start = (page - 1) * page_size
    items = list(records[start : start + page_size])
    return Page(
        items=items,
        meta=PageMeta(
            page=page,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
        ),
    )


def page_window(meta: PageMeta, radius: int = 2) -> list[int | None]:
    """
    Page numbers for a pagination bar: first page, current ± radius, last
    page. None marks an ellipsis between non-adjacent numbers.

      page 6 of 12 → [1, None, 4, 5, 6, 7, 8, None, 12]
    """
    if meta.total_pages <= 1:
        return [1]

    start = max(1, meta.page - radius)
    end = min(meta.total_pages, meta.page + radius)
    window: list[int | None] = []

    if start > 1:
        window.append(1)
        if start > 2:
            window.append(None)

    window.extend(range(start, end + 1))

    if end < meta.total_pages:
        if end < meta.total_pages - 1:
            window.append(None)
        window.append(meta.total_pages)

    return window

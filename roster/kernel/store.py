"""
Roster Kernel — Record Store

Holds the working set mirrored from the remote store. `load` replaces the
whole set and recomputes the derived fields of every record. There are no
patch updates: any single-record mutation is followed by a full reload.
"""

from __future__ import annotations

from collections.abc import Iterable

from roster.kernel.grading import grade_for, present_score_average
from roster.kernel.types import StudentRecord


def derive(record: StudentRecord) -> StudentRecord:
    """Return the record with average_score and grade recomputed."""
    average = present_score_average(record.scores.values())
    return record.with_derived(average, grade_for(average))


class RecordStore:
    """The in-memory working set. Snapshots are tuples and never mutated."""

    def __init__(self, records: Iterable[StudentRecord] = ()) -> None:
        self._records: tuple[StudentRecord, ...] = ()
        self._version = 0
        self.load(records)

    def load(self, records: Iterable[StudentRecord]) -> None:
        self._records = tuple(derive(r) for r in records)
        self._version += 1

    def all(self) -> tuple[StudentRecord, ...]:
        return self._records

    @property
    def version(self) -> int:
        """Incremented on every load; lets callers cache per snapshot."""
        return self._version

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: int | str) -> StudentRecord | None:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def find_by_code(self, student_code: str) -> StudentRecord | None:
        for record in self._records:
            if record.student_code == student_code:
                return record
        return None

    def select(self, ids: Iterable[int | str]) -> list[StudentRecord]:
        """Records whose id is in `ids`, in store order (used for "export selected")."""
        wanted = set(ids)
        return [r for r in self._records if r.id in wanted]

    def hometown_options(self) -> list[str]:
        """Distinct non-blank hometowns, sorted. Values are kept verbatim so they match the exact filter."""
        return sorted({r.hometown for r in self._records if r.hometown and r.hometown.strip()})

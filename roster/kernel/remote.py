"""
Roster Kernel — Persistence Contract

The remote record store is consumed, not implemented. StudentApi is the
abstract contract; the HTTP client in roster_cli implements it for
production, MemoryStudentApi implements it for tests.

load_all_records is the one way to fetch the full working set: explicit
pagination from page 1 while the server reports another page.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from roster.kernel.errors import RecordNotFound, RemoteOperationError
from roster.kernel.types import EDITABLE_FIELDS, SUBJECT_FIELDS, RemotePage, StudentRecord
from roster.kernel.validation import parse_iso_date, parse_score, validate_record

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 100
DEFAULT_SERVER_PAGE_SIZE = 20


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class StudentApi:
    """
    Abstract persistence interface.
    Every method may raise RemoteOperationError.
    """

    async def list_page(self, page: int) -> RemotePage:
        """Fetch one page (1-based). Page size is decided by the server."""
        raise NotImplementedError

    async def get(self, record_id: int | str) -> StudentRecord:
        raise NotImplementedError

    async def create(self, fields: Mapping[str, Any]) -> StudentRecord:
        """Create a record. Validation failures raise with status 422 and field errors."""
        raise NotImplementedError

    async def update(self, record_id: int | str, fields: Mapping[str, Any]) -> StudentRecord:
        raise NotImplementedError

    async def delete(self, record_id: int | str) -> None:
        raise NotImplementedError

    async def bulk_delete(self) -> int:
        """Delete every record. Returns the number deleted."""
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


async def load_all_records(api: StudentApi, max_pages: int = DEFAULT_MAX_PAGES) -> list[StudentRecord]:
    """
    Fetch every record by walking pages from 1 while has_next is set.
    Stops after max_pages pages as a guard against a server that never
    reports the last page.
    """
    records: list[StudentRecord] = []
    page = 1
    while True:
        result = await api.list_page(page)
        records.extend(result.items)
        if not result.has_next:
            break
        if page >= max_pages:
            logger.warning("load_all_records: stopped after %d pages (guard), %d records loaded", page, len(records))
            break
        page += 1
    logger.debug("load_all_records: %d records in %d pages", len(records), page)
    return records


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def record_from_fields(fields: Mapping[str, Any], record_id: int | str | None = None) -> StudentRecord:
    """
    Build a record from already-validated editable fields.
    Blank optional values become None; dates and scores are coerced.
    """
    values: dict[str, Any] = {}
    for name in EDITABLE_FIELDS:
        value = fields.get(name)
        if isinstance(value, str):
            value = value.strip() or None
        values[name] = value

    birth = values["birth_date"]
    if isinstance(birth, str):
        values["birth_date"] = parse_iso_date(birth)
    elif birth is not None and not isinstance(birth, date):
        values["birth_date"] = None

    for name in SUBJECT_FIELDS:
        values[name] = parse_score(values[name])

    values["student_code"] = values["student_code"] or ""
    values["first_name"] = values["first_name"] or ""
    values["last_name"] = values["last_name"] or ""
    return StudentRecord(id=record_id, **values)


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class MemoryStudentApi(StudentApi):
    """
    In-memory remote store for testing.

    Behaves like the real service where the kernel can tell the difference:
    server-side paging, integer ids, 422 with field errors on invalid input
    or a duplicate student code, 404 on unknown ids.
    """

    def __init__(
        self,
        records: list[StudentRecord] | None = None,
        page_size: int = DEFAULT_SERVER_PAGE_SIZE,
        today: date | None = None,
    ) -> None:
        self.page_size = page_size
        self.today = today
        self.records: dict[int, StudentRecord] = {}
        self.calls: list[tuple[str, Any]] = []
        self._next_id = 1
        for record in records or []:
            self._insert(record.to_fields())

    @property
    def mutations(self) -> list[tuple[str, Any]]:
        return [c for c in self.calls if c[0] in ("create", "update", "delete", "bulk_delete")]

    def _insert(self, fields: Mapping[str, Any]) -> StudentRecord:
        record = record_from_fields(fields, record_id=self._next_id)
        self.records[self._next_id] = record
        self._next_id += 1
        return record

    def _check(self, fields: Mapping[str, Any], exclude_id: int | None = None) -> None:
        errors = validate_record(fields, today=self.today)
        code = fields.get("student_code")
        if "student_code" not in errors and any(
            r.student_code == code and r.id != exclude_id for r in self.records.values()
        ):
            errors["student_code"] = "Student code already exists"
        if errors:
            raise RemoteOperationError(
                "Validation failed",
                status=422,
                field_errors=[{"field": k, "message": v} for k, v in errors.items()],
            )

    def _lookup(self, record_id: int | str) -> StudentRecord:
        try:
            return self.records[int(record_id)]
        except (KeyError, ValueError):
            raise RecordNotFound(record_id) from None

    async def list_page(self, page: int) -> RemotePage:
        self.calls.append(("list_page", page))
        ordered = list(self.records.values())
        start = (max(page, 1) - 1) * self.page_size
        items = ordered[start : start + self.page_size]
        return RemotePage(items=items, has_next=start + self.page_size < len(ordered))

    async def get(self, record_id: int | str) -> StudentRecord:
        self.calls.append(("get", record_id))
        return self._lookup(record_id)

    async def create(self, fields: Mapping[str, Any]) -> StudentRecord:
        self.calls.append(("create", dict(fields)))
        self._check(fields)
        return self._insert(fields)

    async def update(self, record_id: int | str, fields: Mapping[str, Any]) -> StudentRecord:
        self.calls.append(("update", (record_id, dict(fields))))
        existing = self._lookup(record_id)
        merged = {**existing.to_fields(), **fields}
        self._check(merged, exclude_id=existing.id)
        record = record_from_fields(merged, record_id=existing.id)
        self.records[existing.id] = record
        return record

    async def delete(self, record_id: int | str) -> None:
        self.calls.append(("delete", record_id))
        existing = self._lookup(record_id)
        del self.records[existing.id]

    async def bulk_delete(self) -> int:
        self.calls.append(("bulk_delete", None))
        count = len(self.records)
        self.records.clear()
        return count

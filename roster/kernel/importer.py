"""
Roster Kernel — Import Reconciler

Turns parsed CSV rows into remote mutations. For each row, by natural key
(student_code): create when the code is new, update when it exists and
updates are enabled, otherwise skip.

Partial application: a row that fails validation or is refused by the
remote store becomes a RowError, and the rest of the batch still runs.
Strict mode (skip_errors=False) checks every row first and performs no
mutation at all if any row is bad.

The reconciler never touches the RecordStore. Callers reload afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

from roster.kernel.csv_codec import parse_document
from roster.kernel.errors import RemoteOperationError
from roster.kernel.remote import DEFAULT_MAX_PAGES, StudentApi, load_all_records
from roster.kernel.types import (
    SUBJECT_FIELDS,
    ImportOptions,
    ImportResult,
    ImportRow,
    RowError,
    StudentRecord,
)
from roster.kernel.validation import validate_record

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY = 0.1


def _payload(record: StudentRecord) -> dict[str, Any]:
    """Editable fields for create/update. Absent scores are left out."""
    fields = record.to_fields()
    for name in SUBJECT_FIELDS:
        if fields[name] is None:
            del fields[name]
    return fields


def _sorted_errors(errors: list[RowError]) -> list[RowError]:
    return sorted(errors, key=lambda e: e.line_number)


class ImportReconciler:
    """
    Reconciles candidate rows against the remote store.

    Remote calls are strictly sequential. After every `batch_size` rows the
    reconciler sleeps `batch_delay` seconds to throttle the remote side.
    """

    def __init__(
        self,
        api: StudentApi,
        options: ImportOptions | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        max_pages: int = DEFAULT_MAX_PAGES,
        today: date | None = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.api = api
        self.options = options or ImportOptions()
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_pages = max_pages
        self.today = today

    # -- validation --

    def _row_error(self, row: ImportRow) -> RowError | None:
        errors = validate_record(row.record.to_fields(), today=self.today)
        if not errors:
            return None
        return RowError(row.line_number, "; ".join(errors.values()))

    def validate(self, rows: Sequence[ImportRow]) -> list[RowError]:
        """Validation errors for every bad row, without touching the remote store."""
        return [e for e in (self._row_error(r) for r in rows) if e is not None]

    # -- reconcile --

    async def _build_index(self) -> dict[str, StudentRecord]:
        existing = await load_all_records(self.api, max_pages=self.max_pages)
        return {r.student_code: r for r in existing}

    async def reconcile(self, rows: Sequence[ImportRow]) -> ImportResult:
        result = ImportResult()

        if not self.options.skip_errors:
            result.errors = self.validate(rows)
            if result.errors:
                logger.info("import: strict mode, %d invalid rows, nothing imported", len(result.errors))
                return result

        index = await self._build_index()

        for position, row in enumerate(rows, start=1):
            error = self._row_error(row)
            if error is not None:
                logger.debug("import: line %d invalid: %s", row.line_number, error.message)
                result.errors.append(error)
            else:
                try:
                    await self._apply_row(row, index, result)
                except RemoteOperationError as e:
                    logger.debug("import: line %d refused: %s", row.line_number, e.describe())
                    result.errors.append(RowError(row.line_number, e.describe()))
                    if not self.options.skip_errors:
                        break

            if position % self.batch_size == 0 and position < len(rows):
                await asyncio.sleep(self.batch_delay)

        result.errors = _sorted_errors(result.errors)
        logger.info(
            "import: created=%d updated=%d skipped=%d errors=%d",
            result.created,
            result.updated,
            result.skipped,
            len(result.errors),
        )
        return result

    async def _apply_row(
        self,
        row: ImportRow,
        index: dict[str, StudentRecord],
        result: ImportResult,
    ) -> None:
        code = row.student_code
        existing = index.get(code)

        if existing is None:
            created = await self.api.create(_payload(row.record))
            index[code] = created
            result.created += 1
            logger.debug("import: line %d created %s", row.line_number, code)
            return

        if not self.options.update_existing:
            result.skipped += 1
            logger.debug("import: line %d skipped existing %s", row.line_number, code)
            return

        updated = await self.api.update(existing.id, _payload(row.record))
        index[code] = updated
        result.updated += 1
        logger.debug("import: line %d updated %s", row.line_number, code)


async def import_csv(
    text: str,
    api: StudentApi,
    options: ImportOptions | None = None,
    **reconciler_kwargs: Any,
) -> ImportResult:
    """
    Parse a CSV document and reconcile its rows.

    Parse errors and reconcile errors are merged, ordered by line number.
    DocumentStructureError from the parser propagates: a document without
    the required columns imports nothing.
    """
    options = options or ImportOptions()
    doc = parse_document(text)
    reconciler = ImportReconciler(api, options, **reconciler_kwargs)

    if not options.skip_errors and doc.errors:
        errors = doc.errors + reconciler.validate(doc.rows)
        logger.info("import: strict mode, %d row errors, nothing imported", len(errors))
        return ImportResult(errors=_sorted_errors(errors))

    result = await reconciler.reconcile(doc.rows)
    result.errors = _sorted_errors(doc.errors + result.errors)
    return result

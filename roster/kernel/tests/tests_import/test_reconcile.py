"""
Roster Import — Reconciliation Tests

Create when the code is new, update (or skip) when it exists. Bad rows become
row errors with their line number and never reach the remote store.
"""

from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from roster.kernel.csv_codec import HEADER
from roster.kernel.errors import DocumentStructureError, RemoteOperationError
from roster.kernel.importer import ImportReconciler, import_csv
from roster.kernel.remote import MemoryStudentApi
from roster.kernel.types import ImportOptions, StudentRecord

TODAY = date(2026, 6, 15)


def row(code="SV0001", name="Nguyễn Văn An", email="an@example.com", birth="2003-04-12",
        town="Hà Nội", math="8.5", lit="7", eng="9"):
    return ",".join([code, name, email, birth, town, math, lit, eng])


def document(*lines):
    return "\n".join([",".join(HEADER), *lines]) + "\n"


def existing(code="SV0001", **fields):
    return StudentRecord(student_code=code, first_name="Cũ", last_name="Tên", **fields)


async def run_import(text, api, **options):
    return await import_csv(text, api, ImportOptions(**options), batch_delay=0, today=TODAY)


@pytest.fixture
def api():
    return MemoryStudentApi(today=TODAY)


class TestCreateAndUpdate:
    @pytest.mark.asyncio
    async def test_creates_new_records(self, api):
        result = await run_import(document(row("SV0001"), row("SV0002", email="b@example.com")), api)
        assert (result.created, result.updated, result.skipped) == (2, 0, 0)
        assert result.errors == []
        assert sorted(r.student_code for r in api.records.values()) == ["SV0001", "SV0002"]

    @pytest.mark.asyncio
    async def test_update_existing_on(self):
        api = MemoryStudentApi([existing("SV0001", math_score=1.0)], today=TODAY)
        result = await run_import(document(row("SV0001"), row("SV0002")), api)
        assert (result.created, result.updated, result.skipped) == (1, 1, 0)
        updated = next(r for r in api.records.values() if r.student_code == "SV0001")
        assert updated.math_score == 8.5
        assert updated.last_name == "An"

    @pytest.mark.asyncio
    async def test_update_existing_off(self):
        api = MemoryStudentApi([existing("SV0001", math_score=1.0)], today=TODAY)
        result = await run_import(document(row("SV0001"), row("SV0002")), api, update_existing=False)
        assert (result.created, result.updated, result.skipped) == (1, 0, 1)
        kept = next(r for r in api.records.values() if r.student_code == "SV0001")
        assert kept.math_score == 1.0

    @pytest.mark.asyncio
    async def test_repeated_code_reconciles_against_fresh_record(self, api):
        result = await run_import(document(row("SV0003", math="5"), row("SV0003", math="6")), api)
        assert (result.created, result.updated) == (1, 1)
        assert [r.math_score for r in api.records.values()] == [6.0]

    @pytest.mark.asyncio
    async def test_absent_scores_are_not_sent(self, api):
        await run_import(document(row(math="", lit="", eng="")), api)
        _, payload = api.mutations[0]
        assert "math_score" not in payload
        assert payload["student_code"] == "SV0001"


class TestRowErrors:
    @pytest.mark.asyncio
    async def test_blank_code_is_a_row_error_without_remote_call(self, api):
        text = document(row("SV0001"), row(""), row("SV0003"))
        result = await run_import(text, api)
        assert result.created == 2
        assert len(result.errors) == 1
        assert result.errors[0].line_number == 3
        assert "Student code is required" in result.errors[0].message
        created_codes = [payload["student_code"] for _, payload in api.mutations]
        assert created_codes == ["SV0001", "SV0003"]
        assert result.processed == 2
        assert result.to_dict()["errors"] == [{"line_number": 3, "message": "Student code is required"}]

    @pytest.mark.asyncio
    async def test_single_token_name_fails_on_last_name(self, api):
        result = await run_import(document(row(name="Madonna")), api)
        assert result.created == 0
        assert result.errors[0].message == "Last name is required"

    @pytest.mark.asyncio
    async def test_parse_and_validation_errors_merged_by_line(self, api):
        text = document(row("SV0001", email="bad"), row("SV0002", math="abc"), row("SV0003"))
        result = await run_import(text, api)
        assert [e.line_number for e in result.errors] == [2, 3]
        assert result.created == 1

    @pytest.mark.asyncio
    async def test_remote_refusal_becomes_row_error(self):
        class RefusingApi(MemoryStudentApi):
            async def create(self, fields):
                if fields["student_code"] == "SV0002":
                    raise RemoteOperationError("Server error", status=500)
                return await super().create(fields)

        api = RefusingApi(today=TODAY)
        result = await run_import(document(row("SV0001"), row("SV0002"), row("SV0003")), api)
        assert result.created == 2
        assert [(e.line_number, e.message) for e in result.errors] == [(3, "Server error")]

    @pytest.mark.asyncio
    async def test_missing_columns_import_nothing(self, api):
        with pytest.raises(DocumentStructureError):
            await run_import("Mã số sinh viên,Họ tên\nSV0001,A B\n", api)
        assert api.calls == []


class TestStrictMode:
    @pytest.mark.asyncio
    async def test_validation_error_aborts_before_any_mutation(self, api):
        text = document(row("SV0001"), row("SV0002", email="bad"))
        result = await run_import(text, api, skip_errors=False)
        assert (result.created, result.updated, result.skipped) == (0, 0, 0)
        assert [e.line_number for e in result.errors] == [3]
        assert api.mutations == []

    @pytest.mark.asyncio
    async def test_parse_error_aborts_before_any_mutation(self, api):
        text = document(row("SV0001"), row("SV0002", eng="12"), row("bad!"))
        result = await run_import(text, api, skip_errors=False)
        assert [e.line_number for e in result.errors] == [3, 4]
        assert api.calls == []

    @pytest.mark.asyncio
    async def test_clean_file_imports_normally(self, api):
        result = await run_import(document(row("SV0001"), row("SV0002")), api, skip_errors=False)
        assert result.created == 2


class TestBatching:
    @pytest.mark.asyncio
    async def test_yields_between_batches(self, api):
        lines = [row(f"SV{i:04d}") for i in range(1, 26)]
        with patch("roster.kernel.importer.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await import_csv(document(*lines), api, batch_size=10, batch_delay=0.25, today=TODAY)
        assert result.created == 25
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.25)

    def test_batch_size_must_be_positive(self, api):
        with pytest.raises(ValueError):
            ImportReconciler(api, batch_size=0)

    @pytest.mark.asyncio
    async def test_index_is_built_from_every_page(self):
        records = [existing(f"SV{i:04d}") for i in range(1, 46)]
        api = MemoryStudentApi(records, page_size=20, today=TODAY)
        result = await run_import(document(row("SV0045"), row("SV0046")), api)
        assert (result.created, result.updated) == (1, 1)
        assert [c for c in api.calls if c[0] == "list_page"] == [("list_page", 1), ("list_page", 2), ("list_page", 3)]

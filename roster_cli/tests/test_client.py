"""
HttpStudentApi Tests

Requests go through httpx.MockTransport; no server is needed.
"""

import json
from datetime import date

import httpx
import pytest

from roster.kernel.csv_codec import HEADER
from roster.kernel.errors import RecordNotFound, RemoteOperationError
from roster.kernel.importer import import_csv
from roster.kernel.remote import load_all_records
from roster_cli.client import HttpStudentApi

API_URL = "http://roster.test/api/v1"


def student_json(pk, code, **fields):
    data = {
        "id": pk,
        "student_id": code,
        "first_name": "Lan",
        "last_name": "Trần",
        "full_name": "Lan Trần",
        "email": None,
        "birth_date": "2004-09-01",
        "hometown": "Huế",
        "math_score": 8.0,
        "literature_score": None,
        "english_score": 6.0,
        "average_score": 7.0,
        "grade": "B",
    }
    data.update(fields)
    return data


def make_api(handler):
    return HttpStudentApi(api_url=API_URL, timeout=5, transport=httpx.MockTransport(handler))


class TestReads:
    @pytest.mark.asyncio
    async def test_list_page(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path, request.url.params.get("page")))
            return httpx.Response(
                200,
                json={"items": [student_json(1, "SV0001")], "total": 21, "page": 1, "has_next": True},
            )

        async with make_api(handler) as api:
            page = await api.list_page(1)

        assert seen == [("GET", "/api/v1/students", "1")]
        assert page.has_next is True
        record = page.items[0]
        assert record.id == 1
        assert record.student_code == "SV0001"
        assert record.birth_date == date(2004, 9, 1)
        assert record.literature_score is None

    @pytest.mark.asyncio
    async def test_loader_walks_pages(self):
        def handler(request):
            page = int(request.url.params["page"])
            items = [student_json(page, f"SV000{page}")]
            return httpx.Response(200, json={"items": items, "has_next": page < 3})

        async with make_api(handler) as api:
            records = await load_all_records(api)

        assert [r.student_code for r in records] == ["SV0001", "SV0002", "SV0003"]

    @pytest.mark.asyncio
    async def test_get_missing_record(self):
        def handler(request):
            return httpx.Response(404, json={"detail": "Student not found"})

        async with make_api(handler) as api:
            with pytest.raises(RecordNotFound) as exc_info:
                await api.get(9)

        assert exc_info.value.status == 404
        assert exc_info.value.record_id == 9


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_sends_wire_names(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json=student_json(7, "SV0007"))

        async with make_api(handler) as api:
            record = await api.create(
                {
                    "student_code": "SV0007",
                    "first_name": "Lan",
                    "last_name": "Trần",
                    "birth_date": date(2004, 9, 1),
                    "math_score": 8.0,
                }
            )

        assert bodies == [
            {
                "student_id": "SV0007",
                "first_name": "Lan",
                "last_name": "Trần",
                "birth_date": "2004-09-01",
                "math_score": 8.0,
            }
        ]
        assert record.id == 7

    @pytest.mark.asyncio
    async def test_update_uses_put(self):
        methods = []

        def handler(request):
            methods.append((request.method, request.url.path))
            return httpx.Response(200, json=student_json(3, "SV0003", hometown="Cần Thơ"))

        async with make_api(handler) as api:
            record = await api.update(3, {"hometown": "Cần Thơ"})

        assert methods == [("PUT", "/api/v1/students/3")]
        assert record.hometown == "Cần Thơ"

    @pytest.mark.asyncio
    async def test_invalid_input_never_leaves_the_client(self):
        def handler(request):
            raise AssertionError("no request expected")

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.create({"student_code": "SV0001", "first_name": "A", "last_name": "B", "math_score": 11})

        assert exc_info.value.status == 422
        assert exc_info.value.field_errors[0]["field"] == "math_score"

    @pytest.mark.asyncio
    async def test_delete_and_bulk_delete(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.url.path.endswith("bulk-delete"):
                return httpx.Response(200, json={"deleted_count": 12})
            return httpx.Response(204)

        async with make_api(handler) as api:
            await api.delete(4)
            count = await api.bulk_delete()

        assert calls == [("DELETE", "/api/v1/students/4"), ("DELETE", "/api/v1/students/bulk-delete")]
        assert count == 12


class TestErrors:
    @pytest.mark.asyncio
    async def test_service_field_errors(self):
        def handler(request):
            return httpx.Response(
                422,
                json={
                    "detail": "Validation failed",
                    "errors": [{"field": "student_id", "message": "Student ID already exists"}],
                },
            )

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.create({"student_code": "SV0001", "first_name": "A", "last_name": "B"})

        error = exc_info.value
        assert error.is_validation_error
        assert error.message == "Validation failed"
        assert error.field_errors == [{"field": "student_id", "message": "Student ID already exists"}]

    @pytest.mark.asyncio
    async def test_fastapi_detail_list(self):
        def handler(request):
            return httpx.Response(
                422,
                json={"detail": [{"loc": ["body", "email"], "msg": "value is not a valid email address"}]},
            )

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.create({"student_code": "SV0001", "first_name": "A", "last_name": "B"})

        assert exc_info.value.field_errors == [{"field": "email", "message": "value is not a valid email address"}]
        assert exc_info.value.message == "HTTP 422"

    @pytest.mark.asyncio
    async def test_server_error_with_plain_body(self):
        def handler(request):
            return httpx.Response(500, text="Internal Server Error")

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.list_page(1)

        assert exc_info.value.is_server_error
        assert exc_info.value.message == "Internal Server Error"

    @pytest.mark.asyncio
    async def test_timeout_is_408(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.list_page(1)

        assert exc_info.value.status == 408

    @pytest.mark.asyncio
    async def test_unreachable_is_status_zero(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.list_page(1)

        assert exc_info.value.is_network_error

    @pytest.mark.asyncio
    async def test_success_without_a_student_body(self):
        def handler(request):
            return httpx.Response(201, json={"ok": True})

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.create({"student_code": "SV0001", "first_name": "A", "last_name": "B"})

        assert exc_info.value.message == "Unexpected response from server"
        assert exc_info.value.status == 201

    @pytest.mark.asyncio
    async def test_empty_update_reply_is_an_error(self):
        def handler(request):
            return httpx.Response(204)

        async with make_api(handler) as api:
            with pytest.raises(RemoteOperationError) as exc_info:
                await api.update(3, {"hometown": "Huế"})

        assert exc_info.value.status == 204

    @pytest.mark.asyncio
    async def test_malformed_reply_fails_only_its_row(self):
        posts = []

        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"items": [], "has_next": False})
            posts.append(json.loads(request.content)["student_id"])
            if len(posts) == 1:
                return httpx.Response(201, json={"ok": True})
            return httpx.Response(201, json=student_json(2, "SV0002"))

        text = "\n".join(
            [
                ",".join(HEADER),
                "SV0001,Trần Lan,,,,8,,",
                "SV0002,Lê Minh,,,,7,,",
            ]
        )
        async with make_api(handler) as api:
            result = await import_csv(text, api, batch_delay=0)

        assert posts == ["SV0001", "SV0002"]
        assert result.created == 1
        assert [(e.line_number, e.message) for e in result.errors] == [(2, "Unexpected response from server")]


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_health_lives_at_api_root(self):
        urls = []

        def handler(request):
            urls.append(str(request.url))
            return httpx.Response(200, json={"status": "ok"})

        async with make_api(handler) as api:
            assert await api.health_check() is True

        assert urls == ["http://roster.test/health"]

    @pytest.mark.asyncio
    async def test_unreachable_is_unhealthy(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with make_api(handler) as api:
            assert await api.health_check() is False

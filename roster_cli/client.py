"""HTTP client for the remote student service."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from roster.config import settings
from roster.kernel.errors import RecordNotFound, RemoteOperationError
from roster.kernel.remote import StudentApi
from roster.kernel.types import RemotePage, StudentRecord
from roster.models import BulkDeleteResult, ErrorBody, StudentIn, StudentOut, StudentPage

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Wire name → kernel field name, for validation errors
_WIRE_FIELDS = {"student_id": "student_code"}


class HttpStudentApi(StudentApi):
    """
    StudentApi over the REST service.

    Failures surface as RemoteOperationError: HTTP errors keep their status,
    timeouts are 408, and unreachable hosts are 0.
    """

    def __init__(
        self,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = (api_url or settings.API_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=timeout if timeout is not None else settings.TIMEOUT,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=transport,
        )

    @property
    def api_root(self) -> str:
        """Service root without the /api/v1 suffix."""
        if self.api_url.endswith("/api/v1"):
            return self.api_url[: -len("/api/v1")]
        return self.api_url

    async def __aenter__(self) -> HttpStudentApi:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    # -- transport --

    async def _request(
        self,
        method: str,
        path: str,
        record_id: int | str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("%s %s timed out", method, path)
            raise RemoteOperationError("Request timed out", status=408) from e
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise RemoteOperationError(f"Cannot reach server: {e}", status=0) from e

        if response.is_error:
            logger.warning("%s %s failed: %d", method, path, response.status_code)
            if response.status_code == 404 and record_id is not None:
                raise RecordNotFound(record_id)
            raise self._error_from(response)
        return response

    @staticmethod
    def _parse(response: httpx.Response, model: type[ModelT], empty: dict | None = None) -> ModelT:
        """
        Validate a success body against `model`. A body that does not fit is
        a failed operation, not a crash. `empty` stands in for a bodiless reply.
        """
        try:
            if not response.content and empty is not None:
                return model.model_validate(empty)
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.warning(
                "%s %s returned an unexpected body: %s",
                response.request.method,
                response.request.url.path,
                e,
            )
            raise RemoteOperationError("Unexpected response from server", status=response.status_code) from e

    @staticmethod
    def _error_from(response: httpx.Response) -> RemoteOperationError:
        fallback = f"HTTP {response.status_code}"
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return RemoteOperationError(response.text or fallback, status=response.status_code)

        try:
            body = ErrorBody.model_validate(data)
        except ValidationError:
            return RemoteOperationError(fallback, status=response.status_code, data=data)
        return RemoteOperationError(
            body.summary(fallback),
            status=response.status_code,
            field_errors=body.field_errors(),
            data=data,
        )

    @staticmethod
    def _body(fields: Mapping[str, Any]) -> dict[str, Any]:
        """Build the request body; invalid input fails the same way the server would."""
        try:
            return StudentIn.from_fields(fields).to_payload()
        except ValidationError as e:
            field_errors = []
            for err in e.errors():
                name = str(err["loc"][-1]) if err["loc"] else ""
                field_errors.append({"field": _WIRE_FIELDS.get(name, name), "message": err["msg"]})
            raise RemoteOperationError("Validation failed", status=422, field_errors=field_errors) from e

    # -- StudentApi --

    async def list_page(self, page: int) -> RemotePage:
        response = await self._request("GET", "/students", params={"page": page})
        result = self._parse(response, StudentPage, empty={})
        return RemotePage(items=[s.to_record() for s in result.items], has_next=result.has_next)

    async def get(self, record_id: int | str) -> StudentRecord:
        response = await self._request("GET", f"/students/{record_id}", record_id=record_id)
        return self._parse(response, StudentOut).to_record()

    async def create(self, fields: Mapping[str, Any]) -> StudentRecord:
        response = await self._request("POST", "/students", json=self._body(fields))
        return self._parse(response, StudentOut).to_record()

    async def update(self, record_id: int | str, fields: Mapping[str, Any]) -> StudentRecord:
        response = await self._request(
            "PUT", f"/students/{record_id}", record_id=record_id, json=self._body(fields)
        )
        return self._parse(response, StudentOut).to_record()

    async def delete(self, record_id: int | str) -> None:
        await self._request("DELETE", f"/students/{record_id}", record_id=record_id)

    async def bulk_delete(self) -> int:
        response = await self._request("DELETE", "/students/bulk-delete")
        return self._parse(response, BulkDeleteResult, empty={}).deleted_count

    async def health_check(self) -> bool:
        """True if the service answers /health with 200."""
        try:
            response = await self.client.get(f"{self.api_root}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            logger.warning("student service health check failed")
            return False

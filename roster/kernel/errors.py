"""
Roster Kernel — Exceptions

Only failures that cannot be attributed to a single field or row are raised.
Field and row problems travel as data (validation dicts, RowError lists).
"""

from __future__ import annotations

from typing import Any


class DocumentStructureError(Exception):
    """The imported document is unusable as a whole (e.g. required columns missing)."""

    def __init__(self, message: str, missing_columns: list[str] | None = None):
        super().__init__(message)
        self.missing_columns = missing_columns or []


class RemoteOperationError(Exception):
    """
    A call against the persistence contract failed.

    status is the HTTP status code, 0 for network failures, 408 for timeouts.
    field_errors is the server's validation error set: [{"field", "message"}].
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        field_errors: list[dict[str, str]] | None = None,
        data: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.field_errors = field_errors or []
        self.data = data or {}

    @property
    def is_network_error(self) -> bool:
        return self.status == 0

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500

    @property
    def is_validation_error(self) -> bool:
        return self.status == 422

    def describe(self) -> str:
        """One-line description including field errors, for row-level reporting."""
        if self.field_errors:
            details = ", ".join(f"{e.get('field')}: {e.get('message')}" for e in self.field_errors)
            return f"{self.message} ({details})"
        return self.message


class RecordNotFound(RemoteOperationError):
    """The remote store has no record with the requested id."""

    def __init__(self, record_id: Any):
        super().__init__(f"Student {record_id} not found", status=404)
        self.record_id = record_id


class UnknownSortKey(ValueError):
    """Sort key is not in the comparator registry."""

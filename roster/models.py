"""Wire models for the remote student service."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from roster.kernel.types import StudentRecord


class StudentIn(BaseModel):
    """What the client sends to POST /students and PUT /students/{id}."""

    model_config = {"extra": "forbid"}

    student_id: str | None = Field(default=None, min_length=1, max_length=12)
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    email: str | None = None
    birth_date: date | None = None
    hometown: str | None = None
    math_score: float | None = Field(default=None, ge=0, le=10)
    literature_score: float | None = Field(default=None, ge=0, le=10)
    english_score: float | None = Field(default=None, ge=0, le=10)

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any]) -> StudentIn:
        """Kernel field names → wire names. student_code travels as student_id."""
        data = {k: v for k, v in fields.items() if k != "student_code"}
        if "student_code" in fields:
            data["student_id"] = fields["student_code"]
        return cls(**data)

    def to_payload(self) -> dict[str, Any]:
        """JSON body. Only fields the caller set are sent."""
        return self.model_dump(mode="json", exclude_unset=True)


class StudentOut(BaseModel):
    """One student as returned by the service."""

    model_config = {"extra": "ignore"}

    id: int | str
    student_id: str
    first_name: str = ""
    last_name: str = ""
    full_name: str | None = None
    email: str | None = None
    birth_date: date | None = None
    hometown: str | None = None
    math_score: float | None = None
    literature_score: float | None = None
    english_score: float | None = None
    average_score: float | None = None
    grade: str | None = None

    def to_record(self) -> StudentRecord:
        # average_score and grade are recomputed by the RecordStore on load
        return StudentRecord(
            id=self.id,
            student_code=self.student_id,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            birth_date=self.birth_date,
            hometown=self.hometown,
            math_score=self.math_score,
            literature_score=self.literature_score,
            english_score=self.english_score,
        )


class StudentPage(BaseModel):
    """What GET /students?page=N returns."""

    model_config = {"extra": "ignore"}

    items: list[StudentOut] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20
    total_pages: int = 1
    has_next: bool = False
    has_prev: bool = False


class BulkDeleteResult(BaseModel):
    model_config = {"extra": "ignore"}

    deleted_count: int = 0


class FieldErrorItem(BaseModel):
    field: str
    message: str


class ErrorBody(BaseModel):
    """
    Error response body. `detail` is either a message or a FastAPI-style
    list of {"loc", "msg"} items; `errors` is the service's own field list.
    """

    model_config = {"extra": "ignore"}

    detail: str | list[dict[str, Any]] | None = None
    message: str | None = None
    errors: list[FieldErrorItem] = Field(default_factory=list)

    def summary(self, fallback: str) -> str:
        if isinstance(self.detail, str) and self.detail:
            return self.detail
        return self.message or fallback

    def field_errors(self) -> list[dict[str, str]]:
        if self.errors:
            return [e.model_dump() for e in self.errors]
        if isinstance(self.detail, list):
            items = []
            for d in self.detail:
                loc = d.get("loc") or []
                name = str(loc[-1]) if loc else ""
                items.append({"field": name, "message": str(d.get("msg", ""))})
            return items
        return []

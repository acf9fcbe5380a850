"""
Roster Kernel — CSV Codec

Reads and writes the roster CSV format:

  parse_row       — one line → cells (quote-aware state machine)
  parse_document  — document text → ParsedDocument(rows, errors)
  to_csv          — records → document text (BOM, every cell quoted)
  template_csv    — blank import template with hints and samples

Column labels are fixed by the file format and stay in Vietnamese.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from roster.kernel.errors import DocumentStructureError
from roster.kernel.grading import zero_filled_average
from roster.kernel.types import (
    ImportRow,
    ParsedDocument,
    RowError,
    StudentRecord,
)
from roster.kernel.validation import FIELD_LABELS, parse_iso_date, parse_score

logger = logging.getLogger(__name__)

BOM = "\ufeff"
DELIMITER = ","
QUOTE = '"'

COL_CODE = "Mã số sinh viên"
COL_NAME = "Họ tên"
COL_EMAIL = "Email"
COL_BIRTH_DATE = "Ngày sinh"
COL_HOMETOWN = "Quê quán"
COL_MATH = "Điểm Toán"
COL_LITERATURE = "Điểm Văn"
COL_ENGLISH = "Điểm Anh"
COL_AVERAGE = "Điểm trung bình"

HEADER: tuple[str, ...] = (
    COL_CODE,
    COL_NAME,
    COL_EMAIL,
    COL_BIRTH_DATE,
    COL_HOMETOWN,
    COL_MATH,
    COL_LITERATURE,
    COL_ENGLISH,
)
REQUIRED_COLUMNS: tuple[str, ...] = (COL_CODE, COL_NAME, COL_EMAIL)
EXPORT_HEADER: tuple[str, ...] = (*HEADER, COL_AVERAGE)

SCORE_COLUMNS: dict[str, str] = {
    COL_MATH: "math_score",
    COL_LITERATURE: "literature_score",
    COL_ENGLISH: "english_score",
}

TEMPLATE_HINTS: tuple[str, ...] = (
    "(Bắt buộc)",
    "(Bắt buộc)",
    "(Bắt buộc)",
    "(YYYY-MM-DD)",
    "(Tùy chọn)",
    "(0-10)",
    "(0-10)",
    "(0-10)",
)
TEMPLATE_SAMPLES: tuple[tuple[str, ...], ...] = (
    ("SV0001", "Nguyễn Văn A", "nva@example.com", "2000-01-15", "Hà Nội", "8.5", "7.5", "9.0"),
    ("SV0002", "Trần Thị B", "ttb@example.com", "2000-03-22", "Hồ Chí Minh", "9.0", "8.0", "8.5"),
    ("SV0003", "Lê Văn C", "lvc@example.com", "2000-07-10", "Đà Nẵng", "7.5", "8.5", "8.0"),
)
TEMPLATE_BLANK_ROWS = 4


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def parse_row(line: str) -> list[str]:
    """
    Split one line into cells.

    Two states, unquoted and quoted. Inside quotes a doubled quote is a
    literal quote and a comma is plain text. Whitespace is trimmed at
    unquoted cell boundaries only; quoted text is kept verbatim.
    An unterminated quote runs to the end of the line.
    """
    cells: list[str] = []
    chars: list[str] = []
    quoted: list[bool] = []  # per char: did it come from inside quotes?
    in_quotes = False
    i = 0

    while i < len(line):
        ch = line[i]
        if in_quotes:
            if ch == QUOTE:
                if i + 1 < len(line) and line[i + 1] == QUOTE:
                    chars.append(QUOTE)
                    quoted.append(True)
                    i += 2
                    continue
                in_quotes = False
            else:
                chars.append(ch)
                quoted.append(True)
        elif ch == QUOTE:
            in_quotes = True
        elif ch == DELIMITER:
            cells.append(_finish_cell(chars, quoted))
            chars, quoted = [], []
        else:
            chars.append(ch)
            quoted.append(False)
        i += 1

    cells.append(_finish_cell(chars, quoted))
    return cells


def _finish_cell(chars: list[str], quoted: list[bool]) -> str:
    start, end = 0, len(chars)
    while start < end and not quoted[start] and chars[start].isspace():
        start += 1
    while end > start and not quoted[end - 1] and chars[end - 1].isspace():
        end -= 1
    return "".join(chars[start:end])


# ---------------------------------------------------------------------------
# Document parser
# ---------------------------------------------------------------------------


def parse_document(text: str) -> ParsedDocument:
    """
    Parse a whole CSV document into import candidates.

    Raises DocumentStructureError when the document is empty or the header
    lacks a required column. Every other problem is a row error: the row is
    left out and parsing continues.
    """
    if text.startswith(BOM):
        text = text[1:]

    lines = [(n, line.strip()) for n, line in enumerate(text.splitlines(), start=1)]
    lines = [(n, line) for n, line in lines if line]
    if not lines:
        raise DocumentStructureError("Document is empty")

    _, header_line = lines[0]
    header = [cell.strip() for cell in parse_row(header_line)]
    missing = [col for col in REQUIRED_COLUMNS if col not in header]
    if missing:
        raise DocumentStructureError(
            f"Missing required columns: {', '.join(missing)}",
            missing_columns=missing,
        )

    # First occurrence wins if a label repeats
    columns: dict[str, int] = {}
    for index, label in enumerate(header):
        columns.setdefault(label, index)

    doc = ParsedDocument(header=header)
    for line_number, line in lines[1:]:
        cells = parse_row(line)

        if any(_is_placeholder(cell) for cell in cells):
            continue
        if all(not cell.strip() for cell in cells):
            continue
        if len(cells) != len(header):
            doc.errors.append(
                RowError(line_number, f"Expected {len(header)} columns, found {len(cells)}")
            )
            continue

        record, problems = _map_row(cells, columns)
        if problems:
            doc.errors.append(RowError(line_number, "; ".join(problems)))
            continue
        doc.rows.append(ImportRow(line_number=line_number, record=record))

    logger.debug("csv: parsed %d rows, %d row errors", len(doc.rows), len(doc.errors))
    return doc


def _is_placeholder(cell: str) -> bool:
    """Template hint cells look like "(Bắt buộc)"."""
    cell = cell.strip()
    return len(cell) >= 2 and cell.startswith("(") and cell.endswith(")")


def split_full_name(full_name: str) -> tuple[str, str]:
    """Last token is the last name; everything before it is the first name."""
    parts = full_name.split()
    if len(parts) < 2:
        return full_name.strip(), ""
    return " ".join(parts[:-1]), parts[-1]


def _map_row(cells: list[str], columns: dict[str, int]) -> tuple[StudentRecord, list[str]]:
    def cell(label: str) -> str:
        index = columns.get(label)
        return cells[index].strip() if index is not None else ""

    problems: list[str] = []
    first_name, last_name = split_full_name(cell(COL_NAME))

    birth_raw = cell(COL_BIRTH_DATE)
    birth_date = None
    if birth_raw:
        birth_date = parse_iso_date(birth_raw)
        if birth_date is None:
            problems.append(f"Invalid birth date: {birth_raw} (expected YYYY-MM-DD)")

    scores: dict[str, float | None] = {}
    for label, field_name in SCORE_COLUMNS.items():
        raw = cell(label)
        try:
            score = parse_score(raw)
        except ValueError:
            problems.append(f"Invalid {FIELD_LABELS[field_name].lower()}: {raw}")
            continue
        if score is not None and not 0 <= score <= 10:
            problems.append(f"Invalid {FIELD_LABELS[field_name].lower()}: {raw} (must be 0-10)")
            continue
        scores[field_name] = score

    record = StudentRecord(
        student_code=cell(COL_CODE),
        first_name=first_name,
        last_name=last_name,
        email=cell(COL_EMAIL) or None,
        birth_date=birth_date,
        hometown=cell(COL_HOMETOWN) or None,
        **scores,
    )
    return record, problems


# ---------------------------------------------------------------------------
# Serializer
# ---------------------------------------------------------------------------


def _quote(value: Any) -> str:
    return QUOTE + str(value).replace(QUOTE, QUOTE * 2) + QUOTE


def _format_row(cells: Iterable[Any]) -> str:
    return DELIMITER.join(_quote(c) for c in cells) + "\n"


def format_number(value: float | None) -> str:
    """Absent numbers export as 0; whole numbers drop the trailing .0."""
    if value is None:
        return "0"
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def to_csv(records: Iterable[StudentRecord]) -> str:
    """
    Serialize records: BOM, header, one fully quoted row per record.
    The average column uses the zero-filled policy, matching import preview.
    """
    parts = [BOM, _format_row(EXPORT_HEADER)]
    for r in records:
        parts.append(
            _format_row(
                (
                    r.student_code or "",
                    r.full_name,
                    r.email or "",
                    r.birth_date.isoformat() if r.birth_date else "",
                    r.hometown or "",
                    format_number(r.math_score),
                    format_number(r.literature_score),
                    format_number(r.english_score),
                    f"{zero_filled_average(r.scores.values()):.2f}",
                )
            )
        )
    return "".join(parts)


def template_csv() -> str:
    """Import template: header, one hint row, sample rows, blank rows."""
    parts = [BOM, _format_row(HEADER), _format_row(TEMPLATE_HINTS)]
    parts.extend(_format_row(sample) for sample in TEMPLATE_SAMPLES)
    parts.extend(_format_row([""] * len(HEADER)) for _ in range(TEMPLATE_BLANK_ROWS))
    return "".join(parts)

"""
Roster Kernel — the in-memory data engine.

Pure stages:
  store       — working set, derived average/grade
  query       — filter → sort → paginate
  analytics   — aggregation over the unfiltered set
  validation  — per-field rules
  csv_codec   — CSV parse/serialize

IO stages:
  remote      — persistence contract + paginated loader
  importer    — create-vs-update reconciliation
  pipeline    — composes the stages for one ViewState
"""

from roster.kernel.analytics import summarize
from roster.kernel.csv_codec import parse_document, parse_row, template_csv, to_csv
from roster.kernel.importer import ImportReconciler, import_csv
from roster.kernel.pipeline import PipelineController, ViewState
from roster.kernel.query import SortSpec, apply_filter, apply_sort, paginate
from roster.kernel.remote import MemoryStudentApi, StudentApi, load_all_records
from roster.kernel.store import RecordStore
from roster.kernel.validation import validate_field, validate_record

__all__ = [
    "RecordStore",
    "apply_filter",
    "apply_sort",
    "paginate",
    "SortSpec",
    "summarize",
    "validate_field",
    "validate_record",
    "parse_row",
    "parse_document",
    "to_csv",
    "template_csv",
    "StudentApi",
    "MemoryStudentApi",
    "load_all_records",
    "ImportReconciler",
    "import_csv",
    "PipelineController",
    "ViewState",
]

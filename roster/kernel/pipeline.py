"""
Roster Kernel — Pipeline Controller

Composes the pure stages:

  store snapshot ─► filter ─► sort ─► paginate ─► table page
        └──────────────────────────────────────► analytics (unfiltered)

ViewState is an immutable value. Every user action produces a new one;
run() is a function of (store snapshot, view) and nothing else.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import date

from roster.config import settings
from roster.kernel.analytics import summarize
from roster.kernel.query import SortSpec, apply_filter, apply_sort, paginate
from roster.kernel.remote import DEFAULT_MAX_PAGES, StudentApi, load_all_records
from roster.kernel.store import RecordStore
from roster.kernel.types import AnalyticsReport, FilterCriteria, Page, StudentRecord

MAX_PAGE_SIZE = 100


def default_page_size() -> int:
    """ROSTER_PAGE_SIZE, clamped to 1..MAX_PAGE_SIZE."""
    return max(1, min(settings.PAGE_SIZE, MAX_PAGE_SIZE))


@dataclass(frozen=True)
class ViewState:
    criteria: FilterCriteria = field(default_factory=FilterCriteria)
    sort: SortSpec = field(default_factory=SortSpec)
    page: int = 1
    page_size: int = field(default_factory=default_page_size)

    def with_filter(self, key: str, value: str | None) -> ViewState:
        """Changing a filter always returns to page 1."""
        return replace(self, criteria=self.criteria.with_value(key, value), page=1)

    def with_sort(self, key: str) -> ViewState:
        """Same key toggles direction; a new key starts ascending."""
        if key == self.sort.key:
            return replace(self, sort=self.sort.toggled())
        return replace(self, sort=SortSpec(key, "asc"))

    def with_page(self, page: int) -> ViewState:
        return replace(self, page=page)

    def with_page_size(self, page_size: int) -> ViewState:
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {page_size}")
        return replace(self, page_size=page_size, page=1)

    def cleared(self) -> ViewState:
        """Drop every filter. Sort and page size are kept."""
        return replace(self, criteria=FilterCriteria(), page=1)

    def reset(self) -> ViewState:
        """Back to defaults: no filters, ascending by code, page 1."""
        return ViewState()


@dataclass(frozen=True)
class PipelineResult:
    view: ViewState  # page clamped into range
    page: Page
    analytics: AnalyticsReport
    hometowns: list[str]


class PipelineController:
    def __init__(self, store: RecordStore | None = None, today: date | None = None):
        self.store = store or RecordStore()
        self.today = today
        self._analytics: AnalyticsReport | None = None
        self._analytics_version = -1

    def analytics(self) -> AnalyticsReport:
        """Analytics over the unfiltered working set, cached per store version."""
        if self._analytics is None or self._analytics_version != self.store.version:
            self._analytics = summarize(self.store.all(), today=self.today)
            self._analytics_version = self.store.version
        return self._analytics

    def run(self, view: ViewState) -> PipelineResult:
        filtered = apply_filter(self.store.all(), view.criteria)
        ordered = apply_sort(filtered, view.sort)
        page = paginate(ordered, view.page, view.page_size)
        return PipelineResult(
            view=replace(view, page=page.meta.page),
            page=page,
            analytics=self.analytics(),
            hometowns=self.store.hometown_options(),
        )

    def load(self, records: Iterable[StudentRecord], view: ViewState) -> PipelineResult:
        """Replace the working set and re-run with the same view."""
        self.store.load(records)
        return self.run(view)

    async def refresh(
        self,
        api: StudentApi,
        view: ViewState,
        max_pages: int = DEFAULT_MAX_PAGES,
    ) -> PipelineResult:
        records = await load_all_records(api, max_pages=max_pages)
        return self.load(records, view)

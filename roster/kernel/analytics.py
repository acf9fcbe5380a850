"""
Roster Kernel — Aggregation

summarize() computes the analytics report over the full, unfiltered working
set. Pure function; `today` is injectable for age computation.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from roster.kernel.query import SortSpec, apply_sort
from roster.kernel.types import (
    GRADE_LABELS,
    SUBJECT_FIELDS,
    SUBJECT_NAMES,
    AnalyticsReport,
    Insight,
    Overview,
    StudentRecord,
)

# (label, lower inclusive, upper exclusive); the last bucket includes 10
SCORE_RANGES: tuple[tuple[str, float, float], ...] = (
    ("0-5", 0.0, 5.0),
    ("5-6.5", 5.0, 6.5),
    ("6.5-8", 6.5, 8.0),
    ("8-10", 8.0, 10.0),
)

HIGH_QUALITY_RATE = 20.0
NEEDS_ATTENTION_RATE = 10.0
SUBJECT_GAP = 1.0
COMPLETENESS_RATE = 80.0

DEFAULT_TOP_PERFORMERS = 5


def _mean(values: Sequence[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def _clean_hometown(record: StudentRecord) -> str | None:
    if record.hometown is None:
        return None
    return record.hometown.strip() or None


def _score_range(average: float) -> str | None:
    for label, low, high in SCORE_RANGES:
        if low <= average < high:
            return label
    if average == SCORE_RANGES[-1][2]:
        return SCORE_RANGES[-1][0]
    return None


def summarize(
    records: Sequence[StudentRecord],
    today: date | None = None,
    top_n: int = DEFAULT_TOP_PERFORMERS,
) -> AnalyticsReport:
    today = today or date.today()
    total = len(records)

    ages = [today.year - r.birth_date.year for r in records if r.birth_date is not None]
    overview = Overview(
        total_students=total,
        students_with_scores=sum(1 for r in records if r.has_any_score),
        average_age=_mean(ages),
    )

    grade_distribution = {label: 0 for label in GRADE_LABELS}
    for r in records:
        if r.grade in grade_distribution:
            grade_distribution[r.grade] += 1

    subject_averages: dict[str, float | None] = {}
    for field_name in SUBJECT_FIELDS:
        values = [getattr(r, field_name) for r in records if getattr(r, field_name) is not None]
        subject_averages[SUBJECT_NAMES[field_name]] = _mean(values)

    score_ranges = {label: 0 for label, _, _ in SCORE_RANGES}
    for r in records:
        if r.average_score is None:
            continue
        bucket = _score_range(r.average_score)
        if bucket:
            score_ranges[bucket] += 1

    hometown_distribution: dict[str, int] = {}
    hometown_averages: dict[str, list[float]] = {}
    for r in records:
        town = _clean_hometown(r)
        if town is None:
            continue
        hometown_distribution[town] = hometown_distribution.get(town, 0) + 1
        if r.average_score is not None:
            hometown_averages.setdefault(town, []).append(r.average_score)
    scores_by_hometown = {town: sum(v) / len(v) for town, v in hometown_averages.items()}

    graded = [r for r in records if r.average_score is not None]
    top_performers = apply_sort(graded, SortSpec("average_score", "desc"))[:top_n]

    report = AnalyticsReport(
        overview=overview,
        grade_distribution=grade_distribution,
        average_scores_by_subject=subject_averages,
        score_ranges=score_ranges,
        hometown_distribution=hometown_distribution,
        scores_by_hometown=scores_by_hometown,
        top_performers=top_performers,
    )
    report.insights = build_insights(report)
    return report


def build_insights(report: AnalyticsReport) -> list[Insight]:
    """
    Presentation hints. Rates use total_students as denominator.
    An empty working set has no insights.
    """
    total = report.overview.total_students
    if total == 0:
        return []

    insights: list[Insight] = []
    excellent_rate = report.excellent_count * 100 / total

    if excellent_rate > HIGH_QUALITY_RATE:
        insights.append(
            Insight(
                code="high_quality",
                level="positive",
                title="Strong results",
                description=f"{excellent_rate:.1f}% of students have grade A.",
            )
        )
    elif excellent_rate < NEEDS_ATTENTION_RATE:
        insights.append(
            Insight(
                code="needs_attention",
                level="warning",
                title="Needs attention",
                description=f"Only {excellent_rate:.1f}% of students have grade A.",
            )
        )

    extremes = report.subject_extremes
    if extremes is not None:
        (best, best_avg), (worst, worst_avg) = extremes
        if best_avg - worst_avg > SUBJECT_GAP:
            insights.append(
                Insight(
                    code="subject_gap",
                    level="info",
                    title="Uneven subjects",
                    description=(
                        f"{best.capitalize()} ({best_avg:.2f}) is well ahead of "
                        f"{worst} ({worst_avg:.2f})."
                    ),
                )
            )

    completeness = report.overview.students_with_scores * 100 / total
    if completeness < COMPLETENESS_RATE:
        insights.append(
            Insight(
                code="incomplete_data",
                level="warning",
                title="Incomplete data",
                description=f"Only {completeness:.1f}% of students have at least one score.",
            )
        )

    return insights

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, Iterable, Sequence

from .dates import to_naive_utc
from .estimates import estimate_as_of
from .models import EstimatePoint, PlanComparison, ProgressReport, RealPoint, WorkItem
from .weights import QuantityViewEligibility

logger = logging.getLogger(__name__)


class UnknownReportError(KeyError):
    """Raised when an edit or delete targets a report id that is not present."""


def created_sort_key(report: ProgressReport) -> datetime:
    """Creation timestamp as naive UTC, datetime.min when unknown."""
    if report.created_at is None:
        return datetime.min
    return to_naive_utc(report.created_at)


def chronological_reports(reports: Iterable[ProgressReport]) -> list[ProgressReport]:
    """
    Reports with a usable as-of date, oldest first.

    Same-day reports keep entry order through their creation timestamp, then
    input order. Reports without any usable date are dropped.
    """

    dated: list[tuple[Any, datetime, int, ProgressReport]] = []
    for position, report in enumerate(reports):
        as_of = report.as_of
        if as_of is None:
            logger.warning("Skipping report %s for item %s: no usable date", report.id, report.item_id)
            continue
        dated.append((as_of, created_sort_key(report), position, report))
    dated.sort(key=lambda entry: entry[:3])
    return [entry[3] for entry in dated]


def build_real_curve(
    item: WorkItem,
    reports: Iterable[ProgressReport],
    eligibility: QuantityViewEligibility | None = None,
) -> list[RealPoint]:
    """Running cumulative real progress for one item, one point per report."""

    if eligibility is None:
        eligibility = QuantityViewEligibility.for_items([item])
    quantity = eligibility.quantity_of(item.id)

    running = 0.0
    curve: list[RealPoint] = []
    for report in chronological_reports(r for r in reports if r.item_id == item.id):
        running += report.percent
        curve.append(
            RealPoint(
                date=report.as_of,
                delta_percent=report.percent,
                cumulative_percent=running,
                delta_quantity=report.percent / 100.0 * quantity if quantity is not None else None,
                cumulative_quantity=running / 100.0 * quantity if quantity is not None else None,
                report=report,
            )
        )
    return curve


def replace_report(reports: Sequence[ProgressReport], report_id: str, **changes: Any) -> list[ProgressReport]:
    """Return a new report list with one report's fields (delta, dates, note...) replaced."""

    out: list[ProgressReport] = []
    found = False
    for report in reports:
        if report.id == report_id:
            report = dataclasses.replace(report, **changes)
            found = True
        out.append(report)
    if not found:
        raise UnknownReportError(report_id)
    return out


def remove_report(reports: Sequence[ProgressReport], report_id: str) -> list[ProgressReport]:
    """Return a new report list without the given report."""

    out = [report for report in reports if report.id != report_id]
    if len(out) == len(reports):
        raise UnknownReportError(report_id)
    return out


def total_percent(reports: Iterable[ProgressReport], item_id: str) -> float:
    """Raw sum of deltas for one item, dated or not."""
    return sum(report.percent for report in reports if report.item_id == item_id)


def compare_to_plan(
    real_curve: Sequence[RealPoint], estimate_curve: Sequence[EstimatePoint], quantity: bool = False
) -> list[PlanComparison]:
    """Pair every real point with the plan's cumulative estimate as of its date."""

    rows: list[PlanComparison] = []
    for point in real_curve:
        estimate = estimate_as_of(estimate_curve, point.date, quantity=quantity) if estimate_curve else None
        actual = point.cumulative_quantity if quantity else point.cumulative_percent
        difference = actual - estimate if actual is not None and estimate is not None else None
        rows.append(PlanComparison(point=point, estimate_at=estimate, difference=difference))
    return rows

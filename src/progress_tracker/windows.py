from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Literal, Sequence

from .dates import month_key
from .intervals import ordered_periods
from .models import EstimateRow, Period, ProgressReport, Window

logger = logging.getLogger(__name__)

ZoomMode = Literal["plan", "to-date"]


def _estimate_sums(item_ids: Iterable[str], estimate_rows: Iterable[EstimateRow]) -> dict[str, float]:
    wanted = {str(item_id) for item_id in item_ids}
    sums: dict[str, float] = defaultdict(float)
    for row in estimate_rows:
        if row.item_id in wanted:
            sums[row.period_id] += row.fraction
    return sums


def _window_from(first: Period, last: Period) -> Window | None:
    start = first.span_start
    end = last.span_finish
    if start is None or end is None:
        return None
    return Window(start=start, end=end)


def plan_window(
    item_ids: Iterable[str], periods: Sequence[Period], estimate_rows: Iterable[EstimateRow]
) -> Window | None:
    """
    First through last period (plan order) with a positive estimate for the items.

    None when no period has a positive estimate; consumers then treat the
    estimated series as absent.
    """

    sums = _estimate_sums(item_ids, estimate_rows)
    planned = [p for p in ordered_periods(periods) if sums.get(p.id, 0.0) > 0]
    if not planned:
        return None
    window = _window_from(planned[0], planned[-1])
    logger.debug("Plan window: %s", window)
    return window


def period_range_window(
    item_ids: Iterable[str], periods: Sequence[Period], estimate_rows: Iterable[EstimateRow]
) -> Window | None:
    """First through last period that has any estimate row for the items, zero or not."""

    wanted = {str(item_id) for item_id in item_ids}
    used = {row.period_id for row in estimate_rows if row.item_id in wanted}
    present = [p for p in ordered_periods(periods) if p.id in used]
    if not present:
        return None
    return _window_from(present[0], present[-1])


def last_report_date(reports: Iterable[ProgressReport], item_ids: Iterable[str] | None = None):
    wanted = None if item_ids is None else {str(item_id) for item_id in item_ids}
    dates = [r.as_of for r in reports if r.as_of is not None and (wanted is None or r.item_id in wanted)]
    return max(dates) if dates else None


def to_date_window(
    plan: Window | None, reports: Iterable[ProgressReport], item_ids: Iterable[str] | None = None
) -> Window | None:
    """
    Plan start through the most recent report date.

    Falls back to the plan window when there are no reports. Without a plan the
    window spans the reports themselves.
    """

    reports = list(reports)
    latest = last_report_date(reports, item_ids)
    if latest is None:
        return plan
    if plan is None:
        wanted = None if item_ids is None else {str(item_id) for item_id in item_ids}
        earliest = min(r.as_of for r in reports if r.as_of is not None and (wanted is None or r.item_id in wanted))
        return Window(start=earliest, end=latest)
    return Window(start=plan.start, end=max(plan.start, latest))


def select_window(
    zoom: ZoomMode,
    item_ids: Sequence[str],
    periods: Sequence[Period],
    estimate_rows: Sequence[EstimateRow],
    reports: Sequence[ProgressReport],
) -> Window | None:
    """Default visible range for a chart: the zoomed window, else the plain period range."""

    plan = plan_window(item_ids, periods, estimate_rows)
    window = to_date_window(plan, reports, item_ids) if zoom == "to-date" else plan
    if window is None:
        window = period_range_window(item_ids, periods, estimate_rows)
    return window


def visible_months(
    months: Sequence[str], plan: Window | None, last_real_month: str | None, zoom: ZoomMode = "plan"
) -> list[str]:
    """
    Slice of the month axis shown in the planning grid.

    "plan" shows the plan window's months; "to-date" stops at the last month
    with a report. Falls back to every month when the bounds do not overlap.
    """

    months = list(months)
    if not months:
        return []

    start_key = month_key(plan.start) if plan else months[0]
    plan_end_key = month_key(plan.end) if plan else None
    if zoom == "to-date":
        end_key = last_real_month or plan_end_key or months[-1]
    else:
        end_key = plan_end_key or months[-1]

    selected = [key for key in months if start_key <= key <= end_key]
    return selected or months

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Literal, Sequence

from .aggregation import aggregate, cumulative_value
from .dates import iter_month_keys, month_key
from .models import EstimateRow, Period, ProgressReport, WorkItem
from .real_progress import chronological_reports
from .weights import QuantityViewEligibility, WeightResolver
from .windows import plan_window

logger = logging.getLogger(__name__)

Source = Literal["estimated", "real"]


@dataclass
class MonthlyMatrix:
    """Per-item, per-calendar-month percent deltas for the estimated and real series."""

    months: list[str]
    est_by_item: dict[str, dict[str, float]] = field(default_factory=dict)
    real_by_item: dict[str, dict[str, float]] = field(default_factory=dict)
    eligibility: QuantityViewEligibility = field(default_factory=lambda: QuantityViewEligibility(enabled=False))

    def source(self, name: Source) -> dict[str, dict[str, float]]:
        if name == "estimated":
            return self.est_by_item
        if name == "real":
            return self.real_by_item
        raise ValueError(f"unknown source '{name}'")

    def delta(self, name: Source, item_id: str, month: str) -> float:
        return self.source(name).get(item_id, {}).get(month, 0.0)

    def cumulative(self, name: Source, item_id: str, month: str, months: Sequence[str] | None = None) -> float:
        """Sum of an item's monthly deltas up to and including `month`."""
        return cumulative_value(self.source(name), item_id, month, months if months is not None else self.months)

    def aggregate(
        self,
        name: Source,
        item_ids: Iterable[str],
        month: str,
        weights: WeightResolver,
        cumulative: bool = False,
        months: Sequence[str] | None = None,
    ) -> float:
        order = months if months is not None else self.months
        return aggregate(self.source(name), item_ids, month, weights, cumulative=cumulative, bucket_order=order)

    def delta_quantity(self, name: Source, item_id: str, month: str) -> float | None:
        return self.eligibility.to_quantity(item_id, self.delta(name, item_id, month))

    def last_real_month(self) -> str | None:
        keys = {month for per_month in self.real_by_item.values() for month in per_month}
        return max(keys) if keys else None


def to_monthly_matrix(
    items: Sequence[WorkItem],
    periods: Sequence[Period],
    estimate_rows: Iterable[EstimateRow],
    reports: Iterable[ProgressReport],
) -> MonthlyMatrix:
    """
    Bucket estimates and reports into calendar months.

    A period's whole delta lands in the month of its representative end date;
    periods spanning several months are not pro-rated. Each report lands in the
    month of its as-of date. The month axis is contiguous and covers both
    sources and the plan window.
    """

    item_ids = [item.id for item in items]
    wanted = set(item_ids)
    estimate_rows = [row for row in estimate_rows if row.item_id in wanted]
    period_month: dict[str, str] = {}
    for period in periods:
        rep = period.representative_date
        if rep is None:
            logger.warning("Period %s has no dates; its estimates are left out of the monthly grid", period.id)
            continue
        period_month[period.id] = month_key(rep)

    est_by_item: dict[str, dict[str, float]] = {}
    for row in estimate_rows:
        month = period_month.get(row.period_id)
        if month is None:
            continue
        per_month = est_by_item.setdefault(row.item_id, {})
        per_month[month] = per_month.get(month, 0.0) + row.fraction * 100.0

    real_by_item: dict[str, dict[str, float]] = {}
    for report in chronological_reports(r for r in reports if r.item_id in wanted):
        month = month_key(report.as_of)
        per_month = real_by_item.setdefault(report.item_id, {})
        per_month[month] = per_month.get(month, 0.0) + report.percent

    keys = {month for per_month in est_by_item.values() for month in per_month}
    keys.update(month for per_month in real_by_item.values() for month in per_month)
    window = plan_window(item_ids, periods, estimate_rows)
    if window is not None:
        keys.update((month_key(window.start), month_key(window.end)))

    months = list(iter_month_keys(min(keys), max(keys))) if keys else []
    return MonthlyMatrix(
        months=months,
        est_by_item=est_by_item,
        real_by_item=real_by_item,
        eligibility=QuantityViewEligibility.for_items(items),
    )

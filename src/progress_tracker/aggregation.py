from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Hashable, Iterable, Mapping, Sequence

from .estimates import build_estimate_curve
from .intervals import ordered_periods
from .models import EstimatePoint, EstimateRow, Group, Period, PlanTree, ProgressReport, RealPoint, Subgroup, WorkItem
from .real_progress import chronological_reports
from .weights import QuantityViewEligibility, WeightResolver

logger = logging.getLogger(__name__)

# Upper bound applied to cumulative percentages shown in charts; raw values are kept.
DISPLAY_CLAMP = 110.0

Node = PlanTree | Group | Subgroup | WorkItem


def node_item_ids(node: Node) -> list[str]:
    """Item ids a node aggregates over (the item itself for a leaf)."""
    if isinstance(node, WorkItem):
        return [node.id]
    return node.item_ids


def clamp_for_display(value: float | None, upper: float = DISPLAY_CLAMP) -> float | None:
    if value is None:
        return None
    return min(upper, value)


def weighted_mean(values: Mapping[str, float], item_ids: Iterable[str], weights: WeightResolver) -> float:
    """sum(w*v)/sum(w) over item_ids; items missing from `values` count as 0."""

    weight_sum = 0.0
    total = 0.0
    for item_id in item_ids:
        weight = weights.weight_of(item_id)
        weight_sum += weight
        total += weight * values.get(item_id, 0.0)
    if weight_sum <= 0:
        return 0.0
    return total / weight_sum


def cumulative_value(
    values_by_item: Mapping[str, Mapping[Hashable, float]],
    item_id: str,
    bucket: Hashable,
    bucket_order: Sequence[Hashable],
) -> float:
    """Sum of one item's per-bucket values up to and including `bucket`."""

    per_bucket = values_by_item.get(item_id, {})
    total = 0.0
    for key in bucket_order:
        total += per_bucket.get(key, 0.0)
        if key == bucket:
            break
    return total


def aggregate(
    values_by_item: Mapping[str, Mapping[Hashable, float]],
    item_ids: Iterable[str],
    bucket: Hashable,
    weights: WeightResolver,
    cumulative: bool = False,
    bucket_order: Sequence[Hashable] | None = None,
) -> float:
    """
    Weighted aggregate of several items for one bucket (period or month).

    In cumulative mode each item's own cumulative-to-bucket value is computed
    first and those are weighted, so the result never drifts from the items'
    curves when the bucket set changes mid-series. The same function serves
    estimated and real sources.
    """

    item_ids = list(item_ids)
    if cumulative:
        if bucket_order is None:
            raise ValueError("bucket_order is required for cumulative aggregation")
        values = {item_id: cumulative_value(values_by_item, item_id, bucket, bucket_order) for item_id in item_ids}
    else:
        values = {item_id: values_by_item.get(item_id, {}).get(bucket, 0.0) for item_id in item_ids}
    return weighted_mean(values, item_ids, weights)


def aggregate_quantity(
    percent_by_item: Mapping[str, float], item_ids: Iterable[str], eligibility: QuantityViewEligibility
) -> float | None:
    """Sum of item quantities implied by their percentages; None when the scope is not eligible."""

    if not eligibility.enabled:
        return None
    total = 0.0
    for item_id in item_ids:
        quantity = eligibility.to_quantity(item_id, percent_by_item.get(item_id, 0.0))
        if quantity is None:
            return None
        total += quantity
    return total


def build_aggregate_estimate_curve(
    items: Sequence[WorkItem],
    periods: Sequence[Period],
    estimate_rows: Iterable[EstimateRow],
    weights: WeightResolver | None = None,
    eligibility: QuantityViewEligibility | None = None,
) -> list[EstimatePoint]:
    """Estimate curve of a node: per period, the weighted aggregate of each item's cumulative value."""

    if not items:
        return []
    weights = weights or WeightResolver.for_items(items)
    eligibility = eligibility or QuantityViewEligibility.for_items(items)
    estimate_rows = list(estimate_rows)
    item_ids = [item.id for item in items]

    curves = {item.id: build_estimate_curve(item, periods, estimate_rows, eligibility) for item in items}
    out: list[EstimatePoint] = []
    for idx, period in enumerate(ordered_periods(periods)):
        cumulative = {item_id: curves[item_id][idx].cumulative_percent for item_id in item_ids}
        deltas = {item_id: curves[item_id][idx].delta_fraction for item_id in item_ids}
        out.append(
            EstimatePoint(
                period=period,
                delta_fraction=weighted_mean(deltas, item_ids, weights),
                cumulative_percent=weighted_mean(cumulative, item_ids, weights),
                cumulative_quantity=aggregate_quantity(cumulative, item_ids, eligibility),
            )
        )
    return out


def build_aggregate_real_curve(
    items: Sequence[WorkItem],
    reports: Iterable[ProgressReport],
    weights: WeightResolver | None = None,
    eligibility: QuantityViewEligibility | None = None,
) -> list[RealPoint]:
    """
    Real curve of a node: one point per report of any owned item.

    Each report moves the aggregate by its weighted share, which keeps every
    point equal to the weighted aggregate of the items' own cumulative values.
    """

    if not items:
        return []
    weights = weights or WeightResolver.for_items(items)
    eligibility = eligibility or QuantityViewEligibility.for_items(items)
    item_ids = {item.id for item in items}
    weight_sum = weights.total(item_ids)

    running = 0.0
    running_qty = 0.0 if eligibility.enabled else None
    out: list[RealPoint] = []
    for report in chronological_reports(r for r in reports if r.item_id in item_ids):
        share = weights.weight_of(report.item_id) * report.percent / weight_sum
        running += share
        delta_qty = eligibility.to_quantity(report.item_id, report.percent)
        if running_qty is not None and delta_qty is not None:
            running_qty += delta_qty
        out.append(
            RealPoint(
                date=report.as_of,
                delta_percent=share,
                cumulative_percent=running,
                delta_quantity=delta_qty,
                cumulative_quantity=running_qty,
                report=report,
            )
        )
    return out


@dataclass(frozen=True)
class PeriodSeriesRow:
    """Per-period plan-vs-real values from the plan's own estimate/real table."""

    period: Period
    estimated_period: float
    real_period: float
    estimated: float
    real: float
    estimated_quantity: float | None
    real_quantity: float | None
    unit: str | None

    @property
    def estimated_display(self) -> float:
        return clamp_for_display(self.estimated)

    @property
    def real_display(self) -> float:
        return clamp_for_display(self.real)


def build_period_series(
    items: Sequence[WorkItem],
    periods: Sequence[Period],
    estimate_rows: Iterable[EstimateRow],
    weights: WeightResolver | None = None,
    eligibility: QuantityViewEligibility | None = None,
) -> list[PeriodSeriesRow]:
    """
    Weighted per-period and cumulative estimated/real percentages for a set of items.

    Uses `EstimateRow.fraction` and `EstimateRow.real_fraction`, both per-period
    deltas, through the same aggregate() call.
    """

    if not items:
        return []
    weights = weights or WeightResolver.for_items(items)
    eligibility = eligibility or QuantityViewEligibility.for_items(items)
    item_ids = [item.id for item in items]
    order = [period.id for period in ordered_periods(periods)]

    est: dict[str, dict[str, float]] = {}
    real: dict[str, dict[str, float]] = {}
    wanted = set(item_ids)
    for row in estimate_rows:
        if row.item_id not in wanted:
            continue
        est.setdefault(row.item_id, {}).setdefault(row.period_id, 0.0)
        real.setdefault(row.item_id, {}).setdefault(row.period_id, 0.0)
        est[row.item_id][row.period_id] += row.fraction * 100.0
        real[row.item_id][row.period_id] += row.real_fraction * 100.0

    series: list[PeriodSeriesRow] = []
    for period in ordered_periods(periods):
        est_cum = {i: cumulative_value(est, i, period.id, order) for i in item_ids}
        real_cum = {i: cumulative_value(real, i, period.id, order) for i in item_ids}
        series.append(
            PeriodSeriesRow(
                period=period,
                estimated_period=aggregate(est, item_ids, period.id, weights),
                real_period=aggregate(real, item_ids, period.id, weights),
                estimated=weighted_mean(est_cum, item_ids, weights),
                real=weighted_mean(real_cum, item_ids, weights),
                estimated_quantity=aggregate_quantity(est_cum, item_ids, eligibility),
                real_quantity=aggregate_quantity(real_cum, item_ids, eligibility),
                unit=eligibility.unit,
            )
        )
    logger.debug("Built period series with %d periods for %d items", len(series), len(item_ids))
    return series

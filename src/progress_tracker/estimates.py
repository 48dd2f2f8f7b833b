from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Iterable, Sequence

from .dates import coerce_date
from .intervals import IntervalIndex, ordered_periods
from .models import EstimatePoint, EstimateRow, Period, WorkItem
from .weights import QuantityViewEligibility

logger = logging.getLogger(__name__)


def estimate_deltas(item_id: str, estimate_rows: Iterable[EstimateRow]) -> dict[str, float]:
    """Per-period delta fractions for one item; duplicate rows for a pair are summed."""
    deltas: dict[str, float] = defaultdict(float)
    for row in estimate_rows:
        if row.item_id == item_id:
            deltas[row.period_id] += row.fraction
    return dict(deltas)


def build_estimate_curve(
    item: WorkItem,
    periods: Sequence[Period],
    estimate_rows: Iterable[EstimateRow],
    eligibility: QuantityViewEligibility | None = None,
) -> list[EstimatePoint]:
    """
    Running cumulative estimate for one item, one point per period in plan order.

    Raw deltas are accumulated as given: negative or oversized fractions are
    kept so the cumulative may decrease or exceed 100. Quantities are emitted
    only when the eligibility for the item's scope allows them.
    """

    if eligibility is None:
        eligibility = QuantityViewEligibility.for_items([item])
    deltas = estimate_deltas(item.id, estimate_rows)
    quantity = eligibility.quantity_of(item.id)

    running = 0.0
    curve: list[EstimatePoint] = []
    for period in ordered_periods(periods):
        delta = deltas.get(period.id, 0.0)
        running += delta
        curve.append(
            EstimatePoint(
                period=period,
                delta_fraction=delta,
                cumulative_percent=running * 100.0,
                cumulative_quantity=running * quantity if quantity is not None else None,
            )
        )
    return curve


def estimate_as_of(curve: Sequence[EstimatePoint], when: date, quantity: bool = False) -> float | None:
    """
    Cumulative estimate in force on `when`.

    The lookup runs against the curve's periods (containing period first, then
    the latest one already ended). Before the plan starts the value is 0; in
    quantity mode a curve without quantities yields None.
    """

    has_quantity = any(point.cumulative_quantity is not None for point in curve)
    if quantity and not has_quantity:
        return None

    idx = IntervalIndex([point.period for point in curve]).locate(when)
    if idx is None:
        return 0.0
    point = curve[idx]
    if quantity:
        return point.cumulative_quantity
    return point.cumulative_percent


def estimate_timeline(
    curve: Sequence[EstimatePoint], dates: Iterable[Any], quantity: bool = False
) -> dict[date, float | None]:
    """Map many dates (ISO strings or dates) to their estimate; unusable dates are skipped."""

    index = IntervalIndex([point.period for point in curve])
    out: dict[date, float | None] = {}
    for raw in dates:
        when = coerce_date(raw, context="estimate timeline")
        if when is None:
            continue
        idx = index.locate(when)
        if idx is None:
            out[when] = 0.0
        elif quantity:
            out[when] = curve[idx].cumulative_quantity
        else:
            out[when] = curve[idx].cumulative_percent
    return out


def final_estimate(curve: Sequence[EstimatePoint]) -> float:
    return curve[-1].cumulative_percent if curve else 0.0

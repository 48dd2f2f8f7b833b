from __future__ import annotations

from datetime import date
from typing import Sequence

from .models import EstimatePoint, MergedRow, RealPoint, Window


def _points(curve: Sequence[EstimatePoint | RealPoint], quantity: bool) -> list[tuple[date, float]]:
    pairs: list[tuple[date, float]] = []
    for point in curve:
        value = point.cumulative_quantity if quantity else point.cumulative_percent
        if point.date is None or value is None:
            continue
        pairs.append((point.date, value))
    # Stable: same-date points keep curve order, so the last one wins below.
    pairs.sort(key=lambda pair: pair[0])
    return pairs


def merge_series(
    estimate_curve: Sequence[EstimatePoint],
    real_curve: Sequence[RealPoint],
    plan_window: Window | None = None,
    cutoff: date | None = None,
    quantity: bool = False,
) -> list[MergedRow]:
    """
    Align estimated and real cumulative curves on one timeline.

    The timeline is the sorted union of both curves' dates plus the plan window
    bounds. Each column carries its last known value forward (step function).
    Estimated starts at 0 on the plan start and is blank after the plan end or
    after `cutoff`; real starts at 0 from the earlier of the plan start and its
    first report. An estimate curve with no positive delta is treated as absent.
    """

    planned = any(point.delta_fraction > 0 for point in estimate_curve)
    est = _points(estimate_curve, quantity) if planned else []
    real = _points(real_curve, quantity)

    timeline = {d for d, _ in est} | {d for d, _ in real}
    if plan_window is not None:
        timeline.update((plan_window.start, plan_window.end))
    if not timeline:
        return []

    est_origin = plan_window.start if (plan_window is not None and est) else None
    real_origin = None
    if real:
        real_origin = real[0][0] if plan_window is None else min(real[0][0], plan_window.start)

    rows: list[MergedRow] = []
    ei = ri = 0
    est_value: float | None = None
    real_value: float | None = None
    for current in sorted(timeline):
        while ei < len(est) and est[ei][0] <= current:
            est_value = est[ei][1]
            ei += 1
        while ri < len(real) and real[ri][0] <= current:
            real_value = real[ri][1]
            ri += 1

        estimated = est_value
        if estimated is None and est_origin is not None and current >= est_origin:
            estimated = 0.0
        if plan_window is not None and current > plan_window.end:
            estimated = None
        if cutoff is not None and current > cutoff:
            estimated = None

        actual = real_value
        if actual is None and real_origin is not None and current >= real_origin:
            actual = 0.0

        rows.append(MergedRow(date=current, estimated=estimated, real=actual))
    return rows

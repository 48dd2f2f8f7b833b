import datetime as dt

import pytest

from progress_tracker.estimates import build_estimate_curve, estimate_as_of, estimate_timeline, final_estimate
from progress_tracker.models import EstimateRow, Period, WorkItem


def _item(quantity=100.0, unit="m3"):
    return WorkItem(id="A", code="1.1", description="Excavation", group_id="G", quantity=quantity, unit=unit)


def _periods():
    return [
        Period(id="P1", sequence=1, start_date=dt.date(2024, 1, 1), end_date=dt.date(2024, 1, 31)),
        Period(id="P2", sequence=2, start_date=dt.date(2024, 2, 1), end_date=dt.date(2024, 2, 29)),
    ]


def _rows(*fractions):
    return [EstimateRow(period_id=f"P{idx + 1}", item_id="A", fraction=f) for idx, f in enumerate(fractions)]


def test_two_half_periods_reach_full_percent_and_quantity():
    curve = build_estimate_curve(_item(), _periods(), _rows(0.5, 0.5))

    assert [p.cumulative_percent for p in curve] == [50.0, 100.0]
    assert [p.cumulative_quantity for p in curve] == [50.0, 100.0]
    assert [p.date for p in curve] == [dt.date(2024, 1, 31), dt.date(2024, 2, 29)]


def test_negative_delta_is_not_clamped():
    curve = build_estimate_curve(_item(), _periods(), _rows(0.6, -0.2))

    assert curve[0].cumulative_percent == pytest.approx(60.0)
    assert curve[1].cumulative_percent == pytest.approx(40.0)


def test_oversized_fraction_is_kept_raw():
    curve = build_estimate_curve(_item(), _periods(), _rows(0.8, 0.5))

    assert curve[-1].cumulative_percent == pytest.approx(130.0)


def test_quantity_is_absent_without_unit():
    curve = build_estimate_curve(_item(unit=None), _periods(), _rows(0.5, 0.5))

    assert all(p.cumulative_quantity is None for p in curve)


def test_periods_are_walked_in_sequence_order_and_duplicates_summed():
    rows = _rows(0.25, 0.5) + [EstimateRow(period_id="P1", item_id="A", fraction=0.25)]

    curve = build_estimate_curve(_item(), list(reversed(_periods())), rows)

    assert [p.period.id for p in curve] == ["P1", "P2"]
    assert [p.cumulative_percent for p in curve] == [50.0, 100.0]


def test_rows_for_other_items_are_ignored():
    rows = _rows(0.5) + [EstimateRow(period_id="P2", item_id="B", fraction=0.9)]

    curve = build_estimate_curve(_item(), _periods(), rows)

    assert final_estimate(curve) == 50.0


def test_estimate_as_of_before_inside_and_after():
    curve = build_estimate_curve(_item(), _periods(), _rows(0.5, 0.5))

    assert estimate_as_of(curve, dt.date(2023, 12, 1)) == 0.0
    assert estimate_as_of(curve, dt.date(2024, 1, 10)) == 50.0
    assert estimate_as_of(curve, dt.date(2024, 2, 10)) == 100.0
    assert estimate_as_of(curve, dt.date(2024, 6, 1)) == 100.0
    assert estimate_as_of(curve, dt.date(2024, 1, 10), quantity=True) == 50.0


def test_estimate_as_of_quantity_without_quantities_is_none():
    curve = build_estimate_curve(_item(quantity=None), _periods(), _rows(0.5, 0.5))

    assert estimate_as_of(curve, dt.date(2024, 1, 10), quantity=True) is None


def test_estimate_timeline_skips_unparseable_dates():
    curve = build_estimate_curve(_item(), _periods(), _rows(0.5, 0.5))

    timeline = estimate_timeline(curve, ["2024-01-05", "not-a-date", dt.date(2024, 3, 5), None])

    assert timeline == {dt.date(2024, 1, 5): 50.0, dt.date(2024, 3, 5): 100.0}


def test_empty_periods_give_empty_curve():
    assert build_estimate_curve(_item(), [], _rows(0.5)) == []
    assert final_estimate([]) == 0.0

import datetime as dt

import pytest

from progress_tracker.estimates import build_estimate_curve
from progress_tracker.models import EstimateRow, Period, ProgressReport, WorkItem
from progress_tracker.monthly import to_monthly_matrix
from progress_tracker.real_progress import build_real_curve
from progress_tracker.weights import WeightResolver


def _items():
    return [
        WorkItem(id="A", code="1", description="Walls", group_id="G", quantity=50.0, unit="m2", weight=3),
        WorkItem(id="B", code="2", description="Floors", group_id="G", quantity=150.0, unit="m2", weight=1),
    ]


def _periods():
    return [
        Period(id="P1", sequence=1, start_date=dt.date(2024, 1, 1), end_date=dt.date(2024, 1, 31)),
        Period(id="P2", sequence=2, start_date=dt.date(2024, 1, 20), end_date=dt.date(2024, 2, 10)),
        Period(id="P3", sequence=3, start_date=dt.date(2024, 3, 1), end_date=dt.date(2024, 3, 31)),
    ]


def _rows():
    return [
        EstimateRow(period_id="P1", item_id="A", fraction=0.3),
        EstimateRow(period_id="P2", item_id="A", fraction=0.7),
        EstimateRow(period_id="P3", item_id="B", fraction=1.0),
    ]


def _reports():
    return [
        ProgressReport(id="r1", item_id="A", percent=20.0, date=dt.date(2024, 1, 15)),
        ProgressReport(id="r2", item_id="A", percent=30.0, end_date=dt.date(2024, 5, 2)),
        ProgressReport(id="r3", item_id="B", percent=10.0, date=dt.date(2024, 3, 9)),
        ProgressReport(id="r4", item_id="B", percent=99.0),
    ]


def test_month_axis_is_contiguous_over_both_sources():
    matrix = to_monthly_matrix(_items(), _periods(), _rows(), _reports())

    assert matrix.months == ["2024-01", "2024-02", "2024-03", "2024-04", "2024-05"]


def test_period_delta_goes_to_its_end_month():
    matrix = to_monthly_matrix(_items(), _periods(), _rows(), _reports())

    assert matrix.est_by_item["A"] == pytest.approx({"2024-01": 30.0, "2024-02": 70.0})
    assert matrix.est_by_item["B"] == {"2024-03": 100.0}


def test_reports_go_to_month_of_their_date():
    matrix = to_monthly_matrix(_items(), _periods(), _rows(), _reports())

    assert matrix.real_by_item["A"] == {"2024-01": 20.0, "2024-05": 30.0}
    assert matrix.real_by_item["B"] == {"2024-03": 10.0}
    assert matrix.last_real_month() == "2024-05"


def test_monthly_totals_match_final_cumulative_values():
    items, periods, rows, reports = _items(), _periods(), _rows(), _reports()
    matrix = to_monthly_matrix(items, periods, rows, reports)

    for item in items:
        estimate = build_estimate_curve(item, periods, rows)
        real = build_real_curve(item, reports)
        est_total = sum(matrix.delta("estimated", item.id, m) for m in matrix.months)
        real_total = sum(matrix.delta("real", item.id, m) for m in matrix.months)
        assert est_total == pytest.approx(estimate[-1].cumulative_percent)
        assert real_total == pytest.approx(real[-1].cumulative_percent)
        assert matrix.cumulative("real", item.id, matrix.months[-1]) == pytest.approx(real_total)


def test_cumulative_to_month_and_hierarchical_aggregate():
    matrix = to_monthly_matrix(_items(), _periods(), _rows(), _reports())
    weights = WeightResolver({"A": 3, "B": 1})

    assert matrix.cumulative("estimated", "A", "2024-01") == pytest.approx(30.0)
    assert matrix.aggregate("estimated", ["A", "B"], "2024-03", weights) == pytest.approx(25.0)
    assert matrix.aggregate("estimated", ["A", "B"], "2024-03", weights, cumulative=True) == pytest.approx(100.0)
    assert matrix.aggregate("real", ["A", "B"], "2024-03", weights, cumulative=True) == pytest.approx(17.5)


def test_quantity_deltas_follow_item_totals():
    matrix = to_monthly_matrix(_items(), _periods(), _rows(), _reports())

    assert matrix.delta_quantity("real", "A", "2024-01") == pytest.approx(10.0)
    assert matrix.delta_quantity("estimated", "B", "2024-03") == pytest.approx(150.0)


def test_unknown_source_is_rejected():
    matrix = to_monthly_matrix(_items(), _periods(), _rows(), _reports())

    with pytest.raises(ValueError):
        matrix.delta("forecast", "A", "2024-01")


def test_no_data_gives_empty_matrix():
    matrix = to_monthly_matrix(_items(), _periods(), [], [])

    assert matrix.months == []
    assert matrix.last_real_month() is None

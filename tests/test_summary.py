import datetime as dt

import pytest

from progress_tracker.dates import utc_now
from progress_tracker.models import PlanRow, ProgressReport
from progress_tracker.plan_tree import build_plan_tree
from progress_tracker.summary import daily_activity, summarize_project

NOW = dt.datetime(2024, 3, 10, 12, 0)


def _tree():
    return build_plan_tree(
        [
            PlanRow(id="G1", kind="group", description="Structure"),
            PlanRow(id="S1", kind="subgroup", description="Frames"),
            PlanRow(id="A", kind="item", code="1.1", description="Columns", quantity=10, unit="m3", unit_price=100),
            PlanRow(id="B", kind="item", code="1.2", description="Beams", quantity=30, unit="m3", unit_price=100),
            PlanRow(id="G2", kind="group", description="Finishes"),
            PlanRow(id="D", kind="item", code="2.1", description="Paint", quantity=500, unit="m2", unit_price=2),
        ]
    )


def _tree_with_direct_item():
    return build_plan_tree(
        [
            PlanRow(id="G1", kind="group", description="Structure"),
            PlanRow(id="C", kind="item", code="1.0", description="Survey"),
            PlanRow(id="S1", kind="subgroup", description="Frames"),
            PlanRow(id="A", kind="item", code="1.1", description="Columns", quantity=10, unit="m3", unit_price=100),
            PlanRow(id="B", kind="item", code="1.2", description="Beams", quantity=30, unit="m3", unit_price=100),
            PlanRow(id="G2", kind="group", description="Finishes"),
            PlanRow(id="D", kind="item", code="2.1", description="Paint", quantity=500, unit="m2", unit_price=2),
        ]
    )


def _report(report_id, item_id, percent, created):
    return ProgressReport(id=report_id, item_id=item_id, percent=percent, date=created.date(), created_at=created)


def _reports():
    return [
        _report("a1", "A", 50.0, dt.datetime(2024, 2, 1, 9, 0)),
        _report("a2", "A", 45.0, dt.datetime(2024, 2, 20, 9, 0)),
        _report("b1", "B", 100.0, dt.datetime(2024, 2, 25, 9, 0)),
        _report("b2", "B", 5.0, dt.datetime(2024, 3, 8, 9, 0)),
        _report("d1", "D", 30.0, dt.datetime(2024, 3, 9, 9, 0)),
    ]


def test_groups_roll_up_weighted_progress_and_money():
    summary = summarize_project(_tree_with_direct_item(), _reports(), now=NOW)

    structure, finishes = summary.groups
    assert structure.name == "Structure"
    assert structure.progress == pytest.approx(395000 / 4001)
    assert structure.total_money == 4000.0
    assert structure.executed_money == pytest.approx(3950.0)
    assert (structure.item_count, structure.completed_count) == (3, 1)
    assert finishes.progress == pytest.approx(30.0)


def test_subgroups_and_project_totals():
    summary = summarize_project(_tree_with_direct_item(), _reports(), now=NOW)

    assert [s.name for s in summary.subgroups] == ["Frames"]
    assert summary.subgroups[0].progress == pytest.approx(98.75)
    assert summary.total_scope == 5000.0
    assert summary.total_executed == pytest.approx(4250.0)
    assert summary.progress == pytest.approx(425000 / 5001)
    assert (summary.total_items, summary.completed_items) == (4, 1)


def test_progress_is_capped_and_near_completion_listed():
    summary = summarize_project(_tree(), _reports(), now=NOW)

    by_id = {status.item.id: status for status in summary.items}
    assert by_id["B"].raw_progress == 105.0
    assert by_id["B"].progress == 100.0
    assert [status.item.id for status in summary.near_completion] == ["A"]


def test_weekly_top_groups_rank_recent_money():
    summary = summarize_project(_tree(), _reports(), now=NOW)

    assert [(g.name, g.weekly_value) for g in summary.weekly_top_groups] == [
        ("Finishes", pytest.approx(300.0)),
        ("Structure", pytest.approx(150.0)),
    ]
    assert summary.weekly_top_groups[0].total_progress == pytest.approx(30.0)


def test_feed_lists_latest_reports_first():
    reports = _reports() + [_report("z", "Z", 1.0, dt.datetime(2024, 3, 10, 8, 0))]

    feed = summarize_project(_tree(), reports, now=NOW).feed

    assert feed[0].title == "Unknown item"
    assert feed[1].title == "Finishes - 2.1"
    assert feed[1].description == "Paint"


def test_empty_project_summarises_to_zero():
    summary = summarize_project(build_plan_tree([]), [], now=NOW)

    assert summary.progress == 0.0
    assert summary.groups == []
    assert summary.weekly_top_groups == []


def test_daily_activity_counts_reports_and_money():
    tree = _tree()

    days = daily_activity(_reports(), tree.items, dt.date(2024, 2, 20), dt.date(2024, 3, 8))

    assert [(d.day, d.reports) for d in days] == [
        (dt.date(2024, 2, 20), 1),
        (dt.date(2024, 2, 25), 1),
        (dt.date(2024, 3, 8), 1),
    ]
    assert days[1].money == pytest.approx(3000.0)


def test_weekly_window_compares_timestamps_in_utc():
    now = dt.datetime(2024, 3, 10, 17, 0, tzinfo=dt.timezone(dt.timedelta(hours=5)))
    reports = [
        _report("d1", "D", 30.0, dt.datetime(2024, 3, 3, 13, 0, tzinfo=dt.timezone.utc)),
        _report("a1", "A", 50.0, dt.datetime(2024, 3, 3, 11, 0)),
    ]

    summary = summarize_project(_tree(), reports, now=now)

    assert [(g.name, g.weekly_value) for g in summary.weekly_top_groups] == [("Finishes", pytest.approx(300.0))]
    assert [entry.report.id for entry in summary.feed] == ["d1", "a1"]


def test_default_now_is_naive_utc():
    before = dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)

    current = utc_now()

    assert current.tzinfo is None
    assert before <= current <= before + dt.timedelta(minutes=1)

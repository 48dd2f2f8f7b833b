from __future__ import annotations

import datetime as dt
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .aggregation import weighted_mean
from .models import Group, PlanTree, ProgressReport, Subgroup, WorkItem
from .dates import to_naive_utc, utc_now
from .real_progress import created_sort_key, total_percent
from .weights import WeightResolver

logger = logging.getLogger(__name__)

COMPLETED_THRESHOLD = 99.9
NEAR_COMPLETION_FLOOR = 90.0
WEEKLY_WINDOW_DAYS = 7
WEEKLY_TOP_GROUPS = 4
FEED_LIMIT = 50


@dataclass(frozen=True)
class ItemStatus:
    item: WorkItem
    raw_progress: float
    group_name: str
    subgroup_name: str = ""

    @property
    def progress(self) -> float:
        """Reported progress capped at 100 for display."""
        return min(self.raw_progress, 100.0)

    @property
    def executed_money(self) -> float:
        return self.item.money * self.progress / 100.0

    @property
    def completed(self) -> bool:
        return self.progress >= COMPLETED_THRESHOLD


@dataclass(frozen=True)
class NodeSummary:
    id: str
    name: str
    progress: float
    total_money: float
    executed_money: float
    item_count: int
    completed_count: int


@dataclass(frozen=True)
class WeeklyGroup:
    name: str
    weekly_value: float
    total_progress: float


@dataclass(frozen=True)
class FeedEntry:
    report: ProgressReport
    title: str
    description: str
    group_name: str


@dataclass
class ProjectSummary:
    """Dashboard rollup for one project."""

    progress: float
    total_scope: float
    total_executed: float
    total_items: int
    completed_items: int
    groups: list[NodeSummary] = field(default_factory=list)
    subgroups: list[NodeSummary] = field(default_factory=list)
    items: list[ItemStatus] = field(default_factory=list)
    near_completion: list[ItemStatus] = field(default_factory=list)
    weekly_top_groups: list[WeeklyGroup] = field(default_factory=list)
    feed: list[FeedEntry] = field(default_factory=list)


def summarize_project(
    tree: PlanTree,
    reports: Sequence[ProgressReport],
    now: dt.datetime | None = None,
    weights: WeightResolver | None = None,
) -> ProjectSummary:
    """
    Roll reported progress up to subgroups, groups and the whole project.

    Progress figures are weighted means of the items' capped progress; money
    figures use each item's contracted amount. Timestamps, `now` included, compare as naive
    UTC; `now` defaults to the current UTC time.
    """

    now = to_naive_utc(now) if now is not None else utc_now()
    weights = weights or WeightResolver.for_items(tree.items)

    statuses: dict[str, ItemStatus] = {}
    for group in tree.groups:
        for subgroup in group.subgroups:
            for item in subgroup.items:
                statuses[item.id] = ItemStatus(item, total_percent(reports, item.id), group.description, subgroup.description)
        for item in group.direct_items:
            statuses[item.id] = ItemStatus(item, total_percent(reports, item.id), group.description)

    items = list(statuses.values())
    groups = sorted(
        (_node_summary(group, statuses, weights) for group in tree.groups),
        key=lambda node: node.progress,
        reverse=True,
    )
    subgroups = [_node_summary(sub, statuses, weights) for group in tree.groups for sub in group.subgroups]
    progress_by_item = {status.item.id: status.progress for status in items}

    summary = ProjectSummary(
        progress=weighted_mean(progress_by_item, progress_by_item.keys(), weights),
        total_scope=sum(status.item.money for status in items),
        total_executed=sum(status.executed_money for status in items),
        total_items=len(items),
        completed_items=sum(1 for status in items if status.completed),
        groups=groups,
        subgroups=subgroups,
        items=items,
        near_completion=[s for s in items if NEAR_COMPLETION_FLOOR <= s.progress < 100.0],
        weekly_top_groups=_weekly_top_groups(statuses, reports, groups, now),
        feed=_feed(statuses, reports),
    )
    logger.debug("Summarised %d items in %d groups", summary.total_items, len(groups))
    return summary


def _node_summary(node: Group | Subgroup, statuses: dict[str, ItemStatus], weights: WeightResolver) -> NodeSummary:
    owned = [statuses[item_id] for item_id in node.item_ids]
    progress = weighted_mean({s.item.id: s.progress for s in owned}, node.item_ids, weights)
    return NodeSummary(
        id=node.id,
        name=node.description,
        progress=progress,
        total_money=sum(s.item.money for s in owned),
        executed_money=sum(s.executed_money for s in owned),
        item_count=len(owned),
        completed_count=sum(1 for s in owned if s.completed),
    )


def _weekly_top_groups(
    statuses: dict[str, ItemStatus],
    reports: Iterable[ProgressReport],
    groups: Sequence[NodeSummary],
    now: dt.datetime,
) -> list[WeeklyGroup]:
    since = now - dt.timedelta(days=WEEKLY_WINDOW_DAYS)
    weekly: dict[str, float] = defaultdict(float)
    for report in reports:
        status = statuses.get(report.item_id)
        if status is None or report.created_at is None or created_sort_key(report) < since:
            continue
        weekly[status.group_name] += status.item.money * report.percent / 100.0

    progress_by_name = {group.name: group.progress for group in groups}
    ranked = sorted(weekly.items(), key=lambda pair: pair[1], reverse=True)[:WEEKLY_TOP_GROUPS]
    return [WeeklyGroup(name, value, progress_by_name.get(name, 0.0)) for name, value in ranked]


def _feed(statuses: dict[str, ItemStatus], reports: Iterable[ProgressReport]) -> list[FeedEntry]:
    recent = sorted(
        reports,
        key=created_sort_key,
        reverse=True,
    )[:FEED_LIMIT]
    entries = []
    for report in recent:
        status = statuses.get(report.item_id)
        if status is None:
            entries.append(FeedEntry(report, "Unknown item", "", "General"))
            continue
        entries.append(
            FeedEntry(
                report=report,
                title=f"{status.group_name} - {status.item.code}",
                description=status.item.description,
                group_name=status.group_name,
            )
        )
    return entries


@dataclass(frozen=True)
class DailyActivity:
    day: dt.date
    reports: int
    money: float


def daily_activity(
    reports: Iterable[ProgressReport],
    items: Iterable[WorkItem],
    start: dt.date,
    end: dt.date,
) -> list[DailyActivity]:
    """Report count and executed money per as-of date within [start, end]."""

    money_by_item = {item.id: item.money for item in items}
    counts: dict[dt.date, int] = defaultdict(int)
    money: dict[dt.date, float] = defaultdict(float)
    for report in reports:
        day = report.as_of
        if day is None or not (start <= day <= end):
            continue
        counts[day] += 1
        money[day] += money_by_item.get(report.item_id, 0.0) * report.percent / 100.0
    return [DailyActivity(day, counts[day], money[day]) for day in sorted(counts)]

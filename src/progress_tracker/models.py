from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal


NodeKind = Literal["group", "subgroup", "item"]
"""Allowed plan node types: group heading, subgroup heading, work item."""


@dataclass(frozen=True)
class WorkItem:
    """Lowest-level contracted work line that receives progress reports."""

    id: str
    code: str
    description: str
    group_id: str
    subgroup_id: str | None = None
    quantity: float | None = None
    unit: str | None = None
    weight: float | None = None
    unit_price: float | None = None

    @property
    def money(self) -> float:
        """Contracted amount (unit price x quantity); 0 when either is unknown."""
        if self.unit_price is None or self.quantity is None:
            return 0.0
        return self.unit_price * self.quantity


@dataclass
class Subgroup:
    """Structural container that owns work items only."""

    id: str
    description: str
    items: list[WorkItem] = field(default_factory=list)

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]


@dataclass
class Group:
    """Top-level plan heading with subgroups and directly-owned items."""

    id: str
    description: str
    subgroups: list[Subgroup] = field(default_factory=list)
    direct_items: list[WorkItem] = field(default_factory=list)

    @property
    def items(self) -> list[WorkItem]:
        """All items owned by the group, subgroup items first then direct items."""
        collected: list[WorkItem] = []
        for subgroup in self.subgroups:
            collected.extend(subgroup.items)
        collected.extend(self.direct_items)
        return collected

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]


@dataclass
class PlanTree:
    """Root of the group/subgroup/item hierarchy for one project."""

    groups: list[Group] = field(default_factory=list)

    @property
    def items(self) -> list[WorkItem]:
        collected: list[WorkItem] = []
        for group in self.groups:
            collected.extend(group.items)
        return collected

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]

    def find_item(self, item_id: str) -> WorkItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


@dataclass(frozen=True)
class PlanRow:
    """One row of the flat, order-dependent plan listing fetched from storage."""

    id: str
    kind: NodeKind
    description: str = ""
    code: str = ""
    quantity: float | None = None
    unit: str | None = None
    weight: float | None = None
    unit_price: float | None = None


@dataclass(frozen=True)
class Period:
    """Planning period; either bound may be missing."""

    id: str
    sequence: int
    label: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    @property
    def span_start(self) -> date | None:
        """Start bound, falling back to the end date for point periods."""
        return self.start_date or self.end_date

    @property
    def span_finish(self) -> date | None:
        """End bound, falling back to the start date for point periods."""
        return self.end_date or self.start_date

    @property
    def representative_date(self) -> date | None:
        """Date at which the period's cumulative value is plotted."""
        return self.span_finish

    @property
    def display_label(self) -> str:
        if self.label:
            return self.label
        rep = self.representative_date
        return rep.isoformat() if rep else str(self.sequence)


@dataclass(frozen=True)
class EstimateRow:
    """Estimated fractional progress contributed to one item in one period."""

    period_id: str
    item_id: str
    fraction: float
    real_fraction: float = 0.0


@dataclass(frozen=True)
class ProgressReport:
    """Field report of an incremental percent delta for one item."""

    id: str
    item_id: str
    percent: float
    date: date | None = None
    start_date: date | None = None
    end_date: date | None = None
    created_at: datetime | None = None
    photos: tuple[str, ...] = ()
    note: str | None = None
    author: str | None = None

    @property
    def as_of(self) -> date | None:
        """Date used for plan comparison: end, report date, start, then creation day."""
        for candidate in (self.end_date, self.date, self.start_date):
            if candidate is not None:
                return candidate
        if self.created_at is not None:
            return self.created_at.date()
        return None


@dataclass(frozen=True)
class EstimatePoint:
    """Cumulative estimate at the end of one period."""

    period: Period
    delta_fraction: float
    cumulative_percent: float
    cumulative_quantity: float | None = None

    @property
    def date(self) -> date | None:
        return self.period.representative_date


@dataclass(frozen=True)
class RealPoint:
    """Cumulative real progress right after one report."""

    date: date
    delta_percent: float
    cumulative_percent: float
    delta_quantity: float | None = None
    cumulative_quantity: float | None = None
    report: ProgressReport | None = None


@dataclass(frozen=True)
class PlanComparison:
    """A real point paired with the plan's estimate as of the same date."""

    point: RealPoint
    estimate_at: float | None
    difference: float | None


@dataclass(frozen=True)
class MergedRow:
    """One row of the aligned estimated/real table used for charting."""

    date: date
    estimated: float | None
    real: float | None

    @property
    def difference(self) -> float | None:
        if self.estimated is None or self.real is None:
            return None
        return self.real - self.estimated


@dataclass(frozen=True)
class Window:
    """Inclusive date range used as the default or zoomed view."""

    start: date
    end: date

    def contains(self, when: date) -> bool:
        return self.start <= when <= self.end


@dataclass
class FlatGridRow:
    """
    Flattened view of the plan tree used by the monthly planning grid.

    Holds positional order, indentation level, node kind, the item ids the
    row aggregates over and one cell per visible month.
    """

    order: int
    indent: int
    node_type: NodeKind
    node_id: str
    code: str
    name: str
    item_ids: list[str] = field(default_factory=list)
    cells: list["GridCell"] = field(default_factory=list)
    meta: dict[str, Any] | None = None


@dataclass(frozen=True)
class GridCell:
    """Per-month estimated/real values for one grid row."""

    month: str
    estimated: float
    real: float
    estimated_cumulative: float
    real_cumulative: float

    @property
    def difference(self) -> float:
        return self.real - self.estimated

    @property
    def cumulative_difference(self) -> float:
        return self.real_cumulative - self.estimated_cumulative

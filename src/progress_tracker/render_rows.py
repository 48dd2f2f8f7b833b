from __future__ import annotations

from typing import List, Sequence

from .models import FlatGridRow, GridCell, Group, PlanTree, Subgroup, WorkItem
from .monthly import MonthlyMatrix
from .weights import WeightResolver


def to_grid_rows(
    tree: PlanTree,
    matrix: MonthlyMatrix,
    months: Sequence[str] | None = None,
    weights: WeightResolver | None = None,
    search: str | None = None,
) -> list[FlatGridRow]:
    """
    Convert the plan tree into flat planning-grid rows with indentation.

    Group rows come first, followed by their subgroups (each followed by its
    items) and then the group's direct items. Heading rows aggregate their
    items with weights; cumulative cells are computed from the visible months.
    A search term keeps matching items, plus every child of a matching heading.
    """

    months = list(months) if months is not None else list(matrix.months)
    weights = weights or WeightResolver.for_items(tree.items)
    term = (search or "").strip().lower()

    rows: List[FlatGridRow] = []
    order = 0

    for group in tree.groups:
        group_hit = not term or _matches(term, group.description)
        subgroups = []
        for subgroup in group.subgroups:
            sub_hit = group_hit or _matches(term, subgroup.description)
            items = [item for item in subgroup.items if sub_hit or _item_matches(term, item)]
            if items:
                subgroups.append((subgroup, items))
        direct = [item for item in group.direct_items if group_hit or _item_matches(term, item)]
        if not (group_hit or subgroups or direct):
            continue

        rows.append(_heading_row(group, order, 0, "group", group.item_ids, matrix, months, weights))
        order += 1
        for subgroup, items in subgroups:
            rows.append(_heading_row(subgroup, order, 1, "subgroup", subgroup.item_ids, matrix, months, weights))
            order += 1
            for item in items:
                order = _append_item(item, rows, order, indent=2, matrix=matrix, months=months)
        for item in direct:
            order = _append_item(item, rows, order, indent=1, matrix=matrix, months=months)

    return rows


def _heading_row(
    node: Group | Subgroup,
    order: int,
    indent: int,
    node_type: str,
    item_ids: list[str],
    matrix: MonthlyMatrix,
    months: Sequence[str],
    weights: WeightResolver,
) -> FlatGridRow:
    cells = [
        GridCell(
            month=month,
            estimated=matrix.aggregate("estimated", item_ids, month, weights, months=months),
            real=matrix.aggregate("real", item_ids, month, weights, months=months),
            estimated_cumulative=matrix.aggregate("estimated", item_ids, month, weights, cumulative=True, months=months),
            real_cumulative=matrix.aggregate("real", item_ids, month, weights, cumulative=True, months=months),
        )
        for month in months
    ]
    return FlatGridRow(
        order=order,
        indent=indent,
        node_type=node_type,
        node_id=node.id,
        code="",
        name=node.description,
        item_ids=list(item_ids),
        cells=cells,
    )


def _append_item(
    item: WorkItem, rows: List[FlatGridRow], order: int, indent: int, matrix: MonthlyMatrix, months: Sequence[str]
) -> int:
    """Append one item row; return updated order counter."""

    cells = [
        GridCell(
            month=month,
            estimated=matrix.delta("estimated", item.id, month),
            real=matrix.delta("real", item.id, month),
            estimated_cumulative=matrix.cumulative("estimated", item.id, month, months),
            real_cumulative=matrix.cumulative("real", item.id, month, months),
        )
        for month in months
    ]
    rows.append(
        FlatGridRow(
            order=order,
            indent=indent,
            node_type="item",
            node_id=item.id,
            code=item.code,
            name=item.description,
            item_ids=[item.id],
            cells=cells,
            meta={"unit": item.unit, "quantity": item.quantity},
        )
    )
    return order + 1


def _matches(term: str, value: str | None) -> bool:
    return term in (value or "").lower()


def _item_matches(term: str, item: WorkItem) -> bool:
    return _matches(term, item.description) or _matches(term, item.code)

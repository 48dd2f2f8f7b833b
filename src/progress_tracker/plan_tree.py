from __future__ import annotations

from typing import Iterable, Sequence

from .models import Group, PlanRow, PlanTree, Subgroup, WorkItem


class PlanStructureError(Exception):
    """Raised when the flat plan listing cannot be nested (orphan rows, duplicate ids)."""


class ProjectValidationError(Exception):
    """Raised when a project snapshot is malformed (wrong types, missing sections)."""


def build_plan_tree(rows: Sequence[PlanRow]) -> PlanTree:
    """
    Build the group/subgroup/item tree from the ordered plan rows.

    - First pass validates ordering: every subgroup or item row must follow a
      group row, ids are unique and kinds are known.
    - Second pass nests rows under the most recent group/subgroup heading.
      A group heading closes any open subgroup.
    """

    _validate_rows(rows)

    tree = PlanTree()
    group: Group | None = None
    subgroup: Subgroup | None = None

    for row in rows:
        if row.kind == "group":
            group = Group(id=row.id, description=row.description)
            subgroup = None
            tree.groups.append(group)
        elif row.kind == "subgroup":
            subgroup = Subgroup(id=row.id, description=row.description)
            group.subgroups.append(subgroup)
        else:
            item = WorkItem(
                id=row.id,
                code=row.code,
                description=row.description,
                group_id=group.id,
                subgroup_id=subgroup.id if subgroup else None,
                quantity=row.quantity,
                unit=row.unit,
                weight=_resolve_weight(row),
                unit_price=row.unit_price,
            )
            if subgroup is not None:
                subgroup.items.append(item)
            else:
                group.direct_items.append(item)

    return tree


def _validate_rows(rows: Iterable[PlanRow]) -> None:
    seen: set[str] = set()
    group_seen = False
    for position, row in enumerate(rows):
        if row.kind not in ("group", "subgroup", "item"):
            raise PlanStructureError(f"plan[{position}]: unknown row kind '{row.kind}'")
        if row.id in seen:
            raise PlanStructureError(f"plan[{position}]: duplicate id '{row.id}'")
        seen.add(row.id)
        if row.kind == "group":
            group_seen = True
        elif not group_seen:
            raise PlanStructureError(f"plan[{position}]: {row.kind} '{row.id}' appears before any group")


def _resolve_weight(row: PlanRow) -> float | None:
    """Explicit weight, else contracted money (unit price x quantity) when known."""
    if row.weight is not None:
        return row.weight
    if row.unit_price is not None and row.quantity is not None:
        return row.unit_price * row.quantity
    return None


def walk_nodes(tree: PlanTree) -> Iterable[Group | Subgroup | WorkItem]:
    """Depth-first walk in display order: group, its subgroups with their items, then direct items."""
    for group in tree.groups:
        yield group
        for subgroup in group.subgroups:
            yield subgroup
            yield from subgroup.items
        yield from group.direct_items

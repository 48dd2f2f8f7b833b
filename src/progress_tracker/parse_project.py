from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

from .dates import coerce_date, coerce_datetime, coerce_number
from .models import EstimateRow, Period, PlanRow, PlanTree, ProgressReport
from .plan_tree import ProjectValidationError, build_plan_tree

logger = logging.getLogger(__name__)

PLAN_ROW_KEYS = {"id", "kind", "code", "description", "quantity", "unit", "weight", "unit_price"}
PERIOD_KEYS = {"id", "sequence", "label", "start", "end"}
ESTIMATE_KEYS = {"period", "item", "fraction", "real_fraction"}
REPORT_KEYS = {"id", "item", "percent", "date", "start", "end", "created_at", "photos", "note", "author"}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like reports[3].item."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


@dataclass
class ProjectSnapshot:
    """Everything the engine needs for one project, as fetched from storage."""

    name: str
    tree: PlanTree
    periods: list[Period] = field(default_factory=list)
    estimates: list[EstimateRow] = field(default_factory=list)
    reports: list[ProgressReport] = field(default_factory=list)


def load_snapshot(path: str) -> ProjectSnapshot:
    """Load a project snapshot from a YAML file at the given path."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_snapshot(raw)


def parse_snapshot(data: Any) -> ProjectSnapshot:
    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")

    project_raw = data.get("project")
    if not isinstance(project_raw, dict):
        raise ProjectValidationError(f"{path}: missing required mapping 'project'")
    name = _require_str(project_raw, "name", path.child("project"))

    plan_rows = [
        _parse_plan_row(row, path.child(f"plan[{idx}]"))
        for idx, row in enumerate(_require_list(data, "plan", path))
    ]
    periods = [
        _parse_period(row, path.child(f"periods[{idx}]"), idx)
        for idx, row in enumerate(_optional_list(data, "periods", path))
    ]

    estimates: list[EstimateRow] = []
    for idx, row in enumerate(_optional_list(data, "estimates", path)):
        estimate = _parse_estimate(row, path.child(f"estimates[{idx}]"))
        if estimate is not None:
            estimates.append(estimate)

    reports: list[ProgressReport] = []
    for idx, row in enumerate(_optional_list(data, "reports", path)):
        report = _parse_report(row, path.child(f"reports[{idx}]"))
        if report is not None:
            reports.append(report)

    tree = build_plan_tree(plan_rows)
    logger.debug(
        "Loaded project %s: %d items, %d periods, %d estimates, %d reports",
        name,
        len(tree.items),
        len(periods),
        len(estimates),
        len(reports),
    )
    return ProjectSnapshot(name=name, tree=tree, periods=periods, estimates=estimates, reports=reports)


def _parse_plan_row(data: Any, path: _Path) -> PlanRow:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for plan row")
    _assert_allowed_keys(data, PLAN_ROW_KEYS, path)
    kind = data.get("kind", "item")
    if kind not in ("group", "subgroup", "item"):
        raise ProjectValidationError(f"{path}.kind: expected one of group, subgroup, item")
    return PlanRow(
        id=_require_id(data, "id", path),
        kind=kind,
        description=str(data.get("description") or ""),
        code=str(data.get("code") or ""),
        quantity=coerce_number(data.get("quantity")),
        unit=str(data["unit"]) if data.get("unit") else None,
        weight=coerce_number(data.get("weight")),
        unit_price=coerce_number(data.get("unit_price")),
    )


def _parse_period(data: Any, path: _Path, position: int) -> Period:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for period")
    _assert_allowed_keys(data, PERIOD_KEYS, path)
    sequence = data.get("sequence", position)
    if not isinstance(sequence, int) or isinstance(sequence, bool):
        raise ProjectValidationError(f"{path}.sequence: expected integer")
    label = data.get("label")
    return Period(
        id=_require_id(data, "id", path),
        sequence=sequence,
        label=str(label) if label is not None else None,
        start_date=coerce_date(data.get("start"), context=str(path.child("start"))),
        end_date=coerce_date(data.get("end"), context=str(path.child("end"))),
    )


def _parse_estimate(data: Any, path: _Path) -> EstimateRow | None:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for estimate row")
    _assert_allowed_keys(data, ESTIMATE_KEYS, path)
    fraction = coerce_number(data.get("fraction"))
    if fraction is None:
        logger.warning("%s: skipping estimate without a numeric fraction", path)
        return None
    return EstimateRow(
        period_id=_require_id(data, "period", path),
        item_id=_require_id(data, "item", path),
        fraction=fraction,
        real_fraction=coerce_number(data.get("real_fraction")) or 0.0,
    )


def _parse_report(data: Any, path: _Path) -> ProgressReport | None:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for report")
    _assert_allowed_keys(data, REPORT_KEYS, path)
    percent = coerce_number(data.get("percent"))
    if percent is None:
        logger.warning("%s: skipping report without a numeric percent", path)
        return None

    photos_raw = data.get("photos") or []
    if not isinstance(photos_raw, list):
        raise ProjectValidationError(f"{path}.photos: expected list")
    note = data.get("note")
    author = data.get("author")

    return ProgressReport(
        id=_require_id(data, "id", path),
        item_id=_require_id(data, "item", path),
        percent=percent,
        date=coerce_date(data.get("date"), context=str(path.child("date"))),
        start_date=coerce_date(data.get("start"), context=str(path.child("start"))),
        end_date=coerce_date(data.get("end"), context=str(path.child("end"))),
        created_at=coerce_datetime(data.get("created_at"), context=str(path.child("created_at"))),
        photos=tuple(str(photo) for photo in photos_raw),
        note=str(note) if note is not None else None,
        author=str(author) if author is not None else None,
    )


def _require_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return _optional_list(data, key, path)


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProjectValidationError(f"{path.child(key)}: expected list")
    return value


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _require_id(data: dict[str, Any], key: str, path: _Path) -> str:
    """Ids may be written as numbers or strings; they are compared as strings."""
    if key not in data or data[key] is None or isinstance(data[key], bool):
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    value = data[key]
    if not isinstance(value, (str, int)) or not str(value).strip():
        raise ProjectValidationError(f"{path.child(key)}: expected id string or integer")
    return str(value)
